"""SQLAlchemy-backed snapshot storage."""

from __future__ import annotations

import json
from dataclasses import replace
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Iterator, Sequence, Type

from sqlalchemy import Column, DateTime, String, Text, create_engine, delete, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from pfm_forex.forex.entity import (
    HistoricalRates,
    Order,
    Rates,
    RatesList,
    Snapshot,
    T,
)
from pfm_forex.forex.errors import StorageError
from pfm_forex.forex.interface import ForexStorage
from pfm_forex.forex.money import Money
from pfm_forex.utils.logger import get_logger

LOGGER = get_logger(__name__)

LATEST = "latest"
HISTORICAL = "historical"


class Base(DeclarativeBase):
    pass


class _SnapshotRow(Base):
    __tablename__ = "forex_snapshots"

    kind = Column(String(16), primary_key=True)
    key = Column(String(32), primary_key=True)
    as_of = Column(DateTime(timezone=True), nullable=False)
    payload = Column(Text, nullable=False)


def latest_key(as_of: datetime) -> str:
    if as_of.tzinfo is None:
        as_of = as_of.replace(tzinfo=timezone.utc)
    return as_of.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def historical_key(day: date) -> str:
    return day.isoformat()


class SQLForexStorage(ForexStorage):
    """Stores each snapshot as a JSON payload keyed like the file layout.

    Keys sort chronologically, so listing and range queries order by key.
    """

    def __init__(self, url: str = "sqlite:///pfm-forex.db", *, echo: bool = False) -> None:
        connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
        try:
            self.engine: Engine = create_engine(url, echo=echo, future=True, connect_args=connect_args)
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise StorageError(f"cannot initialise storage at {url}") from exc
        self._SessionFactory: sessionmaker[Session] = sessionmaker(
            bind=self.engine, expire_on_commit=False, future=True
        )

    def _session(self) -> Session:
        return self._SessionFactory()

    def _upsert(self, kind: str, key: str, as_of: datetime, snapshot: Snapshot) -> None:
        payload = json.dumps(snapshot.to_dict())
        try:
            with self._session() as session:
                existing = session.get(_SnapshotRow, {"kind": kind, "key": key})
                if existing is None:
                    session.add(_SnapshotRow(kind=kind, key=key, as_of=as_of, payload=payload))
                else:
                    setattr(existing, "as_of", as_of)
                    setattr(existing, "payload", payload)
                session.commit()
        except SQLAlchemyError as exc:
            raise StorageError(f"cannot store {kind} snapshot {key}") from exc
        LOGGER.debug("Stored %s snapshot %s under %s", kind, snapshot.id, key)

    @staticmethod
    def _decode(row: _SnapshotRow, data_type: Type[T]) -> Snapshot[T]:
        try:
            return Snapshot.from_dict(json.loads(str(row.payload), parse_float=Decimal), data_type)
        except (ValueError, TypeError) as exc:
            raise StorageError(f"malformed {row.kind} snapshot {row.key}") from exc

    def _rows(self, stmt) -> Iterator[_SnapshotRow]:
        try:
            with self._session() as session:
                rows = list(session.execute(stmt).scalars())
        except SQLAlchemyError as exc:
            raise StorageError("snapshot query failed") from exc
        return iter(rows)

    def _count(self, kind: str) -> int:
        try:
            with self._session() as session:
                stmt = select(func.count()).select_from(_SnapshotRow).where(_SnapshotRow.kind == kind)
                return int(session.execute(stmt).scalar_one())
        except SQLAlchemyError as exc:
            raise StorageError("snapshot count failed") from exc

    def _page(self, kind: str, page: int, size: int, order: Order, data_type: Type[T]) -> RatesList[T]:
        if size <= 0:
            raise ValueError("page size must be positive")
        total = self._count(kind)
        start = min((max(page, 1) - 1) * size, total)
        end = min(start + size, total)
        key_order = _SnapshotRow.key.desc() if order == Order.DESC else _SnapshotRow.key.asc()
        stmt = (
            select(_SnapshotRow)
            .where(_SnapshotRow.kind == kind)
            .order_by(key_order)
            .offset(start)
            .limit(end - start)
        )
        items = [self._decode(row, data_type) for row in self._rows(stmt)] if end > start else []
        return RatesList(has_prev=start > 0, items=items, has_next=end < total)

    def insert_latest(self, as_of: datetime, snapshot: Snapshot[Rates]) -> None:
        self._upsert(LATEST, latest_key(as_of), as_of, snapshot)

    def get_latest(self) -> Snapshot[Rates]:
        stmt = select(_SnapshotRow).where(_SnapshotRow.kind == LATEST).order_by(_SnapshotRow.key.desc()).limit(1)
        row = next(self._rows(stmt), None)
        if row is None:
            raise StorageError("no latest rates stored")
        return self._decode(row, Rates)

    def insert_historical(self, day: date, snapshot: Snapshot[HistoricalRates]) -> None:
        self._upsert(HISTORICAL, historical_key(day), snapshot.data.as_of, snapshot)

    def get_historical(self, day: date) -> Snapshot[HistoricalRates]:
        stmt = select(_SnapshotRow).where(
            _SnapshotRow.kind == HISTORICAL, _SnapshotRow.key == historical_key(day)
        )
        row = next(self._rows(stmt), None)
        if row is None:
            raise StorageError(f"no historical rates stored for {day.isoformat()}")
        return self._decode(row, HistoricalRates)

    def get_historical_range(self, start: date, end: date) -> list[Snapshot[HistoricalRates]]:
        stmt = (
            select(_SnapshotRow)
            .where(
                _SnapshotRow.kind == HISTORICAL,
                _SnapshotRow.key >= historical_key(start),
                _SnapshotRow.key <= historical_key(end),
            )
            .order_by(_SnapshotRow.key)
        )
        return [self._decode(row, HistoricalRates) for row in self._rows(stmt)]

    def get_latest_list(self, page: int, size: int, order: Order) -> RatesList[Rates]:
        return self._page(LATEST, page, size, order, Rates)

    def get_historical_list(self, page: int, size: int, order: Order) -> RatesList[HistoricalRates]:
        return self._page(HISTORICAL, page, size, order, HistoricalRates)

    def update_historical_rates_data(
        self, day: date, patches: Sequence[Money]
    ) -> Snapshot[HistoricalRates]:
        stored = self.get_historical(day)
        data = replace(stored.data, rates=stored.data.rates.with_rates(patches))
        self.insert_historical(day, replace(stored, data=data))
        return self.get_historical(day)

    def clear_latest(self) -> int:
        try:
            with self._session() as session:
                newest = session.execute(
                    select(func.max(_SnapshotRow.key)).where(_SnapshotRow.kind == LATEST)
                ).scalar_one_or_none()
                if newest is None:
                    return 0
                result = session.execute(
                    delete(_SnapshotRow).where(_SnapshotRow.kind == LATEST, _SnapshotRow.key != newest)
                )
                session.commit()
        except SQLAlchemyError as exc:
            raise StorageError("cannot clear latest snapshots") from exc
        return int(result.rowcount or 0)

    def close(self) -> None:  # pragma: no cover - trivial
        self.engine.dispose()


__all__ = ["SQLForexStorage"]
