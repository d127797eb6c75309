"""File-system snapshot storage: one pretty-printed JSON document per snapshot.

Layout under the storage root::

    latest/latest-2025-03-04T02:00:00Z.json
    historical/2025/historical-2025-03-04Z.json

Directories are created with mode 0750 and every written file ends up 0600.
"""

from __future__ import annotations

import json
import os
from dataclasses import replace
from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Sequence, Type

from pfm_forex.forex.entity import (
    HistoricalRates,
    Order,
    Rates,
    RatesList,
    Snapshot,
    T,
    paginate,
)
from pfm_forex.forex.errors import StorageError
from pfm_forex.forex.interface import ForexStorage
from pfm_forex.forex.money import Money
from pfm_forex.utils.logger import get_logger

LOGGER = get_logger(__name__)

LATEST_DIR = "latest"
HISTORICAL_DIR = "historical"
DIR_MODE = 0o750
FILE_MODE = 0o600
LATEST_FILE_FORMAT = "latest-%Y-%m-%dT%H:%M:%SZ.json"
HISTORICAL_FILE_FORMAT = "historical-%Y-%m-%dZ.json"


def latest_file_name(as_of: datetime) -> str:
    if as_of.tzinfo is None:
        as_of = as_of.replace(tzinfo=timezone.utc)
    return as_of.astimezone(timezone.utc).strftime(LATEST_FILE_FORMAT)


def historical_file_name(day: date) -> str:
    return day.strftime(HISTORICAL_FILE_FORMAT)


def parse_historical_file_name(name: str) -> date:
    """Return the date encoded in ``historical-YYYY-MM-DDZ.json``."""

    try:
        return datetime.strptime(name, HISTORICAL_FILE_FORMAT).date()
    except ValueError as exc:
        raise StorageError(f"unexpected file in historical storage: {name}") from exc


class FileForexStorage(ForexStorage):
    """Snapshot storage rooted at a data directory."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).expanduser()
        self.latest_dir = self.root / LATEST_DIR
        self.historical_dir = self.root / HISTORICAL_DIR
        for directory in (self.root, self.latest_dir, self.historical_dir):
            self._ensure_dir(directory)

    @staticmethod
    def _ensure_dir(directory: Path) -> None:
        if directory.is_dir():
            return
        try:
            directory.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
            os.chmod(directory, DIR_MODE)
        except OSError as exc:
            raise StorageError(f"cannot create directory {directory}") from exc

    @staticmethod
    def _list_dir(directory: Path) -> list[Path]:
        try:
            return sorted(directory.iterdir())
        except OSError as exc:
            raise StorageError(f"cannot read directory {directory}") from exc

    def _write(self, path: Path, snapshot: Snapshot) -> None:
        payload = json.dumps(snapshot.to_dict(), indent=2, ensure_ascii=False)
        try:
            with path.open("w", encoding="utf-8") as handle:
                handle.write(payload)
                handle.flush()
            os.chmod(path, FILE_MODE)
        except OSError as exc:
            raise StorageError(f"cannot write {path}") from exc
        LOGGER.debug("Wrote snapshot %s to %s", snapshot.id, path)

    @staticmethod
    def _read(path: Path, data_type: Type[T]) -> Snapshot[T]:
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise StorageError(f"snapshot not found: {path}") from exc
        except UnicodeDecodeError as exc:
            raise StorageError(f"snapshot {path} is not valid UTF-8") from exc
        except OSError as exc:
            raise StorageError(f"cannot read {path}") from exc
        try:
            payload = json.loads(text, parse_float=Decimal)
            return Snapshot.from_dict(payload, data_type)
        except (ValueError, TypeError) as exc:
            raise StorageError(f"malformed snapshot in {path}") from exc

    def _latest_files(self) -> list[Path]:
        # The file name format sorts chronologically.
        return [path for path in self._list_dir(self.latest_dir) if path.name.startswith("latest-")]

    def _historical_path(self, day: date) -> Path:
        return self.historical_dir / f"{day.year:04d}" / historical_file_name(day)

    def _historical_files(self, start: date | None = None, end: date | None = None) -> list[tuple[date, Path]]:
        found: list[tuple[date, Path]] = []
        for year_dir in self._list_dir(self.historical_dir):
            if not year_dir.is_dir():
                raise StorageError(f"unexpected file in historical storage: {year_dir.name}")
            try:
                year = int(year_dir.name)
            except ValueError as exc:
                raise StorageError(f"unexpected directory in historical storage: {year_dir.name}") from exc
            if (start is not None and year < start.year) or (end is not None and year > end.year):
                continue
            for path in self._list_dir(year_dir):
                day = parse_historical_file_name(path.name)
                if (start is None or day >= start) and (end is None or day <= end):
                    found.append((day, path))
        found.sort()
        return found

    def insert_latest(self, as_of: datetime, snapshot: Snapshot[Rates]) -> None:
        self._write(self.latest_dir / latest_file_name(as_of), snapshot)

    def get_latest(self) -> Snapshot[Rates]:
        files = self._latest_files()
        if not files:
            raise StorageError(f"no latest rates stored in {self.latest_dir}")
        return self._read(files[-1], Rates)

    def insert_historical(self, day: date, snapshot: Snapshot[HistoricalRates]) -> None:
        path = self._historical_path(day)
        self._ensure_dir(path.parent)
        self._write(path, snapshot)

    def get_historical(self, day: date) -> Snapshot[HistoricalRates]:
        return self._read(self._historical_path(day), HistoricalRates)

    def get_historical_range(self, start: date, end: date) -> list[Snapshot[HistoricalRates]]:
        return [self._read(path, HistoricalRates) for _, path in self._historical_files(start, end)]

    def get_latest_list(self, page: int, size: int, order: Order) -> RatesList[Rates]:
        files = self._latest_files()
        if order == Order.DESC:
            files.reverse()
        window = paginate(files, page, size)
        return RatesList(
            has_prev=window.has_prev,
            items=[self._read(path, Rates) for path in window.items],
            has_next=window.has_next,
        )

    def get_historical_list(self, page: int, size: int, order: Order) -> RatesList[HistoricalRates]:
        files = [path for _, path in self._historical_files()]
        if order == Order.DESC:
            files.reverse()
        window = paginate(files, page, size)
        return RatesList(
            has_prev=window.has_prev,
            items=[self._read(path, HistoricalRates) for path in window.items],
            has_next=window.has_next,
        )

    def update_historical_rates_data(
        self, day: date, patches: Sequence[Money]
    ) -> Snapshot[HistoricalRates]:
        stored = self.get_historical(day)
        data = replace(stored.data, rates=stored.data.rates.with_rates(patches))
        self._write(self._historical_path(day), replace(stored, data=data))
        return self.get_historical(day)

    def clear_latest(self) -> int:
        files = self._latest_files()
        stale = files[:-1]
        for path in stale:
            try:
                path.unlink()
            except OSError as exc:
                raise StorageError(f"cannot delete {path}") from exc
        if stale:
            LOGGER.info("Removed %d stale latest snapshots", len(stale))
        return len(stale)


__all__ = ["FileForexStorage", "latest_file_name", "historical_file_name", "parse_historical_file_name"]
