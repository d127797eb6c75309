"""Capability interfaces for rate sources and snapshot storage."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Sequence

from pfm_forex.forex.currency import Currency
from pfm_forex.forex.entity import HistoricalRates, Order, Rates, RatesList, Snapshot
from pfm_forex.forex.money import Money


class RateSource(ABC):
    """A provider of rate snapshots relative to a base currency."""

    name: str = "forex"

    @abstractmethod
    def rates(self, base: Currency) -> Snapshot[Rates]:
        """Fetch the latest rates for ``base``."""

    @abstractmethod
    def historical_rates(self, day: date, base: Currency) -> Snapshot[HistoricalRates]:
        """Fetch end-of-day rates for ``day``."""


class ForexStorage(ABC):
    """Persistence for latest and historical rate snapshots.

    Writes to the same key are last-write-wins; implementations do not lock.
    """

    @abstractmethod
    def insert_latest(self, as_of: datetime, snapshot: Snapshot[Rates]) -> None:
        """Persist a latest snapshot keyed by its timestamp."""

    @abstractmethod
    def get_latest(self) -> Snapshot[Rates]:
        """Return the snapshot with the greatest timestamp."""

    @abstractmethod
    def insert_historical(self, day: date, snapshot: Snapshot[HistoricalRates]) -> None:
        """Persist (or replace) the snapshot for ``day``."""

    def insert_historical_batch(self, snapshots: Sequence[Snapshot[HistoricalRates]]) -> None:
        """Persist many historical snapshots, each keyed by its own date."""

        for snapshot in snapshots:
            self.insert_historical(snapshot.data.date, snapshot)

    @abstractmethod
    def get_historical(self, day: date) -> Snapshot[HistoricalRates]:
        """Return the snapshot stored for ``day``."""

    @abstractmethod
    def get_historical_range(self, start: date, end: date) -> list[Snapshot[HistoricalRates]]:
        """Return snapshots with dates in ``[start, end]`` sorted ascending."""

    @abstractmethod
    def get_latest_list(self, page: int, size: int, order: Order) -> RatesList[Rates]:
        """Return one page of latest snapshots."""

    @abstractmethod
    def get_historical_list(self, page: int, size: int, order: Order) -> RatesList[HistoricalRates]:
        """Return one page of historical snapshots."""

    @abstractmethod
    def update_historical_rates_data(
        self, day: date, patches: Sequence[Money]
    ) -> Snapshot[HistoricalRates]:
        """Overwrite selected currencies for ``day`` and return the stored result."""

    @abstractmethod
    def clear_latest(self) -> int:
        """Delete every latest snapshot except the newest; return how many were removed."""

    def close(self) -> None:  # pragma: no cover - optional cleanup hook
        """Storages may override to release connections/resources."""


__all__ = ["RateSource", "ForexStorage"]
