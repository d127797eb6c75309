"""In-memory storage and a static rate source for tests and offline use."""

from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable, Sequence

from pfm_forex.forex.currency import Currency
from pfm_forex.forex.entity import (
    HistoricalRates,
    Order,
    Rates,
    RatesData,
    RatesList,
    Snapshot,
    paginate,
)
from pfm_forex.forex.errors import StorageError, UpstreamError
from pfm_forex.forex.interface import ForexStorage, RateSource
from pfm_forex.forex.money import Money
from pfm_forex.forex.service import rebase
from pfm_forex.utils.date_range import start_of_day

FIXTURE_AS_OF = datetime(2025, 3, 4, 2, 0, tzinfo=timezone.utc)

FIXTURE_RATES = RatesData(
    usd=Decimal("1"),
    cad=Decimal("1.273"),
    eur=Decimal("0.953416"),
    gbp=Decimal("0.787563"),
    chf=Decimal("0.89583"),
    rub=Decimal("93.5"),
    cny=Decimal("7.286"),
    jpy=Decimal("148.9353"),
    krw=Decimal("1320.5"),
    hkd=Decimal("7.84"),
    idr=Decimal("16461"),
    myr=Decimal("4.69"),
    sgd=Decimal("1.344868"),
    thb=Decimal("35.2"),
    sar=Decimal("3.750387"),
    aed=Decimal("3.6725"),
    kwd=Decimal("0.306"),
    inr=Decimal("83.1"),
    aud=Decimal("1.52"),
    nzd=Decimal("1.67"),
    xau=Decimal("0.0003462"),
    xag=Decimal("0.03165459"),
    xpt=Decimal("0.00104119"),
    btc=Decimal("0.0000158"),
    eth=Decimal("0.00049"),
    sol=Decimal("0.0117"),
    xrp=Decimal("1.92"),
    ada=Decimal("3.76"),
)


class StaticRateSource(RateSource):
    """Serves the fixture table; ``failing_days`` simulate upstream outages."""

    name = "mock"

    def __init__(
        self,
        rates: RatesData = FIXTURE_RATES,
        *,
        as_of: datetime = FIXTURE_AS_OF,
        failing_days: Sequence[date] = (),
        rates_for_day: Callable[[date], RatesData] | None = None,
    ) -> None:
        self._rates = rates
        self._as_of = as_of
        self._failing_days = set(failing_days)
        self._rates_for_day = rates_for_day
        self.calls: list[date | None] = []

    def rates(self, base: Currency) -> Snapshot[Rates]:
        self.calls.append(None)
        snapshot = Snapshot.new(self.name, Rates(as_of=self._as_of, base=Currency.USD, rates=self._rates))
        return rebase(snapshot, base)

    def historical_rates(self, day: date, base: Currency) -> Snapshot[HistoricalRates]:
        self.calls.append(day)
        if day in self._failing_days:
            raise UpstreamError(f"no data for {day.isoformat()}")
        table = self._rates_for_day(day) if self._rates_for_day else self._rates
        data = HistoricalRates(as_of=start_of_day(day), base=Currency.USD, rates=table)
        return rebase(Snapshot.new(self.name, data), base)


class InMemoryForexStorage(ForexStorage):
    """Dictionary-backed storage with the same semantics as the file store."""

    def __init__(self) -> None:
        self._latest: dict[datetime, Snapshot[Rates]] = {}
        self._historical: dict[date, Snapshot[HistoricalRates]] = {}

    def insert_latest(self, as_of: datetime, snapshot: Snapshot[Rates]) -> None:
        self._latest[as_of.astimezone(timezone.utc).replace(microsecond=0)] = snapshot

    def get_latest(self) -> Snapshot[Rates]:
        if not self._latest:
            raise StorageError("no latest rates stored")
        return self._latest[max(self._latest)]

    def insert_historical(self, day: date, snapshot: Snapshot[HistoricalRates]) -> None:
        self._historical[day] = snapshot

    def get_historical(self, day: date) -> Snapshot[HistoricalRates]:
        try:
            return self._historical[day]
        except KeyError as exc:
            raise StorageError(f"no historical rates stored for {day.isoformat()}") from exc

    def get_historical_range(self, start: date, end: date) -> list[Snapshot[HistoricalRates]]:
        return [self._historical[day] for day in sorted(self._historical) if start <= day <= end]

    def get_latest_list(self, page: int, size: int, order: Order) -> RatesList[Rates]:
        keys = sorted(self._latest, reverse=order == Order.DESC)
        return paginate([self._latest[key] for key in keys], page, size)

    def get_historical_list(self, page: int, size: int, order: Order) -> RatesList[HistoricalRates]:
        keys = sorted(self._historical, reverse=order == Order.DESC)
        return paginate([self._historical[key] for key in keys], page, size)

    def update_historical_rates_data(
        self, day: date, patches: Sequence[Money]
    ) -> Snapshot[HistoricalRates]:
        stored = self.get_historical(day)
        data = replace(stored.data, rates=stored.data.rates.with_rates(patches))
        self._historical[day] = replace(stored, data=data)
        return self._historical[day]

    def clear_latest(self) -> int:
        if not self._latest:
            return 0
        newest = max(self._latest)
        removed = [key for key in self._latest if key != newest]
        for key in removed:
            del self._latest[key]
        return len(removed)
