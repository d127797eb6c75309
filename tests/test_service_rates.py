from datetime import date, datetime, timezone
from decimal import Decimal, localcontext

import pytest

from pfm_forex.forex import service
from pfm_forex.forex.currency import Currency
from pfm_forex.forex.entity import HistoricalRates, Rates, Snapshot
from pfm_forex.forex.errors import RateUnavailableError, UpstreamError
from pfm_forex.forex.mock import FIXTURE_AS_OF, FIXTURE_RATES, InMemoryForexStorage, StaticRateSource
from pfm_forex.forex.money import Money


def _historical(day: date, **overrides: str) -> Snapshot[HistoricalRates]:
    rates = FIXTURE_RATES.with_rates([Money(Currency.parse(code.upper()), Decimal(v)) for code, v in overrides.items()])
    as_of = datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
    return Snapshot.new("mock", HistoricalRates(as_of=as_of, base=Currency.USD, rates=rates))


class FailingSource(StaticRateSource):
    def rates(self, base: Currency) -> Snapshot[Rates]:
        raise UpstreamError("provider unavailable")


def test_get_rates_rebases_to_requested_currency() -> None:
    storage = InMemoryForexStorage()
    storage.insert_latest(FIXTURE_AS_OF, Snapshot.new("mock", Rates(as_of=FIXTURE_AS_OF, base=Currency.USD, rates=FIXTURE_RATES)))

    snapshot = service.get_rates(storage, Currency.EUR)

    assert snapshot.data.base is Currency.EUR
    assert snapshot.data.rates[Currency.EUR] == Decimal("1")
    with localcontext() as ctx:
        ctx.prec = 28
        assert (snapshot.data.rates[Currency.USD] * Decimal("0.953416")).quantize(Decimal("1.000000")) == Decimal("1.000000")


def test_get_rates_in_usd_returns_stored_snapshot() -> None:
    storage = InMemoryForexStorage()
    stored = Snapshot.new("mock", Rates(as_of=FIXTURE_AS_OF, base=Currency.USD, rates=FIXTURE_RATES))
    storage.insert_latest(FIXTURE_AS_OF, stored)

    assert service.get_rates(storage) == stored


def test_get_rates_for_today_uses_latest(monkeypatch) -> None:
    storage = InMemoryForexStorage()
    storage.insert_latest(FIXTURE_AS_OF, Snapshot.new("mock", Rates(as_of=FIXTURE_AS_OF, base=Currency.USD, rates=FIXTURE_RATES)))
    monkeypatch.setattr(service, "utc_today", lambda: date(2025, 3, 4))

    snapshot = service.get_rates(storage, Currency.USD, date(2025, 3, 4))

    assert isinstance(snapshot.data, Rates)
    assert not isinstance(snapshot.data, HistoricalRates)


def test_get_rates_for_past_day_uses_history() -> None:
    storage = InMemoryForexStorage()
    storage.insert_historical(date(2024, 1, 2), _historical(date(2024, 1, 2), idr="15000"))

    snapshot = service.get_rates(storage, Currency.IDR, date(2024, 1, 2))

    assert snapshot.data.rates[Currency.IDR] == Decimal("1")
    with localcontext() as ctx:
        ctx.prec = service.CONVERSION_PRECISION
        expected = Decimal("1") / Decimal("15000")
    assert snapshot.data.rates[Currency.USD] == expected


def test_get_rates_rejects_base_without_rate() -> None:
    storage = InMemoryForexStorage()
    storage.insert_historical(date(2024, 1, 2), _historical(date(2024, 1, 2), btc="0"))

    with pytest.raises(RateUnavailableError):
        service.get_rates(storage, Currency.BTC, date(2024, 1, 2))


def test_timeseries_skips_error_snapshots_and_rebases() -> None:
    storage = InMemoryForexStorage()
    storage.insert_historical(date(2024, 1, 1), _historical(date(2024, 1, 1)))
    storage.insert_historical(
        date(2024, 1, 2), Snapshot.failed(HistoricalRates, datetime(2024, 1, 2, tzinfo=timezone.utc), "down")
    )
    storage.insert_historical(date(2024, 1, 3), _historical(date(2024, 1, 3)))
    storage.insert_historical(date(2024, 1, 9), _historical(date(2024, 1, 9)))

    series = service.get_timeseries(storage, date(2024, 1, 1), date(2024, 1, 5), Currency.GBP)

    assert [s.data.date for s in series] == [date(2024, 1, 1), date(2024, 1, 3)]
    assert all(s.data.rates[Currency.GBP] == Decimal("1") for s in series)
    with pytest.raises(ValueError):
        service.get_timeseries(storage, date(2024, 1, 5), date(2024, 1, 1))


def test_timeseries_skips_days_without_a_base_rate(caplog) -> None:
    storage = InMemoryForexStorage()
    storage.insert_historical(date(2024, 1, 1), _historical(date(2024, 1, 1), btc="0"))
    storage.insert_historical(date(2024, 1, 2), _historical(date(2024, 1, 2)))
    storage.insert_historical(date(2024, 1, 3), _historical(date(2024, 1, 3), btc="0.00002"))

    with caplog.at_level("INFO", logger="pfm_forex.forex.service"):
        series = service.get_timeseries(storage, date(2024, 1, 1), date(2024, 1, 3), Currency.BTC)

    assert [s.data.date for s in series] == [date(2024, 1, 2), date(2024, 1, 3)]
    assert all(s.data.base == Currency.BTC for s in series)
    assert series[1].data.rates[Currency.USD] == Decimal("50000")
    assert "no BTC rate stored" in caplog.text


def test_poll_rates_stores_source_snapshot() -> None:
    storage = InMemoryForexStorage()

    snapshot = service.poll_rates(StaticRateSource(), storage, Currency.USD)

    assert storage.get_latest() == snapshot
    assert snapshot.error is None


def test_poll_rates_stores_error_snapshot_when_source_fails() -> None:
    storage = InMemoryForexStorage()

    snapshot = service.poll_rates(FailingSource(), storage, Currency.USD)

    assert snapshot.is_error
    assert "provider unavailable" in snapshot.error
    assert storage.get_latest().error == snapshot.error
    assert snapshot.data.rates[Currency.IDR] == Decimal("0")


def test_poll_historical_rates_stores_under_requested_day() -> None:
    storage = InMemoryForexStorage()
    day = date(2024, 2, 5)
    source = StaticRateSource(failing_days=[date(2024, 2, 6)])

    ok = service.poll_historical_rates(source, storage, day, Currency.USD)
    failed = service.poll_historical_rates(source, storage, date(2024, 2, 6), Currency.USD)

    assert storage.get_historical(day) == ok
    assert storage.get_historical(date(2024, 2, 6)).is_error
    assert failed.data.date == date(2024, 2, 6)
    assert "2024-02-06" in failed.error


def test_update_historical_rates_data_patches_selected_currencies() -> None:
    storage = InMemoryForexStorage()
    day = date(2024, 3, 1)
    storage.insert_historical(day, _historical(day, btc="0", idr="15500"))

    updated = service.update_historical_rates_data(StaticRateSource(), storage, day, [Currency.BTC])

    assert updated.data.rates[Currency.BTC] == FIXTURE_RATES.btc
    assert updated.data.rates[Currency.IDR] == Decimal("15500")
    assert storage.get_historical(day) == updated
