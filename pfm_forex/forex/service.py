"""Conversion engine and the poll/query operations built on storage."""

from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime, timezone
from decimal import Decimal, localcontext
from typing import Iterable, Sequence

from pfm_forex.forex.currency import Currency
from pfm_forex.forex.entity import ConversionResponse, HistoricalRates, Rates, RatesData, Snapshot, T
from pfm_forex.forex.errors import ForexError, RateUnavailableError
from pfm_forex.forex.interface import ForexStorage, RateSource
from pfm_forex.forex.money import Money
from pfm_forex.utils.date_range import start_of_day, utc_today
from pfm_forex.utils.logger import get_logger

LOGGER = get_logger(__name__)

# Wide enough that chained divisions of crypto and metal rates stay exact to the cent.
CONVERSION_PRECISION = 50

__all__ = [
    "convert_money",
    "rebase",
    "convert",
    "convert_historical",
    "batch_convert",
    "get_rates",
    "get_timeseries",
    "poll_rates",
    "poll_historical_rates",
    "update_historical_rates_data",
]


def convert_money(rates: RatesData, from_: Money, to: Currency) -> Money:
    """Convert ``from_`` into ``to`` using one rate table.

    Returns ``from_`` unchanged for same-currency conversion and a zero amount
    when either rate is unavailable.
    """

    if from_.currency == to:
        return from_
    from_rate = rates[from_.currency]
    to_rate = rates[to]
    if from_rate.is_zero() or to_rate.is_zero():
        return Money.zero(to)
    with localcontext() as ctx:
        ctx.prec = CONVERSION_PRECISION
        amount = from_.amount / from_rate * to_rate
    return Money(to, amount)


def rebase(snapshot: Snapshot[T], base: Currency) -> Snapshot[T]:
    """Re-express a snapshot so that ``base`` has rate 1."""

    data = snapshot.data
    if data.base == base:
        return snapshot
    if data.rates[base].is_zero():
        raise RateUnavailableError(f"no {base.code} rate in snapshot {snapshot.id}")
    one = Money(base, Decimal("1"))
    rebased = RatesData.from_mapping(
        {currency: convert_money(data.rates, one, currency).amount for currency in Currency}
    )
    return replace(snapshot, data=replace(data, base=base, rates=rebased))


def _require_usable(snapshot: Snapshot[T]) -> Snapshot[T]:
    if snapshot.is_error:
        raise RateUnavailableError(
            f"snapshot {snapshot.id} from {snapshot.source} is an error snapshot: {snapshot.error}"
        )
    return snapshot


def _convert_with(snapshot: Snapshot[T], from_: Money, to: Currency) -> ConversionResponse:
    result = convert_money(snapshot.data.rates, from_, to)
    # Zero out for a non-zero input is the unavailable-rate sentinel.
    if result.is_zero() and not from_.is_zero():
        raise RateUnavailableError(
            f"rate unavailable for {from_.currency.code} -> {to.code} as of {snapshot.data.as_of:%Y-%m-%d}"
        )
    return ConversionResponse.build(snapshot.data.as_of, from_, result)


def convert(storage: ForexStorage, from_: Money, to: Currency) -> ConversionResponse:
    """Convert against the newest latest snapshot."""

    snapshot = _require_usable(storage.get_latest())
    return _convert_with(snapshot, from_, to)


def convert_historical(
    storage: ForexStorage, from_: Money, to: Currency, day: date
) -> ConversionResponse:
    """Convert against the snapshot stored for ``day``."""

    snapshot = _require_usable(storage.get_historical(day))
    return _convert_with(snapshot, from_, to)


def batch_convert(
    storage: ForexStorage, froms: Sequence[Money], to: Currency
) -> list[ConversionResponse]:
    """Convert every amount against one shared latest snapshot.

    The first unavailable rate fails the whole batch.
    """

    if not froms:
        return []
    snapshot = _require_usable(storage.get_latest())
    return [_convert_with(snapshot, money, to) for money in froms]


def get_rates(
    storage: ForexStorage, base: Currency = Currency.USD, day: date | None = None
) -> Snapshot[Rates] | Snapshot[HistoricalRates]:
    """Latest rates (or the stored rates for ``day``) relative to ``base``."""

    if day is None or day == utc_today():
        snapshot: Snapshot = storage.get_latest()
    else:
        snapshot = storage.get_historical(day)
    return rebase(_require_usable(snapshot), base)


def get_timeseries(
    storage: ForexStorage, start: date, end: date, base: Currency = Currency.USD
) -> list[Snapshot[HistoricalRates]]:
    """Historical snapshots in ``[start, end]`` relative to ``base``.

    Error snapshots and days with no rate for ``base`` are skipped.
    """

    if start > end:
        raise ValueError("start date must not be after end date")
    series = []
    for snapshot in storage.get_historical_range(start, end):
        if snapshot.is_error:
            LOGGER.debug("Skipping error snapshot for %s", snapshot.data.date)
            continue
        if snapshot.data.rates[base].is_zero():
            LOGGER.info("Skipping %s: no %s rate stored", snapshot.data.date, base.code)
            continue
        series.append(rebase(snapshot, base))
    return series


def _error_text(exc: Exception) -> str:
    if isinstance(exc, ForexError):
        return exc.detail()
    return f"{type(exc).__name__}: {exc}"


def poll_rates(source: RateSource, storage: ForexStorage, base: Currency = Currency.USD) -> Snapshot[Rates]:
    """Fetch latest rates and persist them, storing an error snapshot on failure."""

    try:
        snapshot = source.rates(base)
    except Exception as exc:
        LOGGER.warning("Polling latest rates from %s failed: %s", source.name, exc)
        snapshot = Snapshot.failed(Rates, datetime.now(timezone.utc), _error_text(exc))
    storage.insert_latest(snapshot.data.as_of, snapshot)
    LOGGER.info("Stored latest snapshot %s as of %s", snapshot.id, snapshot.data.as_of)
    return snapshot


def poll_historical_rates(
    source: RateSource, storage: ForexStorage, day: date, base: Currency = Currency.USD
) -> Snapshot[HistoricalRates]:
    """Fetch rates for ``day`` and persist them under that date."""

    try:
        snapshot = source.historical_rates(day, base)
    except Exception as exc:
        LOGGER.warning("Polling historical rates for %s from %s failed: %s", day, source.name, exc)
        snapshot = Snapshot.failed(HistoricalRates, start_of_day(day), _error_text(exc))
    storage.insert_historical(day, snapshot)
    LOGGER.info("Stored historical snapshot for %s (error=%s)", day, snapshot.is_error)
    return snapshot


def update_historical_rates_data(
    source: RateSource,
    storage: ForexStorage,
    day: date,
    currencies: Iterable[Currency],
) -> Snapshot[HistoricalRates]:
    """Refetch ``day`` from ``source`` and overwrite only ``currencies`` in storage."""

    selected = [Currency.parse(currency) for currency in currencies]
    if not selected:
        return storage.get_historical(day)
    stored = storage.get_historical(day)
    fresh = source.historical_rates(day, stored.data.base)
    patches = [Money(currency, fresh.data.rates[currency]) for currency in selected]
    LOGGER.info("Patching %s for %s", ", ".join(c.code for c in selected), day)
    return storage.update_historical_rates_data(day, patches)
