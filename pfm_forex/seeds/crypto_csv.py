"""Fill missing crypto rates in stored history from CoinMarketCap CSV exports.

CoinMarketCap exports are ``;``-separated with one row per day; only the
``timestamp`` and ``close`` (USD price) columns are used. Stored rates are
units per USD, so each close price is inverted.
"""

from __future__ import annotations

import argparse
from datetime import date
from decimal import Decimal, localcontext
from pathlib import Path
from typing import Mapping

import pandas as pd

from pfm_forex.forex.currency import Currency
from pfm_forex.forex.errors import InputError
from pfm_forex.forex.interface import ForexStorage
from pfm_forex.forex.money import Money, to_decimal
from pfm_forex.utils.date_range import parse_date
from pfm_forex.utils.logger import get_logger

LOGGER = get_logger(__name__)

PRICE_COLUMNS = ["timestamp", "close"]

__all__ = ["read_crypto_prices", "import_crypto_rates", "parse_args", "main"]


def read_crypto_prices(path: str | Path) -> dict[date, Decimal]:
    """Return ``{day: units per USD}`` for every row with a positive close price."""

    try:
        frame = pd.read_csv(path, sep=";", usecols=PRICE_COLUMNS, dtype={"close": str})
    except ValueError as exc:
        raise InputError(f"{path} is not a CoinMarketCap export with {PRICE_COLUMNS}") from exc

    frame["day"] = pd.to_datetime(frame["timestamp"], utc=True, errors="coerce").dt.date
    frame = frame.dropna(subset=["day", "close"])

    rates: dict[date, Decimal] = {}
    for day, close in zip(frame["day"], frame["close"]):
        price = to_decimal(str(close).strip())
        if price <= 0:
            continue
        with localcontext() as ctx:
            ctx.prec = 28
            rates[day] = Decimal(1) / price
    LOGGER.info("Read %d daily prices from %s", len(rates), path)
    return rates


def import_crypto_rates(
    storage: ForexStorage,
    prices: Mapping[Currency, Mapping[date, Decimal]],
    start: date,
    end: date,
) -> int:
    """Patch zero crypto rates of stored snapshots in ``[start, end]``; return how many changed.

    Rates that are already non-zero are left alone, as are error snapshots.
    """

    for currency in prices:
        if not currency.is_crypto:
            raise InputError(f"{currency.code} is not a crypto currency")

    patched = 0
    for snapshot in storage.get_historical_range(start, end):
        day = snapshot.data.date
        if snapshot.is_error:
            LOGGER.debug("Skipping error snapshot for %s", day)
            continue
        if snapshot.data.base != Currency.USD:
            LOGGER.warning("Skipping %s: stored base is %s, prices are in USD", day, snapshot.data.base)
            continue
        patches = [
            Money(currency, series[day])
            for currency, series in prices.items()
            if day in series and snapshot.data.rates[currency].is_zero()
        ]
        if not patches:
            continue
        storage.update_historical_rates_data(day, patches)
        patched += 1
        LOGGER.debug("Filled %s for %s", ", ".join(p.currency.code for p in patches), day)
    LOGGER.info("Filled crypto rates for %d snapshots between %s and %s", patched, start, end)
    return patched


def _parse_file_arg(value: str) -> tuple[Currency, Path]:
    code, sep, path = value.partition("=")
    if not sep or not path:
        raise argparse.ArgumentTypeError("expected CODE=path, e.g. BTC=btc.csv")
    try:
        return Currency.parse(code.upper()), Path(path)
    except InputError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--csv",
        dest="files",
        type=_parse_file_arg,
        action="append",
        required=True,
        help="Crypto export as CODE=path; repeat for each currency",
    )
    parser.add_argument("--from", dest="start", required=True, help="First date to patch (YYYY-MM-DD)")
    parser.add_argument("--to", dest="end", required=True, help="Last date to patch (YYYY-MM-DD)")
    parser.add_argument("--storage", dest="storage_url", help="Storage URL; defaults to PFM_DATA_PATH")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    from pfm_forex import PfmForex

    args = parse_args(argv)
    prices = {currency: read_crypto_prices(path) for currency, path in args.files}
    forex = PfmForex(args.storage_url)
    try:
        import_crypto_rates(forex.storage, prices, parse_date(args.start), parse_date(args.end))
    finally:
        forex.close()


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    main()
