"""Backfill historical rates from a remote source within the provider quota.

Requests go out in batches of at most ``rate_limit`` concurrent calls with a
pause between batches, and never more than ``quota_remaining`` in total.
"""

from __future__ import annotations

import argparse
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Callable

from pfm_forex.forex.currency import Currency
from pfm_forex.forex.entity import Order
from pfm_forex.forex.errors import InternalError
from pfm_forex.forex.interface import ForexStorage, RateSource
from pfm_forex.forex.service import poll_historical_rates
from pfm_forex.utils.date_range import parse_date, utc_today, weekdays
from pfm_forex.utils.logger import get_logger

LOGGER = get_logger(__name__)

DEFAULT_START = date(2000, 1, 1)

__all__ = [
    "BackfillResult",
    "BackfillCoordinator",
    "seed_historical",
    "resume_date",
    "parse_args",
    "main",
]


@dataclass(slots=True)
class BackfillResult:
    """Outcome of a backfill run."""

    attempted: list[date] = field(default_factory=list)
    stored: int = 0
    errored: int = 0
    failed: list[date] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.attempted)


class BackfillCoordinator:
    """Fan out historical polls in rate-limited batches.

    ``sleep`` is injectable so tests can observe pauses without waiting.
    """

    def __init__(
        self,
        source: RateSource,
        storage: ForexStorage,
        *,
        base: Currency = Currency.USD,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.source = source
        self.storage = storage
        self.base = base
        self._sleep = sleep

    def _poll(self, day: date) -> bool:
        snapshot = poll_historical_rates(self.source, self.storage, day, self.base)
        return not snapshot.is_error

    def run(
        self,
        from_date: date,
        to_date: date,
        *,
        quota_remaining: int,
        rate_limit: int,
        seconds_per_batch: float,
    ) -> BackfillResult:
        if from_date > to_date:
            raise ValueError("from_date must not be after to_date")
        if rate_limit <= 0:
            raise ValueError("rate_limit must be positive")
        if seconds_per_batch < 0:
            raise ValueError("seconds_per_batch must not be negative")
        if quota_remaining <= 0:
            raise InternalError(f"no request quota remaining for {self.source.name}")

        pending = weekdays(from_date, to_date)
        total = min(len(pending), quota_remaining)
        LOGGER.info(
            "Backfilling %d of %d weekdays between %s and %s (rate limit %d)",
            total,
            len(pending),
            from_date,
            to_date,
            rate_limit,
        )

        result = BackfillResult()
        completed = 0
        index = 0
        with ThreadPoolExecutor(max_workers=rate_limit, thread_name_prefix="backfill") as executor:
            while completed < total and index < len(pending):
                batch_size = min(rate_limit, total - completed, len(pending) - index)
                batch = pending[index : index + batch_size]
                futures: dict[Future[bool], date] = {
                    executor.submit(self._poll, day): day for day in batch
                }
                wait(futures)
                for future, day in futures.items():
                    result.attempted.append(day)
                    error = future.exception()
                    if error is not None:
                        LOGGER.warning("Backfill for %s could not be stored: %s", day, error)
                        result.failed.append(day)
                    elif future.result():
                        result.stored += 1
                    else:
                        result.errored += 1
                completed += batch_size
                index += batch_size
                LOGGER.info("Backfill progress: %d/%d", completed, total)
                if completed < total and index < len(pending) and seconds_per_batch > 0:
                    self._sleep(seconds_per_batch)

        result.attempted.sort()
        result.failed.sort()
        return result


def resume_date(storage: ForexStorage) -> date | None:
    """Return the day after the newest stored historical snapshot."""

    newest = storage.get_historical_list(1, 1, Order.DESC)
    if not newest.items:
        return None
    return newest.items[0].data.date + timedelta(days=1)


def seed_historical(
    source: RateSource,
    storage: ForexStorage,
    from_date: date | None = None,
    to_date: date | None = None,
    *,
    quota: int,
    rate_limit: int = 4,
    seconds_per_batch: float = 1,
    base: Currency = Currency.USD,
    incremental: bool = True,
    dry_run: bool = False,
    sleep: Callable[[float], None] = time.sleep,
) -> BackfillResult:
    """Backfill historical rates, resuming after the newest stored day by default."""

    end = to_date or utc_today() - timedelta(days=1)
    start = from_date
    if start is None and incremental:
        start = resume_date(storage)
    start = start or DEFAULT_START
    if start > end:
        LOGGER.info("Historical rates are up to date through %s", end)
        return BackfillResult()
    if dry_run:
        LOGGER.info("Dry-run enabled; skipping backfill for %s -> %s", start, end)
        return BackfillResult()
    coordinator = BackfillCoordinator(source, storage, base=base, sleep=sleep)
    return coordinator.run(
        start,
        end,
        quota_remaining=quota,
        rate_limit=rate_limit,
        seconds_per_batch=seconds_per_batch,
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--from", dest="start", help="First date to fetch (YYYY-MM-DD)")
    parser.add_argument("--to", dest="end", help="Last date to fetch (YYYY-MM-DD), defaults to yesterday")
    parser.add_argument(
        "--storage",
        dest="storage_url",
        help="Storage URL (file:///path or any SQLAlchemy URL); defaults to PFM_DATA_PATH",
    )
    parser.add_argument("--quota", type=int, help="Requests left with the provider; queried when omitted")
    parser.add_argument("--rate-limit", type=int, help="Concurrent requests per batch")
    parser.add_argument("--seconds-per-batch", type=float, help="Pause between batches")
    parser.add_argument(
        "--full",
        dest="incremental",
        action="store_false",
        help="Ignore stored history when --from is omitted",
    )
    parser.add_argument("--dry-run", action="store_true", help="Only log what would be fetched")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    from pfm_forex import PfmForex
    from pfm_forex.config import Settings
    from pfm_forex.sources.open_exchange import OpenExchangeRatesSource

    args = parse_args(argv)
    settings = Settings()
    if not settings.open_exchange_api_key:
        raise SystemExit("PFM_OPEN_EXCHANGE_API_KEY must be set to backfill rates")
    source = OpenExchangeRatesSource(settings.open_exchange_api_key, timeout=settings.http_timeout)
    forex = PfmForex(args.storage_url, settings=settings)
    try:
        quota = args.quota if args.quota is not None else source.status()
        result = forex.backfill(
            source,
            parse_date(args.start) if args.start else None,
            parse_date(args.end) if args.end else None,
            quota=quota,
            rate_limit=args.rate_limit,
            seconds_per_batch=args.seconds_per_batch,
            incremental=args.incremental,
            dry_run=args.dry_run,
        )
    finally:
        forex.close()
    LOGGER.info(
        "Backfill finished: %d attempted, %d stored, %d error snapshots, %d failed",
        result.total,
        result.stored,
        result.errored,
        len(result.failed),
    )


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    main()
