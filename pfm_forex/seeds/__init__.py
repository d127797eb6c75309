"""Historical seeding utilities for :mod:`pfm_forex`."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

__all__ = [
    "seed_historical",
    "BackfillCoordinator",
    "BackfillResult",
    "import_crypto_rates",
    "read_crypto_prices",
]

if TYPE_CHECKING:  # pragma: no cover - import only for static analyzers
    from pfm_forex.seeds.backfill import BackfillCoordinator as BackfillCoordinator
    from pfm_forex.seeds.backfill import BackfillResult as BackfillResult
    from pfm_forex.seeds.backfill import seed_historical as seed_historical
    from pfm_forex.seeds.crypto_csv import import_crypto_rates as import_crypto_rates
    from pfm_forex.seeds.crypto_csv import read_crypto_prices as read_crypto_prices


def __getattr__(name: str) -> Any:
    """Lazily expose seed helpers so pandas only loads for the CSV import."""

    if name in {"seed_historical", "BackfillCoordinator", "BackfillResult"}:
        from pfm_forex.seeds import backfill as _backfill

        return getattr(_backfill, name)
    if name in {"import_crypto_rates", "read_crypto_prices"}:
        from pfm_forex.seeds import crypto_csv as _crypto_csv

        return getattr(_crypto_csv, name)
    raise AttributeError(f"module 'pfm_forex.seeds' has no attribute {name}")
