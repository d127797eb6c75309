"""Remote rate sources."""

from __future__ import annotations

from pfm_forex.sources.open_exchange import OpenExchangeRatesSource

__all__ = ["OpenExchangeRatesSource"]
