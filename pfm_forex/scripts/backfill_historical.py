"""CLI entry point for backfilling historical rates."""

from __future__ import annotations

from pfm_forex.seeds.backfill import main

if __name__ == "__main__":  # pragma: no cover - thin wrapper
    main()
