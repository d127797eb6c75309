"""Storage backends for rate snapshots."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

__all__ = ["FileForexStorage", "SQLForexStorage"]

if TYPE_CHECKING:  # pragma: no cover - import only for static analyzers
    from pfm_forex.storage.fs_storage import FileForexStorage as FileForexStorage
    from pfm_forex.storage.sql_storage import SQLForexStorage as SQLForexStorage


def __getattr__(name: str) -> Any:
    """Import backends lazily so SQLAlchemy only loads when it is used."""

    if name == "FileForexStorage":
        from pfm_forex.storage.fs_storage import FileForexStorage as _storage

        return _storage
    if name == "SQLForexStorage":
        from pfm_forex.storage.sql_storage import SQLForexStorage as _storage

        return _storage
    raise AttributeError(f"module 'pfm_forex.storage' has no attribute {name}")
