"""Error taxonomy shared by the forex modules."""

from __future__ import annotations

__all__ = [
    "ForexError",
    "InputError",
    "InternalError",
    "StorageError",
    "UpstreamError",
    "RateUnavailableError",
]


class ForexError(Exception):
    """Base class for every error raised by :mod:`pfm_forex`."""

    def detail(self) -> str:
        """Return the message followed by the chain of causes.

        The text is what gets persisted in the ``error`` field of a failed
        snapshot, so it has to stand on its own without a traceback.
        """

        parts = [str(self) or type(self).__name__]
        cause = self.__cause__
        while cause is not None:
            parts.append(f"Caused by: {cause}")
            cause = cause.__cause__
        return "\n".join(parts)


class InputError(ForexError, ValueError):
    """Malformed caller input such as an unknown currency or amount."""


class InternalError(ForexError, RuntimeError):
    """Server-side failure the caller cannot fix by changing input."""


class StorageError(InternalError):
    """Persistence failed: missing files, unreadable directories, bad JSON."""


class UpstreamError(InternalError):
    """The remote rate provider could not be reached or answered badly."""


class RateUnavailableError(InternalError):
    """No usable rate exists for the requested conversion."""
