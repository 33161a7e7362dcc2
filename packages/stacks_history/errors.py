"""Error taxonomy for ``stacks_history``.

Every failure in the ingestion/annotation core maps onto one of these types.
None of them is fatal to the process: reads degrade to safe defaults, list
fetches and writes surface a message to the user.
"""

from __future__ import annotations


class StacksHistoryError(Exception):
    """Base class for all package errors."""


class UpstreamError(StacksHistoryError):
    """The ledger API answered with a non-2xx status or an unusable body."""

    def __init__(self, message: str, *, status: int | None = None, url: str | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.url = url


class DecodeAmbiguity(StacksHistoryError):
    """A contract-call result did not match any known decoding shape.

    Only raised inside the category bridge; callers see ``None`` instead.
    """


class ConfigurationError(StacksHistoryError):
    """No (or an inconsistent) category contract is configured for the network."""


class WalletCancelled(StacksHistoryError):
    """The user declined the wallet signing prompt."""


class ValidationError(StacksHistoryError, ValueError):
    """Malformed address, transaction id, or category label."""


class LoadInProgressError(StacksHistoryError):
    """A ``load_more`` is already running on this store."""


__all__ = [
    "StacksHistoryError",
    "UpstreamError",
    "DecodeAmbiguity",
    "ConfigurationError",
    "WalletCancelled",
    "ValidationError",
    "LoadInProgressError",
]
