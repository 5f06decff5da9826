"""Exception hierarchy shared by the clients, the aggregator and the valuator."""

from __future__ import annotations


class LedgerLensError(Exception):
    """Base class for every error raised by ledger-lens."""


class ValidationError(LedgerLensError, ValueError):
    """Raised when caller input is malformed. Never retried."""


class InvalidAddressError(ValidationError):
    """Address is not a valid 20-byte hex address or fails its checksum."""


class InvalidBlockRangeError(ValidationError):
    """Block numbers are negative, inverted, or beyond the chain head."""


class InvalidDateError(ValidationError):
    """Date cannot be parsed, predates genesis, or lies in the future."""


class FetchError(LedgerLensError):
    """A remote dependency could not produce a usable answer."""


class TransportError(FetchError):
    """Timeout or connection failure. The caller may re-invoke."""


class RemoteAPIError(FetchError):
    """The remote service answered with a failure response."""

    PAGE_WINDOW_MARKERS = ("result window is too large", "pageno x offset")

    def __init__(self, message: str, *, source: str = "remote"):
        super().__init__(message)
        self.message = message
        self.source = source

    @property
    def is_page_window_error(self) -> bool:
        """True when the indexer refused a page beyond its pagination window."""
        lowered = self.message.lower()
        return any(marker in lowered for marker in self.PAGE_WINDOW_MARKERS)


class AggregationError(LedgerLensError):
    """Transaction aggregation failed before any page was gathered."""

    def __init__(self, message: str, *, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause


class ValuationError(LedgerLensError):
    """No balance could be fetched for the requested block."""
