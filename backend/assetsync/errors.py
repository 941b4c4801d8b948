from __future__ import annotations


class AssetSyncError(Exception):
    """Base class for failures surfaced by the asset pipeline."""

    def __init__(self, message: str, symbol: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.symbol = symbol


class NotFoundError(AssetSyncError):
    """The symbol has no profile data upstream. Permanent; never retried."""


class QuotaExceededError(AssetSyncError):
    """The daily upstream budget is spent and no usable cache exists."""


class UpstreamError(AssetSyncError):
    def __init__(
        self,
        message: str,
        symbol: str | None = None,
        endpoint: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, symbol)
        self.endpoint = endpoint
        self.status_code = status_code


class UpstreamTimeoutError(UpstreamError):
    pass


class ValuationUnavailableError(AssetSyncError):
    """No intrinsic-value candidate could be determined."""
