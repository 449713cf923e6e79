"""Exceptions raised by the treemap bot."""

from __future__ import annotations

from typing import Iterable


class TreemapBotError(Exception):
    """Base exception for all treemap bot errors"""
    pass


class ConfigMissing(TreemapBotError):
    """Raised at startup when required configuration is absent"""

    def __init__(self, names: Iterable[str]):
        self.names = list(names)
        super().__init__(
            "Required environment variables are not set: " + ", ".join(self.names)
        )


class DataUnavailable(TreemapBotError):
    """Raised when the index constituent list is malformed or empty"""
    pass


class NoDataAvailable(TreemapBotError):
    """Raised when no symbol produced a usable record"""
    pass


class PerSymbolFetchError(TreemapBotError):
    """Raised for a single symbol's fetch; never escapes the aggregator"""

    def __init__(self, symbol: str, cause: BaseException):
        self.symbol = symbol
        self.cause = cause
        super().__init__(f"{symbol}: {cause.__class__.__name__}: {cause}")


class DeliveryError(TreemapBotError):
    """Raised when a Telegram API call fails"""
    pass


class FinnhubError(TreemapBotError):
    """Raised when Finnhub answers with a non-2xx status or an undecodable body"""

    def __init__(self, endpoint: str, status: int | None, detail: str = ""):
        self.endpoint = endpoint
        self.status = status
        msg = f"finnhub request failed endpoint={endpoint} status={status}"
        if detail:
            msg += f" detail={detail}"
        super().__init__(msg)
