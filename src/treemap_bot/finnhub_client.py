"""Async Finnhub API client for index constituents, quotes and daily candles.

Only the three read endpoints the bot needs are wrapped:

- Index constituents (``/index/constituents``)
- Latest quote (``/quote``)
- Daily candle window (``/stock/candle`` with ``resolution=D``)

API Documentation: https://finnhub.io/docs/api
Free Tier: 60 API calls/minute
"""

from __future__ import annotations

import time
from typing import Any, Dict, Optional

import aiohttp

from .config import Settings
from .errors import FinnhubError
from .logging_utils import get_logger

log = get_logger("finnhub_client")

_DAY_SECONDS = 24 * 60 * 60


class FinnhubClient:
    """Authenticated Finnhub client sharing one pooled ``aiohttp`` session.

    Use as an async context manager::

        async with FinnhubClient.from_settings(settings) as client:
            quote = await client.get_quote("AAPL")
    """

    BASE_URL = "https://finnhub.io/api/v1"

    def __init__(
        self,
        api_key: str,
        *,
        timeout_s: float = 10.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        if not api_key:
            raise ValueError("Finnhub API key required (set FINNHUB_API_KEY env var)")
        self.api_key = api_key
        self.timeout_s = timeout_s
        self.session = session
        self._owns_session = session is None

    @classmethod
    def from_settings(cls, settings: Settings) -> "FinnhubClient":
        return cls(settings.finnhub_api_key, timeout_s=settings.finnhub_timeout_s)

    async def __aenter__(self) -> "FinnhubClient":
        if self.session is None:
            self.session = aiohttp.ClientSession(
                headers={"X-Finnhub-Token": self.api_key},
                timeout=aiohttp.ClientTimeout(total=self.timeout_s),
            )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.session is not None and self._owns_session:
            await self.session.close()
            self.session = None

    async def _request(self, endpoint: str, params: Dict[str, Any]) -> Any:
        """Make an authenticated GET and return the decoded JSON body.

        Parameters
        ----------
        endpoint : str
            API endpoint relative to ``BASE_URL`` (e.g. "quote", "stock/candle")
        params : dict
            Query parameters

        Raises
        ------
        FinnhubError
            On a non-2xx status or a body that is not JSON.
        aiohttp.ClientError, asyncio.TimeoutError
            Transport failures are not retried and propagate unchanged.
        """
        if self.session is None:
            raise RuntimeError("Session not initialized - use async with")

        log.debug("finnhub_request endpoint=%s params=%s", endpoint, params)
        url = f"{self.BASE_URL}/{endpoint}"
        async with self.session.get(url, params=params) as resp:
            if resp.status == 429:
                log.warning("finnhub_rate_limit_exceeded endpoint=%s", endpoint)
            if not 200 <= resp.status < 300:
                raise FinnhubError(endpoint, resp.status)
            try:
                return await resp.json(content_type=None)
            except ValueError as e:
                raise FinnhubError(endpoint, resp.status, f"invalid json: {e}") from e

    async def get_index_constituents(self, index_symbol: str) -> Dict[str, Any]:
        """Get the constituent list of a market index.

        Returns
        -------
        dict
            Payload with keys: constituents (list of symbols), symbol
        """
        return await self._request("index/constituents", {"symbol": index_symbol})

    async def get_quote(self, symbol: str) -> Dict[str, Any]:
        """Get the latest quote.

        Returns
        -------
        dict
            Quote with keys: c (current price), d (change), dp (percent change),
            h (high), l (low), o (open), pc (previous close), t (timestamp)
        """
        return await self._request("quote", {"symbol": symbol})

    async def get_daily_candles(
        self, symbol: str, lookback_days: int = 2, now: Optional[float] = None
    ) -> Dict[str, Any]:
        """Get daily candles covering the last ``lookback_days`` days.

        Returns
        -------
        dict
            Candles with keys: s (status, "ok" or "no_data"), c (closes),
            o, h, l, v, t (parallel lists, oldest first)
        """
        now = time.time() if now is None else now
        to_ts = int(now)
        from_ts = int(now - lookback_days * _DAY_SECONDS)
        return await self._request(
            "stock/candle",
            {"symbol": symbol, "resolution": "D", "from": from_ts, "to": to_ts},
        )
