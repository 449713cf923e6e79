"""Mock Finnhub client for testing.

Serves canned constituents, quotes and candle windows without network
access and records every call it receives.
"""

import asyncio
from typing import Any, Dict, Iterable, List, Optional, Tuple

import aiohttp


class MockFinnhubClient:
    """Stand-in for ``FinnhubClient`` with the same async methods."""

    def __init__(
        self,
        constituents: Optional[List[str]] = None,
        quotes: Optional[Dict[str, Dict[str, Any]]] = None,
        candles: Optional[Dict[str, Dict[str, Any]]] = None,
        failing: Iterable[str] = (),
        constituents_payload: Any = None,
        yield_steps: int = 0,
        candle_delays: Optional[Dict[str, float]] = None,
    ):
        self.constituents = constituents or []
        self.constituents_payload = constituents_payload
        self.quotes = quotes or {}
        self.candles = candles or {}
        self.failing = set(failing)
        self.yield_steps = yield_steps
        self.calls: List[Tuple[str, str]] = []
        self.active_quotes = 0
        self.max_active_quotes = 0
        self.candle_delays = candle_delays or {}
        self.pending_candles = 0

    async def __aenter__(self) -> "MockFinnhubClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        return None

    async def get_index_constituents(self, index_symbol: str) -> Any:
        self.calls.append(("constituents", index_symbol))
        if self.constituents_payload is not None:
            return self.constituents_payload
        return {"constituents": list(self.constituents), "symbol": index_symbol}

    async def get_quote(self, symbol: str) -> Dict[str, Any]:
        self.calls.append(("quote", symbol))
        self.active_quotes += 1
        self.max_active_quotes = max(self.max_active_quotes, self.active_quotes)
        try:
            for _ in range(self.yield_steps):
                await asyncio.sleep(0)
            if symbol in self.failing:
                raise aiohttp.ClientConnectionError(f"connection reset for {symbol}")
            return self.quotes.get(symbol, {"c": 101.0, "dp": 1.0})
        finally:
            self.active_quotes -= 1

    async def get_daily_candles(
        self, symbol: str, lookback_days: int = 2, now: Optional[float] = None
    ) -> Dict[str, Any]:
        self.calls.append(("candle", symbol))
        delay = self.candle_delays.get(symbol)
        if delay:
            self.pending_candles += 1
            try:
                await asyncio.sleep(delay)
            finally:
                self.pending_candles -= 1
        return self.candles.get(symbol, {"s": "ok", "c": [100.0, 101.0]})

    def symbols_called(self, kind: str) -> List[str]:
        return [s for k, s in self.calls if k == kind]


class MockTelegramNotifier:
    """Stand-in for ``TelegramNotifier`` that keeps what it was asked to send."""

    def __init__(self, fail_documents: bool = False, fail_messages: bool = False):
        self.documents: List[Tuple[bytes, str, str]] = []
        self.messages: List[str] = []
        self.fail_documents = fail_documents
        self.fail_messages = fail_messages

    async def __aenter__(self) -> "MockTelegramNotifier":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        return None

    async def send_document(self, content: bytes, filename: str, caption: str):
        from treemap_bot.errors import DeliveryError

        if self.fail_documents:
            raise DeliveryError("telegram sendDocument failed status=400: Bad Request")
        self.documents.append((content, filename, caption))
        return {"ok": True}

    async def send_message(self, text: str):
        from treemap_bot.errors import DeliveryError

        if self.fail_messages:
            raise DeliveryError("telegram sendMessage failed status=502: Bad Gateway")
        self.messages.append(text)
        return {"ok": True}
