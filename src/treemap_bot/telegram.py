from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

import aiohttp
import requests

from .config import INDEX_NAME, Settings
from .errors import DeliveryError
from .logging_utils import get_logger
from .models import RunStatistics

log = get_logger("telegram")

API_BASE = "https://api.telegram.org"

_CONTENT_TYPES = {
    "svg": "image/svg+xml",
    "png": "image/png",
}


def format_summary(
    stats: RunStatistics,
    now: Optional[datetime] = None,
    index_name: str = INDEX_NAME,
) -> str:
    """Build the caption sent alongside the treemap."""
    now = now or datetime.now()
    best = stats.best_performer
    worst = stats.worst_performer
    lines = [
        f"📊 {index_name} Daily Return Summary ({now.strftime('%Y-%m-%d %H:%M:%S')})",
        f"• Average return: {stats.average_return:.2f}%",
        f"• Gainers: {stats.gainers}",
        f"• Losers: {stats.losers}",
        f"• Best performer: {best.symbol} ({best.daily_return:.2f}%)",
        f"• Worst performer: {worst.symbol} ({worst.daily_return:.2f}%)",
        f"• Stocks processed: {stats.total}",
    ]
    return "\n".join(lines)


def format_error(exc: BaseException) -> str:
    return f"Error in update: {exc}"


def _mask_token(token: str) -> str:
    if not token:
        return "missing"
    return f"***{token[-4:]}" if len(token) > 4 else "***"


def validate_bot_token(token: str, timeout: float = 10.0) -> Tuple[bool, Optional[int]]:
    """Probe ``getMe`` once and return ``(ok, status_code)``.

    Used only for the boot log line; failures never stop the bot.
    """
    try:
        r = requests.get(f"{API_BASE}/bot{token}/getMe", timeout=timeout)
    except requests.RequestException as e:
        log.warning("telegram_probe_failed err=%s", e.__class__.__name__)
        return False, None
    ok = 200 <= r.status_code < 300
    if ok:
        try:
            ok = bool(r.json().get("ok"))
        except ValueError:
            ok = False
    return ok, r.status_code


class TelegramNotifier:
    """Sends documents and text messages to one fixed Telegram chat."""

    def __init__(
        self,
        token: str,
        chat_id: str,
        *,
        timeout_s: float = 30.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.token = token
        self.chat_id = chat_id
        self.timeout_s = timeout_s
        self.session = session
        self._owns_session = session is None

    @classmethod
    def from_settings(cls, settings: Settings) -> "TelegramNotifier":
        return cls(settings.telegram_token, settings.chat_id)

    async def __aenter__(self) -> "TelegramNotifier":
        if self.session is None:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_s)
            )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.session is not None and self._owns_session:
            await self.session.close()
            self.session = None

    def _url(self, method: str) -> str:
        return f"{API_BASE}/bot{self.token}/{method}"

    async def _post(self, method: str, **kwargs: Any) -> Dict[str, Any]:
        if self.session is None:
            raise RuntimeError("Session not initialized - use async with")
        try:
            async with self.session.post(self._url(method), **kwargs) as resp:
                try:
                    body = await resp.json(content_type=None)
                except ValueError:
                    body = None
                status = resp.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise DeliveryError(f"telegram {method} failed: {e}") from e

        if not 200 <= status < 300 or not isinstance(body, dict) or not body.get("ok"):
            desc = body.get("description") if isinstance(body, dict) else None
            log.error(
                "telegram_error method=%s status=%d desc=%s token=%s",
                method,
                status,
                desc,
                _mask_token(self.token),
            )
            raise DeliveryError(
                f"telegram {method} failed status={status}: {desc or 'no description'}"
            )
        return body

    async def send_document(
        self, content: bytes, filename: str, caption: str
    ) -> Dict[str, Any]:
        """Upload ``content`` as a document with ``caption``."""
        ext = filename.rsplit(".", 1)[-1].lower()
        form = aiohttp.FormData()
        form.add_field("chat_id", str(self.chat_id))
        form.add_field("caption", caption)
        form.add_field(
            "document",
            content,
            filename=filename,
            content_type=_CONTENT_TYPES.get(ext, "application/octet-stream"),
        )
        body = await self._post("sendDocument", data=form)
        log.info("telegram_document_sent filename=%s bytes=%d", filename, len(content))
        return body

    async def send_message(self, text: str) -> Dict[str, Any]:
        body = await self._post(
            "sendMessage", json={"chat_id": self.chat_id, "text": text}
        )
        log.info("telegram_message_sent chars=%d", len(text))
        return body
