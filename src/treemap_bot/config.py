import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from .errors import ConfigMissing

# The one index this bot reports on.
INDEX_SYMBOL = "SPX"
INDEX_NAME = "S&P 500"


def _b(env: Mapping[str, str], name: str, default: bool) -> bool:
    return env.get(name, str(default)).strip().lower() in {
        "1",
        "true",
        "yes",
        "y",
        "on",
    }


def _env_first(env: Mapping[str, str], *names: str) -> str:
    for n in names:
        v = env.get(n)
        if v and v.strip():
            return v.strip()
    return ""


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = (env.get(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = (env.get(name) or "").strip()
    if raw == "" or raw.lower() in {"none", "null"} or raw.startswith("#"):
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    # Keys / tokens
    finnhub_api_key: str = ""
    telegram_token: str = ""
    chat_id: str = ""

    # Batching. Finnhub's free tier allows 60 calls/minute and every symbol
    # costs two calls, so 30 symbols per batch is the ceiling.
    batch_size: int = 30
    batch_pause_s: float = 1.0
    candle_lookback_days: int = 2
    finnhub_timeout_s: float = 10.0

    # Scheduling
    run_interval_s: float = 600.0

    # Output
    treemap_format: str = "svg"

    # Logging
    log_level: str = "INFO"
    log_plain: bool = False
    data_dir: Path = Path("data")

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from environment variables (``os.environ`` by default)."""
        env = os.environ if env is None else env
        fmt = (env.get("TREEMAP_FORMAT") or "svg").strip().lower()
        return cls(
            finnhub_api_key=_env_first(env, "FINNHUB_API_KEY"),
            telegram_token=_env_first(env, "TELEGRAM_TOKEN", "TELEGRAM_BOT_TOKEN"),
            chat_id=_env_first(env, "CHAT_ID", "TELEGRAM_CHAT_ID"),
            batch_size=max(1, _int(env, "BATCH_SIZE", cls.batch_size)),
            batch_pause_s=max(0.0, _float(env, "BATCH_PAUSE_SECONDS", cls.batch_pause_s)),
            candle_lookback_days=max(
                1, _int(env, "CANDLE_LOOKBACK_DAYS", cls.candle_lookback_days)
            ),
            finnhub_timeout_s=max(
                1.0, _float(env, "FINNHUB_TIMEOUT_SECS", cls.finnhub_timeout_s)
            ),
            run_interval_s=max(
                1.0, _float(env, "RUN_INTERVAL_SECONDS", cls.run_interval_s)
            ),
            treemap_format=fmt if fmt in {"svg", "png"} else "svg",
            log_level=(env.get("LOG_LEVEL") or "INFO").strip().upper(),
            log_plain=_b(env, "LOG_PLAIN", False),
            data_dir=Path(_env_first(env, "DATA_DIR") or "data"),
        )

    def require(self) -> "Settings":
        """Raise ``ConfigMissing`` if any required credential is blank."""
        missing = [
            name
            for name, value in (
                ("FINNHUB_API_KEY", self.finnhub_api_key),
                ("TELEGRAM_TOKEN", self.telegram_token),
                ("CHAT_ID", self.chat_id),
            )
            if not value
        ]
        if missing:
            raise ConfigMissing(missing)
        return self


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    return Settings.from_env(env).require()
