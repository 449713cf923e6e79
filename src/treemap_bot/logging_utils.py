# src/treemap_bot/logging_utils.py
import json
import logging
import logging.handlers
import sys
import time
from typing import Any, Dict, Optional

from .config import Settings

# Keys commonly present on a LogRecord that we don't want to echo as "extra"
_EXCLUDE_KEYS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
}

_MAX_BYTES = 10 * 1024 * 1024
_BACKUP_COUNT = 7


def _jsonify(value: Any) -> Any:
    """Return a JSON-serializable representation of `value`."""
    try:
        json.dumps(value)
        return value
    except (TypeError, ValueError):
        return str(value)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        base: Dict[str, Any] = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(record.created)),
            "level": record.levelname,
            "name": record.name,
            "msg": record.getMessage(),
        }
        # Merge any "extra" attributes that were added to the record
        for k, v in record.__dict__.items():
            if k not in _EXCLUDE_KEYS and k not in base and not k.startswith("_"):
                base[k] = _jsonify(v)
        if record.exc_info:
            base["exc"] = self.formatException(record.exc_info)
        return json.dumps(base, ensure_ascii=False)


class PlainFormatter(logging.Formatter):
    """Human-readable single-line log formatter with colourised levels."""

    LEVEL_COLOURS = {
        "DEBUG": "\033[36m",  # cyan
        "INFO": "\033[32m",  # green
        "WARNING": "\033[33m",  # yellow
        "ERROR": "\033[31m",  # red
        "CRITICAL": "\033[35m",  # magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        ts = time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(record.created))
        level = record.levelname
        extras: list[str] = []
        for k, v in record.__dict__.items():
            if k not in _EXCLUDE_KEYS and not k.startswith("_"):
                extras.append(f"{k}={_jsonify(v)}")
        extra_str = " " + " ".join(extras) if extras else ""
        colour = self.LEVEL_COLOURS.get(level, "")
        reset = self.RESET if colour else ""
        line = f"{ts} {colour}{level:<8}{reset} {record.name}: {record.getMessage()}{extra_str}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(settings: Optional[Settings] = None, level: str = "INFO") -> None:
    """Configure logging for the treemap bot.

    Console output is JSON lines unless ``settings.log_plain`` is set, in
    which case a colourised single-line format is used. Independently of that,
    JSON logs are written to rotating files under ``<data_dir>/logs``:
    ``bot.jsonl`` for everything and ``errors.log`` for WARNING and above.
    """
    settings = settings or Settings()
    level_upper = (settings.log_level or level or "INFO").upper()

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level_upper)

    try:
        log_dir = settings.data_dir / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_dir / "bot.jsonl",
            maxBytes=_MAX_BYTES,
            backupCount=_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setFormatter(JsonFormatter())
        root.addHandler(file_handler)

        error_handler = logging.handlers.RotatingFileHandler(
            log_dir / "errors.log",
            maxBytes=_MAX_BYTES,
            backupCount=_BACKUP_COUNT,
            encoding="utf-8",
        )
        error_handler.setLevel(logging.WARNING)
        error_handler.setFormatter(JsonFormatter())
        root.addHandler(error_handler)
    except OSError:
        # Unwritable data dir: console logging only
        pass

    stream_handler = logging.StreamHandler(sys.stdout)
    if settings.log_plain:
        stream_handler.setFormatter(PlainFormatter())
    else:
        stream_handler.setFormatter(JsonFormatter())
    root.addHandler(stream_handler)

    # matplotlib font discovery is noisy at DEBUG
    logging.getLogger("matplotlib").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
