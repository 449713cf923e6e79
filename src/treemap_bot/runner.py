# -*- coding: utf-8 -*-
"""Treemap Bot runner.

Runs the update once at startup and then on a fixed interval. Each update
resolves the index constituents, collects daily returns in rate-limited
batches, renders the treemap and sends it with a summary caption to the
configured Telegram chat. Any failure inside an update is reported to the
same chat as a plain-text message; the process keeps running.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import signal
import sys
import time
from datetime import datetime
from typing import Awaitable, Callable, List, Mapping, Optional

from .aggregator import collect_stock_records
from .config import INDEX_NAME, INDEX_SYMBOL, Settings, load_settings
from .constituents import resolve_constituents
from .errors import ConfigMissing
from .finnhub_client import FinnhubClient
from .logging_utils import get_logger, setup_logging
from .stats import compute_statistics
from .telegram import (
    TelegramNotifier,
    format_error,
    format_summary,
    validate_bot_token,
)
from .treemap import render_treemap

log = get_logger("runner")

RunFn = Callable[[Settings], Awaitable[bool]]


def _load_env() -> None:
    """Load .env early so config is available when settings are built."""
    from dotenv import load_dotenv

    # If DOTENV_FILE is set, load that; otherwise default to .env
    env_file = os.getenv("DOTENV_FILE")
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()


async def run_once(settings: Settings) -> bool:
    """Run one full update and deliver it.

    Every exception is caught here: it is logged and reported to the chat as
    text. If that report fails too it is only logged. Returns ``True`` when
    the treemap was delivered.
    """
    started = datetime.now()
    t0 = time.time()
    log.info("update_start ts=%s", started.isoformat(timespec="seconds"))

    async with TelegramNotifier.from_settings(settings) as notifier:
        try:
            async with FinnhubClient.from_settings(settings) as client:
                symbols = await resolve_constituents(client, INDEX_SYMBOL)
                records = await collect_stock_records(
                    client,
                    symbols,
                    batch_size=settings.batch_size,
                    pause_s=settings.batch_pause_s,
                    lookback_days=settings.candle_lookback_days,
                )

            image = render_treemap(records, fmt=settings.treemap_format)
            stats = compute_statistics(records)
            caption = format_summary(stats, now=started, index_name=INDEX_NAME)

            await notifier.send_document(
                image, f"treemap.{settings.treemap_format}", caption
            )
            log.info(
                "update_sent symbols=%d records=%d took=%.2fs",
                len(symbols),
                len(records),
                time.time() - t0,
            )
            return True
        except Exception as e:
            log.error("update_failed err=%s", str(e), exc_info=True)
            try:
                await notifier.send_message(format_error(e))
            except Exception as report_err:
                log.error("error_report_failed err=%s", str(report_err))
            return False


class Scheduler:
    """Fire ``run`` immediately and then every ``interval_s`` seconds.

    The period is fixed and does not depend on how long a run takes. A tick
    that arrives while the previous run is still in flight is skipped.
    """

    def __init__(
        self,
        settings: Settings,
        interval_s: Optional[float] = None,
        run: RunFn = run_once,
    ):
        self.settings = settings
        self.interval_s = interval_s if interval_s is not None else settings.run_interval_s
        self._run = run
        self._current: Optional[asyncio.Task] = None
        self._stop = asyncio.Event()
        self.runs_started = 0
        self.ticks_skipped = 0

    @property
    def in_flight(self) -> bool:
        return self._current is not None and not self._current.done()

    def tick(self) -> Optional[asyncio.Task]:
        """Start a run unless one is already in flight."""
        if self.in_flight:
            self.ticks_skipped += 1
            log.warning("run_skipped reason=in_flight skipped=%d", self.ticks_skipped)
            return None
        self.runs_started += 1
        self._current = asyncio.create_task(
            self._run(self.settings), name=f"update-{self.runs_started}"
        )
        return self._current

    def stop(self) -> None:
        self._stop.set()

    async def run_forever(self) -> None:
        loop = asyncio.get_running_loop()
        next_at = loop.time()
        log.info("scheduler_started interval=%ss", self.interval_s)
        while not self._stop.is_set():
            self.tick()
            next_at += self.interval_s
            try:
                await asyncio.wait_for(
                    self._stop.wait(), timeout=max(0.0, next_at - loop.time())
                )
            except asyncio.TimeoutError:
                pass

        if self.in_flight:
            log.info("scheduler_waiting_for_run")
            await self._current
        log.info(
            "scheduler_stopped runs=%d skipped=%d", self.runs_started, self.ticks_skipped
        )


async def _serve(settings: Settings, interval_s: float) -> None:
    scheduler = Scheduler(settings, interval_s)
    loop = asyncio.get_running_loop()

    def _on_signal(sig: signal.Signals) -> None:
        log.warning("shutdown_signal_received signal=%s", sig.name)
        scheduler.stop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _on_signal, sig)
        except (NotImplementedError, RuntimeError):
            pass  # Windows quirks shouldn't crash startup

    await scheduler.run_forever()


def runner_main(
    once: bool = False,
    loop: bool = False,
    sleep_s: float | None = None,
    env: Mapping[str, str] | None = None,
) -> int:
    try:
        settings = load_settings(env)
    except ConfigMissing as e:
        sys.stderr.write(f"\n[Startup config check] {e}\n\n")
        return 2

    setup_logging(settings)

    probe_ok, probe_status = validate_bot_token(settings.telegram_token)
    interval = sleep_s if sleep_s is not None else settings.run_interval_s
    log.info(
        "boot_start index=%s mode=%s interval=%ss batch_size=%d pause=%ss format=%s telegram=%s",
        INDEX_SYMBOL,
        "once" if once else "loop",
        interval,
        settings.batch_size,
        settings.batch_pause_s,
        settings.treemap_format,
        f"ok(status={probe_status})" if probe_ok else f"invalid(status={probe_status})",
    )

    if once:
        ok = asyncio.run(run_once(settings))
        log.info("boot_end ok=%s", ok)
        return 0 if ok else 1

    asyncio.run(_serve(settings, interval))
    log.info("boot_end")
    return 0


def main(
    *,
    once: bool = False,
    loop: bool = False,
    sleep: float | None = None,
    argv: List[str] | None = None,
) -> int:
    """
    Entry point for the Treemap Bot runner.

    Supports programmatic invocation via keyword args (``once``, ``loop``,
    ``sleep``) or command-line invocation via ``argv``. Without ``--once``
    the bot runs continuously.
    """
    _load_env()
    if once or loop or sleep is not None:
        return runner_main(once=once, loop=loop, sleep_s=sleep)
    ap = argparse.ArgumentParser(prog="treemap-bot")
    ap.add_argument("--once", action="store_true", help="Run a single update and exit")
    ap.add_argument("--loop", action="store_true", help="Run continuously (default)")
    ap.add_argument(
        "--sleep",
        type=float,
        default=None,
        help="Seconds between updates when looping (default: RUN_INTERVAL_SECONDS)",
    )
    args = ap.parse_args(argv)
    return runner_main(once=args.once, loop=args.loop, sleep_s=args.sleep)


if __name__ == "__main__":
    sys.exit(main())
