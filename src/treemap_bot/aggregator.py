"""Batched collection of per-symbol daily returns.

Finnhub's free tier allows 60 calls per minute and every symbol costs two
calls (quote + candle window), so symbols are processed in fixed-size
batches. All symbols of a batch are fetched concurrently; batches run one
after another with a fixed pause in between.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Iterator, List, Optional, Sequence

from .errors import NoDataAvailable, PerSymbolFetchError
from .finnhub_client import FinnhubClient
from .logging_utils import get_logger
from .models import StockRecord

log = get_logger("aggregator")

DEFAULT_BATCH_SIZE = 30
DEFAULT_PAUSE_S = 1.0


def batched(symbols: Sequence[str], size: int) -> Iterator[List[str]]:
    """Yield consecutive slices of ``symbols`` holding at most ``size`` items."""
    if size < 1:
        raise ValueError("batch size must be >= 1")
    for i in range(0, len(symbols), size):
        yield list(symbols[i : i + size])


def build_stock_record(
    symbol: str, quote: Dict[str, Any], candles: Dict[str, Any]
) -> Optional[StockRecord]:
    """Derive a record from raw quote and candle payloads, or ``None`` to drop it."""
    price_now = quote.get("c") if isinstance(quote, dict) else None
    if not price_now or not isinstance(candles, dict) or candles.get("s") != "ok":
        log.info("no_data_available symbol=%s", symbol)
        return None

    closes = candles.get("c") or []
    if len(closes) < 2:
        log.info("insufficient_candles symbol=%s count=%d", symbol, len(closes))
        return None

    last_close = float(closes[-1])
    prev_close = float(closes[-2])
    if prev_close == 0:
        log.info("zero_previous_close symbol=%s", symbol)
        return None

    daily_return = (last_close - prev_close) / prev_close * 100

    # Prefer the provider's percent change; fall back to the derived return
    # only when the field is absent.
    provider_change = quote.get("dp")
    change = float(provider_change) if provider_change is not None else daily_return

    return StockRecord(
        symbol=symbol,
        daily_return=daily_return,
        price=last_close,
        change=change,
    )


async def fetch_stock_record(
    client: FinnhubClient, symbol: str, *, lookback_days: int = 2
) -> Optional[StockRecord]:
    """Fetch quote and candles concurrently and build the symbol's record.

    Both calls settle before this returns, even when one of them fails.
    Failures surface as ``PerSymbolFetchError``, are logged and turned into
    ``None`` so one bad symbol never aborts its batch.
    """
    try:
        results = await asyncio.gather(
            client.get_quote(symbol),
            client.get_daily_candles(symbol, lookback_days=lookback_days),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, Exception):
                raise PerSymbolFetchError(symbol, result) from result
            if isinstance(result, BaseException):
                raise result
        quote, candles = results
        try:
            return build_stock_record(symbol, quote, candles)
        except (TypeError, ValueError) as e:
            raise PerSymbolFetchError(symbol, e) from e
    except PerSymbolFetchError as err:
        log.warning("symbol_fetch_failed symbol=%s err=%s", err.symbol, str(err))
        return None


async def collect_stock_records(
    client: FinnhubClient,
    symbols: Sequence[str],
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
    pause_s: float = DEFAULT_PAUSE_S,
    lookback_days: int = 2,
) -> List[StockRecord]:
    """Collect records for ``symbols`` batch by batch.

    Returns the non-null records in batch-then-symbol order. Raises
    ``NoDataAvailable`` if no symbol produced a record.
    """
    total = len(symbols)
    n_batches = (total + batch_size - 1) // batch_size
    records: List[StockRecord] = []
    processed = 0

    for index, batch in enumerate(batched(symbols, batch_size), start=1):
        log.info("batch_start batch=%d/%d size=%d", index, n_batches, len(batch))

        results = await asyncio.gather(
            *(fetch_stock_record(client, s, lookback_days=lookback_days) for s in batch),
            return_exceptions=True,
        )
        for symbol, result in zip(batch, results):
            if isinstance(result, BaseException):
                log.warning("symbol_task_failed symbol=%s err=%s", symbol, str(result))
                continue
            if result is not None:
                records.append(result)

        processed += len(batch)
        log.info(
            "batch_done batch=%d/%d processed=%d/%d records=%d",
            index,
            n_batches,
            processed,
            total,
            len(records),
        )

        if index < n_batches:
            log.debug("rate_limit_pause seconds=%.2f", pause_s)
            await asyncio.sleep(pause_s)

    if not records:
        raise NoDataAvailable("No stock data available")
    return records
