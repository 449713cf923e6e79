from __future__ import annotations

from typing import List

from .config import INDEX_SYMBOL
from .errors import DataUnavailable
from .finnhub_client import FinnhubClient
from .logging_utils import get_logger

log = get_logger("constituents")


async def resolve_constituents(
    client: FinnhubClient, index_symbol: str = INDEX_SYMBOL
) -> List[str]:
    """Return the ordered, de-duplicated symbols of ``index_symbol``.

    Raises ``DataUnavailable`` when the payload is malformed or empty.
    Transport errors are not retried and propagate to the caller.
    """
    try:
        data = await client.get_index_constituents(index_symbol)
    except Exception as e:
        log.error("constituents_fetch_failed index=%s err=%s", index_symbol, str(e))
        raise

    raw = data.get("constituents") if isinstance(data, dict) else None
    if not isinstance(raw, list):
        raise DataUnavailable(f"Failed to fetch {index_symbol} constituents")

    symbols: List[str] = []
    seen = set()
    for item in raw:
        if not isinstance(item, str):
            continue
        sym = item.strip().upper()
        if sym and sym not in seen:
            seen.add(sym)
            symbols.append(sym)

    if not symbols:
        raise DataUnavailable(f"No constituents returned for {index_symbol}")

    log.info("constituents_found index=%s count=%d", index_symbol, len(symbols))
    return symbols
