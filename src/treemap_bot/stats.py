from __future__ import annotations

from typing import Sequence

from .models import RunStatistics, StockRecord


def compute_statistics(records: Sequence[StockRecord]) -> RunStatistics:
    """Reduce a non-empty record list to the run summary.

    Ties for best/worst performer go to the record seen first.
    """
    if not records:
        raise ValueError("compute_statistics requires at least one record")

    best = worst = records[0]
    total_return = 0.0
    gainers = losers = 0
    for rec in records:
        total_return += rec.daily_return
        if rec.daily_return > 0:
            gainers += 1
        elif rec.daily_return < 0:
            losers += 1
        # strict comparisons keep the first occurrence on ties
        if rec.daily_return > best.daily_return:
            best = rec
        if rec.daily_return < worst.daily_return:
            worst = rec

    return RunStatistics(
        average_return=total_return / len(records),
        gainers=gainers,
        losers=losers,
        best_performer=best,
        worst_performer=worst,
        total=len(records),
    )
