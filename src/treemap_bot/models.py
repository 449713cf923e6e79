from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class StockRecord:
    """One symbol's daily move.

    ``daily_return`` and ``change`` are percentages. ``change`` is the
    provider's own percent-change figure when it reported one, otherwise it
    equals ``daily_return``.
    """

    symbol: str
    daily_return: float
    price: float
    change: float


@dataclass(frozen=True)
class RunStatistics:
    average_return: float
    gainers: int
    losers: int
    best_performer: StockRecord
    worst_performer: StockRecord
    total: int


@dataclass(frozen=True)
class TreemapNode:
    """A laid-out treemap cell bound to one record."""

    record: StockRecord
    x0: float
    y0: float
    x1: float
    y1: float

    @property
    def value(self) -> float:
        return abs(self.record.daily_return)

    @property
    def width(self) -> float:
        return self.x1 - self.x0

    @property
    def height(self) -> float:
        return self.y1 - self.y0

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def is_degenerate(self) -> bool:
        return self.width <= 0 or self.height <= 0
