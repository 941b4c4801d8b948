from __future__ import annotations

import datetime
from collections.abc import Iterable, Sequence

from assetsync.schemas.portfolio import PerformanceMetrics, YearReturn

PricePoint = tuple[datetime.date, float]


def max_drawdown(series: Sequence[PricePoint]) -> float:
    """Deepest decline from a running peak, as a fraction (<= 0)."""
    valid = [price for _, price in series if price > 0]
    if len(valid) < 2:
        return 0.0
    peak = float("-inf")
    worst = 0.0
    for price in valid:
        peak = max(peak, price)
        worst = min(worst, (price - peak) / peak)
    return worst


def annual_returns(series: Sequence[PricePoint]) -> list[YearReturn]:
    by_year: dict[int, tuple[float, float]] = {}
    for day, price in series:
        if day.year in by_year:
            first, _ = by_year[day.year]
            by_year[day.year] = (first, price)
        else:
            by_year[day.year] = (price, price)

    returns: list[YearReturn] = []
    previous_close: float | None = None
    for year in sorted(by_year):
        first_close, last_close = by_year[year]
        base = previous_close if previous_close is not None else first_close
        if base > 0:
            returns.append(YearReturn(year=year, value=(last_close - base) / base))
        previous_close = last_close
    return returns


def performance_metrics(series: Iterable[PricePoint]) -> PerformanceMetrics:
    ordered = sorted(series, key=lambda point: point[0])
    if len(ordered) < 2:
        return PerformanceMetrics()

    yearly = annual_returns(ordered)
    return PerformanceMetrics(
        max_drawdown=max_drawdown(ordered),
        best_year=max(yearly, key=lambda item: item.value) if yearly else None,
        worst_year=min(yearly, key=lambda item: item.value) if yearly else None,
        annual_returns=yearly,
    )
