"""Buy-and-hold portfolio series from independently dated price histories.

The holding with the shortest history (latest oldest point) drives the
timeline. A date is emitted only when every holding has a price on exactly
that date; there is no interpolation or carry-forward.
"""

from __future__ import annotations

import datetime
from collections.abc import Mapping, Sequence

from assetsync.schemas.asset import PriceHistoryPoint
from assetsync.schemas.portfolio import Holding, PortfolioTimelinePoint


def choose_driver(
    holdings: Sequence[Holding], histories: Mapping[str, Sequence[PriceHistoryPoint]]
) -> str | None:
    driver: str | None = None
    driver_start: datetime.date | None = None
    for holding in holdings:
        points = histories.get(holding.symbol) or []
        if not points:
            return None
        start = min(point.date for point in points)
        if driver_start is None or start > driver_start:
            driver, driver_start = holding.symbol, start
    return driver


def align_portfolio_timeline(
    holdings: Sequence[Holding], histories: Mapping[str, Sequence[PriceHistoryPoint]]
) -> list[PortfolioTimelinePoint]:
    driver = choose_driver(holdings, histories)
    if driver is None:
        return []

    lookups: dict[str, dict[datetime.date, float]] = {}
    for holding in holdings:
        newest_first = sorted(histories[holding.symbol], key=lambda point: point.date, reverse=True)
        prices: dict[datetime.date, float] = {}
        for point in newest_first:
            prices.setdefault(point.date, point.close)
        lookups[holding.symbol] = prices

    driver_start = min(lookups[driver])
    master_dates = [day for day in lookups[driver] if day >= driver_start]

    timeline: list[PortfolioTimelinePoint] = []
    for day in master_dates:
        total = 0.0
        for holding in holdings:
            price = lookups[holding.symbol].get(day)
            if price is None:
                break
            total += holding.quantity * price
        else:
            timeline.append(PortfolioTimelinePoint(date=day, aggregate_value=total))

    timeline.sort(key=lambda point: point.date)
    return timeline
