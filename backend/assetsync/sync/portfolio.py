from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from assetsync.analytics.performance import performance_metrics
from assetsync.analytics.timeline import align_portfolio_timeline, choose_driver
from assetsync.errors import AssetSyncError
from assetsync.schemas.asset import PriceHistoryPoint
from assetsync.schemas.portfolio import Holding, PortfolioTimeline
from assetsync.sync.orchestrator import AssetSyncOrchestrator

logger = logging.getLogger(__name__)


async def load_histories(
    holdings: Sequence[Holding],
    orchestrator: AssetSyncOrchestrator,
    user_id: str | None,
) -> tuple[dict[str, list[PriceHistoryPoint]], list[str]]:
    symbols = list(dict.fromkeys(holding.symbol for holding in holdings))
    results = await asyncio.gather(
        *(orchestrator.get_snapshot(symbol, user_id, trusted=True) for symbol in symbols),
        return_exceptions=True,
    )

    histories: dict[str, list[PriceHistoryPoint]] = {}
    missing: list[str] = []
    for symbol, result in zip(symbols, results):
        if isinstance(result, AssetSyncError):
            logger.warning("No history for %s: %s", symbol, result.message)
            missing.append(symbol)
            continue
        if isinstance(result, BaseException):
            raise result
        if not result.snapshot.historical:
            missing.append(symbol)
            continue
        histories[symbol] = result.snapshot.historical
    return histories, missing


async def build_portfolio_timeline(
    holdings: Sequence[Holding],
    orchestrator: AssetSyncOrchestrator,
    user_id: str | None = None,
) -> PortfolioTimeline:
    if not holdings:
        return PortfolioTimeline()

    histories, missing = await load_histories(holdings, orchestrator, user_id)
    if missing:
        return PortfolioTimeline(missing_symbols=missing)

    points = align_portfolio_timeline(holdings, histories)
    metrics = performance_metrics((point.date, point.aggregate_value) for point in points)
    return PortfolioTimeline(
        points=points,
        metrics=metrics,
        driver_symbol=choose_driver(holdings, histories),
        missing_symbols=[],
    )
