from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable

from assetsync.config.settings import ValuationSettings
from assetsync.errors import AssetSyncError, ValuationUnavailableError
from assetsync.schemas.valuation import RankedValuation, ValuationRankings
from assetsync.scoring.valuation import rank_overvalued, rank_undervalued, reconcile_snapshot
from assetsync.sync.orchestrator import AssetSyncOrchestrator, normalize_symbol

logger = logging.getLogger(__name__)


async def rank_symbols(
    symbols: Iterable[str],
    orchestrator: AssetSyncOrchestrator,
    valuation_settings: ValuationSettings,
    user_id: str | None = None,
) -> ValuationRankings:
    """Reconcile every symbol and split the rankable ones by mispricing sign."""
    wanted = list(dict.fromkeys(normalize_symbol(symbol) for symbol in symbols if symbol.strip()))
    results = await asyncio.gather(
        *(orchestrator.get_snapshot(symbol, user_id, trusted=True) for symbol in wanted),
        return_exceptions=True,
    )

    ranked: list[RankedValuation] = []
    skipped: list[str] = []
    for symbol, result in zip(wanted, results):
        if isinstance(result, AssetSyncError):
            logger.info("Leaving %s out of rankings: %s", symbol, result.message)
            skipped.append(symbol)
            continue
        if isinstance(result, BaseException):
            raise result
        try:
            valuation = reconcile_snapshot(result.snapshot, valuation_settings)
        except ValuationUnavailableError as exc:
            logger.info("Leaving %s out of rankings: %s", symbol, exc.message)
            skipped.append(symbol)
            continue
        ranked.append(RankedValuation(symbol=symbol, result=valuation))

    return ValuationRankings(
        undervalued=rank_undervalued(ranked),
        overvalued=rank_overvalued(ranked),
        skipped=skipped,
    )
