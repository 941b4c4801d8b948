from __future__ import annotations

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status

from assetsync.cache import SnapshotCache
from assetsync.config.settings import settings
from assetsync.db.session import AsyncSessionLocal
from assetsync.errors import (
    AssetSyncError,
    NotFoundError,
    QuotaExceededError,
    UpstreamError,
    UpstreamTimeoutError,
    ValuationUnavailableError,
)
from assetsync.providers.fmp import FmpClient
from assetsync.quota.ledger import QuotaLedger, SqlQuotaStore
from assetsync.schemas.asset import AuxiliaryResult, FreshnessReport, SnapshotResult
from assetsync.schemas.portfolio import PortfolioTimeline, PortfolioTimelineRequest
from assetsync.schemas.quota import QuotaStatus
from assetsync.schemas.valuation import ValuationRankings, ValuationRequest, ValuationResult
from assetsync.scoring.valuation import reconcile_snapshot, reconcile_valuation
from assetsync.sync.orchestrator import AssetSyncOrchestrator
from assetsync.sync.portfolio import build_portfolio_timeline
from assetsync.sync.rankings import rank_symbols
from assetsync.validation.validator import validate_holdings

router = APIRouter()

# Shared so every request draws on the same upstream worker pool.
fmp_client = FmpClient(settings.provider)

_ERROR_STATUS: list[tuple[type[AssetSyncError], int]] = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (QuotaExceededError, status.HTTP_429_TOO_MANY_REQUESTS),
    (UpstreamTimeoutError, status.HTTP_504_GATEWAY_TIMEOUT),
    (UpstreamError, status.HTTP_502_BAD_GATEWAY),
    (ValuationUnavailableError, 422),
]


def get_orchestrator() -> AssetSyncOrchestrator:
    return AssetSyncOrchestrator(
        cache=SnapshotCache(AsyncSessionLocal),
        ledger=QuotaLedger(SqlQuotaStore(AsyncSessionLocal), settings.quota),
        client=fmp_client,
        settings=settings,
    )


def _to_http(exc: AssetSyncError) -> HTTPException:
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_type, code in _ERROR_STATUS:
        if isinstance(exc, error_type):
            status_code = code
            break
    return HTTPException(
        status_code=status_code,
        detail={"message": exc.message, "symbol": exc.symbol},
    )


@router.get("/health")
def health() -> dict:
    return {"status": "ok"}


@router.get("/assets/freshness", response_model=FreshnessReport)
async def asset_freshness(
    symbols: str = Query(default=""),
    orchestrator: AssetSyncOrchestrator = Depends(get_orchestrator),
) -> FreshnessReport:
    return await orchestrator.freshness(symbols.split(","))


@router.get("/assets/{symbol}", response_model=SnapshotResult)
async def get_asset(
    symbol: str,
    force_refresh: bool = False,
    x_user_id: str | None = Header(default=None),
    orchestrator: AssetSyncOrchestrator = Depends(get_orchestrator),
) -> SnapshotResult:
    try:
        return await orchestrator.get_snapshot(symbol, x_user_id, force_refresh=force_refresh)
    except AssetSyncError as exc:
        raise _to_http(exc) from exc


@router.get("/assets/{symbol}/valuation", response_model=ValuationResult)
async def get_asset_valuation(
    symbol: str,
    x_user_id: str | None = Header(default=None),
    orchestrator: AssetSyncOrchestrator = Depends(get_orchestrator),
) -> ValuationResult:
    try:
        result = await orchestrator.get_snapshot(symbol, x_user_id)
        return reconcile_snapshot(result.snapshot, settings.valuation)
    except AssetSyncError as exc:
        raise _to_http(exc) from exc


@router.get("/assets/{symbol}/grades-history", response_model=AuxiliaryResult)
async def get_grades_history(
    symbol: str,
    orchestrator: AssetSyncOrchestrator = Depends(get_orchestrator),
) -> AuxiliaryResult:
    try:
        return await orchestrator.get_grades_history(symbol)
    except AssetSyncError as exc:
        raise _to_http(exc) from exc


@router.post("/valuation/reconcile", response_model=ValuationResult)
async def reconcile_valuation_endpoint(payload: ValuationRequest) -> ValuationResult:
    try:
        return reconcile_valuation(
            payload.price, payload.levered, payload.historical, settings.valuation
        )
    except AssetSyncError as exc:
        raise _to_http(exc) from exc


@router.get("/valuation/rankings", response_model=ValuationRankings)
async def valuation_rankings(
    symbols: str = Query(default=""),
    x_user_id: str | None = Header(default=None),
    orchestrator: AssetSyncOrchestrator = Depends(get_orchestrator),
) -> ValuationRankings:
    return await rank_symbols(
        symbols.split(","), orchestrator, orchestrator.settings.valuation, x_user_id
    )


@router.post("/portfolio/timeline", response_model=PortfolioTimeline)
async def portfolio_timeline_endpoint(
    payload: PortfolioTimelineRequest,
    x_user_id: str | None = Header(default=None),
    orchestrator: AssetSyncOrchestrator = Depends(get_orchestrator),
) -> PortfolioTimeline:
    holdings, validation = validate_holdings(payload.holdings)
    if validation.status == "fail":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "message": "Validation failed.",
                "validation": validation.model_dump(),
            },
        )
    timeline = await build_portfolio_timeline(holdings, orchestrator, x_user_id)
    timeline.validation = validation
    return timeline


@router.get("/quota", response_model=QuotaStatus)
async def quota_status(
    x_user_id: str | None = Header(default=None),
    orchestrator: AssetSyncOrchestrator = Depends(get_orchestrator),
) -> QuotaStatus:
    return await orchestrator.ledger.status(x_user_id)
