from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Any

from assetsync.config.settings import ValuationSettings
from assetsync.errors import ValuationUnavailableError
from assetsync.parsing.responses import parse_date, to_float
from assetsync.schemas.asset import CanonicalAssetSnapshot
from assetsync.schemas.valuation import (
    RankedValuation,
    ValuationCandidate,
    ValuationLabel,
    ValuationResult,
)

logger = logging.getLogger(__name__)

HISTORICAL_VALUE_FIELDS = ("dcf", "value")


def latest_historical_value(series: Sequence[dict[str, Any]] | None) -> float | None:
    """Value of the most recent dated entry; None when absent or non-numeric."""
    dated = []
    for entry in series or []:
        if not isinstance(entry, dict):
            continue
        entry_date = parse_date(entry.get("date"))
        if entry_date is not None:
            dated.append((entry_date, entry))
    if not dated:
        return None
    dated.sort(key=lambda item: item[0], reverse=True)
    latest = dated[0][1]
    for field in HISTORICAL_VALUE_FIELDS:
        value = to_float(latest.get(field))
        if value is not None:
            return value
    return None


def is_sane(candidate: float, price: float, settings: ValuationSettings) -> bool:
    if price == 0:
        return True
    if price < 0:
        return False
    ratio = candidate / price
    return settings.sane_lower_ratio < ratio < settings.sane_upper_ratio


def select_candidate(
    price: float,
    levered: ValuationCandidate | None,
    historical: ValuationCandidate | None,
    settings: ValuationSettings,
) -> tuple[ValuationCandidate, ValuationLabel]:
    if levered is not None and is_sane(levered.value, price, settings):
        return levered, "primary"
    if historical is not None and is_sane(historical.value, price, settings):
        return historical, "adjusted"
    if levered is not None:
        return levered, "unadjusted_anomalous"
    if historical is not None:
        return historical, "historical_anomalous"
    raise ValuationUnavailableError("No intrinsic-value estimate is available.")


def reconcile_valuation(
    price: float,
    levered: float | str | None,
    historical: Sequence[dict[str, Any]] | None,
    settings: ValuationSettings,
) -> ValuationResult:
    levered_value = to_float(levered)
    historical_value = latest_historical_value(historical)
    levered_candidate = None
    if levered_value is not None:
        levered_candidate = ValuationCandidate(value=levered_value, source="levered")
    historical_candidate = None
    if historical_value is not None:
        historical_candidate = ValuationCandidate(value=historical_value, source="historical")
    candidate, label = select_candidate(price, levered_candidate, historical_candidate, settings)

    raw_pct = None
    if price > 0:
        raw_pct = (candidate.value - price) / price * 100
    mispricing_pct = raw_pct
    if raw_pct is not None and abs(raw_pct) > settings.anomaly_threshold_pct:
        logger.info(
            "Discarding %s valuation %.2f against price %.2f (%.0f%%)",
            candidate.source,
            candidate.value,
            price,
            raw_pct,
        )
        mispricing_pct = None

    return ValuationResult(
        value=candidate.value,
        label=label,
        source=candidate.source,
        mispricing_pct=mispricing_pct,
        raw_mispricing_pct=raw_pct,
        rankable=mispricing_pct is not None,
    )


def snapshot_price(snapshot: CanonicalAssetSnapshot) -> float:
    for record in (snapshot.quote, snapshot.profile):
        if record:
            price = to_float(record.get("price"))
            if price is not None:
                return price
    return 0.0


def reconcile_snapshot(
    snapshot: CanonicalAssetSnapshot, settings: ValuationSettings
) -> ValuationResult:
    levered = (snapshot.dcf_levered or {}).get("equityValuePerShare")
    try:
        return reconcile_valuation(snapshot_price(snapshot), levered, snapshot.dcf, settings)
    except ValuationUnavailableError as exc:
        exc.symbol = snapshot.symbol
        raise


def rank_undervalued(items: Iterable[RankedValuation]) -> list[RankedValuation]:
    ranked = [
        item
        for item in items
        if item.result.rankable and item.result.mispricing_pct > 0
    ]
    return sorted(ranked, key=lambda item: item.result.mispricing_pct, reverse=True)


def rank_overvalued(items: Iterable[RankedValuation]) -> list[RankedValuation]:
    ranked = [
        item
        for item in items
        if item.result.rankable and item.result.mispricing_pct < 0
    ]
    return sorted(ranked, key=lambda item: item.result.mispricing_pct)
