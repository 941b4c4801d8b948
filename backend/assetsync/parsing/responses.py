"""Shape parsers for raw upstream responses and the snapshot normalizer.

Each parser owns one known external shape and degrades to an empty value on
anything else. Only the profile is mandatory: without it the symbol is
treated as unknown.
"""

from __future__ import annotations

import datetime
import math
from collections.abc import Mapping, Sequence
from typing import Any

from assetsync.errors import NotFoundError
from assetsync.providers.fmp import ASSET_ENDPOINTS
from assetsync.schemas.asset import CanonicalAssetSnapshot, PriceHistoryPoint, RevenueSegment


def to_float(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def parse_date(value: Any) -> datetime.date | None:
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if not isinstance(value, str) or len(value) < 10:
        return None
    try:
        return datetime.date.fromisoformat(value[:10])
    except ValueError:
        return None


def first_record(response: Any) -> dict[str, Any] | None:
    if isinstance(response, list):
        if response and isinstance(response[0], dict) and response[0]:
            return response[0]
        return None
    if isinstance(response, dict) and response:
        return response
    return None


def record_list(response: Any) -> list[dict[str, Any]]:
    if not isinstance(response, list):
        return []
    return [item for item in response if isinstance(item, dict)]


def parse_historical(response: Any) -> list[PriceHistoryPoint]:
    if isinstance(response, dict) and isinstance(response.get("historical"), list):
        raw_points = response["historical"]
    elif isinstance(response, list):
        raw_points = response
    else:
        return []

    points: list[PriceHistoryPoint] = []
    for raw in raw_points:
        if not isinstance(raw, dict):
            continue
        point_date = parse_date(raw.get("date"))
        unadjusted = to_float(raw.get("close"))
        adjusted = to_float(raw.get("adjClose"))
        close = adjusted if adjusted is not None else unadjusted
        if point_date is None or close is None:
            continue
        extras = {
            key: value
            for key, value in raw.items()
            if key not in ("date", "close", "unadjusted_close")
        }
        points.append(
            PriceHistoryPoint(
                **extras, date=point_date, close=close, unadjusted_close=unadjusted
            )
        )
    points.sort(key=lambda point: point.date)
    return points


def parse_revenue_segments(response: Any, strip_word: str | None = None) -> list[RevenueSegment]:
    # Either [{"date": ..., "data": {segment: value}}, ...] or a flat {segment: value}.
    segments: Any = None
    if isinstance(response, list) and response and isinstance(response[0], dict):
        segments = response[0].get("data")
    elif isinstance(response, dict):
        segments = response.get("data", response)
    if not isinstance(segments, dict):
        return []

    parsed: list[RevenueSegment] = []
    for name, value in segments.items():
        amount = to_float(value)
        if amount is None:
            continue
        label = str(name)
        if strip_word:
            label = label.replace(strip_word, "")
        parsed.append(RevenueSegment(name=label.strip(), value=amount))
    return parsed


def normalize(
    symbol: str, responses: Sequence[Any] | Mapping[str, Any]
) -> CanonicalAssetSnapshot:
    if isinstance(responses, Mapping):
        by_endpoint = dict(responses)
    else:
        by_endpoint = dict(zip(ASSET_ENDPOINTS, responses))

    profile = first_record(by_endpoint.get("profile"))
    if profile is None:
        raise NotFoundError(f'Symbol "{symbol}" was not found.', symbol=symbol)

    return CanonicalAssetSnapshot(
        symbol=str(profile.get("symbol") or symbol).upper(),
        profile=profile,
        key_metrics=first_record(by_endpoint.get("key_metrics")),
        quote=first_record(by_endpoint.get("quote")),
        historical=parse_historical(by_endpoint.get("historical")),
        price_target=first_record(by_endpoint.get("price_target")),
        dcf=record_list(by_endpoint.get("dcf")),
        rating=first_record(by_endpoint.get("rating")),
        geographic_revenue=parse_revenue_segments(
            by_endpoint.get("revenue_geographic"), strip_word="Segment"
        ),
        product_revenue=parse_revenue_segments(by_endpoint.get("revenue_product")),
        price_target_consensus=first_record(by_endpoint.get("price_target_consensus")),
        grades_consensus=first_record(by_endpoint.get("grades_consensus")),
        analyst_estimates=record_list(by_endpoint.get("analyst_estimates")),
        ratios=record_list(by_endpoint.get("ratios")),
        key_metrics_yearly=record_list(by_endpoint.get("key_metrics_yearly")),
        dcf_levered=first_record(by_endpoint.get("levered_dcf")),
        stock_price_change=first_record(by_endpoint.get("stock_price_change")),
    )
