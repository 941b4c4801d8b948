from __future__ import annotations

import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

FreshnessTier = Literal["fresh", "degraded", "expired"]
NoticeReason = Literal["trusted_cache", "quota_exhausted", "refresh_failed"]


class PriceHistoryPoint(BaseModel):
    # Upstream OHLC/volume fields ride along untouched.
    model_config = ConfigDict(extra="allow")

    date: datetime.date
    close: float
    unadjusted_close: Optional[float] = None


class RevenueSegment(BaseModel):
    name: str
    value: float


class CanonicalAssetSnapshot(BaseModel):
    symbol: str
    profile: dict[str, Any]
    key_metrics: Optional[dict[str, Any]] = None
    quote: Optional[dict[str, Any]] = None
    historical: list[PriceHistoryPoint] = Field(default_factory=list)
    price_target: Optional[dict[str, Any]] = None
    dcf: list[dict[str, Any]] = Field(default_factory=list)
    rating: Optional[dict[str, Any]] = None
    geographic_revenue: list[RevenueSegment] = Field(default_factory=list)
    product_revenue: list[RevenueSegment] = Field(default_factory=list)
    price_target_consensus: Optional[dict[str, Any]] = None
    grades_consensus: Optional[dict[str, Any]] = None
    analyst_estimates: list[dict[str, Any]] = Field(default_factory=list)
    ratios: list[dict[str, Any]] = Field(default_factory=list)
    key_metrics_yearly: list[dict[str, Any]] = Field(default_factory=list)
    dcf_levered: Optional[dict[str, Any]] = None
    stock_price_change: Optional[dict[str, Any]] = None


class CachedSnapshot(BaseModel):
    key: str
    payload: dict[str, Any]
    updated_at: datetime.datetime


class StaleDataNotice(BaseModel):
    reason: NoticeReason
    as_of: datetime.datetime
    age_hours: int
    message: str


class SnapshotResult(BaseModel):
    snapshot: CanonicalAssetSnapshot
    updated_at: datetime.datetime
    source: Literal["cache", "upstream"]
    tier: FreshnessTier
    notice: Optional[StaleDataNotice] = None


class AuxiliaryResult(BaseModel):
    key: str
    data: Any = None
    updated_at: datetime.datetime
    source: Literal["cache", "upstream"]
    notice: Optional[StaleDataNotice] = None


class SymbolFreshness(BaseModel):
    symbol: str
    updated_at: Optional[datetime.datetime] = None
    tier: FreshnessTier | Literal["missing"] = "missing"


class FreshnessReport(BaseModel):
    items: list[SymbolFreshness] = Field(default_factory=list)
    oldest_update: Optional[datetime.datetime] = None
