from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

CandidateSource = Literal["levered", "historical"]
ValuationLabel = Literal[
    "primary",
    "adjusted",
    "unadjusted_anomalous",
    "historical_anomalous",
]


class ValuationCandidate(BaseModel):
    value: float
    source: CandidateSource


class ValuationResult(BaseModel):
    value: float
    label: ValuationLabel
    source: CandidateSource
    # None when not computable (zero price) or discarded as an anomaly.
    mispricing_pct: Optional[float] = None
    raw_mispricing_pct: Optional[float] = None
    rankable: bool = False


class ValuationRequest(BaseModel):
    price: float
    levered: Optional[float] = None
    historical: list[dict[str, Any]] = Field(default_factory=list)


class RankedValuation(BaseModel):
    symbol: str
    result: ValuationResult


class ValuationRankings(BaseModel):
    undervalued: list[RankedValuation] = Field(default_factory=list)
    overvalued: list[RankedValuation] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
