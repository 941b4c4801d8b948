from __future__ import annotations

import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


class Holding(BaseModel):
    symbol: str
    quantity: float


class PortfolioTimelinePoint(BaseModel):
    date: datetime.date
    aggregate_value: float


class YearReturn(BaseModel):
    year: int
    value: float


class PerformanceMetrics(BaseModel):
    max_drawdown: float = 0.0
    best_year: Optional[YearReturn] = None
    worst_year: Optional[YearReturn] = None
    annual_returns: list[YearReturn] = Field(default_factory=list)


class ValidationIssue(BaseModel):
    field: str
    level: Literal["warn", "fail"]
    message: str


class ValidationResult(BaseModel):
    status: Literal["ok", "warn", "fail"] = "ok"
    issues: list[ValidationIssue] = Field(default_factory=list)


class PortfolioTimelineRequest(BaseModel):
    holdings: list[Holding] = Field(default_factory=list)


class PortfolioTimeline(BaseModel):
    points: list[PortfolioTimelinePoint] = Field(default_factory=list)
    metrics: PerformanceMetrics = Field(default_factory=PerformanceMetrics)
    driver_symbol: Optional[str] = None
    missing_symbols: list[str] = Field(default_factory=list)
    validation: ValidationResult = Field(default_factory=ValidationResult)
