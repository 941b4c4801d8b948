from __future__ import annotations

import math

from assetsync.schemas.portfolio import Holding, ValidationIssue, ValidationResult


def validate_holdings(holdings: list[Holding]) -> tuple[list[Holding], ValidationResult]:
    """Normalize symbols, merge duplicates and flag unusable quantities."""
    issues: list[ValidationIssue] = []

    if not holdings:
        issues.append(
            ValidationIssue(
                field="holdings",
                level="fail",
                message="At least one holding is required.",
            )
        )

    merged: dict[str, float] = {}
    duplicates: set[str] = set()
    for holding in holdings:
        symbol = holding.symbol.strip().upper()
        if not symbol:
            issues.append(
                ValidationIssue(
                    field="holdings.symbol",
                    level="fail",
                    message="Holding symbols are required.",
                )
            )
            continue
        if not math.isfinite(holding.quantity) or holding.quantity <= 0:
            issues.append(
                ValidationIssue(
                    field="holdings.quantity",
                    level="fail",
                    message=f"{symbol}: quantity must be positive.",
                )
            )
            continue
        if symbol in merged:
            duplicates.add(symbol)
            merged[symbol] += holding.quantity
        else:
            merged[symbol] = holding.quantity

    if duplicates:
        issues.append(
            ValidationIssue(
                field="holdings.symbol",
                level="warn",
                message="Merged duplicate holdings: " + ", ".join(sorted(duplicates)),
            )
        )

    status = "ok"
    if any(issue.level == "fail" for issue in issues):
        status = "fail"
    elif issues:
        status = "warn"

    normalized = [Holding(symbol=symbol, quantity=quantity) for symbol, quantity in merged.items()]
    return normalized, ValidationResult(status=status, issues=issues)
