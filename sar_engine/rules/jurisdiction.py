"""Jurisdiction check — evaluates counterparty countries against the risk lists."""

from __future__ import annotations

from sar_engine.core.profiles import RiskProfile
from sar_engine.core.state import CheckResult, RuleHit, hit
from sar_engine.rules.normalize import EvaluationContext, NormalizedTransaction


def _distinct_countries(txns: list[NormalizedTransaction]) -> list[str]:
    return list(dict.fromkeys(t.country for t in txns))


def partition_by_jurisdiction(
    ctx: EvaluationContext, profile: RiskProfile,
) -> tuple[list[NormalizedTransaction], list[NormalizedTransaction]]:
    """Split transactions into (high-risk, medium-risk); high-risk membership wins."""
    high: list[NormalizedTransaction] = []
    medium: list[NormalizedTransaction] = []
    for t in ctx.transactions:
        if t.country in profile.high_risk_countries:
            high.append(t)
        elif t.country in profile.medium_risk_countries:
            medium.append(t)
    return high, medium


def jurisdiction_check(ctx: EvaluationContext, profile: RiskProfile) -> CheckResult:
    """Flag each risk tier once, however many transactions touch it."""
    high, medium = partition_by_jurisdiction(ctx, profile)
    hits: list[RuleHit] = []

    high_countries = _distinct_countries(high)
    if high:
        hits.append(hit(
            "high_risk_jurisdiction",
            f"High-risk jurisdiction transactions: {len(high)} involving {', '.join(high_countries)}",
            profile.weights.high_risk_jurisdiction,
            profile.typologies.sanctions_evasion,
        ))

    medium_countries = _distinct_countries(medium)
    if medium:
        hits.append(hit(
            "medium_risk_jurisdiction",
            f"Medium-risk jurisdiction transactions: {len(medium)} involving {', '.join(medium_countries)}",
            profile.weights.medium_risk_jurisdiction,
            profile.typologies.cross_border,
        ))

    return {
        "hits": hits,
        "metrics": {
            "high_risk_jurisdiction_count": len(high),
            "medium_risk_jurisdiction_count": len(medium),
            "high_risk_countries": high_countries,
        },
    }
