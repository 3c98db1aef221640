"""Velocity check — many transactions packed into a short time span."""

from __future__ import annotations

from sar_engine.core.profiles import RiskProfile
from sar_engine.core.state import CheckResult, RuleHit, hit
from sar_engine.rules.normalize import EvaluationContext

SECONDS_PER_UNIT = {"hours": 3600.0, "days": 86400.0}


def transaction_span(ctx: EvaluationContext, unit: str) -> float:
    """Time between the earliest and latest transaction, 0 for fewer than two."""
    if len(ctx.transactions) < 2:
        return 0.0
    stamps = [t.timestamp for t in ctx.transactions]
    return (max(stamps) - min(stamps)).total_seconds() / SECONDS_PER_UNIT[unit]


def velocity_check(ctx: EvaluationContext, profile: RiskProfile) -> CheckResult:
    cfg = profile.velocity
    span = transaction_span(ctx, cfg.unit)
    count = len(ctx.transactions)
    metrics = {f"transaction_window_{cfg.unit}": round(span, 2)}

    hits: list[RuleHit] = []
    if count >= 2:
        for severity in ("extreme", "high"):
            tier = getattr(cfg, severity)
            if count >= tier.min_count and span <= tier.max_span:
                hits.append(hit(
                    f"velocity_{severity}",
                    f"{severity.capitalize()} velocity: {count} transactions within "
                    f"{span:.1f} {cfg.unit} (limit {tier.min_count} within {tier.max_span:g} {cfg.unit})",
                    getattr(profile.weights, f"velocity_{severity}"),
                    profile.typologies.layering,
                ))
                break

    return {"hits": hits, "metrics": metrics}
