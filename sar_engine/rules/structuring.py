"""Structuring and smurfing checks — many transactions kept under a threshold.

The two checks are independent: a transaction inside the structuring band
that is also below the smurfing ceiling counts toward both.
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

from sar_engine.core.money import format_amount
from sar_engine.core.profiles import RiskProfile
from sar_engine.core.state import CheckResult, hit
from sar_engine.rules.normalize import EvaluationContext, NormalizedTransaction


def densest_window(
    txns: list[NormalizedTransaction], hours: float | None,
) -> list[NormalizedTransaction]:
    """Largest chronological run of ``txns`` fitting inside ``hours``; all of them when ``hours`` is None."""
    if hours is None:
        return txns
    ordered = sorted(txns, key=lambda t: t.timestamp)
    span = timedelta(hours=hours)
    best: list[NormalizedTransaction] = []
    start = 0
    for end, t in enumerate(ordered):
        while t.timestamp - ordered[start].timestamp > span:
            start += 1
        if end + 1 - start > len(best):
            best = ordered[start:end + 1]
    return best


def _within(hours: float | None) -> str:
    return f" within {hours:g} hours" if hours is not None else ""


def structuring_check(ctx: EvaluationContext, profile: RiskProfile) -> CheckResult:
    """Flag once when enough transactions fall inside the band below the reporting threshold."""
    cfg = profile.structuring
    in_band = densest_window(
        [t for t in ctx.transactions if cfg.lower <= t.amount <= cfg.upper], cfg.window_hours,
    )

    if len(in_band) < cfg.min_count:
        return {"hits": [], "metrics": {}}

    total = sum((t.amount for t in in_band), Decimal("0"))
    fmt = profile.amount_grouping
    return {
        "hits": [hit(
            "structuring",
            (
                f"Potential structuring: {len(in_band)} transactions totaling "
                f"{format_amount(total, ctx.currency, fmt)} between "
                f"{format_amount(cfg.lower, ctx.currency, fmt)} and "
                f"{format_amount(cfg.upper, ctx.currency, fmt)}, just below the "
                f"{format_amount(cfg.reporting_threshold, ctx.currency, fmt)} reporting threshold"
                f"{_within(cfg.window_hours)}"
            ),
            profile.weights.structuring,
            profile.typologies.structuring,
        )],
        "metrics": {
            "structuring_pattern": {"count": len(in_band), "total": total},
            "structuring_transaction_ids": [t.id for t in in_band],
        },
    }


def smurfing_check(ctx: EvaluationContext, profile: RiskProfile) -> CheckResult:
    """Flag once when many small transactions are present (profiles may disable it)."""
    cfg = profile.smurfing
    if cfg is None:
        return {"hits": [], "metrics": {}}

    small = densest_window([t for t in ctx.transactions if t.amount < cfg.below], cfg.window_hours)
    if len(small) < cfg.min_count:
        return {"hits": [], "metrics": {}}

    total = sum((t.amount for t in small), Decimal("0"))
    fmt = profile.amount_grouping
    return {
        "hits": [hit(
            "smurfing",
            (
                f"Potential smurfing: {len(small)} transactions below "
                f"{format_amount(cfg.below, ctx.currency, fmt)} totaling "
                f"{format_amount(total, ctx.currency, fmt)}"
                f"{_within(cfg.window_hours)}"
            ),
            profile.weights.smurfing,
            profile.typologies.smurfing,
        )],
        "metrics": {"smurfing_pattern": {"count": len(small), "total": total}},
    }
