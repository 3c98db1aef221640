"""Round-amount and cash-channel checks, driven by the profile's predicates."""

from __future__ import annotations

from decimal import Decimal

from sar_engine.core.money import format_amount
from sar_engine.core.profiles import RiskProfile
from sar_engine.core.state import CheckResult, hit
from sar_engine.rules.normalize import EvaluationContext


def round_amount_check(ctx: EvaluationContext, profile: RiskProfile) -> CheckResult:
    predicate = profile.round_amounts
    round_txns = [t for t in ctx.transactions if predicate.matches(t.amount)]
    metrics = {"round_amount_count": len(round_txns)}

    if not round_txns or len(round_txns) < predicate.min_count:
        return {"hits": [], "metrics": metrics}

    return {
        "hits": [hit(
            "round_amount",
            f"Round amount transactions detected: {len(round_txns)} "
            f"({', '.join(t.id for t in round_txns)})",
            profile.weights.round_amount,
        )],
        "metrics": metrics,
    }


def cash_check(ctx: EvaluationContext, profile: RiskProfile) -> CheckResult:
    """Flag when cash-channel transactions reach the aggregate cash threshold."""
    predicate = profile.cash
    if predicate is None:
        return {"hits": [], "metrics": {}}

    cash_txns = [t for t in ctx.transactions if predicate.matches(t.source)]
    total = sum((t.amount for t in cash_txns), Decimal("0"))
    metrics = {"cash_transaction_count": len(cash_txns), "cash_transaction_total": total}

    if not cash_txns or total < predicate.threshold:
        return {"hits": [], "metrics": metrics}

    fmt = profile.amount_grouping
    return {
        "hits": [hit(
            "cash_transaction",
            f"Cash activity: {len(cash_txns)} cash transactions totaling "
            f"{format_amount(total, ctx.currency, fmt)} (threshold "
            f"{format_amount(predicate.threshold, ctx.currency, fmt)})",
            profile.weights.cash_transaction,
            profile.typologies.cash_placement,
        )],
        "metrics": metrics,
    }
