"""Amount-tier check — flags individual transactions by size."""

from __future__ import annotations

from sar_engine.core.money import format_amount
from sar_engine.core.profiles import RiskProfile
from sar_engine.core.state import CheckResult, RuleHit, hit
from sar_engine.rules.normalize import EvaluationContext

# Evaluated from most to least severe; a transaction lands in one tier at most.
TIER_ORDER = ("critical", "large", "significant")


def amount_tier_check(ctx: EvaluationContext, profile: RiskProfile) -> CheckResult:
    """Add the weight of the highest matching tier for each transaction."""
    hits: list[RuleHit] = []
    tier_counts = {tier: 0 for tier in TIER_ORDER}

    for t in ctx.transactions:
        for tier in TIER_ORDER:
            if t.amount >= getattr(profile.amount_tiers, tier):
                tier_counts[tier] += 1
                amount = format_amount(t.amount, ctx.currency, profile.amount_grouping)
                hits.append(hit(
                    f"{tier}_amount",
                    f"{tier.capitalize()} transaction detected: {amount} ({t.id})",
                    getattr(profile.weights, f"{tier}_amount"),
                ))
                break

    return {"hits": hits, "metrics": {"amount_tier_counts": tier_counts}}
