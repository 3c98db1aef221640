"""Customer-profile checks — activity against the stated baseline and occupation."""

from __future__ import annotations

from decimal import Decimal

from sar_engine.core.money import format_amount, quantize
from sar_engine.core.profiles import RiskProfile
from sar_engine.core.state import CheckResult, RuleHit, hit
from sar_engine.rules.normalize import EvaluationContext


def resolve_baseline(ctx: EvaluationContext, profile: RiskProfile) -> Decimal:
    """Customer's stated baseline, or the profile default when absent or non-positive."""
    stated = getattr(ctx.customer, profile.deviation.baseline)
    if stated is None or stated <= 0:
        return profile.deviation.default_baseline
    return stated


def deviation_check(ctx: EvaluationContext, profile: RiskProfile) -> CheckResult:
    """Compare total activity to the baseline; only the most severe band fires."""
    cfg = profile.deviation
    baseline = resolve_baseline(ctx, profile)
    baseline_text = format_amount(baseline, ctx.currency, profile.amount_grouping)
    basis = cfg.baseline.replace("_", " ")

    metrics: dict = {"baseline_basis": cfg.baseline, "baseline_value": baseline}
    if cfg.measure == "percent":
        measure = (ctx.total - baseline) / baseline * 100
        shown = int(quantize(measure, Decimal("1")))
        metrics["baseline_deviation_percent"] = shown
        describe = f"{shown}% deviation from {basis} of {baseline_text}"
    else:
        measure = ctx.total / baseline
        shown = quantize(measure)
        key = "income_multiplier" if cfg.baseline == "annual_income" else "volume_multiplier"
        metrics[key] = shown
        describe = f"activity is {shown}x the stated {basis} of {baseline_text}"

    hits: list[RuleHit] = []
    if measure > cfg.extreme:
        hits.append(hit(
            "deviation_extreme",
            f"Extreme profile deviation: {describe}",
            profile.weights.deviation_extreme,
        ))
    elif measure > cfg.high:
        hits.append(hit(
            "deviation_high",
            f"High profile deviation: {describe}",
            profile.weights.deviation_high,
        ))

    return {"hits": hits, "metrics": metrics}


def occupation_check(ctx: EvaluationContext, profile: RiskProfile) -> CheckResult:
    """Flag large activity from customers in a typically low-income occupation."""
    occupation = (ctx.customer.occupation or "").strip()
    if not occupation:
        return {"hits": [], "metrics": {}}

    lowered = occupation.lower()
    matched = any(o.lower() in lowered for o in profile.occupation.low_income_occupations)
    if not matched or ctx.total <= profile.occupation.floor:
        return {"hits": [], "metrics": {}}

    total = format_amount(ctx.total, ctx.currency, profile.amount_grouping)
    return {
        "hits": [hit(
            "profile_inconsistency",
            f"Profile inconsistency: {total} in activity from a customer listed as '{occupation}'",
            profile.weights.profile_inconsistency,
        )],
        "metrics": {},
    }
