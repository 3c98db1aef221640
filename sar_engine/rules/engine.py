"""Risk Evaluator — deterministic rule-based scoring of a normalized case.

``evaluate`` is a pure function of (case, profile): it performs no I/O and
emits no log records.  Audit emission is the caller's job (see
``sar_engine.audit``).

Evaluation order is fixed because it determines the order of
``triggered_rules``:

1. currency/date normalization
2. aggregate metrics
3-11. rule checks (amount tiers, jurisdictions, structuring, smurfing,
      profile deviation, round amounts, cash, occupation, velocity)
12. score aggregation, capped at 100
13. typology de-duplication
14. classification by band
15. summary assembly
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Callable

from sar_engine.core.models import CaseData, RuleEngineOutput
from sar_engine.core.money import quantize
from sar_engine.core.profiles import GENERIC_USD, RiskProfile
from sar_engine.core.state import CheckResult, RuleHit, merge_metrics
from sar_engine.rules.amount import amount_tier_check
from sar_engine.rules.heuristics import cash_check, round_amount_check
from sar_engine.rules.jurisdiction import jurisdiction_check
from sar_engine.rules.normalize import EvaluationContext, build_context
from sar_engine.rules.profile import deviation_check, occupation_check
from sar_engine.rules.structuring import smurfing_check, structuring_check
from sar_engine.rules.velocity import velocity_check

MAX_SCORE = 100

RuleCheck = Callable[[EvaluationContext, RiskProfile], CheckResult]

RULE_CHECKS: tuple[RuleCheck, ...] = (
    amount_tier_check,
    jurisdiction_check,
    structuring_check,
    smurfing_check,
    deviation_check,
    round_amount_check,
    cash_check,
    occupation_check,
    velocity_check,
)


def classify(score: int, profile: RiskProfile) -> str:
    """Map a capped score to a disposition label, highest band first."""
    bands = profile.bands
    if score >= bands.critical:
        return bands.critical_label
    if score >= bands.high:
        return bands.high_label
    if score >= bands.medium:
        return bands.medium_label
    return bands.low_label


def _aggregate_metrics(ctx: EvaluationContext) -> dict[str, Any]:
    count = len(ctx.transactions)
    return {
        "reference_currency": ctx.currency,
        "total_transaction_value": ctx.total,
        "transaction_count": count,
        "average_transaction_value": quantize(ctx.total / count) if count else Decimal("0"),
    }


def _score_breakdown(hits: list[RuleHit]) -> dict[str, int]:
    breakdown: dict[str, int] = {}
    for h in hits:
        breakdown[h["rule"]] = breakdown.get(h["rule"], 0) + h["weight"]
    return breakdown


def _build_summary(
    ctx: EvaluationContext,
    profile: RiskProfile,
    triggered_rules: list[str],
    typologies: list[str],
    high_risk_countries: list[str],
    score: int,
    classification: str,
) -> dict[str, Any]:
    customer = ctx.customer
    return {
        "customer_name": customer.name,
        "customer_id": customer.id,
        "customer_occupation": customer.occupation,
        "customer_risk_rating": customer.risk_rating,
        "currency": ctx.currency,
        "total_suspicious_amount": ctx.total,
        "transaction_count": len(ctx.transactions),
        "high_risk_countries": high_risk_countries,
        "typologies": typologies,
        "primary_concerns": triggered_rules[: profile.summary_concerns],
        "risk_score": score,
        "recommended_action": classification,
    }


def evaluate(case: CaseData, profile: RiskProfile | None = None) -> RuleEngineOutput:
    """Score ``case`` under ``profile`` (the generic USD profile when omitted).

    Raises:
        MalformedInputError: a transaction's amount, currency or date cannot
            be normalized.
    """
    profile = profile or GENERIC_USD
    ctx = build_context(case, profile)

    metrics = _aggregate_metrics(ctx)
    hits: list[RuleHit] = []
    for check in RULE_CHECKS:
        result = check(ctx, profile)
        hits.extend(result["hits"])
        metrics = merge_metrics(metrics, result["metrics"])

    raw_score = sum(h["weight"] for h in hits)
    score = min(raw_score, MAX_SCORE)
    assert 0 <= score <= MAX_SCORE, f"score out of range: {score}"
    metrics["raw_risk_score"] = raw_score

    triggered_rules = [h["message"] for h in hits]
    typologies = list(dict.fromkeys(h["typology"] for h in hits if h["typology"]))
    classification = classify(score, profile)

    return RuleEngineOutput(
        case_id=case.case_id,
        rule_engine_version=profile.rule_engine_version,
        triggered_rules=triggered_rules,
        calculated_metrics=metrics,
        typology_tags=typologies,
        aggregated_risk_score=score,
        score_breakdown=_score_breakdown(hits),
        suspicion_summary_json=_build_summary(
            ctx, profile, triggered_rules, typologies,
            metrics["high_risk_countries"], score, classification,
        ),
        final_classification=classification,
    )
