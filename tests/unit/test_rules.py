"""Unit tests for the individual rule checks."""

from __future__ import annotations

from decimal import Decimal

import pytest

from sar_engine.core.models import CaseData, CustomerProfile, Transaction
from sar_engine.core.predicates import CashChannelRule, RoundAmountRule
from sar_engine.core.profiles import GENERIC_USD, INDIA_INR, RiskProfile, derive_profile
from sar_engine.rules.amount import amount_tier_check
from sar_engine.rules.heuristics import cash_check, round_amount_check
from sar_engine.rules.jurisdiction import jurisdiction_check, partition_by_jurisdiction
from sar_engine.rules.normalize import EvaluationContext, build_context
from sar_engine.rules.profile import deviation_check, occupation_check, resolve_baseline
from sar_engine.rules.structuring import smurfing_check, structuring_check
from sar_engine.rules.velocity import transaction_span, velocity_check


def _ctx(
    rows: list[tuple[str, str, str]],
    profile: RiskProfile = GENERIC_USD,
    first_type: str = "transfer",
    **customer: object,
) -> EvaluationContext:
    """Build a context from (id, amount, country) rows, one hour apart.

    ``first_type`` sets the channel of the first transaction only.
    """
    txns = tuple(
        Transaction(
            id=txn_id, amount=Decimal(amount), currency=profile.reference_currency,
            date=f"2024-02-01T{idx:02d}:00:00", counterparty="CP", country=country,
            type=first_type if idx == 0 else "transfer",
        )
        for idx, (txn_id, amount, country) in enumerate(rows)
    )
    fields = {"id": "C1", "name": "Subject", "occupation": "Engineer"}
    fields.update(customer)
    case = CaseData(case_id="RULES", customer=CustomerProfile(**fields), transactions=txns)
    return build_context(case, profile)


def _rules(result: dict) -> list[str]:
    return [h["rule"] for h in result["hits"]]


class TestAmountTierCheck:
    def test_highest_tier_only(self) -> None:
        result = amount_tier_check(_ctx([("T1", "150000", "US")]), GENERIC_USD)
        assert _rules(result) == ["critical_amount"]
        assert result["hits"][0]["weight"] == GENERIC_USD.weights.critical_amount

    def test_one_hit_per_transaction(self) -> None:
        ctx = _ctx([("T1", "150000", "US"), ("T2", "60000", "US"), ("T3", "30000", "US"), ("T4", "100", "US")])
        result = amount_tier_check(ctx, GENERIC_USD)
        assert _rules(result) == ["critical_amount", "large_amount", "significant_amount"]
        assert result["metrics"]["amount_tier_counts"] == {"critical": 1, "large": 1, "significant": 1}

    def test_tier_boundary_is_inclusive(self) -> None:
        result = amount_tier_check(_ctx([("T1", "25000", "US")]), GENERIC_USD)
        assert _rules(result) == ["significant_amount"]

    def test_message_uses_indian_grouping(self) -> None:
        result = amount_tier_check(_ctx([("T1", "1500000", "IN")], INDIA_INR), INDIA_INR)
        assert result["hits"][0]["message"] == "Large transaction detected: INR 15,00,000.00 (T1)"


class TestJurisdictionCheck:
    def test_partition(self) -> None:
        ctx = _ctx([("T1", "10", "ir"), ("T2", "10", "PK"), ("T3", "10", "US")])
        high, medium = partition_by_jurisdiction(ctx, GENERIC_USD)
        assert [t.id for t in high] == ["T1"]
        assert [t.id for t in medium] == ["T2"]

    def test_typology_tags(self) -> None:
        ctx = _ctx([("T1", "10", "IR"), ("T2", "10", "PK")])
        result = jurisdiction_check(ctx, GENERIC_USD)
        tags = [h["typology"] for h in result["hits"]]
        assert tags == [GENERIC_USD.typologies.sanctions_evasion, GENERIC_USD.typologies.cross_border]

    def test_distinct_countries_listed_in_order(self) -> None:
        ctx = _ctx([("T1", "10", "MM"), ("T2", "10", "KP"), ("T3", "10", "MM")])
        result = jurisdiction_check(ctx, GENERIC_USD)
        assert result["metrics"]["high_risk_countries"] == ["MM", "KP"]
        assert result["metrics"]["high_risk_jurisdiction_count"] == 3

    def test_no_hits_for_domestic(self) -> None:
        result = jurisdiction_check(_ctx([("T1", "10", "US")]), GENERIC_USD)
        assert result["hits"] == []


class TestStructuringChecks:
    def test_structuring_counts_in_band_only(self) -> None:
        ctx = _ctx([("T1", "9000", "US"), ("T2", "9500", "US"), ("T3", "9900", "US"), ("T4", "12000", "US")])
        result = structuring_check(ctx, GENERIC_USD)
        assert _rules(result) == ["structuring"]
        assert result["metrics"]["structuring_pattern"] == {"count": 3, "total": Decimal("28400")}
        assert result["metrics"]["structuring_transaction_ids"] == ["T1", "T2", "T3"]

    def test_smurfing_independent_of_structuring(self) -> None:
        rows = [(f"T{i}", "900", "US") for i in range(10)]
        result = smurfing_check(_ctx(rows), GENERIC_USD)
        assert _rules(result) == ["smurfing"]
        assert result["metrics"]["smurfing_pattern"]["count"] == 10
        assert structuring_check(_ctx(rows), GENERIC_USD)["hits"] == []

    def test_transaction_counts_toward_both(self) -> None:
        profile = derive_profile(
            GENERIC_USD, smurfing=GENERIC_USD.smurfing.model_copy(update={"below": Decimal("9600"), "min_count": 3}),
        )
        rows = [("T1", "9000", "US"), ("T2", "9100", "US"), ("T3", "9200", "US")]
        ctx = _ctx(rows, profile)
        assert _rules(structuring_check(ctx, profile)) == ["structuring"]
        assert _rules(smurfing_check(ctx, profile)) == ["smurfing"]

    def test_smurfing_disabled(self) -> None:
        profile = derive_profile(GENERIC_USD, smurfing=None)
        rows = [(f"T{i}", "900", "US") for i in range(12)]
        assert smurfing_check(_ctx(rows, profile), profile) == {"hits": [], "metrics": {}}

    def test_structuring_window_uses_densest_run(self) -> None:
        profile = derive_profile(
            GENERIC_USD, structuring=GENERIC_USD.structuring.model_copy(update={"window_hours": 24}),
        )
        dates = ["2024-02-01T09:00:00", "2024-02-03T09:00:00", "2024-02-03T18:00:00",
                 "2024-02-04T08:00:00", "2024-02-09T09:00:00"]
        txns = tuple(
            Transaction(id=f"W{i}", amount=Decimal("9400"), currency="USD", date=d, country="US")
            for i, d in enumerate(dates)
        )
        case = CaseData(case_id="WIN", customer=CustomerProfile(id="C1", name="Subject"), transactions=txns)
        result = structuring_check(build_context(case, profile), profile)
        assert result["metrics"]["structuring_transaction_ids"] == ["W1", "W2", "W3"]
        assert result["metrics"]["structuring_pattern"] == {"count": 3, "total": Decimal("28200")}
        assert result["hits"][0]["message"].endswith("within 24 hours")

        spread = derive_profile(
            GENERIC_USD, structuring=GENERIC_USD.structuring.model_copy(update={"window_hours": 6}),
        )
        assert structuring_check(build_context(case, spread), spread)["hits"] == []
        # no window: all five in-band transactions count
        assert structuring_check(build_context(case, GENERIC_USD), GENERIC_USD)["metrics"][
            "structuring_pattern"]["count"] == 5

    def test_smurfing_window(self) -> None:
        profile = derive_profile(
            GENERIC_USD, smurfing=GENERIC_USD.smurfing.model_copy(update={"window_hours": 5}),
        )
        rows = [(f"T{i}", "900", "US") for i in range(12)]
        assert smurfing_check(_ctx(rows, profile), profile)["hits"] == []
        wide = derive_profile(
            GENERIC_USD, smurfing=GENERIC_USD.smurfing.model_copy(update={"window_hours": 11}),
        )
        result = smurfing_check(_ctx(rows, wide), wide)
        assert result["metrics"]["smurfing_pattern"]["count"] == 12


class TestProfileChecks:
    def test_percent_deviation_bands_exclusive(self) -> None:
        ctx = _ctx([("T1", "130000", "US")], expected_monthly_volume=Decimal("20000"))
        result = deviation_check(ctx, GENERIC_USD)
        assert _rules(result) == ["deviation_extreme"]
        assert result["metrics"]["baseline_deviation_percent"] == 550

    def test_percent_deviation_high(self) -> None:
        ctx = _ctx([("T1", "70000", "US")], expected_monthly_volume=Decimal("20000"))
        result = deviation_check(ctx, GENERIC_USD)
        assert _rules(result) == ["deviation_high"]

    def test_ratio_against_annual_income(self) -> None:
        ctx = _ctx([("T1", "3000000", "IN")], INDIA_INR, annual_income=Decimal("1000000"))
        result = deviation_check(ctx, INDIA_INR)
        assert _rules(result) == ["deviation_high"]
        assert result["metrics"]["income_multiplier"] == Decimal("3.00")

    @pytest.mark.parametrize("stated", [None, Decimal("0")])
    def test_missing_baseline_uses_default(self, stated: Decimal | None) -> None:
        ctx = _ctx([("T1", "10", "US")], expected_monthly_volume=stated)
        assert resolve_baseline(ctx, GENERIC_USD) == GENERIC_USD.deviation.default_baseline

    def test_occupation_inconsistency(self) -> None:
        ctx = _ctx([("T1", "60000", "US")], occupation="Full-time Student")
        assert _rules(occupation_check(ctx, GENERIC_USD)) == ["profile_inconsistency"]

    def test_occupation_floor_is_exclusive(self) -> None:
        ctx = _ctx([("T1", "50000", "US")], occupation="retired")
        assert occupation_check(ctx, GENERIC_USD)["hits"] == []

    def test_occupation_missing(self) -> None:
        ctx = _ctx([("T1", "600000", "US")], occupation=None)
        assert occupation_check(ctx, GENERIC_USD)["hits"] == []


class TestHeuristicChecks:
    def test_round_amount_any(self) -> None:
        ctx = _ctx([("T1", "5000", "US"), ("T2", "1234", "US")])
        result = round_amount_check(ctx, GENERIC_USD)
        assert _rules(result) == ["round_amount"]
        assert result["metrics"]["round_amount_count"] == 1

    def test_round_amount_minimum_count(self) -> None:
        rows = [("T1", "200000", "IN"), ("T2", "300000", "IN")]
        assert round_amount_check(_ctx(rows, INDIA_INR), INDIA_INR)["hits"] == []
        rows.append(("T3", "700000", "IN"))
        assert _rules(round_amount_check(_ctx(rows, INDIA_INR), INDIA_INR)) == ["round_amount"]

    def test_round_predicate_on_very_large_amount(self) -> None:
        assert GENERIC_USD.round_amounts.matches(Decimal("1e40"))
        assert not GENERIC_USD.round_amounts.matches(Decimal("1" + "0" * 39 + "1"))

    def test_custom_round_predicate(self) -> None:
        class EndsIn999(RoundAmountRule):
            def matches(self, amount: Decimal) -> bool:
                return amount % 1000 == 999

        profile = derive_profile(GENERIC_USD, round_amounts=EndsIn999(min_count=1))
        result = round_amount_check(_ctx([("T1", "4999", "US")], profile), profile)
        assert _rules(result) == ["round_amount"]

    def test_cash_threshold(self) -> None:
        ctx = _ctx([("T1", "6000", "US"), ("T2", "4000", "US")], first_type="Cash Deposit")
        result = cash_check(ctx, GENERIC_USD)
        # Only the first transaction is cash, below the 10,000 aggregate.
        assert result["hits"] == []
        assert result["metrics"]["cash_transaction_count"] == 1

    def test_cash_detected_from_type(self) -> None:
        ctx = _ctx([("T1", "12000", "US")], first_type="CASH deposit")
        result = cash_check(ctx, GENERIC_USD)
        assert _rules(result) == ["cash_transaction"]
        assert result["hits"][0]["typology"] == GENERIC_USD.typologies.cash_placement

    def test_cash_predicate_description(self) -> None:
        rule = CashChannelRule(threshold=Decimal("1"))
        txn = Transaction(id="T", amount=Decimal("1"), currency="USD", date="2024-01-01",
                          type="deposit", description="Cash at branch")
        assert rule.matches(txn)
        assert not rule.model_copy(update={"check_description": False}).matches(txn)


class TestVelocityCheck:
    def test_span_in_hours(self) -> None:
        ctx = _ctx([("T1", "10", "US"), ("T2", "10", "US"), ("T3", "10", "US")])
        assert transaction_span(ctx, "hours") == 2.0

    def test_extreme_velocity(self) -> None:
        rows = [(f"T{i}", "10", "US") for i in range(10)]
        result = velocity_check(_ctx(rows), GENERIC_USD)
        assert _rules(result) == ["velocity_extreme"]
        assert result["metrics"]["transaction_window_hours"] == 9.0

    def test_high_velocity(self) -> None:
        rows = [(f"T{i}", "10", "US") for i in range(6)]
        assert _rules(velocity_check(_ctx(rows), GENERIC_USD)) == ["velocity_high"]

    def test_single_transaction_never_fires(self) -> None:
        result = velocity_check(_ctx([("T1", "10", "US")]), GENERIC_USD)
        assert result["hits"] == []
        assert result["metrics"]["transaction_window_hours"] == 0
