"""Risk profiles: versioned, read-only parameter sets for the rule engine.

A profile bundles every threshold, weight, list and label the evaluator
consults.  Profiles are validated once when constructed or loaded; an
evaluation never mutates them, so one instance can be shared freely.
"""

from __future__ import annotations

import json
import logging
from decimal import Decimal
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from sar_engine.config import Settings, get_settings
from sar_engine.core.errors import ConfigurationError
from sar_engine.core.predicates import CashChannelRule, RoundAmountRule

logger = logging.getLogger(__name__)


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class AmountTiers(_Frozen):
    """Minimum normalized amount per tier; the highest matching tier wins."""

    critical: Decimal = Field(gt=0)
    large: Decimal = Field(gt=0)
    significant: Decimal = Field(gt=0)


class StructuringConfig(_Frozen):
    """Band just below a reporting threshold, inclusive at both ends."""

    lower: Decimal = Field(ge=0)
    upper: Decimal = Field(gt=0)
    min_count: int = Field(ge=1)
    reporting_threshold: Decimal = Field(gt=0)
    # None counts across the whole case
    window_hours: float | None = Field(default=None, gt=0)


class SmurfingConfig(_Frozen):
    below: Decimal = Field(gt=0)
    min_count: int = Field(ge=1)
    window_hours: float | None = Field(default=None, gt=0)


class DeviationConfig(_Frozen):
    """Total activity measured against the customer's stated baseline.

    ``percent`` is ``(total - baseline) / baseline * 100``; ``ratio`` is
    ``total / baseline``.  A band fires when the measure is strictly above
    its threshold.
    """

    baseline: Literal["expected_monthly_volume", "annual_income"]
    measure: Literal["percent", "ratio"]
    high: Decimal
    extreme: Decimal
    default_baseline: Decimal = Field(gt=0)


class OccupationConfig(_Frozen):
    low_income_occupations: tuple[str, ...]
    floor: Decimal = Field(ge=0)


class VelocityTier(_Frozen):
    min_count: int
    max_span: float = Field(ge=0)


class VelocityConfig(_Frozen):
    unit: Literal["hours", "days"]
    extreme: VelocityTier
    high: VelocityTier


class RiskWeights(_Frozen):
    critical_amount: int = Field(ge=0)
    large_amount: int = Field(ge=0)
    significant_amount: int = Field(ge=0)
    high_risk_jurisdiction: int = Field(ge=0)
    medium_risk_jurisdiction: int = Field(ge=0)
    structuring: int = Field(ge=0)
    smurfing: int = Field(default=0, ge=0)
    deviation_extreme: int = Field(ge=0)
    deviation_high: int = Field(ge=0)
    round_amount: int = Field(ge=0)
    cash_transaction: int = Field(default=0, ge=0)
    profile_inconsistency: int = Field(ge=0)
    velocity_extreme: int = Field(ge=0)
    velocity_high: int = Field(ge=0)


class ClassificationBands(_Frozen):
    critical: int = 75
    high: int = 50
    medium: int = 25
    low: int = 0
    critical_label: str = "SAR Required - Critical Risk"
    high_label: str = "SAR Required - High Risk"
    medium_label: str = "Enhanced Monitoring Required"
    low_label: str = "False Positive - Close Case"


class TypologyLabels(_Frozen):
    structuring: str = "Structuring / Smurfing"
    smurfing: str = "Micro-Structuring"
    sanctions_evasion: str = "Sanctions Evasion"
    cross_border: str = "High-Risk Cross-Border Transfers"
    cash_placement: str = "Cash Placement"
    layering: str = "Layering"
    trade_based: str = "Trade-Based Money Laundering"
    integration: str = "Integration"
    terrorist_financing: str = "Potential Terrorist Financing"
    tax_evasion: str = "Tax Evasion Indicators"
    fraud: str = "Fraud Indicators"


class IntakeDefaults(_Frozen):
    """Field defaults the intake layer applies before evaluation."""

    currency: str
    country: str
    occupation: str = "Unknown"
    annual_income: Decimal = Field(gt=0)
    expected_monthly_volume: Decimal = Field(gt=0)


class RiskProfile(_Frozen):
    """A complete configuration snapshot for one currency/jurisdiction."""

    name: str
    version: str
    reference_currency: str
    conversion_rates: dict[str, Decimal]
    amount_grouping: Literal["western", "indian"] = "western"
    date_formats: tuple[str, ...] = ()

    high_risk_countries: frozenset[str]
    medium_risk_countries: frozenset[str]

    amount_tiers: AmountTiers
    structuring: StructuringConfig
    smurfing: SmurfingConfig | None = None
    deviation: DeviationConfig
    round_amounts: RoundAmountRule
    cash: CashChannelRule | None = None
    occupation: OccupationConfig
    velocity: VelocityConfig

    weights: RiskWeights
    bands: ClassificationBands = ClassificationBands()
    typologies: TypologyLabels = TypologyLabels()
    summary_concerns: int = Field(default=5, ge=1)
    intake: IntakeDefaults

    @model_validator(mode="after")
    def _check_invariants(self) -> "RiskProfile":
        # ConfigurationError is not a ValueError, so pydantic lets it through.
        problems = _profile_problems(self)
        if problems:
            raise ConfigurationError(
                f"Risk profile '{self.name}' is invalid: " + "; ".join(problems)
            )
        return self

    @property
    def rule_engine_version(self) -> str:
        return f"{self.name}/{self.version}"

    def rate_for(self, currency: str) -> Decimal | None:
        return self.conversion_rates.get(currency.strip().upper())


def _profile_problems(p: RiskProfile) -> list[str]:
    problems: list[str] = []

    ref = p.reference_currency.upper()
    if p.conversion_rates.get(ref) != 1:
        problems.append(f"reference currency {ref} must have conversion rate 1")
    if any(c != c.upper() for c in p.conversion_rates):
        problems.append("conversion table currency codes must be upper-case")
    if any(rate <= 0 for rate in p.conversion_rates.values()):
        problems.append("conversion rates must be positive")

    overlap = p.high_risk_countries & p.medium_risk_countries
    if overlap:
        problems.append(
            f"jurisdiction sets overlap: {', '.join(sorted(overlap))}"
        )

    tiers = p.amount_tiers
    if not tiers.critical > tiers.large > tiers.significant:
        problems.append("amount tiers must satisfy critical > large > significant")

    s = p.structuring
    if s.lower > s.upper:
        problems.append("structuring band lower bound exceeds upper bound")
    if s.upper >= s.reporting_threshold:
        problems.append("structuring band must sit below the reporting threshold")

    if p.deviation.extreme <= p.deviation.high:
        problems.append("extreme deviation threshold must exceed the high threshold")

    v = p.velocity
    if v.extreme.min_count < 2 or v.high.min_count < 2:
        problems.append("velocity tiers need at least two transactions")

    b = p.bands
    if not 0 <= b.low < b.medium < b.high < b.critical <= 100:
        problems.append(
            "classification bands must ascend: 0 <= low < medium < high < critical <= 100"
        )

    if p.intake.currency.upper() not in p.conversion_rates:
        problems.append("intake default currency has no conversion rate")

    return problems


# ── Built-in profiles ──

GENERIC_USD = RiskProfile(
    name="generic-USD",
    version="1.0.0",
    reference_currency="USD",
    conversion_rates={
        "USD": Decimal("1"),
        "EUR": Decimal("1.08"),
        "GBP": Decimal("1.27"),
        "CAD": Decimal("0.73"),
        "AED": Decimal("0.27"),
        "INR": Decimal("0.012"),
    },
    amount_grouping="western",
    date_formats=("%m/%d/%Y", "%m/%d/%Y %H:%M"),
    high_risk_countries=frozenset({"KP", "IR", "MM", "KY"}),
    medium_risk_countries=frozenset({"PK", "YE", "UG", "PH"}),
    amount_tiers=AmountTiers(
        critical=Decimal("100000"),
        large=Decimal("50000"),
        significant=Decimal("25000"),
    ),
    structuring=StructuringConfig(
        lower=Decimal("8500"),
        upper=Decimal("9999.99"),
        min_count=3,
        reporting_threshold=Decimal("10000"),
    ),
    smurfing=SmurfingConfig(below=Decimal("3000"), min_count=10),
    deviation=DeviationConfig(
        baseline="expected_monthly_volume",
        measure="percent",
        high=Decimal("200"),
        extreme=Decimal("500"),
        default_baseline=Decimal("20000"),
    ),
    round_amounts=RoundAmountRule(
        values=frozenset(
            Decimal(v) for v in ("1000", "5000", "10000", "25000", "50000", "100000")
        ),
        unit=Decimal("10000"),
        min_count=1,
    ),
    cash=CashChannelRule(keywords=("cash",), threshold=Decimal("10000")),
    occupation=OccupationConfig(
        low_income_occupations=("student", "unemployed", "retired"),
        floor=Decimal("50000"),
    ),
    velocity=VelocityConfig(
        unit="hours",
        extreme=VelocityTier(min_count=10, max_span=24),
        high=VelocityTier(min_count=5, max_span=72),
    ),
    weights=RiskWeights(
        critical_amount=40,
        large_amount=30,
        significant_amount=20,
        high_risk_jurisdiction=35,
        medium_risk_jurisdiction=20,
        structuring=40,
        smurfing=25,
        deviation_extreme=20,
        deviation_high=10,
        round_amount=10,
        cash_transaction=15,
        profile_inconsistency=15,
        velocity_extreme=20,
        velocity_high=10,
    ),
    bands=ClassificationBands(critical=75, high=50, medium=25, low=0),
    intake=IntakeDefaults(
        currency="USD",
        country="US",
        annual_income=Decimal("60000"),
        expected_monthly_volume=Decimal("20000"),
    ),
)

INDIA_INR = RiskProfile(
    name="india-INR",
    version="2.0.0",
    reference_currency="INR",
    conversion_rates={
        "INR": Decimal("1"),
        "USD": Decimal("83"),
        "EUR": Decimal("90"),
        "GBP": Decimal("105"),
        "AED": Decimal("22.6"),
        "SGD": Decimal("61.5"),
    },
    amount_grouping="indian",
    date_formats=("%d/%m/%Y", "%d-%m-%Y", "%d/%m/%Y %H:%M"),
    high_risk_countries=frozenset({"KP", "IR", "MM"}),
    medium_risk_countries=frozenset({"PK", "AF", "YE", "SY", "KY", "AE"}),
    amount_tiers=AmountTiers(
        critical=Decimal("5000000"),
        large=Decimal("1000000"),
        significant=Decimal("500000"),
    ),
    structuring=StructuringConfig(
        lower=Decimal("850000"),
        upper=Decimal("990000"),
        min_count=3,
        reporting_threshold=Decimal("1000000"),
    ),
    smurfing=SmurfingConfig(below=Decimal("50000"), min_count=10),
    deviation=DeviationConfig(
        baseline="annual_income",
        measure="ratio",
        high=Decimal("2"),
        extreme=Decimal("5"),
        default_baseline=Decimal("1200000"),
    ),
    round_amounts=RoundAmountRule(
        values=frozenset(
            Decimal(v) for v in ("100000", "500000", "1000000", "2500000", "5000000", "10000000")
        ),
        unit=Decimal("100000"),
        min_count=3,
    ),
    cash=CashChannelRule(keywords=("cash", "atm"), threshold=Decimal("1000000")),
    occupation=OccupationConfig(
        low_income_occupations=("student", "unemployed", "retired", "homemaker", "housewife"),
        floor=Decimal("1000000"),
    ),
    velocity=VelocityConfig(
        unit="days",
        extreme=VelocityTier(min_count=20, max_span=2),
        high=VelocityTier(min_count=10, max_span=7),
    ),
    weights=RiskWeights(
        critical_amount=40,
        large_amount=30,
        significant_amount=20,
        high_risk_jurisdiction=35,
        medium_risk_jurisdiction=20,
        structuring=40,
        smurfing=25,
        deviation_extreme=25,
        deviation_high=15,
        round_amount=10,
        cash_transaction=20,
        profile_inconsistency=20,
        velocity_extreme=20,
        velocity_high=10,
    ),
    bands=ClassificationBands(critical=80, high=60, medium=40, low=0),
    # Both structuring checks report under the single FIU-IND category.
    typologies=TypologyLabels(smurfing="Structuring / Smurfing"),
    intake=IntakeDefaults(
        currency="INR",
        country="IN",
        annual_income=Decimal("1200000"),
        expected_monthly_volume=Decimal("100000"),
    ),
)

BUILTIN_PROFILES: dict[str, RiskProfile] = {
    GENERIC_USD.name: GENERIC_USD,
    INDIA_INR.name: INDIA_INR,
}


# ── Loading ──


def profile_from_dict(data: dict[str, Any]) -> RiskProfile:
    """Validate a raw mapping into a profile, reporting any failure as ConfigurationError."""
    try:
        return RiskProfile.model_validate(data)
    except ValidationError as exc:
        name = data.get("name", "<unnamed>") if isinstance(data, dict) else "<unnamed>"
        raise ConfigurationError(f"Risk profile '{name}' is invalid: {exc}") from exc


def derive_profile(base: RiskProfile, **overrides: Any) -> RiskProfile:
    """Return a validated copy of ``base`` with top-level fields replaced.

    Nested sections must be passed whole, either as models or as mappings.
    """
    data: dict[str, Any] = {
        field: getattr(base, field) for field in RiskProfile.model_fields
    }
    data.update(overrides)
    return profile_from_dict(data)


def load_profile(path: str | Path) -> RiskProfile:
    """Load a profile from a JSON file."""
    p = Path(path)
    try:
        raw = json.loads(p.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Risk profile file not found: {p}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Risk profile file {p} is not valid JSON: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Risk profile file {p} must contain a JSON object")

    profile = profile_from_dict(raw)
    logger.info("Loaded risk profile %s from %s", profile.rule_engine_version, p.name)
    return profile


def get_profile(name: str | None = None, settings: Settings | None = None) -> RiskProfile:
    """Resolve a profile by name: built-ins first, then ``<profiles_dir>/<name>.json``."""
    settings = settings or get_settings()
    name = name or settings.default_profile

    if name in BUILTIN_PROFILES:
        return BUILTIN_PROFILES[name]

    candidate = settings.profiles_dir / f"{name}.json"
    if candidate.exists():
        return load_profile(candidate)

    known = ", ".join(sorted(BUILTIN_PROFILES))
    raise ConfigurationError(f"Unknown risk profile '{name}' (built-in: {known})")
