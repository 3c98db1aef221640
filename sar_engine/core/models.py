"""Pydantic data models for case input and rule engine output."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ── Input Models (normalized case data) ──


class Transaction(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    amount: Decimal
    currency: str
    # Parsed by the evaluator so a bad value is reported against this id.
    date: str | datetime
    counterparty: str = ""
    country: str = ""
    type: str = ""
    description: str | None = None


class CustomerProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    occupation: str | None = None
    annual_income: Decimal | None = None
    expected_monthly_volume: Decimal | None = None
    risk_rating: str | None = None
    # Carried through to downstream consumers, never scored.
    date_of_birth: str | None = None
    tax_id: str | None = None
    address: str | None = None


class CaseData(BaseModel):
    """Top-level input: one customer and the transactions under review."""

    model_config = ConfigDict(frozen=True)

    case_id: str
    customer: CustomerProfile
    transactions: tuple[Transaction, ...] = ()
    alert_date: str | None = None


# ── Output Models ──


class RuleEngineOutput(BaseModel):
    """Complete result of one evaluation."""

    model_config = ConfigDict(frozen=True)

    case_id: str
    execution_timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    rule_engine_version: str
    triggered_rules: list[str] = Field(default_factory=list)
    calculated_metrics: dict[str, Any] = Field(default_factory=dict)
    typology_tags: list[str] = Field(default_factory=list)
    aggregated_risk_score: int = Field(ge=0, le=100)
    score_breakdown: dict[str, int] = Field(default_factory=dict)
    suspicion_summary_json: dict[str, Any] = Field(default_factory=dict)
    final_classification: str
