"""Case Intake — maps uploaded customer records onto normalized CaseData.

This module performs pure Python data transformation.  Field defaults for
missing optional values come from the risk profile and are applied here,
before the evaluator ever sees the case.
"""

from __future__ import annotations

import json
import logging
import random
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from sar_engine.audit import AuditEvent, AuditSink, EventType, evaluate_with_audit
from sar_engine.config import Settings, get_settings
from sar_engine.core.errors import MalformedInputError
from sar_engine.core.models import CaseData, CustomerProfile, RuleEngineOutput, Transaction
from sar_engine.core.profiles import RiskProfile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScreeningResult:
    case: CaseData
    output: RuleEngineOutput
    requires_sar: bool


def new_case_id(now: datetime | None = None) -> str:
    """Generate a display case id such as ``SAR-2024-123456-042``."""
    now = now or datetime.now(timezone.utc)
    millis = str(int(time.time() * 1000))[-6:]
    return f"SAR-{now.year}-{millis}-{random.randint(0, 999):03d}"


def _first_invalid_transaction(exc: ValidationError, raw_txns: list[Any]) -> str | None:
    for err in exc.errors():
        loc = err.get("loc", ())
        if len(loc) >= 2 and loc[0] == "transactions" and isinstance(loc[1], int):
            raw = raw_txns[loc[1]] if loc[1] < len(raw_txns) else {}
            return str(raw.get("transaction_id") or loc[1]) if isinstance(raw, dict) else str(loc[1])
    return None


def ingest_customer(
    raw: dict[str, Any],
    profile: RiskProfile,
    case_id: str | None = None,
) -> CaseData:
    """Build a CaseData from one uploaded customer record.

    Raises:
        MalformedInputError: the record is missing required fields or a
            transaction value cannot be validated.
    """
    customer_id = raw.get("customer_id")
    raw_txns = raw.get("transactions")
    if not customer_id or not isinstance(raw_txns, list):
        raise MalformedInputError(
            f"Customer record {customer_id or 'unknown'} needs a customer_id and a transactions list",
            field="customer_id" if not customer_id else "transactions",
        )

    defaults = profile.intake
    payload = {
        "case_id": case_id or new_case_id(),
        "alert_date": raw.get("alert_date") or datetime.now(timezone.utc).isoformat(),
        "customer": {
            "id": customer_id,
            "name": raw.get("full_name") or raw.get("name") or "Unknown",
            "occupation": raw.get("occupation") or defaults.occupation,
            "annual_income": raw.get("annual_income") or defaults.annual_income,
            "expected_monthly_volume": (
                raw.get("expected_monthly_volume") or defaults.expected_monthly_volume
            ),
            "risk_rating": raw.get("risk_rating"),
            "date_of_birth": raw.get("date_of_birth"),
            "tax_id": raw.get("pan") or raw.get("tax_id"),
            "address": raw.get("address"),
        },
        "transactions": [
            {
                "id": txn.get("transaction_id") or txn.get("id") or f"TXN-{idx + 1}",
                "amount": txn.get("amount"),
                "currency": txn.get("currency") or defaults.currency,
                "date": txn.get("date"),
                "counterparty": txn.get("counterparty") or "",
                "country": txn.get("counterparty_country") or txn.get("country") or defaults.country,
                "type": txn.get("type") or "",
                "description": txn.get("description") or "",
            }
            for idx, txn in enumerate(raw_txns)
            if isinstance(txn, dict)
        ],
    }
    if len(payload["transactions"]) != len(raw_txns):
        raise MalformedInputError(
            f"Customer {customer_id}: every transaction must be a JSON object",
            field="transactions",
        )

    try:
        case = CaseData.model_validate(payload)
    except ValidationError as exc:
        txn_id = _first_invalid_transaction(exc, raw_txns)
        raise MalformedInputError(
            f"Customer {customer_id}: invalid case data: {exc}",
            transaction_id=txn_id,
        ) from exc

    logger.info(
        "Ingested customer %s as case %s: %d transactions",
        customer_id, case.case_id, len(case.transactions),
    )
    return case


def ingest_batch(payload: dict[str, Any], profile: RiskProfile) -> list[CaseData]:
    """Ingest every valid customer of an upload payload, skipping unusable records."""
    customers = payload.get("customers") if isinstance(payload, dict) else None
    if not isinstance(customers, list):
        raise MalformedInputError('Invalid format: "customers" array required', field="customers")

    cases: list[CaseData] = []
    for record in customers:
        if (
            not isinstance(record, dict)
            or not record.get("customer_id")
            or not isinstance(record.get("transactions"), list)
        ):
            cid = record.get("customer_id") if isinstance(record, dict) else None
            logger.warning("Skipping invalid customer: %s", cid or "unknown")
            continue
        cases.append(ingest_customer(record, profile))

    logger.info("Batch ingestion complete: %d of %d customers", len(cases), len(customers))
    return cases


def case_from_dict(raw: dict[str, Any], source: str = "case") -> CaseData:
    """Validate a document already in CaseData shape."""
    try:
        return CaseData.model_validate(raw)
    except ValidationError as exc:
        raise MalformedInputError(f"{source} is not valid case data: {exc}") from exc


def load_case(path: str | Path) -> CaseData:
    """Load a single case already in CaseData shape from a JSON file."""
    p = Path(path)
    return case_from_dict(json.loads(p.read_text(encoding="utf-8")), source=f"Case file {p.name}")


def screen_batch(
    payload: dict[str, Any],
    profile: RiskProfile,
    sink: AuditSink,
    settings: Settings | None = None,
) -> list[ScreeningResult]:
    """Ingest, evaluate and audit every customer, flagging cases that need a SAR."""
    settings = settings or get_settings()
    results: list[ScreeningResult] = []

    for case in ingest_batch(payload, profile):
        sink.emit(AuditEvent(
            case_id=case.case_id,
            event_type=EventType.INGESTION_COMPLETE,
            description=f"Data ingestion completed using profile {profile.rule_engine_version}",
            detail_payload={"customer_id": case.customer.id},
        ))
        output = evaluate_with_audit(case, profile, sink)
        requires_sar = output.aggregated_risk_score >= settings.sar_score_threshold
        if requires_sar:
            sink.emit(AuditEvent(
                case_id=case.case_id,
                event_type=EventType.CASE_CREATED,
                description="Case created from file upload",
                detail_payload={
                    "customer_id": case.customer.id,
                    "risk_score": output.aggregated_risk_score,
                },
            ))
        results.append(ScreeningResult(case=case, output=output, requires_sar=requires_sar))

    flagged = sum(1 for r in results if r.requires_sar)
    logger.info("Screened %d customers, %d require a SAR", len(results), flagged)
    return results
