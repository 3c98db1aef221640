"""Audit events for rule evaluation.

The evaluator has no side effects; callers wrap it with
:func:`evaluate_with_audit` to record that an evaluation happened.  Storage
of the events is left to the injected :class:`AuditSink`.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol

from pydantic import BaseModel, Field

from sar_engine.core.errors import MalformedInputError
from sar_engine.core.models import CaseData, RuleEngineOutput
from sar_engine.core.profiles import RiskProfile
from sar_engine.rules.engine import evaluate

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    CASE_CREATED = "CASE_CREATED"
    INGESTION_COMPLETE = "INGESTION_COMPLETE"
    RULE_EVALUATION = "RULE_EVALUATION"
    EVALUATION_FAILED = "EVALUATION_FAILED"


class AuditEvent(BaseModel):
    case_id: str
    event_type: EventType
    description: str
    user_id: str = "system"
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    detail_payload: dict[str, Any] = Field(default_factory=dict)


class AuditSink(Protocol):
    def emit(self, event: AuditEvent) -> None: ...


class LoggingAuditSink:
    """Writes audit events to the ``sar_engine.audit`` logger."""

    def __init__(self, level: int = logging.INFO) -> None:
        self.level = level

    def emit(self, event: AuditEvent) -> None:
        logger.log(
            self.level,
            "AUDIT %s case=%s user=%s: %s",
            event.event_type.value,
            event.case_id,
            event.user_id,
            event.description,
        )


class MemoryAuditSink:
    """Collects events in memory, for batch callers and tests."""

    def __init__(self) -> None:
        self.events: list[AuditEvent] = []

    def emit(self, event: AuditEvent) -> None:
        self.events.append(event)


def rule_evaluation_event(output: RuleEngineOutput, user_id: str = "system") -> AuditEvent:
    return AuditEvent(
        case_id=output.case_id,
        event_type=EventType.RULE_EVALUATION,
        description=(
            f"Rule engine evaluation completed: Risk Score {output.aggregated_risk_score}/100"
        ),
        user_id=user_id,
        detail_payload={
            "rule_engine_version": output.rule_engine_version,
            "risk_score": output.aggregated_risk_score,
            "triggered_rules": list(output.triggered_rules),
            "final_classification": output.final_classification,
        },
    )


def evaluate_with_audit(
    case: CaseData,
    profile: RiskProfile,
    sink: AuditSink,
    user_id: str = "system",
) -> RuleEngineOutput:
    """Evaluate ``case`` and record the outcome through ``sink``.

    A malformed case is recorded as EVALUATION_FAILED and the error re-raised.
    """
    try:
        output = evaluate(case, profile)
    except MalformedInputError as exc:
        sink.emit(AuditEvent(
            case_id=case.case_id,
            event_type=EventType.EVALUATION_FAILED,
            description=f"Rule engine rejected case input: {exc}",
            user_id=user_id,
            detail_payload={
                "transaction_id": exc.transaction_id,
                "field": exc.field,
                "value": str(exc.value),
            },
        ))
        raise

    sink.emit(rule_evaluation_event(output, user_id=user_id))
    return output
