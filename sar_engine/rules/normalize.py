"""Currency and date normalization ahead of rule evaluation.

Every later check works on :class:`NormalizedTransaction` values: the amount
converted into the profile's reference currency and the date resolved to an
aware UTC instant.  Anything that cannot be normalized raises
:class:`MalformedInputError` naming the offending transaction.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, DecimalException

from sar_engine.core.errors import MalformedInputError
from sar_engine.core.models import CaseData, CustomerProfile, Transaction
from sar_engine.core.money import quantize
from sar_engine.core.profiles import RiskProfile


@dataclass(frozen=True)
class NormalizedTransaction:
    source: Transaction
    amount: Decimal
    timestamp: datetime
    country: str

    @property
    def id(self) -> str:
        return self.source.id


@dataclass(frozen=True)
class EvaluationContext:
    """Everything a rule check may read; built once per evaluation."""
    case_id: str
    customer: CustomerProfile
    transactions: tuple[NormalizedTransaction, ...]
    total: Decimal
    currency: str


def parse_timestamp(
    value: str | datetime,
    formats: tuple[str, ...] = (),
    transaction_id: str | None = None,
) -> datetime:
    """Parse an ISO-8601 value (or one of ``formats``) to an aware UTC datetime."""
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        parsed = None
        if text:
            try:
                parsed = datetime.fromisoformat(text)
            except ValueError:
                for fmt in formats:
                    try:
                        parsed = datetime.strptime(text, fmt)
                        break
                    except ValueError:
                        continue
        if parsed is None:
            raise MalformedInputError(
                f"Transaction {transaction_id}: unparseable date {value!r}",
                transaction_id=transaction_id,
                field="date",
                value=value,
            )

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def convert_amount(txn: Transaction, profile: RiskProfile) -> Decimal:
    """Convert ``txn.amount`` into the profile's reference currency."""
    amount = txn.amount
    if not amount.is_finite() or amount < 0:
        raise MalformedInputError(
            f"Transaction {txn.id}: amount must be a finite non-negative number, got {amount}",
            transaction_id=txn.id,
            field="amount",
            value=amount,
        )

    rate = profile.rate_for(txn.currency)
    if rate is None:
        raise MalformedInputError(
            f"Transaction {txn.id}: no conversion rate for currency {txn.currency!r} "
            f"in profile {profile.name}",
            transaction_id=txn.id,
            field="currency",
            value=txn.currency,
        )
    try:
        return quantize(amount * rate)
    except DecimalException as exc:
        raise MalformedInputError(
            f"Transaction {txn.id}: amount {amount} is out of range after conversion",
            transaction_id=txn.id,
            field="amount",
            value=amount,
        ) from exc


def normalize_transaction(txn: Transaction, profile: RiskProfile) -> NormalizedTransaction:
    return NormalizedTransaction(
        source=txn,
        amount=convert_amount(txn, profile),
        timestamp=parse_timestamp(txn.date, profile.date_formats, transaction_id=txn.id),
        country=(txn.country or "").strip().upper(),
    )


def build_context(case: CaseData, profile: RiskProfile) -> EvaluationContext:
    """Normalize every transaction of ``case``; the case itself is left untouched."""
    txns = tuple(normalize_transaction(t, profile) for t in case.transactions)
    return EvaluationContext(
        case_id=case.case_id,
        customer=case.customer,
        transactions=txns,
        total=sum((t.amount for t in txns), Decimal("0")),
        currency=profile.reference_currency,
    )
