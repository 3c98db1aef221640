"""Swappable transaction predicates for the heuristic rules.

Round-amount and cash-channel detection are weak heuristics whose meaning
differs by jurisdiction (a "round" INR amount is a lakh multiple, a "round"
USD amount is a thousand multiple).  Profiles carry one instance of each and
may substitute a subclass with a different ``matches`` implementation.
"""

from __future__ import annotations

from decimal import Decimal, localcontext
from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field

from sar_engine.core.models import Transaction


class AmountPredicate(Protocol):
    def matches(self, amount: Decimal) -> bool: ...


class TransactionPredicate(Protocol):
    def matches(self, txn: Transaction) -> bool: ...


class RoundAmountRule(BaseModel):
    """Flags amounts from a fixed list or divisible by a round unit."""

    model_config = ConfigDict(frozen=True)

    values: frozenset[Decimal] = frozenset()
    unit: Decimal | None = Field(default=None, gt=0)
    min_count: int = Field(default=1, ge=1)

    def matches(self, amount: Decimal) -> bool:
        if amount <= 0:
            return False
        if amount in self.values:
            return True
        if self.unit is None:
            return False
        # remainder traps once the integer quotient outgrows the context precision
        with localcontext() as ctx:
            ctx.prec = max(ctx.prec, amount.adjusted() - self.unit.adjusted() + 2)
            return amount % self.unit == 0


class CashChannelRule(BaseModel):
    """Flags transactions whose channel text indicates cash."""

    model_config = ConfigDict(frozen=True)

    keywords: tuple[str, ...] = ("cash",)
    check_description: bool = True
    threshold: Decimal = Field(gt=0)

    def matches(self, txn: Transaction) -> bool:
        texts = [txn.type or ""]
        if self.check_description:
            texts.append(txn.description or "")
        haystack = " ".join(texts).lower()
        return any(k.lower() in haystack for k in self.keywords)
