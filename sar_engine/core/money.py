"""Monetary helpers shared by the rule messages and the CLI."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, localcontext

CENT = Decimal("0.01")


def quantize(amount: Decimal, exp: Decimal = CENT) -> Decimal:
    """Round half-up to ``exp``, widening precision so large finite amounts never trap."""
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, amount.adjusted() - exp.as_tuple().exponent + 2)
        return amount.quantize(exp, rounding=ROUND_HALF_UP)


def _group_indian(digits: str) -> str:
    # 12345678 -> 1,23,45,678
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ",".join(groups) + "," + tail


def format_amount(amount: Decimal, currency: str, grouping: str = "western") -> str:
    """Render ``amount`` as e.g. ``USD 9,500.00`` or ``INR 9,00,000.00``."""
    value = quantize(amount)
    sign = "-" if value < 0 else ""
    whole, _, cents = f"{abs(value):.2f}".partition(".")
    if grouping == "indian":
        whole = _group_indian(whole)
    else:
        whole = f"{int(whole):,}"
    return f"{currency} {sign}{whole}.{cents}"
