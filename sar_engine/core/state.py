"""Intermediate result shapes passed from the rule checks to the evaluator."""

from __future__ import annotations

from typing import Any, TypedDict


class RuleHit(TypedDict):
    """A single rule that fired, with its point contribution."""
    rule: str
    message: str
    weight: int
    typology: str | None


class CheckResult(TypedDict):
    """Output of one rule check: the hits it produced and the metrics it derived."""
    hits: list[RuleHit]
    metrics: dict[str, Any]


def hit(rule: str, message: str, weight: int, typology: str | None = None) -> RuleHit:
    return {"rule": rule, "message": message, "weight": weight, "typology": typology}


def merge_metrics(left: dict[str, Any], right: dict[str, Any]) -> dict[str, Any]:
    """Merge check metrics; a key produced twice is a programming error."""
    clash = left.keys() & right.keys()
    assert not clash, f"metric keys produced by more than one check: {sorted(clash)}"
    merged = {**left} if left else {}
    if right:
        merged.update(right)
    return merged
