"""Exception taxonomy for the risk rule engine."""

from __future__ import annotations

from typing import Any


class RuleEngineError(Exception):
    """Base class for errors raised by the rule engine and its collaborators."""


class MalformedInputError(RuleEngineError):
    """A transaction field could not be parsed or validated.

    The engine never drops a bad transaction on its own; the caller decides
    whether to reject the whole case or route it to manual review.
    """

    def __init__(
        self,
        message: str,
        transaction_id: str | None = None,
        field: str | None = None,
        value: Any = None,
    ) -> None:
        super().__init__(message)
        self.transaction_id = transaction_id
        self.field = field
        self.value = value


class ConfigurationError(RuleEngineError):
    """A risk profile violates its own invariants."""
