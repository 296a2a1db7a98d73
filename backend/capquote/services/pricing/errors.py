"""Error taxonomy for the pricing engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict


class PricingError(Exception):
    """Base class for pricing engine failures."""


class ValidationError(PricingError):
    """Structurally invalid request; rejected before any pricing happens."""

    def __init__(self, message: str, field_errors: Dict[str, str] | None = None):
        super().__init__(message)
        self.field_errors = dict(field_errors or {})


class NotFoundError(PricingError):
    """A named item is absent from the price tables."""

    def __init__(self, item_type: str, name: str, field: str | None = None):
        super().__init__(f"No {item_type} price table named '{name}'")
        self.item_type = item_type
        self.name = name
        self.field = field or item_type


class DataUnavailable(PricingError):
    """The backing table store could not be read and nothing is cached."""

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause


@dataclass(frozen=True)
class MergeAmbiguity:
    """Diagnostic note for input that was resolved by precedence rules.

    Never raised; collected alongside merge and parse results.
    """

    field: str
    message: str

    def as_dict(self) -> Dict[str, str]:
        return {"field": self.field, "message": self.message}
