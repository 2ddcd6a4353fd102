"""
Typed failures for Cost Ledger.

Every failure the core reports to its caller is one of these. Each carries
the HTTP-style status code the service shell puts on its envelope.
"""

from dataclasses import dataclass
from typing import List, Optional


@dataclass(frozen=True)
class FieldError:
    """A single invalid input field."""
    field: str
    message: str

    def to_dict(self) -> dict:
        return {"field": self.field, "message": self.message}


class LedgerError(Exception):
    """Base exception for Cost Ledger."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(LedgerError):
    """Malformed or out-of-range caller input."""

    status_code = 400

    def __init__(self, message: str, errors: Optional[List[FieldError]] = None):
        super().__init__(message)
        self.errors = list(errors or [])


class NotFoundError(LedgerError):
    """A record id that does not exist."""

    status_code = 404

    def __init__(self, message: str = "Cost record not found"):
        super().__init__(message)


class ConflictError(LedgerError):
    """A uniqueness constraint was violated on write."""

    status_code = 409

    def __init__(self, message: str = "Resource already exists"):
        super().__init__(message)


class StoreError(LedgerError):
    """The record store failed, timed out or returned something unexpected.

    The message is safe to show to callers; the underlying cause is kept in
    ``__cause__`` for logging only.
    """

    status_code = 500

    def __init__(self, message: str = "Database operation failed"):
        super().__init__(message)
