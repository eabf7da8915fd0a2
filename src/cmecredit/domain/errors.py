"""Domain error taxonomy.

Validation problems are reported as ``Rejection`` values inside result objects;
exceptions are reserved for programming errors on the domain objects themselves
and for fatal store failures.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from uuid import UUID


class ComplianceError(Exception):
    """Base class for errors raised by the compliance core."""


class InvalidTransitionError(ComplianceError, ValueError):
    """Raised when a submission is asked to move to a state it cannot reach."""


class SubmissionNotPendingError(InvalidTransitionError):
    """Raised when an edit targets a submission that has left the pending state."""


class ImmutableFieldError(ComplianceError, ValueError):
    """Raised when an edit tries to change a field fixed at creation."""


class BulkWriteError(ComplianceError):
    """A bulk insert transaction was rolled back; nothing from the operation persisted."""

    def __init__(self, message: str, *, batch_index: int, batch_size: int) -> None:
        super().__init__(f"Bulk submission insert failed in batch {batch_index}: {message}")
        self.batch_index = batch_index
        self.batch_size = batch_size
        self.detail = message


class RejectionCode(StrEnum):
    NOT_FOUND = "not_found"
    NOT_PENDING = "not_pending"
    NOT_APPROVED = "not_approved"
    REASON_REQUIRED = "reason_required"
    TENANT_MISMATCH = "tenant_mismatch"
    IMMUTABLE_FIELD = "immutable_field"
    INVALID_FIELD = "invalid_field"
    CATALOG_UNAVAILABLE = "catalog_unavailable"
    EMPTY_COHORT = "empty_cohort"
    DUPLICATE = "duplicate"
    FORBIDDEN = "forbidden"


@dataclass(frozen=True, slots=True)
class Rejection:
    """Typed description of why an operation was refused."""

    code: RejectionCode
    message: str
    record_id: UUID | None = None
