"""Activity submissions and their approval state machine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Final
from uuid import UUID

from cmecredit.domain.errors import (
    ImmutableFieldError,
    InvalidTransitionError,
    SubmissionNotPendingError,
)
from cmecredit.domain.model.entity import Entity, utcnow
from cmecredit.domain.model.enums import ApprovalStatus, CreationMethod

if TYPE_CHECKING:
    from collections.abc import Mapping

IMMUTABLE_FIELDS: Final[frozenset[str]] = frozenset({"practitioner_id", "submitted_by"})
EDITABLE_FIELDS: Final[frozenset[str]] = frozenset(
    {
        "catalog_id",
        "activity_name",
        "role",
        "activity_form",
        "organizer",
        "started_at",
        "ended_at",
        "hours",
        "credits",
        "certificate_number",
        "evidence_url",
    }
)
TEXT_FIELDS: Final[tuple[str, ...]] = (
    "role",
    "activity_form",
    "organizer",
    "certificate_number",
    "evidence_url",
)
REVOCATION_PREFIX: Final[str] = "Revoked: "


def _append_comment(trail: str | None, entry: str) -> str:
    if not trail:
        return entry
    return f"{trail}\n{entry}"


@dataclass(eq=False, kw_only=True)
class SubmissionRecord(Entity):
    """One practitioner's claim for a continuing-education activity.

    Effective credits are never stored; they are derived from ``status``,
    ``evidence_url`` and the catalog entry on every read.
    """

    practitioner_id: UUID
    activity_name: str
    submitted_by: UUID
    catalog_id: UUID | None = None
    role: str | None = None
    activity_form: str | None = None
    organizer: str | None = None
    started_at: datetime | None = None
    ended_at: datetime | None = None
    hours: float | None = None
    credits: float | None = None
    certificate_number: str | None = None
    evidence_url: str | None = None

    status: ApprovalStatus = ApprovalStatus.PENDING
    approved_by: UUID | None = None
    approved_at: datetime | None = None
    approval_comment: str | None = None

    creation_method: CreationMethod = CreationMethod.INDIVIDUAL
    recorded_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        if not self.activity_name.strip():
            raise ValueError("activity_name must not be blank")
        self._check_dates(self.started_at, self.ended_at)

    @property
    def is_pending(self) -> bool:
        return self.status is ApprovalStatus.PENDING

    @property
    def is_approved(self) -> bool:
        return self.status is ApprovalStatus.APPROVED

    def approve(self, approver_id: UUID, *, at: datetime, comment: str | None = None) -> None:
        if self.status is not ApprovalStatus.PENDING:
            raise InvalidTransitionError(f"cannot approve a submission in state {self.status}")
        self.status = ApprovalStatus.APPROVED
        self.approved_by = approver_id
        self.approved_at = at
        if comment and comment.strip():
            self.approval_comment = _append_comment(self.approval_comment, comment.strip())

    def reject(self, approver_id: UUID, *, at: datetime, reason: str) -> None:
        if self.status is not ApprovalStatus.PENDING:
            raise InvalidTransitionError(f"cannot reject a submission in state {self.status}")
        if not reason or not reason.strip():
            raise InvalidTransitionError("a rejection reason is required")
        self.status = ApprovalStatus.REJECTED
        self.approved_by = approver_id
        self.approved_at = at
        self.approval_comment = _append_comment(self.approval_comment, reason.strip())

    def revoke(self, *, reason: str) -> None:
        """Send an approved submission back to review, keeping the comment trail."""
        if self.status is not ApprovalStatus.APPROVED:
            raise InvalidTransitionError(f"cannot revoke a submission in state {self.status}")
        if not reason or not reason.strip():
            raise InvalidTransitionError("a revocation reason is required")
        self.status = ApprovalStatus.PENDING
        self.approved_by = None
        self.approved_at = None
        self.approval_comment = _append_comment(
            self.approval_comment, f"{REVOCATION_PREFIX}{reason.strip()}"
        )

    def apply_edit(self, changes: Mapping[str, object]) -> None:
        if self.status is not ApprovalStatus.PENDING:
            raise SubmissionNotPendingError(
                f"only pending submissions can be edited (state is {self.status})"
            )
        immutable = sorted(IMMUTABLE_FIELDS.intersection(changes))
        if immutable:
            raise ImmutableFieldError(f"fields cannot be changed: {', '.join(immutable)}")
        unknown = sorted(set(changes) - EDITABLE_FIELDS)
        if unknown:
            raise ValueError(f"unknown submission fields: {', '.join(unknown)}")

        for key in ("started_at", "ended_at"):
            value = changes.get(key)
            if value is not None and (not isinstance(value, datetime) or value.tzinfo is None):
                raise ValueError(f"{key} must be a timezone-aware datetime")
        catalog_id = changes.get("catalog_id")
        if catalog_id is not None and not isinstance(catalog_id, UUID):
            raise ValueError("catalog_id must be a UUID")
        for key in TEXT_FIELDS:
            value = changes.get(key)
            if value is not None and not isinstance(value, str):
                raise ValueError(f"{key} must be text")
        started_at = changes.get("started_at", self.started_at)
        ended_at = changes.get("ended_at", self.ended_at)
        self._check_dates(started_at, ended_at)  # pyright: ignore[reportArgumentType]
        name = changes.get("activity_name", self.activity_name)
        if not isinstance(name, str) or not name.strip():
            raise ValueError("activity_name must not be blank")
        for key in ("hours", "credits"):
            value = changes.get(key)
            if value is not None and (
                isinstance(value, bool) or not isinstance(value, int | float) or value < 0
            ):
                raise ValueError(f"{key} must be a non-negative number")

        for key, value in changes.items():
            setattr(self, key, value)

    @staticmethod
    def _check_dates(started_at: datetime | None, ended_at: datetime | None) -> None:
        if started_at is not None and ended_at is not None and ended_at < started_at:
            raise ValueError("ended_at must not be before started_at")
