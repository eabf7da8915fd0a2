"""Bulk submission templates, drafts and write results."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from cmecredit.domain.model.entity import new_id, utcnow
from cmecredit.domain.model.enums import ApprovalStatus, CreationMethod

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

    from cmecredit.domain.model.cohort import CohortSelection
    from cmecredit.domain.model.submission import SubmissionRecord


@dataclass(frozen=True, slots=True)
class BulkActivityTemplate:
    """Fields shared by every draft of one bulk submission."""

    activity_name: str
    catalog_id: UUID | None = None
    activity_form: str | None = None
    organizer: str | None = None
    started_at: datetime | None = None
    ended_at: datetime | None = None
    hours: float | None = None
    credits: float | None = None

    def __post_init__(self) -> None:
        if not self.activity_name.strip():
            raise ValueError("activity_name must not be blank")
        if self.started_at and self.ended_at and self.ended_at < self.started_at:
            raise ValueError("ended_at must not be before started_at")


@dataclass(frozen=True, slots=True)
class BulkDraft:
    """Row to insert for one practitioner; status is always pending."""

    practitioner_id: UUID
    activity_name: str
    submitted_by: UUID
    catalog_id: UUID | None = None
    activity_form: str | None = None
    organizer: str | None = None
    started_at: datetime | None = None
    ended_at: datetime | None = None
    hours: float | None = None
    credits: float | None = None
    creation_method: CreationMethod = CreationMethod.BULK
    id: UUID = field(default_factory=new_id)
    recorded_at: datetime = field(default_factory=utcnow)

    @property
    def status(self) -> ApprovalStatus:
        return ApprovalStatus.PENDING

    @property
    def dedup_key(self) -> tuple[UUID, UUID] | None:
        if self.catalog_id is None:
            return None
        return (self.practitioner_id, self.catalog_id)


@dataclass(frozen=True, slots=True)
class BulkInsertResult:
    inserted: tuple[SubmissionRecord, ...]
    conflicts: tuple[UUID, ...]


@dataclass(frozen=True, slots=True)
class BulkSubmissionRequest:
    """Validated request to record one catalog activity for a whole cohort."""

    catalog_id: UUID
    cohort: CohortSelection
    started_at: datetime | None = None
    ended_at: datetime | None = None
    organizer: str | None = None

    def __post_init__(self) -> None:
        if self.started_at and self.ended_at and self.ended_at < self.started_at:
            raise ValueError("ended_at must not be before started_at")
