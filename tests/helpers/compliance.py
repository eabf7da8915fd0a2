"""Factories and a fixed clock for compliance tests."""

from __future__ import annotations

from datetime import UTC, date, datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from cmecredit.domain.model import (
    ActivityCatalogEntry,
    ActivityCategory,
    ApprovalStatus,
    AuditEntry,
    CreditRule,
    Practitioner,
    SubmissionRecord,
    WorkStatus,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from cmecredit.domain.ports import ComplianceUnitOfWork
    from cmecredit.domain.time_windows import Clock

    type Persistable = (
        CreditRule | Practitioner | ActivityCatalogEntry | SubmissionRecord | AuditEntry
    )

FIXED_NOW = datetime(2021, 6, 1, 12, tzinfo=UTC)
UNIT_A = UUID("00000000-0000-0000-0000-00000000000a")
UNIT_B = UUID("00000000-0000-0000-0000-00000000000b")
REVIEWER_ID = UUID("00000000-0000-0000-0000-0000000000ff")


def make_clock(reference: datetime = FIXED_NOW) -> Clock:
    def _clock() -> datetime:
        return reference

    return _clock


def make_rule(
    *,
    required_total: float = 120.0,
    cycle_years: int = 5,
    caps: dict[str, float] | None = None,
    effective_from: date | None = None,
    effective_to: date | None = None,
    active: bool = True,
    created_at: datetime | None = None,
    name: str = "Standard CME policy",
) -> CreditRule:
    return CreditRule(
        name=name,
        required_total=required_total,
        cycle_years=cycle_years,
        category_caps=caps or {},  # pyright: ignore[reportArgumentType]
        effective_from=effective_from,
        effective_to=effective_to,
        active=active,
        created_at=created_at or datetime.now(tz=UTC),
    )


def make_practitioner(
    name: str = "Nguyen Van A",
    *,
    unit_id: UUID = UNIT_A,
    licensed_on: date | None = date(2020, 1, 1),
    work_status: WorkStatus = WorkStatus.ACTIVE,
    title: str | None = None,
    department: str | None = None,
    license_number: str | None = None,
) -> Practitioner:
    return Practitioner(
        full_name=name,
        unit_id=unit_id,
        license_issued_on=licensed_on,
        work_status=work_status,
        title=title,
        department=department,
        license_number=license_number,
    )


def make_catalog_entry(
    name: str = "Cardiology update",
    *,
    category: ActivityCategory = ActivityCategory.COURSE,
    conversion_rate: float = 1.0,
    min_hours: float | None = None,
    max_hours: float | None = None,
    requires_evidence: bool = False,
    unit_id: UUID | None = None,
    active: bool = True,
    valid_from: date | None = None,
    valid_to: date | None = None,
) -> ActivityCatalogEntry:
    return ActivityCatalogEntry(
        name=name,
        category=category,
        conversion_rate=conversion_rate,
        min_hours=min_hours,
        max_hours=max_hours,
        requires_evidence=requires_evidence,
        unit_id=unit_id,
        active=active,
        valid_from=valid_from,
        valid_to=valid_to,
    )


def make_submission(
    practitioner_id: UUID,
    *,
    credits: float | None = None,
    hours: float | None = None,
    status: ApprovalStatus = ApprovalStatus.APPROVED,
    catalog: ActivityCatalogEntry | None = None,
    started_at: datetime | None = datetime(2021, 1, 15, tzinfo=UTC),
    evidence_url: str | None = None,
    approval_comment: str | None = None,
    activity_name: str = "Workshop",
    recorded_at: datetime | None = None,
) -> SubmissionRecord:
    return SubmissionRecord(
        practitioner_id=practitioner_id,
        activity_name=activity_name,
        submitted_by=uuid4(),
        catalog_id=catalog.id if catalog is not None else None,
        started_at=started_at,
        ended_at=started_at,
        hours=hours,
        credits=credits,
        evidence_url=evidence_url,
        status=status,
        approved_by=REVIEWER_ID if status is not ApprovalStatus.PENDING else None,
        approved_at=FIXED_NOW if status is not ApprovalStatus.PENDING else None,
        approval_comment=approval_comment,
        recorded_at=recorded_at or datetime.now(tz=UTC),
    )


def persist(
    unit_of_work_factory: Callable[[], ComplianceUnitOfWork],
    *entities: Persistable,
) -> None:
    """Store entities through the matching repositories in one transaction."""

    with unit_of_work_factory() as uow:
        repositories = uow.repositories
        for entity in entities:
            match entity:
                case CreditRule():
                    repositories.rules.add(entity)
                case Practitioner():
                    repositories.practitioners.add(entity)
                case ActivityCatalogEntry():
                    repositories.catalog.add(entity)
                case SubmissionRecord():
                    repositories.submissions.add(entity)
                case AuditEntry():
                    repositories.audit_log.add(entity)
        uow.commit()


def load_submission(
    unit_of_work_factory: Callable[[], ComplianceUnitOfWork],
    submission_id: UUID,
) -> SubmissionRecord | None:
    with unit_of_work_factory() as uow:
        return uow.repositories.submissions.get(submission_id)
