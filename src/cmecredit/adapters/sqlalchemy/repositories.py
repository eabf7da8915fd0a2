"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import func, or_, select
from sqlalchemy.dialects import postgresql, sqlite

from cmecredit.adapters.sqlalchemy.mappings import (
    activity_catalog_table,
    audit_log_table,
    credit_rule_table,
    practitioner_table,
    submission_table,
)
from cmecredit.domain.model import (
    ActivityCatalogEntry,
    ApprovalStatus,
    AuditEntry,
    CreditRule,
    Practitioner,
    SubmissionRecord,
)

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence
    from datetime import datetime
    from uuid import UUID

    from sqlalchemy.orm import Session

    from cmecredit.domain.model import BulkDraft, CohortFilters

_UPSERT_INSERTS: dict[str, Any] = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


class SqlAlchemyCreditRuleRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: CreditRule) -> None:
        self.session.add(entity)

    def get(self, rule_id: UUID) -> CreditRule | None:
        return self.session.get(CreditRule, rule_id)

    def list_active(self) -> Sequence[CreditRule]:
        stmt = (
            select(CreditRule)
            .where(credit_rule_table.c.active.is_(True))
            .order_by(credit_rule_table.c.created_at, credit_rule_table.c.id)
        )
        return self.session.execute(stmt).scalars().all()


class SqlAlchemyPractitionerRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: Practitioner) -> None:
        self.session.add(entity)

    def get(self, practitioner_id: UUID) -> Practitioner | None:
        return self.session.get(Practitioner, practitioner_id)

    def get_many(self, practitioner_ids: Collection[UUID]) -> Sequence[Practitioner]:
        if not practitioner_ids:
            return []
        stmt = select(Practitioner).where(practitioner_table.c.id.in_(list(practitioner_ids)))
        return self.session.execute(stmt).scalars().all()

    def find_page(
        self,
        filters: CohortFilters,
        *,
        unit_id: UUID | None,
        limit: int,
        offset: int,
    ) -> Sequence[Practitioner]:
        columns = practitioner_table.c
        stmt = select(Practitioner)
        if unit_id is not None:
            stmt = stmt.where(columns.unit_id == unit_id)
        if filters.work_status is not None:
            stmt = stmt.where(columns.work_status == filters.work_status)
        if filters.title:
            stmt = stmt.where(func.lower(columns.title) == filters.title.strip().lower())
        if filters.department:
            stmt = stmt.where(
                func.lower(columns.department) == filters.department.strip().lower()
            )
        if filters.search and filters.search.strip():
            term = filters.search.strip().lower()
            stmt = stmt.where(
                or_(
                    func.lower(columns.full_name).contains(term, autoescape=True),
                    func.lower(columns.license_number).contains(term, autoescape=True),
                )
            )
        stmt = stmt.order_by(columns.full_name, columns.id).limit(limit).offset(offset)
        return self.session.execute(stmt).scalars().all()


class SqlAlchemyActivityCatalogRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: ActivityCatalogEntry) -> None:
        self.session.add(entity)

    def get(self, catalog_id: UUID) -> ActivityCatalogEntry | None:
        return self.session.get(ActivityCatalogEntry, catalog_id)


class SqlAlchemySubmissionRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: SubmissionRecord) -> None:
        self.session.add(entity)

    def get(self, submission_id: UUID) -> SubmissionRecord | None:
        return self.session.get(SubmissionRecord, submission_id)

    def get_many(self, submission_ids: Collection[UUID]) -> Sequence[SubmissionRecord]:
        if not submission_ids:
            return []
        stmt = select(SubmissionRecord).where(submission_table.c.id.in_(list(submission_ids)))
        return self.session.execute(stmt).scalars().all()

    def list_with_catalog(
        self,
        practitioner_id: UUID,
        *,
        window_start: datetime,
        window_end: datetime,
        status: ApprovalStatus | None = None,
        limit: int | None = None,
    ) -> Sequence[tuple[SubmissionRecord, ActivityCatalogEntry | None]]:
        columns = submission_table.c
        stmt = (
            select(SubmissionRecord, ActivityCatalogEntry)
            .join_from(
                SubmissionRecord,
                ActivityCatalogEntry,
                columns.catalog_id == activity_catalog_table.c.id,
                isouter=True,
            )
            .where(columns.practitioner_id == practitioner_id)
            .where(columns.started_at >= window_start)
            .where(columns.started_at <= window_end)
            .order_by(columns.recorded_at.desc(), columns.id)
        )
        if status is not None:
            stmt = stmt.where(columns.status == status)
        if limit is not None:
            stmt = stmt.limit(limit)
        return [(row[0], row[1]) for row in self.session.execute(stmt).all()]

    def find_practitioners_with_submission(
        self,
        catalog_id: UUID,
        practitioner_ids: Collection[UUID],
    ) -> set[UUID]:
        if not practitioner_ids:
            return set()
        columns = submission_table.c
        stmt = (
            select(columns.practitioner_id)
            .where(columns.catalog_id == catalog_id)
            .where(columns.practitioner_id.in_(list(practitioner_ids)))
            .distinct()
        )
        return set(self.session.execute(stmt).scalars().all())

    def insert_drafts(self, drafts: Sequence[BulkDraft]) -> set[UUID]:
        """Insert drafts in one statement; (practitioner, catalog) conflicts are skipped."""

        if not drafts:
            return set()
        dialect = self.session.get_bind().dialect.name
        try:
            insert = _UPSERT_INSERTS[dialect]
        except KeyError as exc:
            raise NotImplementedError(f"Bulk insert is not supported on {dialect}") from exc

        columns = submission_table.c
        stmt = (
            insert(submission_table)
            .values([_draft_row(draft) for draft in drafts])
            .on_conflict_do_nothing(index_elements=[columns.practitioner_id, columns.catalog_id])
            .returning(columns.id)
        )
        return set(self.session.execute(stmt).scalars().all())

    def count_by_status(self, *, unit_id: UUID | None = None) -> dict[ApprovalStatus, int]:
        columns = submission_table.c
        stmt = select(columns.status, func.count()).group_by(columns.status)
        if unit_id is not None:
            stmt = stmt.join_from(
                submission_table,
                practitioner_table,
                columns.practitioner_id == practitioner_table.c.id,
            ).where(practitioner_table.c.unit_id == unit_id)
        return {ApprovalStatus(status): count for status, count in self.session.execute(stmt)}


class SqlAlchemyAuditLogRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: AuditEntry) -> None:
        self.session.add(entity)

    def list_for_record(self, record_id: UUID) -> Sequence[AuditEntry]:
        stmt = (
            select(AuditEntry)
            .where(audit_log_table.c.record_id == record_id)
            .order_by(audit_log_table.c.created_at, audit_log_table.c.id)
        )
        return self.session.execute(stmt).scalars().all()


def _draft_row(draft: BulkDraft) -> dict[str, object]:
    return {
        "id": draft.id,
        "practitioner_id": draft.practitioner_id,
        "catalog_id": draft.catalog_id,
        "activity_name": draft.activity_name,
        "activity_form": draft.activity_form,
        "organizer": draft.organizer,
        "started_at": draft.started_at,
        "ended_at": draft.ended_at,
        "hours": draft.hours,
        "credits": draft.credits,
        "submitted_by": draft.submitted_by,
        "status": draft.status,
        "creation_method": draft.creation_method,
        "recorded_at": draft.recorded_at,
    }
