"""Ports for persisting domain aggregates.

Each entity gets its own repository with an explicit primary-key lookup.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from cmecredit.domain.model import (
    ActivityCatalogEntry,
    AuditEntry,
    CreditRule,
    Practitioner,
    SubmissionRecord,
)

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence
    from datetime import datetime
    from uuid import UUID

    from cmecredit.domain.model import ApprovalStatus, BulkDraft, CohortFilters


@runtime_checkable
class Repository[TEntity](Protocol):
    """Minimal repository contract for a persistent aggregate store."""

    def add(self, entity: TEntity) -> None: ...


@runtime_checkable
class CreditRuleRepository(Repository[CreditRule], Protocol):
    def get(self, rule_id: UUID) -> CreditRule | None: ...

    def list_active(self) -> Sequence[CreditRule]:
        """Rules flagged active, in insertion order (oldest first)."""
        ...


@runtime_checkable
class PractitionerRepository(Repository[Practitioner], Protocol):
    def get(self, practitioner_id: UUID) -> Practitioner | None: ...

    def get_many(self, practitioner_ids: Collection[UUID]) -> Sequence[Practitioner]: ...

    def find_page(
        self,
        filters: CohortFilters,
        *,
        unit_id: UUID | None,
        limit: int,
        offset: int,
    ) -> Sequence[Practitioner]:
        """Return one page of matches ordered by (full_name, id)."""
        ...


@runtime_checkable
class ActivityCatalogRepository(Repository[ActivityCatalogEntry], Protocol):
    def get(self, catalog_id: UUID) -> ActivityCatalogEntry | None: ...


@runtime_checkable
class SubmissionRepository(Repository[SubmissionRecord], Protocol):
    def get(self, submission_id: UUID) -> SubmissionRecord | None: ...

    def get_many(self, submission_ids: Collection[UUID]) -> Sequence[SubmissionRecord]: ...

    def list_with_catalog(
        self,
        practitioner_id: UUID,
        *,
        window_start: datetime,
        window_end: datetime,
        status: ApprovalStatus | None = None,
        limit: int | None = None,
    ) -> Sequence[tuple[SubmissionRecord, ActivityCatalogEntry | None]]:
        """Submissions whose activity starts inside the window, newest record first."""
        ...

    def find_practitioners_with_submission(
        self,
        catalog_id: UUID,
        practitioner_ids: Collection[UUID],
    ) -> set[UUID]: ...

    def insert_drafts(self, drafts: Sequence[BulkDraft]) -> set[UUID]:
        """Insert drafts skipping (practitioner, catalog) conflicts; return inserted ids."""
        ...

    def count_by_status(self, *, unit_id: UUID | None = None) -> dict[ApprovalStatus, int]: ...


@runtime_checkable
class AuditLogRepository(Repository[AuditEntry], Protocol):
    def list_for_record(self, record_id: UUID) -> Sequence[AuditEntry]: ...
