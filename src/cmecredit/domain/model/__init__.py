"""Public domain model surface."""

from __future__ import annotations

from cmecredit.domain.model.audit import AuditEntry
from cmecredit.domain.model.bulk import (
    BulkActivityTemplate,
    BulkDraft,
    BulkInsertResult,
    BulkSubmissionRequest,
)
from cmecredit.domain.model.catalog import ActivityCatalogEntry
from cmecredit.domain.model.cohort import (
    CohortError,
    CohortFilters,
    CohortResolution,
    CohortSelection,
    ResolutionContext,
    ResolvedPractitioner,
)
from cmecredit.domain.model.compliance import (
    CategoryCapCheck,
    CategoryCreditSummary,
    ComplianceCycle,
    ComplianceStatistics,
    CreditHistoryEntry,
)
from cmecredit.domain.model.entity import Entity, new_id, utcnow
from cmecredit.domain.model.enums import (
    ActivityCategory,
    ApprovalStatus,
    AuditAction,
    CallerRole,
    CohortMode,
    CreationMethod,
    CycleStatus,
    WorkStatus,
)
from cmecredit.domain.model.practitioner import Practitioner
from cmecredit.domain.model.rules import CategoryCaps, CreditRule, parse_category_caps
from cmecredit.domain.model.submission import SubmissionRecord

__all__ = [  # noqa: RUF022
    # base
    "Entity",
    "new_id",
    "utcnow",
    # entities
    "ActivityCatalogEntry",
    "AuditEntry",
    "CreditRule",
    "Practitioner",
    "SubmissionRecord",
    # rules
    "CategoryCaps",
    "parse_category_caps",
    # derived views
    "CategoryCapCheck",
    "CategoryCreditSummary",
    "ComplianceCycle",
    "ComplianceStatistics",
    "CreditHistoryEntry",
    # cohorts
    "CohortError",
    "CohortFilters",
    "CohortResolution",
    "CohortSelection",
    "ResolutionContext",
    "ResolvedPractitioner",
    # bulk
    "BulkActivityTemplate",
    "BulkDraft",
    "BulkInsertResult",
    "BulkSubmissionRequest",
    # enums
    "ActivityCategory",
    "ApprovalStatus",
    "AuditAction",
    "CallerRole",
    "CohortMode",
    "CreationMethod",
    "CycleStatus",
    "WorkStatus",
]
