"""Domain port definitions for adapters."""

from __future__ import annotations

from .persistence import (
    ActivityCatalogRepository,
    AuditLogRepository,
    CreditRuleRepository,
    PractitionerRepository,
    Repository,
    SubmissionRepository,
)
from .unit_of_work import (
    ComplianceRepositories,
    ComplianceUnitOfWork,
    RepositoryCollection,
    UnitOfWork,
    UnitOfWorkFactory,
)

__all__ = [
    "ActivityCatalogRepository",
    "AuditLogRepository",
    "ComplianceRepositories",
    "ComplianceUnitOfWork",
    "CreditRuleRepository",
    "PractitionerRepository",
    "Repository",
    "RepositoryCollection",
    "SubmissionRepository",
    "UnitOfWork",
    "UnitOfWorkFactory",
]
