"""Derived compliance views. None of these are persisted."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

    from cmecredit.domain.model.enums import ActivityCategory, ApprovalStatus, CycleStatus


@dataclass(frozen=True, slots=True)
class ComplianceCycle:
    practitioner_id: UUID
    window_start: datetime
    window_end: datetime
    required_credits: float
    achieved_credits: float
    completion_pct: float
    status: CycleStatus
    # floored at zero; ``status`` reflects the unfloored value
    days_remaining: int


@dataclass(frozen=True, slots=True)
class CategoryCreditSummary:
    category: ActivityCategory
    total_credits: float
    activity_count: int
    cap: float | None = None
    remaining: float | None = None


@dataclass(frozen=True, slots=True)
class CategoryCapCheck:
    valid: bool
    message: str | None = None
    current_total: float | None = None
    limit: float | None = None


@dataclass(frozen=True, slots=True)
class ComplianceStatistics:
    total: int
    compliant: int
    at_risk: int
    non_compliant: int
    average_completion: float


@dataclass(frozen=True, slots=True)
class CreditHistoryEntry:
    submission_id: UUID
    activity_name: str
    category: ActivityCategory | None
    credits: float
    recorded_at: datetime
    status: ApprovalStatus
    comment: str | None
