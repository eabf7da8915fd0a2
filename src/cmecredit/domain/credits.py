"""Effective-credit computation and per-category aggregation."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from cmecredit.domain.model import (
    ActivityCategory,
    ApprovalStatus,
    CategoryCapCheck,
    CategoryCreditSummary,
    CreditHistoryEntry,
)
from cmecredit.domain.rules import ComplianceRuleResolver
from cmecredit.domain.time_windows import CycleWindow, utcnow

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime
    from uuid import UUID

    from cmecredit.domain.model import ActivityCatalogEntry, SubmissionRecord
    from cmecredit.domain.ports import UnitOfWorkFactory
    from cmecredit.domain.time_windows import Clock

log = getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50


def is_evidence_satisfied(requires_evidence: bool | None, evidence_url: str | None) -> bool:
    if not requires_evidence:
        return True
    return evidence_url is not None and bool(evidence_url.strip())


def base_credits(
    submission: SubmissionRecord,
    catalog_entry: ActivityCatalogEntry | None = None,
) -> float:
    """Stored credits, else hours times the catalog conversion rate, else zero."""

    if submission.credits is not None:
        return float(submission.credits)
    if submission.hours is not None and catalog_entry is not None:
        return float(submission.hours) * catalog_entry.conversion_rate
    return 0.0


def effective_credits(
    submission: SubmissionRecord,
    catalog_entry: ActivityCatalogEntry | None = None,
) -> float:
    """Credits that actually count toward compliance for one submission."""

    if submission.status is not ApprovalStatus.APPROVED:
        return 0.0
    if catalog_entry is not None and not is_evidence_satisfied(
        catalog_entry.requires_evidence, submission.evidence_url
    ):
        return 0.0

    value = base_credits(submission, catalog_entry)
    if catalog_entry is None:
        return value
    if catalog_entry.min_hours is not None and value < catalog_entry.min_hours:
        return 0.0
    if catalog_entry.max_hours is not None and value > catalog_entry.max_hours:
        return float(catalog_entry.max_hours)
    return value


def category_of(catalog_entry: ActivityCatalogEntry | None) -> ActivityCategory:
    return catalog_entry.category if catalog_entry is not None else ActivityCategory.OTHER


def sum_effective_credits(
    rows: Iterable[tuple[SubmissionRecord, ActivityCatalogEntry | None]],
) -> float:
    return sum((effective_credits(sub, entry) for sub, entry in rows), 0.0)


class CreditAggregator:
    """Reads submissions and folds them into credit totals. Nothing is cached."""

    def __init__(
        self,
        unit_of_work_factory: UnitOfWorkFactory,
        *,
        rule_resolver: ComplianceRuleResolver | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self._unit_of_work_factory = unit_of_work_factory
        self._rule_resolver = rule_resolver or ComplianceRuleResolver(
            unit_of_work_factory, clock=clock
        )

    def calculate_credits(self, catalog_id: UUID | None, hours: float | None) -> float:
        if catalog_id is None or not hours:
            return 0.0
        with self._unit_of_work_factory() as uow:
            entry = uow.repositories.catalog.get(catalog_id)
        if entry is None:
            return 0.0
        return hours * (entry.conversion_rate or 1.0)

    def achieved_credits(self, practitioner_id: UUID, window: CycleWindow) -> float:
        rows = self._load(practitioner_id, window.start, window.end)
        return sum_effective_credits(rows)

    def credit_summary_by_category(
        self,
        practitioner_id: UUID,
        window_start: datetime,
        window_end: datetime,
    ) -> list[CategoryCreditSummary]:
        rule = self._rule_resolver.get_active_rule()
        rows = self._load(
            practitioner_id, window_start, window_end, status=ApprovalStatus.APPROVED
        )

        totals: dict[ActivityCategory, float] = {}
        counts: dict[ActivityCategory, int] = {}
        for submission, entry in rows:
            category = category_of(entry)
            totals[category] = totals.get(category, 0.0) + effective_credits(submission, entry)
            counts[category] = counts.get(category, 0) + 1

        summaries: list[CategoryCreditSummary] = []
        for category, total in totals.items():
            cap = rule.cap_for(category) if rule is not None else None
            summaries.append(
                CategoryCreditSummary(
                    category=category,
                    total_credits=total,
                    activity_count=counts[category],
                    cap=cap,
                    remaining=max(0.0, cap - total) if cap is not None else None,
                )
            )
        summaries.sort(key=lambda item: (-item.total_credits, item.category.value))
        return summaries

    def validate_category_cap(
        self,
        practitioner_id: UUID,
        category: ActivityCategory,
        credits_to_add: float,
        window_start: datetime,
        window_end: datetime,
    ) -> CategoryCapCheck:
        rule = self._rule_resolver.get_active_rule()
        limit = rule.cap_for(category) if rule is not None else None
        if limit is None:
            return CategoryCapCheck(valid=True)

        rows = self._load(
            practitioner_id, window_start, window_end, status=ApprovalStatus.APPROVED
        )
        current_total = sum_effective_credits(
            (sub, entry) for sub, entry in rows if category_of(entry) is category
        )
        if current_total + credits_to_add > limit:
            log.warning(
                "Category cap exceeded for practitioner %s: %s %s+%s > %s",
                practitioner_id,
                category,
                current_total,
                credits_to_add,
                limit,
            )
            return CategoryCapCheck(
                valid=False,
                message=(
                    f"Credit cap for category {category} would be exceeded: "
                    f"current {current_total:g}/{limit:g}, adding {credits_to_add:g}"
                ),
                current_total=current_total,
                limit=limit,
            )
        return CategoryCapCheck(valid=True, current_total=current_total, limit=limit)

    def credit_history(
        self,
        practitioner_id: UUID,
        window_start: datetime,
        window_end: datetime,
        *,
        limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> list[CreditHistoryEntry]:
        rows = self._load(practitioner_id, window_start, window_end, limit=limit)
        return [
            CreditHistoryEntry(
                submission_id=submission.id,
                activity_name=submission.activity_name,
                category=entry.category if entry is not None else None,
                credits=effective_credits(submission, entry),
                recorded_at=submission.recorded_at,
                status=submission.status,
                comment=submission.approval_comment,
            )
            for submission, entry in rows
        ]

    def _load(
        self,
        practitioner_id: UUID,
        window_start: datetime,
        window_end: datetime,
        *,
        status: ApprovalStatus | None = None,
        limit: int | None = None,
    ) -> list[tuple[SubmissionRecord, ActivityCatalogEntry | None]]:
        window = CycleWindow(start=window_start, end=window_end)
        with self._unit_of_work_factory() as uow:
            return list(
                uow.repositories.submissions.list_with_catalog(
                    practitioner_id,
                    window_start=window.start,
                    window_end=window.end,
                    status=status,
                    limit=limit,
                )
            )
