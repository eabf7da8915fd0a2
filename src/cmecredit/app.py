"""Application orchestration entry points."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from cmecredit.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork, is_started, startup
from cmecredit.config import ComplianceConfig, get_compliance_config
from cmecredit.domain.bulk_submission import BulkSubmissionWriter, build_drafts
from cmecredit.domain.cohorts import CohortResolver
from cmecredit.domain.credits import CreditAggregator
from cmecredit.domain.cycles import CycleCalculator
from cmecredit.domain.errors import Rejection, RejectionCode
from cmecredit.domain.lifecycle import SubmissionLifecycle
from cmecredit.domain.model import (
    AuditAction,
    AuditEntry,
    BulkActivityTemplate,
    CohortMode,
    ResolutionContext,
)
from cmecredit.domain.rules import ComplianceRuleResolver
from cmecredit.domain.time_windows import utcnow

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from uuid import UUID

    from cmecredit.domain.lifecycle import BulkTransitionResult, EditResult, TransitionResult
    from cmecredit.domain.model import (
        ActivityCatalogEntry,
        BulkDraft,
        BulkSubmissionRequest,
        CallerRole,
        CategoryCreditSummary,
        CohortError,
        CohortResolution,
        CohortSelection,
        ComplianceCycle,
        ComplianceStatistics,
    )
    from cmecredit.domain.ports import UnitOfWorkFactory
    from cmecredit.domain.time_windows import Clock


log = getLogger(__name__)

SAMPLE_SIZE = 10


@dataclass(frozen=True, slots=True)
class Caller:
    actor_id: UUID
    role: CallerRole
    unit_id: UUID | None = None
    ip_address: str | None = None


@dataclass(frozen=True, slots=True)
class BulkSubmissionOutcome:
    created: int
    skipped: int
    failed: int
    submission_ids: tuple[UUID, ...] = ()
    duplicate_practitioner_ids: tuple[UUID, ...] = ()
    errors: tuple[CohortError, ...] = ()
    normalized_selection: CohortSelection | None = None
    rejection: Rejection | None = None

    @property
    def ok(self) -> bool:
        return self.rejection is None

    @property
    def message(self) -> str:
        if self.rejection is not None:
            return self.rejection.message
        return build_summary_message(self.created, self.skipped, self.failed)


@dataclass(frozen=True, slots=True)
class BulkSubmissionPreview:
    total_candidates: int
    create_count: int
    skip_count: int
    sample_ids: tuple[UUID, ...] = ()
    duplicate_practitioner_ids: tuple[UUID, ...] = ()
    errors: tuple[CohortError, ...] = ()
    normalized_selection: CohortSelection | None = None
    rejection: Rejection | None = None

    @property
    def ok(self) -> bool:
        return self.rejection is None


@dataclass(frozen=True, slots=True)
class PractitionerCompliance:
    cycle: ComplianceCycle | None
    categories: tuple[CategoryCreditSummary, ...]


def build_summary_message(created: int, skipped: int, failed: int) -> str:
    parts = [f"{created} inserted"]
    if skipped:
        parts.append(f"{skipped} skipped as duplicates")
    if failed:
        parts.append(f"{failed} failed")
    return ", ".join(parts)


def init_database(*, database_uri: str | None = None) -> None:
    """Create the schema on the configured (or given) database."""

    startup(database_uri=database_uri, force=is_started())


def _default_unit_of_work_factory() -> UnitOfWorkFactory:
    if not is_started():
        startup()
    return SqlAlchemyUnitOfWork


def _record_audit(unit_of_work_factory: UnitOfWorkFactory, entries: Sequence[AuditEntry]) -> None:
    """Persist audit entries in their own transaction; failures are logged only."""

    if not entries:
        return
    try:
        with unit_of_work_factory() as uow:
            for entry in entries:
                uow.repositories.audit_log.add(entry)
            uow.commit()
    except SQLAlchemyError:
        log.exception("Failed to record %d audit entries (%s)", len(entries), entries[0].action)


def _caller_rejection(caller: Caller) -> Rejection | None:
    if not caller.role.manages_submissions:
        return Rejection(
            RejectionCode.FORBIDDEN, f"role {caller.role} cannot create bulk submissions"
        )
    if caller.role.is_unit_scoped and caller.unit_id is None:
        return Rejection(RejectionCode.TENANT_MISMATCH, "unit information is required")
    return None


def _catalog_rejection(
    entry: ActivityCatalogEntry | None,
    catalog_id: UUID,
    caller: Caller,
    clock: Clock,
) -> Rejection | None:
    if entry is None:
        return Rejection(RejectionCode.CATALOG_UNAVAILABLE, "activity not found", catalog_id)
    if not entry.active:
        return Rejection(RejectionCode.CATALOG_UNAVAILABLE, "activity is not active", catalog_id)
    today = clock().date()
    if not entry.is_valid_on(today):
        message = (
            "activity is not yet valid"
            if entry.valid_from is not None and entry.valid_from > today
            else "activity has expired"
        )
        return Rejection(RejectionCode.CATALOG_UNAVAILABLE, message, catalog_id)
    if caller.role.is_unit_scoped and not entry.available_to(caller.unit_id):
        return Rejection(
            RejectionCode.TENANT_MISMATCH, "activity belongs to another unit", catalog_id
        )
    return None


@dataclass(frozen=True, slots=True)
class _BulkPlan:
    entry: ActivityCatalogEntry | None = None
    resolution: CohortResolution | None = None
    drafts: tuple[BulkDraft, ...] = ()
    rejection: Rejection | None = None

    @property
    def failed(self) -> int:
        if self.resolution is None:
            return 0
        return sum(1 for error in self.resolution.errors if error.practitioner_id is not None)

    @property
    def errors(self) -> tuple[CohortError, ...]:
        return self.resolution.errors if self.resolution is not None else ()

    @property
    def normalized_selection(self) -> CohortSelection | None:
        return self.resolution.normalized_selection if self.resolution is not None else None


def _plan_bulk(
    request: BulkSubmissionRequest,
    caller: Caller,
    *,
    unit_of_work_factory: UnitOfWorkFactory,
    config: ComplianceConfig,
    clock: Clock,
) -> _BulkPlan:
    """Check the caller and catalog entry, resolve the cohort and build drafts."""

    rejection = _caller_rejection(caller)
    if rejection is not None:
        log.warning("Bulk submission refused: %s", rejection)
        return _BulkPlan(rejection=rejection)

    with unit_of_work_factory() as uow:
        entry = uow.repositories.catalog.get(request.catalog_id)
    rejection = _catalog_rejection(entry, request.catalog_id, caller, clock)
    if rejection is not None or entry is None:
        log.warning("Bulk submission refused: %s", rejection)
        return _BulkPlan(rejection=rejection)

    context = ResolutionContext(
        caller_role=caller.role,
        caller_unit_id=caller.unit_id,
        page_size=config.cohort_page_size,
    )
    resolution = CohortResolver(unit_of_work_factory).resolve(request.cohort, context)
    if not resolution.practitioners:
        message = resolution.errors[0].error if resolution.errors else "no eligible practitioners"
        log.warning("Bulk submission refused: %s", message)
        return _BulkPlan(
            entry=entry,
            resolution=resolution,
            rejection=Rejection(RejectionCode.EMPTY_COHORT, message),
        )

    template = BulkActivityTemplate(
        activity_name=entry.name,
        catalog_id=entry.id,
        activity_form=entry.category.value,
        organizer=request.organizer,
        started_at=request.started_at,
        ended_at=request.ended_at,
        credits=entry.conversion_rate,
    )
    drafts = build_drafts(resolution.practitioners, template, submitted_by=caller.actor_id)
    return _BulkPlan(entry=entry, resolution=resolution, drafts=tuple(drafts))


def preview_bulk_activity(
    request: BulkSubmissionRequest,
    caller: Caller,
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    config: ComplianceConfig | None = None,
    clock: Clock = utcnow,
) -> BulkSubmissionPreview:
    """Dry run of ``submit_bulk_activity``: resolve the cohort and count duplicates.

    Nothing is written, not even an audit entry.
    """

    effective_uow = unit_of_work_factory or _default_unit_of_work_factory()
    effective_config = config or get_compliance_config()
    plan = _plan_bulk(
        request, caller, unit_of_work_factory=effective_uow, config=effective_config, clock=clock
    )
    if plan.rejection is not None or plan.resolution is None:
        return BulkSubmissionPreview(
            total_candidates=0,
            create_count=0,
            skip_count=0,
            errors=plan.errors,
            normalized_selection=plan.normalized_selection,
            rejection=plan.rejection,
        )

    writer = BulkSubmissionWriter(effective_uow, batch_size=effective_config.bulk_batch_size)
    duplicates = writer.find_anticipated_duplicates(plan.drafts)
    candidates = tuple(p.id for p in plan.resolution.practitioners)
    duplicate_ids = tuple(pid for pid in candidates if pid in duplicates)
    preview = BulkSubmissionPreview(
        total_candidates=len(candidates),
        create_count=len(candidates) - len(duplicate_ids),
        skip_count=len(duplicate_ids),
        sample_ids=candidates[:SAMPLE_SIZE],
        duplicate_practitioner_ids=duplicate_ids,
        errors=plan.errors,
        normalized_selection=plan.normalized_selection,
    )
    log.info(
        "Previewed bulk submission: %d candidates, %d to create, %d duplicates",
        preview.total_candidates,
        preview.create_count,
        preview.skip_count,
    )
    return preview


def submit_bulk_activity(
    request: BulkSubmissionRequest,
    caller: Caller,
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    config: ComplianceConfig | None = None,
    clock: Clock = utcnow,
) -> BulkSubmissionOutcome:
    """Record one catalog activity for every practitioner in a cohort.

    Raises ``BulkWriteError`` when the write transaction fails; nothing is
    persisted in that case.
    """

    effective_uow = unit_of_work_factory or _default_unit_of_work_factory()
    effective_config = config or get_compliance_config()
    plan = _plan_bulk(
        request, caller, unit_of_work_factory=effective_uow, config=effective_config, clock=clock
    )
    entry = plan.entry
    resolution = plan.resolution
    failed = plan.failed
    if plan.rejection is not None or entry is None or resolution is None:
        return BulkSubmissionOutcome(
            created=0,
            skipped=0,
            failed=failed,
            errors=plan.errors,
            normalized_selection=plan.normalized_selection,
            rejection=plan.rejection,
        )

    writer = BulkSubmissionWriter(effective_uow, batch_size=effective_config.bulk_batch_size)
    drafts = plan.drafts
    anticipated = writer.find_anticipated_duplicates(drafts)
    result = writer.bulk_create([d for d in drafts if d.practitioner_id not in anticipated])

    duplicates = set(anticipated).union(result.conflicts)
    duplicate_ids = tuple(d.practitioner_id for d in drafts if d.practitioner_id in duplicates)
    outcome = BulkSubmissionOutcome(
        created=len(result.inserted),
        skipped=len(duplicate_ids),
        failed=failed,
        submission_ids=tuple(record.id for record in result.inserted),
        duplicate_practitioner_ids=duplicate_ids,
        errors=resolution.errors,
        normalized_selection=resolution.normalized_selection,
    )
    log.info("Bulk submission for %s: %s", entry.name, outcome.message)

    selection = resolution.normalized_selection
    filters = selection.filters
    _record_audit(
        effective_uow,
        [
            AuditEntry(
                action=AuditAction.BULK_SUBMISSION_CREATE,
                actor_id=caller.actor_id,
                record_id=entry.id,
                ip_address=caller.ip_address,
                details={
                    "type": "bulk_submission",
                    "totalCount": len(drafts) + failed,
                    "successCount": outcome.created,
                    "skippedCount": outcome.skipped,
                    "errorCount": outcome.failed,
                    "catalogId": str(entry.id),
                    "activityName": entry.name,
                    "cohortMode": selection.mode.value,
                    "cohortFilters": {
                        "status": filters.work_status.value if filters.work_status else None,
                        "title": filters.title,
                        "department": filters.department,
                        "search": filters.search,
                    }
                    if selection.mode is CohortMode.ALL_FILTERED
                    else None,
                    "totalExcluded": len(selection.excluded_ids),
                    "actorRole": caller.role.value,
                    "unitId": str(caller.unit_id) if caller.unit_id else None,
                    "samplePractitionerIds": [
                        str(p.id) for p in resolution.practitioners[:SAMPLE_SIZE]
                    ],
                },
            )
        ],
    )
    return outcome


def approve_submissions(
    submission_ids: Sequence[UUID],
    approver_id: UUID,
    *,
    comment: str | None = None,
    unit_id: UUID | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    clock: Clock = utcnow,
) -> BulkTransitionResult:
    effective_uow = unit_of_work_factory or _default_unit_of_work_factory()
    result = SubmissionLifecycle(effective_uow, clock=clock).bulk_approve(
        submission_ids, approver_id, comment=comment, unit_id=unit_id
    )
    _record_audit(
        effective_uow,
        [
            AuditEntry(
                action=AuditAction.SUBMISSION_APPROVE,
                actor_id=approver_id,
                record_id=record_id,
                details={"comment": comment},
            )
            for record_id in result.updated_ids
        ],
    )
    return result


def reject_submission(
    submission_id: UUID,
    approver_id: UUID,
    *,
    reason: str | None,
    unit_id: UUID | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    clock: Clock = utcnow,
) -> TransitionResult:
    effective_uow = unit_of_work_factory or _default_unit_of_work_factory()
    result = SubmissionLifecycle(effective_uow, clock=clock).reject(
        submission_id, approver_id, reason=reason, unit_id=unit_id
    )
    if result.ok:
        _record_audit(
            effective_uow,
            [
                AuditEntry(
                    action=AuditAction.SUBMISSION_REJECT,
                    actor_id=approver_id,
                    record_id=submission_id,
                    details={"reason": reason},
                )
            ],
        )
    return result


def revoke_submissions(
    submission_ids: Sequence[UUID],
    actor_id: UUID,
    *,
    reason: str | None,
    unit_id: UUID | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> BulkTransitionResult:
    effective_uow = unit_of_work_factory or _default_unit_of_work_factory()
    result = SubmissionLifecycle(effective_uow).bulk_revoke(
        submission_ids, actor_id, reason=reason, unit_id=unit_id
    )
    _record_audit(
        effective_uow,
        [
            AuditEntry(
                action=AuditAction.SUBMISSION_REVOKE,
                actor_id=actor_id,
                record_id=record_id,
                details={"reason": reason},
            )
            for record_id in result.updated_ids
        ],
    )
    return result


def edit_submission(
    submission_id: UUID,
    changes: Mapping[str, object],
    actor_id: UUID,
    *,
    unit_id: UUID | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> EditResult:
    effective_uow = unit_of_work_factory or _default_unit_of_work_factory()
    result = SubmissionLifecycle(effective_uow).edit(submission_id, changes, unit_id=unit_id)
    if result.ok:
        _record_audit(
            effective_uow,
            [
                AuditEntry(
                    action=AuditAction.SUBMISSION_EDIT,
                    actor_id=actor_id,
                    record_id=submission_id,
                    details={"fields": sorted(changes)},
                )
            ],
        )
    return result


def practitioner_compliance(
    practitioner_id: UUID,
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    config: ComplianceConfig | None = None,
    clock: Clock = utcnow,
) -> PractitionerCompliance:
    """Current cycle plus the per-category breakdown over the same window."""

    effective_uow = unit_of_work_factory or _default_unit_of_work_factory()
    resolver = ComplianceRuleResolver(effective_uow, clock=clock)
    aggregator = CreditAggregator(effective_uow, rule_resolver=resolver, clock=clock)
    calculator = CycleCalculator(
        effective_uow,
        config=config or get_compliance_config(),
        rule_resolver=resolver,
        aggregator=aggregator,
        clock=clock,
    )
    cycle = calculator.compute_cycle(practitioner_id)
    if cycle is None:
        return PractitionerCompliance(cycle=None, categories=())
    categories = aggregator.credit_summary_by_category(
        practitioner_id, cycle.window_start, cycle.window_end
    )
    return PractitionerCompliance(cycle=cycle, categories=tuple(categories))


def compliance_statistics(
    practitioner_ids: Sequence[UUID],
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    config: ComplianceConfig | None = None,
    clock: Clock = utcnow,
) -> ComplianceStatistics:
    effective_uow = unit_of_work_factory or _default_unit_of_work_factory()
    calculator = CycleCalculator(
        effective_uow, config=config or get_compliance_config(), clock=clock
    )
    return calculator.compliance_statistics(practitioner_ids)
