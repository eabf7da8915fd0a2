from __future__ import annotations

from datetime import UTC, date, datetime
from typing import TYPE_CHECKING
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from cmecredit import app as app_module
from cmecredit.adapters.sqlalchemy.repositories import SqlAlchemyAuditLogRepository
from cmecredit.app import (
    Caller,
    approve_submissions,
    build_summary_message,
    compliance_statistics,
    practitioner_compliance,
    preview_bulk_activity,
    revoke_submissions,
    submit_bulk_activity,
)
from cmecredit.config import ComplianceConfig
from cmecredit.domain.errors import RejectionCode
from cmecredit.domain.model import (
    ActivityCategory,
    ApprovalStatus,
    AuditAction,
    BulkSubmissionRequest,
    CallerRole,
    CohortMode,
    CohortSelection,
    CreationMethod,
    CycleStatus,
)
from tests.helpers.compliance import (
    UNIT_A,
    UNIT_B,
    load_submission,
    make_catalog_entry,
    make_practitioner,
    make_rule,
    make_submission,
    persist,
)

if TYPE_CHECKING:
    from collections.abc import Callable
    from uuid import UUID

    from cmecredit.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork
    from cmecredit.domain.model import AuditEntry
    from cmecredit.domain.time_windows import Clock

ADMIN = Caller(actor_id=uuid4(), role=CallerRole.UNIT_ADMIN, unit_id=UNIT_A, ip_address="10.0.0.1")
CONFIG = ComplianceConfig(cohort_page_size=2, bulk_batch_size=2)


def _manual(*ids: UUID) -> CohortSelection:
    return CohortSelection(mode=CohortMode.MANUAL, selected_ids=ids)


def _audit_entries(
    unit_of_work_factory: Callable[[], SqlAlchemyUnitOfWork], record_id: UUID
) -> list[AuditEntry]:
    with unit_of_work_factory() as uow:
        return list(uow.repositories.audit_log.list_for_record(record_id))


def test_summary_message() -> None:
    assert build_summary_message(12, 3, 1) == "12 inserted, 3 skipped as duplicates, 1 failed"
    assert build_summary_message(5, 0, 0) == "5 inserted"


def test_bulk_activity_end_to_end(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
    clock: Clock,
) -> None:
    catalog = make_catalog_entry("Infection control", conversion_rate=2.5)
    p1, p2, p3 = (make_practitioner(name) for name in ("P1", "P2", "P3"))
    foreign = make_practitioner("Foreign", unit_id=UNIT_B)
    persist(
        sqlite_unit_of_work,
        catalog,
        p1,
        p2,
        p3,
        foreign,
        make_submission(p2.id, catalog=catalog),
    )
    request = BulkSubmissionRequest(
        catalog_id=catalog.id,
        cohort=_manual(p1.id, p2.id, p3.id, foreign.id, uuid4()),
        started_at=datetime(2021, 5, 1, tzinfo=UTC),
        ended_at=datetime(2021, 5, 2, tzinfo=UTC),
        organizer="Provincial hospital",
    )

    outcome = submit_bulk_activity(
        request, ADMIN, unit_of_work_factory=sqlite_unit_of_work, config=CONFIG, clock=clock
    )

    assert outcome.ok
    assert (outcome.created, outcome.skipped, outcome.failed) == (2, 1, 2)
    assert outcome.message == "2 inserted, 1 skipped as duplicates, 2 failed"
    assert outcome.duplicate_practitioner_ids == (p2.id,)
    stored = load_submission(sqlite_unit_of_work, outcome.submission_ids[0])
    assert stored is not None
    assert stored.practitioner_id == p1.id
    assert stored.status is ApprovalStatus.PENDING
    assert stored.creation_method is CreationMethod.BULK
    assert stored.credits == 2.5
    assert stored.activity_name == "Infection control"
    assert stored.submitted_by == ADMIN.actor_id

    (audit,) = _audit_entries(sqlite_unit_of_work, catalog.id)
    assert audit.action is AuditAction.BULK_SUBMISSION_CREATE
    details = audit.details
    assert details["type"] == "bulk_submission"
    assert details["successCount"] == 2
    assert details["errorCount"] == 2
    assert details["totalCount"] == 5
    assert details["cohortMode"] == "manual"
    assert details["samplePractitionerIds"] == [str(p1.id), str(p2.id), str(p3.id)]
    assert audit.ip_address == "10.0.0.1"


@pytest.mark.parametrize(
    ("catalog_kwargs", "code"),
    [
        ({"active": False}, RejectionCode.CATALOG_UNAVAILABLE),
        ({"valid_to": date(2021, 1, 1)}, RejectionCode.CATALOG_UNAVAILABLE),
        ({"valid_from": date(2022, 1, 1)}, RejectionCode.CATALOG_UNAVAILABLE),
        ({"unit_id": UNIT_B}, RejectionCode.TENANT_MISMATCH),
    ],
)
def test_unavailable_catalog_entries_are_refused(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
    clock: Clock,
    catalog_kwargs: dict[str, object],
    code: RejectionCode,
) -> None:
    catalog = make_catalog_entry(**catalog_kwargs)  # pyright: ignore[reportArgumentType]
    practitioner = make_practitioner()
    persist(sqlite_unit_of_work, catalog, practitioner)

    outcome = submit_bulk_activity(
        BulkSubmissionRequest(catalog_id=catalog.id, cohort=_manual(practitioner.id)),
        ADMIN,
        unit_of_work_factory=sqlite_unit_of_work,
        config=CONFIG,
        clock=clock,
    )

    assert not outcome.ok
    assert outcome.rejection is not None
    assert outcome.rejection.code is code
    assert outcome.created == 0


def test_unknown_catalog_and_empty_cohort(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
    clock: Clock,
) -> None:
    catalog = make_catalog_entry()
    persist(sqlite_unit_of_work, catalog)

    unknown = submit_bulk_activity(
        BulkSubmissionRequest(catalog_id=uuid4(), cohort=_manual(uuid4())),
        ADMIN,
        unit_of_work_factory=sqlite_unit_of_work,
        config=CONFIG,
        clock=clock,
    )
    empty = submit_bulk_activity(
        BulkSubmissionRequest(catalog_id=catalog.id, cohort=_manual()),
        ADMIN,
        unit_of_work_factory=sqlite_unit_of_work,
        config=CONFIG,
        clock=clock,
    )

    assert unknown.rejection is not None
    assert unknown.rejection.message == "activity not found"
    assert empty.rejection is not None
    assert empty.rejection.code is RejectionCode.EMPTY_COHORT


def test_audit_failure_does_not_undo_business_change(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
    clock: Clock,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    practitioner = make_practitioner()
    submission = make_submission(practitioner.id, status=ApprovalStatus.PENDING)
    persist(sqlite_unit_of_work, practitioner, submission)

    def failing_add(self: SqlAlchemyAuditLogRepository, entity: object) -> None:
        raise OperationalError("INSERT INTO audit_log", {}, Exception("disk full"))

    monkeypatch.setattr(SqlAlchemyAuditLogRepository, "add", failing_add)

    result = approve_submissions(
        [submission.id], uuid4(), unit_of_work_factory=sqlite_unit_of_work, clock=clock
    )

    assert result.updated_ids == (submission.id,)
    stored = load_submission(sqlite_unit_of_work, submission.id)
    assert stored is not None
    assert stored.status is ApprovalStatus.APPROVED


def test_approve_and_revoke_write_audit_entries(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
    clock: Clock,
) -> None:
    practitioner = make_practitioner()
    submission = make_submission(practitioner.id, status=ApprovalStatus.PENDING)
    persist(sqlite_unit_of_work, practitioner, submission)
    actor = uuid4()

    approve_submissions(
        [submission.id],
        actor,
        comment="verified",
        unit_of_work_factory=sqlite_unit_of_work,
        clock=clock,
    )
    revoke_submissions(
        [submission.id], actor, reason="data error", unit_of_work_factory=sqlite_unit_of_work
    )

    actions = [entry.action for entry in _audit_entries(sqlite_unit_of_work, submission.id)]
    assert actions == [AuditAction.SUBMISSION_APPROVE, AuditAction.SUBMISSION_REVOKE]


def test_practitioner_compliance_combines_cycle_and_categories(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
    clock: Clock,
) -> None:
    practitioner = make_practitioner()
    course = make_catalog_entry(category=ActivityCategory.COURSE)
    persist(
        sqlite_unit_of_work,
        make_rule(required_total=100, caps={"KhoaHoc": 30}),
        practitioner,
        course,
        make_submission(practitioner.id, credits=25, catalog=course),
    )

    view = practitioner_compliance(
        practitioner.id, unit_of_work_factory=sqlite_unit_of_work, config=CONFIG, clock=clock
    )

    assert view.cycle is not None
    assert view.cycle.completion_pct == 25.0
    assert view.cycle.status is CycleStatus.IN_PROGRESS
    (course_summary,) = view.categories
    assert course_summary.remaining == 5

    stats = compliance_statistics(
        [practitioner.id], unit_of_work_factory=sqlite_unit_of_work, config=CONFIG, clock=clock
    )
    assert stats.non_compliant == 1


def test_default_factory_starts_adapter(monkeypatch: pytest.MonkeyPatch) -> None:
    started: list[bool] = []
    monkeypatch.setattr(app_module, "is_started", lambda: False)
    monkeypatch.setattr(app_module, "startup", lambda **_: started.append(True))

    factory = app_module._default_unit_of_work_factory()  # noqa: SLF001  # pyright: ignore[reportPrivateUsage]

    assert started == [True]
    assert factory is app_module.SqlAlchemyUnitOfWork


@pytest.mark.parametrize(
    ("caller", "code", "message"),
    [
        (
            Caller(actor_id=uuid4(), role=CallerRole.UNIT_ADMIN),
            RejectionCode.TENANT_MISMATCH,
            "unit information is required",
        ),
        (
            Caller(actor_id=uuid4(), role=CallerRole.PRACTITIONER, unit_id=UNIT_A),
            RejectionCode.FORBIDDEN,
            "role NguoiHanhNghe cannot create bulk submissions",
        ),
        (
            Caller(actor_id=uuid4(), role=CallerRole.AUDITOR, unit_id=UNIT_A),
            RejectionCode.FORBIDDEN,
            "role Auditor cannot create bulk submissions",
        ),
    ],
)
def test_callers_without_bulk_rights_are_refused(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
    clock: Clock,
    caller: Caller,
    code: RejectionCode,
    message: str,
) -> None:
    catalog = make_catalog_entry()
    practitioner = make_practitioner()
    persist(sqlite_unit_of_work, catalog, practitioner)
    request = BulkSubmissionRequest(catalog_id=catalog.id, cohort=_manual(practitioner.id))

    outcome = submit_bulk_activity(
        request, caller, unit_of_work_factory=sqlite_unit_of_work, config=CONFIG, clock=clock
    )
    preview = preview_bulk_activity(
        request, caller, unit_of_work_factory=sqlite_unit_of_work, config=CONFIG, clock=clock
    )

    assert outcome.rejection is not None
    assert outcome.rejection.code is code
    assert outcome.message == message
    assert outcome.created == 0
    assert preview.rejection == outcome.rejection


@pytest.mark.parametrize(
    ("catalog_kwargs", "message"),
    [
        ({"valid_to": date(2021, 1, 1)}, "activity has expired"),
        ({"valid_from": date(2022, 1, 1)}, "activity is not yet valid"),
        ({"active": False, "valid_to": date(2021, 1, 1)}, "activity is not active"),
    ],
)
def test_catalog_refusal_messages(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
    clock: Clock,
    catalog_kwargs: dict[str, object],
    message: str,
) -> None:
    catalog = make_catalog_entry(**catalog_kwargs)  # pyright: ignore[reportArgumentType]
    practitioner = make_practitioner()
    persist(sqlite_unit_of_work, catalog, practitioner)

    outcome = submit_bulk_activity(
        BulkSubmissionRequest(catalog_id=catalog.id, cohort=_manual(practitioner.id)),
        ADMIN,
        unit_of_work_factory=sqlite_unit_of_work,
        config=CONFIG,
        clock=clock,
    )

    assert outcome.message == message


def test_preview_counts_without_writing(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
    clock: Clock,
) -> None:
    catalog = make_catalog_entry()
    practitioners = [make_practitioner(f"P{i:02d}") for i in range(12)]
    foreign = make_practitioner("Foreign", unit_id=UNIT_B)
    held = make_submission(practitioners[3].id, catalog=catalog)
    persist(sqlite_unit_of_work, catalog, *practitioners, foreign, held)
    request = BulkSubmissionRequest(
        catalog_id=catalog.id,
        cohort=_manual(*(p.id for p in practitioners), foreign.id),
    )

    preview = preview_bulk_activity(
        request, ADMIN, unit_of_work_factory=sqlite_unit_of_work, config=CONFIG, clock=clock
    )

    assert preview.ok
    assert preview.total_candidates == 12
    assert preview.create_count == 11
    assert preview.skip_count == 1
    assert preview.duplicate_practitioner_ids == (practitioners[3].id,)
    assert preview.sample_ids == tuple(p.id for p in practitioners[:10])
    assert [error.practitioner_id for error in preview.errors] == [foreign.id]
    with sqlite_unit_of_work() as uow:
        counts = uow.repositories.submissions.count_by_status()
    assert sum(counts.values()) == 1
    assert _audit_entries(sqlite_unit_of_work, catalog.id) == []


def test_preview_of_empty_cohort_is_refused(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
    clock: Clock,
) -> None:
    catalog = make_catalog_entry()
    practitioner = make_practitioner()
    persist(sqlite_unit_of_work, catalog, practitioner)
    selection = CohortSelection(
        mode=CohortMode.MANUAL,
        selected_ids=(practitioner.id,),
        excluded_ids=(practitioner.id,),
    )

    preview = preview_bulk_activity(
        BulkSubmissionRequest(catalog_id=catalog.id, cohort=selection),
        ADMIN,
        unit_of_work_factory=sqlite_unit_of_work,
        config=CONFIG,
        clock=clock,
    )

    assert preview.rejection is not None
    assert preview.rejection.code is RejectionCode.EMPTY_COHORT
    assert preview.total_candidates == 0
