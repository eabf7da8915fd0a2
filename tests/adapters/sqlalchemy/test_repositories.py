"""Tests for SQLAlchemy repositories."""

from __future__ import annotations

from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy.orm import Session  # noqa: TC002

from cmecredit.adapters.sqlalchemy.repositories import (
    SqlAlchemyAuditLogRepository,
    SqlAlchemyCreditRuleRepository,
    SqlAlchemyPractitionerRepository,
    SqlAlchemySubmissionRepository,
)
from cmecredit.domain.model import (
    ActivityCategory,
    ApprovalStatus,
    AuditAction,
    AuditEntry,
    CohortFilters,
)
from tests.helpers.compliance import (
    UNIT_A,
    UNIT_B,
    make_catalog_entry,
    make_practitioner,
    make_rule,
    make_submission,
)

WINDOW_START = datetime(2020, 1, 1, tzinfo=UTC)
WINDOW_END = datetime(2025, 1, 1, tzinfo=UTC)


def test_rule_repository_lists_active_in_insertion_order(sqlite_session: Session) -> None:
    repository = SqlAlchemyCreditRuleRepository(sqlite_session)
    second = make_rule(name="second", created_at=datetime(2021, 1, 1, tzinfo=UTC))
    first = make_rule(name="first", created_at=datetime(2020, 1, 1, tzinfo=UTC))
    inactive = make_rule(name="inactive", active=False)
    for rule in (second, first, inactive):
        repository.add(rule)
    sqlite_session.commit()

    assert [rule.name for rule in repository.list_active()] == ["first", "second"]


def test_rule_caps_round_trip_as_typed_mapping(sqlite_session: Session) -> None:
    repository = SqlAlchemyCreditRuleRepository(sqlite_session)
    rule = make_rule(caps={"KhoaHoc": 20, "NghienCuu": 0})
    repository.add(rule)
    sqlite_session.commit()
    sqlite_session.expunge_all()

    loaded = repository.get(rule.id)

    assert loaded is not None
    assert loaded.category_caps == {
        ActivityCategory.COURSE: 20.0,
        ActivityCategory.RESEARCH: 0.0,
    }


def test_practitioner_page_is_ordered_and_scoped(sqlite_session: Session) -> None:
    repository = SqlAlchemyPractitionerRepository(sqlite_session)
    names = ["Dang", "An", "Cuong", "Binh"]
    for name in names:
        repository.add(make_practitioner(name))
    repository.add(make_practitioner("Aaa outsider", unit_id=UNIT_B))
    sqlite_session.commit()

    first_page = repository.find_page(CohortFilters(), unit_id=UNIT_A, limit=3, offset=0)
    second_page = repository.find_page(CohortFilters(), unit_id=UNIT_A, limit=3, offset=3)

    assert [p.full_name for p in first_page] == ["An", "Binh", "Cuong"]
    assert [p.full_name for p in second_page] == ["Dang"]


def test_practitioner_search_escapes_wildcards(sqlite_session: Session) -> None:
    repository = SqlAlchemyPractitionerRepository(sqlite_session)
    literal = make_practitioner("Tran 100% Lan")
    other = make_practitioner("Tran 1000 Lan")
    repository.add(literal)
    repository.add(other)
    sqlite_session.commit()

    found = repository.find_page(
        CohortFilters(search="100%"), unit_id=None, limit=10, offset=0
    )

    assert [p.id for p in found] == [literal.id]


def test_practitioner_search_matches_license_number(sqlite_session: Session) -> None:
    repository = SqlAlchemyPractitionerRepository(sqlite_session)
    licensed = make_practitioner("Hoa", license_number="CCHN-000123")
    repository.add(licensed)
    repository.add(make_practitioner("Khanh", license_number="CCHN-999"))
    sqlite_session.commit()

    found = repository.find_page(
        CohortFilters(search="cchn-000"), unit_id=None, limit=10, offset=0
    )

    assert [p.id for p in found] == [licensed.id]


def test_get_many_ignores_unknown_ids(sqlite_session: Session) -> None:
    repository = SqlAlchemyPractitionerRepository(sqlite_session)
    known = make_practitioner()
    repository.add(known)
    sqlite_session.commit()

    assert [p.id for p in repository.get_many([known.id, uuid4()])] == [known.id]
    assert repository.get_many([]) == []


def test_submissions_join_catalog_and_filter_window(sqlite_session: Session) -> None:
    repository = SqlAlchemySubmissionRepository(sqlite_session)
    practitioner = make_practitioner()
    catalog = make_catalog_entry()
    with_catalog = make_submission(practitioner.id, catalog=catalog)
    without_catalog = make_submission(practitioner.id, status=ApprovalStatus.PENDING)
    outside = make_submission(practitioner.id, started_at=datetime(2026, 1, 1, tzinfo=UTC))
    sqlite_session.add_all([practitioner, catalog, with_catalog, without_catalog, outside])
    sqlite_session.commit()

    rows = repository.list_with_catalog(
        practitioner.id, window_start=WINDOW_START, window_end=WINDOW_END
    )
    approved_only = repository.list_with_catalog(
        practitioner.id,
        window_start=WINDOW_START,
        window_end=WINDOW_END,
        status=ApprovalStatus.APPROVED,
    )

    by_id = {submission.id: entry for submission, entry in rows}
    assert set(by_id) == {with_catalog.id, without_catalog.id}
    assert by_id[with_catalog.id] is not None
    assert by_id[with_catalog.id].id == catalog.id  # pyright: ignore[reportOptionalMemberAccess]
    assert by_id[without_catalog.id] is None
    assert [submission.id for submission, _ in approved_only] == [with_catalog.id]


def test_audit_entries_are_listed_per_record(sqlite_session: Session) -> None:
    repository = SqlAlchemyAuditLogRepository(sqlite_session)
    record_id = uuid4()
    repository.add(
        AuditEntry(
            action=AuditAction.SUBMISSION_APPROVE,
            actor_id=uuid4(),
            record_id=record_id,
            details={"comment": "ok"},
        )
    )
    repository.add(
        AuditEntry(action=AuditAction.SUBMISSION_REJECT, actor_id=uuid4(), record_id=uuid4())
    )
    sqlite_session.commit()

    entries = repository.list_for_record(record_id)

    assert [entry.action for entry in entries] == [AuditAction.SUBMISSION_APPROVE]
    assert entries[0].details == {"comment": "ok"}
