from __future__ import annotations

import json
from datetime import UTC, datetime
from uuid import uuid4

import pytest
from pydantic import ValidationError

from cmecredit.adapters.payloads import (
    CohortSelectionPayload,
    parse_bulk_submission,
    to_cohort_selection,
)
from cmecredit.domain.model import CohortMode, WorkStatus


def test_manual_selection_payload_translates_to_domain() -> None:
    first, second = uuid4(), uuid4()
    payload = {
        "mode": "manual",
        "selectedIds": [str(first), str(second), str(first)],
        "excludedIds": [str(second)],
        "unknownKey": "ignored",
    }

    selection = to_cohort_selection(payload)

    assert selection.mode is CohortMode.MANUAL
    assert selection.selected_ids == (first, second, first)
    assert selection.excluded_ids == (second,)
    assert selection.normalized().selected_ids == (first, second)


def test_filter_payload_normalises_blank_and_all_values() -> None:
    selection = to_cohort_selection(
        {
            "mode": "all",
            "filters": {"status": "all", "title": "  ", "department": "ICU", "search": " lan "},
            "totalFiltered": 12,
        }
    )

    assert selection.mode is CohortMode.ALL_FILTERED
    assert selection.filters.work_status is None
    assert selection.filters.title is None
    assert selection.filters.department == "ICU"
    assert selection.filters.search == "lan"
    assert selection.total_filtered_estimate == 12


def test_filter_payload_accepts_work_status_codes() -> None:
    payload = CohortSelectionPayload.model_validate(
        {"mode": "all", "filters": {"status": "DangLamViec"}}
    )

    assert payload.filters.status is WorkStatus.ACTIVE


def test_bulk_submission_parses_json_text() -> None:
    catalog_id = uuid4()
    raw = json.dumps(
        {
            "catalogId": str(catalog_id),
            "cohort": {"mode": "manual", "selectedIds": [str(uuid4())]},
            "startDate": "2021-03-01T08:00:00",
            "endDate": "2021-03-01T17:00:00+07:00",
            "organizer": " Provincial hospital ",
        }
    )

    request = parse_bulk_submission(raw)

    assert request.catalog_id == catalog_id
    assert request.started_at == datetime(2021, 3, 1, 8, tzinfo=UTC)
    assert request.ended_at is not None
    assert request.ended_at.utcoffset() is not None
    assert request.organizer == "Provincial hospital"


@pytest.mark.parametrize(
    "payload",
    [
        {"catalogId": "not-a-uuid", "cohort": {"mode": "manual"}},
        {"catalogId": str(uuid4()), "cohort": {"mode": "everyone"}},
        {
            "catalogId": str(uuid4()),
            "cohort": {"mode": "manual"},
            "startDate": "2021-03-02T00:00:00Z",
            "endDate": "2021-03-01T00:00:00Z",
        },
        {"catalogId": str(uuid4()), "cohort": {"mode": "all", "totalFiltered": -1}},
    ],
)
def test_bulk_submission_rejects_invalid_payloads(payload: dict[str, object]) -> None:
    with pytest.raises(ValidationError):
        parse_bulk_submission(payload)
