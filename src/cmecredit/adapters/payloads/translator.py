"""Translate validated payloads into domain request objects."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from cmecredit.domain.model import (
    BulkSubmissionRequest,
    CohortFilters,
    CohortMode,
    CohortSelection,
)

from .schema import BulkSubmissionPayload, CohortSelectionPayload

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .schema import BulkSubmissionInput

log = getLogger(__name__)


def to_cohort_selection(payload: CohortSelectionPayload | Mapping[str, object]) -> CohortSelection:
    if not isinstance(payload, CohortSelectionPayload):
        payload = CohortSelectionPayload.model_validate(payload)
    filters = payload.filters
    return CohortSelection(
        mode=CohortMode(payload.mode),
        selected_ids=tuple(payload.selected_ids),
        excluded_ids=tuple(payload.excluded_ids),
        filters=CohortFilters(
            work_status=filters.status,
            title=filters.title,
            department=filters.department,
            search=filters.search,
        ),
        total_filtered_estimate=payload.total_filtered,
    )


def parse_bulk_submission(data: BulkSubmissionInput) -> BulkSubmissionRequest:
    """Validate raw JSON (text or decoded) and build a ``BulkSubmissionRequest``.

    Raises ``pydantic.ValidationError`` on malformed input.
    """

    if isinstance(data, BulkSubmissionPayload):
        payload = data
    elif isinstance(data, str | bytes):
        payload = BulkSubmissionPayload.model_validate_json(data)
    else:
        payload = BulkSubmissionPayload.model_validate(data)

    request = BulkSubmissionRequest(
        catalog_id=payload.catalog_id,
        cohort=to_cohort_selection(payload.cohort),
        started_at=payload.started_at,
        ended_at=payload.ended_at,
        organizer=payload.organizer,
    )
    log.debug(
        "Parsed bulk submission for catalog %s (%s cohort)",
        request.catalog_id,
        request.cohort.mode,
    )
    return request
