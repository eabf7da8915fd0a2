"""Public interface for inbound payload parsing."""

from __future__ import annotations

from .schema import (
    BulkSubmissionInput,
    BulkSubmissionPayload,
    CohortFiltersPayload,
    CohortSelectionPayload,
)
from .translator import parse_bulk_submission, to_cohort_selection

__all__ = [
    "BulkSubmissionInput",
    "BulkSubmissionPayload",
    "CohortFiltersPayload",
    "CohortSelectionPayload",
    "parse_bulk_submission",
    "to_cohort_selection",
]
