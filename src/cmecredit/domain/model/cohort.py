"""Cohort selection descriptors and resolution results."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from cmecredit.domain.model.enums import CallerRole, CohortMode

if TYPE_CHECKING:
    from uuid import UUID

    from cmecredit.domain.model.enums import WorkStatus

DEFAULT_PAGE_SIZE = 500


def dedupe_ids(ids: tuple[UUID, ...] | list[UUID]) -> tuple[UUID, ...]:
    """Drop repeated ids while keeping first-seen order."""
    return tuple(dict.fromkeys(ids))


@dataclass(frozen=True, slots=True)
class CohortFilters:
    """Predicate for all-filtered selections; ``None`` means "no constraint"."""

    work_status: WorkStatus | None = None
    title: str | None = None
    department: str | None = None
    search: str | None = None


@dataclass(frozen=True, slots=True)
class CohortSelection:
    mode: CohortMode
    selected_ids: tuple[UUID, ...] = ()
    excluded_ids: tuple[UUID, ...] = ()
    filters: CohortFilters = field(default_factory=CohortFilters)
    # informational only; never used for resolution
    total_filtered_estimate: int | None = None

    def normalized(self) -> CohortSelection:
        return CohortSelection(
            mode=self.mode,
            selected_ids=dedupe_ids(self.selected_ids),
            excluded_ids=dedupe_ids(self.excluded_ids),
            filters=self.filters,
            total_filtered_estimate=self.total_filtered_estimate,
        )


@dataclass(frozen=True, slots=True)
class ResolutionContext:
    caller_role: CallerRole
    caller_unit_id: UUID | None = None
    page_size: int = DEFAULT_PAGE_SIZE

    def __post_init__(self) -> None:
        if self.page_size < 1:
            raise ValueError("page_size must be at least 1")
        if self.caller_role.is_unit_scoped and self.caller_unit_id is None:
            raise ValueError(f"caller role {self.caller_role} requires a unit id")

    @property
    def unit_scope(self) -> UUID | None:
        return self.caller_unit_id if self.caller_role.is_unit_scoped else None


@dataclass(frozen=True, slots=True)
class ResolvedPractitioner:
    id: UUID
    unit_id: UUID


@dataclass(frozen=True, slots=True)
class CohortError:
    practitioner_id: UUID | None
    error: str


@dataclass(frozen=True, slots=True)
class CohortResolution:
    practitioners: tuple[ResolvedPractitioner, ...]
    errors: tuple[CohortError, ...]
    normalized_selection: CohortSelection

    @property
    def practitioner_ids(self) -> tuple[UUID, ...]:
        return tuple(p.id for p in self.practitioners)
