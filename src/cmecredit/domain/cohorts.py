"""Turn a cohort selection into a concrete, tenancy-checked practitioner list."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Final

from cmecredit.domain.model import (
    CohortError,
    CohortMode,
    CohortResolution,
    ResolvedPractitioner,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

    from cmecredit.domain.model import CohortSelection, Practitioner, ResolutionContext
    from cmecredit.domain.ports import UnitOfWorkFactory
    from cmecredit.domain.ports.persistence import PractitionerRepository

log = getLogger(__name__)

NOT_FOUND_ERROR: Final = "practitioner not found"
TENANCY_ERROR: Final = "practitioner belongs to another unit"
EMPTY_SELECTION_ERROR: Final = "no practitioners selected after exclusions"


def _chunks[T](items: Sequence[T], size: int) -> list[Sequence[T]]:
    return [items[start : start + size] for start in range(0, len(items), size)]


class CohortResolver:
    def __init__(self, unit_of_work_factory: UnitOfWorkFactory) -> None:
        self._unit_of_work_factory = unit_of_work_factory

    def resolve(self, selection: CohortSelection, context: ResolutionContext) -> CohortResolution:
        normalized = selection.normalized()
        if normalized.mode is CohortMode.MANUAL:
            practitioners, errors = self._resolve_manual(normalized, context)
        else:
            practitioners, errors = self._resolve_filtered(normalized, context)
        log.info(
            "Resolved %s cohort: %d practitioners, %d errors",
            normalized.mode,
            len(practitioners),
            len(errors),
        )
        return CohortResolution(
            practitioners=tuple(practitioners),
            errors=tuple(errors),
            normalized_selection=normalized,
        )

    def _resolve_manual(
        self, selection: CohortSelection, context: ResolutionContext
    ) -> tuple[list[ResolvedPractitioner], list[CohortError]]:
        excluded = set(selection.excluded_ids)
        candidate_ids = [pid for pid in selection.selected_ids if pid not in excluded]
        if not candidate_ids:
            return [], [CohortError(practitioner_id=None, error=EMPTY_SELECTION_ERROR)]

        found: dict[UUID, Practitioner] = {}
        with self._unit_of_work_factory() as uow:
            repository = uow.repositories.practitioners
            for chunk in _chunks(candidate_ids, context.page_size):
                found.update((p.id, p) for p in repository.get_many(chunk))

        scope = context.unit_scope
        practitioners: list[ResolvedPractitioner] = []
        errors: list[CohortError] = []
        for practitioner_id in candidate_ids:
            practitioner = found.get(practitioner_id)
            if practitioner is None:
                errors.append(CohortError(practitioner_id=practitioner_id, error=NOT_FOUND_ERROR))
            elif scope is not None and practitioner.unit_id != scope:
                log.warning("Practitioner %s is outside unit %s", practitioner_id, scope)
                errors.append(CohortError(practitioner_id=practitioner_id, error=TENANCY_ERROR))
            else:
                practitioners.append(
                    ResolvedPractitioner(id=practitioner.id, unit_id=practitioner.unit_id)
                )
        return practitioners, errors

    def _resolve_filtered(
        self, selection: CohortSelection, context: ResolutionContext
    ) -> tuple[list[ResolvedPractitioner], list[CohortError]]:
        with self._unit_of_work_factory() as uow:
            matches = self._collect_pages(uow.repositories.practitioners, selection, context)

        excluded = set(selection.excluded_ids)
        practitioners = [p for pid, p in matches.items() if pid not in excluded]
        if not practitioners:
            return [], [CohortError(practitioner_id=None, error=EMPTY_SELECTION_ERROR)]
        return practitioners, []

    @staticmethod
    def _collect_pages(
        repository: PractitionerRepository,
        selection: CohortSelection,
        context: ResolutionContext,
    ) -> dict[UUID, ResolvedPractitioner]:
        matches: dict[UUID, ResolvedPractitioner] = {}
        offset = 0
        pages = 0
        while True:
            page = repository.find_page(
                selection.filters,
                unit_id=context.unit_scope,
                limit=context.page_size,
                offset=offset,
            )
            pages += 1
            for practitioner in page:
                matches.setdefault(
                    practitioner.id,
                    ResolvedPractitioner(id=practitioner.id, unit_id=practitioner.unit_id),
                )
            if len(page) < context.page_size:
                break
            offset += context.page_size
        log.debug("Fetched %d filter pages (%d matches)", pages, len(matches))
        return matches
