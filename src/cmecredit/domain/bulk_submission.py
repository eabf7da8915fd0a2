"""Idempotent, atomic creation of one submission per cohort member."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from cmecredit.domain.errors import BulkWriteError
from cmecredit.domain.model import BulkDraft, BulkInsertResult, CreationMethod
from cmecredit.domain.model.cohort import DEFAULT_PAGE_SIZE

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from uuid import UUID

    from cmecredit.domain.model import BulkActivityTemplate, ResolvedPractitioner
    from cmecredit.domain.ports import UnitOfWorkFactory

log = getLogger(__name__)

DEFAULT_BATCH_SIZE = DEFAULT_PAGE_SIZE


def build_drafts(
    practitioners: Iterable[ResolvedPractitioner],
    template: BulkActivityTemplate,
    *,
    submitted_by: UUID,
    creation_method: CreationMethod = CreationMethod.BULK,
) -> list[BulkDraft]:
    return [
        BulkDraft(
            practitioner_id=practitioner.id,
            activity_name=template.activity_name,
            submitted_by=submitted_by,
            catalog_id=template.catalog_id,
            activity_form=template.activity_form,
            organizer=template.organizer,
            started_at=template.started_at,
            ended_at=template.ended_at,
            hours=template.hours,
            credits=template.credits,
            creation_method=creation_method,
        )
        for practitioner in practitioners
    ]


class BulkSubmissionWriter:
    def __init__(
        self,
        unit_of_work_factory: UnitOfWorkFactory,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self._unit_of_work_factory = unit_of_work_factory
        self._batch_size = batch_size

    def find_anticipated_duplicates(self, drafts: Sequence[BulkDraft]) -> set[UUID]:
        """Practitioners that already hold a submission for the draft's catalog entry.

        Advisory only; ``bulk_create`` remains correct under concurrent writers.
        """

        by_catalog: dict[UUID, list[UUID]] = {}
        for draft in drafts:
            if draft.catalog_id is not None:
                by_catalog.setdefault(draft.catalog_id, []).append(draft.practitioner_id)
        if not by_catalog:
            return set()

        duplicates: set[UUID] = set()
        with self._unit_of_work_factory() as uow:
            repository = uow.repositories.submissions
            for catalog_id, practitioner_ids in by_catalog.items():
                for start in range(0, len(practitioner_ids), self._batch_size):
                    duplicates |= repository.find_practitioners_with_submission(
                        catalog_id, practitioner_ids[start : start + self._batch_size]
                    )
        return duplicates

    def bulk_create(self, drafts: Sequence[BulkDraft]) -> BulkInsertResult:
        """Insert every draft in one transaction, skipping (practitioner, catalog) duplicates.

        Raises ``BulkWriteError`` when the store rejects a batch; in that case the
        whole transaction is rolled back and nothing is persisted.
        """

        if not drafts:
            return BulkInsertResult(inserted=(), conflicts=())

        seen: set[tuple[UUID, UUID]] = set()
        unique: list[BulkDraft] = []
        repeated: set[UUID] = set()
        for draft in drafts:
            key = draft.dedup_key
            if key is not None and key in seen:
                repeated.add(draft.id)
                continue
            if key is not None:
                seen.add(key)
            unique.append(draft)

        inserted_ids: set[UUID] = set()
        batch_index = 0
        with self._unit_of_work_factory() as uow:
            repository = uow.repositories.submissions
            try:
                for batch_index, start in enumerate(range(0, len(unique), self._batch_size)):
                    batch = unique[start : start + self._batch_size]
                    inserted_ids |= repository.insert_drafts(batch)
                    log.debug("Bulk batch %d: %d rows", batch_index, len(batch))
                missing = [
                    d.practitioner_id
                    for d in unique
                    if d.dedup_key is None and d.id not in inserted_ids
                ]
                if missing:
                    raise BulkWriteError(
                        f"rows without catalog entry were not inserted: {missing}",
                        batch_index=batch_index,
                        batch_size=self._batch_size,
                    )
                uow.commit()
            except BulkWriteError:
                uow.rollback()
                raise
            except Exception as exc:
                uow.rollback()
                log.exception("Bulk submission insert rolled back at batch %d", batch_index)
                raise BulkWriteError(
                    str(exc), batch_index=batch_index, batch_size=self._batch_size
                ) from exc

            ordered_ids = [d.id for d in unique if d.id in inserted_ids]
            loaded = {
                record.id: record
                for start in range(0, len(ordered_ids), self._batch_size)
                for record in repository.get_many(ordered_ids[start : start + self._batch_size])
            }

        conflicts = tuple(
            draft.practitioner_id
            for draft in drafts
            if draft.id in repeated or (draft.id not in inserted_ids and draft.dedup_key is not None)
        )
        inserted = tuple(loaded[record_id] for record_id in ordered_ids if record_id in loaded)
        log.info(
            "Bulk submission created %d records, %d conflicts", len(inserted), len(conflicts)
        )
        return BulkInsertResult(inserted=inserted, conflicts=conflicts)
