"""Approval state machine operations over stored submissions."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING
from uuid import UUID

from cmecredit.domain.errors import (
    ImmutableFieldError,
    InvalidTransitionError,
    Rejection,
    RejectionCode,
    SubmissionNotPendingError,
)
from cmecredit.domain.model import ApprovalStatus
from cmecredit.domain.time_windows import utcnow

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from cmecredit.domain.model import SubmissionRecord
    from cmecredit.domain.ports import ComplianceUnitOfWork, UnitOfWorkFactory
    from cmecredit.domain.time_windows import Clock

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TransitionResult:
    submission: SubmissionRecord | None
    rejection: Rejection | None = None

    @property
    def ok(self) -> bool:
        return self.rejection is None


@dataclass(frozen=True, slots=True)
class BulkTransitionResult:
    updated: tuple[SubmissionRecord, ...]
    skipped: tuple[Rejection, ...]

    @property
    def updated_ids(self) -> tuple[UUID, ...]:
        return tuple(record.id for record in self.updated)

    @property
    def skipped_ids(self) -> tuple[UUID, ...]:
        return tuple(r.record_id for r in self.skipped if r.record_id is not None)


@dataclass(frozen=True, slots=True)
class StatusCounts:
    pending: int = 0
    approved: int = 0
    rejected: int = 0

    @property
    def total(self) -> int:
        return self.pending + self.approved + self.rejected


EditResult = TransitionResult
type _Transition = Callable[[SubmissionRecord], None]


def _missing_reason(reason: str | None) -> bool:
    return reason is None or not reason.strip()


class SubmissionLifecycle:
    """Moves submissions through Pending, Approved and Rejected.

    Refusals come back as ``Rejection`` values; storage errors propagate.
    """

    def __init__(self, unit_of_work_factory: UnitOfWorkFactory, *, clock: Clock = utcnow) -> None:
        self._unit_of_work_factory = unit_of_work_factory
        self._clock = clock

    def approve(
        self,
        submission_id: UUID,
        approver_id: UUID,
        *,
        comment: str | None = None,
        unit_id: UUID | None = None,
    ) -> TransitionResult:
        at = self._clock()
        return self._single(
            submission_id,
            lambda s: s.approve(approver_id, at=at, comment=comment),
            state_code=RejectionCode.NOT_PENDING,
            unit_id=unit_id,
        )

    def reject(
        self,
        submission_id: UUID,
        approver_id: UUID,
        *,
        reason: str | None,
        unit_id: UUID | None = None,
    ) -> TransitionResult:
        if _missing_reason(reason):
            return TransitionResult(None, _reason_required(submission_id, "rejection"))
        at = self._clock()
        return self._single(
            submission_id,
            lambda s: s.reject(approver_id, at=at, reason=reason or ""),
            state_code=RejectionCode.NOT_PENDING,
            unit_id=unit_id,
        )

    def revoke(
        self,
        submission_id: UUID,
        actor_id: UUID,
        *,
        reason: str | None,
        unit_id: UUID | None = None,
    ) -> TransitionResult:
        if _missing_reason(reason):
            return TransitionResult(None, _reason_required(submission_id, "revocation"))
        log.info("Revoking submission %s on behalf of %s", submission_id, actor_id)
        return self._single(
            submission_id,
            lambda s: s.revoke(reason=reason or ""),
            state_code=RejectionCode.NOT_APPROVED,
            unit_id=unit_id,
        )

    def bulk_approve(
        self,
        submission_ids: Sequence[UUID],
        approver_id: UUID,
        *,
        comment: str | None = None,
        unit_id: UUID | None = None,
    ) -> BulkTransitionResult:
        at = self._clock()
        return self._many(
            submission_ids,
            lambda s: s.approve(approver_id, at=at, comment=comment),
            state_code=RejectionCode.NOT_PENDING,
            unit_id=unit_id,
        )

    def bulk_revoke(
        self,
        submission_ids: Sequence[UUID],
        actor_id: UUID,
        *,
        reason: str | None,
        unit_id: UUID | None = None,
    ) -> BulkTransitionResult:
        if _missing_reason(reason):
            return BulkTransitionResult(
                updated=(),
                skipped=tuple(
                    _reason_required(sid, "revocation") for sid in dict.fromkeys(submission_ids)
                ),
            )
        log.info("Revoking %d submissions on behalf of %s", len(submission_ids), actor_id)
        return self._many(
            submission_ids,
            lambda s: s.revoke(reason=reason or ""),
            state_code=RejectionCode.NOT_APPROVED,
            unit_id=unit_id,
        )

    def edit(
        self,
        submission_id: UUID,
        changes: Mapping[str, object],
        *,
        unit_id: UUID | None = None,
    ) -> EditResult:
        with self._unit_of_work_factory() as uow:
            submission = uow.repositories.submissions.get(submission_id)
            rejection = self._precheck(uow, submission_id, submission, unit_id)
            if rejection is None and submission is not None:
                rejection = self._duplicate_catalog(uow, submission, changes)
            if rejection is not None or submission is None:
                log.warning("Submission %s not edited: %s", submission_id, rejection)
                return TransitionResult(None, rejection)
            try:
                submission.apply_edit(changes)
            except SubmissionNotPendingError as exc:
                return TransitionResult(
                    None, Rejection(RejectionCode.NOT_PENDING, str(exc), submission_id)
                )
            except ImmutableFieldError as exc:
                return TransitionResult(
                    None, Rejection(RejectionCode.IMMUTABLE_FIELD, str(exc), submission_id)
                )
            except ValueError as exc:
                return TransitionResult(
                    None, Rejection(RejectionCode.INVALID_FIELD, str(exc), submission_id)
                )
            uow.commit()
        log.info("Edited submission %s (%s)", submission_id, ", ".join(sorted(changes)))
        return TransitionResult(submission)

    def status_counts(self, *, unit_id: UUID | None = None) -> StatusCounts:
        with self._unit_of_work_factory() as uow:
            counts = uow.repositories.submissions.count_by_status(unit_id=unit_id)
        return StatusCounts(
            pending=counts.get(ApprovalStatus.PENDING, 0),
            approved=counts.get(ApprovalStatus.APPROVED, 0),
            rejected=counts.get(ApprovalStatus.REJECTED, 0),
        )

    def _single(
        self,
        submission_id: UUID,
        transition: _Transition,
        *,
        state_code: RejectionCode,
        unit_id: UUID | None,
    ) -> TransitionResult:
        with self._unit_of_work_factory() as uow:
            submission = uow.repositories.submissions.get(submission_id)
            rejection = self._precheck(uow, submission_id, submission, unit_id)
            if rejection is None and submission is not None:
                rejection = _apply(submission, transition, state_code)
            if rejection is not None or submission is None:
                log.warning("Submission %s not transitioned: %s", submission_id, rejection)
                return TransitionResult(None, rejection)
            uow.commit()
        log.info("Submission %s is now %s", submission_id, submission.status)
        return TransitionResult(submission)

    def _many(
        self,
        submission_ids: Sequence[UUID],
        transition: _Transition,
        *,
        state_code: RejectionCode,
        unit_id: UUID | None,
    ) -> BulkTransitionResult:
        ordered = list(dict.fromkeys(submission_ids))
        updated: list[SubmissionRecord] = []
        skipped: list[Rejection] = []
        with self._unit_of_work_factory() as uow:
            found = {s.id: s for s in uow.repositories.submissions.get_many(ordered)}
            for submission_id in ordered:
                submission = found.get(submission_id)
                rejection = self._precheck(uow, submission_id, submission, unit_id)
                if rejection is None and submission is not None:
                    rejection = _apply(submission, transition, state_code)
                if rejection is not None:
                    skipped.append(rejection)
                elif submission is not None:
                    updated.append(submission)
            if updated:
                uow.commit()
        if skipped:
            log.warning("Bulk transition skipped %d submissions", len(skipped))
        log.info("Bulk transition: %d updated, %d skipped", len(updated), len(skipped))
        return BulkTransitionResult(updated=tuple(updated), skipped=tuple(skipped))

    @staticmethod
    def _duplicate_catalog(
        uow: ComplianceUnitOfWork,
        submission: SubmissionRecord,
        changes: Mapping[str, object],
    ) -> Rejection | None:
        catalog_id = changes.get("catalog_id")
        if (
            not submission.is_pending
            or not isinstance(catalog_id, UUID)
            or catalog_id == submission.catalog_id
        ):
            return None
        holders = uow.repositories.submissions.find_practitioners_with_submission(
            catalog_id, [submission.practitioner_id]
        )
        if not holders:
            return None
        return Rejection(
            RejectionCode.DUPLICATE,
            "practitioner already has a submission for this activity",
            submission.id,
        )

    @staticmethod
    def _precheck(
        uow: ComplianceUnitOfWork,
        submission_id: UUID,
        submission: SubmissionRecord | None,
        unit_id: UUID | None,
    ) -> Rejection | None:
        if submission is None:
            return Rejection(RejectionCode.NOT_FOUND, "submission not found", submission_id)
        if unit_id is None:
            return None
        practitioner = uow.repositories.practitioners.get(submission.practitioner_id)
        if practitioner is None or practitioner.unit_id != unit_id:
            return Rejection(
                RejectionCode.TENANT_MISMATCH,
                "submission belongs to a practitioner of another unit",
                submission_id,
            )
        return None


def _apply(
    submission: SubmissionRecord, transition: _Transition, state_code: RejectionCode
) -> Rejection | None:
    try:
        transition(submission)
    except InvalidTransitionError as exc:
        return Rejection(state_code, str(exc), submission.id)
    return None


def _reason_required(submission_id: UUID, kind: str) -> Rejection:
    return Rejection(RejectionCode.REASON_REQUIRED, f"a {kind} reason is required", submission_id)
