"""Domain enums (pure, dependency-light).

Stored values are the codes used by the regional health authority's records,
so they round-trip unchanged through upstream payloads.
"""

from __future__ import annotations

from enum import StrEnum


class ApprovalStatus(StrEnum):
    PENDING = "ChoDuyet"
    APPROVED = "DaDuyet"
    REJECTED = "TuChoi"


class ActivityCategory(StrEnum):
    COURSE = "KhoaHoc"
    CONFERENCE = "HoiThao"
    RESEARCH = "NghienCuu"
    REPORT = "BaoCao"
    # bucket for submissions without a catalog entry
    OTHER = "Khac"


class WorkStatus(StrEnum):
    ACTIVE = "DangLamViec"
    RETIRED = "DaNghi"
    SUSPENDED = "TamHoan"


class CycleStatus(StrEnum):
    IN_PROGRESS = "DangThucHien"
    COMPLETED = "HoanThanh"
    OVERDUE = "QuaHan"
    NEARING_DEADLINE = "SapHetHan"


class CreationMethod(StrEnum):
    INDIVIDUAL = "individual"
    BULK = "bulk"
    IMPORT = "import"


class CallerRole(StrEnum):
    DEPARTMENT_OF_HEALTH = "SoYTe"
    UNIT_ADMIN = "DonVi"
    PRACTITIONER = "NguoiHanhNghe"
    AUDITOR = "Auditor"

    @property
    def is_unit_scoped(self) -> bool:
        return self is not CallerRole.DEPARTMENT_OF_HEALTH

    @property
    def manages_submissions(self) -> bool:
        return self in (CallerRole.DEPARTMENT_OF_HEALTH, CallerRole.UNIT_ADMIN)


class CohortMode(StrEnum):
    MANUAL = "manual"
    ALL_FILTERED = "all"


class AuditAction(StrEnum):
    SUBMISSION_APPROVE = "SUBMISSION_APPROVE"
    SUBMISSION_REJECT = "SUBMISSION_REJECT"
    SUBMISSION_REVOKE = "SUBMISSION_REVOKE"
    SUBMISSION_EDIT = "SUBMISSION_EDIT"
    BULK_SUBMISSION_CREATE = "BULK_SUBMISSION_CREATE"
