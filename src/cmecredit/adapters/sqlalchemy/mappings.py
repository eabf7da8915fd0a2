"""SQLAlchemy mapping metadata for the compliance domain model."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from enum import StrEnum
from functools import cache
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Dialect,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    TypeDecorator,
    UniqueConstraint,
    Uuid,
    orm,
)
from sqlalchemy.orm import configure_mappers

from cmecredit.domain.model import (
    ActivityCatalogEntry,
    ActivityCategory,
    ApprovalStatus,
    AuditAction,
    AuditEntry,
    CategoryCaps,
    CreationMethod,
    CreditRule,
    Practitioner,
    SubmissionRecord,
    WorkStatus,
    parse_category_caps,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

UUIDColumnType = Uuid[uuid.UUID]


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


class CategoryCapsType(TypeDecorator[CategoryCaps]):
    """Stores caps as a JSON object keyed by category code; validated on load."""

    impl = JSON
    cache_ok = True

    def process_bind_param(
        self, value: CategoryCaps | None, dialect: Dialect
    ) -> dict[str, float] | None:
        _ = dialect
        if value is None:
            return None
        return {ActivityCategory(key).value: float(cap) for key, cap in value.items()}

    def process_result_value(self, value: Any, dialect: Dialect) -> CategoryCaps:
        _ = dialect
        if not value:
            return {}
        return parse_category_caps(cast(dict[str, object], value))


def _code_enum[E: StrEnum](enum_cls: type[E], length: int = 32) -> Enum:
    """Persist StrEnum members by value rather than by member name."""
    return Enum(
        enum_cls,
        native_enum=False,
        length=length,
        values_callable=lambda members: [member.value for member in members],
    )


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# Core tables -----------------------------------------------------------------

credit_rule_table = Table(
    "credit_rule",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("name", String(255), nullable=False),
    Column("required_total", Float, nullable=False),
    Column("cycle_years", Integer, nullable=False),
    Column("category_caps", CategoryCapsType, nullable=True),
    Column("effective_from", Date, nullable=True),
    Column("effective_to", Date, nullable=True),
    Column("active", Boolean, nullable=False, default=True),
    Column("created_at", UTCDateTime, nullable=False),
)

practitioner_table = Table(
    "practitioner",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("full_name", String(255), nullable=False),
    Column("unit_id", UUIDColumnType, nullable=False),
    Column("license_number", String(64), nullable=True),
    Column("license_issued_on", Date, nullable=True),
    Column("work_status", _code_enum(WorkStatus), nullable=False),
    Column("title", String(255), nullable=True),
    Column("department", String(255), nullable=True),
    Index("ix_practitioner_unit_name", "unit_id", "full_name"),
)

activity_catalog_table = Table(
    "activity_catalog",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("name", String(255), nullable=False),
    Column("category", _code_enum(ActivityCategory), nullable=False),
    Column("conversion_rate", Float, nullable=False, default=1.0),
    Column("min_hours", Float, nullable=True),
    Column("max_hours", Float, nullable=True),
    Column("requires_evidence", Boolean, nullable=False, default=True),
    Column("unit_id", UUIDColumnType, nullable=True),
    Column("active", Boolean, nullable=False, default=True),
    Column("valid_from", Date, nullable=True),
    Column("valid_to", Date, nullable=True),
)

submission_table = Table(
    "activity_submission",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("practitioner_id", UUIDColumnType, ForeignKey("practitioner.id"), nullable=False),
    Column("catalog_id", UUIDColumnType, ForeignKey("activity_catalog.id"), nullable=True),
    Column("activity_name", String(500), nullable=False),
    Column("role", String(255), nullable=True),
    Column("activity_form", String(255), nullable=True),
    Column("organizer", String(255), nullable=True),
    Column("started_at", UTCDateTime, nullable=True),
    Column("ended_at", UTCDateTime, nullable=True),
    Column("hours", Float, nullable=True),
    Column("credits", Float, nullable=True),
    Column("certificate_number", String(255), nullable=True),
    Column("evidence_url", Text, nullable=True),
    Column("submitted_by", UUIDColumnType, nullable=False),
    Column("status", _code_enum(ApprovalStatus), nullable=False),
    Column("approved_by", UUIDColumnType, nullable=True),
    Column("approved_at", UTCDateTime, nullable=True),
    Column("approval_comment", Text, nullable=True),
    Column("creation_method", _code_enum(CreationMethod), nullable=False),
    Column("recorded_at", UTCDateTime, nullable=False),
    UniqueConstraint("practitioner_id", "catalog_id"),
    Index("ix_activity_submission_practitioner_started", "practitioner_id", "started_at"),
    Index("ix_activity_submission_status", "status"),
)

audit_log_table = Table(
    "audit_log",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("action", _code_enum(AuditAction, length=64), nullable=False),
    Column("actor_id", UUIDColumnType, nullable=False),
    Column("record_id", UUIDColumnType, nullable=True, index=True),
    Column("details", JSON, nullable=False),
    Column("ip_address", String(64), nullable=True),
    Column("created_at", UTCDateTime, nullable=False),
)


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the domain model."""

    log.info("Starting SQLAlchemy mappers")

    mapper_registry.map_imperatively(CreditRule, credit_rule_table)
    mapper_registry.map_imperatively(Practitioner, practitioner_table)
    mapper_registry.map_imperatively(ActivityCatalogEntry, activity_catalog_table)
    mapper_registry.map_imperatively(SubmissionRecord, submission_table)
    mapper_registry.map_imperatively(AuditEntry, audit_log_table)

    configure_mappers()
    return mapper_registry


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the mapped metadata."""

    log.info("Creating all tables")
    mapper_registry.metadata.create_all(engine)
