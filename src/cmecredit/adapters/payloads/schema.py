"""Pydantic models describing inbound cohort and bulk-submission payloads."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from cmecredit.domain.model import WorkStatus


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


def _assume_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return value if value.tzinfo else value.replace(tzinfo=UTC)


class PayloadModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class CohortFiltersPayload(PayloadModel):
    status: WorkStatus | None = None
    title: str | None = None
    department: str | None = None
    search: str | None = None

    _normalize_text = field_validator("title", "department", "search", mode="before")(
        _blank_to_none
    )

    @field_validator("status", mode="before")
    @classmethod
    def _all_means_any(cls, value: object) -> object:
        value = _blank_to_none(value)
        if value == "all":
            return None
        return value


class CohortSelectionPayload(PayloadModel):
    mode: Literal["manual", "all"]
    selected_ids: list[UUID] = Field(default_factory=list[UUID], alias="selectedIds")
    excluded_ids: list[UUID] = Field(default_factory=list[UUID], alias="excludedIds")
    filters: CohortFiltersPayload = Field(default_factory=CohortFiltersPayload)
    total_filtered: int | None = Field(default=None, alias="totalFiltered", ge=0)


class BulkSubmissionPayload(PayloadModel):
    catalog_id: UUID = Field(alias="catalogId")
    cohort: CohortSelectionPayload
    started_at: datetime | None = Field(default=None, alias="startDate")
    ended_at: datetime | None = Field(default=None, alias="endDate")
    organizer: str | None = Field(default=None, max_length=255)

    _normalize_organizer = field_validator("organizer", mode="before")(_blank_to_none)

    @field_validator("started_at", "ended_at")
    @classmethod
    def _ensure_aware(cls, value: datetime | None) -> datetime | None:
        return _assume_utc(value)

    @model_validator(mode="after")
    def _check_dates(self) -> BulkSubmissionPayload:
        if self.started_at and self.ended_at and self.ended_at < self.started_at:
            raise ValueError("endDate must not be before startDate")
        return self


BulkSubmissionInput = BulkSubmissionPayload | Mapping[str, object] | str | bytes
