"""Catalog of recognised continuing-education activities."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from cmecredit.domain.model.entity import Entity
from cmecredit.domain.model.enums import ActivityCategory

if TYPE_CHECKING:
    from datetime import date
    from uuid import UUID


@dataclass(eq=False, kw_only=True)
class ActivityCatalogEntry(Entity):
    """Activity type with its hours-to-credits conversion and bounds.

    ``min_hours``/``max_hours`` are compared against the credit value before
    clamping; ``unit_id`` is ``None`` for entries shared by every unit.
    """

    name: str
    category: ActivityCategory
    conversion_rate: float = 1.0
    min_hours: float | None = None
    max_hours: float | None = None
    requires_evidence: bool = True
    unit_id: UUID | None = None
    active: bool = True
    valid_from: date | None = None
    valid_to: date | None = None

    def __post_init__(self) -> None:
        if self.conversion_rate < 0:
            raise ValueError("conversion_rate must be non-negative")
        if self.min_hours is not None and self.max_hours is not None:
            if self.max_hours < self.min_hours:
                raise ValueError("max_hours must be greater than or equal to min_hours")

    def is_valid_on(self, day: date) -> bool:
        if not self.active:
            return False
        if self.valid_from is not None and self.valid_from > day:
            return False
        return self.valid_to is None or self.valid_to >= day

    def available_to(self, unit_id: UUID | None) -> bool:
        return self.unit_id is None or self.unit_id == unit_id
