"""Licensed practitioners and the units that own them."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from cmecredit.domain.model.entity import Entity
from cmecredit.domain.model.enums import WorkStatus

if TYPE_CHECKING:
    from datetime import date
    from uuid import UUID


@dataclass(eq=False, kw_only=True)
class Practitioner(Entity):
    full_name: str
    unit_id: UUID
    license_number: str | None = None
    # anchors the compliance cycle
    license_issued_on: date | None = None
    work_status: WorkStatus = WorkStatus.ACTIVE
    title: str | None = None
    department: str | None = None
