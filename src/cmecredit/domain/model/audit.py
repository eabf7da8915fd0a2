"""Audit trail entries."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from cmecredit.domain.model.entity import Entity, utcnow

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

    from cmecredit.domain.model.enums import AuditAction


@dataclass(eq=False, kw_only=True)
class AuditEntry(Entity):
    action: AuditAction
    actor_id: UUID
    record_id: UUID | None = None
    details: dict[str, object] = field(default_factory=dict[str, object])
    ip_address: str | None = None
    created_at: datetime = field(default_factory=utcnow)
