"""Credit rules and their typed per-category caps."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime

from cmecredit.domain.model.entity import Entity, utcnow
from cmecredit.domain.model.enums import ActivityCategory

type CategoryCaps = dict[ActivityCategory, float]


def parse_category_caps(raw: Mapping[str, object] | None) -> CategoryCaps:
    """Validate an untyped cap mapping into ``CategoryCaps``.

    Unknown categories, non-numeric values and negative caps raise ``ValueError``.
    """

    if raw is None:
        return {}
    caps: CategoryCaps = {}
    for key, value in raw.items():
        try:
            category = ActivityCategory(key)
        except ValueError as exc:
            raise ValueError(f"Unknown activity category in caps: {key!r}") from exc
        if isinstance(value, bool) or not isinstance(value, int | float):
            raise ValueError(f"Cap for {category} must be numeric, got {value!r}")
        if value < 0:
            raise ValueError(f"Cap for {category} must be non-negative, got {value}")
        caps[category] = float(value)
    return caps


@dataclass(eq=False, kw_only=True)
class CreditRule(Entity):
    """Policy describing how many credits a cycle requires."""

    name: str
    required_total: float = 120.0
    cycle_years: int = 5
    category_caps: CategoryCaps = field(default_factory=dict[ActivityCategory, float])
    effective_from: date | None = None
    effective_to: date | None = None
    active: bool = True
    created_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        if self.cycle_years < 1:
            raise ValueError("cycle_years must be at least 1")
        if self.required_total < 0:
            raise ValueError("required_total must be non-negative")
        if (
            self.effective_from is not None
            and self.effective_to is not None
            and self.effective_to < self.effective_from
        ):
            raise ValueError("effective_to must not be before effective_from")
        self.category_caps = parse_category_caps(self.category_caps)

    def covers(self, day: date) -> bool:
        """Return whether the rule is active and in force on ``day``."""
        if not self.active:
            return False
        if self.effective_from is not None and self.effective_from > day:
            return False
        return self.effective_to is None or self.effective_to >= day

    def cap_for(self, category: ActivityCategory) -> float | None:
        return self.category_caps.get(category)
