"""Resolution of the credit rule currently in force."""

from __future__ import annotations

from datetime import date
from logging import getLogger
from typing import TYPE_CHECKING

from cmecredit.domain.time_windows import utcnow

if TYPE_CHECKING:
    from collections.abc import Sequence

    from cmecredit.domain.model import CreditRule
    from cmecredit.domain.ports import UnitOfWorkFactory
    from cmecredit.domain.time_windows import Clock

log = getLogger(__name__)


def select_current_rule(rules: Sequence[CreditRule], *, today: date) -> CreditRule | None:
    """Pick the rule in force on ``today``.

    ``rules`` must be in insertion order. Among covering rules the latest
    ``effective_from`` wins (open-ended starts sort last); ties go to the most
    recently inserted rule.
    """

    best: tuple[bool, date, int] | None = None
    chosen: CreditRule | None = None
    for position, rule in enumerate(rules):
        if not rule.covers(today):
            continue
        key = (rule.effective_from is not None, rule.effective_from or date.min, position)
        if best is None or key > best:
            best = key
            chosen = rule
    return chosen


class ComplianceRuleResolver:
    def __init__(self, unit_of_work_factory: UnitOfWorkFactory, *, clock: Clock = utcnow) -> None:
        self._unit_of_work_factory = unit_of_work_factory
        self._clock = clock

    def get_active_rule(self) -> CreditRule | None:
        """Return the single rule in force now, or ``None`` when no policy applies."""

        today = self._clock().date()
        with self._unit_of_work_factory() as uow:
            rules = list(uow.repositories.rules.list_active())
        rule = select_current_rule(rules, today=today)
        if rule is None:
            log.info("No active credit rule on %s (%d active candidates)", today, len(rules))
        return rule
