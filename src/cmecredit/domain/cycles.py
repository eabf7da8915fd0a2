"""Compliance cycle computation for individual practitioners and cohorts."""

from __future__ import annotations

import math
from logging import getLogger
from typing import TYPE_CHECKING

from cmecredit.config.compliance import ComplianceConfig
from cmecredit.domain.credits import CreditAggregator
from cmecredit.domain.model import ComplianceCycle, ComplianceStatistics, CycleStatus
from cmecredit.domain.rules import ComplianceRuleResolver
from cmecredit.domain.time_windows import CycleWindow, start_of_day, utcnow

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

    from cmecredit.domain.model import CreditRule
    from cmecredit.domain.ports import UnitOfWorkFactory
    from cmecredit.domain.time_windows import Clock

log = getLogger(__name__)


def round2(value: float) -> float:
    """Round half up to two decimals."""
    return math.floor(value * 100 + 0.5) / 100


def completion_percentage(achieved: float, required: float) -> float:
    if required <= 0:
        return 100.0
    return round2(achieved / required * 100)


def classify_cycle(completion_pct: float, days_left: int, *, nearing_deadline_days: int) -> CycleStatus:
    if completion_pct >= 100:
        return CycleStatus.COMPLETED
    if days_left < 0:
        return CycleStatus.OVERDUE
    if days_left <= nearing_deadline_days:
        return CycleStatus.NEARING_DEADLINE
    return CycleStatus.IN_PROGRESS


class CycleCalculator:
    def __init__(
        self,
        unit_of_work_factory: UnitOfWorkFactory,
        *,
        config: ComplianceConfig | None = None,
        rule_resolver: ComplianceRuleResolver | None = None,
        aggregator: CreditAggregator | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self._unit_of_work_factory = unit_of_work_factory
        self._config = config or ComplianceConfig()
        self._clock = clock
        self._rule_resolver = rule_resolver or ComplianceRuleResolver(
            unit_of_work_factory, clock=clock
        )
        self._aggregator = aggregator or CreditAggregator(
            unit_of_work_factory, rule_resolver=self._rule_resolver, clock=clock
        )

    def compute_cycle(self, practitioner_id: UUID) -> ComplianceCycle | None:
        """Compute the practitioner's current cycle against the rule in force.

        Returns ``None`` when there is no active rule or no such practitioner.
        """

        rule = self._rule_resolver.get_active_rule()
        if rule is None:
            return None
        return self._compute(practitioner_id, rule)

    def compliance_statistics(self, practitioner_ids: Sequence[UUID]) -> ComplianceStatistics:
        total = len(practitioner_ids)
        rule = self._rule_resolver.get_active_rule()
        if rule is None:
            return ComplianceStatistics(
                total=total, compliant=0, at_risk=0, non_compliant=0, average_completion=0.0
            )

        compliant = at_risk = non_compliant = 0
        completion_sum = 0.0
        computed = 0
        for practitioner_id in practitioner_ids:
            cycle = self._compute(practitioner_id, rule)
            if cycle is None:
                continue
            computed += 1
            completion_sum += cycle.completion_pct
            if cycle.completion_pct >= self._config.compliant_threshold:
                compliant += 1
            elif cycle.completion_pct >= self._config.at_risk_threshold:
                at_risk += 1
            else:
                non_compliant += 1

        average = round2(completion_sum / computed) if computed else 0.0
        log.debug(
            "Compliance statistics over %d practitioners (%d computed)", total, computed
        )
        return ComplianceStatistics(
            total=total,
            compliant=compliant,
            at_risk=at_risk,
            non_compliant=non_compliant,
            average_completion=average,
        )

    def _compute(self, practitioner_id: UUID, rule: CreditRule) -> ComplianceCycle | None:
        with self._unit_of_work_factory() as uow:
            practitioner = uow.repositories.practitioners.get(practitioner_id)
        if practitioner is None:
            log.info("Practitioner %s not found; no cycle computed", practitioner_id)
            return None

        anchor = (
            start_of_day(practitioner.license_issued_on)
            if practitioner.license_issued_on is not None
            else self._clock()
        )
        window = CycleWindow.anchored(anchor, years=rule.cycle_years)
        achieved = self._aggregator.achieved_credits(practitioner_id, window)
        completion = completion_percentage(achieved, rule.required_total)
        days_left = window.days_until_end(clock=self._clock)

        return ComplianceCycle(
            practitioner_id=practitioner_id,
            window_start=window.start,
            window_end=window.end,
            required_credits=rule.required_total,
            achieved_credits=achieved,
            completion_pct=completion,
            status=classify_cycle(
                completion,
                days_left,
                nearing_deadline_days=self._config.nearing_deadline_days,
            ),
            days_remaining=max(0, days_left),
        )
