"""Tunables for compliance computations and bulk operations."""

from __future__ import annotations

from dataclasses import dataclass

from .env import positive_int_env

DEFAULT_COHORT_PAGE_SIZE = 500
DEFAULT_BULK_BATCH_SIZE = 500
DEFAULT_NEARING_DEADLINE_DAYS = 180
COMPLIANT_THRESHOLD_PCT = 90.0
AT_RISK_THRESHOLD_PCT = 70.0


@dataclass(frozen=True, slots=True)
class ComplianceConfig:
    cohort_page_size: int = DEFAULT_COHORT_PAGE_SIZE
    bulk_batch_size: int = DEFAULT_BULK_BATCH_SIZE
    nearing_deadline_days: int = DEFAULT_NEARING_DEADLINE_DAYS
    compliant_threshold: float = COMPLIANT_THRESHOLD_PCT
    at_risk_threshold: float = AT_RISK_THRESHOLD_PCT


def get_compliance_config() -> ComplianceConfig:
    return ComplianceConfig(
        cohort_page_size=positive_int_env("CMECREDIT_COHORT_PAGE_SIZE", DEFAULT_COHORT_PAGE_SIZE),
        bulk_batch_size=positive_int_env("CMECREDIT_BULK_BATCH_SIZE", DEFAULT_BULK_BATCH_SIZE),
        nearing_deadline_days=positive_int_env(
            "CMECREDIT_NEARING_DEADLINE_DAYS", DEFAULT_NEARING_DEADLINE_DAYS
        ),
    )
