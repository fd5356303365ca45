"""Compliance gating rules - which checks run and when a human must review"""

from decimal import Decimal
from typing import Iterable, List

from remit_gateway.domain.models import CheckStatus, CheckType, ComplianceCheck

ALWAYS_RUN = (CheckType.AML, CheckType.SANCTIONS, CheckType.PEP)


def checks_for_amount(send_amount: Decimal, tax_reporting_threshold: Decimal) -> List[CheckType]:
    """AML, sanctions and PEP always; tax reporting only above the threshold"""
    checks = list(ALWAYS_RUN)
    if send_amount > tax_reporting_threshold:
        checks.append(CheckType.TAX_REPORTING)
    return checks


def needs_review(check: ComplianceCheck, risk_threshold: float = 70) -> bool:
    return (
        check.risk_score > risk_threshold
        or check.status in (CheckStatus.FAILED, CheckStatus.MANUAL_REVIEW)
        or len(check.flags) > 0
    )


def requires_manual_review(checks: Iterable[ComplianceCheck], risk_threshold: float = 70) -> bool:
    """
    A transfer is held for manual review if any check scored above the
    threshold, failed, or raised at least one flag.
    """
    return any(needs_review(c, risk_threshold) for c in checks)
