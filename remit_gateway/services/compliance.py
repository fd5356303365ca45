"""Compliance pipeline - concurrent screening checks joined before aggregation"""

import asyncio
import logging
from decimal import Decimal
from typing import List

from remit_gateway.domain.compliance import checks_for_amount
from remit_gateway.domain.models import CheckStatus, CheckType, ComplianceCheck, ScreeningVerdict, Transfer
from remit_gateway.domain.ports import ComplianceScreener
from remit_gateway.infrastructure.observability.metrics import compliance_check_timeout_counter
from remit_gateway.utils.date_utils import utcnow

logger = logging.getLogger(__name__)

UNRESOLVED_RISK_SCORE = 100.0


class CompliancePipeline:
    """Runs the fixed check set for a transfer"""

    def __init__(
        self,
        screener: ComplianceScreener,
        tax_reporting_threshold: Decimal = Decimal(1_000_000),
        check_timeout_seconds: float = 10.0,
    ):
        self.screener = screener
        self.tax_reporting_threshold = Decimal(tax_reporting_threshold)
        self.check_timeout_seconds = check_timeout_seconds

    async def run_checks(self, transfer: Transfer) -> List[ComplianceCheck]:
        """
        Screen a transfer with every applicable check.

        Checks are independent and issued concurrently; each is bounded by
        its own timeout. All of them resolve before this returns, in the
        fixed order AML, sanctions, PEP, tax reporting. A check that cannot
        complete becomes manual_review with the maximum risk score.
        """
        check_types = checks_for_amount(transfer.send_amount, self.tax_reporting_threshold)
        return list(await asyncio.gather(*(self._run_one(t, transfer) for t in check_types)))

    async def _run_one(self, check_type: CheckType, transfer: Transfer) -> ComplianceCheck:
        try:
            verdict = await asyncio.wait_for(
                self.screener.screen(check_type, transfer),
                timeout=self.check_timeout_seconds,
            )
        except asyncio.TimeoutError:
            return self._unresolved(check_type, transfer, "check_timeout", f"No verdict within {self.check_timeout_seconds}s")
        except Exception as e:
            return self._unresolved(check_type, transfer, "check_error", str(e))

        return self._to_check(check_type, verdict)

    def _unresolved(self, check_type: CheckType, transfer: Transfer, flag: str, detail: str) -> ComplianceCheck:
        compliance_check_timeout_counter.labels(check_type=check_type.value).inc()
        logger.warning(
            f"{check_type.value} check unresolved: {detail}",
            extra={"transfer_id": transfer.id, "step": "compliance_check", "check_type": check_type.value},
        )
        return ComplianceCheck(
            check_type=check_type,
            status=CheckStatus.MANUAL_REVIEW,
            risk_score=UNRESOLVED_RISK_SCORE,
            flags=(flag,),
            checked_at=utcnow(),
            detail=detail,
        )

    @staticmethod
    def _to_check(check_type: CheckType, verdict: ScreeningVerdict) -> ComplianceCheck:
        # Clamp to 0-100
        risk_score = min(max(float(verdict.risk_score), 0.0), 100.0)
        return ComplianceCheck(
            check_type=check_type,
            status=verdict.status,
            risk_score=risk_score,
            flags=tuple(verdict.flags),
            checked_at=utcnow(),
            detail=verdict.detail,
        )
