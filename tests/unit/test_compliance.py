"""Unit tests for compliance gating and the screening pipeline"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from remit_gateway.domain.compliance import checks_for_amount, requires_manual_review
from remit_gateway.domain.exceptions import ScreeningError
from remit_gateway.domain.models import CheckStatus, CheckType, ComplianceCheck, ScreeningVerdict
from remit_gateway.services.compliance import CompliancePipeline

NOW = datetime(2026, 1, 15, tzinfo=timezone.utc)


def check(risk: float, status: CheckStatus = CheckStatus.PASSED, flags=()) -> ComplianceCheck:
    return ComplianceCheck(check_type=CheckType.AML, status=status, risk_score=risk, flags=tuple(flags), checked_at=NOW)


class TestGating:
    def test_risk_above_seventy_requires_review(self):
        assert requires_manual_review([check(71)])

    def test_risk_of_exactly_seventy_passes(self):
        assert not requires_manual_review([check(70), check(5)])

    def test_any_flag_requires_review(self):
        assert requires_manual_review([check(10, flags=["name_similarity"])])

    def test_failed_check_requires_review(self):
        assert requires_manual_review([check(0, status=CheckStatus.FAILED)])

    def test_tax_reporting_only_above_threshold(self):
        threshold = Decimal(1_000_000)
        assert CheckType.TAX_REPORTING not in checks_for_amount(Decimal("1000000"), threshold)
        assert checks_for_amount(Decimal("1000001"), threshold) == [
            CheckType.AML,
            CheckType.SANCTIONS,
            CheckType.PEP,
            CheckType.TAX_REPORTING,
        ]


class TestPipeline:
    async def test_all_checks_pass(self, screener, make_transfer):
        pipeline = CompliancePipeline(screener, check_timeout_seconds=0.2)

        checks = await pipeline.run_checks(make_transfer())

        assert [c.check_type for c in checks] == [CheckType.AML, CheckType.SANCTIONS, CheckType.PEP]
        assert all(c.status == CheckStatus.PASSED for c in checks)
        assert not requires_manual_review(checks)

    async def test_timeout_becomes_manual_review(self, screener, make_transfer):
        screener.verdicts[CheckType.SANCTIONS] = "hang"
        pipeline = CompliancePipeline(screener, check_timeout_seconds=0.05)

        checks = await pipeline.run_checks(make_transfer())
        sanctions = checks[1]

        assert sanctions.check_type == CheckType.SANCTIONS
        assert sanctions.status == CheckStatus.MANUAL_REVIEW
        assert sanctions.risk_score == 100
        assert sanctions.flags == ("check_timeout",)
        # The other checks still completed
        assert checks[0].status == CheckStatus.PASSED
        assert checks[2].status == CheckStatus.PASSED

    async def test_provider_error_becomes_manual_review(self, screener, make_transfer):
        screener.verdicts[CheckType.PEP] = ScreeningError("screening API unreachable")
        pipeline = CompliancePipeline(screener, check_timeout_seconds=0.2)

        checks = await pipeline.run_checks(make_transfer())

        assert checks[2].status == CheckStatus.MANUAL_REVIEW
        assert checks[2].flags == ("check_error",)
        assert requires_manual_review(checks)

    async def test_large_amount_adds_tax_reporting(self, screener, make_transfer):
        transfer = make_transfer()
        transfer.send_amount = Decimal("2000000")
        pipeline = CompliancePipeline(screener, check_timeout_seconds=0.2)

        checks = await pipeline.run_checks(transfer)

        assert [c.check_type for c in checks][-1] == CheckType.TAX_REPORTING
        assert CheckType.TAX_REPORTING in screener.calls

    async def test_risk_score_clamped(self, screener, make_transfer):
        screener.verdicts[CheckType.AML] = ScreeningVerdict(status=CheckStatus.FAILED, risk_score=250)
        pipeline = CompliancePipeline(screener, check_timeout_seconds=0.2)

        checks = await pipeline.run_checks(make_transfer())

        assert checks[0].risk_score == pytest.approx(100.0)
