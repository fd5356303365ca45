"""GET /v1/reports - remittance report over a time window"""

from datetime import datetime

from fastapi import APIRouter, Depends, Query, Request

from remit_gateway.api.dependencies import get_orchestrator, get_request_id, to_http_error
from remit_gateway.api.v1.schemas import (
    ComplianceSummarySchema,
    CorridorStatsSchema,
    CurrencyStatsSchema,
    PartnerPerformanceSchema,
    ReportResponse,
    ReportSummarySchema,
)
from remit_gateway.services.orchestrator import TransferOrchestrator
from remit_gateway.utils.date_utils import ensure_utc

router = APIRouter()


@router.get("/reports", response_model=ReportResponse)
def get_report(
    request: Request,
    start: datetime = Query(..., description="Window start (inclusive), ISO 8601"),
    end: datetime = Query(..., description="Window end (inclusive), ISO 8601"),
    orchestrator: TransferOrchestrator = Depends(get_orchestrator),
):
    """
    Aggregate transfers created within [start, end].

    Naive timestamps are read as UTC.
    """
    try:
        report = orchestrator.generate_report(ensure_utc(start), ensure_utc(end))
    except Exception as e:
        raise to_http_error(e, get_request_id(request))

    summary = report.summary
    return ReportResponse(
        period_start=report.period_start,
        period_end=report.period_end,
        summary=ReportSummarySchema(
            total_transfers=summary.total_transfers,
            total_volume=summary.total_volume,
            average_amount=summary.average_amount,
            success_rate=summary.success_rate,
            top_corridors=[
                CorridorStatsSchema(
                    corridor=s.corridor,
                    transfer_count=s.transfer_count,
                    volume=s.volume,
                    average_amount=s.average_amount,
                    success_rate=s.success_rate,
                )
                for s in summary.top_corridors
            ],
            top_currencies=[
                CurrencyStatsSchema(
                    currency=s.currency,
                    send_volume=s.send_volume,
                    receive_volume=s.receive_volume,
                    transfer_count=s.transfer_count,
                    average_rate=s.average_rate,
                )
                for s in summary.top_currencies
            ],
        ),
        compliance=ComplianceSummarySchema(
            aml_checks=report.compliance.aml_checks,
            sanctions_hits=report.compliance.sanctions_hits,
            manual_reviews=report.compliance.manual_reviews,
        ),
        partners_performance=[
            PartnerPerformanceSchema(
                partner_id=p.partner_id,
                transfer_count=p.transfer_count,
                success_rate=p.success_rate,
                average_processing_minutes=p.average_processing_minutes,
            )
            for p in report.partners_performance
        ],
        status_breakdown=report.status_breakdown,
    )
