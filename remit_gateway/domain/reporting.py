"""Remittance reporting - summary statistics over a closed time window"""

from collections import Counter, OrderedDict
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List

from remit_gateway.domain.models import (
    CheckStatus,
    CheckType,
    ComplianceSummary,
    CorridorStats,
    CurrencyStats,
    PartnerPerformanceStats,
    RemittanceReport,
    ReportSummary,
    Transfer,
    TransferStatus,
)
from remit_gateway.utils.date_utils import within_window

TOP_N = 10
ZERO = Decimal(0)


def _rate(part: int, whole: int) -> float:
    """Percentage, 0 when there is nothing to divide by"""
    return (part / whole) * 100 if whole else 0.0


def _average(total: Decimal, count: int) -> Decimal:
    return total / count if count else ZERO


def corridor_breakdown(transfers: List[Transfer], limit: int = TOP_N) -> List[CorridorStats]:
    """Per-corridor count, volume, average and success rate, by volume desc"""
    groups: Dict[str, List[Transfer]] = OrderedDict()
    for transfer in transfers:
        groups.setdefault(transfer.corridor_id, []).append(transfer)

    stats = []
    for corridor, members in groups.items():
        volume = sum((t.send_amount for t in members), ZERO)
        completed = sum(1 for t in members if t.status == TransferStatus.COMPLETED)
        stats.append(
            CorridorStats(
                corridor=corridor,
                transfer_count=len(members),
                volume=volume,
                average_amount=_average(volume, len(members)),
                success_rate=_rate(completed, len(members)),
            )
        )

    # sorted() is stable: equal volumes keep first-seen order
    return sorted(stats, key=lambda s: s.volume, reverse=True)[:limit]


def currency_breakdown(transfers: List[Transfer], limit: int = TOP_N) -> List[CurrencyStats]:
    """Per send-currency volumes and average applied rate"""
    groups: Dict[str, List[Transfer]] = OrderedDict()
    for transfer in transfers:
        groups.setdefault(transfer.origin_currency, []).append(transfer)

    stats = []
    for currency, members in groups.items():
        stats.append(
            CurrencyStats(
                currency=currency,
                send_volume=sum((t.send_amount for t in members), ZERO),
                receive_volume=sum((t.receive_amount for t in members), ZERO),
                transfer_count=len(members),
                average_rate=_average(sum((t.exchange_rate for t in members), ZERO), len(members)),
            )
        )
    return sorted(stats, key=lambda s: s.send_volume, reverse=True)[:limit]


def partner_performance(transfers: List[Transfer]) -> List[PartnerPerformanceStats]:
    """Outcome and delivery time of transfers handed to each partner"""
    groups: Dict[str, List[Transfer]] = OrderedDict()
    for transfer in transfers:
        if transfer.partner_id:
            groups.setdefault(transfer.partner_id, []).append(transfer)

    stats = []
    for partner_id, members in groups.items():
        completed = [t for t in members if t.status == TransferStatus.COMPLETED]
        delivery_minutes = [
            (t.actual_delivery - t.created_at).total_seconds() / 60
            for t in completed
            if t.actual_delivery is not None
        ]
        stats.append(
            PartnerPerformanceStats(
                partner_id=partner_id,
                transfer_count=len(members),
                success_rate=_rate(len(completed), len(members)),
                average_processing_minutes=(
                    sum(delivery_minutes) / len(delivery_minutes) if delivery_minutes else 0.0
                ),
            )
        )
    return stats


def compliance_summary(transfers: List[Transfer]) -> ComplianceSummary:
    def has_check(transfer: Transfer, predicate) -> bool:
        return any(predicate(c) for c in transfer.compliance_checks)

    return ComplianceSummary(
        aml_checks=sum(1 for t in transfers if has_check(t, lambda c: c.check_type == CheckType.AML)),
        sanctions_hits=sum(
            1
            for t in transfers
            if has_check(
                t,
                lambda c: c.check_type == CheckType.SANCTIONS
                and (c.status != CheckStatus.PASSED or len(c.flags) > 0),
            )
        ),
        manual_reviews=sum(
            1 for t in transfers if has_check(t, lambda c: c.status == CheckStatus.MANUAL_REVIEW)
        ),
    )


def generate_report(transfers: Iterable[Transfer], start: datetime, end: datetime) -> RemittanceReport:
    """
    Build a remittance report for transfers created within [start, end].

    Volume and average amount count completed transfers only; success rate
    is completed / total as a percentage. An empty window yields zeros.
    """
    in_window = [t for t in transfers if within_window(t.created_at, start, end)]
    completed = [t for t in in_window if t.status == TransferStatus.COMPLETED]
    total_volume = sum((t.send_amount for t in completed), ZERO)

    summary = ReportSummary(
        total_transfers=len(in_window),
        total_volume=total_volume,
        average_amount=_average(total_volume, len(completed)),
        success_rate=_rate(len(completed), len(in_window)),
        top_corridors=corridor_breakdown(in_window),
        top_currencies=currency_breakdown(in_window),
    )

    return RemittanceReport(
        period_start=start,
        period_end=end,
        summary=summary,
        compliance=compliance_summary(in_window),
        partners_performance=partner_performance(in_window),
        status_breakdown=dict(Counter(t.status.value for t in in_window)),
    )
