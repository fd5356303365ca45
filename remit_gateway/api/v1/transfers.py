"""/v1/transfers - initiate, pay, track, cancel and annotate transfers"""

import logging
import time

from fastapi import APIRouter, Depends, Request

from remit_gateway.api.dependencies import get_orchestrator, get_request_id, to_http_error
from remit_gateway.api.v1.schemas import (
    CancelRequest,
    ComplianceCheckSchema,
    NoteRequest,
    PaymentRequest,
    RecipientSchema,
    StatusChangeSchema,
    TransferCreateRequest,
    TransferResponse,
)
from remit_gateway.domain.models import RecipientInfo, Transfer, TransferRequest
from remit_gateway.services.orchestrator import TransferOrchestrator

router = APIRouter()


def transfer_response(transfer: Transfer) -> TransferResponse:
    return TransferResponse(
        transfer_id=transfer.id,
        tracking_number=transfer.tracking_number,
        status=transfer.status.value,
        sender_id=transfer.sender_id,
        recipient=RecipientSchema(
            name=transfer.recipient.name,
            phone_number=transfer.recipient.phone_number,
            account_number=transfer.recipient.account_number,
            swift_code=transfer.recipient.swift_code,
            address=transfer.recipient.address,
        ),
        origin_country=transfer.origin_country,
        destination_country=transfer.destination_country,
        origin_currency=transfer.origin_currency,
        destination_currency=transfer.destination_currency,
        send_amount=transfer.send_amount,
        fee=transfer.fee,
        exchange_rate=transfer.exchange_rate,
        receive_amount=transfer.receive_amount,
        total_cost=transfer.total_cost,
        payment_method=transfer.payment_method,
        delivery_method=transfer.delivery_method,
        compliance_level=transfer.compliance_level.value,
        compliance_checks=[
            ComplianceCheckSchema(
                check_type=check.check_type.value,
                status=check.status.value,
                risk_score=check.risk_score,
                flags=list(check.flags),
                checked_at=check.checked_at,
                detail=check.detail,
            )
            for check in transfer.compliance_checks
        ],
        estimated_delivery=transfer.estimated_delivery,
        actual_delivery=transfer.actual_delivery,
        partner_id=transfer.partner_id,
        partner_reference=transfer.partner_reference,
        cancellation_reason=transfer.cancellation_reason,
        failure_reason=transfer.failure_reason,
        refund_amount=transfer.refund_amount,
        refund_date=transfer.refund_date,
        created_at=transfer.created_at,
        updated_at=transfer.updated_at,
        status_history=[
            StatusChangeSchema(
                from_status=change.from_status.value if change.from_status else None,
                to_status=change.to_status.value if change.to_status else None,
                at=change.at,
                note=change.note,
            )
            for change in transfer.status_history
        ],
    )


@router.post("/transfers", response_model=TransferResponse, status_code=201)
async def create_transfer(
    request_body: TransferCreateRequest,
    request: Request,
    orchestrator: TransferOrchestrator = Depends(get_orchestrator),
):
    """
    Initiate a cross-border transfer.

    Flow:
    1. Validate corridor, limits, method and recipient details
    2. Freeze fee, exchange rate and receive amount
    3. Run compliance screening
    4. Return the transfer (awaiting_payment, or compliance_check if held)
    """
    start_time = time.time()
    request_id = get_request_id(request)

    try:
        transfer = await orchestrator.initiate_transfer(
            TransferRequest(
                sender_id=request_body.sender_id,
                recipient=RecipientInfo(**request_body.recipient.model_dump()),
                origin_country=request_body.origin_country,
                destination_country=request_body.destination_country,
                send_amount=request_body.send_amount,
                payment_method=request_body.payment_method,
                delivery_method=request_body.delivery_method,
                purpose=request_body.purpose,
                source_of_funds=request_body.source_of_funds,
                beneficiary_relationship=request_body.beneficiary_relationship,
                origin_currency=request_body.origin_currency,
                destination_currency=request_body.destination_currency,
            )
        )
    except Exception as e:
        raise to_http_error(e, request_id)

    logging.info(
        "Transfer initiated",
        extra={
            "request_id": request_id,
            "transfer_id": transfer.id,
            "status": transfer.status.value,
            "duration_ms": (time.time() - start_time) * 1000,
        },
    )
    return transfer_response(transfer)


@router.get("/transfers/{transfer_id}", response_model=TransferResponse)
async def get_transfer_status(
    transfer_id: str,
    request: Request,
    orchestrator: TransferOrchestrator = Depends(get_orchestrator),
):
    """Current status; polls the partner while delivery is in flight"""
    try:
        transfer = await orchestrator.get_transfer_status(transfer_id)
    except Exception as e:
        raise to_http_error(e, get_request_id(request))
    return transfer_response(transfer)


@router.post("/transfers/{transfer_id}/payment", response_model=TransferResponse)
async def process_payment(
    transfer_id: str,
    request_body: PaymentRequest,
    request: Request,
    orchestrator: TransferOrchestrator = Depends(get_orchestrator),
):
    """
    Confirm the sender's payment and dispatch to a partner.

    Returns:
        The transfer after dispatch (sent_to_partner, processing if the
        partner timed out, or failed)
    """
    try:
        transfer = await orchestrator.process_payment(transfer_id, request_body.proof)
    except Exception as e:
        raise to_http_error(e, get_request_id(request))
    return transfer_response(transfer)


@router.post("/transfers/{transfer_id}/cancel", response_model=TransferResponse)
async def cancel_transfer(
    transfer_id: str,
    request_body: CancelRequest,
    request: Request,
    orchestrator: TransferOrchestrator = Depends(get_orchestrator),
):
    try:
        transfer = await orchestrator.cancel_transfer(transfer_id, request_body.reason)
    except Exception as e:
        raise to_http_error(e, get_request_id(request))
    return transfer_response(transfer)


@router.post("/transfers/{transfer_id}/dispatch", response_model=TransferResponse)
async def retry_dispatch(
    transfer_id: str,
    request: Request,
    orchestrator: TransferOrchestrator = Depends(get_orchestrator),
):
    """Resend a transfer stuck in processing after a partner timeout"""
    try:
        transfer = await orchestrator.retry_dispatch(transfer_id)
    except Exception as e:
        raise to_http_error(e, get_request_id(request))
    return transfer_response(transfer)


@router.post("/transfers/{transfer_id}/notes", response_model=TransferResponse)
async def annotate_transfer(
    transfer_id: str,
    request_body: NoteRequest,
    request: Request,
    orchestrator: TransferOrchestrator = Depends(get_orchestrator),
):
    try:
        transfer = await orchestrator.annotate(transfer_id, request_body.note)
    except Exception as e:
        raise to_http_error(e, get_request_id(request))
    return transfer_response(transfer)
