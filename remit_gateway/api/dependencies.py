"""Dependency injection for FastAPI endpoints"""

import logging
from datetime import timedelta

from fastapi import HTTPException, Request

from remit_gateway.config import Settings
from remit_gateway.domain.catalog import CorridorCatalog, CurrencyRegistry
from remit_gateway.domain.exceptions import (
    AmountOutOfBoundsError,
    DomainException,
    DuplicateTransferError,
    ExternalServiceError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from remit_gateway.domain.partners import PartnerDirectory
from remit_gateway.infrastructure.clients.partners import HttpPartnerGateway
from remit_gateway.infrastructure.clients.payments import HttpPaymentVerifier
from remit_gateway.infrastructure.clients.rates import HttpRateProvider, StaticRateProvider
from remit_gateway.infrastructure.clients.screening import HttpScreeningClient
from remit_gateway.infrastructure.database.repositories import SqlTransferRepository
from remit_gateway.infrastructure.database.session import create_db_engine, create_session_factory
from remit_gateway.infrastructure.reference_data import load_reference_data
from remit_gateway.services.compliance import CompliancePipeline
from remit_gateway.services.orchestrator import TransferOrchestrator
from remit_gateway.services.rates import ExchangeRateCache

logger = logging.getLogger(__name__)

# Hint sent with 503s for collaborator failures worth retrying
RETRY_AFTER_SECONDS = 5


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_orchestrator(request: Request) -> TransferOrchestrator:
    """Provide the orchestrator built at startup"""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Service not initialised")
    return orchestrator


def build_orchestrator(config: Settings) -> TransferOrchestrator:
    """Wire registries, collaborator clients and the transfer store from settings"""
    reference = load_reference_data(config.reference_data_path or None)
    currencies = CurrencyRegistry(reference.currencies)
    corridors = CorridorCatalog(reference.corridors)
    partners = PartnerDirectory(reference.partners)

    if config.use_static_rates:
        provider = StaticRateProvider.from_registry(currencies)
    else:
        provider = HttpRateProvider(config.rate_api_base, config.http_timeout_seconds)

    engine = create_db_engine(config.database_url)
    repository = SqlTransferRepository(create_session_factory(engine, create_schema=True), currencies)

    logger.info(
        "Reference data loaded",
        extra={
            "step": "startup",
            "currencies": len(reference.currencies),
            "corridors": len(reference.corridors),
            "partners": len(reference.partners),
        },
    )

    return TransferOrchestrator(
        transfers=repository,
        currencies=currencies,
        corridors=corridors,
        partners=partners,
        rates=ExchangeRateCache(
            provider,
            currencies,
            staleness_window=timedelta(seconds=config.rate_staleness_seconds),
        ),
        compliance=CompliancePipeline(
            HttpScreeningClient(config.screening_api_base, config.http_timeout_seconds),
            tax_reporting_threshold=config.tax_reporting_threshold,
            check_timeout_seconds=config.compliance_check_timeout_seconds,
        ),
        verifier=HttpPaymentVerifier(config.payment_api_base, config.http_timeout_seconds),
        gateway=HttpPartnerGateway(config.partner_api_base, config.partner_timeout_seconds),
        payment_timeout_seconds=config.payment_timeout_seconds,
        partner_timeout_seconds=config.partner_timeout_seconds,
        manual_review_threshold=config.manual_review_risk_threshold,
    )


def to_http_error(error: Exception, request_id: str) -> HTTPException:
    """Map a domain failure onto its HTTP status, logging it with the request id"""
    extra = {"request_id": request_id}

    if isinstance(error, NotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, (InvalidStateError, DuplicateTransferError)):
        logging.warning(f"Invalid state: {error}", extra=extra)
        return HTTPException(status_code=409, detail=str(error))
    if isinstance(error, AmountOutOfBoundsError):
        return HTTPException(status_code=422, detail=str(error))
    if isinstance(error, ValidationError):
        return HTTPException(status_code=400, detail=str(error))
    if isinstance(error, ExternalServiceError):
        logging.error(f"{type(error).__name__}: {error}", extra=extra)
        headers = {"Retry-After": str(RETRY_AFTER_SECONDS)} if error.retryable else None
        return HTTPException(status_code=503, detail=str(error), headers=headers)
    if isinstance(error, DomainException):
        logging.error(f"Unhandled domain error: {error}", extra=extra)
        return HTTPException(status_code=400, detail=str(error))

    logging.error(f"Unexpected error: {error}", extra=extra)
    return HTTPException(status_code=500, detail="Internal server error")
