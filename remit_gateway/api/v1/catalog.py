"""Reference data endpoints - corridors, currencies, partners and live rates"""

from typing import List

from fastapi import APIRouter, Depends, Request

from remit_gateway.api.dependencies import get_orchestrator, get_request_id, to_http_error
from remit_gateway.api.v1.schemas import (
    CorridorResponse,
    CurrencyResponse,
    MethodLimitsSchema,
    PartnerResponse,
    PaymentMethodSchema,
    RateResponse,
)
from remit_gateway.services.orchestrator import TransferOrchestrator

router = APIRouter()


@router.get("/corridors", response_model=List[CorridorResponse])
def list_corridors(orchestrator: TransferOrchestrator = Depends(get_orchestrator)):
    """Active corridors with their limits, fees and payment methods"""
    return [
        CorridorResponse(
            corridor_id=c.id,
            origin_country=c.origin_country,
            destination_country=c.destination_country,
            origin_currency=c.origin_currency,
            destination_currency=c.destination_currency,
            min_amount=c.min_amount,
            max_amount=c.max_amount,
            fee_percent=c.fee_percent,
            fixed_fee=c.fixed_fee,
            estimated_delivery_minutes=c.estimated_delivery_minutes,
            compliance_level=c.compliance_level.value,
            supported_methods=[
                PaymentMethodSchema(
                    id=m.id,
                    name=m.name,
                    type=m.type.value,
                    processing_time_minutes=m.processing_time_minutes,
                    fee_percent=m.fee_percent,
                    fixed_fee=m.fixed_fee,
                    limits=MethodLimitsSchema(
                        min=m.limits.min,
                        max=m.limits.max,
                        daily=m.limits.daily,
                        monthly=m.limits.monthly,
                    ),
                    required_info=list(m.required_info),
                    is_available=m.is_available,
                )
                for m in c.supported_methods
            ],
            regulatory_requirements=list(c.regulatory_requirements),
        )
        for c in orchestrator.list_corridors()
    ]


@router.get("/currencies", response_model=List[CurrencyResponse])
def list_currencies(orchestrator: TransferOrchestrator = Depends(get_orchestrator)):
    return [
        CurrencyResponse(
            code=c.code,
            name=c.name,
            symbol=c.symbol,
            decimal_places=c.decimal_places,
            country_code=c.country_code,
            is_stable=c.is_stable,
        )
        for c in orchestrator.list_currencies()
    ]


@router.get("/partners", response_model=List[PartnerResponse])
def list_partners(orchestrator: TransferOrchestrator = Depends(get_orchestrator)):
    return [
        PartnerResponse(
            id=p.id,
            name=p.name,
            type=p.type.value,
            countries=list(p.countries),
            currencies=list(p.currencies),
            trust_score=p.trust_score,
            success_rate=p.success_rate,
            average_processing_minutes=p.average_processing_minutes,
            compliance_rating=p.compliance_rating,
        )
        for p in orchestrator.list_partners()
    ]


@router.get("/rates/{from_currency}/{to_currency}", response_model=RateResponse)
async def get_rate(
    from_currency: str,
    to_currency: str,
    request: Request,
    orchestrator: TransferOrchestrator = Depends(get_orchestrator),
):
    """
    Current rate for an ordered currency pair, served from the cache while
    it is fresh.
    """
    try:
        rate = await orchestrator.get_rate(from_currency.upper(), to_currency.upper())
    except Exception as e:
        raise to_http_error(e, get_request_id(request))

    return RateResponse(
        from_currency=rate.from_currency,
        to_currency=rate.to_currency,
        rate=rate.rate,
        inverse_rate=rate.inverse_rate,
        spread=rate.spread,
        source=rate.source,
        last_updated=rate.last_updated,
        is_live=rate.is_live,
    )
