"""Pydantic schemas for API request/response validation"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class RecipientSchema(BaseModel):
    name: str = Field(..., min_length=1)
    phone_number: Optional[str] = None
    account_number: Optional[str] = None
    swift_code: Optional[str] = None
    address: Optional[str] = None


class TransferCreateRequest(BaseModel):
    """Request body for POST /v1/transfers"""

    sender_id: str = Field(..., min_length=1, description="Sender identifier")
    recipient: RecipientSchema
    origin_country: str = Field(..., min_length=2, max_length=2)
    destination_country: str = Field(..., min_length=2, max_length=2)
    send_amount: Decimal = Field(..., gt=0, description="Amount in origin currency units")
    origin_currency: Optional[str] = Field(None, min_length=3, max_length=3)
    destination_currency: Optional[str] = Field(None, min_length=3, max_length=3)
    payment_method: str = Field(..., min_length=1, description="Method id or type, e.g. mobile_money")
    delivery_method: str = Field(..., min_length=1)
    purpose: str = Field(..., min_length=1)
    source_of_funds: str = Field(..., min_length=1)
    beneficiary_relationship: str = Field(..., min_length=1)


class PaymentRequest(BaseModel):
    """Request body for POST /v1/transfers/{id}/payment"""

    proof: Dict[str, Any] = Field(default_factory=dict, description="Pay-in reference passed to the verifier")


class CancelRequest(BaseModel):
    reason: str = Field(..., min_length=1)


class NoteRequest(BaseModel):
    note: str = Field(..., min_length=1)


class ComplianceCheckSchema(BaseModel):
    check_type: str
    status: str
    risk_score: float
    flags: List[str]
    checked_at: datetime
    detail: Optional[str] = None


class StatusChangeSchema(BaseModel):
    from_status: Optional[str] = None
    to_status: Optional[str] = None
    at: datetime
    note: Optional[str] = None


class TransferResponse(BaseModel):
    """Full transfer view returned by every /v1/transfers endpoint"""

    transfer_id: str
    tracking_number: str
    status: str
    sender_id: str
    recipient: RecipientSchema
    origin_country: str
    destination_country: str
    origin_currency: str
    destination_currency: str
    send_amount: Decimal
    fee: Decimal
    exchange_rate: Decimal
    receive_amount: Decimal
    total_cost: Decimal
    payment_method: str
    delivery_method: str
    compliance_level: str
    compliance_checks: List[ComplianceCheckSchema]
    estimated_delivery: datetime
    actual_delivery: Optional[datetime] = None
    partner_id: Optional[str] = None
    partner_reference: Optional[str] = None
    cancellation_reason: Optional[str] = None
    failure_reason: Optional[str] = None
    refund_amount: Optional[Decimal] = None
    refund_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    status_history: List[StatusChangeSchema]


class MethodLimitsSchema(BaseModel):
    min: Decimal
    max: Decimal
    daily: Decimal
    monthly: Decimal


class PaymentMethodSchema(BaseModel):
    id: str
    name: str
    type: str
    processing_time_minutes: int
    fee_percent: Decimal
    fixed_fee: Decimal
    limits: MethodLimitsSchema
    required_info: List[str]
    is_available: bool


class CorridorResponse(BaseModel):
    """Single entry of GET /v1/corridors"""

    corridor_id: str
    origin_country: str
    destination_country: str
    origin_currency: str
    destination_currency: str
    min_amount: Decimal
    max_amount: Decimal
    fee_percent: Decimal
    fixed_fee: Decimal
    estimated_delivery_minutes: int
    compliance_level: str
    supported_methods: List[PaymentMethodSchema]
    regulatory_requirements: List[str]


class CurrencyResponse(BaseModel):
    code: str
    name: str
    symbol: str
    decimal_places: int
    country_code: str
    is_stable: bool


class PartnerResponse(BaseModel):
    id: str
    name: str
    type: str
    countries: List[str]
    currencies: List[str]
    trust_score: float
    success_rate: float
    average_processing_minutes: int
    compliance_rating: str


class RateResponse(BaseModel):
    """Response for GET /v1/rates/{from}/{to}"""

    from_currency: str
    to_currency: str
    rate: Decimal
    inverse_rate: Decimal
    spread: Decimal
    source: str
    last_updated: datetime
    is_live: bool


class CorridorStatsSchema(BaseModel):
    corridor: str
    transfer_count: int
    volume: Decimal
    average_amount: Decimal
    success_rate: float


class CurrencyStatsSchema(BaseModel):
    currency: str
    send_volume: Decimal
    receive_volume: Decimal
    transfer_count: int
    average_rate: Decimal


class PartnerPerformanceSchema(BaseModel):
    partner_id: str
    transfer_count: int
    success_rate: float
    average_processing_minutes: float


class ReportSummarySchema(BaseModel):
    total_transfers: int
    total_volume: Decimal
    average_amount: Decimal
    success_rate: float
    top_corridors: List[CorridorStatsSchema]
    top_currencies: List[CurrencyStatsSchema]


class ComplianceSummarySchema(BaseModel):
    aml_checks: int
    sanctions_hits: int
    manual_reviews: int


class ReportResponse(BaseModel):
    """Response for GET /v1/reports"""

    period_start: datetime
    period_end: datetime
    summary: ReportSummarySchema
    compliance: ComplianceSummarySchema
    partners_performance: List[PartnerPerformanceSchema]
    status_breakdown: Dict[str, int]
