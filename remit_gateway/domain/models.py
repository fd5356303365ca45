"""Domain models - pure Python dataclasses representing remittance entities"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Tuple

INVERSE_RATE_TOLERANCE = Decimal("0.000001")


class TransferStatus(str, Enum):
    INITIATED = "initiated"
    COMPLIANCE_CHECK = "compliance_check"
    AWAITING_PAYMENT = "awaiting_payment"
    PAYMENT_CONFIRMED = "payment_confirmed"
    PROCESSING = "processing"
    SENT_TO_PARTNER = "sent_to_partner"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"
    REFUNDED = "refunded"


class CheckType(str, Enum):
    AML = "aml"
    SANCTIONS = "sanctions"
    PEP = "pep"
    TAX_REPORTING = "tax_reporting"


class CheckStatus(str, Enum):
    PENDING = "pending"
    PASSED = "passed"
    FAILED = "failed"
    MANUAL_REVIEW = "manual_review"


class ComplianceLevel(str, Enum):
    BASIC = "basic"
    ENHANCED = "enhanced"
    FULL = "full"


class PaymentMethodType(str, Enum):
    MOBILE_MONEY = "mobile_money"
    BANK_TRANSFER = "bank_transfer"
    CASH_PICKUP = "cash_pickup"
    AGENT_NETWORK = "agent_network"


class PartnerType(str, Enum):
    MONEY_TRANSFER_OPERATOR = "money_transfer_operator"
    BANK = "bank"
    MOBILE_MONEY = "mobile_money"


@dataclass(frozen=True)
class Currency:
    """Supported currency; reference_rate is units per USD"""

    code: str
    name: str
    symbol: str
    decimal_places: int
    reference_rate: Decimal
    country_code: str
    is_stable: bool


@dataclass(frozen=True)
class ExchangeRate:
    """Cached rate for one ordered currency pair, replaced wholesale on refresh"""

    from_currency: str
    to_currency: str
    rate: Decimal
    inverse_rate: Decimal
    spread: Decimal
    source: str
    last_updated: datetime
    is_live: bool

    @property
    def pair(self) -> Tuple[str, str]:
        return (self.from_currency, self.to_currency)

    def is_fresh(self, now: datetime, window: timedelta) -> bool:
        return now - self.last_updated < window

    def inverse_consistent(self) -> bool:
        return abs(self.rate * self.inverse_rate - 1) <= INVERSE_RATE_TOLERANCE


@dataclass(frozen=True)
class MethodLimits:
    min: Decimal
    max: Decimal
    daily: Decimal
    monthly: Decimal


@dataclass(frozen=True)
class PaymentMethod:
    """Pay-in/delivery method offered on one corridor"""

    id: str
    name: str
    type: PaymentMethodType
    processing_time_minutes: int
    fee_percent: Decimal
    fixed_fee: Decimal
    limits: MethodLimits
    required_info: Tuple[str, ...] = ()
    is_available: bool = True


@dataclass(frozen=True)
class PaymentCorridor:
    """Directional country lane with its own limits, fees and compliance tier"""

    origin_country: str
    destination_country: str
    origin_currency: str
    destination_currency: str
    is_active: bool
    min_amount: Decimal
    max_amount: Decimal
    fee_percent: Decimal
    fixed_fee: Decimal
    estimated_delivery_minutes: int
    compliance_level: ComplianceLevel
    supported_methods: Tuple[PaymentMethod, ...] = ()
    regulatory_requirements: Tuple[str, ...] = ()

    @property
    def id(self) -> str:
        return f"{self.origin_country}-{self.destination_country}"

    def find_method(self, method: str) -> Optional[PaymentMethod]:
        """Match a requested method by id or by type tag"""
        for candidate in self.supported_methods:
            if candidate.id == method or candidate.type.value == method:
                return candidate
        return None


@dataclass(frozen=True)
class TransferPartner:
    """External settlement entity completing final-mile delivery"""

    id: str
    name: str
    type: PartnerType
    countries: Tuple[str, ...]
    currencies: Tuple[str, ...]
    trust_score: float
    success_rate: float
    average_processing_minutes: int
    is_active: bool
    compliance_rating: str
    regulatory_licenses: Tuple[str, ...] = ()

    @property
    def ranking_score(self) -> float:
        return self.trust_score * self.success_rate


@dataclass
class RecipientInfo:
    name: str
    phone_number: Optional[str] = None
    account_number: Optional[str] = None
    swift_code: Optional[str] = None
    address: Optional[str] = None


@dataclass(frozen=True)
class ComplianceCheck:
    """Result of one screening step; appended to a transfer, never rewritten"""

    check_type: CheckType
    status: CheckStatus
    risk_score: float
    flags: Tuple[str, ...]
    checked_at: datetime
    detail: Optional[str] = None


@dataclass(frozen=True)
class StatusChange:
    from_status: Optional[TransferStatus]
    to_status: Optional[TransferStatus]
    at: datetime
    note: Optional[str] = None


@dataclass
class TransferRequest:
    """Caller input for initiating a transfer"""

    sender_id: str
    recipient: RecipientInfo
    origin_country: str
    destination_country: str
    send_amount: Decimal
    payment_method: str
    delivery_method: str
    purpose: str
    source_of_funds: str
    beneficiary_relationship: str
    origin_currency: Optional[str] = None
    destination_currency: Optional[str] = None


@dataclass(frozen=True)
class Quote:
    """Economics of a transfer, frozen at initiation"""

    send_amount: Decimal
    fee: Decimal
    exchange_rate: Decimal
    receive_amount: Decimal
    total_cost: Decimal


@dataclass
class Transfer:
    """Central aggregate; mutated only by the orchestrator"""

    id: str
    tracking_number: str
    sender_id: str
    recipient: RecipientInfo
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
    compliance_level: ComplianceLevel
    status: TransferStatus
    estimated_delivery: datetime
    purpose: str
    source_of_funds: str
    beneficiary_relationship: str
    created_at: datetime
    updated_at: datetime
    compliance_checks: List[ComplianceCheck] = field(default_factory=list)
    status_history: List[StatusChange] = field(default_factory=list)
    actual_delivery: Optional[datetime] = None
    partner_id: Optional[str] = None
    partner_reference: Optional[str] = None
    cancellation_reason: Optional[str] = None
    failure_reason: Optional[str] = None
    refund_amount: Optional[Decimal] = None
    refund_date: Optional[datetime] = None

    @property
    def corridor_id(self) -> str:
        return f"{self.origin_country}-{self.destination_country}"


@dataclass(frozen=True)
class ScreeningVerdict:
    """Opaque scored verdict from a screening provider"""

    status: CheckStatus
    risk_score: float
    flags: Tuple[str, ...] = ()
    detail: Optional[str] = None


@dataclass(frozen=True)
class RateQuote:
    """Raw rate provider response"""

    rate: Decimal
    inverse_rate: Optional[Decimal]
    source: str
    spread: Decimal
    is_live: bool


@dataclass(frozen=True)
class DispatchResult:
    success: bool
    partner_reference: Optional[str] = None
    message: Optional[str] = None


@dataclass(frozen=True)
class PartnerStatusUpdate:
    """Partner-side view of a dispatched transfer"""

    status: str  # "pending" | "completed" | "failed" | "not_found"
    partner_reference: Optional[str] = None
    delivered_at: Optional[datetime] = None
    message: Optional[str] = None


@dataclass
class CorridorStats:
    corridor: str
    transfer_count: int
    volume: Decimal
    average_amount: Decimal
    success_rate: float


@dataclass
class CurrencyStats:
    currency: str
    send_volume: Decimal
    receive_volume: Decimal
    transfer_count: int
    average_rate: Decimal


@dataclass
class PartnerPerformanceStats:
    partner_id: str
    transfer_count: int
    success_rate: float
    average_processing_minutes: float


@dataclass
class ReportSummary:
    total_transfers: int
    total_volume: Decimal
    average_amount: Decimal
    success_rate: float
    top_corridors: List[CorridorStats]
    top_currencies: List[CurrencyStats]


@dataclass
class ComplianceSummary:
    aml_checks: int
    sanctions_hits: int
    manual_reviews: int


@dataclass
class RemittanceReport:
    """Derived, non-persistent view over a closed time window"""

    period_start: datetime
    period_end: datetime
    summary: ReportSummary
    compliance: ComplianceSummary
    partners_performance: List[PartnerPerformanceStats]
    status_breakdown: Dict[str, int] = field(default_factory=dict)
