"""Pytest fixtures for testing"""

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from remit_gateway.api.main import create_app
from remit_gateway.domain.catalog import CorridorCatalog, CurrencyRegistry
from remit_gateway.domain.models import (
    CheckStatus,
    CheckType,
    ComplianceLevel,
    DispatchResult,
    PartnerStatusUpdate,
    RecipientInfo,
    ScreeningVerdict,
    Transfer,
    TransferRequest,
    TransferStatus,
)
from remit_gateway.domain.partners import PartnerDirectory
from remit_gateway.infrastructure.clients.rates import StaticRateProvider
from remit_gateway.infrastructure.database.memory import InMemoryTransferRepository
from remit_gateway.infrastructure.database.repositories import SqlTransferRepository
from remit_gateway.infrastructure.database.session import create_db_engine, create_session_factory
from remit_gateway.infrastructure.reference_data import load_reference_data
from remit_gateway.services.compliance import CompliancePipeline
from remit_gateway.services.orchestrator import TransferOrchestrator
from remit_gateway.services.rates import ExchangeRateCache


class FakeScreener:
    """Passes every check unless a verdict, exception or "hang" is configured"""

    def __init__(self):
        self.verdicts: Dict[CheckType, object] = {}
        self.calls: List[CheckType] = []

    async def screen(self, check_type, transfer):
        self.calls.append(check_type)
        verdict = self.verdicts.get(check_type)
        if verdict == "hang":
            await asyncio.sleep(3600)
        if isinstance(verdict, Exception):
            raise verdict
        return verdict or ScreeningVerdict(status=CheckStatus.PASSED, risk_score=10.0)


class FakeVerifier:
    def __init__(self):
        self.result: object = True
        self.calls = 0

    async def verify(self, transfer, proof):
        self.calls += 1
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class FakeGateway:
    """Accepts every dispatch; poll answers pending until told otherwise"""

    def __init__(self):
        self.send_result: object = DispatchResult(success=True, partner_reference="WU-REF-1")
        self.poll_result: object = PartnerStatusUpdate(status="pending", partner_reference="WU-REF-1")
        self.sent: List[tuple] = []
        self.polled: List[tuple] = []

    async def send(self, partner, transfer):
        self.sent.append((partner.id, transfer.id))
        if isinstance(self.send_result, Exception):
            raise self.send_result
        return self.send_result

    async def poll(self, partner, transfer):
        self.polled.append((partner.id, transfer.id))
        if isinstance(self.poll_result, Exception):
            raise self.poll_result
        return self.poll_result


class Clock:
    """Settable clock for freshness tests"""

    def __init__(self, now: Optional[datetime] = None):
        self.now = now or datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def reference_data():
    return load_reference_data()


@pytest.fixture
def currencies(reference_data) -> CurrencyRegistry:
    return CurrencyRegistry(reference_data.currencies)


@pytest.fixture
def corridors(reference_data) -> CorridorCatalog:
    return CorridorCatalog(reference_data.corridors)


@pytest.fixture
def partners(reference_data) -> PartnerDirectory:
    return PartnerDirectory(reference_data.partners)


@pytest.fixture
def rate_provider(currencies) -> StaticRateProvider:
    return StaticRateProvider.from_registry(currencies)


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def rate_cache(rate_provider, currencies) -> ExchangeRateCache:
    return ExchangeRateCache(rate_provider, currencies)


@pytest.fixture
def screener() -> FakeScreener:
    return FakeScreener()


@pytest.fixture
def verifier() -> FakeVerifier:
    return FakeVerifier()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def repository() -> InMemoryTransferRepository:
    return InMemoryTransferRepository()


@pytest.fixture
def sql_repository(tmp_path, currencies) -> SqlTransferRepository:
    """SQLite-backed store, one file per test"""
    engine = create_db_engine(f"sqlite:///{tmp_path / 'test.db'}")
    try:
        yield SqlTransferRepository(create_session_factory(engine, create_schema=True), currencies)
    finally:
        engine.dispose()


@pytest.fixture
def orchestrator(repository, currencies, corridors, partners, rate_cache, screener, verifier, gateway):
    return TransferOrchestrator(
        transfers=repository,
        currencies=currencies,
        corridors=corridors,
        partners=partners,
        rates=rate_cache,
        compliance=CompliancePipeline(screener, check_timeout_seconds=0.2),
        verifier=verifier,
        gateway=gateway,
        payment_timeout_seconds=0.5,
        partner_timeout_seconds=0.5,
    )


@pytest.fixture
def client(sql_repository, currencies, corridors, partners, rate_cache, screener, verifier, gateway) -> TestClient:
    """FastAPI test client over a SQLite store and fake collaborators"""
    app = create_app(
        TransferOrchestrator(
            transfers=sql_repository,
            currencies=currencies,
            corridors=corridors,
            partners=partners,
            rates=rate_cache,
            compliance=CompliancePipeline(screener, check_timeout_seconds=0.2),
            verifier=verifier,
            gateway=gateway,
            payment_timeout_seconds=0.5,
            partner_timeout_seconds=0.5,
        )
    )
    return TestClient(app)


@pytest.fixture
def ug_ke_request() -> TransferRequest:
    """100,000 UGX to a Kenyan mobile wallet"""
    return TransferRequest(
        sender_id="sender_001",
        recipient=RecipientInfo(name="Jane Wanjiku", phone_number="+254712345678"),
        origin_country="UG",
        destination_country="KE",
        send_amount=Decimal("100000"),
        payment_method="mobile_money",
        delivery_method="mobile_wallet",
        purpose="family_support",
        source_of_funds="salary",
        beneficiary_relationship="sibling",
    )


@pytest.fixture
def ug_ke_payload() -> dict:
    return {
        "sender_id": "sender_001",
        "recipient": {"name": "Jane Wanjiku", "phone_number": "+254712345678"},
        "origin_country": "UG",
        "destination_country": "KE",
        "send_amount": "100000",
        "payment_method": "mobile_money",
        "delivery_method": "mobile_wallet",
        "purpose": "family_support",
        "source_of_funds": "salary",
        "beneficiary_relationship": "sibling",
    }


@pytest.fixture
def make_transfer():
    """Factory for a priced UG-KE transfer in any status"""

    def factory(status: TransferStatus = TransferStatus.INITIATED, **overrides) -> Transfer:
        now = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)
        fields = dict(
            id="xb_test",
            sender_id="sender_001",
            recipient=RecipientInfo(name="Jane Wanjiku", phone_number="+254712345678"),
            origin_country="UG",
            destination_country="KE",
            origin_currency="UGX",
            destination_currency="KES",
            send_amount=Decimal("100000"),
            fee=Decimal("7500"),
            exchange_rate=Decimal("0.0348648649"),
            receive_amount=Decimal("3225.00"),
            total_cost=Decimal("107500"),
            payment_method="mobile_money_ug_ke",
            delivery_method="mobile_wallet",
            compliance_level=ComplianceLevel.ENHANCED,
            status=status,
            estimated_delivery=now + timedelta(minutes=30),
            purpose="family_support",
            source_of_funds="salary",
            beneficiary_relationship="sibling",
            created_at=now,
            updated_at=now,
        )
        fields.update(overrides)
        # Tracking numbers are unique per store
        fields.setdefault("tracking_number", f"RMT{fields['id']}")
        return Transfer(**fields)

    return factory
