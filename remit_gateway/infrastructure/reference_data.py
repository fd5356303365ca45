"""Load currencies, corridors and partners from a JSON configuration file"""

import json
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List

from remit_gateway.domain.exceptions import ValidationError
from remit_gateway.domain.models import (
    ComplianceLevel,
    Currency,
    MethodLimits,
    PartnerType,
    PaymentCorridor,
    PaymentMethod,
    PaymentMethodType,
    TransferPartner,
)

DEFAULT_REFERENCE_DATA = Path(__file__).resolve().parents[1] / "data" / "reference_data.json"


@dataclass
class ReferenceData:
    currencies: List[Currency]
    corridors: List[PaymentCorridor]
    partners: List[TransferPartner]


def parse_currency(raw: Dict[str, Any]) -> Currency:
    return Currency(
        code=raw["code"],
        name=raw["name"],
        symbol=raw["symbol"],
        decimal_places=int(raw["decimal_places"]),
        reference_rate=Decimal(str(raw["reference_rate"])),
        country_code=raw["country_code"],
        is_stable=bool(raw["is_stable"]),
    )


def parse_method(raw: Dict[str, Any]) -> PaymentMethod:
    limits = raw["limits"]
    return PaymentMethod(
        id=raw["id"],
        name=raw["name"],
        type=PaymentMethodType(raw["type"]),
        processing_time_minutes=int(raw["processing_time_minutes"]),
        fee_percent=Decimal(str(raw["fee_percent"])),
        fixed_fee=Decimal(str(raw["fixed_fee"])),
        limits=MethodLimits(
            min=Decimal(str(limits["min"])),
            max=Decimal(str(limits["max"])),
            daily=Decimal(str(limits["daily"])),
            monthly=Decimal(str(limits["monthly"])),
        ),
        required_info=tuple(raw.get("required_info", ())),
        is_available=bool(raw.get("is_available", True)),
    )


def parse_corridor(raw: Dict[str, Any]) -> PaymentCorridor:
    corridor = PaymentCorridor(
        origin_country=raw["origin_country"],
        destination_country=raw["destination_country"],
        origin_currency=raw["origin_currency"],
        destination_currency=raw["destination_currency"],
        is_active=bool(raw["is_active"]),
        min_amount=Decimal(str(raw["min_amount"])),
        max_amount=Decimal(str(raw["max_amount"])),
        fee_percent=Decimal(str(raw["fee_percent"])),
        fixed_fee=Decimal(str(raw["fixed_fee"])),
        estimated_delivery_minutes=int(raw["estimated_delivery_minutes"]),
        compliance_level=ComplianceLevel(raw["compliance_level"]),
        supported_methods=tuple(parse_method(m) for m in raw.get("supported_methods", ())),
        regulatory_requirements=tuple(raw.get("regulatory_requirements", ())),
    )
    if corridor.min_amount > corridor.max_amount:
        raise ValidationError(f"Corridor {corridor.id} has min_amount above max_amount")
    return corridor


def parse_partner(raw: Dict[str, Any]) -> TransferPartner:
    return TransferPartner(
        id=raw["id"],
        name=raw["name"],
        type=PartnerType(raw["type"]),
        countries=tuple(raw["countries"]),
        currencies=tuple(raw["currencies"]),
        trust_score=float(raw["trust_score"]),
        success_rate=float(raw["success_rate"]),
        average_processing_minutes=int(raw["average_processing_minutes"]),
        is_active=bool(raw["is_active"]),
        compliance_rating=raw["compliance_rating"],
        regulatory_licenses=tuple(raw.get("regulatory_licenses", ())),
    )


def parse_reference_data(data: Dict[str, Any]) -> ReferenceData:
    """
    Raises:
        ValidationError: On missing keys or invalid values
    """
    try:
        return ReferenceData(
            currencies=[parse_currency(c) for c in data.get("currencies", [])],
            corridors=[parse_corridor(c) for c in data.get("corridors", [])],
            partners=[parse_partner(p) for p in data.get("partners", [])],
        )
    except (KeyError, ValueError, TypeError, ArithmeticError) as e:
        raise ValidationError(f"Invalid reference data: {e}") from e


def load_reference_data(path: str | Path | None = None) -> ReferenceData:
    path = Path(path) if path else DEFAULT_REFERENCE_DATA
    return parse_reference_data(json.loads(path.read_text(encoding="utf-8")))
