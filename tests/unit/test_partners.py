"""Unit tests for partner selection and the partner directory"""

import dataclasses

import pytest

from remit_gateway.domain.exceptions import PartnerNotFoundError, ValidationError
from remit_gateway.domain.models import PartnerType, TransferPartner
from remit_gateway.domain.partners import PartnerDirectory, select_partner


def partner(partner_id: str, trust: float, success: float, active: bool = True, countries=("UG", "KE")) -> TransferPartner:
    return TransferPartner(
        id=partner_id,
        name=partner_id.title(),
        type=PartnerType.MOBILE_MONEY,
        countries=tuple(countries),
        currencies=("UGX", "KES"),
        trust_score=trust,
        success_rate=success,
        average_processing_minutes=15,
        is_active=active,
        compliance_rating="A",
    )


def test_highest_trust_times_success_wins(make_transfer):
    """95 * 98.5 = 9357.5 loses to 99 * 99.2 = 9820.8"""
    candidates = [partner("airtel_money", 95, 98.5), partner("western_union", 99, 99.2)]

    assert select_partner(candidates, make_transfer()).id == "western_union"


def test_ties_keep_first_inserted(make_transfer):
    candidates = [partner("first", 90, 100), partner("second", 100, 90)]

    assert select_partner(candidates, make_transfer()).id == "first"


def test_inactive_partner_never_selected(make_transfer):
    candidates = [partner("dormant", 100, 100, active=False), partner("airtel_money", 95, 98.5)]

    assert select_partner(candidates, make_transfer()).id == "airtel_money"


def test_partner_must_cover_both_countries(make_transfer):
    candidates = [partner("kenya_only", 100, 100, countries=("KE",))]

    assert select_partner(candidates, make_transfer()) is None


def test_directory_selects_from_reference_data(partners, make_transfer):
    # eastlink_remit scores higher but is inactive
    assert partners.select(make_transfer()).id == "western_union"


def test_no_partner_for_uncovered_corridor(partners, make_transfer):
    transfer = make_transfer(destination_country="ZW", destination_currency="ZWL")

    assert partners.select(transfer) is None


def test_update_success_rate_replaces_entry(partners, make_transfer):
    updated = partners.update_success_rate("western_union", 50.0)

    assert updated.success_rate == 50.0
    assert partners.get("western_union") is updated
    # 95 * 98.5 now beats 99 * 50
    assert partners.select(make_transfer()).id == "airtel_money"


def test_update_success_rate_validates_range(partners):
    with pytest.raises(ValidationError):
        partners.update_success_rate("western_union", 101)


def test_unknown_partner(partners):
    with pytest.raises(PartnerNotFoundError):
        partners.get("nope")


def test_list_active_preserves_order():
    directory = PartnerDirectory([partner("b", 1, 1), partner("a", 1, 1), partner("c", 1, 1, active=False)])

    assert [p.id for p in directory.list_active()] == ["b", "a"]
    assert dataclasses.is_dataclass(directory.list_all()[0])
