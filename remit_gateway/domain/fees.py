"""Corridor validation and transfer pricing"""

from decimal import ROUND_HALF_UP, Decimal

from remit_gateway.domain.exceptions import AmountOutOfBoundsError
from remit_gateway.domain.models import Currency, ExchangeRate, PaymentCorridor, PaymentMethod, Quote

# Rates are frozen on the transfer at this precision
RATE_PLACES = 10


def quantize_amount(amount: Decimal, decimal_places: int) -> Decimal:
    """Round a monetary amount to a currency's declared precision"""
    return amount.quantize(Decimal(1).scaleb(-decimal_places), rounding=ROUND_HALF_UP)


def quantize_rate(rate: Decimal) -> Decimal:
    return rate.quantize(Decimal(1).scaleb(-RATE_PLACES), rounding=ROUND_HALF_UP)


def validate_amount(corridor: PaymentCorridor, amount: Decimal) -> None:
    """
    Check send amount against the corridor's inclusive bounds.

    Raises:
        AmountOutOfBoundsError: If amount < min or amount > max
    """
    if amount < corridor.min_amount or amount > corridor.max_amount:
        raise AmountOutOfBoundsError(
            f"Amount must be between {corridor.min_amount} and {corridor.max_amount} "
            f"{corridor.origin_currency} for corridor {corridor.id}"
        )


def validate_method_limits(
    method: PaymentMethod,
    amount: Decimal,
    sent_today: Decimal = Decimal(0),
    sent_this_month: Decimal = Decimal(0),
) -> None:
    """
    Check per-transaction and rolling limits for a payment method.

    Args:
        sent_today: Sender's volume on this method since start of day
        sent_this_month: Sender's volume on this method since start of month
    """
    limits = method.limits
    if amount < limits.min or amount > limits.max:
        raise AmountOutOfBoundsError(
            f"Amount must be between {limits.min} and {limits.max} for method {method.id}"
        )
    if sent_today + amount > limits.daily:
        raise AmountOutOfBoundsError(f"Daily limit of {limits.daily} exceeded for method {method.id}")
    if sent_this_month + amount > limits.monthly:
        raise AmountOutOfBoundsError(f"Monthly limit of {limits.monthly} exceeded for method {method.id}")


def calculate_transfer_fee(amount: Decimal, corridor: PaymentCorridor, decimal_places: int = 2) -> Decimal:
    """Percentage fee plus fixed fee, in the origin currency"""
    percent_fee = amount * corridor.fee_percent / Decimal(100)
    return quantize_amount(percent_fee + corridor.fixed_fee, decimal_places)


def compute_quote(
    amount: Decimal,
    corridor: PaymentCorridor,
    rate: ExchangeRate,
    origin: Currency,
    destination: Currency,
) -> Quote:
    """
    Price a transfer. The fee is deducted from the send amount before
    conversion; total cost is what the sender pays.

    Example:
        100000 UGX on UG-KE (2.5% + 5000) -> fee 7500
        receive = (100000 - 7500) * (129 / 3700) = 3225.00 KES
    """
    fee = calculate_transfer_fee(amount, corridor, origin.decimal_places)
    frozen_rate = quantize_rate(rate.rate)
    receive_amount = quantize_amount((amount - fee) * frozen_rate, destination.decimal_places)

    return Quote(
        send_amount=amount,
        fee=fee,
        exchange_rate=frozen_rate,
        receive_amount=receive_amount,
        total_cost=amount + fee,
    )
