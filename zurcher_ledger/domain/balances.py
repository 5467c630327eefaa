"""Amount arithmetic and status derivation shared by every ledger operation"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Union

from zurcher_ledger.domain.models import PaymentStatus

# Tolerance for "fully paid" and "exceeds remaining" comparisons
EPSILON = Decimal("0.01")

# Storage precision; amounts are NUMERIC(14, 4)
AMOUNT_QUANTUM = Decimal("0.0001")
CENT = Decimal("0.01")

# Largest value NUMERIC(14, 4) holds
MAX_AMOUNT = Decimal("9999999999.9999")

Number = Union[Decimal, int, str, float]


def to_money(value: Number) -> Decimal:
    """Coerce a request or database value to a ledger amount"""
    if isinstance(value, float):
        # repr() keeps the short form the caller typed (0.1 -> "0.1")
        value = repr(value)
    return Decimal(value).quantize(AMOUNT_QUANTUM, rounding=ROUND_HALF_UP)


def to_cents(value: Number) -> Decimal:
    """Round an amount for display"""
    return to_money(value).quantize(CENT, rounding=ROUND_HALF_UP)


def remaining_amount(total_amount: Decimal, paid_amount: Decimal) -> Decimal:
    return to_money(total_amount) - to_money(paid_amount)


def derive_status(paid_amount: Decimal, total_amount: Decimal) -> PaymentStatus:
    """
    Payment status as a pure function of the amounts.

    unpaid  iff nothing has been paid
    paid    iff what is left is within EPSILON
    partial otherwise
    """
    paid = to_money(paid_amount)
    if paid == 0:
        return PaymentStatus.UNPAID
    if to_money(total_amount) - paid <= EPSILON:
        return PaymentStatus.PAID
    return PaymentStatus.PARTIAL


def percentage_paid(paid_amount: Decimal, total_amount: Decimal) -> Decimal:
    total = to_money(total_amount)
    if total == 0:
        return Decimal("0.00")
    return to_cents(to_money(paid_amount) / total * 100)


@dataclass
class BalanceChange:
    """New aggregate state of an obligation after a payment is applied or undone"""

    paid_amount: Decimal
    status: PaymentStatus
    clamped: bool = False


def apply_payment(paid_amount: Decimal, total_amount: Decimal, amount: Decimal) -> BalanceChange:
    new_paid = to_money(paid_amount) + to_money(amount)
    return BalanceChange(paid_amount=new_paid, status=derive_status(new_paid, total_amount))


def unapply_payment(paid_amount: Decimal, total_amount: Decimal, amount: Decimal) -> BalanceChange:
    """
    Undo a payment on an obligation's aggregate.

    paid_amount never goes below zero. Needing to clamp means the aggregate
    was already out of step with its payments; the caller is told through
    `clamped` so it can flag it.
    """
    new_paid = to_money(paid_amount) - to_money(amount)
    clamped = new_paid < 0
    if clamped:
        new_paid = Decimal("0").quantize(AMOUNT_QUANTUM)
    return BalanceChange(paid_amount=new_paid, status=derive_status(new_paid, total_amount), clamped=clamped)
