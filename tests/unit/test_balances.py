"""Unit tests for amount arithmetic and status derivation"""

import pytest
from decimal import Decimal
from zurcher_ledger.domain.balances import (
    apply_payment,
    derive_status,
    percentage_paid,
    remaining_amount,
    to_cents,
    to_money,
    unapply_payment,
)
from zurcher_ledger.domain.models import PaymentStatus


def test_to_money_quantizes_to_four_places():
    assert to_money("12.5") == Decimal("12.5000")
    assert to_money(3) == Decimal("3.0000")
    assert to_money("0.00005") == Decimal("0.0001")  # half up


def test_to_money_keeps_float_short_form():
    """0.1 + 0.2 style drift must not leak into stored amounts"""
    assert to_money(0.1) == Decimal("0.1000")
    assert to_money(0.1) + to_money(0.2) == Decimal("0.3000")


def test_to_cents():
    assert to_cents("10.005") == Decimal("10.01")


@pytest.mark.parametrize(
    "paid, total, expected",
    [
        ("0", "100", PaymentStatus.UNPAID),
        ("50", "100", PaymentStatus.PARTIAL),
        ("100", "100", PaymentStatus.PAID),
        ("99.995", "100", PaymentStatus.PAID),  # 0.005 left is within tolerance
        ("99.98", "100", PaymentStatus.PARTIAL),  # 0.02 left is not
        ("0", "0", PaymentStatus.UNPAID),
    ],
)
def test_derive_status(paid, total, expected):
    assert derive_status(Decimal(paid), Decimal(total)) is expected


def test_remaining_amount():
    assert remaining_amount(Decimal("1000"), Decimal("250.25")) == Decimal("749.7500")


def test_percentage_paid():
    assert percentage_paid(Decimal("250"), Decimal("1000")) == Decimal("25.00")
    assert percentage_paid(Decimal("1"), Decimal("3")) == Decimal("33.33")


def test_percentage_paid_zero_total():
    assert percentage_paid(Decimal("0"), Decimal("0")) == Decimal("0.00")


def test_apply_payment_derives_status():
    change = apply_payment(Decimal("200"), Decimal("1000"), Decimal("800"))
    assert change.paid_amount == Decimal("1000")
    assert change.status is PaymentStatus.PAID
    assert change.clamped is False


def test_unapply_payment_restores_previous_state():
    change = unapply_payment(Decimal("500"), Decimal("1000"), Decimal("300"))
    assert change.paid_amount == Decimal("200")
    assert change.status is PaymentStatus.PARTIAL
    assert change.clamped is False


def test_unapply_payment_to_zero_is_unpaid():
    change = unapply_payment(Decimal("300"), Decimal("1000"), Decimal("300"))
    assert change.paid_amount == 0
    assert change.status is PaymentStatus.UNPAID


def test_unapply_payment_clamps_at_zero():
    """An aggregate already out of step never goes negative"""
    change = unapply_payment(Decimal("100"), Decimal("1000"), Decimal("300"))
    assert change.paid_amount == 0
    assert change.status is PaymentStatus.UNPAID
    assert change.clamped is True
