"""Unit tests for FIFO payment allocation"""

import pytest
from datetime import date
from decimal import Decimal
from zurcher_ledger.domain.allocation import allocate_payment, order_open_charges, replay_balances
from zurcher_ledger.domain.exceptions import ValidationError
from zurcher_ledger.domain.models import OpenCharge, PaymentStatus, TransactionType


def charge(charge_id, day, total, paid="0"):
    return OpenCharge(
        charge_id=charge_id,
        charge_date=date(2025, 1, day),
        total_amount=Decimal(total),
        paid_amount=Decimal(paid),
    )


@pytest.fixture
def open_charges():
    """$100 on 01-05, $50 on 01-10, $200 on 01-20, listed out of order"""
    return [charge(3, 20, "200"), charge(1, 5, "100"), charge(2, 10, "50")]


def test_allocation_fifo_scenario(open_charges):
    result = allocate_payment(open_charges, Decimal("120"), Decimal("350"))

    assert [a.charge_id for a in result.allocations] == [1, 2]
    first, second = result.allocations
    assert first.amount_applied == Decimal("100")
    assert first.new_status is PaymentStatus.PAID
    assert second.amount_applied == Decimal("20")
    assert second.new_status is PaymentStatus.PARTIAL
    assert second.remaining_amount == Decimal("30")
    assert result.total_applied == Decimal("120")
    assert result.leftover == 0
    assert result.new_balance == Decimal("230")


def test_allocation_is_deterministic(open_charges):
    first = allocate_payment(open_charges, Decimal("175.50"), Decimal("350"))
    second = allocate_payment(list(reversed(open_charges)), Decimal("175.50"), Decimal("350"))

    assert first == second


def test_allocation_conserves_payment_amount(open_charges):
    for amount in ["0.02", "50", "149.99", "350", "500.25"]:
        result = allocate_payment(open_charges, Decimal(amount), Decimal("350"))
        applied = sum((a.amount_applied for a in result.allocations), Decimal("0"))
        assert applied + result.leftover == Decimal(amount)


def test_allocation_never_overshoots_a_charge(open_charges):
    pending = {c.charge_id: c.pending for c in open_charges}

    result = allocate_payment(open_charges, Decimal("1000"), Decimal("350"))

    for allocation in result.allocations:
        assert allocation.amount_applied <= pending[allocation.charge_id]
    assert result.leftover == Decimal("650")
    assert all(a.new_status is PaymentStatus.PAID for a in result.allocations)


def test_same_date_charges_ordered_by_id():
    charges = [charge(8, 3, "10"), charge(5, 3, "10")]

    result = allocate_payment(charges, Decimal("10"), Decimal("20"))

    assert [a.charge_id for a in result.allocations] == [5]


def test_partially_paid_charge_receives_only_its_pending_amount():
    charges = [charge(1, 5, "100", paid="60"), charge(2, 6, "40")]

    result = allocate_payment(charges, Decimal("50"), Decimal("80"))

    assert result.allocations[0].amount_applied == Decimal("40")
    assert result.allocations[0].new_paid_amount == Decimal("100")
    assert result.allocations[1].amount_applied == Decimal("10")


def test_settled_charges_are_skipped():
    charges = [charge(1, 5, "100", paid="99.995"), charge(2, 6, "40")]

    assert [c.charge_id for c in order_open_charges(charges)] == [2]


def test_untouched_charges_are_not_reported(open_charges):
    result = allocate_payment(open_charges, Decimal("100"), Decimal("350"))
    assert [a.charge_id for a in result.allocations] == [1]


def test_no_open_charges_leaves_everything_over():
    result = allocate_payment([], Decimal("75"), Decimal("0"))

    assert result.allocations == []
    assert result.total_applied == 0
    assert result.leftover == Decimal("75")
    assert result.new_balance == 0


@pytest.mark.parametrize("amount", ["0", "-5"])
def test_non_positive_payment_rejected(open_charges, amount):
    with pytest.raises(ValidationError):
        allocate_payment(open_charges, Decimal(amount), Decimal("350"))


def test_replay_balances():
    postings = [
        (TransactionType.CHARGE, Decimal("100")),
        (TransactionType.INTEREST, Decimal("2.50")),
        (TransactionType.PAYMENT, Decimal("60")),
        (TransactionType.REVERSAL, Decimal("60")),
    ]

    assert replay_balances(postings) == [
        Decimal("100"),
        Decimal("102.50"),
        Decimal("42.50"),
        Decimal("102.50"),
    ]
