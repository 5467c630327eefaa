"""FIFO allocation of revolving-account payments - core business logic"""

from decimal import Decimal
from typing import Iterable, List

from zurcher_ledger.domain.balances import EPSILON, to_money
from zurcher_ledger.domain.exceptions import ValidationError
from zurcher_ledger.domain.models import (
    AllocationResult,
    ChargeAllocation,
    OpenCharge,
    PaymentStatus,
)


def order_open_charges(charges: Iterable[OpenCharge]) -> List[OpenCharge]:
    """Charges still owing more than EPSILON, oldest first, id breaking date ties"""
    return sorted(
        (c for c in charges if c.pending > EPSILON),
        key=lambda c: (c.charge_date, c.charge_id),
    )


def allocate_payment(
    charges: Iterable[OpenCharge],
    payment_amount: Decimal,
    previous_balance: Decimal,
) -> AllocationResult:
    """
    Distribute a payment over open charges, oldest first.

    Each charge receives min(remaining, pending). Walking stops once what is
    left of the payment is within EPSILON or the charges run out; whatever
    is left is reported as leftover, not raised. Only charges that receive
    money appear in the allocations.

    Invariants:
    - sum(amount_applied) + leftover == payment_amount
    - amount_applied never exceeds the charge's pending amount
    - same input -> same output

    Example:
        open charges 01-05 $100, 01-10 $50, 01-20 $200; payment $120
        -> $100 to 01-05 (paid), $20 to 01-10 (partial, $30 left), leftover 0
    """
    amount = to_money(payment_amount)
    if amount <= 0:
        raise ValidationError("Payment amount must be greater than 0")

    remaining = amount
    allocations: List[ChargeAllocation] = []

    for charge in order_open_charges(charges):
        if remaining <= EPSILON:
            break

        pending = charge.pending
        applied = min(remaining, pending)
        left_on_charge = pending - applied
        new_status = PaymentStatus.PAID if left_on_charge <= EPSILON else PaymentStatus.PARTIAL

        allocations.append(
            ChargeAllocation(
                charge_id=charge.charge_id,
                amount_applied=applied,
                new_status=new_status,
                new_paid_amount=charge.paid_amount + applied,
                remaining_amount=left_on_charge,
            )
        )
        remaining -= applied

    total_applied = sum((a.amount_applied for a in allocations), Decimal("0"))

    return AllocationResult(
        allocations=allocations,
        total_applied=total_applied,
        leftover=remaining,
        new_balance=to_money(previous_balance) - total_applied,
    )


def replay_balances(postings: Iterable[tuple]) -> List[Decimal]:
    """
    Running balance after each (transaction_type, amount) posting.

    Postings must already be in (date, id) order.
    """
    balance = Decimal("0")
    balances = []
    for transaction_type, amount in postings:
        balance += transaction_type.sign * to_money(amount)
        balances.append(balance)
    return balances
