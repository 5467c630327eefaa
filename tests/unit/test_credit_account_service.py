"""Unit tests for revolving-account postings, allocation and reversal"""

import pytest
from datetime import date
from decimal import Decimal
from prometheus_client import REGISTRY
from zurcher_ledger.domain.exceptions import NotFoundError, OverpaymentError, ValidationError
from zurcher_ledger.domain.models import PaymentMethod, PaymentStatus, TransactionType
from zurcher_ledger.infrastructure.database.models import LedgerTransaction, Obligation, PaymentAllocation
from zurcher_ledger.services.credit_account import CreditAccountService

CHASE = "Chase Credit Card"


@pytest.fixture
def service(db) -> CreditAccountService:
    return CreditAccountService(db, request_id="test")


@pytest.fixture
def charged_account(service):
    """$100 on 01-05, $50 on 01-10, $200 on 01-20"""
    charges = [
        service.post_transaction(CHASE, TransactionType.CHARGE, Decimal(amount), desc, date(2025, 1, day))
        for amount, desc, day in [("100", "Pipe fittings", 5), ("50", "Fuel", 10), ("200", "Gravel", 20)]
    ]
    return [c.charge for c in charges]


def test_charge_opens_obligation_and_raises_balance(service):
    outcome = service.post_transaction(
        CHASE, TransactionType.CHARGE, Decimal("125.40"), "Septic tank lid", date(2025, 1, 5), vendor="Home Depot"
    )

    assert outcome.transaction.balance_after == Decimal("125.40")
    assert outcome.account.current_balance == Decimal("125.40")
    assert outcome.charge.total_amount == Decimal("125.40")
    assert outcome.charge.status is PaymentStatus.UNPAID
    assert outcome.charge.payment_method is PaymentMethod.CHASE_CREDIT_CARD
    assert outcome.charge.vendor == "Home Depot"
    assert outcome.transaction.obligation_id == outcome.charge.id


def test_interest_is_an_open_charge(service, charged_account):
    outcome = service.post_transaction(CHASE, TransactionType.INTEREST, Decimal("4.20"), "Interest", date(2025, 1, 31))

    assert outcome.account.current_balance == Decimal("354.20")
    assert outcome.charge is not None


def test_payment_allocated_oldest_first(db, service, charged_account):
    outcome = service.post_transaction(
        CHASE, TransactionType.PAYMENT, Decimal("120"), "January payment", date(2025, 2, 1),
        payment_method=PaymentMethod.CHASE_BANK,
    )

    first, second, third = charged_account
    assert first.status is PaymentStatus.PAID
    assert first.paid_date == date(2025, 2, 1)
    assert second.status is PaymentStatus.PARTIAL
    assert second.paid_amount == Decimal("20")
    assert third.status is PaymentStatus.UNPAID
    assert outcome.transaction.balance_after == Decimal("230")
    assert outcome.account.current_balance == Decimal("230")

    allocations = db.query(PaymentAllocation).order_by(PaymentAllocation.id).all()
    assert [(a.obligation_id, a.amount_applied) for a in allocations] == [
        (first.id, Decimal("100")),
        (second.id, Decimal("20")),
    ]
    assert allocations[1].status_before is PaymentStatus.UNPAID
    assert allocations[1].status_after is PaymentStatus.PARTIAL


def test_overpayment_rejected(db, service, charged_account):
    with pytest.raises(OverpaymentError) as exc_info:
        service.post_transaction(CHASE, TransactionType.PAYMENT, Decimal("400"), "Too much", date(2025, 2, 1))

    assert exc_info.value.leftover == Decimal("50")
    assert exc_info.value.open_balance == Decimal("350")
    assert db.query(LedgerTransaction).filter_by(transaction_type=TransactionType.PAYMENT).count() == 0
    assert all(c.paid_amount == 0 for c in db.query(Obligation).all())


def test_payment_with_no_open_charges_rejected(service):
    with pytest.raises(OverpaymentError):
        service.post_transaction(CHASE, TransactionType.PAYMENT, Decimal("10"), "Nothing owed", date(2025, 2, 1))


def test_sub_tolerance_leftover_is_dropped(service, charged_account):
    outcome = service.post_transaction(
        CHASE, TransactionType.PAYMENT, Decimal("350.005"), "Payoff", date(2025, 2, 1)
    )

    assert outcome.allocation.leftover == Decimal("0.005")
    assert outcome.transaction.amount == Decimal("350")
    assert outcome.account.current_balance == 0


def test_backdated_posting_rejected(service, charged_account):
    with pytest.raises(ValidationError):
        service.post_transaction(CHASE, TransactionType.CHARGE, Decimal("10"), "Late receipt", date(2025, 1, 15))


@pytest.mark.parametrize("amount", ["0", "-1"])
def test_non_positive_amount_rejected(service, amount):
    with pytest.raises(ValidationError):
        service.post_transaction(CHASE, TransactionType.CHARGE, Decimal(amount), "Nothing", date(2025, 1, 5))


def test_reversal_type_cannot_be_posted_directly(service):
    with pytest.raises(ValidationError):
        service.post_transaction(CHASE, TransactionType.REVERSAL, Decimal("10"), "Manual", date(2025, 1, 5))


def test_accounts_are_independent(service):
    service.post_transaction(CHASE, TransactionType.CHARGE, Decimal("100"), "Fuel", date(2025, 1, 5))
    amex = service.post_transaction("AMEX", TransactionType.CHARGE, Decimal("40"), "Tools", date(2025, 1, 6))

    assert amex.account.current_balance == Decimal("40")
    assert amex.charge.payment_method is PaymentMethod.AMEX


def test_reverse_payment_restores_charges(db, service, charged_account):
    payment = service.post_transaction(CHASE, TransactionType.PAYMENT, Decimal("120"), "Payment", date(2025, 2, 1))

    outcome = service.reverse_payment(payment.transaction.id)

    first, second, _ = charged_account
    assert first.paid_amount == 0
    assert first.status is PaymentStatus.UNPAID
    assert first.paid_date is None
    assert second.paid_amount == 0
    assert outcome.transaction.transaction_type is TransactionType.REVERSAL
    assert outcome.transaction.amount == Decimal("120")
    assert outcome.account.current_balance == Decimal("350")
    assert payment.transaction.reversed_by_id == outcome.transaction.id


def test_reverse_payment_twice_rejected(service, charged_account):
    payment = service.post_transaction(CHASE, TransactionType.PAYMENT, Decimal("50"), "Payment", date(2025, 2, 1))
    service.reverse_payment(payment.transaction.id)

    with pytest.raises(ValidationError):
        service.reverse_payment(payment.transaction.id)


def test_reverse_non_payment_rejected(service, charged_account):
    charge_posting = service.accounts.postings(charged_account[0].account_id)[0]

    with pytest.raises(ValidationError):
        service.reverse_payment(charge_posting.id)


def test_reverse_unknown_transaction(service):
    with pytest.raises(NotFoundError):
        service.reverse_payment(999)


def test_replay_matches_stored_balances(service, charged_account):
    service.post_transaction(CHASE, TransactionType.INTEREST, Decimal("3.75"), "Interest", date(2025, 1, 31))
    payment = service.post_transaction(CHASE, TransactionType.PAYMENT, Decimal("175.50"), "Payment", date(2025, 2, 1))
    service.post_transaction(CHASE, TransactionType.PAYMENT, Decimal("20"), "Payment", date(2025, 2, 3))
    service.reverse_payment(payment.transaction.id)

    account_id = charged_account[0].account_id
    assert service.verify_ledger(account_id) == []

    statement = service.statement(CHASE)
    assert statement.ledger_consistent is True
    assert statement.account.current_balance == Decimal("333.75")
    assert statement.total_charges == Decimal("350")
    assert statement.total_interest == Decimal("3.75")
    assert statement.total_payments == Decimal("195.50")
    assert statement.total_reversals == Decimal("175.50")


def test_verify_ledger_reports_tampered_balance(db, service, charged_account):
    posting = service.accounts.postings(charged_account[0].account_id)[1]
    posting.balance_after = Decimal("999")
    db.commit()

    mismatches = service.verify_ledger(charged_account[0].account_id)

    assert [m.transaction_id for m in mismatches] == [posting.id]
    assert mismatches[0].replayed_balance == Decimal("150")


def test_statement_counts_open_charges(service, charged_account):
    service.post_transaction(CHASE, TransactionType.PAYMENT, Decimal("120"), "Payment", date(2025, 2, 1))

    statement = service.statement(CHASE)

    assert statement.open_charge_count == 2
    assert statement.pending_amount == Decimal("230")
    assert statement.postings[0].transaction_type is TransactionType.PAYMENT  # newest first


def test_statement_unknown_account(service):
    with pytest.raises(NotFoundError):
        service.statement("Nonexistent Card")


def test_allocate_previews_without_writing(db, service, charged_account):
    result = service.allocate(charged_account[0].account_id, Decimal("120"))

    assert result.total_applied == Decimal("120")
    assert result.new_balance == Decimal("230")
    assert all(c.paid_amount == 0 for c in charged_account)
    assert db.query(PaymentAllocation).count() == 0


def test_payment_posting_counted_once(service, charged_account):
    labels = {"transaction_type": "payment"}
    before = REGISTRY.get_sample_value("zurcher_credit_postings_total", labels) or 0.0

    service.post_transaction(CHASE, TransactionType.PAYMENT, Decimal("50"), "Partial payment", date(2025, 2, 1))

    assert REGISTRY.get_sample_value("zurcher_credit_postings_total", labels) - before == 1.0


def test_amount_beyond_column_precision_rejected(db, service):
    with pytest.raises(ValidationError):
        service.post_transaction(CHASE, TransactionType.CHARGE, Decimal("10000000000"), "Typo", date(2025, 1, 5))

    assert db.query(LedgerTransaction).count() == 0
