"""Revolving-account postings, FIFO payment allocation and balance verification"""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from zurcher_ledger.domain.allocation import allocate_payment, replay_balances
from zurcher_ledger.domain.balances import EPSILON, MAX_AMOUNT, derive_status, to_money, unapply_payment
from zurcher_ledger.domain.exceptions import (
    ConcurrentModificationError,
    DomainException,
    NotFoundError,
    OverpaymentError,
    PersistenceError,
    ValidationError,
)
from zurcher_ledger.domain.models import AllocationResult, PaymentMethod, TransactionType
from zurcher_ledger.infrastructure.database.models import CreditAccount, LedgerTransaction, Obligation
from zurcher_ledger.infrastructure.database.repositories import (
    CreditAccountRepository,
    ObligationRepository,
    to_open_charge,
)
from zurcher_ledger.infrastructure.observability.logging import log_credit_posting
from zurcher_ledger.infrastructure.observability.metrics import (
    credit_posting_counter,
    paid_amount_clamp_counter,
    record_allocation,
    reversal_counter,
)


@dataclass
class PostingOutcome:
    transaction: LedgerTransaction
    account: CreditAccount
    allocation: Optional[AllocationResult] = None
    charge: Optional[Obligation] = None


@dataclass
class LedgerMismatch:
    transaction_id: int
    stored_balance: Decimal
    replayed_balance: Decimal


@dataclass
class AccountStatement:
    account: CreditAccount
    total_charges: Decimal
    total_interest: Decimal
    total_payments: Decimal
    total_reversals: Decimal
    open_charge_count: int
    pending_amount: Decimal
    postings: List[LedgerTransaction] = field(default_factory=list)
    ledger_consistent: bool = True


class CreditAccountService:
    """
    Posts charges, interest and payments on a revolving account.

    Every posting stores balance_after, and postings are never backdated, so
    replaying them in (date, id) order always reproduces the stored balances.
    Payments are distributed oldest charge first; each touched charge gets a
    PaymentAllocation row so the payment can be reversed exactly.
    """

    def __init__(self, db: Session, request_id: Optional[str] = None):
        self.db = db
        self.request_id = request_id
        self.accounts = CreditAccountRepository(db)
        self.obligations = ObligationRepository(db)

    def allocate(self, account_id: int, amount: Decimal) -> AllocationResult:
        """Preview how a payment would be distributed; writes nothing"""
        account = self.accounts.get(account_id)
        if account is None:
            raise NotFoundError(f"Credit account {account_id} not found")
        charges = [to_open_charge(o) for o in self.obligations.open_charges(account.id, lock=False)]
        return allocate_payment(charges, amount, account.current_balance)

    def post_transaction(
        self,
        account_name: str,
        transaction_type: TransactionType,
        amount: Decimal,
        description: str,
        posting_date: date,
        payment_method: Optional[PaymentMethod] = None,
        notes: Optional[str] = None,
        vendor: Optional[str] = None,
    ) -> PostingOutcome:
        amount = to_money(amount)
        if amount <= 0:
            raise ValidationError("Amount must be greater than 0")
        if amount > MAX_AMOUNT:
            raise ValidationError(f"Amount must not exceed {MAX_AMOUNT}")
        if transaction_type is TransactionType.REVERSAL:
            raise ValidationError("Reversals are created by reversing a payment")
        if not description or not description.strip():
            raise ValidationError("Description is required")

        try:
            account = self.accounts.get_or_create(account_name)
            self._check_not_backdated(account, posting_date)

            if transaction_type is TransactionType.PAYMENT:
                outcome = self._post_payment(account, amount, description, posting_date, payment_method, notes)
            else:
                outcome = self._post_charge(
                    account, transaction_type, amount, description, posting_date, payment_method, notes, vendor
                )
            self.db.commit()

        except DomainException:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            raise _translate_db_error(e, f"posting a {transaction_type.value}") from e

        credit_posting_counter.labels(transaction_type=transaction_type.value).inc()
        touched = len(outcome.allocation.allocations) if outcome.allocation else 0
        if outcome.allocation is not None:
            record_allocation(touched)
        log_credit_posting(
            self.request_id,
            account.name,
            outcome.transaction.id,
            transaction_type.value,
            amount,
            outcome.transaction.balance_after,
            touched,
        )
        return outcome

    def _check_not_backdated(self, account: CreditAccount, posting_date: date) -> None:
        latest = self.accounts.latest_posting_date(account.id)
        if latest is not None and posting_date < latest:
            raise ValidationError(
                f"Posting date {posting_date.isoformat()} is before the latest posting on "
                f"{account.name} ({latest.isoformat()})"
            )

    def _post_charge(
        self,
        account: CreditAccount,
        transaction_type: TransactionType,
        amount: Decimal,
        description: str,
        posting_date: date,
        payment_method: Optional[PaymentMethod],
        notes: Optional[str],
        vendor: Optional[str],
    ) -> PostingOutcome:
        charge = self.obligations.create_charge(account, description, amount, posting_date, vendor=vendor)
        balance_after = to_money(account.current_balance) + amount
        posting = self.accounts.add_posting(
            account,
            transaction_type,
            amount,
            posting_date,
            balance_after,
            description,
            payment_method=payment_method,
            notes=notes,
            obligation_id=charge.id,
        )
        account.current_balance = balance_after
        return PostingOutcome(transaction=posting, account=account, charge=charge)

    def _post_payment(
        self,
        account: CreditAccount,
        amount: Decimal,
        description: str,
        posting_date: date,
        payment_method: Optional[PaymentMethod],
        notes: Optional[str],
    ) -> PostingOutcome:
        open_charges = self.obligations.open_charges(account.id)
        result = allocate_payment([to_open_charge(o) for o in open_charges], amount, account.current_balance)

        if result.leftover > EPSILON or not result.allocations:
            raise OverpaymentError(amount, result.leftover, result.total_applied)

        # Sub-EPSILON leftovers are dropped; the posting carries what was applied
        posting = self.accounts.add_posting(
            account,
            TransactionType.PAYMENT,
            result.total_applied,
            posting_date,
            result.new_balance,
            description,
            payment_method=payment_method,
            notes=notes,
        )

        by_id = {o.id: o for o in open_charges}
        for allocation in result.allocations:
            charge = by_id[allocation.charge_id]
            status_before = charge.status
            charge.paid_amount = allocation.new_paid_amount
            charge.status = derive_status(allocation.new_paid_amount, charge.total_amount)
            if allocation.remaining_amount <= EPSILON:
                charge.paid_date = posting_date
            self.accounts.add_allocation(
                posting.id, charge.id, allocation.amount_applied, status_before, charge.status
            )

        account.current_balance = result.new_balance
        return PostingOutcome(transaction=posting, account=account, allocation=result)

    def reverse_payment(self, transaction_id: int) -> PostingOutcome:
        """
        Undo a payment posting.

        Every charge it paid gets its allocation back and its status
        re-derived. A REVERSAL posting for the same amount is appended and the
        payment is marked as reversed; nothing is deleted.
        """
        try:
            payment = self.accounts.get_posting(transaction_id)
            if payment is None:
                raise NotFoundError(f"Transaction {transaction_id} not found")
            if payment.transaction_type is not TransactionType.PAYMENT:
                raise ValidationError(f"Transaction {transaction_id} is a {payment.transaction_type.value}, not a payment")
            if payment.reversed_by_id is not None:
                raise ValidationError(f"Transaction {transaction_id} was already reversed")

            account = self.accounts.get_for_update(payment.account.name)

            for allocation in payment.allocations:
                charge = self.obligations.get_for_update(allocation.obligation_id)
                change = unapply_payment(charge.paid_amount, charge.total_amount, allocation.amount_applied)
                if change.clamped:
                    paid_amount_clamp_counter.inc()
                    logging.warning(
                        "Allocation reversal would make paid amount negative; clamped to 0",
                        extra={
                            "request_id": self.request_id,
                            "obligation_id": charge.id,
                            "transaction_id": payment.id,
                        },
                    )
                charge.paid_amount = change.paid_amount
                charge.status = change.status
                charge.paid_date = None

            latest = self.accounts.latest_posting_date(account.id)
            reversal_date = max(latest, date.today()) if latest else date.today()
            balance_after = to_money(account.current_balance) + to_money(payment.amount)
            reversal = self.accounts.add_posting(
                account,
                TransactionType.REVERSAL,
                payment.amount,
                reversal_date,
                balance_after,
                f"Reversal of payment #{payment.id}",
                payment_method=payment.payment_method,
            )
            payment.reversed_by_id = reversal.id
            account.current_balance = balance_after
            self.db.commit()

        except DomainException:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            raise _translate_db_error(e, "reversing a payment") from e

        reversal_counter.labels(kind="credit_account").inc()
        credit_posting_counter.labels(transaction_type=TransactionType.REVERSAL.value).inc()
        log_credit_posting(
            self.request_id,
            account.name,
            reversal.id,
            TransactionType.REVERSAL.value,
            reversal.amount,
            reversal.balance_after,
            len(payment.allocations),
        )
        return PostingOutcome(transaction=reversal, account=account)

    def statement(self, account_name: str) -> AccountStatement:
        account = self.accounts.get_by_name(account_name)
        if account is None:
            raise NotFoundError(f"Credit account '{account_name}' not found")

        postings = self.accounts.postings(account.id, newest_first=True)
        totals = {t: Decimal("0") for t in TransactionType}
        for posting in postings:
            totals[posting.transaction_type] += to_money(posting.amount)

        open_charges = [to_open_charge(o) for o in self.obligations.open_charges(account.id, lock=False)]
        pending = sum((c.pending for c in open_charges if c.pending > EPSILON), Decimal("0"))

        return AccountStatement(
            account=account,
            total_charges=totals[TransactionType.CHARGE],
            total_interest=totals[TransactionType.INTEREST],
            total_payments=totals[TransactionType.PAYMENT],
            total_reversals=totals[TransactionType.REVERSAL],
            open_charge_count=sum(1 for c in open_charges if c.pending > EPSILON),
            pending_amount=pending,
            postings=postings,
            ledger_consistent=not self.verify_ledger(account.id),
        )

    def verify_ledger(self, account_id: int) -> List[LedgerMismatch]:
        """Postings whose stored balance_after disagrees with a replay from zero"""
        postings = self.accounts.postings(account_id)
        replayed = replay_balances((p.transaction_type, p.amount) for p in postings)
        mismatches = [
            LedgerMismatch(p.id, to_money(p.balance_after), balance)
            for p, balance in zip(postings, replayed)
            if to_money(p.balance_after) != balance
        ]
        if mismatches:
            logging.error(
                "Ledger replay does not match stored balances",
                extra={"request_id": self.request_id, "account_id": account_id, "mismatches": len(mismatches)},
            )
        return mismatches


def _translate_db_error(e: SQLAlchemyError, action: str) -> DomainException:
    if isinstance(e, (StaleDataError, IntegrityError)):
        return ConcurrentModificationError(f"Account changed while {action}; retry the request")
    return PersistenceError(f"Database error while {action}: {e}")
