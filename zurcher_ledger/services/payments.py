"""Recording and reversing partial payments on fixed expenses"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from zurcher_ledger.domain.balances import (
    EPSILON,
    MAX_AMOUNT,
    apply_payment,
    remaining_amount,
    to_money,
    unapply_payment,
)
from zurcher_ledger.domain.exceptions import (
    AmountExceedsRemainingError,
    AttachmentStorageError,
    ConcurrentModificationError,
    DomainException,
    DuplicatePeriodError,
    InsufficientFundsError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from zurcher_ledger.domain.models import (
    AttachmentUpload,
    BankTransactionType,
    ObligationKind,
    PaymentMethod,
    PaymentStatus,
    StoredAttachment,
    bank_account_name,
)
from zurcher_ledger.domain.periods import validate_no_duplicate_period, validate_payment_period
from zurcher_ledger.infrastructure.clients.storage import AttachmentStorageClient
from zurcher_ledger.infrastructure.database.models import (
    Attachment,
    BankAccount,
    BankTransaction,
    DerivedExpense,
    Obligation,
    PaymentRecord,
)
from zurcher_ledger.infrastructure.database.repositories import (
    AttachmentRepository,
    BankAccountRepository,
    DerivedExpenseRepository,
    ObligationRepository,
    PaymentRecordRepository,
)
from zurcher_ledger.infrastructure.observability.logging import (
    log_payment_recorded,
    log_payment_reversed,
)
from zurcher_ledger.infrastructure.observability.metrics import (
    paid_amount_clamp_counter,
    record_payment,
    reversal_counter,
)


@dataclass
class PaymentOutcome:
    payment: PaymentRecord
    derived_expense: DerivedExpense
    obligation: Obligation
    attachment: Optional[Attachment] = None
    bank_transaction: Optional[BankTransaction] = None

    @property
    def attachment_stored(self) -> bool:
        return self.attachment is not None


@dataclass
class ReversalOutcome:
    payment_id: int
    amount: Decimal
    payment_date: date
    obligation: Obligation
    derived_expense_deleted: bool
    attachment_deleted: bool
    clamped: bool
    bank_account: Optional[BankAccount] = None

    @property
    def bank_transaction_reverted(self) -> bool:
        return self.bank_account is not None


def _translate_db_error(e: SQLAlchemyError, action: str) -> DomainException:
    if isinstance(e, StaleDataError):
        return ConcurrentModificationError(f"Obligation changed while {action}; retry the request")
    if isinstance(e, IntegrityError):
        return ConcurrentModificationError(f"Conflicting write while {action}: {e.orig}")
    return PersistenceError(f"Database error while {action}: {e}")


class PartialPaymentRecorder:
    """
    Records a partial payment against a fixed expense.

    Flow:
    1. Validate amount and period bounds
    2. Lock the obligation and check the amount against what is left
    3. Reject a second payment for the same billing period
    4. Create DerivedExpense, PaymentRecord, the bank withdrawal (bank
       payment methods only) and update the obligation in one transaction
    5. Upload the receipt (best effort) and link it to the committed payment
    """

    def __init__(
        self,
        db: Session,
        storage: Optional[AttachmentStorageClient] = None,
        request_id: Optional[str] = None,
    ):
        self.db = db
        self.storage = storage
        self.request_id = request_id
        self.obligations = ObligationRepository(db)
        self.payments = PaymentRecordRepository(db)
        self.expenses = DerivedExpenseRepository(db)
        self.attachments = AttachmentRepository(db)
        self.bank_accounts = BankAccountRepository(db)

    async def record_payment(
        self,
        obligation_id: int,
        amount: Decimal,
        payment_date: date,
        payment_method: Optional[PaymentMethod] = None,
        notes: Optional[str] = None,
        period_start: Optional[date] = None,
        period_end: Optional[date] = None,
        period_due_date: Optional[date] = None,
        attachment: Optional[AttachmentUpload] = None,
    ) -> PaymentOutcome:
        outcome = self._write_payment(
            obligation_id,
            to_money(amount),
            payment_date,
            payment_method,
            notes,
            period_start,
            period_end,
            period_due_date,
        )

        # The financial write is committed; nothing below may undo it
        if attachment is not None:
            outcome.attachment = await self._attach_receipt(outcome.payment, attachment)

        record_payment("recorded", outcome.payment.amount)
        log_payment_recorded(
            self.request_id,
            outcome.obligation.id,
            outcome.payment.id,
            outcome.payment.amount,
            outcome.obligation.paid_amount,
            outcome.obligation.status.value,
            outcome.attachment_stored,
        )
        return outcome

    def _write_payment(
        self,
        obligation_id: int,
        amount: Decimal,
        payment_date: date,
        payment_method: Optional[PaymentMethod],
        notes: Optional[str],
        period_start: Optional[date],
        period_end: Optional[date],
        period_due_date: Optional[date],
    ) -> PaymentOutcome:
        if amount <= 0:
            raise ValidationError("Payment amount must be greater than 0")
        if amount > MAX_AMOUNT:
            raise ValidationError(f"Payment amount must not exceed {MAX_AMOUNT}")
        validate_payment_period(period_start, period_end)
        if period_start is not None and period_due_date is None:
            period_due_date = period_end

        try:
            obligation = self.obligations.get_for_update(obligation_id)
            if obligation is None:
                raise NotFoundError(f"Fixed expense {obligation_id} not found")
            if obligation.kind is not ObligationKind.FIXED_EXPENSE:
                raise ValidationError("Revolving-account charges are paid through their credit account")

            remaining = remaining_amount(obligation.total_amount, obligation.paid_amount)
            if amount > remaining + EPSILON:
                record_payment("rejected_amount")
                raise AmountExceedsRemainingError(
                    amount, obligation.total_amount, obligation.paid_amount, remaining
                )

            check = validate_no_duplicate_period(
                self.payments.snapshots_for_obligation(obligation.id),
                obligation.frequency.value if obligation.frequency else None,
                payment_date,
                period_start,
                period_end,
            )
            if not check.is_valid:
                record_payment("rejected_duplicate")
                raise DuplicatePeriodError(check.message, check.conflicting_payment.to_dict())

            method = payment_method or obligation.payment_method

            # The bookkeeping entry comes first; the payment row points at it
            expense = self.expenses.create_for_payment(obligation, amount, payment_date, method, notes)
            payment = self.payments.create(
                obligation_id=obligation.id,
                amount=amount,
                payment_date=payment_date,
                derived_expense_id=expense.id,
                payment_method=method,
                notes=notes,
                period_start=period_start,
                period_end=period_end,
                period_due_date=period_due_date,
            )
            withdrawal = self._withdraw(obligation, expense, method, amount, payment_date, notes)

            change = apply_payment(obligation.paid_amount, obligation.total_amount, amount)
            obligation.paid_amount = change.paid_amount
            obligation.status = change.status
            if change.status is PaymentStatus.PAID:
                obligation.paid_date = payment_date

            self.db.commit()

        except InsufficientFundsError:
            self.db.rollback()
            record_payment("rejected_funds")
            raise
        except DomainException:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            record_payment("failed")
            raise _translate_db_error(e, "recording the payment") from e

        return PaymentOutcome(
            payment=payment, derived_expense=expense, obligation=obligation, bank_transaction=withdrawal
        )

    def _withdraw(
        self,
        obligation: Obligation,
        expense: DerivedExpense,
        method: Optional[PaymentMethod],
        amount: Decimal,
        payment_date: date,
        notes: Optional[str],
    ) -> Optional[BankTransaction]:
        """Take the payment out of the bank account its method names, if any"""
        account_name = bank_account_name(method)
        if account_name is None:
            return None

        account = self.bank_accounts.get_active_for_update(account_name)
        if account is None:
            logging.warning(
                f"No active bank account '{account_name}', withdrawal not recorded",
                extra={"request_id": self.request_id, "obligation_id": obligation.id},
            )
            return None

        balance = to_money(account.current_balance)
        if amount > balance:
            raise InsufficientFundsError(account.name, balance, amount)

        account.current_balance = balance - amount
        return self.bank_accounts.add_transaction(
            account,
            BankTransactionType.WITHDRAWAL,
            amount,
            payment_date,
            description=f"Partial payment: {obligation.name}",
            notes=notes or f"Fixed expense: {obligation.name}",
            derived_expense_id=expense.id,
        )

    async def _attach_receipt(self, payment: PaymentRecord, upload: AttachmentUpload) -> Optional[Attachment]:
        """Upload and link a receipt; failures are logged and swallowed"""
        if self.storage is None:
            logging.warning(
                "No attachment storage configured, receipt dropped",
                extra={"request_id": self.request_id, "payment_id": payment.id},
            )
            return None

        try:
            stored = await self.storage.upload(upload)
        except AttachmentStorageError as e:
            logging.warning(
                f"Receipt upload failed, payment kept without attachment: {e}",
                extra={"request_id": self.request_id, "payment_id": payment.id, "step": "attachment_upload"},
            )
            return None

        try:
            attachment = self.attachments.create(
                payment.derived_expense_id,
                stored,
                mime_type=upload.content_type,
                original_name=upload.filename,
            )
            payment.attachment_id = attachment.id
            self.db.commit()
            return attachment
        except SQLAlchemyError as e:
            self.db.rollback()
            logging.error(
                f"Could not link uploaded receipt to payment: {e}",
                extra={"request_id": self.request_id, "payment_id": payment.id, "storage_id": stored.storage_id},
            )
            await self._discard(stored)
            return None

    async def _discard(self, stored: StoredAttachment) -> None:
        try:
            await self.storage.delete(stored.storage_id)
        except AttachmentStorageError as e:
            logging.error(
                f"Orphaned receipt left in storage: {e}",
                extra={"request_id": self.request_id, "storage_id": stored.storage_id},
            )


class RollbackCoordinator:
    """
    Reverses a recorded payment.

    Attachment row, DerivedExpense, the bank withdrawal, the obligation
    aggregate and the PaymentRecord itself change in one transaction, so a
    failure leaves the payment in place and discoverable. The stored receipt
    file is removed only after that commit, best effort.
    """

    def __init__(
        self,
        db: Session,
        storage: Optional[AttachmentStorageClient] = None,
        request_id: Optional[str] = None,
    ):
        self.db = db
        self.storage = storage
        self.request_id = request_id
        self.obligations = ObligationRepository(db)
        self.payments = PaymentRecordRepository(db)
        self.bank_accounts = BankAccountRepository(db)

    async def reverse_payment(self, payment_id: int) -> ReversalOutcome:
        outcome, storage_id = self._reverse_rows(payment_id)

        if storage_id is not None:
            outcome.attachment_deleted = await self._delete_stored_file(payment_id, storage_id)

        reversal_counter.labels(kind="fixed_expense").inc()
        log_payment_reversed(
            self.request_id,
            outcome.obligation.id,
            outcome.payment_id,
            outcome.amount,
            outcome.obligation.paid_amount,
            outcome.clamped,
        )
        return outcome

    def _reverse_rows(self, payment_id: int) -> tuple[ReversalOutcome, Optional[str]]:
        try:
            payment = self.payments.get_for_update(payment_id)
            if payment is None:
                raise NotFoundError(f"Payment {payment_id} not found")

            obligation = self.obligations.get_for_update(payment.obligation_id)
            expense = payment.derived_expense
            attachment = payment.attachment
            storage_id = attachment.storage_id if attachment is not None else None

            change = unapply_payment(obligation.paid_amount, obligation.total_amount, payment.amount)
            if change.clamped:
                paid_amount_clamp_counter.inc()
                logging.warning(
                    "Reversal would make paid amount negative; clamped to 0",
                    extra={
                        "request_id": self.request_id,
                        "obligation_id": obligation.id,
                        "payment_id": payment.id,
                        "paid_amount": str(obligation.paid_amount),
                        "amount": str(payment.amount),
                    },
                )

            outcome = ReversalOutcome(
                payment_id=payment.id,
                amount=payment.amount,
                payment_date=payment.payment_date,
                obligation=obligation,
                derived_expense_deleted=expense is not None,
                attachment_deleted=False,
                clamped=change.clamped,
            )

            if attachment is not None:
                self.db.delete(attachment)
            if expense is not None:
                outcome.bank_account = self._restore_withdrawal(expense.id)
                self.db.delete(expense)

            obligation.paid_amount = change.paid_amount
            obligation.status = change.status
            if change.status is not PaymentStatus.PAID:
                obligation.paid_date = None

            # Last: the payment row goes only together with everything above
            self.db.delete(payment)
            self.db.commit()

        except DomainException:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            raise _translate_db_error(e, "reversing the payment") from e

        return outcome, storage_id

    def _restore_withdrawal(self, derived_expense_id: int) -> Optional[BankAccount]:
        """Put a payment's withdrawal back into its bank account and drop the transaction"""
        withdrawal = self.bank_accounts.withdrawal_for_expense(derived_expense_id)
        if withdrawal is None:
            return None

        account = self.bank_accounts.get_for_update(withdrawal.bank_account_id)
        account.current_balance = to_money(account.current_balance) + to_money(withdrawal.amount)
        self.db.delete(withdrawal)
        logging.info(
            f"Withdrawal restored to {account.name}",
            extra={
                "request_id": self.request_id,
                "bank_account_id": account.id,
                "step": "bank_withdrawal_restored",
                "amount": str(withdrawal.amount),
                "balance": str(account.current_balance),
            },
        )
        return account

    async def _delete_stored_file(self, payment_id: int, storage_id: str) -> bool:
        if self.storage is None:
            return False
        try:
            await self.storage.delete(storage_id)
            return True
        except AttachmentStorageError as e:
            logging.warning(
                f"Receipt file not deleted from storage: {e}",
                extra={"request_id": self.request_id, "payment_id": payment_id, "storage_id": storage_id},
            )
            return False
