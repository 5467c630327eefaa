"""Data access layer for ledger entities"""

from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from zurcher_ledger.domain.exceptions import ObligationInUseError
from zurcher_ledger.domain.models import (
    BankTransactionType,
    Frequency,
    ObligationKind,
    OpenCharge,
    PaymentMethod,
    PaymentSnapshot,
    PaymentStatus,
    StoredAttachment,
    TransactionType,
)
from zurcher_ledger.infrastructure.database.models import (
    Attachment,
    BankAccount,
    BankTransaction,
    CreditAccount,
    DerivedExpense,
    LedgerTransaction,
    Obligation,
    PaymentAllocation,
    PaymentRecord,
)


class ObligationRepository:
    """Repository for obligations (fixed expenses and revolving charges)"""

    def __init__(self, db: Session):
        self.db = db

    def create_fixed_expense(
        self,
        name: str,
        total_amount: Decimal,
        frequency: Frequency,
        payment_method: Optional[PaymentMethod] = None,
        vendor: Optional[str] = None,
        start_date: Optional[date] = None,
    ) -> Obligation:
        obligation = Obligation(
            kind=ObligationKind.FIXED_EXPENSE,
            name=name,
            vendor=vendor,
            total_amount=total_amount,
            paid_amount=Decimal("0"),
            status=PaymentStatus.UNPAID,
            payment_method=payment_method,
            frequency=frequency,
            charge_date=start_date,
        )
        self.db.add(obligation)
        self.db.flush()
        return obligation

    def create_charge(
        self,
        account: CreditAccount,
        description: str,
        amount: Decimal,
        charge_date: date,
        vendor: Optional[str] = None,
    ) -> Obligation:
        """Open an obligation for a charge or interest posted on a revolving account"""
        obligation = Obligation(
            kind=ObligationKind.CREDIT_CHARGE,
            name=description,
            vendor=vendor,
            total_amount=amount,
            paid_amount=Decimal("0"),
            status=PaymentStatus.UNPAID,
            payment_method=PaymentMethod(account.name) if account.name in _CARD_NAMES else None,
            account_id=account.id,
            charge_date=charge_date,
        )
        self.db.add(obligation)
        self.db.flush()
        return obligation

    def get(self, obligation_id: int) -> Optional[Obligation]:
        return self.db.get(Obligation, obligation_id)

    def get_for_update(self, obligation_id: int) -> Optional[Obligation]:
        """Fetch and row-lock an obligation for a read-validate-write sequence"""
        return (
            self.db.query(Obligation)
            .filter(Obligation.id == obligation_id)
            .with_for_update()
            .first()
        )

    def list_fixed_expenses(self) -> List[Obligation]:
        return (
            self.db.query(Obligation)
            .filter(Obligation.kind == ObligationKind.FIXED_EXPENSE)
            .order_by(Obligation.id)
            .all()
        )

    def open_charges(self, account_id: int, lock: bool = True) -> List[Obligation]:
        """Charges of an account still carrying a balance, oldest first"""
        query = (
            self.db.query(Obligation)
            .filter(
                Obligation.account_id == account_id,
                Obligation.kind == ObligationKind.CREDIT_CHARGE,
                Obligation.status != PaymentStatus.PAID,
            )
            .order_by(Obligation.charge_date, Obligation.id)
        )
        if lock:
            query = query.with_for_update()
        return query.all()

    def delete(self, obligation: Obligation) -> None:
        """Delete an obligation nothing references; rejects otherwise"""
        payment_count = (
            self.db.query(func.count(PaymentRecord.id))
            .filter(PaymentRecord.obligation_id == obligation.id)
            .scalar()
        )
        if payment_count:
            raise ObligationInUseError(
                f"Obligation {obligation.id} has {payment_count} payment(s); reverse them first"
            )
        self.db.delete(obligation)
        self.db.flush()


_CARD_NAMES = {PaymentMethod.AMEX.value, PaymentMethod.CHASE_CREDIT_CARD.value}


def to_open_charge(obligation: Obligation) -> OpenCharge:
    return OpenCharge(
        charge_id=obligation.id,
        charge_date=obligation.charge_date,
        total_amount=obligation.total_amount,
        paid_amount=obligation.paid_amount,
    )


class PaymentRecordRepository:
    """Repository for fixed-expense partial payments"""

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        obligation_id: int,
        amount: Decimal,
        payment_date: date,
        derived_expense_id: int,
        payment_method: Optional[PaymentMethod] = None,
        notes: Optional[str] = None,
        period_start: Optional[date] = None,
        period_end: Optional[date] = None,
        period_due_date: Optional[date] = None,
    ) -> PaymentRecord:
        payment = PaymentRecord(
            obligation_id=obligation_id,
            amount=amount,
            payment_date=payment_date,
            payment_method=payment_method,
            notes=notes,
            period_start=period_start,
            period_end=period_end,
            period_due_date=period_due_date,
            derived_expense_id=derived_expense_id,
        )
        self.db.add(payment)
        self.db.flush()  # Get ID without committing
        return payment

    def get_for_update(self, payment_id: int) -> Optional[PaymentRecord]:
        return (
            self.db.query(PaymentRecord)
            .filter(PaymentRecord.id == payment_id)
            .with_for_update()
            .first()
        )

    def list_for_obligation(self, obligation_id: int) -> List[PaymentRecord]:
        """Payment history, newest first"""
        return (
            self.db.query(PaymentRecord)
            .filter(PaymentRecord.obligation_id == obligation_id)
            .order_by(PaymentRecord.payment_date.desc(), PaymentRecord.id.desc())
            .all()
        )

    def snapshots_for_obligation(self, obligation_id: int) -> List[PaymentSnapshot]:
        return [
            PaymentSnapshot(
                payment_id=p.id,
                payment_date=p.payment_date,
                amount=p.amount,
                period_start=p.period_start,
                period_end=p.period_end,
            )
            for p in self.list_for_obligation(obligation_id)
        ]


class DerivedExpenseRepository:
    """Repository for bookkeeping entries generated by payments"""

    def __init__(self, db: Session):
        self.db = db

    def create_for_payment(
        self,
        obligation: Obligation,
        amount: Decimal,
        expense_date: date,
        payment_method: Optional[PaymentMethod],
        notes: Optional[str],
    ) -> DerivedExpense:
        expense = DerivedExpense(
            obligation_id=obligation.id,
            date=expense_date,
            amount=amount,
            expense_type="Fixed Expense",
            payment_method=payment_method,
            vendor=obligation.vendor,
            notes=notes or f"Partial payment of: {obligation.name}",
        )
        self.db.add(expense)
        self.db.flush()
        return expense


class AttachmentRepository:
    """Repository for receipt metadata"""

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        derived_expense_id: int,
        stored: StoredAttachment,
        mime_type: Optional[str] = None,
        original_name: Optional[str] = None,
    ) -> Attachment:
        attachment = Attachment(
            derived_expense_id=derived_expense_id,
            url=stored.url,
            storage_id=stored.storage_id,
            mime_type=mime_type,
            original_name=original_name,
        )
        self.db.add(attachment)
        self.db.flush()
        return attachment


class BankAccountRepository:
    """Repository for bank accounts and their deposits and withdrawals"""

    def __init__(self, db: Session):
        self.db = db

    def get_by_name(self, name: str) -> Optional[BankAccount]:
        return self.db.query(BankAccount).filter(BankAccount.name == name).first()

    def get_active_for_update(self, name: str) -> Optional[BankAccount]:
        return (
            self.db.query(BankAccount)
            .filter(BankAccount.name == name, BankAccount.is_active.is_(True))
            .with_for_update()
            .first()
        )

    def get_for_update(self, account_id: int) -> Optional[BankAccount]:
        return (
            self.db.query(BankAccount)
            .filter(BankAccount.id == account_id)
            .with_for_update()
            .first()
        )

    def list_accounts(self) -> List[BankAccount]:
        return self.db.query(BankAccount).order_by(BankAccount.name).all()

    def open(self, name: str, opening_balance: Decimal, opened_on: date) -> BankAccount:
        """Create an account; a non-zero opening balance is posted as a deposit"""
        account = BankAccount(name=name, current_balance=opening_balance, is_active=True)
        self.db.add(account)
        self.db.flush()
        if opening_balance:
            self.add_transaction(
                account,
                BankTransactionType.DEPOSIT,
                opening_balance,
                opened_on,
                description="Opening balance",
            )
        return account

    def add_transaction(
        self,
        account: BankAccount,
        transaction_type: BankTransactionType,
        amount: Decimal,
        transaction_date: date,
        description: str,
        notes: Optional[str] = None,
        derived_expense_id: Optional[int] = None,
    ) -> BankTransaction:
        """Record a transaction; account.current_balance must already reflect it"""
        transaction = BankTransaction(
            bank_account_id=account.id,
            transaction_type=transaction_type,
            date=transaction_date,
            amount=amount,
            balance_after=account.current_balance,
            description=description,
            notes=notes,
            derived_expense_id=derived_expense_id,
        )
        self.db.add(transaction)
        self.db.flush()
        return transaction

    def withdrawal_for_expense(self, derived_expense_id: int) -> Optional[BankTransaction]:
        return (
            self.db.query(BankTransaction)
            .filter(
                BankTransaction.derived_expense_id == derived_expense_id,
                BankTransaction.transaction_type == BankTransactionType.WITHDRAWAL,
            )
            .with_for_update()
            .first()
        )


class CreditAccountRepository:
    """Repository for revolving accounts and their postings"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, account_id: int) -> Optional[CreditAccount]:
        return self.db.get(CreditAccount, account_id)

    def get_by_name(self, name: str) -> Optional[CreditAccount]:
        return self.db.query(CreditAccount).filter(CreditAccount.name == name).first()

    def get_for_update(self, name: str) -> Optional[CreditAccount]:
        return (
            self.db.query(CreditAccount)
            .filter(CreditAccount.name == name)
            .with_for_update()
            .first()
        )

    def get_or_create(self, name: str) -> CreditAccount:
        """Fetch (locked) or open an account with a zero balance"""
        account = self.get_for_update(name)
        if account is None:
            account = CreditAccount(name=name, current_balance=Decimal("0"))
            self.db.add(account)
            self.db.flush()
        return account

    def add_posting(
        self,
        account: CreditAccount,
        transaction_type: TransactionType,
        amount: Decimal,
        posting_date: date,
        balance_after: Decimal,
        description: str,
        payment_method: Optional[PaymentMethod] = None,
        notes: Optional[str] = None,
        obligation_id: Optional[int] = None,
    ) -> LedgerTransaction:
        posting = LedgerTransaction(
            account_id=account.id,
            transaction_type=transaction_type,
            date=posting_date,
            amount=amount,
            balance_after=balance_after,
            description=description,
            payment_method=payment_method,
            notes=notes,
            obligation_id=obligation_id,
        )
        self.db.add(posting)
        self.db.flush()
        return posting

    def get_posting(self, transaction_id: int) -> Optional[LedgerTransaction]:
        return (
            self.db.query(LedgerTransaction)
            .filter(LedgerTransaction.id == transaction_id)
            .with_for_update()
            .first()
        )

    def latest_posting_date(self, account_id: int) -> Optional[date]:
        return (
            self.db.query(func.max(LedgerTransaction.date))
            .filter(LedgerTransaction.account_id == account_id)
            .scalar()
        )

    def postings(self, account_id: int, newest_first: bool = False) -> List[LedgerTransaction]:
        """All postings in replay order (date, id), or reversed"""
        order = (
            (LedgerTransaction.date.desc(), LedgerTransaction.id.desc())
            if newest_first
            else (LedgerTransaction.date, LedgerTransaction.id)
        )
        return (
            self.db.query(LedgerTransaction)
            .filter(LedgerTransaction.account_id == account_id)
            .order_by(*order)
            .all()
        )

    def add_allocation(
        self,
        payment_transaction_id: int,
        obligation_id: int,
        amount_applied: Decimal,
        status_before: PaymentStatus,
        status_after: PaymentStatus,
    ) -> PaymentAllocation:
        allocation = PaymentAllocation(
            payment_transaction_id=payment_transaction_id,
            obligation_id=obligation_id,
            amount_applied=amount_applied,
            status_before=status_before,
            status_after=status_after,
        )
        self.db.add(allocation)
        return allocation
