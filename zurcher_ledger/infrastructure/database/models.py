"""SQLAlchemy ORM models matching the migrations under migrations/versions"""

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

from zurcher_ledger.domain.models import (
    BankTransactionType,
    Frequency,
    ObligationKind,
    PaymentMethod,
    PaymentStatus,
    TransactionType,
)

Base = declarative_base()

# NUMERIC(14, 4): fixed point, sub-cent precision for tolerance checks
Amount = Numeric(14, 4, asdecimal=True)


def enum_column(enum_cls, name: str) -> Enum:
    """Code-defined enum stored as checked VARCHAR, never a native DB enum"""
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        create_constraint=True,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )


class CreditAccount(Base):
    """Revolving account (credit card) with its running balance"""

    __tablename__ = "credit_account"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False, unique=True)
    current_balance = Column(Amount, nullable=False, default=0)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    transactions = relationship("LedgerTransaction", back_populates="account")
    charges = relationship("Obligation", back_populates="account")

    __mapper_args__ = {"version_id_col": version}


class Obligation(Base):
    """Something owed: a revolving-account charge or a fixed-expense instance"""

    __tablename__ = "obligation"

    id = Column(Integer, primary_key=True, autoincrement=True)
    kind = Column(enum_column(ObligationKind, "ck_obligation_kind"), nullable=False)
    name = Column(Text, nullable=False)
    vendor = Column(Text, nullable=True)
    total_amount = Column(Amount, nullable=False)
    paid_amount = Column(Amount, nullable=False, default=0)
    status = Column(enum_column(PaymentStatus, "ck_obligation_status"), nullable=False, default=PaymentStatus.UNPAID)
    payment_method = Column(enum_column(PaymentMethod, "ck_obligation_payment_method"), nullable=True)
    frequency = Column(enum_column(Frequency, "ck_obligation_frequency"), nullable=True)
    account_id = Column(Integer, ForeignKey("credit_account.id", ondelete="RESTRICT"), nullable=True, index=True)
    charge_date = Column(Date, nullable=True)
    paid_date = Column(Date, nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    account = relationship("CreditAccount", back_populates="charges")
    payments = relationship("PaymentRecord", back_populates="obligation", passive_deletes="all")
    derived_expenses = relationship("DerivedExpense", back_populates="obligation", passive_deletes="all")

    __mapper_args__ = {"version_id_col": version}


class LedgerTransaction(Base):
    """Append-only posting against a revolving account"""

    __tablename__ = "ledger_transaction"

    id = Column(Integer, primary_key=True, autoincrement=True)
    account_id = Column(Integer, ForeignKey("credit_account.id", ondelete="RESTRICT"), nullable=False, index=True)
    transaction_type = Column(enum_column(TransactionType, "ck_ledger_transaction_type"), nullable=False)
    date = Column(Date, nullable=False)
    amount = Column(Amount, nullable=False)
    balance_after = Column(Amount, nullable=False)
    description = Column(Text, nullable=False)
    payment_method = Column(enum_column(PaymentMethod, "ck_ledger_transaction_payment_method"), nullable=True)
    notes = Column(Text, nullable=True)
    # Set on the charge/interest posting that opened an obligation
    obligation_id = Column(Integer, ForeignKey("obligation.id", ondelete="RESTRICT"), nullable=True)
    # Set on a payment once it has been reversed
    reversed_by_id = Column(Integer, ForeignKey("ledger_transaction.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    account = relationship("CreditAccount", back_populates="transactions")
    obligation = relationship("Obligation")
    allocations = relationship("PaymentAllocation", back_populates="payment_transaction")


class PaymentAllocation(Base):
    """Portion of a revolving-account payment applied to one charge"""

    __tablename__ = "payment_allocation"

    id = Column(Integer, primary_key=True, autoincrement=True)
    payment_transaction_id = Column(
        Integer, ForeignKey("ledger_transaction.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    obligation_id = Column(Integer, ForeignKey("obligation.id", ondelete="RESTRICT"), nullable=False, index=True)
    amount_applied = Column(Amount, nullable=False)
    status_before = Column(enum_column(PaymentStatus, "ck_allocation_status_before"), nullable=False)
    status_after = Column(enum_column(PaymentStatus, "ck_allocation_status_after"), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    payment_transaction = relationship("LedgerTransaction", back_populates="allocations")
    obligation = relationship("Obligation")


class DerivedExpense(Base):
    """Bookkeeping entry generated for each fixed-expense payment"""

    __tablename__ = "derived_expense"

    id = Column(Integer, primary_key=True, autoincrement=True)
    obligation_id = Column(Integer, ForeignKey("obligation.id", ondelete="RESTRICT"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    amount = Column(Amount, nullable=False)
    expense_type = Column(Text, nullable=False, default="Fixed Expense")
    payment_method = Column(enum_column(PaymentMethod, "ck_derived_expense_payment_method"), nullable=True)
    vendor = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    obligation = relationship("Obligation", back_populates="derived_expenses")


class Attachment(Base):
    """Receipt file metadata; the file itself lives in external storage"""

    __tablename__ = "attachment"

    id = Column(Integer, primary_key=True, autoincrement=True)
    derived_expense_id = Column(Integer, ForeignKey("derived_expense.id", ondelete="RESTRICT"), nullable=False)
    url = Column(Text, nullable=False)
    storage_id = Column(Text, nullable=False)
    mime_type = Column(Text, nullable=True)
    original_name = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    derived_expense = relationship("DerivedExpense")


class PaymentRecord(Base):
    """Partial payment against a fixed-expense obligation"""

    __tablename__ = "payment_record"

    id = Column(Integer, primary_key=True, autoincrement=True)
    obligation_id = Column(Integer, ForeignKey("obligation.id", ondelete="RESTRICT"), nullable=False, index=True)
    amount = Column(Amount, nullable=False)
    payment_date = Column(Date, nullable=False)
    payment_method = Column(enum_column(PaymentMethod, "ck_payment_record_payment_method"), nullable=True)
    notes = Column(Text, nullable=True)
    period_start = Column(Date, nullable=True)
    period_end = Column(Date, nullable=True)
    period_due_date = Column(Date, nullable=True)
    derived_expense_id = Column(Integer, ForeignKey("derived_expense.id", ondelete="RESTRICT"), nullable=False)
    attachment_id = Column(Integer, ForeignKey("attachment.id", ondelete="RESTRICT"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    obligation = relationship("Obligation", back_populates="payments")
    derived_expense = relationship("DerivedExpense")
    attachment = relationship("Attachment")

    __table_args__ = (
        UniqueConstraint("obligation_id", "period_start", "period_end", name="uq_payment_record_period"),
    )


class BankAccount(Base):
    """Bank account that fixed-expense payments draw from"""

    __tablename__ = "bank_account"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False, unique=True)
    current_balance = Column(Amount, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    transactions = relationship("BankTransaction", back_populates="account")

    __mapper_args__ = {"version_id_col": version}


class BankTransaction(Base):
    """Deposit or withdrawal on a bank account, with the balance it left"""

    __tablename__ = "bank_transaction"

    id = Column(Integer, primary_key=True, autoincrement=True)
    bank_account_id = Column(Integer, ForeignKey("bank_account.id", ondelete="RESTRICT"), nullable=False, index=True)
    transaction_type = Column(enum_column(BankTransactionType, "ck_bank_transaction_type"), nullable=False)
    date = Column(Date, nullable=False)
    amount = Column(Amount, nullable=False)
    balance_after = Column(Amount, nullable=False)
    description = Column(Text, nullable=False)
    notes = Column(Text, nullable=True)
    # Withdrawal made for a fixed-expense payment
    derived_expense_id = Column(Integer, ForeignKey("derived_expense.id", ondelete="RESTRICT"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    account = relationship("BankAccount", back_populates="transactions")
    derived_expense = relationship("DerivedExpense")
