"""Pydantic schemas for API request/response validation"""

import datetime
from decimal import Decimal
from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel

from zurcher_ledger.domain.balances import MAX_AMOUNT
from zurcher_ledger.domain.models import Frequency, PaymentMethod, PaymentStatus, TransactionType

# Amounts are Decimal internally and JSON numbers on the wire
Money = Annotated[Decimal, PlainSerializer(lambda v: float(v), return_type=float, when_used="json")]


class CamelModel(BaseModel):
    """Base schema exposing camelCase keys"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Fixed expenses


class FixedExpenseCreate(CamelModel):
    """Request body for POST /fixed-expenses"""

    name: str = Field(..., min_length=1)
    total_amount: Decimal = Field(..., gt=0, le=MAX_AMOUNT, description="Amount owed per instance")
    frequency: Frequency = Frequency.MONTHLY
    payment_method: Optional[PaymentMethod] = None
    vendor: Optional[str] = None
    start_date: Optional[datetime.date] = None


class FixedExpenseSchema(CamelModel):
    id: int
    name: str
    vendor: Optional[str] = None
    frequency: Optional[Frequency] = None
    payment_method: Optional[PaymentMethod] = None
    total_amount: Money
    paid_amount: Money
    remaining_amount: Money
    payment_status: PaymentStatus
    paid_date: Optional[datetime.date] = None


class FixedExpenseBalance(CamelModel):
    total_amount: Money
    paid_amount: Money
    remaining_amount: Money
    payment_status: PaymentStatus
    is_fully_paid: bool


class PaymentSchema(CamelModel):
    """Single fixed-expense payment"""

    id: int
    fixed_expense_id: int
    amount: Money
    payment_date: datetime.date
    payment_method: Optional[PaymentMethod] = None
    notes: Optional[str] = None
    period_start: Optional[datetime.date] = None
    period_end: Optional[datetime.date] = None
    period_due_date: Optional[datetime.date] = None
    period_label: Optional[str] = None
    expense_id: int
    receipt_url: Optional[str] = None


class BankWithdrawalSchema(CamelModel):
    """Withdrawal a payment made from a bank account"""

    id: int
    account: str
    amount: Money
    balance_after: Money


class PaymentCreatedResponse(CamelModel):
    """Response for POST /fixed-expenses/{id}/payments"""

    payment: PaymentSchema
    fixed_expense_balance: FixedExpenseBalance
    attachment_stored: bool
    bank_withdrawal: Optional[BankWithdrawalSchema] = None


class PaymentSummary(CamelModel):
    total_payments: int
    total_paid: Money
    remaining: Money
    percentage_paid: Money


class PaymentHistoryResponse(CamelModel):
    """Response for GET /fixed-expenses/{id}/payments"""

    fixed_expense: FixedExpenseSchema
    payments: List[PaymentSchema]
    summary: PaymentSummary


class DeletedPayment(CamelModel):
    id: int
    amount: Money
    payment_date: datetime.date


class BankAccountRestored(CamelModel):
    account: str
    restored_amount: Money
    new_balance: Money


class RollbackReport(CamelModel):
    derived_expense_deleted: bool
    attachment_deleted: bool
    paid_amount_clamped: bool
    bank_transaction_reverted: bool
    bank_account_updated: Optional[BankAccountRestored] = None


class PaymentDeletedResponse(CamelModel):
    """Response for DELETE /fixed-expense-payments/{paymentId}"""

    message: str
    deleted_payment: DeletedPayment
    updated_balance: FixedExpenseBalance
    rollback: RollbackReport


class SuggestedPeriodResponse(CamelModel):
    period_start: datetime.date
    period_end: datetime.date
    period_due_date: datetime.date
    label: str


# Revolving accounts


class CreditTransactionRequest(CamelModel):
    """Request body for POST /credit-account/transaction"""

    transaction_type: TransactionType
    amount: Decimal = Field(..., gt=0, le=MAX_AMOUNT)
    description: str = Field(..., min_length=1)
    posting_date: datetime.date = Field(..., alias="date")
    payment_method: Optional[PaymentMethod] = None
    notes: Optional[str] = None
    vendor: Optional[str] = None
    account: Optional[str] = Field(None, description="Revolving account name; defaults to the configured card")


class TransactionSchema(CamelModel):
    id: int
    transaction_type: TransactionType
    posting_date: datetime.date = Field(..., alias="date")
    amount: Money
    balance_after: Money
    description: str
    payment_method: Optional[PaymentMethod] = None
    notes: Optional[str] = None
    charge_id: Optional[int] = None
    reversed_by_id: Optional[int] = None


class ChargeAllocationSchema(CamelModel):
    charge_id: int
    amount_applied: Money
    new_status: PaymentStatus
    remaining_amount: Money


class AllocationSchema(CamelModel):
    allocations: List[ChargeAllocationSchema]
    total_applied: Money
    leftover: Money
    new_balance: Money


class CreditTransactionResponse(CamelModel):
    """Response for POST /credit-account/transaction"""

    account: str
    transaction: TransactionSchema
    allocation: Optional[AllocationSchema] = None
    current_balance: Money


class AccountStatistics(CamelModel):
    total_charges: Money
    total_interest: Money
    total_payments: Money
    total_reversals: Money
    open_charges: int
    pending_amount: Money


class AccountBalanceResponse(CamelModel):
    """Response for GET /credit-account/balance"""

    account: str
    current_balance: Money
    statistics: AccountStatistics
    transactions: List[TransactionSchema]
    ledger_consistent: bool


class ReversalResponse(CamelModel):
    """Response for DELETE /credit-account/payment/{transactionId}"""

    account: str
    reversal: TransactionSchema
    current_balance: Money


# Bank accounts


class BankAccountCreate(CamelModel):
    """Request body for POST /bank-accounts"""

    name: PaymentMethod = Field(..., description="Bank payment method the account backs")
    opening_balance: Decimal = Field(Decimal("0"), ge=0, le=MAX_AMOUNT)
    opened_on: Optional[datetime.date] = None


class BankAccountSchema(CamelModel):
    id: int
    name: str
    current_balance: Money
    is_active: bool
