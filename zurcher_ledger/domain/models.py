"""Domain models - pure Python dataclasses and enums representing ledger entities"""

import enum
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List, Optional


class PaymentStatus(str, enum.Enum):
    """Payment state of an obligation, always derived from amounts"""

    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"


class ObligationKind(str, enum.Enum):
    CREDIT_CHARGE = "credit_charge"
    FIXED_EXPENSE = "fixed_expense"


class TransactionType(str, enum.Enum):
    """Posting types on a revolving account"""

    CHARGE = "charge"
    PAYMENT = "payment"
    INTEREST = "interest"
    REVERSAL = "reversal"  # compensates a reversed payment

    @property
    def sign(self) -> int:
        return -1 if self is TransactionType.PAYMENT else 1


class Frequency(str, enum.Enum):
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    SEMIANNUAL = "semiannual"
    ANNUAL = "annual"
    ONE_TIME = "one_time"


class PaymentMethod(str, enum.Enum):
    """Accounts and instruments money can move through"""

    CAP_TRABAJOS = "Cap Trabajos Septic"
    CAP_PROYECTOS = "Capital Proyectos Septic"
    CHASE_BANK = "Chase Bank"
    AMEX = "AMEX"
    CHASE_CREDIT_CARD = "Chase Credit Card"
    CHECK = "Check"
    BANK_TRANSFER = "Bank Transfer"
    CASH = "Cash"
    ZELLE = "Zelle"
    DEBIT_CARD = "Debit Card"
    PAYPAL = "PayPal"
    OTHER = "Other"

    @property
    def kind(self) -> str:
        return _PAYMENT_METHOD_KINDS.get(self, "other")


_PAYMENT_METHOD_KINDS = {
    PaymentMethod.CAP_TRABAJOS: "bank",
    PaymentMethod.CAP_PROYECTOS: "bank",
    PaymentMethod.CHASE_BANK: "bank",
    PaymentMethod.AMEX: "credit_card",
    PaymentMethod.CHASE_CREDIT_CARD: "credit_card",
    PaymentMethod.BANK_TRANSFER: "transfer",
    PaymentMethod.CASH: "cash",
    PaymentMethod.ZELLE: "digital",
    PaymentMethod.PAYPAL: "digital",
    PaymentMethod.DEBIT_CARD: "debit_card",
}


def bank_account_name(method: Optional[PaymentMethod]) -> Optional[str]:
    """Name of the bank account a payment method draws from, None when it is not one"""
    if method is None or method.kind != "bank":
        return None
    return method.value


class BankTransactionType(str, enum.Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"


@dataclass
class Period:
    """Billing interval a payment covers"""

    start: date
    end: date
    due_date: date


@dataclass
class PaymentSnapshot:
    """Prior payment as seen by the duplicate-period check"""

    payment_id: int
    payment_date: date
    amount: Decimal
    period_start: Optional[date] = None
    period_end: Optional[date] = None

    def to_dict(self) -> dict:
        return {
            "id": self.payment_id,
            "paymentDate": self.payment_date.isoformat(),
            "amount": str(self.amount),
            "periodStart": self.period_start.isoformat() if self.period_start else None,
            "periodEnd": self.period_end.isoformat() if self.period_end else None,
        }


@dataclass
class PeriodCheck:
    """Outcome of duplicate-period validation"""

    is_valid: bool
    message: str = ""
    conflicting_payment: Optional[PaymentSnapshot] = None


@dataclass
class OpenCharge:
    """Revolving-account charge as seen by the allocation engine"""

    charge_id: int
    charge_date: date
    total_amount: Decimal
    paid_amount: Decimal

    @property
    def pending(self) -> Decimal:
        return self.total_amount - self.paid_amount


@dataclass
class ChargeAllocation:
    """Portion of a payment applied to one charge"""

    charge_id: int
    amount_applied: Decimal
    new_status: PaymentStatus
    new_paid_amount: Decimal
    remaining_amount: Decimal


@dataclass
class AllocationResult:
    allocations: List[ChargeAllocation] = field(default_factory=list)
    total_applied: Decimal = Decimal("0")
    leftover: Decimal = Decimal("0")
    new_balance: Decimal = Decimal("0")


@dataclass
class AttachmentUpload:
    """Receipt file received with a payment"""

    content: bytes
    filename: str
    content_type: str = "application/octet-stream"


@dataclass
class StoredAttachment:
    """Where the storage service put an uploaded file"""

    url: str
    storage_id: str
