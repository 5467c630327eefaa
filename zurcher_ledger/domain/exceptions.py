"""Domain-specific exceptions"""

from decimal import Decimal
from typing import Any, Dict, Optional


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class ValidationError(DomainException):
    """Request violates a ledger rule; nothing was written"""

    pass


class AmountExceedsRemainingError(ValidationError):
    """Payment is larger than what is still owed on the obligation"""

    def __init__(self, amount: Decimal, total_amount: Decimal, paid_amount: Decimal, remaining_amount: Decimal):
        self.amount = amount
        self.total_amount = total_amount
        self.paid_amount = paid_amount
        self.remaining_amount = remaining_amount
        super().__init__(
            f"Payment of ${amount:.2f} exceeds the remaining balance of ${remaining_amount:.2f}"
        )


class OverpaymentError(ValidationError):
    """Credit-account payment is larger than all open charges"""

    def __init__(self, amount: Decimal, leftover: Decimal, open_balance: Decimal):
        self.amount = amount
        self.leftover = leftover
        self.open_balance = open_balance
        super().__init__(
            f"Payment of ${amount:.2f} exceeds open charges of ${open_balance:.2f} "
            f"by ${leftover:.2f}"
        )


class InsufficientFundsError(ValidationError):
    """Bank account cannot cover a withdrawal"""

    def __init__(self, account: str, balance: Decimal, amount: Decimal):
        self.account = account
        self.balance = balance
        self.amount = amount
        super().__init__(
            f"Insufficient funds in {account}: balance ${balance:.2f}, withdrawal ${amount:.2f}"
        )


class DuplicatePeriodError(DomainException):
    """A payment for the same billing period already exists"""

    def __init__(self, message: str, conflicting_payment: Optional[Dict[str, Any]] = None):
        self.conflicting_payment = conflicting_payment
        super().__init__(message)


class NotFoundError(DomainException):
    """Obligation, payment or account does not exist"""

    pass


class ObligationInUseError(DomainException):
    """Obligation still has payments referencing it"""

    pass


class ConcurrentModificationError(DomainException):
    """Row changed between read and write"""

    pass


class ExternalServiceError(DomainException):
    """External collaborator failed"""

    pass


class AttachmentStorageError(ExternalServiceError):
    """Attachment storage upload or delete failed after all retries"""

    pass


class PersistenceError(DomainException):
    """Database write failed mid-sequence and was rolled back"""

    pass
