"""Translation of domain exceptions into HTTP errors"""

import logging

from fastapi import HTTPException

from zurcher_ledger.domain.exceptions import (
    AmountExceedsRemainingError,
    ConcurrentModificationError,
    DomainException,
    DuplicatePeriodError,
    InsufficientFundsError,
    NotFoundError,
    ObligationInUseError,
    OverpaymentError,
    ValidationError,
)


def to_http_exception(e: DomainException, request_id: str) -> HTTPException:
    """
    Map a domain exception to the response the client sees.

    400 validation (with amounts or the conflicting payment where known),
    404 missing, 409 conflicting state, 500 anything else.
    """
    if isinstance(e, AmountExceedsRemainingError):
        logging.warning(f"Payment rejected: {e}", extra={"request_id": request_id})
        return HTTPException(
            status_code=400,
            detail={
                "message": str(e),
                "totalAmount": float(e.total_amount),
                "paidAmount": float(e.paid_amount),
                "remainingAmount": float(e.remaining_amount),
            },
        )

    if isinstance(e, OverpaymentError):
        logging.warning(f"Payment rejected: {e}", extra={"request_id": request_id})
        return HTTPException(
            status_code=400,
            detail={
                "message": str(e),
                "leftover": float(e.leftover),
                "openBalance": float(e.open_balance),
            },
        )

    if isinstance(e, InsufficientFundsError):
        logging.warning(f"Payment rejected: {e}", extra={"request_id": request_id})
        return HTTPException(
            status_code=400,
            detail={
                "message": str(e),
                "account": e.account,
                "balance": float(e.balance),
                "amount": float(e.amount),
            },
        )

    if isinstance(e, DuplicatePeriodError):
        logging.warning(f"Duplicate period: {e}", extra={"request_id": request_id})
        return HTTPException(
            status_code=400,
            detail={"message": str(e), "conflictingPayment": e.conflicting_payment},
        )

    if isinstance(e, ValidationError):
        logging.warning(f"Validation failed: {e}", extra={"request_id": request_id})
        return HTTPException(status_code=400, detail=str(e))

    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))

    if isinstance(e, (ObligationInUseError, ConcurrentModificationError)):
        logging.warning(f"Conflict: {e}", extra={"request_id": request_id})
        return HTTPException(status_code=409, detail=str(e))

    logging.error(f"Ledger operation failed: {e}", extra={"request_id": request_id})
    return HTTPException(status_code=500, detail="Internal server error")
