"""Fixed expenses and their partial payments"""

import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile
from sqlalchemy.orm import Session

from zurcher_ledger.api.dependencies import get_request_id, get_storage_client
from zurcher_ledger.api.errors import to_http_exception
from zurcher_ledger.api.v1.schemas import (
    BankAccountRestored,
    BankWithdrawalSchema,
    DeletedPayment,
    FixedExpenseBalance,
    FixedExpenseCreate,
    FixedExpenseSchema,
    PaymentCreatedResponse,
    PaymentDeletedResponse,
    PaymentHistoryResponse,
    PaymentSchema,
    PaymentSummary,
    RollbackReport,
    SuggestedPeriodResponse,
)
from zurcher_ledger.domain.balances import MAX_AMOUNT, percentage_paid, remaining_amount, to_money
from zurcher_ledger.domain.exceptions import DomainException
from zurcher_ledger.domain.models import AttachmentUpload, ObligationKind, PaymentMethod, PaymentStatus
from zurcher_ledger.domain.periods import calculate_suggested_period, describe_period
from zurcher_ledger.infrastructure.clients.storage import AttachmentStorageClient
from zurcher_ledger.infrastructure.database.models import BankTransaction, Obligation, PaymentRecord
from zurcher_ledger.infrastructure.database.repositories import ObligationRepository, PaymentRecordRepository
from zurcher_ledger.infrastructure.database.session import get_db
from zurcher_ledger.services.payments import PartialPaymentRecorder, RollbackCoordinator

router = APIRouter()


def _balance(obligation: Obligation) -> FixedExpenseBalance:
    return FixedExpenseBalance(
        total_amount=obligation.total_amount,
        paid_amount=obligation.paid_amount,
        remaining_amount=remaining_amount(obligation.total_amount, obligation.paid_amount),
        payment_status=obligation.status,
        is_fully_paid=obligation.status is PaymentStatus.PAID,
    )


def _fixed_expense(obligation: Obligation) -> FixedExpenseSchema:
    return FixedExpenseSchema(
        id=obligation.id,
        name=obligation.name,
        vendor=obligation.vendor,
        frequency=obligation.frequency,
        payment_method=obligation.payment_method,
        total_amount=obligation.total_amount,
        paid_amount=obligation.paid_amount,
        remaining_amount=remaining_amount(obligation.total_amount, obligation.paid_amount),
        payment_status=obligation.status,
        paid_date=obligation.paid_date,
    )


def _payment(payment: PaymentRecord) -> PaymentSchema:
    return PaymentSchema(
        id=payment.id,
        fixed_expense_id=payment.obligation_id,
        amount=payment.amount,
        payment_date=payment.payment_date,
        payment_method=payment.payment_method,
        notes=payment.notes,
        period_start=payment.period_start,
        period_end=payment.period_end,
        period_due_date=payment.period_due_date,
        period_label=describe_period(payment.period_start, payment.period_end) or None,
        expense_id=payment.derived_expense_id,
        receipt_url=payment.attachment.url if payment.attachment else None,
    )


def _withdrawal(transaction: BankTransaction) -> BankWithdrawalSchema:
    return BankWithdrawalSchema(
        id=transaction.id,
        account=transaction.account.name,
        amount=transaction.amount,
        balance_after=transaction.balance_after,
    )


def _get_fixed_expense(db: Session, fixed_expense_id: int) -> Obligation:
    obligation = ObligationRepository(db).get(fixed_expense_id)
    if obligation is None or obligation.kind is not ObligationKind.FIXED_EXPENSE:
        raise HTTPException(status_code=404, detail="Fixed expense not found")
    return obligation


@router.post("/fixed-expenses", response_model=FixedExpenseSchema, status_code=201)
def create_fixed_expense(body: FixedExpenseCreate, request: Request, db: Session = Depends(get_db)):
    request_id = get_request_id(request)
    obligation = ObligationRepository(db).create_fixed_expense(
        name=body.name,
        total_amount=to_money(body.total_amount),
        frequency=body.frequency,
        payment_method=body.payment_method,
        vendor=body.vendor,
        start_date=body.start_date,
    )
    db.commit()
    logging.info(
        "Fixed expense created",
        extra={"request_id": request_id, "obligation_id": obligation.id, "step": "fixed_expense_created"},
    )
    return _fixed_expense(obligation)


@router.get("/fixed-expenses", response_model=List[FixedExpenseSchema])
def list_fixed_expenses(db: Session = Depends(get_db)):
    return [_fixed_expense(o) for o in ObligationRepository(db).list_fixed_expenses()]


@router.get("/fixed-expenses/{fixed_expense_id}", response_model=FixedExpenseSchema)
def get_fixed_expense(fixed_expense_id: int, db: Session = Depends(get_db)):
    return _fixed_expense(_get_fixed_expense(db, fixed_expense_id))


@router.delete("/fixed-expenses/{fixed_expense_id}", status_code=204)
def delete_fixed_expense(fixed_expense_id: int, request: Request, db: Session = Depends(get_db)):
    """Delete a fixed expense; 409 while payments still reference it"""
    request_id = get_request_id(request)
    obligation = _get_fixed_expense(db, fixed_expense_id)
    try:
        ObligationRepository(db).delete(obligation)
        db.commit()
    except DomainException as e:
        db.rollback()
        raise to_http_exception(e, request_id)


@router.get("/fixed-expenses/{fixed_expense_id}/suggested-period", response_model=SuggestedPeriodResponse)
def get_suggested_period(
    fixed_expense_id: int,
    payment_date: date = Query(..., alias="paymentDate"),
    db: Session = Depends(get_db),
):
    """Billing period a payment made on paymentDate most likely settles"""
    obligation = _get_fixed_expense(db, fixed_expense_id)
    period = calculate_suggested_period(
        payment_date, obligation.frequency.value if obligation.frequency else None
    )
    return SuggestedPeriodResponse(
        period_start=period.start,
        period_end=period.end,
        period_due_date=period.due_date,
        label=describe_period(period.start, period.end),
    )


@router.post("/fixed-expenses/{fixed_expense_id}/payments", response_model=PaymentCreatedResponse, status_code=201)
async def add_partial_payment(
    fixed_expense_id: int,
    request: Request,
    amount: Decimal = Form(..., le=MAX_AMOUNT),
    payment_date: date = Form(..., alias="paymentDate"),
    payment_method: Optional[PaymentMethod] = Form(None, alias="paymentMethod"),
    notes: Optional[str] = Form(None),
    period_start: Optional[date] = Form(None, alias="periodStart"),
    period_end: Optional[date] = Form(None, alias="periodEnd"),
    period_due_date: Optional[date] = Form(None, alias="periodDueDate"),
    receipt: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    storage: AttachmentStorageClient = Depends(get_storage_client),
):
    """
    Record a partial payment against a fixed expense.

    Flow:
    1. Validate amount against what is still owed
    2. Reject a second payment for the same billing period
    3. Create the derived expense and payment, update the fixed expense
    4. Upload the receipt if one was sent; failures never undo the payment
    """
    request_id = get_request_id(request)

    attachment = None
    if receipt is not None:
        attachment = AttachmentUpload(
            content=await receipt.read(),
            filename=receipt.filename or "receipt",
            content_type=receipt.content_type or "application/octet-stream",
        )

    try:
        recorder = PartialPaymentRecorder(db, storage=storage, request_id=request_id)
        outcome = await recorder.record_payment(
            obligation_id=fixed_expense_id,
            amount=amount,
            payment_date=payment_date,
            payment_method=payment_method,
            notes=notes,
            period_start=period_start,
            period_end=period_end,
            period_due_date=period_due_date,
            attachment=attachment,
        )

    except DomainException as e:
        raise to_http_exception(e, request_id)

    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    return PaymentCreatedResponse(
        payment=_payment(outcome.payment),
        fixed_expense_balance=_balance(outcome.obligation),
        attachment_stored=outcome.attachment_stored,
        bank_withdrawal=_withdrawal(outcome.bank_transaction) if outcome.bank_transaction else None,
    )


@router.get("/fixed-expenses/{fixed_expense_id}/payments", response_model=PaymentHistoryResponse)
def get_payment_history(fixed_expense_id: int, db: Session = Depends(get_db)):
    """
    Payment history of a fixed expense, newest first.

    Returns:
        The fixed expense, its payments with period labels, and totals
    """
    obligation = _get_fixed_expense(db, fixed_expense_id)
    payments = PaymentRecordRepository(db).list_for_obligation(obligation.id)

    total_paid = sum((to_money(p.amount) for p in payments), Decimal("0"))

    return PaymentHistoryResponse(
        fixed_expense=_fixed_expense(obligation),
        payments=[_payment(p) for p in payments],
        summary=PaymentSummary(
            total_payments=len(payments),
            total_paid=total_paid,
            remaining=remaining_amount(obligation.total_amount, obligation.paid_amount),
            percentage_paid=percentage_paid(obligation.paid_amount, obligation.total_amount),
        ),
    )


@router.delete("/fixed-expense-payments/{payment_id}", response_model=PaymentDeletedResponse)
async def delete_partial_payment(
    payment_id: int,
    request: Request,
    db: Session = Depends(get_db),
    storage: AttachmentStorageClient = Depends(get_storage_client),
):
    """Reverse a payment: receipt, derived expense, balance, then the payment itself"""
    request_id = get_request_id(request)

    try:
        outcome = await RollbackCoordinator(db, storage=storage, request_id=request_id).reverse_payment(payment_id)

    except DomainException as e:
        raise to_http_exception(e, request_id)

    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    return PaymentDeletedResponse(
        message="Payment deleted and balance restored",
        deleted_payment=DeletedPayment(
            id=outcome.payment_id,
            amount=outcome.amount,
            payment_date=outcome.payment_date,
        ),
        updated_balance=_balance(outcome.obligation),
        rollback=RollbackReport(
            derived_expense_deleted=outcome.derived_expense_deleted,
            attachment_deleted=outcome.attachment_deleted,
            paid_amount_clamped=outcome.clamped,
            bank_transaction_reverted=outcome.bank_transaction_reverted,
            bank_account_updated=(
                BankAccountRestored(
                    account=outcome.bank_account.name,
                    restored_amount=outcome.amount,
                    new_balance=outcome.bank_account.current_balance,
                )
                if outcome.bank_account
                else None
            ),
        ),
    )
