"""Revolving account postings (charges, interest, payments) and statements"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from zurcher_ledger.api.dependencies import get_request_id
from zurcher_ledger.api.errors import to_http_exception
from zurcher_ledger.api.v1.schemas import (
    AccountBalanceResponse,
    AccountStatistics,
    AllocationSchema,
    ChargeAllocationSchema,
    CreditTransactionRequest,
    CreditTransactionResponse,
    ReversalResponse,
    TransactionSchema,
)
from zurcher_ledger.config import settings
from zurcher_ledger.domain.exceptions import DomainException
from zurcher_ledger.domain.models import AllocationResult
from zurcher_ledger.infrastructure.database.models import LedgerTransaction
from zurcher_ledger.infrastructure.database.session import get_db
from zurcher_ledger.services.credit_account import CreditAccountService

router = APIRouter()


def _transaction(posting: LedgerTransaction) -> TransactionSchema:
    return TransactionSchema(
        id=posting.id,
        transaction_type=posting.transaction_type,
        posting_date=posting.date,
        amount=posting.amount,
        balance_after=posting.balance_after,
        description=posting.description,
        payment_method=posting.payment_method,
        notes=posting.notes,
        charge_id=posting.obligation_id,
        reversed_by_id=posting.reversed_by_id,
    )


def _allocation(result: AllocationResult) -> AllocationSchema:
    return AllocationSchema(
        allocations=[
            ChargeAllocationSchema(
                charge_id=a.charge_id,
                amount_applied=a.amount_applied,
                new_status=a.new_status,
                remaining_amount=a.remaining_amount,
            )
            for a in result.allocations
        ],
        total_applied=result.total_applied,
        leftover=result.leftover,
        new_balance=result.new_balance,
    )


@router.post("/credit-account/transaction", response_model=CreditTransactionResponse, status_code=201)
def create_transaction(body: CreditTransactionRequest, request: Request, db: Session = Depends(get_db)):
    """
    Post a charge, interest or payment on a revolving account.

    Charges and interest open a new obligation on the account. Payments are
    applied to open charges oldest first; a payment larger than everything
    owed is rejected.
    """
    request_id = get_request_id(request)

    try:
        outcome = CreditAccountService(db, request_id=request_id).post_transaction(
            account_name=body.account or settings.default_credit_account,
            transaction_type=body.transaction_type,
            amount=body.amount,
            description=body.description,
            posting_date=body.posting_date,
            payment_method=body.payment_method,
            notes=body.notes,
            vendor=body.vendor,
        )

    except DomainException as e:
        raise to_http_exception(e, request_id)

    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    return CreditTransactionResponse(
        account=outcome.account.name,
        transaction=_transaction(outcome.transaction),
        allocation=_allocation(outcome.allocation) if outcome.allocation else None,
        current_balance=outcome.account.current_balance,
    )


@router.get("/credit-account/balance", response_model=AccountBalanceResponse)
def get_balance(
    request: Request,
    account: Optional[str] = Query(None, description="Revolving account name"),
    db: Session = Depends(get_db),
):
    """
    Current balance and statistics of a revolving account.

    Returns:
        Balance, totals per posting type, open charges, postings newest
        first, and whether replaying the postings reproduces the balances
    """
    request_id = get_request_id(request)

    try:
        statement = CreditAccountService(db, request_id=request_id).statement(
            account or settings.default_credit_account
        )
    except DomainException as e:
        raise to_http_exception(e, request_id)

    return AccountBalanceResponse(
        account=statement.account.name,
        current_balance=statement.account.current_balance,
        statistics=AccountStatistics(
            total_charges=statement.total_charges,
            total_interest=statement.total_interest,
            total_payments=statement.total_payments,
            total_reversals=statement.total_reversals,
            open_charges=statement.open_charge_count,
            pending_amount=statement.pending_amount,
        ),
        transactions=[_transaction(p) for p in statement.postings],
        ledger_consistent=statement.ledger_consistent,
    )


@router.delete("/credit-account/payment/{transaction_id}", response_model=ReversalResponse)
def reverse_payment(transaction_id: int, request: Request, db: Session = Depends(get_db)):
    """Reverse a payment: charges get their allocations back and a reversal is posted"""
    request_id = get_request_id(request)

    try:
        outcome = CreditAccountService(db, request_id=request_id).reverse_payment(transaction_id)

    except DomainException as e:
        raise to_http_exception(e, request_id)

    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    return ReversalResponse(
        account=outcome.account.name,
        reversal=_transaction(outcome.transaction),
        current_balance=outcome.account.current_balance,
    )
