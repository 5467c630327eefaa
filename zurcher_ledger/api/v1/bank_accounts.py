"""Bank accounts that fixed-expense payments are withdrawn from"""

import logging
from datetime import date
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from zurcher_ledger.api.dependencies import get_request_id
from zurcher_ledger.api.v1.schemas import BankAccountCreate, BankAccountSchema
from zurcher_ledger.domain.balances import to_money
from zurcher_ledger.domain.models import bank_account_name
from zurcher_ledger.infrastructure.database.models import BankAccount
from zurcher_ledger.infrastructure.database.repositories import BankAccountRepository
from zurcher_ledger.infrastructure.database.session import get_db

router = APIRouter()


def _bank_account(account: BankAccount) -> BankAccountSchema:
    return BankAccountSchema(
        id=account.id,
        name=account.name,
        current_balance=account.current_balance,
        is_active=account.is_active,
    )


@router.post("/bank-accounts", response_model=BankAccountSchema, status_code=201)
def open_bank_account(body: BankAccountCreate, request: Request, db: Session = Depends(get_db)):
    """
    Open a bank account for one of the bank payment methods.

    A non-zero opening balance is recorded as a deposit so the account's
    transactions add up to its balance.
    """
    request_id = get_request_id(request)
    name = bank_account_name(body.name)
    if name is None:
        raise HTTPException(status_code=400, detail=f"{body.name.value} is not a bank account")

    repo = BankAccountRepository(db)
    if repo.get_by_name(name) is not None:
        raise HTTPException(status_code=409, detail=f"Bank account {name} already exists")

    account = repo.open(name, to_money(body.opening_balance), body.opened_on or date.today())
    db.commit()
    logging.info(
        "Bank account opened",
        extra={"request_id": request_id, "bank_account_id": account.id, "step": "bank_account_opened"},
    )
    return _bank_account(account)


@router.get("/bank-accounts", response_model=List[BankAccountSchema])
def list_bank_accounts(db: Session = Depends(get_db)):
    return [_bank_account(a) for a in BankAccountRepository(db).list_accounts()]
