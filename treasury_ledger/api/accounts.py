"""
Treasury account API endpoints.
"""

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from treasury_ledger.api.deps import get_tenant_context, to_http_exception
from treasury_ledger.context import TenantContext
from treasury_ledger.exceptions import TreasuryError
from treasury_ledger.models.base import get_db
from treasury_ledger.models.enums import AccountKind, AccessScope, ReferenceType
from treasury_ledger.services.account_service import TreasuryAccountService
from treasury_ledger.services.ledger_service import LedgerService
from treasury_ledger.schemas.account import (
    AccountCreate,
    AccountUpdate,
    AccountFilter,
    AccountResponse,
)
from treasury_ledger.schemas.ledger import (
    AccountStatement,
    BalanceCheckResponse,
)

router = APIRouter(prefix="/treasury/accounts", tags=["Treasury Accounts"])


@router.post("", response_model=AccountResponse, status_code=201)
def create_account(
    request: AccountCreate,
    db: Session = Depends(get_db),
    context: TenantContext = Depends(get_tenant_context),
):
    """Open a treasury account; current balance starts at the initial balance."""
    service = TreasuryAccountService(db, context)
    try:
        account = service.create_account(request)
        db.commit()
        return account
    except TreasuryError as e:
        db.rollback()
        raise to_http_exception(e)


@router.get("", response_model=list[AccountResponse])
def list_accounts(
    kind: AccountKind | None = None,
    access_scope: AccessScope | None = None,
    currency: str | None = None,
    db: Session = Depends(get_db),
    context: TenantContext = Depends(get_tenant_context),
):
    service = TreasuryAccountService(db, context)
    try:
        return service.list_accounts(AccountFilter(
            kind=kind, access_scope=access_scope, currency=currency,
        ))
    except TreasuryError as e:
        raise to_http_exception(e)


@router.get("/{account_id}", response_model=AccountResponse)
def get_account(
    account_id: str,
    db: Session = Depends(get_db),
    context: TenantContext = Depends(get_tenant_context),
):
    service = TreasuryAccountService(db, context)
    try:
        return service.get_account(account_id)
    except TreasuryError as e:
        raise to_http_exception(e)


@router.patch("/{account_id}", response_model=AccountResponse)
def update_account(
    account_id: str,
    request: AccountUpdate,
    db: Session = Depends(get_db),
    context: TenantContext = Depends(get_tenant_context),
):
    """
    Update descriptive fields. Balance fields are rejected by the
    request schema with a 422.
    """
    service = TreasuryAccountService(db, context)
    try:
        account = service.update_account(account_id, request)
        db.commit()
        return account
    except TreasuryError as e:
        db.rollback()
        raise to_http_exception(e)


@router.delete("/{account_id}", status_code=204)
def delete_account(
    account_id: str,
    db: Session = Depends(get_db),
    context: TenantContext = Depends(get_tenant_context),
):
    """Delete an account. Refused with 409 while it has transactions."""
    service = TreasuryAccountService(db, context)
    try:
        service.delete_account(account_id)
        db.commit()
        return Response(status_code=204)
    except TreasuryError as e:
        db.rollback()
        raise to_http_exception(e)


@router.get("/{account_id}/statement", response_model=AccountStatement)
def get_statement(
    account_id: str,
    reference_type: ReferenceType | None = None,
    db: Session = Depends(get_db),
    context: TenantContext = Depends(get_tenant_context),
):
    service = LedgerService(db, context)
    try:
        return service.get_statement(account_id, reference_type)
    except TreasuryError as e:
        raise to_http_exception(e)


@router.get("/{account_id}/balance-check", response_model=BalanceCheckResponse)
def check_balance(
    account_id: str,
    db: Session = Depends(get_db),
    context: TenantContext = Depends(get_tenant_context),
):
    """Compare the stored balance with a replay of the transaction log."""
    service = LedgerService(db, context)
    try:
        return BalanceCheckResponse.from_check(
            service.verify_account_balance(account_id)
        )
    except TreasuryError as e:
        raise to_http_exception(e)
