"""
Ledger API endpoints.

The API layer is thin: it handles HTTP concerns and delegates
all business logic to the LedgerService. Any treasury error
rolls the session back before it is reported.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from treasury_ledger.api.deps import get_tenant_context, to_http_exception
from treasury_ledger.context import TenantContext
from treasury_ledger.exceptions import TreasuryError
from treasury_ledger.models.base import get_db
from treasury_ledger.models.enums import ReferenceType
from treasury_ledger.services.ledger_service import LedgerService
from treasury_ledger.schemas.ledger import (
    TransactionCreate,
    EnrichedTransactionResponse,
    RecordResult,
    ReversalResponse,
    FundsCreate,
    TransferCreate,
    TransferResult,
)

router = APIRouter(prefix="/treasury", tags=["Treasury Ledger"])


@router.post("/transactions", response_model=RecordResult, status_code=201)
def create_transaction(
    request: TransactionCreate,
    db: Session = Depends(get_db),
    context: TenantContext = Depends(get_tenant_context),
):
    """Record one transaction and move the account balance."""
    service = LedgerService(db, context)
    try:
        result = service.create_transaction(request)
        db.commit()
        return result
    except TreasuryError as e:
        db.rollback()
        raise to_http_exception(e)


@router.get("/transactions", response_model=list[EnrichedTransactionResponse])
def get_transactions(
    account_id: str | None = None,
    reference_type: ReferenceType | None = None,
    db: Session = Depends(get_db),
    context: TenantContext = Depends(get_tenant_context),
):
    """Transactions of the current branch, newest first, with project names."""
    service = LedgerService(db, context)
    try:
        return service.get_transactions(account_id, reference_type)
    except TreasuryError as e:
        raise to_http_exception(e)


@router.delete(
    "/transactions/by-reference/{reference_type}/{reference_id}",
    response_model=ReversalResponse,
)
def delete_transactions_by_reference(
    reference_type: ReferenceType,
    reference_id: str,
    db: Session = Depends(get_db),
    context: TenantContext = Depends(get_tenant_context),
):
    """
    Reverse every transaction recorded for a domain record.

    Returns a tally; partial failure is reported in the body
    rather than as an error status.
    """
    service = LedgerService(db, context)
    try:
        summary = service.reverse_by_reference(reference_type, reference_id)
        db.commit()
        return ReversalResponse.from_summary(summary)
    except TreasuryError as e:
        db.rollback()
        raise to_http_exception(e)


@router.post("/funds", response_model=RecordResult, status_code=201)
def add_funds(
    request: FundsCreate,
    db: Session = Depends(get_db),
    context: TenantContext = Depends(get_tenant_context),
):
    service = LedgerService(db, context)
    try:
        result = service.add_funds(request)
        db.commit()
        return result
    except TreasuryError as e:
        db.rollback()
        raise to_http_exception(e)


@router.post("/transfers", response_model=TransferResult, status_code=201)
def transfer_funds(
    request: TransferCreate,
    db: Session = Depends(get_db),
    context: TenantContext = Depends(get_tenant_context),
):
    """Move money between two accounts of the same currency."""
    service = LedgerService(db, context)
    try:
        result = service.transfer_funds(request)
        db.commit()
        return result
    except TreasuryError as e:
        db.rollback()
        raise to_http_exception(e)
