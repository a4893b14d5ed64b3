"""
Financial event endpoints.

Each call writes a domain record and its treasury effect in one
request. On any treasury error both are rolled back.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from treasury_ledger.api.deps import get_tenant_context, to_http_exception
from treasury_ledger.context import TenantContext
from treasury_ledger.exceptions import TreasuryError
from treasury_ledger.models.base import get_db
from treasury_ledger.services.event_service import (
    EventOutcome,
    FinancialEventService,
)
from treasury_ledger.schemas.ledger import ReversalResponse
from treasury_ledger.schemas.events import (
    IncomeCreate,
    AdvanceCreate,
    SettlementCreate,
    ExpenseCreate,
    OrderPayment,
    LaborPayment,
    PaymentAmountUpdate,
    PaymentResponse,
    OrderResponse,
    LaborGroupResponse,
    PaymentEventResponse,
    OrderEventResponse,
    LaborGroupEventResponse,
)

router = APIRouter(prefix="/events", tags=["Financial Events"])


def _ledger_fields(outcome: EventOutcome) -> dict:
    fields = {}
    if outcome.ledger is not None:
        fields["transaction"] = outcome.ledger.transaction
        fields["new_balance"] = outcome.ledger.new_balance
    if outcome.reversal is not None:
        fields["reversed"] = outcome.reversal.reversed
    return fields


def _payment_response(outcome: EventOutcome) -> PaymentEventResponse:
    return PaymentEventResponse(
        payment=PaymentResponse.model_validate(outcome.record),
        **_ledger_fields(outcome),
    )


def _run_payment(db: Session, operation, *args) -> PaymentEventResponse:
    try:
        outcome = operation(*args)
        db.commit()
        return _payment_response(outcome)
    except TreasuryError as e:
        db.rollback()
        raise to_http_exception(e)


@router.post("/incomes", response_model=PaymentEventResponse, status_code=201)
def record_income(
    request: IncomeCreate,
    db: Session = Depends(get_db),
    context: TenantContext = Depends(get_tenant_context),
):
    service = FinancialEventService(db, context)
    return _run_payment(db, service.record_income, request)


@router.post("/advances", response_model=PaymentEventResponse, status_code=201)
def issue_advance(
    request: AdvanceCreate,
    db: Session = Depends(get_db),
    context: TenantContext = Depends(get_tenant_context),
):
    service = FinancialEventService(db, context)
    return _run_payment(db, service.issue_advance, request)


@router.post("/settlements", response_model=PaymentEventResponse, status_code=201)
def settle_advance(
    request: SettlementCreate,
    db: Session = Depends(get_db),
    context: TenantContext = Depends(get_tenant_context),
):
    """Settle against an advance. No treasury transaction is created."""
    service = FinancialEventService(db, context)
    return _run_payment(db, service.settle_advance, request)


@router.post("/expenses", response_model=PaymentEventResponse, status_code=201)
def pay_expense(
    request: ExpenseCreate,
    db: Session = Depends(get_db),
    context: TenantContext = Depends(get_tenant_context),
):
    service = FinancialEventService(db, context)
    return _run_payment(db, service.pay_expense, request)


@router.patch("/payments/{payment_id}/amount", response_model=PaymentEventResponse)
def update_payment_amount(
    payment_id: str,
    request: PaymentAmountUpdate,
    db: Session = Depends(get_db),
    context: TenantContext = Depends(get_tenant_context),
):
    service = FinancialEventService(db, context)
    return _run_payment(db, service.update_payment_amount, payment_id, request)


@router.delete("/payments/{payment_id}", response_model=ReversalResponse)
def delete_payment(
    payment_id: str,
    db: Session = Depends(get_db),
    context: TenantContext = Depends(get_tenant_context),
):
    """Reverse a payment's treasury effect, then delete it."""
    service = FinancialEventService(db, context)
    try:
        summary = service.delete_payment(payment_id)
        db.commit()
    except TreasuryError as e:
        db.rollback()
        raise to_http_exception(e)
    if summary is None:
        return ReversalResponse(success=True, reversed=0, failed=0, failures=[])
    return ReversalResponse.from_summary(summary)


@router.post("/orders/{order_id}/pay", response_model=OrderEventResponse)
def pay_order(
    order_id: str,
    request: OrderPayment,
    db: Session = Depends(get_db),
    context: TenantContext = Depends(get_tenant_context),
):
    service = FinancialEventService(db, context)
    try:
        outcome = service.pay_order(order_id, request)
        db.commit()
        return OrderEventResponse(
            order=OrderResponse.model_validate(outcome.record),
            **_ledger_fields(outcome),
        )
    except TreasuryError as e:
        db.rollback()
        raise to_http_exception(e)


@router.post("/orders/{order_id}/cancel-payment", response_model=OrderEventResponse)
def cancel_order_payment(
    order_id: str,
    db: Session = Depends(get_db),
    context: TenantContext = Depends(get_tenant_context),
):
    service = FinancialEventService(db, context)
    try:
        outcome = service.cancel_order_payment(order_id)
        db.commit()
        return OrderEventResponse(
            order=OrderResponse.model_validate(outcome.record),
            **_ledger_fields(outcome),
        )
    except TreasuryError as e:
        db.rollback()
        raise to_http_exception(e)


@router.post(
    "/labor-groups/{labor_group_id}/pay",
    response_model=LaborGroupEventResponse,
)
def pay_labor_group(
    labor_group_id: str,
    request: LaborPayment,
    db: Session = Depends(get_db),
    context: TenantContext = Depends(get_tenant_context),
):
    """Pay a labor group from a treasury account or from an advance."""
    service = FinancialEventService(db, context)
    try:
        outcome = service.pay_labor_group(labor_group_id, request)
        db.commit()
        return LaborGroupEventResponse(
            labor_group=LaborGroupResponse.model_validate(outcome.record),
            **_ledger_fields(outcome),
        )
    except TreasuryError as e:
        db.rollback()
        raise to_http_exception(e)
