"""
Pydantic schemas for financial event originators.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from treasury_ledger.models.enums import (
    PaymentKind,
    PaymentStatus,
    SettlementType,
    OrderStatus,
    LaborPaymentMethod,
)
from treasury_ledger.schemas.ledger import TransactionResponse


class IncomeCreate(BaseModel):
    """Client or investor money received into a treasury account."""
    account_id: str
    amount: Decimal = Field(gt=0, decimal_places=4)
    project_id: str | None = None
    description: str | None = Field(default=None, max_length=500)


class AdvanceCreate(BaseModel):
    """Cash float issued to an employee or engineer."""
    account_id: str
    amount: Decimal = Field(gt=0, decimal_places=4)
    manager_name: str = Field(min_length=1, max_length=200)
    project_id: str | None = None
    description: str | None = Field(default=None, max_length=500)


class SettlementCreate(BaseModel):
    advance_id: str
    amount: Decimal = Field(gt=0, decimal_places=4)
    settlement_type: SettlementType = SettlementType.EXPENSE
    project_id: str | None = None
    description: str | None = Field(default=None, max_length=500)


class ExpenseCreate(BaseModel):
    """General (administrative) or project expense paid from treasury."""
    account_id: str
    amount: Decimal = Field(gt=0, decimal_places=4)
    project_id: str | None = None
    expense_category: str | None = Field(default=None, max_length=100)
    description: str | None = Field(default=None, max_length=500)


class OrderPayment(BaseModel):
    account_id: str


class LaborPayment(BaseModel):
    payment_method: LaborPaymentMethod
    account_id: str | None = None
    advance_id: str | None = None


class PaymentAmountUpdate(BaseModel):
    amount: Decimal = Field(gt=0, decimal_places=4)


class PaymentResponse(BaseModel):
    id: str
    project_id: str | None
    kind: PaymentKind
    status: PaymentStatus
    amount: Decimal
    remaining_amount: Decimal | None
    linked_advance_id: str | None
    settlement_type: SettlementType | None
    manager_name: str | None
    expense_category: str | None
    description: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class OrderResponse(BaseModel):
    id: str
    project_id: str | None
    supplier_name: str | None
    amount: Decimal
    status: OrderStatus
    treasury_account_id: str | None

    model_config = {"from_attributes": True}


class LaborGroupResponse(BaseModel):
    id: str
    project_id: str | None
    total_amount: Decimal
    status: OrderStatus
    payment_method: LaborPaymentMethod | None
    treasury_account_id: str | None
    linked_advance_id: str | None

    model_config = {"from_attributes": True}


class EventResponse(BaseModel):
    """What an originator call did to the ledger, if anything."""
    success: bool = True
    transaction: TransactionResponse | None = None
    new_balance: Decimal | None = None
    reversed: int | None = None


class PaymentEventResponse(EventResponse):
    payment: PaymentResponse


class OrderEventResponse(EventResponse):
    order: OrderResponse


class LaborGroupEventResponse(EventResponse):
    labor_group: LaborGroupResponse
