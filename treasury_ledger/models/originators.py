"""
Originator records.

Only the fields the treasury flows need: the amounts they
move, the advance float they draw from, and the project they
belong to (for enriching ledger reads). Full CRUD for these
entities lives elsewhere.
"""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    String, DateTime, Numeric, ForeignKey,
    Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column

from treasury_ledger.models.base import Base
from treasury_ledger.models.enums import (
    PaymentKind,
    PaymentStatus,
    SettlementType,
    OrderStatus,
    LaborPaymentMethod,
)


def _new_id() -> str:
    return str(uuid.uuid4())


def _enum(enum_cls, name):
    return SAEnum(
        enum_cls,
        name=name,
        values_callable=lambda e: [m.value for m in e],
        create_constraint=True,
    )


class Project(Base):
    __tablename__ = "projects"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    branch_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )


class Payment(Base):
    """
    Incomes, expenses, manager advances and their settlements.

    For advances, remaining_amount tracks the part of the float
    not yet settled. Settlements decrement it; they never touch
    the ledger.
    """

    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    branch_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    project_id: Mapped[str | None] = mapped_column(
        ForeignKey("projects.id"), nullable=True
    )
    kind: Mapped[PaymentKind] = mapped_column(
        "transaction_type", _enum(PaymentKind, "payment_kind_enum"), nullable=False
    )
    status: Mapped[PaymentStatus] = mapped_column(
        _enum(PaymentStatus, "payment_status_enum"),
        nullable=False,
        default=PaymentStatus.PENDING,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(19, 4), nullable=False)
    remaining_amount: Mapped[Decimal | None] = mapped_column(
        Numeric(19, 4), nullable=True
    )
    linked_advance_id: Mapped[str | None] = mapped_column(
        ForeignKey("payments.id"), nullable=True
    )
    settlement_type: Mapped[SettlementType | None] = mapped_column(
        _enum(SettlementType, "settlement_type_enum"), nullable=True
    )
    manager_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    expense_category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )


class Order(Base):
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    branch_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    project_id: Mapped[str | None] = mapped_column(
        ForeignKey("projects.id"), nullable=True
    )
    supplier_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(19, 4), nullable=False)
    status: Mapped[OrderStatus] = mapped_column(
        _enum(OrderStatus, "order_status_enum"),
        nullable=False,
        default=OrderStatus.PENDING,
    )
    treasury_account_id: Mapped[str | None] = mapped_column(
        ForeignKey("treasury_accounts.id"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )


class LaborGroup(Base):
    __tablename__ = "labor_groups"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    branch_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    project_id: Mapped[str | None] = mapped_column(
        ForeignKey("projects.id"), nullable=True
    )
    total_amount: Mapped[Decimal] = mapped_column(Numeric(19, 4), nullable=False)
    status: Mapped[OrderStatus] = mapped_column(
        _enum(OrderStatus, "labor_group_status_enum"),
        nullable=False,
        default=OrderStatus.PENDING,
    )
    payment_method: Mapped[LaborPaymentMethod | None] = mapped_column(
        _enum(LaborPaymentMethod, "labor_payment_method_enum"), nullable=True
    )
    treasury_account_id: Mapped[str | None] = mapped_column(
        ForeignKey("treasury_accounts.id"), nullable=True
    )
    linked_advance_id: Mapped[str | None] = mapped_column(
        ForeignKey("payments.id"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
