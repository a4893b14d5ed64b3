"""
Ledger transaction model.

One row per financial effect on one treasury account. The
amount is always positive; the sign lives in transaction_type.
Rows are never updated. A reversal deletes them after it has
compensated the account balance.
"""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    String, DateTime, Numeric, ForeignKey, CheckConstraint,
    Enum as SAEnum, Index,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from treasury_ledger.models.base import Base
from treasury_ledger.models.enums import Direction, ReferenceType


class LedgerTransaction(Base):
    __tablename__ = "treasury_transactions"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_treasury_transactions_amount_positive"),
        Index(
            "ix_treasury_transactions_reference",
            "tenant_id", "reference_type", "reference_id",
        ),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    account_id: Mapped[str] = mapped_column(
        ForeignKey("treasury_accounts.id"), nullable=False, index=True
    )
    transaction_type: Mapped[Direction] = mapped_column(
        SAEnum(
            Direction,
            name="treasury_direction_enum",
            values_callable=lambda e: [m.value for m in e],
            create_constraint=True,
        ),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(19, 4), nullable=False)
    reference_type: Mapped[ReferenceType | None] = mapped_column(
        SAEnum(
            ReferenceType,
            name="treasury_reference_type_enum",
            values_callable=lambda e: [m.value for m in e],
            create_constraint=True,
        ),
        nullable=True,
    )
    reference_id: Mapped[str | None] = mapped_column(
        String(64), nullable=True
    )
    description: Mapped[str | None] = mapped_column(
        String(500), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )

    account: Mapped["TreasuryAccount"] = relationship(
        back_populates="transactions"
    )

    @property
    def signed_amount(self) -> Decimal:
        if self.transaction_type == Direction.INFLOW:
            return self.amount
        return -self.amount

    def __repr__(self) -> str:
        return (
            f"<LedgerTransaction {self.transaction_type.value} "
            f"{self.amount} ({self.reference_type and self.reference_type.value}"
            f":{self.reference_id})>"
        )
