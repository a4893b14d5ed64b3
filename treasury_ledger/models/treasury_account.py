"""
Treasury account model.

A bank account or cash box belonging to one tenant branch.
current_balance is a denormalized running total: only the
LedgerService writes it, always through a version-checked
compare-and-swap.
"""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import String, DateTime, Numeric, Integer, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from treasury_ledger.models.base import Base
from treasury_ledger.models.enums import AccountKind, AccessScope


class TreasuryAccount(Base):
    __tablename__ = "treasury_accounts"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    tenant_id: Mapped[str] = mapped_column(
        String(64), nullable=False, index=True
    )
    branch_id: Mapped[str] = mapped_column(
        String(64), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    kind: Mapped[AccountKind] = mapped_column(
        "type",
        SAEnum(
            AccountKind,
            name="treasury_account_kind_enum",
            values_callable=lambda e: [m.value for m in e],
            create_constraint=True,
        ),
        nullable=False,
        default=AccountKind.BANK,
    )
    access_scope: Mapped[AccessScope] = mapped_column(
        "account_type",
        SAEnum(
            AccessScope,
            name="treasury_access_scope_enum",
            values_callable=lambda e: [m.value for m in e],
            create_constraint=True,
        ),
        nullable=False,
        default=AccessScope.PUBLIC,
    )
    currency: Mapped[str] = mapped_column(
        String(3), nullable=False, default="SAR"
    )
    initial_balance: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False, default=Decimal("0")
    )
    current_balance: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False, default=Decimal("0")
    )
    version: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    transactions: Mapped[list["LedgerTransaction"]] = relationship(
        back_populates="account"
    )

    def __repr__(self) -> str:
        return (
            f"<TreasuryAccount {self.name} "
            f"{self.current_balance} {self.currency}>"
        )
