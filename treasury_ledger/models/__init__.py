"""
Database models package.

All models must be imported here so that Alembic can discover
them through Base.metadata when generating migrations.
"""

from treasury_ledger.models.base import Base
from treasury_ledger.models.enums import (
    AccountKind,
    AccessScope,
    Direction,
    ReferenceType,
    PaymentKind,
    PaymentStatus,
    SettlementType,
    OrderStatus,
    LaborPaymentMethod,
)
from treasury_ledger.models.treasury_account import TreasuryAccount
from treasury_ledger.models.ledger_transaction import LedgerTransaction
from treasury_ledger.models.originators import (
    Project,
    Payment,
    Order,
    LaborGroup,
)

__all__ = [
    "Base",
    "AccountKind",
    "AccessScope",
    "Direction",
    "ReferenceType",
    "PaymentKind",
    "PaymentStatus",
    "SettlementType",
    "OrderStatus",
    "LaborPaymentMethod",
    "TreasuryAccount",
    "LedgerTransaction",
    "Project",
    "Payment",
    "Order",
    "LaborGroup",
]
