"""
Shared enumerations for database models.

Using Python enums mapped to database enums ensures that
only valid values can be stored.
"""

import enum


class AccountKind(str, enum.Enum):
    """Physical kind of a treasury account."""
    BANK = "bank"
    CASH_BOX = "cash_box"


class AccessScope(str, enum.Enum):
    PUBLIC = "public"
    PRIVATE = "private"


class Direction(str, enum.Enum):
    """Direction of a ledger transaction. Amounts are always positive."""
    INFLOW = "inflow"
    OUTFLOW = "outflow"


class ReferenceType(str, enum.Enum):
    """
    Kinds of domain records a ledger transaction can point back to.

    Reporting classifies cash movements by this tag, so the set
    is closed: an unknown tag is rejected at validation time.
    """
    INCOME = "income"
    EXPENSE = "expense"
    ORDER = "order"
    LABOR_GROUP = "labor_group"
    PAYMENT = "payment"
    DEPOSIT = "deposit"
    TRANSFER = "transfer"


class PaymentKind(str, enum.Enum):
    INCOME = "income"
    REGULAR = "regular"
    ADVANCE = "advance"
    SETTLEMENT = "settlement"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    PAID = "paid"


class SettlementType(str, enum.Enum):
    EXPENSE = "expense"
    RETURN = "return"


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"


class LaborPaymentMethod(str, enum.Enum):
    TREASURY = "treasury"
    ADVANCE = "advance"
