"""
Pydantic schemas for treasury account operations.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from treasury_ledger.config import get_settings
from treasury_ledger.models.enums import AccountKind, AccessScope


class AccountCreate(BaseModel):
    """Request to open a treasury account for the current branch."""
    name: str = Field(min_length=1, max_length=100)
    kind: AccountKind = AccountKind.BANK
    access_scope: AccessScope = AccessScope.PUBLIC
    currency: str = Field(
        default_factory=lambda: get_settings().DEFAULT_CURRENCY,
        min_length=3,
        max_length=3,
    )
    initial_balance: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=4)

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return v.strip().upper()


class AccountUpdate(BaseModel):
    """
    Descriptive fields only.

    Balances are not part of this schema and extra fields are
    forbidden, so a patch carrying current_balance is rejected.
    """
    name: str | None = Field(default=None, min_length=1, max_length=100)
    kind: AccountKind | None = None
    access_scope: AccessScope | None = None
    currency: str | None = Field(default=None, min_length=3, max_length=3)

    model_config = {"extra": "forbid"}

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, v: str | None) -> str | None:
        return v.strip().upper() if v is not None else v


class AccountFilter(BaseModel):
    kind: AccountKind | None = None
    access_scope: AccessScope | None = None
    currency: str | None = None


class AccountResponse(BaseModel):
    id: str
    branch_id: str
    name: str
    kind: AccountKind
    access_scope: AccessScope
    currency: str
    initial_balance: Decimal
    current_balance: Decimal
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
