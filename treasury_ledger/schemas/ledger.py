"""
Pydantic schemas for ledger operations.

The API shape is kept separate from the storage shape. Amounts are
checked by the LedgerService, not here, so that a zero, negative,
over-precise or oversized amount always surfaces as INVALID_AMOUNT.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from treasury_ledger.models.enums import Direction, ReferenceType


# --- Request Schemas ---

class TransactionCreate(BaseModel):
    """createTransaction payload used by originators."""
    account_id: str = Field(max_length=36)
    transaction_type: Direction
    amount: Decimal
    reference_type: ReferenceType | None = None
    reference_id: str | None = Field(default=None, max_length=64)
    description: str | None = Field(default=None, max_length=500)


class FundsCreate(BaseModel):
    """Manager-supplied cash into an account."""
    account_id: str
    amount: Decimal
    description: str = Field(default="Funds added by manager", max_length=500)


class TransferCreate(BaseModel):
    source_account_id: str
    destination_account_id: str
    amount: Decimal
    description: str = Field(
        default="Funds transfer between accounts", max_length=500
    )


# --- Response Schemas ---

class TransactionResponse(BaseModel):
    id: str
    account_id: str
    transaction_type: Direction
    amount: Decimal
    reference_type: ReferenceType | None
    reference_id: str | None
    description: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class EnrichedTransactionResponse(TransactionResponse):
    """A transaction with the originating project attached on read."""
    project_id: str | None = None
    project_name: str | None = None


class RecordResult(BaseModel):
    """Outcome of a successful recordTransaction call."""
    success: bool = True
    transaction: TransactionResponse
    new_balance: Decimal
    account_name: str


class ReversalFailure(BaseModel):
    transaction_id: str
    account_id: str
    reason: str


class ReversalSummary(BaseModel):
    """
    Tally of a reverse-by-reference call.

    Partial failure is reported here rather than raised, so the
    caller can decide whether a mostly reversed event is acceptable.
    """
    reference_type: ReferenceType
    reference_id: str
    reversed: int = 0
    failed: int = 0
    failures: list[ReversalFailure] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.failed == 0

    @property
    def nothing_to_reverse(self) -> bool:
        return self.reversed == 0 and self.failed == 0


class ReversalResponse(BaseModel):
    success: bool
    reversed: int
    failed: int
    failures: list[ReversalFailure]
    message: str | None = None

    @classmethod
    def from_summary(cls, summary: ReversalSummary) -> "ReversalResponse":
        message = None
        if summary.nothing_to_reverse:
            message = "No treasury transaction found to reverse"
        return cls(
            success=summary.success,
            reversed=summary.reversed,
            failed=summary.failed,
            failures=summary.failures,
            message=message,
        )


class TransferResult(BaseModel):
    success: bool = True
    reference_id: str
    outflow: TransactionResponse
    inflow: TransactionResponse
    source_new_balance: Decimal
    destination_new_balance: Decimal


class StatementLine(BaseModel):
    transaction: TransactionResponse
    signed_amount: Decimal
    running_balance: Decimal


class AccountStatement(BaseModel):
    """
    Ordered account history, oldest first.

    running_balance starts from the account's initial balance.
    When no reference filter is applied, closing_balance must
    equal the stored current balance.
    """
    account_id: str
    account_name: str
    currency: str
    reference_type: ReferenceType | None = None
    opening_balance: Decimal
    closing_balance: Decimal
    current_balance: Decimal
    lines: list[StatementLine]


class BalanceCheck(BaseModel):
    account_id: str
    expected: Decimal
    stored: Decimal
    transaction_count: int

    @property
    def consistent(self) -> bool:
        return self.expected == self.stored


class BalanceCheckResponse(BaseModel):
    account_id: str
    expected: Decimal
    stored: Decimal
    transaction_count: int
    consistent: bool

    @classmethod
    def from_check(cls, check: BalanceCheck) -> "BalanceCheckResponse":
        return cls(**check.model_dump(), consistent=check.consistent)
