"""
Treasury error taxonomy.

Every error carries a stable ``code`` so callers can show a
specific, actionable message instead of a generic failure.
"""


class TreasuryError(Exception):
    code = "TREASURY_ERROR"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        if code is not None:
            self.code = code

    @property
    def message(self) -> str:
        return str(self)


class ValidationError(TreasuryError, ValueError):
    """Bad input. The caller fixes the request; never retried."""
    code = "VALIDATION_ERROR"


class TenantNotSelectedError(ValidationError):
    code = "NO_TENANT_ID"

    def __init__(self, message: str = "Select a company first"):
        super().__init__(message)


class BranchNotSelectedError(ValidationError):
    code = "NO_BRANCH_ID"

    def __init__(self, message: str = "Select a branch first"):
        super().__init__(message)


class InvalidAmountError(ValidationError):
    code = "INVALID_AMOUNT"


class InsufficientBalanceError(ValidationError):
    code = "INSUFFICIENT_BALANCE"


class AccountNotFoundError(TreasuryError, LookupError):
    code = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_id):
        super().__init__(f"Treasury account not found: {account_id}")
        self.account_id = account_id


class RecordNotFoundError(TreasuryError, LookupError):
    code = "RECORD_NOT_FOUND"


class AccountHasTransactionsError(TreasuryError):
    code = "ACCOUNT_HAS_TRANSACTIONS"


class PersistenceError(TreasuryError):
    """An underlying write failed after one compensating action."""
    code = "PERSISTENCE_ERROR"


class BalanceMismatchError(TreasuryError):
    """
    The stored balance differs from the value the engine just wrote.

    Always fatal: it means a concurrent writer or a bug.
    """
    code = "BALANCE_MISMATCH"

    def __init__(self, account_id, expected, actual):
        super().__init__(
            f"Balance mismatch on account {account_id}: "
            f"expected {expected}, got {actual}"
        )
        self.account_id = account_id
        self.expected = expected
        self.actual = actual
