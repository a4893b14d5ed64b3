"""
Shared request dependencies and error translation for the API.
"""

from fastapi import Header, HTTPException

from treasury_ledger.context import TenantContext
from treasury_ledger.exceptions import (
    TreasuryError,
    ValidationError,
    AccountNotFoundError,
    RecordNotFoundError,
    AccountHasTransactionsError,
)


def get_tenant_context(
    x_tenant_id: str | None = Header(default=None),
    x_branch_id: str | None = Header(default=None),
) -> TenantContext:
    """Build the request's tenant scope from headers. Missing ids stay None."""
    return TenantContext(tenant_id=x_tenant_id, branch_id=x_branch_id)


def status_for(error: TreasuryError) -> int:
    if isinstance(error, ValidationError):
        return 400
    if isinstance(error, (AccountNotFoundError, RecordNotFoundError)):
        return 404
    if isinstance(error, AccountHasTransactionsError):
        return 409
    # PersistenceError, BalanceMismatchError
    return 500


def to_http_exception(error: TreasuryError) -> HTTPException:
    return HTTPException(
        status_code=status_for(error),
        detail={
            "success": False,
            "error": error.message,
            "error_code": error.code,
        },
    )
