"""
Request-scoped tenant and branch context.

Every service takes a TenantContext explicitly instead of
reading the active tenant from global state.
"""

from dataclasses import dataclass

from treasury_ledger.exceptions import (
    TenantNotSelectedError,
    BranchNotSelectedError,
)


@dataclass(frozen=True)
class TenantContext:
    tenant_id: str | None = None
    branch_id: str | None = None

    def require_tenant(self) -> str:
        if not self.tenant_id or not self.tenant_id.strip():
            raise TenantNotSelectedError()
        return self.tenant_id

    def require_branch(self) -> str:
        if not self.branch_id or not self.branch_id.strip():
            raise BranchNotSelectedError()
        return self.branch_id
