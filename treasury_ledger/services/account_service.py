"""
Treasury account service: lifecycle of bank accounts and cash
boxes for the current tenant branch.

Balances are read-only here. current_balance starts equal to
initial_balance and from then on only the LedgerService moves it.
"""

import logging
from decimal import Decimal

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from treasury_ledger.context import TenantContext
from treasury_ledger.exceptions import (
    ValidationError,
    AccountNotFoundError,
    AccountHasTransactionsError,
)
from treasury_ledger.models.treasury_account import TreasuryAccount
from treasury_ledger.models.ledger_transaction import LedgerTransaction
from treasury_ledger.schemas.account import (
    AccountCreate,
    AccountUpdate,
    AccountFilter,
)

logger = logging.getLogger(__name__)


class TreasuryAccountService:

    def __init__(self, db: Session, context: TenantContext):
        self.db = db
        self.context = context

    def _scoped(self, query):
        return query.where(
            TreasuryAccount.tenant_id == self.context.require_tenant(),
            TreasuryAccount.branch_id == self.context.require_branch(),
        )

    def create_account(self, request: AccountCreate) -> TreasuryAccount:
        """
        Open a treasury account in the current branch.

        Fails closed when no tenant or branch is selected.
        """
        tenant_id = self.context.require_tenant()
        branch_id = self.context.require_branch()

        if request.initial_balance < 0:
            raise ValidationError("Initial balance cannot be negative")

        account = TreasuryAccount(
            tenant_id=tenant_id,
            branch_id=branch_id,
            name=request.name,
            kind=request.kind,
            access_scope=request.access_scope,
            currency=request.currency,
            initial_balance=request.initial_balance,
            current_balance=request.initial_balance,
        )
        self.db.add(account)
        self.db.flush()

        logger.info(
            f"Created treasury account {account.id} ({account.name}, "
            f"{account.currency}) for tenant={tenant_id} branch={branch_id}"
        )
        return account

    def find_account(self, account_id: str) -> TreasuryAccount | None:
        if not account_id:
            return None
        return self.db.execute(
            self._scoped(select(TreasuryAccount)).where(
                TreasuryAccount.id == account_id
            )
        ).scalar_one_or_none()

    def get_account(self, account_id: str) -> TreasuryAccount:
        account = self.find_account(account_id)
        if not account:
            raise AccountNotFoundError(account_id)
        return account

    def list_accounts(
        self, filters: AccountFilter | None = None
    ) -> list[TreasuryAccount]:
        """Accounts of the current branch, newest first."""
        query = self._scoped(select(TreasuryAccount))
        if filters is not None:
            if filters.kind is not None:
                query = query.where(TreasuryAccount.kind == filters.kind)
            if filters.access_scope is not None:
                query = query.where(
                    TreasuryAccount.access_scope == filters.access_scope
                )
            if filters.currency is not None:
                query = query.where(
                    TreasuryAccount.currency == filters.currency.upper()
                )
        accounts = self.db.execute(
            query.order_by(TreasuryAccount.created_at.desc())
        ).scalars().all()
        return list(accounts)

    def count_transactions(self, account_id: str) -> int:
        return self.db.execute(
            select(func.count(LedgerTransaction.id)).where(
                LedgerTransaction.account_id == account_id,
                LedgerTransaction.tenant_id == self.context.require_tenant(),
            )
        ).scalar_one()

    def update_account(
        self, account_id: str, request: AccountUpdate
    ) -> TreasuryAccount:
        """
        Update descriptive fields.

        The currency label may only be corrected while the account
        has no transactions; after that it is fixed.
        """
        account = self.get_account(account_id)
        changes = request.model_dump(exclude_unset=True, exclude_none=True)

        new_currency = changes.get("currency")
        if new_currency and new_currency != account.currency:
            if self.count_transactions(account.id):
                raise ValidationError(
                    f"Currency of account {account.id} cannot change "
                    f"once transactions exist",
                    code="CURRENCY_LOCKED",
                )

        for field, value in changes.items():
            setattr(account, field, value)

        self.db.flush()
        return account

    def delete_account(self, account_id: str) -> None:
        """
        Hard-delete an account.

        Refused while ledger transactions reference it: they are
        neither cascaded nor orphaned.
        """
        account = self.get_account(account_id)
        count = self.count_transactions(account.id)
        if count:
            raise AccountHasTransactionsError(
                f"Account {account.id} has {count} ledger transaction(s) "
                f"and cannot be deleted"
            )
        self.db.delete(account)
        self.db.flush()
        logger.info(f"Deleted treasury account {account_id}")

    def get_balance(self, account_id: str) -> Decimal:
        return self.get_account(account_id).current_balance
