"""
Tests for the TreasuryAccountService.
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError as SchemaError

from treasury_ledger.context import TenantContext
from treasury_ledger.exceptions import (
    ValidationError,
    TenantNotSelectedError,
    BranchNotSelectedError,
    AccountNotFoundError,
    AccountHasTransactionsError,
)
from treasury_ledger.models.enums import AccountKind, Direction
from treasury_ledger.models.treasury_account import TreasuryAccount
from treasury_ledger.schemas.account import (
    AccountCreate,
    AccountUpdate,
    AccountFilter,
)
from treasury_ledger.services.account_service import TreasuryAccountService
from treasury_ledger.services.ledger_service import LedgerService


class TestCreateAccount:

    def test_current_balance_starts_at_initial_balance(self, db_session, context):
        service = TreasuryAccountService(db_session, context)
        account = service.create_account(AccountCreate(
            name="Cash Box", kind=AccountKind.CASH_BOX,
            initial_balance=Decimal("250.50"),
        ))
        db_session.commit()

        assert account.id is not None
        assert account.current_balance == Decimal("250.50")
        assert account.initial_balance == Decimal("250.50")
        assert account.tenant_id == "tenant-1"
        assert account.branch_id == "branch-1"
        assert account.version == 1

    def test_currency_defaults_and_is_uppercased(self, db_session, context):
        service = TreasuryAccountService(db_session, context)
        default = service.create_account(AccountCreate(name="A"))
        usd = service.create_account(AccountCreate(name="B", currency="usd"))

        assert default.currency == "SAR"
        assert usd.currency == "USD"

    def test_negative_initial_balance_rejected_by_schema(self):
        with pytest.raises(SchemaError):
            AccountCreate(name="A", initial_balance=Decimal("-1"))

    def test_requires_tenant(self, db_session):
        service = TreasuryAccountService(db_session, TenantContext())
        with pytest.raises(TenantNotSelectedError):
            service.create_account(AccountCreate(name="A"))

    def test_requires_branch(self, db_session):
        service = TreasuryAccountService(
            db_session, TenantContext(tenant_id="tenant-1")
        )
        with pytest.raises(BranchNotSelectedError):
            service.create_account(AccountCreate(name="A"))


class TestReadAccounts:

    def test_list_is_scoped_to_branch(self, db_session, context, make_account):
        make_account(name="Here")
        make_account(
            name="Other branch",
            ctx=TenantContext(tenant_id="tenant-1", branch_id="branch-2"),
        )
        make_account(
            name="Other tenant",
            ctx=TenantContext(tenant_id="tenant-2", branch_id="branch-1"),
        )

        accounts = TreasuryAccountService(db_session, context).list_accounts()
        assert [a.name for a in accounts] == ["Here"]

    def test_list_filters_by_kind(self, db_session, context, make_account):
        make_account(name="Bank", kind=AccountKind.BANK)
        make_account(name="Box", kind=AccountKind.CASH_BOX)

        service = TreasuryAccountService(db_session, context)
        boxes = service.list_accounts(AccountFilter(kind=AccountKind.CASH_BOX))
        assert [a.name for a in boxes] == ["Box"]

    def test_account_of_other_tenant_is_not_found(self, db_session, make_account):
        account = make_account()
        other = TenantContext(tenant_id="tenant-2", branch_id="branch-1")

        with pytest.raises(AccountNotFoundError):
            TreasuryAccountService(db_session, other).get_account(account.id)

    def test_get_balance(self, db_session, context, make_account):
        account = make_account(initial_balance="75")
        service = TreasuryAccountService(db_session, context)
        assert service.get_balance(account.id) == Decimal("75")


class TestUpdateAccount:

    def test_rename(self, db_session, context, make_account):
        account = make_account(name="Old")
        service = TreasuryAccountService(db_session, context)

        updated = service.update_account(account.id, AccountUpdate(name="New"))
        assert updated.name == "New"

    def test_balance_fields_are_not_accepted(self):
        with pytest.raises(SchemaError):
            AccountUpdate(current_balance=Decimal("1000"))

    def test_currency_can_change_before_any_transaction(
        self, db_session, context, make_account
    ):
        account = make_account()
        service = TreasuryAccountService(db_session, context)

        updated = service.update_account(account.id, AccountUpdate(currency="eur"))
        assert updated.currency == "EUR"

    def test_currency_is_locked_once_transactions_exist(
        self, db_session, context, make_account
    ):
        account = make_account()
        LedgerService(db_session, context).record_transaction(
            account.id, Direction.INFLOW, Decimal("10")
        )
        service = TreasuryAccountService(db_session, context)

        with pytest.raises(ValidationError) as exc:
            service.update_account(account.id, AccountUpdate(currency="USD"))
        assert exc.value.code == "CURRENCY_LOCKED"


class TestDeleteAccount:

    def test_delete_empty_account(self, db_session, context, make_account):
        account = make_account()
        service = TreasuryAccountService(db_session, context)

        service.delete_account(account.id)
        db_session.commit()

        assert db_session.get(TreasuryAccount, account.id) is None

    def test_delete_refused_while_transactions_exist(
        self, db_session, context, make_account
    ):
        account = make_account()
        LedgerService(db_session, context).record_transaction(
            account.id, Direction.INFLOW, Decimal("10")
        )
        db_session.commit()

        service = TreasuryAccountService(db_session, context)
        with pytest.raises(AccountHasTransactionsError):
            service.delete_account(account.id)
        assert service.count_transactions(account.id) == 1
