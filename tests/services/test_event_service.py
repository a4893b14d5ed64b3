"""
Tests for the FinancialEventService.

Every originator either records exactly one ledger transaction
tagged with its own id, or (settlements, labor paid from an
advance) records none. A ledger failure never leaves a visible
record behind.
"""

from decimal import Decimal

import pytest
from sqlalchemy import select, func

from treasury_ledger.exceptions import (
    ValidationError,
    InsufficientBalanceError,
    AccountNotFoundError,
    RecordNotFoundError,
    PersistenceError,
)
from treasury_ledger.models.enums import (
    Direction,
    ReferenceType,
    PaymentKind,
    OrderStatus,
    LaborPaymentMethod,
)
from treasury_ledger.models.ledger_transaction import LedgerTransaction
from treasury_ledger.models.originators import Payment, Order, LaborGroup
from treasury_ledger.schemas.events import (
    IncomeCreate,
    AdvanceCreate,
    SettlementCreate,
    ExpenseCreate,
    OrderPayment,
    LaborPayment,
    PaymentAmountUpdate,
)
from treasury_ledger.services.event_service import (
    EVENT_POLICY,
    FinancialEvent,
    FinancialEventService,
)
from treasury_ledger.services.ledger_service import LedgerService


def ledger_rows(db):
    return db.execute(select(LedgerTransaction)).scalars().all()


def payment_count(db):
    return db.execute(select(func.count(Payment.id))).scalar_one()


def balance_of(db, context, account_id):
    return LedgerService(db, context)._read_persisted_balance(account_id)


def make_order(db, amount="300"):
    order = Order(
        tenant_id="tenant-1", branch_id="branch-1",
        supplier_name="Cement Co", amount=Decimal(amount),
    )
    db.add(order)
    db.flush()
    return order


def make_labor_group(db, total="400"):
    group = LaborGroup(
        tenant_id="tenant-1", branch_id="branch-1", total_amount=Decimal(total),
    )
    db.add(group)
    db.flush()
    return group


@pytest.fixture
def account(make_account):
    return make_account(initial_balance="2000")


@pytest.fixture
def service(db_session, context):
    return FinancialEventService(db_session, context)


@pytest.fixture
def advance(service, account):
    return service.issue_advance(AdvanceCreate(
        account_id=account.id, amount=Decimal("1000"), manager_name="Site Eng",
    )).record


class TestEventPolicy:

    def test_cash_movements(self):
        assert EVENT_POLICY[FinancialEvent.INCOME_RECEIVED] == (
            Direction.INFLOW, ReferenceType.INCOME
        )
        assert EVENT_POLICY[FinancialEvent.ORDER_PAID] == (
            Direction.OUTFLOW, ReferenceType.ORDER
        )
        assert EVENT_POLICY[FinancialEvent.LABOR_PAID_FROM_TREASURY] == (
            Direction.OUTFLOW, ReferenceType.LABOR_GROUP
        )

    def test_advances_are_expense_outflows(self):
        assert EVENT_POLICY[FinancialEvent.ADVANCE_ISSUED] == (
            Direction.OUTFLOW, ReferenceType.EXPENSE
        )

    def test_settlements_never_reach_the_ledger(self):
        assert EVENT_POLICY[FinancialEvent.ADVANCE_SETTLED] is None
        assert EVENT_POLICY[FinancialEvent.LABOR_PAID_FROM_ADVANCE] is None


class TestPayments:

    def test_income_records_inflow_tagged_with_payment(
        self, db_session, context, service, account
    ):
        outcome = service.record_income(IncomeCreate(
            account_id=account.id, amount=Decimal("500"),
        ))

        payment = outcome.record
        assert payment.kind == PaymentKind.INCOME
        assert outcome.ledger.new_balance == Decimal("2500")
        [row] = ledger_rows(db_session)
        assert row.reference_type == ReferenceType.INCOME
        assert row.reference_id == payment.id
        assert row.transaction_type == Direction.INFLOW

    def test_ledger_failure_removes_payment(self, db_session, service):
        with pytest.raises(AccountNotFoundError):
            service.record_income(IncomeCreate(
                account_id="missing", amount=Decimal("500"),
            ))
        assert payment_count(db_session) == 0
        assert ledger_rows(db_session) == []

    def test_unknown_project_rejected(self, db_session, service, account):
        with pytest.raises(RecordNotFoundError):
            service.pay_expense(ExpenseCreate(
                account_id=account.id, amount=Decimal("5"), project_id="nope",
            ))
        assert payment_count(db_session) == 0

    def test_expense_records_outflow(self, db_session, context, service, account):
        outcome = service.pay_expense(ExpenseCreate(
            account_id=account.id, amount=Decimal("120"),
            expense_category="Utilities",
        ))
        assert outcome.record.kind == PaymentKind.REGULAR
        assert balance_of(db_session, context, account.id) == Decimal("1880")
        [row] = ledger_rows(db_session)
        assert row.reference_type == ReferenceType.EXPENSE


class TestAdvances:

    def test_issue_is_an_outflow(self, db_session, context, account, advance):
        assert advance.remaining_amount == Decimal("1000")
        assert balance_of(db_session, context, account.id) == Decimal("1000")
        [row] = ledger_rows(db_session)
        assert row.reference_type == ReferenceType.EXPENSE
        assert row.reference_id == advance.id

    def test_settlement_only_moves_remaining_amount(
        self, db_session, context, service, account, advance
    ):
        outcome = service.settle_advance(SettlementCreate(
            advance_id=advance.id, amount=Decimal("400"),
        ))

        assert outcome.ledger is None
        assert outcome.record.linked_advance_id == advance.id
        assert advance.remaining_amount == Decimal("600")
        assert len(ledger_rows(db_session)) == 1
        assert balance_of(db_session, context, account.id) == Decimal("1000")

    def test_over_settlement_clamps_at_zero(self, service, advance):
        service.settle_advance(SettlementCreate(
            advance_id=advance.id, amount=Decimal("1500"),
        ))
        assert advance.remaining_amount == Decimal("0")

    def test_settlement_needs_an_advance(self, service, account):
        income = service.record_income(IncomeCreate(
            account_id=account.id, amount=Decimal("10"),
        )).record
        with pytest.raises(ValidationError) as exc:
            service.settle_advance(SettlementCreate(
                advance_id=income.id, amount=Decimal("5"),
            ))
        assert exc.value.code == "NOT_AN_ADVANCE"


class TestUpdatePaymentAmount:

    def test_income_is_reversed_and_recorded_again(
        self, db_session, context, service, account
    ):
        income = service.record_income(IncomeCreate(
            account_id=account.id, amount=Decimal("200"),
        )).record

        outcome = service.update_payment_amount(
            income.id, PaymentAmountUpdate(amount=Decimal("300"))
        )

        assert outcome.reversal.reversed == 1
        assert outcome.ledger.new_balance == Decimal("2300")
        [row] = ledger_rows(db_session)
        assert row.amount == Decimal("300")
        assert row.reference_id == income.id

    def test_advance_remaining_is_rescaled(
        self, db_session, context, service, account, advance
    ):
        service.settle_advance(SettlementCreate(
            advance_id=advance.id, amount=Decimal("400"),
        ))

        service.update_payment_amount(
            advance.id, PaymentAmountUpdate(amount=Decimal("500"))
        )

        assert advance.amount == Decimal("500")
        assert advance.remaining_amount == Decimal("300")
        assert balance_of(db_session, context, account.id) == Decimal("1500")

    def test_settlement_change_adjusts_advance_only(
        self, db_session, service, advance
    ):
        settlement = service.settle_advance(SettlementCreate(
            advance_id=advance.id, amount=Decimal("400"),
        )).record

        service.update_payment_amount(
            settlement.id, PaymentAmountUpdate(amount=Decimal("100"))
        )

        assert settlement.amount == Decimal("100")
        assert advance.remaining_amount == Decimal("900")
        assert len(ledger_rows(db_session)) == 1

    def test_failed_re_record_restores_old_amount(
        self, db_session, context, service, account, monkeypatch
    ):
        income = service.record_income(IncomeCreate(
            account_id=account.id, amount=Decimal("200"),
        )).record
        original = FinancialEventService._record

        def refuse_new_amount(self, event, account_id, amount, reference_id, description):
            if Decimal(amount) == Decimal("300"):
                raise PersistenceError("down", code="BALANCE_UPDATE_FAILED")
            return original(self, event, account_id, amount, reference_id, description)

        monkeypatch.setattr(FinancialEventService, "_record", refuse_new_amount)

        with pytest.raises(PersistenceError):
            service.update_payment_amount(
                income.id, PaymentAmountUpdate(amount=Decimal("300"))
            )

        assert income.amount == Decimal("200")
        assert balance_of(db_session, context, account.id) == Decimal("2200")
        [row] = ledger_rows(db_session)
        assert row.amount == Decimal("200")


class TestDeletePayment:

    def test_delete_reverses_treasury_effect(
        self, db_session, context, service, account
    ):
        expense = service.pay_expense(ExpenseCreate(
            account_id=account.id, amount=Decimal("250"),
        )).record

        summary = service.delete_payment(expense.id)

        assert summary.reversed == 1
        assert payment_count(db_session) == 0
        assert ledger_rows(db_session) == []
        assert balance_of(db_session, context, account.id) == Decimal("2000")

    def test_advance_with_settlements_cannot_be_deleted(self, service, advance):
        service.settle_advance(SettlementCreate(
            advance_id=advance.id, amount=Decimal("100"),
        ))
        with pytest.raises(ValidationError) as exc:
            service.delete_payment(advance.id)
        assert exc.value.code == "ADVANCE_HAS_SETTLEMENTS"

    def test_deleting_settlement_restores_advance(self, db_session, service, advance):
        settlement = service.settle_advance(SettlementCreate(
            advance_id=advance.id, amount=Decimal("400"),
        )).record

        assert service.delete_payment(settlement.id) is None
        assert advance.remaining_amount == Decimal("1000")
        assert len(ledger_rows(db_session)) == 1

    def test_failed_reversal_keeps_payment(
        self, db_session, service, account, monkeypatch
    ):
        income = service.record_income(IncomeCreate(
            account_id=account.id, amount=Decimal("10"),
        )).record

        def broken(self, txn):
            raise PersistenceError("locked", code="TRANSACTION_DELETE_FAILED")

        monkeypatch.setattr(LedgerService, "_reverse_one", broken)

        with pytest.raises(PersistenceError) as exc:
            service.delete_payment(income.id)
        assert exc.value.code == "REVERSAL_INCOMPLETE"
        assert payment_count(db_session) == 1

    def test_unknown_payment(self, service):
        with pytest.raises(RecordNotFoundError):
            service.delete_payment("missing")


class TestOrders:

    def test_pay_order(self, db_session, context, service, account):
        order = make_order(db_session)

        outcome = service.pay_order(order.id, OrderPayment(account_id=account.id))

        assert outcome.record.status == OrderStatus.PAID
        assert outcome.record.treasury_account_id == account.id
        assert outcome.ledger.new_balance == Decimal("1700")
        [row] = ledger_rows(db_session)
        assert row.reference_type == ReferenceType.ORDER
        assert row.reference_id == order.id

    def test_pay_twice_rejected(self, db_session, service, account):
        order = make_order(db_session)
        service.pay_order(order.id, OrderPayment(account_id=account.id))

        with pytest.raises(ValidationError) as exc:
            service.pay_order(order.id, OrderPayment(account_id=account.id))
        assert exc.value.code == "ORDER_ALREADY_PAID"

    def test_ledger_failure_reverts_order(self, db_session, service):
        order = make_order(db_session)

        with pytest.raises(AccountNotFoundError):
            service.pay_order(order.id, OrderPayment(account_id="missing"))

        assert order.status == OrderStatus.PENDING
        assert order.treasury_account_id is None
        assert ledger_rows(db_session) == []

    def test_cancel_payment(self, db_session, context, service, account):
        order = make_order(db_session)
        service.pay_order(order.id, OrderPayment(account_id=account.id))

        outcome = service.cancel_order_payment(order.id)

        assert outcome.reversal.reversed == 1
        assert order.status == OrderStatus.PENDING
        assert balance_of(db_session, context, account.id) == Decimal("2000")

    def test_zero_amount_order_is_paid_without_ledger_call(
        self, db_session, context, service, account
    ):
        order = make_order(db_session, amount="0")

        outcome = service.pay_order(order.id, OrderPayment(account_id=account.id))

        assert outcome.ledger is None
        assert order.status == OrderStatus.PAID
        assert ledger_rows(db_session) == []
        assert balance_of(db_session, context, account.id) == Decimal("2000")

        service.cancel_order_payment(order.id)
        assert order.status == OrderStatus.PENDING

    def test_cancel_unpaid_order_rejected(self, db_session, service):
        order = make_order(db_session)
        with pytest.raises(ValidationError) as exc:
            service.cancel_order_payment(order.id)
        assert exc.value.code == "ORDER_NOT_PAID"


class TestLaborPayroll:

    def test_pay_from_treasury(self, db_session, context, service, account):
        group = make_labor_group(db_session)

        outcome = service.pay_labor_group(group.id, LaborPayment(
            payment_method=LaborPaymentMethod.TREASURY, account_id=account.id,
        ))

        assert outcome.record.status == OrderStatus.PAID
        assert outcome.ledger.new_balance == Decimal("1600")
        [row] = ledger_rows(db_session)
        assert row.reference_type == ReferenceType.LABOR_GROUP
        assert row.reference_id == group.id

    def test_treasury_payment_needs_account(self, db_session, service):
        group = make_labor_group(db_session)
        with pytest.raises(ValidationError) as exc:
            service.pay_labor_group(group.id, LaborPayment(
                payment_method=LaborPaymentMethod.TREASURY,
            ))
        assert exc.value.code == "NO_ACCOUNT_ID"

    def test_ledger_failure_leaves_group_unpaid(self, db_session, service):
        group = make_labor_group(db_session)
        with pytest.raises(AccountNotFoundError):
            service.pay_labor_group(group.id, LaborPayment(
                payment_method=LaborPaymentMethod.TREASURY, account_id="missing",
            ))
        assert group.status == OrderStatus.PENDING
        assert group.payment_method is None

    def test_pay_from_advance_skips_ledger(
        self, db_session, context, service, account, advance
    ):
        group = make_labor_group(db_session, total="400")

        outcome = service.pay_labor_group(group.id, LaborPayment(
            payment_method=LaborPaymentMethod.ADVANCE, advance_id=advance.id,
        ))

        assert outcome.ledger is None
        assert outcome.record.linked_advance_id == advance.id
        assert advance.remaining_amount == Decimal("600")
        assert len(ledger_rows(db_session)) == 1
        assert balance_of(db_session, context, account.id) == Decimal("1000")

    def test_zero_total_is_paid_without_ledger_call(
        self, db_session, context, service, account
    ):
        group = make_labor_group(db_session, total="0")

        outcome = service.pay_labor_group(group.id, LaborPayment(
            payment_method=LaborPaymentMethod.TREASURY, account_id=account.id,
        ))

        assert outcome.ledger is None
        assert group.status == OrderStatus.PAID
        assert group.payment_method == LaborPaymentMethod.TREASURY
        assert ledger_rows(db_session) == []
        assert balance_of(db_session, context, account.id) == Decimal("2000")

    def test_advance_must_cover_total(self, db_session, service, advance):
        group = make_labor_group(db_session, total="1500")
        with pytest.raises(InsufficientBalanceError) as exc:
            service.pay_labor_group(group.id, LaborPayment(
                payment_method=LaborPaymentMethod.ADVANCE, advance_id=advance.id,
            ))
        assert exc.value.code == "INSUFFICIENT_ADVANCE_BALANCE"
        assert advance.remaining_amount == Decimal("1000")
