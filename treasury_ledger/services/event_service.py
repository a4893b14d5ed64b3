"""
Financial event service: the originators that feed the ledger.

Each operation writes its own record first, then records exactly
one ledger transaction tagged with that record's id. If the
ledger call fails the record is deleted (or reverted) before the
ledger's error is re-raised, so a visible payment or paid order
always implies a treasury movement.

Edits and deletions reverse by reference and, when an amount
changes, record a fresh transaction. Ledger rows are never
patched in place.

A zero-amount order or labor group is marked paid without a
ledger call, since the ledger only accepts positive amounts.

Advances are an internal float: issuing one is a real outflow,
but settlements and labor paid from an advance only decrement
the advance's remaining_amount and never touch the ledger.
"""

import enum
import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from treasury_ledger.context import TenantContext
from treasury_ledger.exceptions import (
    TreasuryError,
    ValidationError,
    InsufficientBalanceError,
    RecordNotFoundError,
    PersistenceError,
)
from treasury_ledger.models.enums import (
    Direction,
    ReferenceType,
    PaymentKind,
    PaymentStatus,
    OrderStatus,
    LaborPaymentMethod,
)
from treasury_ledger.models.originators import (
    Project,
    Payment,
    Order,
    LaborGroup,
)
from treasury_ledger.schemas.events import (
    IncomeCreate,
    AdvanceCreate,
    SettlementCreate,
    ExpenseCreate,
    OrderPayment,
    LaborPayment,
    PaymentAmountUpdate,
)
from treasury_ledger.schemas.ledger import RecordResult, ReversalSummary
from treasury_ledger.services.ledger_service import LedgerService, quantize

logger = logging.getLogger(__name__)


class FinancialEvent(str, enum.Enum):
    INCOME_RECEIVED = "income_received"
    ADVANCE_ISSUED = "advance_issued"
    ADVANCE_SETTLED = "advance_settled"
    ORDER_PAID = "order_paid"
    EXPENSE_PAID = "expense_paid"
    LABOR_PAID_FROM_TREASURY = "labor_paid_from_treasury"
    LABOR_PAID_FROM_ADVANCE = "labor_paid_from_advance"


# Ledger effect of each event. Reporting separates real cash
# movements from advance/settlement transfers by reference type,
# so this table must not drift. None means no ledger transaction.
EVENT_POLICY: dict[FinancialEvent, tuple[Direction, ReferenceType] | None] = {
    FinancialEvent.INCOME_RECEIVED: (Direction.INFLOW, ReferenceType.INCOME),
    FinancialEvent.ADVANCE_ISSUED: (Direction.OUTFLOW, ReferenceType.EXPENSE),
    FinancialEvent.ADVANCE_SETTLED: None,
    FinancialEvent.ORDER_PAID: (Direction.OUTFLOW, ReferenceType.ORDER),
    FinancialEvent.EXPENSE_PAID: (Direction.OUTFLOW, ReferenceType.EXPENSE),
    FinancialEvent.LABOR_PAID_FROM_TREASURY: (
        Direction.OUTFLOW, ReferenceType.LABOR_GROUP
    ),
    FinancialEvent.LABOR_PAID_FROM_ADVANCE: None,
}

PAYMENT_KIND_EVENT = {
    PaymentKind.INCOME: FinancialEvent.INCOME_RECEIVED,
    PaymentKind.ADVANCE: FinancialEvent.ADVANCE_ISSUED,
    PaymentKind.SETTLEMENT: FinancialEvent.ADVANCE_SETTLED,
    PaymentKind.REGULAR: FinancialEvent.EXPENSE_PAID,
}


@dataclass
class EventOutcome:
    """A domain record together with what happened in the ledger."""
    record: Payment | Order | LaborGroup
    ledger: RecordResult | None = None
    reversal: ReversalSummary | None = None


class FinancialEventService:

    def __init__(self, db: Session, context: TenantContext):
        self.db = db
        self.context = context
        self.ledger = LedgerService(db, context)

    # --- Lookups ---

    def _scope(self, model):
        return (
            model.tenant_id == self.context.require_tenant(),
            model.branch_id == self.context.require_branch(),
        )

    def _get(self, model, record_id: str, label: str):
        record = self.db.execute(
            select(model).where(model.id == record_id, *self._scope(model))
        ).scalar_one_or_none()
        if not record:
            raise RecordNotFoundError(f"{label} not found: {record_id}")
        return record

    def get_payment(self, payment_id: str) -> Payment:
        return self._get(Payment, payment_id, "Payment")

    def get_order(self, order_id: str) -> Order:
        return self._get(Order, order_id, "Order")

    def get_labor_group(self, labor_group_id: str) -> LaborGroup:
        return self._get(LaborGroup, labor_group_id, "Labor group")

    def get_advance(self, advance_id: str) -> Payment:
        advance = self.get_payment(advance_id)
        if advance.kind != PaymentKind.ADVANCE:
            raise ValidationError(
                f"Payment {advance_id} is not an advance",
                code="NOT_AN_ADVANCE",
            )
        return advance

    def _check_project(self, project_id: str | None) -> None:
        if project_id is not None:
            self._get(Project, project_id, "Project")

    @staticmethod
    def _remaining(advance: Payment) -> Decimal:
        if advance.remaining_amount is not None:
            return Decimal(advance.remaining_amount)
        return Decimal(advance.amount)

    # --- Ledger plumbing ---

    def _record(
        self,
        event: FinancialEvent,
        account_id: str,
        amount: Decimal,
        reference_id: str,
        description: str | None,
    ) -> RecordResult:
        direction, reference_type = EVENT_POLICY[event]
        return self.ledger.record_transaction(
            account_id=account_id,
            direction=direction,
            amount=amount,
            reference_type=reference_type,
            reference_id=reference_id,
            description=description,
        )

    def _discard(self, record) -> None:
        logger.warning(
            f"Rolling back {type(record).__name__} {record.id}: "
            f"ledger transaction failed"
        )
        self.db.delete(record)
        self.db.flush()

    def _new_payment(self, **fields) -> Payment:
        payment = Payment(
            tenant_id=self.context.require_tenant(),
            branch_id=self.context.require_branch(),
            **fields,
        )
        self.db.add(payment)
        self.db.flush()
        return payment

    def _record_payment(
        self, payment: Payment, event: FinancialEvent, account_id: str
    ) -> EventOutcome:
        try:
            result = self._record(
                event, account_id, payment.amount, payment.id, payment.description
            )
        except TreasuryError:
            self._discard(payment)
            raise
        return EventOutcome(record=payment, ledger=result)

    # --- Payments ---

    def record_income(self, request: IncomeCreate) -> EventOutcome:
        """Client or investor money received: an inflow tagged income."""
        self._check_project(request.project_id)
        payment = self._new_payment(
            kind=PaymentKind.INCOME,
            status=PaymentStatus.PAID,
            project_id=request.project_id,
            amount=request.amount,
            description=request.description,
        )
        return self._record_payment(
            payment, FinancialEvent.INCOME_RECEIVED, request.account_id
        )

    def issue_advance(self, request: AdvanceCreate) -> EventOutcome:
        """Hand a cash float to an employee: an outflow tagged expense."""
        self._check_project(request.project_id)
        payment = self._new_payment(
            kind=PaymentKind.ADVANCE,
            status=PaymentStatus.APPROVED,
            project_id=request.project_id,
            amount=request.amount,
            remaining_amount=request.amount,
            manager_name=request.manager_name,
            description=request.description,
        )
        return self._record_payment(
            payment, FinancialEvent.ADVANCE_ISSUED, request.account_id
        )

    def settle_advance(self, request: SettlementCreate) -> EventOutcome:
        """
        Draw a settlement against an advance.

        Only the advance's remaining amount moves; it is clamped at
        zero. No ledger transaction is recorded.
        """
        advance = self.get_advance(request.advance_id)
        project_id = request.project_id or advance.project_id
        self._check_project(project_id)

        settlement = self._new_payment(
            kind=PaymentKind.SETTLEMENT,
            status=PaymentStatus.PAID,
            project_id=project_id,
            amount=request.amount,
            linked_advance_id=advance.id,
            settlement_type=request.settlement_type,
            manager_name=advance.manager_name,
            description=request.description,
        )
        advance.remaining_amount = max(
            Decimal("0"), self._remaining(advance) - request.amount
        )
        self.db.flush()
        return EventOutcome(record=settlement)

    def pay_expense(self, request: ExpenseCreate) -> EventOutcome:
        """General or project expense: an outflow tagged expense."""
        self._check_project(request.project_id)
        payment = self._new_payment(
            kind=PaymentKind.REGULAR,
            status=PaymentStatus.PAID,
            project_id=request.project_id,
            amount=request.amount,
            expense_category=request.expense_category,
            description=request.description,
        )
        return self._record_payment(
            payment, FinancialEvent.EXPENSE_PAID, request.account_id
        )

    def update_payment_amount(
        self, payment_id: str, request: PaymentAmountUpdate
    ) -> EventOutcome:
        """
        Change a payment's amount.

        The old ledger effect is reversed and a fresh transaction is
        recorded on the same account for the new amount. Settlements
        only adjust their advance.
        """
        payment = self.get_payment(payment_id)
        old_amount = Decimal(payment.amount)
        new_amount = quantize(request.amount)
        if new_amount == quantize(old_amount):
            return EventOutcome(record=payment)

        if payment.kind == PaymentKind.SETTLEMENT:
            advance = self.get_advance(payment.linked_advance_id)
            advance.remaining_amount = max(
                Decimal("0"),
                self._remaining(advance) + old_amount - new_amount,
            )
            payment.amount = new_amount
            self.db.flush()
            return EventOutcome(record=payment)

        event = PAYMENT_KIND_EVENT[payment.kind]
        _, reference_type = EVENT_POLICY[event]
        existing = self.ledger.find_by_reference(reference_type, payment.id)
        account_id = existing[0].account_id if existing else None

        summary = None
        if existing:
            summary = self.ledger.reverse_by_reference(reference_type, payment.id)
            if not summary.success:
                raise PersistenceError(
                    f"Could not reverse treasury effect of payment "
                    f"{payment.id}: {summary.failed} failure(s)",
                    code="REVERSAL_INCOMPLETE",
                )

        old_remaining = payment.remaining_amount
        payment.amount = new_amount
        if payment.kind == PaymentKind.ADVANCE and old_remaining is not None:
            ratio = Decimal(old_remaining) / old_amount if old_amount else 1
            payment.remaining_amount = quantize(new_amount * ratio)
        self.db.flush()

        if account_id is None:
            return EventOutcome(record=payment, reversal=summary)

        try:
            result = self._record(
                event, account_id, new_amount, payment.id, payment.description
            )
        except TreasuryError:
            payment.amount = old_amount
            payment.remaining_amount = old_remaining
            self.db.flush()
            try:
                self._record(
                    event, account_id, old_amount, payment.id, payment.description
                )
            except TreasuryError as restore_error:
                logger.error(
                    f"Could not restore treasury effect of payment "
                    f"{payment.id}: {restore_error}"
                )
            raise
        return EventOutcome(record=payment, ledger=result, reversal=summary)

    def delete_payment(self, payment_id: str) -> ReversalSummary | None:
        """
        Delete a payment after reversing its treasury effect.

        The payment is kept if any of its transactions could not be
        reversed. Deleting a settlement returns its amount to the
        advance.
        """
        payment = self.get_payment(payment_id)

        if payment.kind == PaymentKind.ADVANCE:
            settlements = self.db.execute(
                select(func.count(Payment.id)).where(
                    Payment.linked_advance_id == payment.id,
                    *self._scope(Payment),
                )
            ).scalar_one()
            if settlements:
                raise ValidationError(
                    f"Advance {payment.id} has {settlements} settlement(s)",
                    code="ADVANCE_HAS_SETTLEMENTS",
                )

        summary = None
        if payment.kind == PaymentKind.SETTLEMENT:
            advance = self.get_advance(payment.linked_advance_id)
            advance.remaining_amount = min(
                Decimal(advance.amount),
                self._remaining(advance) + Decimal(payment.amount),
            )
        else:
            _, reference_type = EVENT_POLICY[PAYMENT_KIND_EVENT[payment.kind]]
            summary = self.ledger.reverse_by_reference(reference_type, payment.id)
            if not summary.success:
                raise PersistenceError(
                    f"Could not reverse treasury effect of payment "
                    f"{payment.id}: {summary.failed} failure(s)",
                    code="REVERSAL_INCOMPLETE",
                )

        self.db.delete(payment)
        self.db.flush()
        logger.info(f"Deleted payment {payment_id} ({payment.kind.value})")
        return summary

    # --- Orders ---

    def pay_order(self, order_id: str, request: OrderPayment) -> EventOutcome:
        order = self.get_order(order_id)
        if order.status != OrderStatus.PENDING:
            raise ValidationError(
                f"Order {order.id} is already paid",
                code="ORDER_ALREADY_PAID",
            )

        order.status = OrderStatus.PAID
        order.treasury_account_id = request.account_id
        self.db.flush()

        if Decimal(order.amount) <= 0:
            return EventOutcome(record=order)

        try:
            result = self._record(
                FinancialEvent.ORDER_PAID,
                request.account_id,
                order.amount,
                order.id,
                f"Purchase order payment - {order.supplier_name or order.id}",
            )
        except TreasuryError:
            logger.warning(f"Reverting payment of order {order.id}")
            order.status = OrderStatus.PENDING
            order.treasury_account_id = None
            self.db.flush()
            raise
        return EventOutcome(record=order, ledger=result)

    def cancel_order_payment(self, order_id: str) -> EventOutcome:
        order = self.get_order(order_id)
        if order.status != OrderStatus.PAID:
            raise ValidationError(
                f"Order {order.id} is not paid",
                code="ORDER_NOT_PAID",
            )

        summary = self.ledger.reverse_by_reference(ReferenceType.ORDER, order.id)
        if not summary.success:
            raise PersistenceError(
                f"Could not reverse payment of order {order.id}",
                code="REVERSAL_INCOMPLETE",
            )
        order.status = OrderStatus.PENDING
        order.treasury_account_id = None
        self.db.flush()
        return EventOutcome(record=order, reversal=summary)

    # --- Labor payroll ---

    def pay_labor_group(
        self, labor_group_id: str, request: LaborPayment
    ) -> EventOutcome:
        """
        Pay a labor group either from a treasury account (an outflow
        tagged labor_group) or from an advance (the advance's
        remaining amount is decremented, nothing reaches the ledger).
        """
        group = self.get_labor_group(labor_group_id)
        if group.status != OrderStatus.PENDING:
            raise ValidationError(
                f"Labor group {group.id} is already paid",
                code="LABOR_GROUP_ALREADY_PAID",
            )

        if request.payment_method == LaborPaymentMethod.TREASURY:
            return self._pay_labor_from_treasury(group, request.account_id)
        return self._pay_labor_from_advance(group, request.advance_id)

    def _pay_labor_from_treasury(
        self, group: LaborGroup, account_id: str | None
    ) -> EventOutcome:
        if not account_id:
            raise ValidationError(
                "Treasury account is required", code="NO_ACCOUNT_ID"
            )

        group.payment_method = LaborPaymentMethod.TREASURY
        group.treasury_account_id = account_id
        self.db.flush()

        if Decimal(group.total_amount) <= 0:
            group.status = OrderStatus.PAID
            self.db.flush()
            return EventOutcome(record=group)

        try:
            result = self._record(
                FinancialEvent.LABOR_PAID_FROM_TREASURY,
                account_id,
                group.total_amount,
                group.id,
                f"Labor payroll - group {group.id}",
            )
        except TreasuryError:
            group.payment_method = None
            group.treasury_account_id = None
            self.db.flush()
            raise

        group.status = OrderStatus.PAID
        self.db.flush()
        return EventOutcome(record=group, ledger=result)

    def _pay_labor_from_advance(
        self, group: LaborGroup, advance_id: str | None
    ) -> EventOutcome:
        if not advance_id:
            raise ValidationError("Advance is required", code="NO_ADVANCE_ID")

        advance = self.get_advance(advance_id)
        remaining = self._remaining(advance)
        total = Decimal(group.total_amount)
        if remaining < total:
            raise InsufficientBalanceError(
                f"Advance balance is not enough. Available: {remaining}, "
                f"Required: {total}",
                code="INSUFFICIENT_ADVANCE_BALANCE",
            )

        advance.remaining_amount = remaining - total
        group.payment_method = LaborPaymentMethod.ADVANCE
        group.linked_advance_id = advance.id
        group.status = OrderStatus.PAID
        self.db.flush()
        return EventOutcome(record=group)
