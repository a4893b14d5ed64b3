"""
Ledger service: the only writer of treasury account balances.

Rules enforced here:
1. Amounts are strictly positive; direction carries the sign
2. The account must exist in the caller's tenant (kind is ignored)
3. Recording a transaction and moving the balance never diverge:
   a failed balance write deletes the just-inserted transaction
4. Every balance write is a version-checked compare-and-swap
   and is re-read afterwards; a mismatch is fatal
5. Transactions are append-only; reversal deletes them only
   after their balance effect has been compensated

Overdrafts are not rejected. Whether an account may go negative
is decided by the originator, not the ledger.
"""

import logging
import uuid
from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal, InvalidOperation

from sqlalchemy import select, update, func, case
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from treasury_ledger.config import get_settings
from treasury_ledger.context import TenantContext
from treasury_ledger.exceptions import (
    TreasuryError,
    ValidationError,
    InvalidAmountError,
    InsufficientBalanceError,
    AccountNotFoundError,
    PersistenceError,
    BalanceMismatchError,
)
from treasury_ledger.models.enums import Direction, ReferenceType
from treasury_ledger.models.ledger_transaction import LedgerTransaction
from treasury_ledger.models.treasury_account import TreasuryAccount
from treasury_ledger.models.originators import Payment, Order, Project
from treasury_ledger.schemas.ledger import (
    TransactionCreate,
    TransactionResponse,
    EnrichedTransactionResponse,
    RecordResult,
    ReversalFailure,
    ReversalSummary,
    FundsCreate,
    TransferCreate,
    TransferResult,
    StatementLine,
    AccountStatement,
    BalanceCheck,
)

logger = logging.getLogger(__name__)

AMOUNT_QUANTUM = Decimal("0.0001")
# Largest value a Numeric(19, 4) column holds.
MAX_AMOUNT = Decimal("999999999999999.9999")

# Reference types whose reference_id points at a row in payments.
PAYMENT_REFERENCE_TYPES = {
    ReferenceType.INCOME,
    ReferenceType.EXPENSE,
    ReferenceType.PAYMENT,
}


def quantize(value: Decimal) -> Decimal:
    return Decimal(value).quantize(AMOUNT_QUANTUM)


def signed_delta(direction: Direction, amount: Decimal) -> Decimal:
    return amount if direction == Direction.INFLOW else -amount


def validate_amount(amount) -> Decimal:
    """
    Coerce to Decimal and reject anything the amount column cannot
    hold exactly: non-numbers, zero or negative values, more than
    four decimal places, and values beyond Numeric(19, 4).
    """
    try:
        value = Decimal(str(amount))
        if not value.is_finite():
            raise InvalidAmountError(f"Amount is not a number: {amount!r}")
        quantized = quantize(value)
    except (InvalidOperation, TypeError):
        raise InvalidAmountError(f"Amount is not a valid number: {amount!r}")

    if value <= 0:
        raise InvalidAmountError("Amount must be greater than zero")
    if quantized != value:
        raise InvalidAmountError(
            f"Amount has more than four decimal places: {amount}"
        )
    if quantized > MAX_AMOUNT:
        raise InvalidAmountError(f"Amount exceeds the maximum of {MAX_AMOUNT}")
    return quantized


class LedgerService:
    """
    All balance mutations pass through this service.

    The caller owns the session and decides when to commit.
    The service compensates its own writes on failure, so a
    caller that commits after an error still sees consistent
    state.
    """

    def __init__(self, db: Session, context: TenantContext):
        self.db = db
        self.context = context
        self.settings = get_settings()

    # --- Account resolution ---

    def _resolve_account(self, account_id: str) -> TreasuryAccount:
        """Find an account by id within the tenant, ignoring its kind."""
        tenant_id = self.context.require_tenant()
        if not account_id or not str(account_id).strip():
            raise ValidationError(
                "Account ID is required and cannot be empty",
                code="NO_ACCOUNT_ID",
            )
        account = self.db.execute(
            select(TreasuryAccount).where(
                TreasuryAccount.id == account_id,
                TreasuryAccount.tenant_id == tenant_id,
            )
        ).scalar_one_or_none()
        if not account:
            raise AccountNotFoundError(account_id)
        return account

    def _branch_account_ids(self) -> list[str]:
        tenant_id = self.context.require_tenant()
        branch_id = self.context.require_branch()
        return list(self.db.execute(
            select(TreasuryAccount.id).where(
                TreasuryAccount.tenant_id == tenant_id,
                TreasuryAccount.branch_id == branch_id,
            )
        ).scalars().all())

    # --- Balance writes ---

    def _read_balance_row(self, account_id: str):
        """Return (current_balance, version) straight from the database."""
        return self.db.execute(
            select(
                TreasuryAccount.current_balance,
                TreasuryAccount.version,
            ).where(
                TreasuryAccount.id == account_id,
                TreasuryAccount.tenant_id == self.context.require_tenant(),
            )
        ).one_or_none()

    def _read_persisted_balance(self, account_id: str) -> Decimal | None:
        return self.db.execute(
            select(TreasuryAccount.current_balance).where(
                TreasuryAccount.id == account_id,
                TreasuryAccount.tenant_id == self.context.require_tenant(),
            )
        ).scalar_one_or_none()

    def _apply_delta(self, account_id: str, delta: Decimal) -> Decimal:
        """
        Move an account balance by delta and return the new balance.

        Uses compare-and-swap on the version column: the UPDATE only
        matches if nobody wrote the row since we read it. On conflict
        the balance is re-read and the write retried, up to
        BALANCE_UPDATE_MAX_ATTEMPTS times.
        """
        attempts = max(1, self.settings.BALANCE_UPDATE_MAX_ATTEMPTS)
        tenant_id = self.context.require_tenant()

        for attempt in range(1, attempts + 1):
            try:
                row = self._read_balance_row(account_id)
            except SQLAlchemyError as e:
                raise PersistenceError(
                    f"Failed to read account balance. "
                    f"Account ID: {account_id}. {e}",
                    code="BALANCE_READ_FAILED",
                ) from e
            if row is None:
                raise AccountNotFoundError(account_id)

            current_balance, seen_version = row
            new_balance = quantize(Decimal(current_balance) + delta)

            try:
                result = self.db.execute(
                    update(TreasuryAccount)
                    .where(
                        TreasuryAccount.id == account_id,
                        TreasuryAccount.tenant_id == tenant_id,
                        TreasuryAccount.version == seen_version,
                    )
                    .values(
                        current_balance=new_balance,
                        version=seen_version + 1,
                        updated_at=datetime.utcnow(),
                    )
                )
            except SQLAlchemyError as e:
                raise PersistenceError(
                    f"Failed to update account balance. "
                    f"Account ID: {account_id}. {e}",
                    code="BALANCE_UPDATE_FAILED",
                ) from e

            if result.rowcount == 1:
                self._verify_balance(account_id, new_balance)
                return new_balance

            logger.warning(
                f"Balance write conflict on account {account_id} "
                f"(attempt {attempt}/{attempts}, version {seen_version})"
            )

        raise PersistenceError(
            f"Failed to update account balance after {attempts} attempts: "
            f"account {account_id} is being modified concurrently",
            code="BALANCE_UPDATE_FAILED",
        )

    def _verify_balance(self, account_id: str, expected: Decimal) -> None:
        actual = self._read_persisted_balance(account_id)
        if actual is None or quantize(Decimal(actual)) != quantize(expected):
            logger.error(
                f"Balance mismatch after update: account={account_id} "
                f"expected={expected} actual={actual}"
            )
            raise BalanceMismatchError(account_id, expected, actual)

    # --- Transaction creation ---

    def record_transaction(
        self,
        account_id: str,
        direction: Direction,
        amount,
        reference_type: ReferenceType | None = None,
        reference_id: str | None = None,
        description: str | None = None,
    ) -> RecordResult:
        """
        Append one ledger transaction and move the account balance.

        The transaction row is inserted first, then the balance is
        written. If the balance write fails, the row is deleted
        before the error is raised, so a transaction never exists
        without its balance effect.
        """
        amount = validate_amount(amount)
        direction = Direction(direction)
        if reference_type is not None:
            reference_type = ReferenceType(reference_type)

        account = self._resolve_account(account_id)

        txn = LedgerTransaction(
            id=str(uuid.uuid4()),
            tenant_id=account.tenant_id,
            account_id=account.id,
            transaction_type=direction,
            amount=amount,
            reference_type=reference_type,
            reference_id=reference_id,
            description=description,
            created_at=datetime.utcnow(),
        )
        self.db.add(txn)
        try:
            self.db.flush()
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Failed to create transaction. {e}",
                code="TRANSACTION_INSERT_FAILED",
            ) from e

        try:
            new_balance = self._apply_delta(
                account.id, signed_delta(direction, amount)
            )
        except BalanceMismatchError:
            # The balance write landed, so the row stays with it.
            raise
        except TreasuryError:
            self._compensate_insert(txn)
            raise

        logger.info(
            f"Recorded {direction.value} {amount} on account {account.id} "
            f"ref={reference_type and reference_type.value}:{reference_id} "
            f"new_balance={new_balance}"
        )

        return RecordResult(
            transaction=TransactionResponse.model_validate(txn),
            new_balance=new_balance,
            account_name=account.name,
        )

    def create_transaction(self, request: TransactionCreate) -> RecordResult:
        """Schema-based entry point used by the HTTP layer."""
        return self.record_transaction(
            account_id=request.account_id,
            direction=request.transaction_type,
            amount=request.amount,
            reference_type=request.reference_type,
            reference_id=request.reference_id,
            description=request.description,
        )

    def _compensate_insert(self, txn: LedgerTransaction) -> None:
        logger.warning(
            f"Deleting transaction {txn.id}: balance update on "
            f"account {txn.account_id} failed"
        )
        try:
            self.db.delete(txn)
            self.db.flush()
        except SQLAlchemyError as e:
            logger.error(
                f"Compensating delete of transaction {txn.id} failed: {e}"
            )
            raise PersistenceError(
                f"Balance update failed and transaction {txn.id} "
                f"could not be removed. {e}",
                code="COMPENSATION_FAILED",
            ) from e

    # --- Reversal ---

    def find_by_reference(
        self, reference_type: ReferenceType, reference_id: str
    ) -> list[LedgerTransaction]:
        tenant_id = self.context.require_tenant()
        return list(self.db.execute(
            select(LedgerTransaction)
            .where(
                LedgerTransaction.tenant_id == tenant_id,
                LedgerTransaction.reference_type == ReferenceType(reference_type),
                LedgerTransaction.reference_id == reference_id,
            )
            .order_by(LedgerTransaction.created_at)
        ).scalars().all())

    def reverse_by_reference(
        self, reference_type: ReferenceType, reference_id: str
    ) -> ReversalSummary:
        """
        Undo every transaction recorded for a domain record.

        Each match is compensated on its account first and deleted
        second. A failure on one match is recorded and the rest are
        still processed. No matches is a successful no-op.

        BalanceMismatchError is not tallied: it aborts the batch.
        """
        self.context.require_tenant()
        if not reference_type or not reference_id:
            raise ValidationError(
                "Reference type and ID are required",
                code="INVALID_REFERENCE",
            )
        reference_type = ReferenceType(reference_type)

        summary = ReversalSummary(
            reference_type=reference_type, reference_id=reference_id
        )
        for txn in self.find_by_reference(reference_type, reference_id):
            try:
                self._reverse_one(txn)
                summary.reversed += 1
            except BalanceMismatchError:
                raise
            except TreasuryError as e:
                logger.error(
                    f"Failed to reverse transaction {txn.id} "
                    f"({reference_type.value}:{reference_id}): {e}"
                )
                summary.failed += 1
                summary.failures.append(ReversalFailure(
                    transaction_id=txn.id,
                    account_id=txn.account_id,
                    reason=str(e),
                ))

        if summary.reversed or summary.failed:
            logger.info(
                f"Reversed {reference_type.value}:{reference_id} "
                f"reversed={summary.reversed} failed={summary.failed}"
            )
        return summary

    def _reverse_one(self, txn: LedgerTransaction) -> None:
        inverse = -txn.signed_amount
        self._apply_delta(txn.account_id, inverse)

        try:
            self.db.delete(txn)
            self.db.flush()
        except SQLAlchemyError as e:
            # Put the balance back so the surviving row still matches it.
            try:
                self._apply_delta(txn.account_id, -inverse)
            except (TreasuryError, SQLAlchemyError) as undo_error:
                logger.error(
                    f"Could not undo reversal of transaction {txn.id} "
                    f"on account {txn.account_id}: {undo_error}"
                )
                raise PersistenceError(
                    f"Failed to delete transaction {txn.id} and to "
                    f"restore account {txn.account_id}. {e}",
                    code="COMPENSATION_FAILED",
                ) from e
            raise PersistenceError(
                f"Failed to delete transaction {txn.id}. {e}",
                code="TRANSACTION_DELETE_FAILED",
            ) from e

    # --- Supplementary write paths ---

    def add_funds(self, request: FundsCreate) -> RecordResult:
        """Manager-supplied cash: an inflow tagged as a deposit."""
        return self.record_transaction(
            account_id=request.account_id,
            direction=Direction.INFLOW,
            amount=request.amount,
            reference_type=ReferenceType.DEPOSIT,
            reference_id=str(uuid.uuid4()),
            description=request.description,
        )

    def transfer_funds(self, request: TransferCreate) -> TransferResult:
        """
        Move money between two accounts of the same currency.

        Both legs share one transfer reference. If the inflow leg
        fails, the outflow leg is reversed by that reference.
        """
        amount = validate_amount(request.amount)
        if request.source_account_id == request.destination_account_id:
            raise ValidationError(
                "Source and destination accounts cannot be the same",
                code="SAME_ACCOUNT",
            )

        source = self._resolve_account(request.source_account_id)
        destination = self._resolve_account(request.destination_account_id)

        if source.currency != destination.currency:
            raise ValidationError(
                f"Cannot transfer between {source.currency} and "
                f"{destination.currency} accounts",
                code="CURRENCY_MISMATCH",
            )

        available = self._read_persisted_balance(source.id)
        if Decimal(available) < amount:
            raise InsufficientBalanceError(
                f"Insufficient balance. Available: {available}, "
                f"Required: {amount}"
            )

        reference_id = str(uuid.uuid4())
        outflow = self.record_transaction(
            account_id=source.id,
            direction=Direction.OUTFLOW,
            amount=amount,
            reference_type=ReferenceType.TRANSFER,
            reference_id=reference_id,
            description=request.description,
        )
        try:
            inflow = self.record_transaction(
                account_id=destination.id,
                direction=Direction.INFLOW,
                amount=amount,
                reference_type=ReferenceType.TRANSFER,
                reference_id=reference_id,
                description=request.description,
            )
        except TreasuryError:
            summary = self.reverse_by_reference(
                ReferenceType.TRANSFER, reference_id
            )
            if not summary.success:
                logger.error(
                    f"Transfer {reference_id} left a dangling outflow: "
                    f"{summary.failures}"
                )
            raise

        return TransferResult(
            reference_id=reference_id,
            outflow=outflow.transaction,
            inflow=inflow.transaction,
            source_new_balance=outflow.new_balance,
            destination_new_balance=inflow.new_balance,
        )

    # --- Reads ---

    def get_transactions(
        self,
        account_id: str | None = None,
        reference_type: ReferenceType | None = None,
    ) -> list[EnrichedTransactionResponse]:
        """
        Transactions for the current branch's accounts, newest first.

        An account outside the branch yields an empty list rather
        than an error.
        """
        branch_account_ids = self._branch_account_ids()
        if not branch_account_ids:
            return []
        if account_id is not None and account_id not in branch_account_ids:
            return []

        query = select(LedgerTransaction).where(
            LedgerTransaction.tenant_id == self.context.require_tenant(),
            LedgerTransaction.account_id.in_(
                [account_id] if account_id else branch_account_ids
            ),
        )
        if reference_type is not None:
            query = query.where(
                LedgerTransaction.reference_type == ReferenceType(reference_type)
            )

        transactions = self.db.execute(
            query
            .order_by(LedgerTransaction.created_at.desc())
            .limit(self.settings.TRANSACTIONS_PAGE_LIMIT)
        ).scalars().all()
        return self.attach_projects(transactions)

    def attach_projects(
        self, transactions: Iterable[LedgerTransaction]
    ) -> list[EnrichedTransactionResponse]:
        """
        Attach project id and name to transactions whose reference
        resolves to a payment or an order that belongs to a project.

        Lookups are scoped to the current tenant and branch. A
        reference that resolves to nothing is left unenriched.
        """
        transactions = list(transactions)
        tenant_id = self.context.require_tenant()
        branch_id = self.context.require_branch()

        payment_ids = {
            t.reference_id for t in transactions
            if t.reference_type in PAYMENT_REFERENCE_TYPES and t.reference_id
        }
        order_ids = {
            t.reference_id for t in transactions
            if t.reference_type == ReferenceType.ORDER and t.reference_id
        }

        payment_projects: dict[str, str] = {}
        if payment_ids:
            rows = self.db.execute(
                select(Payment.id, Payment.project_id).where(
                    Payment.id.in_(payment_ids),
                    Payment.tenant_id == tenant_id,
                    Payment.branch_id == branch_id,
                    Payment.project_id.is_not(None),
                )
            ).all()
            payment_projects = {row.id: row.project_id for row in rows}

        order_projects: dict[str, str] = {}
        if order_ids:
            rows = self.db.execute(
                select(Order.id, Order.project_id).where(
                    Order.id.in_(order_ids),
                    Order.tenant_id == tenant_id,
                    Order.branch_id == branch_id,
                    Order.project_id.is_not(None),
                )
            ).all()
            order_projects = {row.id: row.project_id for row in rows}

        project_ids = set(payment_projects.values()) | set(order_projects.values())
        project_names: dict[str, str] = {}
        if project_ids:
            rows = self.db.execute(
                select(Project.id, Project.name).where(
                    Project.id.in_(project_ids),
                    Project.tenant_id == tenant_id,
                    Project.branch_id == branch_id,
                )
            ).all()
            project_names = {row.id: row.name for row in rows}

        enriched = []
        for txn in transactions:
            if txn.reference_type in PAYMENT_REFERENCE_TYPES:
                project_id = payment_projects.get(txn.reference_id)
            elif txn.reference_type == ReferenceType.ORDER:
                project_id = order_projects.get(txn.reference_id)
            else:
                project_id = None

            item = EnrichedTransactionResponse.model_validate(txn)
            item.project_id = project_id
            item.project_name = project_names.get(project_id) if project_id else None
            enriched.append(item)
        return enriched

    def get_statement(
        self,
        account_id: str,
        reference_type: ReferenceType | None = None,
    ) -> AccountStatement:
        """
        Replay an account's transactions oldest first with a
        running balance from the initial balance.
        """
        account = self._resolve_branch_account(account_id)

        query = select(LedgerTransaction).where(
            LedgerTransaction.account_id == account.id,
            LedgerTransaction.tenant_id == account.tenant_id,
        )
        if reference_type is not None:
            reference_type = ReferenceType(reference_type)
            query = query.where(LedgerTransaction.reference_type == reference_type)

        transactions = self.db.execute(
            query.order_by(LedgerTransaction.created_at, LedgerTransaction.id)
        ).scalars().all()

        running = quantize(account.initial_balance)
        lines = []
        for txn in transactions:
            running = quantize(running + txn.signed_amount)
            lines.append(StatementLine(
                transaction=TransactionResponse.model_validate(txn),
                signed_amount=txn.signed_amount,
                running_balance=running,
            ))

        return AccountStatement(
            account_id=account.id,
            account_name=account.name,
            currency=account.currency,
            reference_type=reference_type,
            opening_balance=quantize(account.initial_balance),
            closing_balance=running,
            current_balance=quantize(self._read_persisted_balance(account.id)),
            lines=lines,
        )

    def verify_account_balance(self, account_id: str) -> BalanceCheck:
        """
        Recompute the balance from the log and compare it with the
        stored running total. Read-only: drift is reported, not fixed.
        """
        account = self._resolve_branch_account(account_id)

        inflows, outflows, count = self.db.execute(
            select(
                func.coalesce(func.sum(case(
                    (LedgerTransaction.transaction_type == Direction.INFLOW,
                     LedgerTransaction.amount),
                    else_=0,
                )), 0),
                func.coalesce(func.sum(case(
                    (LedgerTransaction.transaction_type == Direction.OUTFLOW,
                     LedgerTransaction.amount),
                    else_=0,
                )), 0),
                func.count(LedgerTransaction.id),
            ).where(
                LedgerTransaction.account_id == account.id,
                LedgerTransaction.tenant_id == account.tenant_id,
            )
        ).one()

        expected = quantize(
            Decimal(account.initial_balance)
            + Decimal(str(inflows))
            - Decimal(str(outflows))
        )
        stored = quantize(self._read_persisted_balance(account.id))
        if expected != stored:
            logger.error(
                f"Balance drift on account {account.id}: "
                f"log says {expected}, stored {stored}"
            )
        return BalanceCheck(
            account_id=account.id,
            expected=expected,
            stored=stored,
            transaction_count=count,
        )

    def _resolve_branch_account(self, account_id: str) -> TreasuryAccount:
        account = self._resolve_account(account_id)
        if account.branch_id != self.context.require_branch():
            raise AccountNotFoundError(account_id)
        return account
