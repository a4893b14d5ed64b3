"""create treasury tables

Revision ID: 0001
Revises:
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa


revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def _enum(name, *values):
    return sa.Enum(*values, name=name, create_constraint=True)


def _ids():
    return [
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("tenant_id", sa.String(64), nullable=False, index=True),
        sa.Column("branch_id", sa.String(64), nullable=False, index=True),
    ]


def upgrade() -> None:
    op.create_table(
        "projects",
        *_ids(),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("created_at", sa.DateTime, nullable=False),
    )

    op.create_table(
        "treasury_accounts",
        *_ids(),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column(
            "type",
            _enum("treasury_account_kind_enum", "bank", "cash_box"),
            nullable=False,
        ),
        sa.Column(
            "account_type",
            _enum("treasury_access_scope_enum", "public", "private"),
            nullable=False,
        ),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("initial_balance", sa.Numeric(19, 4), nullable=False),
        sa.Column("current_balance", sa.Numeric(19, 4), nullable=False),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime, nullable=False),
        sa.Column("updated_at", sa.DateTime, nullable=False),
    )

    op.create_table(
        "treasury_transactions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column(
            "account_id",
            sa.String(36),
            sa.ForeignKey("treasury_accounts.id"),
            nullable=False,
            index=True,
        ),
        sa.Column(
            "transaction_type",
            _enum("treasury_direction_enum", "inflow", "outflow"),
            nullable=False,
        ),
        sa.Column("amount", sa.Numeric(19, 4), nullable=False),
        sa.Column(
            "reference_type",
            _enum(
                "treasury_reference_type_enum",
                "income", "expense", "order", "labor_group",
                "payment", "deposit", "transfer",
            ),
            nullable=True,
        ),
        sa.Column("reference_id", sa.String(64), nullable=True),
        sa.Column("description", sa.String(500), nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False),
        sa.CheckConstraint(
            "amount > 0", name="ck_treasury_transactions_amount_positive"
        ),
    )
    op.create_index(
        "ix_treasury_transactions_reference",
        "treasury_transactions",
        ["tenant_id", "reference_type", "reference_id"],
    )

    op.create_table(
        "payments",
        *_ids(),
        sa.Column(
            "project_id", sa.String(36),
            sa.ForeignKey("projects.id"), nullable=True,
        ),
        sa.Column(
            "transaction_type",
            _enum(
                "payment_kind_enum",
                "income", "regular", "advance", "settlement",
            ),
            nullable=False,
        ),
        sa.Column(
            "status",
            _enum("payment_status_enum", "pending", "approved", "paid"),
            nullable=False,
        ),
        sa.Column("amount", sa.Numeric(19, 4), nullable=False),
        sa.Column("remaining_amount", sa.Numeric(19, 4), nullable=True),
        sa.Column(
            "linked_advance_id", sa.String(36),
            sa.ForeignKey("payments.id"), nullable=True,
        ),
        sa.Column(
            "settlement_type",
            _enum("settlement_type_enum", "expense", "return"),
            nullable=True,
        ),
        sa.Column("manager_name", sa.String(200), nullable=True),
        sa.Column("expense_category", sa.String(100), nullable=True),
        sa.Column("description", sa.String(500), nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False),
    )

    op.create_table(
        "orders",
        *_ids(),
        sa.Column(
            "project_id", sa.String(36),
            sa.ForeignKey("projects.id"), nullable=True,
        ),
        sa.Column("supplier_name", sa.String(200), nullable=True),
        sa.Column("amount", sa.Numeric(19, 4), nullable=False),
        sa.Column(
            "status",
            _enum("order_status_enum", "pending", "paid"),
            nullable=False,
        ),
        sa.Column(
            "treasury_account_id", sa.String(36),
            sa.ForeignKey("treasury_accounts.id"), nullable=True,
        ),
        sa.Column("created_at", sa.DateTime, nullable=False),
    )

    op.create_table(
        "labor_groups",
        *_ids(),
        sa.Column(
            "project_id", sa.String(36),
            sa.ForeignKey("projects.id"), nullable=True,
        ),
        sa.Column("total_amount", sa.Numeric(19, 4), nullable=False),
        sa.Column(
            "status",
            _enum("labor_group_status_enum", "pending", "paid"),
            nullable=False,
        ),
        sa.Column(
            "payment_method",
            _enum("labor_payment_method_enum", "treasury", "advance"),
            nullable=True,
        ),
        sa.Column(
            "treasury_account_id", sa.String(36),
            sa.ForeignKey("treasury_accounts.id"), nullable=True,
        ),
        sa.Column(
            "linked_advance_id", sa.String(36),
            sa.ForeignKey("payments.id"), nullable=True,
        ),
        sa.Column("created_at", sa.DateTime, nullable=False),
    )


def downgrade() -> None:
    op.drop_table("labor_groups")
    op.drop_table("orders")
    op.drop_table("payments")
    op.drop_index(
        "ix_treasury_transactions_reference", table_name="treasury_transactions"
    )
    op.drop_table("treasury_transactions")
    op.drop_table("treasury_accounts")
    op.drop_table("projects")
