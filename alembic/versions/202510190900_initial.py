"""initial schema

Revision ID: 202510190900
Revises:
Create Date: 2025-10-19 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "202510190900"
down_revision = None
branch_labels = None
depends_on = None


TRANSACTION_TYPE = sa.Enum("income", "expense", name="transactiontype")
FREQUENCY = sa.Enum("daily", "weekly", "monthly", "yearly", name="frequency")


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade():
    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, default=1),
        sa.Column("key", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("icon", sa.String(length=16)),
        sa.Column("type", TRANSACTION_TYPE, nullable=False),
        sa.Column("order", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "type", "key", name="uq_category_user_type_key"),
    )

    op.create_table(
        "auto_transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, default=1),
        sa.Column("type", TRANSACTION_TYPE, nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("category_key", sa.String(length=50), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("frequency", FREQUENCY, nullable=False),
        sa.Column("day_of_month", sa.Integer()),
        sa.Column("next_execution_date", sa.Date(), nullable=False),
        sa.Column("last_execution_date", sa.Date()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.CheckConstraint(
            "amount_cents >= 0", name="ck_auto_transactions_amount_positive"
        ),
    )
    op.create_index(
        "ix_auto_transactions_due",
        "auto_transactions",
        ["is_active", "next_execution_date"],
    )

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, default=1),
        sa.Column("occurred_at", sa.DateTime(), nullable=False),
        sa.Column("type", TRANSACTION_TYPE, nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("category_key", sa.String(length=50), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column(
            "origin_auto_id",
            sa.Integer(),
            sa.ForeignKey("auto_transactions.id", ondelete="SET NULL"),
        ),
        sa.Column("occurrence_date", sa.Date()),
        *_timestamps(),
        sa.UniqueConstraint(
            "user_id",
            "origin_auto_id",
            "occurrence_date",
            name="uq_txn_origin_occurrence",
        ),
        sa.CheckConstraint("amount_cents >= 0", name="ck_transactions_amount_positive"),
    )
    op.create_index(
        "ix_transactions_user_occurred", "transactions", ["user_id", "occurred_at"]
    )
    op.create_index(
        "ix_transactions_user_type_occurred",
        "transactions",
        ["user_id", "type", "occurred_at"],
    )

    op.create_table(
        "assets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, default=1),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("color", sa.String(length=9)),
        *_timestamps(),
    )

    op.create_table(
        "asset_records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "asset_id",
            sa.Integer(),
            sa.ForeignKey("assets.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        *_timestamps(),
    )
    op.create_index(
        "ix_asset_records_asset_date", "asset_records", ["asset_id", "date"]
    )


def downgrade():
    op.drop_index("ix_asset_records_asset_date", table_name="asset_records")
    op.drop_table("asset_records")
    op.drop_table("assets")
    op.drop_index("ix_transactions_user_type_occurred", table_name="transactions")
    op.drop_index("ix_transactions_user_occurred", table_name="transactions")
    op.drop_table("transactions")
    op.drop_index("ix_auto_transactions_due", table_name="auto_transactions")
    op.drop_table("auto_transactions")
    op.drop_table("categories")
