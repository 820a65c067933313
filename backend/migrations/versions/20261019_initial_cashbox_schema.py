"""Initial cashbox schema: users, sessions, receipts, dues, ledger, balances

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("superkey", sa.String(5), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(100), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("store_name", sa.String(100), nullable=True),
        sa.Column("store_address", sa.Text(), nullable=True),
        sa.Column("store_contact", sa.String(20), nullable=True),
        sa.Column("store_country_code", sa.String(10), nullable=False, server_default="+91"),
        sa.Column("profile_complete", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("users", schema=None) as batch_op:
        batch_op.create_index("ix_users_superkey", ["superkey"], unique=True)
        batch_op.create_index("ix_users_email", ["email"], unique=True)
        batch_op.create_index("ix_users_store_contact", ["store_contact"], unique=True)

    op.create_table(
        "session_tokens",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("token_hash", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("last_used_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_revoked", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revoked_reason", sa.String(255), nullable=True),
        sa.Column("user_agent", sa.String(512), nullable=True),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("session_tokens", schema=None) as batch_op:
        batch_op.create_index("ix_session_tokens_user_id", ["user_id"], unique=False)
        batch_op.create_index("ix_session_tokens_token_hash", ["token_hash"], unique=True)
        batch_op.create_index("ix_session_tokens_expires_at", ["expires_at"], unique=False)
        batch_op.create_index("ix_session_tokens_is_revoked", ["is_revoked"], unique=False)
        batch_op.create_index("ix_session_tokens_user_active", ["user_id", "is_revoked"], unique=False)

    op.create_table(
        "receipts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("receipt_number", sa.String(20), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("customer_name", sa.String(100), nullable=False),
        sa.Column("customer_contact", sa.String(20), nullable=False),
        sa.Column("customer_country_code", sa.String(10), nullable=False, server_default="+91"),
        sa.Column("payment_type", sa.String(16), nullable=False),
        sa.Column("payment_status", sa.String(16), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("total_cents", sa.BigInteger(), nullable=False),
        sa.Column("due_total_cents", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.CheckConstraint("total_cents >= 0", name="ck_receipts_total_nonneg"),
        sa.CheckConstraint("due_total_cents >= 0", name="ck_receipts_due_total_nonneg"),
        sa.CheckConstraint("payment_type IN ('cash', 'online')", name="ck_receipts_payment_type"),
        sa.CheckConstraint("payment_status IN ('full', 'advance', 'due')", name="ck_receipts_payment_status"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "receipt_number", name="uq_receipts_user_number"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("receipts", schema=None) as batch_op:
        batch_op.create_index("ix_receipts_user_id", ["user_id"], unique=False)
        batch_op.create_index("ix_receipts_payment_status", ["payment_status"], unique=False)
        batch_op.create_index("ix_receipts_user_date", ["user_id", "date"], unique=False)

    op.create_table(
        "receipt_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("receipt_id", sa.Integer(), nullable=False),
        sa.Column("description", sa.String(255), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("price_cents", sa.BigInteger(), nullable=False),
        sa.Column("advance_amount_cents", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("due_amount_cents", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.CheckConstraint("quantity > 0", name="ck_receipt_items_quantity_pos"),
        sa.CheckConstraint("price_cents >= 0", name="ck_receipt_items_price_nonneg"),
        sa.ForeignKeyConstraint(["receipt_id"], ["receipts.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("receipt_items", schema=None) as batch_op:
        batch_op.create_index("ix_receipt_items_receipt_id", ["receipt_id"], unique=False)

    op.create_table(
        "payment_details",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("receipt_id", sa.Integer(), nullable=False),
        sa.Column("card_number", sa.String(16), nullable=True),
        sa.Column("phone_number", sa.String(20), nullable=True),
        sa.Column("phone_country_code", sa.String(10), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["receipt_id"], ["receipts.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("receipt_id"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "due_records",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("customer_name", sa.String(100), nullable=False),
        sa.Column("customer_contact", sa.String(20), nullable=False),
        sa.Column("customer_country_code", sa.String(10), nullable=False, server_default="+91"),
        sa.Column("product_ordered", sa.Text(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("amount_due_cents", sa.BigInteger(), nullable=False),
        sa.Column("expected_payment_date", sa.Date(), nullable=False),
        sa.Column("is_paid", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("receipt_number", sa.String(20), nullable=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.CheckConstraint("quantity > 0", name="ck_due_records_quantity_pos"),
        sa.CheckConstraint("amount_due_cents > 0", name="ck_due_records_amount_pos"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("due_records", schema=None) as batch_op:
        batch_op.create_index("ix_due_records_user_id", ["user_id"], unique=False)
        batch_op.create_index("ix_due_records_is_paid", ["is_paid"], unique=False)
        batch_op.create_index("ix_due_records_receipt_number", ["receipt_number"], unique=False)
        batch_op.create_index("ix_due_records_user_paid", ["user_id", "is_paid"], unique=False)
        batch_op.create_index("ix_due_records_user_expected", ["user_id", "expected_payment_date"], unique=False)

    op.create_table(
        "account_transactions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("particulars", sa.Text(), nullable=False),
        sa.Column("amount_cents", sa.BigInteger(), nullable=False),
        sa.Column("type", sa.String(8), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("receipt_id", sa.Integer(), nullable=True),
        sa.Column("due_record_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.CheckConstraint("amount_cents > 0", name="ck_account_transactions_amount_pos"),
        sa.CheckConstraint("type IN ('credit', 'debit')", name="ck_account_transactions_type"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["receipt_id"], ["receipts.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["due_record_id"], ["due_records.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("account_transactions", schema=None) as batch_op:
        batch_op.create_index("ix_account_transactions_user_id", ["user_id"], unique=False)
        batch_op.create_index("uq_account_transactions_due_record", ["due_record_id"], unique=True)
        batch_op.create_index("ix_account_transactions_user_created", ["user_id", "created_at"], unique=False)

    op.create_table(
        "account_balances",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("balance_cents", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_due_balance_cents", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id"),
        sqlite_autoincrement=True,
    )


def downgrade():
    op.drop_table("account_balances")
    with op.batch_alter_table("account_transactions", schema=None) as batch_op:
        batch_op.drop_index("ix_account_transactions_user_created")
        batch_op.drop_index("uq_account_transactions_due_record")
        batch_op.drop_index("ix_account_transactions_user_id")
    op.drop_table("account_transactions")
    with op.batch_alter_table("due_records", schema=None) as batch_op:
        batch_op.drop_index("ix_due_records_user_expected")
        batch_op.drop_index("ix_due_records_user_paid")
        batch_op.drop_index("ix_due_records_receipt_number")
        batch_op.drop_index("ix_due_records_is_paid")
        batch_op.drop_index("ix_due_records_user_id")
    op.drop_table("due_records")
    op.drop_table("payment_details")
    with op.batch_alter_table("receipt_items", schema=None) as batch_op:
        batch_op.drop_index("ix_receipt_items_receipt_id")
    op.drop_table("receipt_items")
    with op.batch_alter_table("receipts", schema=None) as batch_op:
        batch_op.drop_index("ix_receipts_user_date")
        batch_op.drop_index("ix_receipts_payment_status")
        batch_op.drop_index("ix_receipts_user_id")
    op.drop_table("receipts")
    with op.batch_alter_table("session_tokens", schema=None) as batch_op:
        batch_op.drop_index("ix_session_tokens_user_active")
        batch_op.drop_index("ix_session_tokens_is_revoked")
        batch_op.drop_index("ix_session_tokens_expires_at")
        batch_op.drop_index("ix_session_tokens_token_hash")
        batch_op.drop_index("ix_session_tokens_user_id")
    op.drop_table("session_tokens")
    with op.batch_alter_table("users", schema=None) as batch_op:
        batch_op.drop_index("ix_users_store_contact")
        batch_op.drop_index("ix_users_email")
        batch_op.drop_index("ix_users_superkey")
    op.drop_table("users")
