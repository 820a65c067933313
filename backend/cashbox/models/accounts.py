from __future__ import annotations

from ..extensions import db
from cashbox.time_utils import to_utc_z, to_iso_date
from cashbox.validation import format_money


TRANSACTION_CREDIT = "credit"
TRANSACTION_DEBIT = "debit"
TRANSACTION_TYPES = (TRANSACTION_CREDIT, TRANSACTION_DEBIT)


class DueRecord(db.Model):
    """
    Outstanding amount owed by a customer.

    LIFECYCLE: created unpaid (from an under-paid receipt or directly);
    flipped to paid exactly once by services.due_service.settle_due.
    Paid is terminal.

    CONCURRENCY: version_id_col makes the paid flip an optimistic
    UPDATE ... WHERE version_id = :seen, so two racing settlements
    cannot both succeed.
    """
    __tablename__ = "due_records"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_due_records_quantity_pos"),
        db.CheckConstraint("amount_due_cents > 0", name="ck_due_records_amount_pos"),
        db.Index("ix_due_records_user_paid", "user_id", "is_paid"),
        db.Index("ix_due_records_user_expected", "user_id", "expected_payment_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    customer_name = db.Column(db.String(100), nullable=False)
    customer_contact = db.Column(db.String(20), nullable=False)
    customer_country_code = db.Column(db.String(10), nullable=False, default="+91")

    product_ordered = db.Column(db.Text, nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    amount_due_cents = db.Column(db.BigInteger, nullable=False)

    expected_payment_date = db.Column(db.Date, nullable=False)

    is_paid = db.Column(db.Boolean, nullable=False, default=False, index=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Soft link to the originating receipt (number, not FK: dues can exist without one)
    receipt_number = db.Column(db.String(20), nullable=True, index=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    user = db.relationship("User", backref=db.backref("due_records", lazy=True, passive_deletes=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_name": self.customer_name,
            "customer_contact": self.customer_contact,
            "customer_country_code": self.customer_country_code,
            "product_ordered": self.product_ordered,
            "quantity": self.quantity,
            "amount_due": format_money(self.amount_due_cents),
            "expected_payment_date": to_iso_date(self.expected_payment_date),
            "is_paid": self.is_paid,
            "paid_at": to_utc_z(self.paid_at) if self.paid_at else None,
            "receipt_number": self.receipt_number,
            "created_at": to_utc_z(self.created_at),
        }


class AccountTransaction(db.Model):
    """
    Immutable cash ledger entry.

    SOURCES:
    - manual credit/debit entry (services.account_service)
    - immediate payment on a receipt (services.receipt_service)
    - due settlement (services.due_service), at most one per due record

    Links to receipt / due record are SET NULL on delete so the ledger
    survives removal of the row it came from.
    """
    __tablename__ = "account_transactions"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_account_transactions_amount_pos"),
        db.CheckConstraint("type IN ('credit', 'debit')", name="ck_account_transactions_type"),
        # NULLs are distinct, so only settlement credits are constrained
        db.Index("uq_account_transactions_due_record", "due_record_id", unique=True),
        db.Index("ix_account_transactions_user_created", "user_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    particulars = db.Column(db.Text, nullable=False)
    amount_cents = db.Column(db.BigInteger, nullable=False)
    type = db.Column(db.String(8), nullable=False)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    receipt_id = db.Column(db.Integer, db.ForeignKey("receipts.id", ondelete="SET NULL"), nullable=True)
    due_record_id = db.Column(db.Integer, db.ForeignKey("due_records.id", ondelete="SET NULL"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    user = db.relationship("User", backref=db.backref("account_transactions", lazy=True, passive_deletes=True))
    receipt = db.relationship("Receipt", backref=db.backref("account_transactions", lazy=True, passive_deletes=True))
    due_record = db.relationship("DueRecord", backref=db.backref("account_transactions", lazy=True, passive_deletes=True))

    @property
    def signed_amount_cents(self) -> int:
        return self.amount_cents if self.type == TRANSACTION_CREDIT else -self.amount_cents

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "particulars": self.particulars,
            "amount": format_money(self.amount_cents),
            "type": self.type,
            "receipt_id": self.receipt_id,
            "receipt_number": self.receipt.receipt_number if self.receipt is not None else None,
            "due_record_id": self.due_record_id,
            "date": to_utc_z(self.created_at),
        }


class AccountBalance(db.Model):
    """
    Materialized per-user aggregate.

    INVARIANT (holds after every flush):
    - balance_cents == SUM(credits) - SUM(debits) over the user's transactions
    - total_due_balance_cents == SUM(amount_due) over the user's unpaid dues

    Written only by the flush-time hooks in models.balance_rules; ORM
    writes from anywhere else are rejected.
    """
    __tablename__ = "account_balances"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True
    )

    balance_cents = db.Column(db.BigInteger, nullable=False, default=0)
    total_due_balance_cents = db.Column(db.BigInteger, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_updated = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "balance": format_money(self.balance_cents),
            "total_due_balance": format_money(self.total_due_balance_cents),
            "last_updated": to_utc_z(self.last_updated) if self.last_updated else None,
        }
