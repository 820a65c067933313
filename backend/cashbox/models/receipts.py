from __future__ import annotations

from ..extensions import db
from cashbox.time_utils import to_utc_z, to_iso_date
from cashbox.validation import format_money


PAYMENT_TYPES = ("cash", "online")
PAYMENT_STATUSES = ("full", "advance", "due")


class Receipt(db.Model):
    """
    Immutable sale record (all amounts in cents).

    WHY: A receipt is written once, together with its items, payment
    details, due record and ledger credit, by
    services.receipt_service.create_receipt. There is no update path.
    """
    __tablename__ = "receipts"
    __table_args__ = (
        db.CheckConstraint("total_cents >= 0", name="ck_receipts_total_nonneg"),
        db.CheckConstraint("due_total_cents >= 0", name="ck_receipts_due_total_nonneg"),
        db.CheckConstraint("payment_type IN ('cash', 'online')", name="ck_receipts_payment_type"),
        db.CheckConstraint("payment_status IN ('full', 'advance', 'due')", name="ck_receipts_payment_status"),
        # Numbering runs per user, so uniqueness does too
        db.UniqueConstraint("user_id", "receipt_number", name="uq_receipts_user_number"),
        db.Index("ix_receipts_user_date", "user_id", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable number, e.g. "ASE-00012"; unique per user
    receipt_number = db.Column(db.String(20), nullable=False)

    date = db.Column(db.Date, nullable=False)

    customer_name = db.Column(db.String(100), nullable=False)
    customer_contact = db.Column(db.String(20), nullable=False)
    customer_country_code = db.Column(db.String(10), nullable=False, default="+91")

    payment_type = db.Column(db.String(16), nullable=False)
    payment_status = db.Column(db.String(16), nullable=False, index=True)

    notes = db.Column(db.Text, nullable=True)

    total_cents = db.Column(db.BigInteger, nullable=False)
    due_total_cents = db.Column(db.BigInteger, nullable=False, default=0)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    user = db.relationship("User", backref=db.backref("receipts", lazy=True, passive_deletes=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "receipt_number": self.receipt_number,
            "date": to_iso_date(self.date),
            "customer_name": self.customer_name,
            "customer_contact": self.customer_contact,
            "customer_country_code": self.customer_country_code,
            "payment_type": self.payment_type,
            "payment_status": self.payment_status,
            "notes": self.notes,
            "total": format_money(self.total_cents),
            "due_total": format_money(self.due_total_cents),
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
        }


class ReceiptItem(db.Model):
    """Line items on a receipt."""
    __tablename__ = "receipt_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_receipt_items_quantity_pos"),
        db.CheckConstraint("price_cents >= 0", name="ck_receipt_items_price_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    receipt_id = db.Column(db.Integer, db.ForeignKey("receipts.id", ondelete="CASCADE"), nullable=False, index=True)

    description = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    price_cents = db.Column(db.BigInteger, nullable=False)

    # Portion paid up front (advance) / still owed (due) against this line
    advance_amount_cents = db.Column(db.BigInteger, nullable=False, default=0)
    due_amount_cents = db.Column(db.BigInteger, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    receipt = db.relationship(
        "Receipt",
        backref=db.backref("items", lazy=True, passive_deletes=True, order_by="ReceiptItem.id"),
    )

    @property
    def line_total_cents(self) -> int:
        return self.quantity * self.price_cents

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "receipt_id": self.receipt_id,
            "description": self.description,
            "quantity": self.quantity,
            "price": format_money(self.price_cents),
            "line_total": format_money(self.line_total_cents),
            "advance_amount": format_money(self.advance_amount_cents),
            "due_amount": format_money(self.due_amount_cents),
        }


class PaymentDetails(db.Model):
    """
    Optional payment-method metadata for a receipt.

    SECURITY: Only the last four card digits are ever stored.
    """
    __tablename__ = "payment_details"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    receipt_id = db.Column(
        db.Integer, db.ForeignKey("receipts.id", ondelete="CASCADE"), nullable=False, unique=True
    )

    card_number = db.Column(db.String(16), nullable=True)
    phone_number = db.Column(db.String(20), nullable=True)
    phone_country_code = db.Column(db.String(10), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    receipt = db.relationship(
        "Receipt",
        backref=db.backref("payment_details", uselist=False, lazy=True, passive_deletes=True),
    )

    def to_dict(self) -> dict:
        return {
            "card_number": self.card_number,
            "phone_number": self.phone_number,
            "phone_country_code": self.phone_country_code,
        }
