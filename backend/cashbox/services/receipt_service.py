# Overview: Service-layer operations for receipts; validation, payment derivation and the atomic create.

"""
Receipt Creation Workflow

WHY: A sale touches up to five tables (receipt, items, payment details,
due record, account transaction). Either all of them are written or none.

DERIVATION (amounts in cents, exact integer arithmetic):
- full:    paid_now = SUM(qty * price);          due_total = 0
- advance: paid_now = SUM(advanceAmount);        due_total = SUM(qty * price) - paid_now
- due:     paid_now = 0;                         due_total = SUM(dueAmount)

Balance side effects (cash balance, due balance) come from the flush-time
hooks in models.balance_rules; this module never touches account_balances.

NUMBERING: {StoreFirst}{UserFirst}{StoreLast}-NNNNN per user. A collision
on the (user, receipt_number) constraint is reported to the client (409), which
fetches a fresh number and resubmits. There is no server-side retry.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import (
    AccountTransaction,
    DueRecord,
    PaymentDetails,
    Receipt,
    ReceiptItem,
    User,
)
from ..models.accounts import TRANSACTION_CREDIT
from ..models.receipts import PAYMENT_STATUSES, PAYMENT_TYPES
from ..validation import (
    MAX_AMOUNT_CENTS,
    MAX_INTEGER,
    ConflictError,
    NotFoundError,
    ValidationError,
    format_money,
    optional_text,
    parse_choice,
    parse_money_cents,
    parse_positive_int,
    require_payload,
    require_text,
)
from .due_service import DEFAULT_DUE_TERM
from cashbox.time_utils import parse_iso_date, today


RECEIPT_NUMBER_DIGITS = 5
_SUFFIX_PATTERN = re.compile(r"^\d+$")


class ReceiptNumberConflictError(ConflictError):
    """Receipt number already used; client should fetch a new one."""


@dataclass
class ItemInput:
    description: str
    quantity: int
    price_cents: int
    advance_amount_cents: int = 0
    due_amount_cents: int = 0

    @property
    def line_total_cents(self) -> int:
        return self.quantity * self.price_cents


@dataclass
class PaymentBreakdown:
    total_cents: int
    paid_now_cents: int
    due_total_cents: int


@dataclass
class ReceiptInput:
    receipt_number: str
    date: date
    customer_name: str
    customer_contact: str
    customer_country_code: str
    payment_type: str
    payment_status: str
    notes: str | None
    items: list[ItemInput]
    payment_details: dict | None
    expected_payment_date: date | None


def derive_payment(payment_status: str, items: list[ItemInput]) -> PaymentBreakdown:
    """Compute total, paid-now and due-total for a validated item list."""
    total = sum(item.line_total_cents for item in items)

    if payment_status == "full":
        paid_now = total
        due_total = 0
    elif payment_status == "advance":
        paid_now = sum(item.advance_amount_cents for item in items)
        due_total = total - paid_now
    elif payment_status == "due":
        paid_now = 0
        due_total = sum(item.due_amount_cents for item in items)
    else:
        raise ValidationError(f"paymentStatus must be one of: {', '.join(PAYMENT_STATUSES)}")

    return PaymentBreakdown(total_cents=total, paid_now_cents=paid_now, due_total_cents=due_total)


def _parse_item(raw, index: int, payment_status: str) -> ItemInput:
    label = f"items[{index}]"
    if not isinstance(raw, dict):
        raise ValidationError(f"{label} must be an object")

    item = ItemInput(
        description=require_text(raw.get("description"), f"{label}.description", max_length=255),
        quantity=parse_positive_int(raw.get("quantity"), f"{label}.quantity"),
        price_cents=parse_money_cents(raw.get("price"), f"{label}.price"),
    )
    line_total = item.line_total_cents
    if line_total > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{label} total exceeds the maximum of {format_money(MAX_AMOUNT_CENTS)}")

    if payment_status == "advance":
        advance = parse_money_cents(raw.get("advanceAmount"), f"{label}.advanceAmount")
        if advance > line_total:
            raise ValidationError(f"{label}.advanceAmount cannot exceed quantity * price")
        item.advance_amount_cents = advance
        item.due_amount_cents = line_total - advance
    elif payment_status == "due":
        due = parse_money_cents(raw.get("dueAmount"), f"{label}.dueAmount")
        if due > line_total:
            raise ValidationError(f"{label}.dueAmount cannot exceed quantity * price")
        item.due_amount_cents = due

    return item


def _parse_payment_details(raw) -> dict | None:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise ValidationError("paymentDetails must be an object")

    card_number = optional_text(raw.get("cardNumber"), "paymentDetails.cardNumber", max_length=32)
    phone_number = optional_text(raw.get("phoneNumber"), "paymentDetails.phoneNumber", max_length=20)
    phone_country_code = optional_text(
        raw.get("phoneCountryCode"), "paymentDetails.phoneCountryCode", max_length=10
    )
    if not (card_number or phone_number):
        return None

    masked_card = None
    if card_number:
        digits = re.sub(r"[\s-]", "", card_number)
        if not digits.isdigit() or len(digits) < 4:
            raise ValidationError("paymentDetails.cardNumber must contain at least 4 digits")
        masked_card = "*" * 12 + digits[-4:]

    return {
        "card_number": masked_card,
        "phone_number": phone_number,
        "phone_country_code": phone_country_code,
    }


def _check_client_total(payload: dict, key: str, expected_cents: int) -> None:
    if payload.get(key) is None:
        return
    sent = parse_money_cents(payload.get(key), key)
    if sent != expected_cents:
        raise ValidationError(f"{key} does not match the items (expected {format_money(expected_cents)})")


def validate_receipt_payload(payload) -> tuple[ReceiptInput, PaymentBreakdown]:
    """
    Validate a receipt payload before any write.

    Raises ValidationError on the first failing field.
    """
    payload = require_payload(payload)

    payment_status = parse_choice(payload.get("paymentStatus"), "paymentStatus", PAYMENT_STATUSES)

    raw_date = require_text(payload.get("date"), "date")
    try:
        receipt_date = parse_iso_date(raw_date)
    except ValueError:
        raise ValidationError("date must be an ISO-8601 date")

    raw_items = payload.get("items")
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("At least one item is required")

    expected_payment_date = None
    if payload.get("expectedPaymentDate"):
        try:
            expected_payment_date = parse_iso_date(str(payload["expectedPaymentDate"]))
        except ValueError:
            raise ValidationError("expectedPaymentDate must be an ISO-8601 date")

    data = ReceiptInput(
        receipt_number=require_text(payload.get("receiptNumber"), "receiptNumber", max_length=20),
        date=receipt_date,
        customer_name=require_text(payload.get("customerName"), "customerName", max_length=100),
        customer_contact=require_text(payload.get("customerContact"), "customerContact", max_length=20),
        customer_country_code=optional_text(
            payload.get("customerCountryCode"), "customerCountryCode", max_length=10
        ) or "+91",
        payment_type=parse_choice(payload.get("paymentType"), "paymentType", PAYMENT_TYPES),
        payment_status=payment_status,
        notes=optional_text(payload.get("notes"), "notes"),
        items=[_parse_item(raw, i, payment_status) for i, raw in enumerate(raw_items)],
        payment_details=_parse_payment_details(payload.get("paymentDetails")),
        expected_payment_date=expected_payment_date,
    )

    breakdown = derive_payment(payment_status, data.items)
    if breakdown.total_cents > MAX_AMOUNT_CENTS:
        raise ValidationError(f"Receipt total exceeds the maximum of {format_money(MAX_AMOUNT_CENTS)}")
    # The due record carries the summed quantity
    if sum(item.quantity for item in data.items) > MAX_INTEGER:
        raise ValidationError(f"Total quantity exceeds the maximum of {MAX_INTEGER}")
    _check_client_total(payload, "total", breakdown.total_cents)
    _check_client_total(payload, "dueTotal", breakdown.due_total_cents)

    return data, breakdown


def create_receipt(user_id: int, payload) -> Receipt:
    """
    Persist a receipt and everything it implies in one transaction.

    Writes: Receipt, ReceiptItems, optional PaymentDetails, a DueRecord
    when something is still owed, and a credit AccountTransaction when
    something was paid now.

    Raises:
        ValidationError: payload invalid (nothing written)
        ReceiptNumberConflictError: receipt number already taken
    """
    data, breakdown = validate_receipt_payload(payload)

    try:
        receipt = Receipt(
            receipt_number=data.receipt_number,
            date=data.date,
            customer_name=data.customer_name,
            customer_contact=data.customer_contact,
            customer_country_code=data.customer_country_code,
            payment_type=data.payment_type,
            payment_status=data.payment_status,
            notes=data.notes,
            total_cents=breakdown.total_cents,
            due_total_cents=breakdown.due_total_cents,
            user_id=user_id,
        )
        db.session.add(receipt)

        for item in data.items:
            db.session.add(ReceiptItem(
                receipt=receipt,
                description=item.description,
                quantity=item.quantity,
                price_cents=item.price_cents,
                advance_amount_cents=item.advance_amount_cents,
                due_amount_cents=item.due_amount_cents,
            ))

        if data.payment_details:
            db.session.add(PaymentDetails(receipt=receipt, **data.payment_details))

        if data.payment_status != "full" and breakdown.due_total_cents > 0:
            db.session.add(DueRecord(
                customer_name=data.customer_name,
                customer_contact=data.customer_contact,
                customer_country_code=data.customer_country_code,
                product_ordered=", ".join(item.description for item in data.items),
                quantity=sum(item.quantity for item in data.items),
                amount_due_cents=breakdown.due_total_cents,
                expected_payment_date=data.expected_payment_date or today() + DEFAULT_DUE_TERM,
                receipt_number=data.receipt_number,
                user_id=user_id,
            ))

        if breakdown.paid_now_cents > 0:
            db.session.add(AccountTransaction(
                particulars=f"Payment from {data.customer_name}",
                amount_cents=breakdown.paid_now_cents,
                type=TRANSACTION_CREDIT,
                user_id=user_id,
                receipt=receipt,
            ))

        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        if db.session.query(Receipt.id).filter_by(user_id=user_id, receipt_number=data.receipt_number).first():
            raise ReceiptNumberConflictError(
                f"Receipt number {data.receipt_number} is already in use"
            )
        raise
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(
        "Receipt %s created for user %s (paid_now=%s due_total=%s)",
        receipt.receipt_number, user_id, breakdown.paid_now_cents, breakdown.due_total_cents,
    )
    return receipt


def receipt_number_prefix(user: User) -> str:
    store_name = (user.store_name or "").strip()
    user_name = (user.name or "").strip()
    if not store_name or not user_name:
        raise ValidationError("User profile incomplete: store name and name are required")
    return f"{store_name[0]}{user_name[0]}{store_name[-1]}".upper() + "-"


def next_receipt_number(user: User) -> str:
    """
    Suggest the next receipt number for the user.

    counter = 1 + numeric suffix of the greatest existing number with the
    user's prefix. Advisory only: the unique constraint decides at insert.
    """
    prefix = receipt_number_prefix(user)

    candidates = (
        db.session.query(Receipt.receipt_number)
        .filter(
            Receipt.user_id == user.id,
            Receipt.receipt_number.startswith(prefix, autoescape=True),
        )
        .order_by(Receipt.receipt_number.desc())
    )

    counter = 1
    for (number,) in candidates:
        suffix = number[len(prefix):]
        if _SUFFIX_PATTERN.match(suffix):
            counter = int(suffix) + 1
            break

    return f"{prefix}{counter:0{RECEIPT_NUMBER_DIGITS}d}"


def list_receipts(user_id: int, *, search: str | None = None) -> list[Receipt]:
    """User's receipts, newest business date first."""
    query = db.session.query(Receipt).filter(Receipt.user_id == user_id)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(db.or_(
            Receipt.customer_name.ilike(pattern),
            Receipt.receipt_number.ilike(pattern),
        ))
    return query.order_by(Receipt.date.desc(), Receipt.id.desc()).all()


def get_receipt(user_id: int, receipt_id: int) -> Receipt:
    receipt = db.session.query(Receipt).filter_by(id=receipt_id, user_id=user_id).first()
    if receipt is None:
        raise NotFoundError("Receipt not found")
    return receipt


def receipt_detail(receipt: Receipt) -> dict:
    """Receipt with its items, payment details and issuing store."""
    data = receipt.to_dict()
    data["items"] = [item.to_dict() for item in receipt.items]
    data["payment_details"] = receipt.payment_details.to_dict() if receipt.payment_details else None
    data["paid_now"] = format_money(receipt_paid_now_cents(receipt))
    user = receipt.user
    data["store"] = {
        "name": user.store_name,
        "address": user.store_address,
        "contact": user.store_contact,
        "country_code": user.store_country_code,
    }
    return data


def receipt_paid_now_cents(receipt: Receipt) -> int:
    if receipt.payment_status == "due":
        return 0
    return receipt.total_cents - receipt.due_total_cents
