# Overview: Service-layer operations for due records; settlement, direct creation and overdue queries.

"""
Due Settlement Workflow

WHY: A due record is paid exactly once, and that payment produces exactly
one credit in the cash ledger. Two racing settlements of the same record
must end with one success and one conflict, never two credits.

GUARDS (all inside one database transaction):
1. SQLite: BEGIN IMMEDIATE before the read (serialize_writes).
   Other backends: SELECT ... FOR UPDATE on the due row.
2. DueRecord.version_id_col: the paid flip is an
   UPDATE ... WHERE version_id = :seen; a lost race raises StaleDataError.
3. Unique index on account_transactions.due_record_id. An IntegrityError
   is only reported as a conflict once a re-read shows the due settled;
   any other constraint failure propagates.

Balance updates follow from the flush (models.balance_rules).
"""

from __future__ import annotations

from datetime import date, timedelta

from flask import current_app
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..models import AccountTransaction, DueRecord
from ..models.accounts import TRANSACTION_CREDIT
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    optional_text,
    parse_money_cents,
    parse_positive_int,
    require_payload,
    require_text,
)
from .concurrency import lock_for_update, run_with_retry, serialize_writes
from cashbox.time_utils import parse_iso_date, today, utcnow


# Fixed payment term for dues when the client does not pick a date
DEFAULT_DUE_TERM = timedelta(days=7)


class DueAlreadySettledError(ConflictError):
    """The due record is already paid (terminal, not retryable)."""


def settlement_particulars(due: DueRecord) -> str:
    particulars = f"Due payment from {due.customer_name}"
    if due.receipt_number:
        particulars += f" (Receipt {due.receipt_number})"
    return particulars


def _already_settled(user_id: int, due_id: int) -> bool:
    """Re-read after a rollback: did another request settle this due?"""
    is_paid = (
        db.session.query(DueRecord.is_paid).filter_by(id=due_id, user_id=user_id).scalar()
    )
    if is_paid:
        return True
    linked = db.session.query(AccountTransaction.id).filter_by(due_record_id=due_id).first()
    return linked is not None


def settle_due(user_id: int, due_id: int) -> tuple[DueRecord, AccountTransaction]:
    """
    Mark one due record paid and record the payment.

    Returns (due_record, credit_transaction).

    Raises:
        NotFoundError: no such due record for this user
        DueAlreadySettledError: already paid, or another request won the race
    """
    try:
        serialize_writes()

        due = lock_for_update(
            db.session.query(DueRecord).filter_by(id=due_id, user_id=user_id)
        ).first()
        if due is None:
            raise NotFoundError("Due record not found")
        if due.is_paid:
            raise DueAlreadySettledError(f"Due record {due_id} is already settled")

        due.is_paid = True
        due.paid_at = utcnow()

        credit = AccountTransaction(
            particulars=settlement_particulars(due),
            amount_cents=due.amount_due_cents,
            type=TRANSACTION_CREDIT,
            user_id=user_id,
            due_record=due,
        )
        db.session.add(credit)
        db.session.commit()
    except StaleDataError:
        db.session.rollback()
        current_app.logger.warning("Lost settlement race on due record %s", due_id)
        raise DueAlreadySettledError(f"Due record {due_id} is already settled")
    except IntegrityError:
        db.session.rollback()
        if _already_settled(user_id, due_id):
            current_app.logger.warning("Lost settlement race on due record %s", due_id)
            raise DueAlreadySettledError(f"Due record {due_id} is already settled")
        raise
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(
        "Due record %s settled for user %s (amount=%s)", due.id, user_id, due.amount_due_cents
    )
    return due, credit


def create_due_record(user_id: int, payload) -> DueRecord:
    """
    Record a due directly (manage-dues), without a receipt.

    expectedPaymentDate is optional and defaults to today + DEFAULT_DUE_TERM.
    """
    payload = require_payload(payload)

    expected = payload.get("expectedPaymentDate")
    try:
        expected_date = parse_iso_date(str(expected)) if expected else None
    except ValueError:
        raise ValidationError("expectedPaymentDate must be an ISO-8601 date")

    due = DueRecord(
        customer_name=require_text(payload.get("customerName"), "customerName", max_length=100),
        customer_contact=require_text(payload.get("customerContact"), "customerContact", max_length=20),
        customer_country_code=optional_text(
            payload.get("customerCountryCode"), "customerCountryCode", max_length=10
        ) or "+91",
        product_ordered=require_text(payload.get("productOrdered"), "productOrdered"),
        quantity=parse_positive_int(payload.get("quantity"), "quantity"),
        amount_due_cents=parse_money_cents(payload.get("amountDue"), "amountDue", allow_zero=False),
        expected_payment_date=expected_date or today() + DEFAULT_DUE_TERM,
        receipt_number=optional_text(payload.get("receiptNumber"), "receiptNumber", max_length=20),
        user_id=user_id,
    )

    try:
        db.session.add(due)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info("Due record %s created for user %s", due.id, user_id)
    return due


def list_unpaid_dues(user_id: int) -> list[DueRecord]:
    """Unpaid dues, earliest expected payment first. Read-only."""
    def _op():
        return (
            db.session.query(DueRecord)
            .filter(DueRecord.user_id == user_id, DueRecord.is_paid.is_(False))
            .order_by(DueRecord.expected_payment_date.asc(), DueRecord.id.asc())
            .all()
        )
    return run_with_retry(_op)


def list_overdue_dues(user_id: int, as_of: date | None = None) -> list[DueRecord]:
    """Unpaid dues whose expected payment date is on or before as_of (default today)."""
    as_of = as_of or today()
    return (
        db.session.query(DueRecord)
        .filter(
            DueRecord.user_id == user_id,
            DueRecord.is_paid.is_(False),
            DueRecord.expected_payment_date <= as_of,
        )
        .order_by(DueRecord.expected_payment_date.asc(), DueRecord.id.asc())
        .all()
    )
