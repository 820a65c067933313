# Overview: Service-layer operations for reporting; period summaries over receipts, ledger and dues.

from __future__ import annotations

from datetime import date, datetime, time, timedelta

from sqlalchemy import func

from ..extensions import db
from ..models import AccountTransaction, DueRecord, Receipt
from ..models.accounts import TRANSACTION_CREDIT, TRANSACTION_DEBIT
from ..validation import ValidationError, format_money
from . import balance_service
from cashbox.time_utils import parse_iso_date, to_iso_date


def _parse_range(start: str | None, end: str | None) -> tuple[date | None, date | None]:
    try:
        start_d = parse_iso_date(start) if start else None
        end_d = parse_iso_date(end) if end else None
    except ValueError:
        raise ValidationError("from/to must be ISO-8601 dates")
    if start_d and end_d and start_d > end_d:
        raise ValidationError("from must be on or before to")
    return start_d, end_d


def period_summary(user_id: int, start: str | None = None, end: str | None = None) -> dict:
    """
    Sales, cash movement and dues for a date range (inclusive, open ends allowed).

    Receipts are bucketed by their business date, ledger entries by their
    timestamp, dues by creation timestamp.
    """
    start_d, end_d = _parse_range(start, end)
    start_dt = datetime.combine(start_d, time.min) if start_d else None
    end_dt = datetime.combine(end_d + timedelta(days=1), time.min) if end_d else None

    receipts = db.session.query(
        Receipt.payment_status,
        func.count(Receipt.id),
        func.coalesce(func.sum(Receipt.total_cents), 0),
        func.coalesce(func.sum(Receipt.due_total_cents), 0),
    ).filter(Receipt.user_id == user_id)
    if start_d:
        receipts = receipts.filter(Receipt.date >= start_d)
    if end_d:
        receipts = receipts.filter(Receipt.date <= end_d)
    by_status = {
        status: {"count": int(count), "total_cents": int(total), "due_total_cents": int(due)}
        for status, count, total, due in receipts.group_by(Receipt.payment_status).all()
    }

    ledger = db.session.query(
        AccountTransaction.type,
        func.coalesce(func.sum(AccountTransaction.amount_cents), 0),
    ).filter(AccountTransaction.user_id == user_id)
    if start_dt:
        ledger = ledger.filter(AccountTransaction.created_at >= start_dt)
    if end_dt:
        ledger = ledger.filter(AccountTransaction.created_at < end_dt)
    ledger_totals = dict(ledger.group_by(AccountTransaction.type).all())
    credits = int(ledger_totals.get(TRANSACTION_CREDIT, 0))
    debits = int(ledger_totals.get(TRANSACTION_DEBIT, 0))

    dues = db.session.query(
        func.count(DueRecord.id),
        func.coalesce(func.sum(DueRecord.amount_due_cents), 0),
    ).filter(DueRecord.user_id == user_id)
    if start_dt:
        dues = dues.filter(DueRecord.created_at >= start_dt)
    if end_dt:
        dues = dues.filter(DueRecord.created_at < end_dt)
    dues_count, dues_amount = dues.one()

    balance_cents, total_due_cents = balance_service.get_balance(user_id)

    receipt_count = sum(row["count"] for row in by_status.values())
    total_sales = sum(row["total_cents"] for row in by_status.values())

    return {
        "from": to_iso_date(start_d),
        "to": to_iso_date(end_d),
        "receipts": {
            "count": receipt_count,
            "total_sales": format_money(total_sales),
            "by_status": {
                status: {
                    "count": row["count"],
                    "total": format_money(row["total_cents"]),
                    "due_total": format_money(row["due_total_cents"]),
                }
                for status, row in sorted(by_status.items())
            },
        },
        "transactions": {
            "total_credit": format_money(credits),
            "total_debit": format_money(debits),
            "net": format_money(credits - debits),
        },
        "dues_created": {
            "count": int(dues_count),
            "amount": format_money(int(dues_amount)),
        },
        "balance": format_money(balance_cents),
        "total_due_balance": format_money(total_due_cents),
    }
