# Overview: Service-layer operations for the cash account; manual entries, history and clearing.

from __future__ import annotations

from flask import current_app
from sqlalchemy import func
from sqlalchemy.orm import joinedload

from ..extensions import db
from ..models import AccountTransaction, User
from ..models.accounts import TRANSACTION_CREDIT, TRANSACTION_DEBIT, TRANSACTION_TYPES
from ..validation import ValidationError, parse_choice, parse_money_cents, require_text
from . import balance_service
from .auth_service import InvalidCredentialsError, verify_password
from .concurrency import serialize_writes


def record_transaction(user_id: int, particulars, amount, type_) -> AccountTransaction:
    """
    Manual credit/debit entry.

    The balance moves by the flush-time hook; nothing else to do here.
    """
    transaction = AccountTransaction(
        particulars=require_text(particulars, "particulars"),
        amount_cents=parse_money_cents(amount, "amount", allow_zero=False),
        type=parse_choice(type_, "type", TRANSACTION_TYPES),
        user_id=user_id,
    )
    try:
        db.session.add(transaction)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(
        "Manual %s of %s recorded for user %s", transaction.type, transaction.amount_cents, user_id
    )
    return transaction


def list_transactions(user_id: int) -> dict:
    """
    Transaction history (newest first) with current balances and totals.
    """
    transactions = (
        db.session.query(AccountTransaction)
        .options(joinedload(AccountTransaction.receipt))
        .filter(AccountTransaction.user_id == user_id)
        .order_by(AccountTransaction.created_at.desc(), AccountTransaction.id.desc())
        .all()
    )

    totals = dict(
        db.session.query(AccountTransaction.type, func.coalesce(func.sum(AccountTransaction.amount_cents), 0))
        .filter(AccountTransaction.user_id == user_id)
        .group_by(AccountTransaction.type)
        .all()
    )

    balance_cents, total_due_cents = balance_service.get_balance(user_id)

    return {
        "transactions": transactions,
        "balance_cents": balance_cents,
        "total_due_balance_cents": total_due_cents,
        "total_credit_cents": int(totals.get(TRANSACTION_CREDIT, 0)),
        "total_debit_cents": int(totals.get(TRANSACTION_DEBIT, 0)),
        "transaction_count": len(transactions),
    }


def clear_history(user: User, password) -> int:
    """
    Delete every transaction of the user and zero the cash balance.

    Requires the account password. The balance row is locked before the
    delete so a concurrent credit either lands before it (and is deleted)
    or waits and is added on top of the reset. Dues and the due balance
    are untouched. Returns the number of deleted transactions.
    """
    if not password:
        raise ValidationError("Password is required")
    if not verify_password(password, user.password_hash):
        raise InvalidCredentialsError("Invalid password")

    try:
        serialize_writes()
        balance_service.lock_balance(user.id)
        deleted = (
            db.session.query(AccountTransaction)
            .filter(AccountTransaction.user_id == user.id)
            .delete(synchronize_session=False)
        )
        balance_service.reset_cash_balance(user.id)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info("Cleared %s transactions for user %s", deleted, user.id)
    return deleted
