# Overview: Service-layer reads and checks over the per-user account balance aggregate.

"""
Account Balance Service

WHY: account_balances is maintained by the flush-time hooks in
models.balance_rules. This module only reads it, audits it against the
source tables, and performs the one sanctioned reset (clear history).

INVARIANT:
- balance == SUM(credits) - SUM(debits) over the user's transactions
- total_due_balance == SUM(amount_due) over the user's unpaid dues
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import case, func, select, update

from ..extensions import db
from ..models import AccountBalance, AccountTransaction
from ..models.accounts import TRANSACTION_CREDIT
from ..models.balance_rules import lock_balance_row, unpaid_due_total_query
from cashbox.time_utils import utcnow


@dataclass
class BalanceReport:
    user_id: int
    balance_cents: int
    expected_balance_cents: int
    total_due_balance_cents: int
    expected_total_due_balance_cents: int

    @property
    def ok(self) -> bool:
        return (
            self.balance_cents == self.expected_balance_cents
            and self.total_due_balance_cents == self.expected_total_due_balance_cents
        )


def get_balance(user_id: int) -> tuple[int, int]:
    """
    Return (balance_cents, total_due_balance_cents) for a user.

    A user with no ledger activity yet has no row; that reads as zeros.
    """
    row = db.session.execute(
        select(AccountBalance.balance_cents, AccountBalance.total_due_balance_cents)
        .where(AccountBalance.user_id == user_id)
    ).first()
    if row is None:
        return 0, 0
    return int(row[0]), int(row[1])


def signed_transaction_total_query(user_id: int):
    signed = case(
        (AccountTransaction.type == TRANSACTION_CREDIT, AccountTransaction.amount_cents),
        else_=-AccountTransaction.amount_cents,
    )
    return select(func.coalesce(func.sum(signed), 0)).where(AccountTransaction.user_id == user_id)


def verify_balance(user_id: int) -> BalanceReport:
    """Recompute both aggregates from the source rows and compare with the stored row."""
    balance_cents, total_due_cents = get_balance(user_id)
    expected_balance = db.session.execute(signed_transaction_total_query(user_id)).scalar()
    expected_due = db.session.execute(unpaid_due_total_query(user_id)).scalar()
    return BalanceReport(
        user_id=user_id,
        balance_cents=balance_cents,
        expected_balance_cents=int(expected_balance or 0),
        total_due_balance_cents=total_due_cents,
        expected_total_due_balance_cents=int(expected_due or 0),
    )


def lock_balance(user_id: int) -> None:
    """Lock the user's balance row on the session's connection (created if missing)."""
    lock_balance_row(db.session.connection(), user_id)


def reset_cash_balance(user_id: int) -> None:
    """
    Re-derive the cash balance after the user's transactions were deleted.

    Runs as a Core UPDATE inside the caller's transaction (the ORM guard on
    AccountBalance does not fire for Core statements); the caller holds the
    balance row lock and commits. The balance is recomputed rather than set
    to zero so a credit that slipped in after the delete is still counted.
    The due balance is left alone: dues are not part of the cash history.
    """
    expected = signed_transaction_total_query(user_id).scalar_subquery()
    db.session.execute(
        update(AccountBalance.__table__)
        .where(AccountBalance.__table__.c.user_id == user_id)
        .values(balance_cents=expected, last_updated=utcnow())
    )
