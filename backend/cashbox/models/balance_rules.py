"""
Balance maintenance rules (flush-time hooks)

WHY: Several call sites create ledger entries and due records (receipts,
settlements, manual entries, manage-dues). If each one had to remember to
update account_balances, one of them eventually would not. These hooks run
inside the flush that writes the source row, on the same connection and
in the same database transaction, so the aggregate is never observably
stale and a failure here aborts the triggering write.

RULES:
- account_transactions INSERT: balance += amount (credit) / -= amount (debit);
  the balance row is created on first use.
- due_records INSERT: total_due is recomputed from scratch for the user;
  the balance row is created on first use.
- Every writer first ensures and locks the user's balance row
  (lock_balance_row), and only then reads source aggregates.
- due_records UPDATE with is_paid False -> True: total_due recomputed.
- Anything else that would mutate a ledger row is rejected.

NOTE: Core/bulk statements (session.execute(update(...))) bypass mapper
events. Application code must go through the ORM for these tables;
services.balance_service.reset_cash_balance is the single sanctioned Core
writer of account_balances.
"""

from __future__ import annotations

from sqlalchemy import event, func, insert, inspect, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from .accounts import AccountBalance, AccountTransaction, DueRecord, TRANSACTION_CREDIT
from cashbox.time_utils import utcnow


class LedgerIntegrityError(RuntimeError):
    """Raised when a write would break ledger immutability or balance ownership."""


_balances = AccountBalance.__table__
_dues = DueRecord.__table__


def unpaid_due_total_query(user_id: int):
    return select(func.coalesce(func.sum(_dues.c.amount_due_cents), 0)).where(
        _dues.c.user_id == user_id,
        _dues.c.is_paid.is_(False),
    )


def _changed_columns(target) -> set[str]:
    state = inspect(target)
    changed = set()
    for attr in state.mapper.column_attrs:
        if state.attrs[attr.key].history.has_changes():
            changed.add(attr.key)
    return changed


def _ensure_balance_row(connection, user_id: int) -> None:
    """Insert a zero balance row unless one exists; a concurrent insert makes this a no-op."""
    now = utcnow()
    values = dict(
        user_id=user_id,
        balance_cents=0,
        total_due_balance_cents=0,
        created_at=now,
        last_updated=now,
    )
    dialect = connection.dialect.name
    if dialect == "postgresql":
        stmt = pg_insert(_balances).values(**values).on_conflict_do_nothing(index_elements=["user_id"])
    elif dialect == "sqlite":
        stmt = sqlite_insert(_balances).values(**values).on_conflict_do_nothing(index_elements=["user_id"])
    elif dialect in ("mysql", "mariadb"):
        stmt = insert(_balances).values(**values).prefix_with("IGNORE")
    else:
        exists = connection.execute(
            select(_balances.c.id).where(_balances.c.user_id == user_id)
        ).first()
        if exists is not None:
            return
        stmt = insert(_balances).values(**values)
    connection.execute(stmt)


def lock_balance_row(connection, user_id: int) -> None:
    """
    Make sure the user's balance row exists, then lock it.

    Every writer of account_balances calls this before reading any source
    aggregate, so writers for one user queue on the row lock and each SUM
    runs after the previous writer committed.
    """
    _ensure_balance_row(connection, user_id)
    # SQLite renders no FOR UPDATE; its writers are already serialized
    connection.execute(
        select(_balances.c.id).where(_balances.c.user_id == user_id).with_for_update()
    )


def _apply_cash_delta(connection, user_id: int, delta_cents: int) -> None:
    lock_balance_row(connection, user_id)
    connection.execute(
        update(_balances)
        .where(_balances.c.user_id == user_id)
        .values(balance_cents=_balances.c.balance_cents + delta_cents, last_updated=utcnow())
    )


def _recompute_due_balance(connection, user_id: int) -> None:
    lock_balance_row(connection, user_id)
    # Summed after the lock so every committed due is counted
    total = connection.execute(unpaid_due_total_query(user_id)).scalar()
    connection.execute(
        update(_balances)
        .where(_balances.c.user_id == user_id)
        .values(total_due_balance_cents=total, last_updated=utcnow())
    )


# =============================================================================
# ACCOUNT TRANSACTIONS
# =============================================================================

@event.listens_for(AccountTransaction, "after_insert")
def _transaction_inserted(mapper, connection, target):
    delta = target.amount_cents if target.type == TRANSACTION_CREDIT else -target.amount_cents
    _apply_cash_delta(connection, target.user_id, delta)


@event.listens_for(AccountTransaction, "before_update")
def _transaction_update_guard(mapper, connection, target):
    changed = _changed_columns(target)
    # ON DELETE SET NULL mirrored by the ORM for loaded rows
    link_nulling = {"receipt_id", "due_record_id"}
    if changed - link_nulling or any(getattr(target, key) is not None for key in changed):
        raise LedgerIntegrityError(f"Account transaction {target.id} is immutable")


# =============================================================================
# DUE RECORDS
# =============================================================================

@event.listens_for(DueRecord, "after_insert")
def _due_inserted(mapper, connection, target):
    _recompute_due_balance(connection, target.user_id)


@event.listens_for(DueRecord, "before_update")
def _due_update_guard(mapper, connection, target):
    changed = _changed_columns(target) - {"version_id"}
    if not changed:
        return

    if changed - {"is_paid", "paid_at"}:
        raise LedgerIntegrityError(
            f"Due record {target.id} only allows the unpaid -> paid transition"
        )

    if "is_paid" not in changed:
        raise LedgerIntegrityError(f"Due record {target.id} paid_at cannot change on its own")

    history = inspect(target).attrs.is_paid.history
    previous = history.deleted[0] if history.deleted else None
    if previous is True or target.is_paid is not True:
        raise LedgerIntegrityError(f"Due record {target.id} cannot return to unpaid")


@event.listens_for(DueRecord, "after_update")
def _due_updated(mapper, connection, target):
    history = inspect(target).attrs.is_paid.history
    if history.has_changes() and target.is_paid is True:
        _recompute_due_balance(connection, target.user_id)


# =============================================================================
# ACCOUNT BALANCES (derived only)
# =============================================================================

@event.listens_for(AccountBalance, "before_insert")
@event.listens_for(AccountBalance, "before_update")
def _balance_write_guard(mapper, connection, target):
    raise LedgerIntegrityError("account_balances is derived; write the source rows instead")
