"""
Balance maintenance rule tests.

Verifies:
- account_balances follows account_transactions and due_records inserts
- the balance row is created once and locked before any aggregate is read
- the due total is recomputed when a due flips to paid
- ledger rows refuse mutation; account_balances refuses ORM writes
"""

from datetime import date

import pytest

from cashbox.models import AccountBalance, AccountTransaction, DueRecord
from cashbox.models.balance_rules import LedgerIntegrityError, lock_balance_row
from cashbox.services import balance_service
from cashbox.time_utils import utcnow


def _transaction(user, amount_cents, type_="credit", particulars="Manual entry"):
    return AccountTransaction(
        particulars=particulars,
        amount_cents=amount_cents,
        type=type_,
        user_id=user.id,
    )


def _due(user, amount_cents, **kwargs):
    values = dict(
        customer_name="Asha",
        customer_contact="9000000001",
        product_ordered="Widget",
        quantity=1,
        amount_due_cents=amount_cents,
        expected_payment_date=date(2026, 1, 22),
        user_id=user.id,
    )
    values.update(kwargs)
    return DueRecord(**values)


class TestCashBalance:
    def test_no_row_reads_as_zero(self, db_session, user):
        assert balance_service.get_balance(user.id) == (0, 0)
        assert db_session.query(AccountBalance).count() == 0

    def test_first_transaction_creates_row(self, db_session, user):
        db_session.add(_transaction(user, 15000))
        db_session.commit()

        row = db_session.query(AccountBalance).filter_by(user_id=user.id).one()
        assert row.balance_cents == 15000
        assert row.total_due_balance_cents == 0

    def test_credits_and_debits_accumulate(self, db_session, user):
        db_session.add(_transaction(user, 10000, "credit"))
        db_session.commit()
        db_session.add(_transaction(user, 2550, "debit"))
        db_session.add(_transaction(user, 500, "credit"))
        db_session.commit()

        assert balance_service.get_balance(user.id)[0] == 10000 - 2550 + 500
        assert balance_service.verify_balance(user.id).ok

    def test_balance_can_go_negative(self, db_session, user):
        db_session.add(_transaction(user, 700, "debit"))
        db_session.commit()

        assert balance_service.get_balance(user.id)[0] == -700

    def test_users_are_isolated(self, db_session, user, other_user):
        db_session.add(_transaction(user, 1000))
        db_session.add(_transaction(other_user, 2500, "debit"))
        db_session.commit()

        assert balance_service.get_balance(user.id)[0] == 1000
        assert balance_service.get_balance(other_user.id)[0] == -2500

    def test_failed_insert_leaves_balance_untouched(self, db_session, user):
        db_session.add(_transaction(user, 1000))
        db_session.commit()

        # amount must be positive; the CHECK constraint aborts the flush
        db_session.add(_transaction(user, 0))
        with pytest.raises(Exception):
            db_session.commit()
        db_session.rollback()

        assert balance_service.get_balance(user.id)[0] == 1000
        assert balance_service.verify_balance(user.id).ok

    def test_lock_creates_the_row_once(self, db_session, user):
        connection = db_session.connection()
        lock_balance_row(connection, user.id)
        lock_balance_row(connection, user.id)
        db_session.commit()

        assert db_session.query(AccountBalance).filter_by(user_id=user.id).count() == 1
        assert balance_service.get_balance(user.id) == (0, 0)

    def test_existing_row_is_left_alone(self, db_session, user):
        db_session.add(_transaction(user, 2500))
        db_session.commit()

        lock_balance_row(db_session.connection(), user.id)
        db_session.commit()

        assert balance_service.get_balance(user.id) == (2500, 0)

    def test_reset_recomputes_from_remaining_rows(self, db_session, user):
        db_session.add(_transaction(user, 2500))
        db_session.commit()

        balance_service.lock_balance(user.id)
        balance_service.reset_cash_balance(user.id)
        db_session.commit()

        # Nothing was deleted, so the reset lands on the ledger sum, not zero
        assert balance_service.get_balance(user.id) == (2500, 0)
        assert balance_service.verify_balance(user.id).ok


class TestDueBalance:
    def test_first_due_creates_row(self, db_session, user):
        db_session.add(_due(user, 15000))
        db_session.commit()

        assert balance_service.get_balance(user.id) == (0, 15000)

    def test_due_total_recomputed_from_scratch(self, db_session, user):
        db_session.add(_due(user, 15000))
        db_session.add(_due(user, 2000))
        db_session.commit()
        db_session.add(_due(user, 999))
        db_session.commit()

        assert balance_service.get_balance(user.id)[1] == 15000 + 2000 + 999

    def test_paid_flip_recomputes(self, db_session, user):
        first = _due(user, 15000)
        second = _due(user, 2000)
        db_session.add_all([first, second])
        db_session.commit()

        first.is_paid = True
        first.paid_at = utcnow()
        db_session.commit()

        assert balance_service.get_balance(user.id)[1] == 2000
        assert balance_service.verify_balance(user.id).ok

    def test_cash_and_due_are_independent(self, db_session, user):
        db_session.add(_transaction(user, 5000))
        db_session.add(_due(user, 3000))
        db_session.commit()

        assert balance_service.get_balance(user.id) == (5000, 3000)


class TestImmutability:
    def test_transaction_amount_cannot_change(self, db_session, user):
        entry = _transaction(user, 1000)
        db_session.add(entry)
        db_session.commit()

        entry.amount_cents = 5000
        with pytest.raises(LedgerIntegrityError):
            db_session.commit()
        db_session.rollback()

        assert balance_service.get_balance(user.id)[0] == 1000

    def test_paid_due_cannot_return_to_unpaid(self, db_session, user):
        due = _due(user, 1000, is_paid=True, paid_at=utcnow())
        db_session.add(due)
        db_session.commit()

        due.is_paid = False
        with pytest.raises(LedgerIntegrityError):
            db_session.commit()
        db_session.rollback()

    def test_due_amount_cannot_change(self, db_session, user):
        due = _due(user, 1000)
        db_session.add(due)
        db_session.commit()

        due.amount_due_cents = 1
        with pytest.raises(LedgerIntegrityError):
            db_session.commit()
        db_session.rollback()

        assert balance_service.get_balance(user.id)[1] == 1000

    def test_balance_row_rejects_orm_writes(self, db_session, user):
        db_session.add(_transaction(user, 1000))
        db_session.commit()

        row = db_session.query(AccountBalance).filter_by(user_id=user.id).one()
        row.balance_cents = 999999
        with pytest.raises(LedgerIntegrityError):
            db_session.commit()
        db_session.rollback()

        db_session.add(AccountBalance(user_id=user.id + 1000, balance_cents=5))
        with pytest.raises(LedgerIntegrityError):
            db_session.commit()
        db_session.rollback()

        assert balance_service.get_balance(user.id)[0] == 1000


class TestVerify:
    def test_detects_drift(self, db_session, user):
        db_session.add(_transaction(user, 1000))
        db_session.commit()

        # Out-of-band Core write, the way only a broken migration could
        db_session.execute(
            AccountBalance.__table__.update()
            .where(AccountBalance.__table__.c.user_id == user.id)
            .values(balance_cents=1)
        )
        db_session.commit()

        report = balance_service.verify_balance(user.id)
        assert not report.ok
        assert report.balance_cents == 1
        assert report.expected_balance_cents == 1000
