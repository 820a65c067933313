"""
Due Settlement Workflow tests.

Verifies:
- settlement flips the due once and writes exactly one credit
- repeated and stale settlement attempts end in DueAlreadySettledError
- other constraint failures propagate instead of posing as a conflict
- direct due creation, unpaid listing and overdue notifications
"""

from datetime import date, timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from cashbox.models import AccountTransaction, DueRecord
from cashbox.services import balance_service, due_service, receipt_service
from cashbox.services.due_service import DueAlreadySettledError
from cashbox.time_utils import today, utcnow
from cashbox.validation import NotFoundError, ValidationError


def _due_payload(**overrides):
    payload = {
        "customerName": "Asha",
        "customerContact": "9000000001",
        "productOrdered": "Widget",
        "quantity": 3,
        "amountDue": "150.00",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def asha_due(db_session, user, receipt_payload):
    """Due record from an unpaid receipt for Asha (amount 150.00)."""
    receipt_service.create_receipt(user.id, receipt_payload(
        paymentStatus="due",
        items=[{"description": "Widget", "quantity": 3, "price": 50, "dueAmount": 150}],
    ))
    return db_session.query(DueRecord).one()


class TestSettleDue:
    def test_settlement_scenario(self, db_session, user, asha_due):
        assert balance_service.get_balance(user.id) == (0, 15000)

        due, credit = due_service.settle_due(user.id, asha_due.id)

        assert due.is_paid is True
        assert due.paid_at is not None
        assert credit.type == "credit"
        assert credit.amount_cents == 15000
        assert credit.due_record_id == due.id
        assert "Asha" in credit.particulars
        assert due.receipt_number in credit.particulars
        assert balance_service.get_balance(user.id) == (15000, 0)
        assert balance_service.verify_balance(user.id).ok

    def test_second_settlement_conflicts(self, db_session, user, asha_due):
        due_service.settle_due(user.id, asha_due.id)

        with pytest.raises(DueAlreadySettledError):
            due_service.settle_due(user.id, asha_due.id)

        assert db_session.query(AccountTransaction).filter_by(due_record_id=asha_due.id).count() == 1
        assert balance_service.get_balance(user.id) == (15000, 0)

    def test_stale_read_loses(self, db_session, user, asha_due):
        due_id = asha_due.id
        # Load the unpaid row into the identity map, then let a "concurrent"
        # writer flip it underneath us
        assert db_session.get(DueRecord, due_id).is_paid is False
        db_session.execute(
            DueRecord.__table__.update()
            .where(DueRecord.__table__.c.id == due_id)
            .values(is_paid=True, paid_at=utcnow(), version_id=DueRecord.__table__.c.version_id + 1)
        )

        with pytest.raises(DueAlreadySettledError):
            due_service.settle_due(user.id, due_id)

        assert db_session.query(AccountTransaction).filter_by(due_record_id=due_id).count() == 0

    def test_other_integrity_error_propagates(self, db_session, monkeypatch, user, asha_due):
        due_id = asha_due.id
        # NOT NULL violation on the credit row, with the due still unpaid
        monkeypatch.setattr(due_service, "settlement_particulars", lambda due: None)

        with pytest.raises(IntegrityError):
            due_service.settle_due(user.id, due_id)

        db_session.expire_all()
        assert db_session.get(DueRecord, due_id).is_paid is False
        assert db_session.query(AccountTransaction).count() == 0
        assert balance_service.get_balance(user.id) == (0, 15000)

    def test_unknown_due(self, db_session, user):
        with pytest.raises(NotFoundError):
            due_service.settle_due(user.id, 424242)

    def test_other_users_due_is_not_found(self, db_session, other_user, asha_due):
        with pytest.raises(NotFoundError):
            due_service.settle_due(other_user.id, asha_due.id)

        assert db_session.get(DueRecord, asha_due.id).is_paid is False

    def test_settled_direct_due_has_plain_particulars(self, db_session, user):
        due = due_service.create_due_record(user.id, _due_payload())
        _, credit = due_service.settle_due(user.id, due.id)

        assert credit.particulars == "Due payment from Asha"


class TestCreateDue:
    def test_defaults(self, db_session, user):
        due = due_service.create_due_record(user.id, _due_payload())

        assert due.amount_due_cents == 15000
        assert due.expected_payment_date == today() + timedelta(days=7)
        assert due.customer_country_code == "+91"
        assert due.receipt_number is None
        assert balance_service.get_balance(user.id) == (0, 15000)

    def test_expected_date_override(self, db_session, user):
        due = due_service.create_due_record(user.id, _due_payload(expectedPaymentDate="2026-05-01"))
        assert due.expected_payment_date == date(2026, 5, 1)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"amountDue": 0},
            {"amountDue": "-5"},
            {"quantity": 0},
            {"quantity": 10**12},
            {"customerName": " "},
            {"productOrdered": None},
            {"expectedPaymentDate": "next week"},
        ],
    )
    def test_invalid(self, db_session, user, overrides):
        with pytest.raises(ValidationError):
            due_service.create_due_record(user.id, _due_payload(**overrides))
        assert db_session.query(DueRecord).count() == 0


class TestQueries:
    def test_unpaid_ordered_and_idempotent(self, db_session, user):
        late = due_service.create_due_record(user.id, _due_payload(expectedPaymentDate="2026-06-01"))
        early = due_service.create_due_record(user.id, _due_payload(expectedPaymentDate="2026-02-01"))
        paid = due_service.create_due_record(user.id, _due_payload())
        due_service.settle_due(user.id, paid.id)

        first = [d.to_dict() for d in due_service.list_unpaid_dues(user.id)]
        second = [d.to_dict() for d in due_service.list_unpaid_dues(user.id)]

        assert [d["id"] for d in first] == [early.id, late.id]
        assert first == second

    def test_overdue(self, db_session, user, other_user):
        overdue = due_service.create_due_record(user.id, _due_payload(expectedPaymentDate="2026-01-01"))
        due_service.create_due_record(user.id, _due_payload(expectedPaymentDate="2026-03-01"))
        due_service.create_due_record(other_user.id, _due_payload(expectedPaymentDate="2026-01-01"))

        result = due_service.list_overdue_dues(user.id, as_of=date(2026, 2, 1))
        assert [d.id for d in result] == [overdue.id]

        due_service.settle_due(user.id, overdue.id)
        assert due_service.list_overdue_dues(user.id, as_of=date(2026, 2, 1)) == []
