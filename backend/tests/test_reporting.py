"""
Period summary report tests.
"""

import pytest

from cashbox.services import account_service, due_service, receipt_service, reporting_service
from cashbox.time_utils import today
from cashbox.validation import ValidationError


@pytest.fixture
def january(db_session, user, receipt_payload):
    receipt_service.create_receipt(user.id, receipt_payload(date="2026-01-10"))
    receipt_service.create_receipt(user.id, receipt_payload(
        date="2026-01-20",
        paymentStatus="due",
        items=[{"description": "Widget", "quantity": 2, "price": 40, "dueAmount": 80}],
    ))
    receipt_service.create_receipt(user.id, receipt_payload(
        date="2026-03-01",
        paymentStatus="advance",
        items=[{"description": "Chair", "quantity": 1, "price": 100, "advanceAmount": 30}],
    ))
    account_service.record_transaction(user.id, "Rent", "45.50", "debit")


def test_receipts_bucketed_by_business_date(user, january):
    summary = reporting_service.period_summary(user.id, "2026-01-01", "2026-01-31")

    assert summary["from"] == "2026-01-01"
    assert summary["to"] == "2026-01-31"
    assert summary["receipts"]["count"] == 2
    assert summary["receipts"]["total_sales"] == "230.00"
    assert summary["receipts"]["by_status"] == {
        "due": {"count": 1, "total": "80.00", "due_total": "80.00"},
        "full": {"count": 1, "total": "150.00", "due_total": "0.00"},
    }


def test_open_range_covers_everything(user, january):
    summary = reporting_service.period_summary(user.id)

    assert summary["from"] is None
    assert summary["receipts"]["count"] == 3
    assert summary["transactions"] == {
        "total_credit": "180.00",
        "total_debit": "45.50",
        "net": "134.50",
    }
    assert summary["dues_created"] == {"count": 2, "amount": "150.00"}
    assert summary["balance"] == "134.50"
    assert summary["total_due_balance"] == "150.00"


def test_ledger_and_dues_use_timestamps(user, january):
    day = today().isoformat()
    summary = reporting_service.period_summary(user.id, day, day)

    # Receipts are dated in the past, but their ledger entries were written today
    assert summary["receipts"]["count"] == 0
    assert summary["transactions"]["total_credit"] == "180.00"
    assert summary["dues_created"]["count"] == 2


def test_settled_dues_leave_due_balance(db_session, user, january):
    for due in due_service.list_unpaid_dues(user.id):
        due_service.settle_due(user.id, due.id)

    summary = reporting_service.period_summary(user.id)
    assert summary["total_due_balance"] == "0.00"
    assert summary["balance"] == "284.50"


def test_other_users_are_excluded(user, other_user, january):
    summary = reporting_service.period_summary(other_user.id)

    assert summary["receipts"]["count"] == 0
    assert summary["receipts"]["total_sales"] == "0.00"
    assert summary["transactions"]["net"] == "0.00"


@pytest.mark.parametrize(
    "start,end",
    [("2026-02-01", "2026-01-01"), ("yesterday", None), (None, "2026-13-01")],
)
def test_invalid_range(db_session, user, start, end):
    with pytest.raises(ValidationError):
        reporting_service.period_summary(user.id, start, end)
