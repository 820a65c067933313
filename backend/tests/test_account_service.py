"""
Cash ledger tests.

Verifies:
- manual credit/debit entries move the cash balance
- history listing with totals
- clearing history needs the password, zeroes cash and keeps dues
"""

import pytest

from cashbox.models import AccountTransaction, DueRecord, Receipt
from cashbox.services import account_service, balance_service, receipt_service
from cashbox.services.auth_service import InvalidCredentialsError
from cashbox.validation import ValidationError

from conftest import PASSWORD


class TestRecordTransaction:
    def test_credit_and_debit(self, db_session, user):
        account_service.record_transaction(user.id, "Opening cash", "500.00", "credit")
        debit = account_service.record_transaction(user.id, "Electricity bill", 120.5, "DEBIT")

        assert debit.type == "debit"
        assert debit.amount_cents == 12050
        assert balance_service.get_balance(user.id) == (37950, 0)

    def test_debit_may_overdraw(self, db_session, user):
        account_service.record_transaction(user.id, "Supplier advance", "80", "debit")
        assert balance_service.get_balance(user.id)[0] == -8000

    @pytest.mark.parametrize(
        "particulars,amount,type_",
        [
            ("", "10", "credit"),
            ("Rent", "0", "debit"),
            ("Rent", "-10", "debit"),
            ("Rent", "10.001", "debit"),
            ("Rent", "10", "refund"),
            ("Rent", None, "credit"),
        ],
    )
    def test_invalid(self, db_session, user, particulars, amount, type_):
        with pytest.raises(ValidationError):
            account_service.record_transaction(user.id, particulars, amount, type_)
        assert db_session.query(AccountTransaction).count() == 0


class TestListTransactions:
    def test_history_and_totals(self, db_session, user, other_user, receipt_payload):
        receipt = receipt_service.create_receipt(user.id, receipt_payload())
        account_service.record_transaction(user.id, "Tea for staff", "20", "debit")
        account_service.record_transaction(other_user.id, "Unrelated", "999", "credit")

        result = account_service.list_transactions(user.id)

        assert result["transaction_count"] == 2
        assert [t.particulars for t in result["transactions"]] == ["Tea for staff", "Payment from Asha"]
        assert result["transactions"][1].receipt.id == receipt.id
        assert result["total_credit_cents"] == 15000
        assert result["total_debit_cents"] == 2000
        assert result["balance_cents"] == 13000
        assert result["total_due_balance_cents"] == 0

    def test_empty(self, db_session, user):
        result = account_service.list_transactions(user.id)
        assert result["transactions"] == []
        assert result["balance_cents"] == 0


class TestClearHistory:
    def _seed(self, user, receipt_payload):
        receipt_service.create_receipt(user.id, receipt_payload(
            paymentStatus="advance",
            items=[{"description": "Chair", "quantity": 1, "price": 100, "advanceAmount": 40}],
        ))
        account_service.record_transaction(user.id, "Rent", "25", "debit")

    def test_requires_password(self, db_session, user, receipt_payload):
        self._seed(user, receipt_payload)

        with pytest.raises(ValidationError):
            account_service.clear_history(user, "")
        with pytest.raises(InvalidCredentialsError):
            account_service.clear_history(user, "Wrong123!")

        assert db_session.query(AccountTransaction).count() == 2
        assert balance_service.get_balance(user.id) == (1500, 6000)

    def test_clears_cash_and_keeps_dues(self, db_session, user, other_user, receipt_payload):
        self._seed(user, receipt_payload)
        account_service.record_transaction(other_user.id, "Unrelated", "10", "credit")

        assert account_service.clear_history(user, PASSWORD) == 2

        assert db_session.query(AccountTransaction).filter_by(user_id=user.id).count() == 0
        assert db_session.query(Receipt).count() == 1
        assert db_session.query(DueRecord).count() == 1
        assert balance_service.get_balance(user.id) == (0, 6000)
        assert balance_service.verify_balance(user.id).ok
        assert balance_service.get_balance(other_user.id) == (1000, 0)

    def test_ledger_resumes_after_clear(self, db_session, user, receipt_payload):
        self._seed(user, receipt_payload)
        account_service.clear_history(user, PASSWORD)

        account_service.record_transaction(user.id, "Fresh start", "5", "credit")
        assert balance_service.get_balance(user.id)[0] == 500
        assert balance_service.verify_balance(user.id).ok
