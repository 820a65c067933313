"""
Flask CLI command tests.
"""

from cashbox.models import AccountBalance, User
from cashbox.services import account_service

from conftest import PASSWORD


def test_users_create_prints_superkey(app, db_session):
    runner = app.test_cli_runner()
    result = runner.invoke(args=[
        "users", "create", "--name", "Kiran", "--email", "kiran@example.com", "--password", PASSWORD,
    ])

    assert result.exit_code == 0, result.output
    user = db_session.query(User).filter_by(email="kiran@example.com").one()
    assert f"Superkey (shown once): {user.superkey}" in result.output


def test_users_create_rejects_weak_password(app, db_session):
    result = app.test_cli_runner().invoke(args=[
        "users", "create", "--name", "Kiran", "--email", "kiran@example.com", "--password", "weak",
    ])

    assert result.exit_code == 1
    assert "FAIL" in result.output
    assert db_session.query(User).count() == 0


def test_users_list(app, user):
    result = app.test_cli_runner().invoke(args=["users", "list"])
    assert result.exit_code == 0
    assert "ravi@sunrise.example" in result.output
    assert "complete" in result.output


def test_ledger_verify_clean(app, user, other_user):
    account_service.record_transaction(user.id, "Opening cash", "100", "credit")

    result = app.test_cli_runner().invoke(args=["ledger", "verify"])

    assert result.exit_code == 0, result.output
    assert f"PASS user {user.id}: balance 100.00" in result.output
    assert "no drift" in result.output


def test_ledger_verify_reports_drift(app, db_session, user):
    account_service.record_transaction(user.id, "Opening cash", "100", "credit")
    db_session.execute(
        AccountBalance.__table__.update()
        .where(AccountBalance.__table__.c.user_id == user.id)
        .values(balance_cents=5)
    )
    db_session.commit()

    result = app.test_cli_runner().invoke(args=["ledger", "verify", "--user-id", str(user.id)])

    assert result.exit_code == 1
    assert "FAIL" in result.output
    assert "expected 100.00" in result.output


def test_cleanup_sessions(app, db_session):
    result = app.test_cli_runner().invoke(args=["system", "cleanup-sessions"])
    assert result.exit_code == 0
    assert "Deleted 0 stale sessions" in result.output
