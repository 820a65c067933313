# Overview: Flask API routes for the cash account ledger; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..services import account_service
from ..services.auth_service import InvalidCredentialsError
from ..decorators import require_auth
from ..validation import ValidationError, format_money, require_payload


transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


@transactions_bp.get("")
@require_auth
def list_transactions_route():
    """
    Transaction history with balances.

    Returns:
    {
        "transactions": [...newest first...],
        "balance": "230.00",
        "totalDueBalance": "150.00",
        "summary": {"totalCredit": ..., "totalDebit": ..., "count": ...}
    }
    """
    try:
        history = account_service.list_transactions(g.current_user.id)
        return jsonify({
            "transactions": [t.to_dict() for t in history["transactions"]],
            "balance": format_money(history["balance_cents"]),
            "totalDueBalance": format_money(history["total_due_balance_cents"]),
            "summary": {
                "totalCredit": format_money(history["total_credit_cents"]),
                "totalDebit": format_money(history["total_debit_cents"]),
                "count": history["transaction_count"],
            },
        }), 200
    except Exception:
        current_app.logger.exception("Failed to list transactions")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.post("")
@require_auth
def record_transaction_route():
    """
    Manual ledger entry.

    Request body: {"particulars": "Rent", "amount": "500.00", "type": "debit"}
    """
    try:
        data = require_payload(request.get_json(silent=True))
        transaction = account_service.record_transaction(
            g.current_user.id,
            data.get("particulars"),
            data.get("amount"),
            data.get("type"),
        )
        return jsonify({"transaction": transaction.to_dict()}), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to record transaction")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.post("/clear")
@require_auth
def clear_history_route():
    """Delete all transactions and zero the cash balance. Body: {"password": "..."}"""
    try:
        data = require_payload(request.get_json(silent=True))
        deleted = account_service.clear_history(g.current_user, data.get("password"))
        return jsonify({
            "deleted": deleted,
            "message": "Transaction history cleared successfully",
        }), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except InvalidCredentialsError as e:
        return jsonify({"error": str(e)}), 401
    except Exception:
        current_app.logger.exception("Failed to clear transaction history")
        return jsonify({"error": "Internal server error"}), 500
