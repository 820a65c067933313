# Overview: Flask API routes for due records and overdue notifications.

"""
Due Record API Routes

PUT /api/due is the Due Settlement Workflow. Settling the same record
twice (sequentially or concurrently) yields one 200 and one 409.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import due_service
from ..services import balance_service
from ..decorators import require_auth
from ..validation import (
    ValidationError,
    ConflictError,
    NotFoundError,
    format_money,
    parse_positive_int,
    require_payload,
)


dues_bp = Blueprint("dues", __name__, url_prefix="/api")


@dues_bp.get("/due")
@require_auth
def list_dues_route():
    """Unpaid due records, earliest expected payment first."""
    try:
        dues = due_service.list_unpaid_dues(g.current_user.id)
        _, total_due_cents = balance_service.get_balance(g.current_user.id)
        return jsonify({
            "dues": [due.to_dict() for due in dues],
            "totalDueBalance": format_money(total_due_cents),
        }), 200
    except Exception:
        current_app.logger.exception("Failed to list due records")
        return jsonify({"error": "Internal server error"}), 500


@dues_bp.post("/due")
@require_auth
def create_due_route():
    """
    Record a due directly.

    Request body:
    {
        "customerName": "Asha",
        "customerContact": "9876543210",
        "productOrdered": "Widget",
        "quantity": 3,
        "amountDue": "150.00",
        "expectedPaymentDate": "2026-01-22"   (optional, default today + 7 days)
    }
    """
    try:
        due = due_service.create_due_record(g.current_user.id, request.get_json(silent=True))
        return jsonify({"due": due.to_dict()}), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create due record")
        return jsonify({"error": "Internal server error"}), 500


@dues_bp.put("/due")
@require_auth
def settle_due_route():
    """
    Settle a due record: {"id": 12}

    Returns:
        200: settled due record + the credit transaction
        400: Missing/invalid id
        404: No such due record for this user
        409: Already settled
    """
    try:
        data = require_payload(request.get_json(silent=True))
        due_id = parse_positive_int(data.get("id"), "id")

        due, credit = due_service.settle_due(g.current_user.id, due_id)
        return jsonify({
            "due": due.to_dict(),
            "transaction": credit.to_dict(),
            "message": "Due record settled",
        }), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to settle due record")
        return jsonify({"error": "Internal server error"}), 500


@dues_bp.get("/notifications")
@require_auth
def notifications_route():
    """Unpaid dues whose expected payment date has arrived."""
    try:
        overdue = due_service.list_overdue_dues(g.current_user.id)
        return jsonify({
            "notifications": [due.to_dict() for due in overdue],
            "count": len(overdue),
        }), 200
    except Exception:
        current_app.logger.exception("Failed to load notifications")
        return jsonify({"error": "Internal server error"}), 500
