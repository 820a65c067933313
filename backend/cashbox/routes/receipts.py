# Overview: Flask API routes for receipts; parses input and returns JSON responses.

"""
Receipt API Routes

POST is the Receipt Creation Workflow: receipt, items, payment details,
due record and ledger credit are written together or not at all.
Receipts are immutable; there are no update or delete routes.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import receipt_service
from ..decorators import require_auth
from ..validation import ValidationError, ConflictError, NotFoundError


receipts_bp = Blueprint("receipts", __name__, url_prefix="/api/receipts")


@receipts_bp.post("")
@require_auth
def create_receipt_route():
    """
    Create a receipt.

    Request body:
    {
        "receiptNumber": "ASE-00001",
        "date": "2026-01-15",
        "customerName": "Asha",
        "customerContact": "9876543210",
        "customerCountryCode": "+91",
        "paymentType": "cash",
        "paymentStatus": "advance",
        "notes": "optional",
        "items": [{"description": "Widget", "quantity": 2, "price": "100.00", "advanceAmount": "50.00"}],
        "paymentDetails": {"phoneNumber": "9876543210", "phoneCountryCode": "+91"},
        "expectedPaymentDate": "2026-01-22"   (optional)
    }

    Returns:
        201: {"receiptId": ...}
        400: Invalid input (nothing written)
        409: Receipt number already in use
    """
    try:
        receipt = receipt_service.create_receipt(g.current_user.id, request.get_json(silent=True))
        return jsonify({
            "receiptId": receipt.id,
            "receipt": receipt.to_dict(),
            "message": "Receipt created successfully",
        }), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create receipt")
        return jsonify({"error": "Internal server error"}), 500


@receipts_bp.get("")
@require_auth
def list_receipts_route():
    try:
        receipts = receipt_service.list_receipts(g.current_user.id, search=request.args.get("search"))
        return jsonify({"receipts": [r.to_dict() for r in receipts]}), 200
    except Exception:
        current_app.logger.exception("Failed to list receipts")
        return jsonify({"error": "Internal server error"}), 500


@receipts_bp.get("/next-number")
@require_auth
def next_number_route():
    try:
        return jsonify({"receiptNumber": receipt_service.next_receipt_number(g.current_user)}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to generate receipt number")
        return jsonify({"error": "Internal server error"}), 500


@receipts_bp.get("/<int:receipt_id>")
@require_auth
def get_receipt_route(receipt_id: int):
    try:
        receipt = receipt_service.get_receipt(g.current_user.id, receipt_id)
        return jsonify({"receipt": receipt_service.receipt_detail(receipt)}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to load receipt")
        return jsonify({"error": "Internal server error"}), 500
