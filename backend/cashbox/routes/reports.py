# Overview: Flask API routes for reports; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..services import reporting_service
from ..decorators import require_auth
from ..validation import ValidationError


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/summary")
@require_auth
def summary_route():
    """Period summary. Query params: from, to (YYYY-MM-DD, both optional)."""
    try:
        report = reporting_service.period_summary(
            g.current_user.id,
            request.args.get("from"),
            request.args.get("to"),
        )
        return jsonify(report), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to build summary report")
        return jsonify({"error": "Internal server error"}), 500
