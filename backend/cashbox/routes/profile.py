# Overview: Flask API routes for the store profile and password change.

from flask import Blueprint, request, jsonify, g, current_app

from ..services import auth_service
from ..services.auth_service import InvalidCredentialsError
from ..decorators import require_auth
from ..validation import ValidationError, ConflictError, require_payload


profile_bp = Blueprint("profile", __name__, url_prefix="/api/profile")


@profile_bp.get("")
@require_auth
def get_profile_route():
    return jsonify({"profile": g.current_user.to_dict()}), 200


@profile_bp.put("")
@require_auth
def update_profile_route():
    """
    Replace the store profile.

    Required: name, storeName, storeAddress, storeContact (10 digits),
    storeCountryCode.
    """
    try:
        data = require_payload(request.get_json(silent=True))
        user = auth_service.update_profile(g.current_user, data)
        return jsonify({
            "profile": user.to_dict(),
            "profile_complete": user.profile_complete,
        }), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to update profile")
        return jsonify({"error": "Internal server error"}), 500


@profile_bp.put("/password")
@require_auth
def change_password_route():
    """Change password. Every session, including this one, is revoked."""
    try:
        data = require_payload(request.get_json(silent=True))
        auth_service.change_password(
            g.current_user,
            data.get("currentPassword"),
            data.get("newPassword"),
        )
        return jsonify({"message": "Password updated successfully"}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except InvalidCredentialsError as e:
        return jsonify({"error": str(e)}), 401
    except Exception:
        current_app.logger.exception("Failed to change password")
        return jsonify({"error": "Internal server error"}), 500
