# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Authentication API routes

- signup returns the superkey exactly once; it is the only recovery path
- login accepts an email address or the 10-digit store contact
- forgot-password resets with store contact + superkey
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import auth_service
from ..services import session_service
from ..services.auth_service import InvalidCredentialsError
from ..decorators import bearer_token
from ..validation import ValidationError, ConflictError, require_payload


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/signup")
def signup_route():
    """
    Create an account.

    Request body:
    {
        "name": "Asha",
        "email": "asha@example.com",
        "password": "Str0ng!pass"
    }

    Returns:
        201: user + superkey (shown once)
        400: Invalid input or weak password
        409: Email already exists
    """
    try:
        data = require_payload(request.get_json(silent=True))
        user = auth_service.signup(data.get("name"), data.get("email"), data.get("password"))

        return jsonify({
            "user": user.to_dict(),
            "superkey": user.superkey,
            "message": "Account created. Keep your superkey safe: it is the only way to reset your password.",
        }), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to sign up user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in Authorization header for protected routes.
    """
    try:
        data = require_payload(request.get_json(silent=True))
        identifier = data.get("identifier") or data.get("email") or data.get("phone")
        password = data.get("password")

        if not all([identifier, password]):
            return jsonify({"error": "email/phone and password required"}), 400

        user = auth_service.authenticate(identifier, password)
        if not user:
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "session": session.to_dict(),
            "profile_complete": user.profile_complete,
            "message": "Login successful",
        }), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
def logout_route():
    """Revoke session token (logout)."""
    try:
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authorization header required"}), 401

        if not session_service.revoke_session(token, reason="User logout"):
            return jsonify({"error": "Invalid or expired token"}), 401

        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/forgot-password")
def forgot_password_route():
    """
    Reset a forgotten password.

    Request body:
    {
        "phoneNumber": "9876543210",
        "superkey": "AB12C",
        "newPassword": "N3w!password"
    }
    """
    try:
        data = require_payload(request.get_json(silent=True))
        auth_service.reset_password_with_superkey(
            data.get("phoneNumber"),
            data.get("superkey"),
            data.get("newPassword"),
        )
        return jsonify({
            "message": "Password reset successfully. You can now login with your new password."
        }), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except InvalidCredentialsError as e:
        return jsonify({"error": str(e)}), 401
    except Exception:
        current_app.logger.exception("Failed to reset password")
        return jsonify({"error": "Internal server error"}), 500
