# Overview: Service-layer operations for accounts and store profiles; passwords, superkeys and login.

"""
Authentication & Profile Service

WHY: Every receipt and ledger entry is attributable to one user. Uses
bcrypt for password hashing and a one-time-assigned superkey as the only
self-service recovery path.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, upper, lower, digit and special character
- Superkey: 5 characters from [A-Z0-9], generated with `secrets`,
  unique, never changes once assigned
- Password change and superkey reset revoke every open session
"""

from __future__ import annotations

import re
import secrets
import string

import bcrypt
from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import User
from ..models.auth import STORE_CONTACT_PATTERN
from ..validation import ConflictError, ValidationError, require_text
from . import session_service
from cashbox.time_utils import utcnow


SUPERKEY_LENGTH = 5
SUPERKEY_ALPHABET = string.ascii_uppercase + string.digits
SUPERKEY_MAX_ATTEMPTS = 5

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""


class InvalidCredentialsError(Exception):
    """Password, superkey or identifier did not match (401)."""


class SuperkeyGenerationError(RuntimeError):
    """Every superkey attempt collided with an existing one."""


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r"[A-Z]", password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r"[a-z]", password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r"\d", password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.?'\":{}|<>_\-]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Hash password using bcrypt with cost factor 12 (strength is validated first)."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    WHY timing-safe: bcrypt.checkpw() compares in constant time.
    """
    if not isinstance(password, str) or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


def generate_superkey() -> str:
    return "".join(secrets.choice(SUPERKEY_ALPHABET) for _ in range(SUPERKEY_LENGTH))


def normalize_email(value) -> str:
    email = require_text(value, "email", max_length=100).lower()
    if not EMAIL_PATTERN.match(email):
        raise ValidationError("email is not a valid address")
    return email


def _email_taken(email: str) -> bool:
    return db.session.query(User.id).filter(User.email == email).first() is not None


def signup(name, email, password) -> User:
    """
    Create a new user and assign a unique superkey.

    Superkey collisions are resolved by regenerating and retrying the
    insert, at most SUPERKEY_MAX_ATTEMPTS times.

    Raises:
        ValidationError / PasswordValidationError: bad input
        ConflictError: email already registered
        SuperkeyGenerationError: no free superkey after all attempts
    """
    name = require_text(name, "name", max_length=100)
    email = normalize_email(email)
    password_hash = hash_password(password)

    if _email_taken(email):
        raise ConflictError("Email already exists")

    for attempt in range(1, SUPERKEY_MAX_ATTEMPTS + 1):
        user = User(
            name=name,
            email=email,
            password_hash=password_hash,
            superkey=generate_superkey(),
        )
        db.session.add(user)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            # Lost a race on the email, not the superkey
            if _email_taken(email):
                raise ConflictError("Email already exists")
            current_app.logger.warning("Superkey collision on signup (attempt %s)", attempt)
            continue

        current_app.logger.info("User %s signed up", user.id)
        return user

    raise SuperkeyGenerationError("Could not generate a unique superkey")


def find_user_by_identifier(identifier) -> User | None:
    """Resolve a login identifier: an email address or the 10-digit store contact."""
    if not isinstance(identifier, str) or not identifier.strip():
        return None
    identifier = identifier.strip()

    if "@" in identifier:
        return db.session.query(User).filter(User.email == identifier.lower()).first()
    if STORE_CONTACT_PATTERN.match(identifier):
        return (
            db.session.query(User)
            .filter(User.store_contact == identifier)
            .order_by(User.id.asc())
            .first()
        )
    return None


def authenticate(identifier, password) -> User | None:
    """
    Authenticate user by email or store contact and password.

    Returns User if credentials valid, None otherwise.
    """
    user = find_user_by_identifier(identifier)
    if user is None:
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


def change_password(user: User, current_password, new_password) -> None:
    """Change password after re-checking the current one; revokes all sessions."""
    if not current_password or not new_password:
        raise ValidationError("Both current and new password are required")
    if not verify_password(current_password, user.password_hash):
        raise InvalidCredentialsError("Current password is incorrect")

    user.password_hash = hash_password(new_password)
    user.updated_at = utcnow()
    session_service.revoke_all_user_sessions(user.id, "Password changed", commit=False)
    db.session.commit()
    current_app.logger.info("User %s changed password", user.id)


def reset_password_with_superkey(phone_number, superkey, new_password) -> User:
    """
    Forgotten password flow: store contact + superkey proves ownership.

    Raises InvalidCredentialsError when no user matches both.
    """
    if not phone_number or not superkey or not new_password:
        raise ValidationError("Phone number, superkey, and new password are required")
    phone_number = str(phone_number).strip()
    if not STORE_CONTACT_PATTERN.match(phone_number):
        raise ValidationError("Invalid phone number format. Please enter a 10-digit number")
    password_hash = hash_password(new_password)

    user = db.session.query(User).filter(
        User.store_contact == phone_number,
        User.superkey == str(superkey).strip().upper(),
    ).first()
    if user is None:
        raise InvalidCredentialsError("Invalid phone number or superkey")

    user.password_hash = password_hash
    user.updated_at = utcnow()
    session_service.revoke_all_user_sessions(user.id, "Password reset with superkey", commit=False)
    db.session.commit()
    current_app.logger.info("User %s reset password with superkey", user.id)
    return user


PROFILE_FIELDS = (
    ("name", "name", 100),
    ("storeName", "store_name", 100),
    ("storeAddress", "store_address", 500),
    ("storeContact", "store_contact", 20),
    ("storeCountryCode", "store_country_code", 10),
)


def _store_contact_taken(store_contact: str, user_id: int) -> bool:
    taken = db.session.query(User.id).filter(
        User.store_contact == store_contact,
        User.id != user_id,
    ).first()
    return taken is not None


def update_profile(user: User, payload: dict) -> User:
    """
    Replace the store profile. Every field is mandatory.

    profile_complete is recomputed by the User before_update hook.
    The store contact doubles as a login identifier, so it must be unused
    by any other account.
    """
    missing = [key for key, _, _ in PROFILE_FIELDS if not str(payload.get(key) or "").strip()]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    values = {
        column: require_text(payload.get(key), key, max_length=max_length)
        for key, column, max_length in PROFILE_FIELDS
    }
    if not STORE_CONTACT_PATTERN.match(values["store_contact"]):
        raise ValidationError("Store contact must be exactly 10 digits")

    if _store_contact_taken(values["store_contact"], user.id):
        raise ConflictError("Store contact is already registered to another account")

    for column, value in values.items():
        setattr(user, column, value)
    user.updated_at = utcnow()
    try:
        db.session.commit()
    except IntegrityError:
        # Another account claimed the contact after the check (ix_users_store_contact)
        db.session.rollback()
        raise ConflictError("Store contact is already registered to another account")
    return user
