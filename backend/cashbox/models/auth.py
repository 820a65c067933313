from __future__ import annotations

import re

from sqlalchemy import event, inspect, select

from ..extensions import db
from cashbox.time_utils import to_utc_z


STORE_CONTACT_PATTERN = re.compile(r"^[0-9]{10}$")


class User(db.Model):
    """
    Account owner and store profile.

    WHY: Every receipt, due record and ledger entry belongs to exactly one
    user; all reads and writes are scoped by user_id.

    SUPERKEY: A 5-character recovery key assigned at signup. It is the only
    way to reset a forgotten password and can never change once set
    (enforced by the before_update guard at the bottom of this module).
    """
    __tablename__ = "users"
    __table_args__ = (
        db.Index("ix_users_store_contact", "store_contact", unique=True),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    superkey = db.Column(db.String(5), nullable=False, unique=True, index=True)

    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(100), nullable=False, unique=True, index=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    # Store profile (filled in after signup)
    store_name = db.Column(db.String(100), nullable=True)
    store_address = db.Column(db.Text, nullable=True)
    store_contact = db.Column(db.String(20), nullable=True)
    store_country_code = db.Column(db.String(10), nullable=False, default="+91")

    # Derived from the profile fields, see is_profile_complete()
    profile_complete = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def is_profile_complete(self) -> bool:
        return bool(
            self.name and self.name.strip()
            and self.store_name and self.store_name.strip()
            and self.store_address and self.store_address.strip()
            and self.store_contact and STORE_CONTACT_PATTERN.match(self.store_contact)
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "store_name": self.store_name,
            "store_address": self.store_address,
            "store_contact": self.store_contact,
            "store_country_code": self.store_country_code,
            "profile_complete": self.profile_complete,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at) if self.updated_at else None,
        }


class SessionToken(db.Model):
    """
    Secure session token management.

    WHY: Stateless auth tokens with timeout and revocation support.
    Tokens are cryptographically secure random strings (32 bytes = 64 hex chars).

    SECURITY NOTES:
    - Tokens stored hashed in database (SHA-256)
    - 24-hour absolute timeout
    - 2-hour idle timeout
    - Revocable on logout, password change or password reset
    """
    __tablename__ = "session_tokens"
    __table_args__ = (
        db.Index("ix_session_tokens_user_active", "user_id", "is_revoked"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    # Token hash (never store plaintext tokens!)
    token_hash = db.Column(db.String(255), nullable=False, unique=True, index=True)

    # Session metadata
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    # Revocation support
    is_revoked = db.Column(db.Boolean, nullable=False, default=False, index=True)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_reason = db.Column(db.String(255), nullable=True)

    # Client information (for security monitoring)
    user_agent = db.Column(db.String(512), nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)  # IPv6 max length

    user = db.relationship(
        "User",
        backref=db.backref("session_tokens", lazy=True, passive_deletes=True),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
            "last_used_at": to_utc_z(self.last_used_at),
            "expires_at": to_utc_z(self.expires_at),
            "is_revoked": self.is_revoked,
        }


class SuperkeyImmutableError(ValueError):
    """Raised when a write tries to change a user's superkey."""


@event.listens_for(User, "before_insert")
@event.listens_for(User, "before_update")
def _derive_profile_complete(mapper, connection, target):
    target.profile_complete = target.is_profile_complete()


@event.listens_for(User, "before_update")
def _superkey_guard(mapper, connection, target):
    history = inspect(target).attrs.superkey.history
    if not history.added:
        return
    # The old value is not in history when the attribute was expired
    stored = connection.scalar(select(User.__table__.c.superkey).where(User.__table__.c.id == target.id))
    if stored is not None and stored != target.superkey:
        raise SuperkeyImmutableError("Superkey cannot be modified once set")
