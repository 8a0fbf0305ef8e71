from __future__ import annotations

from ..extensions import db
from delivereth.time_utils import to_utc_z


# Role tags carried on every account
USER_TYPES = ("business", "stockist", "vansales", "admin")

# Admins are provisioned from the CLI only
SELF_REGISTRATION_TYPES = ("business", "stockist", "vansales")


class User(db.Model):
    """
    Marketplace account.

    One table for every role: business customers place orders, stockists
    fulfil them and keep inventory, van sales agents replenish stockists and
    may read receipts, admins can act on any order.

    Business attributes (business_name, tin, address, is_vat_registered) are
    optional but a TIN is required on both sides before a VAT receipt can be
    issued.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.Index("ix_users_type_active", "user_type", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    username = db.Column(db.String(64), nullable=False, unique=True, index=True)
    email = db.Column(db.String(255), nullable=False)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    name = db.Column(db.String(120), nullable=False)
    phone = db.Column(db.String(32), nullable=False)

    # business, stockist, vansales, admin
    user_type = db.Column(db.String(16), nullable=False, index=True)

    business_name = db.Column(db.String(255), nullable=True)
    tin = db.Column(db.String(32), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    is_vat_registered = db.Column(db.Boolean, nullable=False, default=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    @property
    def display_name(self) -> str:
        return self.business_name or self.name

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "name": self.name,
            "phone": self.phone,
            "user_type": self.user_type,
            "business_name": self.business_name,
            "tin": self.tin,
            "address": self.address,
            "is_vat_registered": self.is_vat_registered,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }


class SessionToken(db.Model):
    """
    Bearer session token.

    SECURITY NOTES:
    - Tokens stored hashed in database (SHA-256)
    - 24-hour absolute timeout
    - 2-hour idle timeout
    - Revocable on logout
    """
    __tablename__ = "session_tokens"
    __table_args__ = (
        db.Index("ix_session_tokens_user_active", "user_id", "is_revoked"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    # Token hash (never store plaintext tokens!)
    token_hash = db.Column(db.String(255), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False, index=True)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_reason = db.Column(db.String(255), nullable=True)

    user_agent = db.Column(db.String(512), nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)  # IPv6 max length

    user = db.relationship("User", backref=db.backref("sessions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
            "last_used_at": to_utc_z(self.last_used_at),
            "expires_at": to_utc_z(self.expires_at),
            "is_revoked": self.is_revoked,
            "revoked_at": to_utc_z(self.revoked_at) if self.revoked_at else None,
            "revoked_reason": self.revoked_reason,
        }
