"""Authentication models: profiles, password identities, sessions and the audit trail."""

from typing import Optional
from datetime import datetime, timedelta
import hashlib
import hmac
import os
import secrets
from sqlmodel import Field, SQLModel

SESSION_TTL_DAYS = int(os.getenv("SESSION_TTL_DAYS", "7"))

PBKDF2_ITERATIONS = 260_000


def hash_token(token: str) -> str:
    """Hash a session token using SHA-256."""
    return hashlib.sha256(token.encode()).hexdigest()


def generate_session_token() -> str:
    """Generate a cryptographically secure session token."""
    return secrets.token_urlsafe(32)


def generate_invitation_token() -> str:
    """Generate an invitation token (32 random bytes, hex encoded)."""
    return secrets.token_hex(32)


def hash_password(password: str) -> str:
    """Hash a password as ``pbkdf2_sha256$<iterations>$<salt>$<digest>``."""
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), PBKDF2_ITERATIONS)
    return f"pbkdf2_sha256${PBKDF2_ITERATIONS}${salt}${digest.hex()}"


def verify_password(password: str, password_hash: str) -> bool:
    try:
        algorithm, iterations, salt, expected = password_hash.split("$")
    except ValueError:
        return False
    if algorithm != "pbkdf2_sha256":
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), int(iterations))
    return hmac.compare_digest(digest.hex(), expected)


def session_expiry() -> datetime:
    return datetime.utcnow() + timedelta(days=SESSION_TTL_DAYS)


class Profile(SQLModel, table=True):
    """The authenticated-user view of a person."""
    __tablename__ = "profile"

    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True, unique=True)
    name: Optional[str] = Field(default=None, index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def display_name(self) -> str:
        """Name, else the local part of the email, else 'User'."""
        if self.name:
            return self.name
        if self.email:
            return self.email.split("@")[0]
        return "User"


class AuthIdentity(SQLModel, table=True):
    """Password credential for a profile. Exactly one per profile."""
    __tablename__ = "auth_identity"

    id: Optional[int] = Field(default=None, primary_key=True)
    profile_id: int = Field(foreign_key="profile.id", index=True, unique=True)
    email: str = Field(index=True)
    password_hash: str
    created_at: datetime = Field(default_factory=datetime.utcnow)


class AuthSession(SQLModel, table=True):
    """Stores active user sessions with expiration."""
    __tablename__ = "auth_session"

    id: Optional[int] = Field(default=None, primary_key=True)
    email: Optional[str] = Field(default=None, index=True)
    user_id: Optional[int] = Field(default=None, foreign_key="profile.id", index=True)
    session_token_hash: str = Field(index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    expires_at: datetime = Field(default_factory=session_expiry)
    last_activity_at: datetime = Field(default_factory=datetime.utcnow)
    revoked_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.revoked_at is None and self.expires_at > datetime.utcnow()


class AuditLog(SQLModel, table=True):
    """
    Immutable audit log for authentication and invitation events.

    This is append-only. No UPDATE or DELETE operations allowed.
    """
    __tablename__ = "audit_log"

    id: Optional[int] = Field(default=None, primary_key=True)

    timestamp: datetime = Field(default_factory=datetime.utcnow, index=True)

    user_id: Optional[int] = Field(default=None, index=True)
    session_id: Optional[int] = Field(default=None)
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    action: str = Field(index=True)  # e.g., "auth.login", "invitation.accept"
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None

    details: Optional[str] = None  # JSON string with action-specific data

    success: bool = True
    error_message: Optional[str] = None
