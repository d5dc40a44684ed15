"""
Audit logging for authentication and invitation events.

Usage:
    await audit_log(
        session=db_session,
        action="invitation.create",
        user_id=profile.id,
        resource_type="invitation",
        resource_id=str(invitation.id),
        details={"email": invitation.email},
        request=request,  # Optional FastAPI Request for IP/UA
    )
"""

from typing import Optional, Dict, Any
from datetime import datetime
import json

from fastapi import Request
from sqlmodel.ext.asyncio.session import AsyncSession

from models import AuditLog
from observability.logging import get_logger

logger = get_logger(__name__)

SENSITIVE_KEYS = {"password", "token", "secret", "api_key", "session_token", "access_token"}


async def audit_log(
    session: AsyncSession,
    action: str,
    user_id: Optional[int] = None,
    session_id: Optional[int] = None,
    resource_type: Optional[str] = None,
    resource_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    success: bool = True,
    error_message: Optional[str] = None,
    request: Optional[Request] = None,
):
    """
    Append an audit entry and commit it.

    This never raises: failures are logged and the session is rolled back.
    """
    try:
        ip_address = None
        user_agent = None
        if request is not None and request.client:
            ip_address = request.client.host
            user_agent = request.headers.get("user-agent", "")[:500]

        session.add(AuditLog(
            timestamp=datetime.utcnow(),
            user_id=user_id,
            session_id=session_id,
            ip_address=ip_address,
            user_agent=user_agent,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            details=json.dumps(redact_sensitive(details), default=str) if details else None,
            success=success,
            error_message=error_message,
        ))
        await session.commit()

    except Exception as e:
        logger.error(f"[AUDIT ERROR] Failed to log {action}: {e}")
        await session.rollback()


def redact_sensitive(data: Any) -> Any:
    """Replace values of sensitive keys, recursively."""
    if isinstance(data, dict):
        return {
            k: "[REDACTED]" if k.lower() in SENSITIVE_KEYS else redact_sensitive(v)
            for k, v in data.items()
        }
    if isinstance(data, list):
        return [redact_sensitive(item) for item in data]
    return data
