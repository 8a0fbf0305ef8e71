# Overview: Service-layer operations for the security audit log.

from __future__ import annotations

from ..extensions import db
from ..models import SecurityEvent


def log_security_event(
    *,
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> SecurityEvent:
    """
    Append a security event and commit it immediately.

    Committed on its own so denials are recorded even when the request
    that triggered them is rejected.
    """
    event = SecurityEvent(
        user_id=user_id,
        event_type=event_type,
        success=success,
        resource=resource,
        action=action,
        reason=reason,
        ip_address=ip_address,
        user_agent=(user_agent or "")[:512] or None,
    )
    db.session.add(event)
    db.session.commit()
    return event


def get_security_events(user_id: int | None = None, event_type: str | None = None, limit: int = 100) -> list[SecurityEvent]:
    query = db.session.query(SecurityEvent)
    if user_id is not None:
        query = query.filter(SecurityEvent.user_id == user_id)
    if event_type is not None:
        query = query.filter(SecurityEvent.event_type == event_type)
    return query.order_by(SecurityEvent.id.desc()).limit(limit).all()
