"""Audit logging for administrative actions."""

from __future__ import annotations

from typing import Any

from flask import current_app, has_request_context, request
from sqlalchemy.exc import SQLAlchemyError

from eventdesk.auth.tokens import Identity
from eventdesk.extensions import db
from eventdesk.models import Account, AuditLog


def log_admin_action(
    identity: Identity | None,
    action: str,
    entity_type: str,
    entity_id: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> None:
    """
    Log an administrative action. Failures are logged and swallowed.

    Args:
        identity: Administrator who performed the action
        action: Action performed (e.g., "event_deleted", "registration_restored")
        entity_type: Type of entity affected
        entity_id: ID of entity affected
        metadata: Additional metadata
    """
    try:
        meta = dict(metadata or {})
        if has_request_context():
            meta['ip_address'] = request.remote_addr

        account_id = None
        if identity is not None and db.session.get(Account, identity.uid) is not None:
            account_id = identity.uid

        db.session.add(AuditLog(
            account_id=account_id,
            actor_email=identity.email if identity else None,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            meta=meta,
        ))
        db.session.commit()

    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to log admin action: {e}")


def recent_actions(limit: int = 50) -> list[AuditLog]:
    return db.session.query(AuditLog).order_by(AuditLog.created_at.desc()).limit(limit).all()


__all__ = ["log_admin_action", "recent_actions"]
