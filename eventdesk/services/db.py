from __future__ import annotations

from flask import current_app
from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError

from eventdesk.extensions import db

CORE_TABLES = {
    'account', 'administrator', 'event', 'registration', 'school', 'email_message', 'audit_log'
}


def close_db(_: Exception | None = None) -> None:
    db.session.remove()


def ensure_core_tables() -> bool:
    """Ensure core ORM tables exist. If missing (e.g., fresh DB without migrations), create them.

    Returns True when tables were created.
    """
    try:
        existing = set(inspect(db.engine).get_table_names())
        if CORE_TABLES.issubset(existing):
            return False
        db.create_all()
    except SQLAlchemyError as exc:
        # Do not block startup on errors here
        current_app.logger.error(f"Could not create core tables: {exc}")
        return False
    return True


__all__ = ["CORE_TABLES", "close_db", "ensure_core_tables"]
