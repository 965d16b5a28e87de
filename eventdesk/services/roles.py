"""Role resolution against the administrator table."""

from __future__ import annotations

from typing import Iterable

from flask import current_app
from sqlalchemy import func

from eventdesk.auth.tokens import Identity
from eventdesk.extensions import db
from eventdesk.models import Account, Administrator, UserRole
from eventdesk.services.ledger import normalize_email


class RoleResolver:
    """Maps an identity to student, admin or superAdmin.

    The administrator table is the only source consulted. Environment
    allow-lists are copied into it by ``seed_administrators`` and are never
    read per request.
    """

    def find_record(self, identity: Identity) -> Administrator | None:
        record = (
            db.session.query(Administrator)
            .filter(Administrator.account_id == identity.uid)
            .first()
        )
        if record is None and identity.email:
            record = (
                db.session.query(Administrator)
                .filter(Administrator.email == normalize_email(identity.email))
                .first()
            )
        return record

    def resolve(self, identity: Identity | None) -> UserRole | None:
        if identity is None:
            return None
        record = self.find_record(identity)
        return record.role if record else UserRole.STUDENT

    def assign_claim(self, identity: Identity) -> Identity:
        """Return the identity carrying its resolved role as the claim.

        Links an email-only administrator record to the account on first use.
        """
        record = self.find_record(identity)
        if record is not None and record.account_id is None:
            if db.session.get(Account, identity.uid) is not None:
                record.account_id = identity.uid
                db.session.commit()
        role = record.role if record else UserRole.STUDENT
        return identity.with_role(role.value)


def grant_role(email: str, role: UserRole, added_by: str | None = None, display_name: str | None = None) -> Administrator:
    """Create or update the administrator record for an email."""
    if role == UserRole.STUDENT:
        raise ValueError("Use revoke_role to return an administrator to the student role")

    email = normalize_email(email)
    record = db.session.query(Administrator).filter_by(email=email).first()
    if record is None:
        record = Administrator(email=email, role=role, added_by=added_by, display_name=display_name)
        account = db.session.query(Account).filter(func.lower(Account.email) == email).first()
        if account is not None:
            record.account_id = account.id
        db.session.add(record)
    else:
        record.role = role
        if display_name:
            record.display_name = display_name
    db.session.commit()
    return record


def revoke_role(email: str) -> bool:
    record = db.session.query(Administrator).filter_by(email=normalize_email(email)).first()
    if record is None:
        return False
    db.session.delete(record)
    db.session.commit()
    return True


def seed_administrators(super_admin_emails: Iterable[str], admin_emails: Iterable[str]) -> int:
    """Copy the configured allow-lists into the administrator table.

    An email present in both lists becomes a super-admin. Existing records
    are only ever promoted, never demoted. Returns the number of records
    created or changed.
    """
    wanted: dict[str, UserRole] = {}
    for email in admin_emails:
        if normalize_email(email):
            wanted[normalize_email(email)] = UserRole.ADMIN
    for email in super_admin_emails:
        if normalize_email(email):
            wanted[normalize_email(email)] = UserRole.SUPER_ADMIN

    changed = 0
    for email, role in wanted.items():
        record = db.session.query(Administrator).filter_by(email=email).first()
        if record is None:
            db.session.add(Administrator(email=email, role=role, added_by='seed'))
            changed += 1
        elif record.role == UserRole.ADMIN and role == UserRole.SUPER_ADMIN:
            record.role = role
            changed += 1
    if changed:
        db.session.commit()
        current_app.logger.info(f"Seeded {changed} administrator record(s)")
    return changed


__all__ = [
    'RoleResolver',
    'grant_role',
    'revoke_role',
    'seed_administrators',
]
