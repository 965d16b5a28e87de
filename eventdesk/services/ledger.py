"""Registration ledger: uniqueness, soft delete and read paths.

Every read path here filters out soft-deleted rows unless asked otherwise.
The pre-write duplicate lookup is backed by a partial unique index on
(event_id, email) for active rows, so two concurrent writers cannot both
commit.
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from eventdesk.errors import DuplicateError, NotFoundError, UpstreamError, ValidationError
from eventdesk.extensions import db
from eventdesk.models import Event, Registration, utcnow

MIN_POSITION = 1
MAX_POSITION = 20


class DuplicateRegistration(DuplicateError):
    """Duplicate carrying the registration already holding the slot."""

    def __init__(self, existing: Registration | None = None, message: str | None = None):
        super().__init__(message)
        self.existing = existing


def normalize_email(email: str | None) -> str:
    return (email or '').strip().lower()


def active_registrations():
    return db.session.query(Registration).filter(Registration.deleted_at.is_(None))


def find_active(event_id: str, email: str) -> Registration | None:
    return (
        active_registrations()
        .filter(Registration.event_id == event_id, Registration.email == normalize_email(email))
        .limit(1)
        .first()
    )


def get_registration(registration_id: str, include_deleted: bool = False) -> Registration:
    registration = db.session.get(Registration, registration_id)
    if registration is None or (registration.is_deleted and not include_deleted):
        raise NotFoundError("Registration not found")
    return registration


def add(registration: Registration) -> Registration:
    """Insert a registration; a unique-index collision becomes a duplicate."""
    registration.email = normalize_email(registration.email)
    db.session.add(registration)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        existing = find_active(registration.event_id, registration.email)
        if existing is not None:
            raise DuplicateRegistration(existing) from exc
        raise UpstreamError(f"Registration write failed: {exc.orig}") from exc
    return registration


def discard(registration: Registration) -> None:
    """Hard delete. Used only to undo a registration whose confirmation failed."""
    db.session.delete(registration)
    db.session.commit()


def soft_delete(registration: Registration, now: datetime | None = None) -> Registration:
    if registration.deleted_at is None:
        registration.deleted_at = now or utcnow()
        db.session.commit()
    return registration


def restore(registration: Registration) -> Registration:
    if registration.deleted_at is None:
        return registration
    holder = find_active(registration.event_id, registration.email)
    if holder is not None:
        raise DuplicateRegistration(
            holder,
            f"Another active registration ({holder.id}) already uses {registration.email} for this event.",
        )
    registration.deleted_at = None
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise DuplicateRegistration(message="Another active registration already uses this email.") from exc
    return registration


def parse_position(value) -> int | None:
    """Accept 1-20, or None/blank to clear the placement."""
    if value is None or value == '':
        return None
    invalid = ValidationError(
        "Position must be a whole number between 1 and 20.",
        field_errors={'position': 'Invalid position.'},
    )
    if isinstance(value, bool):
        raise invalid
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    try:
        position = int(str(value).strip())
    except ValueError:
        raise invalid
    if not MIN_POSITION <= position <= MAX_POSITION:
        raise invalid
    return position


def update_fields(registration: Registration, event: Event, changes: dict) -> Registration:
    """Apply admin edits: position, category and contact fields."""
    if 'position' in changes:
        registration.position = parse_position(changes['position'])

    if 'category' in changes:
        category = (changes.get('category') or '').strip()
        if event.category_list:
            if category not in event.category_list:
                raise ValidationError("Please select a valid category.", field_errors={'category': 'Invalid category.'})
            registration.category = category
        else:
            registration.category = category or None

    for field in ('name', 'phone', 'school', 'note'):
        if field in changes and changes[field] is not None:
            value = str(changes[field]).strip()
            if field != 'note' and not value:
                raise ValidationError(f"{field.capitalize()} cannot be blank.", field_errors={field: 'Required.'})
            if field == 'note':
                value = value or None
            setattr(registration, field, value)

    if changes.get('email') is not None:
        email = normalize_email(changes['email'])
        if email != registration.email:
            if not registration.is_deleted:
                holder = find_active(registration.event_id, email)
                if holder is not None and holder.id != registration.id:
                    raise DuplicateRegistration(holder, f"{email} is already registered for this event.")
            registration.email = email

    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise DuplicateRegistration(message="That email is already registered for this event.") from exc
    return registration


def list_for_event(event_id: str, include_deleted: bool = False) -> list[Registration]:
    query = db.session.query(Registration).filter(Registration.event_id == event_id)
    if not include_deleted:
        query = query.filter(Registration.deleted_at.is_(None))
    return query.order_by(Registration.created_at.desc(), Registration.id).all()


def list_for_account(account_id: str, email: str | None = None) -> list[Registration]:
    """Active registrations linked to an account or made with its email."""
    criteria = Registration.account_id == account_id
    if email:
        criteria = criteria | (Registration.email == normalize_email(email))
    return (
        active_registrations()
        .join(Event, Event.id == Registration.event_id)
        .filter(Event.deleted_at.is_(None))
        .filter(criteria)
        .order_by(Registration.created_at.desc())
        .all()
    )


def count_active(event_id: str | None = None) -> int:
    query = (
        db.session.query(func.count(Registration.id))
        .join(Event, Event.id == Registration.event_id)
        .filter(Registration.deleted_at.is_(None), Event.deleted_at.is_(None))
    )
    if event_id is not None:
        query = query.filter(Registration.event_id == event_id)
    return query.scalar() or 0


def verify_lookup(registration_id: str) -> Registration | None:
    """Public lookup: the registration and its event must both be live."""
    registration = db.session.get(Registration, (registration_id or '').strip().upper())
    if registration is None or registration.is_deleted:
        return None
    if registration.event is None or registration.event.is_deleted:
        return None
    return registration


def featured_applicants(event_id: str) -> list[Registration]:
    """Placed registrants whose result email has gone out, by position."""
    return (
        active_registrations()
        .filter(
            Registration.event_id == event_id,
            Registration.position.isnot(None),
            Registration.result_notified_at.isnot(None),
        )
        .order_by(Registration.position, Registration.name)
        .all()
    )


def log_replay(existing: Registration, transaction_id: str | None) -> None:
    if transaction_id and existing.transaction_id and existing.transaction_id != transaction_id:
        current_app.logger.warning(
            f"Payment {transaction_id} matched existing registration {existing.id} "
            f"paid with {existing.transaction_id}; not recording a second registration"
        )


__all__ = [
    'DuplicateRegistration',
    'normalize_email',
    'active_registrations',
    'find_active',
    'get_registration',
    'add',
    'discard',
    'soft_delete',
    'restore',
    'parse_position',
    'update_fields',
    'list_for_event',
    'list_for_account',
    'count_active',
    'verify_lookup',
    'featured_applicants',
    'log_replay',
]
