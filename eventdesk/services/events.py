"""Event directory: CRUD with soft delete and ownership rules."""

from __future__ import annotations

from typing import Any

from flask import current_app

from eventdesk.auth.tokens import Identity
from eventdesk.errors import AuthorizationError, NotFoundError, ValidationError
from eventdesk.extensions import db
from eventdesk.forms import validate_json
from eventdesk.forms.events import EventForm
from eventdesk.models import Account, Event, UserRole, isoformat, utcnow
from eventdesk.services.cache_tags import ADMIN_DASHBOARD, EVENTS, cached_view, invalidate
from eventdesk.services.dates import (
    first_event_date,
    format_event_dates,
    is_event_upcoming,
    normalize_event_dates,
)

# JSON keys accepted on create/update and the column each one feeds
SCALAR_FIELDS = {
    'title': 'title',
    'description': 'description',
    'fullDescription': 'full_description',
    'time': 'time',
    'location': 'location',
    'venue': 'venue',
    'image': 'image',
    'logo': 'logo',
    'eligibility': 'eligibility',
    'colorTheme': 'color_theme',
    'amount': 'amount',
}


def as_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')


def get_event(event_id: str, include_deleted: bool = False) -> Event:
    event = db.session.get(Event, event_id) if event_id else None
    if event is None or (event.is_deleted and not include_deleted):
        raise NotFoundError("Event not found")
    return event


def list_events(include_deleted: bool = False) -> list[Event]:
    query = db.session.query(Event)
    if not include_deleted:
        query = query.filter(Event.deleted_at.is_(None))
    return query.order_by(Event.created_at.desc(), Event.title).all()


@cached_view(EVENTS)
def list_public_events() -> list[dict]:
    return [serialize_event(event) for event in list_events()]


def can_edit_event(role: UserRole | None, account_id: str | None, event: Event) -> bool:
    """Super-admins edit anything; admins edit the events they created."""
    if role == UserRole.SUPER_ADMIN:
        return True
    return role == UserRole.ADMIN and account_id is not None and event.created_by == account_id


def require_edit_permission(role: UserRole | None, identity: Identity, event: Event) -> None:
    if not can_edit_event(role, identity.uid, event):
        raise AuthorizationError("You can only modify events you created.")


def _parse_categories(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(',')
    if not isinstance(value, list):
        raise ValidationError("Categories must be a list.", field_errors={'categories': 'Invalid categories.'})
    categories: list[str] = []
    for item in value:
        name = str(item).strip() if item is not None else ''
        if name and name not in categories:
            categories.append(name)
    return categories


def _parse_category_amounts(value: Any) -> dict[str, float]:
    if not value:
        return {}
    if not isinstance(value, dict):
        raise ValidationError("Category amounts must be an object.", field_errors={'categoryAmounts': 'Invalid amounts.'})
    amounts: dict[str, float] = {}
    for category, raw in value.items():
        if raw is None or raw == '':
            continue
        try:
            amount = float(raw)
        except (TypeError, ValueError):
            raise ValidationError(
                f"Amount for {category} must be a number.",
                field_errors={'categoryAmounts': f"Invalid amount for {category}."},
            )
        if amount < 0:
            raise ValidationError(
                f"Amount for {category} cannot be negative.",
                field_errors={'categoryAmounts': f"Invalid amount for {category}."},
            )
        amounts[str(category).strip()] = amount
    return amounts


def _string_list(value: Any, field: str) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValidationError(f"{field} must be a list.", field_errors={field: 'Must be a list.'})
    return value


def _event_payload(event: Event) -> dict:
    """Current values of an event in request-body shape, for partial updates."""
    payload = {key: getattr(event, column) for key, column in SCALAR_FIELDS.items()}
    payload.update({
        'dates': list(event.dates or []),
        'categories': list(event.categories or []),
        'categoryAmounts': dict(event.category_amounts or {}),
        'agenda': list(event.agenda or []),
        'tags': list(event.tags or []),
        'isPaid': event.is_paid,
        'sendPdfOnRegistration': event.send_pdf_on_registration,
    })
    return payload


def clean_event_data(data: dict, existing: Event | None = None) -> dict:
    """Validate a create/update body and return column values."""
    merged = _event_payload(existing) if existing is not None else {}
    merged.update(data or {})
    if 'date' in (data or {}) and 'dates' not in (data or {}):
        merged['dates'] = data['date']

    form = validate_json(EventForm, {
        column: merged.get(key) for key, column in SCALAR_FIELDS.items()
    })
    values = {column: getattr(form, column).data for column in SCALAR_FIELDS.values()}
    for column, value in values.items():
        if value == '':
            values[column] = None

    try:
        values['dates'] = normalize_event_dates(merged.get('dates'))
    except ValueError:
        raise ValidationError("Dates must be calendar dates (YYYY-MM-DD).", field_errors={'dates': 'Invalid date.'})
    if not values['dates']:
        raise ValidationError("At least one event date is required.", field_errors={'dates': 'Required.'})

    values['categories'] = _parse_categories(merged.get('categories'))
    values['category_amounts'] = _parse_category_amounts(merged.get('categoryAmounts'))
    values['agenda'] = _string_list(merged.get('agenda'), 'agenda')
    values['tags'] = [str(tag).strip() for tag in _string_list(merged.get('tags'), 'tags') if str(tag).strip()]
    values['is_paid'] = as_bool(merged.get('isPaid'))
    values['send_pdf_on_registration'] = as_bool(merged.get('sendPdfOnRegistration'), default=True)

    if values['is_paid']:
        flat = values.get('amount') or 0
        per_category = [amount for amount in values['category_amounts'].values() if amount > 0]
        if flat <= 0 and not per_category:
            raise ValidationError(
                "Paid events need a positive amount.",
                field_errors={'amount': 'Enter a positive amount.'},
            )
    return values


def _actor_name(identity: Identity) -> str:
    account = db.session.get(Account, identity.uid)
    if account is not None and account.display_name:
        return account.display_name
    return identity.email


def create_event(identity: Identity, data: dict) -> Event:
    values = clean_event_data(data)
    event = Event(created_by=identity.uid, created_by_name=_actor_name(identity), **values)
    db.session.add(event)
    db.session.commit()
    invalidate(EVENTS, ADMIN_DASHBOARD)
    current_app.logger.info(f"Event {event.id} created by {identity.email}")
    return event


def update_event(identity: Identity, role: UserRole | None, event_id: str, data: dict) -> Event:
    event = get_event(event_id)
    require_edit_permission(role, identity, event)
    for column, value in clean_event_data(data, existing=event).items():
        setattr(event, column, value)
    db.session.commit()
    invalidate(EVENTS, ADMIN_DASHBOARD)
    return event


def soft_delete_event(identity: Identity, role: UserRole | None, event_id: str) -> Event:
    event = get_event(event_id)
    require_edit_permission(role, identity, event)
    event.deleted_at = utcnow()
    db.session.commit()
    invalidate(EVENTS, ADMIN_DASHBOARD)
    current_app.logger.info(f"Event {event.id} moved to trash by {identity.email}")
    return event


def restore_event(event_id: str) -> Event:
    event = get_event(event_id, include_deleted=True)
    if event.deleted_at is not None:
        event.deleted_at = None
        db.session.commit()
        invalidate(EVENTS, ADMIN_DASHBOARD)
    return event


def serialize_event(event: Event, registration_count: int | None = None) -> dict:
    dates = list(event.dates or [])
    first = first_event_date(dates)
    payload = {
        'id': event.id,
        'title': event.title,
        'description': event.description,
        'fullDescription': event.full_description,
        'dates': dates,
        'formattedDates': format_event_dates(dates),
        'firstDate': first.isoformat() if first else None,
        'isUpcoming': is_event_upcoming(dates),
        'time': event.time,
        'location': event.location,
        'venue': event.venue,
        'image': event.image,
        'logo': event.logo,
        'eligibility': event.eligibility,
        'agenda': list(event.agenda or []),
        'tags': list(event.tags or []),
        'categories': event.category_list,
        'colorTheme': event.color_theme,
        'isPaid': event.is_paid,
        'amount': event.amount,
        'categoryAmounts': dict(event.category_amounts or {}),
        'sendPdfOnRegistration': event.send_pdf_on_registration,
        'resultsPublishedAt': isoformat(event.results_published_at),
        'createdBy': event.created_by,
        'createdByName': event.created_by_name,
        'createdAt': isoformat(event.created_at),
        'deletedAt': isoformat(event.deleted_at),
    }
    if registration_count is not None:
        payload['registrationCount'] = registration_count
    return payload


__all__ = [
    'as_bool',
    'get_event',
    'list_events',
    'list_public_events',
    'can_edit_event',
    'require_edit_permission',
    'clean_event_data',
    'create_event',
    'update_event',
    'soft_delete_event',
    'restore_event',
    'serialize_event',
]
