"""Helpers shared by the JSON blueprints."""

from __future__ import annotations

from flask import request

from eventdesk.errors import ValidationError
from eventdesk.models import Registration, isoformat


def json_body() -> dict:
    """Request JSON as a dict; anything else is a 400."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object.")
    return data


def serialize_registration(registration: Registration) -> dict:
    return {
        'id': registration.id,
        'eventId': registration.event_id,
        'uid': registration.account_id,
        'name': registration.name,
        'email': registration.email,
        'phone': registration.phone,
        'school': registration.school,
        'note': registration.note,
        'category': registration.category,
        'position': registration.position,
        'paymentStatus': registration.payment_status.value if registration.payment_status else None,
        'transactionId': registration.transaction_id,
        'amountPaid': registration.amount_paid,
        'resultNotifiedAt': isoformat(registration.result_notified_at),
        'createdAt': isoformat(registration.created_at),
        'deletedAt': isoformat(registration.deleted_at),
    }
