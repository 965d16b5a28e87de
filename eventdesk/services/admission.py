"""Admission: the free registration path and paid-payment initiation.

Free path order: identity, registrant fields, event and category, paid
check, duplicate check, school directory, id, write, confirmation PDF and
email. A failed confirmation deletes the written registration again, so a
registrant never holds a record without having been told about it.

The paid path persists nothing before redirecting to the gateway. The
registrant's form data stays with the client and is replayed at
reconciliation; the event id travels inside the invoice reference.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from flask import current_app

from eventdesk.auth.tokens import Identity
from eventdesk.errors import AuthRequiredError, UpstreamError, ValidationError
from eventdesk.extensions import db
from eventdesk.forms import validate_json
from eventdesk.forms.registration import RegistrantForm
from eventdesk.models import Account, Event, Registration
from eventdesk.services import ledger
from eventdesk.services.cache_tags import invalidate_registration_views
from eventdesk.services.certificates import CertificateError
from eventdesk.services.events import get_event
from eventdesk.services.notifications import build_confirmation_attachment, send_registration_confirmation
from eventdesk.services.payments import GATEWAY_KEY, PaymentGateway
from eventdesk.services.registration_ids import generate_registration_id
from eventdesk.services.schools import ensure_school_exists

CLIENT_ID_RE = re.compile(r'^[A-Za-z0-9_-]{1,64}$')
PAYER_REF_DIGITS = 11


@dataclass(frozen=True)
class AdmissionResult:
    registration_id: str
    event_id: str


@dataclass(frozen=True)
class PaymentInitiation:
    redirect_url: str
    payment_id: str
    invoice_ref: str
    amount: float


def get_payment_gateway() -> PaymentGateway:
    return current_app.extensions[GATEWAY_KEY]


def validate_registrant(submitted: dict | None) -> dict:
    """Required fields and email syntax; returns cleaned registrant data."""
    if not isinstance(submitted, dict):
        raise ValidationError("Registration details are required.", field_errors={'registrationData': 'Required.'})
    return validate_json(RegistrantForm, submitted).registrant_data()


def check_category(event: Event, category: str | None) -> str | None:
    """Enforce the event's category list; events without one ignore the value."""
    categories = event.category_list
    if not categories:
        return None
    chosen = (category or '').strip()
    if chosen not in categories:
        raise ValidationError("Please select a valid category.", field_errors={'category': 'Invalid category.'})
    return chosen


def resolve_amount(event: Event, category: str | None) -> float:
    """Per-category amount when the chosen category has one, else the flat amount."""
    amounts = event.category_amounts or {}
    raw = amounts[category] if category and category in amounts else event.amount
    try:
        return float(raw or 0)
    except (TypeError, ValueError):
        return 0.0


def build_invoice_ref(event_id: str, client_generated_id: str) -> str:
    return f"{current_app.config['INVOICE_PREFIX']}-{event_id}-{client_generated_id}"


def parse_invoice_ref(invoice_ref: str | None) -> tuple[str, str]:
    """Split PREFIX-<eventId>-<clientId>; event ids never contain '-'."""
    parts = (invoice_ref or '').split('-', 2)
    if len(parts) != 3 or parts[0] != current_app.config['INVOICE_PREFIX'] or not parts[1] or not parts[2]:
        raise ValidationError("Invalid payment reference.")
    return parts[1], parts[2]


def payer_reference(phone: str) -> str | None:
    digits = re.sub(r'\D', '', phone or '')
    return digits[-PAYER_REF_DIGITS:] or None


def callback_url() -> str:
    configured = current_app.config.get('PAYMENT_CALLBACK_URL')
    if configured:
        return configured
    return f"{current_app.config['BASE_URL']}/payments/callback"


def account_id_for(identity: Identity | None) -> str | None:
    if identity is None:
        return None
    return identity.uid if db.session.get(Account, identity.uid) is not None else None


def reject_duplicate(event_id: str, email: str) -> None:
    existing = ledger.find_active(event_id, email)
    if existing is not None:
        raise ledger.DuplicateRegistration(existing)


def admit(identity: Identity | None, event_id: str | None, submitted: dict | None) -> AdmissionResult:
    """Register for a free event (or a free category of a paid one)."""
    if identity is None:
        raise AuthRequiredError("Please sign in to register for this event.")
    if not event_id:
        raise ValidationError("Event is required.", field_errors={'eventId': 'Required.'})
    data = validate_registrant(submitted)

    event = get_event(event_id)
    data['category'] = check_category(event, data.get('category'))
    if event.is_paid and resolve_amount(event, data['category']) > 0:
        raise ValidationError("This is a paid event. Please use the payment flow.")

    reject_duplicate(event.id, data['email'])
    ensure_school_exists(data['school'])

    registration = Registration(
        id=generate_registration_id(),
        event_id=event.id,
        account_id=account_id_for(identity),
        **data,
    )
    ledger.add(registration)
    registration_id = registration.id

    try:
        attachment = build_confirmation_attachment(event, registration) if event.send_pdf_on_registration else None
    except CertificateError as exc:
        ledger.discard(registration)
        raise UpstreamError(f"Confirmation PDF for {registration_id} failed: {exc}") from exc

    result = send_registration_confirmation(event, registration, attachment)
    if not result.success:
        ledger.discard(registration)
        current_app.logger.warning(f"Rolled back registration {registration_id}: confirmation email failed")
        raise UpstreamError(f"Confirmation email for {registration_id} failed: {result.error}")

    invalidate_registration_views()
    current_app.logger.info(f"Registration {registration_id} admitted to event {event.id}")
    return AdmissionResult(registration_id=registration_id, event_id=event.id)


def initiate_payment(
    event_id: str | None,
    client_generated_id: str | None,
    submitted: dict | None,
    identity: Identity | None = None,
) -> PaymentInitiation:
    """Validate, price and open a gateway session. Nothing is written."""
    missing = {
        key: 'Required.'
        for key, value in (
            ('eventId', event_id),
            ('clientGeneratedId', client_generated_id),
            ('registrationData', submitted),
        )
        if not value
    }
    if missing:
        raise ValidationError("Missing eventId, clientGeneratedId or registrationData.", field_errors=missing)
    if not CLIENT_ID_RE.match(str(client_generated_id)):
        raise ValidationError(
            "clientGeneratedId may only contain letters, digits, underscores and hyphens.",
            field_errors={'clientGeneratedId': 'Invalid format.'},
        )
    data = validate_registrant(submitted)

    event = get_event(event_id)
    if not event.is_paid:
        raise ValidationError("Event is not a paid event.")
    category = check_category(event, data.get('category'))

    amount = resolve_amount(event, category)
    if amount <= 0:
        raise ValidationError("This category is free. Please complete registration without payment.")

    reject_duplicate(event.id, data['email'])

    invoice_ref = build_invoice_ref(event.id, client_generated_id)
    session = get_payment_gateway().create_session(
        amount=amount,
        currency=current_app.config['PAYMENT_CURRENCY'],
        invoice_ref=invoice_ref,
        callback_url=callback_url(),
        payer_ref=payer_reference(data['phone']),
    )
    current_app.logger.info(
        f"Payment {session.payment_id} opened for event {event.id} "
        f"({amount} {current_app.config['PAYMENT_CURRENCY']}, invoice {invoice_ref})"
    )
    return PaymentInitiation(
        redirect_url=session.redirect_url,
        payment_id=session.payment_id,
        invoice_ref=invoice_ref,
        amount=amount,
    )


__all__ = [
    'AdmissionResult',
    'PaymentInitiation',
    'get_payment_gateway',
    'validate_registrant',
    'check_category',
    'resolve_amount',
    'build_invoice_ref',
    'parse_invoice_ref',
    'payer_reference',
    'callback_url',
    'account_id_for',
    'admit',
    'initiate_payment',
]
