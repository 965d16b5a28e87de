"""Payment reconciliation: turn a completed gateway payment into one registration.

Each callback is handled once and never retried. A payment the gateway does
not report as completed writes nothing. A completed payment always leaves a
durable registration; the confirmation email after it is best effort.
Replays of the same callback return the registration already on file.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from eventdesk.auth.tokens import Identity
from eventdesk.errors import PaymentFailedError, ValidationError
from eventdesk.extensions import db
from eventdesk.models import Event, PaymentStatus, Registration
from eventdesk.services import ledger
from eventdesk.services.admission import (
    account_id_for,
    get_payment_gateway,
    parse_invoice_ref,
    validate_registrant,
)
from eventdesk.services.cache_tags import invalidate_registration_views
from eventdesk.services.certificates import CertificateError
from eventdesk.services.notifications import build_confirmation_attachment, send_registration_confirmation
from eventdesk.services.registration_ids import generate_registration_id
from eventdesk.services.schools import ensure_school_exists


@dataclass(frozen=True)
class ReconciliationResult:
    registration_id: str
    event_id: str
    transaction_id: str | None
    replayed: bool = False


def paid_amount(raw) -> float | None:
    """Amount echoed by the gateway for the executed payment."""
    try:
        return float(raw) if raw not in (None, '') else None
    except (TypeError, ValueError):
        return None


def _replayed(existing: Registration, event_id: str, transaction_id: str | None) -> ReconciliationResult:
    ledger.log_replay(existing, transaction_id)
    current_app.logger.info(f"Payment callback replay for registration {existing.id}")
    return ReconciliationResult(
        registration_id=existing.id,
        event_id=event_id,
        transaction_id=transaction_id,
        replayed=True,
    )


def _notify(event: Event, registration: Registration) -> None:
    """Confirmation PDF and email; failures are logged and the registration stays."""
    attachment = None
    if event.send_pdf_on_registration:
        try:
            attachment = build_confirmation_attachment(event, registration)
        except CertificateError as exc:
            current_app.logger.error(f"Confirmation PDF for paid registration {registration.id} failed: {exc}")

    result = send_registration_confirmation(event, registration, attachment)
    if not result.success:
        current_app.logger.error(
            f"Confirmation email for paid registration {registration.id} "
            f"(trx {registration.transaction_id}) failed: {result.error}"
        )


def reconcile(
    payment_id: str | None,
    submitted: dict | None,
    identity: Identity | None = None,
) -> ReconciliationResult:
    if not payment_id or not isinstance(payment_id, str):
        raise ValidationError("Missing paymentID.", field_errors={'paymentID': 'Required.'})
    if not submitted or not isinstance(submitted, dict):
        raise ValidationError("Missing registrationData.", field_errors={'registrationData': 'Required.'})
    data = validate_registrant(submitted)

    execution = get_payment_gateway().execute_payment(payment_id)
    if not execution.completed:
        current_app.logger.warning(
            f"Payment {payment_id} not completed: {execution.error_code} {execution.error_detail}"
        )
        raise PaymentFailedError(
            execution.error_detail or "Payment execution failed.",
            error_code=execution.error_code,
        )

    event_id, _client_id = parse_invoice_ref(execution.invoice_ref)
    transaction_id = execution.transaction_id

    existing = ledger.find_active(event_id, data['email'])
    if existing is not None:
        return _replayed(existing, event_id, transaction_id)

    ensure_school_exists(data['school'])

    registration = Registration(
        id=generate_registration_id(),
        event_id=event_id,
        account_id=account_id_for(identity),
        payment_status=PaymentStatus.COMPLETED,
        transaction_id=transaction_id,
        amount_paid=paid_amount(execution.amount),
        **data,
    )
    try:
        ledger.add(registration)
    except ledger.DuplicateRegistration as exc:
        # A concurrent delivery of the same callback won the write
        if exc.existing is None:
            raise
        return _replayed(exc.existing, event_id, transaction_id)

    current_app.logger.info(
        f"Paid registration {registration.id} recorded for event {event_id} (trx {transaction_id})"
    )
    invalidate_registration_views()

    event = db.session.get(Event, event_id)
    if event is None:
        current_app.logger.error(
            f"Paid registration {registration.id} (trx {transaction_id}) references missing event "
            f"{event_id}; no confirmation sent, needs manual follow-up"
        )
    else:
        if event.is_deleted:
            current_app.logger.warning(f"Payment {transaction_id} received for trashed event {event_id}")
        _notify(event, registration)
    return ReconciliationResult(
        registration_id=registration.id,
        event_id=event_id,
        transaction_id=transaction_id,
    )


__all__ = ['ReconciliationResult', 'reconcile']
