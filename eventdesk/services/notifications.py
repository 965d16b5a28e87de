"""Registration, result and deletion emails."""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app, render_template

from eventdesk.errors import ValidationError
from eventdesk.extensions import db
from eventdesk.models import EmailType, Event, PaymentStatus, Registration, utcnow
from eventdesk.services import ledger
from eventdesk.services.cache_tags import ADMIN_DASHBOARD, EVENTS, invalidate
from eventdesk.services.certificates import RENDERER_KEY, CertificateRenderer, attachment_name
from eventdesk.services.dates import format_event_dates
from eventdesk.services.emailer import EmailAttachment, EmailResult, get_email_service

POSITION_STYLES = {
    1: {'color': '#b45309', 'bg': '#fef3c7', 'border': '#f59e0b', 'emoji': '🥇', 'medal': 'Gold Medal'},
    2: {'color': '#475569', 'bg': '#f1f5f9', 'border': '#94a3b8', 'emoji': '🥈', 'medal': 'Silver Medal'},
    3: {'color': '#9a3412', 'bg': '#ffedd5', 'border': '#ea580c', 'emoji': '🥉', 'medal': 'Bronze Medal'},
}
TOP_PERFORMER_STYLE = {'color': '#4f46e5', 'bg': '#eef2ff', 'border': '#6366f1', 'emoji': '🏆', 'medal': 'Top Performer'}


@dataclass(frozen=True)
class PublishResult:
    sent: int
    failed: int
    already_notified: int


def position_label(position: int) -> str:
    return {1: '1st', 2: '2nd', 3: '3rd'}.get(position, f"{position}th")


def first_name(name: str | None) -> str:
    parts = (name or '').split()
    return parts[0] if parts else (name or '')


def get_pdf_renderer() -> CertificateRenderer:
    return current_app.extensions[RENDERER_KEY]


def _context(event: Event, registration: Registration) -> dict:
    return {
        'event': event,
        'registration': registration,
        'first_name': first_name(registration.name),
        'formatted_dates': format_event_dates(event.dates) if event.dates else 'TBA',
        'venue': event.venue or event.location or 'TBA',
        'verify_url': f"{current_app.config['BASE_URL']}/verify/{registration.id}",
        'sender_name': current_app.config.get('FROM_NAME', 'EventDesk'),
        'year': utcnow().year,
    }


def build_confirmation_attachment(event: Event, registration: Registration) -> EmailAttachment:
    """Render the confirmation PDF; CertificateError propagates to the caller."""
    content = get_pdf_renderer().render(event, registration)
    return EmailAttachment(filename=attachment_name(event, registration), content=content)


def send_registration_confirmation(
    event: Event,
    registration: Registration,
    attachment: EmailAttachment | None = None,
) -> EmailResult:
    html = render_template(
        'email/registration_confirmation.html',
        paid=registration.payment_status == PaymentStatus.COMPLETED,
        has_attachment=attachment is not None,
        **_context(event, registration),
    )
    return get_email_service().send(
        registration.email,
        f"Registration Confirmation: {event.title} - {registration.id}",
        html,
        attachment,
        to_name=registration.name,
        email_type=EmailType.REGISTRATION_CONFIRMATION,
        event_id=event.id,
        registration_id=registration.id,
    )


def send_awardee_result(event: Event, registration: Registration) -> EmailResult:
    label = position_label(registration.position)
    html = render_template(
        'email/result_notification.html',
        position_label=label,
        style=POSITION_STYLES.get(registration.position, TOP_PERFORMER_STYLE),
        **_context(event, registration),
    )
    return get_email_service().send(
        registration.email,
        f"Congratulations {first_name(registration.name)}! You secured {label} place in {event.title}!",
        html,
        to_name=registration.name,
        email_type=EmailType.RESULT_NOTIFICATION,
        event_id=event.id,
        registration_id=registration.id,
    )


def send_deletion_notice(event: Event, registration: Registration) -> EmailResult:
    html = render_template('email/deletion_notice.html', **_context(event, registration))
    result = get_email_service().send(
        registration.email,
        f"Registration removed: {event.title} - {registration.id}",
        html,
        to_name=registration.name,
        email_type=EmailType.DELETION_NOTICE,
        event_id=event.id,
        registration_id=registration.id,
    )
    if not result.success:
        current_app.logger.warning(f"Deletion notice for {registration.id} not delivered: {result.error}")
    return result


def publish_results(event: Event) -> PublishResult:
    """Email every placed registrant not yet notified and mark the event published.

    ``result_notified_at`` is set only after a successful send; it is what
    makes a placement visible on the public results page.
    """
    awardees = [
        registration
        for registration in ledger.list_for_event(event.id)
        if registration.position is not None
    ]
    if not awardees:
        raise ValidationError("No registrations have a position yet. Assign positions before publishing.")

    sent = failed = already = 0
    for registration in sorted(awardees, key=lambda r: r.position):
        if registration.result_notified_at is not None:
            already += 1
            continue
        result = send_awardee_result(event, registration)
        if result.success:
            registration.result_notified_at = utcnow()
            db.session.commit()
            sent += 1
        else:
            failed += 1

    event.results_published_at = utcnow()
    db.session.commit()
    invalidate(EVENTS, ADMIN_DASHBOARD)
    current_app.logger.info(
        f"Published results for event {event.id}: sent={sent} failed={failed} already={already}"
    )
    return PublishResult(sent=sent, failed=failed, already_notified=already)


__all__ = [
    'PublishResult',
    'position_label',
    'first_name',
    'get_pdf_renderer',
    'build_confirmation_attachment',
    'send_registration_confirmation',
    'send_awardee_result',
    'send_deletion_notice',
    'publish_results',
]
