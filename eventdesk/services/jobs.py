"""Background job functions for RQ worker."""

from __future__ import annotations

from datetime import timedelta

from flask import current_app

RETRY_WINDOW = timedelta(days=2)


def retry_failed_emails(limit: int = 50) -> dict:
    """Resend failed emails still under their retry budget.

    Confirmations for registrations that no longer exist are cancelled
    instead of retried. Requires an application context.
    """
    from eventdesk.extensions import db
    from eventdesk.models import EmailMessage, EmailStatus, Registration, utcnow
    from eventdesk.services.emailer import get_email_service

    failed_emails = (
        db.session.query(EmailMessage)
        .filter(
            EmailMessage.status == EmailStatus.FAILED,
            EmailMessage.retry_count < EmailMessage.max_retries,
            EmailMessage.created_at >= utcnow() - RETRY_WINDOW,
        )
        .order_by(EmailMessage.created_at)
        .limit(limit)
        .all()
    )

    service = get_email_service()
    retried = cancelled = 0
    for message in failed_emails:
        if message.registration_id:
            registration = db.session.get(Registration, message.registration_id)
            if registration is None or registration.is_deleted:
                message.status = EmailStatus.CANCELLED
                db.session.commit()
                cancelled += 1
                continue
        service.resend(message)
        retried += 1

    current_app.logger.info(f"Retried {retried} failed email(s), cancelled {cancelled}")
    return {'retried': retried, 'cancelled': cancelled}


def purge_expired_trash_job():
    """Background job to purge soft-deleted items past retention."""
    from eventdesk import create_app

    app = create_app()

    with app.app_context():
        from eventdesk.services.trash import TrashSweeper

        result = TrashSweeper.from_config(app.config).purge_expired()
        return result.to_dict()


def retry_failed_emails_job(limit=50):
    """Background job to retry failed emails."""
    from eventdesk import create_app

    app = create_app()

    with app.app_context():
        return retry_failed_emails(limit)
