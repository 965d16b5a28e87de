"""Email delivery with a message log.

``EmailService.send`` never raises: every outcome comes back as an
``EmailResult`` and is recorded as an ``EmailMessage`` row.
"""

from __future__ import annotations

import base64
import re
import smtplib
from dataclasses import dataclass
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, parseaddr

import requests
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from eventdesk.extensions import db
from eventdesk.models import EmailMessage, EmailStatus, EmailType, utcnow

EMAIL_SERVICE_KEY = 'eventdesk.email_service'
EMAIL_RE = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
BACKENDS = ('console', 'brevo', 'smtp')


class EmailerError(Exception):
    """Raised by a backend when delivery fails."""
    pass


@dataclass(frozen=True)
class EmailAttachment:
    filename: str
    content: bytes
    content_type: str = 'application/pdf'


@dataclass(frozen=True)
class EmailResult:
    success: bool
    error: str | None = None
    message_id: str | None = None


def parse_sender(from_email: str, default_name: str) -> tuple[str, str]:
    """Split 'Name <address>' into (name, address)."""
    name, address = parseaddr(from_email or '')
    return (name or default_name), (address or from_email)


class EmailService:
    """Sends HTML email through the console, Brevo or SMTP backend."""

    def __init__(
        self,
        backend: str = 'console',
        from_email: str = 'no-reply@eventdesk.local',
        from_name: str = 'EventDesk',
        brevo_api_key: str | None = None,
        brevo_api_url: str = 'https://api.brevo.com/v3/smtp/email',
        smtp_host: str | None = None,
        smtp_port: int = 587,
        smtp_username: str | None = None,
        smtp_password: str | None = None,
        smtp_use_tls: bool = True,
        timeout: float = 15,
        session: requests.Session | None = None,
    ):
        if backend not in BACKENDS:
            raise EmailerError(f"Unknown email backend '{backend}'. Use one of: {', '.join(BACKENDS)}")
        self.backend = backend
        self.from_name, self.from_email = parse_sender(from_email, from_name)
        self.brevo_api_key = brevo_api_key
        self.brevo_api_url = brevo_api_url
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_username = smtp_username
        self.smtp_password = smtp_password
        self.smtp_use_tls = smtp_use_tls
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config) -> "EmailService":
        return cls(
            backend=config.get('EMAIL_BACKEND', 'console'),
            from_email=config.get('FROM_EMAIL'),
            from_name=config.get('FROM_NAME', 'EventDesk'),
            brevo_api_key=config.get('BREVO_API_KEY'),
            brevo_api_url=config.get('BREVO_API_URL'),
            smtp_host=config.get('SMTP_HOST'),
            smtp_port=config.get('SMTP_PORT', 587),
            smtp_username=config.get('SMTP_USERNAME'),
            smtp_password=config.get('SMTP_PASSWORD'),
            smtp_use_tls=config.get('SMTP_USE_TLS', True),
            timeout=config.get('EMAIL_TIMEOUT', 15),
        )

    def send(
        self,
        to_email: str,
        subject: str,
        html: str,
        attachment: EmailAttachment | None = None,
        *,
        to_name: str | None = None,
        email_type: EmailType = EmailType.CUSTOM,
        event_id: str | None = None,
        registration_id: str | None = None,
    ) -> EmailResult:
        """Deliver one message and log it."""
        to_email = (to_email or '').strip().lower()
        message = EmailMessage(
            to_email=to_email,
            to_name=to_name,
            subject=subject,
            email_type=email_type,
            status=EmailStatus.QUEUED,
            backend=self.backend,
            html_content=html,
            attachment_name=attachment.filename if attachment else None,
            event_id=event_id,
            registration_id=registration_id,
        )
        result = self._attempt(message, attachment)
        self._record(message)
        return result

    def resend(self, message: EmailMessage) -> EmailResult:
        """Retry a logged message. Attachments are not stored, so none is sent."""
        message.retry_count += 1
        result = self._attempt(message, None)
        self._record(message)
        return result

    def _attempt(self, message: EmailMessage, attachment: EmailAttachment | None) -> EmailResult:
        if not EMAIL_RE.match(message.to_email):
            return self._failed(message, 'Invalid email address.')
        try:
            message_id = self._deliver(
                to_email=message.to_email,
                to_name=message.to_name,
                subject=message.subject,
                html=message.html_content or '',
                attachment=attachment,
            )
        except (EmailerError, requests.RequestException, smtplib.SMTPException, OSError) as exc:
            return self._failed(message, str(exc))

        message.status = EmailStatus.SENT
        message.sent_at = utcnow()
        message.error_message = None
        return EmailResult(success=True, message_id=message_id)

    def _failed(self, message: EmailMessage, error: str) -> EmailResult:
        message.status = EmailStatus.FAILED
        message.error_message = error[:1000]
        current_app.logger.error(f"Email to {message.to_email} failed: {error}")
        return EmailResult(success=False, error=error)

    def _record(self, message: EmailMessage) -> None:
        try:
            db.session.add(message)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.error(f"Failed to log email to {message.to_email}: {exc}")

    def _deliver(self, to_email, to_name, subject, html, attachment) -> str | None:
        if self.backend == 'brevo':
            return self._send_brevo(to_email, to_name, subject, html, attachment)
        if self.backend == 'smtp':
            return self._send_smtp(to_email, to_name, subject, html, attachment)
        return self._send_console(to_email, subject, attachment)

    def _send_console(self, to_email, subject, attachment) -> None:
        # Development mode - log instead of sending
        current_app.logger.info(
            f"[EMAIL] To: {to_email} | Subject: {subject}"
            + (f" | Attachment: {attachment.filename} ({len(attachment.content)} bytes)" if attachment else '')
        )
        return None

    def _send_brevo(self, to_email, to_name, subject, html, attachment) -> str | None:
        if not (self.brevo_api_key or '').strip():
            raise EmailerError('Email service is not configured (BREVO_API_KEY).')

        payload = {
            'sender': {'email': self.from_email, 'name': self.from_name},
            'to': [{'email': to_email, 'name': to_name or to_email}],
            'subject': subject,
            'htmlContent': html,
        }
        if attachment is not None:
            payload['attachment'] = [{
                'name': attachment.filename,
                'content': base64.b64encode(attachment.content).decode('ascii'),
            }]

        response = self.session.post(
            self.brevo_api_url,
            json=payload,
            headers={'api-key': self.brevo_api_key, 'Accept': 'application/json'},
            timeout=self.timeout,
        )
        if not 200 <= response.status_code < 300:
            try:
                detail = response.json().get('message')
            except ValueError:
                detail = None
            raise EmailerError(detail or f"HTTP {response.status_code}: {response.text[:200]}")
        try:
            return response.json().get('messageId')
        except ValueError:
            return None

    def _send_smtp(self, to_email, to_name, subject, html, attachment) -> None:
        if not self.smtp_host:
            raise EmailerError("SMTP configuration incomplete. Set SMTP_HOST.")

        msg = MIMEMultipart('mixed')
        msg['Subject'] = subject
        msg['From'] = formataddr((self.from_name, self.from_email))
        msg['To'] = formataddr((to_name, to_email)) if to_name else to_email
        msg.attach(MIMEText(html, 'html'))
        if attachment is not None:
            part = MIMEApplication(attachment.content, _subtype=attachment.content_type.split('/')[-1])
            part.add_header('Content-Disposition', 'attachment', filename=attachment.filename)
            msg.attach(part)

        with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout) as server:
            if self.smtp_use_tls:
                server.starttls()
            if self.smtp_username and self.smtp_password:
                server.login(self.smtp_username, self.smtp_password)
            server.send_message(msg)
        return None


def get_email_service() -> EmailService:
    return current_app.extensions[EMAIL_SERVICE_KEY]


__all__ = [
    'EMAIL_SERVICE_KEY',
    'EmailerError',
    'EmailAttachment',
    'EmailResult',
    'EmailService',
    'get_email_service',
    'parse_sender',
]
