"""Shared fixtures: an in-memory application with fake outbound services."""

import os

import pytest

os.environ.setdefault('EVENTDESK_SKIP_BOOTSTRAP', '1')

from eventdesk import create_app
from eventdesk.auth import get_identity_verifier
from eventdesk.auth.tokens import Identity
from eventdesk.config import Config
from eventdesk.extensions import db
from eventdesk.models import Account, Event, UserRole
from eventdesk.services.certificates import RENDERER_KEY, CertificateError
from eventdesk.services.emailer import EMAIL_SERVICE_KEY, EmailerError, EmailService
from eventdesk.services.payments import GATEWAY_KEY, PaymentExecution, PaymentSession
from eventdesk.services.roles import grant_role


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret-key'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    WTF_CSRF_ENABLED = False
    RATELIMIT_ENABLED = False
    CACHE_TYPE = 'SimpleCache'
    SEED_ADMINS_ON_STARTUP = False
    SUPER_ADMIN_EMAILS = []
    ADMIN_EMAILS = []
    BASE_URL = 'https://events.example.com'
    PAYMENT_CALLBACK_URL = None
    CRON_SECRET = 'cron-secret'
    AUTH_COOKIE_SECURE = False
    EMAIL_BACKEND = 'console'


class RecordingEmailService(EmailService):
    """Console email service that remembers deliveries and can be told to fail."""

    def __init__(self):
        super().__init__(backend='console')
        self.sent = []
        self.attempts = 0
        self.fail = False

    def _deliver(self, to_email, to_name, subject, html, attachment):
        self.attempts += 1
        if self.fail:
            raise EmailerError('SMTP relay unavailable')
        self.sent.append({
            'to': to_email,
            'subject': subject,
            'html': html,
            'attachment': attachment,
        })
        return f'msg-{len(self.sent)}'


class FakeGateway:
    """In-process stand-in for the bKash checkout API."""

    def __init__(self):
        self.sessions = []
        self.executions = {}
        self.execute_calls = []

    def create_session(self, amount, currency, invoice_ref, callback_url, payer_ref=None):
        payment_id = f'PAY{len(self.sessions) + 1:04d}'
        self.sessions.append({
            'payment_id': payment_id,
            'amount': amount,
            'currency': currency,
            'invoice_ref': invoice_ref,
            'callback_url': callback_url,
            'payer_ref': payer_ref,
        })
        return PaymentSession(redirect_url=f'https://checkout.example/{payment_id}', payment_id=payment_id)

    def complete(self, payment_id, invoice_ref, transaction_id='TRX0001', amount='500'):
        self.executions[payment_id] = PaymentExecution(
            completed=True,
            transaction_id=transaction_id,
            invoice_ref=invoice_ref,
            amount=amount,
            status='Completed',
        )

    def decline(self, payment_id, error_code='2056', error_detail='Invalid Payment State'):
        self.executions[payment_id] = PaymentExecution(
            completed=False,
            status='Failed',
            error_code=error_code,
            error_detail=error_detail,
        )

    def execute_payment(self, payment_id):
        self.execute_calls.append(payment_id)
        return self.executions.get(
            payment_id,
            PaymentExecution(completed=False, error_detail='Payment not found'),
        )


class FailingRenderer:
    def render(self, event, registration):
        raise CertificateError('font cache missing')

    def render_many(self, event, registrations):
        raise CertificateError('font cache missing')


@pytest.fixture
def app():
    """Create and configure a test application instance."""
    app = create_app(TestConfig)
    app.extensions[EMAIL_SERVICE_KEY] = RecordingEmailService()
    app.extensions[GATEWAY_KEY] = FakeGateway()

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Create a test client for the app."""
    return app.test_client()


@pytest.fixture
def emails(app):
    return app.extensions[EMAIL_SERVICE_KEY]


@pytest.fixture
def gateway(app):
    return app.extensions[GATEWAY_KEY]


@pytest.fixture
def failing_renderer(app):
    app.extensions[RENDERER_KEY] = FailingRenderer()
    return app.extensions[RENDERER_KEY]


@pytest.fixture
def make_account(app):
    def _make(email='student@example.com', password='secret123', display_name=None):
        account = Account(email=email, display_name=display_name)
        account.set_password(password)
        db.session.add(account)
        db.session.commit()
        return account
    return _make


@pytest.fixture
def student(make_account):
    return make_account('student@example.com', display_name='Sam Student')


@pytest.fixture
def admin(make_account):
    account = make_account('admin@example.com', display_name='Ada Admin')
    grant_role(account.email, UserRole.ADMIN, added_by='test')
    return account


@pytest.fixture
def super_admin(make_account):
    account = make_account('root@example.com', display_name='Sue Super')
    grant_role(account.email, UserRole.SUPER_ADMIN, added_by='test')
    return account


def identity_for(account):
    return Identity(uid=account.id, email=account.email)


@pytest.fixture
def auth_headers(app):
    def _headers(account):
        token = get_identity_verifier().issue(identity_for(account))
        return {'Authorization': f'Bearer {token}'}
    return _headers


@pytest.fixture
def make_event(app):
    def _make(**overrides):
        values = {
            'title': 'Science Fair',
            'dates': ['2099-10-17'],
            'venue': 'Main Hall',
            'categories': [],
            'category_amounts': {},
            'is_paid': False,
            'amount': None,
        }
        values.update(overrides)
        event = Event(**values)
        db.session.add(event)
        db.session.commit()
        return event
    return _make


@pytest.fixture
def registrant():
    def _data(**overrides):
        data = {
            'name': 'Alice Rahman',
            'email': 'alice@example.com',
            'phone': '01711-000000',
            'school': 'Dhaka College',
        }
        data.update(overrides)
        return data
    return _data
