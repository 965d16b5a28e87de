"""bKash client and email backends against fake HTTP sessions."""

import pytest
import requests

from eventdesk.extensions import db
from eventdesk.models import EmailMessage, EmailStatus, EmailType
from eventdesk.services.emailer import EmailAttachment, EmailService, parse_sender
from eventdesk.services.payments import BkashGateway, PaymentGatewayError, format_amount


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        return self._payload


class FakeSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.calls.append({'url': url, 'json': json, 'headers': headers})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def make_gateway(session):
    return BkashGateway(
        username='merchant',
        password='pw',
        app_key='key',
        app_secret='secret',
        grant_token_url='https://bkash.test/grant',
        create_payment_url='https://bkash.test/create',
        execute_payment_url='https://bkash.test/execute',
        session=session,
    )


GRANT = FakeResponse({'id_token': 'tok-1', 'expires_in': 3600})


class TestBkashGateway:

    def test_create_session_posts_checkout_request(self):
        session = FakeSession(GRANT, FakeResponse({'paymentID': 'P1', 'bkashURL': 'https://pay/P1'}))

        result = make_gateway(session).create_session(150.5, 'BDT', 'EVT-e1-c1', 'https://cb', payer_ref='01711000000')

        assert (result.payment_id, result.redirect_url) == ('P1', 'https://pay/P1')
        body = session.calls[1]['json']
        assert body['amount'] == '150.50'
        assert body['merchantInvoiceNumber'] == 'EVT-e1-c1'
        assert body['intent'] == 'sale'
        assert session.calls[1]['headers']['Authorization'] == 'tok-1'

    def test_token_is_reused(self):
        session = FakeSession(
            GRANT,
            FakeResponse({'paymentId': 'P1', 'bkashURL': 'https://pay/P1'}),
            FakeResponse({'paymentID': 'P2', 'bkashURL': 'https://pay/P2'}),
        )
        gateway = make_gateway(session)
        gateway.create_session(100, 'BDT', 'EVT-e1-c1', 'https://cb')
        gateway.create_session(100, 'BDT', 'EVT-e1-c2', 'https://cb')
        assert [call['url'] for call in session.calls].count('https://bkash.test/grant') == 1

    def test_execute_completed_and_failed(self):
        session = FakeSession(
            GRANT,
            FakeResponse({'transactionStatus': 'Completed', 'trxID': 'T1', 'merchantInvoiceNumber': 'EVT-e1-c1'}),
            FakeResponse({'statusCode': '2056', 'statusMessage': 'Invalid Payment State'}),
        )
        gateway = make_gateway(session)

        completed = gateway.execute_payment('P1')
        assert completed.completed and completed.transaction_id == 'T1'
        assert completed.invoice_ref == 'EVT-e1-c1'

        failed = gateway.execute_payment('P2')
        assert not failed.completed
        assert (failed.error_code, failed.error_detail) == ('2056', 'Invalid Payment State')

    def test_network_errors_become_gateway_errors(self):
        session = FakeSession(requests.ConnectionError('boom'))
        with pytest.raises(PaymentGatewayError):
            make_gateway(session).grant_token()

    def test_missing_credentials(self):
        gateway = BkashGateway(None, None, None, None, None, None, None, session=FakeSession())
        with pytest.raises(PaymentGatewayError):
            gateway.grant_token()

    @pytest.mark.parametrize('amount,expected', [(500, '500'), (500.0, '500'), (99.9, '99.90')])
    def test_format_amount(self, amount, expected):
        assert format_amount(amount) == expected


class TestEmailService:

    def test_parse_sender(self):
        assert parse_sender('Events Team <events@example.com>', 'Fallback') == ('Events Team', 'events@example.com')
        assert parse_sender('events@example.com', 'Fallback') == ('Fallback', 'events@example.com')

    def test_brevo_payload(self, app):
        session = FakeSession(FakeResponse({'messageId': '<abc@brevo>'}, status_code=201))
        service = EmailService(backend='brevo', brevo_api_key='k', from_email='Team <team@example.com>',
                               session=session)

        result = service.send(
            'Student@Example.com', 'Hello', '<p>Hi</p>',
            EmailAttachment(filename='ticket.pdf', content=b'%PDF-1.4'),
            to_name='Student', email_type=EmailType.REGISTRATION_CONFIRMATION,
        )

        assert result.success and result.message_id == '<abc@brevo>'
        call = session.calls[0]
        assert call['headers']['api-key'] == 'k'
        assert call['json']['to'] == [{'email': 'student@example.com', 'name': 'Student'}]
        assert call['json']['sender'] == {'name': 'Team', 'email': 'team@example.com'}
        assert call['json']['attachment'][0]['name'] == 'ticket.pdf'
        logged = db.session.query(EmailMessage).one()
        assert logged.status == EmailStatus.SENT

    def test_brevo_without_key_fails_softly(self, app):
        service = EmailService(backend='brevo', session=FakeSession())
        result = service.send('student@example.com', 'Hello', '<p>Hi</p>')
        assert not result.success
        assert 'BREVO_API_KEY' in result.error

    def test_invalid_address_is_not_attempted(self, app):
        session = FakeSession()
        service = EmailService(backend='brevo', brevo_api_key='k', session=session)
        result = service.send('not-an-address', 'Hello', '<p>Hi</p>')
        assert not result.success
        assert session.calls == []
