"""Payment callback reconciliation."""

import pytest

from eventdesk.errors import PaymentFailedError, ValidationError
from eventdesk.extensions import db
from eventdesk.models import PaymentStatus, Registration, utcnow
from eventdesk.services.admission import initiate_payment
from eventdesk.services.reconciliation import reconcile

from conftest import identity_for


@pytest.fixture
def paid_event(make_event):
    return make_event(title='Robotics Olympiad', is_paid=True, amount=500)


@pytest.fixture
def completed_payment(app, paid_event, registrant, gateway):
    """Initiate a payment and have the gateway report it completed."""
    data = registrant()
    initiation = initiate_payment(paid_event.id, 'client_1', data)
    gateway.complete(initiation.payment_id, initiation.invoice_ref, transaction_id='TRX42')
    return initiation.payment_id, data


def active_rows(event_id):
    return (
        db.session.query(Registration)
        .filter(Registration.event_id == event_id, Registration.deleted_at.is_(None))
        .all()
    )


class TestReconcile:

    def test_completed_payment_records_registration(self, app, paid_event, completed_payment, emails):
        payment_id, data = completed_payment

        result = reconcile(payment_id, data)

        assert not result.replayed
        assert result.event_id == paid_event.id
        assert result.transaction_id == 'TRX42'
        registration = db.session.get(Registration, result.registration_id)
        assert registration.payment_status == PaymentStatus.COMPLETED
        assert registration.transaction_id == 'TRX42'
        assert registration.amount_paid == 500
        assert emails.attempts == 1

    def test_replay_returns_same_registration(self, app, paid_event, completed_payment, emails):
        payment_id, data = completed_payment

        first = reconcile(payment_id, data)
        second = reconcile(payment_id, data)

        assert second.replayed
        assert second.registration_id == first.registration_id
        assert len(active_rows(paid_event.id)) == 1
        assert emails.attempts == 1

    def test_email_failure_keeps_paid_registration(self, app, paid_event, completed_payment, emails):
        payment_id, data = completed_payment
        emails.fail = True

        result = reconcile(payment_id, data)

        rows = active_rows(paid_event.id)
        assert [row.id for row in rows] == [result.registration_id]
        assert rows[0].payment_status == PaymentStatus.COMPLETED

    def test_pdf_failure_still_sends_email(self, app, paid_event, completed_payment, emails, failing_renderer):
        payment_id, data = completed_payment

        reconcile(payment_id, data)

        assert len(active_rows(paid_event.id)) == 1
        assert emails.sent[0]['attachment'] is None

    def test_declined_payment_writes_nothing(self, app, paid_event, registrant, gateway):
        initiation = initiate_payment(paid_event.id, 'client_1', registrant())
        gateway.decline(initiation.payment_id, error_code='2062', error_detail='The payment has already been completed')

        with pytest.raises(PaymentFailedError) as excinfo:
            reconcile(initiation.payment_id, registrant())

        assert excinfo.value.message == 'The payment has already been completed'
        assert excinfo.value.error_code == '2062'
        assert active_rows(paid_event.id) == []

    def test_missing_inputs_never_reach_gateway(self, app, gateway, registrant):
        with pytest.raises(ValidationError):
            reconcile(None, registrant())
        with pytest.raises(ValidationError):
            reconcile('PAY0001', None)
        assert gateway.execute_calls == []

    def test_foreign_invoice_reference_is_rejected(self, app, gateway, registrant):
        gateway.complete('PAY9999', 'OTHER-abc-client_1')
        with pytest.raises(ValidationError):
            reconcile('PAY9999', registrant())

    def test_captured_payment_for_purged_event_is_still_recorded(self, app, gateway, registrant, emails):
        gateway.complete('PAY9999', 'EVT-purgedevent-client_1', transaction_id='TRX77', amount='750')

        result = reconcile('PAY9999', registrant())

        registration = db.session.get(Registration, result.registration_id)
        assert registration.event_id == 'purgedevent'
        assert registration.payment_status == PaymentStatus.COMPLETED
        assert registration.transaction_id == 'TRX77'
        assert registration.amount_paid == 750
        assert registration.event is None
        assert emails.sent == []

        replay = reconcile('PAY9999', registrant())
        assert replay.replayed
        assert replay.registration_id == result.registration_id

    def test_trashed_event_still_records_captured_payment(self, app, paid_event, completed_payment):
        payment_id, data = completed_payment
        paid_event.deleted_at = utcnow()
        db.session.commit()

        result = reconcile(payment_id, data)

        assert db.session.get(Registration, result.registration_id) is not None

    def test_links_signed_in_account(self, app, student, paid_event, completed_payment):
        payment_id, data = completed_payment
        result = reconcile(payment_id, data, identity=identity_for(student))
        assert db.session.get(Registration, result.registration_id).account_id == student.id
