"""Result publishing, confirmation emails and the failed-email retry job."""

from datetime import timedelta

import pytest

from eventdesk.errors import ValidationError
from eventdesk.extensions import db
from eventdesk.models import EmailMessage, EmailStatus, Registration, utcnow
from eventdesk.services.admission import admit
from eventdesk.services.jobs import retry_failed_emails
from eventdesk.services.notifications import position_label, publish_results

from conftest import identity_for


def placed(event, student, registrant, email, position):
    result = admit(identity_for(student), event.id, registrant(email=email, name=f'Pat {email[0].upper()}'))
    registration = db.session.get(Registration, result.registration_id)
    registration.position = position
    db.session.commit()
    return registration


class TestPositionLabels:

    @pytest.mark.parametrize('position,label', [(1, '1st'), (2, '2nd'), (3, '3rd'), (4, '4th'), (11, '11th')])
    def test_labels(self, position, label):
        assert position_label(position) == label


class TestPublishResults:

    def test_requires_positions(self, app, student, make_event, registrant):
        event = make_event()
        admit(identity_for(student), event.id, registrant())
        with pytest.raises(ValidationError):
            publish_results(event)

    def test_notifies_each_awardee_once(self, app, student, make_event, registrant, emails):
        event = make_event(title='Quiz Night')
        winner = placed(event, student, registrant, 'w@example.com', 1)
        placed(event, student, registrant, 'r@example.com', 2)
        admit(identity_for(student), event.id, registrant(email='u@example.com'))
        emails.sent.clear()

        first = publish_results(event)

        assert (first.sent, first.failed, first.already_notified) == (2, 0, 0)
        subjects = [message['subject'] for message in emails.sent]
        assert subjects[0] == 'Congratulations Pat! You secured 1st place in Quiz Night!'
        assert event.results_published_at is not None
        assert db.session.get(Registration, winner.id).result_notified_at is not None

        second = publish_results(event)
        assert (second.sent, second.already_notified) == (0, 2)

    def test_failed_send_stays_unpublished(self, app, student, make_event, registrant, emails):
        event = make_event()
        registration = placed(event, student, registrant, 'w@example.com', 1)
        emails.fail = True

        result = publish_results(event)

        assert result.failed == 1
        assert db.session.get(Registration, registration.id).result_notified_at is None


class TestRetryFailedEmails:

    def test_resends_failed_and_cancels_orphans(self, app, student, make_event, registrant, emails):
        event = make_event()
        result = admit(identity_for(student), event.id, registrant())
        db.session.add(EmailMessage(
            to_email='alice@example.com',
            subject='Registration Confirmation',
            status=EmailStatus.FAILED,
            registration_id=result.registration_id,
            html_content='<p>hi</p>',
        ))
        db.session.add(EmailMessage(
            to_email='ghost@example.com',
            subject='Registration Confirmation',
            status=EmailStatus.FAILED,
            registration_id='REG-20990101-GHST2',
        ))
        db.session.commit()

        counts = retry_failed_emails()

        assert counts == {'retried': 1, 'cancelled': 1}
        retried = db.session.query(EmailMessage).filter_by(retry_count=1).one()
        assert (retried.to_email, retried.status) == ('alice@example.com', EmailStatus.SENT)
        ghost = db.session.query(EmailMessage).filter_by(to_email='ghost@example.com').one()
        assert ghost.status == EmailStatus.CANCELLED

    def test_skips_exhausted_and_stale_messages(self, app, emails):
        db.session.add(EmailMessage(
            to_email='a@example.com', subject='s', status=EmailStatus.FAILED, retry_count=3,
        ))
        db.session.add(EmailMessage(
            to_email='b@example.com', subject='s', status=EmailStatus.FAILED,
            created_at=utcnow() - timedelta(days=5),
        ))
        db.session.commit()

        assert retry_failed_emails() == {'retried': 0, 'cancelled': 0}
        assert emails.attempts == 0
