"""Trash retention sweeper."""

from datetime import timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from eventdesk.extensions import db
from eventdesk.models import Event, Registration, utcnow
from eventdesk.services.registration_ids import generate_registration_id
from eventdesk.services.trash import TrashSweeper, days_until_purge, list_trash


def add_registration(event, email, deleted_at=None):
    registration = Registration(
        id=generate_registration_id(),
        event_id=event.id,
        name='Rafi',
        email=email,
        phone='017',
        school='Ideal School',
        deleted_at=deleted_at,
    )
    db.session.add(registration)
    db.session.commit()
    return registration.id


class TestTrashSweeper:

    def test_purges_only_past_retention(self, app, make_event):
        now = utcnow()
        event = make_event()
        old_id = add_registration(event, 'old@example.com', deleted_at=now - timedelta(days=31))
        recent_id = add_registration(event, 'recent@example.com', deleted_at=now - timedelta(days=29))
        live_id = add_registration(event, 'live@example.com')

        result = TrashSweeper(retention_days=30).purge_expired(now)

        assert result.registrations_purged == 1
        assert result.events_purged == 0
        assert db.session.get(Registration, old_id) is None
        assert db.session.get(Registration, recent_id) is not None
        assert db.session.get(Registration, live_id) is not None

    def test_purging_event_removes_its_registrations(self, app, make_event):
        now = utcnow()
        event = make_event(deleted_at=now - timedelta(days=40))
        event_id = event.id
        kept_event = make_event(title='Debate', deleted_at=now - timedelta(days=2))
        registration_id = add_registration(event, 'a@example.com')

        result = TrashSweeper().purge_expired(now)

        assert result.to_dict() == {'success': True, 'eventsPurged': 1, 'registrationsPurged': 0}
        db.session.expire_all()
        assert db.session.get(Event, event_id) is None
        assert db.session.get(Registration, registration_id) is None
        assert db.session.get(Event, kept_event.id) is not None

    def test_nothing_to_purge(self, app):
        result = TrashSweeper().purge_expired()
        assert (result.events_purged, result.registrations_purged) == (0, 0)

    def test_retention_from_config(self, app):
        app.config['TRASH_RETENTION_DAYS'] = 7
        assert TrashSweeper.from_config(app.config).retention_days == 7

    def test_failed_purge_does_not_block_the_rest(self, app, make_event, monkeypatch):
        now = utcnow()
        stuck_id = add_registration(make_event(), 'stuck@example.com', deleted_at=now - timedelta(days=35))
        make_event(title='Old Fair', deleted_at=now - timedelta(days=40))
        make_event(title='Older Fair', deleted_at=now - timedelta(days=50))

        original_delete = Session.delete
        attempts = []

        def flaky_delete(session, instance):
            attempts.append(instance)
            if len(attempts) == 1:
                raise SQLAlchemyError('database is locked')
            return original_delete(session, instance)

        monkeypatch.setattr(Session, 'delete', flaky_delete)

        result = TrashSweeper().purge_expired(now)

        assert len(attempts) == 3
        assert result.registrations_purged == 0
        assert result.events_purged == 2
        assert db.session.get(Registration, stuck_id) is not None
        assert db.session.query(Event).filter(Event.deleted_at.isnot(None)).count() == 0


class TestTrashListing:

    def test_days_until_purge(self):
        now = utcnow()
        assert days_until_purge(now - timedelta(days=10), now) == 20
        assert days_until_purge(now - timedelta(days=45), now) == 0

    def test_lists_trashed_items(self, app, make_event):
        now = utcnow()
        event = make_event(title='Quiz Bowl', deleted_at=now - timedelta(days=3))
        add_registration(make_event(), 'gone@example.com', deleted_at=now - timedelta(days=1))
        add_registration(make_event(title='Live'), 'here@example.com')

        trash = list_trash(now)

        assert [item['id'] for item in trash['events']] == [event.id]
        assert trash['events'][0]['daysUntilPurge'] == 27
        assert [item['email'] for item in trash['registrations']] == ['gone@example.com']
