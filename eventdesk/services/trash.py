"""Trash view and the retention sweeper for soft-deleted records."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from eventdesk.extensions import db
from eventdesk.models import Event, Registration, as_utc, utcnow
from eventdesk.services.cache_tags import ADMIN_DASHBOARD, EVENTS, invalidate

DEFAULT_RETENTION_DAYS = 30


@dataclass(frozen=True)
class PurgeResult:
    events_purged: int
    registrations_purged: int

    def to_dict(self) -> dict:
        return {
            'success': True,
            'eventsPurged': self.events_purged,
            'registrationsPurged': self.registrations_purged,
        }


def days_until_purge(deleted_at: datetime, now: datetime | None = None,
                     retention_days: int = DEFAULT_RETENTION_DAYS) -> int:
    """Whole days left before the sweeper removes an item, never negative."""
    now = now or utcnow()
    remaining = as_utc(deleted_at) + timedelta(days=retention_days) - now
    return max(0, math.ceil(remaining.total_seconds() / 86400))


class TrashSweeper:
    """Permanently deletes items soft-deleted longer than the retention window."""

    def __init__(self, retention_days: int = DEFAULT_RETENTION_DAYS):
        self.retention_days = retention_days

    @classmethod
    def from_config(cls, config) -> "TrashSweeper":
        return cls(retention_days=config.get('TRASH_RETENTION_DAYS', DEFAULT_RETENTION_DAYS))

    def cutoff(self, now: datetime | None = None) -> datetime:
        return (now or utcnow()) - timedelta(days=self.retention_days)

    def expired_events(self, now: datetime | None = None) -> list[Event]:
        return (
            db.session.query(Event)
            .filter(Event.deleted_at.isnot(None), Event.deleted_at < self.cutoff(now))
            .all()
        )

    def expired_registrations(self, now: datetime | None = None) -> list[Registration]:
        return (
            db.session.query(Registration)
            .filter(Registration.deleted_at.isnot(None), Registration.deleted_at < self.cutoff(now))
            .all()
        )

    def _purge(self, item, label: str) -> bool:
        item_id = item.id
        try:
            db.session.delete(item)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.error(f"Failed to purge {label} {item_id}: {exc}")
            return False
        return True

    def purge_expired(self, now: datetime | None = None) -> PurgeResult:
        now = now or utcnow()

        registrations_purged = 0
        for registration in self.expired_registrations(now):
            if self._purge(registration, 'registration'):
                registrations_purged += 1

        # Purging an event also removes whatever registrations it still holds
        events_purged = 0
        for event in self.expired_events(now):
            if self._purge(event, 'event'):
                events_purged += 1

        if events_purged or registrations_purged:
            invalidate(EVENTS, ADMIN_DASHBOARD)
        current_app.logger.info(
            f"Trash purge: {events_purged} event(s), {registrations_purged} registration(s)"
        )
        return PurgeResult(events_purged=events_purged, registrations_purged=registrations_purged)


def list_trash(now: datetime | None = None, retention_days: int = DEFAULT_RETENTION_DAYS) -> dict:
    """Soft-deleted events and registrations with their remaining days."""
    now = now or utcnow()
    events = (
        db.session.query(Event)
        .filter(Event.deleted_at.isnot(None))
        .order_by(Event.deleted_at.desc())
        .all()
    )
    registrations = (
        db.session.query(Registration)
        .filter(Registration.deleted_at.isnot(None))
        .order_by(Registration.deleted_at.desc())
        .all()
    )
    return {
        'events': [
            {
                'id': event.id,
                'title': event.title,
                'deletedAt': as_utc(event.deleted_at).isoformat(),
                'daysUntilPurge': days_until_purge(event.deleted_at, now, retention_days),
            }
            for event in events
        ],
        'registrations': [
            {
                'id': registration.id,
                'eventId': registration.event_id,
                'eventTitle': registration.event.title if registration.event else None,
                'name': registration.name,
                'email': registration.email,
                'deletedAt': as_utc(registration.deleted_at).isoformat(),
                'daysUntilPurge': days_until_purge(registration.deleted_at, now, retention_days),
            }
            for registration in registrations
        ],
    }


__all__ = ['PurgeResult', 'TrashSweeper', 'days_until_purge', 'list_trash']
