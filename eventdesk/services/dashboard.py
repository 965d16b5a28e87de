"""Admin dashboard aggregates over live events and registrations."""

from __future__ import annotations

from collections import Counter

from sqlalchemy import func

from eventdesk.extensions import db
from eventdesk.models import PaymentStatus, Registration
from eventdesk.services.cache_tags import ADMIN_DASHBOARD, cached_view
from eventdesk.services.dates import first_event_date, is_event_upcoming
from eventdesk.services.events import list_events
from eventdesk.services.ledger import active_registrations


@cached_view(ADMIN_DASHBOARD)
def dashboard_stats() -> dict:
    events = list_events()
    live_ids = {event.id for event in events}

    counts = Counter()
    paid_count = 0
    payments_collected = 0.0
    for event_id, payment_status, total, collected in (
        db.session.query(
            Registration.event_id,
            Registration.payment_status,
            func.count(Registration.id),
            func.coalesce(func.sum(Registration.amount_paid), 0),
        )
        .filter(Registration.deleted_at.is_(None))
        .group_by(Registration.event_id, Registration.payment_status)
        .all()
    ):
        if event_id not in live_ids:
            continue
        counts[event_id] += total
        if payment_status == PaymentStatus.COMPLETED:
            paid_count += total
            # Amounts as executed, not the event's current price
            payments_collected += float(collected or 0)

    upcoming = [event for event in events if is_event_upcoming(event.dates)]
    upcoming.sort(key=lambda event: first_event_date(event.dates))
    next_event = upcoming[0] if upcoming else None

    recent = []
    if live_ids:
        recent = (
            active_registrations()
            .filter(Registration.event_id.in_(live_ids))
            .order_by(Registration.created_at.desc())
            .limit(5)
            .all()
        )

    return {
        'totalEvents': len(events),
        'upcomingEvents': len(upcoming),
        'totalRegistrations': sum(counts.values()),
        'paidRegistrations': paid_count,
        'totalPaymentsCollected': round(payments_collected, 2),
        'nextUpcomingEvent': {
            'id': next_event.id,
            'title': next_event.title,
            'dates': list(next_event.dates or []),
            'time': next_event.time,
            'venue': next_event.venue or next_event.location,
            'registrationCount': counts.get(next_event.id, 0),
        } if next_event else None,
        'registrationsByEvent': [
            {'eventId': event.id, 'title': event.title, 'count': counts.get(event.id, 0)}
            for event in events
        ],
        'recentRegistrations': [
            {
                'id': registration.id,
                'eventId': registration.event_id,
                'name': registration.name,
                'school': registration.school,
            }
            for registration in recent
        ],
    }


__all__ = ['dashboard_stats']
