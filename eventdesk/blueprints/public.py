"""Public JSON endpoints: events, free registration, verification, schools."""

from __future__ import annotations

from flask import Blueprint, jsonify

from eventdesk.auth import identity_from_request, login_required_json
from eventdesk.extensions import limiter
from eventdesk.services import ledger
from eventdesk.services.admission import admit
from eventdesk.services.events import get_event, list_public_events, serialize_event
from eventdesk.services.schools import list_school_names

from .common import json_body

public_bp = Blueprint('public', __name__)


def serialize_featured(registration) -> dict:
    return {
        'id': registration.id,
        'name': registration.name,
        'school': registration.school,
        'category': registration.category,
        'position': registration.position,
    }


@public_bp.route('/events', methods=['GET'])
def list_events():
    return jsonify({'items': list_public_events()})


@public_bp.route('/events/<event_id>', methods=['GET'])
def event_detail(event_id):
    event = get_event(event_id)
    payload = serialize_event(event)
    payload['featuredApplicants'] = (
        [serialize_featured(r) for r in ledger.featured_applicants(event.id)]
        if event.results_published_at else []
    )
    return jsonify({'event': payload})


@public_bp.route('/register', methods=['POST'])
@limiter.limit("10 per minute")
@login_required_json
def register():
    data = json_body()
    result = admit(identity_from_request(), data.get('eventId'), data)
    return jsonify({'success': True, 'registrationId': result.registration_id}), 201


@public_bp.route('/verify/<registration_id>', methods=['GET'])
def verify(registration_id):
    registration = ledger.verify_lookup(registration_id)
    if registration is None:
        return jsonify({'verified': False, 'message': 'Registration not found'}), 404

    # Placements stay private until the result email has gone out
    position = registration.position if registration.result_notified_at else None
    return jsonify({
        'verified': True,
        'registrationId': registration.id,
        'name': registration.name,
        'school': registration.school,
        'eventId': registration.event_id,
        'eventTitle': registration.event.title,
        'category': registration.category,
        'position': position,
    })


@public_bp.route('/schools', methods=['GET'])
def schools():
    return jsonify({'schools': list_school_names()})
