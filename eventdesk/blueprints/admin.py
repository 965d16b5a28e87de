"""Administrator JSON endpoints."""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify, make_response, request

from eventdesk.auth import (
    admin_required,
    current_role,
    identity_from_request,
    super_admin_required,
)
from eventdesk.errors import NotFoundError, ValidationError
from eventdesk.extensions import db
from eventdesk.forms import validate_json
from eventdesk.forms.registration import RegistrationUpdateForm
from eventdesk.models import Administrator, isoformat, utcnow
from eventdesk.services import ledger
from eventdesk.services.accounts import (
    create_administrator_account,
    list_administrators,
    serialize_administrator,
)
from eventdesk.services.audit import log_admin_action, recent_actions
from eventdesk.services.cache_tags import invalidate_registration_views
from eventdesk.services.dashboard import dashboard_stats
from eventdesk.services.events import (
    create_event,
    get_event,
    list_events,
    restore_event,
    serialize_event,
    soft_delete_event,
    update_event,
)
from eventdesk.services.exports import export_filename, export_registrations_csv
from eventdesk.services.notifications import get_pdf_renderer, publish_results, send_deletion_notice
from eventdesk.services.roles import revoke_role
from eventdesk.services.schools import create_school, delete_school, list_schools, rename_school
from eventdesk.services.trash import TrashSweeper, list_trash

from .common import json_body, serialize_registration

admin_bp = Blueprint('admin', __name__)


# Events

@admin_bp.route('/events', methods=['GET'])
@admin_required
def events():
    items = [
        serialize_event(event, registration_count=ledger.count_active(event.id))
        for event in list_events()
    ]
    return jsonify({'items': items})


@admin_bp.route('/events', methods=['POST'])
@admin_required
def create_event_view():
    identity = identity_from_request()
    event = create_event(identity, json_body())
    log_admin_action(identity, 'event_created', 'event', event.id, {'title': event.title})
    return jsonify({'success': True, 'event': serialize_event(event)}), 201


@admin_bp.route('/events/<event_id>', methods=['GET'])
@admin_required
def event_detail(event_id):
    event = get_event(event_id)
    return jsonify({'event': serialize_event(event, registration_count=ledger.count_active(event.id))})


@admin_bp.route('/events/<event_id>', methods=['PATCH', 'PUT'])
@admin_required
def update_event_view(event_id):
    identity = identity_from_request()
    event = update_event(identity, current_role(), event_id, json_body())
    log_admin_action(identity, 'event_updated', 'event', event.id)
    return jsonify({'success': True, 'event': serialize_event(event)})


@admin_bp.route('/events/<event_id>', methods=['DELETE'])
@admin_required
def delete_event_view(event_id):
    identity = identity_from_request()
    event = soft_delete_event(identity, current_role(), event_id)
    log_admin_action(identity, 'event_deleted', 'event', event.id, {'title': event.title})
    return jsonify({'success': True})


@admin_bp.route('/events/<event_id>/restore', methods=['POST'])
@super_admin_required
def restore_event_view(event_id):
    event = restore_event(event_id)
    log_admin_action(identity_from_request(), 'event_restored', 'event', event.id)
    return jsonify({'success': True, 'event': serialize_event(event)})


# Registrations

@admin_bp.route('/events/<event_id>/registrations', methods=['GET'])
@admin_required
def event_registrations(event_id):
    event = get_event(event_id)
    items = [serialize_registration(r) for r in ledger.list_for_event(event.id)]
    return jsonify({'event': serialize_event(event), 'items': items})


@admin_bp.route('/events/<event_id>/registrations/export', methods=['GET'])
@admin_required
def export_registrations(event_id):
    event = get_event(event_id)
    content = export_registrations_csv(event, ledger.list_for_event(event.id))
    response = make_response(content)
    response.headers['Content-Type'] = 'text/csv'
    response.headers['Content-Disposition'] = f'attachment; filename="{export_filename(event, utcnow())}"'
    return response


@admin_bp.route('/events/<event_id>/registrations/pdf', methods=['GET'])
@admin_required
def registrations_pdf(event_id):
    """All active registrations of an event as one PDF, one page each."""
    event = get_event(event_id)
    content = get_pdf_renderer().render_many(event, ledger.list_for_event(event.id))
    response = make_response(content)
    response.headers['Content-Type'] = 'application/pdf'
    response.headers['Content-Disposition'] = f'attachment; filename="registrations-{event.id}.pdf"'
    return response


@admin_bp.route('/events/<event_id>/publish-results', methods=['POST'])
@admin_required
def publish_results_view(event_id):
    identity = identity_from_request()
    event = get_event(event_id)
    result = publish_results(event)
    log_admin_action(identity, 'results_published', 'event', event.id, {
        'sent': result.sent,
        'failed': result.failed,
    })
    return jsonify({
        'success': True,
        'sent': result.sent,
        'failed': result.failed,
        'alreadyNotified': result.already_notified,
        'resultsPublishedAt': isoformat(event.results_published_at),
    })


@admin_bp.route('/registrations/<registration_id>', methods=['PATCH'])
@admin_required
def update_registration(registration_id):
    changes = json_body()
    validate_json(RegistrationUpdateForm, changes)
    registration = ledger.get_registration(registration_id)
    event = get_event(registration.event_id, include_deleted=True)
    ledger.update_fields(registration, event, changes)
    invalidate_registration_views()
    log_admin_action(identity_from_request(), 'registration_updated', 'registration', registration.id)
    return jsonify({'success': True, 'registration': serialize_registration(registration)})


@admin_bp.route('/registrations/<registration_id>', methods=['DELETE'])
@super_admin_required
def delete_registration(registration_id):
    registration = ledger.get_registration(registration_id)
    ledger.soft_delete(registration)
    invalidate_registration_views()
    log_admin_action(identity_from_request(), 'registration_deleted', 'registration', registration.id, {
        'event_id': registration.event_id,
        'email': registration.email,
    })

    notify = request.args.get('notify', 'true').lower() != 'false'
    if notify and registration.event is not None:
        send_deletion_notice(registration.event, registration)
    return jsonify({'success': True})


@admin_bp.route('/registrations/<registration_id>/restore', methods=['POST'])
@super_admin_required
def restore_registration(registration_id):
    registration = ledger.get_registration(registration_id, include_deleted=True)
    ledger.restore(registration)
    invalidate_registration_views()
    log_admin_action(identity_from_request(), 'registration_restored', 'registration', registration.id)
    return jsonify({'success': True, 'registration': serialize_registration(registration)})


# Dashboard and trash

@admin_bp.route('/dashboard', methods=['GET'])
@admin_required
def dashboard():
    return jsonify(dashboard_stats())


@admin_bp.route('/trash', methods=['GET'])
@super_admin_required
def trash():
    return jsonify(list_trash(retention_days=current_app.config['TRASH_RETENTION_DAYS']))


@admin_bp.route('/trash/purge', methods=['POST'])
@super_admin_required
def purge_trash():
    result = TrashSweeper.from_config(current_app.config).purge_expired()
    log_admin_action(identity_from_request(), 'trash_purged', 'trash', metadata=result.to_dict())
    return jsonify(result.to_dict())


# Administrators

@admin_bp.route('/admins', methods=['GET'])
@super_admin_required
def admins():
    return jsonify({'items': [serialize_administrator(a) for a in list_administrators()]})


@admin_bp.route('/admins', methods=['POST'])
@super_admin_required
def create_admin():
    identity = identity_from_request()
    record = create_administrator_account(identity, json_body())
    log_admin_action(identity, 'admin_created', 'administrator', record.id, {'email': record.email})
    return jsonify({'success': True, 'admin': serialize_administrator(record)}), 201


@admin_bp.route('/admins/<admin_id>', methods=['DELETE'])
@super_admin_required
def revoke_admin(admin_id):
    identity = identity_from_request()
    record = db.session.get(Administrator, admin_id)
    if record is None:
        raise NotFoundError("Administrator not found")
    if record.account_id == identity.uid or record.email == ledger.normalize_email(identity.email):
        raise ValidationError("You cannot remove your own administrator access.")
    email = record.email
    revoke_role(email)
    log_admin_action(identity, 'admin_revoked', 'administrator', admin_id, {'email': email})
    return jsonify({'success': True})


@admin_bp.route('/me', methods=['GET'])
@admin_required
def admin_me():
    identity = identity_from_request()
    role = current_role()
    return jsonify({'uid': identity.uid, 'email': identity.email, 'role': role.value})


# Schools

def serialize_school(school) -> dict:
    return {'id': school.id, 'name': school.name, 'createdAt': isoformat(school.created_at)}


@admin_bp.route('/schools', methods=['GET'])
@admin_required
def schools():
    return jsonify({'items': [serialize_school(s) for s in list_schools()]})


@admin_bp.route('/schools', methods=['POST'])
@admin_required
def create_school_view():
    school = create_school(json_body().get('name'))
    log_admin_action(identity_from_request(), 'school_created', 'school', school.id, {'name': school.name})
    return jsonify({'success': True, 'school': serialize_school(school)}), 201


@admin_bp.route('/schools/<school_id>', methods=['PATCH'])
@admin_required
def rename_school_view(school_id):
    school = rename_school(school_id, json_body().get('name'))
    log_admin_action(identity_from_request(), 'school_renamed', 'school', school.id, {'name': school.name})
    return jsonify({'success': True, 'school': serialize_school(school)})


@admin_bp.route('/schools/<school_id>', methods=['DELETE'])
@admin_required
def delete_school_view(school_id):
    delete_school(school_id)
    log_admin_action(identity_from_request(), 'school_deleted', 'school', school_id)
    return jsonify({'success': True})


# Audit

@admin_bp.route('/audit', methods=['GET'])
@super_admin_required
def audit():
    limit = min(request.args.get('limit', 50, type=int), 500)
    return jsonify({'items': [
        {
            'id': entry.id,
            'actorEmail': entry.actor_email,
            'action': entry.action,
            'entityType': entry.entity_type,
            'entityId': entry.entity_id,
            'metadata': entry.meta,
            'createdAt': isoformat(entry.created_at),
        }
        for entry in recent_actions(limit)
    ]})
