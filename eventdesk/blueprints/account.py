"""Account endpoints: sign-up, token sessions, profile and own registrations."""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from eventdesk.auth import current_role, identity_from_request, login_required_json
from eventdesk.extensions import limiter
from eventdesk.models import UserRole
from eventdesk.services import ledger
from eventdesk.services.accounts import (
    authenticate,
    change_password,
    get_account,
    issue_session,
    serialize_account,
    signup,
    update_profile,
)

from .common import json_body, serialize_registration

account_bp = Blueprint('account', __name__)


def _session_response(account, status=200):
    token, identity = issue_session(account)
    response = jsonify({
        'success': True,
        'token': token,
        'role': identity.role_claim,
        'user': serialize_account(account, UserRole(identity.role_claim)),
    })
    response.status_code = status
    response.set_cookie(
        current_app.config['AUTH_COOKIE_NAME'],
        token,
        max_age=current_app.config['AUTH_TOKEN_MAX_AGE'],
        httponly=True,
        secure=current_app.config['AUTH_COOKIE_SECURE'],
        samesite='Lax',
    )
    return response


@account_bp.route('/signup', methods=['POST'])
@limiter.limit("5 per minute")
def signup_view():
    account = signup(json_body())
    return _session_response(account, status=201)


@account_bp.route('/login', methods=['POST'])
@limiter.limit("5 per minute")
def login():
    account = authenticate(json_body())
    current_app.logger.info(f"Login for {account.email}")
    return _session_response(account)


@account_bp.route('/logout', methods=['POST'])
def logout():
    response = jsonify({'success': True})
    response.delete_cookie(current_app.config['AUTH_COOKIE_NAME'])
    return response


@account_bp.route('/session', methods=['POST'])
@login_required_json
def refresh_session():
    """Re-issue the token with the current role claim."""
    account = get_account(identity_from_request().uid)
    return _session_response(account)


@account_bp.route('/me', methods=['GET'])
@login_required_json
def me():
    account = get_account(identity_from_request().uid)
    return jsonify({'user': serialize_account(account, current_role())})


@account_bp.route('/me/registrations', methods=['GET'])
@login_required_json
def my_registrations():
    identity = identity_from_request()
    items = []
    for registration in ledger.list_for_account(identity.uid, identity.email):
        payload = serialize_registration(registration)
        payload['eventTitle'] = registration.event.title
        if registration.result_notified_at is None:
            payload['position'] = None
        items.append(payload)
    return jsonify({'items': items})


@account_bp.route('/me/profile', methods=['GET', 'PATCH'])
@login_required_json
def profile():
    account = get_account(identity_from_request().uid)
    if request.method == 'PATCH':
        account = update_profile(account, json_body())
    return jsonify({'success': True, 'user': serialize_account(account, current_role())})


@account_bp.route('/password', methods=['POST'])
@login_required_json
def password():
    account = get_account(identity_from_request().uid)
    change_password(account, json_body())
    return jsonify({'success': True})
