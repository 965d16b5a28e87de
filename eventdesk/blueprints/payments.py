"""Paid registration: gateway session creation and callback reconciliation."""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from eventdesk.auth import identity_from_request
from eventdesk.extensions import limiter
from eventdesk.services.admission import initiate_payment
from eventdesk.services.reconciliation import reconcile

from .common import json_body

payments_bp = Blueprint('payments', __name__)


@payments_bp.route('/create', methods=['POST'])
@limiter.limit("10 per minute")
def create_payment():
    data = json_body()
    initiation = initiate_payment(
        data.get('eventId'),
        data.get('clientGeneratedId'),
        data.get('registrationData'),
        identity=identity_from_request(),
    )
    return jsonify({
        'success': True,
        'bkashURL': initiation.redirect_url,
        'paymentID': initiation.payment_id,
        'amount': initiation.amount,
    })


@payments_bp.route('/execute', methods=['POST'])
def execute_payment():
    data = json_body()
    result = reconcile(
        data.get('paymentID'),
        data.get('registrationData'),
        identity=identity_from_request(),
    )
    return jsonify({
        'success': True,
        'registrationId': result.registration_id,
        'eventId': result.event_id,
        'trxID': result.transaction_id,
        'replayed': result.replayed,
    })


@payments_bp.route('/callback', methods=['GET'])
def callback():
    """Landing point for the gateway redirect; the client then calls /execute."""
    return jsonify({
        'paymentID': request.args.get('paymentID'),
        'status': request.args.get('status'),
    })
