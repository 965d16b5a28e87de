"""Scheduler-invoked maintenance endpoints, authenticated by a shared secret."""

from __future__ import annotations

import hmac

from flask import Blueprint, current_app, jsonify, request

from eventdesk.extensions import csrf
from eventdesk.services.trash import TrashSweeper

cron_bp = Blueprint('cron', __name__)
csrf.exempt(cron_bp)


def _authorized() -> bool:
    secret = current_app.config.get('CRON_SECRET')
    if not secret:
        return False
    header = request.headers.get('Authorization', '')
    return hmac.compare_digest(header, f"Bearer {secret}")


@cron_bp.route('/purge-trash', methods=['GET', 'POST'])
def purge_trash():
    if not _authorized():
        current_app.logger.warning("Rejected cron purge request")
        return jsonify({'success': False, 'error': 'Unauthorized'}), 401
    result = TrashSweeper.from_config(current_app.config).purge_expired()
    return jsonify(result.to_dict())
