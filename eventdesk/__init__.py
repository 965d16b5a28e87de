"""Application factory for EventDesk."""

from __future__ import annotations

import os

from flask import Flask, request
from sqlalchemy.exc import SQLAlchemyError

from eventdesk.auth import identity_from_request, init_identity
from eventdesk.blueprints.account import account_bp
from eventdesk.blueprints.admin import admin_bp
from eventdesk.blueprints.cron import cron_bp
from eventdesk.blueprints.payments import payments_bp
from eventdesk.blueprints.public import public_bp
from eventdesk.config import Config
from eventdesk.errors import register_error_handlers
from eventdesk.extensions import (
    cache,
    csrf,
    db,
    limiter,
    login_manager,
    migrate,
)
from eventdesk.models import Account
from eventdesk.services.certificates import RENDERER_KEY, CertificateRenderer
from eventdesk.services.db import close_db, ensure_core_tables
from eventdesk.services.emailer import EMAIL_SERVICE_KEY, EmailService
from eventdesk.services.payments import GATEWAY_KEY, BkashGateway
from eventdesk.services.roles import seed_administrators

UNSAFE_METHODS = {'POST', 'PUT', 'PATCH', 'DELETE'}


def init_collaborators(app: Flask) -> None:
    """Outbound services, swappable through ``app.extensions`` in tests."""
    app.extensions.setdefault(GATEWAY_KEY, BkashGateway.from_config(app.config))
    app.extensions.setdefault(EMAIL_SERVICE_KEY, EmailService.from_config(app.config))
    app.extensions.setdefault(RENDERER_KEY, CertificateRenderer(app.config['BASE_URL']))


def create_app(config_class=Config):
    """Create Flask application."""
    app = Flask(__name__, template_folder="templates")
    app.config.from_object(config_class)
    app.logger.setLevel(app.config.get('LOG_LEVEL', 'INFO'))

    # Initialize Flask extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)
    limiter.init_app(app)
    cache.init_app(app)
    init_identity(app)
    init_collaborators(app)
    register_error_handlers(app)

    @login_manager.user_loader
    def load_user(user_id: str):
        return db.session.get(Account, user_id)

    @login_manager.request_loader
    def load_user_from_request(_request):
        identity = identity_from_request()
        if identity is None:
            return None
        return db.session.get(Account, identity.uid)

    @app.before_request
    def protect_cookie_sessions():
        # Only cookie-authenticated writes need a CSRF token
        if not app.config.get('WTF_CSRF_ENABLED', True):
            return
        if request.method in UNSAFE_METHODS and not request.headers.get('Authorization'):
            if request.cookies.get(app.config['AUTH_COOKIE_NAME']):
                csrf.protect()

    # Ensure models are registered for migrations
    import eventdesk.models  # noqa: F401

    # Safety nets for development environments without migrations
    if os.getenv('EVENTDESK_SKIP_BOOTSTRAP', '0') != '1':
        with app.app_context():
            ensure_core_tables()
            if app.config.get('SEED_ADMINS_ON_STARTUP'):
                try:
                    seed_administrators(app.config['SUPER_ADMIN_EMAILS'], app.config['ADMIN_EMAILS'])
                except SQLAlchemyError as exc:
                    db.session.rollback()
                    app.logger.error(f"Administrator seeding failed: {exc}")

    # Register blueprints
    app.register_blueprint(public_bp)
    app.register_blueprint(payments_bp, url_prefix='/payments')
    app.register_blueprint(account_bp, url_prefix='/auth')
    app.register_blueprint(admin_bp, url_prefix='/admin')
    app.register_blueprint(cron_bp, url_prefix='/cron')

    @app.teardown_appcontext
    def teardown_db(exception):
        close_db()

    # Register CLI commands
    from eventdesk.commands import register_commands
    register_commands(app)

    return app
