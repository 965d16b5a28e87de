"""Authentication helpers shared across blueprints."""

from __future__ import annotations

from functools import wraps
from typing import Callable, TypeVar, cast

from flask import current_app, g, request

from eventdesk.auth.tokens import Identity, TokenIdentityVerifier
from eventdesk.errors import AuthorizationError, AuthRequiredError
from eventdesk.models import UserRole

F = TypeVar('F', bound=Callable[..., object])

VERIFIER_KEY = 'eventdesk.identity_verifier'


def init_identity(app) -> TokenIdentityVerifier:
    verifier = TokenIdentityVerifier(
        app.config['SECRET_KEY'],
        max_age=app.config.get('AUTH_TOKEN_MAX_AGE', 3600),
    )
    app.extensions[VERIFIER_KEY] = verifier

    @app.before_request
    def reset_identity_cache():
        # g outlives a request when an app context is already pushed
        g.pop('identity', None)
        g.pop('role', None)

    return verifier


def get_identity_verifier() -> TokenIdentityVerifier:
    return current_app.extensions[VERIFIER_KEY]


def _bearer_token() -> str | None:
    header = request.headers.get('Authorization', '')
    scheme, _, token = header.partition(' ')
    if scheme.lower() == 'bearer' and token.strip():
        return token.strip()
    return None


def identity_from_request() -> Identity | None:
    """Verified identity for this request, or None when anonymous."""
    if 'identity' not in g:
        token = _bearer_token() or request.cookies.get(current_app.config['AUTH_COOKIE_NAME'])
        g.identity = get_identity_verifier().verify(token)
    return g.identity


def current_role() -> UserRole | None:
    """Effective role from the administrator store, not the token claim."""
    if 'role' not in g:
        from eventdesk.services.roles import RoleResolver
        g.role = RoleResolver().resolve(identity_from_request())
    return g.role


def login_required_json(func: F) -> F:
    """Decorator rejecting anonymous callers with a 401."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        if identity_from_request() is None:
            raise AuthRequiredError()
        return func(*args, **kwargs)
    return cast(F, wrapper)


def role_required(*required_roles: UserRole):
    """Decorator factory to require one of the given roles."""
    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args, **kwargs):
            if identity_from_request() is None:
                raise AuthRequiredError()
            if current_role() not in required_roles:
                raise AuthorizationError()
            return func(*args, **kwargs)
        return cast(F, wrapper)
    return decorator


admin_required = role_required(UserRole.ADMIN, UserRole.SUPER_ADMIN)
super_admin_required = role_required(UserRole.SUPER_ADMIN)


__all__ = [
    'Identity',
    'TokenIdentityVerifier',
    'init_identity',
    'get_identity_verifier',
    'identity_from_request',
    'current_role',
    'login_required_json',
    'role_required',
    'admin_required',
    'super_admin_required',
]
