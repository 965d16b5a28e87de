"""Accounts: sign-up, password login, profile and administrator accounts."""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from eventdesk.auth import get_identity_verifier
from eventdesk.auth.tokens import Identity
from eventdesk.errors import AuthRequiredError, DuplicateError, NotFoundError, ValidationError
from eventdesk.extensions import db
from eventdesk.forms import snake_case, validate_json
from eventdesk.forms.account import (
    AdministratorForm,
    LoginForm,
    PasswordChangeForm,
    ProfileForm,
    SignupForm,
)
from eventdesk.models import Account, Administrator, UserRole, utcnow
from eventdesk.services.ledger import normalize_email
from eventdesk.services.roles import RoleResolver, grant_role


def find_account(email: str) -> Account | None:
    return (
        db.session.query(Account)
        .filter(func.lower(Account.email) == normalize_email(email))
        .first()
    )


def get_account(account_id: str) -> Account:
    account = db.session.get(Account, account_id)
    if account is None:
        raise NotFoundError("Account not found")
    return account


def create_account(email: str, password: str, display_name: str | None = None) -> Account:
    email = normalize_email(email)
    if find_account(email) is not None:
        raise DuplicateError("An account with this email already exists.")
    account = Account(email=email, display_name=display_name or None)
    account.set_password(password)
    db.session.add(account)
    db.session.commit()
    current_app.logger.info(f"Account created for {email}")
    return account


def signup(data: dict) -> Account:
    form = validate_json(SignupForm, data)
    return create_account(form.email.data, form.password.data, form.display_name.data)


def authenticate(data: dict) -> Account:
    form = validate_json(LoginForm, data)
    account = find_account(form.email.data)
    if account is None or not account.is_active:
        raise AuthRequiredError("Invalid email or password.")
    if account.is_account_locked():
        db.session.commit()
        raise AuthRequiredError("Too many failed attempts. Try again in a few minutes.")
    if not account.check_password(form.password.data):
        account.record_failed_login()
        db.session.commit()
        current_app.logger.warning(f"Failed login for {account.email}")
        raise AuthRequiredError("Invalid email or password.")

    account.reset_failed_login_attempts()
    account.last_login_at = utcnow()
    db.session.commit()
    return account


def issue_session(account: Account) -> tuple[str, Identity]:
    """Token carrying the account's current role claim."""
    identity = RoleResolver().assign_claim(Identity(uid=account.id, email=account.email))
    return get_identity_verifier().issue(identity), identity


def update_profile(account: Account, data: dict) -> Account:
    form = validate_json(ProfileForm, data)
    submitted = {snake_case(key) for key in (data or {})}
    for field in ('display_name', 'phone', 'school'):
        if field in submitted:
            setattr(account, field, getattr(form, field).data or None)
    db.session.commit()
    return account


def change_password(account: Account, data: dict) -> None:
    form = validate_json(PasswordChangeForm, data)
    if not account.check_password(form.current_password.data):
        raise ValidationError("Current password is incorrect.", field_errors={'current_password': 'Incorrect password.'})
    account.set_password(form.new_password.data)
    db.session.commit()


def create_administrator_account(actor: Identity, data: dict) -> Administrator:
    """Create (or reuse) an account and grant it the admin role."""
    form = validate_json(AdministratorForm, data)
    email = normalize_email(form.email.data)
    existing_admin = db.session.query(Administrator).filter_by(email=email).first()
    if existing_admin is not None:
        raise DuplicateError("This email is already an administrator.")

    account = find_account(email)
    if account is None:
        account = create_account(email, form.password.data, form.display_name.data)
    return grant_role(email, UserRole.ADMIN, added_by=actor.email, display_name=form.display_name.data or account.display_name)


def list_administrators() -> list[Administrator]:
    return db.session.query(Administrator).order_by(Administrator.role.desc(), Administrator.email).all()


def serialize_account(account: Account, role: UserRole | None = None) -> dict:
    return {
        'uid': account.id,
        'email': account.email,
        'displayName': account.display_name,
        'phone': account.phone,
        'school': account.school,
        'role': role.value if role else None,
    }


def serialize_administrator(record: Administrator) -> dict:
    return {
        'id': record.id,
        'uid': record.account_id,
        'email': record.email,
        'displayName': record.display_name,
        'role': record.role.value,
        'addedBy': record.added_by,
    }


__all__ = [
    'find_account',
    'get_account',
    'create_account',
    'signup',
    'authenticate',
    'issue_session',
    'update_profile',
    'change_password',
    'create_administrator_account',
    'list_administrators',
    'serialize_account',
    'serialize_administrator',
]
