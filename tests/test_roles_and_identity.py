"""Identity tokens, role resolution and administrator seeding."""

import pytest

from eventdesk.auth.tokens import Identity, TokenIdentityVerifier
from eventdesk.extensions import db
from eventdesk.models import Administrator, UserRole
from eventdesk.services.roles import RoleResolver, grant_role, revoke_role, seed_administrators

from conftest import identity_for


class TestTokenIdentityVerifier:

    def test_issue_and_verify(self):
        verifier = TokenIdentityVerifier('secret', max_age=60)
        token = verifier.issue(Identity(uid='u1', email='a@example.com', role_claim='admin'))
        assert verifier.verify(token) == Identity(uid='u1', email='a@example.com', role_claim='admin')

    @pytest.mark.parametrize('token', [None, '', 'garbage', 'a.b.c'])
    def test_malformed_tokens_are_anonymous(self, token):
        assert TokenIdentityVerifier('secret').verify(token) is None

    def test_foreign_signature_is_anonymous(self):
        token = TokenIdentityVerifier('other-secret').issue(Identity(uid='u1', email='a@example.com'))
        assert TokenIdentityVerifier('secret').verify(token) is None

    def test_expired_token_is_anonymous(self):
        verifier = TokenIdentityVerifier('secret', max_age=-1)
        token = verifier.issue(Identity(uid='u1', email='a@example.com'))
        assert verifier.verify(token) is None


class TestRoleResolver:

    def test_anonymous_has_no_role(self, app):
        assert RoleResolver().resolve(None) is None

    def test_without_record_is_student(self, app, student):
        assert RoleResolver().resolve(identity_for(student)) == UserRole.STUDENT

    def test_record_by_email_or_account(self, app, admin, super_admin):
        resolver = RoleResolver()
        assert resolver.resolve(identity_for(admin)) == UserRole.ADMIN
        assert resolver.resolve(identity_for(super_admin)) == UserRole.SUPER_ADMIN
        assert resolver.resolve(Identity(uid='unknown', email='ADMIN@example.com')) == UserRole.ADMIN

    def test_token_claim_is_not_trusted(self, app, student):
        forged = identity_for(student).with_role('superAdmin')
        assert RoleResolver().resolve(forged) == UserRole.STUDENT

    def test_assign_claim_links_account(self, app, make_account):
        grant_role('late@example.com', UserRole.ADMIN)
        account = make_account('late@example.com')

        claimed = RoleResolver().assign_claim(identity_for(account))

        assert claimed.role_claim == 'admin'
        record = db.session.query(Administrator).filter_by(email='late@example.com').one()
        assert record.account_id == account.id

    def test_revoke_returns_to_student(self, app, admin):
        assert revoke_role('admin@example.com')
        assert RoleResolver().resolve(identity_for(admin)) == UserRole.STUDENT
        assert not revoke_role('admin@example.com')

    def test_student_role_cannot_be_granted(self, app):
        with pytest.raises(ValueError):
            grant_role('x@example.com', UserRole.STUDENT)


class TestSeedAdministrators:

    def test_seeds_and_super_admin_wins(self, app):
        changed = seed_administrators(['Boss@Example.com'], ['boss@example.com', 'helper@example.com'])

        assert changed == 2
        roles = {record.email: record.role for record in db.session.query(Administrator).all()}
        assert roles == {
            'boss@example.com': UserRole.SUPER_ADMIN,
            'helper@example.com': UserRole.ADMIN,
        }

    def test_never_demotes(self, app):
        grant_role('boss@example.com', UserRole.SUPER_ADMIN)
        assert seed_administrators([], ['boss@example.com']) == 0
        record = db.session.query(Administrator).filter_by(email='boss@example.com').one()
        assert record.role == UserRole.SUPER_ADMIN

    def test_is_idempotent(self, app):
        seed_administrators(['boss@example.com'], [])
        assert seed_administrators(['boss@example.com'], []) == 0


class TestRequestIdentity:

    def test_each_request_resolves_its_own_caller(self, client, admin, super_admin, auth_headers):
        assert client.get('/admin/trash', headers=auth_headers(admin)).status_code == 403
        assert client.get('/admin/trash', headers=auth_headers(super_admin)).status_code == 200
        assert client.get('/admin/trash').status_code == 401
