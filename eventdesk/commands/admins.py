"""Administrator management CLI commands."""

import click
from flask import current_app
from flask.cli import with_appcontext

from eventdesk.models import UserRole
from eventdesk.services.accounts import list_administrators
from eventdesk.services.roles import grant_role, revoke_role, seed_administrators

ROLE_CHOICES = [UserRole.ADMIN.value, UserRole.SUPER_ADMIN.value]


@click.group('admins')
def admin_commands():
    """Administrator management commands."""
    pass


@admin_commands.command('seed')
@with_appcontext
def seed():
    """Copy SUPER_ADMIN_EMAILS and ADMIN_EMAILS into the administrator table."""
    changed = seed_administrators(
        current_app.config['SUPER_ADMIN_EMAILS'],
        current_app.config['ADMIN_EMAILS'],
    )
    click.echo(click.style(f'Seeded administrators ({changed} changed).', fg='green'))


@admin_commands.command('list')
@with_appcontext
def list_admins():
    """List administrators."""
    records = list_administrators()
    if not records:
        click.echo('No administrators.')
        return
    for record in records:
        linked = 'linked' if record.account_id else 'no account'
        click.echo(f'  {record.email:<40} {record.role.value:<12} {linked}')


@admin_commands.command('grant')
@click.option('--email', required=True, help='Administrator email')
@click.option('--role', type=click.Choice(ROLE_CHOICES), default=UserRole.ADMIN.value, show_default=True)
@click.option('--name', 'display_name', default=None, help='Display name')
@with_appcontext
def grant(email, role, display_name):
    """Grant an administrator role to an email."""
    record = grant_role(email, UserRole(role), added_by='cli', display_name=display_name)
    click.echo(click.style(f'{record.email} is now {record.role.value}.', fg='green'))


@admin_commands.command('revoke')
@click.option('--email', required=True, help='Administrator email')
@with_appcontext
def revoke(email):
    """Return an administrator to the student role."""
    if not revoke_role(email):
        click.echo(click.style(f'Error: No administrator record for "{email}"', fg='red'))
        return
    click.echo(click.style(f'Revoked administrator access for {email}.', fg='green'))
