"""Database bootstrap command."""

import click
from flask.cli import with_appcontext

from eventdesk.services.db import ensure_core_tables


@click.command('db-init')
@with_appcontext
def db_init_command():
    """Create the core tables on a fresh database."""
    if ensure_core_tables():
        click.echo(click.style('Created core tables.', fg='green'))
    else:
        click.echo('Core tables already present.')
