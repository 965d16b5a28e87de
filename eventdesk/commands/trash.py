"""Trash retention CLI commands."""

import click
from flask import current_app
from flask.cli import with_appcontext

from eventdesk.services.trash import TrashSweeper, list_trash


@click.group('trash')
def trash_commands():
    """Soft-deleted item commands."""
    pass


@trash_commands.command('list')
@with_appcontext
def list_items():
    """Show trashed events and registrations with days left before purge."""
    trash = list_trash(retention_days=current_app.config['TRASH_RETENTION_DAYS'])
    click.echo(f"Events ({len(trash['events'])}):")
    for item in trash['events']:
        click.echo(f"  {item['id']}  {item['title']}  ({item['daysUntilPurge']} days left)")
    click.echo(f"Registrations ({len(trash['registrations'])}):")
    for item in trash['registrations']:
        click.echo(f"  {item['id']}  {item['email']}  ({item['daysUntilPurge']} days left)")


@trash_commands.command('purge')
@click.option('--retention-days', type=int, default=None, help='Override TRASH_RETENTION_DAYS')
@with_appcontext
def purge(retention_days):
    """Permanently delete items past the retention window."""
    sweeper = TrashSweeper.from_config(current_app.config)
    if retention_days is not None:
        sweeper = TrashSweeper(retention_days=retention_days)
    result = sweeper.purge_expired()
    click.echo(click.style(
        f'Purged {result.events_purged} event(s) and {result.registrations_purged} registration(s).',
        fg='green',
    ))


@trash_commands.command('enqueue')
@click.option('--daily', is_flag=True, help='Schedule for one day from now instead of now')
@with_appcontext
def enqueue(daily):
    """Hand the purge to the RQ worker."""
    from eventdesk.services.queue import QueueService

    queue = QueueService(current_app.config['REDIS_URL'])
    job = queue.schedule_trash_purge() if daily else queue.enqueue_trash_purge()
    click.echo(f'Queued job {job.id}')
