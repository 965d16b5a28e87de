"""Event inspection CLI commands."""

import click
from flask.cli import with_appcontext

from eventdesk.services import ledger
from eventdesk.services.dates import format_event_dates
from eventdesk.services.events import list_events


@click.group('events')
def event_commands():
    """Event commands."""
    pass


@event_commands.command('list')
@click.option('--include-deleted', is_flag=True, help='Include trashed events')
@with_appcontext
def list_all(include_deleted):
    """List events with their active registration counts."""
    events = list_events(include_deleted=include_deleted)
    if not events:
        click.echo('No events.')
        return
    for event in events:
        flags = []
        if event.is_paid:
            flags.append('paid')
        if event.is_deleted:
            flags.append('trashed')
        suffix = f" [{', '.join(flags)}]" if flags else ''
        click.echo(
            f'  {event.id}  {event.title}  {format_event_dates(event.dates, style="short")}'
            f'  ({ledger.count_active(event.id)} registered){suffix}'
        )
