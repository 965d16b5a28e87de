"""Email delivery CLI commands."""

import click
from flask import current_app
from flask.cli import with_appcontext

from eventdesk.services.jobs import retry_failed_emails


@click.group('emails')
def email_commands():
    """Email delivery commands."""
    pass


@email_commands.command('retry')
@click.option('--limit', default=50, show_default=True, help='Maximum messages to retry')
@click.option('--enqueue', is_flag=True, help='Hand the retry to the RQ worker instead')
@click.option('--hourly', is_flag=True, help='With --enqueue, run one hour from now')
@with_appcontext
def retry(limit, enqueue, hourly):
    """Retry failed emails still under their retry budget."""
    if enqueue:
        from eventdesk.services.queue import QueueService

        queue = QueueService(current_app.config['REDIS_URL'])
        job = queue.schedule_retry_failed_emails(limit) if hourly else queue.enqueue_retry_failed_emails(limit)
        click.echo(f'Queued job {job.id}')
        return
    counts = retry_failed_emails(limit)
    click.echo(click.style(
        f"Retried {counts['retried']} email(s), cancelled {counts['cancelled']}.",
        fg='green',
    ))
