"""CLI commands for EventDesk."""

from .admins import admin_commands
from .emails import email_commands
from .db import db_init_command
from .events import event_commands
from .trash import trash_commands


def register_commands(app):
    """Register all CLI command groups with the Flask app."""
    app.cli.add_command(admin_commands)
    app.cli.add_command(trash_commands)
    app.cli.add_command(email_commands)
    app.cli.add_command(event_commands)
    app.cli.add_command(db_init_command)
