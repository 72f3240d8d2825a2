from __future__ import annotations

import click
from flask import current_app
from flask.cli import with_appcontext


@click.group("scheduler")
def scheduler_cli():
    """Scheduler related commands."""
    pass


@scheduler_cli.command("run")
@with_appcontext
def run_scheduler():
    """Run the dedicated scheduler process. Use in production as separate container or systemd service."""
    # Import lazily to avoid importing APScheduler at Flask startup when not needed
    from .scheduler import run

    current_app.logger.info("Starting scheduler via CLI")
    run()


@click.group("recurrence")
def recurrence_cli():
    """Recurring event maintenance."""
    pass


@recurrence_cli.command("materialize")
@click.option("--days", type=int, default=None, help="How far ahead to create occurrences (defaults to RECURRENCE_HORIZON_DAYS).")
@with_appcontext
def materialize(days):
    """Create missing occurrences for every scheduled recurring event."""
    from .jobs import extend_recurring_events

    created = extend_recurring_events(days)
    click.echo(f"Created {created} occurrences")
