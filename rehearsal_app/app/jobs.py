from __future__ import annotations
from datetime import timedelta

from flask import current_app

from . import db
from .models import Event
from .recurrence import materialize_occurrences
from .utils.pg_lock import pg_try_advisory_lock, single_instance
from .utils.timeutil import utcnow


# Job decorator for scheduler auto-discovery
def job(**meta):
    """Decorator to mark a function as a scheduled job.

    Example:
        @job(schedule='interval', minutes=15, id='complete_past_events')
        def complete_past_events():
            ...
    Supported meta keys: schedule (e.g. 'interval'), id, weeks, days, hours, minutes, seconds
    """

    def _decorator(fn):
        setattr(fn, "job_meta", meta)
        return fn

    return _decorator


def extend_recurring_events(days: int | None = None) -> int:
    """Materialize occurrences of every scheduled recurring event up to ``days`` ahead.

    Returns the number of occurrence rows created. Existing occurrences are skipped,
    so running this repeatedly is harmless.
    """
    if days is None:
        days = int(current_app.config.get("RECURRENCE_HORIZON_DAYS", 90))
    now = utcnow()
    window_end = now + timedelta(days=days)
    roots = Event.query.filter(
        Event.is_recurring.is_(True),
        Event.parent_event_id.is_(None),
        Event.status == "scheduled",
    ).all()
    created = 0
    for root in roots:
        try:
            created += len(materialize_occurrences(root, now, window_end))
            db.session.commit()
        except Exception:
            db.session.rollback()
            current_app.logger.exception("Failed to materialize occurrences of event %s", root.id)
    return created


@job(schedule="interval", hours=6, id="materialize_recurring_events")
def materialize_recurring_events():
    with pg_try_advisory_lock("materialize_recurring_events") as locked:
        if not locked:
            current_app.logger.info("materialize_recurring_events: another process holds the lock")
            return
        created = extend_recurring_events()
        current_app.logger.info("materialize_recurring_events: created %s occurrences", created)
        return created


@job(schedule="interval", minutes=15, id="complete_past_events")
@single_instance("complete_past_events")
def complete_past_events():
    """Mark scheduled events whose end time has passed as completed."""
    q = Event.query.filter(Event.status == "scheduled", Event.end_time < utcnow())
    count = q.update({Event.status: "completed"}, synchronize_session=False)
    db.session.commit()
    if count:
        current_app.logger.info("complete_past_events: %s events completed", count)
    else:
        current_app.logger.info("complete_past_events: nothing to complete")
    return count
