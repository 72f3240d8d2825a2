"""Recurrence descriptors and occurrence expansion.

A recurrence root is an Event with ``is_recurring`` set and a JSON descriptor in
``recurrence_pattern``::

    {"frequency": "weekly", "interval": 1, "weekdays": [2, 4], "count": 10}

``weekdays`` uses the same numbering as ``Availability.day_of_week`` (0 = Sunday).
``count`` and ``until`` are alternative end conditions; with neither the rule is
unbounded and expansion is limited by the requested window.

Occurrences are materialized as separate Event rows whose ``parent_event_id``
points at the root and whose ``original_start`` records the generated slot.
Materialization is keyed by that slot, so running it again for the same window
creates nothing new even after a child was moved or cancelled.
"""
from __future__ import annotations
from collections import namedtuple
from datetime import datetime
from typing import TYPE_CHECKING, Any, Iterator, Optional

from dateutil.rrule import DAILY, MONTHLY, WEEKLY, YEARLY, rrule
from dateutil.rrule import FR, MO, SA, SU, TH, TU, WE
from flask import current_app, has_app_context

from . import db
from .errors import ValidationError
from .utils.timeutil import parse_iso8601, to_iso

if TYPE_CHECKING:
    from .models import Event

FREQUENCIES = {"daily": DAILY, "weekly": WEEKLY, "monthly": MONTHLY, "yearly": YEARLY}
# index == day_of_week (0 = Sunday)
WEEKDAYS = (SU, MO, TU, WE, TH, FR, SA)
DEFAULT_MAX_OCCURRENCES = 500

Occurrence = namedtuple("Occurrence", ["start", "end"])


def _positive_int(value: Any, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError(f"recurrence {field} must be a positive integer")
    return value


def normalize_pattern(pattern: Any) -> Optional[dict]:
    """Validate a descriptor and return it in canonical form."""
    if pattern is None:
        return None
    if not isinstance(pattern, dict):
        raise ValidationError("recurrence_pattern must be an object")
    frequency = pattern.get("frequency")
    if frequency not in FREQUENCIES:
        raise ValidationError(f"recurrence frequency must be one of {', '.join(FREQUENCIES)}")
    out: dict[str, Any] = {
        "frequency": frequency,
        "interval": _positive_int(pattern.get("interval", 1), "interval"),
    }

    weekdays = pattern.get("weekdays") or []
    if not isinstance(weekdays, list):
        raise ValidationError("recurrence weekdays must be a list")
    for day in weekdays:
        if isinstance(day, bool) or not isinstance(day, int) or not 0 <= day <= 6:
            raise ValidationError("recurrence weekdays must be integers between 0 and 6")
    if weekdays:
        out["weekdays"] = sorted(set(weekdays))

    count = pattern.get("count")
    until = pattern.get("until")
    if count is not None and until is not None:
        raise ValidationError("recurrence count and until are mutually exclusive")
    if count is not None:
        out["count"] = _positive_int(count, "count")
    if until is not None:
        out["until"] = to_iso(parse_iso8601(until, "recurrence until"))
    return out


def build_rule(pattern: dict, dtstart: datetime) -> rrule:
    p = normalize_pattern(pattern)
    if p is None:
        raise ValidationError("recurrence_pattern is required for a recurring event")
    kwargs: dict[str, Any] = {"dtstart": dtstart, "interval": p["interval"]}
    if "weekdays" in p:
        kwargs["byweekday"] = [WEEKDAYS[d] for d in p["weekdays"]]
    if "count" in p:
        kwargs["count"] = p["count"]
    if "until" in p:
        kwargs["until"] = parse_iso8601(p["until"])
    return rrule(FREQUENCIES[p["frequency"]], **kwargs)


def _max_occurrences() -> int:
    if has_app_context():
        return int(current_app.config.get("MAX_OCCURRENCES", DEFAULT_MAX_OCCURRENCES))
    return DEFAULT_MAX_OCCURRENCES


def expand_occurrences(
    root: "Event", window_start: datetime, window_end: datetime, limit: Optional[int] = None
) -> Iterator[Occurrence]:
    """Lazily yield occurrences of ``root`` starting in ``[window_start, window_end)``.

    A non-recurring event yields itself when it starts inside the window. The
    sequence is always finite: it stops at the window end, at the descriptor's
    own end condition, or after ``limit`` occurrences.
    """
    if window_end <= window_start:
        return
    if not root.is_recurring or not root.recurrence_pattern:
        if window_start <= root.start_time < window_end:
            yield Occurrence(root.start_time, root.end_time)
        return
    if limit is None:
        limit = _max_occurrences()
    duration = root.end_time - root.start_time
    rule = build_rule(root.recurrence_pattern, root.start_time)
    produced = 0
    for start in rule.xafter(window_start, inc=True):
        if start >= window_end or produced >= limit:
            break
        yield Occurrence(start, start + duration)
        produced += 1


def materialize_occurrences(root: "Event", window_start: datetime, window_end: datetime) -> list["Event"]:
    """Create child Event rows for occurrences of ``root`` inside the window.

    The root's own slot and slots that already have a child are skipped, whatever
    the child's current start time or status.
    New rows are added to the session and flushed; committing is up to the caller.
    """
    from .models import Event

    if not root.is_recurring:
        raise ValidationError("event is not a recurrence root")
    existing = {
        slot for (slot,) in db.session.query(Event.original_start).filter(Event.parent_event_id == root.id)
    }
    created = []
    for occ in expand_occurrences(root, window_start, window_end):
        if occ.start == root.start_time or occ.start in existing:
            continue
        child = Event(
            band_id=root.band_id,
            title=root.title,
            description=root.description,
            location_id=root.location_id,
            event_type=root.event_type,
            created_by=root.created_by,
            start_time=occ.start,
            end_time=occ.end,
            parent_event_id=root.id,
            original_start=occ.start,
        )
        db.session.add(child)
        existing.add(occ.start)
        created.append(child)
    if created:
        db.session.flush()
    return created
