from __future__ import annotations
from datetime import timedelta
from flask import Blueprint, jsonify, request, abort, current_app
from flask_login import login_required, current_user
from .. import db
from ..auth.permissions import require_band_member
from ..errors import ValidationError
from ..models import BandMember, Event, Location
from ..realtime.notifier import EVENT_CHANGED, notify_band
from ..recurrence import expand_occurrences, materialize_occurrences
from ..utils.payload import json_body, pick, require_fields
from ..utils.timeutil import parse_iso8601, to_iso

events_bp = Blueprint("events", __name__)

EVENT_FIELDS = ("title", "description", "event_type", "status", "is_recurring", "recurrence_pattern")


def _horizon() -> timedelta:
    return timedelta(days=int(current_app.config.get("RECURRENCE_HORIZON_DAYS", 90)))


def _require_editor(event: Event) -> None:
    """Creators and band admins may change an event."""
    mem = require_band_member(event.band_id)
    if event.created_by != current_user.id and not mem.is_admin:
        abort(403, "only the event creator or a band admin can change this event")


def _check_location(location_id: str | None, band_id: str) -> None:
    if not location_id:
        return
    location = db.session.get(Location, location_id)
    if location is None:
        abort(404, "location not found")
    if location.band_id and location.band_id != band_id:
        raise ValidationError("location belongs to another band")


def _announce(event: Event, action: str, **extra) -> None:
    notify_band(event.band_id, EVENT_CHANGED, {"bandId": event.band_id, "eventId": event.id, "action": action, **extra})


def _window(default_start, default_end):
    start = parse_iso8601(request.args.get("start"), "start") or default_start
    end = parse_iso8601(request.args.get("end"), "end") or default_end
    if end <= start:
        raise ValidationError("end must be after start")
    return start, end


@events_bp.route("", methods=["GET"])
@login_required
def list_events():
    band_id = request.args.get("band_id")
    q = Event.query
    if band_id:
        require_band_member(band_id)
        q = q.filter(Event.band_id == band_id)
    else:
        active = db.session.query(BandMember.band_id).filter(
            BandMember.user_id == current_user.id, BandMember.status == "active"
        )
        q = q.filter(Event.band_id.in_(active.scalar_subquery()))
    start = parse_iso8601(request.args.get("start"), "start")
    end = parse_iso8601(request.args.get("end"), "end")
    if start and end:
        # overlapping events: start < end and end > start
        q = q.filter(Event.start_time < end, Event.end_time > start)
    event_type = request.args.get("event_type")
    if event_type:
        q = q.filter(Event.event_type == event_type)
    events = q.order_by(Event.start_time).all()
    return jsonify([e.to_dict() for e in events])


@events_bp.route("", methods=["POST"])
@login_required
def create_event():
    data = json_body()
    require_fields(data, "band_id", "title", "start_time", "end_time")
    band_id = str(data["band_id"])
    require_band_member(band_id)
    _check_location(data.get("location_id"), band_id)

    event = Event(
        band_id=band_id,
        created_by=current_user.id,
        location_id=data.get("location_id"),
        start_time=parse_iso8601(data["start_time"], "start_time"),
        end_time=parse_iso8601(data["end_time"], "end_time"),
        **pick(data, EVENT_FIELDS),
    )
    event.check_recurrence()
    db.session.add(event)
    db.session.flush()
    occurrences = []
    if event.is_recurring:
        occurrences = materialize_occurrences(event, event.start_time, event.start_time + _horizon())
    db.session.commit()
    current_app.logger.info("Event %s created in band %s (%d occurrences)", event.id, band_id, len(occurrences))
    _announce(event, "created")
    data = event.to_dict()
    data["occurrences"] = [o.id for o in occurrences]
    return jsonify(data), 201


@events_bp.route("/<event_id>", methods=["GET"])
@login_required
def get_event(event_id: str):
    event = Event.query.get_or_404(event_id)
    require_band_member(event.band_id)
    return jsonify(event.to_dict(include_summary=True))


@events_bp.route("/<event_id>", methods=["PATCH"])
@login_required
def update_event(event_id: str):
    event = Event.query.get_or_404(event_id)
    _require_editor(event)
    data = json_body()
    for field, value in pick(data, EVENT_FIELDS).items():
        setattr(event, field, value)
    if "location_id" in data:
        _check_location(data["location_id"], event.band_id)
        event.location_id = data["location_id"] or None
    if "start_time" in data or "end_time" in data:
        start = parse_iso8601(data.get("start_time"), "start_time") or event.start_time
        end = parse_iso8601(data.get("end_time"), "end_time") or event.end_time
        event.reschedule(start, end)
    event.check_recurrence()
    db.session.commit()
    _announce(event, "updated")
    return jsonify(event.to_dict())


@events_bp.route("/<event_id>", methods=["DELETE"])
@login_required
def delete_event(event_id: str):
    event = Event.query.get_or_404(event_id)
    _require_editor(event)
    if event.parent_event_id:
        # the row keeps its slot so materialization does not bring it back
        event.status = "cancelled"
        db.session.commit()
        _announce(event, "cancelled")
        return jsonify(event.to_dict())
    band_id = event.band_id
    db.session.delete(event)
    db.session.commit()
    notify_band(band_id, EVENT_CHANGED, {"bandId": band_id, "eventId": event_id, "action": "deleted"})
    return "", 204


@events_bp.route("/<event_id>/occurrences", methods=["GET"])
@login_required
def preview_occurrences(event_id: str):
    """Expand the recurrence of an event for a window without saving anything.

    Query params:
      - start: ISO datetime (inclusive), defaults to the event start
      - end: ISO datetime (exclusive), defaults to start + RECURRENCE_HORIZON_DAYS
    """
    event = Event.query.get_or_404(event_id)
    require_band_member(event.band_id)
    start, end = _window(event.start_time, event.start_time + _horizon())
    return jsonify([
        {"start": to_iso(occ.start), "end": to_iso(occ.end)}
        for occ in expand_occurrences(event, start, end)
    ])


@events_bp.route("/<event_id>/occurrences", methods=["POST"])
@login_required
def create_occurrences(event_id: str):
    event = Event.query.get_or_404(event_id)
    _require_editor(event)
    data = json_body()
    start = parse_iso8601(data.get("start"), "start") or event.start_time
    end = parse_iso8601(data.get("end"), "end") or start + _horizon()
    if end <= start:
        raise ValidationError("end must be after start")
    created = materialize_occurrences(event, start, end)
    db.session.commit()
    if created:
        _announce(event, "occurrences", created=[c.id for c in created])
    return jsonify({"created": [c.to_dict() for c in created]}), 201 if created else 200


@events_bp.route("/<event_id>/response", methods=["PUT"])
@login_required
def respond(event_id: str):
    event = Event.query.get_or_404(event_id)
    require_band_member(event.band_id)
    data = json_body()
    require_fields(data, "response_status")
    response = event.respond(current_user._get_current_object(), data["response_status"], data.get("comment"))
    db.session.commit()
    _announce(event, "response", userId=current_user.id)
    return jsonify(response.to_dict())


@events_bp.route("/<event_id>/responses", methods=["GET"])
@login_required
def list_responses(event_id: str):
    event = Event.query.get_or_404(event_id)
    require_band_member(event.band_id)
    return jsonify({
        "responses": [r.to_dict() for r in event.responses],
        "summary": event.response_summary(),
    })
