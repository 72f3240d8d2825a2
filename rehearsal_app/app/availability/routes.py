from __future__ import annotations
from flask import Blueprint, jsonify, request, abort
from flask_login import login_required, current_user
from .. import db
from ..auth.permissions import require_band_member
from ..errors import ValidationError
from ..models import Absence, Availability, BandMember
from ..realtime.notifier import AVAILABILITY_CHANGED, notify_band
from ..utils.payload import json_body, require_fields
from ..utils.timeutil import parse_clock, parse_iso8601

availability_bp = Blueprint("availability", __name__)


def _announce(band_id: str, action: str, **ids) -> None:
    notify_band(band_id, AVAILABILITY_CHANGED, {"bandId": band_id, "userId": current_user.id, "action": action, **ids})


def _announce_absence(absence_id: str, band_id: str | None, action: str) -> None:
    if band_id:
        _announce(band_id, action, absenceId=absence_id)
        return
    # a band-less absence concerns every band the user is active in
    for (member_band_id,) in db.session.query(BandMember.band_id).filter_by(user_id=current_user.id, status="active"):
        _announce(member_band_id, action, absenceId=absence_id)


def _own(record):
    if record.user_id != current_user.id:
        abort(403, "you can only change your own availability")
    return record


@availability_bp.route("", methods=["GET"])
@login_required
def list_availability():
    band_id = request.args.get("band_id")
    if not band_id:
        raise ValidationError("band_id is required")
    require_band_member(band_id)
    q = Availability.query.filter_by(band_id=band_id)
    user_id = request.args.get("user_id")
    if user_id:
        q = q.filter_by(user_id=user_id)
    day = request.args.get("day_of_week", type=int)
    if day is not None:
        q = q.filter_by(day_of_week=day)
    rows = q.order_by(Availability.day_of_week, Availability.start_time).all()
    return jsonify([a.to_dict() for a in rows])


@availability_bp.route("", methods=["POST"])
@login_required
def create_availability():
    data = json_body()
    require_fields(data, "band_id", "start_time", "end_time")
    if "day_of_week" not in data:
        raise ValidationError("missing required field(s): day_of_week")
    band_id = str(data["band_id"])
    require_band_member(band_id)
    availability = Availability(
        user_id=current_user.id,
        band_id=band_id,
        day_of_week=data["day_of_week"],
        start_time=parse_clock(data["start_time"], "start_time"),
        end_time=parse_clock(data["end_time"], "end_time"),
        recurring=data.get("recurring", True),
    )
    db.session.add(availability)
    db.session.commit()
    _announce(band_id, "created", availabilityId=availability.id)
    return jsonify(availability.to_dict()), 201


@availability_bp.route("/<availability_id>", methods=["PATCH"])
@login_required
def update_availability(availability_id: str):
    availability = _own(Availability.query.get_or_404(availability_id))
    data = json_body()
    if "day_of_week" in data:
        availability.day_of_week = data["day_of_week"]
    if "start_time" in data:
        availability.start_time = parse_clock(data["start_time"], "start_time")
    if "end_time" in data:
        availability.end_time = parse_clock(data["end_time"], "end_time")
    if "recurring" in data:
        availability.recurring = data["recurring"]
    db.session.commit()
    _announce(availability.band_id, "updated", availabilityId=availability.id)
    return jsonify(availability.to_dict())


@availability_bp.route("/<availability_id>", methods=["DELETE"])
@login_required
def delete_availability(availability_id: str):
    availability = _own(Availability.query.get_or_404(availability_id))
    band_id = availability.band_id
    db.session.delete(availability)
    db.session.commit()
    _announce(band_id, "deleted", availabilityId=availability_id)
    return "", 204


@availability_bp.route("/absences", methods=["GET"])
@login_required
def list_absences():
    band_id = request.args.get("band_id")
    user_id = request.args.get("user_id")
    q = Absence.query
    if band_id:
        require_band_member(band_id)
        members = db.session.query(BandMember.user_id).filter_by(band_id=band_id)
        # band-specific absences plus the members' global ones
        q = q.filter(
            (Absence.band_id == band_id)
            | (Absence.band_id.is_(None) & Absence.user_id.in_(members.scalar_subquery()))
        )
        if user_id:
            q = q.filter(Absence.user_id == user_id)
    else:
        q = q.filter(Absence.user_id == current_user.id)
    start = parse_iso8601(request.args.get("start"), "start")
    end = parse_iso8601(request.args.get("end"), "end")
    if start and end:
        q = q.filter(Absence.start_date <= end, Absence.end_date >= start)
    return jsonify([a.to_dict() for a in q.order_by(Absence.start_date).all()])


@availability_bp.route("/absences", methods=["POST"])
@login_required
def create_absence():
    data = json_body()
    require_fields(data, "start_date", "end_date")
    band_id = data.get("band_id")
    if band_id:
        band_id = str(band_id)
        require_band_member(band_id)
    absence = Absence(
        user_id=current_user.id,
        band_id=band_id or None,
        start_date=parse_iso8601(data["start_date"], "start_date"),
        end_date=parse_iso8601(data["end_date"], "end_date"),
        reason=data.get("reason"),
    )
    db.session.add(absence)
    db.session.commit()
    _announce_absence(absence.id, absence.band_id, "created")
    return jsonify(absence.to_dict()), 201


@availability_bp.route("/absences/<absence_id>", methods=["DELETE"])
@login_required
def delete_absence(absence_id: str):
    absence = _own(Absence.query.get_or_404(absence_id))
    band_id = absence.band_id
    db.session.delete(absence)
    db.session.commit()
    _announce_absence(absence_id, band_id, "deleted")
    return "", 204
