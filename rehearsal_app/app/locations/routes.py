from __future__ import annotations
from flask import Blueprint, jsonify, request, abort, current_app
from flask_login import login_required, current_user
from .. import db
from ..auth.permissions import membership_for, require_band_member
from ..models import BandMember, Location
from ..utils.payload import json_body, pick, require_fields

locations_bp = Blueprint("locations", __name__)

LOCATION_FIELDS = (
    "name", "address", "city", "state", "postal_code", "country",
    "latitude", "longitude", "notes", "contact_info",
)


def _require_owner(location: Location) -> None:
    if location.created_by == current_user.id:
        return
    if location.band_id:
        mem = membership_for(location.band_id)
        if mem is not None and mem.is_active and mem.is_admin:
            return
    abort(403, "only the location creator or a band admin can change this location")


def _visible(location: Location) -> bool:
    if location.band_id is None or location.created_by == current_user.id:
        return True
    mem = membership_for(location.band_id)
    return mem is not None and mem.is_active


@locations_bp.route("", methods=["GET"])
@login_required
def list_locations():
    band_id = request.args.get("band_id")
    q = Location.query
    if band_id:
        require_band_member(band_id)
        q = q.filter(Location.band_id == band_id)
    else:
        active = db.session.query(BandMember.band_id).filter(
            BandMember.user_id == current_user.id, BandMember.status == "active"
        )
        q = q.filter(
            Location.band_id.is_(None)
            | (Location.created_by == current_user.id)
            | Location.band_id.in_(active.scalar_subquery())
        )
    return jsonify([loc.to_dict() for loc in q.order_by(Location.name).all()])


@locations_bp.route("", methods=["POST"])
@login_required
def create_location():
    data = json_body()
    require_fields(data, "name")
    band_id = data.get("band_id")
    if band_id:
        band_id = str(band_id)
        require_band_member(band_id)
    location = Location(band_id=band_id or None, created_by=current_user.id, **pick(data, LOCATION_FIELDS))
    db.session.add(location)
    db.session.commit()
    current_app.logger.info("Location %s created by %s", location.id, current_user.id)
    return jsonify(location.to_dict()), 201


@locations_bp.route("/<location_id>", methods=["GET"])
@login_required
def get_location(location_id: str):
    location = Location.query.get_or_404(location_id)
    if not _visible(location):
        abort(403, "you are not a member of this band")
    return jsonify(location.to_dict())


@locations_bp.route("/<location_id>", methods=["PATCH"])
@login_required
def update_location(location_id: str):
    location = Location.query.get_or_404(location_id)
    _require_owner(location)
    for field, value in pick(json_body(), LOCATION_FIELDS).items():
        setattr(location, field, value)
    db.session.commit()
    return jsonify(location.to_dict())


@locations_bp.route("/<location_id>", methods=["DELETE"])
@login_required
def delete_location(location_id: str):
    location = Location.query.get_or_404(location_id)
    _require_owner(location)
    # events that used this venue keep existing with location_id cleared
    db.session.delete(location)
    db.session.commit()
    return "", 204
