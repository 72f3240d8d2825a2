from __future__ import annotations
from flask import Blueprint, jsonify, abort, current_app
from flask_login import login_required, current_user
from .. import db
from ..auth.permissions import band_member_required, membership_for, require_band_member
from ..errors import ValidationError
from ..models import Band, BandMember, User
from ..utils.payload import json_body, pick, require_fields

bands_bp = Blueprint("bands", __name__)

BAND_FIELDS = ("name", "description", "logo_url")


@bands_bp.route("", methods=["GET"])
@login_required
def list_bands():
    rows = (
        db.session.query(Band, BandMember)
        .join(BandMember, BandMember.band_id == Band.id)
        .filter(BandMember.user_id == current_user.id)
        .order_by(Band.name)
        .all()
    )
    return jsonify([band.to_dict() | {"role": mem.role, "status": mem.status} for band, mem in rows])


@bands_bp.route("", methods=["POST"])
@login_required
def create_band():
    data = json_body()
    require_fields(data, "name")
    band = Band(created_by=current_user.id, **pick(data, BAND_FIELDS))
    db.session.add(band)
    # the creator administers the band from the start
    band.add_member(current_user._get_current_object(), role="admin", status="active")
    db.session.commit()
    current_app.logger.info("Band %s created by %s", band.id, current_user.id)
    return jsonify(band.to_dict()), 201


@bands_bp.route("/<band_id>", methods=["GET"])
@login_required
@band_member_required()
def get_band(band_id: str):
    band = db.session.get(Band, band_id)
    data = band.to_dict()
    data["members"] = [m.to_dict() for m in band.members]
    return jsonify(data)


@bands_bp.route("/<band_id>", methods=["PATCH"])
@login_required
@band_member_required(admin=True)
def update_band(band_id: str):
    band = db.session.get(Band, band_id)
    for field, value in pick(json_body(), BAND_FIELDS).items():
        setattr(band, field, value)
    db.session.commit()
    return jsonify(band.to_dict())


@bands_bp.route("/<band_id>", methods=["DELETE"])
@login_required
@band_member_required(admin=True)
def delete_band(band_id: str):
    band = db.session.get(Band, band_id)
    db.session.delete(band)
    db.session.commit()
    current_app.logger.info("Band %s deleted by %s", band_id, current_user.id)
    return "", 204


@bands_bp.route("/<band_id>/members", methods=["GET"])
@login_required
@band_member_required()
def list_members(band_id: str):
    members = BandMember.query.filter_by(band_id=band_id).order_by(BandMember.created_at).all()
    return jsonify([m.to_dict() for m in members])


@bands_bp.route("/<band_id>/members", methods=["POST"])
@login_required
@band_member_required(admin=True)
def add_member(band_id: str):
    band = db.session.get(Band, band_id)
    data = json_body()
    if data.get("user_id"):
        user = db.session.get(User, str(data["user_id"]))
    elif data.get("email"):
        user = User.query.filter_by(email=str(data["email"]).strip().lower()).first()
    else:
        raise ValidationError("user_id or email is required")
    if user is None:
        abort(404, "user not found")
    member = band.add_member(user, role=data.get("role") or "member", instrument=data.get("instrument"))
    db.session.commit()
    current_app.logger.info("User %s invited to band %s", user.id, band_id)
    return jsonify(member.to_dict()), 201


@bands_bp.route("/<band_id>/members/<user_id>", methods=["PATCH"])
@login_required
def update_member(band_id: str, user_id: str):
    Band.query.get_or_404(band_id)
    member = membership_for(band_id, user_id)
    if member is None:
        abort(404, "membership not found")
    data = json_body()
    acting_self = user_id == current_user.id
    # members may accept their own invitation or step back; everything else needs an admin
    self_service = acting_self and set(data) <= {"status"} and (
        data.get("status") == "inactive" or member.status == "invited"
    )
    if not self_service:
        require_band_member(band_id, admin=True)
    if "status" in data:
        member.transition(data["status"])
    if "role" in data:
        member.role = data["role"]
    if "instrument" in data:
        member.instrument = data["instrument"]
    db.session.commit()
    return jsonify(member.to_dict())


@bands_bp.route("/<band_id>/members/<user_id>", methods=["DELETE"])
@login_required
def remove_member(band_id: str, user_id: str):
    band = Band.query.get_or_404(band_id)
    if user_id != current_user.id:
        require_band_member(band_id, admin=True)
    if user_id == band.created_by:
        abort(403, "the band creator cannot be removed")
    member = membership_for(band_id, user_id)
    if member is None:
        abort(404, "membership not found")
    db.session.delete(member)
    db.session.commit()
    return "", 204
