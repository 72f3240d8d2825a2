from __future__ import annotations
from flask import Blueprint, jsonify, abort
from flask_login import login_required, current_user
from .. import db
from ..models import BandMember, User
from ..utils.payload import json_body

users_bp = Blueprint("users", __name__)

EDITABLE_FIELDS = ("first_name", "last_name", "phone", "avatar_url", "timezone")


@users_bp.route("/me", methods=["GET"])
@login_required
def get_me():
    data = current_user.to_dict()
    data["bands"] = [m.band.to_dict() | {"role": m.role, "status": m.status} for m in current_user.memberships]
    return jsonify(data)


@users_bp.route("/me", methods=["PATCH"])
@login_required
def update_me():
    data = json_body()
    for field in EDITABLE_FIELDS:
        if field in data:
            setattr(current_user, field, data[field])
    if data.get("password"):
        current_user.set_password(data["password"])
    db.session.commit()
    return jsonify(current_user.to_dict())


def _shares_band_with(user_id: str) -> bool:
    mine = db.session.query(BandMember.band_id).filter(BandMember.user_id == current_user.id)
    return (
        BandMember.query.filter(BandMember.user_id == user_id, BandMember.band_id.in_(mine.scalar_subquery())).first()
        is not None
    )


@users_bp.route("/<user_id>", methods=["GET"])
@login_required
def get_user(user_id: str):
    user = User.query.get_or_404(user_id)
    if user.id != current_user.id and not _shares_band_with(user.id):
        abort(403, "you do not share a band with this user")
    return jsonify(user.to_dict())
