from __future__ import annotations
from flask import Blueprint, jsonify, current_app
from flask_login import login_user, logout_user, login_required, current_user
from sqlalchemy.exc import IntegrityError
from .. import db
from ..errors import ConflictError
from ..models import User
from ..utils.payload import json_body, pick, require_fields

auth_bp = Blueprint("auth", __name__)

PROFILE_FIELDS = ("phone", "avatar_url", "timezone")


@auth_bp.route("/register", methods=["POST"])
def register():
    data = json_body()
    require_fields(data, "email", "password", "first_name", "last_name")
    email = str(data["email"]).strip().lower()
    if User.query.filter_by(email=email).first():
        raise ConflictError("email is already registered")
    user = User.create(
        email=email,
        password=data["password"],
        first_name=data["first_name"],
        last_name=data["last_name"],
        **pick(data, PROFILE_FIELDS),
    )
    try:
        db.session.add(user)
        db.session.commit()
    except IntegrityError:
        # lost a race on the unique email
        db.session.rollback()
        current_app.logger.info("Registration raced on email %s", email)
        raise ConflictError("email is already registered")
    login_user(user)
    return jsonify(user.to_dict()), 201


@auth_bp.route("/login", methods=["POST"])
def login():
    data = json_body()
    require_fields(data, "email", "password")
    user = User.query.filter_by(email=str(data["email"]).strip().lower()).first()
    if user is None or not user.check_password(str(data["password"])):
        return jsonify({"error": "invalid email or password"}), 401
    login_user(user, remember=bool(data.get("remember")))
    return jsonify(user.to_dict())


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    logout_user()
    return jsonify({"ok": True})


@auth_bp.route("/me", methods=["GET"])
@login_required
def me():
    return jsonify(current_user.to_dict())
