from functools import wraps
from typing import Optional
from flask import abort
from flask_login import current_user
from .. import db
from ..models import Band, BandMember


def membership_for(band_id: str, user_id: Optional[str] = None) -> Optional[BandMember]:
    user_id = user_id or current_user.id
    return BandMember.query.filter_by(band_id=band_id, user_id=user_id).first()


def require_band_member(band_id: str, admin: bool = False) -> BandMember:
    """Return the caller's active membership of the band.

    Aborts with 404 for an unknown band and 403 for anyone not an active member.
    Only the "admin" role carries extra rights.
    """
    if not current_user.is_authenticated:
        abort(401)
    if db.session.get(Band, band_id) is None:
        abort(404, "band not found")
    mem = membership_for(band_id)
    if mem is None or mem.status != "active":
        abort(403, "not an active member of this band")
    if admin and not mem.is_admin:
        abort(403, "band admin role required")
    return mem


def band_member_required(admin: bool = False):
    """Guard a view taking ``band_id``: 404 for unknown bands, 403 for non-members."""
    def decorator(f):
        @wraps(f)
        def wrapped(*args, **kwargs):
            if not current_user.is_authenticated:
                abort(401)
            require_band_member(kwargs["band_id"], admin=admin)
            return f(*args, **kwargs)
        return wrapped
    return decorator
