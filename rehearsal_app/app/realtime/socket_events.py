from __future__ import annotations
from typing import Any, Optional
from flask import current_app, request
from flask_login import current_user
from .. import socketio
from ..models import BandMember
from .notifier import AVAILABILITY_CHANGED, EVENT_CHANGED, BandNotifier


def _notifier() -> BandNotifier:
    return current_app.extensions["band_notifier"]


def _band_id(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        value = value.get("bandId")
    if value is None or isinstance(value, bool) or value == "":
        return None
    return str(value)


@socketio.on("connect")
def handle_connect(auth=None):
    if not current_user.is_authenticated:
        current_app.logger.info("Rejected unauthenticated socket %s", request.sid)
        return False
    current_app.logger.info("Socket connected: %s (user %s)", request.sid, current_user.id)


@socketio.on("disconnect")
def handle_disconnect(*args):
    left = _notifier().registry.disconnect(request.sid)
    current_app.logger.info("Socket disconnected: %s (left %d bands)", request.sid, len(left))


@socketio.on("join-band")
def handle_join_band(data):
    band_id = _band_id(data)
    if band_id is None:
        return {"ok": False, "error": "band id is required"}
    membership = BandMember.query.filter_by(band_id=band_id, user_id=current_user.id, status="active").first()
    if membership is None:
        current_app.logger.info("Socket %s refused join to band %s", request.sid, band_id)
        return {"ok": False, "error": "not an active member of this band"}
    _notifier().registry.join(request.sid, band_id)
    current_app.logger.info("Socket %s joined band room: %s", request.sid, band_id)
    return {"ok": True}


@socketio.on("leave-band")
def handle_leave_band(data):
    band_id = _band_id(data)
    if band_id is None:
        return {"ok": False, "error": "band id is required"}
    _notifier().registry.leave(request.sid, band_id)
    current_app.logger.info("Socket %s left band room: %s", request.sid, band_id)
    return {"ok": True}


def _rebroadcast(data: Any, event_name: str):
    band_id = _band_id(data)
    if band_id is None:
        return {"ok": False, "error": "bandId is required"}
    notifier = _notifier()
    # only connections that joined the band may speak on its channel
    if not notifier.registry.is_subscribed(request.sid, band_id):
        return {"ok": False, "error": "join the band before publishing"}
    delivered = notifier.publish(band_id, event_name, data, skip=request.sid)
    return {"ok": True, "delivered": delivered}


@socketio.on("availability-update")
def handle_availability_update(data):
    current_app.logger.info("Availability update in band %s by user %s", _band_id(data), current_user.id)
    return _rebroadcast(data, AVAILABILITY_CHANGED)


@socketio.on("event-update")
def handle_event_update(data):
    event_id = data.get("eventId") if isinstance(data, dict) else None
    current_app.logger.info("Event update in band %s: %s", _band_id(data), event_id)
    return _rebroadcast(data, EVENT_CHANGED)
