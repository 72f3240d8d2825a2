from __future__ import annotations
import re
import sqlite3
import uuid
from datetime import datetime, time
from typing import Optional
from dateutil import tz as dateutil_tz
from flask_login import UserMixin
from sqlalchemy import CheckConstraint, Index, UniqueConstraint, func
from sqlalchemy import event as sa_event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import validates
from werkzeug.security import generate_password_hash, check_password_hash
from . import db
from .errors import ConflictError, ValidationError
from .recurrence import normalize_pattern
from .utils.timeutil import to_iso, utcnow

EVENT_TYPES = ("rehearsal", "performance", "meeting", "other")
EVENT_STATUSES = ("scheduled", "cancelled", "completed")
MEMBER_STATUSES = ("active", "invited", "inactive")
RESPONSE_STATUSES = ("yes", "no", "maybe")

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 8


def new_id() -> str:
    return str(uuid.uuid4())


@sa_event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite only honours ON DELETE rules when foreign keys are switched on per connection
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


class User(UserMixin, db.Model):
    __tablename__ = "users"
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    phone = db.Column(db.String(20), nullable=True)
    avatar_url = db.Column(db.String(255), nullable=True)
    timezone = db.Column(db.String(50), nullable=False, default="UTC")
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    memberships = db.relationship(
        "BandMember", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    # bands the user belongs to (many-to-many through band_members, any status)
    bands = db.relationship("Band", secondary="band_members", viewonly=True)
    availabilities = db.relationship(
        "Availability", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    absences = db.relationship("Absence", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
    event_responses = db.relationship(
        "EventResponse", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )

    @classmethod
    def create(cls, email: str, password: str, first_name: str, last_name: str, **fields) -> "User":
        """Build a new user with the password already hashed.

        The returned instance is not added to the session.
        """
        user = cls(email=email, first_name=first_name, last_name=last_name, **fields)
        user.set_password(password)
        return user

    def set_password(self, password: str) -> None:
        if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"password must be at least {MIN_PASSWORD_LENGTH} characters")
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    @property
    def name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @validates("email")
    def _validate_email(self, key, value):
        if not isinstance(value, str) or not EMAIL_RE.match(value.strip()):
            raise ValidationError("email must be a valid email address")
        return value.strip().lower()

    @validates("first_name", "last_name")
    def _validate_names(self, key, value):
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(f"{key} is required")
        return value.strip()

    @validates("timezone")
    def _validate_timezone(self, key, value):
        if not isinstance(value, str) or dateutil_tz.gettz(value) is None:
            raise ValidationError(f"unknown timezone: {value}")
        return value

    def to_dict(self) -> dict:
        # password_hash stays out of the public shape
        return {
            "id": self.id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "phone": self.phone,
            "avatar_url": self.avatar_url,
            "timezone": self.timezone,
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
        }


class Band(db.Model):
    __tablename__ = "bands"
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    logo_url = db.Column(db.String(255), nullable=True)
    # the band outlives its creator
    created_by = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    creator = db.relationship("User", foreign_keys=[created_by])
    members = db.relationship(
        "BandMember", back_populates="band", cascade="all, delete-orphan", passive_deletes=True
    )
    events = db.relationship("Event", back_populates="band", cascade="all, delete-orphan", passive_deletes=True)
    locations = db.relationship("Location", back_populates="band", passive_deletes=True)
    availabilities = db.relationship(
        "Availability", back_populates="band", cascade="all, delete-orphan", passive_deletes=True
    )
    absences = db.relationship("Absence", back_populates="band", cascade="all, delete-orphan", passive_deletes=True)

    @validates("name")
    def _validate_name(self, key, value):
        if not isinstance(value, str) or not value.strip():
            raise ValidationError("band name is required")
        return value.strip()

    def membership_for(self, user_id: str) -> Optional["BandMember"]:
        return BandMember.query.filter_by(band_id=self.id, user_id=user_id).first()

    def add_member(self, user: User, role: str = "member", status: str = "invited", instrument: str | None = None) -> "BandMember":
        """Attach ``user`` to the band; new memberships start out invited."""
        if self.id is not None and self.membership_for(user.id) is not None:
            raise ConflictError("user is already a member of this band")
        member = BandMember(band=self, user=user, role=role, instrument=instrument, status=status)
        db.session.add(member)
        return member

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "logo_url": self.logo_url,
            "created_by": self.created_by,
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
        }


class BandMember(db.Model):
    __tablename__ = "band_members"
    __table_args__ = (UniqueConstraint("band_id", "user_id", name="uq_band_member"),)
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    band_id = db.Column(db.String(36), db.ForeignKey("bands.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role = db.Column(db.String(50), nullable=False, default="member")  # free-form, e.g. member / admin
    instrument = db.Column(db.String(100), nullable=True)
    status = db.Column(db.Enum(*MEMBER_STATUSES, name="band_member_status"), nullable=False, default="invited")
    joined_at = db.Column(db.DateTime, nullable=True)  # set on becoming active
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    band = db.relationship("Band", back_populates="members")
    user = db.relationship("User", back_populates="memberships")

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    @validates("status")
    def _validate_status(self, key, value):
        if value not in MEMBER_STATUSES:
            raise ValidationError(f"status must be one of {', '.join(MEMBER_STATUSES)}")
        if value == "active" and self.status != "active":
            self.joined_at = utcnow()
        return value

    @validates("role")
    def _validate_role(self, key, value):
        if not isinstance(value, str) or not value.strip():
            raise ValidationError("role must be a non-empty string")
        return value.strip()

    def transition(self, status: str) -> None:
        self.status = status

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "band_id": self.band_id,
            "user_id": self.user_id,
            "role": self.role,
            "instrument": self.instrument,
            "status": self.status,
            "joined_at": to_iso(self.joined_at),
            "user": self.user.to_dict() if self.user else None,
        }


class Location(db.Model):
    __tablename__ = "locations"
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(255), nullable=False)
    address = db.Column(db.String(255), nullable=True)
    city = db.Column(db.String(100), nullable=True)
    state = db.Column(db.String(100), nullable=True)
    postal_code = db.Column(db.String(20), nullable=True)
    country = db.Column(db.String(100), nullable=True)
    latitude = db.Column(db.Float, nullable=True)
    longitude = db.Column(db.Float, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    contact_info = db.Column(db.JSON, nullable=True)
    band_id = db.Column(db.String(36), db.ForeignKey("bands.id", ondelete="SET NULL"), nullable=True, index=True)
    created_by = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    band = db.relationship("Band", back_populates="locations")
    creator = db.relationship("User", foreign_keys=[created_by])
    # events keep existing when their venue goes away (location_id SET NULL)
    events = db.relationship("Event", back_populates="location", passive_deletes=True)

    @validates("name")
    def _validate_name(self, key, value):
        if not isinstance(value, str) or not value.strip():
            raise ValidationError("location name is required")
        return value.strip()

    @validates("latitude", "longitude")
    def _validate_coordinates(self, key, value):
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValidationError(f"{key} must be a number")
        bound = 90 if key == "latitude" else 180
        if not -bound <= value <= bound:
            raise ValidationError(f"{key} must be between -{bound} and {bound}")
        return float(value)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "postal_code": self.postal_code,
            "country": self.country,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "notes": self.notes,
            "contact_info": self.contact_info,
            "band_id": self.band_id,
            "created_by": self.created_by,
        }


class Event(db.Model):
    __tablename__ = "events"
    __table_args__ = (
        # one materialized occurrence per generated slot under a given root
        UniqueConstraint("parent_event_id", "original_start", name="uq_event_occurrence"),
        CheckConstraint("end_time > start_time", name="ck_event_time_order"),
    )
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    band_id = db.Column(db.String(36), db.ForeignKey("bands.id", ondelete="CASCADE"), nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    start_time = db.Column(db.DateTime, nullable=False, index=True)
    end_time = db.Column(db.DateTime, nullable=False, index=True)
    location_id = db.Column(db.String(36), db.ForeignKey("locations.id", ondelete="SET NULL"), nullable=True, index=True)
    event_type = db.Column(db.Enum(*EVENT_TYPES, name="event_type"), nullable=False, default="rehearsal")
    is_recurring = db.Column(db.Boolean, nullable=False, default=False)
    recurrence_pattern = db.Column(db.JSON, nullable=True)
    # plain id link; occurrences are looked up by query, never embedded in the root
    parent_event_id = db.Column(db.String(36), db.ForeignKey("events.id", ondelete="SET NULL"), nullable=True, index=True)
    # slot an occurrence was generated for; rescheduling a child leaves it alone
    original_start = db.Column(db.DateTime, nullable=True)
    status = db.Column(db.Enum(*EVENT_STATUSES, name="event_status"), nullable=False, default="scheduled")
    created_by = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    reminder_sent = db.Column(db.Boolean, nullable=False, default=False)
    follow_up_sent = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    band = db.relationship("Band", back_populates="events")
    location = db.relationship("Location", back_populates="events")
    creator = db.relationship("User", foreign_keys=[created_by])
    responses = db.relationship(
        "EventResponse", back_populates="event", cascade="all, delete-orphan", passive_deletes=True
    )

    @validates("title")
    def _validate_title(self, key, value):
        if not isinstance(value, str) or not value.strip():
            raise ValidationError("title is required")
        return value.strip()

    @validates("start_time", "end_time")
    def _validate_times(self, key, value):
        if not isinstance(value, datetime):
            raise ValidationError(f"{key} is required")
        start = value if key == "start_time" else self.start_time
        end = value if key == "end_time" else self.end_time
        if start is not None and end is not None and end <= start:
            raise ValidationError("end_time must be after start_time")
        return value

    @validates("event_type")
    def _validate_event_type(self, key, value):
        if value not in EVENT_TYPES:
            raise ValidationError(f"event_type must be one of {', '.join(EVENT_TYPES)}")
        return value

    @validates("status")
    def _validate_status(self, key, value):
        if value not in EVENT_STATUSES:
            raise ValidationError(f"status must be one of {', '.join(EVENT_STATUSES)}")
        return value

    @validates("is_recurring")
    def _validate_is_recurring(self, key, value):
        if not isinstance(value, bool):
            raise ValidationError("is_recurring must be a boolean")
        return value

    @validates("recurrence_pattern")
    def _validate_recurrence(self, key, value):
        return normalize_pattern(value)

    def check_recurrence(self) -> None:
        """Cross-field rules that cannot be checked one attribute at a time."""
        if self.is_recurring and not self.recurrence_pattern:
            raise ValidationError("recurring events need a recurrence_pattern")
        if self.is_recurring and self.parent_event_id:
            raise ValidationError("an occurrence cannot itself be a recurrence root")

    def reschedule(self, start_time: datetime, end_time: datetime) -> None:
        if end_time <= start_time:
            raise ValidationError("end_time must be after start_time")
        # assign in an order where each intermediate state is still valid
        if self.end_time is not None and start_time >= self.end_time:
            self.end_time = end_time
            self.start_time = start_time
        else:
            self.start_time = start_time
            self.end_time = end_time

    @property
    def duration(self):
        return self.end_time - self.start_time

    def occurrences(self):
        """Query for the materialized children of this recurrence root."""
        return Event.query.filter_by(parent_event_id=self.id).order_by(Event.start_time)

    def response_summary(self) -> dict[str, int]:
        # recomputed on every read; nothing invalidates a cached count
        rows = (
            db.session.query(EventResponse.response_status, func.count(EventResponse.id))
            .filter(EventResponse.event_id == self.id)
            .group_by(EventResponse.response_status)
            .all()
        )
        summary = {status: 0 for status in RESPONSE_STATUSES}
        summary.update({status: count for status, count in rows})
        return summary

    def respond(self, user: User, status: str, comment: str | None = None) -> "EventResponse":
        """Insert or update ``user``'s single response to this event."""
        response = EventResponse.query.filter_by(event_id=self.id, user_id=user.id).first()
        if response is None:
            response = EventResponse(event_id=self.id, user_id=user.id)
            db.session.add(response)
        response.response_status = status
        response.comment = comment
        return response

    def to_dict(self, include_summary: bool = False) -> dict:
        data = {
            "id": self.id,
            "band_id": self.band_id,
            "title": self.title,
            "description": self.description,
            "start_time": to_iso(self.start_time),
            "end_time": to_iso(self.end_time),
            "location_id": self.location_id,
            "event_type": self.event_type,
            "status": self.status,
            "is_recurring": self.is_recurring,
            "recurrence_pattern": self.recurrence_pattern,
            "parent_event_id": self.parent_event_id,
            "original_start": to_iso(self.original_start),
            "created_by": self.created_by,
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
        }
        if include_summary:
            data["responses"] = self.response_summary()
        return data


class EventResponse(db.Model):
    __tablename__ = "event_responses"
    __table_args__ = (UniqueConstraint("event_id", "user_id", name="uq_event_response"),)
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    event_id = db.Column(db.String(36), db.ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    response_status = db.Column(
        db.Enum(*RESPONSE_STATUSES, name="event_response_status"), nullable=False, default="maybe"
    )
    comment = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    event = db.relationship("Event", back_populates="responses")
    user = db.relationship("User", back_populates="event_responses")

    @validates("response_status")
    def _validate_status(self, key, value):
        if value not in RESPONSE_STATUSES:
            raise ValidationError(f"response_status must be one of {', '.join(RESPONSE_STATUSES)}")
        return value

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "event_id": self.event_id,
            "user_id": self.user_id,
            "response_status": self.response_status,
            "comment": self.comment,
            "updated_at": to_iso(self.updated_at),
        }


class Availability(db.Model):
    __tablename__ = "availabilities"
    __table_args__ = (
        CheckConstraint("day_of_week >= 0 AND day_of_week <= 6", name="ck_availability_day_of_week"),
        Index("ix_availabilities_user_band_day", "user_id", "band_id", "day_of_week"),
    )
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    band_id = db.Column(db.String(36), db.ForeignKey("bands.id", ondelete="CASCADE"), nullable=False)
    day_of_week = db.Column(db.Integer, nullable=False)  # 0 = Sunday
    start_time = db.Column(db.Time, nullable=False)
    end_time = db.Column(db.Time, nullable=False)
    recurring = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    user = db.relationship("User", back_populates="availabilities")
    band = db.relationship("Band", back_populates="availabilities")

    @validates("day_of_week")
    def _validate_day(self, key, value):
        if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 6:
            raise ValidationError("day_of_week must be an integer between 0 and 6")
        return value

    @validates("start_time", "end_time")
    def _validate_clock(self, key, value):
        if not isinstance(value, time):
            raise ValidationError(f"{key} is required")
        return value

    @validates("recurring")
    def _validate_recurring(self, key, value):
        if not isinstance(value, bool):
            raise ValidationError("recurring must be a boolean")
        return value

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "band_id": self.band_id,
            "day_of_week": self.day_of_week,
            "start_time": to_iso(self.start_time),
            "end_time": to_iso(self.end_time),
            "recurring": self.recurring,
        }


class Absence(db.Model):
    __tablename__ = "absences"
    __table_args__ = (CheckConstraint("end_date >= start_date", name="ck_absence_date_order"),)
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    # null band means the absence applies to every band of the user
    band_id = db.Column(db.String(36), db.ForeignKey("bands.id", ondelete="CASCADE"), nullable=True, index=True)
    start_date = db.Column(db.DateTime, nullable=False)
    end_date = db.Column(db.DateTime, nullable=False)
    reason = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    user = db.relationship("User", back_populates="absences")
    band = db.relationship("Band", back_populates="absences")

    @validates("start_date", "end_date")
    def _validate_dates(self, key, value):
        if not isinstance(value, datetime):
            raise ValidationError(f"{key} is required")
        start = value if key == "start_date" else self.start_date
        end = value if key == "end_date" else self.end_date
        if start is not None and end is not None and end < start:
            raise ValidationError("end_date must not be before start_date")
        return value

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "band_id": self.band_id,
            "start_date": to_iso(self.start_date),
            "end_date": to_iso(self.end_date),
            "reason": self.reason,
        }
