import os
from typing import Final

basedir = os.path.abspath(os.path.dirname(__file__))

class Config:
    SECRET_KEY: Final[str] = os.getenv("SECRET_KEY", "change-me-in-production")
    try:
        SQLALCHEMY_DATABASE_URI: Final[str] = os.environ["DATABASE_URL"]
    except KeyError:
        raise RuntimeError("DATABASE_URL environment variable is required (no sqlite fallback)")
    SQLALCHEMY_TRACK_MODIFICATIONS: Final[bool] = False
    SESSION_COOKIE_HTTPONLY: Final[bool] = True
    SESSION_COOKIE_SECURE: Final[bool] = os.getenv("FLASK_ENV") == "production"
    SESSION_COOKIE_SAMESITE: Final[str] = os.getenv("SESSION_COOKIE_SAMESITE", "Lax")
    REMEMBER_COOKIE_HTTPONLY: Final[bool] = True
    REMEMBER_COOKIE_SECURE: Final[bool] = os.getenv("FLASK_ENV") == "production"
    LOG_LEVEL: Final[str] = os.getenv("LOG_LEVEL", "INFO")
    # Browser origin allowed to open the Socket.IO channel
    CLIENT_URL: Final[str] = os.getenv("CLIENT_URL", "http://localhost:3000")
    # threading works everywhere; set to eventlet/gevent when running behind those servers
    SOCKETIO_ASYNC_MODE: Final[str] = os.getenv("SOCKETIO_ASYNC_MODE", "threading")
    HOST: Final[str] = os.getenv("HOST", "0.0.0.0")
    PORT: Final[int] = int(os.getenv("PORT", "5000"))
    # How far ahead the scheduler materializes occurrences of recurring events.
    RECURRENCE_HORIZON_DAYS: Final[int] = int(os.getenv("RECURRENCE_HORIZON_DAYS", "90"))
    # Hard cap on occurrences produced by a single expansion.
    MAX_OCCURRENCES: Final[int] = int(os.getenv("MAX_OCCURRENCES", "500"))
    SCHEDULER_LOG_FILE: Final[str] = os.getenv("SCHEDULER_LOG_FILE", "/tmp/rehearsal-scheduler.log")
    # JSON bodies are small; anything larger is rejected with 413
    MAX_CONTENT_LENGTH: Final[int] = int(os.getenv("MAX_CONTENT_LENGTH", str(10 * 1024)))
