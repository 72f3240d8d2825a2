from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_socketio import SocketIO
from .config import Config

db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
socketio = SocketIO()


def create_app(config=None):
    app = Flask(__name__)
    app.config.from_object(config or Config)

    # Configure logging
    import logging
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    app.logger.setLevel(level)
    # create_app runs once per scheduled job; attach the handler only once per process
    if not any(h.get_name() == "rehearsal" for h in app.logger.handlers):
        handler = logging.StreamHandler()
        handler.set_name("rehearsal")
        formatter = logging.Formatter('[%(asctime)s] %(levelname)s in %(module)s: %(message)s')
        handler.setFormatter(formatter)
        app.logger.addHandler(handler)

    # If using a file-based SQLite URI, ensure the parent directory exists so the DB file can be created.
    db_uri = app.config.get("SQLALCHEMY_DATABASE_URI", "")
    if db_uri and db_uri.startswith("sqlite:") and "///" in db_uri and ":memory:" not in db_uri:
        from pathlib import Path
        Path(db_uri.split("///", 1)[1]).parent.mkdir(parents=True, exist_ok=True)

    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    from .models import User

    @login_manager.user_loader
    def load_user(user_id: str):
        return db.session.get(User, user_id)

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"error": "authentication required"}), 401

    from .errors import register_error_handlers
    register_error_handlers(app)

    # Socket handlers must be imported before init_app so they attach to every server instance
    from .realtime import socket_events  # noqa: F401
    from .realtime.notifier import BandChannelRegistry, BandNotifier

    socketio.init_app(
        app,
        cors_allowed_origins=app.config.get("CLIENT_URL"),
        async_mode=app.config.get("SOCKETIO_ASYNC_MODE", "threading"),
    )

    def emit_to_connection(event_name, payload, connection_id):
        socketio.emit(event_name, payload, to=connection_id)

    app.extensions["band_notifier"] = BandNotifier(BandChannelRegistry(), emit_to_connection)

    @app.after_request
    def set_security_headers(response):
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        return response

    @app.route("/api/health", methods=["GET"])
    def health_check():
        return jsonify({"status": "success", "message": "API is running"})

    from .auth.routes import auth_bp
    from .users.routes import users_bp
    from .bands.routes import bands_bp
    from .events.routes import events_bp
    from .availability.routes import availability_bp
    from .locations.routes import locations_bp

    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(users_bp, url_prefix="/api/users")
    app.register_blueprint(bands_bp, url_prefix="/api/bands")
    app.register_blueprint(events_bp, url_prefix="/api/events")
    app.register_blueprint(availability_bp, url_prefix="/api/availability")
    app.register_blueprint(locations_bp, url_prefix="/api/locations")

    from .cli import scheduler_cli, recurrence_cli

    app.cli.add_command(scheduler_cli)
    app.cli.add_command(recurrence_cli)

    return app
