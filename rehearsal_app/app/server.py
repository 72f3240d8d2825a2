"""Standalone entry point serving the HTTP API and the Socket.IO channel.

    rehearsal-server            # or: python -m rehearsal_app.app.server

The process refuses to start when the database is unreachable and exits
non-zero on any uncaught exception instead of limping on.
"""
from __future__ import annotations

import logging
import os
import sys
import threading

from flask import Flask
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from . import create_app, db, socketio


def check_database(app: Flask) -> None:
    """Exit with status 1 when the configured database does not answer."""
    with app.app_context():
        try:
            db.session.execute(text("SELECT 1"))
        except SQLAlchemyError:
            app.logger.exception("Database connection failed")
            sys.exit(1)
        finally:
            db.session.remove()
    app.logger.info("Database connection established")


def install_crash_handlers(logger: logging.Logger) -> None:
    def _fatal(exc_type, exc_value, exc_tb):
        logger.critical("Uncaught exception, shutting down", exc_info=(exc_type, exc_value, exc_tb))
        os._exit(1)

    def _fatal_thread(args):
        if args.exc_type is SystemExit:
            return
        _fatal(args.exc_type, args.exc_value, args.exc_traceback)

    sys.excepthook = _fatal
    threading.excepthook = _fatal_thread


def main() -> None:
    app = create_app()
    install_crash_handlers(app.logger)
    check_database(app)

    notifier = app.extensions["band_notifier"]
    host, port = app.config.get("HOST", "0.0.0.0"), int(app.config.get("PORT", 5000))
    app.logger.info("Serving on %s:%s (client origin %s)", host, port, app.config.get("CLIENT_URL"))
    try:
        socketio.run(app, host=host, port=port, allow_unsafe_werkzeug=True)
    finally:
        notifier.close()
        app.logger.info("Server stopped")


if __name__ == "__main__":
    main()
