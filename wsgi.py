from __future__ import annotations

# Top-level WSGI entry so `gunicorn wsgi:app` works when repository root is PYTHONPATH.
# The factory in `rehearsal_app.app.create_app` is the authoritative place for application setup.
# Socket.IO needs a server with websocket support (e.g. gunicorn -k gthread or eventlet);
# `rehearsal-server` runs both without extra configuration.
from rehearsal_app.app import create_app


app = create_app()
