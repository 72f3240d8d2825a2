"""Postgres advisory lock context manager and decorator.

Uses PostgreSQL advisory locks (pg_try_advisory_lock / pg_advisory_unlock) so that a
named job only runs in one process at a time. Lock keys are 64-bit integers computed
by hashing the job id. Other database dialects have no advisory locks; there the lock
is always granted.
"""
from __future__ import annotations

import hashlib
from contextlib import contextmanager
from functools import wraps
from typing import Generator
from sqlalchemy import text
from .. import db


def _job_key(job_id: str) -> int:
    # stable signed 64-bit integer from the job id
    h = hashlib.sha256(job_id.encode("utf-8")).digest()
    return int.from_bytes(h[:8], byteorder="big", signed=True)


@contextmanager
def pg_try_advisory_lock(job_id: str) -> Generator[bool, None, None]:
    """Try to acquire advisory lock for job_id. Yields True if lock acquired, False otherwise.

    Usage:
        with pg_try_advisory_lock('complete_past_events') as locked:
            if not locked:
                return
            # perform job
    """
    if db.engine.dialect.name != "postgresql":
        yield True
        return

    key = _job_key(job_id)
    with db.engine.connect() as conn:
        locked = bool(conn.execute(text("SELECT pg_try_advisory_lock(:k)"), {"k": key}).scalar())
        try:
            yield locked
        finally:
            if locked:
                conn.execute(text("SELECT pg_advisory_unlock(:k)"), {"k": key})
                conn.commit()


def single_instance(job_id: str):
    """Decorator to ensure the wrapped function runs only when lock is acquired."""
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            with pg_try_advisory_lock(job_id) as locked:
                if not locked:
                    # another process is running this job
                    return None
                return func(*args, **kwargs)

        return wrapper

    return decorator
