"""Dedicated scheduler runner using APScheduler.

This process runs separately from the web server (e.g. as a separate container or systemd service).
It uses APScheduler with SQLAlchemyJobStore so job definitions are persisted, and each job acquires
an advisory lock in Postgres so it only executes once across processes.
"""
from __future__ import annotations

import importlib
import logging
import time
import types
from logging.handlers import RotatingFileHandler
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.jobstores.sqlalchemy import SQLAlchemyJobStore
from flask import Flask
from . import create_app

logger = logging.getLogger("scheduler")

INTERVAL_KEYS = ("weeks", "days", "hours", "minutes", "seconds")


def setup_logging(app: Flask) -> None:
    path = app.config.get("SCHEDULER_LOG_FILE", "/tmp/rehearsal-scheduler.log")
    handler = RotatingFileHandler(path, maxBytes=10 * 1024 * 1024, backupCount=3)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


def get_scheduler(app: Flask) -> BackgroundScheduler:
    # SQLAlchemyJobStore keeps jobs inspectable across restarts
    jobstores = {
        "default": SQLAlchemyJobStore(url=app.config.get("SQLALCHEMY_DATABASE_URI"))
    }
    return BackgroundScheduler(jobstores=jobstores, timezone="UTC")


def run_job_in_app_context(module_name: str, func_name: str, *a, **kw):
    """Import and run a function inside a fresh Flask app context.

    APScheduler stores this dispatcher by textual reference (module:function), so
    persisted jobs stay importable on restart. The target is looked up by module
    and name and executed inside a newly created application context.
    """
    try:
        app = create_app()
        fn = getattr(importlib.import_module(module_name), func_name)
        with app.app_context():
            return fn(*a, **kw)
    except Exception:
        logger.exception("Failed to run job %s.%s in app context", module_name, func_name)
        raise


def discover_jobs(module) -> list:
    """Return the callables in ``module`` marked with the @job decorator."""
    # plain functions only; current_app is an unbound proxy outside a context
    return [
        obj for _, obj in sorted(vars(module).items())
        if type(obj) is types.FunctionType and getattr(obj, "job_meta", None)
    ]


def register_jobs(scheduler: BackgroundScheduler) -> int:
    """Register every @job function from the jobs module through the dispatcher.

    Returns the number of registered jobs.
    """
    from . import jobs as jobs_module

    # persisted jobs from an older deployment may reference callables that no longer exist
    scheduler.remove_all_jobs()
    logger.info("Cleared existing jobs from jobstore before (re)registering")

    dispatcher_ref = f"{__name__}:run_job_in_app_context"
    registered = 0
    for fn in discover_jobs(jobs_module):
        meta = fn.job_meta
        schedule_type = meta.get("schedule", "interval")
        job_id = meta.get("id", fn.__name__)
        if schedule_type != "interval":
            logger.info("Unsupported schedule type %s for job %s", schedule_type, job_id)
            continue
        interval_kwargs = {k: meta[k] for k in INTERVAL_KEYS if k in meta} or {"minutes": 15}
        scheduler.add_job(
            dispatcher_ref,
            "interval",
            args=[fn.__module__, fn.__name__],
            id=job_id,
            replace_existing=True,
            **interval_kwargs,
        )
        registered += 1
        logger.info("Registered job %s (via dispatcher) meta=%s", job_id, meta)
    if registered == 0:
        logger.info("No decorated jobs found in jobs module to register")
    return registered


def run():
    app = create_app()
    setup_logging(app)

    scheduler = get_scheduler(app)
    register_jobs(scheduler)

    with app.app_context():
        scheduler.start()
        logger.info("Scheduler started")
        try:
            # APScheduler runs in background threads
            while True:
                time.sleep(60)
        except (KeyboardInterrupt, SystemExit):
            logger.info("Shutting down scheduler")
            scheduler.shutdown()
