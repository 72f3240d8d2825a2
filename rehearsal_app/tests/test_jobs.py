from datetime import timedelta

from rehearsal_app.app import db, jobs
from rehearsal_app.app.models import Band, Event, User
from rehearsal_app.app.scheduler import discover_jobs, register_jobs
from rehearsal_app.app.utils.pg_lock import pg_try_advisory_lock
from rehearsal_app.app.utils.timeutil import utcnow


def seed(hours_from_now, **kw):
    owner = User.query.filter_by(email='jobs@example.com').first()
    if owner is None:
        owner = User.create(email='jobs@example.com', password='secret123', first_name='J', last_name='B')
        db.session.add(owner)
        band = Band(name='Cron')
        db.session.add(band)
        db.session.flush()
    band = Band.query.filter_by(name='Cron').first()
    start = (utcnow() + timedelta(hours=hours_from_now)).replace(microsecond=0)
    ev = Event(band_id=band.id, created_by=owner.id, title='Practice', start_time=start,
               end_time=start + timedelta(hours=2), **kw)
    db.session.add(ev)
    db.session.commit()
    return ev


def test_complete_past_events(ctx):
    past = seed(-48)
    ongoing = seed(-1)
    future = seed(24)
    cancelled = seed(-72, status='cancelled')

    assert jobs.complete_past_events() == 1
    db.session.expire_all()
    assert past.status == 'completed'
    assert ongoing.status == 'scheduled'
    assert future.status == 'scheduled'
    assert cancelled.status == 'cancelled'


def test_extend_recurring_events_fills_horizon_once(ctx):
    root = seed(-24 * 7, is_recurring=True, recurrence_pattern={'frequency': 'weekly'})
    seed(1)

    created = jobs.extend_recurring_events(days=21)
    # next three weekly slots after now
    assert created == 3
    assert root.occurrences().count() == 3
    assert all(e.start_time >= utcnow() - timedelta(minutes=1) for e in root.occurrences())
    assert jobs.extend_recurring_events(days=21) == 0


def test_extend_skips_cancelled_roots(ctx):
    seed(1, is_recurring=True, recurrence_pattern={'frequency': 'daily'}, status='cancelled')
    assert jobs.materialize_recurring_events() == 0


def test_advisory_lock_is_granted_off_postgres(ctx):
    with pg_try_advisory_lock('anything') as locked:
        assert locked is True


def test_jobs_are_discovered_and_registered():
    found = {fn.__name__: fn.job_meta for fn in discover_jobs(jobs)}
    assert found == {
        'complete_past_events': {'schedule': 'interval', 'minutes': 15, 'id': 'complete_past_events'},
        'materialize_recurring_events': {'schedule': 'interval', 'hours': 6, 'id': 'materialize_recurring_events'},
    }

    class FakeScheduler:
        def __init__(self):
            self.added = []

        def remove_all_jobs(self):
            self.added.clear()

        def add_job(self, func, trigger, **kw):
            self.added.append((func, trigger, kw))

    sched = FakeScheduler()
    assert register_jobs(sched) == 2
    func, trigger, kw = sched.added[0]
    assert func == 'rehearsal_app.app.scheduler:run_job_in_app_context'
    assert trigger == 'interval'
    assert kw['args'] == ['rehearsal_app.app.jobs', 'complete_past_events']
    assert kw['minutes'] == 15
    assert kw['replace_existing'] is True


def test_recurrence_cli_materialize(app):
    with app.app_context():
        seed(-24, is_recurring=True, recurrence_pattern={'frequency': 'daily'})
    runner = app.test_cli_runner()
    result = runner.invoke(args=['recurrence', 'materialize', '--days', '3'])
    assert result.exit_code == 0, result.output
    assert 'Created 3 occurrences' in result.output
