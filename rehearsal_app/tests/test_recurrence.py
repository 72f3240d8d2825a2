from datetime import datetime, timedelta

import pytest

from rehearsal_app.app import db
from rehearsal_app.app.errors import ValidationError
from rehearsal_app.app.models import Band, Event, User
from rehearsal_app.app.recurrence import expand_occurrences, materialize_occurrences, normalize_pattern

# a Tuesday
START = datetime(2030, 3, 5, 19, 0)
HOURS_2 = timedelta(hours=2)


def root_event(pattern, start=START, **kw):
    return Event(title='Rehearsal', start_time=start, end_time=start + HOURS_2,
                 is_recurring=True, recurrence_pattern=pattern, **kw)


def starts(occurrences):
    return [o.start for o in occurrences]


def test_normalize_pattern_canonical_form():
    p = normalize_pattern({'frequency': 'weekly', 'weekdays': [4, 2, 4]})
    assert p == {'frequency': 'weekly', 'interval': 1, 'weekdays': [2, 4]}

    p = normalize_pattern({'frequency': 'daily', 'until': '2030-03-10T19:00:00+01:00'})
    assert p['until'] == '2030-03-10T18:00:00Z'


@pytest.mark.parametrize('pattern', [
    'weekly',
    {'frequency': 'hourly'},
    {'frequency': 'weekly', 'interval': 0},
    {'frequency': 'weekly', 'interval': True},
    {'frequency': 'weekly', 'weekdays': [7]},
    {'frequency': 'weekly', 'weekdays': 3},
    {'frequency': 'weekly', 'count': 3, 'until': '2030-04-01T00:00:00Z'},
    {'frequency': 'weekly', 'count': -1},
    {'frequency': 'weekly', 'until': 'next tuesday'},
])
def test_normalize_pattern_rejects_bad_descriptors(pattern):
    with pytest.raises(ValidationError):
        normalize_pattern(pattern)


def test_weekly_count(ctx):
    ev = root_event({'frequency': 'weekly', 'count': 4})
    occ = list(expand_occurrences(ev, START, START + timedelta(days=365)))
    assert starts(occ) == [START + timedelta(weeks=i) for i in range(4)]
    assert all(o.end - o.start == HOURS_2 for o in occ)


def test_weekly_on_weekdays_uses_sunday_zero(ctx):
    # 2 = Tuesday, 4 = Thursday
    ev = root_event({'frequency': 'weekly', 'weekdays': [2, 4]})
    occ = list(expand_occurrences(ev, START, START + timedelta(days=14)))
    assert starts(occ) == [
        START,
        START + timedelta(days=2),
        START + timedelta(days=7),
        START + timedelta(days=9),
    ]


def test_window_in_the_middle_of_a_series(ctx):
    ev = root_event({'frequency': 'weekly', 'weekdays': [2, 4]})
    occ = list(expand_occurrences(ev, START + timedelta(days=8), START + timedelta(days=15)))
    assert starts(occ) == [START + timedelta(days=9), START + timedelta(days=14)]


def test_window_end_is_exclusive(ctx):
    ev = root_event({'frequency': 'daily'})
    occ = list(expand_occurrences(ev, START, START + timedelta(days=3)))
    assert len(occ) == 3


def test_until_is_inclusive(ctx):
    ev = root_event({'frequency': 'daily', 'until': (START + timedelta(days=2)).isoformat()})
    occ = list(expand_occurrences(ev, START, START + timedelta(days=30)))
    assert len(occ) == 3


def test_monthly_interval(ctx):
    ev = root_event({'frequency': 'monthly', 'interval': 2, 'count': 3})
    occ = list(expand_occurrences(ev, START, START + timedelta(days=365)))
    assert starts(occ) == [START, datetime(2030, 5, 5, 19, 0), datetime(2030, 7, 5, 19, 0)]


def test_expansion_is_capped(ctx):
    ev = root_event({'frequency': 'daily'})
    window_end = START + timedelta(days=3650)
    assert len(list(expand_occurrences(ev, START, window_end, limit=10))) == 10
    ctx.config['MAX_OCCURRENCES'] = 5
    assert len(list(expand_occurrences(ev, START, window_end))) == 5


def test_empty_or_inverted_window(ctx):
    ev = root_event({'frequency': 'daily'})
    assert list(expand_occurrences(ev, START, START)) == []
    assert list(expand_occurrences(ev, START, START - timedelta(days=1))) == []


def test_non_recurring_event_yields_itself_inside_window(ctx):
    ev = Event(title='Gig', start_time=START, end_time=START + HOURS_2, is_recurring=False)
    assert starts(expand_occurrences(ev, START - timedelta(days=1), START + timedelta(days=1))) == [START]
    assert list(expand_occurrences(ev, START + timedelta(minutes=1), START + timedelta(days=1))) == []


def _persisted_root(pattern, start=START):
    owner = User.create(email='root@example.com', password='secret123', first_name='R', last_name='T')
    db.session.add(owner)
    band = Band(name='Loop', created_by=None)
    db.session.add(band)
    db.session.flush()
    root = root_event(pattern, start=start, band_id=band.id, created_by=owner.id,
                      description='bring earplugs', event_type='rehearsal')
    db.session.add(root)
    db.session.commit()
    return root


def test_materialize_skips_root_and_is_idempotent(ctx):
    root = _persisted_root({'frequency': 'weekly'})
    window_end = START + timedelta(days=28)

    created = materialize_occurrences(root, START, window_end)
    db.session.commit()
    assert [c.start_time for c in created] == [START + timedelta(weeks=i) for i in (1, 2, 3)]
    child = created[0]
    assert child.parent_event_id == root.id
    assert child.band_id == root.band_id
    assert child.description == 'bring earplugs'
    assert child.created_by == root.created_by
    assert child.end_time - child.start_time == HOURS_2
    assert not child.is_recurring

    assert materialize_occurrences(root, START, window_end) == []
    # extending the window only adds the new slots
    more = materialize_occurrences(root, START, window_end + timedelta(days=7))
    db.session.commit()
    assert [c.start_time for c in more] == [START + timedelta(weeks=4)]
    assert root.occurrences().count() == 4


def test_materialize_when_root_does_not_match_weekdays(ctx):
    # root on a Tuesday, rule only on Thursdays
    root = _persisted_root({'frequency': 'weekly', 'weekdays': [4]})
    created = materialize_occurrences(root, START, START + timedelta(days=14))
    db.session.commit()
    assert [c.start_time for c in created] == [START + timedelta(days=2), START + timedelta(days=9)]


def test_materialize_requires_recurring_root(ctx):
    ev = Event(title='Gig', start_time=START, end_time=START + HOURS_2, is_recurring=False)
    with pytest.raises(ValidationError):
        materialize_occurrences(ev, START, START + timedelta(days=7))


def test_moved_occurrence_is_not_recreated(ctx):
    root = _persisted_root({'frequency': 'weekly'})
    window_end = START + timedelta(days=28)
    first = materialize_occurrences(root, START, window_end)[0]
    db.session.commit()

    first.reschedule(first.start_time + timedelta(days=1), first.end_time + timedelta(days=1))
    db.session.commit()
    assert first.original_start == START + timedelta(weeks=1)

    assert materialize_occurrences(root, START, window_end) == []
    assert root.occurrences().count() == 3


def test_cancelled_occurrence_is_not_recreated(ctx):
    root = _persisted_root({'frequency': 'weekly'})
    window_end = START + timedelta(days=28)
    second = materialize_occurrences(root, START, window_end)[1]
    second.status = 'cancelled'
    db.session.commit()

    assert materialize_occurrences(root, START, window_end) == []
    assert [e.status for e in root.occurrences()] == ['scheduled', 'cancelled', 'scheduled']
