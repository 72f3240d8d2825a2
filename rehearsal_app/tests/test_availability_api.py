def setup_band(make_user, make_band, add_member):
    owner = make_user('owner@example.com')
    member = make_user('member@example.com')
    band_id = make_band(owner)
    add_member(band_id, member)
    return owner, member, band_id


def slot(band_id, day=2, start='18:00', end='22:00'):
    return {'band_id': band_id, 'day_of_week': day, 'start_time': start, 'end_time': end}


def test_availability_crud(make_user, make_band, add_member, login):
    owner, member, band_id = setup_band(make_user, make_band, add_member)
    m = login('member@example.com')

    rv = m.post('/api/availability', json=slot(band_id, day=0))
    assert rv.status_code == 201
    a = rv.get_json()
    assert a['day_of_week'] == 0
    assert a['start_time'] == '18:00:00'
    assert a['recurring'] is True

    m.post('/api/availability', json=slot(band_id, day=5, start='10:00', end='12:30'))

    rv = login('owner@example.com').get('/api/availability', query_string={'band_id': band_id})
    assert [row['day_of_week'] for row in rv.get_json()] == [0, 5]

    rv = m.get('/api/availability', query_string={'band_id': band_id, 'day_of_week': 5})
    assert [row['end_time'] for row in rv.get_json()] == ['12:30:00']

    rv = m.patch(f"/api/availability/{a['id']}", json={'end_time': '23:00', 'recurring': False})
    assert rv.get_json()['end_time'] == '23:00:00'
    assert rv.get_json()['recurring'] is False

    assert m.delete(f"/api/availability/{a['id']}").status_code == 204
    rv = m.get('/api/availability', query_string={'band_id': band_id, 'user_id': member})
    assert len(rv.get_json()) == 1


def test_availability_validation_and_ownership(make_user, make_band, add_member, login):
    _, _, band_id = setup_band(make_user, make_band, add_member)
    make_user('stranger@example.com')
    m = login('member@example.com')

    assert m.post('/api/availability', json=slot(band_id, day=7)).status_code == 400
    assert m.post('/api/availability', json=slot(band_id, start='25:00')).status_code == 400
    body = slot(band_id)
    del body['day_of_week']
    assert m.post('/api/availability', json=body).status_code == 400
    assert m.get('/api/availability').status_code == 400

    assert login('stranger@example.com').post('/api/availability', json=slot(band_id)).status_code == 403

    a_id = m.post('/api/availability', json=slot(band_id)).get_json()['id']
    owner = login('owner@example.com')
    assert owner.patch(f'/api/availability/{a_id}', json={'day_of_week': 1}).status_code == 403
    assert owner.delete(f'/api/availability/{a_id}').status_code == 403
    assert m.patch(f'/api/availability/{a_id}', json={'start_time': ''}).status_code == 400


def test_absences(make_user, make_band, add_member, login):
    owner, member, band_id = setup_band(make_user, make_band, add_member)
    m = login('member@example.com')

    rv = m.post('/api/availability/absences', json={
        'band_id': band_id, 'start_date': '2030-07-01', 'end_date': '2030-07-14', 'reason': 'tour with other band',
    })
    assert rv.status_code == 201
    band_absence = rv.get_json()
    assert band_absence['start_date'] == '2030-07-01T00:00:00Z'

    rv = m.post('/api/availability/absences', json={'start_date': '2030-08-01', 'end_date': '2030-08-01'})
    assert rv.status_code == 201
    global_absence = rv.get_json()
    assert global_absence['band_id'] is None

    rv = m.post('/api/availability/absences', json={'start_date': '2030-08-02', 'end_date': '2030-08-01'})
    assert rv.status_code == 400

    # band view includes the member's global absences
    rv = login('owner@example.com').get('/api/availability/absences', query_string={'band_id': band_id})
    assert {a['id'] for a in rv.get_json()} == {band_absence['id'], global_absence['id']}

    rv = m.get('/api/availability/absences', query_string={'start': '2030-07-20', 'end': '2030-09-01'})
    assert [a['id'] for a in rv.get_json()] == [global_absence['id']]

    assert login('owner@example.com').delete(
        f"/api/availability/absences/{band_absence['id']}"
    ).status_code == 403
    assert m.delete(f"/api/availability/absences/{band_absence['id']}").status_code == 204
    assert [a['id'] for a in m.get('/api/availability/absences').get_json()] == [global_absence['id']]


def test_recurring_flag_must_be_boolean(make_user, make_band, add_member, login):
    _, _, band_id = setup_band(make_user, make_band, add_member)
    m = login('member@example.com')
    rv = m.post('/api/availability', json=dict(slot(band_id), recurring='false'))
    assert rv.status_code == 400

    a = m.post('/api/availability', json=slot(band_id)).get_json()
    assert m.patch(f"/api/availability/{a['id']}", json={'recurring': 0}).status_code == 400


def test_unknown_band_is_404_not_403(make_user, login):
    make_user('solo@example.com')
    c = login('solo@example.com')
    rv = c.post('/api/availability', json=slot('no-such-band'))
    assert rv.status_code == 404
    assert rv.get_json()['error'] == 'band not found'
    assert c.get('/api/availability', query_string={'band_id': 'no-such-band'}).status_code == 404
