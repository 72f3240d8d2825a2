def test_profile_read_and_update(make_user, make_band, login):
    me = make_user('me@example.com')
    band_id = make_band(me)
    c = login('me@example.com')

    rv = c.get('/api/users/me')
    body = rv.get_json()
    assert body['id'] == me
    assert [(b['id'], b['role'], b['status']) for b in body['bands']] == [(band_id, 'admin', 'active')]

    rv = c.patch('/api/users/me', json={'first_name': 'Alex', 'timezone': 'Europe/Berlin', 'email': 'x@y.z'})
    assert rv.status_code == 200
    body = rv.get_json()
    assert body['first_name'] == 'Alex'
    assert body['timezone'] == 'Europe/Berlin'
    # email is not editable through the profile
    assert body['email'] == 'me@example.com'

    assert c.patch('/api/users/me', json={'timezone': 'Nowhere/Special'}).status_code == 400
    assert c.patch('/api/users/me', json={'password': 'short'}).status_code == 400

    assert c.patch('/api/users/me', json={'password': 'a-longer-one'}).status_code == 200
    c.post('/api/auth/logout')
    assert c.post('/api/auth/login', json={'email': 'me@example.com', 'password': 'a-longer-one'}).status_code == 200


def test_user_lookup_limited_to_bandmates(make_user, make_band, add_member, login):
    me = make_user('me@example.com')
    mate = make_user('mate@example.com')
    stranger = make_user('stranger@example.com')
    band_id = make_band(me)
    add_member(band_id, mate, status='invited')

    c = login('me@example.com')
    assert c.get(f'/api/users/{me}').status_code == 200
    assert c.get(f'/api/users/{mate}').get_json()['email'] == 'mate@example.com'
    assert c.get(f'/api/users/{stranger}').status_code == 403
    assert c.get('/api/users/missing').status_code == 404
