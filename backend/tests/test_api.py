def create(client, name='Alice'):
    res = client.post('/api/games/create', json={'name': name})
    assert res.status_code == 201
    return res.get_json()


def test_health(client):
    res = client.get('/health')
    assert res.status_code == 200
    body = res.get_json()
    assert body['status'] == 'ok'
    assert body['games'] == 0


def test_create_game(client):
    data = create(client)
    assert len(data['game_code']) == 6
    assert data['game']['status'] == 'waiting'
    assert data['game']['players'][0]['id'] == data['player_id']


def test_create_game_requires_name(client):
    res = client.post('/api/games/create', json={})
    assert res.status_code == 400


def test_join_and_state(client):
    code = create(client)['game_code']
    res = client.post('/api/games/join', json={'game_code': code, 'name': 'Bob'})
    assert res.status_code == 201
    assert res.get_json()['is_reconnection'] is False

    res = client.post('/api/games/join', json={'game_code': code, 'name': 'bob'})
    assert res.status_code == 200
    assert res.get_json()['is_reconnection'] is True

    game = client.get(f'/api/games/{code}/state').get_json()
    assert game['code'] == code
    assert [p['name'] for p in game['players']] == ['Alice', 'Bob']


def test_unknown_game_is_404(client):
    assert client.get('/api/games/999999/state').status_code == 404
    res = client.post('/api/games/join', json={'game_code': '999999', 'name': 'Bob'})
    assert res.status_code == 404
    assert 'error' in res.get_json()


def test_full_game_flow(client):
    created = create(client)
    code, alice = created['game_code'], created['player_id']
    bob = client.post('/api/games/join', json={'game_code': code, 'name': 'Bob'}).get_json()['player_id']

    res = client.post(f'/api/games/{code}/start', json={'player_id': bob})
    assert res.status_code == 403

    res = client.post(f'/api/games/{code}/start', json={'player_id': alice})
    assert res.status_code == 200
    assert res.get_json()['game']['current_player_id'] == alice

    res = client.post(f'/api/games/{code}/propose', json={'player_id': bob, 'artist_name': 'Booba'})
    assert res.status_code == 400
    assert res.get_json()['kind'] == 'rejected'

    res = client.post(f'/api/games/{code}/propose', json={'player_id': alice, 'artist_name': 'Booba'})
    body = res.get_json()
    assert res.status_code == 200
    assert body['is_valid'] is True
    assert body['game']['current_player_id'] == bob

    res = client.post(f'/api/games/{code}/propose', json={'player_id': bob, 'artist_name': 'Jul'})
    body = res.get_json()
    assert body['kind'] == 'retry'
    assert body['move']['invalid_reason'] == 'NO_RELATION'

    res = client.post(f'/api/games/{code}/propose', json={'player_id': bob, 'artist_name': 'Booba'})
    body = res.get_json()
    assert body['kind'] == 'eliminated'
    assert body['move']['invalid_reason'] == 'REPEAT'
    assert body['game']['status'] == 'finished'
    assert body['game']['winner_id'] == alice

    res = client.post(f'/api/games/{code}/reset', json={'player_id': alice})
    assert res.status_code == 200
    game = res.get_json()['game']
    assert game['status'] == 'waiting'
    assert {p['id'] for p in game['players']} == {alice, bob}


def test_reconnect_and_leave(client):
    created = create(client)
    code, alice = created['game_code'], created['player_id']
    bob = client.post('/api/games/join', json={'game_code': code, 'name': 'Bob'}).get_json()['player_id']

    res = client.post('/api/games/reconnect', json={'game_code': code, 'player_id': bob})
    assert res.status_code == 200
    assert res.get_json()['player']['name'] == 'Bob'

    res = client.post(f'/api/games/{code}/leave', json={'player_id': bob})
    assert [p['id'] for p in res.get_json()['game']['players']] == [alice]


def test_propose_requires_fields(client):
    code = create(client)['game_code']
    res = client.post(f'/api/games/{code}/propose', json={'player_id': 'x'})
    assert res.status_code == 400


def test_solo_flow(client):
    res = client.post('/api/solo/infinite/start', json={'name': 'Zoe'})
    assert res.status_code == 201
    run = res.get_json()['run']
    run_id = run['id']
    assert run['seed_artist']['name'] == 'Booba'
    assert run['current_turn'] == 1

    res = client.post(f'/api/solo/infinite/{run_id}/move', json={'artist_name': 'Kaaris'})
    body = res.get_json()
    assert body['is_valid'] is True
    assert body['scoring']['final_score'] > 0
    assert body['run']['total_score'] == body['scoring']['final_score']

    res = client.post(f'/api/solo/infinite/{run_id}/move', json={'artist_name': 'Booba'})
    body = res.get_json()
    assert body['move']['invalid_reason'] == 'REPEAT'
    assert body['run']['status'] == 'finished'

    res = client.post(f'/api/solo/infinite/{run_id}/move', json={'artist_name': 'Damso'})
    assert res.status_code == 400

    assert client.get(f'/api/solo/infinite/{run_id}').get_json()['end_reason'] == 'REPEAT'
    assert client.delete(f'/api/solo/infinite/{run_id}').status_code == 200
    assert client.get(f'/api/solo/infinite/{run_id}').status_code == 404


def test_solo_move_requires_artist(client):
    run_id = client.post('/api/solo/infinite/start', json={}).get_json()['run_id']
    res = client.post(f'/api/solo/infinite/{run_id}/move', json={'artist_name': ' '})
    assert res.status_code == 400


def test_solo_start_sweeps_old_finished_runs(client, services, clock):
    old = client.post('/api/solo/infinite/start', json={'name': 'Zoe'}).get_json()['run_id']
    client.post(f'/api/solo/infinite/{old}/move', json={'artist_name': 'Booba'})
    assert services.solo.get_run(old).status.value == 'finished'

    clock.advance(3601)
    client.post('/api/solo/infinite/start', json={'name': 'Zoe'})
    assert client.get(f'/api/solo/infinite/{old}').status_code == 404
    assert len(services.solo) == 1
