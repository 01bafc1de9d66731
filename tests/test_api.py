import io
import os


def join(client, name):
    res = client.post('/api/upload', json={'name': name, 'photo_ref': f'/uploads/{name}.png'})
    assert res.status_code == 201
    return res.get_json()['player']


def start_round(client, *names):
    players = [join(client, n) for n in names]
    for p in players:
        res = client.post('/api/ready', json={'player_id': p['id']})
        assert res.status_code == 200
    return players


def test_index(client):
    res = client.get('/')
    assert res.status_code == 200


def test_register_and_state(client):
    ann = join(client, 'Ann')
    assert ann['score'] == 0
    assert ann['highlight'] == 'none'

    state = client.get('/api/game-state').get_json()
    assert state['stage'] == 'waiting'
    assert [p['name'] for p in state['players']] == ['Ann']
    assert state['current_questioner']['id'] == ann['id']
    assert state['votes'] == {}


def test_duplicate_name_rejected(client):
    join(client, 'Ann')
    res = client.post('/api/upload', json={'name': 'Ann', 'photo_ref': '/uploads/x.png'})
    assert res.status_code == 400
    assert res.get_json()['kind'] == 'DuplicateName'
    assert len(client.get('/api/game-state').get_json()['players']) == 1


def test_register_requires_name_and_photo(client):
    res = client.post('/api/upload', json={'name': 'Ann'})
    assert res.status_code == 400
    assert res.get_json()['kind'] == 'MissingFields'


def test_photo_upload_is_saved_and_served(client, flask_app):
    res = client.post(
        '/api/upload',
        data={'name': 'Ann', 'photo': (io.BytesIO(b'fake-png'), 'ann face.png')},
        content_type='multipart/form-data',
    )
    assert res.status_code == 201
    photo_ref = res.get_json()['player']['photo_ref']
    assert photo_ref.startswith('/uploads/')
    assert photo_ref.endswith('ann_face.png')

    served = client.get(photo_ref)
    assert served.status_code == 200
    assert served.data == b'fake-png'
    served.close()


def test_rejected_upload_leaves_no_photo(client, flask_app):
    join(client, 'Ann')
    res = client.post(
        '/api/upload',
        data={'name': 'Ann', 'photo': (io.BytesIO(b'dup'), 'dup.png')},
        content_type='multipart/form-data',
    )
    assert res.status_code == 400
    assert os.listdir(flask_app.config['UPLOAD_FOLDER']) == []


def test_ready_errors(client):
    res = client.post('/api/ready', json={})
    assert res.status_code == 400
    assert res.get_json()['kind'] == 'MissingFields'
    res = client.post('/api/ready', json={'player_id': 'nope'})
    assert res.status_code == 400
    assert res.get_json()['kind'] == 'UnknownPlayer'


def test_two_players_cannot_start(client):
    players = [join(client, 'Ann'), join(client, 'Bob')]
    for p in players:
        body = client.post('/api/ready', json={'player_id': p['id']}).get_json()
        assert body['round_started'] is False
    state = client.get('/api/game-state').get_json()
    assert state['stage'] == 'waiting'
    assert state['ready_players'] == [p['id'] for p in players]


def test_full_round_flow(client, flask_app):
    p1, p2, p3 = start_round(client, 'P1', 'P2', 'P3')
    store = flask_app.extensions['session_store']
    impostor_id = store.get_state().impostor_id

    state = client.get('/api/game-state').get_json()
    assert state['stage'] == 'asking'
    # Nobody sees the secrets through the shared endpoint mid-round
    assert state['current_word'] is None
    assert state['impostor_id'] is None

    stages = [client.post('/api/next-stage').get_json() for _ in range(3)]
    assert [s['stage'] for s in stages] == ['asking', 'asking', 'voting']
    assert [s['current_questioner']['name'] for s in stages] == ['P2', 'P3', 'P1']

    assert client.post('/api/vote', json={'voter_id': p1['id'], 'voted_player_id': p2['id']}).status_code == 200
    assert client.post('/api/vote', json={'voter_id': p2['id'], 'voted_player_id': p3['id']}).status_code == 200
    res = client.post('/api/vote', json={'voter_id': p3['id'], 'voted_player_id': p2['id']})
    body = res.get_json()
    assert body['recorded'] is True
    assert body['voter']['name'] == 'P3'

    state = client.get('/api/game-state').get_json()
    assert state['stage'] == 'results'
    assert state['impostor_id'] == impostor_id
    assert state['votes'][p2['id']] == {'count': 2, 'voters': ['P1', 'P3']}
    players = {p['id']: p for p in state['players']}
    if impostor_id == p2['id']:
        assert players[p2['id']]['highlight'] == 'caught'
        assert players[p1['id']]['score'] == players[p3['id']]['score'] == 100
    else:
        assert players[impostor_id]['highlight'] == 'winner'
        assert players[impostor_id]['score'] == 100

    reset = client.post('/api/next-stage').get_json()
    assert reset['stage'] == 'waiting'
    state = client.get('/api/game-state').get_json()
    assert state['votes'] == {}
    assert all(p['secret_role'] is None for p in state['players'])


def test_state_shows_viewer_their_own_role(client, flask_app):
    p1, p2, p3 = start_round(client, 'P1', 'P2', 'P3')
    snapshot = flask_app.extensions['session_store'].get_state()

    state = client.get(f"/api/game-state?player_id={p1['id']}").get_json()
    roles = {p['id']: p['secret_role'] for p in state['players']}
    assert roles[p1['id']] == snapshot.player(p1['id']).secret_role
    assert roles[p2['id']] is None and roles[p3['id']] is None


def test_vote_errors(client):
    p1, p2, _ = start_round(client, 'P1', 'P2', 'P3')
    for _ in range(3):
        client.post('/api/next-stage')

    res = client.post('/api/vote', json={'voter_id': p1['id'], 'voted_player_id': p1['id']})
    assert res.status_code == 400
    assert res.get_json()['kind'] == 'SelfVote'

    res = client.post('/api/vote', json={'voter_id': p1['id']})
    assert res.get_json()['kind'] == 'MissingFields'

    client.post('/api/vote', json={'voter_id': p1['id'], 'voted_player_id': p2['id']})
    res = client.post('/api/vote', json={'voter_id': p1['id'], 'voted_player_id': p2['id']})
    assert res.status_code == 400
    assert res.get_json()['kind'] == 'AlreadyVoted'

    state = client.get('/api/game-state').get_json()
    assert state['votes'][p2['id']]['count'] == 1


def test_get_player_by_name(client):
    ann = join(client, 'Ann')
    res = client.get('/api/player/Ann')
    assert res.status_code == 200
    assert res.get_json()['player']['id'] == ann['id']

    res = client.get('/api/player/Nobody')
    assert res.status_code == 404
    assert res.get_json()['kind'] == 'NotFound'
