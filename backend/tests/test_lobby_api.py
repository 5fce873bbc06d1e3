from empatify.services.lobbies.actions import PLAY_AGAIN_PREFIX, clamp_rounds


def _create(user_client, **body):
    res = user_client.post('/api/lobby/create', json=body)
    assert res.status_code == 201, res.get_json()
    return res.get_json()


def _suggest(user_client, lobby_id, round_number, track='track-1'):
    return user_client.post(f'/api/lobby/{lobby_id}/song', json={
        'spotifyTrackId': track,
        'roundNumber': round_number,
    })


def _rate(user_client, lobby_id, song_id, value):
    return user_client.post(f'/api/lobby/{lobby_id}/rating', json={'songId': song_id, 'ratingValue': value})


def test_requires_login(client):
    res = client.post('/api/lobby/create', json={})
    assert res.status_code == 401
    assert res.get_json()['code'] == 'UNAUTHORIZED'


def test_clamp_rounds():
    assert clamp_rounds(None) == 5
    assert clamp_rounds(0) == 5
    assert clamp_rounds('abc') == 5
    assert clamp_rounds(50) == 10
    assert clamp_rounds(-3) == 1
    assert clamp_rounds('7') == 7


def test_create_lobby_defaults(make_user):
    alice, alice_user = make_user('alice')
    data = _create(alice)
    lobby = data['lobby']
    assert data['lobbyId'] == lobby['id']
    assert data['invited'] == 0
    assert lobby['hostId'] == alice_user['id']
    assert lobby['maxRounds'] == 5
    assert lobby['category'] is None
    assert lobby['gameMode'] == 'multi-device'


def test_create_lobby_clamps_and_normalizes(make_user):
    alice, _ = make_user('alice')
    lobby = _create(alice, rounds=42, category='all', gameMode='single-device')['lobby']
    assert lobby['maxRounds'] == 10
    assert lobby['category'] is None
    assert lobby['gameMode'] == 'single-device'

    lobby = _create(alice, rounds=3, category='Road trip', gameMode='bogus')['lobby']
    assert lobby['maxRounds'] == 3
    assert lobby['category'] == 'Road trip'
    assert lobby['gameMode'] == 'multi-device'


def test_state_payload_shape(make_user):
    alice, alice_user = make_user('alice')
    lobby_id = _create(alice, rounds=2)['lobbyId']

    res = alice.get(f'/api/lobby/{lobby_id}')
    assert res.status_code == 200
    state = res.get_json()
    assert state['lobby']['id'] == lobby_id
    assert [p['id'] for p in state['participants']] == [alice_user['id']]
    assert state['songs'] == []
    assert state['ratings'] == []
    assert state['pollIntervalMs'] == 3000
    assert state['isFinished'] is False
    assert state['leaderboard'][0]['userId'] == alice_user['id']
    assert state['leaderboard'][0]['averageRating'] == 0.0


def test_unknown_lobby_is_404(make_user):
    alice, _ = make_user('alice')
    res = alice.get('/api/lobby/does-not-exist')
    assert res.status_code == 404
    assert res.get_json()['code'] == 'NOT_FOUND'


def test_join_is_idempotent(make_user):
    alice, _ = make_user('alice')
    bob, bob_user = make_user('bob')
    lobby_id = _create(alice)['lobbyId']

    first = bob.post(f'/api/lobby/{lobby_id}/join').get_json()
    assert first == {'success': True, 'joined': True, 'lobbyId': lobby_id}
    second = bob.post(f'/api/lobby/{lobby_id}/join').get_json()
    assert second['joined'] is False

    participants = alice.get(f'/api/lobby/{lobby_id}').get_json()['participants']
    assert [p['id'] for p in participants].count(bob_user['id']) == 1


def test_song_requires_participation(make_user):
    alice, _ = make_user('alice')
    bob, _ = make_user('bob')
    lobby_id = _create(alice)['lobbyId']
    res = _suggest(bob, lobby_id, 1)
    assert res.status_code == 403
    assert res.get_json()['code'] == 'NOT_PARTICIPANT'


def test_song_round_must_be_in_range(make_user):
    alice, _ = make_user('alice')
    lobby_id = _create(alice, rounds=2)['lobbyId']
    assert _suggest(alice, lobby_id, 0).status_code == 400
    assert _suggest(alice, lobby_id, 3).status_code == 400
    # Only JSON integers name a round
    for bad in (2.9, True, '2'):
        res = _suggest(alice, lobby_id, bad)
        assert res.status_code == 400, bad
        assert res.get_json()['code'] == 'VALIDATION_ERROR'
    assert alice.get(f'/api/lobby/{lobby_id}').get_json()['songs'] == []
    res = alice.post(f'/api/lobby/{lobby_id}/song', json={'roundNumber': 1})
    assert res.status_code == 400
    assert res.get_json()['code'] == 'VALIDATION_ERROR'


def test_song_upsert_replaces_track_until_rated(make_user):
    alice, _ = make_user('alice')
    bob, _ = make_user('bob')
    lobby_id = _create(alice, rounds=1)['lobbyId']
    bob.post(f'/api/lobby/{lobby_id}/join')

    res = _suggest(alice, lobby_id, 1, track='first')
    assert res.status_code == 201
    song = res.get_json()['song']

    res = _suggest(alice, lobby_id, 1, track='second')
    assert res.status_code == 200
    replaced = res.get_json()
    assert replaced['created'] is False
    assert replaced['song']['id'] == song['id']
    assert replaced['song']['spotifyTrackId'] == 'second'

    assert _rate(bob, lobby_id, song['id'], 7).status_code == 200

    res = _suggest(alice, lobby_id, 1, track='third')
    assert res.status_code == 409
    assert res.get_json()['code'] == 'SONG_LOCKED'
    res = alice.delete(f'/api/lobby/{lobby_id}/song/{song["id"]}')
    assert res.status_code == 409


def test_delete_song_rules(make_user):
    alice, _ = make_user('alice')
    bob, _ = make_user('bob')
    lobby_id = _create(alice)['lobbyId']
    bob.post(f'/api/lobby/{lobby_id}/join')
    song_id = _suggest(alice, lobby_id, 1).get_json()['song']['id']

    assert bob.delete(f'/api/lobby/{lobby_id}/song/{song_id}').status_code == 403
    res = alice.delete(f'/api/lobby/{lobby_id}/song/unknown')
    assert res.status_code == 404
    assert res.get_json()['code'] == 'SONG_NOT_FOUND'

    assert alice.delete(f'/api/lobby/{lobby_id}/song/{song_id}').status_code == 200
    assert alice.get(f'/api/lobby/{lobby_id}').get_json()['songs'] == []


def test_rating_validation(make_user):
    alice, _ = make_user('alice')
    bob, _ = make_user('bob')
    cara, _ = make_user('cara')
    lobby_id = _create(alice)['lobbyId']
    bob.post(f'/api/lobby/{lobby_id}/join')
    song_id = _suggest(alice, lobby_id, 1).get_json()['song']['id']

    for bad in (0, 11, '5', 7.5, True):
        res = _rate(bob, lobby_id, song_id, bad)
        assert res.status_code == 400, bad
    assert _rate(bob, lobby_id, 'missing', 5).status_code == 404
    res = _rate(cara, lobby_id, song_id, 5)
    assert res.status_code == 403
    assert res.get_json()['code'] == 'NOT_PARTICIPANT'


def test_rating_upsert_updates_value(make_user):
    alice, _ = make_user('alice')
    bob, _ = make_user('bob')
    lobby_id = _create(alice)['lobbyId']
    bob.post(f'/api/lobby/{lobby_id}/join')
    song_id = _suggest(alice, lobby_id, 1).get_json()['song']['id']

    first = _rate(bob, lobby_id, song_id, 4).get_json()
    assert first['created'] is True
    second = _rate(bob, lobby_id, song_id, 9).get_json()
    assert second['created'] is False
    assert second['rating']['id'] == first['rating']['id']

    ratings = alice.get(f'/api/lobby/{lobby_id}').get_json()['ratings']
    assert len(ratings) == 1
    assert ratings[0]['ratingValue'] == 9


def test_full_game_reaches_results(make_user):
    alice, alice_user = make_user('alice')
    bob, bob_user = make_user('bob')
    lobby_id = _create(alice, rounds=1)['lobbyId']
    bob.post(f'/api/lobby/{lobby_id}/join')

    alice_song = _suggest(alice, lobby_id, 1, track='a').get_json()['song']['id']
    bob_song = _suggest(bob, lobby_id, 1, track='b').get_json()['song']['id']

    page = alice.get(f'/lobby/{lobby_id}').get_json()
    assert page['view'] == 'play'
    assert page['isFinished'] is False

    _rate(bob, lobby_id, alice_song, 9)
    _rate(alice, lobby_id, bob_song, 6)

    state = alice.get(f'/api/lobby/{lobby_id}').get_json()
    assert state['isFinished'] is True
    assert [e['userId'] for e in state['leaderboard']] == [alice_user['id'], bob_user['id']]
    assert state['leaderboard'][0]['averageRating'] == 9.0
    assert state['leaderboard'][1]['songsSuggested'] == 1

    page = bob.get(f'/lobby/{lobby_id}').get_json()
    assert page['view'] == 'results'
    assert page['currentUserId'] == bob_user['id']


def test_page_view_joins_visitor_and_reopens_game(make_user):
    alice, _ = make_user('alice')
    bob, _ = make_user('bob')
    cara, cara_user = make_user('cara')
    lobby_id = _create(alice, rounds=1)['lobbyId']
    bob.post(f'/api/lobby/{lobby_id}/join')
    alice_song = _suggest(alice, lobby_id, 1).get_json()['song']['id']
    _suggest(bob, lobby_id, 1)
    _rate(bob, lobby_id, alice_song, 5)
    assert alice.get(f'/lobby/{lobby_id}').get_json()['view'] == 'results'

    # A newcomer has no final-round song yet
    page = cara.get(f'/lobby/{lobby_id}').get_json()
    assert cara_user['id'] in [p['id'] for p in page['participants']]
    assert page['view'] == 'play'

    _suggest(cara, lobby_id, 1)
    assert cara.get(f'/lobby/{lobby_id}').get_json()['view'] == 'results'


def test_page_view_unknown_lobby(make_user):
    alice, _ = make_user('alice')
    assert alice.get('/lobby/nope').status_code == 404


def test_active_lobbies_newest_first(make_user):
    alice, _ = make_user('alice')
    bob, _ = make_user('bob')
    first = _create(alice)['lobbyId']
    second = _create(alice)['lobbyId']
    _create(bob)

    listed = [lobby['id'] for lobby in alice.get('/lobbies/active').get_json()]
    assert listed == [second, first]


def test_delete_lobby_rules(make_user):
    alice, _ = make_user('alice')
    bob, _ = make_user('bob')
    shared = _create(alice)['lobbyId']
    bob.post(f'/api/lobby/{shared}/join')

    res = bob.delete(f'/api/lobby/{shared}')
    assert res.status_code == 403
    res = alice.delete(f'/api/lobby/{shared}')
    assert res.status_code == 400
    assert res.get_json()['code'] == 'CANNOT_DELETE'

    solo = _create(alice)['lobbyId']
    _suggest(alice, solo, 1)
    assert alice.delete(f'/api/lobby/{solo}').status_code == 200
    assert alice.get(f'/api/lobby/{solo}').status_code == 404


def test_play_again_copies_settings_and_invites(make_user):
    alice, _ = make_user('alice')
    bob, bob_user = make_user('bob')
    original = _create(alice, rounds=3, category='Summer')['lobbyId']
    bob.post(f'/api/lobby/{original}/join')

    data = _create(alice, rounds=9, category='Other', copyFromLobbyId=original)
    assert data['invited'] == 1
    assert data['lobby']['maxRounds'] == 3
    assert data['lobby']['category'] == 'Summer'

    assert bob.get('/api/messages/unread-count').get_json()['unreadCount'] == 1
    conversations = bob.get('/api/messages/list').get_json()['conversations']
    invite = conversations[0]
    assert invite['lobbyId'] == data['lobbyId']
    assert invite['lastMessage'] == f"{PLAY_AGAIN_PREFIX}:alice:{data['lobbyId']}:3:Summer"


def test_play_again_with_unknown_source_uses_request(make_user):
    alice, _ = make_user('alice')
    data = _create(alice, rounds=4, copyFromLobbyId='missing')
    assert data['invited'] == 0
    assert data['lobby']['maxRounds'] == 4
