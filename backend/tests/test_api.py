def _login(client, username):
    res = client.post('/login', json={'username': username, 'password': 'password'})
    assert res.status_code == 200
    return res.get_json()['user']


def _create_game(client, **overrides):
    payload = {
        'title': 'Quiz Night',
        'total_rounds': 1,
        'questions_per_round': 2,
        'selected_categories': ['science'],
        'max_teams': 3,
        'max_players_per_team': 2,
    }
    payload.update(overrides)
    return client.post('/api/games', json=payload)


def test_register_login_and_me(client):
    res = client.post('/register', json={'username': 'newhost', 'password': 'secret'})
    assert res.status_code == 201
    assert client.get('/me').get_json()['user']['username'] == 'newhost'
    assert client.post('/logout').status_code == 200
    assert client.get('/me').status_code == 401
    res = client.post('/login', json={'username': 'newhost', 'password': 'wrong'})
    assert res.status_code == 401


def test_api_requires_login(client, users):
    res = _create_game(client)
    assert res.status_code == 401
    assert res.get_json()['code'] == 'UNAUTHENTICATED'


def test_create_and_get_game(client, users):
    _login(client, 'host')
    res = _create_game(client)
    assert res.status_code == 201
    game = res.get_json()
    assert game['status'] == 'setup'
    assert [r['round_number'] for r in game['rounds']] == [1]

    fetched = client.get(f"/api/games/{game['id']}").get_json()
    assert fetched['title'] == 'Quiz Night'
    assert fetched['teams'] == []


def test_validation_error_shape(client, users):
    _login(client, 'host')
    res = _create_game(client, title='', max_teams=0)
    assert res.status_code == 400
    body = res.get_json()
    assert body['code'] == 'CONFIGURATION_VALIDATION'
    assert set(body['details']['validation_errors']) == {'title', 'max_teams'}


def test_missing_game_is_404(client, users):
    _login(client, 'host')
    res = client.get('/api/games/999')
    assert res.status_code == 404
    assert res.get_json()['code'] == 'NOT_FOUND'


def test_full_game_over_http(client, users, add_questions):
    add_questions('science', 4)
    _login(client, 'host')
    game = _create_game(client).get_json()
    team = client.post(f"/api/games/{game['id']}/teams", json={'name': 'Owls', 'display_color': '#FF5733'}).get_json()
    assert team['display_color'] == '#FF5733'

    res = client.post(f"/api/teams/{team['id']}/players", json={'player_id': users['alice']})
    assert res.status_code == 201
    readiness = client.get(f"/api/games/{game['id']}/readiness").get_json()
    assert readiness['ready'] is True

    res = client.delete(f"/api/games/{game['id']}")
    assert res.status_code == 409
    assert res.get_json()['code'] == 'NOT_DELETABLE'

    started = client.post(f"/api/games/{game['id']}/start").get_json()
    assert started['status'] == 'in_progress'
    round_id = started['rounds'][0]['id']
    assert started['rounds'][0]['status'] == 'in_progress'

    available = client.get('/api/questions/available?category=science').get_json()
    assert available['count'] == 2

    rnd = client.post(f'/api/rounds/{round_id}/start')
    assert rnd.status_code == 409
    assert rnd.get_json()['code'] == 'INVALID_TRANSITION'

    client.post('/logout')
    _login(client, 'alice')
    current = client.get(f"/api/games/{game['id']}/current-round").get_json()
    assert current['round']['id'] == round_id
    listed = client.get(f'/api/rounds/{round_id}/questions').get_json()
    assert listed['count'] == 2
    assert 'correct_label' not in listed['questions'][0]['question']
    question_ids = [rq['id'] for rq in listed['questions']]
    res = client.post(f'/api/round-questions/{question_ids[0]}/answers', json={'team_id': team['id'], 'answer': 'A'})
    assert res.status_code == 201
    assert res.get_json()['points_earned'] == 10
    res = client.post(f'/api/round-questions/{question_ids[0]}/answers', json={'team_id': team['id'], 'answer': 'A'})
    assert res.status_code == 409
    assert res.get_json()['code'] == 'DUPLICATE_ANSWER'
    stats = client.get(f"/api/teams/{team['id']}/stats").get_json()
    assert stats['total_points'] == 10
    answers = client.get(f"/api/teams/{team['id']}/answers?round_id={round_id}").get_json()['answers']
    assert [a['round_question_id'] for a in answers] == [question_ids[0]]
    assert client.get(f'/api/rounds/{round_id}/answers').status_code == 403

    # Only the host may drive the game
    res = client.post(f"/api/games/{game['id']}/complete")
    assert res.status_code == 403

    client.post('/logout')
    _login(client, 'host')
    assert client.post(f'/api/rounds/{round_id}/complete').status_code == 200
    summary = client.post(f"/api/games/{game['id']}/complete").get_json()
    assert summary['teams'][0]['total_score'] == 10
    assert summary['overall']['average_accuracy'] == 100
    assert client.get(f"/api/games/{game['id']}/summary").get_json()['overall']['total_questions'] == 1


def test_mark_questions_used_endpoint(client, users, add_questions):
    ids = add_questions('history', 2)
    _login(client, 'host')
    assert client.post('/api/questions/used', json={'question_ids': ids}).get_json() == {'inserted': 2}
    assert client.post('/api/questions/used', json={'question_ids': ids}).get_json() == {'inserted': 0}
    res = client.post('/api/questions/used', json={'question_ids': 'all'})
    assert res.status_code == 400
    res = client.post('/api/questions/used', json={'question_ids': [987654]})
    assert res.status_code == 400
    assert res.get_json()['details']['validation_errors']['question_ids']


def test_list_games_endpoint(client, users):
    _login(client, 'host')
    kept = _create_game(client, title='Kept').get_json()
    archived = _create_game(client, title='Old').get_json()
    client.post(f"/api/games/{archived['id']}/archive")

    body = client.get('/api/games?archived=false').get_json()
    assert [g['id'] for g in body['games']] == [kept['id']]
    assert client.get('/api/games').get_json()['count'] == 2
    assert client.get('/api/games?status=setup&archived=true').get_json()['games'][0]['title'] == 'Old'
    assert client.get('/api/games?archived=maybe').status_code == 400
    assert client.get('/api/games?status=paused').status_code == 400


def test_bulk_player_assignment_endpoint(client, users):
    _login(client, 'host')
    game = _create_game(client).get_json()
    team = client.post(f"/api/games/{game['id']}/teams", json={'name': 'Owls'}).get_json()
    res = client.post(f"/api/teams/{team['id']}/players", json={'player_ids': [users['alice'], users['bob']]})
    assert res.status_code == 201
    assert [p['username'] for p in res.get_json()['players']] == ['alice', 'bob']
    res = client.post(f"/api/teams/{team['id']}/players", json={'player_ids': []})
    assert res.status_code == 400


def test_question_browsing_endpoints(client, users, add_questions):
    add_questions('science', 3)
    _login(client, 'host')
    categories = client.get('/api/questions/categories').get_json()['categories']
    assert categories == [{'category': 'science', 'total': 3, 'available': 3}]
    assert client.get('/api/questions/available?category=science&limit=2').get_json()['count'] == 2
    res = client.get('/api/questions/available?category=science&limit=-1')
    assert res.status_code == 400
    assert res.get_json()['code'] == 'CONFIGURATION_VALIDATION'
