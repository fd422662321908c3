def test_index(client):
    res = client.get('/')
    assert res.status_code == 200
    assert 'message' in res.get_json()


def test_get_session_before_start(client, seeded):
    res = client.get(f'/api/timer-sessions/{seeded.countdown}')
    assert res.status_code == 200
    data = res.get_json()
    assert data['timeset']['running'] is False
    assert data['timeset']['kickoff'] is None
    assert data['timer']['currentTime'] == 600000
    assert data['timer']['appearance'] == 'COUNTDOWN'


def test_unknown_timer_is_404(client, seeded):
    res = client.post('/api/timer-sessions/9999/start')
    assert res.status_code == 404
    assert res.get_json()['kind'] == 'NotFound'


def test_start_pause_resume_flow(client, seeded):
    # start
    res = client.post(f'/api/timer-sessions/{seeded.countdown}/start')
    assert res.status_code == 200
    started = res.get_json()
    assert started['running'] is True
    assert started['status'] == 'running'
    assert started['deadline'] - started['kickoff'] == 600000

    # pause with the controller's own reading
    res = client.post(f'/api/timer-sessions/{seeded.countdown}/pause', json={'currentTime': 600000})
    assert res.status_code == 200
    paused = res.get_json()
    assert paused['running'] is False
    assert paused['status'] == 'paused'
    assert paused['lastStop'] == paused['kickoff']
    assert paused['seq'] > started['seq']

    # pausing twice is rejected
    res = client.post(f'/api/timer-sessions/{seeded.countdown}/pause', json={})
    assert res.status_code == 409
    assert res.get_json()['kind'] == 'NotRunning'

    # resume keeps the full remaining time
    resumed = client.post(f'/api/timer-sessions/{seeded.countdown}/start').get_json()
    assert resumed['running'] is True
    assert resumed['deadline'] - resumed['kickoff'] == 600000

    state = client.get(f'/api/timer-sessions/{seeded.countdown}').get_json()
    assert state['timeset'] == resumed
    assert 0 < state['timer']['currentTime'] <= 600000


def test_pause_inactive_timer_is_rejected(client, seeded):
    client.post(f'/api/timer-sessions/{seeded.countdown}/start')
    res = client.post(f'/api/timer-sessions/{seeded.countup}/pause', json={})
    assert res.status_code == 409
    assert res.get_json()['kind'] == 'NotActive'


def test_pause_rejects_malformed_body(client, seeded):
    client.post(f'/api/timer-sessions/{seeded.countdown}/start')
    res = client.post(f'/api/timer-sessions/{seeded.countdown}/pause', json={'currentTime': 'soon'})
    assert res.status_code == 400
    assert res.get_json()['kind'] == 'InvalidRequest'


def test_adjust(client, seeded):
    started = client.post(f'/api/timer-sessions/{seeded.countdown}/start').get_json()
    res = client.post(f'/api/timer-sessions/{seeded.countdown}/adjust', json={'deltaMs': 60000})
    assert res.status_code == 200
    adjusted = res.get_json()
    assert adjusted['timeset']['deadline'] == started['deadline'] + 60000
    assert adjusted['timeset']['kickoff'] == started['kickoff']

    # legacy seconds body
    adjusted = client.post(f'/api/timer-sessions/{seeded.countdown}/adjust', json={'seconds': -30}).get_json()
    assert adjusted['timeset']['deadline'] == started['deadline'] + 30000

    res = client.post(f'/api/timer-sessions/{seeded.countdown}/adjust', json={})
    assert res.status_code == 400


def test_reset_is_idempotent(client, seeded):
    client.post(f'/api/timer-sessions/{seeded.countdown}/start')
    first = client.post(f'/api/timer-sessions/{seeded.countdown}/reset').get_json()
    assert first['status'] == 'stopped'
    assert first['kickoff'] is None and first['deadline'] is None and first['lastStop'] is None
    second = client.post(f'/api/timer-sessions/{seeded.countdown}/reset').get_json()
    assert second == first


def test_room_session(client, seeded):
    res = client.get(f'/api/timer-sessions/rooms/{seeded.room_id}')
    assert res.status_code == 200
    assert res.get_json()['session'] is None

    client.post(f'/api/timer-sessions/{seeded.countup}/start')
    data = client.get(f'/api/timer-sessions/rooms/{seeded.room_id}').get_json()
    assert data['session']['timeset']['timerId'] == seeded.countup
    assert data['session']['timer']['appearance'] == 'COUNTUP'

    assert client.get('/api/timer-sessions/rooms/9999').status_code == 404
