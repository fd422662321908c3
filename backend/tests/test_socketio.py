from stagesync.client import SyncContext


def _names(packets):
    return [p['name'] for p in packets]


def _first(packets, name):
    return next(p['args'][0] for p in packets if p['name'] == name)


def _join(sio_client, room_id):
    sio_client.emit('join-room', {'roomId': room_id}, namespace='/ws')
    return _first(sio_client.get_received('/ws'), 'room-joined')['sid']


def test_socket_connect_and_join(sio_client, seeded):
    assert sio_client.is_connected('/ws')
    assert 'connected' in _names(sio_client.get_received('/ws'))

    sio_client.emit('join-room', {'roomId': seeded.room_id}, namespace='/ws')
    joined = _first(sio_client.get_received('/ws'), 'room-joined')
    assert joined['roomId'] == seeded.room_id
    assert joined['room'] == f"room:{seeded.room_id}"
    assert joined['sid']


def test_join_requires_room(sio_client):
    sio_client.get_received('/ws')
    sio_client.emit('join-room', {}, namespace='/ws')
    assert 'error' in _names(sio_client.get_received('/ws'))


def test_peers_see_join_and_leave(sio_factory, seeded):
    alice, bob = sio_factory(), sio_factory()
    _join(alice, seeded.room_id)
    _join(bob, seeded.room_id)
    assert 'user-joined' in _names(alice.get_received('/ws'))

    bob.disconnect(namespace='/ws')
    assert 'user-left' in _names(alice.get_received('/ws'))


def test_start_reaches_every_client_in_room(client, sio_factory, seeded):
    alice, bob, outsider = sio_factory(), sio_factory(), sio_factory()
    _join(alice, seeded.room_id)
    _join(bob, seeded.room_id)
    _join(outsider, seeded.side_room_id)
    for c in (alice, bob, outsider):
        c.get_received('/ws')

    timeset = client.post(f'/api/timer-sessions/{seeded.countdown}/start').get_json()

    to_alice = _first(alice.get_received('/ws'), 'timer-started')
    to_bob = _first(bob.get_received('/ws'), 'timer-started')
    assert to_alice['timeset'] == to_bob['timeset'] == timeset
    assert to_alice['seq'] == timeset['seq']
    assert to_alice['timer']['durationMs'] == 600000
    assert 'timer-started' not in _names(outsider.get_received('/ws'))


def test_fast_pause_reaches_other_controller_immediately(client, sio_factory, seeded):
    alice, bob = sio_factory(), sio_factory()
    alice_sid = _join(alice, seeded.room_id)
    bob_sid = _join(bob, seeded.room_id)
    alice_view, bob_view = SyncContext(tick_ms=100), SyncContext(tick_ms=100)
    alice_view.self_id, bob_view.self_id = alice_sid, bob_sid
    try:
        client.post(f'/api/timer-sessions/{seeded.countdown}/start')
        for sio, ctx in ((alice, alice_view), (bob, bob_view)):
            for packet in sio.get_received('/ws'):
                if packet['name'].startswith('timer-'):
                    ctx.route(packet['name'], packet['args'][0])
        assert bob_view.for_scope(seeded.room_id).view.is_running

        alice.emit('timer-pause', {
            'roomId': seeded.room_id, 'timerId': seeded.countdown, 'currentTime': 598000,
        }, namespace='/ws')

        echoed = _first(alice.get_received('/ws'), 'timer-pause-fast')
        relayed = _first(bob.get_received('/ws'), 'timer-pause-fast')
        assert echoed == relayed
        assert relayed['senderId'] == alice_sid

        assert bob_view.route('timer-pause-fast', relayed) is True
        bob_reconciler = bob_view.for_scope(seeded.room_id)
        assert bob_reconciler.view.is_running is False
        assert bob_reconciler.display_time() == 598000
        # the sender ignores its own echo
        assert alice_view.route('timer-pause-fast', echoed) is False
    finally:
        alice_view.close()
        bob_view.close()


def test_durable_pause_broadcast_outranks_fast_path(client, sio_factory, seeded):
    alice = sio_factory()
    _join(alice, seeded.room_id)
    client.post(f'/api/timer-sessions/{seeded.countdown}/start')
    alice.emit('timer-pause', {
        'roomId': seeded.room_id, 'timerId': seeded.countdown, 'currentTime': 600000,
    }, namespace='/ws')
    client.post(f'/api/timer-sessions/{seeded.countdown}/pause', json={'currentTime': 600000})

    packets = alice.get_received('/ws')
    fast = _first(packets, 'timer-pause-fast')
    durable = _first(packets, 'timer-paused')
    assert durable['seq'] > fast['seq']
    assert durable['timeset']['status'] == 'paused'


def test_originator_can_be_skipped(client, sio_factory, seeded):
    alice, bob = sio_factory(), sio_factory()
    alice_sid = _join(alice, seeded.room_id)
    _join(bob, seeded.room_id)
    alice.get_received('/ws')
    bob.get_received('/ws')

    client.post(f'/api/timer-sessions/{seeded.countdown}/reset', headers={'X-Socket-Id': alice_sid})
    assert 'timer-reset' not in _names(alice.get_received('/ws'))
    assert 'timer-reset' in _names(bob.get_received('/ws'))


def test_broadcast_to_room_relays_client_events(sio_factory, seeded):
    alice, bob = sio_factory(), sio_factory()
    alice_sid = _join(alice, seeded.room_id)
    _join(bob, seeded.room_id)
    alice.get_received('/ws')

    alice.emit('broadcast-to-room', {
        'roomId': seeded.room_id, 'eventName': 'message-shown', 'eventData': {'text': 'Wrap up'},
    }, namespace='/ws')
    shown = _first(bob.get_received('/ws'), 'message-shown')
    assert shown == {'text': 'Wrap up', 'senderId': alice_sid}
    assert 'message-shown' in _names(alice.get_received('/ws'))

    # clients cannot forge authoritative timer events
    alice.emit('broadcast-to-room', {
        'roomId': seeded.room_id, 'eventName': 'timer-started', 'eventData': {},
    }, namespace='/ws')
    assert 'error' in _names(alice.get_received('/ws'))
    assert 'timer-started' not in _names(bob.get_received('/ws'))


def test_ping(sio_client):
    sio_client.emit('ping', {'n': 1}, namespace='/ws')
    assert _first(sio_client.get_received('/ws'), 'pong') == {'n': 1}


def test_fast_pause_of_inactive_timer_is_not_relayed(client, sio_factory, seeded):
    alice, bob = sio_factory(), sio_factory()
    _join(alice, seeded.room_id)
    _join(bob, seeded.room_id)
    bob_view = SyncContext(tick_ms=None)
    started = client.post(f'/api/timer-sessions/{seeded.countdown}/start').get_json()
    for packet in bob.get_received('/ws'):
        if packet['name'].startswith('timer-'):
            bob_view.route(packet['name'], packet['args'][0])
    alice.get_received('/ws')

    alice.emit('timer-pause', {
        'roomId': seeded.room_id, 'timerId': seeded.countup, 'currentTime': 1,
    }, namespace='/ws')

    error = _first(alice.get_received('/ws'), 'error')
    assert error['kind'] == 'NotActive'
    assert 'timer-pause-fast' not in _names(bob.get_received('/ws'))
    assert bob_view.for_scope(seeded.room_id).is_timer_running(seeded.countdown)

    state = client.get(f'/api/timer-sessions/rooms/{seeded.room_id}').get_json()
    assert state['session']['timeset']['running'] is True
    assert state['session']['timeset']['seq'] == started['seq']


def test_fast_pause_of_paused_timer_is_rejected(client, sio_client, seeded):
    _join(sio_client, seeded.room_id)
    client.post(f'/api/timer-sessions/{seeded.countdown}/start')
    client.post(f'/api/timer-sessions/{seeded.countdown}/pause', json={})
    sio_client.get_received('/ws')

    sio_client.emit('timer-pause', {
        'roomId': seeded.room_id, 'timerId': seeded.countdown, 'currentTime': 500000,
    }, namespace='/ws')
    packets = sio_client.get_received('/ws')
    assert _first(packets, 'error')['kind'] == 'NotRunning'
    assert 'timer-pause-fast' not in _names(packets)


def test_default_namespace_mirror_hears_timer_events(client, flask_app, seeded):
    from stagesync import socketio

    mirror = socketio.test_client(flask_app, flask_test_client=flask_app.test_client())
    try:
        mirror.emit('join-room', {'roomId': seeded.room_id})
        mirror.get_received()
        client.post(f'/api/timer-sessions/{seeded.countdown}/start')
        assert 'timer-started' in _names(mirror.get_received())
    finally:
        mirror.disconnect()
