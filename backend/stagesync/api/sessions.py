from flask import Blueprint, jsonify, request, current_app
from stagesync.errors import InvalidRequest, TimerSyncError
from stagesync.services.sessions import engine
from stagesync.timing import render_session, render_timeset


sessions = Blueprint('sessions', __name__)


@sessions.errorhandler(TimerSyncError)
def handle_timer_sync_error(err):
    current_app.logger.info(f"[rejected] {request.method} {request.path} kind={err.kind}: {err.message}")
    return jsonify(err.to_dict()), err.status_code


def _optional_ms(data, key):
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidRequest(f'{key} must be a number')
    return int(value)


def _originator_sid():
    # Set by clients that already applied the change locally
    return request.headers.get('X-Socket-Id') or None


@sessions.route('/<int:timer_id>', methods=['GET'])
def get_session(timer_id):
    return jsonify(engine.get_session(timer_id))


@sessions.route('/rooms/<int:room_id>', methods=['GET'])
def get_room_session(room_id):
    rendered = engine.get_room_session(room_id)
    return jsonify({'roomId': room_id, 'session': rendered})


@sessions.route('/<int:timer_id>/start', methods=['POST'])
def start_timer(timer_id):
    result = engine.start(timer_id, skip_sid=_originator_sid())
    return jsonify(render_timeset(result.config, result.session))


@sessions.route('/<int:timer_id>/pause', methods=['POST'])
def pause_timer(timer_id):
    data = request.get_json(silent=True) or {}
    result = engine.pause(
        timer_id,
        timestamp=_optional_ms(data, 'timestamp'),
        current_time=_optional_ms(data, 'currentTime'),
        skip_sid=_originator_sid(),
    )
    return jsonify(render_timeset(result.config, result.session))


@sessions.route('/<int:timer_id>/reset', methods=['POST'])
def reset_timer(timer_id):
    result = engine.reset(timer_id, skip_sid=_originator_sid())
    return jsonify(render_timeset(result.config, result.session))


@sessions.route('/<int:timer_id>/adjust', methods=['POST'])
def adjust_timer(timer_id):
    data = request.get_json(silent=True) or {}
    delta_ms = _optional_ms(data, 'deltaMs')
    if delta_ms is None:
        # Older controllers send whole seconds
        seconds = data.get('seconds')
        if isinstance(seconds, bool) or not isinstance(seconds, (int, float)):
            raise InvalidRequest('deltaMs must be a number')
        delta_ms = int(seconds * 1000)
    result = engine.adjust(timer_id, delta_ms, skip_sid=_originator_sid())
    return jsonify(render_session(result.config, result.session))
