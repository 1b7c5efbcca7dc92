from flask import Blueprint, Response, current_app, jsonify, request
from poolclock.exceptions import PoolClockException
from poolclock.services.clocks import registry
from poolclock.services.clocks.fanout import QueueSubscriber


clock = Blueprint('clock', __name__)


def _param(name, default=None):
    """Read a parameter from the query string, a form body or a JSON body.

    JSON scalars come back as strings; objects and arrays count as missing.
    """
    value = request.values.get(name)
    if value is None:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return default
        value = data.get(name, default)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            value = str(value)
        elif value is not None and not isinstance(value, str):
            value = default
    return value


@clock.errorhandler(PoolClockException)
def handle_clock_error(exc):
    return jsonify({'status': 'error', 'message': str(exc), 'gameId': exc.game_id}), exc.status_code


@clock.route('/create', methods=['POST'])
def create_game():
    game_id = _param('gameId')
    if not game_id:
        return jsonify({'status': 'error', 'message': 'gameId is required'}), 400
    entry = registry.create(game_id)
    current_app.logger.info(f"[api-create] game={game_id}")
    return jsonify({
        'gameId': game_id,
        'key': entry.control_key,
        'createdAt': entry.created_at.isoformat().replace('+00:00', 'Z'),
    }), 201


@clock.route('/list', methods=['GET'])
def list_games():
    return jsonify([{'gameId': game_id} for game_id in registry.list()])


@clock.route('/<string:game_id>/state', methods=['GET'])
def get_state(game_id):
    return jsonify(registry.status(game_id).to_dict())


@clock.route('/<string:game_id>/stream', methods=['GET'])
def stream(game_id):
    cfg = current_app.config
    subscriber = QueueSubscriber(game_id, maxsize=int(cfg.get('SUBSCRIBER_QUEUE_SIZE', 32)))
    registry.subscribe(game_id, subscriber)
    keepalive = float(cfg.get('STREAM_KEEPALIVE_SEC', 15))

    def generate():
        try:
            yield from subscriber.stream(keepalive=keepalive)
        finally:
            registry.unsubscribe(game_id, subscriber)

    return Response(
        generate(),
        mimetype='text/event-stream',
        headers={'Cache-Control': 'no-cache', 'X-Accel-Buffering': 'no'},
    )


@clock.route('/<string:game_id>/start', methods=['POST'])
def start(game_id):
    return jsonify(registry.start(game_id, _param('key')).to_dict())


@clock.route('/<string:game_id>/stop', methods=['POST'])
def stop(game_id):
    return jsonify(registry.stop(game_id, _param('key')).to_dict())


@clock.route('/<string:game_id>/reset', methods=['POST'])
def reset_shot(game_id):
    resume_after = _param('resumeAfter', 0)
    try:
        resume_after = int(resume_after or 0)
    except (TypeError, ValueError):
        return jsonify({'status': 'error', 'message': 'resumeAfter must be an integer'}), 400
    return jsonify(registry.reset_shot(game_id, _param('key'), resume_after=resume_after).to_dict())


@clock.route('/<string:game_id>/game/reset', methods=['POST'])
def reset_game(game_id):
    return jsonify(registry.reset_game(game_id, _param('key')).to_dict())


@clock.route('/<string:game_id>/delete', methods=['POST'])
def delete_game(game_id):
    removed = registry.delete(game_id, _param('key'))
    message = 'Game deleted' if removed else 'Game already deleted'
    return jsonify({'status': 'success', 'message': message})
