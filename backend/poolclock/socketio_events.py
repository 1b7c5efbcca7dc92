from flask import request
from flask_socketio import emit
from poolclock import socketio
from poolclock.services.clocks import registry
from poolclock.services.clocks.fanout import SocketIOSubscriber
from typing import Dict
import logging
import threading

logger = logging.getLogger(__name__)

# sid -> {game_id: subscriber}
_sid_subscriptions: Dict[str, Dict[str, SocketIOSubscriber]] = {}
_subscriptions_lock = threading.Lock()


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _game_id(data):
    return (data or {}).get('gameId') or (data or {}).get('game_id')


def _forget(subscriber: SocketIOSubscriber) -> None:
    """Drop a closed subscriber from its sid's map unless it was already replaced."""
    with _subscriptions_lock:
        subs = _sid_subscriptions.get(subscriber.sid)
        if subs is None or subs.get(subscriber.game_id) is not subscriber:
            return
        del subs[subscriber.game_id]
        if not subs:
            del _sid_subscriptions[subscriber.sid]


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(*args):
    sid = _get_sid()
    with _subscriptions_lock:
        subs = _sid_subscriptions.pop(sid, {})
    for game_id, subscriber in subs.items():
        registry.unsubscribe(game_id, subscriber)
    if subs:
        logger.debug(f"[ws-disconnect] sid={sid} dropped={len(subs)}")


def handle_subscribe(data):
    game_id = _game_id(data)
    if not game_id:
        emit('error', {'message': 'gameId is required'})
        return
    sid = _get_sid()
    namespace = request.namespace
    with _subscriptions_lock:
        subs = _sid_subscriptions.setdefault(sid, {})
        existing = subs.get(game_id)
        if existing is not None and not existing.closed:
            emit('subscribed', {'gameId': game_id})
            return
        subscriber = SocketIOSubscriber(game_id, sid, socketio, namespace=namespace, on_close=_forget)
        subs[game_id] = subscriber
    emit('subscribed', {'gameId': game_id})
    registry.subscribe(game_id, subscriber)


def handle_unsubscribe(data):
    game_id = _game_id(data)
    if not game_id:
        emit('error', {'message': 'gameId is required'})
        return
    with _subscriptions_lock:
        subscriber = _sid_subscriptions.get(_get_sid(), {}).pop(game_id, None)
    if subscriber is not None:
        registry.unsubscribe(game_id, subscriber)
    emit('unsubscribed', {'gameId': game_id})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    namespaces = ['/ws', '/'] if testing else ['/ws']
    for namespace in namespaces:
        socketio.on_event('connect', handle_connect, namespace=namespace)
        socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
        socketio.on_event('subscribe', handle_subscribe, namespace=namespace)
        socketio.on_event('unsubscribe', handle_unsubscribe, namespace=namespace)
        socketio.on_event('ping', handle_ping, namespace=namespace)
