"""Per-game subscriber sets.

Each viewer is a Subscriber with its own outbound channel. Publishing never
blocks on a viewer: SSE viewers get a bounded queue, Socket.IO viewers are
handed to the Socket.IO server's own send queue. A viewer whose send fails
is dropped on the spot.
"""

import json
import logging
import queue
import uuid
from typing import Any, Dict, Iterator, List

logger = logging.getLogger(__name__)

CLOCK_EVENT = 'clock'
DELETED_EVENT = 'deleted'

_CLOSE = object()


class ChannelClosed(Exception):
    pass


class Subscriber:
    def __init__(self, game_id: str):
        self.id = uuid.uuid4().hex
        self.game_id = game_id
        self.closed = False

    def send(self, event: str, payload: Dict[str, Any]) -> None:
        raise NotImplementedError

    def close(self) -> None:
        self.closed = True

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.id[:8]} game={self.game_id}>"


class QueueSubscriber(Subscriber):
    """Viewer fed through a bounded queue, drained by an SSE response."""

    def __init__(self, game_id: str, maxsize: int = 32):
        super().__init__(game_id)
        self._queue: queue.Queue = queue.Queue(maxsize=maxsize)

    def send(self, event, payload):
        if self.closed:
            raise ChannelClosed(self.id)
        # queue.Full propagates: a viewer this far behind is dropped
        self._queue.put_nowait((event, payload))

    def close(self):
        if self.closed:
            return
        super().close()
        try:
            self._queue.put_nowait(_CLOSE)
        except queue.Full:
            # stream() notices the closed flag once the backlog drains
            pass

    def get(self, timeout: float = None):
        """Next (event, payload) pair, or None once closed and drained."""
        while True:
            try:
                item = self._queue.get(timeout=timeout)
            except queue.Empty:
                if self.closed:
                    return None
                raise
            if item is _CLOSE:
                return None
            return item

    def pending(self) -> List:
        items = []
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return items
            if item is not _CLOSE:
                items.append(item)

    def stream(self, keepalive: float = 15.0) -> Iterator[str]:
        """Yield SSE frames until the subscriber is closed."""
        while True:
            try:
                item = self.get(timeout=keepalive)
            except queue.Empty:
                yield ': keepalive\n\n'
                continue
            if item is None:
                return
            event, payload = item
            yield f"event: {event}\ndata: {json.dumps(payload)}\n\n"


class SocketIOSubscriber(Subscriber):
    """Viewer connected over Socket.IO, addressed by its session id."""

    def __init__(self, game_id: str, sid: str, socketio, namespace: str = '/ws', on_close=None):
        super().__init__(game_id)
        self.sid = sid
        self.socketio = socketio
        self.namespace = namespace
        self.on_close = on_close

    def send(self, event, payload):
        if self.closed:
            raise ChannelClosed(self.id)
        self.socketio.emit(event, payload, to=self.sid, namespace=self.namespace)

    def close(self):
        if self.closed:
            return
        super().close()
        if self.on_close is not None:
            self.on_close(self)


class SubscriberSet:
    """Live viewers of one game.

    Callers hold the game's lock around publish/add/discard so that frames
    reach each viewer in publish order.
    """

    def __init__(self, game_id: str):
        self.game_id = game_id
        self._subscribers: Dict[str, Subscriber] = {}

    def __len__(self) -> int:
        return len(self._subscribers)

    def __contains__(self, subscriber) -> bool:
        return subscriber.id in self._subscribers

    def add(self, subscriber: Subscriber) -> None:
        self._subscribers[subscriber.id] = subscriber

    def discard(self, subscriber: Subscriber) -> bool:
        return self._subscribers.pop(subscriber.id, None) is not None

    def deliver(self, subscriber: Subscriber, event: str, payload: Dict[str, Any]) -> bool:
        """Send to one viewer; a failed send drops it. Returns success."""
        try:
            subscriber.send(event, payload)
            return True
        except Exception as exc:
            logger.debug(f"[fanout-drop] game={self.game_id} subscriber={subscriber.id[:8]} error={exc!r}")
            self._subscribers.pop(subscriber.id, None)
            subscriber.close()
            return False

    def publish(self, event: str, payload: Dict[str, Any]) -> int:
        """Deliver to every viewer. Returns the number reached."""
        delivered = 0
        for subscriber in list(self._subscribers.values()):
            if self.deliver(subscriber, event, payload):
                delivered += 1
        return delivered

    def close_all(self, event: str, payload: Dict[str, Any]) -> int:
        """Send a final event to every viewer, then close and forget them."""
        subscribers = list(self._subscribers.values())
        self._subscribers.clear()
        for subscriber in subscribers:
            try:
                subscriber.send(event, payload)
            except Exception as exc:
                logger.debug(f"[fanout-final-skip] game={self.game_id} subscriber={subscriber.id[:8]} error={exc!r}")
            subscriber.close()
        return len(subscribers)
