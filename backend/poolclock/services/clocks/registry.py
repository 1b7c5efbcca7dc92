"""In-memory registry of game clocks.

Maps a game id to its clock, control key and subscriber set. A global lock
guards only the id -> entry map; everything touching one game's clock or
viewers runs under that game's own lock, so games never contend with each
other beyond a dict lookup.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from poolclock.exceptions import AlreadyExists, NotFound, Unauthorized
from poolclock.models import ClockState, GameClock, DEFAULT_GAME_LIMIT, DEFAULT_SHOT_LIMIT
from .auth import generate_control_key, is_authorized
from .fanout import CLOCK_EVENT, DELETED_EVENT, Subscriber, SubscriberSet

logger = logging.getLogger(__name__)

CONTROL_ACTIONS = ('start', 'stop', 'reset_shot', 'reset_game')


@dataclass
class GameEntry:
    clock: GameClock
    control_key: Optional[str]
    subscribers: SubscriberSet
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)
    deleted: bool = False

    @property
    def game_id(self) -> str:
        return self.clock.game_id

    def broadcast(self) -> ClockState:
        """Push the current snapshot to every viewer. Caller holds self.lock."""
        state = self.clock.snapshot()
        self.subscribers.publish(CLOCK_EVENT, state.to_dict())
        return state


class GameRegistry:
    def __init__(self, master_key: Optional[str] = None,
                 shot_limit: int = DEFAULT_SHOT_LIMIT, game_limit: int = DEFAULT_GAME_LIMIT):
        self.master_key = master_key
        self.shot_limit = shot_limit
        self.game_limit = game_limit
        self._entries: Dict[str, GameEntry] = {}
        self._lock = threading.Lock()

    def init_app(self, app) -> None:
        self.master_key = app.config.get('MASTER_KEY') or None
        self.shot_limit = int(app.config.get('SHOT_CLOCK_LIMIT_SEC', DEFAULT_SHOT_LIMIT))
        self.game_limit = int(app.config.get('GAME_CLOCK_LIMIT_SEC', DEFAULT_GAME_LIMIT))
        if not self.master_key:
            app.logger.warning("[clock-config] no master key configured; only per-game keys can control games")
        app.extensions['poolclock.registry'] = self

    def clear(self) -> None:
        """Drop every game without notifying viewers."""
        with self._lock:
            self._entries.clear()

    def _new_entry(self, game_id: str, control_key: Optional[str]) -> GameEntry:
        clock = GameClock(game_id, shot_limit=self.shot_limit, game_limit=self.game_limit)
        return GameEntry(clock=clock, control_key=control_key, subscribers=SubscriberSet(game_id))

    # ---- lookup / lifecycle ----

    def create(self, game_id: str) -> GameEntry:
        with self._lock:
            if game_id in self._entries:
                raise AlreadyExists(game_id)
            entry = self._new_entry(game_id, generate_control_key())
            self._entries[game_id] = entry
        logger.info(f"[clock-create] game={game_id}")
        return entry

    def get(self, game_id: str) -> GameEntry:
        entry = self._entries.get(game_id)
        if entry is None:
            raise NotFound(game_id)
        return entry

    def get_or_create(self, game_id: str) -> GameEntry:
        with self._lock:
            entry = self._entries.get(game_id)
            if entry is None:
                # Implicit games carry no control key; only the master key drives them
                entry = self._new_entry(game_id, None)
                self._entries[game_id] = entry
                logger.info(f"[clock-create-implicit] game={game_id}")
            return entry

    def list(self) -> List[str]:
        with self._lock:
            return list(self._entries)

    def entries(self) -> List[GameEntry]:
        with self._lock:
            return list(self._entries.values())

    def __contains__(self, game_id) -> bool:
        return game_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def _check(self, game_id: str, stored_key: Optional[str], key: Optional[str]) -> None:
        """Raise Unauthorized unless key is the master key or stored_key."""
        if not is_authorized(stored_key, key, self.master_key):
            logger.info(f"[clock-unauthorized] game={game_id}")
            raise Unauthorized(game_id)

    def _locked_entry(self, game_id: str, key: Optional[str]) -> GameEntry:
        """Authorize and return the game's entry with its lock held.

        Unknown ids are created on the fly, which only the master key can
        reach. The caller must release entry.lock.
        """
        while True:
            entry = self._entries.get(game_id)
            if entry is None:
                self._check(game_id, None, key)
                entry = self.get_or_create(game_id)
            entry.lock.acquire()
            if entry.deleted:
                entry.lock.release()
                continue
            try:
                self._check(game_id, entry.control_key, key)
            except Unauthorized:
                entry.lock.release()
                raise
            return entry

    # ---- control ----

    def status(self, game_id: str) -> ClockState:
        entry = self.get(game_id)
        with entry.lock:
            return entry.clock.snapshot()

    def control(self, game_id: str, key: Optional[str], action: str, resume_after: int = 0) -> ClockState:
        """Apply one control action and push the result to the game's viewers."""
        if action not in CONTROL_ACTIONS:
            raise ValueError(f"unknown clock action {action!r}")
        entry = self._locked_entry(game_id, key)
        try:
            clock = entry.clock
            if action == 'start':
                clock.start()
            elif action == 'stop':
                clock.stop()
            elif action == 'reset_shot':
                clock.reset_shot()
                if resume_after and resume_after > 0:
                    clock.schedule_resume(resume_after)
            else:
                clock.reset_game()
            logger.info(f"[clock-{action.replace('_', '-')}] game={game_id} running={clock.running}")
            return entry.broadcast()
        finally:
            entry.lock.release()

    def start(self, game_id, key):
        return self.control(game_id, key, 'start')

    def stop(self, game_id, key):
        return self.control(game_id, key, 'stop')

    def reset_shot(self, game_id, key, resume_after: int = 0):
        return self.control(game_id, key, 'reset_shot', resume_after=resume_after)

    def reset_game(self, game_id, key):
        return self.control(game_id, key, 'reset_game')

    def delete(self, game_id: str, key: Optional[str]) -> bool:
        """Remove a game, telling its viewers first.

        Returns False when the id was not registered (already deleted).
        """
        entry = self._entries.get(game_id)
        if entry is None:
            self._check(game_id, None, key)
            return False
        with entry.lock:
            if entry.deleted:
                self._check(game_id, entry.control_key, key)
                return False
            self._check(game_id, entry.control_key, key)
            entry.deleted = True
            notified = entry.subscribers.close_all(DELETED_EVENT, {'gameId': game_id, 'deleted': True})
            with self._lock:
                if self._entries.get(game_id) is entry:
                    del self._entries[game_id]
        logger.info(f"[clock-delete] game={game_id} notified={notified}")
        return True

    # ---- viewers ----

    def subscribe(self, game_id: str, subscriber: Subscriber) -> ClockState:
        """Register a viewer and hand it the current state straight away."""
        while True:
            entry = self.get_or_create(game_id)
            with entry.lock:
                if entry.deleted:
                    continue
                entry.subscribers.add(subscriber)
                state = entry.clock.snapshot()
                entry.subscribers.deliver(subscriber, CLOCK_EVENT, state.to_dict())
                logger.debug(f"[clock-subscribe] game={game_id} viewers={len(entry.subscribers)}")
                return state

    def unsubscribe(self, game_id: str, subscriber: Subscriber) -> bool:
        entry = self._entries.get(game_id)
        removed = False
        if entry is not None:
            with entry.lock:
                removed = entry.subscribers.discard(subscriber)
        subscriber.close()
        return removed
