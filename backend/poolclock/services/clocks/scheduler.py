import logging
import threading
import time
from typing import Optional

logger = logging.getLogger(__name__)


class TickScheduler:
    """Once-per-second driver for every registered clock.

    Each firing ticks all running clocks first, then pushes every game's
    snapshot to its viewers. A firing that finds the previous one still in
    progress is skipped, and slots missed by a slow firing are dropped
    rather than replayed.
    """

    def __init__(self, registry, interval: float = 1.0):
        self.registry = registry
        self.interval = interval
        self._firing = threading.Lock()
        self._stopped = threading.Event()
        self._task = None
        self.fired = 0
        self.skipped = 0

    def init_app(self, app, socketio) -> None:
        self.interval = float(app.config.get('TICK_INTERVAL_SEC', 1.0))
        app.extensions['poolclock.scheduler'] = self
        if app.config.get('TESTING') and not app.config.get('ENABLE_SCHEDULER_IN_TESTS'):
            return
        if not app.config.get('SCHEDULER_ENABLED', True):
            app.logger.info("[tick-disabled] scheduler not started")
            return
        self.start(socketio)

    def start(self, socketio) -> None:
        if self._task is not None:
            return
        # Fresh event per loop; a loop still sleeping after stop() keeps its own, already set
        self._stopped = threading.Event()
        self._task = socketio.start_background_task(self.run, socketio.sleep, stopped=self._stopped)
        logger.info(f"[tick-start] interval={self.interval}s")

    def stop(self) -> None:
        self._stopped.set()
        self._task = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._stopped.is_set()

    def fire(self) -> bool:
        """Run one firing. Returns False if another firing was in progress."""
        if not self._firing.acquire(blocking=False):
            self.skipped += 1
            logger.warning("[tick-skip] previous firing still in progress")
            return False
        try:
            entries = self.registry.entries()
            for entry in entries:
                try:
                    with entry.lock:
                        if entry.deleted:
                            continue
                        if entry.clock.running:
                            entry.clock.tick()
                            if not entry.clock.running:
                                logger.info(f"[tick-expired] game={entry.game_id} shot clock expired")
                        elif entry.clock.advance_deferred():
                            logger.info(f"[tick-resume] game={entry.game_id}")
                except Exception:
                    logger.exception(f"[tick-error] game={entry.game_id}")
            for entry in entries:
                try:
                    with entry.lock:
                        if not entry.deleted:
                            entry.broadcast()
                except Exception:
                    logger.exception(f"[tick-broadcast-error] game={entry.game_id}")
            self.fired += 1
            return True
        finally:
            self._firing.release()

    def run(self, sleep=time.sleep, clock=time.monotonic, max_firings: Optional[int] = None,
            stopped: Optional[threading.Event] = None) -> None:
        """Fixed-rate loop; stops when `stopped` (default: the current stop event) is set or after max_firings."""
        if stopped is None:
            stopped = self._stopped
        next_due = clock() + self.interval
        count = 0
        while not stopped.is_set():
            delay = next_due - clock()
            if delay > 0:
                sleep(delay)
            if stopped.is_set():
                break
            try:
                self.fire()
            except Exception:
                logger.exception("[tick-error] firing failed")
            count += 1
            if max_firings is not None and count >= max_firings:
                break
            next_due += self.interval
            now = clock()
            if now >= next_due:
                missed = int((now - next_due) // self.interval) + 1
                self.skipped += missed
                logger.warning(f"[tick-overrun] skipping {missed} missed firing(s)")
                next_due += missed * self.interval
