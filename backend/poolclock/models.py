from dataclasses import dataclass
from typing import Any, Dict

DEFAULT_SHOT_LIMIT = 60
DEFAULT_GAME_LIMIT = 20 * 60


@dataclass(frozen=True)
class ClockState:
    """Snapshot of one game's timers, as pushed to viewers."""
    game_id: str
    shot_time_left: int
    game_time_left: int
    running: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            'gameId': self.game_id,
            'shotTimeLeft': self.shot_time_left,
            'gameTimeLeft': self.game_time_left,
            'running': self.running,
        }


class GameClock:
    """Shot clock and game clock for one table.

    Not thread-safe on its own; the registry serializes access per game.
    Only the shot clock expiring stops play. The game clock bottoms out at
    zero and keeps reporting 0 while the shot clock runs.
    """

    def __init__(self, game_id: str, shot_limit: int = DEFAULT_SHOT_LIMIT,
                 game_limit: int = DEFAULT_GAME_LIMIT):
        self.game_id = game_id
        self.shot_limit = shot_limit
        self.game_limit = game_limit
        self.shot_time_left = shot_limit
        self.game_time_left = game_limit
        self.running = False
        # Ticks until a deferred resume fires; 0 means none pending
        self.resume_in = 0

    def start(self) -> None:
        self.running = True
        self.resume_in = 0

    def stop(self) -> None:
        self.running = False
        self.resume_in = 0

    def reset_shot(self) -> None:
        self.shot_time_left = self.shot_limit

    def reset_game(self) -> None:
        self.game_time_left = self.game_limit

    def schedule_resume(self, ticks: int) -> None:
        """Stop now and start again after `ticks` scheduler firings."""
        self.running = False
        self.resume_in = max(0, int(ticks))

    def advance_deferred(self) -> bool:
        """Count down a pending resume. Returns True if the clock started."""
        if self.running or self.resume_in <= 0:
            return False
        self.resume_in -= 1
        if self.resume_in == 0:
            self.running = True
            return True
        return False

    def tick(self) -> None:
        if self.shot_time_left > 0:
            self.shot_time_left -= 1
        if self.game_time_left > 0:
            self.game_time_left -= 1
        if self.shot_time_left == 0:
            self.running = False

    def snapshot(self) -> ClockState:
        return ClockState(
            game_id=self.game_id,
            shot_time_left=self.shot_time_left,
            game_time_left=self.game_time_left,
            running=self.running,
        )

    def to_dict(self) -> Dict[str, Any]:
        return self.snapshot().to_dict()
