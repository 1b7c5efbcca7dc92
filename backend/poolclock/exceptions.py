"""Domain errors raised by the clock services.

The HTTP layer maps each of these to a JSON error response.
"""


class PoolClockException(Exception):
    """Base class for clock service errors."""
    status_code = 400

    def __init__(self, game_id, message=None):
        self.game_id = game_id
        super().__init__(message or f"Game {game_id}: {self.__class__.__name__}")


class AlreadyExists(PoolClockException):
    """create() called for a game id that is still registered."""
    status_code = 409

    def __init__(self, game_id):
        super().__init__(game_id, "Game already exists")


class Unauthorized(PoolClockException):
    """Missing or wrong control key on a mutating operation."""
    status_code = 401

    def __init__(self, game_id):
        super().__init__(game_id, "Unauthorized")


class NotFound(PoolClockException):
    status_code = 404

    def __init__(self, game_id):
        super().__init__(game_id, f"Game {game_id} not found")
