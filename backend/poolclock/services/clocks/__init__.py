"""Clock domain services: registry, authorization, fan-out and ticking.

Imported by HTTP routes and socket handlers, keeping transport concerns
separated from the clock mechanics.
"""

from .registry import GameEntry, GameRegistry
from .scheduler import TickScheduler

registry = GameRegistry()
scheduler = TickScheduler(registry)

__all__ = ['GameEntry', 'GameRegistry', 'TickScheduler', 'registry', 'scheduler']
