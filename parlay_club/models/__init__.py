from .game import Game
from .parlay import ParlaySeasonRecord, ParlayWeekScore
from .pick import Pick
from .user import User

__all__ = [
    "User",
    "Game",
    "Pick",
    "ParlayWeekScore",
    "ParlaySeasonRecord",
]
