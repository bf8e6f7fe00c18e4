"""
Exceptions raised by the grading and parlay scoring pipeline.

IncompleteGame and InvalidPick are caller/data problems and are never retried.
UnknownGameReference is reported per pick and excluded from scoring.
MalformedFinalScore blocks a game's transition until corrected data arrives.
PersistenceFailure is raised once storage retries are exhausted.
"""


class ParlayError(Exception):
    """Base class for all grading and scoring errors"""


class GameNotFound(ParlayError):
    def __init__(self, game_id):
        self.game_id = game_id
        super().__init__(f"Game {game_id} not found")


class IncompleteGame(ParlayError):
    def __init__(self, game_id):
        self.game_id = game_id
        super().__init__(f"Game {game_id} is not final and cannot be graded")


class MalformedFinalScore(ParlayError):
    def __init__(self, game_id, home_score, away_score, reason=None):
        self.game_id = game_id
        self.home_score = home_score
        self.away_score = away_score
        self.reason = reason or "missing or malformed score"
        super().__init__(
            f"Game {game_id} final score {away_score!r}-{home_score!r} rejected: "
            f"{self.reason}"
        )


class UnknownGameReference(ParlayError):
    def __init__(self, pick_id, game_id):
        self.pick_id = pick_id
        self.game_id = game_id
        super().__init__(f"Pick {pick_id} references unknown game {game_id}")


class InvalidPick(ParlayError):
    def __init__(self, message, pick_id=None):
        self.pick_id = pick_id
        super().__init__(message if pick_id is None else f"Pick {pick_id}: {message}")


class PersistenceFailure(ParlayError):
    def __init__(self, operation, cause=None):
        self.operation = operation
        self.cause = cause
        super().__init__(
            f"Storage failure during {operation}"
            + (f": {cause}" if cause is not None else "")
        )
