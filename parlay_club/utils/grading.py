"""
Pick grading for Parlay Club

Grades a single spread or over/under pick against its game's final score.
Grading is pure: the same pick and final score always give the same result,
so re-grading a game is always safe.
"""

from parlay_club.models.pick import (
    RESULT_LOSS,
    RESULT_PUSH,
    RESULT_WIN,
    SIDE_AWAY,
    SIDE_HOME,
    SIDE_OVER,
    SIDE_UNDER,
    WAGER_SPREAD,
    WAGER_TOTAL,
)
from parlay_club.utils.exceptions import IncompleteGame, InvalidPick, MalformedFinalScore


def validate_final_score(game_id, home_score, away_score):
    """
    Check a reported final score before anything is graded against it.

    Returns:
        (home_score, away_score) as ints

    Raises:
        MalformedFinalScore: a score is missing, not an integer or negative
    """
    for score in (home_score, away_score):
        if score is None:
            raise MalformedFinalScore(game_id, home_score, away_score, "score missing")
        if isinstance(score, bool) or not isinstance(score, int):
            raise MalformedFinalScore(
                game_id, home_score, away_score, "score is not an integer"
            )
        if score < 0:
            raise MalformedFinalScore(game_id, home_score, away_score, "negative score")

    return home_score, away_score


def _result_from_margin(margin):
    if margin > 0:
        return RESULT_WIN
    if margin < 0:
        return RESULT_LOSS
    return RESULT_PUSH


def _captured_line(pick, closing_line):
    """The line frozen on the pick; the closing line only if none was captured"""
    line = pick.line if pick.line is not None else closing_line
    if line is None:
        raise InvalidPick(f"no {pick.wager_type} line to grade against", pick.id)
    return line


def grade_spread(side, line, home_score, away_score):
    """
    Spread result. `line` is home-referenced: negative favors the home team.
    """
    if side == SIDE_HOME:
        margin = (home_score + line) - away_score
    elif side == SIDE_AWAY:
        margin = (away_score - line) - home_score
    else:
        raise InvalidPick(f"side {side!r} is not valid for a spread wager")
    return _result_from_margin(margin)


def grade_total(side, line, home_score, away_score):
    """Over/under result against the combined score"""
    total_points = home_score + away_score
    if side == SIDE_OVER:
        margin = total_points - line
    elif side == SIDE_UNDER:
        margin = line - total_points
    else:
        raise InvalidPick(f"side {side!r} is not valid for a total wager")
    return _result_from_margin(margin)


def grade_pick(pick, game):
    """
    Grade one pick against its final game.

    Args:
        pick: Pick (wager_type, side, line)
        game: Game the pick references

    Returns:
        "win", "loss" or "push"

    Raises:
        IncompleteGame: the game is not final
        MalformedFinalScore: the final score is unusable
        InvalidPick: the pick cannot be graded (no line, unknown wager or side)
    """
    if not game.is_final:
        raise IncompleteGame(game.id)

    home_score, away_score = validate_final_score(
        game.id, game.home_score, game.away_score
    )

    try:
        if pick.wager_type == WAGER_SPREAD:
            line = _captured_line(pick, game.spread)
            return grade_spread(pick.side, line, home_score, away_score)

        if pick.wager_type == WAGER_TOTAL:
            line = _captured_line(pick, game.over_under)
            return grade_total(pick.side, line, home_score, away_score)
    except InvalidPick as e:
        if e.pick_id is None and pick.id is not None:
            raise InvalidPick(str(e), pick.id) from e
        raise

    raise InvalidPick(f"unknown wager type {pick.wager_type!r}", pick.id)
