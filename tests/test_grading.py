"""Pick grading against final scores"""

from types import SimpleNamespace

import pytest

from parlay_club.utils.exceptions import IncompleteGame, InvalidPick, MalformedFinalScore
from parlay_club.utils.grading import (
    grade_pick,
    grade_spread,
    grade_total,
    validate_final_score,
)


def make_game(home_score=24, away_score=20, is_final=True, spread=-3.5, over_under=45.5):
    return SimpleNamespace(
        id=1,
        is_final=is_final,
        home_score=home_score,
        away_score=away_score,
        spread=spread,
        over_under=over_under,
    )


def make_pick(wager_type="spread", side="home", line=None, pick_id=10):
    return SimpleNamespace(id=pick_id, wager_type=wager_type, side=side, line=line)


class TestSpread:
    def test_favorite_covers(self):
        assert grade_spread("home", -3.5, 24, 20) == "win"
        assert grade_spread("away", -3.5, 24, 20) == "loss"

    def test_underdog_covers(self):
        assert grade_spread("away", -3.0, 20, 21) == "win"
        assert grade_spread("home", -3.0, 20, 21) == "loss"

    def test_underdog_loses_but_covers(self):
        # Away +7 loses 24-20 but covers
        assert grade_spread("away", -7.0, 24, 20) == "win"

    def test_exact_spread_is_push(self):
        assert grade_spread("home", -3.0, 23, 20) == "push"
        assert grade_spread("away", -3.0, 23, 20) == "push"

    def test_pick_em_tie_is_push(self):
        assert grade_spread("home", 0.0, 17, 17) == "push"

    def test_wrong_side_is_invalid(self):
        with pytest.raises(InvalidPick):
            grade_spread("over", -3.0, 23, 20)


class TestTotal:
    def test_over_and_under(self):
        assert grade_total("over", 45.5, 24, 20) == "loss"
        assert grade_total("under", 45.5, 24, 20) == "win"
        assert grade_total("over", 42.5, 24, 20) == "win"

    def test_exact_total_is_push(self):
        assert grade_total("over", 44.0, 24, 20) == "push"
        assert grade_total("under", 44.0, 24, 20) == "push"

    def test_wrong_side_is_invalid(self):
        with pytest.raises(InvalidPick):
            grade_total("home", 44.0, 24, 20)


class TestGradePick:
    def test_captured_line_beats_closing_line(self):
        # Captured at -3, closed at -7: 24-20 covers -3 but not -7
        game = make_game(spread=-7.0)
        assert grade_pick(make_pick(line=-3.0), game) == "win"

    def test_closing_line_used_when_nothing_captured(self):
        game = make_game(spread=-7.0)
        assert grade_pick(make_pick(line=None), game) == "loss"

    def test_total_pick(self):
        pick = make_pick("total", "under", line=45.5)
        assert grade_pick(pick, make_game()) == "win"

    def test_grading_is_deterministic(self):
        game = make_game()
        pick = make_pick(line=-3.5)
        assert {grade_pick(pick, game) for _ in range(5)} == {"win"}

    def test_non_final_game_is_incomplete(self):
        with pytest.raises(IncompleteGame):
            grade_pick(make_pick(line=-3.5), make_game(is_final=False))

    @pytest.mark.parametrize(
        "home_score, away_score",
        [(None, 20), (24, None), (-1, 20), ("24", 20), (24.5, 20), (True, 20)],
    )
    def test_malformed_final_score(self, home_score, away_score):
        with pytest.raises(MalformedFinalScore) as exc:
            grade_pick(make_pick(line=-3.5), make_game(home_score, away_score))
        assert exc.value.game_id == 1

    def test_missing_line_is_invalid(self):
        game = make_game(spread=None)
        with pytest.raises(InvalidPick) as exc:
            grade_pick(make_pick(line=None), game)
        assert exc.value.pick_id == 10

    def test_side_mismatch_carries_pick_id(self):
        with pytest.raises(InvalidPick) as exc:
            grade_pick(make_pick("spread", "over", line=-3.0), make_game())
        assert exc.value.pick_id == 10

    def test_unknown_wager_type(self):
        with pytest.raises(InvalidPick):
            grade_pick(make_pick("moneyline", "home", line=-150), make_game())


def test_validate_final_score_accepts_shutout():
    assert validate_final_score(1, 0, 0) == (0, 0)
