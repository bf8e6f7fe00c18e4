"""Grading, rescoring and recomputation through the result reconciler"""

import threading

import pytest
from conftest import SUNDAY_KICKOFF, utc

from parlay_club import db
from parlay_club.models import Game, ParlaySeasonRecord, ParlayWeekScore, Pick
from parlay_club.models.game import GRADING_AWAITING, GRADING_DONE, GRADING_PENDING
from parlay_club.services.result_reconciler import result_reconciler
from parlay_club.utils.exceptions import (
    GameNotFound,
    IncompleteGame,
    MalformedFinalScore,
    PersistenceFailure,
)


class CancelAfter:
    """Event stand-in that reports cancelled after `checks` checks"""

    def __init__(self, checks):
        self.checks = checks
        self.calls = 0

    def is_set(self):
        self.calls += 1
        return self.calls > self.checks


def week_total(user, week, season=2024):
    score = result_reconciler.get_week_score(user.id, season, week)
    return score.total_points if score else None


def assert_season_invariant(user, season=2024):
    record = result_reconciler.get_season_record(user.id, season)
    scores = ParlayWeekScore.query.filter_by(user_id=user.id, season=season).all()
    assert record.total_points == sum(score.total_points for score in scores)
    assert record.weeks_scored == len(scores)


class TestGameCompletion:
    def test_final_score_grades_every_pick(self, league):
        keys = result_reconciler.handle_game_final(league.thursday.id, 27, 20)

        assert keys == {(league.alice.id, 1), (league.bob.id, 1)}
        assert league.picks.alice_thu_spread.result == "win"
        assert league.picks.alice_thu_total.result == "win"
        assert league.picks.bob_thu_spread.result == "loss"
        assert league.picks.alice_fri_spread.result == "pending"

        game = db.session.get(Game, league.thursday.id)
        assert game.grading_state == GRADING_DONE
        assert game.graded_at is not None

    def test_week_and_season_scores(self, graded_league):
        alice = graded_league.alice

        week_one = result_reconciler.get_week_score(alice.id, 2024, 1)
        assert week_one.bucket_points == {"Thursday": 3, "Friday": 0}
        assert week_one.is_complete
        assert week_total(alice, 2) == 3

        record = result_reconciler.get_season_record(alice.id, 2024)
        assert record.total_points == 6
        assert record.weeks_scored == 2
        assert week_total(graded_league.bob, 1) == 0
        assert_season_invariant(alice)
        assert_season_invariant(graded_league.bob)

    def test_closing_lines_are_stored(self, league):
        result_reconciler.handle_game_final(
            league.thursday.id, 27, 20, spread=-4.0, over_under=47.0
        )
        game = db.session.get(Game, league.thursday.id)
        assert (game.spread, game.over_under) == (-4.0, 47.0)
        # Captured lines still decide the picks
        assert league.picks.alice_thu_total.result == "win"

    def test_week_stays_incomplete_until_every_game_is_final(self, league):
        result_reconciler.handle_game_final(league.thursday.id, 27, 20)

        score = result_reconciler.get_week_score(league.alice.id, 2024, 1)
        assert score.bucket_points == {"Thursday": 3, "Friday": 0}
        assert not score.is_complete

    def test_grading_twice_is_idempotent(self, graded_league):
        alice = graded_league.alice
        before = result_reconciler.get_week_score(alice.id, 2024, 1).to_dict()
        results_before = {pick.id: pick.result for pick in Pick.query.all()}

        keys = result_reconciler.grade_game(graded_league.thursday.id)

        after = result_reconciler.get_week_score(alice.id, 2024, 1).to_dict()
        before.pop("updated_at")
        after.pop("updated_at")
        assert keys == {(alice.id, 1), (graded_league.bob.id, 1)}
        assert after == before
        assert {pick.id: pick.result for pick in Pick.query.all()} == results_before
        assert result_reconciler.get_season_record(alice.id, 2024).total_points == 6

    def test_repeated_final_event_is_a_no_op(self, graded_league):
        keys = result_reconciler.handle_game_final(graded_league.thursday.id, 27, 20)
        assert keys == set()

    def test_score_correction_regrades(self, graded_league):
        alice = graded_league.alice

        keys = result_reconciler.handle_game_final(graded_league.thursday.id, 20, 20)

        assert (alice.id, 1) in keys
        assert graded_league.picks.alice_thu_spread.result == "loss"
        assert graded_league.picks.alice_thu_total.result == "loss"
        assert graded_league.picks.bob_thu_spread.result == "win"
        assert week_total(alice, 1) == 0
        assert result_reconciler.get_season_record(alice.id, 2024).total_points == 3
        assert db.session.get(Game, graded_league.thursday.id).grading_state == GRADING_DONE
        assert_season_invariant(alice)


class TestGradingErrors:
    def test_unknown_game(self, app):
        with pytest.raises(GameNotFound):
            result_reconciler.grade_game(404)
        with pytest.raises(GameNotFound):
            result_reconciler.handle_game_final(404, 10, 7)

    def test_grading_before_final(self, league):
        with pytest.raises(IncompleteGame):
            result_reconciler.grade_game(league.thursday.id)
        assert league.picks.alice_thu_spread.result == "pending"

    def test_malformed_final_score_changes_nothing(self, league):
        with pytest.raises(MalformedFinalScore):
            result_reconciler.handle_game_final(league.thursday.id, None, 20)

        game = db.session.get(Game, league.thursday.id)
        assert not game.is_final
        assert game.grading_state == GRADING_AWAITING
        assert game.home_score is None
        assert league.picks.alice_thu_spread.result == "pending"
        assert result_reconciler.get_week_score(league.alice.id, 2024, 1) is None

    def test_invalid_pick_is_isolated(self, league, make_user, make_pick):
        carol = make_user("carol")
        bad_pick = make_pick(carol, league.thursday, "spread", "over", line=-3.0)
        good_pick = make_pick(carol, league.thursday, "total", "over")

        result_reconciler.handle_game_final(league.thursday.id, 27, 20)

        assert bad_pick.result == "pending"
        assert good_pick.result == "win"
        assert league.picks.alice_thu_spread.result == "win"
        assert not result_reconciler.get_week_score(carol.id, 2024, 1).is_complete

    def test_orphaned_pick_is_excluded(self, graded_league):
        alice = graded_league.alice
        orphan = Pick(
            user_id=alice.id,
            game_id=9999,
            season=2024,
            week=1,
            wager_type="spread",
            side="home",
            line=-3.0,
            result="loss",
        )
        db.session.add(orphan)
        db.session.commit()

        breakdown = result_reconciler.recompute_week(alice.id, 2024, 1)

        assert breakdown.total_points == 3
        assert [anomaly.game_id for anomaly in breakdown.anomalies] == [9999]

    def test_rescore_failure_reopens_grading(self, league, monkeypatch):
        game_id = league.thursday.id

        def storage_down(user_id, season, week, invalidate=True):
            raise PersistenceFailure("rescore week", OSError("disk full"))

        monkeypatch.setattr(result_reconciler, "recompute_week", storage_down)

        with pytest.raises(PersistenceFailure):
            result_reconciler.handle_game_final(game_id, 27, 20)

        db.session.expire_all()
        game = db.session.get(Game, game_id)
        assert game.grading_state == GRADING_PENDING
        assert game.graded_at is None
        assert [g.id for g in Game.get_games_awaiting_grading(2024)] == [game_id]

        monkeypatch.undo()
        summary = result_reconciler.grade_pending_games(season=2024)

        assert summary["games_graded"] == 1
        assert db.session.get(Game, game_id).grading_state == GRADING_DONE
        assert week_total(league.alice, 1) == 3
        assert_season_invariant(league.alice)

    def test_pending_sweep_skips_malformed_games(self, league):
        league.thursday.is_final = True
        league.thursday.home_score = 27
        league.thursday.away_score = 20
        league.thursday.grading_state = GRADING_PENDING
        league.friday.is_final = True
        league.friday.home_score = 34
        league.friday.away_score = None
        league.friday.grading_state = GRADING_PENDING
        db.session.commit()

        summary = result_reconciler.grade_pending_games(season=2024)

        assert summary["games_graded"] == 1
        assert summary["keys_updated"] == 2
        assert [failure["game_id"] for failure in summary["failures"]] == [league.friday.id]
        assert db.session.get(Game, league.friday.id).grading_state == GRADING_PENDING
        assert week_total(league.alice, 1) == 3


class TestRecompute:
    def test_recompute_week_rebuilds_from_picks(self, graded_league):
        alice = graded_league.alice
        ParlayWeekScore.query.filter_by(user_id=alice.id).delete()
        db.session.commit()

        breakdown = result_reconciler.recompute_week(alice.id, 2024, 1)

        assert breakdown.total_points == 3
        assert week_total(alice, 1) == 3
        assert result_reconciler.get_season_record(alice.id, 2024).total_points == 3

    def test_week_without_picks_loses_its_score(self, graded_league):
        alice = graded_league.alice
        Pick.query.filter_by(user_id=alice.id, week=2).delete()
        db.session.commit()

        result_reconciler.recompute_week(alice.id, 2024, 2)

        assert result_reconciler.get_week_score(alice.id, 2024, 2) is None
        record = result_reconciler.get_season_record(alice.id, 2024)
        assert record.total_points == 3
        assert record.weeks_scored == 1

    def test_recompute_season(self, graded_league):
        alice = graded_league.alice
        record = ParlaySeasonRecord.get_for_key(alice.id, 2024)
        record.total_points = 999
        db.session.commit()

        record = result_reconciler.recompute_season(alice.id, 2024)

        assert record.total_points == 6
        assert set(record.week_scores) == {1, 2}
        assert_season_invariant(alice)

    def test_recompute_all(self, graded_league):
        summary = result_reconciler.recompute_all(season=2024)

        assert summary["units"] == 3
        assert summary["completed"] == 3
        assert summary["failed"] == []
        assert not summary["cancelled"]
        assert result_reconciler.get_season_record(graded_league.alice.id, 2024).total_points == 6

    def test_recompute_all_with_regrade_repairs_results(self, graded_league):
        pick = graded_league.picks.alice_thu_spread
        pick.result = "loss"
        db.session.commit()
        result_reconciler.recompute_week(graded_league.alice.id, 2024, 1)
        assert week_total(graded_league.alice, 1) == 0

        summary = result_reconciler.recompute_all(season=2024, regrade=True)

        assert summary["games_regraded"] == 3
        assert db.session.get(Pick, pick.id).result == "win"
        assert week_total(graded_league.alice, 1) == 3
        assert_season_invariant(graded_league.alice)

    def test_cancel_before_start(self, graded_league):
        cancel_event = threading.Event()
        cancel_event.set()

        summary = result_reconciler.recompute_all(cancel_event=cancel_event)

        assert summary["cancelled"]
        assert summary["completed"] == 0

    def test_cancel_between_units_keeps_finished_weeks(self, graded_league):
        alice = graded_league.alice
        ParlayWeekScore.query.delete()
        db.session.commit()

        summary = result_reconciler.recompute_all(cancel_event=CancelAfter(1))

        assert summary["cancelled"]
        assert summary["completed"] == 1
        # Units run in (user_id, season, week) order: alice week 1 first
        assert week_total(alice, 1) == 3
        assert week_total(alice, 2) is None
        assert_season_invariant(alice)


def test_modern_season_scores_sunday_and_monday_separately(
    make_user, make_game, make_pick
):
    dana = make_user("dana")
    sunday = make_game(utc(2025, 9, 7, 17, 0), season=2025)
    monday = make_game(utc(2025, 9, 9, 0, 15), season=2025, home_team="DAL", away_team="NYG")
    for game in (sunday, monday):
        make_pick(dana, game, "spread", "home")
        make_pick(dana, game, "total", "over")

    result_reconciler.handle_game_final(sunday.id, 30, 20)
    result_reconciler.handle_game_final(monday.id, 30, 20)

    score = result_reconciler.get_week_score(dana.id, 2025, 1)
    assert score.bucket_points == {"2025-09-07": 3, "2025-09-08": 3}
    assert score.total_points == 6


def test_legacy_season_weekend_bucket(make_user, make_game, make_pick):
    erin = make_user("erin")
    game = make_game(SUNDAY_KICKOFF)
    make_pick(erin, game, "spread", "home")
    make_pick(erin, game, "total", "under")

    result_reconciler.handle_game_final(game.id, 20, 10)

    assert result_reconciler.get_week_score(erin.id, 2024, 1).bucket_points == {
        "SundayMonday": 3
    }
