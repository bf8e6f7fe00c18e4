"""
Result Reconciler for Parlay Club

Drives a game from completion to stored parlay scores:

    awaiting_completion -> final_pending_grading -> graded

Every pick on a final game is graded, then each touched
(user, season, week) is rescored from its full pick set and the owning
season record is recomputed from its week scores. Rescoring never patches
totals, so running any step twice leaves the same stored state.
"""

from concurrent.futures import ThreadPoolExecutor

from flask import current_app

from parlay_club import db
from parlay_club.models import Game, ParlaySeasonRecord, ParlayWeekScore, Pick
from parlay_club.models.game import GRADING_PENDING
from parlay_club.utils.cache_utils import invalidate_model_cache
from parlay_club.utils.exceptions import (
    GameNotFound,
    IncompleteGame,
    InvalidPick,
    ParlayError,
    PersistenceFailure,
)
from parlay_club.utils.grading import grade_pick, validate_final_score
from parlay_club.utils.locks import season_locks, week_locks
from parlay_club.utils.logging_config import ContextualLogger
from parlay_club.utils.persistence import with_storage_retry
from parlay_club.utils.scoring import ScoringEngine

UNIT_DONE = "done"
UNIT_FAILED = "failed"
UNIT_CANCELLED = "cancelled"


class ResultReconciler:
    """Grades finished games and keeps week scores and season totals in sync"""

    def __init__(self, week_lock_table=week_locks, season_lock_table=season_locks):
        self.week_locks = week_lock_table
        self.season_locks = season_lock_table
        self.log = ContextualLogger(__name__)

    def _engine(self):
        return ScoringEngine.from_config(current_app.config)

    # Game completion

    def handle_game_final(
        self, game_id, home_score, away_score, spread=None, over_under=None
    ):
        """
        Score feed callback for a game reported final.

        A malformed score is rejected before anything is stored. A score
        identical to the one already graded is a no-op.

        Returns:
            set of (user_id, week) whose week scores were recomputed
        """
        log = self.log.bind(game_id=game_id)

        if db.session.get(Game, game_id) is None:
            raise GameNotFound(game_id)

        validate_final_score(game_id, home_score, away_score)

        needs_grading = self._store_final_score(
            game_id, home_score, away_score, spread, over_under
        )
        invalidate_model_cache("Game")

        if not needs_grading:
            log.info(f"Final score {away_score}-{home_score} already graded")
            return set()

        log.info(f"Game final {away_score}-{home_score}, grading picks")
        return self.grade_game(game_id)

    @with_storage_retry("store final score")
    def _store_final_score(self, game_id, home_score, away_score, spread, over_under):
        game = db.session.get(Game, game_id)
        game.update_lines(spread, over_under)
        needs_grading = game.update_score(home_score, away_score, is_final=True)
        db.session.commit()
        return needs_grading

    def grade_game(self, game_id):
        """
        Grade every pick on a final game and rescore the affected weeks.

        Raises:
            GameNotFound: unknown game id
            IncompleteGame: the game is not final
            MalformedFinalScore: the stored final score is unusable
            PersistenceFailure: storage retries exhausted

        Returns:
            set of (user_id, week) whose week scores were recomputed
        """
        game = db.session.get(Game, game_id)
        if game is None:
            raise GameNotFound(game_id)
        if not game.is_final:
            raise IncompleteGame(game_id)
        validate_final_score(game_id, game.home_score, game.away_score)

        touched, changed, invalid = self._grade_picks(game_id)

        self.log.bind(game_id=game_id).info(
            f"Graded {len(touched)} weekly pick sets: {changed} results changed, "
            f"{invalid} invalid picks left pending"
        )

        try:
            for user_id, season, week in sorted(touched):
                self.recompute_week(user_id, season, week, invalidate=False)
        except PersistenceFailure:
            # Leave the game for the next grading sweep
            self._reopen_grading(game_id)
            raise
        finally:
            invalidate_model_cache("ParlayWeekScore")

        return {(user_id, week) for user_id, _, week in touched}

    @with_storage_retry("reopen grading")
    def _reopen_grading(self, game_id):
        game = db.session.get(Game, game_id)
        game.grading_state = GRADING_PENDING
        game.graded_at = None
        db.session.commit()

    @with_storage_retry("grade picks")
    def _grade_picks(self, game_id):
        """Grade and store every pick on the game plus its graded state, atomically"""
        game = db.session.get(Game, game_id)
        touched = set()
        changed = 0
        invalid = 0

        for pick in Pick.get_picks_for_game(game_id):
            touched.add((pick.user_id, pick.season, pick.week))
            try:
                result = grade_pick(pick, game)
            except InvalidPick as e:
                invalid += 1
                self.log.bind(game_id=game_id, user_id=pick.user_id).warning(
                    f"Skipping ungradable pick: {e}"
                )
                continue

            if pick.apply_result(result):
                changed += 1

        game.mark_graded()
        db.session.commit()
        return touched, changed, invalid

    # Rescoring

    def recompute_week(self, user_id, season, week, invalidate=True):
        """
        Rescore one user's week from its full pick set and update the season total.

        Returns:
            WeekScoreBreakdown
        """
        with self.week_locks.hold((user_id, season, week)):
            breakdown = self._rescore_week(user_id, season, week)

        if invalidate:
            invalidate_model_cache("ParlayWeekScore")
        return breakdown

    @with_storage_retry("rescore week")
    def _rescore_week(self, user_id, season, week):
        log = self.log.bind(user_id=user_id, season=season, week=week)

        picks = Pick.get_weekly_pick_set(user_id, season, week)
        games = Game.get_games_by_ids([pick.game_id for pick in picks])
        breakdown = self._engine().score_week(picks, games, season, week, user_id)

        with self.season_locks.hold((user_id, season)):
            existing = ParlayWeekScore.get_for_key(user_id, season, week)
            if picks:
                ParlayWeekScore.upsert(user_id, season, week, breakdown)
            elif existing is not None:
                db.session.delete(existing)
            db.session.flush()

            if picks or existing is not None:
                record = ParlaySeasonRecord.get_or_create(user_id, season)
            else:
                record = ParlaySeasonRecord.get_for_key(user_id, season)
            if record is not None:
                record.recalculate_totals()

            db.session.commit()

        log.debug(
            f"Week scored {breakdown.total_points} points "
            f"({'complete' if breakdown.is_complete else 'pending legs'})"
        )
        return breakdown

    def recompute_season(self, user_id, season):
        """Rescore every week the user has picks or a stored score in"""
        weeks = {week for _, _, week in Pick.get_scoring_keys(season, user_id)}
        weeks.update(
            score.week
            for score in ParlayWeekScore.query.filter_by(user_id=user_id, season=season)
        )

        for week in sorted(weeks):
            self.recompute_week(user_id, season, week, invalidate=False)

        invalidate_model_cache("ParlayWeekScore")
        self.log.bind(user_id=user_id, season=season).info(
            f"Season recomputed across {len(weeks)} weeks"
        )
        return ParlaySeasonRecord.get_for_key(user_id, season)

    def recompute_all(self, season=None, regrade=False, cancel_event=None):
        """
        Rescore every (user, season, week), optionally regrading final games first.

        Each unit commits on its own; setting cancel_event stops the batch
        between units and leaves everything already done in place.

        Returns:
            summary dict
        """
        summary = {
            "season": season,
            "games_regraded": 0,
            "units": 0,
            "completed": 0,
            "failed": [],
            "cancelled": False,
        }

        if regrade:
            for game in self._final_games(season):
                if cancel_event is not None and cancel_event.is_set():
                    summary["cancelled"] = True
                    return self._finish_batch(summary)
                try:
                    validate_final_score(game.id, game.home_score, game.away_score)
                    self._grade_picks(game.id)
                    summary["games_regraded"] += 1
                except ParlayError as e:
                    self.log.bind(game_id=game.id).error(f"Regrade failed: {e}")
                    summary["failed"].append({"game_id": game.id, "error": str(e)})

        keys = set(Pick.get_scoring_keys(season))
        score_query = db.session.query(
            ParlayWeekScore.user_id, ParlayWeekScore.season, ParlayWeekScore.week
        )
        if season is not None:
            score_query = score_query.filter(ParlayWeekScore.season == season)
        keys.update((row[0], row[1], row[2]) for row in score_query.all())

        units = sorted(keys)
        summary["units"] = len(units)

        workers = current_app.config.get("RESCORE_WORKERS", 1)
        if workers > 1 and len(units) > 1:
            app = current_app._get_current_object()
            with ThreadPoolExecutor(max_workers=workers) as executor:
                outcomes = list(
                    executor.map(
                        lambda key: self._run_unit_in_context(app, key, cancel_event),
                        units,
                    )
                )
            db.session.expire_all()
        else:
            outcomes = []
            for key in units:
                outcome = self._run_unit(key, cancel_event)
                outcomes.append(outcome)
                if outcome[1] == UNIT_CANCELLED:
                    break

        for key, status, error in outcomes:
            if status == UNIT_DONE:
                summary["completed"] += 1
            elif status == UNIT_CANCELLED:
                summary["cancelled"] = True
            else:
                user_id, key_season, week = key
                summary["failed"].append(
                    {"user_id": user_id, "season": key_season, "week": week, "error": error}
                )

        return self._finish_batch(summary)

    def _final_games(self, season):
        query = Game.query.filter(Game.is_final.is_(True))
        if season is not None:
            query = query.filter(Game.season == season)
        return query.order_by(Game.kickoff).all()

    def _run_unit(self, key, cancel_event):
        if cancel_event is not None and cancel_event.is_set():
            return key, UNIT_CANCELLED, None
        try:
            self.recompute_week(*key, invalidate=False)
            return key, UNIT_DONE, None
        except ParlayError as e:
            user_id, season, week = key
            self.log.bind(user_id=user_id, season=season, week=week).error(
                f"Recompute failed: {e}"
            )
            return key, UNIT_FAILED, str(e)

    def _run_unit_in_context(self, app, key, cancel_event):
        with app.app_context():
            return self._run_unit(key, cancel_event)

    def _finish_batch(self, summary):
        invalidate_model_cache("ParlayWeekScore")
        self.log.info(
            f"Batch recompute: {summary['completed']}/{summary['units']} units, "
            f"{len(summary['failed'])} failed"
            + (", cancelled" if summary["cancelled"] else "")
        )
        return summary

    def grade_pending_games(self, season=None):
        """
        Grade every final game that has not been graded yet.

        One bad game is logged and does not stop the sweep.
        """
        summary = {"games_graded": 0, "keys_updated": 0, "failures": []}

        for game in Game.get_games_awaiting_grading(season):
            try:
                summary["keys_updated"] += len(self.grade_game(game.id))
                summary["games_graded"] += 1
            except ParlayError as e:
                db.session.rollback()
                self.log.bind(game_id=game.id).error(f"Grading failed: {e}")
                summary["failures"].append({"game_id": game.id, "error": str(e)})

        return summary

    # Read accessors

    def get_week_score(self, user_id, season, week):
        return ParlayWeekScore.get_for_key(user_id, season, week)

    def get_season_record(self, user_id, season):
        return ParlaySeasonRecord.get_for_key(user_id, season)


# Global reconciler instance
result_reconciler = ResultReconciler()
