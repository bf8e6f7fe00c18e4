from flask import jsonify, request

from parlay_club import db
from parlay_club.models import Game, ParlaySeasonRecord, ParlayWeekScore, Pick, User
from parlay_club.routes.api import bp
from parlay_club.utils.cache_utils import cached_route, get_cache_stats
from parlay_club.utils.exceptions import GameNotFound

MAX_WEEK_SCORES = 100


@bp.route("/parlay/<int:season>/users/<int:user_id>")
@cached_route(timeout=300, key_prefix="season_record")
def season_record(season, user_id):
    """A user's parlay season with every scored week"""
    record = ParlaySeasonRecord.get_for_key(user_id, season)
    if not record:
        return jsonify({"error": f"No parlay record for user {user_id} in {season}"}), 404

    data = record.to_dict(include_weeks=True)
    data["pick_record"] = Pick.get_user_record(user_id, season)
    names = User.get_display_names([user_id])
    data["display_name"] = names.get(user_id, f"User {user_id}")
    return data


@bp.route("/parlay/<int:season>/users/<int:user_id>/weeks/<int:week>")
@cached_route(timeout=300, key_prefix="week_score")
def week_score(season, user_id, week):
    """One user's week score with its bucket breakdown"""
    score = ParlayWeekScore.get_for_key(user_id, season, week)
    if not score:
        return (
            jsonify({"error": f"No parlay score for user {user_id}, week {week}"}),
            404,
        )

    data = score.to_dict()
    data["pick_record"] = Pick.get_user_record(user_id, season, week)
    return data


@bp.route("/parlay/<int:season>/leaderboard")
@cached_route(timeout=300, key_prefix="leaderboard")
def leaderboard(season):
    """Season standings, optionally cumulative through a given week"""
    through_week = request.args.get("through_week", type=int)
    return {
        "season": season,
        "through_week": through_week,
        "leaderboard": ParlaySeasonRecord.get_leaderboard(season, through_week),
    }


@bp.route("/parlay/<int:season>/weeks/<int:week>/scores")
@cached_route(timeout=300, key_prefix="week_scores")
def week_scores(season, week):
    """Top week scores across all users"""
    limit = request.args.get("limit", default=25, type=int)
    limit = max(1, min(limit, MAX_WEEK_SCORES))

    scores = ParlayWeekScore.get_week_scores(season, week, limit=limit)
    names = User.get_display_names([score.user_id for score in scores])

    return {
        "season": season,
        "week": week,
        "scores": [
            dict(
                score.to_dict(),
                display_name=names.get(score.user_id, f"User {score.user_id}"),
            )
            for score in scores
        ],
    }


@bp.route("/games/<int:game_id>/picks/summary")
@cached_route(timeout=300, key_prefix="game_picks")
def game_pick_summary(game_id):
    """Pick counts and results for one game"""
    game = db.session.get(Game, game_id)
    if not game:
        raise GameNotFound(game_id)

    return {"game": game.to_dict(), "picks": Pick.get_game_summary(game_id)}


@bp.route("/scheduler/status")
def scheduler_status():
    """Background job status"""
    from parlay_club.services.scheduler_service import scheduler_service

    status = scheduler_service.get_status()
    status["cache"] = get_cache_stats()
    return jsonify(status)
