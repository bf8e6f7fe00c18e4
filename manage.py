#!/usr/bin/env python3
"""
Parlay Club Management CLI

This script provides command-line grading, rescoring and database management
for the Parlay Club application.
"""

import logging
import os
import threading

import click
from flask.cli import with_appcontext
from flask_migrate import downgrade, migrate, upgrade
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from parlay_club import create_app, db
from parlay_club.models import Game, ParlaySeasonRecord, Pick, User
from parlay_club.models.game import GRADING_DONE
from parlay_club.services.result_reconciler import result_reconciler
from parlay_club.utils.exceptions import ParlayError

app = create_app()


def _default_season(season):
    season = season or Game.get_current_season_year()
    if not season:
        raise click.UsageError("No season given and no games stored")
    return season


@click.group()
def cli():
    """Parlay Club Management CLI"""
    pass


# Grading Commands
@cli.group()
def grade():
    """Pick grading commands"""
    pass


@grade.command("game")
@click.argument("game_id", type=int)
@with_appcontext
def grade_game(game_id):
    """Grade every pick on a final game and rescore the affected weeks"""
    try:
        keys = result_reconciler.grade_game(game_id)
        click.echo(f"✅ Graded game {game_id}: {len(keys)} weekly scores updated")
        for user_id, week in sorted(keys):
            click.echo(f"   user {user_id}, week {week}")
    except ParlayError as e:
        db.session.rollback()
        click.echo(f"❌ {e}")
        logging.error(f"Grading game {game_id} failed: {e}")


@grade.command("pending")
@click.option("--season", type=int, help="Only games from this season")
@with_appcontext
def grade_pending(season):
    """Grade all final games that have not been graded yet"""
    summary = result_reconciler.grade_pending_games(season)
    click.echo(
        f"✅ Graded {summary['games_graded']} games, "
        f"{summary['keys_updated']} weekly scores updated"
    )
    for failure in summary["failures"]:
        click.echo(f"❌ Game {failure['game_id']}: {failure['error']}")


# Recompute Commands
@cli.group()
def recompute():
    """Parlay score recomputation commands"""
    pass


@recompute.command("week")
@click.argument("user_id", type=int)
@click.argument("season", type=int)
@click.argument("week", type=int)
@with_appcontext
def recompute_week(user_id, season, week):
    """Rescore one user's week"""
    try:
        breakdown = result_reconciler.recompute_week(user_id, season, week)
    except ParlayError as e:
        click.echo(f"❌ {e}")
        return

    click.echo(
        f"✅ User {user_id}, {season} week {week}: {breakdown.total_points} points"
        + ("" if breakdown.is_complete else " (pending legs)")
    )
    for label, points in breakdown.bucket_points.items():
        click.echo(f"   {label}: {points}")
    for anomaly in breakdown.anomalies:
        click.echo(f"⚠️  {anomaly}")


@recompute.command("season")
@click.argument("user_id", type=int)
@click.argument("season", type=int)
@with_appcontext
def recompute_season(user_id, season):
    """Rescore every week of one user's season"""
    try:
        record = result_reconciler.recompute_season(user_id, season)
    except ParlayError as e:
        click.echo(f"❌ {e}")
        return

    if record is None:
        click.echo(f"⚠️  User {user_id} has no picks in {season}")
        return
    click.echo(
        f"✅ User {user_id}, {season}: {record.total_points} points "
        f"over {record.weeks_scored} weeks"
    )


@recompute.command("all")
@click.option("--season", type=int, help="Only this season (default: all)")
@click.option("--regrade", is_flag=True, help="Regrade every final game first")
def recompute_all(season, regrade):
    """Rescore every user's weeks; Ctrl-C stops after the current unit"""
    cancel_event = threading.Event()
    summary = {}

    def run():
        with app.app_context():
            summary.update(
                result_reconciler.recompute_all(
                    season=season, regrade=regrade, cancel_event=cancel_event
                )
            )

    worker = threading.Thread(target=run, name="recompute-all")
    worker.start()
    try:
        while worker.is_alive():
            worker.join(0.5)
    except KeyboardInterrupt:
        cancel_event.set()
        click.echo("⏹️  Cancelling after the current unit...")
        worker.join()

    if not summary:
        click.echo("❌ Recompute did not finish, see the logs")
        return

    if regrade:
        click.echo(f"🔁 Regraded {summary['games_regraded']} games")
    click.echo(
        f"{'⚠️  Cancelled' if summary['cancelled'] else '✅ Done'}: "
        f"{summary['completed']}/{summary['units']} weekly scores recomputed"
    )
    for failure in summary["failed"]:
        click.echo(f"❌ {failure}")


# Score Commands
@cli.group()
def scores():
    """Parlay score display commands"""
    pass


@scores.command("show")
@click.argument("user_id", type=int)
@click.option("--season", type=int, help="Season year (default: current season)")
@with_appcontext
def show_scores(user_id, season):
    """Show a user's season total and week scores"""
    season = _default_season(season)
    record = result_reconciler.get_season_record(user_id, season)
    if not record:
        click.echo(f"No parlay record for user {user_id} in {season}")
        return

    pick_record = Pick.get_user_record(user_id, season)
    click.echo(
        f"🏈 User {user_id}, {season}: {record.total_points} points "
        f"(picks {pick_record['display']})"
    )
    for week, score in record.week_scores.items():
        buckets = ", ".join(
            f"{label} {points}" for label, points in score.bucket_points.items()
        )
        flag = "" if score.is_complete else " *"
        click.echo(f"  Week {week:>2}: {score.total_points:>5}{flag}  [{buckets}]")


@scores.command("leaderboard")
@click.option("--season", type=int, help="Season year (default: current season)")
@click.option("--through-week", type=int, help="Cumulative through this week")
@with_appcontext
def show_leaderboard(season, through_week):
    """Show season standings"""
    season = _default_season(season)
    standings = ParlaySeasonRecord.get_leaderboard(season, through_week)
    if not standings:
        click.echo(f"No parlay scores for {season}")
        return

    title = f"🏆 {season} Leaderboard"
    if through_week:
        title += f" through week {through_week}"
    click.echo(title)
    for entry in standings:
        click.echo(
            f"  {entry['rank']:>3}. {entry['display_name']:<24} {entry['total_points']:>6}"
        )


# Database Commands
@cli.group()
def db_cmd():
    """Database commands"""
    pass


@db_cmd.command()
@with_appcontext
def init():
    """Initialize database tables"""
    try:
        db.create_all()
        click.echo("✅ Database tables created successfully!")
    except SQLAlchemyError as e:
        click.echo(f"❌ Error initializing database: {str(e)}")


@db_cmd.command()
@with_appcontext
def reset():
    """⚠️  DANGER: Drop and recreate all tables"""
    if not click.confirm("This will DELETE ALL DATA. Are you sure?"):
        click.echo("Cancelled.")
        return

    try:
        db.drop_all()
        db.create_all()
        click.echo("✅ Database reset successfully!")
    except SQLAlchemyError as e:
        click.echo(f"❌ Error resetting database: {str(e)}")


# Database Migration Commands
@cli.group()
def db_migrate():
    """Database migration commands"""
    pass


@db_migrate.command()
@with_appcontext
def init_migrations():
    """Initialize migrations repository"""
    if os.path.exists("migrations"):
        click.echo("❌ Migrations directory already exists!")
        return

    from flask_migrate import init as flask_migrate_init

    flask_migrate_init()
    click.echo("✅ Migrations repository initialized!")


@db_migrate.command()
@click.option("-m", "--message", required=True, help="Migration message")
@with_appcontext
def create_migration(message):
    """Create a new migration"""
    migrate(message=message)
    click.echo(f"✅ Migration created: {message}")


@db_migrate.command()
@click.option("--revision", default="head", help="Revision to upgrade to")
@with_appcontext
def apply_migrations(revision):
    """Apply migrations to database"""
    upgrade(revision=revision)
    click.echo(f"✅ Migrations applied to {revision}")


@db_migrate.command()
@click.option("--revision", required=True, help="Revision to downgrade to")
@with_appcontext
def rollback_migration(revision):
    """Rollback migrations to specific revision"""
    downgrade(revision=revision)
    click.echo(f"✅ Rolled back to {revision}")


# Info Commands
@cli.command()
@with_appcontext
def status():
    """Show application status"""
    click.echo("🏈 Parlay Club Status")
    click.echo("=" * 40)

    # Database connection
    try:
        db.session.execute(text("SELECT 1"))
        click.echo("✅ Database: Connected")
    except SQLAlchemyError as e:
        click.echo(f"❌ Database: Error - {str(e)}")
        return

    season = Game.get_current_season_year()
    if season:
        click.echo(f"✅ Current Season: {season}")
    else:
        click.echo("⚠️  Current Season: no games stored")

    click.echo(f"👥 Users: {User.query.count()}")

    if season:
        game_count = Game.query.filter_by(season=season).count()
        final_count = Game.query.filter_by(season=season, is_final=True).count()
        graded_count = Game.query.filter_by(
            season=season, grading_state=GRADING_DONE
        ).count()
        click.echo(f"🏈 Games: {final_count}/{game_count} final, {graded_count} graded")
        click.echo(
            f"🎯 Pending picks: "
            f"{Pick.query.filter_by(season=season, result='pending').count()}"
        )
        click.echo(
            f"📊 Season records: "
            f"{ParlaySeasonRecord.query.filter_by(season=season).count()}"
        )


if __name__ == "__main__":
    with app.app_context():
        cli()
