"""
Parlay Club Background Grading Scheduler

This module runs the grading sweep and the nightly recompute using APScheduler.
The sweep picks up any final game whose picks have not been graded, so a game
whose grading failed is retried on the next pass.
"""

import atexit
import logging
from datetime import datetime, timezone

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from parlay_club import db
from parlay_club.models import Game
from parlay_club.services.result_reconciler import result_reconciler

logger = logging.getLogger(__name__)


def _empty_stats():
    return {
        "last_run": None,
        "total_runs": 0,
        "successful_runs": 0,
        "failed_runs": 0,
        "last_error": None,
        "games_graded": 0,
        "weeks_rescored": 0,
    }


class SchedulerService:
    """Manages background grading and recompute jobs"""

    def __init__(self, app=None):
        self.scheduler = None
        self.app = app
        self.reconciler = result_reconciler
        self.is_running = False
        self.sweep_stats = _empty_stats()

        if app:
            self.init_app(app)

    def init_app(self, app):
        """Initialize scheduler with Flask app"""
        self.app = app
        self.scheduler = BackgroundScheduler(daemon=True, timezone="UTC")

        # Register shutdown
        atexit.register(self.shutdown)

        # Start scheduler if enabled
        if app.config.get("SCHEDULER_ENABLED", True):
            self.start()

    def start(self):
        """Start the background scheduler"""
        if self.is_running:
            return

        try:
            # Clear any existing jobs
            self.scheduler.remove_all_jobs()

            self._add_core_jobs()

            self.scheduler.start()
            self.is_running = True

            logger.info("Scheduler started successfully")

        except Exception as e:
            logger.error(f"Failed to start scheduler: {e}")
            raise

    def stop(self):
        """Stop the background scheduler"""
        if not self.is_running:
            return

        try:
            self.scheduler.shutdown(wait=False)
            self.is_running = False
            logger.info("Scheduler stopped")

        except Exception as e:
            logger.error(f"Error stopping scheduler: {e}")

    def shutdown(self):
        """Graceful shutdown"""
        self.stop()

    def _add_core_jobs(self):
        """Add core scheduled jobs"""
        sweep_seconds = self.app.config.get("GRADING_SWEEP_SECONDS", 120)

        # Grade any final game still waiting on its picks
        self.scheduler.add_job(
            func=self._grading_sweep,
            trigger=IntervalTrigger(seconds=sweep_seconds),
            id="grading_sweep",
            name="Grade Final Games",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=60,
        )

        # Nightly full recompute of the current season (3 AM UTC)
        if self.app.config.get("NIGHTLY_RECOMPUTE", True):
            self.scheduler.add_job(
                func=self._nightly_recompute,
                trigger=CronTrigger(hour=3, minute=0),
                id="nightly_recompute",
                name="Nightly Season Recompute",
                max_instances=1,
                coalesce=True,
                misfire_grace_time=3600,
            )

        logger.info(f"Core scheduled jobs added (sweep every {sweep_seconds}s)")

    def _grading_sweep(self):
        """Grade every final game whose picks are still pending"""
        with self.app.app_context():
            try:
                summary = self.reconciler.grade_pending_games()

                if summary["games_graded"] or summary["failures"]:
                    logger.info(
                        f"Grading sweep: {summary['games_graded']} games graded, "
                        f"{summary['keys_updated']} weeks rescored, "
                        f"{len(summary['failures'])} failed"
                    )

                self._update_stats(
                    not summary["failures"],
                    games_graded=summary["games_graded"],
                    weeks_rescored=summary["keys_updated"],
                )
                if summary["failures"]:
                    self.sweep_stats["last_error"] = summary["failures"][-1]["error"]

            except Exception as e:
                db.session.rollback()
                self._update_stats(False)
                self.sweep_stats["last_error"] = str(e)
                logger.error(f"Error in grading sweep: {e}", exc_info=True)

    def _nightly_recompute(self):
        """Rescore the current season from scratch"""
        with self.app.app_context():
            try:
                season = Game.get_current_season_year()
                if not season:
                    return

                logger.info(f"Running nightly recompute for season {season}...")
                summary = self.reconciler.recompute_all(season=season)

                self._update_stats(
                    not summary["failed"], weeks_rescored=summary["completed"]
                )
                if summary["failed"]:
                    self.sweep_stats["last_error"] = summary["failed"][-1]["error"]
                    logger.warning(
                        f"Nightly recompute finished with {len(summary['failed'])} failures"
                    )

            except Exception as e:
                db.session.rollback()
                self._update_stats(False)
                self.sweep_stats["last_error"] = str(e)
                logger.error(f"Error in nightly recompute: {e}", exc_info=True)

    def _update_stats(self, success, games_graded=0, weeks_rescored=0):
        """Update sweep statistics"""
        self.sweep_stats["last_run"] = datetime.now(timezone.utc)
        self.sweep_stats["total_runs"] += 1

        if success:
            self.sweep_stats["successful_runs"] += 1
            self.sweep_stats["last_error"] = None
        else:
            self.sweep_stats["failed_runs"] += 1

        self.sweep_stats["games_graded"] += games_graded
        self.sweep_stats["weeks_rescored"] += weeks_rescored

        # Keep the counters bounded for long-running processes
        if self.sweep_stats["total_runs"] > 10000:
            last_run = self.sweep_stats["last_run"]
            self.sweep_stats = _empty_stats()
            self.sweep_stats["last_run"] = last_run

    def get_status(self):
        """Get scheduler status information"""
        jobs = []
        if self.scheduler:
            for job in self.scheduler.get_jobs():
                next_run = job.next_run_time
                jobs.append(
                    {
                        "id": job.id,
                        "name": job.name,
                        "next_run": next_run.isoformat() if next_run else None,
                        "trigger": str(job.trigger),
                    }
                )

        stats = dict(self.sweep_stats)
        if stats["last_run"]:
            stats["last_run"] = stats["last_run"].isoformat()

        return {"is_running": self.is_running, "jobs": jobs, "stats": stats}


# Global scheduler instance
scheduler_service = SchedulerService()
