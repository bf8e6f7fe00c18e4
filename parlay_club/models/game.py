import logging
from datetime import datetime, timezone

from flask import current_app, has_app_context
from sqlalchemy.orm import validates

from parlay_club import db

GRADING_AWAITING = "awaiting_completion"
GRADING_PENDING = "final_pending_grading"
GRADING_DONE = "graded"

GRADING_STATES = (GRADING_AWAITING, GRADING_PENDING, GRADING_DONE)

logger = logging.getLogger(__name__)


class Game(db.Model):
    __tablename__ = "games"

    id = db.Column(db.Integer, primary_key=True)

    # Game identification
    season = db.Column(db.Integer, nullable=False)  # season year
    week = db.Column(db.Integer, nullable=False)

    # Teams (abbreviations as supplied by the score feed)
    home_team = db.Column(db.String(10), nullable=False)
    away_team = db.Column(db.String(10), nullable=False)

    # Game timing
    kickoff = db.Column(db.DateTime(timezone=True), nullable=False)

    # Scores
    home_score = db.Column(db.Integer)
    away_score = db.Column(db.Integer)

    # Game status
    is_final = db.Column(db.Boolean, default=False, nullable=False)
    grading_state = db.Column(
        db.String(32), default=GRADING_AWAITING, nullable=False
    )
    graded_at = db.Column(db.DateTime(timezone=True))

    # External IDs for API integration
    espn_id = db.Column(db.String(50), unique=True, index=True)

    # Closing lines
    spread = db.Column(db.Float)  # Point spread (negative = home team favored)
    over_under = db.Column(db.Float)  # Total points over/under

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Indexes
    __table_args__ = (
        db.Index("idx_game_season_week", "season", "week"),
        db.Index("idx_game_kickoff", "kickoff"),
        db.Index("idx_game_grading", "is_final", "grading_state"),
        db.CheckConstraint("home_team != away_team", name="different_teams"),
    )

    def __repr__(self):
        return f"<Game {self.away_team} @ {self.home_team} {self.season} Week {self.week}>"

    @validates("kickoff", "graded_at")
    def validate_utc(self, key, value):
        """Store instants as UTC; SQLite drops the offset on write"""
        from parlay_club.utils.timezone_utils import ensure_aware

        if value is None:
            return None
        return ensure_aware(value).astimezone(timezone.utc)

    @property
    def total_score(self):
        """Get total combined score"""
        if self.home_score is None or self.away_score is None:
            return None
        return self.home_score + self.away_score

    @property
    def status(self):
        """Get game status as string"""
        if self.is_final:
            return "completed"

        if self.has_started():
            return "in_progress"
        return "scheduled"

    @property
    def is_graded(self):
        return self.grading_state == GRADING_DONE

    @property
    def kickoff_utc(self):
        """Kickoff as an aware UTC datetime (SQLite hands it back naive)"""
        from parlay_club.utils.timezone_utils import ensure_aware

        return ensure_aware(self.kickoff)

    def format_kickoff_local(self, format_str="%a %m/%d at %I:%M %p"):
        """Format kickoff in the league timezone"""
        from parlay_club.utils.timezone_utils import format_game_time

        return format_game_time(self.kickoff, format_str)

    def day_bucket(self):
        """Scoring bucket this game falls into under its season's rules"""
        from parlay_club.utils.game_day import (
            MODERN_BUCKETING_SEASON,
            classify_game_day,
        )
        from parlay_club.utils.timezone_utils import DEFAULT_LEAGUE_TIMEZONE

        cutoff = MODERN_BUCKETING_SEASON
        tz_name = DEFAULT_LEAGUE_TIMEZONE
        if has_app_context():
            cutoff = current_app.config.get("MODERN_BUCKETING_SEASON", cutoff)
            tz_name = current_app.config.get("LEAGUE_TIMEZONE", tz_name)

        return classify_game_day(self.kickoff, self.season, cutoff, tz_name)

    def has_started(self):
        """Check if game has started"""
        if not self.kickoff:
            return False
        return datetime.now(timezone.utc) >= self.kickoff_utc

    def update_score(self, home_score, away_score, is_final=False):
        """
        Record a score reported by the feed.

        Becoming final, or a corrected final score, moves the game to
        final_pending_grading. A live score for a game that is already final
        is stale and ignored. Returns True if the game needs (re)grading.
        """
        if self.is_final and not is_final:
            logger.warning(
                f"Ignoring live score {away_score}-{home_score} for final game {self.id}"
            )
            return False

        score_changed = self.home_score != home_score or self.away_score != away_score
        becomes_final = is_final and not self.is_final

        self.home_score = home_score
        self.away_score = away_score
        self.is_final = is_final

        if not is_final:
            self.grading_state = GRADING_AWAITING
            return False

        if becomes_final or score_changed or self.grading_state != GRADING_DONE:
            self.grading_state = GRADING_PENDING
            self.graded_at = None
            return True

        return False

    def update_lines(self, spread=None, over_under=None):
        """Update closing lines; None leaves the current value"""
        if spread is not None:
            self.spread = spread
        if over_under is not None:
            self.over_under = over_under

    def mark_graded(self):
        self.grading_state = GRADING_DONE
        self.graded_at = datetime.now(timezone.utc)

    @staticmethod
    def get_games_by_ids(game_ids):
        """Map of id -> Game for the given ids (missing ids are simply absent)"""
        if not game_ids:
            return {}
        games = Game.query.filter(Game.id.in_(set(game_ids))).all()
        return {game.id: game for game in games}

    @staticmethod
    def get_games_awaiting_grading(season=None):
        """Final games whose picks have not been graded yet"""
        query = Game.query.filter(
            Game.is_final.is_(True), Game.grading_state != GRADING_DONE
        )
        if season is not None:
            query = query.filter(Game.season == season)
        return query.order_by(Game.kickoff).all()

    @staticmethod
    def get_current_season_year():
        """Configured CURRENT_SEASON, else the latest season with games"""
        if has_app_context() and current_app.config.get("CURRENT_SEASON"):
            return current_app.config["CURRENT_SEASON"]

        return db.session.query(db.func.max(Game.season)).scalar()

    def to_dict(self):
        """Convert game to dictionary for API responses"""
        return {
            "id": self.id,
            "season": self.season,
            "week": self.week,
            "kickoff": self.kickoff_utc.isoformat() if self.kickoff else None,
            "kickoff_local": self.format_kickoff_local(),
            "home_team": self.home_team,
            "away_team": self.away_team,
            "home_score": self.home_score,
            "away_score": self.away_score,
            "total_score": self.total_score,
            "is_final": self.is_final,
            "grading_state": self.grading_state,
            "is_graded": self.is_graded,
            "spread": self.spread,
            "over_under": self.over_under,
            "status": self.status,
        }
