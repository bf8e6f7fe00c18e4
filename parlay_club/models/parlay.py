from datetime import datetime, timezone

from parlay_club import db


class ParlayWeekScore(db.Model):
    """Parlay points one user earned in one week, broken down by day bucket"""

    __tablename__ = "parlay_week_scores"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    season = db.Column(db.Integer, nullable=False)
    week = db.Column(db.Integer, nullable=False)

    # bucket label -> points
    bucket_points = db.Column(db.JSON, nullable=False, default=dict)
    # bucket label -> {"wins", "losses", "pushes", "pending", "points", "is_complete"}
    bucket_details = db.Column(db.JSON, nullable=False, default=dict)

    total_points = db.Column(db.Integer, nullable=False, default=0)
    is_complete = db.Column(db.Boolean, nullable=False, default=False)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint("user_id", "season", "week", name="unique_user_season_week"),
        db.Index("idx_week_score_season_week", "season", "week"),
    )

    def __repr__(self):
        return (
            f"<ParlayWeekScore user_id={self.user_id} {self.season} "
            f"week {self.week}: {self.total_points}>"
        )

    @staticmethod
    def get_for_key(user_id, season, week):
        return ParlayWeekScore.query.filter_by(
            user_id=user_id, season=season, week=week
        ).first()

    @staticmethod
    def upsert(user_id, season, week, breakdown):
        """Create or overwrite the week's score from a WeekScoreBreakdown"""
        score = ParlayWeekScore.get_for_key(user_id, season, week)
        if score is None:
            score = ParlayWeekScore(user_id=user_id, season=season, week=week)
            db.session.add(score)

        score.bucket_points = breakdown.bucket_points
        score.bucket_details = breakdown.bucket_details
        score.total_points = breakdown.total_points
        score.is_complete = breakdown.is_complete
        return score

    @staticmethod
    def get_week_scores(season, week, limit=None):
        """All users' scores for one week, best first"""
        query = ParlayWeekScore.query.filter_by(season=season, week=week).order_by(
            ParlayWeekScore.total_points.desc(), ParlayWeekScore.user_id
        )
        if limit:
            query = query.limit(limit)
        return query.all()

    def to_dict(self):
        return {
            "user_id": self.user_id,
            "season": self.season,
            "week": self.week,
            "buckets": self.bucket_points,
            "bucket_details": self.bucket_details,
            "total_points": self.total_points,
            "is_complete": self.is_complete,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class ParlaySeasonRecord(db.Model):
    """A user's parlay season; the total is always the sum of its week scores"""

    __tablename__ = "parlay_season_records"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    season = db.Column(db.Integer, nullable=False)

    total_points = db.Column(db.Integer, nullable=False, default=0)
    weeks_scored = db.Column(db.Integer, nullable=False, default=0)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint("user_id", "season", name="unique_user_season"),
        db.Index("idx_season_record_season", "season"),
    )

    def __repr__(self):
        return (
            f"<ParlaySeasonRecord user_id={self.user_id} {self.season}: "
            f"{self.total_points}>"
        )

    @property
    def week_scores(self):
        """week number -> ParlayWeekScore"""
        scores = ParlayWeekScore.query.filter_by(
            user_id=self.user_id, season=self.season
        ).order_by(ParlayWeekScore.week)
        return {score.week: score for score in scores}

    def recalculate_totals(self):
        """Recompute the season total from the stored week scores"""
        week_totals = [score.total_points for score in self.week_scores.values()]
        self.total_points = sum(week_totals)
        self.weeks_scored = len(week_totals)
        return self.total_points

    @staticmethod
    def get_for_key(user_id, season):
        return ParlaySeasonRecord.query.filter_by(
            user_id=user_id, season=season
        ).first()

    @staticmethod
    def get_or_create(user_id, season):
        record = ParlaySeasonRecord.get_for_key(user_id, season)
        if record is None:
            record = ParlaySeasonRecord(
                user_id=user_id, season=season, total_points=0, weeks_scored=0
            )
            db.session.add(record)
        return record

    @staticmethod
    def get_leaderboard(season, through_week=None):
        """
        Season standings as a list of dicts, best first.

        With through_week, totals are cumulative up to and including that week.
        """
        from .user import User

        if through_week is None:
            rows = [
                (record.user_id, record.total_points)
                for record in ParlaySeasonRecord.query.filter_by(season=season)
            ]
        else:
            rows = (
                db.session.query(
                    ParlayWeekScore.user_id,
                    db.func.sum(ParlayWeekScore.total_points),
                )
                .filter(
                    ParlayWeekScore.season == season,
                    ParlayWeekScore.week <= through_week,
                )
                .group_by(ParlayWeekScore.user_id)
                .all()
            )

        names = User.get_display_names([user_id for user_id, _ in rows])

        standings = sorted(
            (
                {
                    "user_id": user_id,
                    "display_name": names.get(user_id, f"User {user_id}"),
                    "total_points": int(total or 0),
                }
                for user_id, total in rows
            ),
            key=lambda entry: (-entry["total_points"], entry["user_id"]),
        )

        for rank, entry in enumerate(standings, start=1):
            entry["rank"] = rank
        return standings

    def to_dict(self, include_weeks=True):
        data = {
            "user_id": self.user_id,
            "season": self.season,
            "total_points": self.total_points,
            "weeks_scored": self.weeks_scored,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_weeks:
            data["weeks"] = {
                str(week): score.to_dict() for week, score in self.week_scores.items()
            }
        return data
