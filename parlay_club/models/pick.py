from datetime import datetime, timezone

from parlay_club import db

WAGER_SPREAD = "spread"
WAGER_TOTAL = "total"

SIDE_HOME = "home"
SIDE_AWAY = "away"
SIDE_OVER = "over"
SIDE_UNDER = "under"

# Sides each wager type accepts
WAGER_SIDES = {
    WAGER_SPREAD: (SIDE_HOME, SIDE_AWAY),
    WAGER_TOTAL: (SIDE_OVER, SIDE_UNDER),
}

RESULT_PENDING = "pending"
RESULT_WIN = "win"
RESULT_LOSS = "loss"
RESULT_PUSH = "push"

PICK_RESULTS = (RESULT_PENDING, RESULT_WIN, RESULT_LOSS, RESULT_PUSH)


class Pick(db.Model):
    __tablename__ = "picks"

    id = db.Column(db.Integer, primary_key=True)

    # Pick identification
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    game_id = db.Column(db.Integer, db.ForeignKey("games.id"), nullable=False)
    season = db.Column(db.Integer, nullable=False)
    week = db.Column(db.Integer, nullable=False)

    # Wager details
    wager_type = db.Column(db.String(16), nullable=False)
    side = db.Column(db.String(16), nullable=False)
    line = db.Column(db.Float)  # captured at submission time

    # Result (calculated after game completion)
    result = db.Column(db.String(16), default=RESULT_PENDING, nullable=False)
    graded_at = db.Column(db.DateTime(timezone=True))

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Constraints and indexes
    __table_args__ = (
        db.UniqueConstraint(
            "user_id", "game_id", "wager_type", name="unique_user_game_wager"
        ),
        db.Index("idx_pick_user_season_week", "user_id", "season", "week"),
        db.Index("idx_pick_game", "game_id"),
        db.Index("idx_pick_season_week", "season", "week"),
    )

    def __repr__(self):
        return (
            f"<Pick user_id={self.user_id} game_id={self.game_id} "
            f"{self.wager_type}:{self.side} {self.result}>"
        )

    @property
    def is_completed(self):
        """True once the pick has a final result"""
        return self.result != RESULT_PENDING

    @property
    def description(self):
        """Human readable wager, e.g. 'home -3.5' or 'over 45.5'"""
        if self.line is None:
            return self.side
        if self.wager_type == WAGER_SPREAD:
            line = self.line if self.side == SIDE_HOME else -self.line
            return f"{self.side} {line:+g}" if line else f"{self.side} PK"
        return f"{self.side} {self.line:g}"

    def apply_result(self, result):
        """Store a graded result; returns True if it changed"""
        if result not in PICK_RESULTS:
            raise ValueError(f"Unknown pick result: {result}")

        changed = self.result != result
        self.result = result
        self.graded_at = (
            None if result == RESULT_PENDING else datetime.now(timezone.utc)
        )
        return changed

    @staticmethod
    def create_pick(user_id, game_id, wager_type, side, line=None):
        """Create a new pick, capturing the game's current line"""
        from parlay_club.utils.exceptions import GameNotFound, InvalidPick

        from .game import Game

        game = db.session.get(Game, game_id)
        if not game:
            raise GameNotFound(game_id)

        if wager_type not in WAGER_SIDES:
            raise InvalidPick(f"Unknown wager type {wager_type!r}")
        if side not in WAGER_SIDES[wager_type]:
            raise InvalidPick(f"Side {side!r} is not valid for a {wager_type} wager")

        if game.is_final or game.has_started():
            raise InvalidPick(f"Game {game_id} has already started")

        if line is None:
            line = game.spread if wager_type == WAGER_SPREAD else game.over_under
        if line is None:
            raise InvalidPick(f"Game {game_id} has no {wager_type} line yet")

        existing = Pick.query.filter_by(
            user_id=user_id, game_id=game_id, wager_type=wager_type
        ).first()
        if existing:
            # Switching sides before kickoff replaces the previous wager
            existing.side = side
            existing.line = line
            existing.result = RESULT_PENDING
            return existing

        pick = Pick(
            user_id=user_id,
            game_id=game_id,
            season=game.season,
            week=game.week,
            wager_type=wager_type,
            side=side,
            line=line,
            result=RESULT_PENDING,
        )
        db.session.add(pick)
        return pick

    @staticmethod
    def get_picks_for_game(game_id):
        """Every pick referencing a game, regardless of user"""
        return Pick.query.filter_by(game_id=game_id).order_by(Pick.id).all()

    @staticmethod
    def get_weekly_pick_set(user_id, season, week):
        """All picks for one (user, season, week)"""
        return (
            Pick.query.filter_by(user_id=user_id, season=season, week=week)
            .order_by(Pick.id)
            .all()
        )

    @staticmethod
    def get_scoring_keys(season=None, user_id=None):
        """Distinct (user_id, season, week) tuples that have picks"""
        query = db.session.query(Pick.user_id, Pick.season, Pick.week).distinct()
        if season is not None:
            query = query.filter(Pick.season == season)
        if user_id is not None:
            query = query.filter(Pick.user_id == user_id)
        return {(row[0], row[1], row[2]) for row in query.all()}

    @staticmethod
    def get_user_record(user_id, season, week=None):
        """Win-loss-push record; pushes count half toward win percentage"""
        query = Pick.query.filter_by(user_id=user_id, season=season)
        if week is not None:
            query = query.filter_by(week=week)

        record = {"wins": 0, "losses": 0, "pushes": 0, "pending": 0}
        for pick in query.all():
            if pick.result == RESULT_WIN:
                record["wins"] += 1
            elif pick.result == RESULT_LOSS:
                record["losses"] += 1
            elif pick.result == RESULT_PUSH:
                record["pushes"] += 1
            else:
                record["pending"] += 1

        decided = record["wins"] + record["losses"] + record["pushes"]
        record["win_percentage"] = (
            round((record["wins"] + record["pushes"] * 0.5) / decided, 4)
            if decided
            else 0.0
        )
        record["display"] = f"{record['wins']}-{record['losses']}-{record['pushes']}"
        return record

    @staticmethod
    def get_game_summary(game_id):
        """Counts of picks per wager/side/result for one game"""
        summary = {"total": 0, "by_side": {}, "by_result": {}}
        for pick in Pick.get_picks_for_game(game_id):
            summary["total"] += 1
            side_key = f"{pick.wager_type}:{pick.side}"
            summary["by_side"][side_key] = summary["by_side"].get(side_key, 0) + 1
            summary["by_result"][pick.result] = (
                summary["by_result"].get(pick.result, 0) + 1
            )
        return summary

    def to_dict(self):
        """Convert pick to dictionary for API responses"""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "game_id": self.game_id,
            "season": self.season,
            "week": self.week,
            "wager_type": self.wager_type,
            "side": self.side,
            "line": self.line,
            "description": self.description,
            "result": self.result,
            "is_completed": self.is_completed,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
