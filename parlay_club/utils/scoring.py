"""
Parlay Scoring Engine for Parlay Club

This module turns one user's graded picks for a week into parlay points.
Picks are grouped into day buckets; each bucket is a parlay that pays out
only when every decisive leg won. For reading stored scores see
ParlayWeekScore and ParlaySeasonRecord in parlay_club/models/parlay.py
"""

import logging

from parlay_club.models.pick import (
    RESULT_LOSS,
    RESULT_PENDING,
    RESULT_PUSH,
    RESULT_WIN,
)
from parlay_club.utils.exceptions import UnknownGameReference
from parlay_club.utils.game_day import (
    MODERN_BUCKETING_SEASON,
    bucket_sort_key,
    classify_game_day,
)
from parlay_club.utils.timezone_utils import DEFAULT_LEAGUE_TIMEZONE

logger = logging.getLogger(__name__)

# Points for an all-winning parlay of n legs
PAYOUT_TABLE = {1: 1, 2: 3, 3: 6, 4: 10, 5: 20, 6: 40, 7: 75, 8: 150}
MAX_TABLE_LEGS = 8
MIN_PARLAY_LEGS = 2


def payout_for_legs(legs):
    """
    Points for an all-winning parlay with `legs` winning legs.

    1-8 legs follow the table; every leg past 8 doubles the 8-leg payout.
    """
    if legs <= 0:
        return 0
    if legs <= MAX_TABLE_LEGS:
        return PAYOUT_TABLE[legs]
    return PAYOUT_TABLE[MAX_TABLE_LEGS] * 2 ** (legs - MAX_TABLE_LEGS)


def bucket_payout(wins, losses, pushes=0, pending=0):
    """
    Points for one day bucket.

    Any loss voids the bucket. Pushes neither count as legs nor void it.
    A pending leg leaves the bucket unresolved at 0. Fewer than two
    winning legs is not a parlay.
    """
    if losses > 0 or pending > 0:
        return 0
    if wins < MIN_PARLAY_LEGS:
        return 0
    return payout_for_legs(wins)


class WeekScoreBreakdown:
    """Result of scoring one user's week"""

    def __init__(self, user_id, season, week):
        self.user_id = user_id
        self.season = season
        self.week = week
        self.buckets = {}
        self.anomalies = []

    @property
    def bucket_points(self):
        return {label: detail["points"] for label, detail in self.buckets.items()}

    @property
    def bucket_details(self):
        return {label: dict(detail) for label, detail in self.buckets.items()}

    @property
    def total_points(self):
        return sum(detail["points"] for detail in self.buckets.values())

    @property
    def is_complete(self):
        return all(detail["is_complete"] for detail in self.buckets.values())

    def to_dict(self):
        return {
            "user_id": self.user_id,
            "season": self.season,
            "week": self.week,
            "buckets": self.bucket_points,
            "bucket_details": self.bucket_details,
            "total_points": self.total_points,
            "is_complete": self.is_complete,
            "anomalies": [str(anomaly) for anomaly in self.anomalies],
        }


def _score_bucket(picks):
    counts = {RESULT_WIN: 0, RESULT_LOSS: 0, RESULT_PUSH: 0, RESULT_PENDING: 0}
    for pick in picks:
        result = pick.result if pick.result in counts else RESULT_PENDING
        counts[result] += 1

    return {
        "wins": counts[RESULT_WIN],
        "losses": counts[RESULT_LOSS],
        "pushes": counts[RESULT_PUSH],
        "pending": counts[RESULT_PENDING],
        "points": bucket_payout(
            counts[RESULT_WIN],
            counts[RESULT_LOSS],
            counts[RESULT_PUSH],
            counts[RESULT_PENDING],
        ),
        "is_complete": counts[RESULT_PENDING] == 0,
    }


class ScoringEngine:
    """Scores weekly pick sets under the season's day bucket rules"""

    def __init__(
        self,
        modern_cutoff=MODERN_BUCKETING_SEASON,
        league_timezone=DEFAULT_LEAGUE_TIMEZONE,
    ):
        self.modern_cutoff = modern_cutoff
        self.league_timezone = league_timezone

    @classmethod
    def from_config(cls, app_config):
        return cls(
            modern_cutoff=app_config.get(
                "MODERN_BUCKETING_SEASON", MODERN_BUCKETING_SEASON
            ),
            league_timezone=app_config.get("LEAGUE_TIMEZONE", DEFAULT_LEAGUE_TIMEZONE),
        )

    def classify(self, game, season=None):
        """Bucket label for a game; `season` overrides the game's own season"""
        if season is None:
            season = game.season
        return classify_game_day(
            game.kickoff, season, self.modern_cutoff, self.league_timezone
        )

    def partition(self, picks, games, breakdown=None, season=None):
        """
        Group picks into day buckets.

        Picks whose game is missing from `games` are left out; each one is
        logged and recorded on `breakdown.anomalies` when given.
        """
        buckets = {}
        for pick in picks:
            game = games.get(pick.game_id)
            if game is None:
                anomaly = UnknownGameReference(pick.id, pick.game_id)
                logger.warning(f"Excluding pick from scoring: {anomaly}")
                if breakdown is not None:
                    breakdown.anomalies.append(anomaly)
                continue

            buckets.setdefault(self.classify(game, season), []).append(pick)
        return buckets

    def score_week(self, picks, games, season, week=None, user_id=None):
        """
        Score one user's weekly pick set.

        Args:
            picks: the user's picks for the week
            games: dict of game id -> Game for the games those picks reference
            season: season year; decides the bucket regime for every pick in the week

        Returns:
            WeekScoreBreakdown
        """
        breakdown = WeekScoreBreakdown(user_id, season, week)
        buckets = self.partition(picks, games, breakdown, season)

        for label in sorted(buckets, key=bucket_sort_key):
            breakdown.buckets[label] = _score_bucket(buckets[label])

        return breakdown
