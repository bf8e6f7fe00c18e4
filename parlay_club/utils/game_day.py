"""
Day bucket classification for parlay scoring.

A game's kickoff is converted to the league timezone before its weekday or
calendar date is read. Seasons before the modern cutoff use the legacy
Thursday / Friday / SundayMonday buckets; later seasons bucket by calendar date.
"""

from parlay_club.utils.timezone_utils import (
    DEFAULT_LEAGUE_TIMEZONE,
    convert_to_league_timezone,
)

MODERN_BUCKETING_SEASON = 2025

BUCKET_THURSDAY = "Thursday"
BUCKET_FRIDAY = "Friday"
BUCKET_SUNDAY_MONDAY = "SundayMonday"

LEGACY_BUCKETS = (BUCKET_THURSDAY, BUCKET_FRIDAY, BUCKET_SUNDAY_MONDAY)

# datetime.weekday(): Monday == 0
_THURSDAY = 3
_FRIDAY = 4


def is_modern_season(season, modern_cutoff=MODERN_BUCKETING_SEASON):
    """True if the season buckets picks by calendar date"""
    return season >= modern_cutoff


def classify_game_day(
    kickoff,
    season,
    modern_cutoff=MODERN_BUCKETING_SEASON,
    tz_name=DEFAULT_LEAGUE_TIMEZONE,
):
    """
    Map a kickoff instant to its scoring bucket.

    Args:
        kickoff: kickoff datetime; naive values are treated as UTC
        season: season year the game belongs to
        modern_cutoff: first season using per-date buckets
        tz_name: league reference timezone

    Returns:
        "YYYY-MM-DD" for modern seasons, otherwise one of
        "Thursday", "Friday" or "SundayMonday"
    """
    local_kickoff = convert_to_league_timezone(kickoff, tz_name)

    if is_modern_season(season, modern_cutoff):
        return local_kickoff.strftime("%Y-%m-%d")

    weekday = local_kickoff.weekday()
    if weekday == _THURSDAY:
        return BUCKET_THURSDAY
    if weekday == _FRIDAY:
        return BUCKET_FRIDAY
    # Saturday through Wednesday share the weekend bucket
    return BUCKET_SUNDAY_MONDAY


def bucket_sort_key(label):
    """Legacy buckets in week order, date buckets chronologically after them"""
    if label in LEGACY_BUCKETS:
        return (0, LEGACY_BUCKETS.index(label), "")
    return (1, 0, label)
