"""
Timezone utility functions for Parlay Club

All day-of-week decisions are made in the league's reference timezone
(US Pacific by default), never in UTC or the server's local time.
"""

import logging
from datetime import timezone

import pytz
from flask import current_app, has_app_context

logger = logging.getLogger(__name__)

DEFAULT_LEAGUE_TIMEZONE = "America/Los_Angeles"


def get_league_timezone(tz_name=None):
    """Get the league's reference timezone"""
    if tz_name is None:
        tz_name = DEFAULT_LEAGUE_TIMEZONE
        if has_app_context():
            tz_name = current_app.config.get("LEAGUE_TIMEZONE", DEFAULT_LEAGUE_TIMEZONE)

    try:
        return pytz.timezone(tz_name)
    except pytz.UnknownTimeZoneError:
        logger.warning(
            f"Unknown league timezone {tz_name!r}, using {DEFAULT_LEAGUE_TIMEZONE}"
        )
        return pytz.timezone(DEFAULT_LEAGUE_TIMEZONE)


def ensure_aware(dt):
    """Attach UTC to naive datetimes (storage hands them back naive)"""
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def convert_to_league_timezone(dt, tz_name=None):
    """Convert a datetime to the league's timezone"""
    if dt is None:
        return None

    return ensure_aware(dt).astimezone(get_league_timezone(tz_name))


def format_game_time(dt, format_str="%a %m/%d at %I:%M %p", tz_name=None):
    """Format a kickoff in the league's timezone"""
    if dt is None:
        return "TBD"

    return convert_to_league_timezone(dt, tz_name).strftime(format_str)
