"""
Storage retry for score persistence
"""

import logging
import time
from functools import wraps

from flask import current_app, has_app_context
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

from parlay_club import db
from parlay_club.utils.exceptions import PersistenceFailure

logger = logging.getLogger(__name__)

# Lock timeouts, dropped connections and the losing side of a concurrent
# first insert are all worth running the unit again
RETRYABLE_ERRORS = (OperationalError, IntegrityError, DBAPIError)


def _retry_settings(max_retries, base_delay):
    if has_app_context():
        if max_retries is None:
            max_retries = current_app.config.get("STORAGE_MAX_RETRIES", 3)
        if base_delay is None:
            base_delay = current_app.config.get("STORAGE_RETRY_DELAY", 0.5)
    if max_retries is None:
        max_retries = 3
    if base_delay is None:
        base_delay = 0.5
    return max(1, int(max_retries)), base_delay


def with_storage_retry(operation, max_retries=None, base_delay=None, backoff_factor=2.0):
    """
    Decorator running a unit of storage work with rollback and retry

    The wrapped function must be safe to run again from the start: on a
    retryable database error the session is rolled back and the whole unit
    re-runs. When retries run out PersistenceFailure is raised.

    Args:
        operation: name used in logs and in PersistenceFailure
        max_retries: attempts before giving up (default STORAGE_MAX_RETRIES)
        base_delay: first backoff in seconds (default STORAGE_RETRY_DELAY)
    """

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            attempts, delay = _retry_settings(max_retries, base_delay)

            for attempt in range(attempts):
                try:
                    return func(*args, **kwargs)
                except RETRYABLE_ERRORS as e:
                    db.session.rollback()
                    if attempt >= attempts - 1:
                        logger.error(
                            f"{operation} failed after {attempts} attempts: {e}"
                        )
                        raise PersistenceFailure(operation, e) from e

                    wait = delay * (backoff_factor**attempt)
                    logger.warning(
                        f"{operation} storage error: {e}. Waiting {wait}s "
                        f"before retry {attempt + 1}/{attempts - 1}"
                    )
                    if wait:
                        time.sleep(wait)

            raise PersistenceFailure(operation)

        return wrapper

    return decorator
