import os
import warnings

import redis
from dotenv import load_dotenv

basedir = os.path.abspath(os.path.dirname(__file__))
load_dotenv(os.path.join(basedir, ".env"))


class Config:
    # Database configuration - built from environment at initialization
    def __init__(self):
        """Initialize configuration with dynamic database URI and engine options"""
        self.SQLALCHEMY_DATABASE_URI = self._build_database_uri()
        self.SQLALCHEMY_ENGINE_OPTIONS = self._build_engine_options(
            self.SQLALCHEMY_DATABASE_URI
        )

    def _build_database_uri(self):
        """Build database URI from environment variables"""
        database_url = os.environ.get("DATABASE_URL")

        if database_url:
            return database_url

        db_type = os.environ.get("DB_TYPE", "sqlite")

        if db_type.lower() == "postgresql":
            db_host = os.environ.get("DB_HOST") or "localhost"
            db_port = os.environ.get("DB_PORT") or "5432"
            db_name = os.environ.get("DB_NAME") or "parlay_club_db"
            db_user = os.environ.get("DB_USER") or "parlay_user"
            db_password = os.environ.get("DB_PASSWORD") or "parlay_password"

            return f"postgresql+psycopg://{db_user}:{db_password}@{db_host}:{db_port}/{db_name}"
        else:
            # Default to SQLite for development
            return "sqlite:///" + os.path.join(basedir, "parlay_club.db")

    def _build_engine_options(self, database_uri):
        """Bound every storage call by STORAGE_TIMEOUT seconds"""
        timeout = self.STORAGE_TIMEOUT

        if database_uri.startswith("sqlite"):
            # SQLite waits on its file lock for `timeout` seconds
            return {"connect_args": {"timeout": timeout}}

        return {
            "pool_pre_ping": True,
            "pool_timeout": int(timeout),
            "connect_args": {"connect_timeout": int(timeout)},
        }

    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # League rules
    LEAGUE_TIMEZONE = os.environ.get("LEAGUE_TIMEZONE", "America/Los_Angeles")
    MODERN_BUCKETING_SEASON = int(os.environ.get("MODERN_BUCKETING_SEASON") or 2025)
    CURRENT_SEASON = (
        int(os.environ["CURRENT_SEASON"]) if os.environ.get("CURRENT_SEASON") else None
    )

    # Storage resilience
    STORAGE_TIMEOUT = float(os.environ.get("STORAGE_TIMEOUT") or 10.0)  # seconds
    STORAGE_MAX_RETRIES = int(os.environ.get("STORAGE_MAX_RETRIES") or 3)
    STORAGE_RETRY_DELAY = float(os.environ.get("STORAGE_RETRY_DELAY") or 0.5)

    # Rescoring
    RESCORE_WORKERS = int(os.environ.get("RESCORE_WORKERS") or 1)

    # Caching configuration
    CACHE_TYPE = os.environ.get("CACHE_TYPE", "RedisCache")
    CACHE_DEFAULT_TIMEOUT = int(
        os.environ.get("CACHE_DEFAULT_TIMEOUT", 300)
    )  # 5 minutes
    CACHE_REDIS_URL = os.environ.get("CACHE_REDIS_URL", "redis://localhost:6379/0")
    CACHE_KEY_PREFIX = "parlay_club:"

    # Scheduler configuration
    SCHEDULER_ENABLED = os.environ.get("SCHEDULER_ENABLED", "True").lower() == "true"
    GRADING_SWEEP_SECONDS = int(os.environ.get("GRADING_SWEEP_SECONDS") or 120)
    NIGHTLY_RECOMPUTE = os.environ.get("NIGHTLY_RECOMPUTE", "True").lower() == "true"

    # Logging configuration
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    LOG_TO_CONSOLE = os.environ.get("LOG_TO_CONSOLE", "True").lower() == "true"
    LOG_TO_FILE = os.environ.get("LOG_TO_FILE", "True").lower() == "true"
    LOG_DIR = os.environ.get("LOG_DIR", "logs")

    # Environment detection
    FLASK_ENV = os.environ.get("FLASK_ENV", "development")
    DEBUG = FLASK_ENV == "development"
    TESTING = False


class DevelopmentConfig(Config):
    """Development configuration with helpful defaults"""

    DEBUG = True
    SQLALCHEMY_ECHO = os.environ.get("SQLALCHEMY_ECHO", "False").lower() == "true"

    def __init__(self):
        super().__init__()
        # Fallback to SimpleCache if Redis isn't available in development
        try:
            redis_client = redis.Redis.from_url(self.CACHE_REDIS_URL)
            redis_client.ping()
        except redis.exceptions.ConnectionError:
            self.CACHE_TYPE = "SimpleCache"
            warnings.warn(
                "Redis not available, falling back to SimpleCache for development.",
                UserWarning,
            )


class ProductionConfig(Config):
    """Production configuration"""

    DEBUG = False

    def __init__(self):
        super().__init__()

        if not os.environ.get("DATABASE_URL") and not os.environ.get("DB_TYPE"):
            warnings.warn(
                "PRODUCTION WARNING: no DATABASE_URL or DB_TYPE set, using SQLite.",
                UserWarning,
            )


class TestingConfig(Config):
    """Testing configuration"""

    TESTING = True
    CACHE_TYPE = "SimpleCache"
    SCHEDULER_ENABLED = False
    LOG_TO_FILE = False
    LOG_LEVEL = "WARNING"
    CURRENT_SEASON = None
    MODERN_BUCKETING_SEASON = 2025
    LEAGUE_TIMEZONE = "America/Los_Angeles"
    STORAGE_RETRY_DELAY = 0.0
    RESCORE_WORKERS = 1

    def __init__(self):
        super().__init__()
        self.SQLALCHEMY_DATABASE_URI = os.environ.get(
            "TEST_DATABASE_URL", "sqlite:///:memory:"
        )
        self.SQLALCHEMY_ENGINE_OPTIONS = self._build_engine_options(
            self.SQLALCHEMY_DATABASE_URI
        )


# Configuration mapping
config = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
    "default": DevelopmentConfig,
}
