"""
Runtime configuration for the DataFlow entity service.
Everything is read from the environment once at import; a .env file at the
working directory is honoured but never overrides real environment values.
"""

import os
from pathlib import Path

from dotenv import load_dotenv, find_dotenv

load_dotenv(find_dotenv(usecwd=True), override=False)

# development|production
DATAFLOW_ENV = os.getenv("DATAFLOW_ENV", "development").lower()
_PRODUCTION = DATAFLOW_ENV == "production"

# Database path configuration
DB_PATH = os.getenv("DB_PATH", "./data/dataflow.db")

API_PREFIX = os.getenv("API_PREFIX", "/api")

# HTTP server
SERVER_HOST = os.getenv("HOST", "0.0.0.0")
SERVER_PORT = int(os.getenv("PORT", "5000"))

# Pagination and batch limits
DEFAULT_PAGE_SIZE = int(os.getenv("DEFAULT_PAGE_SIZE", "100"))
MAX_PAGE_SIZE = int(os.getenv("MAX_PAGE_SIZE", "1000"))
SEARCH_DEFAULT_LIMIT = int(os.getenv("SEARCH_DEFAULT_LIMIT", "50"))
MAX_BATCH_SIZE = int(os.getenv("MAX_BATCH_SIZE", "100"))

DEFAULT_CREATED_BY = os.getenv("DEFAULT_CREATED_BY", "user@local")
PURGE_LOGS_DEFAULT_DAYS = int(os.getenv("PURGE_LOGS_DEFAULT_DAYS", "30"))

CORS_ORIGIN = os.getenv("CORS_ORIGIN", "*")

# Request hardening: rate limits per client address, body size cap, gzip
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
RATE_LIMIT_WINDOW_MIN = int(os.getenv("RATE_LIMIT_WINDOW_MIN", "15"))
RATE_LIMIT_MAX = int(os.getenv("RATE_LIMIT_MAX", "1000"))
RATE_LIMIT_WRITE_MAX = int(os.getenv("RATE_LIMIT_WRITE_MAX", "200"))
BODY_LIMIT_BYTES = int(os.getenv("BODY_LIMIT_BYTES", str(10 * 1024 * 1024)))
GZIP_MIN_SIZE = int(os.getenv("GZIP_MIN_SIZE", "1000"))

# Logging: chatty in development, quiet in production
LOG_LEVEL = os.getenv("LOG_LEVEL", "warning" if _PRODUCTION else "debug").upper()
LOG_REQUESTS = os.getenv("LOG_REQUESTS", "false" if _PRODUCTION else "true").lower() == "true"

# External orchestrator proxy
AIRFLOW_TIMEOUT_SEC = int(os.getenv("AIRFLOW_TIMEOUT_SEC", "15"))

# Mock authentication (no real auth system)
AUTH_USER_EMAIL = os.getenv("AUTH_USER_EMAIL", "admin@dataflow.app" if _PRODUCTION else "user@local")
AUTH_USER_NAME = os.getenv("AUTH_USER_NAME", "Admin" if _PRODUCTION else "Local User")
AUTH_USER_ROLE = os.getenv("AUTH_USER_ROLE", "admin")

# Git deployment target
GITLAB_URL = os.getenv("GITLAB_URL", "")
GITLAB_PROJECT_ID = os.getenv("GITLAB_PROJECT_ID", "")
GITLAB_DEFAULT_BRANCH = os.getenv("GITLAB_DEFAULT_BRANCH", "main")
GITLAB_TIMEOUT_SEC = int(os.getenv("GITLAB_TIMEOUT_SEC", "15"))

# Version string
VERSION = "1.0.0"


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "false" if _PRODUCTION else "true").lower() == "true"


def ensure_db_directory(path=None):
    """Ensure the database directory exists."""
    Path(path or DB_PATH).parent.mkdir(parents=True, exist_ok=True)


def get_mock_user():
    """The fixed user returned by the mocked auth endpoints."""
    return {
        "id": "1",
        "email": AUTH_USER_EMAIL,
        "name": AUTH_USER_NAME,
        "role": AUTH_USER_ROLE,
    }


def validate_config():
    """Validate configuration and return any issues."""
    issues = []

    if DATAFLOW_ENV not in ["development", "production"]:
        issues.append(f"Invalid DATAFLOW_ENV: {DATAFLOW_ENV}")

    if DEFAULT_PAGE_SIZE < 1:
        issues.append("DEFAULT_PAGE_SIZE must be >= 1")

    if MAX_PAGE_SIZE < DEFAULT_PAGE_SIZE:
        issues.append("MAX_PAGE_SIZE must be >= DEFAULT_PAGE_SIZE")

    if MAX_BATCH_SIZE < 1:
        issues.append("MAX_BATCH_SIZE must be >= 1")

    if AIRFLOW_TIMEOUT_SEC < 1:
        issues.append("AIRFLOW_TIMEOUT_SEC must be >= 1")

    if RATE_LIMIT_WINDOW_MIN < 1 or RATE_LIMIT_MAX < 1 or RATE_LIMIT_WRITE_MAX < 1:
        issues.append("RATE_LIMIT_WINDOW_MIN, RATE_LIMIT_MAX and RATE_LIMIT_WRITE_MAX must be >= 1")

    if BODY_LIMIT_BYTES < 1:
        issues.append("BODY_LIMIT_BYTES must be >= 1")

    if bool(GITLAB_URL) != bool(GITLAB_PROJECT_ID):
        issues.append("GITLAB_URL and GITLAB_PROJECT_ID must be set together")

    return issues
