"""
Simple configuration management.

The ``Settings`` dataclass reads configuration directly from
environment variables.  Defaults are provided for all fields so the
service starts with no configuration at all; in a deployment you
override them via the environment (or a ``.env`` file loaded by your
process manager).
"""

import os
from dataclasses import dataclass, field
from typing import Optional


def _default_database_url() -> str:
    # Separate SQLite files per environment, e.g. ``messaging.test.db``
    explicit = os.getenv("DATABASE_URL")
    if explicit:
        return explicit
    return f"messaging.{os.getenv('ENVIRONMENT', 'development')}.db"


@dataclass
class Settings:
    """Application settings loaded from environment variables."""

    project_name: str = os.getenv("PROJECT_NAME", "Messaging System API")
    api_version: str = os.getenv("API_VERSION", "1.0.0")
    debug: bool = os.getenv("DEBUG", "false").lower() in {"1", "true", "yes"}
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_file: Optional[str] = os.getenv("LOG_FILE") or None
    environment: str = os.getenv("ENVIRONMENT", "development")

    # Path to the SQLite database file.  A relative path is resolved
    # against the project root by the ``db`` module.
    database_url: str = field(default_factory=_default_database_url)

    # Seconds a connection waits for another writer to release the
    # database lock before failing.
    db_timeout: float = float(os.getenv("DB_TIMEOUT", "5.0"))

    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "8000"))


# Instantiate settings once so other modules can import it without
# repeatedly reading environment variables.  Environment variables
# must be set before importing this module.
settings = Settings()
