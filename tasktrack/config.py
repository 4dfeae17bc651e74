"""Runtime settings, read from the environment."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


def default_db_path() -> Path:
    """XDG data location for the shared database file."""
    data_dir = os.environ.get("XDG_DATA_HOME")
    if data_dir:
        base = Path(data_dir)
    else:
        base = Path.home() / ".local" / "share"
    return base / "tasktrack" / "tasktrack.db"


@dataclass
class Settings:
    """Settings shared by the CLI and the MCP server."""

    db_path: str
    busy_timeout: float = 5.0
    retry_attempts: int = 3
    retry_backoff: float = 0.1
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @classmethod
    def from_env(cls, db_path: Optional[str] = None) -> "Settings":
        """Build settings from ``TASKTRACK_*`` variables.

        Args:
            db_path: Explicit database path; wins over ``TASKTRACK_DB``.
        """
        return cls(
            db_path=db_path
            or os.environ.get("TASKTRACK_DB")
            or str(default_db_path()),
            busy_timeout=float(os.environ.get("TASKTRACK_BUSY_TIMEOUT", "5.0")),
            retry_attempts=int(os.environ.get("TASKTRACK_RETRY_ATTEMPTS", "3")),
            retry_backoff=float(os.environ.get("TASKTRACK_RETRY_BACKOFF", "0.1")),
            log_level=os.environ.get("TASKTRACK_LOG_LEVEL", "INFO").upper(),
            log_file=os.environ.get("TASKTRACK_LOG_FILE") or None,
        )
