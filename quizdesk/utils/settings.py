"""Runtime settings read from the environment (and an optional ``.env`` file)."""

from __future__ import annotations

from dataclasses import dataclass
import os

from dotenv import load_dotenv

from quizdesk.constants.network_constants import DEFAULT_HOST, DEFAULT_LOG_LEVEL, DEFAULT_PORT


@dataclass(frozen=True, slots=True)
class AppSettings:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    log_level: str = DEFAULT_LOG_LEVEL
    database_url: str | None = None

    @classmethod
    def from_env(cls, load_env_file: bool = True) -> "AppSettings":
        """Build settings from ``QUIZDESK_*`` variables, falling back to the defaults."""
        if load_env_file:
            load_dotenv()
        raw_port = os.getenv("QUIZDESK_PORT", "").strip()
        try:
            port = int(raw_port) if raw_port else DEFAULT_PORT
        except ValueError as exc:
            raise ValueError(f"QUIZDESK_PORT must be an integer, got {raw_port!r}.") from exc
        database_url = os.getenv("QUIZDESK_DATABASE_URL", "").strip()
        return cls(
            host=os.getenv("QUIZDESK_HOST", "").strip() or DEFAULT_HOST,
            port=port,
            log_level=os.getenv("QUIZDESK_LOG_LEVEL", "").strip() or DEFAULT_LOG_LEVEL,
            database_url=database_url or None,
        )
