"""Application entry point for the QuizDesk service."""

from __future__ import annotations

from quizdesk.constants.about import APP_NAME, APP_VERSION
from quizdesk.core.quiz_manager import QuizManager
from quizdesk.core.services.record_store import InMemoryRecordStore, RecordStore
from quizdesk.core.services.sql_record_store import SqlRecordStore
from quizdesk.server.api_server import run_api_server
from quizdesk.utils.logging_config import configure_logging
from quizdesk.utils.settings import AppSettings


def build_store(settings: AppSettings) -> RecordStore:
    if settings.database_url is None:
        return InMemoryRecordStore()
    return SqlRecordStore(settings.database_url)


def main() -> None:
    """Load settings, initialize logging and storage, and serve the API."""
    settings = AppSettings.from_env()
    logger = configure_logging(settings.log_level)
    logger.info("Starting %s %s", APP_NAME, APP_VERSION)

    store = build_store(settings)
    if settings.database_url is None:
        logger.warning("QUIZDESK_DATABASE_URL not set; records are kept in memory only")
    else:
        logger.info("Persisting records to %s", settings.database_url)

    quiz_manager = QuizManager(store)
    logger.info("API available at http://%s:%d/", settings.host, settings.port)
    run_api_server(
        quiz_manager,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
    )


if __name__ == "__main__":
    main()
