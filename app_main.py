"""Application entry point for MistakeReview."""

from __future__ import annotations

import os
from pathlib import Path

from review_app.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from review_app.constants.storage_constants import DATA_PATH_ENV_VAR, DEFAULT_DATA_PATH
from review_app.core.storage import JsonFileBackend, SnapshotRepository
from review_app.core.study_manager import StudyManager
from review_app.server.api_server import start_api_server
from review_app.server.session_ticker import SessionTicker
from review_app.utils.logging_config import configure_logging


def _resolve_data_path() -> Path:
    override = os.getenv(DATA_PATH_ENV_VAR)
    return Path(override) if override else DEFAULT_DATA_PATH


def main() -> None:
    """Initialize logging, load stored data, start the countdown ticker and serve the API."""
    logger = configure_logging()
    backend = JsonFileBackend(_resolve_data_path())
    logger.info("Starting MistakeReview with data file %s", backend.path)

    study_manager = StudyManager(SnapshotRepository(backend))
    ticker = SessionTicker(study_manager)
    ticker.start()

    server_thread = start_api_server(study_manager=study_manager, host=DEFAULT_HOST, port=DEFAULT_PORT)
    logger.info("API available at http://%s:%d/docs", DEFAULT_HOST, DEFAULT_PORT)
    try:
        server_thread.join()
    except KeyboardInterrupt:
        logger.info("Shutting down")
    finally:
        ticker.stop(timeout=2.0)


if __name__ == "__main__":
    main()
