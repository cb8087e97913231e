"""Persistence constants: snapshot location and schema version."""

from pathlib import Path

DATA_PATH_ENV_VAR: str = "REVIEW_APP_DATA_PATH"
DEFAULT_DATA_PATH: Path = Path.home() / ".mistake_review" / "data.json"

# Bump together with a new step in review_app.core.migrations.
CURRENT_SCHEMA_VERSION: int = 1
