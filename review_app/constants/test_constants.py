"""Mock-test constants shared across the core and API layers."""

OPTION_LABELS: tuple[str, ...] = ("A", "B", "C", "D")

DEFAULT_QUESTION_COUNT: int = 10
# Upper bound accepted by the API; the session engine has none.
MAX_QUESTION_COUNT: int = 50
TICK_INTERVAL_SECONDS: float = 1.0

RECENT_RESULTS_LIMIT: int = 5
SCORE_TREND_LIMIT: int = 10
WEAK_CHAPTERS_LIMIT: int = 5
WEAK_SUBJECTS_LIMIT: int = 3
