"""Service that keeps the history of submitted tests."""

from __future__ import annotations

from dataclasses import replace
from uuid import uuid4

from review_app.constants.test_constants import RECENT_RESULTS_LIMIT
from review_app.core.models import TestResult


class ResultLog:
    """Append-only log of finished test results."""

    def __init__(self, results: list[TestResult] | None = None) -> None:
        self._results: list[TestResult] = list(results or [])

    def append_result(self, result: TestResult) -> TestResult:
        """Store ``result`` under a fresh id and return the stored copy."""
        stored = replace(result, id=uuid4().hex)
        self._results.append(stored)
        return stored

    def list_results(self) -> list[TestResult]:
        return list(self._results)

    def get_result(self, result_id: str) -> TestResult:
        result = next((r for r in self._results if r.id == result_id), None)
        if result is None:
            raise KeyError(f"Unknown result id {result_id!r}")
        return result

    def recent_results(self, limit: int = RECENT_RESULTS_LIMIT) -> list[TestResult]:
        """Return up to ``limit`` results, newest first."""
        if limit <= 0:
            return []
        return list(reversed(self._results[-limit:]))
