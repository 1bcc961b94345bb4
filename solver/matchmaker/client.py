"""HTTP client for the matchmaker service."""

from __future__ import annotations

import httpx
import structlog

from solver.models.jobs import SolutionSubmission

logger = structlog.get_logger()


class MatchmakerClient:
    """Submits solved intents to the matchmaker for authorization."""

    def __init__(
        self,
        base_url: str,
        client: httpx.Client | None = None,
        timeout_seconds: float = 5.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(timeout=timeout_seconds)

    def submit_solution(self, submission: SolutionSubmission) -> None:
        """POST the solution package to ``/solutions``.

        Raises:
            httpx.HTTPError: On transport errors or a non-2xx response
        """
        response = self._client.post(
            f"{self.base_url}/solutions",
            json=submission.model_dump(by_alias=True, mode="json"),
        )
        response.raise_for_status()
        logger.debug("solution_submitted", uuid=submission.uuid, status_code=response.status_code)
