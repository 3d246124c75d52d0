"""Protocol definitions for dependency inversion.

Use cases depend on these contracts rather than on the requests-based adapter,
so tests can drive them with in-memory stubs.
"""

from collections.abc import Callable
from datetime import datetime
from typing import Any, Protocol

from workflow_trigger.domain.models import DispatchRequest

SleepCallable = Callable[[float], None]
ClockCallable = Callable[[], datetime]


class WorkflowRunsClientProtocol(Protocol):
    """Contract for the Actions workflow-runs API."""

    def list_workflow_runs(
        self,
        workflow_file_name: str,
        *,
        since: str,
        per_page: int = 100,
    ) -> dict[str, Any]:
        """List runs of a workflow dispatched at or after ``since``.

        Args:
            workflow_file_name: Workflow file name or numeric id
            since: ISO-8601 lower bound for the run creation time
            per_page: Page size (max 100)

        Returns:
            Decoded response body with a ``workflow_runs`` array

        Raises:
            TransientAPIError: On server-side or network failures
            FatalAPIError: On any other non-2xx response
        """
        ...

    def dispatch_workflow(
        self, workflow_file_name: str, request: DispatchRequest
    ) -> None:
        """Request a new run of the workflow."""
        ...

    def get_run(self, run_id: int) -> dict[str, Any]:
        """Fetch a single run by id."""
        ...


class CommentClientProtocol(Protocol):
    """Contract for posting the downstream-link comment."""

    def post_comment(self, url: str, body: str, *, token: str) -> dict[str, Any]: ...
