"""Custom exception hierarchy for trigger-workflow-and-wait.

Following error taxonomy: retryable (transient API), non-retryable
(configuration, fatal API, workflow failure, exhausted polling budgets).
"""


class WorkflowTriggerError(Exception):
    """Base exception for all application errors."""

    pass


class RetryableError(WorkflowTriggerError):
    """Errors that can be retried (network issues, temporary failures)."""

    pass


class NonRetryableError(WorkflowTriggerError):
    """Errors that should not be retried (configuration, auth, logic errors)."""

    pass


class ConfigurationError(NonRetryableError):
    """A required argument is missing or a setting is invalid."""

    def __init__(self, message: str, problems: list[str] | None = None) -> None:
        self.problems = problems or [message]
        super().__init__(message)


class TransientAPIError(RetryableError):
    """Server-side or network failure talking to the Actions API."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        retry_after: float | None = None,
    ) -> None:
        self.status_code = status_code
        self.retry_after = retry_after
        super().__init__(message)


class FatalAPIError(NonRetryableError):
    """Any other non-2xx response, or a body that is not valid JSON."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class WorkflowRunFailedError(NonRetryableError):
    """A downstream run completed with a non-success conclusion."""

    def __init__(self, run_id: int, conclusion: str | None) -> None:
        self.run_id = run_id
        self.conclusion = conclusion
        super().__init__(
            f"Workflow run {run_id} finished with conclusion [{conclusion}]"
        )


class DispatchTimeoutError(NonRetryableError):
    """No new run appeared within the polling budget after a dispatch."""

    def __init__(self, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(f"No new workflow run appeared after {attempts} polls")


class RunWaitTimeoutError(NonRetryableError):
    """No completed run matched within the polling budget."""

    def __init__(self, run_id: int, attempts: int) -> None:
        self.run_id = run_id
        self.attempts = attempts
        super().__init__(
            f"No matching workflow run found for tags {run_id} after {attempts} polls"
        )
