"""Dispatch workflow use case.

The dispatch endpoint does not return the id of the run it creates, so new
runs are discovered by diffing run listings taken before and after the
request.
"""

from __future__ import annotations

import time

from workflow_trigger.config.logging_config import get_logger
from workflow_trigger.config.settings import Settings
from workflow_trigger.domain.exceptions import DispatchTimeoutError, TransientAPIError
from workflow_trigger.domain.models import (
    DispatchRequest,
    DispatchResult,
    RunSnapshot,
)
from workflow_trigger.domain.protocols import (
    ClockCallable,
    SleepCallable,
    WorkflowRunsClientProtocol,
)
from workflow_trigger.use_cases.list_runs import (
    compute_since,
    list_runs_use_case,
    utc_now,
)

logger = get_logger(__name__)


def _wait_for_next_poll(
    settings: Settings, sleep: SleepCallable, polls: int
) -> int:
    """Sleep before the next listing, or give up once the budget is spent."""
    if settings.max_poll_attempts and polls >= settings.max_poll_attempts:
        logger.error(
            "workflow_dispatch_no_new_runs",
            workflow=settings.workflow_file_name,
            polls=polls,
        )
        raise DispatchTimeoutError(polls)

    logger.info("sleeping", seconds=settings.wait_interval)
    sleep(settings.wait_interval)
    return polls + 1


def dispatch_workflow_use_case(
    *,
    client: WorkflowRunsClientProtocol,
    settings: Settings,
    request: DispatchRequest | None = None,
    sleep: SleepCallable | None = None,
    now: ClockCallable | None = None,
) -> DispatchResult:
    """Dispatch the workflow and return the ids of the runs it created.

    Args:
        client: Actions API client
        settings: Application settings
        request: Dispatch body (defaults to ref + client payload from settings)
        sleep: Sleep function used between polls
        now: Clock returning an aware UTC datetime

    Returns:
        DispatchResult with the new run ids in ascending order

    Raises:
        DispatchTimeoutError: If no usable listing shows a new run within the
            poll budget
        FatalAPIError: On a non-transient API failure
    """
    sleep = sleep or time.sleep
    now = now or utc_now
    request = request or settings.dispatch_request

    since = compute_since(now(), settings.clock_skew_seconds)
    polls = 0
    baseline: RunSnapshot | None = None
    while baseline is None:
        try:
            baseline = list_runs_use_case(client=client, settings=settings, since=since)
        except TransientAPIError as exc:
            logger.warning(
                "workflow_runs_baseline_transient_error",
                error=str(exc),
                poll=polls,
            )
            polls = _wait_for_next_poll(settings, sleep, polls)

    logger.info(
        "workflow_dispatch_requested",
        workflow=settings.workflow_file_name,
        ref=request.ref,
        inputs=request.inputs,
        baseline_runs=len(baseline),
    )
    try:
        client.dispatch_workflow(settings.workflow_file_name, request)
    except TransientAPIError as exc:
        # The request may still have been accepted; the listing decides
        logger.warning(
            "workflow_dispatch_transient_error",
            workflow=settings.workflow_file_name,
            error=str(exc),
        )

    current = baseline
    while current.same_runs(baseline):
        polls = _wait_for_next_poll(settings, sleep, polls)
        try:
            current = list_runs_use_case(client=client, settings=settings, since=since)
        except TransientAPIError as exc:
            logger.warning(
                "workflow_runs_poll_transient_error",
                error=str(exc),
                poll=polls,
            )

    new_run_ids = current.difference(baseline)
    if not new_run_ids:
        logger.warning(
            "workflow_runs_changed_without_new_ids",
            baseline=list(baseline.run_ids),
            current=list(current.run_ids),
        )

    logger.info("workflow_runs_discovered", run_ids=new_run_ids, polls=polls)
    return DispatchResult(
        since=since,
        baseline=baseline,
        current=current,
        new_run_ids=new_run_ids,
        polls=polls,
    )


__all__ = ["dispatch_workflow_use_case"]
