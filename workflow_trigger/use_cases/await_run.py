"""Await run completion use case.

Polls a discovered run until it reaches a terminal status:

    WAITING -> WAITING | MATCHED_SUCCESS | MATCHED_FAILURE | NO_MATCH_TIMEOUT

With ``max_poll_attempts == 0`` the timeout state is unreachable and the
waiter only exits through a completed run.
"""

from __future__ import annotations

import time
from datetime import datetime

from workflow_trigger.config.logging_config import get_logger
from workflow_trigger.config.settings import Settings
from workflow_trigger.domain.exceptions import TransientAPIError
from workflow_trigger.domain.models import (
    CorrelationMode,
    PollState,
    RunRecord,
    WaitOutcome,
    WaitResult,
)
from workflow_trigger.domain.protocols import (
    ClockCallable,
    SleepCallable,
    WorkflowRunsClientProtocol,
)
from workflow_trigger.observability.tracing import run_scope
from workflow_trigger.services.run_extractor import parse_run_record
from workflow_trigger.use_cases.list_runs import (
    compute_since,
    list_runs_use_case,
    utc_now,
)

logger = get_logger(__name__)


def _poll_records(
    client: WorkflowRunsClientProtocol,
    settings: Settings,
    state: PollState,
    since: datetime,
) -> list[RunRecord]:
    if settings.correlation_mode == CorrelationMode.RUN_ID:
        return [parse_run_record(client.get_run(state.run_id))]

    snapshot = list_runs_use_case(
        client=client,
        settings=settings,
        since=since,
        name_filter=str(state.run_id),
    )
    return [parse_run_record(client.get_run(run_id)) for run_id in snapshot.run_ids]


def evaluate_records(records: list[RunRecord]) -> tuple[WaitOutcome, RunRecord | None]:
    """Apply one poll's records to the state machine.

    The first completed record decides the outcome; success needs both a
    completed status and a success conclusion.
    """
    for record in records:
        if record.is_completed:
            outcome = (
                WaitOutcome.MATCHED_SUCCESS
                if record.is_successful
                else WaitOutcome.MATCHED_FAILURE
            )
            return outcome, record
    return WaitOutcome.WAITING, None


def await_run_completion_use_case(
    *,
    client: WorkflowRunsClientProtocol,
    settings: Settings,
    run_id: int,
    sleep: SleepCallable | None = None,
    now: ClockCallable | None = None,
    since: datetime | None = None,
) -> WaitResult:
    """Wait until ``run_id`` completes or the poll budget runs out.

    Args:
        client: Actions API client
        settings: Application settings
        run_id: Run discovered by the dispatcher
        sleep: Sleep function used between polls
        now: Clock returning an aware UTC datetime
        since: Listing window start, normally the dispatch's ``since``;
            computed from ``now`` when omitted

    Returns:
        WaitResult with a terminal outcome

    Raises:
        FatalAPIError: On a non-transient API failure
    """
    sleep = sleep or time.sleep
    now = now or utc_now
    state = PollState(run_id=run_id)

    # Runs are created before the dispatch listing changes, so its window covers them
    if since is None:
        since = compute_since(now(), settings.clock_skew_seconds)

    with run_scope(run_id):
        logger.info(
            "workflow_run_waiting",
            correlation_mode=settings.correlation_mode.value,
        )

        while True:
            budget = settings.max_poll_attempts
            if budget and state.attempts >= budget:
                logger.error(
                    "workflow_run_wait_timeout",
                    attempts=state.attempts,
                    match_found=state.match_found,
                )
                return WaitResult(
                    run_id=run_id,
                    outcome=WaitOutcome.NO_MATCH_TIMEOUT,
                    attempts=state.attempts,
                    match_found=state.match_found,
                )

            state.attempts += 1
            logger.info("sleeping", seconds=settings.wait_interval)
            sleep(settings.wait_interval)

            try:
                records = _poll_records(client, settings, state, since)
            except TransientAPIError as exc:
                logger.warning(
                    "workflow_run_poll_transient_error",
                    error=str(exc),
                    attempt=state.attempts,
                )
                continue

            if records:
                state.match_found = True
            for record in records:
                logger.info(
                    "workflow_run_checked",
                    checked_run_id=record.id,
                    status=record.status.value,
                    conclusion=record.conclusion.value if record.conclusion else None,
                )

            outcome, record = evaluate_records(records)
            if outcome == WaitOutcome.WAITING:
                continue

            if outcome == WaitOutcome.MATCHED_SUCCESS:
                logger.info("workflow_run_succeeded", attempts=state.attempts)
            else:
                logger.warning(
                    "workflow_run_finished_unsuccessfully",
                    conclusion=(
                        record.conclusion.value
                        if record is not None and record.conclusion
                        else None
                    ),
                    attempts=state.attempts,
                )
            return WaitResult(
                run_id=run_id,
                outcome=outcome,
                record=record,
                attempts=state.attempts,
                match_found=state.match_found,
            )


__all__ = ["await_run_completion_use_case", "evaluate_records"]
