"""Trigger-and-wait controller.

Runs the optional dispatch stage, links each discovered run on the
downstream comment URL, then waits for every run in discovery order.
"""

from __future__ import annotations

from datetime import datetime
from typing import cast

from workflow_trigger.config.logging_config import get_logger
from workflow_trigger.config.settings import Settings
from workflow_trigger.domain.exceptions import (
    RunWaitTimeoutError,
    WorkflowRunFailedError,
    WorkflowTriggerError,
)
from workflow_trigger.domain.models import TriggerAndWaitResult, WaitOutcome
from workflow_trigger.domain.protocols import (
    ClockCallable,
    CommentClientProtocol,
    SleepCallable,
    WorkflowRunsClientProtocol,
)
from workflow_trigger.use_cases.await_run import await_run_completion_use_case
from workflow_trigger.use_cases.dispatch_workflow import dispatch_workflow_use_case

logger = get_logger(__name__)


def _comment_downstream_links(
    comment_client: CommentClientProtocol,
    settings: Settings,
    run_ids: list[int],
) -> int:
    if not settings.comment_downstream_url:
        return 0

    posted = 0
    for run_id in run_ids:
        body = f"Running downstream job at {settings.run_html_url(run_id)}"
        try:
            comment_client.post_comment(
                settings.comment_downstream_url,
                body,
                token=settings.comment_token.get_secret_value(),
            )
        except WorkflowTriggerError as exc:
            logger.warning(
                "downstream_comment_failed",
                url=settings.comment_downstream_url,
                run_id=run_id,
                error=str(exc),
            )
            continue
        posted += 1
        logger.info("downstream_comment_posted", run_id=run_id)
    return posted


def trigger_and_wait_use_case(
    *,
    client: WorkflowRunsClientProtocol,
    settings: Settings,
    comment_client: CommentClientProtocol | None = None,
    sleep: SleepCallable | None = None,
    now: ClockCallable | None = None,
) -> TriggerAndWaitResult:
    """Trigger the workflow and wait for the runs it creates.

    Args:
        client: Actions API client
        settings: Application settings
        comment_client: Client used for downstream comments (defaults to ``client``)
        sleep: Sleep function used between polls
        now: Clock returning an aware UTC datetime

    Returns:
        Summary of triggered and awaited runs

    Raises:
        WorkflowRunFailedError: A run failed and propagate_failure is set
        RunWaitTimeoutError: A run did not complete within the poll budget
        DispatchTimeoutError: No new run appeared after the dispatch
        FatalAPIError: On a non-transient API failure
    """
    run_ids: list[int] = []
    comments_posted = 0
    since: datetime | None = None

    if settings.trigger_workflow:
        dispatch_result = dispatch_workflow_use_case(
            client=client,
            settings=settings,
            sleep=sleep,
            now=now,
        )
        run_ids = dispatch_result.new_run_ids
        since = dispatch_result.since
        commenter = (
            comment_client
            if comment_client is not None
            else cast(CommentClientProtocol, client)
        )
        comments_posted = _comment_downstream_links(commenter, settings, run_ids)
    else:
        logger.info("workflow_trigger_skipped")

    result = TriggerAndWaitResult(
        triggered=settings.trigger_workflow,
        waited=settings.wait_workflow,
        run_ids=run_ids,
        comments_posted=comments_posted,
    )

    if not settings.wait_workflow:
        logger.info("workflow_wait_skipped", run_ids=run_ids)
        return result

    for run_id in run_ids:
        wait_result = await_run_completion_use_case(
            client=client,
            settings=settings,
            run_id=run_id,
            sleep=sleep,
            now=now,
            since=since,
        )
        result.wait_results.append(wait_result)

        if wait_result.outcome == WaitOutcome.NO_MATCH_TIMEOUT:
            raise RunWaitTimeoutError(run_id, wait_result.attempts)

        if wait_result.outcome == WaitOutcome.MATCHED_FAILURE:
            conclusion = (
                wait_result.record.conclusion.value
                if wait_result.record and wait_result.record.conclusion
                else None
            )
            if settings.propagate_failure:
                raise WorkflowRunFailedError(run_id, conclusion)
            logger.warning(
                "workflow_run_failure_ignored",
                run_id=run_id,
                conclusion=conclusion,
            )

    logger.info(
        "trigger_and_wait_finished",
        run_ids=run_ids,
        failed_runs=[failed.run_id for failed in result.failed_runs],
    )
    return result


__all__ = ["trigger_and_wait_use_case"]
