"""List runs use case.

Takes a snapshot of recent workflow_dispatch run ids, optionally narrowed to
runs whose display name carries a correlation token.
"""

from __future__ import annotations

from datetime import datetime, timedelta

import pytz

from workflow_trigger.config.logging_config import get_logger
from workflow_trigger.config.settings import Settings
from workflow_trigger.domain.models import RunSnapshot
from workflow_trigger.domain.protocols import WorkflowRunsClientProtocol
from workflow_trigger.services.run_extractor import extract_run_ids

logger = get_logger(__name__)


def utc_now() -> datetime:
    return datetime.now(tz=pytz.UTC)


def compute_since(now: datetime, clock_skew_seconds: int) -> datetime:
    """Lower bound for run creation times, widened to absorb clock skew."""
    return (now - timedelta(seconds=clock_skew_seconds)).replace(microsecond=0)


def format_since(since: datetime) -> str:
    """Format as ISO-8601 UTC with seconds precision (``date -u -Iseconds``)."""
    if since.tzinfo is None:
        since = pytz.UTC.localize(since)
    return since.astimezone(pytz.UTC).replace(microsecond=0).isoformat()


def list_runs_use_case(
    *,
    client: WorkflowRunsClientProtocol,
    settings: Settings,
    since: datetime,
    name_filter: str | None = None,
) -> RunSnapshot:
    """Fetch the ids of workflow_dispatch runs created since ``since``.

    Args:
        client: Actions API client
        settings: Application settings
        since: Creation-time lower bound
        name_filter: Optional display-name substring

    Returns:
        Snapshot with ids sorted ascending

    Raises:
        TransientAPIError: On server-side or network failures
        FatalAPIError: On any other API failure
    """
    since_str = format_since(since)
    logger.debug(
        "workflow_runs_listing",
        workflow=settings.workflow_file_name,
        since=since_str,
        name_filter=name_filter,
    )

    payload = client.list_workflow_runs(
        settings.workflow_file_name,
        since=since_str,
        per_page=settings.runs_page_size,
    )
    run_ids = extract_run_ids(payload, name_filter)

    logger.debug("workflow_runs_listed", run_ids=run_ids, count=len(run_ids))
    return RunSnapshot(run_ids=run_ids, since=since, name_filter=name_filter)


__all__ = ["compute_since", "format_since", "list_runs_use_case", "utc_now"]
