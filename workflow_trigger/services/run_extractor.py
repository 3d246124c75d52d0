"""Field extraction from Actions API response bodies."""

from typing import Any

from pydantic import ValidationError

from workflow_trigger.domain.exceptions import FatalAPIError
from workflow_trigger.domain.models import RunRecord


def _name_matches(run: dict[str, Any], name_filter: str | None) -> bool:
    if name_filter is None:
        return True
    name = run.get("name")
    return isinstance(name, str) and name_filter in name


def extract_run_ids(payload: Any, name_filter: str | None = None) -> list[int]:
    """Return sorted ids of runs whose display name contains ``name_filter``.

    Args:
        payload: Decoded body of a list-workflow-runs response
        name_filter: Optional substring the run name must contain

    Raises:
        FatalAPIError: If the body has no ``workflow_runs`` array
    """
    runs = payload.get("workflow_runs") if isinstance(payload, dict) else None
    if not isinstance(runs, list):
        raise FatalAPIError("Unexpected workflow runs response: missing workflow_runs")

    run_ids = {
        int(run["id"])
        for run in runs
        if (
            isinstance(run, dict)
            and run.get("id") is not None
            and _name_matches(run, name_filter)
        )
    }
    return sorted(run_ids)


def parse_run_record(payload: Any) -> RunRecord:
    """Build a RunRecord from a get-run response body.

    Raises:
        FatalAPIError: If the body lacks a usable run id
    """
    if not isinstance(payload, dict):
        raise FatalAPIError("Unexpected run response: body is not an object")
    try:
        return RunRecord(
            id=payload.get("id"),
            status=payload.get("status"),
            conclusion=payload.get("conclusion"),
            name=payload.get("name"),
            html_url=payload.get("html_url"),
        )
    except ValidationError as exc:
        raise FatalAPIError(f"Unexpected run response: {exc}") from exc
