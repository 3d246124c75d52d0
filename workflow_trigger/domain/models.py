"""Domain models for trigger-workflow-and-wait.

All models use Pydantic v2 for validation and serialization.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RunStatus(str, Enum):
    """Lifecycle status of a workflow run."""

    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    OTHER = "other"


class RunConclusion(str, Enum):
    """Terminal outcome of a completed workflow run."""

    SUCCESS = "success"
    FAILURE = "failure"
    CANCELLED = "cancelled"
    OTHER = "other"


class WaitOutcome(str, Enum):
    """States of the run waiter."""

    WAITING = "waiting"
    MATCHED_SUCCESS = "matched_success"
    MATCHED_FAILURE = "matched_failure"
    NO_MATCH_TIMEOUT = "no_match_timeout"


class CorrelationMode(str, Enum):
    """How a discovered run id is matched while waiting."""

    DISPLAY_NAME = "display_name"
    RUN_ID = "run_id"


class DispatchRequest(BaseModel):
    """Body of a workflow dispatch request."""

    model_config = ConfigDict(frozen=True)

    ref: str = Field(..., min_length=1, description="Git ref the run executes on")
    inputs: dict[str, Any] = Field(
        default_factory=dict, description="Workflow inputs (client payload)"
    )

    def to_payload(self) -> dict[str, Any]:
        return {"ref": self.ref, "inputs": dict(self.inputs)}


class RunRecord(BaseModel):
    """Point-in-time view of a single workflow run."""

    id: int
    status: RunStatus = RunStatus.OTHER
    conclusion: RunConclusion | None = None
    name: str | None = None
    html_url: str | None = None

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> RunStatus:
        try:
            return RunStatus(value)
        except ValueError:
            return RunStatus.OTHER

    @field_validator("conclusion", mode="before")
    @classmethod
    def _coerce_conclusion(cls, value: Any) -> RunConclusion | None:
        if value is None:
            return None
        try:
            return RunConclusion(value)
        except ValueError:
            return RunConclusion.OTHER

    @property
    def is_completed(self) -> bool:
        return self.status == RunStatus.COMPLETED

    @property
    def is_successful(self) -> bool:
        """Success requires both a completed status and a success conclusion."""
        return self.is_completed and self.conclusion == RunConclusion.SUCCESS


class RunSnapshot(BaseModel):
    """Sorted, de-duplicated run identifiers observed at one point in time."""

    model_config = ConfigDict(frozen=True)

    run_ids: tuple[int, ...] = ()
    since: datetime | None = None
    name_filter: str | None = None

    @field_validator("run_ids", mode="before")
    @classmethod
    def _sort_ids(cls, value: Any) -> tuple[int, ...]:
        return tuple(sorted({int(run_id) for run_id in value or ()}))

    def difference(self, baseline: "RunSnapshot") -> list[int]:
        """Return run ids present here but absent from ``baseline``."""
        known = set(baseline.run_ids)
        return [run_id for run_id in self.run_ids if run_id not in known]

    def same_runs(self, other: "RunSnapshot") -> bool:
        return self.run_ids == other.run_ids

    def __len__(self) -> int:
        return len(self.run_ids)


class PollState(BaseModel):
    """Mutable bookkeeping for one run being waited on."""

    run_id: int
    match_found: bool = False
    attempts: int = 0


class DispatchResult(BaseModel):
    """Result of dispatching a workflow and discovering its runs."""

    since: datetime
    baseline: RunSnapshot
    current: RunSnapshot
    new_run_ids: list[int] = Field(default_factory=list)
    polls: int = 0


class WaitResult(BaseModel):
    """Result of waiting on one run."""

    run_id: int
    outcome: WaitOutcome
    record: RunRecord | None = None
    attempts: int = 0
    match_found: bool = False

    @property
    def failed(self) -> bool:
        return self.outcome == WaitOutcome.MATCHED_FAILURE


class TriggerAndWaitResult(BaseModel):
    """Summary of a full trigger-and-wait invocation."""

    triggered: bool
    waited: bool
    run_ids: list[int] = Field(default_factory=list)
    wait_results: list[WaitResult] = Field(default_factory=list)
    comments_posted: int = 0

    @property
    def failed_runs(self) -> list[WaitResult]:
        return [result for result in self.wait_results if result.failed]
