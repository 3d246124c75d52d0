"""Helpers for correlation identifiers in logs."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from uuid import uuid4

from workflow_trigger.config.logging_config import bind_context, unbind_context

CORRELATION_ID_KEY = "correlation_id"
RUN_ID_KEY = "run_id"
REPOSITORY_KEY = "repository"
WORKFLOW_KEY = "workflow"


@contextmanager
def correlation_scope(existing_id: str | None = None) -> Iterator[str]:
    """Bind a correlation identifier for the lifetime of the context."""

    correlation_id = existing_id or str(uuid4())
    bind_context(**{CORRELATION_ID_KEY: correlation_id})
    try:
        yield correlation_id
    finally:
        unbind_context(CORRELATION_ID_KEY)


@contextmanager
def workflow_scope(repository: str, workflow: str) -> Iterator[None]:
    """Bind the target repository and workflow file to every log entry."""

    bind_context(**{REPOSITORY_KEY: repository, WORKFLOW_KEY: workflow})
    try:
        yield
    finally:
        unbind_context(REPOSITORY_KEY, WORKFLOW_KEY)


@contextmanager
def run_scope(run_id: int) -> Iterator[int]:
    """Bind the workflow run being waited on to every log entry."""

    bind_context(**{RUN_ID_KEY: run_id})
    try:
        yield run_id
    finally:
        unbind_context(RUN_ID_KEY)


__all__ = [
    "CORRELATION_ID_KEY",
    "REPOSITORY_KEY",
    "RUN_ID_KEY",
    "WORKFLOW_KEY",
    "correlation_scope",
    "run_scope",
    "workflow_scope",
]
