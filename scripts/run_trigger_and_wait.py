from __future__ import annotations

"""Entry point: trigger a workflow_dispatch run and wait for it to finish."""

import argparse
import sys
from pathlib import Path

from workflow_trigger.adapters.github_actions_client import GitHubActionsClient
from workflow_trigger.config.logging_config import get_logger, setup_logging
from workflow_trigger.config.settings import (
    DEFAULT_CONFIG_PATH,
    USAGE_DOCS,
    Settings,
    load_settings,
)
from workflow_trigger.domain.exceptions import ConfigurationError, WorkflowTriggerError
from workflow_trigger.observability.tracing import correlation_scope, workflow_scope
from workflow_trigger.use_cases.trigger_and_wait import trigger_and_wait_use_case

logger = get_logger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Trigger a GitHub Actions workflow and wait for it to complete. "
            "Inputs are read from INPUT_* environment variables."
        ),
        epilog=USAGE_DOCS,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help="Optional YAML config with non-secret defaults (default: %(default)s)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override the configured logging level",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit logs in JSON format",
    )
    return parser.parse_args(argv)


def initialize_logging(settings: Settings, *, json_logs: bool = False) -> None:
    """Initialize structlog-based logging for the action."""

    setup_logging(log_level=settings.log_level, json_logs=json_logs)
    logger.info("logging_initialized", level=settings.log_level, json_logs=json_logs)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    try:
        settings = load_settings(config_path=args.config)
    except ConfigurationError as exc:
        for problem in exc.problems:
            print(f"Error: {problem}", file=sys.stderr)
        print(USAGE_DOCS, file=sys.stderr)
        return 1

    if args.log_level:
        settings = settings.model_copy(update={"log_level": args.log_level})
    initialize_logging(settings, json_logs=args.json_logs)

    client = GitHubActionsClient.from_settings(settings)
    try:
        with correlation_scope(), workflow_scope(
            f"{settings.owner}/{settings.repo}", settings.workflow_file_name
        ):
            result = trigger_and_wait_use_case(client=client, settings=settings)
    except WorkflowTriggerError as exc:
        logger.error(
            "trigger_and_wait_failed",
            error_type=type(exc).__name__,
            error=str(exc),
        )
        return 1
    finally:
        client.close()

    logger.info(
        "trigger_and_wait_succeeded",
        run_ids=result.run_ids,
        triggered=result.triggered,
        waited=result.waited,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
