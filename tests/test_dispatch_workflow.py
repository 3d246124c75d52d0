"""Tests for the dispatch workflow use case."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

import pytest

from tests.stubs import StubActionsClient, run_payload
from workflow_trigger.config.settings import Settings
from workflow_trigger.domain.exceptions import (
    DispatchTimeoutError,
    FatalAPIError,
    TransientAPIError,
)
from workflow_trigger.domain.models import DispatchRequest
from workflow_trigger.use_cases.dispatch_workflow import dispatch_workflow_use_case


def test_new_run_discovered_after_one_poll(
    settings: Settings,
    fake_sleep: Callable[[float], None],
    sleep_calls: list[float],
    fixed_now: Callable[[], datetime],
) -> None:
    client = StubActionsClient(
        listings=[
            [run_payload(101), run_payload(102)],
            [run_payload(101), run_payload(102), run_payload(103)],
        ]
    )
    request = DispatchRequest(ref="main", inputs={"env": "staging"})

    result = dispatch_workflow_use_case(
        client=client,
        settings=settings,
        request=request,
        sleep=fake_sleep,
        now=fixed_now,
    )

    assert result.new_run_ids == [103]
    assert result.baseline.run_ids == (101, 102)
    assert result.polls == 1
    assert client.dispatches == [("deploy.yml", request)]
    assert sleep_calls == [10.0]


def test_dispatch_uses_settings_payload_by_default(
    settings: Settings,
    fake_sleep: Callable[[float], None],
    fixed_now: Callable[[], datetime],
) -> None:
    configured = settings.model_copy(
        update={"ref": "release/1.2", "client_payload": {"version": "1.2.0"}}
    )
    client = StubActionsClient(listings=[[], [run_payload(7)]])

    dispatch_workflow_use_case(
        client=client, settings=configured, sleep=fake_sleep, now=fixed_now
    )

    _, request = client.dispatches[0]
    assert request.to_payload() == {"ref": "release/1.2", "inputs": {"version": "1.2.0"}}


def test_keeps_polling_until_listing_changes(
    settings: Settings,
    fake_sleep: Callable[[float], None],
    sleep_calls: list[float],
    fixed_now: Callable[[], datetime],
) -> None:
    client = StubActionsClient(
        listings=[
            [run_payload(101)],
            [run_payload(101)],
            [run_payload(101)],
            [run_payload(101), run_payload(104), run_payload(103)],
        ]
    )

    result = dispatch_workflow_use_case(
        client=client, settings=settings, sleep=fake_sleep, now=fixed_now
    )

    assert result.new_run_ids == [103, 104]
    assert result.polls == 3
    assert len(sleep_calls) == 3


def test_transient_errors_while_polling_are_retried(
    settings: Settings,
    fake_sleep: Callable[[float], None],
    fixed_now: Callable[[], datetime],
) -> None:
    client = StubActionsClient(
        listings=[
            [run_payload(101)],
            TransientAPIError("Server Error", status_code=502),
            [run_payload(101), run_payload(102)],
        ]
    )

    result = dispatch_workflow_use_case(
        client=client, settings=settings, sleep=fake_sleep, now=fixed_now
    )

    assert result.new_run_ids == [102]
    assert result.polls == 2


def test_fatal_errors_abort_immediately(
    settings: Settings,
    fake_sleep: Callable[[float], None],
    sleep_calls: list[float],
    fixed_now: Callable[[], datetime],
) -> None:
    client = StubActionsClient(
        listings=[
            [run_payload(101)],
            FatalAPIError("Bad credentials", status_code=401),
            [run_payload(101), run_payload(102)],
        ]
    )

    with pytest.raises(FatalAPIError):
        dispatch_workflow_use_case(
            client=client, settings=settings, sleep=fake_sleep, now=fixed_now
        )

    assert len(sleep_calls) == 1


def test_gives_up_when_no_run_appears_within_budget(
    settings: Settings,
    fake_sleep: Callable[[float], None],
    sleep_calls: list[float],
    fixed_now: Callable[[], datetime],
) -> None:
    client = StubActionsClient(listings=[[run_payload(101)]])

    with pytest.raises(DispatchTimeoutError) as exc_info:
        dispatch_workflow_use_case(
            client=client, settings=settings, sleep=fake_sleep, now=fixed_now
        )

    assert exc_info.value.attempts == settings.max_poll_attempts
    assert len(sleep_calls) == settings.max_poll_attempts
    assert len(client.list_calls) == settings.max_poll_attempts + 1


def test_unbounded_budget_keeps_polling(
    settings: Settings,
    fixed_now: Callable[[], datetime],
) -> None:
    unbounded = settings.model_copy(update={"max_poll_attempts": 0})
    polls_before_change = 50
    listings: list = [[run_payload(1)]] * (polls_before_change + 1)
    listings.append([run_payload(1), run_payload(2)])
    client = StubActionsClient(listings=listings)

    result = dispatch_workflow_use_case(
        client=client, settings=unbounded, sleep=lambda _s: None, now=fixed_now
    )

    assert result.new_run_ids == [2]
    assert result.polls == polls_before_change + 1


def test_server_error_on_dispatch_still_discovers_new_run(
    settings: Settings,
    fake_sleep: Callable[[float], None],
    fixed_now: Callable[[], datetime],
) -> None:
    client = StubActionsClient(
        listings=[
            [run_payload(101), run_payload(102)],
            [run_payload(101), run_payload(102), run_payload(103)],
        ],
        dispatch_error=TransientAPIError("HTTP 502", status_code=502),
    )

    result = dispatch_workflow_use_case(
        client=client, settings=settings, sleep=fake_sleep, now=fixed_now
    )

    assert result.new_run_ids == [103]
    assert len(client.dispatches) == 1


def test_server_error_on_dispatch_without_new_run_times_out(
    settings: Settings,
    fake_sleep: Callable[[float], None],
    fixed_now: Callable[[], datetime],
) -> None:
    client = StubActionsClient(
        listings=[[run_payload(101)]],
        dispatch_error=TransientAPIError("HTTP 503", status_code=503),
    )

    with pytest.raises(DispatchTimeoutError):
        dispatch_workflow_use_case(
            client=client, settings=settings, sleep=fake_sleep, now=fixed_now
        )

    assert len(client.dispatches) == 1


def test_baseline_listing_retried_before_dispatch(
    settings: Settings,
    fake_sleep: Callable[[float], None],
    sleep_calls: list[float],
    fixed_now: Callable[[], datetime],
) -> None:
    client = StubActionsClient(
        listings=[
            TransientAPIError("HTTP 502", status_code=502),
            [run_payload(101)],
            [run_payload(101), run_payload(102)],
        ]
    )

    result = dispatch_workflow_use_case(
        client=client, settings=settings, sleep=fake_sleep, now=fixed_now
    )

    assert result.baseline.run_ids == (101,)
    assert result.new_run_ids == [102]
    assert result.polls == 2
    assert len(sleep_calls) == 2
    assert len(client.dispatches) == 1


def test_baseline_listing_never_available_does_not_dispatch(
    settings: Settings,
    fake_sleep: Callable[[float], None],
    fixed_now: Callable[[], datetime],
) -> None:
    client = StubActionsClient(
        listings=[TransientAPIError("HTTP 504", status_code=504)]
    )

    with pytest.raises(DispatchTimeoutError) as exc_info:
        dispatch_workflow_use_case(
            client=client, settings=settings, sleep=fake_sleep, now=fixed_now
        )

    assert exc_info.value.attempts == settings.max_poll_attempts
    assert client.dispatches == []
