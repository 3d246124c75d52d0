"""Tests for the Actions API client adapter."""

from __future__ import annotations

import json
from typing import Any

import pytest
import requests
from pytest_mock import MockerFixture

from workflow_trigger.adapters.github_actions_client import (
    GitHubActionsClient,
    ResponseClass,
    classify_status,
)
from workflow_trigger.config.settings import Settings
from workflow_trigger.domain.exceptions import FatalAPIError, TransientAPIError
from workflow_trigger.domain.models import DispatchRequest


def _response(
    status_code: int,
    payload: Any = None,
    *,
    headers: dict[str, str] | None = None,
    raw: bytes | None = None,
) -> requests.Response:
    response = requests.Response()
    response.status_code = status_code
    if raw is not None:
        response._content = raw
    else:
        response._content = json.dumps(payload).encode() if payload is not None else b""
    response.encoding = "utf-8"
    response.headers.update(headers or {})
    return response


@pytest.fixture
def session(mocker: MockerFixture) -> Any:
    return mocker.Mock(spec=requests.Session)


@pytest.fixture
def client(session: Any, fake_sleep: Any) -> GitHubActionsClient:
    return GitHubActionsClient(
        "ghp_test",
        "octo-org",
        "octo-repo",
        session=session,
        sleep=fake_sleep,
        max_retries=3,
    )


@pytest.mark.parametrize(
    ("status_code", "expected"),
    [
        (200, ResponseClass.SUCCESS),
        (204, ResponseClass.SUCCESS),
        (401, ResponseClass.FATAL),
        (404, ResponseClass.FATAL),
        (422, ResponseClass.FATAL),
        (408, ResponseClass.TRANSIENT),
        (429, ResponseClass.TRANSIENT),
        (500, ResponseClass.TRANSIENT),
        (502, ResponseClass.TRANSIENT),
    ],
)
def test_classify_status(status_code: int, expected: ResponseClass) -> None:
    assert classify_status(status_code) is expected


def test_list_workflow_runs_builds_query_and_headers(
    client: GitHubActionsClient, session: Any
) -> None:
    session.request.return_value = _response(200, {"workflow_runs": []})

    body = client.list_workflow_runs(
        "deploy.yml", since="2024-05-01T11:58:00+00:00", per_page=100
    )

    assert body == {"workflow_runs": []}
    args, kwargs = session.request.call_args
    assert args == (
        "GET",
        "https://api.github.com/repos/octo-org/octo-repo/actions/workflows/deploy.yml/runs",
    )
    assert kwargs["params"] == {
        "event": "workflow_dispatch",
        "created": ">=2024-05-01T11:58:00+00:00",
        "per_page": 100,
    }
    assert kwargs["headers"] == {
        "Authorization": "Bearer ghp_test",
        "Accept": "application/vnd.github.v3+json",
        "Content-Type": "application/json",
    }
    assert kwargs["timeout"] == 30.0


def test_dispatch_posts_ref_and_inputs(client: GitHubActionsClient, session: Any) -> None:
    session.request.return_value = _response(204)

    client.dispatch_workflow(
        "deploy.yml", DispatchRequest(ref="main", inputs={"env": "staging"})
    )

    args, kwargs = session.request.call_args
    assert args[0] == "POST"
    assert args[1].endswith("/actions/workflows/deploy.yml/dispatches")
    assert kwargs["json"] == {"ref": "main", "inputs": {"env": "staging"}}


def test_get_run_retries_server_errors_with_backoff(
    client: GitHubActionsClient,
    session: Any,
    sleep_calls: list[float],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(client._random, "uniform", lambda _a, _b: 0.0)
    session.request.side_effect = [
        _response(502, {"message": "Server Error"}),
        _response(200, {"id": 103, "status": "completed"}),
    ]

    body = client.get_run(103)

    assert body["id"] == 103
    assert session.request.call_count == 2
    assert sleep_calls == [2.0]


def test_retry_after_header_overrides_backoff(
    client: GitHubActionsClient,
    session: Any,
    sleep_calls: list[float],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(client._random, "uniform", lambda _a, _b: 0.0)
    session.request.side_effect = [
        _response(429, {"message": "slow down"}, headers={"Retry-After": "7"}),
        _response(200, {"workflow_runs": []}),
    ]

    client.list_workflow_runs("deploy.yml", since="2024-05-01T11:58:00+00:00")

    assert sleep_calls == [7.0]


def test_transient_error_raised_after_retries_exhausted(
    client: GitHubActionsClient, session: Any
) -> None:
    session.request.return_value = _response(503, {"message": "Server Error"})

    with pytest.raises(TransientAPIError) as exc_info:
        client.get_run(103)

    assert exc_info.value.status_code == 503
    assert session.request.call_count == 3


def test_connection_errors_are_transient(
    client: GitHubActionsClient, session: Any
) -> None:
    session.request.side_effect = requests.ConnectionError("connection reset")

    with pytest.raises(TransientAPIError):
        client.get_run(103)

    assert session.request.call_count == 3


def test_dispatch_is_not_retried(
    client: GitHubActionsClient, session: Any, sleep_calls: list[float]
) -> None:
    session.request.return_value = _response(500, {"message": "Server Error"})

    with pytest.raises(TransientAPIError):
        client.dispatch_workflow("deploy.yml", DispatchRequest(ref="main"))

    assert session.request.call_count == 1
    assert sleep_calls == []


def test_client_errors_are_fatal_without_retry(
    client: GitHubActionsClient, session: Any
) -> None:
    session.request.return_value = _response(404, {"message": "Not Found"})

    with pytest.raises(FatalAPIError) as exc_info:
        client.list_workflow_runs("missing.yml", since="2024-05-01T11:58:00+00:00")

    assert exc_info.value.status_code == 404
    assert session.request.call_count == 1


def test_non_json_body_is_fatal(client: GitHubActionsClient, session: Any) -> None:
    session.request.return_value = _response(200, raw=b"<html>oops</html>")

    with pytest.raises(FatalAPIError):
        client.get_run(103)


def test_post_comment_uses_its_own_token(
    client: GitHubActionsClient, session: Any
) -> None:
    session.request.return_value = _response(201, {"id": 1})
    url = "https://api.github.com/repos/octo-org/app/issues/7/comments"

    client.post_comment(url, "Running downstream job at x", token="ghp_comment")

    args, kwargs = session.request.call_args
    assert args == ("POST", url)
    assert kwargs["headers"]["Authorization"] == "Bearer ghp_comment"
    assert kwargs["json"] == {"body": "Running downstream job at x"}


def test_from_settings_uses_api_url_override(
    settings: Settings, session: Any
) -> None:
    enterprise = settings.model_copy(
        update={"api_url": "https://ghe.example.com/api/v3"}
    )
    session.request.return_value = _response(200, {"id": 5})

    GitHubActionsClient.from_settings(enterprise, session=session).get_run(5)

    args, _ = session.request.call_args
    assert args[1] == "https://ghe.example.com/api/v3/repos/octo-org/octo-repo/actions/runs/5"
