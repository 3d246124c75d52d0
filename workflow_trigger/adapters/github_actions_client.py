"""GitHub Actions REST API client adapter."""

from __future__ import annotations

import random
import time
from enum import Enum
from typing import TYPE_CHECKING, Any, Final

import requests

from workflow_trigger.config.logging_config import get_logger
from workflow_trigger.domain.exceptions import FatalAPIError, TransientAPIError
from workflow_trigger.domain.models import DispatchRequest
from workflow_trigger.domain.protocols import SleepCallable

if TYPE_CHECKING:
    from workflow_trigger.config.settings import Settings

logger = get_logger(__name__)

DEFAULT_API_URL: Final[str] = "https://api.github.com"
DEFAULT_TIMEOUT_SECONDS: Final[float] = 30.0
DEFAULT_MAX_RETRIES: Final[int] = 3
ACCEPT_MEDIA_TYPE: Final[str] = "application/vnd.github.v3+json"
CONTENT_TYPE: Final[str] = "application/json"
MAX_JITTER_SECONDS: Final[float] = 0.5
HTTP_STATUS_REQUEST_TIMEOUT: Final[int] = 408
HTTP_STATUS_TOO_MANY_REQUESTS: Final[int] = 429
HTTP_STATUS_SERVER_ERROR: Final[int] = 500
MAX_LOGGED_BODY_CHARS: Final[int] = 500


class ResponseClass(str, Enum):
    """Outcome class of an HTTP status code."""

    SUCCESS = "success"
    TRANSIENT = "transient"
    FATAL = "fatal"


def classify_status(status_code: int) -> ResponseClass:
    """Classify an HTTP status code as success, transient or fatal."""
    if 200 <= status_code < 300:
        return ResponseClass.SUCCESS
    if status_code >= HTTP_STATUS_SERVER_ERROR or status_code in (
        HTTP_STATUS_REQUEST_TIMEOUT,
        HTTP_STATUS_TOO_MANY_REQUESTS,
    ):
        return ResponseClass.TRANSIENT
    return ResponseClass.FATAL


class GitHubActionsClient:
    """Actions workflow-runs API client with transient-error retries."""

    def __init__(
        self,
        token: str,
        owner: str,
        repo: str,
        *,
        api_url: str = DEFAULT_API_URL,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        session: requests.Session | None = None,
        sleep: SleepCallable | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            token: Bearer token with repo access
            owner: Repository owner
            repo: Repository name
            api_url: REST API base URL (GitHub Enterprise installs differ)
            timeout_seconds: Per-request timeout
            max_retries: Attempts for idempotent requests on transient errors
            session: Optional pre-configured requests session
            sleep: Sleep function used between retries
        """
        if not token:
            raise ValueError("Actions API token must not be empty")
        self._token = token
        self._owner = owner
        self._repo = repo
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout_seconds
        self._max_retries = max(max_retries, 1)
        self._session = session or requests.Session()
        self._sleep = sleep or time.sleep
        self._random = random.Random()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        session: requests.Session | None = None,
        sleep: SleepCallable | None = None,
    ) -> GitHubActionsClient:
        return cls(
            settings.github_token.get_secret_value(),
            settings.owner,
            settings.repo,
            api_url=settings.api_url,
            timeout_seconds=settings.http_timeout_seconds,
            max_retries=settings.http_max_retries,
            session=session,
            sleep=sleep,
        )

    def list_workflow_runs(
        self,
        workflow_file_name: str,
        *,
        since: str,
        per_page: int = 100,
    ) -> dict[str, Any]:
        """List workflow_dispatch runs of a workflow created at or after ``since``.

        Raises:
            TransientAPIError: When retries are exhausted on server/network errors
            FatalAPIError: On any other non-2xx response
        """
        params = {
            "event": "workflow_dispatch",
            "created": f">={since}",
            "per_page": per_page,
        }
        return self._request(
            "GET",
            self._actions_url(f"workflows/{workflow_file_name}/runs"),
            params=params,
            retry_transient=True,
        )

    def dispatch_workflow(
        self, workflow_file_name: str, request: DispatchRequest
    ) -> None:
        """Create a workflow_dispatch event.

        Not retried: a repeated POST could start a second run.
        """
        self._request(
            "POST",
            self._actions_url(f"workflows/{workflow_file_name}/dispatches"),
            json_body=request.to_payload(),
            retry_transient=False,
        )

    def get_run(self, run_id: int) -> dict[str, Any]:
        return self._request(
            "GET", self._actions_url(f"runs/{run_id}"), retry_transient=True
        )

    def post_comment(self, url: str, body: str, *, token: str) -> dict[str, Any]:
        """Post an issue/PR comment to an absolute comments URL."""
        return self._request(
            "POST",
            url,
            json_body={"body": body},
            token=token,
            retry_transient=False,
        )

    def close(self) -> None:
        self._session.close()

    def _actions_url(self, path: str) -> str:
        return f"{self._api_url}/repos/{self._owner}/{self._repo}/actions/{path}"

    def _headers(self, token: str | None) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {token or self._token}",
            "Accept": ACCEPT_MEDIA_TYPE,
            "Content-Type": CONTENT_TYPE,
        }

    def _request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
        token: str | None = None,
        retry_transient: bool,
    ) -> Any:
        attempt = 0
        while True:
            try:
                return self._send(
                    method, url, params=params, json_body=json_body, token=token
                )
            except TransientAPIError as error:
                attempt += 1
                if not retry_transient or attempt >= self._max_retries:
                    raise

                backoff_seconds = (
                    error.retry_after if error.retry_after is not None else 2**attempt
                )
                logger.warning(
                    "actions_api_retry",
                    method=method,
                    url=url,
                    error=str(error),
                    attempt=attempt,
                    max_retries=self._max_retries,
                    backoff_seconds=backoff_seconds,
                )
                self._sleep(
                    backoff_seconds + self._random.uniform(0.0, MAX_JITTER_SECONDS)
                )

    def _send(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None,
        json_body: dict[str, Any] | None,
        token: str | None,
    ) -> Any:
        try:
            response = self._session.request(
                method,
                url,
                headers=self._headers(token),
                params=params,
                json=json_body,
                timeout=self._timeout,
            )
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise TransientAPIError(f"{method} {url} failed: {exc}") from exc
        except requests.RequestException as exc:
            raise FatalAPIError(f"{method} {url} failed: {exc}") from exc

        response_class = classify_status(response.status_code)
        if response_class is ResponseClass.SUCCESS:
            return self._decode(response, method, url)

        body = response.text[:MAX_LOGGED_BODY_CHARS]
        message = f"{method} {url} returned HTTP {response.status_code}: {body}"
        if response_class is ResponseClass.TRANSIENT:
            logger.warning(
                "actions_api_transient_error",
                method=method,
                url=url,
                status_code=response.status_code,
                response=body,
            )
            raise TransientAPIError(
                message,
                status_code=response.status_code,
                retry_after=self._retry_after_seconds(response),
            )

        logger.error(
            "actions_api_failed",
            method=method,
            url=url,
            status_code=response.status_code,
            response=body,
        )
        raise FatalAPIError(message, status_code=response.status_code)

    def _decode(self, response: requests.Response, method: str, url: str) -> Any:
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise FatalAPIError(
                f"{method} {url} returned a non-JSON body",
                status_code=response.status_code,
            ) from exc

    def _retry_after_seconds(self, response: requests.Response) -> float | None:
        retry_after = response.headers.get("Retry-After")
        if retry_after is None:
            return None
        try:
            return max(float(retry_after), 0.0)
        except (TypeError, ValueError):
            return None


__all__ = [
    "GitHubActionsClient",
    "ResponseClass",
    "classify_status",
]
