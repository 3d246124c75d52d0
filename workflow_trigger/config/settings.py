"""Application settings with Pydantic Settings validation.

Action inputs arrive as ``INPUT_*`` environment variables (the container
action convention); secrets may also come from a local .env file.
Non-sensitive defaults can be kept in config/main.yaml, validated against
config/schemas/main.schema.json. Environment values always win over YAML.
"""

import json
from pathlib import Path
from typing import Any, Final

import yaml
from jsonschema import ValidationError as JSONSchemaValidationError
from jsonschema import validate
from pydantic import (
    AliasChoices,
    Field,
    SecretStr,
    ValidationError,
    ValidationInfo,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict, SettingsError

from workflow_trigger.config.logging_config import get_logger
from workflow_trigger.domain.exceptions import ConfigurationError
from workflow_trigger.domain.models import CorrelationMode, DispatchRequest

DEFAULT_API_URL: Final[str] = "https://api.github.com"
DEFAULT_SERVER_URL: Final[str] = "https://github.com"
DEFAULT_WAIT_INTERVAL_SECONDS: Final[float] = 10.0
DEFAULT_CLOCK_SKEW_SECONDS: Final[int] = 120
DEFAULT_RUNS_PAGE_SIZE: Final[int] = 100
DEFAULT_MAX_POLL_ATTEMPTS: Final[int] = 360
DEFAULT_HTTP_TIMEOUT_SECONDS: Final[float] = 30.0
DEFAULT_HTTP_MAX_RETRIES: Final[int] = 3

DEFAULT_CONFIG_PATH: Final[Path] = Path("config/main.yaml")
DEFAULT_SCHEMA_DIR: Final[Path] = Path("config/schemas")

USAGE_DOCS: Final[str] = """
You can use this Github Action with:
- uses: convictional/trigger-workflow-and-wait
  with:
    owner: keithconvictional
    repo: myrepo
    github_token: ${{ secrets.GITHUB_PERSONAL_ACCESS_TOKEN }}
    workflow_file_name: main.yaml
"""

REQUIRED_FIELD_MESSAGES: Final[dict[str, str]] = {
    "owner": "Owner is a required argument.",
    "repo": "Repo is a required argument.",
    "github_token": (
        "Github token is required. You can head over settings and under "
        "developer, you can create a personal access tokens. The token "
        "requires repo access."
    ),
    "workflow_file_name": "Workflow File Name is required",
}

# YAML section -> {yaml key: settings field}
_YAML_FIELD_MAP: Final[dict[str, dict[str, str]]] = {
    "workflow": {
        "ref": "ref",
        "propagate_failure": "propagate_failure",
        "trigger_workflow": "trigger_workflow",
        "wait_workflow": "wait_workflow",
    },
    "polling": {
        "wait_interval": "wait_interval",
        "clock_skew_seconds": "clock_skew_seconds",
        "runs_page_size": "runs_page_size",
        "max_poll_attempts": "max_poll_attempts",
        "correlation_mode": "correlation_mode",
    },
    "http": {
        "api_url": "api_url",
        "server_url": "server_url",
        "timeout_seconds": "http_timeout_seconds",
        "max_retries": "http_max_retries",
    },
    "logging": {
        "level": "log_level",
    },
}

logger = get_logger(__name__)


def load_schema(schema_name: str, schema_dir: Path = DEFAULT_SCHEMA_DIR) -> dict[str, Any]:
    """Load JSON Schema from config/schemas/.

    Args:
        schema_name: Schema name without extension (e.g., "main")
        schema_dir: Directory holding ``<name>.schema.json`` files

    Returns:
        JSON Schema dictionary or empty dict if not found
    """
    schema_path = schema_dir / f"{schema_name}.schema.json"
    if not schema_path.exists():
        return {}

    try:
        with open(schema_path, encoding="utf-8") as f:
            return json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning(
            "config_schema_load_failed",
            schema=schema_name,
            error=str(e),
        )
        return {}


def validate_config_section(
    config: dict[str, Any],
    schema_name: str,
    file_path: str = "",
    schema_dir: Path = DEFAULT_SCHEMA_DIR,
) -> None:
    """Validate config section against JSON Schema.

    Raises:
        ConfigurationError: If validation fails
    """
    schema = load_schema(schema_name, schema_dir)
    if not schema:
        return

    try:
        validate(instance=config, schema=schema)
        logger.debug("config_validation_succeeded", schema=schema_name)
    except JSONSchemaValidationError as e:
        error_msg = f"Config validation failed for {schema_name}"
        if file_path:
            error_msg += f" (file: {file_path})"
        error_msg += f": {e.message}"
        raise ConfigurationError(error_msg) from e


def load_config_file(
    config_path: Path = DEFAULT_CONFIG_PATH,
    schema_dir: Path = DEFAULT_SCHEMA_DIR,
) -> dict[str, Any]:
    """Load the optional YAML config file.

    Returns:
        Parsed configuration, or an empty dict when the file is absent or unreadable

    Raises:
        ConfigurationError: If the file does not match its schema
    """
    if not config_path.exists():
        return {}

    try:
        with open(config_path, encoding="utf-8") as f:
            config = yaml.safe_load(f) or {}
    except (yaml.YAMLError, OSError) as e:
        logger.warning(
            "config_file_load_failed",
            path=str(config_path),
            error=str(e),
        )
        return {}

    validate_config_section(config, "main", str(config_path), schema_dir)
    logger.debug("config_file_loaded", path=str(config_path), schema="main")
    return config


class Settings(BaseSettings):
    """Action inputs and tuning knobs.

    Field ``foo`` is read from ``INPUT_FOO``. ``api_url`` and ``server_url``
    also honour the bare ``API_URL`` / ``SERVER_URL`` variables.
    """

    model_config = SettingsConfigDict(
        env_prefix="INPUT_",
        env_file=".env" if Path(".env").exists() else None,
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
        validate_assignment=True,
    )

    # === REQUIRED ===

    owner: str = Field(..., min_length=1, description="Repository owner")
    repo: str = Field(..., min_length=1, description="Repository name")
    github_token: SecretStr = Field(
        ..., description="Token with repo access used for every API call"
    )
    workflow_file_name: str = Field(
        ..., min_length=1, description="Workflow file name (e.g. main.yaml) or id"
    )

    # === DISPATCH ===

    ref: str = Field(default="main", min_length=1, description="Git ref to run on")
    client_payload: dict[str, Any] = Field(
        default_factory=dict, description="Workflow inputs as a JSON object"
    )
    trigger_workflow: bool = Field(default=True, description="Dispatch a new run")
    wait_workflow: bool = Field(default=True, description="Wait for new runs")
    propagate_failure: bool = Field(
        default=True, description="Fail this step when a downstream run fails"
    )

    # === POLLING ===

    wait_interval: float = Field(
        default=DEFAULT_WAIT_INTERVAL_SECONDS,
        ge=0,
        description="Seconds to sleep between polls",
    )
    clock_skew_seconds: int = Field(
        default=DEFAULT_CLOCK_SKEW_SECONDS,
        ge=0,
        description="Margin subtracted from now when listing recent runs",
    )
    runs_page_size: int = Field(
        default=DEFAULT_RUNS_PAGE_SIZE,
        ge=1,
        le=100,
        description="Runs requested per listing",
    )
    max_poll_attempts: int = Field(
        default=DEFAULT_MAX_POLL_ATTEMPTS,
        ge=0,
        description="Polls before giving up (0 = poll forever)",
    )
    correlation_mode: CorrelationMode = Field(
        default=CorrelationMode.DISPLAY_NAME,
        description="Match waited runs by display name or by run id",
    )

    # === HTTP ===

    api_url: str = Field(
        default=DEFAULT_API_URL,
        validation_alias=AliasChoices("api_url", "API_URL", "INPUT_API_URL"),
        description="REST API base URL",
    )
    server_url: str = Field(
        default=DEFAULT_SERVER_URL,
        validation_alias=AliasChoices("server_url", "SERVER_URL", "INPUT_SERVER_URL"),
        description="Web base URL used to build run links",
    )
    http_timeout_seconds: float = Field(
        default=DEFAULT_HTTP_TIMEOUT_SECONDS, gt=0, description="Per-request timeout"
    )
    http_max_retries: int = Field(
        default=DEFAULT_HTTP_MAX_RETRIES,
        ge=1,
        description="Attempts for idempotent requests on transient errors",
    )

    # === DOWNSTREAM COMMENT ===

    comment_downstream_url: str | None = Field(
        default=None, description="Issue/PR comments URL to link downstream runs"
    )
    comment_github_token: SecretStr | None = Field(
        default=None, description="Token for the comment (defaults to github_token)"
    )

    # === OBSERVABILITY ===

    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("github_token", mode="before")
    @classmethod
    def _ensure_secret(
        cls, value: SecretStr | str | None, info: ValidationInfo
    ) -> SecretStr:
        if value is None:
            raise ValueError(f"{info.field_name} must be provided")

        if isinstance(value, SecretStr):
            secret_value = value.get_secret_value()
        else:
            secret_value = str(value)

        if not secret_value.strip():
            raise ValueError(f"{info.field_name} must not be empty")

        return value if isinstance(value, SecretStr) else SecretStr(secret_value)

    @field_validator("client_payload", mode="before")
    @classmethod
    def _parse_payload(cls, value: Any) -> Any:
        if isinstance(value, str):
            if not value.strip():
                return {}
            try:
                value = json.loads(value)
            except json.JSONDecodeError as exc:
                raise ValueError(f"client_payload is not valid JSON: {exc}") from exc
        if not isinstance(value, dict):
            raise ValueError("client_payload must be a JSON object")
        return value

    @field_validator("api_url", "server_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    def __init__(self, config_path: Path | None = None, **data: Any):
        """Initialize settings, then fill unset fields from the YAML config."""
        config = load_config_file(config_path or DEFAULT_CONFIG_PATH)

        super().__init__(**data)
        self._apply_yaml_defaults(config)

    def _apply_yaml_defaults(self, config: dict[str, Any]) -> None:
        """Apply YAML-sourced defaults without overriding env-provided values."""

        fields_from_env = set(self.model_fields_set)

        for section, mapping in _YAML_FIELD_MAP.items():
            section_config = config.get(section) or {}
            for yaml_key, field_name in mapping.items():
                value = section_config.get(yaml_key)
                if value is None or field_name in fields_from_env:
                    continue
                setattr(self, field_name, value)

    @property
    def dispatch_request(self) -> DispatchRequest:
        return DispatchRequest(ref=self.ref, inputs=self.client_payload)

    @property
    def comment_token(self) -> SecretStr:
        return self.comment_github_token or self.github_token

    def run_html_url(self, run_id: int) -> str:
        return f"{self.server_url}/{self.owner}/{self.repo}/actions/runs/{run_id}"


def _describe_validation_error(error: ValidationError) -> list[str]:
    problems: list[str] = []
    for item in error.errors():
        field_name = str(item["loc"][0]) if item.get("loc") else "settings"
        if item.get("type") == "missing" and field_name in REQUIRED_FIELD_MESSAGES:
            problems.append(REQUIRED_FIELD_MESSAGES[field_name])
        else:
            problems.append(f"{field_name}: {item.get('msg')}")
    return problems


def load_settings(config_path: Path | None = None, **overrides: Any) -> Settings:
    """Build settings, translating validation failures into ConfigurationError.

    Raises:
        ConfigurationError: On a missing required argument or invalid value
    """
    try:
        return Settings(config_path=config_path, **overrides)
    except ValidationError as exc:
        problems = _describe_validation_error(exc)
        raise ConfigurationError(problems[0], problems) from exc
    except SettingsError as exc:
        raise ConfigurationError(f"Error: {exc}") from exc
