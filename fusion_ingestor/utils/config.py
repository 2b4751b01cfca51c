"""Configuration loader and settings helpers for Fusion_Ingestor."""

import base64
import json
import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from boto3.session import Session
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)
from pydantic import (
    ValidationError as PydanticValidationError,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..exceptions import ConfigurationError


logger = logging.getLogger(__name__)

ENV_PREFIX = "FUSION_"


def read_yaml_document(path: str | Path) -> dict[str, Any]:
    """Parse one settings template; an empty file counts as an empty mapping.

    Raises:
        ConfigurationError: If the file is missing, unparsable or not a mapping.
    """
    try:
        document = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Configuration file not found: {path}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {path}: {exc}") from exc

    if document is None:
        return {}
    if not isinstance(document, dict):
        raise ConfigurationError(f"Configuration template {path} must contain a mapping")
    return document


class AWSSettings(BaseModel):
    """Default AWS region used when the secrets section names none."""

    model_config = ConfigDict(extra="forbid")

    region: str | None = None


class DatabasePoolSettings(BaseModel):
    """Connection pooling configuration for the SQLAlchemy engine."""

    model_config = ConfigDict(extra="forbid")

    pool_size: int = Field(default=5, ge=1)
    max_overflow: int = Field(default=10, ge=0)
    timeout: float = Field(default=30.0, gt=0)
    recycle_seconds: int = Field(default=1800, ge=0)
    pre_ping: bool = True


class SecretsManagerSettings(BaseModel):
    """AWS Secrets Manager integration settings."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool = False
    secret_name: str | None = None
    region: str | None = None
    profile: str | None = None
    endpoint_url: str | None = None
    overwrite_env: bool = False
    required_env: list[str] = Field(default_factory=list)


class PollerConfig(BaseModel):
    """Scheduled polling section of the service configuration."""

    enabled: list[str] = Field(
        default_factory=lambda: ["slack", "teams", "monday", "quickbooks"]
    )
    required_env: list[str] = Field(default_factory=list)

    @field_validator("enabled", mode="before")
    @classmethod
    def _normalize_enabled(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [str(item).strip().lower() for item in value if str(item).strip()]
        return value


class ServiceConfiguration(BaseModel):
    """Validated runtime configuration merged from base and environment overrides."""

    version: int = Field(default=1, ge=1)
    environment: str = "development"
    required_env: list[str] = Field(default_factory=list)
    pollers: PollerConfig = Field(default_factory=PollerConfig)
    secrets_manager: SecretsManagerSettings = Field(default_factory=SecretsManagerSettings)

    @field_validator("environment")
    @classmethod
    def _normalize_environment(cls, value: str) -> str:
        return value.lower()


class GlobalSettings(BaseSettings):
    """Global application settings sourced from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_nested_delimiter="__",
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: str = "development"
    config_profile: str | None = None
    log_level: str = "INFO"
    redis_url: str | None = None
    database_url: str | None = None
    database: DatabasePoolSettings = DatabasePoolSettings()
    config_dir: Path = Path("config")
    aws: AWSSettings = AWSSettings()
    secrets_manager: SecretsManagerSettings = SecretsManagerSettings()
    api_keys: list[str] = Field(default_factory=list)

    jwt_secret: str | None = None
    jwt_algorithm: str = "HS256"
    jwt_audience: str | None = "authenticated"

    slack_signing_secret: str | None = None
    webhook_tolerance_seconds: int = Field(default=300, ge=1)

    poll_interval_minutes: int = Field(default=15, ge=1)
    http_timeout_seconds: float = Field(default=10.0, gt=0)
    slack_api_base: str = "https://slack.com/api"
    graph_api_base: str = "https://graph.microsoft.com/v1.0"
    monday_api_url: str = "https://api.monday.com/v2"
    quickbooks_api_base: str = "https://quickbooks.api.intuit.com/v3"

    engine_url: str | None = None
    engine_api_key: str | None = None
    engine_timeout_seconds: float = Field(default=15.0, gt=0)

    active_threshold_days: int = Field(default=14, ge=1)
    baseline_score: float = Field(default=50.0, ge=0, le=100)
    learning_event_display_limit: int = Field(default=10, ge=1)

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        """Ensure log level values are uppercase for logging config."""

        return value.upper()

    @field_validator("api_keys", mode="before")
    @classmethod
    def _parse_api_keys(cls, value: Any) -> list[str]:
        """Support comma-separated strings or iterables for API key configuration."""

        if value is None:
            return []
        if isinstance(value, str):
            keys = [item.strip() for item in value.split(",")]
            return [key for key in keys if key]
        if isinstance(value, list | tuple | set):
            return [str(item) for item in value if str(item).strip()]
        raise ValueError("api_keys must be a comma-separated string or iterable of strings")

    @field_validator("config_dir", mode="before")
    @classmethod
    def _expand_paths(cls, value: Any) -> Any:
        """Allow string paths and expand user markers."""

        if isinstance(value, Path):
            return value
        if isinstance(value, str):
            return Path(value).expanduser()
        return value

    @field_validator("slack_api_base", "graph_api_base", "quickbooks_api_base", "engine_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str | None) -> str | None:
        if value is None:
            return value
        return value.rstrip("/")

    @field_validator("config_profile", mode="before")
    @classmethod
    def _normalize_config_profile(cls, value: Any) -> Any:
        if value is None:
            return value
        if not isinstance(value, str) or not value.strip():
            raise ValueError("config_profile must be a non-empty string if provided")
        return value.strip().lower()


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Overlay ``override`` on ``base``; nested sections merge key by key."""

    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        merged[key] = _merge(current, value) if isinstance(current, dict) and isinstance(value, dict) else value
    return merged


@lru_cache(maxsize=8)
def _load_profile(config_dir: str, profile: str) -> ServiceConfiguration:
    """Build the service configuration for ``profile`` from its YAML templates."""

    directory = Path(config_dir)
    base_path = directory / "settings.base.yaml"
    if not base_path.is_file():
        raise ConfigurationError(
            f"Missing base configuration template at '{base_path}'. "
            "Poller and secrets defaults are read from this file."
        )

    document = read_yaml_document(base_path)
    override_path = directory / f"settings.{profile}.yaml"
    if override_path.is_file():
        document = _merge(document, read_yaml_document(override_path))
    else:
        logger.debug("Profile '%s' has no override template; using shared defaults", profile)

    document.setdefault("environment", profile)
    try:
        return ServiceConfiguration.model_validate(document)
    except PydanticValidationError as exc:
        raise ConfigurationError(f"Configuration profile '{profile}' is invalid: {exc}") from exc


def get_service_configuration(
    settings: GlobalSettings | None = None,
    *,
    reload: bool = False,
) -> ServiceConfiguration:
    """Return the merged service configuration for the active profile."""

    settings = settings or get_settings()
    if reload:
        _load_profile.cache_clear()
    profile = (settings.config_profile or settings.environment).lower()
    return _load_profile(str(settings.config_dir), profile)


def _effective_secrets_source(
    settings: GlobalSettings, service_config: ServiceConfiguration
) -> SecretsManagerSettings | None:
    """Combine env and template secrets settings; env values win field by field."""

    from_env = settings.secrets_manager
    from_template = service_config.secrets_manager
    if not (from_env.enabled or from_template.enabled):
        return None

    return SecretsManagerSettings(
        enabled=True,
        secret_name=from_env.secret_name or from_template.secret_name,
        region=from_env.region or from_template.region or settings.aws.region,
        profile=from_env.profile or from_template.profile,
        endpoint_url=from_env.endpoint_url or from_template.endpoint_url,
        overwrite_env=from_env.overwrite_env or from_template.overwrite_env,
        required_env=from_template.required_env,
    )


def _decode_secret(response: dict[str, Any]) -> dict[str, str]:
    """Turn a ``get_secret_value`` response into environment variable strings."""

    raw = response.get("SecretString")
    if raw is None and response.get("SecretBinary") is not None:
        raw = base64.b64decode(response["SecretBinary"]).decode("utf-8")
    if raw is None:
        return {}

    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigurationError("Secret payload must be a JSON object of environment variables") from exc
    if not isinstance(payload, dict):
        raise ConfigurationError("Secret payload must be a JSON object of environment variables")

    # Structured values (API key lists) travel as JSON so pydantic-settings can parse them.
    return {
        str(key): json.dumps(value) if isinstance(value, (dict, list)) else str(value)
        for key, value in payload.items()
        if value is not None
    }


def load_runtime_secrets(
    settings: GlobalSettings,
    service_config: ServiceConfiguration,
) -> dict[str, str]:
    """Fetch vendor credentials and signing secrets and export the ``FUSION_`` ones."""

    source = _effective_secrets_source(settings, service_config)
    if source is None:
        return {}
    if not source.secret_name:
        raise ConfigurationError("Secrets Manager is enabled but no secret_name is configured")

    session_kwargs: dict[str, Any] = {}
    if source.region:
        session_kwargs["region_name"] = source.region
    if source.profile:
        session_kwargs["profile_name"] = source.profile
    client = Session(**session_kwargs).client("secretsmanager", endpoint_url=source.endpoint_url)

    try:
        response = client.get_secret_value(SecretId=source.secret_name)
    except (BotoCoreError, ClientError) as exc:  # pragma: no cover - dependency errors
        raise ConfigurationError(f"Unable to read secret '{source.secret_name}': {exc}") from exc

    exported: dict[str, str] = {}
    for key, value in _decode_secret(response).items():
        env_key = key.upper()
        if not env_key.startswith(ENV_PREFIX):
            logger.debug("Skipping secret '%s' without the %s prefix", env_key, ENV_PREFIX)
            continue
        if env_key in os.environ and not source.overwrite_env:
            continue
        os.environ[env_key] = value
        exported[env_key] = value
    return exported


def _required_variables(service_config: ServiceConfiguration) -> set[str]:
    required = {f"{ENV_PREFIX}DATABASE_URL", f"{ENV_PREFIX}API_KEYS"}
    required.update(service_config.required_env)
    required.update(service_config.pollers.required_env)
    required.update(service_config.secrets_manager.required_env)
    return required


def ensure_runtime_configuration(settings: GlobalSettings | None = None) -> GlobalSettings:
    """Validate templates, export secrets and fail fast on missing variables.

    Called before the API, a worker or a CLI poll touches the database.
    """

    settings = settings or get_settings()
    service_config = get_service_configuration(settings=settings, reload=True)

    if load_runtime_secrets(settings, service_config):
        logger.info("Exported secrets from AWS Secrets Manager for profile '%s'", service_config.environment)
        settings = get_settings(reload=True)

    missing = sorted(name for name in _required_variables(service_config) if not os.environ.get(name))
    if missing:
        raise ConfigurationError(
            f"Missing required environment variables: {', '.join(missing)}. "
            "Set them in the environment, a .env file or the configured secret."
        )
    return settings


@lru_cache(maxsize=1)
def _get_settings_cached() -> GlobalSettings:
    return GlobalSettings()


def get_settings(*, reload: bool = False) -> GlobalSettings:
    """Return cached settings, optionally forcing a reload."""

    if reload:
        _get_settings_cached.cache_clear()
    return _get_settings_cached()
