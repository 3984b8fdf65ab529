"""12-factor configuration adapter using environment variables and TOML config."""

import tomllib
from pathlib import Path
from typing import Any, ClassVar

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from activity_roster.domain.models import RetryPolicy

# TOML section -> fields it may override
_TOML_SECTIONS: dict[str, tuple[str, ...]] = {
    "cache": (
        "gc_time_seconds",
        "gc_interval_seconds",
        "corruption_threshold",
        "counter_file",
    ),
    "retry": (
        "remote_timeout_seconds",
        "fetch_max_timeout_retries",
        "fetch_max_transient_retries",
        "fetch_base_delay_seconds",
        "fetch_max_delay_seconds",
        "mutation_max_timeout_retries",
        "mutation_max_transient_retries",
        "mutation_base_delay_seconds",
        "mutation_max_delay_seconds",
    ),
    "invalidation": (
        "identity_cooldown_seconds",
        "identity_debounce_seconds",
        "refresh_delay_seconds",
        "realtime_delay_seconds",
    ),
}


class AppConfig(BaseSettings):
    """Application configuration following 12-factor principles."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    isolated_sources: ClassVar[bool] = False

    # Remote service
    api_base_url: str = Field(
        default="http://localhost:8080/api",
        description="Base URL of the authoritative resource service",
    )
    remote_timeout_seconds: float = Field(
        default=10.0, description="Latency threshold for a single remote call in seconds"
    )

    # Invalidation timing
    identity_cooldown_seconds: float = Field(
        default=30.0,
        description="Repeated identity changes for the same actor within this window are dropped",
    )
    identity_debounce_seconds: float = Field(
        default=2.0, description="Delay before an identity change invalidates cached views"
    )
    refresh_delay_seconds: float = Field(
        default=0.5, description="Delay before refetching views after a confirmed mutation"
    )
    realtime_delay_seconds: float = Field(
        default=0.5, description="Batching delay for invalidations triggered by realtime events"
    )

    # Recovery
    corruption_threshold: int = Field(
        default=2, description="Consecutive timeouts that force a full cache wipe and reload"
    )
    counter_file: str | None = Field(
        default=None,
        description="JSON file holding the durable timeout counter (in-memory if unset)",
    )

    # Fetch retries
    fetch_max_timeout_retries: int = Field(default=1, description="Retries after a fetch timeout")
    fetch_max_transient_retries: int = Field(
        default=2, description="Retries after a transient network failure while fetching"
    )
    fetch_base_delay_seconds: float = Field(default=1.0, description="Fetch backoff base delay")
    fetch_max_delay_seconds: float = Field(default=5.0, description="Fetch backoff cap")

    # Mutation retries
    mutation_max_timeout_retries: int = Field(
        default=1, description="Retries after a join/leave timeout"
    )
    mutation_max_transient_retries: int = Field(
        default=1, description="Retries after a transient network failure during join/leave"
    )
    mutation_base_delay_seconds: float = Field(
        default=1.0, description="Mutation backoff base delay"
    )
    mutation_max_delay_seconds: float = Field(default=5.0, description="Mutation backoff cap")

    # Garbage collection
    gc_time_seconds: float = Field(
        default=600.0, description="Unobserved views older than this are evicted"
    )
    gc_interval_seconds: float = Field(
        default=60.0, description="Interval between garbage collection passes"
    )

    # Optional TOML overrides for the [cache], [retry] and [invalidation] sections
    config_file: str | None = Field(
        default=None,
        description="Path to a TOML file overriding cache, retry and invalidation settings",
    )

    @field_validator("corruption_threshold")
    @classmethod
    def validate_corruption_threshold(cls, v: int) -> int:
        """Validate the threshold allows at least one timeout."""
        if v < 1:
            raise ValueError("corruption_threshold must be at least 1")
        return v

    @field_validator(
        "fetch_max_timeout_retries",
        "fetch_max_transient_retries",
        "mutation_max_timeout_retries",
        "mutation_max_transient_retries",
    )
    @classmethod
    def validate_retry_count(cls, v: int) -> int:
        """Validate retry counts are not negative."""
        if v < 0:
            raise ValueError("retry counts must not be negative")
        return v

    @field_validator(
        "identity_cooldown_seconds",
        "identity_debounce_seconds",
        "refresh_delay_seconds",
        "realtime_delay_seconds",
        "fetch_base_delay_seconds",
        "fetch_max_delay_seconds",
        "mutation_base_delay_seconds",
        "mutation_max_delay_seconds",
    )
    @classmethod
    def validate_delay(cls, v: float) -> float:
        """Validate delays are not negative."""
        if v < 0:
            raise ValueError("delays must not be negative")
        return v

    @field_validator("remote_timeout_seconds", "gc_time_seconds", "gc_interval_seconds")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        """Validate durations that must be strictly positive."""
        if v <= 0:
            raise ValueError("timeouts and intervals must be positive")
        return v

    @field_validator("api_base_url")
    @classmethod
    def validate_api_base_url(cls, v: str) -> str:
        """Validate the base URL is http(s) and strip its trailing slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("api_base_url must start with http:// or https://")
        return v.rstrip("/")

    @model_validator(mode="after")
    def apply_toml_overrides(self) -> "AppConfig":
        """Apply overrides from config_file, if set."""
        if self.config_file:
            self._load_toml_data()
        return self

    def _load_toml_data(self) -> dict[str, Any]:
        """Load and parse the TOML file, updating settings from its sections."""
        if not self.config_file:
            raise ValueError("config_file must be set to load TOML overrides")

        config_path = Path(self.config_file)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, "rb") as f:
            toml_data = tomllib.load(f)

        overrides: dict[str, Any] = {}
        for section, fields in _TOML_SECTIONS.items():
            values = toml_data.get(section, {})
            if not isinstance(values, dict):
                raise ValueError(f"TOML config '{section}' must be a table")
            overrides.update({name: values[name] for name in fields if name in values})

        if overrides:
            # Run the overrides through the field validators
            validated = type(self).model_validate(
                {**self._field_values(), **overrides, "config_file": None}
            )
            for name in overrides:
                setattr(self, name, getattr(validated, name))

        return toml_data

    def _field_values(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in type(self).model_fields}

    def fetch_retry_policy(self) -> RetryPolicy:
        """Retry policy for view fetches."""
        return RetryPolicy(
            max_timeout_retries=self.fetch_max_timeout_retries,
            max_transient_retries=self.fetch_max_transient_retries,
            base_delay_seconds=self.fetch_base_delay_seconds,
            max_delay_seconds=self.fetch_max_delay_seconds,
        )

    def mutation_retry_policy(self) -> RetryPolicy:
        """Retry policy for join/leave calls."""
        return RetryPolicy(
            max_timeout_retries=self.mutation_max_timeout_retries,
            max_transient_retries=self.mutation_max_transient_retries,
            base_delay_seconds=self.mutation_base_delay_seconds,
            max_delay_seconds=self.mutation_max_delay_seconds,
        )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        if cls.isolated_sources:
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)

    @classmethod
    def for_testing(cls, **overrides: Any) -> "AppConfig":
        """Build a config from defaults and overrides only, ignoring env and .env."""
        return _IsolatedAppConfig(**overrides)


class _IsolatedAppConfig(AppConfig):
    """AppConfig that reads neither the environment nor .env files."""

    isolated_sources = True
