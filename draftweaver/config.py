from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from draftweaver.models.relay_contracts import normalize_relay_url

DEFAULT_DATA_DIR = ".draftweaver"
DEFAULT_RELAYS = "wss://jumble.social,wss://relay.damus.io,wss://nos.lol"
LOG_SUBDIR = "logs"
TELEMETRY_SINKS: frozenset[str] = frozenset({"none", "log"})


def _env_name(info: ValidationInfo) -> str:
    return f"DRAFTWEAVER_{str(info.field_name).upper()}"


def _split_relays(value: str) -> list[str]:
    return [candidate.strip() for candidate in value.split(",") if candidate.strip()]


class AppSettings(BaseSettings):
    """
    Runtime configuration for the API and the CLI.

    Every field can be set through a `DRAFTWEAVER_<FIELD>` environment variable
    or a `.env` file in the working directory.
    """

    model_config = SettingsConfigDict(
        env_prefix="DRAFTWEAVER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    data_dir: Path = Field(
        default=Path(DEFAULT_DATA_DIR),
        description="Root runtime directory for logs.",
    )
    log_dir: Path = Field(
        default=Path(DEFAULT_DATA_DIR) / LOG_SUBDIR,
        description=f"Log directory. Defaults to `${{DRAFTWEAVER_DATA_DIR}}/{LOG_SUBDIR}`.",
    )
    log_level: str = Field(default="INFO", description="Console log level.")
    telemetry_enabled: bool = Field(
        default=True,
        description="Emit telemetry events for imports, publishes and HTTP requests.",
    )
    telemetry_sink: Literal["none", "log"] = Field(
        default="log",
        description="`log` writes telemetry to draftweaver-telemetry.log; `none` drops it.",
    )
    wordpress_timeout_seconds: float = Field(
        default=12.0,
        description="Timeout for WordPress REST API requests.",
    )
    user_agent: str = Field(
        default="draftweaver/0.1",
        description="User-Agent header sent to WordPress sites.",
    )
    publish_timeout_seconds: float = Field(
        default=8.0,
        description="How long each relay gets to acknowledge a published event.",
    )
    default_relays: str = Field(
        default=DEFAULT_RELAYS,
        description="Comma-separated relay URLs used when no relay list is configured.",
    )
    client_tag: str = Field(
        default="draftweaver",
        description="Value of the `client` tag attached to published events.",
    )
    secret_key: str | None = Field(
        default=None,
        description="Signing key (64 hex characters or nsec). Publishing is disabled without it.",
    )

    @property
    def relay_urls(self) -> list[str]:
        urls: list[str] = []
        for candidate in _split_relays(self.default_relays):
            normalized = normalize_relay_url(candidate)
            if normalized is not None and normalized not in urls:
                urls.append(normalized)
        return urls

    @field_validator("telemetry_sink", mode="before")
    @classmethod
    def _normalize_telemetry_sink(cls, value: Any, info: ValidationInfo) -> str:
        normalized = value.strip().lower() if isinstance(value, str) else ""
        if normalized not in TELEMETRY_SINKS:
            raise ValueError(f"{_env_name(info)} must be one of: none, log.")
        return normalized

    @field_validator("default_relays", mode="before")
    @classmethod
    def _validate_default_relays(cls, value: Any, info: ValidationInfo) -> str:
        if not isinstance(value, str):
            raise ValueError(f"{_env_name(info)} must be a comma-separated string.")
        candidates = _split_relays(value)
        if not candidates:
            raise ValueError(f"{_env_name(info)} must list at least one relay.")
        invalid = [candidate for candidate in candidates if normalize_relay_url(candidate) is None]
        if invalid:
            raise ValueError(f"{_env_name(info)} has invalid relay URLs: {', '.join(invalid)}")
        return ",".join(candidates)

    @field_validator("wordpress_timeout_seconds", "publish_timeout_seconds")
    @classmethod
    def _validate_timeouts(cls, value: float, info: ValidationInfo) -> float:
        if value <= 0:
            raise ValueError(f"{_env_name(info)} must be positive.")
        return value

    @field_validator("client_tag", "user_agent", mode="before")
    @classmethod
    def _require_text(cls, value: Any, info: ValidationInfo) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"{_env_name(info)} must not be empty.")
        return value.strip()

    @field_validator("secret_key", mode="before")
    @classmethod
    def _blank_secret_is_unset(cls, value: Any) -> str | None:
        if not isinstance(value, str) or not value.strip():
            return None
        return value.strip()

    @field_validator("data_dir", "log_dir", mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Any:
        if isinstance(value, str | Path):
            return Path(value).expanduser()
        return value


def load_settings() -> AppSettings:
    settings = AppSettings()
    # an unset log_dir follows a relocated data_dir
    log_dir = settings.log_dir
    if "log_dir" not in settings.model_fields_set:
        log_dir = settings.data_dir / LOG_SUBDIR
    return settings.model_copy(
        update={
            "data_dir": settings.data_dir.resolve(),
            "log_dir": log_dir.resolve(),
        }
    )
