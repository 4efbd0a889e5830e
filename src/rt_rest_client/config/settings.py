from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from rt_rest_client.adapters.http_util import DEFAULT_TIMEOUT_SECONDS
from rt_rest_client.config.env_aliases import get_flat_env_settings_source
from rt_rest_client.domain.auth import AuthMode
from rt_rest_client.domain.request_spec import DEFAULT_API_ROOT, DEFAULT_SCHEME


class _BaseSection(BaseModel):
    model_config = {"extra": "forbid"}


class RTSettings(_BaseSection):
    host: str
    scheme: str = DEFAULT_SCHEME
    api_root: str = DEFAULT_API_ROOT
    auth_mode: AuthMode = AuthMode.TOKEN
    credentials: SecretStr = SecretStr("")
    timeout_seconds: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)
    verify_tls: bool = True
    # None = "rt-rest-client/<version>".
    user_agent: str | None = None
    # None = follow next_page links without bound.
    max_pages: int | None = Field(default=1000, ge=1)

    @field_validator("host")
    @classmethod
    def _strip_host(cls, value: str) -> str:
        host = value.strip().rstrip("/")
        if not host or "/" in host:
            raise ValueError("rt.host must be a bare hostname, e.g. rt.example.com")
        return host

    @field_validator("scheme")
    @classmethod
    def _validate_scheme(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized in {"http", "https"}:
            return normalized
        raise ValueError("rt.scheme must be 'http' or 'https'")

    @field_validator("api_root")
    @classmethod
    def _normalize_api_root(cls, value: str) -> str:
        return "/" + value.strip().strip("/")

    @field_validator("auth_mode", mode="before")
    @classmethod
    def _lower_auth_mode(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value


class ObservabilitySettings(_BaseSection):
    log_level: str = "INFO"
    log_format: str | None = None  # json|human (overrides LOG_FORMAT/env when set)
    json_logs: bool = False
    # Emit per-request and per-page DEBUG events regardless of log_level.
    log_requests: bool = False

    @field_validator("log_format")
    @classmethod
    def _validate_log_format(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip().lower()
        if normalized in {"json", "human"}:
            return normalized
        raise ValueError("observability.log_format must be 'json' or 'human'")


class TransportHardeningSettings(_BaseSection):
    # If true, allow httpx to read HTTP_PROXY/HTTPS_PROXY/NO_PROXY and other env settings.
    trust_env: bool = False
    # Allow plaintext HTTP to the RT server. Strongly discouraged.
    allow_insecure_http: bool = False
    # Allow disabling TLS verification. Strongly discouraged.
    allow_insecure_tls: bool = False


class HardeningSettings(_BaseSection):
    transport: TransportHardeningSettings = Field(default_factory=TransportHardeningSettings)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="forbid",
    )

    rt: RTSettings
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)
    hardening: HardeningSettings = Field(default_factory=HardeningSettings)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Settings:
        """
        Construct Settings from a mapping without reading environment variables.

        Useful in tests where we want to pass nested dicts and keep mypy happy.
        """
        class _InitOnlySettings(Settings):
            @classmethod
            def settings_customise_sources(
                cls,
                settings_cls,
                init_settings,
                env_settings,
                dotenv_settings,
                file_secret_settings,
            ):
                return (init_settings,)

        return _InitOnlySettings(**dict(data))

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            env_settings,
            get_flat_env_settings_source,
            init_settings,
            dotenv_settings,
            file_secret_settings,
        )
