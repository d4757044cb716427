from __future__ import annotations

import os
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Dict, Literal, Mapping, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from .core.errors import VerifierErrorCode, create_config_error


CONFIG_FILE_ENV = "PACT_VERIFIER_CONFIG_FILE"
DEFAULT_CONFIG_FILE = "pact-verifier.yaml"

LogFormat = Literal["text", "json"]
StateHandler = Callable[[], Any]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="", extra="ignore")

    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: LogFormat = "text"

    # Pact broker
    PACT_BROKER_URL: Optional[str] = None
    PACT_BROKER_USERNAME: Optional[str] = None
    PACT_BROKER_PASSWORD: Optional[str] = None
    PACT_BROKER_TOKEN: Optional[str] = None
    PACT_TAGS: Optional[str] = None  # comma separated
    PACT_URLS: Optional[str] = None  # comma separated

    # Provider under test
    PACT_PROVIDER_NAME: Optional[str] = None
    PACT_PROVIDER_BASE_URL: str = "http://localhost:8080"
    PACT_PROVIDER_VERSION: Optional[str] = None
    APP_VERSION: Optional[str] = None
    PACT_CUSTOM_PROVIDER_HEADERS: Dict[str, str] = {}
    PACT_STRICT_PROVIDER_STATES: bool = False

    # Verification results
    PACT_PUBLISH_VERIFICATION_RESULTS: bool = False
    BUILD_URL: Optional[str] = None
    REPORT_PATH: Optional[str] = None

    # HTTP
    HTTP_TIMEOUT: float = 30.0
    BROKER_RETRIES: int = 3

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        yaml_file = os.getenv(CONFIG_FILE_ENV, DEFAULT_CONFIG_FILE)
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls, yaml_file=yaml_file),
            file_secret_settings,
        )

    def tags(self) -> Tuple[str, ...]:
        return _split_csv(self.PACT_TAGS)

    def pact_urls(self) -> Tuple[str, ...]:
        return _split_csv(self.PACT_URLS)


def _split_csv(value: Optional[str]) -> Tuple[str, ...]:
    if not value:
        return ()
    return tuple(item.strip() for item in value.split(",") if item.strip())


def get_settings() -> Settings:
    return Settings()


class ProviderConfig(BaseModel):
    """
    Options for one verification run.

    Created once from caller-supplied options and immutable for the run.
    ``state_handlers`` maps a provider state label to a zero-argument
    callable, usually a coroutine function, that puts the provider into
    that state.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    provider: str
    provider_base_url: str = "http://localhost:8080"
    provider_version: Optional[str] = None

    broker_url: Optional[str] = None
    broker_username: Optional[str] = None
    broker_password: Optional[str] = None
    broker_token: Optional[str] = None

    custom_headers: Mapping[str, str] = Field(default_factory=dict, validate_default=True)
    state_handlers: Mapping[str, StateHandler] = Field(default_factory=dict, validate_default=True)
    strict_states: bool = False
    publish_verification_results: bool = False
    tags: Tuple[str, ...] = ()
    pact_urls: Tuple[str, ...] = ()

    build_url: Optional[str] = None
    report_path: Optional[Path] = None
    timeout: float = 30.0
    broker_retries: int = 3

    @field_validator("broker_url", "provider_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: Optional[str]) -> Optional[str]:
        return value.rstrip("/") if value else value

    @field_validator("custom_headers", "state_handlers")
    @classmethod
    def _read_only(cls, value: Mapping[str, Any]) -> Mapping[str, Any]:
        return MappingProxyType(dict(value))

    @model_validator(mode="after")
    def _check_required(self) -> "ProviderConfig":
        if not self.provider:
            raise create_config_error(
                VerifierErrorCode.CONFIG_MISSING_REQUIRED,
                "Provider name is required",
                field="provider",
            )
        if not self.broker_url and not self.pact_urls:
            raise create_config_error(
                VerifierErrorCode.CONFIG_MISSING_REQUIRED,
                "Either a Pact broker URL or at least one pact URL is required",
                field="broker_url",
            )
        if self.publish_verification_results and not self.provider_version:
            raise create_config_error(
                VerifierErrorCode.CONFIG_MISSING_REQUIRED,
                "Provider version is required to publish verification results",
                field="provider_version",
            )
        if self.timeout <= 0:
            raise create_config_error(
                VerifierErrorCode.CONFIG_INVALID_VALUE,
                f"HTTP timeout must be positive, got {self.timeout}",
                field="timeout",
            )
        return self

    @property
    def uses_token_auth(self) -> bool:
        return bool(self.broker_token)

    @property
    def uses_basic_auth(self) -> bool:
        return not self.broker_token and self.broker_username is not None

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        state_handlers: Optional[Dict[str, StateHandler]] = None,
        **overrides: Any,
    ) -> "ProviderConfig":
        """
        Build a run configuration from environment settings.

        Args:
            settings: Loaded settings, read from the environment when omitted
            state_handlers: Provider state label to setup action mapping
            **overrides: ProviderConfig fields that take precedence over settings

        Returns:
            ProviderConfig: Immutable configuration for one run

        Raises:
            ConfigurationError: If required options are missing
        """
        settings = settings or get_settings()
        options: Dict[str, Any] = {
            "provider": settings.PACT_PROVIDER_NAME or "",
            "provider_base_url": settings.PACT_PROVIDER_BASE_URL,
            "provider_version": settings.PACT_PROVIDER_VERSION or settings.APP_VERSION,
            "broker_url": settings.PACT_BROKER_URL,
            "broker_username": settings.PACT_BROKER_USERNAME,
            "broker_password": settings.PACT_BROKER_PASSWORD,
            "broker_token": settings.PACT_BROKER_TOKEN,
            "custom_headers": dict(settings.PACT_CUSTOM_PROVIDER_HEADERS),
            "state_handlers": dict(state_handlers or {}),
            "strict_states": settings.PACT_STRICT_PROVIDER_STATES,
            "publish_verification_results": settings.PACT_PUBLISH_VERIFICATION_RESULTS,
            "tags": settings.tags(),
            "pact_urls": settings.pact_urls(),
            "build_url": settings.BUILD_URL,
            "report_path": Path(settings.REPORT_PATH) if settings.REPORT_PATH else None,
            "timeout": settings.HTTP_TIMEOUT,
            "broker_retries": settings.BROKER_RETRIES,
        }
        options.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**options)
