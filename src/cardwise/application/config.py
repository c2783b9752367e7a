from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from cardwise.domain.constants import DEFAULT_PERSIST_ATTEMPTS


class AppConfig(BaseSettings):
    """
    Configuration model for cardwise.
    Supports loading from:
    1. Manual overrides (CLI)
    2. Environment variables (CARDWISE_*)
    3. Config file (~/.config/cardwise/config.toml)
    """

    model_config = SettingsConfigDict(
        env_prefix="CARDWISE_",
        extra="ignore",
    )

    # Storage
    backend: Literal["yaml", "rest"] = "yaml"
    deck_file: Path | None = None
    deck_id: str | None = None
    rest_url: str | None = None
    rest_api_key: str | None = None

    # Review
    user_id: str = "local"
    timezone: str | None = None
    persist_attempts: int = Field(default=DEFAULT_PERSIST_ATTEMPTS, ge=1)

    # Speech
    speech_enabled: bool = True
    speech_command: str | None = None

    # Logging
    log_dir: Path = Field(default_factory=lambda: Path.home() / ".config/cardwise/logs")
    verbose: int = 1

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        from pydantic_settings import TomlConfigSettingsSource

        # Home may be patched in tests, so look the files up at call time.
        toml_files = [
            Path.home() / ".config/cardwise/config.toml",
            Path.home() / ".cardwise.toml",
        ]
        toml_file = next((f for f in toml_files if f.exists()), None)

        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (
            init_settings,
            env_settings,
        )

    @field_validator("deck_file", mode="before")
    @classmethod
    def resolve_deck_file(cls, v: Any) -> Path | None:
        if v is None:
            return None
        return Path(v).expanduser().resolve()

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, v: str | None) -> str | None:
        if not v:
            return None
        from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {v}") from e
        return v

    @field_validator("rest_url")
    @classmethod
    def strip_rest_url(cls, v: str | None) -> str | None:
        return v.rstrip("/") if v else v


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/cardwise/config.toml (if exists)
    3. Environment variables (CARDWISE_*)
    4. cli_overrides (None values are ignored so they don't mask lower layers)
    """
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    return AppConfig(**overrides)
