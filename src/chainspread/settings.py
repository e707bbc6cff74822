"""Settings module with unified configuration precedence: CLI > ENV > CONFIG FILE."""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    field_validator,
    model_validator,
)
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from .constants import (
    DEFAULT_CHAINS,
    DEFAULT_COOLDOWN_SECONDS,
    DEFAULT_PAIR,
    DEFAULT_THRESHOLD_PERCENT,
)
from .models import MonitoringTask
from .registry import ChainDescriptor

load_dotenv()

SECRET_FIELDS = {"moralis_api_key", "coingecko_api_key", "slack_webhook_url"}


def _default_chains() -> dict[str, ChainDescriptor]:
    return {
        name: ChainDescriptor.model_validate(body)
        for name, body in DEFAULT_CHAINS.items()
    }


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    result = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def find_config_file() -> Path | None:
    """CHAINSPREAD_CONFIG, else ./chainspread.toml, else the user config dir."""
    explicit = os.environ.get("CHAINSPREAD_CONFIG")
    if explicit:
        return Path(explicit)
    for candidate in (
        Path("chainspread.toml"),
        Path.home() / ".config" / "chainspread" / "config.toml",
    ):
        if candidate.exists():
            return candidate
    return None


class TomlConfigSource(PydanticBaseSettingsSource):
    """Reads settings from a TOML file, top level or a ``[chainspread]`` table.

    A missing file yields no values. Secret fields are rejected.
    """

    def __init__(self, settings_cls: type[BaseSettings], path: Path | None):
        super().__init__(settings_cls)
        self.path = path

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        return None, "", False

    def __call__(self) -> dict[str, Any]:
        if self.path is None or not self.path.exists():
            return {}

        with self.path.open("rb") as f:
            data = tomllib.load(f)
        body = data.get("chainspread", data)
        if not isinstance(body, dict):
            return {}

        leaked = sorted(SECRET_FIELDS & body.keys())
        if leaked:
            raise ValueError(
                f"Secrets found in config file {self.path}: {', '.join(leaked)}. "
                "Provide them through CHAINSPREAD_* environment variables instead."
            )
        return body


class TaskSettings(BaseModel):
    """A monitoring task declared in the config file."""

    id: str
    chain_pair: list[str] = Field(min_length=2, max_length=2)
    threshold_percent: float = Field(default=DEFAULT_THRESHOLD_PERCENT, gt=0)
    cooldown_seconds: float = Field(default=DEFAULT_COOLDOWN_SECONDS, ge=0)
    active: bool = True

    model_config = ConfigDict(extra="ignore")

    def to_task(self) -> MonitoringTask:
        return MonitoringTask(
            id=self.id,
            chain_pair=(self.chain_pair[0], self.chain_pair[1]),
            threshold_percent=self.threshold_percent,
            cooldown_seconds=self.cooldown_seconds,
            active=self.active,
        )


class MonitorSettings(BaseSettings):
    """Single source of truth for configuration. Values may come from:
    - CLI (init kwargs)
    - ENV / .env (prefixed with CHAINSPREAD_)
    - Config file (TOML), lowest precedence

    Do not read os.environ or files elsewhere in the codebase.
    """

    # --- pair ---
    pair: str = DEFAULT_PAIR

    # --- cache / fetching ---
    cache_ttl_seconds: float = Field(default=30.0, gt=0)
    retry_limit: int = Field(default=3, ge=1)
    request_timeout_seconds: float = Field(default=10.0, gt=0)
    max_parallel: int = Field(default=4, ge=1)
    index_min_interval_seconds: float = Field(default=1.0, ge=0)

    # --- monitoring ---
    poll_interval_seconds: float = Field(default=30.0, gt=0)
    tick_timeout_seconds: float = Field(default=60.0, gt=0)
    large_spread_warning_percent: float = Field(default=5.0, gt=0)
    tasks: list[TaskSettings] = Field(default_factory=list)

    # --- provider credentials ---
    moralis_api_key: SecretStr | None = None
    coingecko_api_key: SecretStr | None = None
    slack_webhook_url: SecretStr | None = None

    # --- synthetic prices (demos and tests only) ---
    enable_synthetic_source: bool = False
    synthetic_prices: dict[str, float] = Field(default_factory=dict)

    # --- chains ---
    chains: dict[str, ChainDescriptor] = Field(default_factory=_default_chains)

    # --- logging ---
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="CHAINSPREAD_",
        env_file=".env",
        extra="ignore",  # ignore unknown keys in env/config file
    )

    @field_validator("moralis_api_key", "coingecko_api_key", "slack_webhook_url", mode="before")
    @classmethod
    def wrap_secrets(cls, v: Any) -> SecretStr | None:
        """Wrap string secrets in SecretStr."""
        if v is None or isinstance(v, SecretStr):
            return v
        return SecretStr(v)

    @field_validator("chains", mode="before")
    @classmethod
    def merge_default_chains(cls, v: Any) -> Any:
        """Config entries override fields of built-in chains or add new ones."""
        if not isinstance(v, dict):
            return v
        merged: dict[str, Any] = dict(_default_chains())
        for name, body in v.items():
            key = name.lower()
            if isinstance(body, dict) and key in DEFAULT_CHAINS:
                body = _deep_merge(DEFAULT_CHAINS[key], body)
            merged[key] = body
        return merged

    @model_validator(mode="after")
    def validate_tasks_reference_known_chains(self) -> "MonitorSettings":
        known = {name.lower() for name in self.chains}
        for task in self.tasks:
            for entry in task.chain_pair:
                chain = entry.split(":", 1)[0].lower()
                if chain not in known:
                    raise ValueError(
                        f"Task {task.id!r} references unknown chain {chain!r}"
                    )
        return self

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """CLI > ENV > .env > TOML file > secrets dir."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlConfigSource(settings_cls, find_config_file()),
            file_secret_settings,
        )

    def as_safe_dict(self) -> dict[str, Any]:
        """Return the config as a JSON-friendly dict with secrets redacted."""
        data = self.model_dump(mode="json")
        for key in SECRET_FIELDS:
            if getattr(self, key):
                data[key] = "***redacted***"
        return data

    @property
    def cache_ttl_ms(self) -> int:
        return int(self.cache_ttl_seconds * 1000)

    def secret_value(self, name: str) -> str | None:
        """Plain value of a secret field, or None when unset."""
        secret: SecretStr | None = getattr(self, name)
        return secret.get_secret_value() if secret else None
