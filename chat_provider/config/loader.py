"""Load configuration from YAML and environment variables. No hardcoded secrets."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Default config lives next to this module
_DEFAULT_CONFIG_PATH = Path(__file__).parent / "default.yaml"

DEFAULT_MODEL = "claude-3-opus-20240229"
DEFAULT_BASE_URL = "https://api.anthropic.com/v1/messages"
DEFAULT_API_VERSION = "2023-06-01"


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


class AnthropicSettings(BaseSettings):
    """Messages endpoint access. The key comes from ANTHROPIC_API_KEY only."""

    model_config = SettingsConfigDict(env_prefix="ANTHROPIC_", extra="ignore")
    api_key: str = ""
    model: str = DEFAULT_MODEL
    base_url: str = DEFAULT_BASE_URL
    api_version: str = DEFAULT_API_VERSION
    max_tokens: int = 4096
    connect_timeout: float = 30.0
    read_timeout: float = 60.0

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key.strip())


class LoggingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="LOG_", extra="ignore")
    level: str = "INFO"
    use_json: bool = True


class Config(BaseSettings):
    """Application config: YAML + env. Secrets from env only."""

    model_config = SettingsConfigDict(env_nested_delimiter="__", extra="ignore")

    anthropic: AnthropicSettings = Field(default_factory=AnthropicSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @classmethod
    def load(cls, config_path: str | Path | None = None) -> "Config":
        path = Path(config_path) if config_path else _DEFAULT_CONFIG_PATH
        yaml_data = _load_yaml(path)
        env_name = os.getenv("CHAT_PROVIDER_ENV", "")
        if env_name:
            yaml_data = _deep_merge(yaml_data, _load_yaml(Path(f"config/{env_name}.yaml")))
        api_key = os.getenv("ANTHROPIC_API_KEY")
        if api_key:
            yaml_data.setdefault("anthropic", {})["api_key"] = api_key.strip()
        model = os.getenv("ANTHROPIC_MODEL")
        if model:
            yaml_data.setdefault("anthropic", {})["model"] = model
        level = os.getenv("LOG_LEVEL")
        if level:
            yaml_data.setdefault("logging", {})["level"] = level
        return cls(**yaml_data)


def get_config(config_path: str | Path | None = None) -> Config:
    return Config.load(config_path)
