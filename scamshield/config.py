# file: scamshield/config.py
"""
Configuration loader.

Design goals:
- One canonical app-group identifier and extension identifier shared by the
  main app and the extension process.
- Support `.env` for local development.
- Support YAML for decision weights and non-secret defaults.
- Validate configuration with pydantic.

Precedence (highest to lowest):
1. OS environment variables
2. `.env` values
3. YAML config file values
4. Code defaults
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Literal

import yaml
from dotenv import dotenv_values
from pydantic import BaseModel, Field, field_validator
from pydantic import ConfigDict as PydanticConfigDict

from scamshield.bridge import DEFAULT_EXTENSION_ID
from scamshield.container import DEFAULT_APP_GROUP_ID, SharedContainer, default_container_root
from scamshield.net.http import HttpClientConfig
from scamshield.reputation.decision import default_decision_weights
from scamshield.store import DEFAULT_COLLECTION_KEY


class ScamshieldSettings(BaseModel):
    model_config = PydanticConfigDict(extra="ignore")

    # General
    log_level: str = "INFO"
    json_logging: bool = False

    # Report API
    api_base_url: str = "http://localhost:3000"

    # HTTP
    http_timeout_seconds: float = 10.0
    http_max_retries: int = 2
    http_backoff_base_seconds: float = 0.5
    http_backoff_max_seconds: float = 8.0
    http_rate_limit_per_host_per_second: float = 0.0
    http_user_agent: str = "scamshield/0.1"

    # Shared storage
    container_root: Path = Field(default_factory=default_container_root)
    app_group_id: str = DEFAULT_APP_GROUP_ID
    collection_key: str = DEFAULT_COLLECTION_KEY

    # Extension reload
    extension_id: str = DEFAULT_EXTENSION_ID
    extension_host: Literal["local", "subprocess"] = "subprocess"
    reload_timeout_seconds: float = 10.0
    reload_max_retries: int = 2
    reload_backoff_base_seconds: float = 0.5
    reload_backoff_max_seconds: float = 8.0

    # Blocking decision
    block_threshold: int = 70
    decision_weights: dict[str, float] = Field(default_factory=default_decision_weights)

    @field_validator("http_max_retries", "reload_max_retries")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("retries must be >= 0")
        return value

    @field_validator("block_threshold")
    @classmethod
    def _threshold_range(cls, value: int) -> int:
        if not 0 <= value <= 100:
            raise ValueError("block_threshold must be within 0..100")
        return value

    def http_config(self) -> HttpClientConfig:
        return HttpClientConfig(
            timeout_seconds=self.http_timeout_seconds,
            max_retries=self.http_max_retries,
            backoff_base_seconds=self.http_backoff_base_seconds,
            backoff_max_seconds=self.http_backoff_max_seconds,
            rate_limit_per_host_per_second=self.http_rate_limit_per_host_per_second,
            user_agent=self.http_user_agent,
        )

    def shared_container(self) -> SharedContainer:
        return SharedContainer(root=self.container_root, group_id=self.app_group_id)


_ENV_MAP: dict[str, str] = {
    "SCAMSHIELD_LOG_LEVEL": "log_level",
    "SCAMSHIELD_JSON_LOGGING": "json_logging",
    "SCAMSHIELD_API_BASE_URL": "api_base_url",
    "SCAMSHIELD_HTTP_TIMEOUT_SECONDS": "http_timeout_seconds",
    "SCAMSHIELD_HTTP_MAX_RETRIES": "http_max_retries",
    "SCAMSHIELD_HTTP_BACKOFF_BASE_SECONDS": "http_backoff_base_seconds",
    "SCAMSHIELD_HTTP_BACKOFF_MAX_SECONDS": "http_backoff_max_seconds",
    "SCAMSHIELD_HTTP_RATE_LIMIT_PER_HOST_PER_SECOND": "http_rate_limit_per_host_per_second",
    "SCAMSHIELD_HTTP_USER_AGENT": "http_user_agent",
    "SCAMSHIELD_CONTAINER_ROOT": "container_root",
    "SCAMSHIELD_APP_GROUP_ID": "app_group_id",
    "SCAMSHIELD_COLLECTION_KEY": "collection_key",
    "SCAMSHIELD_EXTENSION_ID": "extension_id",
    "SCAMSHIELD_EXTENSION_HOST": "extension_host",
    "SCAMSHIELD_RELOAD_TIMEOUT_SECONDS": "reload_timeout_seconds",
    "SCAMSHIELD_RELOAD_MAX_RETRIES": "reload_max_retries",
    "SCAMSHIELD_RELOAD_BACKOFF_BASE_SECONDS": "reload_backoff_base_seconds",
    "SCAMSHIELD_RELOAD_BACKOFF_MAX_SECONDS": "reload_backoff_max_seconds",
    "SCAMSHIELD_BLOCK_THRESHOLD": "block_threshold",
    # JSON string: {"risk_score": 1.0, "per_report": 5.0}
    "SCAMSHIELD_DECISION_WEIGHTS": "decision_weights",
}


def _read_yaml(path: Path) -> dict[str, Any]:
    raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    return raw if isinstance(raw, dict) else {}


def _read_dotenv(path: Path) -> dict[str, str]:
    values = dotenv_values(path)
    return {k: v for k, v in values.items() if isinstance(k, str) and isinstance(v, str)}


def _overlay_env(target: dict[str, Any], env: dict[str, str]) -> None:
    for env_key, field_name in _ENV_MAP.items():
        if env_key not in env:
            continue
        raw = env[env_key]
        if field_name == "decision_weights":
            try:
                parsed = json.loads(raw)
            except json.JSONDecodeError:
                continue
            if isinstance(parsed, dict):
                target[field_name] = parsed
        else:
            target[field_name] = raw


def load_settings(
    *, yaml_path: Path | None = None, env_path: Path | None = None
) -> ScamshieldSettings:
    """
    Load settings from YAML and .env, with OS env overrides.

    Args:
        yaml_path: Optional YAML config path.
        env_path: Optional .env path (default: `.env` if present).
    """

    data: dict[str, Any] = {}

    if env_path is None:
        maybe = Path(".env")
        env_path = maybe if maybe.exists() else None

    dotenv = _read_dotenv(env_path) if env_path is not None and env_path.exists() else {}

    if yaml_path is None:
        cfg = os.environ.get("SCAMSHIELD_CONFIG") or dotenv.get("SCAMSHIELD_CONFIG")
        if cfg:
            yaml_path = Path(cfg)

    if yaml_path is not None and yaml_path.exists():
        data.update(_read_yaml(yaml_path))

    if dotenv:
        _overlay_env(data, dotenv)

    os_env: dict[str, str] = {k: v for k, v in os.environ.items() if k in _ENV_MAP}
    _overlay_env(data, os_env)

    return ScamshieldSettings.model_validate(data)
