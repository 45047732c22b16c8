from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

API_URL_ENV = "AVIDCORE_API_URL"
DEFAULT_API_URL = "http://localhost:8000"
DEFAULT_SESSION_PATH = "~/.avidcore/session.json"


class ApiConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    base_url: str = DEFAULT_API_URL
    timeout_seconds: float = Field(default=20.0, gt=0.0)

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, value: str) -> str:
        normalized = value.strip().rstrip("/")
        if not normalized:
            raise ValueError("api.base_url must not be empty")
        return normalized


class SessionConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    path: str = DEFAULT_SESSION_PATH

    @field_validator("path")
    @classmethod
    def validate_path(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("session.path must not be empty")
        return normalized

    def resolved_path(self) -> Path:
        return Path(self.path).expanduser()


class MediaCacheConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    max_entries: int = Field(default=50, ge=1)
    directory: str | None = None

    def resolved_directory(self) -> Path | None:
        if self.directory is None or not self.directory.strip():
            return None
        return Path(self.directory.strip()).expanduser()


class AuthConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    check_interval_seconds: float = Field(default=60.0, gt=0.0)


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    api: ApiConfig = Field(default_factory=ApiConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    media_cache: MediaCacheConfig = Field(default_factory=MediaCacheConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)


def load_config(path: str | Path | None = None, *, env: dict[str, str] | None = None) -> AppConfig:
    payload: dict[str, Any] = {}
    if path is not None:
        raw = Path(path).read_text(encoding="utf-8")
        payload = _parse_yaml_or_json(raw)

    environ = os.environ if env is None else env
    api_url = environ.get(API_URL_ENV, "").strip()
    if api_url:
        api_section = dict(payload.get("api") or {})
        api_section["base_url"] = api_url
        payload["api"] = api_section

    try:
        return AppConfig.model_validate(payload)
    except ValidationError as exc:
        raise ValueError(f"Invalid configuration: {exc}") from exc


def _parse_yaml_or_json(raw: str) -> dict[str, Any]:
    if not raw.strip():
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        parsed = yaml.safe_load(raw)
    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise ValueError("Configuration root must be an object.")
    return parsed
