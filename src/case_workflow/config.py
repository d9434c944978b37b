"""Configuration loading from YAML + environment overrides."""

from __future__ import annotations

import hashlib
import os
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_yaml(path: str | Path) -> dict[str, Any]:
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    out = dict(base)
    for k, v in override.items():
        if k in out and isinstance(out[k], dict) and isinstance(v, dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


class AppSettings(BaseSettings):
    """App-level settings with env override."""

    model_config = SettingsConfigDict(
        env_prefix="CASEFLOW_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    config_path: str = Field(default="config/default.yaml", alias="CASEFLOW_CONFIG_PATH")
    log_level: str | None = Field(default=None, alias="CASEFLOW_LOG_LEVEL")
    database_url: str | None = Field(default=None, alias="CASEFLOW_DATABASE_URL")
    api_host: str | None = Field(default=None, alias="CASEFLOW_API_HOST")
    api_port: int | None = Field(default=None, alias="CASEFLOW_API_PORT")


def validate_workflow_config(config: dict[str, Any]) -> None:
    """Raise ValueError if workflow settings are unusable."""
    wf = config.get("workflow") or {}
    max_len = wf.get("note_max_length", 4000)
    if not isinstance(max_len, int) or isinstance(max_len, bool) or max_len <= 0:
        raise ValueError(f"workflow.note_max_length must be a positive integer, got {max_len!r}")
    extra = wf.get("extra_outcomes") or []
    if not isinstance(extra, list) or not all(isinstance(o, str) and o.strip() for o in extra):
        raise ValueError("workflow.extra_outcomes must be a list of non-empty strings")


def get_config(config_path: str | None = None) -> dict[str, Any]:
    """Load merged config from YAML and apply env overrides via AppSettings."""
    settings = AppSettings()
    path = config_path or settings.config_path
    if not Path(path).exists():
        base = _default_config()
    else:
        base = _deep_merge(_default_config(), _load_yaml(path))
        dev_path = Path(path).parent / "dev.yaml"
        if dev_path.exists() and os.environ.get("CASEFLOW_ENV") == "dev":
            base = _deep_merge(base, _load_yaml(dev_path))
    # Env overrides (DATABASE_URL standard for Docker/Postgres; CASEFLOW_DATABASE_URL for app)
    db_url = os.environ.get("DATABASE_URL") or settings.database_url
    if db_url:
        base.setdefault("database", {})["url"] = db_url
    if settings.log_level:
        base.setdefault("app", {})["log_level"] = settings.log_level
    if settings.api_host:
        base.setdefault("api", {})["host"] = settings.api_host
    if settings.api_port:
        base.setdefault("api", {})["port"] = settings.api_port
    validate_workflow_config(base)
    return base


def _default_config() -> dict[str, Any]:
    return {
        "app": {"name": "case-workflow", "env": "default", "log_level": "INFO"},
        "database": {"url": "sqlite:///./data/cases.db", "echo": False},
        "workflow": {"note_max_length": 4000, "extra_outcomes": []},
        "actors": {},
        "api": {"host": "0.0.0.0", "port": 8000},
    }


def get_config_hash(config: dict[str, Any]) -> str:
    """SHA256 of resolved config for audit reproducibility (canonical key order)."""
    canonical = yaml.dump(config, default_flow_style=False, sort_keys=True, allow_unicode=True)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
