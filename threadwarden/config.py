"""Configuration models and loading for threadwarden."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field

from threadwarden.ciutil import APPVEYOR_ADDRESSES, TRAVIS_IP_ENDPOINT

CONFIG_FILENAME = ".threadwarden.yaml"


class ReconcileConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    tool_name: str = "threadwarden"
    resolve_message: str = "Issue resolved."
    max_workers: int | None = Field(default=None, ge=1)
    dry_run: bool = False


class GitlabConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    base_url: str = "https://gitlab.com/api/v4"
    token_env: str = "GITLAB_TOKEN"
    publish_mode: Literal["batch", "immediate"] = "batch"
    per_page: int = Field(default=100, ge=1, le=100)
    timeout_seconds: float = 30.0


class GithubConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    gh_bin: str = "gh"
    publish_mode: Literal["batch", "immediate"] = "immediate"
    per_page: int = Field(default=100, ge=1, le=100)


class ServerConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    require_ci_origin: bool = True
    refresh_travis_on_start: bool = True
    static_ci_networks: list[str] = Field(default_factory=lambda: list(APPVEYOR_ADDRESSES))
    travis_endpoint: str = TRAVIS_IP_ENDPOINT
    travis_timeout_seconds: float = 10.0


class ThreadwardenConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    reconcile: ReconcileConfig = Field(default_factory=ReconcileConfig)
    gitlab: GitlabConfig = Field(default_factory=GitlabConfig)
    github: GithubConfig = Field(default_factory=GithubConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    data = yaml.safe_load(path.read_text())
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"YAML at {path} must decode to a mapping")
    return data


def load_effective_config(
    repo_path: str | Path,
    org_defaults: dict[str, Any] | None = None,
    system_defaults: dict[str, Any] | None = None,
    runtime_override: dict[str, Any] | None = None,
) -> ThreadwardenConfig:
    """Load config with precedence runtime > repo .threadwarden.yaml > org > system."""
    repo_config = _load_yaml(Path(repo_path) / CONFIG_FILENAME)

    merged: dict[str, Any] = {}
    for layer in (system_defaults, org_defaults, repo_config, runtime_override):
        if layer:
            merged = deep_merge(merged, layer)

    return ThreadwardenConfig.model_validate(merged)
