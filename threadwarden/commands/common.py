"""Shared helpers for CLI command modules."""

from __future__ import annotations

import argparse
import json
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import yaml

from threadwarden.config import ThreadwardenConfig, deep_merge, load_effective_config
from threadwarden.connectors.base import ReviewConnector
from threadwarden.connectors.github_gh import GithubPullRequestConnector
from threadwarden.connectors.gitlab import GitlabMergeRequestConnector
from threadwarden.models import Diagnostic

PROVIDERS = ("gitlab", "github")

ConnectorFactory = Callable[..., ReviewConnector]


def load_yaml_dict(path: str | None) -> dict | None:
    if not path:
        return None
    data = yaml.safe_load(Path(path).read_text())
    if data is None:
        return None
    if not isinstance(data, dict):
        raise ValueError(f"YAML at {path} must decode to a mapping")
    return data


def load_config(args: argparse.Namespace) -> ThreadwardenConfig:
    runtime_override = deep_merge(load_yaml_dict(args.runtime_override) or {}, runtime_override_from_args(args))
    return load_effective_config(
        repo_path=args.repo_path,
        org_defaults=load_yaml_dict(args.org_config),
        system_defaults=load_yaml_dict(args.system_config),
        runtime_override=runtime_override,
    )


def add_common_config_flags(cmd: argparse.ArgumentParser) -> None:
    cmd.add_argument("--repo-path", default=".", help="Repository root path")
    cmd.add_argument("--org-config", help="Optional org defaults YAML")
    cmd.add_argument("--system-config", help="Optional system defaults YAML")
    cmd.add_argument("--runtime-override", help="Optional runtime override YAML")


def parse_diagnostics(text: str) -> list[Diagnostic]:
    """Accept a JSON array of diagnostics or one JSON object per line."""
    stripped = text.strip()
    if not stripped:
        return []
    if stripped.startswith("["):
        raw = json.loads(stripped)
        return [Diagnostic.model_validate(item) for item in raw]
    return [Diagnostic.model_validate_json(line) for line in stripped.splitlines() if line.strip()]


def load_diagnostics(path: str) -> list[Diagnostic]:
    if path == "-":
        return parse_diagnostics(sys.stdin.read())
    return parse_diagnostics(Path(path).read_text())


def build_connector(
    config: ThreadwardenConfig,
    *,
    provider: str,
    repo: str,
    review: int,
    head_sha: str | None = None,
) -> ReviewConnector:
    if provider == "gitlab":
        return GitlabMergeRequestConnector(
            repo,
            review,
            head_sha=head_sha,
            base_url=config.gitlab.base_url,
            token_env=config.gitlab.token_env,
            publish_mode=config.gitlab.publish_mode,
            per_page=config.gitlab.per_page,
            timeout_seconds=config.gitlab.timeout_seconds,
        )
    if provider == "github":
        return GithubPullRequestConnector(
            repo,
            review,
            head_sha=head_sha,
            gh_bin=config.github.gh_bin,
            publish_mode=config.github.publish_mode,
            per_page=config.github.per_page,
        )
    raise ValueError(f"Unsupported provider: {provider}")


def runtime_override_from_args(args: argparse.Namespace) -> dict[str, Any]:
    reconcile: dict[str, Any] = {}
    if getattr(args, "tool_name", None):
        reconcile["tool_name"] = args.tool_name
    if getattr(args, "dry_run", False):
        reconcile["dry_run"] = True
    if getattr(args, "max_workers", None):
        reconcile["max_workers"] = args.max_workers
    return {"reconcile": reconcile} if reconcile else {}
