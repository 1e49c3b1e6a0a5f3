"""Connector interfaces and implementations."""

from .github_gh import GithubPullRequestConnector
from .gitlab import GitlabMergeRequestConnector

__all__ = ["GithubPullRequestConnector", "GitlabMergeRequestConnector"]
