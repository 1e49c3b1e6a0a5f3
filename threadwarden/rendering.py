"""Markdown rendering for review comments and suggested changes."""

from __future__ import annotations

import logging
import re

from threadwarden.fingerprint import build_meta_comment
from threadwarden.models import Diagnostic, Severity, Suggestion

logger = logging.getLogger(__name__)

_BACKTICK_RUN_RE = re.compile(r"`+")
_MIN_FENCE_LENGTH = 3

INVALID_SUGGESTION_PRE = "<details><summary>threadwarden suggestion error</summary>"
INVALID_SUGGESTION_POST = "</details>"

_SEVERITY_BADGES = {
    Severity.ERROR: "🚫",
    Severity.WARNING: "⚠️",
    Severity.INFO: "📝",
}


def code_fence_length(text: str) -> int:
    longest = max((len(run) for run in _BACKTICK_RUN_RE.findall(text)), default=0)
    return max(_MIN_FENCE_LENGTH, longest + 1)


def markdown_comment(diagnostic: Diagnostic) -> str:
    parts: list[str] = []
    badge = _SEVERITY_BADGES.get(diagnostic.severity)
    if badge:
        parts.append(badge)
    if diagnostic.source_name:
        parts.append(f"**[{diagnostic.source_name}]**")
    if diagnostic.code and diagnostic.code.value:
        if diagnostic.code.url:
            parts.append(f"<[{diagnostic.code.value}]({diagnostic.code.url})>")
        else:
            parts.append(f"<{diagnostic.code.value}>")
    parts.append(diagnostic.message)
    return " ".join(parts)


def _suggestion_header(suggestion: Suggestion, style: str) -> str:
    if suggestion.range is None or suggestion.range.start is None or suggestion.range.end is None:
        raise ValueError("suggestion has no start/end range")
    span = suggestion.range.end.line - suggestion.range.start.line
    if span < 0:
        raise ValueError(
            f"suggestion range ends on line {suggestion.range.end.line} before it starts on line {suggestion.range.start.line}"
        )
    if style == "github":
        return "suggestion"
    return f"suggestion:-0+{span}"


def build_single_suggestion(suggestion: Suggestion, style: str = "gitlab") -> str:
    header = _suggestion_header(suggestion, style)
    fence = "`" * code_fence_length(suggestion.text)
    lines = [fence + header]
    if suggestion.text:
        lines.append(suggestion.text)
    lines.append(fence)
    return "\n".join(lines)


def build_suggestions(diagnostic: Diagnostic, style: str = "gitlab") -> str:
    blocks: list[str] = []
    for suggestion in diagnostic.suggestions:
        if suggestion.range is None or suggestion.range.start is None or suggestion.range.end is None:
            continue
        try:
            blocks.append(build_single_suggestion(suggestion, style))
        except ValueError as exc:
            logger.warning("Invalid suggestion for %s: %s", diagnostic.path, exc)
            blocks.append(INVALID_SUGGESTION_PRE + str(exc) + INVALID_SUGGESTION_POST)
    return "".join(block + "\n" for block in blocks)


def legacy_comment_body(diagnostic: Diagnostic, style: str = "gitlab") -> str:
    body = markdown_comment(diagnostic)
    suggestions = build_suggestions(diagnostic, style)
    if suggestions:
        body = body + "\n\n" + suggestions
    return body


def render_comment_body(diagnostic: Diagnostic, fingerprint_value: str, tool_name: str, style: str = "gitlab") -> str:
    return legacy_comment_body(diagnostic, style) + "\n" + build_meta_comment(fingerprint_value, tool_name)
