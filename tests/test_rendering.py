import logging

import pytest
from conftest import make_diagnostic

from threadwarden.fingerprint import extract_meta_comment
from threadwarden.models import Suggestion
from threadwarden.rendering import (
    INVALID_SUGGESTION_PRE,
    build_single_suggestion,
    build_suggestions,
    code_fence_length,
    legacy_comment_body,
    markdown_comment,
    render_comment_body,
)


def _suggestion(text: str, start: int = 3, end: int = 5) -> dict:
    return {"range": {"start": {"line": start}, "end": {"line": end}}, "text": text}


def _parse_fenced_block(block: str) -> tuple[str, str, str]:
    lines = block.split("\n")
    opening = lines[0]
    fence = opening[: len(opening) - len(opening.lstrip("`"))]
    closing_index = lines.index(fence, 1)
    return fence, opening[len(fence) :], "\n".join(lines[1:closing_index])


def test_code_fence_length_has_minimum_of_three() -> None:
    assert code_fence_length("") == 3
    assert code_fence_length("no ticks") == 3
    assert code_fence_length("`inline`") == 3
    assert code_fence_length("``double``") == 3


def test_code_fence_outgrows_nested_fences_and_reparses_exactly() -> None:
    text = "doc = '''\n````python\nprint(1)\n````\n'''"
    diagnostic = make_diagnostic(suggestions=[_suggestion(text)])

    rendered = build_suggestions(diagnostic)
    fence, header, body = _parse_fenced_block(rendered)

    assert len(fence) >= 5
    assert header == "suggestion:-0+2"
    assert body == text


def test_build_suggestions_github_style_header() -> None:
    diagnostic = make_diagnostic(suggestions=[_suggestion("fixed()", 7, 7)])

    fence, header, body = _parse_fenced_block(build_suggestions(diagnostic, style="github"))

    assert fence == "```"
    assert header == "suggestion"
    assert body == "fixed()"


def test_build_suggestions_skips_incomplete_ranges_silently() -> None:
    diagnostic = make_diagnostic(
        suggestions=[
            {"range": {"start": {"line": 3}}, "text": "missing end"},
            {"text": "missing range"},
            _suggestion("kept"),
        ]
    )

    rendered = build_suggestions(diagnostic)

    assert "missing" not in rendered
    assert rendered.count("suggestion:-0+") == 1


def test_build_suggestions_replaces_only_the_broken_one_with_error_block(caplog) -> None:
    diagnostic = make_diagnostic(suggestions=[_suggestion("backwards", 9, 4), _suggestion("fine", 4, 4)])

    with caplog.at_level(logging.WARNING):
        rendered = build_suggestions(diagnostic)

    assert rendered.startswith(INVALID_SUGGESTION_PRE)
    assert "suggestion:-0+0\nfine\n```" in rendered
    assert "Invalid suggestion" in caplog.text


def test_build_single_suggestion_rejects_missing_range() -> None:
    with pytest.raises(ValueError, match="no start/end range"):
        build_single_suggestion(Suggestion(text="orphan"))
    with pytest.raises(ValueError):
        build_single_suggestion(Suggestion.model_validate({"range": {"start": {"line": 3}}, "text": "half"}))


def test_empty_suggestion_text_renders_deletion_block() -> None:
    diagnostic = make_diagnostic(suggestions=[_suggestion("", 2, 3)])

    assert build_suggestions(diagnostic) == "```suggestion:-0+1\n```\n"


def test_markdown_comment_includes_severity_tool_and_code() -> None:
    diagnostic = make_diagnostic(severity="ERROR", code={"value": "SA4006", "url": "https://staticcheck.dev/docs/checks#SA4006"})

    comment = markdown_comment(diagnostic)

    assert comment.startswith("🚫 **[golint]** <[SA4006](https://staticcheck.dev/docs/checks#SA4006)>")
    assert comment.endswith("unused variable")


def test_render_comment_body_appends_marker_after_suggestions() -> None:
    diagnostic = make_diagnostic(suggestions=[_suggestion("x := 1", 10, 10)])

    body = render_comment_body(diagnostic, "f1", "golint")

    assert body.startswith(legacy_comment_body(diagnostic) + "\n")
    assert "\n\n```suggestion:-0+0\nx := 1\n```\n" in body
    marker = extract_meta_comment(body)
    assert marker is not None and marker.fingerprint == "f1"


def test_render_comment_body_without_suggestions() -> None:
    body = render_comment_body(make_diagnostic(), "f1", "golint")

    message, marker = body.split("\n")
    assert message == "**[golint]** unused variable"
    assert marker.startswith("<!-- __threadwarden__:")
