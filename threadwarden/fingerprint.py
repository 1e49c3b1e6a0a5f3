"""Fingerprint generation and hidden meta markers for posted comments."""

from __future__ import annotations

import base64
import binascii
import hashlib
import json
import re
from collections import defaultdict

from pydantic import ValidationError

from threadwarden.models import Diagnostic, MetaMarker

_META_PREFIX = "<!-- __threadwarden__:"
_META_SUFFIX = " -->"
_META_RE = re.compile(r"<!-- __threadwarden__:(?P<payload>[A-Za-z0-9+/=]*) -->")


class FingerprintError(ValueError):
    pass


def fingerprint(diagnostic: Diagnostic, occurrence: int = 0) -> str:
    """Return a stable identifier for the issue a diagnostic describes.

    Line and column numbers are not part of the identity: a finding keeps its
    fingerprint when the surrounding code shifts between revisions. Repeated
    findings in one file are told apart by ``occurrence``, their rank in line
    order among findings with the same identity.
    """
    if not diagnostic.path:
        raise FingerprintError("diagnostic has no location path")
    if not diagnostic.message:
        raise FingerprintError(f"diagnostic at {diagnostic.path} has no message")
    if occurrence < 0:
        raise FingerprintError(f"occurrence must be non-negative, got {occurrence}")

    fields = [
        diagnostic.source_name,
        diagnostic.path,
        diagnostic.code.value if diagnostic.code else "",
        diagnostic.severity.value,
        diagnostic.message,
        *(suggestion.text for suggestion in diagnostic.suggestions),
    ]
    if occurrence:
        fields.append(f"#{occurrence}")
    material = "\x1f".join(fields)
    return hashlib.blake2b(material.encode("utf-8"), digest_size=8).hexdigest()


def fingerprint_all(diagnostics: list[Diagnostic]) -> list[str]:
    """Fingerprint a batch, numbering same-identity findings by distinct line.

    Findings repeated on the same line share an ordinal and so a fingerprint.
    Raises ``FingerprintError`` for the first unusable diagnostic.
    """
    bases = [fingerprint(diagnostic) for diagnostic in diagnostics]
    lines: dict[str, set[int]] = defaultdict(set)
    for diagnostic, base in zip(diagnostics, bases):
        lines[base].add(diagnostic.line)
    ranks = {base: {line: rank for rank, line in enumerate(sorted(seen))} for base, seen in lines.items()}

    result: list[str] = []
    for diagnostic, base in zip(diagnostics, bases):
        rank = ranks[base][diagnostic.line]
        result.append(fingerprint(diagnostic, occurrence=rank) if rank else base)
    return result


def build_meta_comment(fingerprint_value: str, source_name: str) -> str:
    payload = json.dumps({"fingerprint": fingerprint_value, "source_name": source_name}, separators=(",", ":"))
    encoded = base64.b64encode(payload.encode("utf-8")).decode("ascii")
    return f"{_META_PREFIX}{encoded}{_META_SUFFIX}"


def extract_meta_comment(body: str) -> MetaMarker | None:
    matches = list(_META_RE.finditer(body or ""))
    if not matches:
        return None
    try:
        raw = base64.b64decode(matches[-1].group("payload"), validate=True)
        data = json.loads(raw.decode("utf-8"))
        marker = MetaMarker.model_validate(data)
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError, ValidationError):
        return None
    if not marker.fingerprint:
        return None
    return marker
