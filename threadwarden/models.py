"""Core Pydantic domain models for threadwarden."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Severity(str, Enum):
    UNKNOWN = "UNKNOWN_SEVERITY"
    ERROR = "ERROR"
    WARNING = "WARNING"
    INFO = "INFO"


class LinePosition(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    line: int = 0
    column: int = 0


class TextRange(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    start: LinePosition | None = None
    end: LinePosition | None = None


class Location(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    path: str = ""
    range: TextRange | None = None


class Source(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = ""
    url: str | None = None


class Code(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    value: str = ""
    url: str | None = None


class Suggestion(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    range: TextRange | None = None
    text: str = ""


class RelatedLocation(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    message: str = ""
    location: Location | None = None


class Diagnostic(BaseModel):
    """A single finding reported by an analysis tool, placed in review context."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    message: str = ""
    location: Location | None = None
    severity: Severity = Severity.UNKNOWN
    source: Source | None = None
    code: Code | None = None
    suggestions: tuple[Suggestion, ...] = ()
    original_output: str = ""
    related_locations: tuple[RelatedLocation, ...] = ()
    in_diff: bool = False
    old_path: str | None = None
    old_line: int | None = None

    @property
    def path(self) -> str:
        return self.location.path if self.location else ""

    @property
    def line(self) -> int:
        if self.location is None or self.location.range is None or self.location.range.start is None:
            return 0
        return self.location.range.start.line

    @property
    def source_name(self) -> str:
        return self.source.name if self.source else ""


class MetaMarker(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    fingerprint: str
    source_name: str = ""


class NotePosition(BaseModel):
    model_config = ConfigDict(extra="ignore")

    new_path: str = ""
    new_line: int = 0
    old_path: str | None = None
    old_line: int | None = None


class Note(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = ""
    body: str = ""
    position: NotePosition | None = None
    resolvable: bool = False
    resolved: bool = False


class Discussion(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    notes: list[Note] = Field(default_factory=list)

    @property
    def is_resolved(self) -> bool:
        return all(note.resolved for note in self.notes if note.resolvable)


class ThreadPage(BaseModel):
    model_config = ConfigDict(extra="forbid")

    threads: list[Discussion] = Field(default_factory=list)
    next_page: str | None = None


class DiffRefs(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    base_sha: str
    head_sha: str
    start_sha: str


class ThreadAnchor(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    new_path: str
    new_line: int
    old_path: str | None = None
    old_line: int | None = None
    base_sha: str
    head_sha: str
    start_sha: str


class PlannedComment(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    diagnostic: Diagnostic
    fingerprint: str
    body: str

    def anchor(self, refs: DiffRefs) -> ThreadAnchor:
        diagnostic = self.diagnostic
        moved = bool(diagnostic.old_path) and bool(diagnostic.old_line)
        return ThreadAnchor(
            new_path=diagnostic.path,
            new_line=diagnostic.line,
            old_path=diagnostic.old_path if moved else None,
            old_line=diagnostic.old_line if moved else None,
            base_sha=refs.base_sha,
            head_sha=refs.head_sha,
            start_sha=refs.start_sha,
        )


class ReconcilePlan(BaseModel):
    model_config = ConfigDict(extra="forbid")

    creates: list[PlannedComment] = Field(default_factory=list)
    resolves: list[Discussion] = Field(default_factory=list)
    duplicates: int = 0
    dropped: int = 0
    fingerprint_failures: int = 0


class FlushReport(BaseModel):
    model_config = ConfigDict(extra="forbid")

    threads_seen: int = 0
    created: int = 0
    resolved: int = 0
    duplicates: int = 0
    dropped: int = 0
    fingerprint_failures: int = 0
    published: bool = False
    dry_run: bool = False
