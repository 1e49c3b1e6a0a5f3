"""Index of comments already present on a review, rebuilt once per pass."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field

from threadwarden.connectors.base import ReviewConnector
from threadwarden.fingerprint import extract_meta_comment
from threadwarden.models import Discussion

logger = logging.getLogger(__name__)


class PostedComments:
    """Identity keys (fingerprints or legacy bodies) seen at each (path, line)."""

    def __init__(self) -> None:
        self._seen: dict[tuple[str, int], set[str]] = defaultdict(set)

    def add(self, path: str, line: int, identity: str) -> None:
        self._seen[(path, line)].add(identity)

    def is_posted(self, path: str, line: int, identity: str) -> bool:
        identities = self._seen.get((path, line))
        return identities is not None and identity in identities

    def __len__(self) -> int:
        return sum(len(identities) for identities in self._seen.values())


def fetch_all_threads(connector: ReviewConnector) -> list[Discussion]:
    threads: list[Discussion] = []
    page: str | None = None
    pages = 0
    while True:
        result = connector.list_threads(page)
        threads.extend(result.threads)
        pages += 1
        if result.next_page is None:
            break
        page = result.next_page
    logger.debug("Fetched %s review threads over %s pages", len(threads), pages)
    return threads


@dataclass
class PostedState:
    threads: list[Discussion] = field(default_factory=list)
    posted: PostedComments = field(default_factory=PostedComments)
    outdated: dict[str, Discussion] = field(default_factory=dict)

    @classmethod
    def rebuild(cls, connector: ReviewConnector, tool_name: str) -> PostedState:
        state = cls(threads=fetch_all_threads(connector))
        for discussion in state.threads:
            for note in discussion.notes:
                position = note.position
                if position is None or not position.new_path or position.new_line == 0 or not note.body:
                    continue
                meta = extract_meta_comment(note.body)
                if meta is None:
                    # Comments from older releases or humans only match on the exact body.
                    state.posted.add(position.new_path, position.new_line, note.body)
                    continue
                state.posted.add(position.new_path, position.new_line, meta.fingerprint)
                if meta.source_name == tool_name:
                    state.outdated[meta.fingerprint] = discussion
        return state
