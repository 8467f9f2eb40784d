"""Incremental search index over note titles and bodies.

Keeps, per note, the lower-cased title and body (for substring queries) and
their word tokens, plus inverted postings from token to note ids (for
keyword queries whose words appear in any order). Updating a note removes
only that note's old tokens and adds its new ones, so the cost of an edit
depends on the size of the edited note, not of the collection.
"""
import datetime
import string
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Set

_STRIP_CHARS = string.punctuation + "“”‘’«»…"


def tokenize(text: str) -> FrozenSet[str]:
    """Lower-cased, whitespace-split words with surrounding punctuation removed."""
    tokens = set()
    for word in text.lower().split():
        word = word.strip(_STRIP_CHARS)
        if word:
            tokens.add(word)
    return frozenset(tokens)


@dataclass(frozen=True)
class _Entry:
    title: str
    body: str
    title_tokens: FrozenSet[str]
    body_tokens: FrozenSet[str]
    updated_at: datetime.datetime


class SearchIndex:
    """Live substring and keyword search over notes."""

    def __init__(self) -> None:
        self._entries: Dict[str, _Entry] = {}
        self._title_postings: Dict[str, Set[str]] = defaultdict(set)
        self._body_postings: Dict[str, Set[str]] = defaultdict(set)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, note_id: object) -> bool:
        return note_id in self._entries

    def update(
        self,
        note_id: str,
        title: str,
        body: str,
        updated_at: datetime.datetime,
    ) -> None:
        """Index (or re-index) one note."""
        old = self._entries.get(note_id)
        title_tokens = tokenize(title)
        body_tokens = tokenize(body)

        old_title = old.title_tokens if old else frozenset()
        old_body = old.body_tokens if old else frozenset()
        _repost(self._title_postings, note_id, old_title, title_tokens)
        _repost(self._body_postings, note_id, old_body, body_tokens)

        self._entries[note_id] = _Entry(
            title=title.lower(),
            body=body.lower(),
            title_tokens=title_tokens,
            body_tokens=body_tokens,
            updated_at=updated_at,
        )

    def remove(self, note_id: str) -> None:
        """Forget a note. Unknown ids are ignored."""
        entry = self._entries.pop(note_id, None)
        if entry is None:
            return
        _repost(self._title_postings, note_id, entry.title_tokens, frozenset())
        _repost(self._body_postings, note_id, entry.body_tokens, frozenset())

    def clear(self) -> None:
        self._entries.clear()
        self._title_postings.clear()
        self._body_postings.clear()

    def ids_with_token(self, token: str) -> Set[str]:
        """Ids whose title or body contains ``token`` as a word."""
        token = token.lower()
        return set(self._title_postings.get(token, ())) | set(
            self._body_postings.get(token, ())
        )

    def search(self, query: str) -> List[str]:
        """Find notes matching ``query``.

        A note matches when the lower-cased query occurs in its title or body,
        or when every word of the query is a word of the note. Title matches
        rank before body-only matches; within each group more recently
        updated notes come first.

        Returns:
            Matching ids, best first. A blank query matches nothing.
        """
        needle = query.lower()
        if not needle.strip():
            return []

        # id -> matched in title
        matches: Dict[str, bool] = {}

        words = tokenize(query)
        if words:
            title_hits = _intersect(self._title_postings.get(w, set()) for w in words)
            any_hits = _intersect(
                self._title_postings.get(w, set()) | self._body_postings.get(w, set())
                for w in words
            )
            for note_id in any_hits:
                matches[note_id] = note_id in title_hits

        for note_id, entry in self._entries.items():
            in_title = needle in entry.title
            if in_title or needle in entry.body:
                matches[note_id] = matches.get(note_id, False) or in_title

        return sorted(
            matches,
            key=lambda note_id: (
                not matches[note_id],
                -self._entries[note_id].updated_at.timestamp(),
                note_id,
            ),
        )


def _repost(
    postings: Dict[str, Set[str]],
    note_id: str,
    old: FrozenSet[str],
    new: FrozenSet[str],
) -> None:
    for token in old - new:
        ids = postings.get(token)
        if ids is not None:
            ids.discard(note_id)
            if not ids:
                del postings[token]
    for token in new - old:
        postings[token].add(note_id)


def _intersect(sets: Iterable[Set[str]]) -> Set[str]:
    result = None
    for ids in sets:
        result = set(ids) if result is None else result & ids
        if not result:
            return set()
    return result or set()
