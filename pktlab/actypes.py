"""Basic types shared by the Aho-Corasick trie: patterns, matches and errors."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

PATTERN_MAX_LENGTH = 1024
"""Maximum accepted length of a search or replace pattern."""

REPLACEMENT_BUFFER_SIZE = 2048
"""Size of the chunks in which replacement output is handed back."""


class PatternIdType(enum.IntEnum):
    """Kind of identifier a pattern carries."""

    DEFAULT = 0
    NUMBER = 1
    STRING = 2


class WorkingMode(enum.IntEnum):
    """Mode the trie works in."""

    SEARCH = 0
    FINDNEXT = 1
    REPLACE = 2


class TrieError(Exception):
    """Base class of all trie errors."""


class DuplicatePatternError(TrieError):
    """The pattern is already in the trie."""


class LongPatternError(TrieError):
    """The pattern is longer than PATTERN_MAX_LENGTH."""


class ZeroPatternError(TrieError):
    """The pattern is empty."""


class TrieClosedError(TrieError):
    """The trie has been finalized and takes no more patterns."""


class TrieOpenError(TrieError):
    """The trie must be finalized before this operation."""


class NoReplacementError(TrieError):
    """The trie holds no pattern with a replacement."""


def _as_bytes(text: bytes | bytearray | str) -> bytes:
    if isinstance(text, str):
        return text.encode("utf-8")
    return bytes(text)


@dataclass(eq=False)
class Pattern:
    """A search string, its optional replacement and an optional identifier."""

    ptext: bytes
    rtext: bytes | None = None
    ident: int | str | None = None

    def __post_init__(self) -> None:
        self.ptext = _as_bytes(self.ptext)
        if self.rtext is not None:
            self.rtext = _as_bytes(self.rtext)

    def id_type(self) -> PatternIdType:
        """Return the kind of identifier this pattern carries."""
        if self.ident is None:
            return PatternIdType.DEFAULT
        if isinstance(self.ident, str):
            return PatternIdType.STRING
        return PatternIdType.NUMBER

    def validate(self) -> None:
        """Raise if the pattern cannot be added to a trie."""
        if not self.ptext:
            raise ZeroPatternError("pattern has zero length")
        if len(self.ptext) > PATTERN_MAX_LENGTH:
            raise LongPatternError(
                f"pattern of {len(self.ptext)} bytes exceeds {PATTERN_MAX_LENGTH}"
            )


@dataclass
class Match:
    """Patterns that end at the same position of the searched text."""

    patterns: list[Pattern] = field(default_factory=list)
    position: int = 0

    @property
    def size(self) -> int:
        return len(self.patterns)