"""Streaming search-and-replace over an Aho-Corasick trie."""

from __future__ import annotations

import enum
from collections.abc import Callable
from dataclasses import dataclass

from pktlab.actypes import (
    REPLACEMENT_BUFFER_SIZE,
    NoReplacementError,
    Pattern,
    TrieError,
    TrieOpenError,
)
from pktlab.node import Node

ReplaceCallback = Callable[[bytes], None]


class ReplaceMode(enum.IntEnum):
    """How overlapping matches are resolved."""

    DEFAULT = 0
    NORMAL = 1
    """Shorter factors are swallowed by longer patterns; others all replaced."""
    LAZY = 2
    """The first pattern wins; later overlapping patterns are ignored."""


@dataclass
class Nominee:
    """A recognised pattern waiting to be replaced."""

    pattern: Pattern
    position: int

    @property
    def start(self) -> int:
        """Position in the whole input where the pattern begins."""
        return self.position - len(self.pattern.ptext)


def _as_bytes(text: bytes | bytearray | str) -> bytes:
    if isinstance(text, str):
        return text.encode("utf-8")
    return bytes(text)


class Replacer:
    """Replaces patterns of a built trie in text fed chunk by chunk.

    The trie below ``root`` must be complete: failure links set and matches
    collected. Output is handed to the callback in chunks of at most
    ``REPLACEMENT_BUFFER_SIZE`` bytes.
    """

    def __init__(self, root: Node) -> None:
        self.root = root
        self.has_replacement = 0
        self.mode = ReplaceMode.DEFAULT
        self._finalized = False
        self._callback: ReplaceCallback | None = None
        self._text = b""
        self._buffer = bytearray()
        self._backlog = bytearray()
        self._noms: list[Nominee] = []
        self._curser = 0
        self.last_node = root
        self.base_position = 0

    def finalize(self) -> int:
        """Book the replacement of every node; return how many nodes have one."""
        self.has_replacement = sum(node.book_replacement() for node in self.root.walk())
        self._finalized = True
        self.last_node = self.root
        self.base_position = 0
        self.reset()
        return self.has_replacement

    def reset(self) -> None:
        """Drop buffered output, backlog and pending nominees."""
        self._buffer.clear()
        self._backlog.clear()
        self._curser = 0
        self._noms.clear()

    def replace(
        self,
        text: bytes | bytearray | str,
        mode: ReplaceMode,
        callback: ReplaceCallback,
    ) -> None:
        """Feed one chunk of input; replaced output goes to callback."""
        if not self._finalized:
            raise TrieOpenError("the trie must be finalized before replacing")
        if not self.has_replacement:
            raise NoReplacementError("the trie has no pattern to be replaced")

        self._callback = callback
        self.mode = ReplaceMode(mode)
        data = _as_bytes(text)
        self._text = data

        current = self.last_node
        position_r = 0
        while position_r < len(data):
            following = current.find_next_sorted(data[position_r])
            if following is None:
                if current.failure_node is not None:
                    current = current.failure_node
                else:
                    position_r += 1
            else:
                current = following
                position_r += 1

            if current.final and following is not None:
                self._book_nominee(current.to_be_replaced, self.base_position + position_r)

        # A tail that is a prefix of some pattern waits in the backlog.
        backlog_pos = self.base_position + len(data) - current.depth
        self._do_replace(backlog_pos)
        self._save_to_backlog(backlog_pos)

        self.last_node = current
        self.base_position += position_r

    def flush(self, keep: bool) -> None:
        """Hand buffered output to the callback.

        Without keep the input is taken as complete: pending text is
        replaced and the replacer is ready for a new input.
        """
        if self._callback is None:
            raise TrieError("no replacement has been started")
        if not keep:
            self._do_replace(self.base_position)
        self._emit()
        if not keep:
            self.reset()
            self.last_node = self.root
            self.base_position = 0

    def _emit(self) -> None:
        assert self._callback is not None
        self._callback(bytes(self._buffer))
        self._buffer.clear()

    def _book_nominee(self, pattern: Pattern | None, position: int) -> None:
        if pattern is None:
            return
        nominee = Nominee(pattern, position)
        if self.mode is ReplaceMode.LAZY:
            if nominee.start < self._curser:
                return
            if self._noms and nominee.start < self._noms[-1].position:
                return
        else:
            while self._noms and nominee.start <= self._noms[-1].start:
                self._noms.pop()
        self._noms.append(nominee)

    def _append_text(self, data: bytes | bytearray) -> None:
        self._buffer += data
        while len(self._buffer) >= REPLACEMENT_BUFFER_SIZE:
            rest = self._buffer[REPLACEMENT_BUFFER_SIZE:]
            del self._buffer[REPLACEMENT_BUFFER_SIZE:]
            self._emit()
            self._buffer += rest

    def _append_factor(self, start: int, end: int) -> None:
        if end < start:
            return
        base = self.base_position
        if base <= start:
            self._append_text(self._text[start - base : end - base])
            return
        backlog_base = base - len(self._backlog)
        if start < backlog_base:
            return
        if end < base:
            self._append_text(self._backlog[start - backlog_base : end - backlog_base])
        else:
            self._append_text(self._backlog[start - backlog_base :])
            self._append_text(self._text[: end - base])

    def _save_to_backlog(self, backlog_pos: int) -> None:
        base = self.base_position
        relative = backlog_pos - base if base < backlog_pos else 0
        if len(self._text) <= relative:
            return
        self._backlog += self._text[relative:]

    def _do_replace(self, to_position: int) -> None:
        if to_position < self.base_position:
            return

        consumed = 0
        for nominee in self._noms:
            if to_position <= nominee.start:
                break
            self._append_factor(self._curser, nominee.start)
            self._append_text(nominee.pattern.rtext or b"")
            self._curser = nominee.position
            consumed += 1
        del self._noms[:consumed]

        if to_position > self._curser:
            self._append_factor(self._curser, to_position)
            self._curser = to_position

        if self.base_position <= self._curser:
            # The backlog is consumed whole or not at all.
            self._backlog.clear()