"""Packet printer: formats a packet's length, annotations and contents."""

from __future__ import annotations

import enum
import sys
import time
from dataclasses import dataclass, field
from typing import TextIO

ANNO_SIZE = 48
"""Number of user annotation bytes a packet carries."""

_TRUE_WORDS = {"1", "t", "y", "on", "yes", "true"}
_FALSE_WORDS = {"0", "f", "n", "no", "off", "false"}


class Contents(enum.IntEnum):
    """How packet data is printed."""

    NONE = 0
    HEX = 1
    ASCII = 2


@dataclass
class Packet:
    """A packet with its data, buffer room, timestamp and annotations."""

    data: bytes
    headroom: int = 0
    tailroom: int = 0
    timestamp: float = 0.0
    anno: bytes = field(default_factory=lambda: bytes(ANNO_SIZE))

    def __post_init__(self) -> None:
        self.data = bytes(self.data)
        anno = bytes(self.anno)[:ANNO_SIZE]
        self.anno = anno + bytes(ANNO_SIZE - len(anno))

    @property
    def length(self) -> int:
        return len(self.data)


def parse_bool(text: str) -> bool:
    """Parse a boolean word such as ``true``, ``no`` or ``1``."""
    if text in _TRUE_WORDS:
        return True
    if text in _FALSE_WORDS:
        return False
    raise ValueError(f"expected boolean, got '{text}'")


def parse_contents(value: str | bool | Contents) -> Contents:
    """Turn a CONTENTS setting into a Contents value."""
    if isinstance(value, Contents):
        return value
    if isinstance(value, bool):
        return Contents.HEX if value else Contents.NONE
    try:
        return Contents.HEX if parse_bool(value) else Contents.NONE
    except ValueError:
        pass
    word = value.upper()
    try:
        return Contents[word]
    except KeyError:
        raise ValueError(
            f"bad contents value '{word}'; should be 'NONE', 'HEX', or 'ASCII'"
        ) from None


class Print2:
    """Prints up to ``maxlength`` bytes of each packet, preceded by a label."""

    def __init__(
        self,
        label: str = "",
        maxlength: int = 24,
        contents: str | bool | Contents = "HEX",
        timestamp: bool = False,
        print_anno: bool = False,
        active: bool = True,
        headroom: bool = False,
    ) -> None:
        self.contents = parse_contents(contents)
        self.label = label
        self.maxlength = maxlength
        self.timestamp = timestamp
        self.print_anno = print_anno
        self.active = active
        self.headroom = headroom

    def format(self, packet: Packet, clock_ns: int) -> str:
        """Return the line printed for packet, given the monotonic clock in ns."""
        count = self.maxlength if self.contents else 0
        if count < 0 or packet.length < count:
            count = packet.length

        parts: list[str] = []
        sep = ""
        if self.label:
            parts.append(self.label)
            sep = ": "
        if self.timestamp:
            parts.append(f"{sep}{packet.timestamp:.6f}")
            sep = ": "
        parts.append(f"{sep}{clock_ns} ns")
        parts.append(f"{sep}{packet.length:4d}")

        if self.headroom:
            parts.append(f" (h{packet.headroom} t{packet.tailroom})")

        if self.print_anno:
            parts.append(" | ")
            parts.append(packet.anno.hex())

        if count:
            parts.append(" | ")
            data = packet.data[:count]
            if self.contents is Contents.HEX:
                parts.append(
                    " ".join(data[i : i + 4].hex() for i in range(0, len(data), 4))
                )
            elif self.contents is Contents.ASCII:
                for i, byte in enumerate(data):
                    if i % 8 == 0:
                        parts.append(" ")
                    parts.append(chr(byte) if 32 <= byte <= 126 else ".")
        return "".join(parts)

    def simple_action(self, packet: Packet, stream: TextIO | None = None) -> Packet:
        """Print packet (when active) and pass it on unchanged."""
        if not self.active:
            return packet
        out = stream if stream is not None else sys.stdout
        out.write(self.format(packet, time.monotonic_ns()) + "\n")
        out.flush()
        return packet