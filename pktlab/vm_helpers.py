"""Array maps, relocation handlers and helper functions for eBPF programs."""

from __future__ import annotations

import enum
import math
import struct
import sys
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_MAX_FILE_SIZE = 1024 * 1024
"""Largest program or memory file read by default."""

_KEY_SIZE = 4
_DEF_FORMAT = struct.Struct("<7I")
_MASK64 = (1 << 64) - 1


class MapType(enum.IntEnum):
    """Kinds of eBPF maps."""

    UNSPEC = 0
    HASH = 1
    ARRAY = 2
    PROG_ARRAY = 3
    PERF_EVENT_ARRAY = 4
    PERCPU_HASH = 5
    PERCPU_ARRAY = 6
    STACK_TRACE = 7
    CGROUP_ARRAY = 8
    LRU_HASH = 9
    LRU_PERCPU_HASH = 10
    LPM_TRIE = 11
    ARRAY_OF_MAPS = 12
    HASH_OF_MAPS = 13
    DEVMAP = 14
    SOCKMAP = 15
    CPUMAP = 16
    XSKMAP = 17
    SOCKHASH = 18


class MapRelocationError(Exception):
    """A map referenced by a program cannot be set up."""


@dataclass(frozen=True)
class MapDefinition:
    """The definition of a map as laid out in a program's maps section."""

    type: int
    key_size: int
    value_size: int
    max_entries: int
    map_flags: int = 0
    inner_map_idx: int = 0
    numa_node: int = 0

    SIZE = _DEF_FORMAT.size

    @classmethod
    def from_bytes(cls, data: bytes | bytearray | memoryview) -> MapDefinition:
        """Decode a definition from the start of data (little-endian)."""
        if len(data) < cls.SIZE:
            raise ValueError(
                f"map definition needs {cls.SIZE} bytes, got {len(data)}"
            )
        return cls(*_DEF_FORMAT.unpack_from(bytes(data[: cls.SIZE])))


def _index(key: int | bytes | bytearray | memoryview) -> int:
    if isinstance(key, int):
        return key & 0xFFFFFFFF
    raw = bytes(key)
    if len(raw) < _KEY_SIZE:
        raise ValueError(f"key needs {_KEY_SIZE} bytes, got {len(raw)}")
    return int.from_bytes(raw[:_KEY_SIZE], "little")


@dataclass(eq=False)
class ArrayMap:
    """A fixed-size array map with 32-bit integer keys."""

    definition: MapDefinition
    name: str
    data: bytearray = field(init=False)

    def __post_init__(self) -> None:
        if self.definition.type != MapType.ARRAY:
            raise MapRelocationError(
                f"Unsupported map type {self.definition.type}"
            )
        if self.definition.key_size != _KEY_SIZE:
            raise MapRelocationError(
                f"Unsupported key size {self.definition.key_size}"
            )
        self.data = bytearray(
            self.definition.max_entries * self.definition.value_size
        )

    def _slot(self, key: int | bytes | bytearray | memoryview) -> slice | None:
        index = _index(key)
        if index >= self.definition.max_entries:
            return None
        size = self.definition.value_size
        return slice(index * size, (index + 1) * size)

    def lookup(self, key: int | bytes | bytearray | memoryview) -> memoryview | None:
        """Return a writable view of the value at key, or None if out of range."""
        slot = self._slot(key)
        if slot is None:
            return None
        return memoryview(self.data)[slot]

    def update(
        self,
        key: int | bytes | bytearray | memoryview,
        value: bytes | bytearray | memoryview,
        flags: int = 0,
    ) -> None:
        """Store value at key; raise IndexError if key is out of range."""
        del flags
        slot = self._slot(key)
        if slot is None:
            raise IndexError(f"key {_index(key)} is out of range")
        size = self.definition.value_size
        raw = bytes(value)
        if len(raw) < size:
            raise ValueError(f"value needs {size} bytes, got {len(raw)}")
        self.data[slot] = raw[:size]

    def delete(self, key: int | bytes | bytearray | memoryview) -> None:
        """Zero the value at key; raise IndexError if key is out of range."""
        slot = self._slot(key)
        if slot is None:
            raise IndexError(f"key {_index(key)} is out of range")
        self.data[slot] = bytes(self.definition.value_size)


class MapRegistry:
    """Resolves map and data relocations of a loaded program."""

    def __init__(self) -> None:
        self.maps: dict[str, ArrayMap] = {}
        self.global_data: bytearray | None = None

    def relocate_map(
        self,
        map_data: bytes | bytearray | memoryview,
        symbol_name: str,
        symbol_offset: int,
        symbol_size: int,
    ) -> ArrayMap:
        """Return the map named symbol_name, creating it on first use."""
        if symbol_size < MapDefinition.SIZE:
            raise MapRelocationError(f"Invalid map size: {symbol_size}")
        definition = MapDefinition.from_bytes(
            map_data[symbol_offset : symbol_offset + MapDefinition.SIZE]
        )
        if definition.type != MapType.ARRAY:
            raise MapRelocationError(f"Unsupported map type {definition.type}")
        if definition.key_size != _KEY_SIZE:
            raise MapRelocationError(f"Unsupported key size {definition.key_size}")
        existing = self.maps.get(symbol_name)
        if existing is not None:
            return existing
        created = ArrayMap(definition, symbol_name)
        self.maps[symbol_name] = created
        return created

    def relocate_data(
        self, map_data: bytes | bytearray | memoryview, symbol_offset: int
    ) -> int:
        """Return the offset of a symbol in the global data.

        The global data is a copy of the first map_data seen; later calls
        reuse it.
        """
        if self.global_data is None:
            self.global_data = bytearray(map_data)
        return symbol_offset

    def data_in_bounds(self, offset: int, size: int) -> bool:
        """Tell whether [offset, offset + size) lies within the global data."""
        if self.global_data is None:
            return False
        return 0 <= offset and offset + size <= len(self.global_data)


def gather_bytes(a: int, b: int, c: int, d: int, e: int) -> int:
    """Pack five bytes into one integer, a being the most significant."""
    return (
        ((a & 0xFF) << 32)
        | ((b & 0xFF) << 24)
        | ((c & 0xFF) << 16)
        | ((d & 0xFF) << 8)
        | (e & 0xFF)
    )


def memfrob(data: bytes | bytearray | memoryview) -> bytes:
    """XOR every byte with 42; applying it twice gives the input back."""
    return bytes(byte ^ 42 for byte in bytes(data))


def sqrti(x: int) -> int:
    """Integer square root of x taken as an unsigned 32-bit value."""
    return math.isqrt(x & 0xFFFFFFFF)


def unwind(i: int) -> int:
    """Return i as an unsigned 64-bit value."""
    return i & _MASK64


def read_file(path: str | Path, maxlen: int = DEFAULT_MAX_FILE_SIZE) -> bytes:
    """Read a whole file, '-' meaning standard input.

    The file must be shorter than maxlen bytes, otherwise ValueError is raised.
    """
    if str(path) == "-":
        data = sys.stdin.buffer.read(maxlen + 1)
    else:
        with open(path, "rb") as handle:
            data = handle.read(maxlen + 1)
    if len(data) >= maxlen:
        raise ValueError(
            f"Failed to read {path} because it is too large (max {maxlen} bytes)"
        )
    return data