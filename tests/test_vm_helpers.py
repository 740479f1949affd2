import io
import struct

import pytest

from pktlab.vm_helpers import (
    ArrayMap,
    MapDefinition,
    MapRegistry,
    MapRelocationError,
    MapType,
    gather_bytes,
    memfrob,
    read_file,
    sqrti,
    unwind,
)


def _definition_bytes(map_type, key_size, value_size, max_entries):
    return struct.pack("<7I", map_type, key_size, value_size, max_entries, 0, 0, 0)


def _array_map(value_size=4, max_entries=3):
    return ArrayMap(MapDefinition(MapType.ARRAY, 4, value_size, max_entries), "m")


def test_definition_from_bytes():
    raw = _definition_bytes(MapType.ARRAY, 4, 8, 16)
    definition = MapDefinition.from_bytes(raw)
    assert definition.type == MapType.ARRAY
    assert definition.key_size == 4
    assert definition.value_size == 8
    assert definition.max_entries == 16


def test_definition_too_short():
    with pytest.raises(ValueError):
        MapDefinition.from_bytes(b"\x00" * 10)


def test_array_map_starts_zeroed():
    amap = _array_map()
    assert bytes(amap.lookup(0)) == bytes(4)


def test_array_map_update_lookup():
    amap = _array_map()
    amap.update(1, b"abcd")
    assert bytes(amap.lookup(1)) == b"abcd"
    assert bytes(amap.lookup(struct.pack("<I", 1))) == b"abcd"
    assert bytes(amap.lookup(0)) == bytes(4)


def test_array_map_lookup_view_is_writable():
    amap = _array_map()
    view = amap.lookup(2)
    view[:] = b"wxyz"
    assert bytes(amap.lookup(2)) == b"wxyz"


def test_array_map_out_of_range():
    amap = _array_map(max_entries=3)
    assert amap.lookup(3) is None
    with pytest.raises(IndexError):
        amap.update(3, b"abcd")
    with pytest.raises(IndexError):
        amap.delete(3)


def test_array_map_delete_zeroes():
    amap = _array_map()
    amap.update(0, b"abcd")
    amap.delete(0)
    assert bytes(amap.lookup(0)) == bytes(4)


def test_array_map_rejects_hash_type():
    with pytest.raises(MapRelocationError):
        ArrayMap(MapDefinition(MapType.HASH, 4, 4, 1), "h")


def test_registry_creates_and_reuses_map():
    registry = MapRegistry()
    raw = b"\xff" * 4 + _definition_bytes(MapType.ARRAY, 4, 8, 2)
    first = registry.relocate_map(raw, "counters", 4, MapDefinition.SIZE)
    second = registry.relocate_map(raw, "counters", 4, MapDefinition.SIZE)
    assert first is second
    assert first.definition.value_size == 8
    assert registry.maps == {"counters": first}


def test_registry_errors():
    registry = MapRegistry()
    good = _definition_bytes(MapType.ARRAY, 4, 8, 2)
    with pytest.raises(MapRelocationError):
        registry.relocate_map(good, "a", 0, MapDefinition.SIZE - 1)
    with pytest.raises(MapRelocationError):
        registry.relocate_map(
            _definition_bytes(MapType.HASH, 4, 8, 2), "b", 0, MapDefinition.SIZE
        )
    with pytest.raises(MapRelocationError):
        registry.relocate_map(
            _definition_bytes(MapType.ARRAY, 8, 8, 2), "c", 0, MapDefinition.SIZE
        )
    assert registry.maps == {}


def test_relocate_data_copies_once():
    registry = MapRegistry()
    assert registry.relocate_data(b"hello", 2) == 2
    assert registry.relocate_data(b"other data", 1) == 1
    assert registry.global_data == bytearray(b"hello")


def test_data_bounds():
    registry = MapRegistry()
    assert registry.data_in_bounds(0, 1) is False
    registry.relocate_data(b"hello", 0)
    assert registry.data_in_bounds(0, 5) is True
    assert registry.data_in_bounds(3, 2) is True
    assert registry.data_in_bounds(3, 3) is False
    assert registry.data_in_bounds(-1, 1) is False


def test_gather_bytes():
    assert gather_bytes(0x01, 0x02, 0x03, 0x04, 0x05) == 0x0102030405


def test_gather_bytes_masks_inputs():
    assert gather_bytes(0x101, 0, 0, 0, 0x1FF) == gather_bytes(1, 0, 0, 0, 0xFF)


def test_memfrob_round_trip():
    data = b"some program memory \x00\xff"
    assert memfrob(memfrob(data)) == data
    assert memfrob(b"\x00") == b"*"


@pytest.mark.parametrize("n", [0, 1, 7, 255, 65535])
def test_sqrti_exact_squares(n):
    assert sqrti(n * n) == n
    if n:
        assert sqrti(n * n - 1) == n - 1


def test_unwind():
    assert unwind(5) == 5
    assert unwind(-1) == (1 << 64) - 1


def test_read_file(tmp_path):
    path = tmp_path / "prog.bin"
    path.write_bytes(b"\x01\x02\x03")
    assert read_file(path) == b"\x01\x02\x03"


def test_read_file_too_large(tmp_path):
    path = tmp_path / "big.bin"
    path.write_bytes(b"x" * 10)
    with pytest.raises(ValueError):
        read_file(path, 10)
    assert read_file(path, 11) == b"x" * 10


def test_read_file_missing(tmp_path):
    with pytest.raises(OSError):
        read_file(tmp_path / "absent.bin")


def test_read_file_stdin(monkeypatch):
    fake = io.TextIOWrapper(io.BytesIO(b"from stdin"))
    monkeypatch.setattr("sys.stdin", fake)
    assert read_file("-") == b"from stdin"