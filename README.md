# pktlab

A small toolkit for pattern matching and inspecting packet data. It has no
third-party dependencies.

- `pktlab.actypes`: the `Pattern` and `Match` types, the `PatternIdType` and
  `WorkingMode` enums, and the trie errors. The errors are `TrieError` and its
  subclasses `DuplicatePatternError`, `LongPatternError`, `ZeroPatternError`,
  `TrieClosedError`, `TrieOpenError` and `NoReplacementError`.
- `pktlab.node`: `Node` and `Edge`, the building blocks of an Aho-Corasick
  trie.
- `pktlab.replace`: `Replacer`, which does search-and-replace over a built
  trie on input that arrives in chunks.
- `pktlab.print2`: `Print2` and `Packet`, which format a packet's length,
  headroom, annotation bytes and contents as hex or ASCII.
- `pktlab.bpf_helpers`: printf-style trace formatting with up to four integer
  arguments (`format_trace`, `trace_printk`, `count_conversions`) and a
  monotonic nanosecond clock (`ktime_get_ns`).
- `pktlab.vm_helpers`: array maps (`MapDefinition`, `ArrayMap`), map and data
  relocation bookkeeping (`MapRegistry`), and small helpers: `gather_bytes`,
  `memfrob`, `sqrti`, `unwind` and `read_file`.

## Installation

```
pip install .
```

## Building a trie and replacing text

`Node` gives you the parts of a trie. You add the patterns and set the failure
links yourself. Afterwards, call `collect_matches()` on every node. It takes
over the patterns of the failure chain and sorts the edges, which the
replacer's binary search needs.

```python
from pktlab.actypes import Pattern
from pktlab.node import Node
from pktlab.replace import Replacer, ReplaceMode

root = Node()
node = root
for byte in b"cat":
    node = node.find_next(byte) or node.create_next(byte)
    node.failure_node = root      # correct for a single pattern like this one
node.final = True
node.accept_pattern(Pattern(b"cat", b"dog"), copy=True)
for n in root.walk():
    n.collect_matches()

replacer = Replacer(root)
replacer.finalize()               # books replacements; returns how many nodes have one

out = []
replacer.replace(b"a c", ReplaceMode.NORMAL, out.append)
replacer.replace(b"at sat", ReplaceMode.NORMAL, out.append)
replacer.flush(keep=False)
print(b"".join(out))              # b"a dog sat"
```

A pattern may span two chunks. The tail of a chunk that could begin a pattern
is held back until the next chunk arrives. Output reaches the callback in
pieces of at most `REPLACEMENT_BUFFER_SIZE` (2048) bytes. `flush(keep=True)`
hands over what is buffered so far. `flush(keep=False)` ends the input and
gets the replacer ready for new input.

Overlapping matches are resolved by the mode:

- `ReplaceMode.NORMAL` and `ReplaceMode.DEFAULT`: a longer pattern swallows
  the shorter ones it contains.
- `ReplaceMode.LAZY`: the pattern found first wins, and later patterns that
  overlap it are ignored.

`replace` raises `TrieOpenError` if `finalize()` has not been called. It
raises `NoReplacementError` if no pattern has a replacement.

`Node.describe()` returns a text dump of a node: its failure link, its edges
and the patterns it accepts.

## Printing packets

```python
import sys
from pktlab.print2 import Print2, Packet

printer = Print2(label="rx", maxlength=16, contents="HEX")
printer.simple_action(Packet(b"\x01\x02\x03\x04\x05"), sys.stdout)
print(printer.format(Packet(b"\x01\x02\x03\x04\x05"), clock_ns=1000))
# rx: 1000 ns:    5 | 01020304 05
```

Each line is built in this order:

1. the label;
2. the packet timestamp, if `timestamp=True`;
3. the monotonic clock reading in nanoseconds;
4. the packet length;
5. `(hN tN)`, if `headroom=True`;
6. the 48 annotation bytes in hex, if `print_anno=True`;
7. up to `maxlength` data bytes.

A negative `maxlength` prints the whole packet. `contents` is one of:

- `"HEX"`: groups of four bytes in hex;
- `"ASCII"`: a space before every eight bytes, with `.` for bytes that cannot
  be printed;
- `"NONE"`: no data bytes;
- a boolean word.

Any other value raises `ValueError`. With `active=False`, `simple_action`
prints nothing. In every case it returns the packet unchanged.

## Trace formatting

```python
from pktlab.bpf_helpers import format_trace

format_trace("x=%d y=%x\n", 5, 255)   # 'x=5 y=ff\n'
```

The number of arguments used is the number of `%` signs before the first NUL.
With none, or with more than four, the format is printed as it is.

## Array maps and relocations

```python
from pktlab.vm_helpers import ArrayMap, MapDefinition, MapRegistry, MapType

definition = MapDefinition(type=MapType.ARRAY, key_size=4, value_size=8, max_entries=4)
table = ArrayMap(definition, "counters")
table.update(1, b"\x01" * 8)
bytes(table.lookup(1))     # b'\x01\x01\x01\x01\x01\x01\x01\x01'
table.lookup(9)            # None: out of range
table.delete(1)            # zeroes the value
```

`update` and `delete` raise `IndexError` for a key out of range.

`MapRegistry.relocate_map` decodes a 28-byte little-endian map definition
from a maps section. It creates the map on first use and returns the same map
for the same symbol name afterwards. Only array maps with 4-byte keys are
accepted; anything else raises `MapRelocationError`.

`relocate_data` and `data_in_bounds` keep track of one global data block.

## What this package does not do

- It has no trie builder. You insert patterns, set the failure links and call
  `collect_matches()` yourself, as shown above. There is also no stand-alone
  search call; `Replacer` is the only matcher that walks the text.
- It does not load or run eBPF programs. The map, relocation and helper
  functions are bookkeeping that such a runtime would call, not a runtime
  itself.
- It does not send or receive packets. `Packet` is a plain value that you
  build yourself.
- It has no command-line program.

## Tests

```
pip install .[test]
pytest
```