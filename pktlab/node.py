"""Node of the Aho-Corasick trie."""

from __future__ import annotations

import bisect
import itertools
from collections.abc import Iterator
from dataclasses import dataclass, field

from pktlab.actypes import Pattern, PatternIdType

_node_ids = itertools.count(1)


@dataclass(eq=False)
class Edge:
    """A transition labelled with one byte value."""

    alpha: int
    next: Node


@dataclass(eq=False)
class Node:
    """A trie node with its outgoing edges and accepted patterns."""

    depth: int = 0
    final: bool = False
    failure_node: Node | None = None
    outgoing: list[Edge] = field(default_factory=list)
    matched: list[Pattern] = field(default_factory=list)
    to_be_replaced: Pattern | None = None
    id: int = field(default_factory=lambda: next(_node_ids))

    def find_next(self, alpha: int) -> Node | None:
        """Follow the edge for alpha with a linear search."""
        for edge in self.outgoing:
            if edge.alpha == alpha:
                return edge.next
        return None

    def find_next_sorted(self, alpha: int) -> Node | None:
        """Follow the edge for alpha with a binary search; edges must be sorted."""
        index = bisect.bisect_left(self.outgoing, alpha, key=lambda e: e.alpha)
        if index < len(self.outgoing) and self.outgoing[index].alpha == alpha:
            return self.outgoing[index].next
        return None

    def create_next(self, alpha: int) -> Node | None:
        """Create a child for alpha; return None if the edge already exists."""
        if self.find_next(alpha) is not None:
            return None
        child = Node(depth=self.depth + 1)
        self.add_edge(child, alpha)
        return child

    def add_edge(self, next_node: Node, alpha: int) -> None:
        """Append an edge from this node to next_node."""
        self.outgoing.append(Edge(alpha, next_node))

    def _has_pattern(self, pattern: Pattern) -> bool:
        return any(p.ptext == pattern.ptext for p in self.matched)

    def accept_pattern(self, pattern: Pattern, copy: bool) -> bool:
        """Add pattern to the accepted list unless an equal one is there.

        With copy the node keeps its own Pattern object, otherwise the given
        one is shared. Returns True if the pattern was added.
        """
        if self._has_pattern(pattern):
            return False
        if copy:
            pattern = Pattern(pattern.ptext, pattern.rtext, pattern.ident)
        self.matched.append(pattern)
        return True

    def sort_edges(self) -> None:
        """Sort outgoing edges by their byte value."""
        self.outgoing.sort(key=lambda e: e.alpha)

    def collect_matches(self) -> None:
        """Take over the patterns of every node on the failure chain."""
        current = self.failure_node
        while current is not None:
            for pattern in current.matched:
                self.accept_pattern(pattern, False)
            if current.final:
                self.final = True
            current = current.failure_node
        self.sort_edges()

    def book_replacement(self) -> bool:
        """Mark the longest accepted pattern that has a replacement."""
        if not self.final:
            return False
        longest: Pattern | None = None
        for pattern in self.matched:
            if pattern.rtext is None:
                continue
            if longest is None or len(pattern.ptext) > len(longest.ptext):
                longest = pattern
        self.to_be_replaced = longest
        return longest is not None

    def walk(self) -> Iterator[Node]:
        """Yield this node and all nodes below it, depth first."""
        stack: list[Node] = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(edge.next for edge in reversed(node.outgoing))

    def describe(self) -> str:
        """Return a human-readable dump of this node."""
        lines = [f"NODE({self.id:3d})/....fail....> "]
        if self.failure_node is not None:
            lines.append(f"NODE({self.failure_node.id:3d})\n")
        else:
            lines.append("N.A.\n")

        for edge in self.outgoing:
            lines.append("         |----(")
            if 0x21 <= edge.alpha <= 0x7E:
                lines.append(f"{chr(edge.alpha)})---")
            else:
                lines.append(f"0x{edge.alpha:x})")
            lines.append(f"--> NODE({edge.next.id:3d})\n")

        if self.matched:
            entries = []
            for pattern in self.matched:
                if pattern.id_type() is PatternIdType.STRING:
                    ident = str(pattern.ident)
                else:
                    ident = str(pattern.ident if pattern.ident is not None else 0)
                entries.append(f"{ident}: {pattern.ptext.decode('latin-1')}")
            lines.append("Accepts: {" + ", ".join(entries) + "}\n")
        lines.append("\n")
        return "".join(lines)