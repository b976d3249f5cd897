"""Graph nodes, dependency cycles and bound cell references."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator

from gridcalc.calc._parser import Call, Span


class CellNode:
    """A cell that takes part in the dependency graph.

    ``value`` is the cell's bound formula tree when ``is_dynamic``; otherwise
    it is the cell's plain entry (number, text, static/invalid formula or
    ``None``).  ``cache`` holds the evaluated value.
    """

    __slots__ = ("name", "value", "is_dynamic", "depends_on", "dependants", "cycles", "cache")

    def __init__(self, name: str, value: Any = None) -> None:
        self.name = name
        self.value = value
        self.is_dynamic = False
        # nodes this one reads from
        self.depends_on: set[CellNode] = set()
        # nodes reading from this one
        self.dependants: set[CellNode] = set()
        # cycle -> the member this node depends on within that cycle
        self.cycles: dict[Cycle, CellNode] = {}
        self.cache: Any = None

    @property
    def has_edges(self) -> bool:
        return bool(self.depends_on or self.dependants)

    def remove_dependant(self, node: CellNode) -> None:
        if node not in self.dependants:
            raise RuntimeError(f"{node.name} is not a dependant of {self.name}")
        self.dependants.remove(node)

    def add_cycle(self, cycle: Cycle, next_node: CellNode) -> None:
        self.cycles[cycle] = next_node

    def remove_cycle(self, cycle: Cycle) -> None:
        if self.cycles.pop(cycle, None) is None:
            raise RuntimeError(f"{self.name} is not part of cycle {cycle!r}")

    def shares_cycle_with(self, other: CellNode) -> bool:
        return any(other in cycle for cycle in self.cycles)

    def __repr__(self) -> str:
        return f"CellNode({self.name!r}, cache={self.cache!r})"


class Cycle:
    """An ordered loop of nodes; each member depends on the next one.

    Compared by identity: two loops over the same nodes found at different
    times are distinct cycles.
    """

    __slots__ = ("nodes",)

    def __init__(self, nodes: list[CellNode]) -> None:
        self.nodes = tuple(nodes)

    def __iter__(self) -> Iterator[CellNode]:
        return iter(self.nodes)

    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, node: object) -> bool:
        return node in self.nodes

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(node.name for node in self.nodes)

    def register(self) -> None:
        """Record this cycle on every member."""
        n = len(self.nodes)
        for i, node in enumerate(self.nodes):
            node.add_cycle(self, self.nodes[(i + 1) % n])

    def unregister(self) -> None:
        for node in self.nodes:
            node.remove_cycle(self)

    def __repr__(self) -> str:
        return f"Cycle({' -> '.join(self.names)})"


def find_cycles_from(origin: CellNode, start: CellNode) -> list[Cycle]:
    """Find every simple loop that leaves *origin* through the edge to *start*.

    Each returned cycle begins with *origin*.  Nodes already on the current
    path are dead ends, so only simple loops are reported.
    """
    if start is origin:
        return [Cycle([origin])]

    cycles: list[Cycle] = []
    path = [origin, start]
    on_path = {origin, start}
    # iterative DFS; long dependency chains would overflow recursion
    stack = [iter(start.depends_on)]
    while stack:
        dep = next(stack[-1], None)
        if dep is None:
            stack.pop()
            on_path.discard(path.pop())
            continue
        if dep is origin:
            cycles.append(Cycle(path))
        elif dep not in on_path:
            path.append(dep)
            on_path.add(dep)
            stack.append(iter(dep.depends_on))
    return cycles


@dataclass(eq=False)
class CellRef:
    """A reference slot in a bound formula tree.

    ``node`` is None when the referenced cell lies outside the grid.
    ``range_label`` is set when the reference came from expanding a range.
    """

    node: CellNode | None
    name: str
    span: Span
    range_label: str | None = None

    @property
    def label(self) -> str:
        return self.range_label or self.name


def iter_ref_nodes(tree: Any) -> Iterator[CellNode]:
    """Yield the node of every in-scope reference in a bound tree, in order."""
    stack = [tree]
    while stack:
        el = stack.pop()
        if isinstance(el, Call):
            stack.extend(reversed(el.args))
        elif isinstance(el, CellRef) and el.node is not None:
            yield el.node
