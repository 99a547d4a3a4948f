"""Sparse "follows" graph over thought numbers.

Used to certify that a candidate solution path is connected: every member
must legally follow its predecessor in the path. Three relations make one
thought follow another:

    SEQUENCE  - n follows n - 1
    BRANCH    - a branch thought follows its branch origin
    REVISES   - a revision follows its target and the thought before it

Design Principles:
    - Sparse storage: only actual edges, keyed by target for O(1) lookup
    - Nodes are thought numbers; a number reused by a revision maps to
      the most recent thought carrying it
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from thoughtchain.tools.thought_types import PathConnectivityResult, ThoughtRecord


class EdgeType(str, Enum):
    """Ways one thought may follow another."""

    SEQUENCE = "sequence"
    BRANCH = "branch"
    REVISES = "revises"


@dataclass(frozen=True)
class Edge:
    """A directed "target may follow source" edge."""

    source: int
    target: int
    edge_type: EdgeType


class FollowGraph:
    """Sparse graph of legal "follows" relations between thought numbers."""

    def __init__(self) -> None:
        self._nodes: dict[int, ThoughtRecord] = {}
        # target -> source -> edge types
        self._incoming: dict[int, dict[int, set[EdgeType]]] = defaultdict(
            lambda: defaultdict(set)
        )

    @classmethod
    def from_thoughts(cls, thoughts: Iterable[ThoughtRecord]) -> FollowGraph:
        graph = cls()
        for thought in thoughts:
            graph.add_thought(thought)
        return graph

    def __contains__(self, number: object) -> bool:
        return number in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def get_node(self, number: int) -> ThoughtRecord | None:
        return self._nodes.get(number)

    def add_edge(self, source: int, target: int, edge_type: EdgeType) -> Edge:
        """Add an edge. Sources need not be nodes: n - 1 is always a legal predecessor."""
        self._incoming[target][source].add(edge_type)
        return Edge(source=source, target=target, edge_type=edge_type)

    def add_thought(self, thought: ThoughtRecord) -> None:
        """Register a thought and the edges it implies."""
        number = thought.thought_number
        self._nodes[number] = thought

        self.add_edge(number - 1, number, EdgeType.SEQUENCE)
        if thought.branch_from_thought:
            self.add_edge(thought.branch_from_thought, number, EdgeType.BRANCH)
        if thought.is_revision and thought.revises_thought:
            self.add_edge(thought.revises_thought, number, EdgeType.REVISES)
            self.add_edge(thought.revises_thought - 1, number, EdgeType.REVISES)

    def get_edges(self, target: int | None = None) -> list[Edge]:
        """Get edges, optionally only those into ``target``."""
        targets = [target] if target is not None else list(self._incoming)
        return [
            Edge(source=source, target=t, edge_type=edge_type)
            for t in targets
            for source, types in self._incoming.get(t, {}).items()
            for edge_type in sorted(types, key=lambda e: e.value)
        ]

    def valid_predecessors(self, current: int, previous: int | None = None) -> set[int]:
        """Numbers allowed directly before ``current`` in a path.

        When ``previous`` is a revision, the thought after its target is also
        accepted as a predecessor.
        """
        predecessors = {current - 1}
        predecessors.update(self._incoming.get(current, {}).keys())

        previous_thought = self._nodes.get(previous) if previous is not None else None
        if previous_thought and previous_thought.is_revision and previous_thought.revises_thought:
            predecessors.add(previous_thought.revises_thought + 1)
        return predecessors

    def follows(self, previous: int, current: int) -> bool:
        return previous in self.valid_predecessors(current, previous)

    def validate_path(self, path: list[int]) -> PathConnectivityResult:
        """Check each consecutive pair; the first violation short-circuits."""
        for previous, current in zip(path, path[1:], strict=False):
            if current not in self._nodes:
                return PathConnectivityResult(
                    valid=False, error=f"Thought #{current} not found", disconnected_at=current
                )

            predecessors = self.valid_predecessors(current, previous)
            if previous not in predecessors:
                allowed = ", ".join(str(n) for n in sorted(predecessors))
                return PathConnectivityResult(
                    valid=False,
                    error=(
                        f"Path discontinuity: #{current} cannot logically follow #{previous}. "
                        f"Valid predecessors for #{current}: [{allowed}]"
                    ),
                    disconnected_at=current,
                )

        return PathConnectivityResult(valid=True)

    def find_gaps(self, path: list[int]) -> list[tuple[int, int]]:
        """All (previous, current) pairs that do not connect; unknown members are skipped."""
        return [
            (previous, current)
            for previous, current in zip(path, path[1:], strict=False)
            if current in self._nodes and not self.follows(previous, current)
        ]


def validate_path_connectivity(
    path: list[int], session_thoughts: list[ThoughtRecord]
) -> PathConnectivityResult:
    """Ensure every member of ``path`` is reachable from its predecessor.

    Args:
        path: Thought numbers in path order.
        session_thoughts: Thoughts of the current session.

    Returns:
        PathConnectivityResult with ``disconnected_at`` set to the first
        thought number that cannot follow its predecessor.

    """
    if len(path) <= 1:
        return PathConnectivityResult(valid=True)
    return FollowGraph.from_thoughts(session_thoughts).validate_path(path)


def find_path_gaps(path: list[int], thoughts: list[ThoughtRecord]) -> list[tuple[int, int]]:
    """Return every disconnected (previous, current) pair of ``path``."""
    if len(path) <= 1:
        return []
    return FollowGraph.from_thoughts(thoughts).find_gaps(path)
