"""Directed graph with integer node ids, plus a search budget.

Nodes live in an arena (``_names``) and are addressed by their index;
a ``name -> id`` dict maps back from file paths or symbol labels.
Traversals work on integer ids with explicit colour arrays, so there is
no string-keyed recursion-stack state to go stale.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple

logger = logging.getLogger(__name__)

_WHITE, _GREY, _BLACK = 0, 1, 2


class SearchBudget:
    """Wall-clock and item-count ceiling shared by bounded graph searches."""

    def __init__(self, seconds: Optional[float] = None, max_items: Optional[int] = None) -> None:
        self.deadline = time.monotonic() + seconds if seconds is not None else None
        self.max_items = max_items
        self.used = 0
        self._warned = False

    def charge(self, count: int = 1) -> None:
        self.used += count

    def exhausted(self) -> bool:
        if self.max_items is not None and self.used >= self.max_items:
            return True
        if self.deadline is not None and time.monotonic() >= self.deadline:
            return True
        return False

    def warn_once(self, what: str) -> None:
        if not self._warned:
            self._warned = True
            logger.warning("Search budget exhausted during %s; returning partial results", what)


class DiGraph:
    """Append-only directed graph keyed by string names, stored by integer id."""

    def __init__(self) -> None:
        self._names: List[str] = []
        self._index: Dict[str, int] = {}
        self._succ: List[List[int]] = []
        self._pred: List[List[int]] = []
        self._edges: Set[Tuple[int, int]] = set()

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def add_node(self, name: str) -> int:
        node_id = self._index.get(name)
        if node_id is None:
            node_id = len(self._names)
            self._names.append(name)
            self._index[name] = node_id
            self._succ.append([])
            self._pred.append([])
        return node_id

    def add_edge(self, src: str, dst: str) -> bool:
        """Add ``src -> dst``; returns False when the edge already existed."""
        s = self.add_node(src)
        d = self.add_node(dst)
        if (s, d) in self._edges:
            return False
        self._edges.add((s, d))
        self._succ[s].append(d)
        self._pred[d].append(s)
        return True

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._names)

    def __contains__(self, name: object) -> bool:
        return name in self._index

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._names))

    def node_id(self, name: str) -> Optional[int]:
        return self._index.get(name)

    def name(self, node_id: int) -> str:
        return self._names[node_id]

    @property
    def edge_count(self) -> int:
        return len(self._edges)

    def edges(self) -> List[Tuple[str, str]]:
        return [
            (self._names[s], self._names[d])
            for s in range(len(self._names))
            for d in self._succ[s]
        ]

    def successors(self, name: str) -> List[str]:
        node_id = self._index.get(name)
        if node_id is None:
            return []
        return [self._names[d] for d in self._succ[node_id]]

    def predecessors(self, name: str) -> List[str]:
        node_id = self._index.get(name)
        if node_id is None:
            return []
        return [self._names[s] for s in self._pred[node_id]]

    def adjacency(self) -> Dict[str, List[str]]:
        return {name: self.successors(name) for name in self._names}

    # ------------------------------------------------------------------
    # Cycle search
    # ------------------------------------------------------------------

    def find_cycles(self, budget: Optional[SearchBudget] = None) -> List[List[str]]:
        """Return every back-edge cycle found by DFS from each unvisited node.

        Each cycle is closed, e.g. ``[a, b, a]``.  Start nodes are taken
        in id (insertion) order, which keeps the output deterministic.
        """
        n = len(self._names)
        colour = [_WHITE] * n
        cycles: List[List[str]] = []

        for start in range(n):
            if colour[start] != _WHITE:
                continue
            path: List[int] = [start]
            position: Dict[int, int] = {start: 0}
            stack: List[Tuple[int, int]] = [(start, 0)]
            colour[start] = _GREY

            while stack:
                if budget is not None and budget.exhausted():
                    budget.warn_once("cycle detection")
                    return cycles
                node, idx = stack[-1]
                succ = self._succ[node]
                if idx < len(succ):
                    stack[-1] = (node, idx + 1)
                    nxt = succ[idx]
                    if colour[nxt] == _WHITE:
                        colour[nxt] = _GREY
                        position[nxt] = len(path)
                        path.append(nxt)
                        stack.append((nxt, 0))
                    elif colour[nxt] == _GREY:
                        cycle = path[position[nxt]:] + [nxt]
                        cycles.append([self._names[i] for i in cycle])
                        if budget is not None:
                            budget.charge()
                else:
                    stack.pop()
                    colour[node] = _BLACK
                    path.pop()
                    del position[node]

        return cycles

    def cycles_through(self, name: str, budget: Optional[SearchBudget] = None) -> List[List[str]]:
        """Cycles that start and end at *name*, found by DFS from it.

        Nodes are expanded at most once, so the search is linear in the
        graph size and reports one closing path per back edge into *name*.
        """
        start = self._index.get(name)
        if start is None:
            return []

        cycles: List[List[str]] = []
        visited = {start}
        path: List[int] = [start]
        stack: List[Tuple[int, int]] = [(start, 0)]

        while stack:
            if budget is not None and budget.exhausted():
                budget.warn_once(f"cycle search through {name}")
                break
            node, idx = stack[-1]
            succ = self._succ[node]
            if idx >= len(succ):
                stack.pop()
                path.pop()
                continue
            stack[-1] = (node, idx + 1)
            nxt = succ[idx]
            if nxt == start:
                cycles.append([self._names[i] for i in path] + [name])
                continue
            if nxt in visited:
                continue
            visited.add(nxt)
            path.append(nxt)
            stack.append((nxt, 0))

        return cycles

    # ------------------------------------------------------------------
    # Reachability
    # ------------------------------------------------------------------

    def reverse_reachable(self, starts: Iterable[str]) -> List[str]:
        """Breadth-first walk over predecessor edges, starts included, in visit order."""
        visited: Set[int] = set()
        order: List[str] = []
        queue = deque(self._index[s] for s in starts if s in self._index)
        while queue:
            node = queue.popleft()
            if node in visited:
                continue
            visited.add(node)
            order.append(self._names[node])
            for prev in self._pred[node]:
                if prev not in visited:
                    queue.append(prev)
        return order
