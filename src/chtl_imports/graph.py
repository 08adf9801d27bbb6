# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Directed dependency graph over canonical paths.

Maintains two indices for efficient queries:
- dependencies: file -> files it depends on (forward adjacency)
- dependents: file -> files that depend on it (reverse adjacency)

Algorithms:
- Cycle detection by iterative depth-first search with a recursion stack
  (single-source and whole-graph)
- Cycle chain extraction: the literal cycle, first node == last node
- Topological ordering by post-order DFS read newest-first. For every edge
  (u depends on v) u comes before v: dependents precede their
  dependencies. Reverse the sequence to get a load order.
- Reachability (transitive dependencies) and depth (BFS, longest level)

Neighbours are visited in sorted order so every traversal is deterministic.

Thread Safety:
- NOT thread-safe: the cycle-probe-then-rollback sequence used by
  ImportResolver must not interleave with other edge mutations.
"""

import logging
from collections import deque
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Iterator, List, Optional, Set, Tuple

from chtl_imports.models import CanonicalPath, DependencyEdge

logger = logging.getLogger(__name__)


class DependencyGraph:
    """Bidirectional graph of import dependencies.

    Nodes are CanonicalPath strings. A node exists while it has at least one
    incoming or outgoing edge.
    """

    def __init__(self) -> None:
        """Initialize empty dependency graph."""
        self._dependencies: Dict[str, Set[str]] = {}  # file -> files it depends on
        self._dependents: Dict[str, Set[str]] = {}  # file -> files that depend on it

    # =========================================================================
    # Edge management
    # =========================================================================

    def add_edge(self, dependent: CanonicalPath, dependency: CanonicalPath) -> None:
        """Add edge "dependent depends on dependency". Idempotent.

        Args:
            dependent: The importing file.
            dependency: The imported file.
        """
        self._dependencies.setdefault(dependent, set()).add(dependency)
        self._dependents.setdefault(dependency, set()).add(dependent)

    def remove_edge(self, dependent: CanonicalPath, dependency: CanonicalPath) -> None:
        """Remove an edge. Idempotent.

        Keys whose sets become empty are dropped so has_node() and
        node_count() stay accurate.
        """
        deps = self._dependencies.get(dependent)
        if deps is not None:
            deps.discard(dependency)
            if not deps:
                del self._dependencies[dependent]

        users = self._dependents.get(dependency)
        if users is not None:
            users.discard(dependent)
            if not users:
                del self._dependents[dependency]

    def has_edge(self, dependent: str, dependency: str) -> bool:
        return dependency in self._dependencies.get(dependent, ())

    def clear(self) -> None:
        """Remove all edges."""
        self._dependencies.clear()
        self._dependents.clear()

    def copy(self) -> "DependencyGraph":
        """Return an independent copy of the graph."""
        clone = DependencyGraph()
        clone._dependencies = {node: deps.copy() for node, deps in self._dependencies.items()}
        clone._dependents = {node: users.copy() for node, users in self._dependents.items()}
        return clone

    # =========================================================================
    # Cycle detection
    # =========================================================================

    def _neighbours(self, node: str) -> List[str]:
        return sorted(self._dependencies.get(node, ()))

    def _dfs_find_cycle(
        self,
        start: str,
        visited: Set[str],
        recursion_stack: Set[str],
        path: List[str],
    ) -> bool:
        """Depth-first search that stops at the first back edge.

        Iterative, with one (node, neighbour iterator) frame per path entry, so
        chain length is not bounded by the interpreter's recursion limit.

        On success path holds the literal cycle: it is trimmed to start at the
        repeated node and the repeated node is appended again.
        """
        visited.add(start)
        recursion_stack.add(start)
        path.append(start)
        frames: List[Tuple[str, Iterator[str]]] = [(start, iter(self._neighbours(start)))]

        while frames:
            node, neighbours = frames[-1]
            advanced = False
            for neighbour in neighbours:
                if neighbour in recursion_stack:
                    del path[: path.index(neighbour)]
                    path.append(neighbour)
                    return True
                if neighbour not in visited:
                    visited.add(neighbour)
                    recursion_stack.add(neighbour)
                    path.append(neighbour)
                    frames.append((neighbour, iter(self._neighbours(neighbour))))
                    advanced = True
                    break
            if not advanced:
                frames.pop()
                recursion_stack.discard(node)
                path.pop()

        return False

    def has_cycle_from(self, start: CanonicalPath) -> bool:
        """Return True if a cycle is reachable from start."""
        return self._dfs_find_cycle(start, set(), set(), [])

    def has_cycle_global(self) -> bool:
        """Return True if the graph contains any cycle."""
        visited: Set[str] = set()
        for node in sorted(self._dependencies):
            if node not in visited:
                if self._dfs_find_cycle(node, visited, set(), []):
                    return True
        return False

    def find_cycle_chain(self, start: CanonicalPath) -> List[CanonicalPath]:
        """Return the first cycle reachable from start.

        Returns:
            Node sequence whose first and last elements are identical, or an
            empty list if no cycle is reachable.
        """
        path: List[str] = []
        if self._dfs_find_cycle(start, set(), set(), path):
            return [CanonicalPath(node) for node in path]
        return []

    def find_all_cycles(self) -> List[List[CanonicalPath]]:
        """Find one cycle per explored component.

        Every node touched by a search is marked globally visited, whether or
        not it was part of the cycle, so no node is explored twice.
        """
        cycles: List[List[CanonicalPath]] = []
        global_visited: Set[str] = set()

        for node in sorted(self._dependencies):
            if node in global_visited:
                continue
            visited: Set[str] = set()
            path: List[str] = []
            if self._dfs_find_cycle(node, visited, set(), path):
                cycles.append([CanonicalPath(n) for n in path])
                global_visited.update(path)
            global_visited.update(visited)

        return cycles

    # =========================================================================
    # Ordering
    # =========================================================================

    def _topological_visit(self, start: str, visited: Set[str], stack: List[str]) -> None:
        """Push start and everything it reaches onto stack in post-order."""
        visited.add(start)
        frames: List[Tuple[str, Iterator[str]]] = [(start, iter(self._neighbours(start)))]
        while frames:
            node, neighbours = frames[-1]
            for neighbour in neighbours:
                if neighbour not in visited:
                    visited.add(neighbour)
                    frames.append((neighbour, iter(self._neighbours(neighbour))))
                    break
            else:
                frames.pop()
                stack.append(node)

    def topological_order(self) -> List[CanonicalPath]:
        """Order all nodes so that every dependent precedes its dependencies.

        Nodes are pushed after all their dependencies, then the stack is read
        newest-first. Callers wanting a load order must reverse the result.
        """
        visited: Set[str] = set()
        stack: List[str] = []
        for node in sorted(self.all_nodes()):
            if node not in visited:
                self._topological_visit(node, visited, stack)
        return [CanonicalPath(node) for node in reversed(stack)]

    def order(self, nodes: Iterable[CanonicalPath]) -> List[CanonicalPath]:
        """Topological order restricted to a subset of nodes.

        Builds the induced subgraph (edges with both ends in the subset) and
        orders it with the same convention as topological_order(). Subset
        members without edges inside the subset are kept, in first-seen order
        after the connected ones.

        Args:
            nodes: Canonical paths to order. Duplicates are ignored.

        Returns:
            Each distinct input node exactly once.
        """
        wanted: List[str] = []
        seen: Set[str] = set()
        for node in nodes:
            if node not in seen:
                seen.add(node)
                wanted.append(node)

        subgraph = DependencyGraph()
        for node in wanted:
            for dep in self._dependencies.get(node, ()):
                if dep in seen and dep != node:
                    subgraph.add_edge(CanonicalPath(node), CanonicalPath(dep))

        ordered = subgraph.topological_order()
        placed = set(ordered)
        ordered.extend(CanonicalPath(node) for node in wanted if node not in placed)
        return ordered

    # =========================================================================
    # Queries
    # =========================================================================

    def dependents(self, node: CanonicalPath) -> List[CanonicalPath]:
        """Files that directly depend on node."""
        return [CanonicalPath(n) for n in sorted(self._dependents.get(node, ()))]

    def dependencies(self, node: CanonicalPath) -> List[CanonicalPath]:
        """Files node directly depends on."""
        return [CanonicalPath(n) for n in self._neighbours(node)]

    def all_transitive_dependencies(self, node: CanonicalPath) -> List[CanonicalPath]:
        """Every file reachable from node, in DFS discovery order, no duplicates.

        node itself is only included when it lies on a cycle.
        """
        result: List[CanonicalPath] = []
        collected: Set[str] = set()
        visited: Set[str] = set()
        stack: List[str] = [node]

        while stack:
            current = stack.pop()
            if current in visited:
                continue
            visited.add(current)
            # Reverse so the smallest neighbour is explored first
            for dep in reversed(self._neighbours(current)):
                if dep not in collected:
                    collected.add(dep)
                    result.append(CanonicalPath(dep))
                if dep not in visited:
                    stack.append(dep)

        return result

    def depth(self, node: CanonicalPath) -> int:
        """Number of BFS levels reachable from node (0 for a leaf)."""
        visited: Set[str] = {node}
        queue = deque([(node, 0)])
        max_depth = 0

        while queue:
            current, level = queue.popleft()
            max_depth = max(max_depth, level)
            for dep in self._neighbours(current):
                if dep not in visited:
                    visited.add(dep)
                    queue.append((dep, level + 1))

        return max_depth

    def has_node(self, node: str) -> bool:
        return node in self._dependencies or node in self._dependents

    def all_nodes(self) -> List[CanonicalPath]:
        """All nodes, sorted."""
        nodes = set(self._dependencies) | set(self._dependents)
        return [CanonicalPath(n) for n in sorted(nodes)]

    def node_count(self) -> int:
        return len(set(self._dependencies) | set(self._dependents))

    def edge_count(self) -> int:
        return sum(len(deps) for deps in self._dependencies.values())

    def edges(self) -> List[DependencyEdge]:
        """All edges, sorted by (dependent, dependency)."""
        return [
            DependencyEdge(CanonicalPath(src), CanonicalPath(dst))
            for src in sorted(self._dependencies)
            for dst in sorted(self._dependencies[src])
        ]

    # =========================================================================
    # Export and validation
    # =========================================================================

    def to_dot(self) -> str:
        """Render the graph as a DOT digraph, one "a" -> "b"; line per edge."""
        lines = [
            "digraph Dependencies {",
            "  rankdir=TB;",
            "  node [shape=box];",
            "",
        ]
        for edge in self.edges():
            lines.append(f'  "{edge.dependent}" -> "{edge.dependency}";')
        lines.append("}")
        return "\n".join(lines) + "\n"

    def export_to_dict(self, limit: int = 10) -> Dict[str, Any]:
        """Export graph to JSON-compatible dict.

        Args:
            limit: Number of most depended-upon nodes to include.

        Returns:
            Dictionary with metadata, nodes, edges and graph_metadata sections.
        """
        cycles = self.find_all_cycles()
        in_cycle = {node for cycle in cycles for node in cycle}

        nodes = [
            {
                "path": node,
                "dependency_count": len(self._dependencies.get(node, ())),
                "dependent_count": len(self._dependents.get(node, ())),
                "depth": self.depth(node),
                "in_import_cycle": node in in_cycle,
            }
            for node in self.all_nodes()
        ]

        return {
            "metadata": {
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "total_nodes": self.node_count(),
                "total_edges": self.edge_count(),
            },
            "nodes": nodes,
            "edges": [edge.to_dict() for edge in self.edges()],
            "graph_metadata": {
                "circular_imports": [list(cycle) for cycle in cycles],
                "most_depended_upon": self._most_depended_upon(limit),
            },
        }

    def _most_depended_upon(self, limit: int) -> List[Dict[str, Any]]:
        counts = [(node, len(users)) for node, users in self._dependents.items()]
        counts.sort(key=lambda item: (-item[1], item[0]))
        return [{"file": node, "dependent_count": count} for node, count in counts[:limit]]

    def validate(self) -> Tuple[bool, List[str]]:
        """Check that the forward and reverse indices mirror each other.

        Returns:
            Tuple of (is_valid, error_messages).
        """
        errors: List[str] = []

        for src, deps in self._dependencies.items():
            if not deps:
                errors.append(f"Empty dependency set kept for {src}")
            for dst in deps:
                if src not in self._dependents.get(dst, ()):
                    errors.append(f"Index inconsistency: {dst} <- {src} not in dependents index")

        for dst, users in self._dependents.items():
            if not users:
                errors.append(f"Empty dependent set kept for {dst}")
            for src in users:
                if dst not in self._dependencies.get(src, ()):
                    errors.append(f"Index inconsistency: {src} -> {dst} not in dependencies index")

        if errors:
            logger.error(f"Dependency graph validation found {len(errors)} errors: {errors}")
        return not errors, errors

    def describe(self, node: Optional[CanonicalPath] = None) -> str:
        """Human-readable adjacency listing, for logs and debugging."""
        lines = [f"Nodes: {self.node_count()}, edges: {self.edge_count()}"]
        sources = [node] if node is not None else sorted(self._dependencies)
        for src in sources:
            lines.append(f"{src} depends on:")
            for dst in self._neighbours(src):
                lines.append(f"  -> {dst}")
        return "\n".join(lines)
