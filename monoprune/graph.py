"""Workspace dependency graph.

Nodes are interned to integer handles and adjacency is stored as lists of
handles, so the graph holds no references between manifest objects. The
graph is built once per prune and never mutated afterwards.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from .errors import GraphError, UnknownWorkspace
from .models import ROOT_NODE, WorkspaceManifest


def topo_sort(deps_by_name: Mapping[str, Iterable[str]]) -> list[str]:
    """Topologically sort workspaces by their internal dependencies.

    Uses Kahn's algorithm to produce an order where dependencies come
    before dependents. Ties are broken alphabetically for deterministic
    output.

    Args:
        deps_by_name: Map of workspace name → names it depends on. Names
            outside the mapping are ignored.

    Returns:
        Workspace names, dependencies first.

    Raises:
        GraphError: If a dependency cycle is detected.

    Example:
        If A depends on B, and B depends on C:
        topo_sort({A: [B], B: [C], C: []}) → [C, B, A]
    """
    in_degree = {n: 0 for n in deps_by_name}
    reverse_deps: dict[str, list[str]] = {n: [] for n in deps_by_name}

    for name, deps in deps_by_name.items():
        for dep in set(deps):
            if dep in deps_by_name:
                in_degree[name] += 1
                reverse_deps[dep].append(name)

    queue = sorted(n for n, d in in_degree.items() if d == 0)
    order: list[str] = []

    while queue:
        node = queue.pop(0)
        order.append(node)
        ready: list[str] = []
        for dependent in reverse_deps[node]:
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                ready.append(dependent)
        queue = sorted(queue + ready)

    if len(order) != len(deps_by_name):
        remaining = sorted(set(deps_by_name) - set(order))
        raise GraphError(f"Dependency cycle detected involving: {', '.join(remaining)}")

    return order


class WorkspaceGraph:
    """Directed graph over workspace names plus a synthetic root node.

    An edge A → B means A lists B among its internal dependencies.
    """

    def __init__(
        self,
        names: list[str],
        forward: list[list[int]],
        reverse: list[list[int]],
    ) -> None:
        self._names = names
        self._index = {name: i for i, name in enumerate(names)}
        self._forward = forward
        self._reverse = reverse

    @classmethod
    def build(cls, manifests: Iterable[WorkspaceManifest]) -> WorkspaceGraph:
        """Build the graph from every workspace manifest in the repo.

        Runs in O(W + E). The root node is added first and never gets
        edges.

        Raises:
            GraphError: On duplicate names or dirs, or a dependency cycle.
            UnknownWorkspace: If a manifest depends on a workspace that
                does not exist.
        """
        manifests = list(manifests)
        names = [ROOT_NODE]
        index = {ROOT_NODE: 0}
        dirs: dict[str, str] = {}

        for m in manifests:
            if m.name in index:
                raise GraphError(f"Duplicate workspace name: {m.name}")
            if m.dir in dirs:
                raise GraphError(
                    f"Workspaces {dirs[m.dir]} and {m.name} share directory {m.dir}"
                )
            dirs[m.dir] = m.name
            index[m.name] = len(names)
            names.append(m.name)

        forward: list[list[int]] = [[] for _ in names]
        reverse: list[list[int]] = [[] for _ in names]
        for m in manifests:
            src = index[m.name]
            for dep in sorted(m.internal_deps):
                if dep not in index or dep == ROOT_NODE:
                    raise UnknownWorkspace(dep, referenced_by=m.name)
                dst = index[dep]
                forward[src].append(dst)
                reverse[dst].append(src)

        # Raises on cycles; a self-dependency counts as one.
        topo_sort({m.name: m.internal_deps for m in manifests})

        return cls(names, forward, reverse)

    def __contains__(self, name: object) -> bool:
        return name in self._index

    def __len__(self) -> int:
        return len(self._names)

    @property
    def workspaces(self) -> list[str]:
        """All workspace names, excluding the root node."""
        return [n for n in self._names if n != ROOT_NODE]

    def _walk(self, name: str, adjacency: list[list[int]]) -> set[str]:
        if name not in self._index:
            raise UnknownWorkspace(name)
        start = self._index[name]
        seen: set[int] = set()
        stack = list(adjacency[start])
        while stack:
            node = stack.pop()
            if node in seen:
                continue
            seen.add(node)
            stack.extend(adjacency[node])
        seen.discard(start)
        return {self._names[i] for i in seen if self._names[i] != ROOT_NODE}

    def ancestors(self, name: str) -> set[str]:
        """Return every workspace `name` transitively depends on.

        "Ancestors" are the packages the target consumes, found by
        following dependency edges outward. The root node and `name`
        itself are never included.

        Raises:
            UnknownWorkspace: If `name` is not in the graph.
        """
        return self._walk(name, self._forward)

    def dependents(self, name: str) -> set[str]:
        """Return every workspace that transitively depends on `name`."""
        return self._walk(name, self._reverse)

    def direct_deps(self, name: str) -> list[str]:
        if name not in self._index:
            raise UnknownWorkspace(name)
        return sorted(self._names[i] for i in self._forward[self._index[name]])

    def topo_order(self, names: Iterable[str]) -> list[str]:
        """Sort a subset of workspaces so dependencies come first."""
        subset = set(names)
        return topo_sort({n: self.direct_deps(n) for n in subset})
