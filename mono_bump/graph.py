"""Dependency graph utilities.

Builds the workspace dependency graph and answers the two questions every
other step asks of it: who depends on a package (for version propagation)
and in which order packages can be processed (dependencies first).
"""

from __future__ import annotations

from collections.abc import Iterable

from .errors import CyclicDependency, DuplicatePackage, UnknownPackage
from .models import DependencyEdge, PackageInfo


class WorkspaceGraph:
    """Workspace packages keyed by name plus the edges between them.

    Package order is discovery order and is used to break ties wherever a
    deterministic order is needed. Only normal and build edges are
    considered by the traversal helpers; dev edges are kept for reference.
    """

    def __init__(
        self, packages: dict[str, PackageInfo], edges: list[DependencyEdge]
    ) -> None:
        self.packages = packages
        self.edges = edges
        self._index = {name: i for i, name in enumerate(packages)}
        self._deps: dict[str, list[str]] = {n: [] for n in packages}
        self._reverse_deps: dict[str, list[str]] = {n: [] for n in packages}
        for edge in edges:
            if not edge.published:
                continue
            if edge.dependency not in self._deps[edge.dependent]:
                self._deps[edge.dependent].append(edge.dependency)
            if edge.dependent not in self._reverse_deps[edge.dependency]:
                self._reverse_deps[edge.dependency].append(edge.dependent)
        for dependents in self._reverse_deps.values():
            dependents.sort(key=self._index.__getitem__)

    def __contains__(self, name: object) -> bool:
        return name in self.packages

    def __getitem__(self, name: str) -> PackageInfo:
        try:
            return self.packages[name]
        except KeyError:
            raise UnknownPackage(name) from None

    def __len__(self) -> int:
        return len(self.packages)

    def _require(self, name: str) -> None:
        if name not in self.packages:
            raise UnknownPackage(name)

    @property
    def names(self) -> list[str]:
        return list(self.packages)

    def dependencies(self, name: str) -> list[str]:
        """Direct workspace dependencies of ``name`` (normal/build edges)."""
        self._require(name)
        return list(self._deps[name])

    def dependents(self, name: str) -> list[str]:
        """Direct dependents of ``name`` (normal/build edges), in discovery order."""
        self._require(name)
        return list(self._reverse_deps[name])

    def edges_between(self, dependent: str, dependency: str) -> list[DependencyEdge]:
        """Every declared requirement of ``dependent`` on ``dependency``.

        A package may name the same dependency several times (main deps,
        extras, build requirements), each with its own requirement string.
        """
        return [
            e
            for e in self.edges
            if e.dependent == dependent and e.dependency == dependency
        ]

    def discovery_index(self, name: str) -> int:
        return self._index[name]

    def topo_order(self, names: Iterable[str]) -> list[str]:
        """Topologically sort ``names`` by their internal dependencies.

        Uses Kahn's algorithm to produce an order where dependencies come
        before dependents. Dependencies outside ``names`` are ignored. Ready
        packages are taken in discovery order for deterministic output.

        Raises:
            CyclicDependency: If the selection contains a cycle.

        Example:
            If A depends on B, and B depends on C:
            topo_order({A, B, C}) → [C, B, A]
        """
        selected = sorted(set(names), key=self._index.__getitem__)
        # Count incoming edges (dependencies) for each package
        in_degree = {n: 0 for n in selected}
        for name in selected:
            for dep in self._deps[name]:
                # Only count dependencies that are within the selection
                if dep in in_degree:
                    in_degree[name] += 1

        queue = [n for n in selected if in_degree[n] == 0]
        order: list[str] = []

        while queue:
            node = queue.pop(0)
            order.append(node)
            # Decrement in_degree for all packages that depend on this one
            for dependent in self._reverse_deps[node]:
                if dependent not in in_degree:
                    continue
                in_degree[dependent] -= 1
                # When a package has all deps satisfied, add to queue
                if in_degree[dependent] == 0:
                    queue.append(dependent)
            queue.sort(key=self._index.__getitem__)

        # If we didn't process all packages, there must be a cycle
        if len(order) != len(selected):
            remaining = [n for n in selected if n not in order]
            raise CyclicDependency(find_cycle(self, remaining) or remaining)

        return order


def find_cycle(
    graph: WorkspaceGraph, start: Iterable[str] | None = None
) -> list[str] | None:
    """Return one cycle among normal/build edges, or None.

    Depth-first search with three colours; a back edge to a package still
    on the stack closes a cycle. The returned path starts and ends with the
    same package, e.g. ``["a", "b", "c", "a"]``.
    """
    white, grey, black = 0, 1, 2
    colour = {n: white for n in graph.names}
    stack: list[str] = []

    def visit(node: str) -> list[str] | None:
        colour[node] = grey
        stack.append(node)
        for dep in graph.dependencies(node):
            if colour[dep] == grey:
                return stack[stack.index(dep) :] + [dep]
            if colour[dep] == white:
                cycle = visit(dep)
                if cycle:
                    return cycle
        stack.pop()
        colour[node] = black
        return None

    for name in start if start is not None else graph.names:
        if colour[name] == white:
            cycle = visit(name)
            if cycle:
                return cycle
    return None


def build_graph(packages: Iterable[PackageInfo]) -> WorkspaceGraph:
    """Assemble the workspace graph from the packages read off disk.

    A requirement becomes an edge only when it names another workspace
    member; third-party requirements are not tracked.

    Raises:
        DuplicatePackage: If two members declare the same name.
        CyclicDependency: If normal/build edges form a cycle. Cycles through
            dev dependencies are allowed.
    """
    by_name: dict[str, PackageInfo] = {}
    for info in packages:
        if info.name in by_name:
            raise DuplicatePackage(info.name, by_name[info.name].path, info.path)
        by_name[info.name] = info

    edges = [
        DependencyEdge(
            dependent=info.name,
            dependency=dep.name,
            requirement=dep.requirement,
            kind=dep.kind,
            field=dep.field,
        )
        for info in by_name.values()
        for dep in info.dependencies
        if dep.name in by_name
    ]

    graph = WorkspaceGraph(by_name, edges)
    cycle = find_cycle(graph)
    if cycle:
        raise CyclicDependency(cycle)
    return graph


def dependents_closure(graph: WorkspaceGraph, root: str) -> dict[str, int]:
    """Find every package that depends on ``root``, directly or transitively.

    Breadth-first search over reverse normal/build edges, so each package is
    reached first along a shortest path.

    Returns:
        Map of dependent name → distance from ``root`` (1 = direct
        dependent), in BFS order. ``root`` itself is not included.

    Raises:
        UnknownPackage: If ``root`` is not in the graph.
    """
    if root not in graph:
        raise UnknownPackage(root)
    distance: dict[str, int] = {}
    queue = [root]
    while queue:
        node = queue.pop(0)
        for dependent in graph.dependents(node):
            if dependent != root and dependent not in distance:
                distance[dependent] = distance.get(node, 0) + 1
                queue.append(dependent)
    return distance
