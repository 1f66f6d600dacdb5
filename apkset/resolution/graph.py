"""
Module dependency graph.

Modules live in an arena (a list indexed by position in the catalog) and
dependencies are index-based edges. Traversals are iterative, use explicit
visited sets and always walk edges in catalog order so results are stable.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from ..core.exceptions import MalformedCatalogError
from ..models.catalog import ModuleSplitSet

_WHITE, _GREY, _BLACK = 0, 1, 2


@dataclass(frozen=True)
class ModuleGraph:
    """Arena of module nodes with index-based dependency edges."""

    names: tuple[str, ...]
    edges: tuple[tuple[int, ...], ...]

    @classmethod
    def build(cls, modules: Sequence[ModuleSplitSet]) -> ModuleGraph:
        """Build the graph of a variant's modules.

        Raises:
            MalformedCatalogError: If a module depends on a module the variant lacks.
        """
        index = {module.name: i for i, module in enumerate(modules)}
        edges = []
        for module in modules:
            unknown = [dep for dep in module.dependencies if dep not in index]
            if unknown:
                raise MalformedCatalogError(
                    message=f"Module '{module.name}' depends on unknown modules: {sorted(unknown)}",
                    defect="unknown-dependency",
                )
            edges.append(tuple(sorted({index[dep] for dep in module.dependencies})))
        return cls(names=tuple(index), edges=tuple(edges))

    def index_of(self, name: str) -> int | None:
        try:
            return self.names.index(name)
        except ValueError:
            return None

    def find_cycle(self) -> list[str] | None:
        """Find a dependency cycle.

        Returns:
            The module names along the cycle, first module repeated at the end,
            or None when the graph is a DAG.
        """
        color = [_WHITE] * len(self.names)
        for start in range(len(self.names)):
            if color[start] != _WHITE:
                continue
            color[start] = _GREY
            path = [start]
            stack = [iter(self.edges[start])]
            while stack:
                nxt = next(stack[-1], None)
                if nxt is None:
                    color[path.pop()] = _BLACK
                    stack.pop()
                elif color[nxt] == _GREY:
                    cycle = path[path.index(nxt):] + [nxt]
                    return [self.names[i] for i in cycle]
                elif color[nxt] == _WHITE:
                    color[nxt] = _GREY
                    path.append(nxt)
                    stack.append(iter(self.edges[nxt]))
        return None

    def closure(self, roots: Iterable[int]) -> set[int]:
        """Transitive closure of the roots over dependency edges."""
        visited: set[int] = set()
        pending = list(roots)
        while pending:
            node = pending.pop()
            if node in visited:
                continue
            visited.add(node)
            pending.extend(dep for dep in self.edges[node] if dep not in visited)
        return visited

    def dependency_order(self, selected: set[int]) -> list[int]:
        """Order selected nodes so that every node follows its dependencies."""
        order: list[int] = []
        visited: set[int] = set()
        for root in sorted(selected):
            if root in visited:
                continue
            visited.add(root)
            path = [root]
            stack = [iter(self.edges[root])]
            while stack:
                nxt = next(stack[-1], None)
                if nxt is None:
                    order.append(path.pop())
                    stack.pop()
                elif nxt in selected and nxt not in visited:
                    visited.add(nxt)
                    path.append(nxt)
                    stack.append(iter(self.edges[nxt]))
        return order
