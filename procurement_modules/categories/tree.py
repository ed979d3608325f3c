"""
Category hierarchy as an index arena.

``CategoryArena`` holds one flat list of categories and resolves parent /
child relations through integer indices, so tree, ancestor and descendant
walks are pure lookups over a single query result.
"""

from __future__ import annotations

from collections.abc import Sequence
from uuid import UUID

from procurement_modules.categories.models import Category, CategoryNode


class CategoryArena:
    """Parent/child index over a snapshot of categories.

    Categories whose parent is not in the snapshot are treated as roots.
    Siblings keep ``(display_order, code)`` order.
    """

    def __init__(self, categories: Sequence[Category]):
        ordered = sorted(categories, key=lambda c: (c.level, c.display_order, c.code))
        self._nodes: list[Category] = list(ordered)
        self._index: dict[UUID, int] = {c.id: i for i, c in enumerate(self._nodes)}
        self._parent: list[int | None] = [
            self._index.get(c.parent_id) if c.parent_id is not None else None
            for c in self._nodes
        ]
        self._children: list[list[int]] = [[] for _ in self._nodes]
        self._roots: list[int] = []
        for i, parent in enumerate(self._parent):
            if parent is None:
                self._roots.append(i)
            else:
                self._children[parent].append(i)

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, category_id: object) -> bool:
        return category_id in self._index

    def get(self, category_id: UUID) -> Category | None:
        i = self._index.get(category_id)
        return self._nodes[i] if i is not None else None

    def children(self, category_id: UUID) -> tuple[Category, ...]:
        i = self._index.get(category_id)
        if i is None:
            return ()
        return tuple(self._nodes[c] for c in self._children[i])

    def descendants(self, category_id: UUID) -> tuple[Category, ...]:
        """Every category below ``category_id``, depth first."""
        i = self._index.get(category_id)
        if i is None:
            return ()
        out: list[Category] = []
        stack = list(reversed(self._children[i]))
        while stack:
            j = stack.pop()
            out.append(self._nodes[j])
            stack.extend(reversed(self._children[j]))
        return tuple(out)

    def ancestors(self, category_id: UUID) -> tuple[Category, ...]:
        """Root first."""
        i = self._index.get(category_id)
        chain: list[Category] = []
        parent = self._parent[i] if i is not None else None
        while parent is not None:
            chain.append(self._nodes[parent])
            parent = self._parent[parent]
        return tuple(reversed(chain))

    def tree(self, root_id: UUID | None = None) -> tuple[CategoryNode, ...]:
        if root_id is None:
            starts = self._roots
        else:
            i = self._index.get(root_id)
            starts = self._children[i] if i is not None else []
        return tuple(self._build(i) for i in starts)

    def _build(self, i: int) -> CategoryNode:
        return CategoryNode(
            category=self._nodes[i],
            children=tuple(self._build(c) for c in self._children[i]),
        )
