"""Name-keyed hierarchy built from flat label paths."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from functools import cached_property

from vimkit.search import search


class Node:
    """One labelled slice of the hierarchy.

    A node carrying an ``id`` may still have children: a repeated leaf
    path with a different id becomes a same-named child of the first
    leaf.  The tree is treated as immutable once built, so :attr:`ids` is
    computed once and cached.
    """

    def __init__(
        self,
        name: str,
        id: int | None = None,
        children: Sequence[Node] | None = None,
    ) -> None:
        self.name = name
        self.id = id
        self.children: list[Node] = list(children or [])
        self._index: dict[str, Node] = {}
        for child in self.children:
            self._index.setdefault(child.name, child)

    @cached_property
    def ids(self) -> frozenset[int]:
        """Own id (when set) plus every descendant's id."""
        collected: set[int] = set()
        if self.id is not None:
            collected.add(self.id)
        for child in self.children:
            collected |= child.ids
        return frozenset(collected)

    def child(self, name: str) -> Node | None:
        """First child or descendant named *name*, depth first."""
        for child in self.children:
            if child.name == name:
                return child
            descendant = child.child(name)
            if descendant is not None:
                return descendant
        return None

    def _get_or_add(self, name: str) -> Node:
        node = self._index.get(name)
        if node is None:
            node = Node(name)
            self.children.append(node)
            self._index[name] = node
        return node

    def walk(self) -> Iterator[Node]:
        """Pre-order traversal including this node."""
        yield self
        for child in self.children:
            yield from child.walk()

    def to_dict(self) -> dict:
        data: dict = {"name": self.name}
        if self.id is not None:
            data["id"] = self.id
        if self.children:
            data["children"] = [c.to_dict() for c in self.children]
        return data

    def __repr__(self) -> str:
        return f"Node({self.name!r}, id={self.id}, children={len(self.children)})"


class Tree:
    def __init__(self, root: Node) -> None:
        self.root = root

    @classmethod
    def build(
        cls,
        paths: Iterable[tuple[Sequence[str], int | None]],
        root_name: str = "root",
    ) -> Tree:
        """Insert each ``(names, id)`` path, reusing nodes by name per level.

        Sibling order is first-seen order.
        """
        root = Node(root_name)
        for names, id in paths:
            if not names:
                continue
            node = root
            for name in names:
                node = node._get_or_add(name)
            if id is None:
                continue
            if node.id is None:
                node.id = id
            elif node.id != id and not any(c.id == id for c in node.children):
                duplicate = Node(node.name, id)
                node.children.append(duplicate)
                node._index.setdefault(duplicate.name, duplicate)
        return cls(root)

    def search(self, query: str, threshold: float = 0.0) -> list[tuple[Node, float]]:
        """Nodes whose name fuzzily matches *query*, best first."""
        nodes = [n for n in self.root.walk() if n is not self.root]
        return search(nodes, query, key=lambda n: n.name, threshold=threshold)

    def __repr__(self) -> str:
        return f"Tree(ids={len(self.root.ids)})"


def build(paths: Iterable[tuple[Sequence[str], int | None]]) -> Tree:
    return Tree.build(paths)
