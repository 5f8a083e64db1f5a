from __future__ import annotations

from typing import Iterator

from pledge.analysis.syntax import Node, child_nodes


def iter_nodes(root: Node) -> Iterator[tuple[Node, Node | None]]:
    """Depth-first pre-order walk yielding ``(node, parent)`` in source order."""
    stack: list[tuple[Node, Node | None]] = [(root, None)]
    while stack:
        node, parent = stack.pop()
        yield node, parent
        children = child_nodes(node)
        stack.extend((child, node) for child in reversed(children))


class ParentAnnotator:
    def __init__(self) -> None:
        self.parents: dict[Node, Node] = {}

    def record(self, node: Node, parent: Node | None) -> None:
        if parent is not None:
            self.parents[node] = parent

    def annotate(self, root: Node) -> dict[Node, Node]:
        for node, parent in iter_nodes(root):
            self.record(node, parent)
        return self.parents
