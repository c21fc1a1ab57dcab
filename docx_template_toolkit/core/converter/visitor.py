from __future__ import annotations

"""Visitors over the converter node tree."""

from typing import Callable, List, Tuple, Type, Union

from .nodes import Newline, Node, Paragraph

__all__ = ["Visitor", "GrepVisitor", "LastNewlineRemoverVisitor"]

Pattern = Union[Type[Node], Tuple[Type[Node], ...], Callable[[Node], bool]]


class Visitor:
    """Dispatch ``visit`` to ``visit_<NodeName>``; unknown kinds are ignored."""

    def visit(self, node: Node) -> None:
        handler = getattr(self, f"visit_{node.node_name}", None)
        if handler is None:
            return
        handler(node)


class GrepVisitor:
    """Collect every visited node matching *pattern*, in visit order.

    *pattern* is a node class, a tuple of classes or a predicate.
    """

    def __init__(self, pattern: Pattern) -> None:
        self.pattern = pattern
        self.result: List[Node] = []

    def _matches(self, node: Node) -> bool:
        if isinstance(self.pattern, (type, tuple)):
            return isinstance(node, self.pattern)
        return bool(self.pattern(node))

    def visit(self, node: Node) -> None:
        if self._matches(node):
            self.result.append(node)


class LastNewlineRemoverVisitor(Visitor):
    """Drop a paragraph's trailing line break so it does not render as a blank line."""

    def visit_Paragraph(self, par: Paragraph) -> None:
        if par.runs.nodes and isinstance(par.runs.nodes[-1], Newline):
            par.runs.nodes.pop()
