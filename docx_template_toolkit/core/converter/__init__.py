from __future__ import annotations

"""HTML-subset conversion into WordprocessingML and the visitors used on the way."""

from .html_converter import HTMLConverter  # noqa: F401
from .nodes import Collection, Newline, Node, Paragraph, Root, Run  # noqa: F401
from .visitor import GrepVisitor, LastNewlineRemoverVisitor, Visitor  # noqa: F401

__all__: list[str] = [
    "HTMLConverter",
    "Node",
    "Collection",
    "Root",
    "Paragraph",
    "Run",
    "Newline",
    "Visitor",
    "GrepVisitor",
    "LastNewlineRemoverVisitor",
]
