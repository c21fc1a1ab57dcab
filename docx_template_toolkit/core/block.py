from __future__ import annotations

"""Regions of a document bounded by a start and an end directive.

Three shapes are recognised, depending on where the two merge fields sit:

* **inline** – both fields in one paragraph; the body is the runs between;
* **paragraph** – the fields' paragraphs are siblings; the body is the
  paragraphs (and tables) between, the marker paragraphs are dropped;
* **row** – the fields sit in sibling table rows; the body is the rows
  between, the marker rows are dropped.
"""

import copy
import logging
from typing import List, Optional, Protocol, TYPE_CHECKING

from docx.oxml.ns import qn  # type: ignore
from lxml import etree as ET

from .errors import TemplateSyntaxError
from .utils import ancestor

if TYPE_CHECKING:
    from .environment import Environment
    from .parser.fields import MergeField

logger = logging.getLogger(__name__)

__all__ = ["Block", "BlockProcessor"]


class BlockProcessor(Protocol):
    def process(self, root: ET._Element, env: "Environment") -> ET._Element: ...


def _siblings_between(first: ET._Element, last: ET._Element) -> Optional[List[ET._Element]]:
    body = []
    for sibling in first.itersiblings():
        if sibling is last:
            return body
        body.append(sibling)
    return None


class Block:
    """Start marker, body and end marker of one block directive.

    A block owns its body nodes: :meth:`process` works on deep copies and
    :meth:`replace` detaches the originals, so nothing else keeps a
    reference to replaced content.
    """

    def __init__(self, kind: str, start_field: "MergeField", end_field: "MergeField",
                 start_nodes: List[ET._Element], end_nodes: List[ET._Element],
                 body: List[ET._Element], processor: BlockProcessor) -> None:
        self.kind = kind
        self.start_field = start_field
        self.end_field = end_field
        self.start_nodes = start_nodes
        self.end_nodes = end_nodes
        self.body = body
        self.processor = processor

    @classmethod
    def build(cls, start_field: "MergeField", end_field: "MergeField",
              processor: BlockProcessor) -> "Block":
        start_p, end_p = start_field.paragraph, end_field.paragraph
        if start_p is None or end_p is None:
            raise TemplateSyntaxError("Block markers must be placed inside paragraphs",
                                      expression=start_field.expression)

        if start_p is end_p:
            body = _siblings_between(start_field.nodes[-1], end_field.nodes[0])
            if body is not None:
                return cls("inline", start_field, end_field, list(start_field.nodes),
                           list(end_field.nodes), body, processor)
        elif start_p.getparent() is end_p.getparent():
            body = _siblings_between(start_p, end_p)
            if body is not None:
                return cls("paragraph", start_field, end_field, [start_p], [end_p], body, processor)
        else:
            start_row, end_row = ancestor(start_p, "w:tr"), ancestor(end_p, "w:tr")
            if start_row is not None and end_row is not None and start_row.getparent() is end_row.getparent():
                body = _siblings_between(start_row, end_row)
                if body is not None:
                    return cls("row", start_field, end_field, [start_row], [end_row], body, processor)

        raise TemplateSyntaxError(
            f"Cannot match '{start_field.expression}' with '{end_field.expression}': "
            "markers must share a paragraph, sibling paragraphs or sibling table rows",
            expression=start_field.expression,
        )

    # ------------------------------------------------------------------
    # Block contract
    # ------------------------------------------------------------------
    @property
    def start_expression(self) -> str:
        return self.start_field.expression

    def _scratch_container(self) -> ET._Element:
        tag = {"inline": "w:p", "paragraph": "w:body", "row": "w:tbl"}[self.kind]
        return ET.Element(qn(tag))

    def process(self, env: "Environment") -> List[ET._Element]:
        """Resolve nested directives on a copy of the body and return it."""
        container = self._scratch_container()
        for node in self.body:
            container.append(copy.deepcopy(node))
        self.processor.process(container, env)
        return list(container)

    def replace(self, fragments: List[ET._Element]) -> None:
        """Install *fragments* in place of the markers and the body."""
        anchor = next((n for n in self.end_nodes if n.getparent() is not None), None)
        if anchor is None:
            anchor = next((n for n in self.start_nodes if n.getparent() is not None), None)
        if anchor is None:
            raise TemplateSyntaxError("Block markers were removed before the block was replaced",
                                      expression=self.start_expression)
        for fragment in fragments:
            anchor.addprevious(fragment)
        for node in [*self.start_nodes, *self.body, *self.end_nodes]:
            parent = node.getparent()
            if parent is not None:
                parent.remove(node)
        logger.debug("Replaced %s block %r with %d fragment(s)", self.kind,
                     self.start_expression, len(fragments))

    def remove(self) -> None:
        self.replace([])

    def __repr__(self) -> str:
        return f"Block({self.kind}, {self.start_expression!r} .. {self.end_field.expression!r})"
