from __future__ import annotations

"""Node tree produced by the HTML converter.

The tree is deliberately small: a :class:`Root` holding paragraphs, each
paragraph holding runs and line breaks. Visitors walk it through
:meth:`Node.accept` before it is serialised to WordprocessingML.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from docx.oxml.ns import qn  # type: ignore
from lxml import etree as ET

__all__ = ["Node", "Collection", "Root", "Paragraph", "Run", "Newline"]


class Node:
    """Base class; ``node_name`` drives visitor dispatch."""

    node_name = "Node"

    def accept(self, visitor) -> None:
        visitor.visit(self)

    def to_wordml(self) -> ET._Element:  # pragma: no cover - abstract
        raise NotImplementedError


@dataclass
class Collection(Node):
    nodes: List[Node] = field(default_factory=list)

    node_name = "Collection"

    def accept(self, visitor) -> None:
        for node in self.nodes:
            node.accept(visitor)
        visitor.visit(self)

    def append(self, node: Node) -> None:
        self.nodes.append(node)


@dataclass
class Run(Node):
    """Text with a set of character properties (``b``, ``i``, ``u``…)."""

    text: str
    properties: Dict[str, Any] = field(default_factory=dict)

    node_name = "Run"

    def to_wordml(self) -> ET._Element:
        r = ET.Element(qn("w:r"))
        if self.properties:
            r_pr = ET.SubElement(r, qn("w:rPr"))
            # w:rPr children must follow the schema order
            for prop in ("b", "i", "strike", "u", "vertAlign"):
                if prop not in self.properties:
                    continue
                el = ET.SubElement(r_pr, qn(f"w:{prop}"))
                value = self.properties[prop]
                if value is not True:
                    el.set(qn("w:val"), str(value))
        t = ET.SubElement(r, qn("w:t"))
        t.set("{http://www.w3.org/XML/1998/namespace}space", "preserve")
        t.text = self.text
        return r


class Newline(Node):
    node_name = "Newline"

    def to_wordml(self) -> ET._Element:
        r = ET.Element(qn("w:r"))
        ET.SubElement(r, qn("w:br"))
        return r

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Newline)

    def __repr__(self) -> str:
        return "Newline()"


@dataclass
class Paragraph(Node):
    style: Optional[str] = None
    runs: Collection = field(default_factory=Collection)
    # (numId, ilvl) of a list item
    numbering: Optional[Tuple[int, int]] = None

    node_name = "Paragraph"

    def accept(self, visitor) -> None:
        visitor.visit(self)
        self.runs.accept(visitor)

    def to_wordml(self) -> ET._Element:
        p = ET.Element(qn("w:p"))
        if self.style or self.numbering:
            p_pr = ET.SubElement(p, qn("w:pPr"))
            if self.style:
                ET.SubElement(p_pr, qn("w:pStyle")).set(qn("w:val"), self.style)
            if self.numbering:
                num_id, level = self.numbering
                num_pr = ET.SubElement(p_pr, qn("w:numPr"))
                ET.SubElement(num_pr, qn("w:ilvl")).set(qn("w:val"), str(level))
                ET.SubElement(num_pr, qn("w:numId")).set(qn("w:val"), str(num_id))
        for node in self.runs.nodes:
            p.append(node.to_wordml())
        return p


@dataclass
class Root(Node):
    paragraphs: Collection = field(default_factory=Collection)

    node_name = "Root"

    def accept(self, visitor) -> None:
        visitor.visit(self)
        self.paragraphs.accept(visitor)

    def to_wordml(self) -> list[ET._Element]:  # type: ignore[override]
        return [paragraph.to_wordml() for paragraph in self.paragraphs.nodes]
