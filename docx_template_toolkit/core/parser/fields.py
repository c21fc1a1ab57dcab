from __future__ import annotations

"""MERGEFIELD discovery inside WordprocessingML trees.

Word stores a merge field either as a simple field::

    <w:fldSimple w:instr=" MERGEFIELD =name \\* MERGEFORMAT "><w:r>…</w:r></w:fldSimple>

or as a complex field spread over sibling runs::

    <w:r><w:fldChar w:fldCharType="begin"/></w:r>
    <w:r><w:instrText> MERGEFIELD =name </w:instrText></w:r>
    <w:r><w:fldChar w:fldCharType="separate"/></w:r>
    <w:r><w:t>«=name»</w:t></w:r>
    <w:r><w:fldChar w:fldCharType="end"/></w:r>

Both are exposed as :class:`MergeField` objects in document order.
"""

import copy
import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, TYPE_CHECKING

from docx.oxml.ns import qn  # type: ignore
from lxml import etree as ET

from ..utils import ancestor, is_element, local_name

if TYPE_CHECKING:
    from ..content import Content
    from ..environment import Environment

logger = logging.getLogger(__name__)

__all__ = ["MergeField", "scan_fields", "extract_expression"]

_MERGEFIELD_RE = re.compile(r"^\s*MERGEFIELD\s+(?P<expr>.+?)\s*$", re.IGNORECASE | re.DOTALL)

# Paragraph children that do not count as visible content
_PARAGRAPH_SCAFFOLDING = {"pPr", "bookmarkStart", "bookmarkEnd", "proofErr", "permStart", "permEnd"}


def _strip_switches(text: str) -> str:
    """Cut field switches (``\\* MERGEFORMAT``, ``\\b …``) outside quotes."""
    in_quote = False
    i = 0
    while i < len(text):
        ch = text[i]
        if ch == "\\" and i + 1 < len(text):
            if not in_quote and (i == 0 or text[i - 1].isspace()):
                return text[:i].strip()
            i += 2
            continue
        if ch == '"':
            in_quote = not in_quote
        i += 1
    return text.strip()


def extract_expression(instruction: str) -> Optional[str]:
    """Return the directive text of a MERGEFIELD instruction, or ``None``."""
    match = _MERGEFIELD_RE.match(instruction or "")
    if not match:
        return None
    expression = _strip_switches(match.group("expr"))
    if len(expression) >= 2 and expression[0] == expression[-1] == '"':
        expression = expression[1:-1].replace('\\"', '"').replace("\\\\", "\\")
    return expression.strip() or None


@dataclass(eq=False)
class MergeField:
    """One merge field and the nodes it occupies in the tree."""

    expression: str
    nodes: List[ET._Element]
    display_runs: List[ET._Element] = field(default_factory=list)

    @property
    def paragraph(self) -> Optional[ET._Element]:
        return ancestor(self.nodes[0], "w:p")

    def run_properties(self) -> Optional[ET._Element]:
        """Copy of the formatting of the field's displayed result."""
        for run in self.display_runs:
            r_pr = run.find(qn("w:rPr"))
            if r_pr is not None:
                return copy.deepcopy(r_pr)
        return None

    def replace(self, content: "Content", env: "Environment") -> None:
        content.append_to(self, env)

    def replace_nodes(self, nodes: List[ET._Element]) -> None:
        """Put *nodes* where the field is and drop the field."""
        anchor = self.nodes[0]
        for node in nodes:
            anchor.addprevious(node)
        self.remove()

    def insert_block_nodes(self, nodes: List[ET._Element]) -> None:
        """Insert paragraph-level *nodes* after the field's paragraph.

        The field is removed; its paragraph goes too when nothing visible is
        left in it.
        """
        paragraph = self.paragraph
        if paragraph is None:
            self.replace_nodes(nodes)
            return
        anchor = paragraph
        for node in nodes:
            anchor.addnext(node)
            anchor = node
        self.remove()
        if all(not is_element(child) or local_name(child) in _PARAGRAPH_SCAFFOLDING for child in paragraph):
            parent = paragraph.getparent()
            if parent is not None:
                parent.remove(paragraph)

    def remove(self) -> None:
        for node in self.nodes:
            parent = node.getparent()
            if parent is not None:
                parent.remove(node)

    def __repr__(self) -> str:
        return f"MergeField({self.expression!r})"


@dataclass
class _OpenField:
    position: int
    runs: List[ET._Element] = field(default_factory=list)
    instruction: List[str] = field(default_factory=list)
    separated: bool = False
    result_runs: List[ET._Element] = field(default_factory=list)


def scan_fields(root: ET._Element) -> List[MergeField]:
    """Return every MERGEFIELD below *root* in document order."""
    found: List[tuple[int, MergeField]] = []
    stack: List[_OpenField] = []

    for position, node in enumerate(root.iter(qn("w:fldSimple"), qn("w:r"))):
        if node.tag == qn("w:fldSimple"):
            expression = extract_expression(node.get(qn("w:instr"), ""))
            if expression:
                runs = [child for child in node if child.tag == qn("w:r")]
                found.append((position, MergeField(expression, [node], runs)))
            continue

        for frame in stack:
            frame.runs.append(node)

        for child in node:
            if child.tag == qn("w:fldChar"):
                char_type = child.get(qn("w:fldCharType"))
                if char_type == "begin":
                    stack.append(_OpenField(position, runs=[node]))
                elif char_type == "separate" and stack:
                    stack[-1].separated = True
                elif char_type == "end" and stack:
                    frame = stack.pop()
                    merge_field = _close_complex_field(frame)
                    if merge_field is not None:
                        found.append((frame.position, merge_field))
            elif child.tag == qn("w:instrText") and stack and not stack[-1].separated:
                stack[-1].instruction.append(child.text or "")
            elif child.tag == qn("w:t") and stack and stack[-1].separated:
                if node not in stack[-1].result_runs:
                    stack[-1].result_runs.append(node)

    if stack:
        logger.warning("Ignoring %d unterminated complex field(s)", len(stack))

    found.sort(key=lambda item: item[0])
    return [merge_field for _, merge_field in found]


def _close_complex_field(frame: _OpenField) -> Optional[MergeField]:
    expression = extract_expression("".join(frame.instruction))
    if not expression:
        return None
    # proxy identity only holds while the list keeps them referenced
    paragraphs = [ancestor(run, "w:p") for run in frame.runs]
    if any(paragraph is not paragraphs[0] for paragraph in paragraphs[1:]):
        logger.warning("Skipping merge field %r spanning several paragraphs", expression)
        return None
    display = frame.result_runs or frame.runs[:1]
    return MergeField(expression, list(frame.runs), display)
