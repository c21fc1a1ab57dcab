from __future__ import annotations

"""Simple reusable helper functions.

These helpers are side-effect-free and contain no disk I/O; they are shared
by the package, field, block and content layers.
"""

import logging
import re
from typing import Optional, Union

from docx.oxml.ns import nsdecls, qn  # type: ignore
from docx.shared import Cm, Emu, Inches, Mm, Pt  # type: ignore
from lxml import etree as ET

__all__ = [
    "WORDML_PREFIXES",
    "xml_parser",
    "parse_xml_bytes",
    "parse_wordml_fragment",
    "serialize_part",
    "local_name",
    "is_element",
    "ancestor",
    "parse_length",
    "pixels_to_emu",
]

logger = logging.getLogger(__name__)

# Namespaces declared on scratch wrappers used to parse raw WordML snippets
WORDML_PREFIXES = ("w", "r", "wp", "a", "pic")

_LENGTH_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(emu|cm|mm|in|pt|px)?\s*$", re.IGNORECASE)


# ---------------------------------------------------------------------------
# XML convenience wrappers
# ---------------------------------------------------------------------------

def xml_parser() -> ET.XMLParser:
    """Return a parser that never resolves entities and keeps whitespace."""
    return ET.XMLParser(resolve_entities=False, remove_blank_text=False, huge_tree=True)


def parse_xml_bytes(data: bytes) -> ET._Element:
    return ET.fromstring(data, xml_parser())


def parse_wordml_fragment(markup: str) -> list[ET._Element]:
    """Parse a raw WordML snippet (one or more sibling elements).

    The usual WordprocessingML prefixes are pre-declared, so snippets such as
    ``<w:p><w:r><w:t>Hi</w:t></w:r></w:p>`` parse without boilerplate.
    """
    wrapper = f"<wrapper {nsdecls(*WORDML_PREFIXES)}>{markup}</wrapper>"
    root = ET.fromstring(wrapper.encode("utf-8"), xml_parser())
    return [child for child in root if is_element(child)]


def serialize_part(root: ET._Element) -> bytes:
    """Serialise a part root without reformatting (Word is whitespace-sensitive)."""
    return ET.tostring(root, xml_declaration=True, encoding="UTF-8", standalone=True)


def local_name(node: ET._Element) -> str:
    return ET.QName(node).localname


def is_element(node) -> bool:
    """True for real elements (lxml also yields comments and PIs)."""
    return isinstance(node.tag, str)


def ancestor(node: ET._Element, tag: str) -> Optional[ET._Element]:
    """Return the closest ancestor of *node* with prefixed *tag* (e.g. ``w:p``)."""
    wanted = qn(tag)
    parent = node.getparent()
    while parent is not None:
        if parent.tag == wanted:
            return parent
        parent = parent.getparent()
    return None


# ---------------------------------------------------------------------------
# Length conversion
# ---------------------------------------------------------------------------

def pixels_to_emu(pixels: Union[int, float], dpi: Union[int, float] = 96) -> int:
    return int(Inches(float(pixels) / float(dpi or 96)))


def parse_length(value: Union[int, float, str, None], dpi: Union[int, float] = 96) -> Optional[int]:
    """Convert *value* to EMU.

    Integers are taken as EMU already; strings carry a unit suffix
    (``emu``, ``cm``, ``mm``, ``in``, ``pt``, ``px``). A bare number string
    is read as pixels.
    """
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return int(value)
    match = _LENGTH_RE.match(str(value))
    if not match:
        raise ValueError(f"Invalid length: {value!r}")
    number = float(match.group(1))
    unit = (match.group(2) or "px").lower()
    if unit == "emu":
        return int(Emu(int(number)))
    if unit == "cm":
        return int(Cm(number))
    if unit == "mm":
        return int(Mm(number))
    if unit == "in":
        return int(Inches(number))
    if unit == "pt":
        return int(Pt(number))
    return pixels_to_emu(number, dpi)
