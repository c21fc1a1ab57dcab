from __future__ import annotations

"""List numbering instances for converted HTML lists.

Every ``<ul>``/``<ol>`` converted during a render gets its own ``w:num``
entry so that numbering restarts per list instead of continuing the
previous list that shares the paragraph style. Definitions are collected
while statements run and written to ``word/numbering.xml`` once, at the
end of the render.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, TYPE_CHECKING

from docx.oxml.ns import nsmap, qn  # type: ignore
from lxml import etree as ET

from docx_template_toolkit.config import ConfigManager

from .utils import parse_wordml_fragment

if TYPE_CHECKING:
    from .package import DocxPackage

logger = logging.getLogger(__name__)

__all__ = ["NumberingDefinition", "Numbering", "NUMBERING_PART"]

NUMBERING_PART = "word/numbering.xml"
STYLES_PART = "word/styles.xml"
NUMBERING_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.numbering+xml"
NUMBERING_REL_TYPE = "http://schemas.openxmlformats.org/officeDocument/2006/relationships/numbering"

# Used when neither styles.xml nor numbering.xml links the list style to a definition
_FALLBACK_ABSTRACT = {
    False: ('<w:abstractNum w:abstractNumId="{id}"><w:multiLevelType w:val="hybridMultilevel"/>'
            '{levels}</w:abstractNum>',
            '<w:lvl w:ilvl="{level}"><w:start w:val="1"/><w:numFmt w:val="bullet"/>'
            '<w:lvlText w:val="•"/><w:lvlJc w:val="left"/>'
            '<w:pPr><w:ind w:left="{left}" w:hanging="360"/></w:pPr></w:lvl>'),
    True: ('<w:abstractNum w:abstractNumId="{id}"><w:multiLevelType w:val="hybridMultilevel"/>'
           '{levels}</w:abstractNum>',
           '<w:lvl w:ilvl="{level}"><w:start w:val="1"/><w:numFmt w:val="decimal"/>'
           '<w:lvlText w:val="%{number}."/><w:lvlJc w:val="left"/>'
           '<w:pPr><w:ind w:left="{left}" w:hanging="360"/></w:pPr></w:lvl>'),
}


@dataclass(frozen=True)
class NumberingDefinition:
    """One list instance: the paragraphs of a single HTML list share it."""

    num_id: int
    style: str
    ordered: bool
    level: int = 0


class Numbering:
    """Per-render registry of list instances."""

    def __init__(self, first_id: Optional[int] = None) -> None:
        if first_id is None:
            first_id = int(ConfigManager().get_html_config().get("numbering_start_id", 1000))
        self.first_id = first_id
        self.definitions: List[NumberingDefinition] = []

    @classmethod
    def for_package(cls, package: "DocxPackage") -> "Numbering":
        """Registry whose ids start above every ``w:numId`` already in *package*."""
        numbering = cls()
        if package.has_part(NUMBERING_PART):
            highest = package.max_attribute_value(NUMBERING_PART, "num", "numId")
            numbering.first_id = max(numbering.first_id, highest + 1)
        return numbering

    def register(self, style: str, ordered: bool, level: int = 0) -> NumberingDefinition:
        definition = NumberingDefinition(self.first_id + len(self.definitions), style, ordered, level)
        self.definitions.append(definition)
        return definition

    def reset(self) -> None:
        self.definitions.clear()

    # ------------------------------------------------------------------
    # Writing numbering.xml
    # ------------------------------------------------------------------
    def apply(self, package: "DocxPackage", source_part: str = "word/document.xml") -> int:
        """Write one ``w:num`` per registered definition; return how many."""
        if not self.definitions:
            return 0
        if package.has_part(NUMBERING_PART):
            root = package.dom(NUMBERING_PART)
        else:
            root = ET.Element(qn("w:numbering"), nsmap={"w": nsmap["w"]})
            package.add_part(NUMBERING_PART, root, NUMBERING_CONTENT_TYPE, NUMBERING_REL_TYPE, source_part)
            logger.debug("Created %s for %d list(s)", NUMBERING_PART, len(self.definitions))

        styles = package.dom(STYLES_PART) if package.has_part(STYLES_PART) else None
        abstract_ids: Dict[Tuple[str, bool], str] = {}
        for definition in self.definitions:
            key = (definition.style, definition.ordered)
            if key not in abstract_ids:
                abstract_ids[key] = (_linked_abstract_id(root, styles, definition.style)
                                     or _add_fallback_abstract(root, definition.ordered))
            _append_num(root, definition, abstract_ids[key])
        logger.debug("Wrote %d list numbering instance(s)", len(self.definitions))
        return len(self.definitions)


def _w(name: str) -> str:
    return qn(f"w:{name}")


def _abstract_for_num(root: ET._Element, num_id: str) -> Optional[str]:
    for num in root.iter(_w("num")):
        if num.get(_w("numId")) == num_id:
            abstract = num.find(_w("abstractNumId"))
            if abstract is not None:
                return abstract.get(_w("val"))
    return None


def _linked_abstract_id(root: ET._Element, styles: Optional[ET._Element], style: str) -> Optional[str]:
    """``w:abstractNumId`` the paragraph style *style* numbers with, if any."""
    if styles is not None:
        for style_el in styles.iter(_w("style")):
            if style_el.get(_w("styleId")) != style:
                continue
            num_id = style_el.find(f"{_w('pPr')}/{_w('numPr')}/{_w('numId')}")
            if num_id is not None:
                found = _abstract_for_num(root, num_id.get(_w("val")))
                if found is not None:
                    return found
    for abstract in root.iter(_w("abstractNum")):
        for p_style in abstract.iter(_w("pStyle")):
            if p_style.get(_w("val")) == style:
                return abstract.get(_w("abstractNumId"))
    return None


def _add_fallback_abstract(root: ET._Element, ordered: bool) -> str:
    ids = [int(a.get(_w("abstractNumId"))) for a in root.iter(_w("abstractNum"))
           if (a.get(_w("abstractNumId")) or "").isdigit()]
    abstract_id = str(max(ids, default=-1) + 1)
    wrapper, level_markup = _FALLBACK_ABSTRACT[ordered]
    levels = "".join(level_markup.format(level=level, number=level + 1, left=720 * (level + 1))
                     for level in range(9))
    abstract = parse_wordml_fragment(wrapper.format(id=abstract_id, levels=levels))[0]

    # every w:abstractNum precedes the first w:num
    first_num = root.find(_w("num"))
    if first_num is not None:
        first_num.addprevious(abstract)
    else:
        _insert_before_cleanup(root, abstract)
    return abstract_id


def _append_num(root: ET._Element, definition: NumberingDefinition, abstract_id: str) -> None:
    num = ET.Element(_w("num"))
    num.set(_w("numId"), str(definition.num_id))
    ET.SubElement(num, _w("abstractNumId")).set(_w("val"), abstract_id)
    override = ET.SubElement(num, _w("lvlOverride"))
    override.set(_w("ilvl"), str(definition.level))
    ET.SubElement(override, _w("startOverride")).set(_w("val"), "1")
    _insert_before_cleanup(root, num)


def _insert_before_cleanup(root: ET._Element, element: ET._Element) -> None:
    cleanup = root.find(_w("numIdMacAtCleanup"))
    if cleanup is not None:
        cleanup.addprevious(element)
    else:
        root.append(element)
