from __future__ import annotations

"""HTML subset to WordprocessingML conversion.

Supported markup: ``p``, ``div``, ``h1``-``h6``, ``blockquote`` and list
items start paragraphs; ``b/strong``, ``i/em``, ``u``, ``s/strike/del``,
``sub``, ``sup`` and ``span`` shape runs; ``br`` inserts a line break.
Unknown tags are treated as transparent inline containers.
"""

import logging
import re
from typing import Any, Dict, NamedTuple, Optional, Tuple

import lxml.html
from lxml import etree as ET

from docx_template_toolkit.config import ConfigManager

from ..numbering import Numbering
from .nodes import Newline, Paragraph, Root, Run
from .visitor import LastNewlineRemoverVisitor

logger = logging.getLogger(__name__)

__all__ = ["HTMLConverter"]

_WHITESPACE_RE = re.compile(r"\s+")

_BLOCK_TAGS = {"p", "div", "h1", "h2", "h3", "h4", "h5", "h6", "blockquote", "li"}
_LIST_TAGS = {"ul", "ol"}

_INLINE_PROPERTIES: Dict[str, Dict[str, Any]] = {
    "b": {"b": True},
    "strong": {"b": True},
    "i": {"i": True},
    "em": {"i": True},
    "u": {"u": "single"},
    "s": {"strike": True},
    "strike": {"strike": True},
    "del": {"strike": True},
    "sub": {"vertAlign": "subscript"},
    "sup": {"vertAlign": "superscript"},
}


class _ListItem(NamedTuple):
    style: Optional[str]
    numbering: Optional[Tuple[int, int]]


class HTMLConverter:
    """Build a :class:`Root` node tree from HTML and serialise it to WordML."""

    def __init__(self, html_config: Optional[Dict[str, Any]] = None,
                 numbering: Optional[Numbering] = None) -> None:
        config = html_config if html_config is not None else ConfigManager().get_html_config()
        self.paragraph_styles: Dict[str, str] = dict(config.get("paragraph_styles", {}))
        self.list_styles: Dict[str, str] = dict(config.get("list_styles", {}))
        self.numbering = numbering
        self._root = Root()
        self._current: Optional[Paragraph] = None
        self._list_depth = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def convert(self, html: str) -> list[ET._Element]:
        """Return the ``w:p`` elements for *html*."""
        root = self.build_tree(html)
        return root.to_wordml()

    def build_tree(self, html: str) -> Root:
        self._root = Root()
        self._current = None
        self._list_depth = 0
        if html and html.strip():
            container = lxml.html.fragment_fromstring(html, create_parent="div")
            self._add_text(container.text, {})
            for child in container:
                self._walk(child, {}, None)

        self._root.paragraphs.nodes = [p for p in self._root.paragraphs.nodes if p.runs.nodes]
        self._root.accept(LastNewlineRemoverVisitor())
        logger.debug("Converted HTML into %d paragraph(s)", len(self._root.paragraphs.nodes))
        return self._root

    # ------------------------------------------------------------------
    # Tree building
    # ------------------------------------------------------------------
    def _start_paragraph(self, style: Optional[str], numbering: Optional[Tuple[int, int]] = None) -> Paragraph:
        self._current = Paragraph(style=style, numbering=numbering)
        self._root.paragraphs.append(self._current)
        return self._current

    def _open_list(self, tag: str) -> _ListItem:
        """Enter a list; with a registry each list gets its own numbering instance."""
        level = self._list_depth
        self._list_depth += 1
        style = self.list_styles.get(tag)
        if self.numbering is None or not style:
            return _ListItem(style, None)
        definition = self.numbering.register(style, ordered=tag == "ol", level=level)
        return _ListItem(style, (definition.num_id, level))

    def _current_paragraph(self) -> Paragraph:
        if self._current is None:
            return self._start_paragraph(None)
        return self._current

    def _add_text(self, text: Optional[str], properties: Dict[str, Any]) -> None:
        if not text:
            return
        text = _WHITESPACE_RE.sub(" ", text)
        if self._current is None or not self._current.runs.nodes:
            text = text.lstrip()
        if not text:
            return
        self._current_paragraph().runs.append(Run(text, dict(properties)))

    def _walk(self, element, properties: Dict[str, Any], list_item: Optional[_ListItem]) -> None:
        if not isinstance(element.tag, str):
            # comments keep their tail text
            self._add_text(element.tail, properties)
            return

        tag = element.tag.lower()
        if tag == "br":
            self._current_paragraph().runs.append(Newline())
        elif tag in _LIST_TAGS:
            nested = self._open_list(tag)
            for child in element:
                self._walk(child, properties, nested)
            self._list_depth -= 1
        elif tag in _BLOCK_TAGS:
            if tag == "li" and list_item is not None:
                self._start_paragraph(list_item.style, list_item.numbering)
            else:
                self._start_paragraph(None if tag == "li" else self.paragraph_styles.get(tag))
            self._add_text(element.text, properties)
            for child in element:
                self._walk(child, properties, list_item)
            # text following a block element opens a new paragraph
            self._current = None
        else:
            child_properties = {**properties, **_INLINE_PROPERTIES.get(tag, {})}
            self._add_text(element.text, child_properties)
            for child in element:
                self._walk(child, child_properties, list_item)

        self._add_text(element.tail, properties)
