from __future__ import annotations

"""High-level rendering façade.

Entry-point for any front-end (CLI, web service, batch job) that needs to
fill a DOCX template with data::

    Template("letter.docx").render_to_file("out.docx", {"name": "Ada"})
"""

import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from docx.oxml.ns import qn  # type: ignore
from lxml import etree as ET

from docx_template_toolkit.config import ConfigManager

from .content import ImageContent
from .context import normalize_context, values_of
from .environment import Environment, RenderState
from .numbering import Numbering
from .package import DocxPackage
from .processor import DocumentProcessor

logger = logging.getLogger(__name__)

__all__ = ["Template"]

# w:sectPr children that precede w:pgNumType in schema order
_BEFORE_PG_NUM_TYPE = (
    "headerReference", "footerReference", "footnotePr", "endnotePr", "type",
    "pgSz", "pgMar", "paperSrc", "pgBorders", "lnNumType",
)


class Template:
    """A DOCX template on disk (or in memory) that can be rendered repeatedly.

    Each render reads the template afresh and owns its own id counters, list
    numbering and image relationship caches, so one instance can serve many
    renders.
    """

    def __init__(self, path: Union[str, Path, None] = None, *, data: Optional[bytes] = None) -> None:
        if path is None and data is None:
            raise ValueError("Template needs a path or raw bytes")
        self.path = Path(path) if path is not None else None
        self._data = data

    # ---------------------------------------------------------------------
    # PUBLIC API
    # ---------------------------------------------------------------------
    def render(self, context: Mapping[str, Any], properties: Optional[Dict[str, Any]] = None) -> DocxPackage:
        """Render into an in-memory :class:`DocxPackage`."""
        package = DocxPackage.from_bytes(self._data) if self._data is not None else DocxPackage.from_file(self.path)
        context = normalize_context(context or {})

        images = values_of(context, ImageContent)
        for image in images:
            image.reset_relationships()

        state = RenderState(numbering=Numbering.for_package(package))
        env = Environment(document=package, context=context, state=state)
        processor = DocumentProcessor()
        main_part = ConfigManager().get_parts_config().get("main", "word/document.xml")
        parts = self._template_parts(package, main_part)
        logger.info("Rendering %s: %d part(s), %d image(s)", self.path or "<bytes>", len(parts), len(images))

        for part in parts:
            package.current_part = part
            root = package.dom(part)
            processor.process(root, env)
            if part == main_part and properties:
                self._apply_properties(root, properties)
        package.current_part = None
        state.numbering.apply(package, main_part)
        return package

    def render_to_bytes(self, context: Mapping[str, Any], properties: Optional[Dict[str, Any]] = None) -> bytes:
        return self.render(context, properties).to_bytes()

    def render_to_file(self, output_path: Union[str, Path], context: Mapping[str, Any],
                       properties: Optional[Dict[str, Any]] = None) -> None:
        """Same as :meth:`render_to_bytes` but writes the result to *output_path*."""
        data = self.render_to_bytes(context, properties)
        output_path = Path(output_path)
        try:
            output_path.write_bytes(data)
            logger.debug("I/O: wrote %s bytes=%d", output_path, len(data))
        except OSError:
            logger.error("I/O FAIL: write document path=%s", output_path, exc_info=True)
            raise

    # ---------------------------------------------------------------------
    # Internal helpers
    # ---------------------------------------------------------------------
    @staticmethod
    def _template_parts(package: DocxPackage, main_part: str) -> List[str]:
        pattern = re.compile(
            ConfigManager().get_parts_config().get("header_footer_pattern", r"^word/(header|footer)\d*\.xml$")
        )
        others = sorted(name for name in package.part_names() if pattern.match(name))
        return ([main_part] if package.has_part(main_part) else []) + others

    @staticmethod
    def _apply_properties(root: ET._Element, properties: Dict[str, Any]) -> None:
        start_page = properties.get("start_page_number")
        if start_page is None:
            return
        for sect_pr in root.iter(qn("w:sectPr")):
            pg_num_type = sect_pr.find(qn("w:pgNumType"))
            if pg_num_type is None:
                pg_num_type = ET.Element(qn("w:pgNumType"))
                preceding = [child for child in sect_pr
                             if isinstance(child.tag, str) and ET.QName(child).localname in _BEFORE_PG_NUM_TYPE]
                if preceding:
                    preceding[-1].addnext(pg_num_type)
                else:
                    sect_pr.insert(0, pg_num_type)
            pg_num_type.set(qn("w:start"), str(int(start_page)))
