"""Test configuration and fixtures for docx_template_toolkit tests.

This module provides shared fixtures for building WordprocessingML snippets,
in-memory DOCX packages and render environments. All test files should use
the fixtures defined here for consistency.
"""

import io
import logging
import sys
import zipfile
from pathlib import Path
from typing import Dict, Optional
from xml.sax.saxutils import escape

import pytest
from docx.oxml.ns import nsdecls, qn
from PIL import Image

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from docx_template_toolkit.config import ConfigManager
from docx_template_toolkit.core.environment import Environment, RenderState
from docx_template_toolkit.core.package import DocxPackage
from docx_template_toolkit.core.utils import parse_xml_bytes

# Configure test logging
logging.basicConfig(
    level=logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

MAIN_PART = "word/document.xml"

_CONTENT_TYPES = (
    '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
    '<Types xmlns="http://schemas.openxmlformats.org/package/2006/content-types">'
    '<Default Extension="rels" ContentType="application/vnd.openxmlformats-package.relationships+xml"/>'
    '<Default Extension="xml" ContentType="application/xml"/>'
    '<Override PartName="/word/document.xml" '
    'ContentType="application/vnd.openxmlformats-officedocument.wordprocessingml.document.main+xml"/>'
    '</Types>'
)

_PACKAGE_RELS = (
    '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
    '<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships">'
    '<Relationship Id="rId1" '
    'Type="http://schemas.openxmlformats.org/officeDocument/2006/relationships/officeDocument" '
    'Target="word/document.xml"/>'
    '</Relationships>'
)

_DOCUMENT_RELS = (
    '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
    '<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships">'
    '<Relationship Id="rId1" '
    'Type="http://schemas.openxmlformats.org/officeDocument/2006/relationships/styles" '
    'Target="styles.xml"/>'
    '</Relationships>'
)

DEFAULT_SECT_PR = (
    '<w:sectPr>'
    '<w:pgSz w:w="12240" w:h="15840"/>'
    '<w:pgMar w:top="1440" w:right="1440" w:bottom="1440" w:left="1440" '
    'w:header="720" w:footer="720" w:gutter="0"/>'
    '<w:cols w:space="720"/>'
    '</w:sectPr>'
)


class WordML:
    """Builders for the WordprocessingML snippets used across the tests."""

    NAMESPACES = nsdecls("w", "r", "wp", "a", "pic")

    @staticmethod
    def field(expression: str, display: Optional[str] = None, rpr: str = "") -> str:
        """A simple ``w:fldSimple`` merge field."""
        instr = escape(f" MERGEFIELD {expression} \\* MERGEFORMAT ", {'"': "&quot;"})
        text = escape(display if display is not None else f"«{expression}»")
        return f'<w:fldSimple w:instr="{instr}"><w:r>{rpr}<w:t>{text}</w:t></w:r></w:fldSimple>'

    @staticmethod
    def complex_field(expression: str, display: Optional[str] = None, rpr: str = "") -> str:
        """A complex merge field spread over begin/instr/separate/result/end runs."""
        text = escape(display if display is not None else f"«{expression}»")
        return (
            '<w:r><w:fldChar w:fldCharType="begin"/></w:r>'
            f'<w:r><w:instrText xml:space="preserve"> MERGEFIELD {escape(expression)} '
            '\\* MERGEFORMAT </w:instrText></w:r>'
            '<w:r><w:fldChar w:fldCharType="separate"/></w:r>'
            f'<w:r>{rpr}<w:t>{text}</w:t></w:r>'
            '<w:r><w:fldChar w:fldCharType="end"/></w:r>'
        )

    @staticmethod
    def run(text: str) -> str:
        return f'<w:r><w:t xml:space="preserve">{escape(text)}</w:t></w:r>'

    @classmethod
    def paragraph(cls, *content: str) -> str:
        return f"<w:p>{''.join(content)}</w:p>"

    @classmethod
    def text_paragraph(cls, text: str) -> str:
        return cls.paragraph(cls.run(text))

    @classmethod
    def field_paragraph(cls, expression: str) -> str:
        return cls.paragraph(cls.field(expression))

    @classmethod
    def table(cls, *rows: str) -> str:
        return f"<w:tbl>{''.join(rows)}</w:tbl>"

    @classmethod
    def row(cls, *paragraphs: str) -> str:
        return f"<w:tr><w:tc>{''.join(paragraphs)}</w:tc></w:tr>"

    @staticmethod
    def drawing(docpr_id: int = 1, rid: str = "rId99", cx: int = 100, cy: int = 100) -> str:
        """An inline picture run, as Word writes it."""
        return (
            '<w:r><w:drawing>'
            '<wp:inline distT="0" distB="0" distL="0" distR="0">'
            f'<wp:extent cx="{cx}" cy="{cy}"/>'
            f'<wp:docPr id="{docpr_id}" name="Picture {docpr_id}"/>'
            '<a:graphic><a:graphicData uri="http://schemas.openxmlformats.org/drawingml/2006/picture">'
            f'<pic:pic><pic:nvPicPr><pic:cNvPr id="{docpr_id}" name="placeholder.png"/><pic:cNvPicPr/></pic:nvPicPr>'
            f'<pic:blipFill><a:blip r:embed="{rid}"/></pic:blipFill>'
            f'<pic:spPr><a:xfrm><a:off x="0" y="0"/><a:ext cx="{cx}" cy="{cy}"/></a:xfrm></pic:spPr>'
            '</pic:pic></a:graphicData></a:graphic>'
            '</wp:inline></w:drawing></w:r>'
        )

    @classmethod
    def document(cls, body: str, sect_pr: str = DEFAULT_SECT_PR) -> bytes:
        return (
            '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
            f'<w:document {cls.NAMESPACES}><w:body>{body}{sect_pr}</w:body></w:document>'
        ).encode("utf-8")

    @classmethod
    def header(cls, body: str) -> bytes:
        return (
            '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
            f'<w:hdr {cls.NAMESPACES}>{body}</w:hdr>'
        ).encode("utf-8")

    @classmethod
    def numbering(cls, body: str) -> str:
        return f'<?xml version="1.0" encoding="UTF-8" standalone="yes"?><w:numbering {nsdecls("w")}>{body}</w:numbering>'

    @classmethod
    def styles(cls, body: str) -> str:
        return f'<?xml version="1.0" encoding="UTF-8" standalone="yes"?><w:styles {nsdecls("w")}>{body}</w:styles>'

    @classmethod
    def root(cls, body: str):
        """Parsed ``w:document`` root for *body*."""
        return parse_xml_bytes(cls.document(body))

    @classmethod
    def docx(cls, body: str, headers: Optional[Dict[str, str]] = None,
             sect_pr: str = DEFAULT_SECT_PR, parts: Optional[Dict[str, str]] = None) -> bytes:
        """In-memory DOCX archive with *body*, optional header parts and raw extra parts."""
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
            archive.writestr("[Content_Types].xml", _CONTENT_TYPES)
            archive.writestr("_rels/.rels", _PACKAGE_RELS)
            archive.writestr(MAIN_PART, cls.document(body, sect_pr))
            archive.writestr("word/_rels/document.xml.rels", _DOCUMENT_RELS)
            for name, header_body in (headers or {}).items():
                archive.writestr(name, cls.header(header_body))
            for name, xml in (parts or {}).items():
                archive.writestr(name, xml)
        return buffer.getvalue()

    @staticmethod
    def paragraph_texts(root) -> list:
        return ["".join(t.text or "" for t in p.iter(qn("w:t"))) for p in root.iter(qn("w:p"))]

    @staticmethod
    def text(root) -> str:
        return "".join(t.text or "" for t in root.iter(qn("w:t")))


@pytest.fixture
def wordml():
    """Provides the WordML snippet builders."""
    return WordML


@pytest.fixture
def png_bytes():
    """A 96x48 px PNG (1in x 0.5in at the default 96 dpi)."""
    buffer = io.BytesIO()
    Image.new("RGB", (96, 48), color=(200, 30, 30)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def make_package(wordml):
    """Factory building a :class:`DocxPackage` positioned on the main part."""
    def _make(body: str, headers: Optional[Dict[str, str]] = None) -> DocxPackage:
        package = DocxPackage.from_bytes(wordml.docx(body, headers))
        package.current_part = MAIN_PART
        return package
    return _make


@pytest.fixture
def make_env():
    """Factory building a fresh :class:`Environment` for one render."""
    def _make(document=None, context=None) -> Environment:
        return Environment(document=document, context=dict(context or {}), state=RenderState())
    return _make


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point user overrides at an empty directory and reset the config singleton."""
    config_dir = tmp_path / "user_config"
    monkeypatch.setenv("DOCX_TEMPLATE_CONFIG_DIR", str(config_dir))
    ConfigManager.reset()
    yield config_dir
    ConfigManager.reset()
