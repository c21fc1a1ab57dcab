from __future__ import annotations

"""Typed content inserted into a document by directives.

Context keys of the form ``kind:name`` are turned into one of the content
classes registered here (see :func:`Content.make`). Untagged scalars become
:class:`StringContent` when inserted (see :func:`Content.wrap`).
"""

import io
import logging
import mimetypes
import os
from abc import ABC, abstractmethod
from collections.abc import Mapping
from pathlib import Path
from typing import Any, ClassVar, Dict, Optional, Tuple, Type, TYPE_CHECKING
from urllib.parse import urlparse

import requests
from docx.oxml.ns import qn  # type: ignore
from lxml import etree as ET
from PIL import Image as PILImage, UnidentifiedImageError

from docx_template_toolkit.config import ConfigManager

from .converter import HTMLConverter
from .errors import ContextError, UnknownContentTypeError
from .utils import local_name, parse_length, parse_wordml_fragment, pixels_to_emu

if TYPE_CHECKING:
    from .environment import Environment
    from .parser.fields import MergeField

logger = logging.getLogger(__name__)

__all__ = [
    "Content",
    "StringContent",
    "WordMLContent",
    "HTMLContent",
    "ImageContent",
    "register_content_type",
    "register_image",
]

_CONTENT_TYPES: Dict[str, Type["Content"]] = {}

# Children of w:p that can replace a field in place
_INLINE_TAGS = {"r", "hyperlink", "fldSimple", "bookmarkStart", "bookmarkEnd", "ins", "del", "smartTag"}


def register_content_type(cls: Type["Content"]) -> Type["Content"]:
    """Class decorator adding *cls* to the ``kind:name`` registry."""
    _CONTENT_TYPES[cls.kind] = cls
    return cls


class Content(ABC):
    """Base class of every insertable value."""

    kind: ClassVar[str] = ""

    @classmethod
    def build(cls, value: Any) -> "Content":
        return cls(value)  # type: ignore[call-arg]

    @staticmethod
    def make(kind: str, value: Any) -> "Content":
        content_cls = _CONTENT_TYPES.get(kind)
        if content_cls is None:
            raise UnknownContentTypeError(kind, sorted(_CONTENT_TYPES))
        return content_cls.build(value)

    @staticmethod
    def wrap(value: Any) -> "Content":
        if isinstance(value, Content):
            return value
        return StringContent(str(value))

    @abstractmethod
    def append_to(self, field: "MergeField", env: "Environment") -> None:
        """Replace *field* with this content."""


@register_content_type
class StringContent(Content):
    """Plain text; line breaks become ``w:br`` and the field's formatting is kept."""

    kind = "string"

    def __init__(self, string: Any) -> None:
        self.string = "" if string is None else str(string)

    def append_to(self, field: "MergeField", env: "Environment") -> None:
        run = ET.Element(qn("w:r"))
        run_properties = field.run_properties()
        if run_properties is not None:
            run.append(run_properties)
        lines = self.string.replace("\r\n", "\n").split("\n")
        for index, line in enumerate(lines):
            if index:
                ET.SubElement(run, qn("w:br"))
            text = ET.SubElement(run, qn("w:t"))
            text.set("{http://www.w3.org/XML/1998/namespace}space", "preserve")
            text.text = line
        field.replace_nodes([run])

    def __eq__(self, other: object) -> bool:
        return isinstance(other, StringContent) and other.string == self.string

    def __repr__(self) -> str:
        return f"StringContent({self.string!r})"


@register_content_type
class WordMLContent(Content):
    """Raw WordprocessingML markup inserted verbatim."""

    kind = "word_ml"

    def __init__(self, xml: str) -> None:
        self.xml = xml

    def nodes(self) -> list[ET._Element]:
        return parse_wordml_fragment(self.xml)

    def append_to(self, field: "MergeField", env: "Environment") -> None:
        nodes = self.nodes()
        if nodes and all(local_name(node) in _INLINE_TAGS for node in nodes):
            field.replace_nodes(nodes)
        else:
            field.insert_block_nodes(nodes)

    def __repr__(self) -> str:
        return f"WordMLContent({self.xml!r})"


@register_content_type
class HTMLContent(Content):
    """HTML subset converted to paragraphs (see :mod:`core.converter`)."""

    kind = "html"

    def __init__(self, html: str) -> None:
        self.html = html

    def append_to(self, field: "MergeField", env: "Environment") -> None:
        field.insert_block_nodes(HTMLConverter(numbering=env.state.numbering).convert(self.html))

    def __repr__(self) -> str:
        return f"HTMLContent({self.html!r})"


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------

_INLINE_DRAWING = (
    '<w:r><w:drawing>'
    '<wp:inline distT="0" distB="0" distL="0" distR="0">'
    '<wp:extent cx="0" cy="0"/>'
    '<wp:docPr id="0" name=""/>'
    '<wp:cNvGraphicFramePr><a:graphicFrameLocks noChangeAspect="1"/></wp:cNvGraphicFramePr>'
    '<a:graphic><a:graphicData uri="http://schemas.openxmlformats.org/drawingml/2006/picture">'
    '<pic:pic><pic:nvPicPr><pic:cNvPr id="0" name=""/><pic:cNvPicPr/></pic:nvPicPr>'
    '<pic:blipFill><a:blip r:embed=""/><a:stretch><a:fillRect/></a:stretch></pic:blipFill>'
    '<pic:spPr><a:xfrm><a:off x="0" y="0"/><a:ext cx="0" cy="0"/></a:xfrm>'
    '<a:prstGeom prst="rect"><a:avLst/></a:prstGeom></pic:spPr>'
    '</pic:pic></a:graphicData></a:graphic>'
    '</wp:inline></w:drawing></w:r>'
)


def download_external_image(url: str, timeout: float = 10) -> Tuple[bytes, str]:
    """Download *url* and return ``(data, filename)``."""
    try:
        response = requests.get(url, timeout=timeout, headers={'User-Agent': 'docx-template-toolkit'})
        response.raise_for_status()
    except requests.RequestException as exc:
        raise ContextError(f"Could not download image from {url}: {exc}", value=url, cause=exc) from exc

    filename = os.path.basename(urlparse(url).path) or "image"
    if "." not in filename:
        content_type = response.headers.get('content-type', '').split(';')[0].strip().lower()
        filename += mimetypes.guess_extension(content_type) or ".png"
    return response.content, filename


@register_content_type
class ImageContent(Content):
    """Binary image payload plus its per-part relationship ids.

    ``rid_by_part`` maps a part name (``word/document.xml``,
    ``word/header1.xml``…) to the relationship id registered for this image
    in that part, so the payload is embedded once however often it is used.
    """

    kind = "image"

    def __init__(self, data: bytes, name: str = "image.png",
                 width: Any = None, height: Any = None) -> None:
        self.data = data
        self.name = name
        self.rid_by_part: Dict[str, str] = {}
        self.local_rid: Optional[str] = None
        self.explicit_size = width is not None or height is not None
        self.width, self.height = self._resolve_size(width, height)

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------
    @classmethod
    def build(cls, value: Any) -> "ImageContent":
        if isinstance(value, ImageContent):
            return value
        if isinstance(value, (bytes, bytearray)):
            return cls(bytes(value), cls._name_for_bytes(bytes(value)))
        if isinstance(value, Mapping):
            width, height = value.get("width"), value.get("height")
            if "data" in value:
                data = bytes(value["data"])
                name = value.get("filename") or value.get("name") or cls._name_for_bytes(data)
                return cls(data, name, width, height)
            source = value.get("url") or value.get("path")
            if source is None:
                raise ContextError("Image mapping needs one of 'data', 'path' or 'url'", value=value)
            image = cls.build(source)
            return cls(image.data, value.get("filename") or image.name, width, height)
        if isinstance(value, (str, os.PathLike)):
            source = os.fspath(value)
            if source.startswith(("http://", "https://")):
                timeout = ConfigManager().get_image_config().get("request_timeout", 10)
                data, name = download_external_image(source, timeout)
                return cls(data, name)
            path = Path(source)
            try:
                return cls(path.read_bytes(), path.name)
            except OSError as exc:
                raise ContextError(f"Could not read image file {path}: {exc}", value=value, cause=exc) from exc
        if hasattr(value, "read"):
            data = value.read()
            name = os.path.basename(getattr(value, "name", "") or "") or cls._name_for_bytes(data)
            return cls(data, name)
        raise ContextError(f"Cannot build an image from {type(value).__name__}", value=value)

    @staticmethod
    def _name_for_bytes(data: bytes) -> str:
        try:
            with PILImage.open(io.BytesIO(data)) as img:
                return f"image.{(img.format or 'png').lower()}"
        except (UnidentifiedImageError, OSError):
            return "image.png"

    def _pixel_size(self) -> Optional[Tuple[int, int, float]]:
        try:
            with PILImage.open(io.BytesIO(self.data)) as img:
                dpi = img.info.get("dpi", (None,))[0]
                return img.width, img.height, float(dpi) if dpi else 0.0
        except (UnidentifiedImageError, OSError) as exc:
            logger.debug("Could not read image size of %s: %s", self.name, exc)
            return None

    def _resolve_size(self, width: Any, height: Any) -> Tuple[int, int]:
        config = ConfigManager().get_image_config()
        default_dpi = config.get("default_dpi", 96)
        width_emu = parse_length(width, default_dpi)
        height_emu = parse_length(height, default_dpi)
        if width_emu and height_emu:
            return width_emu, height_emu

        pixels = self._pixel_size()
        if pixels is None:
            return (width_emu or int(config.get("fallback_width", 914400)),
                    height_emu or int(config.get("fallback_height", 914400)))

        px_width, px_height, dpi = pixels
        natural_width = pixels_to_emu(px_width, dpi or default_dpi)
        natural_height = pixels_to_emu(px_height, dpi or default_dpi)
        if width_emu:
            return width_emu, int(natural_height * width_emu / natural_width)
        if height_emu:
            return int(natural_width * height_emu / natural_height), height_emu
        return natural_width, natural_height

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------
    @property
    def mime_type(self) -> str:
        return mimetypes.guess_type(self.name)[0] or "image/png"

    def reset_relationships(self) -> None:
        self.rid_by_part.clear()
        self.local_rid = None

    def stamp(self, fragments: list[ET._Element]) -> None:
        """Point every picture in *fragments* at :attr:`local_rid`.

        Extents are rewritten only when the image was given an explicit size;
        otherwise the placeholder's size is kept.
        """
        for fragment in fragments:
            for node in fragment.iter():
                if not isinstance(node.tag, str):
                    continue
                name = local_name(node)
                if name == "blip":
                    node.set(qn("r:embed"), self.local_rid or "")
                elif self.explicit_size and name == "extent":
                    node.set("cx", str(self.width))
                    node.set("cy", str(self.height))
                elif self.explicit_size and name == "ext" and local_name(node.getparent()) == "xfrm":
                    node.set("cx", str(self.width))
                    node.set("cy", str(self.height))

    def append_to(self, field: "MergeField", env: "Environment") -> None:
        register_image(env, self)
        part = env.current_part
        ids = {
            tag: env.state.id_counter.next_value(part, tag, env.document.max_attribute_value(part, tag, "id"))
            for tag in ("docPr", "cNvPr")
        }

        run = parse_wordml_fragment(_INLINE_DRAWING)[0]
        for node in run.iter():
            name = local_name(node)
            if name in ("extent", "ext"):
                node.set("cx", str(self.width))
                node.set("cy", str(self.height))
            elif name == "docPr":
                node.set("id", str(ids["docPr"]))
                node.set("name", f"Picture {ids['docPr']}")
            elif name == "cNvPr":
                node.set("id", str(ids["cNvPr"]))
                node.set("name", self.name)
            elif name == "blip":
                node.set(qn("r:embed"), self.local_rid or "")
        field.replace_nodes([run])

    def __repr__(self) -> str:
        return f"ImageContent(name={self.name!r}, bytes={len(self.data)})"


def register_image(env: "Environment", image: ImageContent) -> str:
    """Make *image* available to the current part and stamp its ``local_rid``.

    The payload is embedded on first use only; later parts get a duplicate
    of an existing relationship that points at the same media file.
    """
    document = env.document
    part = env.current_part
    if not image.rid_by_part:
        rel_type = ConfigManager().get_image_config().get(
            "relationship_type",
            "http://schemas.openxmlformats.org/officeDocument/2006/relationships/image",
        )
        rid = document.add_media(image.name, image.data, {"Type": rel_type})
        image.rid_by_part[part] = rid
        logger.debug("Embedded image %s as %s in %s", image.name, rid, part)
    elif part not in image.rid_by_part:
        source_part, source_rid = next(iter(image.rid_by_part.items()))
        relationship = document.find_relationship_by("Id", source_rid, source_part)
        if relationship is None:
            raise ContextError(f"Relationship {source_rid} of image {image.name} vanished from {source_part}")
        rid = document.add_relationship(dict(relationship.attrib))
        image.rid_by_part[part] = rid
        logger.debug("Reused image %s in %s as %s", image.name, part, rid)

    image.local_rid = image.rid_by_part[part]
    return image.local_rid
