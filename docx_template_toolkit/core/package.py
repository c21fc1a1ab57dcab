from __future__ import annotations

"""In-memory DOCX container.

:class:`DocxPackage` keeps every zip entry as raw bytes and parses parts on
demand. Parsed parts are the ones statements rewrite; on :meth:`to_bytes`
they are serialised back while untouched entries are copied verbatim.
"""

import io
import logging
import mimetypes
import posixpath
import re
import zipfile
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Union

from lxml import etree as ET

from .errors import PackageError
from .utils import parse_xml_bytes, serialize_part

logger = logging.getLogger(__name__)

__all__ = ["DocxPackage", "CONTENT_TYPES_PART", "REL_NS", "CT_NS"]

CONTENT_TYPES_PART = "[Content_Types].xml"
REL_NS = "http://schemas.openxmlformats.org/package/2006/relationships"
CT_NS = "http://schemas.openxmlformats.org/package/2006/content-types"

_RID_RE = re.compile(r"^rId(\d+)$")


class DocxPackage:
    """Zip entries of a WordprocessingML package plus the part being rendered."""

    def __init__(self, entries: Mapping[str, bytes]) -> None:
        self._entries: Dict[str, bytes] = dict(entries)
        self._doms: Dict[str, ET._Element] = {}
        self._original_doms: Dict[str, ET._Element] = {}
        self.current_part: Optional[str] = None

    # ------------------------------------------------------------------
    # Loading / saving
    # ------------------------------------------------------------------
    @classmethod
    def from_bytes(cls, data: bytes) -> "DocxPackage":
        try:
            with zipfile.ZipFile(io.BytesIO(data)) as archive:
                entries = {info.filename: archive.read(info) for info in archive.infolist()
                           if not info.is_dir()}
        except zipfile.BadZipFile as exc:
            raise PackageError(f"Invalid DOCX archive: {exc}", cause=exc) from exc
        return cls(entries)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "DocxPackage":
        path = Path(path)
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise PackageError(f"Cannot read template {path}: {exc}", cause=exc) from exc
        logger.debug("Loaded template %s (%d bytes)", path, len(data))
        return cls.from_bytes(data)

    def to_bytes(self) -> bytes:
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
            for name in self.part_names():
                data = serialize_part(self._doms[name]) if name in self._doms else self._entries[name]
                archive.writestr(name, data)
        return buffer.getvalue()

    # ------------------------------------------------------------------
    # Part access
    # ------------------------------------------------------------------
    def part_names(self) -> List[str]:
        return list(self._entries)

    def has_part(self, name: str) -> bool:
        return name in self._entries

    def raw(self, name: str) -> bytes:
        """Bytes of *name* as read from the template (never rewritten)."""
        try:
            return self._entries[name]
        except KeyError:
            raise PackageError("Part not found", part=name) from None

    def dom(self, name: str) -> ET._Element:
        """Parsed, mutable root of *name* (cached)."""
        if name not in self._doms:
            try:
                self._doms[name] = parse_xml_bytes(self.raw(name))
            except ET.XMLSyntaxError as exc:
                raise PackageError(f"Malformed XML: {exc}", part=name, cause=exc) from exc
        return self._doms[name]

    def max_attribute_value(self, part: str, local_name: str, attr_name: str) -> int:
        """Highest integer *attr_name* on *local_name* elements in the untouched part."""
        if part not in self._original_doms:
            self._original_doms[part] = parse_xml_bytes(self.raw(part))
        values = self._original_doms[part].xpath(
            "//*[local-name() = $tag]/@*[local-name() = $attr]", tag=local_name, attr=attr_name
        )
        numbers = [int(v) for v in values if str(v).isdigit()]
        return max(numbers, default=0)

    # ------------------------------------------------------------------
    # Relationships
    # ------------------------------------------------------------------
    @staticmethod
    def rels_part_name(part: str) -> str:
        directory, base = posixpath.split(part)
        return posixpath.join(directory, "_rels", f"{base}.rels")

    def _relationships(self, part: str) -> ET._Element:
        rels_name = self.rels_part_name(part)
        if not self.has_part(rels_name):
            self._entries[rels_name] = b""
            self._doms[rels_name] = ET.Element(f"{{{REL_NS}}}Relationships", nsmap={None: REL_NS})
        return self.dom(rels_name)

    def _require_part(self, part: Optional[str]) -> str:
        if part is None:
            raise PackageError("No current part selected")
        return part

    def find_relationship_by(self, attr_name: str, value: str, part: Optional[str] = None) -> Optional[ET._Element]:
        rels = self._relationships(self._require_part(part or self.current_part))
        for relationship in rels:
            if relationship.get(attr_name) == value:
                return relationship
        return None

    def add_relationship(self, attributes: Mapping[str, str], part: Optional[str] = None) -> str:
        """Add a relationship to *part* (default: the current part) and return its id."""
        rels = self._relationships(self._require_part(part or self.current_part))
        numbers = [int(m.group(1)) for m in (_RID_RE.match(r.get("Id", "")) for r in rels) if m]
        rid = f"rId{max(numbers, default=0) + 1}"
        relationship = ET.SubElement(rels, f"{{{REL_NS}}}Relationship")
        relationship.set("Id", rid)
        for key, value in attributes.items():
            if key != "Id":
                relationship.set(key, str(value))
        return rid

    # ------------------------------------------------------------------
    # Media
    # ------------------------------------------------------------------
    def _unique_media_name(self, name: str) -> str:
        stem, ext = posixpath.splitext(posixpath.basename(name) or "image.png")
        candidate = f"{stem}{ext}"
        counter = 1
        while self.has_part(f"word/media/{candidate}"):
            candidate = f"{stem}_{counter}{ext}"
            counter += 1
        return candidate

    def _ensure_default_content_type(self, extension: str) -> None:
        if not extension or not self.has_part(CONTENT_TYPES_PART):
            return
        types = self.dom(CONTENT_TYPES_PART)
        for default in types.iter(f"{{{CT_NS}}}Default"):
            if default.get("Extension", "").lower() == extension.lower():
                return
        content_type = mimetypes.guess_type(f"file.{extension}")[0] or "application/octet-stream"
        default = ET.Element(f"{{{CT_NS}}}Default", Extension=extension, ContentType=content_type)
        types.insert(0, default)

    def add_media(self, name: str, data: bytes, rel_attributes: Mapping[str, str]) -> str:
        """Store *data* under ``word/media`` and relate it to the current part."""
        part = self._require_part(self.current_part)
        media_name = self._unique_media_name(name)
        media_part = f"word/media/{media_name}"
        self._entries[media_part] = data
        self._ensure_default_content_type(posixpath.splitext(media_name)[1].lstrip("."))
        target = posixpath.relpath(media_part, posixpath.dirname(part) or ".")
        rid = self.add_relationship({**rel_attributes, "Target": target}, part)
        logger.debug("Added media %s to %s as %s", media_part, part, rid)
        return rid

    # ------------------------------------------------------------------
    # New parts
    # ------------------------------------------------------------------
    def add_part(self, name: str, root: ET._Element, content_type: str, rel_type: str, source_part: str) -> str:
        """Add the XML part *name* and relate it to *source_part*; return the relationship id."""
        if self.has_part(name):
            raise PackageError("Part already exists", part=name)
        self._entries[name] = b""
        self._doms[name] = root
        if self.has_part(CONTENT_TYPES_PART):
            override = ET.SubElement(self.dom(CONTENT_TYPES_PART), f"{{{CT_NS}}}Override")
            override.set("PartName", f"/{name}")
            override.set("ContentType", content_type)
        target = posixpath.relpath(name, posixpath.dirname(source_part) or ".")
        rid = self.add_relationship({"Type": rel_type, "Target": target}, source_part)
        logger.debug("Added part %s to %s as %s", name, source_part, rid)
        return rid
