from unittest.mock import Mock

import pytest
import requests
from docx.oxml.ns import qn

from docx_template_toolkit.core import content as content_module
from docx_template_toolkit.core.content import (
    Content,
    HTMLContent,
    ImageContent,
    StringContent,
    WordMLContent,
    register_image,
)
from docx_template_toolkit.core.errors import ContextError, UnknownContentTypeError
from docx_template_toolkit.core.parser.fields import scan_fields


class TestContentRegistry:
    """Test cases for Content.make / Content.wrap."""

    def test_make_known_kinds(self):
        assert isinstance(Content.make("html", "<p>x</p>"), HTMLContent)
        assert isinstance(Content.make("word_ml", "<w:r/>"), WordMLContent)
        assert Content.make("string", 12) == StringContent("12")

    def test_make_unknown_kind(self):
        with pytest.raises(UnknownContentTypeError) as exc_info:
            Content.make("video", "x")
        assert exc_info.value.available_kinds == ["html", "image", "string", "word_ml"]

    def test_wrap(self):
        html = HTMLContent("<p>x</p>")
        assert Content.wrap(html) is html
        assert Content.wrap(3.5) == StringContent("3.5")


class TestImageContentBuild:
    """Test cases for the accepted image sources."""

    def test_from_bytes_uses_natural_size(self, png_bytes):
        image = ImageContent.build(png_bytes)
        assert image.name == "image.png"
        assert (image.width, image.height) == (914400, 457200)
        assert image.explicit_size is False
        assert image.mime_type == "image/png"

    def test_explicit_width_keeps_aspect_ratio(self, png_bytes):
        image = ImageContent(png_bytes, "logo.png", width="2in")
        assert (image.width, image.height) == (1828800, 914400)
        assert image.explicit_size is True

    def test_from_mapping(self, png_bytes):
        image = ImageContent.build({"data": png_bytes, "filename": "logo.png", "width": "1in", "height": "1in"})
        assert image.name == "logo.png"
        assert (image.width, image.height) == (914400, 914400)

    def test_mapping_without_source(self):
        with pytest.raises(ContextError):
            ImageContent.build({"width": "1in"})

    def test_from_path(self, tmp_path, png_bytes):
        path = tmp_path / "chart.png"
        path.write_bytes(png_bytes)
        image = ImageContent.build(str(path))
        assert image.name == "chart.png"
        assert image.data == png_bytes

    def test_missing_path(self, tmp_path):
        with pytest.raises(ContextError):
            ImageContent.build(tmp_path / "missing.png")

    def test_from_url(self, monkeypatch, png_bytes):
        response = Mock(content=png_bytes, headers={"content-type": "image/png"})
        get = Mock(return_value=response)
        monkeypatch.setattr(content_module.requests, "get", get)

        image = ImageContent.build("https://example.com/images/logo")

        assert image.name == "logo.png"
        assert image.data == png_bytes
        assert get.call_args.kwargs["timeout"] == 10

    def test_download_failure(self, monkeypatch):
        monkeypatch.setattr(content_module.requests, "get",
                            Mock(side_effect=requests.ConnectionError("boom")))
        with pytest.raises(ContextError):
            ImageContent.build("https://example.com/logo.png")

    def test_unreadable_payload_uses_fallback_size(self):
        image = ImageContent(b"not an image", "blob.bin")
        assert (image.width, image.height) == (914400, 914400)

    def test_unsupported_value(self):
        with pytest.raises(ContextError):
            ImageContent.build(42)


class TestAppendTo:
    """Test cases for inserting content in place of a field."""

    def test_word_ml_inline(self, wordml, make_env):
        root = wordml.root(wordml.paragraph(wordml.run("a"), wordml.field("=x")))
        [merge_field] = scan_fields(root)
        WordMLContent('<w:r><w:t>B</w:t></w:r>').append_to(merge_field, make_env())
        assert wordml.paragraph_texts(root) == ["aB"]

    def test_word_ml_block(self, wordml, make_env):
        root = wordml.root(wordml.field_paragraph("=x"))
        [merge_field] = scan_fields(root)
        WordMLContent(wordml.text_paragraph("P1") + wordml.text_paragraph("P2")).append_to(merge_field, make_env())
        assert wordml.paragraph_texts(root) == ["P1", "P2"]

    def test_html(self, wordml, make_env):
        root = wordml.root(wordml.field_paragraph("=x"))
        [merge_field] = scan_fields(root)
        HTMLContent("<h1>T</h1><p>body</p>").append_to(merge_field, make_env())
        assert wordml.paragraph_texts(root) == ["T", "body"]

    def test_image_insertion(self, wordml, make_package, make_env, png_bytes):
        package = make_package(wordml.paragraph(wordml.drawing(docpr_id=5), wordml.field("=logo")))
        root = package.dom("word/document.xml")
        [merge_field] = scan_fields(root)
        image = ImageContent(png_bytes, "logo.png")

        image.append_to(merge_field, make_env(document=package))

        doc_prs = list(root.iter(qn("wp:docPr")))
        assert [d.get("id") for d in doc_prs] == ["5", "6"]
        assert [c.get("id") for c in root.iter(qn("pic:cNvPr"))] == ["5", "6"]
        blips = list(root.iter(qn("a:blip")))
        assert blips[1].get(qn("r:embed")) == image.local_rid
        assert next(root.iter(qn("wp:extent"))).get("cx") == "100"
        assert list(root.iter(qn("wp:extent")))[1].get("cx") == "914400"


class TestRegisterImage:
    """Test cases for per-part relationship bookkeeping."""

    def test_embeds_once_and_reuses_across_parts(self, make_package, make_env, png_bytes):
        package = make_package("", headers={"word/header1.xml": ""})
        env = make_env(document=package)
        image = ImageContent(png_bytes, "logo.png")

        main_rid = register_image(env, image)
        assert register_image(env, image) == main_rid

        package.current_part = "word/header1.xml"
        header_rid = register_image(env, image)

        assert image.rid_by_part == {"word/document.xml": main_rid, "word/header1.xml": header_rid}
        assert image.local_rid == header_rid
        media = [name for name in package.part_names() if name.startswith("word/media/")]
        assert media == ["word/media/logo.png"]
        header_rel = package.find_relationship_by("Id", header_rid)
        assert header_rel.get("Target") == "media/logo.png"

    def test_reset_relationships(self, png_bytes):
        image = ImageContent(png_bytes)
        image.rid_by_part["word/document.xml"] = "rId3"
        image.local_rid = "rId3"
        image.reset_relationships()
        assert image.rid_by_part == {}
        assert image.local_rid is None
