from types import SimpleNamespace

import pytest

from docx_template_toolkit.core.content import HTMLContent, ImageContent, StringContent, WordMLContent
from docx_template_toolkit.core.context import normalize_context, values_of
from docx_template_toolkit.core.errors import UnknownContentTypeError


class TestNormalizeContext:
    """Test cases for normalize_context."""

    def test_tagged_keys_become_content(self):
        context = normalize_context({"html:intro": "<p>Hi</p>", "string:title": "Report"})
        assert set(context) == {"intro", "title"}
        assert isinstance(context["intro"], HTMLContent)
        assert context["intro"].html == "<p>Hi</p>"
        assert context["title"] == StringContent("Report")

    def test_plain_values_are_kept(self):
        context = normalize_context({"name": "Ada", "age": 36, "flags": [True, False]})
        assert context == {"name": "Ada", "age": 36, "flags": [True, False]}

    def test_nested_mappings_and_lists(self):
        context = normalize_context({
            "letter": {"word_ml:signature": "<w:r><w:t>Sig</w:t></w:r>"},
            "items": [{"html:body": "<b>x</b>"}, "plain"],
        })
        assert isinstance(context["letter"]["signature"], WordMLContent)
        assert isinstance(context["items"][0]["body"], HTMLContent)
        assert context["items"][1] == "plain"

    def test_tagged_key_with_none_value(self):
        assert normalize_context({"image:logo": None}) == {"logo": None}

    def test_unknown_kind_raises(self):
        with pytest.raises(UnknownContentTypeError) as exc_info:
            normalize_context({"video:clip": "movie.mp4"})
        assert exc_info.value.kind == "video"
        assert "html" in exc_info.value.available_kinds

    def test_idempotent(self):
        once = normalize_context({"html:intro": "<p>Hi</p>", "nested": {"string:a": "b"}})
        twice = normalize_context(once)
        assert twice["intro"] is once["intro"]
        assert twice["nested"]["a"] is once["nested"]["a"]
        assert set(twice) == set(once)

    def test_absent_value_with_colon_in_name_is_stripped_again(self):
        once = normalize_context({"html:a:b": None})
        assert once == {"a:b": None}
        assert normalize_context(once) == {"b": None}

    def test_keys_are_stringified(self):
        assert normalize_context({1: "one"}) == {"1": "one"}


class TestValuesOf:
    """Test cases for values_of."""

    def test_collects_nested_instances(self, png_bytes):
        first = ImageContent(png_bytes, "a.png")
        second = ImageContent(png_bytes, "b.png")
        context = {"logo": first, "sections": [{"picture": second}, {"picture": None}], "title": "x"}
        assert values_of(context, ImageContent) == [first, second]

    def test_namespace_is_searched(self, png_bytes):
        image = ImageContent(png_bytes)
        assert values_of({"ns": SimpleNamespace(logo=image)}, ImageContent) == [image]

    def test_strings_are_not_descended(self):
        assert values_of({"name": "Ada"}, str) == ["Ada"]

    def test_falls_back_to_key_for_none_or_false(self):
        assert values_of({"enabled": False, "label": None}, str) == ["enabled", "label"]

    def test_tuple_definition(self):
        result = values_of({"a": 1, "b": 2.5, "c": "x"}, (int, float))
        assert result == [1, 2.5]

    def test_none_context(self):
        assert values_of(None, ImageContent) == []
