"""Top-level package of docx_template_toolkit.

Front-ends (CLI, services) should only depend on the public API exposed here
rather than importing internal modules directly.
"""

from .core.context import normalize_context, values_of  # noqa: F401
from .core.content import Content, HTMLContent, ImageContent, StringContent, WordMLContent  # noqa: F401
from .core.environment import Environment  # noqa: F401
from .core.errors import ContextError, TemplateError, TemplateSyntaxError  # noqa: F401
from .core.template import Template  # re-export for convenience

__all__: list[str] = [
    "Template",
    "Environment",
    "normalize_context",
    "values_of",
    "Content",
    "StringContent",
    "WordMLContent",
    "HTMLContent",
    "ImageContent",
    "TemplateError",
    "ContextError",
    "TemplateSyntaxError",
]
