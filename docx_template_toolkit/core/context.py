from __future__ import annotations

"""Normalisation of user supplied render arguments.

A context represents the data a template is rendered with. The functions in
this module turn a free-form mapping into the structure the statements
expect: nested mappings are normalised recursively and ``kind:name`` keys
are replaced by ``name`` bound to typed :class:`Content`.

Example::

    >>> normalize_context({"html:intro": "<p>Hi</p>", "items": [{"n": 1}]})
    {'intro': HTMLContent('<p>Hi</p>'), 'items': [{'n': 1}]}
"""

import functools
import logging
import re
from collections.abc import Iterable, Mapping
from types import SimpleNamespace
from typing import Any, Dict, Optional, Pattern, Tuple, Type, Union

from docx_template_toolkit.config import ConfigManager

from .content import Content

logger = logging.getLogger(__name__)

__all__ = ["normalize_context", "values_of"]

_DEFAULT_CONTENT_KEY_PATTERN = r"^([^:]+):(.+)$"


@functools.lru_cache(maxsize=8)
def _compile(pattern: str) -> Pattern[str]:
    return re.compile(pattern, re.DOTALL)


def _content_key_pattern() -> Pattern[str]:
    pattern = ConfigManager().get_template_config().get("content_key_pattern") or _DEFAULT_CONTENT_KEY_PATTERN
    return _compile(pattern)


def normalize_context(raw: Mapping, pattern: Optional[Pattern[str]] = None) -> Dict[str, Any]:
    """Return the normalised form of *raw*.

    Normalising an already normalised context returns an equal context,
    except for a ``None`` value whose remaining name still matches the
    ``kind:name`` pattern: ``{"html:a:b": None}`` becomes ``{"a:b": None}``,
    which a second pass turns into ``{"b": None}``.
    """
    pattern = pattern or _content_key_pattern()
    return dict(_transform_pair(str(key), value, pattern) for key, value in raw.items())


def _transform_standard_key(key: str, value: Any, pattern: Pattern[str]) -> Tuple[str, Any]:
    if isinstance(value, Mapping):
        return key, normalize_context(value, pattern)
    if isinstance(value, list):
        return key, [normalize_context(v, pattern) if isinstance(v, Mapping) else v for v in value]
    return key, value


def _transform_pair(key: str, value: Any, pattern: Pattern[str]) -> Tuple[str, Any]:
    if isinstance(value, Content):
        return key, value

    match = pattern.match(key)
    if match:
        if value is None:
            return match.group(2), None
        return match.group(2), Content.make(match.group(1), value)
    return _transform_standard_key(key, value, pattern)


def values_of(context: Any, definition: Union[Type, Tuple[Type, ...]]) -> list:
    """Collect every value in *context* that is an instance of *definition*.

    Matching values are not descended into. Mappings (and namespaces) are
    searched through their values, falling back to the key when the value is
    ``None``/``False``; other non-string iterables through their items.
    """
    result: list = []

    if isinstance(context, definition):
        result.append(context)
    elif context is not None:
        if isinstance(context, SimpleNamespace):
            context = vars(context)
        if isinstance(context, Mapping):
            for key, value in context.items():
                target = key if value is None or value is False else value
                result.extend(values_of(target, definition))
        elif isinstance(context, Iterable) and not isinstance(context, (str, bytes, bytearray)):
            for item in context:
                result.extend(values_of(item, definition))

    return [value for value in result if value is not None]
