from __future__ import annotations

"""Unique-id bookkeeping for content duplicated by loops.

WordprocessingML requires drawing ids (``wp:docPr/@id``, ``pic:cNvPr/@id``)
to be unique within a document part. Copying a loop body N times copies
those ids too, so every copy is renumbered above the highest value present
in the untouched part.
"""

import logging
from typing import Dict, Iterable, Tuple, TYPE_CHECKING

from lxml import etree as ET

if TYPE_CHECKING:
    from .environment import Environment

logger = logging.getLogger(__name__)

__all__ = ["IdCounter", "renumber_unique_ids"]


class IdCounter:
    """Per-render counters, one per (part, element name).

    A counter starts above the baseline read from the part's original markup
    and never hands out a value twice, so two loops in the same part do not
    collide even though both read the same baseline.
    """

    def __init__(self) -> None:
        self._last: Dict[Tuple[str, str], int] = {}

    def next_value(self, part: str, tag_name: str, baseline: int) -> int:
        key = (part, tag_name)
        value = max(self._last.get(key, 0), baseline) + 1
        self._last[key] = value
        return value

    def reset(self) -> None:
        self._last.clear()


def _iter_tagged(fragments: Iterable[ET._Element], tag_name: str):
    for fragment in fragments:
        if not isinstance(fragment.tag, str):
            continue  # comments / processing instructions
        for node in fragment.iter():
            if isinstance(node.tag, str) and ET.QName(node).localname == tag_name:
                yield node


def renumber_unique_ids(env: "Environment", fragments: list[ET._Element],
                        tag_names: Iterable[str], attr_name: str = "id") -> int:
    """Give every *tag_names* element in *fragments* a fresh ``id``.

    Elements are visited in production order; returns the number of
    attributes rewritten.
    """
    part = env.current_part
    updated = 0
    for tag_name in tag_names:
        baseline = env.document.max_attribute_value(part, tag_name, attr_name)
        for node in _iter_tagged(fragments, tag_name):
            node.set(attr_name, str(env.state.id_counter.next_value(part, tag_name, baseline)))
            updated += 1
    if updated:
        logger.debug("Renumbered %d unique ids in %s", updated, part)
    return updated
