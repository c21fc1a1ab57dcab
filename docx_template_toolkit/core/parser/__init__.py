from __future__ import annotations

"""Word-processing parser helpers.

Currently provides MERGEFIELD discovery used by the directive processor.
"""

from .fields import MergeField, extract_expression, scan_fields  # noqa: F401

__all__: list[str] = [
    "MergeField",
    "scan_fields",
    "extract_expression",
]
