# -*- coding: utf-8 -*-
"""Application version detection utilities.

Provides a single public function, ``get_app_version()``, used by the CLI's
``--version`` flag.
"""

from __future__ import annotations

from importlib import metadata
from typing import Optional

_CACHED_VERSION: Optional[str] = None


def get_app_version() -> str:
    """Return the application version string (e.g., ``v1.2.3``).

    Installed package: read the distribution metadata.
    Source checkout without installation: return "vdev".
    """
    global _CACHED_VERSION
    if _CACHED_VERSION:
        return _CACHED_VERSION

    try:
        text = metadata.version("docx-template-toolkit")
    except metadata.PackageNotFoundError:
        text = ""

    _CACHED_VERSION = (text if text.startswith("v") else f"v{text}") if text else "vdev"
    return _CACHED_VERSION
