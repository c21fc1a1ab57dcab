"""Configuration files (YAML) and the :class:`ConfigManager` that reads them.

Packaged defaults live next to this module and may be overridden per user.
"""

from .manager import ConfigManager

__all__ = [
    "ConfigManager",
]
