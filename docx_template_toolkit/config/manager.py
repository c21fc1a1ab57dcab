from __future__ import annotations

"""Configuration loading and access helpers.

This module centralises the declarative rules of the renderer (directive
markers, unique-id element names, image defaults, HTML style maps, logging).
It loads YAML files packaged with *docx_template_toolkit* and optionally
merges them with user overrides.

Override directory resolution:
``$DOCX_TEMPLATE_CONFIG_DIR`` when set, else ``~/.docx_template_toolkit``.
"""

import importlib.resources as pkg_resources
import logging
import os
from pathlib import Path
from typing import Any, Dict

import yaml

logger = logging.getLogger(__name__)

__all__ = ["ConfigManager"]


def _get_user_config_dir() -> Path:
    """Get the user configuration directory."""
    env_dir = os.environ.get("DOCX_TEMPLATE_CONFIG_DIR")
    if env_dir:
        return Path(env_dir)
    return Path.home() / ".docx_template_toolkit"


def _deep_merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Return *base* updated with *overrides*, merging nested mappings."""
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class _Singleton(type):
    _instance: "ConfigManager" | None = None

    def __call__(cls, *args, **kwargs):  # type: ignore[no-self-use]
        if cls._instance is None:
            cls._instance = super().__call__(*args, **kwargs)
        return cls._instance


class ConfigManager(metaclass=_Singleton):
    """Lazy-loads and exposes configuration sections as dictionaries."""

    _DEFAULT_FILENAMES = {
        "template": "template.yml",
        "logging": "logging.yml",
    }

    def __init__(self) -> None:
        self._data: Dict[str, Dict[str, Any]] = {}
        self._ensure_loaded()

    @classmethod
    def reset(cls) -> None:
        """Forget the cached instance so the next call reloads from disk."""
        cls._instance = None

    # Section accessors
    def get_template_config(self) -> Dict[str, Any]:
        return self._data.get("template", {})

    def get_logging_config(self) -> Dict[str, Any]:
        return self._data.get("logging", {})

    def get_directive_config(self) -> Dict[str, Any]:
        return self.get_template_config().get("directives", {})

    def get_unique_id_tags(self) -> list[str]:
        return list(self.get_template_config().get("unique_id_tags", []))

    def get_image_config(self) -> Dict[str, Any]:
        return self.get_template_config().get("images", {})

    def get_html_config(self) -> Dict[str, Any]:
        return self.get_template_config().get("html", {})

    def get_parts_config(self) -> Dict[str, Any]:
        return self.get_template_config().get("parts", {})

    # Loading
    def _ensure_loaded(self) -> None:
        if self._data:
            return

        user_dir = _get_user_config_dir()
        statuses = []
        for section, filename in self._DEFAULT_FILENAMES.items():
            values, status = self._load_section(section, filename, user_dir / filename)
            self._data[section] = values
            statuses.append(f"{section}={status}")
        logger.debug("Configuration sections: %s", ", ".join(statuses))

    @staticmethod
    def _load_section(section: str, filename: str, user_path: Path) -> tuple[Dict[str, Any], str]:
        """Read the packaged *filename* and deep-merge *user_path* on top of it."""
        values: Dict[str, Any] = {}
        try:
            text = pkg_resources.files(__package__).joinpath(filename).read_text(encoding="utf-8")
            values = yaml.safe_load(text) or {}
            status = "packaged"
        except OSError:
            logger.error("Packaged %s configuration %s not found", section, filename)
            status = "missing"
        except yaml.YAMLError as exc:
            logger.error("Packaged %s configuration %s is not valid YAML: %s", section, filename, exc)
            status = "invalid"

        if not user_path.is_file():
            return values, status
        try:
            overrides = yaml.safe_load(user_path.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as exc:
            logger.error("Ignoring unreadable override file %s: %s", user_path, exc)
            return values, status
        if not isinstance(overrides, dict):
            logger.error("Ignoring override file %s: top level must be a mapping", user_path)
            return values, status
        return _deep_merge(values, overrides), f"{status}+user"
