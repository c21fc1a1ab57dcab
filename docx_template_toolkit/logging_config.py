from __future__ import annotations

"""Logging set-up for the ``docx-template`` command.

The CLI calls :func:`setup_logging` once before rendering. Code that embeds
:class:`~docx_template_toolkit.core.template.Template` configures logging
itself and should not call it.

Environment variables:

* ``DOCX_TEMPLATE_LOG_DIR``: directory receiving ``render.log`` (``logs``).
* ``DOCX_TEMPLATE_DEBUG``: truthy value switches the package logger to DEBUG.
* ``DOCX_TEMPLATE_DEBUG_MODULES``: comma separated logger names to switch
  to DEBUG individually.
"""

import copy
import logging
import logging.config
import os
from typing import Any, Dict, List

from docx_template_toolkit.config import ConfigManager

__all__ = ["setup_logging"]

LOG_FILE_NAME = "render.log"
_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_TRUTHY = {"1", "true", "yes", "on"}


def setup_logging() -> None:
    """Apply ``logging.yml`` (or a console fallback) plus the debug switches."""
    log_dir = os.environ.get("DOCX_TEMPLATE_LOG_DIR", "logs")
    os.makedirs(log_dir, exist_ok=True)
    log_file = os.path.join(log_dir, LOG_FILE_NAME)

    config = _with_log_file(ConfigManager().get_logging_config(), log_file)
    if config is None:
        _configure_fallback("no usable logging configuration")
    else:
        try:
            logging.config.dictConfig(config)
        except (ValueError, TypeError, AttributeError, ImportError) as exc:
            _configure_fallback(str(exc))
        else:
            logging.getLogger(__name__).debug("Logging configured, file output in %s", log_file)

    for name in _debug_targets():
        _enable_debug(logging.getLogger(name))


def _with_log_file(config: Any, log_file: str) -> Dict[str, Any] | None:
    """Return a copy of *config* whose ``file`` handler writes to *log_file*."""
    if not isinstance(config, dict) or not config.get("version"):
        return None
    config = copy.deepcopy(config)
    file_handler = config.get("handlers", {}).get("file")
    if isinstance(file_handler, dict):
        file_handler["filename"] = log_file
    return config


def _configure_fallback(reason: str) -> None:
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"plain": {"format": _FORMAT}},
        "handlers": {
            "stderr": {"class": "logging.StreamHandler", "formatter": "plain", "level": "INFO"},
        },
        "root": {"level": "INFO", "handlers": ["stderr"]},
    })
    logging.getLogger(__name__).error("Falling back to console logging: %s", reason)


def _debug_targets() -> List[str]:
    targets = []
    if os.environ.get("DOCX_TEMPLATE_DEBUG", "").strip().lower() in _TRUTHY:
        targets.append("docx_template_toolkit")
    modules = os.environ.get("DOCX_TEMPLATE_DEBUG_MODULES", "")
    targets.extend(name.strip() for name in modules.split(",") if name.strip())
    return targets


def _enable_debug(logger: logging.Logger) -> None:
    logger.setLevel(logging.DEBUG)
    # a logger with only WARNING handlers would still drop the records
    if not any(handler.level <= logging.DEBUG for handler in logger.handlers):
        handler = logging.StreamHandler()
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(_FORMAT))
        logger.addHandler(handler)
    logger.debug("Debug output enabled for '%s'", logger.name)
