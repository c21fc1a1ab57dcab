# -*- coding: utf-8 -*-

"""
Command-line entry point: render a DOCX template with a JSON context.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from docx_template_toolkit.core.errors import TemplateError
from docx_template_toolkit.core.template import Template
from docx_template_toolkit.logging_config import setup_logging
from docx_template_toolkit.version import get_app_version

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docx-template",
        description="Render a DOCX template with data from a JSON file.",
    )
    parser.add_argument("template", type=Path, help="template .docx file")
    parser.add_argument("context", type=Path, help="JSON file holding the render context")
    parser.add_argument("output", type=Path, help="where to write the rendered .docx")
    parser.add_argument("--start-page", type=int, default=None,
                        help="first page number of the rendered document")
    parser.add_argument("--version", action="version", version=get_app_version())
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Configure logging, read the context and render the template.
    """
    args = build_parser().parse_args(argv)
    setup_logging()

    try:
        context = json.loads(args.context.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        print(f"Cannot read context {args.context}: {exc}", file=sys.stderr)
        return 2

    properties = {}
    if args.start_page is not None:
        properties["start_page_number"] = args.start_page

    try:
        Template(args.template).render_to_file(args.output, context, properties)
    except TemplateError as exc:
        logger.error("Render failed: %s", exc)
        print(f"Render failed: {exc}", file=sys.stderr)
        return 1

    logger.info("Rendered %s -> %s", args.template, args.output)
    return 0


if __name__ == '__main__':
    sys.exit(main())
