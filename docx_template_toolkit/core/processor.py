from __future__ import annotations

"""Turns merge fields into statements and evaluates them.

Directive grammar (the text of a MERGEFIELD)::

    =expr                                   insertion
    expr:each(item) … expr:endEach          loop
    expr:if[(pred?)] … expr:elsif[(pred?)] … :else … expr:endIf
    left:if(op right) … left:endIf          comparison
    comment … endComment                    comment
    @expr:start … @expr:end                 image

Unrecognised merge fields are left untouched.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from lxml import etree as ET

from docx_template_toolkit.config import ConfigManager

from .block import Block
from .environment import Environment
from .errors import TemplateSyntaxError
from .expression import parse_expression
from .parser.fields import MergeField, scan_fields
from .statements import (
    Branch,
    Comment,
    Condition,
    ExpressiveCondition,
    Image,
    Insertion,
    Loop,
    Statement,
)

logger = logging.getLogger(__name__)

__all__ = ["Directive", "parse_directive", "DocumentProcessor"]

_IMAGE_START_RE = re.compile(r"^@(?P<expr>.+):start$")
_IMAGE_END_RE = re.compile(r"^@(?P<expr>.+):end$")
_EACH_RE = re.compile(r"^(?P<expr>.+?):each\((?P<arg>[^)]*)\)$")
_END_EACH_RE = re.compile(r"^(?P<expr>.+):endEach$")
_END_IF_RE = re.compile(r"^(?P<expr>.+):endIf$")
_IF_RE = re.compile(r"^(?P<expr>.+?):if(?:\((?P<arg>.*)\))?$", re.DOTALL)
_ELSIF_RE = re.compile(r"^(?P<expr>.+?):elsif(?:\((?P<arg>[^)\s]*)\))?$")
_COMPARISON_RE = re.compile(r"^(?P<op>==|!=|<=|>=|<|>)\s*(?P<right>.+)$", re.DOTALL)

_END_OF = {
    "each": "end_each",
    "if": "end_if",
    "image": "end_image",
    "comment": "end_comment",
}
_END_KINDS = set(_END_OF.values())


@dataclass(frozen=True)
class Directive:
    kind: str
    field: MergeField
    expression: str = ""
    argument: Optional[str] = None


def parse_directive(merge_field: MergeField, config: Optional[Dict[str, Any]] = None) -> Directive:
    """Classify the text of *merge_field* (see module docstring)."""
    config = config if config is not None else ConfigManager().get_directive_config()
    text = merge_field.expression.strip()

    if text.startswith("="):
        return Directive("insertion", merge_field, text[1:].strip())
    if text == config.get("else_marker", ":else"):
        return Directive("else", merge_field)
    if text == config.get("comment_start", "comment"):
        return Directive("comment", merge_field)
    if text == config.get("comment_end", "endComment"):
        return Directive("end_comment", merge_field)

    for kind, pattern in (
        ("image", _IMAGE_START_RE),
        ("end_image", _IMAGE_END_RE),
        ("end_each", _END_EACH_RE),
        ("each", _EACH_RE),
        ("end_if", _END_IF_RE),
        ("elsif", _ELSIF_RE),
        ("if", _IF_RE),
    ):
        match = pattern.match(text)
        if match:
            groups = match.groupdict()
            argument = groups.get("arg")
            return Directive(kind, merge_field, groups["expr"].strip(),
                             argument.strip() if argument is not None else None)

    return Directive("unknown", merge_field, text)


def _split_comparison(argument: Optional[str]) -> Optional[Tuple[str, str]]:
    """Return ``(operator, right operand)`` when *argument* is a comparison."""
    if not argument:
        return None
    match = _COMPARISON_RE.match(argument)
    if match:
        return match.group("op"), match.group("right").strip()
    parts = argument.split(None, 1)
    if len(parts) == 2:
        return parts[0], parts[1].strip()
    return None


class DocumentProcessor:
    """Evaluates every directive below a root element against an environment."""

    def __init__(self, directive_config: Optional[Dict[str, Any]] = None) -> None:
        self.directive_config = (
            directive_config if directive_config is not None else ConfigManager().get_directive_config()
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def process(self, root: ET._Element, env: Environment) -> ET._Element:
        statements = self.build_statements(scan_fields(root))
        logger.debug("Evaluating %d statement(s) in %s", len(statements), env.current_part)
        for statement in statements:
            statement.evaluate(env)
        return root

    def build_statements(self, fields: List[MergeField]) -> List[Statement]:
        directives = [parse_directive(f, self.directive_config) for f in fields]
        statements: List[Statement] = []
        index = 0
        while index < len(directives):
            directive = directives[index]
            if directive.kind == "insertion":
                statements.append(Insertion(parse_expression(directive.expression), directive.field))
                index += 1
            elif directive.kind in _END_OF:
                statement, index = self._build_block_statement(directives, index)
                statements.append(statement)
            elif directive.kind == "unknown":
                logger.warning("Ignoring unrecognised merge field %r", directive.field.expression)
                index += 1
            else:
                raise TemplateSyntaxError("Directive has no matching start directive",
                                          expression=directive.field.expression)
        return statements

    # ------------------------------------------------------------------
    # Block construction
    # ------------------------------------------------------------------
    def _find_block_end(self, directives: List[Directive], start: int) -> Tuple[int, List[int]]:
        """Return the index of the matching end and of same-level elsif/else markers."""
        opening = directives[start]
        wanted = (_END_OF[opening.kind], opening.expression)
        stack: List[Tuple[str, str]] = []
        chain: List[int] = []

        for index in range(start + 1, len(directives)):
            directive = directives[index]
            if directive.kind in _END_OF:
                stack.append((_END_OF[directive.kind], directive.expression))
            elif directive.kind in _END_KINDS:
                closing = (directive.kind, directive.expression)
                if stack and stack[-1] == closing:
                    stack.pop()
                elif not stack and closing == wanted:
                    return index, chain
                else:
                    open_expr = stack[-1][1] if stack else opening.expression
                    raise TemplateSyntaxError(
                        f"Unexpected '{directive.field.expression}' while '{open_expr}' is still open",
                        expression=opening.field.expression,
                    )
            elif directive.kind in ("elsif", "else") and not stack:
                chain.append(index)

        raise TemplateSyntaxError("Block directive has no matching end directive",
                                  expression=opening.field.expression)

    def _build_block_statement(self, directives: List[Directive], start: int) -> Tuple[Statement, int]:
        opening = directives[start]
        end, chain = self._find_block_end(directives, start)

        if chain and opening.kind != "if":
            raise TemplateSyntaxError("elsif/else can only appear inside an if block",
                                      expression=directives[chain[0]].field.expression)

        if opening.kind == "each":
            if not opening.argument:
                raise TemplateSyntaxError("Loop needs an iterator name: list:each(item)",
                                          expression=opening.field.expression)
            block = Block.build(opening.field, directives[end].field, self)
            statement: Statement = Loop(parse_expression(opening.expression), opening.argument, block)
        elif opening.kind == "comment":
            statement = Comment(Block.build(opening.field, directives[end].field, self))
        elif opening.kind == "image":
            block = Block.build(opening.field, directives[end].field, self)
            statement = Image(parse_expression(opening.expression), block)
        else:
            statement = self._build_condition(directives, start, chain, end)
        return statement, end + 1

    def _build_condition(self, directives: List[Directive], start: int,
                         chain: List[int], end: int) -> Statement:
        opening = directives[start]
        comparison = _split_comparison(opening.argument)
        if comparison is not None:
            if chain:
                raise TemplateSyntaxError("elsif/else are not supported after a comparison condition",
                                          expression=opening.field.expression)
            operator, right = comparison
            block = Block.build(opening.field, directives[end].field, self)
            return ExpressiveCondition(opening.expression, operator, right, block)

        for position, index in enumerate(chain):
            if directives[index].kind == "else" and position != len(chain) - 1:
                raise TemplateSyntaxError("else must be the last branch of an if block",
                                          expression=opening.field.expression)

        markers = [start, *chain, end]
        branches = []
        for first, last in zip(markers, markers[1:]):
            directive = directives[first]
            block = Block.build(directive.field, directives[last].field, self)
            condition_expr = parse_expression(directive.expression) if directive.kind != "else" else None
            branches.append(Branch(condition_expr, block, directive.argument or None))
        return Condition(branches, self.directive_config.get("else_marker", ":else"))
