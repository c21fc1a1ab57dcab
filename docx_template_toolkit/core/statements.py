from __future__ import annotations

"""Statements interpreting directives against an :class:`Environment`.

Each statement bundles the parsed directive operands with the block (or
field) it controls; :meth:`Statement.evaluate` rewrites that region in place.
"""

import logging
import operator as _operator
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from docx_template_toolkit.config import ConfigManager

from .block import Block
from .content import Content, ImageContent, register_image
from .environment import Environment
from .errors import ContextError, UnknownOperatorError
from .expression import Expression, access_member, parse_operand
from .parser.fields import MergeField
from .renumbering import renumber_unique_ids

logger = logging.getLogger(__name__)

__all__ = [
    "Statement",
    "Insertion",
    "Loop",
    "Branch",
    "Condition",
    "ExpressiveCondition",
    "Comment",
    "Image",
    "ARRAY_OPERATIONS",
]

ARRAY_OPERATIONS = ("includes", "excludes")

_OPERATIONS: Dict[str, Callable[[Any, Any], Any]] = {
    "==": _operator.eq,
    "!=": _operator.ne,
    "<": _operator.lt,
    ">": _operator.gt,
    "<=": _operator.le,
    ">=": _operator.ge,
    "includes": lambda left, right: isinstance(left, (list, tuple)) and right in left,
    "excludes": lambda left, right: isinstance(left, (list, tuple)) and right not in left,
}


def _is_absent(value: Any) -> bool:
    return value is None or value is False


def truthy(value: Any) -> bool:
    if isinstance(value, (list, tuple)):
        return len(value) > 0
    return bool(value)


class Statement(ABC):
    @abstractmethod
    def evaluate(self, env: Environment) -> None:
        """Rewrite the controlled region according to *env*."""


@dataclass
class Insertion(Statement):
    expr: Expression
    field: MergeField

    def evaluate(self, env: Environment) -> None:
        content = self.expr.evaluate(env.context)
        if _is_absent(content):
            self.field.remove()
        else:
            self.field.replace(Content.wrap(content), env)


@dataclass
class Loop(Statement):
    list_expr: Expression
    iterator_name: str
    block: Block
    unique_id_tags: Optional[List[str]] = None

    def __post_init__(self) -> None:
        if self.unique_id_tags is None:
            self.unique_id_tags = ConfigManager().get_unique_id_tags()

    def _as_sequence(self, value: Any) -> list:
        if value is None:
            return []
        to_list = getattr(value, "to_list", None)
        if callable(to_list):
            value = to_list()
        if isinstance(value, Mapping):
            return list(value.items())
        if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
            raise ContextError(
                f"The expression {self.list_expr!r} should evaluate to an enumerable but was: {value!r}",
                expression=repr(self.list_expr),
                value=value,
            )
        return list(value)

    def evaluate(self, env: Environment) -> None:
        items = self._as_sequence(self.list_expr.evaluate(env.context))

        content = []
        for item in items:
            iter_env = env.alter_context(self.iterator_name, item)
            content.extend(self.block.process(iter_env))
        logger.debug("Loop %r produced %d fragment(s) from %d item(s)", self.list_expr, len(content), len(items))

        renumber_unique_ids(env, content, self.unique_id_tags or [])
        self.block.replace(content)


@dataclass
class Branch:
    """One ``if``/``elsif``/``else`` arm of a :class:`Condition`."""

    condition_expr: Optional[Expression]
    block: Block
    predicate: Optional[str] = None

    def value(self, env: Environment) -> Any:
        value = self.condition_expr.evaluate(env.context) if self.condition_expr else None
        if self.predicate:
            value = access_member(value, self.predicate, predicate=True)
        return value


class Condition(Statement):
    """if / elsif chain with an optional trailing else.

    The last branch is the else branch when its block starts with the
    configured else marker (``:else`` by default).
    """

    def __init__(self, conditions: List[Branch], else_marker: Optional[str] = None) -> None:
        self.conditions = list(conditions)
        self.else_block: Optional[Block] = None
        marker = else_marker or ConfigManager().get_directive_config().get("else_marker", ":else")
        if self.conditions and self.conditions[-1].block.start_expression == marker:
            # the else block is always "true", keep it apart
            self.else_block = self.conditions.pop().block

    def evaluate(self, env: Environment) -> None:
        any_true = False
        for branch in self.conditions:
            if any_true:
                branch.block.replace([])
            elif truthy(branch.value(env)):
                branch.block.replace(branch.block.process(env))
                any_true = True
            else:
                branch.block.replace([])

        if self.else_block is None:
            return
        if any_true:
            self.else_block.replace([])
        else:
            self.else_block.replace(self.else_block.process(env))

    def __repr__(self) -> str:
        return f"Condition({self.conditions!r}, else={self.else_block!r})"


@dataclass
class ExpressiveCondition(Statement):
    """Comparison between two operands: ``left:if(op right)``."""

    left_operand: str
    operator: str
    right_operand: str
    block: Block

    def _operation(self) -> Callable[[Any, Any], Any]:
        operation = _OPERATIONS.get(self.operator)
        if operation is None:
            raise UnknownOperatorError(self.operator, expression=self.block.start_expression,
                                       supported=list(_OPERATIONS))
        return operation

    def holds(self, env: Environment) -> bool:
        operation = self._operation()
        left = parse_operand(self.left_operand, env)
        right = parse_operand(self.right_operand, env)

        # single-select inputs still arrive wrapped in a list
        if self.operator not in ARRAY_OPERATIONS:
            if isinstance(left, list) and len(left) == 1:
                left = left[0]
            if isinstance(right, list) and len(right) == 1:
                right = right[0]

        if _is_absent(left) or _is_absent(right):
            return False
        try:
            return bool(operation(left, right))
        except TypeError as exc:
            raise ContextError(
                f"Cannot compare {type(left).__name__} with {type(right).__name__} using '{self.operator}'",
                expression=self.block.start_expression, value=left, cause=exc,
            ) from exc

    def evaluate(self, env: Environment) -> None:
        if self.holds(env):
            self.block.replace(self.block.process(env))
        else:
            self.block.replace([])


@dataclass
class Comment(Statement):
    block: Block

    def evaluate(self, env: Environment) -> None:
        self.block.replace([])


@dataclass
class Image(Statement):
    image_reference: Expression
    block: Block

    def evaluate(self, env: Environment) -> None:
        image = self.image_reference.evaluate(env.context)
        if image is None:
            self.block.remove()
            return
        if not isinstance(image, ImageContent):
            raise ContextError(
                f"The expression {self.image_reference!r} should evaluate to an image but was: {image!r}",
                expression=repr(self.image_reference),
                value=image,
            )

        register_image(env, image)
        fragments = self.block.process(env)
        image.stamp(fragments)
        self.block.replace(fragments)
