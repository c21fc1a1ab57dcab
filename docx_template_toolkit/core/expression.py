from __future__ import annotations

"""Expression language used inside merge-field directives.

An operand such as ``customer.address.city`` is parsed once into an
immutable expression node and evaluated against a context (a mapping or an
:class:`~docx_template_toolkit.core.environment.Environment`) as often as
needed. Evaluation never raises for missing data: unknown names and members
evaluate to ``None``.

Member access on non-mapping values goes through an explicit allow-list
(see :func:`access_member`); arbitrary attribute reflection is not used.
"""

import dataclasses
import logging
import re
from collections.abc import Mapping, Sequence
from typing import Any, Callable, Dict, Optional, Union

from .errors import TemplateSyntaxError

logger = logging.getLogger(__name__)

__all__ = [
    "Variable",
    "LookupOrMethodCall",
    "parse_expression",
    "parse_operand",
    "access_member",
]

_INTEGER_RE = re.compile(r"^\d+$")
_DECIMAL_RE = re.compile(r"^\d+\.\d+$")
_QUOTES = ('"', "'")


# ---------------------------------------------------------------------------
# Member access allow-lists
# ---------------------------------------------------------------------------

def _first(value):
    return value[0] if value else None


def _last(value):
    return value[-1] if value else None


_SEQUENCE_MEMBERS: Dict[str, Callable[[Any], Any]] = {
    "size": len,
    "length": len,
    "count": len,
    "first": _first,
    "last": _last,
    "any": lambda v: len(v) > 0,
    "empty": lambda v: len(v) == 0,
    "present": lambda v: len(v) > 0,
    "blank": lambda v: len(v) == 0,
}

_STRING_MEMBERS: Dict[str, Callable[[str], Any]] = {
    "upper": str.upper,
    "lower": str.lower,
    "strip": str.strip,
    "title": str.title,
    "capitalize": str.capitalize,
    "size": len,
    "length": len,
    "empty": lambda s: len(s) == 0,
    "any": lambda s: len(s) > 0,
    "blank": lambda s: not s.strip(),
    "present": lambda s: bool(s.strip()),
}

_MAPPING_MEMBERS: Dict[str, Callable[[Mapping], Any]] = {
    "size": len,
    "length": len,
    "count": len,
    "keys": lambda m: list(m.keys()),
    "values": lambda m: list(m.values()),
    "any": lambda m: len(m) > 0,
    "empty": lambda m: len(m) == 0,
}

_NUMBER_MEMBERS: Dict[str, Callable[[Any], Any]] = {
    "abs": abs,
    "zero": lambda n: n == 0,
    "positive": lambda n: n > 0,
    "negative": lambda n: n < 0,
    "round": round,
}


def access_member(value: Any, name: str, predicate: bool = False) -> Any:
    """Resolve member *name* on *value* without side effects.

    Resolution order:

    * mappings: key lookup; with *predicate* a missing key falls back to the
      mapping allow-list (``size``, ``keys``…);
    * values defining ``template_member(name)``: delegated to that method;
    * dataclasses and named tuples: their declared fields;
    * strings, sequences and numbers: the matching allow-list, plus integer
      indexing for sequences (``items.0``).

    Returns ``None`` when the member is unknown. A trailing ``?`` is ignored
    so predicate names such as ``any?`` read naturally in templates.
    """
    if value is None:
        return None
    name = name[:-1] if name.endswith("?") else name

    if isinstance(value, Mapping):
        if name in value or not predicate:
            return value.get(name)
        accessor = _MAPPING_MEMBERS.get(name)
        return accessor(value) if accessor else None

    hook = getattr(type(value), "template_member", None)
    if callable(hook):
        return hook(value, name)

    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        if name in {f.name for f in dataclasses.fields(value)}:
            return getattr(value, name)
        return None

    if isinstance(value, tuple) and hasattr(value, "_fields"):
        if name in value._fields:
            return getattr(value, name)

    if isinstance(value, str):
        accessor = _STRING_MEMBERS.get(name)
        return accessor(value) if accessor else None

    if isinstance(value, Sequence):
        if _INTEGER_RE.match(name):
            index = int(name)
            return value[index] if index < len(value) else None
        accessor = _SEQUENCE_MEMBERS.get(name)
        return accessor(value) if accessor else None

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        accessor = _NUMBER_MEMBERS.get(name)
        return accessor(value) if accessor else None

    logger.debug("No member '%s' on %s", name, type(value).__name__)
    return None


# ---------------------------------------------------------------------------
# Expression nodes
# ---------------------------------------------------------------------------

def _scope_of(context: Any) -> Mapping:
    if isinstance(context, Mapping):
        return context
    return context.context


@dataclasses.dataclass(frozen=True)
class Variable:
    """Direct reference to a name bound in the context."""

    name: str

    def evaluate(self, context: Any) -> Any:
        return _scope_of(context).get(self.name)

    def __repr__(self) -> str:
        return f"«{self.name}»"


@dataclasses.dataclass(frozen=True)
class LookupOrMethodCall:
    """Receiver expression followed by a dotted chain of member names."""

    receiver_expr: Variable
    expression: str

    def evaluate(self, context: Any) -> Any:
        receiver = self.receiver_expr.evaluate(context)
        if receiver is None:
            return None

        local = receiver
        for member in self.expression.split("."):
            local = access_member(local, member)
        return local

    def __repr__(self) -> str:
        return f"«{self.receiver_expr.name}.{self.expression}»"


Expression = Union[Variable, LookupOrMethodCall]


def parse_expression(expression: str) -> Expression:
    """Parse operand text into an evaluable expression node."""
    expression = expression.strip()
    if "." in expression:
        receiver, chain = expression.split(".", 1)
        return LookupOrMethodCall(Variable(receiver), chain)
    return Variable(expression)


def parse_operand(operand: str, context: Any) -> Optional[Any]:
    """Evaluate a comparison operand, honouring literal syntax.

    Quoted tokens are string literals, ``^\\d+$`` tokens integers and
    ``^\\d+\\.\\d+$`` tokens floats; anything else is evaluated as an
    expression against *context*.
    """
    operand = operand.strip()
    if operand.startswith(_QUOTES):
        if len(operand) < 2 or operand[-1] != operand[0]:
            raise TemplateSyntaxError("Unbalanced quotes in operand", expression=operand)
        return operand[1:-1]
    if _INTEGER_RE.match(operand):
        return int(operand)
    if _DECIMAL_RE.match(operand):
        return float(operand)
    return parse_expression(operand).evaluate(context)
