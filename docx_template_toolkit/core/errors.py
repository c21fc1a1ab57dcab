from __future__ import annotations

"""Template rendering exception classes.

Every fatal condition raised while rendering a template derives from
:class:`TemplateError` so callers can abort a render with a single handler.
Absent values are never errors: statements treat ``None`` according to their
own policy instead of raising.
"""

from typing import Any, Optional

__all__ = [
    "TemplateError",
    "ContextError",
    "UnknownContentTypeError",
    "TemplateSyntaxError",
    "UnknownOperatorError",
    "PackageError",
]


class TemplateError(Exception):
    """Base exception for all template rendering errors.

    Carries the textual form of the offending expression (when known) so the
    message points the template author at the directive to fix.
    """

    def __init__(self, message: str, expression: Optional[str] = None,
                 cause: Optional[Exception] = None) -> None:
        super().__init__(message)
        self.expression = expression
        self.cause = cause

    def __str__(self) -> str:
        if self.expression:
            return f"[Directive: {self.expression}] {super().__str__()}"
        return super().__str__()


class ContextError(TemplateError):
    """Raised when the data context cannot satisfy a directive.

    The typical case is a loop whose source expression evaluates to something
    that is neither ``None`` nor iterable.
    """

    def __init__(self, message: str, expression: Optional[str] = None,
                 value: Any = None, cause: Optional[Exception] = None) -> None:
        super().__init__(message, expression, cause)
        self.value = value


class UnknownContentTypeError(ContextError):
    """Raised when a ``kind:name`` context key names an unregistered kind."""

    def __init__(self, kind: str, available_kinds: Optional[list[str]] = None) -> None:
        self.kind = kind
        self.available_kinds = available_kinds or []
        kinds_str = ", ".join(self.available_kinds) or "none"
        super().__init__(f"Unknown content type '{kind}'. Registered types: {kinds_str}")


class TemplateSyntaxError(TemplateError):
    """Raised when a directive or one of its operands is malformed.

    Includes unbalanced operand quoting and block directives whose end
    marker cannot be found.
    """
    pass


class UnknownOperatorError(TemplateSyntaxError):
    """Raised when a comparison condition uses an unsupported operator."""

    def __init__(self, operator: str, expression: Optional[str] = None,
                 supported: Optional[list[str]] = None) -> None:
        self.operator = operator
        self.supported = supported or []
        message = f"Unknown operator: {operator}"
        if self.supported:
            message = f"{message} (supported: {', '.join(self.supported)})"
        super().__init__(message, expression)


class PackageError(TemplateError):
    """Raised when the DOCX container cannot be read or written."""

    def __init__(self, message: str, part: Optional[str] = None,
                 cause: Optional[Exception] = None) -> None:
        super().__init__(message, cause=cause)
        self.part = part

    def __str__(self) -> str:
        if self.part:
            return f"[Part: {self.part}] {Exception.__str__(self)}"
        return super().__str__()
