from __future__ import annotations

"""Evaluation scope threaded through statement evaluation."""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional, TYPE_CHECKING

from .numbering import Numbering
from .renumbering import IdCounter

if TYPE_CHECKING:
    from .package import DocxPackage

__all__ = ["Environment", "RenderState"]


@dataclass
class RenderState:
    """Mutable bookkeeping owned by exactly one render."""

    id_counter: IdCounter = field(default_factory=IdCounter)
    numbering: Numbering = field(default_factory=Numbering)


@dataclass(frozen=True)
class Environment:
    """Immutable snapshot of the data context and the owning document.

    Loop iterations derive child environments with :meth:`alter_context`;
    the parent is never mutated. :attr:`current_part` is the exception: it
    is read live from :attr:`document`, which the renderer points at each
    part in turn.
    """

    document: Optional["DocxPackage"]
    context: Dict[str, Any] = field(default_factory=dict)
    state: RenderState = field(default_factory=RenderState)

    @property
    def current_part(self) -> Optional[str]:
        return self.document.current_part if self.document is not None else None

    def alter_context(self, name: str, value: Any) -> "Environment":
        """Return a new environment with *name* bound to *value*."""
        return replace(self, context={**self.context, name: value})
