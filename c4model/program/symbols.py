"""Symbol identities and the two strategies for deciding "same component"."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, Iterable, Mapping, Optional, Set, Tuple

from ..logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - typing aid
    from ..models import Component
    from .index import ProgramIndex

logger = get_logger("symbols")


@dataclass(frozen=True, order=True)
class SymbolIdentity:
    """Stable handle to a class declaration, comparable only within one scope."""

    module: str
    qualname: str

    @property
    def name(self) -> str:
        return self.qualname.rsplit(".", 1)[-1]

    def __str__(self) -> str:
        return f"{self.module}:{self.qualname}"


class IdentityResolver:
    """Resolves components to their backing declarations inside one program.

    Two references denote the same component only when their identities are
    equal; display names play no part, so equally named classes in different
    modules never collide.
    """

    mode = "identity"

    def __init__(self, program: "ProgramIndex") -> None:
        self._program = program

    def identity_of(self, component: "Component") -> Optional[SymbolIdentity]:
        return self._program.identity_at(component.location.file, component.location.declaration)

    def build_index(self, components: Iterable["Component"]) -> Dict[SymbolIdentity, "Component"]:
        index: Dict[SymbolIdentity, "Component"] = {}
        for component in components:
            identity = self.identity_of(component)
            if identity is None:
                logger.warning(
                    "Could not resolve declaration of component %s at %s",
                    component.name,
                    component.location,
                )
                continue
            index[identity] = component
        return index

    def same(self, left: Optional[SymbolIdentity], right: Optional[SymbolIdentity]) -> bool:
        return left is not None and left == right


class NameResolver:
    """Cross-scope resolver that matches references by name strings.

    This is the weaker mode: independently analysed scopes share no symbol
    index, so ``container`` and ``container.component`` references can only be
    compared textually. Use it for workspace-level references only.
    """

    mode = "name"

    def __init__(self, scopes: Mapping[str, Iterable[str]]) -> None:
        self._scopes: Dict[str, Set[str]] = {name: set(components) for name, components in scopes.items()}

    @property
    def scope_names(self) -> Set[str]:
        return set(self._scopes)

    def split(self, reference: str) -> Tuple[str, Optional[str]]:
        scope, _, component = reference.partition(".")
        return scope, component or None

    def resolve(self, reference: str) -> Optional[Tuple[str, Optional[str]]]:
        """Return ``(scope, component)`` when the reference names something known."""
        scope, component = self.split(reference)
        if scope not in self._scopes:
            return None
        if component is not None and component not in self._scopes[scope]:
            return None
        return scope, component

    def same(self, left: str, right: str) -> bool:
        return left == right


__all__ = ["IdentityResolver", "NameResolver", "SymbolIdentity"]
