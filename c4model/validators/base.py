"""Core validation data structures shared by the model validators."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Protocol, Sequence, Set

from ..models import Component, Diagnostic, Location

if TYPE_CHECKING:  # pragma: no cover - typing aid
    from ..config import ContainerConfig


@dataclass
class RuleViolation:
    """A single business-rule failure in the extracted model."""

    rule: str
    subject: str
    detail: str
    location: Optional[Location] = None

    def __str__(self) -> str:
        where = f" ({self.location})" if self.location else ""
        return f"[{self.rule}] {self.detail}{where}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rule": self.rule,
            "subject": self.subject,
            "detail": self.detail,
            "location": self.location.to_dict() if self.location else None,
        }


class ModelValidationError(RuntimeError):
    """Raised in strict mode when the model breaks one or more rules."""

    def __init__(
        self,
        message: str,
        violations: Sequence[RuleViolation] = (),
        diagnostics: Sequence[Diagnostic] = (),
    ) -> None:
        super().__init__(message)
        self.violations = list(violations)
        self.diagnostics = list(diagnostics)

    def __str__(self) -> str:
        lines = [super().__str__()]
        lines.extend(f"  - {item}" for item in self.diagnostics)
        lines.extend(f"  - {item}" for item in self.violations)
        return "\n".join(lines)


@dataclass
class RuleContext:
    """Components of one scope as seen by the business rules."""

    components: Sequence[Component]


class Rule(Protocol):
    """Protocol implemented by model business rules."""

    name: str

    def validate(self, context: RuleContext) -> List[RuleViolation]:
        """Run the rule and return any violations."""


@dataclass
class ReconcileContext:
    """What, besides components, a relation target may legitimately name.

    ``scopes`` holds the names of sibling containers in a workspace; targets
    under them are trusted here and checked by name at workspace level.
    """

    external: Set[str] = field(default_factory=set)
    relation_targets: Set[str] = field(default_factory=set)
    scopes: Set[str] = field(default_factory=set)

    @classmethod
    def from_config(cls, config: "ContainerConfig", scopes: Iterable[str] = ()) -> "ReconcileContext":
        return cls(
            external=set(config.external),
            relation_targets=config.relation_targets,
            scopes={name for name in scopes if name != config.name},
        )

    def is_trusted(self, target: str) -> bool:
        if target in self.external or target in self.relation_targets:
            return True
        prefix, separator, _ = target.partition(".")
        if not separator:
            return target in self.scopes
        return prefix in self.external or prefix in self.relation_targets or prefix in self.scopes

    def is_declared(self, target: str) -> bool:
        return target in self.external or target in self.relation_targets
