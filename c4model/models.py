"""Core data models shared across c4model components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

DIRECT_TAG = "DirectRelation"
INDIRECT_TAG = "IndirectRelation"
UNDECLARED_TAG = "UndeclaredRelation"

NO_GROUP = "(no group)"


@dataclass(frozen=True)
class Location:
    """Place in the analysed sources: file, enclosing declaration and line."""

    file: str
    declaration: str
    line: int
    method: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.file}:{self.line}"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"file": self.file, "declaration": self.declaration, "line": self.line}
        if self.method:
            data["method"] = self.method
        return data


@dataclass
class Perspective:
    """Named architectural perspective attached to a component."""

    description: str
    value: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"description": self.description}
        if self.value is not None:
            data["value"] = self.value
        return data


@dataclass
class DeclaredRelation:
    """Relation asserted by an author in a ``@c4Relation`` tag."""

    source: str
    target: str
    description: str
    location: Location
    technology: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    url: Optional[str] = None
    properties: Dict[str, str] = field(default_factory=dict)

    @property
    def key(self) -> Tuple[str, str, str]:
        return (self.source, self.target, self.description)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "target": self.target,
            "description": self.description,
            "technology": self.technology,
            "tags": list(self.tags),
            "url": self.url,
            "properties": dict(self.properties),
            "location": self.location.to_dict(),
        }


@dataclass
class Component:
    """Documented unit of architecture backed by one class declaration."""

    name: str
    description: str
    location: Location
    technology: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    group: Optional[str] = None
    url: Optional[str] = None
    properties: Dict[str, str] = field(default_factory=dict)
    perspectives: Dict[str, Perspective] = field(default_factory=dict)
    relations: List[DeclaredRelation] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.tags = list(dict.fromkeys(self.tags))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "technology": self.technology,
            "tags": list(self.tags),
            "group": self.group,
            "url": self.url,
            "properties": dict(self.properties),
            "perspectives": {name: item.to_dict() for name, item in self.perspectives.items()},
            "location": self.location.to_dict(),
            "relations": [relation.to_dict() for relation in self.relations],
        }


class UsageKind(str, Enum):
    """How one component's code references another component."""

    CONSTRUCTOR = "constructor"
    FIELD = "field"
    METHOD_PARAM = "method-param"
    METHOD_RETURN = "method-return"
    METHOD_CALL = "method-call"


class ReceiverKind(str, Enum):
    """How the receiver of a method call was obtained."""

    FIELD = "field"
    PARAMETER = "parameter"
    LOCAL = "local"
    INSTANCE = "instance"
    CLASS = "class"


@dataclass(frozen=True)
class UsageEvidence:
    """A statically observed reference from one component to another."""

    source: str
    target: str
    kind: UsageKind
    location: Location
    call_chain: Tuple[str, ...] = ()
    receiver: Optional[ReceiverKind] = None

    @property
    def is_direct(self) -> bool:
        if self.kind in (UsageKind.CONSTRUCTOR, UsageKind.FIELD):
            return True
        return self.kind is UsageKind.METHOD_CALL and self.receiver is ReceiverKind.FIELD

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "source": self.source,
            "target": self.target,
            "kind": self.kind.value,
            "location": self.location.to_dict(),
        }
        if self.kind is UsageKind.METHOD_CALL:
            data["callChain"] = list(self.call_chain)
            data["receiver"] = self.receiver.value if self.receiver else None
        return data


class RelationKind(str, Enum):
    DIRECT = "direct"
    INDIRECT = "indirect"


@dataclass(frozen=True)
class Classification:
    """Direct/indirect verdict for a relation, with the evidence that decided it."""

    kind: RelationKind
    evidence: UsageEvidence

    @property
    def tag(self) -> str:
        return DIRECT_TAG if self.kind is RelationKind.DIRECT else INDIRECT_TAG

    @property
    def conflicting_tag(self) -> str:
        return INDIRECT_TAG if self.kind is RelationKind.DIRECT else DIRECT_TAG

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "tag": self.tag, "evidence": self.evidence.to_dict()}


@dataclass
class ValidationResult:
    """Outcome of checking one declared (or synthesised undeclared) relation."""

    relation: DeclaredRelation
    target_exists: bool
    is_used: bool
    usage_location: Optional[Location] = None
    errors: List[str] = field(default_factory=list)
    classification: Optional[Classification] = None
    inferred_tags: Tuple[str, ...] = ()
    undeclared: bool = False

    @property
    def has_problems(self) -> bool:
        return not self.target_exists or not self.is_used or bool(self.errors)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "relation": self.relation.to_dict(),
            "targetExists": self.target_exists,
            "isUsed": self.is_used,
            "usageLocation": self.usage_location.to_dict() if self.usage_location else None,
            "errors": list(self.errors),
            "classification": self.classification.to_dict() if self.classification else None,
            "inferredTags": list(self.inferred_tags),
            "undeclared": self.undeclared,
        }


@dataclass
class GroupNode:
    """Node of the presentation group tree."""

    name: str
    path: str
    components: List[str] = field(default_factory=list)
    subgroups: List["GroupNode"] = field(default_factory=list)

    def child(self, name: str) -> Optional["GroupNode"]:
        return next((node for node in self.subgroups if node.name == name), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "path": self.path,
            "components": list(self.components),
            "subgroups": [node.to_dict() for node in self.subgroups],
        }


@dataclass
class Diagnostic:
    """A declaration that was skipped during extraction, with the reason."""

    location: Location
    message: str
    error: str

    def __str__(self) -> str:
        return f"{self.location}: {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        return {"location": self.location.to_dict(), "message": self.message, "error": self.error}
