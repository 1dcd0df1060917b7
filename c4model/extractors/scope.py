"""Single extraction pass over every class of one analysis scope."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from ..config import GroupPolicy
from ..logging import get_logger
from ..models import Component, Diagnostic
from ..program import ProgramIndex
from ..tags import SchemaError
from .base import ExtractionError, location_for
from .components import ComponentExtractor
from .relations import RelationExtractor

logger = get_logger("extractors")


@dataclass
class ScopeExtraction:
    components: List[Component] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)


def extract_scope(
    program: ProgramIndex,
    groups: Optional[Mapping[str, Any]] = None,
    policy: GroupPolicy = GroupPolicy.PATH,
) -> ScopeExtraction:
    """Extract components and their relations, recovering per declaration.

    A declaration whose annotations are invalid is skipped and recorded as a
    diagnostic; so is a component whose name repeats an earlier one.
    """
    component_extractor = ComponentExtractor(groups=groups, policy=policy)
    relation_extractor = RelationExtractor(parser=component_extractor.parser)
    result = ScopeExtraction(diagnostics=list(program.diagnostics))
    seen: Dict[str, Component] = {}

    for module in program.modules:
        for info in program.classes_in(module):
            try:
                component = component_extractor.extract(info)
            except (ExtractionError, SchemaError) as exc:
                location = getattr(exc, "location", None) or location_for(info, info.node.lineno)
                logger.warning("Skipping %s at %s: %s", info.qualname, location, exc)
                result.diagnostics.append(
                    Diagnostic(location=location, message=str(exc), error=type(exc).__name__)
                )
                continue
            if component is None:
                continue

            if component.name in seen:
                message = (
                    f"Duplicate component name \"{component.name}\" "
                    f"(first declared at {seen[component.name].location})"
                )
                logger.warning("Skipping %s: %s", component.location, message)
                result.diagnostics.append(
                    Diagnostic(location=component.location, message=message, error="DuplicateComponentError")
                )
                continue

            component.relations = relation_extractor.extract(
                info, source=component.name, diagnostics=result.diagnostics
            )
            seen[component.name] = component
            result.components.append(component)

    logger.info(
        "Extracted %d components with %d declared relations (%d diagnostics)",
        len(result.components),
        sum(len(component.relations) for component in result.components),
        len(result.diagnostics),
    )
    return result


__all__ = ["ScopeExtraction", "extract_scope"]
