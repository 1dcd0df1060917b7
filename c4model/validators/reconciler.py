"""Reconciles declared relations with the usage observed in code."""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Set, Tuple

from ..logging import get_logger
from ..models import (
    DIRECT_TAG,
    INDIRECT_TAG,
    UNDECLARED_TAG,
    Classification,
    Component,
    DeclaredRelation,
    RelationKind,
    UsageEvidence,
    ValidationResult,
)
from ..usage import UsageIndex
from .base import ReconcileContext

UNDECLARED_DESCRIPTION = "Undeclared relationship"

logger = get_logger("validators.reconciler")


def classify(evidence: Sequence[UsageEvidence]) -> Optional[Classification]:
    """Direct when any evidence is a constructor/field use or a call through a stored field."""
    if not evidence:
        return None
    direct = next((item for item in evidence if item.is_direct), None)
    if direct is not None:
        return Classification(kind=RelationKind.DIRECT, evidence=direct)
    return Classification(kind=RelationKind.INDIRECT, evidence=evidence[0])


class RelationReconciler:
    """Validates declared relations and discovers undeclared ones.

    Tag inference is computed here but not applied; callers pass the results
    to :func:`apply_inferred_tags`.
    """

    def __init__(self, context: Optional[ReconcileContext] = None) -> None:
        self.context = context or ReconcileContext()

    def reconcile(
        self,
        components: Sequence[Component],
        usage: UsageIndex,
        *,
        include_undeclared: bool = True,
    ) -> List[ValidationResult]:
        names = {component.name for component in components}
        results = [
            self.validate_relation(relation, names, usage)
            for component in components
            for relation in component.relations
        ]
        if include_undeclared:
            results.extend(self.discover_undeclared(components, usage))
        problems = sum(1 for result in results if result.has_problems)
        logger.info("Reconciled %d relations (%d with problems)", len(results), problems)
        return results

    def validate_relation(
        self, relation: DeclaredRelation, names: Set[str], usage: UsageIndex
    ) -> ValidationResult:
        source, target = relation.source, relation.target
        errors: List[str] = []
        tags = set(relation.tags)
        both_tags = DIRECT_TAG in tags and INDIRECT_TAG in tags
        if both_tags:
            errors.append(f"Relationship from \"{source}\" to \"{target}\" cannot be both direct and indirect")

        if source not in names:
            errors.append(f"Source component \"{source}\" does not exist")
            return ValidationResult(
                relation=relation,
                target_exists=target in names or self.context.is_declared(target),
                is_used=False,
                errors=errors,
            )

        if self.context.is_trusted(target):
            return ValidationResult(relation=relation, target_exists=True, is_used=True, errors=errors)

        if target not in names:
            errors.append(f"Relationship from \"{source}\" to \"{target}\": target does not exist")
            return ValidationResult(relation=relation, target_exists=False, is_used=False, errors=errors)

        classification = classify(usage.between(source, target))
        if classification is None:
            reached = usage.reached(source, target)
            if reached:
                classification = Classification(kind=RelationKind.INDIRECT, evidence=reached[0])
        if classification is None:
            errors.append(f"Relationship from \"{source}\" to \"{target}\" is documented but not found in code")
            return ValidationResult(relation=relation, target_exists=True, is_used=False, errors=errors)

        location = classification.evidence.location
        inferred: Tuple[str, ...] = ()
        if not both_tags and classification.conflicting_tag in tags:
            if classification.kind is RelationKind.DIRECT:
                errors.append(
                    f"Relationship from \"{source}\" to \"{target}\" is marked as indirect "
                    f"but has direct usage at {location}"
                )
            else:
                errors.append(
                    f"Relationship from \"{source}\" to \"{target}\" is marked as direct "
                    f"but only has indirect usage at {location}"
                )
        elif not both_tags and classification.tag not in tags:
            inferred = (classification.tag,)

        return ValidationResult(
            relation=relation,
            target_exists=True,
            is_used=True,
            usage_location=location,
            errors=errors,
            classification=classification,
            inferred_tags=inferred,
        )

    def discover_undeclared(
        self, components: Sequence[Component], usage: UsageIndex
    ) -> List[ValidationResult]:
        """One synthetic result per ordered pair with usage evidence but no declaration.

        Transitive reach alone does not count; constructor evidence does.
        """
        names = {component.name for component in components}
        declared = {(relation.source, relation.target) for component in components for relation in component.relations}
        results: List[ValidationResult] = []
        for source, target in usage.pairs():
            if source == target or (source, target) in declared:
                continue
            if source not in names or target not in names:
                continue
            classification = classify(usage.between(source, target))
            if classification is None:
                continue
            location = classification.evidence.location
            relation = DeclaredRelation(
                source=source,
                target=target,
                description=UNDECLARED_DESCRIPTION,
                location=location,
                tags=[UNDECLARED_TAG, classification.tag],
            )
            results.append(
                ValidationResult(
                    relation=relation,
                    target_exists=True,
                    is_used=True,
                    usage_location=location,
                    errors=[f"Undeclared relationship from \"{source}\" to \"{target}\" found at {location}"],
                    classification=classification,
                    undeclared=True,
                )
            )
        if results:
            logger.warning("Found %d undeclared relation(s)", len(results))
        return results


def apply_inferred_tags(results: Iterable[ValidationResult]) -> int:
    """Append each result's inferred tag to its relation; safe to call repeatedly.

    Returns the number of tags added.
    """
    added = 0
    for result in results:
        for tag in result.inferred_tags:
            if tag not in result.relation.tags:
                result.relation.tags.append(tag)
                added += 1
                logger.debug(
                    "Tagged relation %s -> %s as %s", result.relation.source, result.relation.target, tag
                )
    return added


__all__ = ["RelationReconciler", "UNDECLARED_DESCRIPTION", "apply_inferred_tags", "classify"]
