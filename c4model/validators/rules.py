"""Business rules over extracted components and declared relations.

Rules collect every violation instead of stopping at the first one;
:func:`raise_for_violations` is the opt-in strict mode.
"""

from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

from ..logging import get_logger
from ..models import DIRECT_TAG, INDIRECT_TAG, Component, DeclaredRelation
from .base import ModelValidationError, Rule, RuleContext, RuleViolation

logger = get_logger("validators.rules")


class DuplicateComponentRule:
    name = "duplicate-component"

    def validate(self, context: RuleContext) -> List[RuleViolation]:
        first_seen: Dict[str, Component] = {}
        violations: List[RuleViolation] = []
        for component in context.components:
            previous = first_seen.setdefault(component.name, component)
            if previous is component:
                continue
            violations.append(
                RuleViolation(
                    rule=self.name,
                    subject=component.name,
                    detail=f"Duplicate component name \"{component.name}\" (first declared at {previous.location})",
                    location=component.location,
                )
            )
        return violations


class DuplicateRelationRule:
    """Two relations may not share ``(source, target, description)``, whatever their technology."""

    name = "duplicate-relation"

    def validate(self, context: RuleContext) -> List[RuleViolation]:
        return [violation for _, violation in _duplicate_relations(context.components)]


class SelfRelationRule:
    name = "cyclic-relation"

    def validate(self, context: RuleContext) -> List[RuleViolation]:
        return [
            RuleViolation(
                rule=self.name,
                subject=relation.source,
                detail=f"Component \"{relation.source}\" declares a relation to itself",
                location=relation.location,
            )
            for relation in _relations(context.components)
            if relation.target == relation.source
        ]


class TagConflictRule:
    name = "tag-conflict"

    def validate(self, context: RuleContext) -> List[RuleViolation]:
        return [
            RuleViolation(
                rule=self.name,
                subject=relation.source,
                detail=(
                    f"Relationship from \"{relation.source}\" to \"{relation.target}\" "
                    "cannot be both direct and indirect"
                ),
                location=relation.location,
            )
            for relation in _relations(context.components)
            if DIRECT_TAG in relation.tags and INDIRECT_TAG in relation.tags
        ]


class RequiredFieldsRule:
    name = "missing-field"

    def validate(self, context: RuleContext) -> List[RuleViolation]:
        violations: List[RuleViolation] = []
        for relation in _relations(context.components):
            for label, value in (("target", relation.target), ("description", relation.description)):
                if not value.strip():
                    violations.append(
                        RuleViolation(
                            rule=self.name,
                            subject=relation.source,
                            detail=f"Relation declared on \"{relation.source}\" has no {label}",
                            location=relation.location,
                        )
                    )
        return violations


DEFAULT_RULES: Tuple[Rule, ...] = (
    DuplicateComponentRule(),
    RequiredFieldsRule(),
    DuplicateRelationRule(),
    SelfRelationRule(),
    TagConflictRule(),
)


def check_model(components: Sequence[Component], rules: Sequence[Rule] = DEFAULT_RULES) -> List[RuleViolation]:
    """Run every rule and return all violations, in rule order."""
    context = RuleContext(components=components)
    violations: List[RuleViolation] = []
    for rule in rules:
        found = rule.validate(context)
        if found:
            logger.warning("Rule %s reported %d violation(s)", rule.name, len(found))
        violations.extend(found)
    return violations


def check_components(components: Sequence[Component]) -> List[RuleViolation]:
    return DuplicateComponentRule().validate(RuleContext(components=components))


def check_relations(components: Sequence[Component]) -> List[RuleViolation]:
    context = RuleContext(components=components)
    violations: List[RuleViolation] = []
    for rule in (RequiredFieldsRule(), DuplicateRelationRule(), SelfRelationRule(), TagConflictRule()):
        violations.extend(rule.validate(context))
    return violations


def drop_duplicate_relations(components: Sequence[Component]) -> List[RuleViolation]:
    """Remove every relation that repeats an earlier ``(source, target, description)``.

    The first declaration wins. Returns one violation per dropped relation.
    """
    duplicates = _duplicate_relations(components)
    rejected = {id(relation) for relation, _ in duplicates}
    if rejected:
        for component in components:
            component.relations = [relation for relation in component.relations if id(relation) not in rejected]
    return [violation for _, violation in duplicates]


def raise_for_violations(violations: Sequence[RuleViolation]) -> None:
    if violations:
        raise ModelValidationError(f"Model validation failed with {len(violations)} violation(s)", violations)


def _relations(components: Sequence[Component]) -> List[DeclaredRelation]:
    return [relation for component in components for relation in component.relations]


def _duplicate_relations(components: Sequence[Component]) -> List[Tuple[DeclaredRelation, RuleViolation]]:
    first_seen: Dict[Tuple[str, str, str], DeclaredRelation] = {}
    duplicates: List[Tuple[DeclaredRelation, RuleViolation]] = []
    for relation in _relations(components):
        previous = first_seen.setdefault(relation.key, relation)
        if previous is relation:
            continue
        duplicates.append(
            (
                relation,
                RuleViolation(
                    rule=DuplicateRelationRule.name,
                    subject=relation.source,
                    detail=(
                        f"Duplicate relation from \"{relation.source}\" to \"{relation.target}\" "
                        f"with description \"{relation.description}\" (first declared at {previous.location})"
                    ),
                    location=relation.location,
                ),
            )
        )
    return duplicates


__all__ = [
    "DEFAULT_RULES",
    "DuplicateComponentRule",
    "DuplicateRelationRule",
    "RequiredFieldsRule",
    "SelfRelationRule",
    "TagConflictRule",
    "check_components",
    "check_model",
    "check_relations",
    "drop_duplicate_relations",
    "raise_for_violations",
]
