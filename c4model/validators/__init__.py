"""Validation of the extracted architecture model."""

from .base import ModelValidationError, ReconcileContext, Rule, RuleContext, RuleViolation
from .reconciler import RelationReconciler, apply_inferred_tags, classify
from .rules import (
    DEFAULT_RULES,
    check_components,
    check_model,
    check_relations,
    drop_duplicate_relations,
    raise_for_violations,
)

__all__ = [
    "DEFAULT_RULES",
    "ModelValidationError",
    "ReconcileContext",
    "RelationReconciler",
    "Rule",
    "RuleContext",
    "RuleViolation",
    "apply_inferred_tags",
    "check_components",
    "check_model",
    "check_relations",
    "classify",
    "drop_duplicate_relations",
    "raise_for_violations",
]
