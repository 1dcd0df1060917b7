"""Pipeline orchestration for container and workspace analysis."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .config import ConfigError, ContainerConfig, WorkspaceConfig, load_config, load_workspace_config
from .extractors import extract_scope
from .groups import build_group_hierarchy
from .logging import get_logger
from .models import Component, Diagnostic, GroupNode, ValidationResult
from .program import ProgramIndex
from .sources import resolve_sources
from .usage import UsageIndex, UsageMatcher, UsageSummary, summarize_usage
from .validators import (
    ModelValidationError,
    ReconcileContext,
    RelationReconciler,
    RuleViolation,
    apply_inferred_tags,
    check_model,
    drop_duplicate_relations,
)
from .workspace import ContainerLink, CrossScopeIssue, derive_container_relations, validate_cross_scope


@dataclass
class AnalysisOptions:
    """What a run reports and whether problems are fatal."""

    include_undeclared: bool = False
    include_invalid: bool = False
    invalid_only: bool = False
    strict: bool = False


@dataclass
class ContainerAnalysis:
    """Everything learned about one container."""

    config: ContainerConfig
    components: List[Component]
    results: List[ValidationResult]
    groups: List[GroupNode]
    usage: UsageIndex
    diagnostics: List[Diagnostic] = field(default_factory=list)
    violations: List[RuleViolation] = field(default_factory=list)
    options: AnalysisOptions = field(default_factory=AnalysisOptions)

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def declared_results(self) -> List[ValidationResult]:
        return [result for result in self.results if not result.undeclared]

    @property
    def invalid_results(self) -> List[ValidationResult]:
        return [result for result in self.declared_results if result.has_problems]

    @property
    def undeclared_results(self) -> List[ValidationResult]:
        return [result for result in self.results if result.undeclared]

    def undeclared_summary(self) -> List[UsageSummary]:
        """Unique ``(from, to, type)`` rows over all evidence behind undeclared relations."""
        evidence = []
        for result in self.undeclared_results:
            evidence.extend(self.usage.between(result.relation.source, result.relation.target))
        return summarize_usage(evidence)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.config.name}
        if not self.options.invalid_only:
            data.update(
                {
                    "description": self.config.description,
                    "technology": self.config.technology,
                    "tags": list(self.config.tags),
                    "properties": dict(self.config.properties),
                    "components": [component.to_dict() for component in self.components],
                    "groups": [node.to_dict() for node in self.groups],
                    "relations": [result.to_dict() for result in self.declared_results if not result.has_problems],
                }
            )
        if self.options.include_invalid or self.options.invalid_only:
            data["invalidRelations"] = [result.to_dict() for result in self.invalid_results]
        if self.options.include_undeclared or self.options.invalid_only:
            data["undeclaredRelations"] = [result.to_dict() for result in self.undeclared_results]
            data["undeclaredSummary"] = [row.to_dict() for row in self.undeclared_summary()]
        data["diagnostics"] = [item.to_dict() for item in self.diagnostics]
        data["violations"] = [item.to_dict() for item in self.violations]
        return data


@dataclass
class WorkspaceAnalysis:
    config: WorkspaceConfig
    containers: List[ContainerAnalysis]
    relations: List[ContainerLink] = field(default_factory=list)
    issues: List[CrossScopeIssue] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.config.name,
            "description": self.config.description,
            "containers": [analysis.to_dict() for analysis in self.containers],
            "relations": [link.to_dict() for link in self.relations],
            "issues": [issue.to_dict() for issue in self.issues],
        }


class Orchestrator:
    """Coordinates extraction, usage matching and reconciliation per scope."""

    def __init__(self, options: Optional[AnalysisOptions] = None, *, max_workers: Optional[int] = None) -> None:
        self.options = options or AnalysisOptions()
        self.max_workers = max_workers
        self.logger = get_logger("orchestrator")

    def analyze_container(
        self, config: ContainerConfig | Path | str, *, scopes: Iterable[str] = ()
    ) -> ContainerAnalysis:
        """Analyse one container; ``scopes`` names sibling containers in a workspace."""
        if not isinstance(config, ContainerConfig):
            config = load_config(Path(config))
        self.logger.info("Analysing container %s (%s)", config.name, config.root)

        sources = resolve_sources(config.root, config.source)
        program = ProgramIndex.load(sources, root=config.root)
        extraction = extract_scope(program, config.groups, config.group_policy)
        components = extraction.components

        violations = drop_duplicate_relations(components)
        violations.extend(check_model(components))

        usage = UsageMatcher(program).match(components)
        reconciler = RelationReconciler(ReconcileContext.from_config(config, scopes))
        results = reconciler.reconcile(components, usage, include_undeclared=True)
        tagged = apply_inferred_tags(results)
        self.logger.debug("Inferred %d relation tags", tagged)

        groups = build_group_hierarchy(components, config.groups, config.group_policy)

        if self.options.strict and (extraction.diagnostics or violations):
            raise ModelValidationError(
                f"Container \"{config.name}\" failed validation",
                violations=violations,
                diagnostics=extraction.diagnostics,
            )

        return ContainerAnalysis(
            config=config,
            components=components,
            results=results,
            groups=groups,
            usage=usage,
            diagnostics=extraction.diagnostics,
            violations=violations,
            options=self.options,
        )

    def analyze_workspace(self, config: WorkspaceConfig | Path | str) -> WorkspaceAnalysis:
        """Analyse every container of a workspace, each as an independent program."""
        if not isinstance(config, WorkspaceConfig):
            config = load_workspace_config(Path(config))
        container_configs = [load_config(path) for path in config.containers]
        names = [container.name for container in container_configs]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ConfigError(
                "Workspace lists containers with duplicate names",
                errors=[f"Container name \"{name}\" is used more than once" for name in duplicates],
                path=config.root,
            )

        self.logger.info("Analysing workspace %s with %d containers", config.name, len(container_configs))
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            analyses = list(
                executor.map(lambda container: self.analyze_container(container, scopes=names), container_configs)
            )

        scopes = [(analysis.config, analysis.components) for analysis in analyses]
        issues = validate_cross_scope(scopes)
        if self.options.strict and issues:
            raise ModelValidationError(
                f"Workspace \"{config.name}\" has {len(issues)} unresolved cross-container relation(s): "
                + "; ".join(issue.message for issue in issues)
            )
        return WorkspaceAnalysis(
            config=config,
            containers=analyses,
            relations=derive_container_relations(scopes),
            issues=issues,
        )


def summarize_problems(analyses: Sequence[ContainerAnalysis]) -> int:
    """Count invalid and undeclared relations across analyses."""
    return sum(len(analysis.invalid_results) + len(analysis.undeclared_results) for analysis in analyses)


__all__ = [
    "AnalysisOptions",
    "ContainerAnalysis",
    "Orchestrator",
    "WorkspaceAnalysis",
    "summarize_problems",
]
