"""Cross-container checks and derived container relations for a workspace.

Containers are analysed as independent programs, so references between them
are resolved with :class:`~c4model.program.NameResolver` (name strings), never
with symbol identities.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .config import ContainerConfig
from .logging import get_logger
from .models import Component, DeclaredRelation
from .program import NameResolver

TECHNOLOGY_DESCRIPTIONS: Dict[str, str] = {
    "http": "makes HTTP calls to",
    "https": "makes HTTPS calls to",
    "rest": "makes REST calls to",
    "grpc": "makes gRPC calls to",
    "graphql": "makes GraphQL queries to",
    "soap": "makes SOAP calls to",
    "jdbc": "connects via JDBC to",
    "jpa": "persists data via JPA in",
    "sql": "queries SQL database in",
    "websocket": "connects via WebSocket to",
    "kafka": "publishes/subscribes messages via Kafka to",
    "rabbitmq": "exchanges messages via RabbitMQ with",
    "redis": "caches data in",
    "mongodb": "stores documents in",
    "elasticsearch": "indexes/searches data in",
    "aws-sdk": "uses AWS services from",
    "azure-sdk": "uses Azure services from",
    "gcp-sdk": "uses Google Cloud services from",
    "kubernetes": "deploys to",
    "docker": "runs in container on",
}

Scope = Tuple[ContainerConfig, Sequence[Component]]

logger = get_logger("workspace")


@dataclass
class ContainerLink:
    """Relation between two containers derived from their components' relations."""

    source: str
    target: str
    description: str
    technology: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "target": self.target,
            "description": self.description,
            "technology": self.technology,
        }


@dataclass
class CrossScopeIssue:
    container: str
    relation: DeclaredRelation
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {"container": self.container, "relation": self.relation.to_dict(), "message": self.message}


def describe_technology(technology: Optional[str]) -> str:
    if not technology:
        return "is connected with"
    return TECHNOLOGY_DESCRIPTIONS.get(technology.lower(), f"communicates using {technology} with")


def name_resolver(scopes: Sequence[Scope]) -> NameResolver:
    return NameResolver({config.name: [component.name for component in components] for config, components in scopes})


def validate_cross_scope(scopes: Sequence[Scope]) -> List[CrossScopeIssue]:
    """Check ``container`` and ``container.component`` targets against sibling containers by name."""
    resolver = name_resolver(scopes)
    issues: List[CrossScopeIssue] = []
    for config, components in scopes:
        local = {component.name for component in components}
        for component in components:
            for relation in component.relations:
                scope, _ = resolver.split(relation.target)
                if relation.target in local or scope == config.name or scope not in resolver.scope_names:
                    continue
                if resolver.resolve(relation.target) is None:
                    message = (
                        f"Relationship from \"{relation.source}\" to \"{relation.target}\": "
                        f"container \"{scope}\" has no such component"
                    )
                    logger.warning("%s: %s", config.name, message)
                    issues.append(CrossScopeIssue(container=config.name, relation=relation, message=message))
    return issues


def derive_container_relations(scopes: Sequence[Scope]) -> List[ContainerLink]:
    """One link per ``source -> target : technology``, first occurrence wins."""
    resolver = name_resolver(scopes)
    links: Dict[str, ContainerLink] = {}

    def add(source: str, target: str, technology: Optional[str], description: Optional[str] = None) -> None:
        key = f"{source}->{target}:{technology or 'unknown'}"
        if key not in links:
            links[key] = ContainerLink(
                source=source,
                target=target,
                description=description or describe_technology(technology),
                technology=technology,
            )

    for config, components in scopes:
        for relation in config.relations:
            scope, _ = resolver.split(relation.target)
            if scope != config.name and resolver.resolve(relation.target) is not None:
                add(config.name, scope, relation.technology, relation.description)
        local = {component.name for component in components}
        for component in components:
            for relation in component.relations:
                scope, _ = resolver.split(relation.target)
                if relation.target in local:
                    continue
                if scope != config.name and resolver.resolve(relation.target) is not None:
                    add(config.name, scope, relation.technology)

    logger.info("Derived %d container relations", len(links))
    return list(links.values())


__all__ = [
    "ContainerLink",
    "CrossScopeIssue",
    "TECHNOLOGY_DESCRIPTIONS",
    "derive_container_relations",
    "describe_technology",
    "name_resolver",
    "validate_cross_scope",
]
