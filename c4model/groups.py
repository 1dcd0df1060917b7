"""Presentation group tree built from component ``@c4Group`` values."""

from __future__ import annotations

from typing import Any, List, Mapping, Optional, Sequence

from .config import ConfigError, GroupPolicy, group_paths, iter_groups
from .logging import get_logger
from .models import NO_GROUP, Component, GroupNode

logger = get_logger("groups")


def build_group_hierarchy(
    components: Sequence[Component],
    groups: Optional[Mapping[str, Any]] = None,
    policy: GroupPolicy = GroupPolicy.PATH,
) -> List[GroupNode]:
    """Return ``[no-group node, *top-level nodes]``.

    Every configured group appears, including empty branches. With the path
    policy a component is attached to its full-path leaf only; with the flat
    policy it is attached to the first node (depth first) carrying its name.
    Components naming groups absent from a non-empty configuration raise a
    single :class:`ConfigError` listing all of them.
    """
    groups = groups or {}
    no_group = GroupNode(name=NO_GROUP, path="")
    roots: List[GroupNode] = []
    for path, _ in iter_groups(groups):
        _ensure(roots, path)

    known_paths = group_paths(groups)
    unknown: List[str] = []
    for component in components:
        if not component.group:
            no_group.components.append(component.name)
            continue

        if policy is GroupPolicy.FLAT:
            node = _find_by_name(roots, component.group)
            if node is None and not groups:
                node = _ensure(roots, (component.group,))
        elif groups and component.group not in known_paths:
            node = None
        else:
            node = _ensure(roots, tuple(component.group.split("/")))

        if node is None:
            unknown.append(f"Component \"{component.name}\" references unknown group \"{component.group}\"")
            continue
        node.components.append(component.name)

    if unknown:
        raise ConfigError("Components reference groups missing from the configuration", errors=unknown)
    logger.debug("Built group tree with %d top-level groups", len(roots))
    return [no_group, *roots]


def _ensure(roots: List[GroupNode], path: Sequence[str]) -> GroupNode:
    if not path:
        raise ValueError("group path must not be empty")
    node = _child(roots, path[0], path[0])
    for depth in range(1, len(path)):
        node = _child(node.subgroups, path[depth], "/".join(path[: depth + 1]))
    return node


def _child(level: List[GroupNode], name: str, path: str) -> GroupNode:
    for candidate in level:
        if candidate.name == name:
            return candidate
    node = GroupNode(name=name, path=path)
    level.append(node)
    return node


def _find_by_name(nodes: Sequence[GroupNode], name: str) -> Optional[GroupNode]:
    stack = list(reversed(nodes))
    while stack:
        node = stack.pop()
        if node.name == name:
            return node
        stack.extend(reversed(node.subgroups))
    return None


__all__ = ["build_group_hierarchy"]
