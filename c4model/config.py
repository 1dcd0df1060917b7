"""Configuration loading for c4model (c4container.yml / c4workspace.yml)."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Set, Tuple

import yaml

CONTAINER_CONFIG_NAMES = ("c4container.yml", "c4container.yaml", "c4container.json")
WORKSPACE_CONFIG_NAMES = ("c4workspace.yml", "c4workspace.yaml", "c4workspace.json")

ELEMENT_TYPES = ("component", "container", "softwareSystem", "person")
RESERVED_EXTERNAL_NAMES = {"self", "this"}

_GROUP_NAME_PATTERN = re.compile(r"^[A-Za-z0-9 -]+$")


class ConfigError(RuntimeError):
    """Raised when a configuration file cannot be parsed or breaks business rules."""

    def __init__(
        self,
        message: str,
        errors: Optional[Sequence[str]] = None,
        path: Optional[Path] = None,
    ) -> None:
        super().__init__(message)
        self.errors = list(errors or [])
        self.path = path

    def __str__(self) -> str:
        message = super().__str__()
        if self.path is not None:
            message = f"{self.path}: {message}"
        if self.errors:
            message += "".join(f"\n  - {error}" for error in self.errors)
        return message


class GroupPolicy(str, Enum):
    """How ``@c4Group`` values are interpreted and validated."""

    PATH = "path"
    FLAT = "flat"


@dataclass
class ExternalElement:
    """Dependency outside the analysed scope, trusted without usage checks."""

    name: str
    type: str = "softwareSystem"
    description: str = ""
    technology: Optional[str] = None
    tags: List[str] = field(default_factory=list)


@dataclass
class ContainerRelation:
    """Container-level relation declared in configuration rather than in code."""

    target: str
    description: str = ""
    technology: Optional[str] = None
    tags: List[str] = field(default_factory=list)


@dataclass
class ContainerConfig:
    """Settings for one analysis scope (one container)."""

    name: str
    root: Path
    description: str = ""
    technology: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    properties: Dict[str, str] = field(default_factory=dict)
    source: List[str] = field(default_factory=lambda: ["**/*.py"])
    groups: Dict[str, Any] = field(default_factory=dict)
    group_policy: GroupPolicy = GroupPolicy.PATH
    external: Dict[str, ExternalElement] = field(default_factory=dict)
    relations: List[ContainerRelation] = field(default_factory=list)

    def is_external(self, name: str) -> bool:
        return name in self.external

    @property
    def relation_targets(self) -> Set[str]:
        return {relation.target for relation in self.relations}


@dataclass
class WorkspaceConfig:
    """A set of independently analysed containers."""

    name: str
    root: Path
    description: str = ""
    containers: List[Path] = field(default_factory=list)


def load_config(config_path: Path, *, validate: bool = True) -> ContainerConfig:
    """Load a container configuration from disk."""
    config_file = _resolve_config_path(Path(config_path), CONTAINER_CONFIG_NAMES)
    data = _read_config(config_file)
    root = config_file.parent.resolve()

    name = _as_str(data.get("name"))
    if not name:
        raise ConfigError("Container configuration requires a 'name'", path=config_file)

    source = _as_str_list(data.get("source")) or ["**/*.py"]
    policy_value = _as_str(data.get("groupPolicy") or data.get("group_policy")) or GroupPolicy.PATH.value
    try:
        policy = GroupPolicy(policy_value)
    except ValueError:
        raise ConfigError(
            f"Unknown group policy '{policy_value}'",
            errors=[f"groupPolicy must be one of: {', '.join(p.value for p in GroupPolicy)}"],
            path=config_file,
        ) from None

    external: Dict[str, ExternalElement] = {}
    for element_name, element_data in _as_dict(data.get("external")).items():
        element = _as_dict(element_data)
        external[str(element_name)] = ExternalElement(
            name=str(element_name),
            type=_as_str(element.get("type")) or "softwareSystem",
            description=_as_str(element.get("description")) or "",
            technology=_as_str(element.get("technology")),
            tags=_as_str_list(element.get("tags")),
        )

    relations: List[ContainerRelation] = []
    for item in data.get("relations") or data.get("relationships") or []:
        relation = _as_dict(item)
        target = _as_str(relation.get("target"))
        if not target:
            raise ConfigError("Container relation requires a 'target'", path=config_file)
        relations.append(
            ContainerRelation(
                target=target,
                description=_as_str(relation.get("description")) or "",
                technology=_as_str(relation.get("technology")),
                tags=_as_str_list(relation.get("tags")),
            )
        )

    groups_value = data.get("groups")
    groups = normalize_groups(groups_value) if groups_value is not None else {}

    config = ContainerConfig(
        name=name,
        root=root,
        description=_as_str(data.get("description")) or "",
        technology=_as_str(data.get("technology")),
        tags=_as_str_list(data.get("tags")),
        properties={str(key): str(value) for key, value in _as_dict(data.get("properties")).items()},
        source=source,
        groups=groups,
        group_policy=policy,
        external=external,
        relations=relations,
    )
    if validate:
        try:
            validate_config(config)
        except ConfigError as exc:
            exc.path = config_file
            raise
    return config


def load_workspace_config(config_path: Path) -> WorkspaceConfig:
    """Load a workspace configuration listing container configuration files."""
    config_file = _resolve_config_path(Path(config_path), WORKSPACE_CONFIG_NAMES)
    data = _read_config(config_file)
    root = config_file.parent.resolve()

    containers: List[Path] = []
    for entry in _as_str_list(data.get("containers")):
        candidate = (root / entry).resolve()
        if any(char in entry for char in "*?["):
            containers.extend(sorted(path.resolve() for path in root.glob(entry)))
        else:
            containers.append(candidate)
    if not containers:
        raise ConfigError("Workspace configuration lists no containers", path=config_file)

    return WorkspaceConfig(
        name=_as_str(data.get("name")) or root.name,
        root=root,
        description=_as_str(data.get("description")) or "",
        containers=containers,
    )


def validate_config(config: ContainerConfig) -> None:
    """Check business rules, collecting every violation before raising."""
    errors: List[str] = []
    _validate_groups(config.groups, errors, [], set())
    _validate_source_patterns(config.source, errors)
    _validate_external(config.external, errors)
    if errors:
        raise ConfigError("Business validation failed", errors=errors)


def normalize_groups(value: Any, _seen: Optional[Set[int]] = None) -> Dict[str, Any]:
    """Turn the raw ``groups`` value into nested mappings.

    Lists of names and ``None`` leaves are accepted; mapping objects are kept
    as-is so that recursive YAML aliases remain detectable.
    """
    seen = set() if _seen is None else _seen
    if isinstance(value, dict):
        if id(value) in seen:
            return value
        seen.add(id(value))
        for key, child in list(value.items()):
            value[key] = normalize_groups(child, seen)
        return value
    if isinstance(value, str):
        return {value: {}}
    if isinstance(value, list):
        result: Dict[str, Any] = {}
        for item in value:
            if isinstance(item, dict):
                result.update(normalize_groups(item, seen))
            elif item is not None:
                result[str(item)] = {}
        return result
    return {}


def iter_groups(groups: Mapping[str, Any]) -> Iterator[Tuple[Tuple[str, ...], Mapping[str, Any]]]:
    """Yield ``(path, subgroups)`` for every configured group, depth first."""
    stack: List[Tuple[Tuple[str, ...], Mapping[str, Any], Tuple[int, ...]]] = [((), groups, ())]
    while stack:
        prefix, level, seen = stack.pop()
        if id(level) in seen:
            continue
        children = []
        for name, subgroups in level.items():
            path = prefix + (str(name),)
            sub = subgroups if isinstance(subgroups, Mapping) else {}
            yield path, sub
            children.append((path, sub, seen + (id(level),)))
        stack.extend(reversed(children))


def group_names(groups: Mapping[str, Any]) -> Set[str]:
    return {path[-1] for path, _ in iter_groups(groups)}


def group_paths(groups: Mapping[str, Any]) -> Set[str]:
    return {"/".join(path) for path, _ in iter_groups(groups)}


def _validate_groups(
    groups: Mapping[str, Any], errors: List[str], path: List[str], active: Set[int]
) -> None:
    if id(groups) in active:
        errors.append(f"Cyclic group definition detected at: {' -> '.join(path)}")
        return
    active = active | {id(groups)}
    for name, subgroups in groups.items():
        name = str(name)
        if name in path:
            errors.append(f"Cyclic dependency detected in groups: {' -> '.join(path + [name])}")
            continue
        if not _GROUP_NAME_PATTERN.match(name):
            errors.append(
                f"Invalid group name \"{name}\": only letters, numbers, spaces and hyphens are allowed"
            )
        if isinstance(subgroups, Mapping):
            _validate_groups(subgroups, errors, path + [name], active)


def _validate_source_patterns(patterns: Sequence[str], errors: List[str]) -> None:
    if not any(not pattern.startswith("!") for pattern in patterns):
        errors.append("Source patterns must include at least one positive pattern")
    for pattern in patterns:
        if ".." in pattern.lstrip("!").replace("\\", "/").split("/"):
            errors.append(f"Pattern \"{pattern}\" contains potentially unsafe \"..\" path segment")


def _validate_external(external: Mapping[str, ExternalElement], errors: List[str]) -> None:
    for name, element in external.items():
        if name.lower() in RESERVED_EXTERNAL_NAMES:
            errors.append(f"External reference name \"{name}\" is reserved")
        if element.type not in ELEMENT_TYPES:
            errors.append(
                f"External element \"{name}\" has unknown type \"{element.type}\" "
                f"(expected one of: {', '.join(ELEMENT_TYPES)})"
            )


def _resolve_config_path(config_path: Path, names: Sequence[str]) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        for name in names:
            candidate = config_path / name
            if candidate.exists():
                return candidate.resolve()
        raise ConfigError(f"No {names[0]} found in {config_path}")
    if not config_path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        raise ConfigError("Configuration file is empty", path=path)
    try:
        # JSON is a subset of YAML, so one loader serves both formats.
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}", path=path) from exc
    if not isinstance(loaded, dict):
        raise ConfigError(f"{path.name} must contain a mapping at the root", path=path)
    return loaded


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


__all__ = [
    "ConfigError",
    "ContainerConfig",
    "ContainerRelation",
    "ExternalElement",
    "GroupPolicy",
    "WorkspaceConfig",
    "group_names",
    "group_paths",
    "iter_groups",
    "load_config",
    "load_workspace_config",
    "normalize_groups",
    "validate_config",
]
