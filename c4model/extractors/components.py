"""Extractor that turns ``@c4Component`` classes into components."""

from __future__ import annotations

import re
from typing import Any, Dict, Mapping, Optional

from ..config import GroupPolicy, group_names, group_paths
from ..models import Component, Location, Perspective
from ..program import ClassInfo
from ..tags import TagParser, TagSchema
from .base import (
    COMPONENT_TAG,
    GROUP_TAG,
    Extractor,
    InvalidGroupPathError,
    InvalidNameError,
    UndeclaredGroupError,
    docstring_tags,
    location_for,
)

COMPONENT_SCHEMA = TagSchema(
    args=["?string"],
    params={
        "description": "string",
        "technology": "string",
        "url": "string",
        "tags": "list",
        "properties": "dict",
        "perspectives": "dict",
    },
)
GROUP_SCHEMA = TagSchema(args=["string"])

_NAME_PATTERN = re.compile(r"^[\w\s-]+$")
_GROUP_SEGMENT_PATTERN = re.compile(r"^[A-Za-z0-9 -]+$")


class ComponentExtractor(Extractor[Optional[Component]]):
    """Builds a :class:`Component` from a class docstring.

    Group values are checked against ``policy``: with ``GroupPolicy.PATH`` each
    ``/`` segment must use letters, digits, spaces or hyphens and, when groups
    are configured, the full path must exist in the tree. With
    ``GroupPolicy.FLAT`` the value must name a group at any nesting level.
    """

    def __init__(
        self,
        groups: Optional[Mapping[str, Any]] = None,
        policy: GroupPolicy = GroupPolicy.PATH,
        parser: Optional[TagParser] = None,
    ) -> None:
        self.groups = groups or {}
        self.policy = policy
        self.parser = parser or TagParser()
        self._known_paths = group_paths(self.groups)
        self._known_names = group_names(self.groups)

    def supports(self, info: ClassInfo) -> bool:
        _, tags, _ = docstring_tags(info.node)
        return any(tag.name == COMPONENT_TAG for tag in tags)

    def extract(self, info: ClassInfo) -> Optional[Component]:
        comment, tags, first_line = docstring_tags(info.node)
        component_tag = next((tag for tag in tags if tag.name == COMPONENT_TAG), None)
        if component_tag is None:
            return None

        location = location_for(info, info.node.lineno)
        parsed = self.parser.parse(component_tag.content, COMPONENT_SCHEMA)
        name = (parsed.arg(0) or info.node.name).strip()
        if not name or not _NAME_PATTERN.match(name):
            raise InvalidNameError(
                f"Invalid component name \"{name}\": only letters, digits, underscores, "
                "spaces and hyphens are allowed",
                location,
            )

        group: Optional[str] = None
        group_tag = next((tag for tag in tags if tag.name == GROUP_TAG), None)
        if group_tag is not None:
            group_location = location_for(info, first_line + group_tag.offset)
            group = self.parser.parse(group_tag.content, GROUP_SCHEMA).arg(0)
            if group is not None:
                group = group.strip()
                self._check_group(group, group_location)

        return Component(
            name=name,
            description=parsed.param_str("description") or comment,
            location=location,
            technology=parsed.param_str("technology"),
            tags=parsed.param_list("tags"),
            group=group,
            url=parsed.param_str("url"),
            properties=parsed.param_dict("properties"),
            perspectives=_perspectives(parsed.param_dict("perspectives")),
        )

    def _check_group(self, group: str, location: Location) -> None:
        if self.policy is GroupPolicy.FLAT:
            if group not in self._known_names:
                raise UndeclaredGroupError(f"Group \"{group}\" is not declared in the configuration", location)
            return

        for segment in group.split("/"):
            if not _GROUP_SEGMENT_PATTERN.match(segment):
                raise InvalidGroupPathError(
                    f"Invalid group path \"{group}\": segment \"{segment}\" may only contain "
                    "letters, digits, spaces and hyphens",
                    location,
                )
        if self.groups and group not in self._known_paths:
            raise UndeclaredGroupError(f"Group path \"{group}\" is not declared in the configuration", location)


def _perspectives(raw: Dict[str, str]) -> Dict[str, Perspective]:
    perspectives: Dict[str, Perspective] = {}
    for name, text in raw.items():
        description, _, value = text.partition("|")
        perspectives[name] = Perspective(description=description.strip(), value=value.strip() or None)
    return perspectives


__all__ = ["COMPONENT_SCHEMA", "ComponentExtractor", "GROUP_SCHEMA"]
