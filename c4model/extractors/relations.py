"""Extractor for ``@c4Relation`` tags on classes, constructors and methods."""

from __future__ import annotations

import ast
from typing import Iterator, List, Optional, Tuple

from ..logging import get_logger
from ..models import DeclaredRelation, Diagnostic
from ..program import ClassInfo
from ..tags import SchemaError, TagParser, TagSchema
from .base import RELATION_TAG, ExtractionError, Extractor, docstring_tags, location_for

RELATION_SCHEMA = TagSchema(
    args=["string", "string", "?string"],
    params={
        "technology": "string",
        "url": "string",
        "tags": "list",
        "properties": "dict",
    },
)

logger = get_logger("extractors.relations")


class RelationExtractor(Extractor[List[DeclaredRelation]]):
    """Collects declared relations from one class.

    The class docstring is read first, then ``__init__``, then every other
    method in declaration order. The source of a method-level relation is the
    enclosing component; the method only shows up in ``location.method``.
    """

    def __init__(self, parser: Optional[TagParser] = None) -> None:
        self.parser = parser or TagParser()

    def supports(self, info: ClassInfo) -> bool:
        return any(True for _ in self._relation_tags(info))

    def extract(
        self,
        info: ClassInfo,
        source: Optional[str] = None,
        diagnostics: Optional[List[Diagnostic]] = None,
    ) -> List[DeclaredRelation]:
        """Return the declared relations of ``info``.

        When ``diagnostics`` is given a malformed tag is recorded there and the
        remaining tags are still read; otherwise the error is raised.
        """
        source_name = source or info.node.name
        relations: List[DeclaredRelation] = []
        for method, content, line in self._relation_tags(info):
            location = location_for(info, line, method)
            try:
                parsed = self.parser.parse(content, RELATION_SCHEMA)
            except SchemaError as exc:
                error = ExtractionError(f"Invalid @{RELATION_TAG} on {source_name}: {exc}", location)
                if diagnostics is None:
                    raise error from exc
                logger.warning("%s: %s", location, error)
                diagnostics.append(Diagnostic(location=location, message=str(error), error="SchemaError"))
                continue

            relations.append(
                DeclaredRelation(
                    source=source_name,
                    target=parsed.arg(0) or "",
                    description=parsed.arg(1) or "",
                    location=location,
                    technology=parsed.param_str("technology") or parsed.arg(2),
                    tags=parsed.param_list("tags"),
                    url=parsed.param_str("url"),
                    properties=parsed.param_dict("properties"),
                )
            )
        return relations

    def _relation_tags(self, info: ClassInfo) -> Iterator[Tuple[Optional[str], str, int]]:
        for method, node in _annotated_nodes(info):
            _, tags, first_line = docstring_tags(node)
            for tag in tags:
                if tag.name == RELATION_TAG:
                    yield method, tag.content, first_line + tag.offset


def _annotated_nodes(info: ClassInfo) -> Iterator[Tuple[Optional[str], ast.AST]]:
    yield None, info.node
    init = info.methods.get("__init__")
    if init is not None:
        yield "__init__", init
    for name, method in info.methods.items():
        if name != "__init__":
            yield name, method


__all__ = ["RELATION_SCHEMA", "RelationExtractor"]
