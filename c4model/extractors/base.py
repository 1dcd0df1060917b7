"""Base classes and errors shared by the declaration extractors."""

from __future__ import annotations

import ast
from abc import ABC, abstractmethod
from typing import Generic, List, Optional, Tuple, TypeVar

from ..models import Location
from ..program import ClassInfo
from ..tags import RawTag, split_docstring

COMPONENT_TAG = "c4Component"
RELATION_TAG = "c4Relation"
GROUP_TAG = "c4Group"

T = TypeVar("T")


class ExtractionError(ValueError):
    """A declaration carries an annotation that cannot become a model element."""

    def __init__(self, message: str, location: Optional[Location] = None) -> None:
        super().__init__(message)
        self.location = location


class InvalidNameError(ExtractionError):
    """Component name is empty or uses characters outside ``[\\w\\s-]``."""


class InvalidGroupPathError(ExtractionError):
    """A ``@c4Group`` path segment uses characters outside letters, digits, spaces and hyphens."""


class UndeclaredGroupError(ExtractionError):
    """A ``@c4Group`` value does not exist in the configured group tree."""


class Extractor(ABC, Generic[T]):
    """Contract for extractors that read annotation blocks off a class declaration."""

    @abstractmethod
    def supports(self, info: ClassInfo) -> bool:
        """Return True when the declaration carries a tag this extractor reads."""

    @abstractmethod
    def extract(self, info: ClassInfo) -> T:
        """Build model values from the declaration's annotation blocks."""


def docstring_tags(node: ast.AST) -> Tuple[str, List[RawTag], int]:
    """Return the comment, the raw tags and the source line that tag offset 0 maps to."""
    if not isinstance(node, (ast.ClassDef, ast.FunctionDef, ast.AsyncFunctionDef)):
        return "", [], 0
    text = ast.get_docstring(node, clean=False)
    if not text:
        return "", [], 0
    comment, tags = split_docstring(text)
    return comment, tags, node.body[0].lineno + _leading_blank_lines(text)


def location_for(info: ClassInfo, line: int, method: Optional[str] = None) -> Location:
    return Location(file=str(info.module.path), declaration=info.qualname, line=line, method=method)


def _leading_blank_lines(text: str) -> int:
    # inspect.cleandoc drops these, so tag offsets start after them.
    count = 0
    for line in text.expandtabs().splitlines():
        if line.strip():
            break
        count += 1
    return count
