"""Extractors that read architecture annotations off class declarations."""

from .base import (
    COMPONENT_TAG,
    GROUP_TAG,
    RELATION_TAG,
    ExtractionError,
    Extractor,
    InvalidGroupPathError,
    InvalidNameError,
    UndeclaredGroupError,
)
from .components import ComponentExtractor
from .relations import RelationExtractor
from .scope import ScopeExtraction, extract_scope

__all__ = [
    "COMPONENT_TAG",
    "ComponentExtractor",
    "ExtractionError",
    "Extractor",
    "GROUP_TAG",
    "InvalidGroupPathError",
    "InvalidNameError",
    "RELATION_TAG",
    "RelationExtractor",
    "ScopeExtraction",
    "UndeclaredGroupError",
    "extract_scope",
]
