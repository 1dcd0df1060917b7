"""Static program view used for symbol resolution."""

from .index import ClassInfo, ModuleInfo, ProgramIndex
from .symbols import IdentityResolver, NameResolver, SymbolIdentity

__all__ = [
    "ClassInfo",
    "IdentityResolver",
    "ModuleInfo",
    "NameResolver",
    "ProgramIndex",
    "SymbolIdentity",
]
