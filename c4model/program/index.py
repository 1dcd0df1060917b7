"""Whole-program view over the selected Python sources.

Every file is parsed before any resolution query runs: the usage of one class
may depend on a class discovered later in file order.
"""

from __future__ import annotations

import ast
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple, Union

from ..logging import get_logger
from ..models import Diagnostic, Location
from .symbols import SymbolIdentity

FunctionNode = Union[ast.FunctionDef, ast.AsyncFunctionDef]

# Subscripts that merely wrap alternatives; they are flattened rather than unwrapped.
_UNION_WRAPPERS = {"Optional", "Union", "Annotated"}
_MAX_ALIAS_DEPTH = 8

logger = get_logger("program")


@dataclass
class ClassInfo:
    """A class declaration and the members the matcher cares about."""

    identity: SymbolIdentity
    node: ast.ClassDef
    module: "ModuleInfo"
    methods: Dict[str, FunctionNode] = field(default_factory=dict)

    @property
    def qualname(self) -> str:
        return self.identity.qualname

    @property
    def bases(self) -> List[ast.expr]:
        return list(self.node.bases)


@dataclass
class ModuleInfo:
    """One parsed source file."""

    name: str
    path: Path
    tree: ast.Module
    is_package: bool = False
    imports: Dict[str, str] = field(default_factory=dict)
    star_imports: List[str] = field(default_factory=list)
    classes: Dict[str, ClassInfo] = field(default_factory=dict)


class ProgramIndex:
    """Symbol table for one analysis scope."""

    def __init__(self, root: Optional[Path] = None) -> None:
        self.root = Path(root).resolve() if root is not None else None
        self._modules: Dict[str, ModuleInfo] = {}
        self._modules_by_path: Dict[str, ModuleInfo] = {}
        # Names importable from a source directory below the root (``src`` layouts).
        # ``None`` marks a name claimed by more than one module.
        self._aliases: Dict[str, Optional[ModuleInfo]] = {}
        self._classes: Dict[SymbolIdentity, ClassInfo] = {}
        self.diagnostics: List[Diagnostic] = []

    @classmethod
    def load(cls, paths: Iterable[Path], root: Optional[Path] = None) -> "ProgramIndex":
        """Index ``paths``; module names are taken relative to ``root`` when given."""
        program = cls(root)
        for path in paths:
            program.add_file(Path(path))
        logger.info(
            "Indexed %d modules and %d classes", len(program._modules), len(program._classes)
        )
        return program

    def add_file(self, path: Path) -> Optional[ModuleInfo]:
        path = path.resolve()
        try:
            source = path.read_text(encoding="utf-8")
            tree = ast.parse(source, filename=str(path))
        except SyntaxError as exc:
            self._record_failure(path, exc.lineno or 0, f"Cannot parse source: {exc.msg}", exc)
            return None
        except (OSError, UnicodeDecodeError) as exc:
            self._record_failure(path, 0, f"Cannot read source: {exc}", exc)
            return None

        name, is_package = module_name_for(path, self.root)
        existing = self._modules.get(name)
        if existing is not None:
            message = f'Module "{name}" is already defined by {existing.path}'
            logger.warning("Skipping %s: %s", path, message)
            self.diagnostics.append(
                Diagnostic(
                    location=Location(file=str(path), declaration="<module>", line=0),
                    message=message,
                    error="DuplicateModuleError",
                )
            )
            return None

        module = ModuleInfo(name=name, path=path, tree=tree, is_package=is_package)
        self._collect_imports(module)
        self._collect_classes(module, tree.body, prefix="")
        self._modules[name] = module
        self._modules_by_path[str(path)] = module
        if self.root is not None:
            alias, _ = module_name_for(path)
            if alias != name:
                self._aliases[alias] = None if alias in self._aliases else module
        return module

    @property
    def modules(self) -> List[ModuleInfo]:
        return list(self._modules.values())

    def module_at(self, file: str) -> Optional[ModuleInfo]:
        return self._modules_by_path.get(str(Path(file).resolve()))

    def classes_in(self, module: ModuleInfo) -> Iterator[ClassInfo]:
        yield from module.classes.values()

    def class_info(self, identity: SymbolIdentity) -> Optional[ClassInfo]:
        return self._classes.get(identity)

    def identity_at(self, file: str, qualname: str) -> Optional[SymbolIdentity]:
        module = self.module_at(file)
        if module is None or qualname not in module.classes:
            return None
        return module.classes[qualname].identity

    def resolve_qualified(self, dotted: str, _depth: int = 0) -> Optional[SymbolIdentity]:
        """Resolve a fully qualified dotted name, following imports and re-exports."""
        if _depth > _MAX_ALIAS_DEPTH:
            return None
        parts = dotted.split(".")
        for cut in range(len(parts) - 1, 0, -1):
            module = self._module_named(".".join(parts[:cut]))
            if module is not None:
                return self._resolve_in_module(module, parts[cut:], _depth)
        return None

    def resolve_expression(self, module: ModuleInfo, expr: Optional[ast.expr]) -> Optional[SymbolIdentity]:
        """Resolve a name, dotted name or string forward reference to a class."""
        if expr is None:
            return None
        if isinstance(expr, ast.Constant) and isinstance(expr.value, str):
            parsed = _parse_annotation(expr.value)
            return self.resolve_expression(module, parsed) if parsed is not None else None
        dotted = dotted_name(expr)
        if dotted is None:
            return None
        return self._resolve_in_module(module, dotted.split("."), 0)

    def resolve_annotation(self, module: ModuleInfo, expr: Optional[ast.expr]) -> List[SymbolIdentity]:
        """Resolve a type annotation to class identities.

        Unions (``X | Y``, ``Optional``, ``Union``) are flattened and each member
        gets one level of generic unwrap: ``list[X]`` and ``Awaitable[X]`` yield
        ``X`` but ``list[list[X]]`` yields nothing.
        """
        identities: List[SymbolIdentity] = []
        for member in _flatten_union(expr):
            identity = self.resolve_expression(module, member)
            if identity is None and isinstance(member, ast.Subscript):
                identity = self.resolve_expression(module, member.value)
                if identity is None:
                    for argument in _subscript_args(member):
                        for inner in _flatten_union(argument):
                            if isinstance(inner, ast.Subscript):
                                continue
                            resolved = self.resolve_expression(module, inner)
                            if resolved is not None and resolved not in identities:
                                identities.append(resolved)
                    continue
            if identity is not None and identity not in identities:
                identities.append(identity)
        return identities

    def find_method(
        self, identity: SymbolIdentity, name: str
    ) -> Optional[Tuple[ClassInfo, FunctionNode]]:
        """Find ``name`` on the class or the first base class defining it."""
        pending = [identity]
        visited: Set[SymbolIdentity] = set()
        while pending:
            current = pending.pop(0)
            if current in visited:
                continue
            visited.add(current)
            info = self._classes.get(current)
            if info is None:
                continue
            if name in info.methods:
                return info, info.methods[name]
            for base in info.bases:
                resolved = self.resolve_expression(info.module, base)
                if resolved is not None:
                    pending.append(resolved)
        return None

    def _module_named(self, name: str) -> Optional[ModuleInfo]:
        module = self._modules.get(name)
        if module is None:
            module = self._aliases.get(name)
        return module

    def _resolve_in_module(
        self, module: ModuleInfo, parts: List[str], depth: int
    ) -> Optional[SymbolIdentity]:
        qualname = ".".join(parts)
        if qualname in module.classes:
            return module.classes[qualname].identity
        head = parts[0]
        if head in module.imports:
            return self.resolve_qualified(".".join([module.imports[head], *parts[1:]]), depth + 1)
        if depth < _MAX_ALIAS_DEPTH:
            for star in module.star_imports:
                star_module = self._module_named(star)
                if star_module is not None and star_module is not module:
                    resolved = self._resolve_in_module(star_module, parts, depth + 1)
                    if resolved is not None:
                        return resolved
        return None

    def _collect_imports(self, module: ModuleInfo) -> None:
        for node in ast.walk(module.tree):
            if isinstance(node, ast.Import):
                for alias in node.names:
                    if alias.asname:
                        module.imports[alias.asname] = alias.name
                    else:
                        head = alias.name.split(".", 1)[0]
                        module.imports.setdefault(head, head)
            elif isinstance(node, ast.ImportFrom):
                base = _import_base(module, node)
                if base is None:
                    continue
                for alias in node.names:
                    if alias.name == "*":
                        module.star_imports.append(base)
                        continue
                    module.imports[alias.asname or alias.name] = f"{base}.{alias.name}"

    def _collect_classes(self, module: ModuleInfo, body: List[ast.stmt], prefix: str) -> None:
        for statement in body:
            if isinstance(statement, ast.ClassDef):
                qualname = f"{prefix}{statement.name}"
                info = ClassInfo(
                    identity=SymbolIdentity(module.name, qualname),
                    node=statement,
                    module=module,
                )
                for member in statement.body:
                    if isinstance(member, (ast.FunctionDef, ast.AsyncFunctionDef)):
                        info.methods.setdefault(member.name, member)
                module.classes[qualname] = info
                self._classes[info.identity] = info
                self._collect_classes(module, statement.body, prefix=f"{qualname}.")
            elif not prefix and isinstance(statement, ast.If):
                self._collect_classes(module, statement.body + statement.orelse, prefix)
            elif not prefix and isinstance(statement, ast.Try):
                self._collect_classes(module, statement.body, prefix)

    def _record_failure(self, path: Path, line: int, message: str, exc: Exception) -> None:
        logger.warning("Skipping %s: %s", path, message)
        self.diagnostics.append(
            Diagnostic(
                location=Location(file=str(path), declaration="<module>", line=line),
                message=message,
                error=type(exc).__name__,
            )
        )


def module_name_for(path: Path, root: Optional[Path] = None) -> Tuple[str, bool]:
    """Derive the dotted module name of ``path``.

    Regular packages are climbed through their ``__init__.py`` files. Without
    a ``root`` that is the whole name. With one, the directories between the
    root and the outermost regular package are prefixed as implicit namespace
    packages, so ``payments/service.py`` becomes ``payments.service``.
    """
    path = path.resolve()
    is_package = path.stem == "__init__"
    parts: List[str] = [] if is_package else [path.stem]
    directory = path.parent
    while (directory / "__init__.py").exists() and directory.parent != directory:
        parts.insert(0, directory.name)
        directory = directory.parent
    if root is not None:
        root = Path(root).resolve()
        if directory != root and directory.is_relative_to(root):
            parts = [*directory.relative_to(root).parts, *parts]
    return ".".join(parts) or path.parent.name, is_package


def dotted_name(expr: ast.expr) -> Optional[str]:
    if isinstance(expr, ast.Name):
        return expr.id
    if isinstance(expr, ast.Attribute):
        head = dotted_name(expr.value)
        return f"{head}.{expr.attr}" if head else None
    return None


def _import_base(module: ModuleInfo, node: ast.ImportFrom) -> Optional[str]:
    if not node.level:
        return node.module
    package = module.name.split(".") if module.is_package else module.name.split(".")[:-1]
    if node.level > 1:
        package = package[: len(package) - (node.level - 1)]
    if not package and not node.module:
        return None
    return ".".join([*package, *([node.module] if node.module else [])])


def _parse_annotation(text: str) -> Optional[ast.expr]:
    try:
        return ast.parse(text, mode="eval").body
    except SyntaxError:
        return None


def _subscript_args(node: ast.Subscript) -> List[ast.expr]:
    if isinstance(node.slice, ast.Tuple):
        return list(node.slice.elts)
    return [node.slice]


def _flatten_union(expr: Optional[ast.expr]) -> List[ast.expr]:
    if expr is None:
        return []
    if isinstance(expr, ast.Constant):
        if isinstance(expr.value, str):
            parsed = _parse_annotation(expr.value)
            return _flatten_union(parsed)
        return []
    if isinstance(expr, ast.BinOp) and isinstance(expr.op, ast.BitOr):
        return _flatten_union(expr.left) + _flatten_union(expr.right)
    if isinstance(expr, ast.Subscript):
        wrapper = dotted_name(expr.value)
        if wrapper and wrapper.rsplit(".", 1)[-1] in _UNION_WRAPPERS:
            arguments = _subscript_args(expr)
            if wrapper.endswith("Annotated"):
                arguments = arguments[:1]
            members: List[ast.expr] = []
            for argument in arguments:
                members.extend(_flatten_union(argument))
            return members
    return [expr]


__all__ = ["ClassInfo", "FunctionNode", "ModuleInfo", "ProgramIndex", "dotted_name", "module_name_for"]
