"""Static usage analysis between components of one scope.

Evidence comes from declarations (constructor parameters, fields, method
signatures) and from call sites. Call sites are followed into the called
component's method so that couplings reached through intermediaries are
visible, bounded by a cycle guard and a hard depth cap.
"""

from __future__ import annotations

import ast
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence, Set, Tuple

from ..logging import get_logger
from ..models import Component, Location, ReceiverKind, UsageEvidence, UsageKind
from ..program import ClassInfo, IdentityResolver, ProgramIndex, SymbolIdentity
from ..program.index import FunctionNode, ModuleInfo, dotted_name

MAX_CALL_DEPTH = 32

_PROPERTY_DECORATORS = {"property", "cached_property"}
_SELF_NAMES = {"self", "cls"}

logger = get_logger("usage")


@dataclass(frozen=True)
class UsageSummary:
    source: str
    target: str
    kind: UsageKind
    count: int

    def to_dict(self) -> Dict[str, object]:
        return {"from": self.source, "to": self.target, "type": self.kind.value, "count": self.count}


def summarize_usage(evidence: Sequence[UsageEvidence]) -> List[UsageSummary]:
    """Collapse evidence into unique ``(source, target, kind)`` rows with counts."""
    counts: Dict[Tuple[str, str, UsageKind], int] = {}
    for item in evidence:
        key = (item.source, item.target, item.kind)
        counts[key] = counts.get(key, 0) + 1
    ordered = sorted(counts.items(), key=lambda entry: (entry[0][0], entry[0][1], entry[0][2].value))
    return [
        UsageSummary(source=source, target=target, kind=kind, count=count)
        for (source, target, kind), count in ordered
    ]


class UsageIndex:
    """Evidence produced by one :class:`UsageMatcher` run."""

    def __init__(self) -> None:
        self.evidence: List[UsageEvidence] = []
        self._pairs: Dict[Tuple[str, str], List[UsageEvidence]] = {}
        self._reach: Dict[Tuple[str, str], List[UsageEvidence]] = {}

    def __len__(self) -> int:
        return len(self.evidence)

    def add(self, evidence: UsageEvidence) -> None:
        self.evidence.append(evidence)
        self._pairs.setdefault((evidence.source, evidence.target), []).append(evidence)

    def add_reach(self, origin: str, evidence: UsageEvidence) -> None:
        """Record that ``origin`` reaches ``evidence.target`` through a call chain."""
        if origin == evidence.target:
            return
        reached = self._reach.setdefault((origin, evidence.target), [])
        if evidence not in reached:
            reached.append(evidence)

    def between(self, source: str, target: str) -> List[UsageEvidence]:
        return list(self._pairs.get((source, target), ()))

    def reached(self, source: str, target: str) -> List[UsageEvidence]:
        return list(self._reach.get((source, target), ()))

    def pairs(self) -> List[Tuple[str, str]]:
        return list(self._pairs)

    def summarize(self) -> List[UsageSummary]:
        return summarize_usage(self.evidence)


@dataclass
class _Field:
    types: List[SymbolIdentity]
    line: int
    method: Optional[str] = None


@dataclass(frozen=True)
class _CallSite:
    target: SymbolIdentity
    method: str
    receiver: ReceiverKind
    line: int
    column: int


@dataclass
class _MethodNode:
    id: int
    component: Component
    identity: SymbolIdentity
    owner: ClassInfo
    name: str
    function: FunctionNode

    @property
    def label(self) -> str:
        return f"{self.component.name}.{self.name}"


@dataclass
class _Run:
    components: Dict[SymbolIdentity, Component]
    usage: UsageIndex = field(default_factory=UsageIndex)


class UsageMatcher:
    """Finds every usage of one component by another within a program."""

    def __init__(self, program: ProgramIndex, max_depth: int = MAX_CALL_DEPTH) -> None:
        self.program = program
        self.max_depth = max_depth
        self.resolver = IdentityResolver(program)
        self._arena: List[_MethodNode] = []
        self._node_ids: Dict[Tuple[SymbolIdentity, str], Optional[int]] = {}
        self._fields: Dict[SymbolIdentity, Dict[str, _Field]] = {}
        self._sites: Dict[int, List[_CallSite]] = {}

    def match(self, components: Sequence[Component]) -> UsageIndex:
        self._arena = []
        self._node_ids = {}
        run = _Run(components=self.resolver.build_index(components))
        for identity, component in run.components.items():
            info = self.program.class_info(identity)
            if info is None:
                continue
            self._scan_component(run, identity, info, component)
        logger.info(
            "Found %d usage evidence items across %d component pairs",
            len(run.usage),
            len(run.usage.pairs()),
        )
        return run.usage

    def _scan_component(
        self, run: _Run, identity: SymbolIdentity, info: ClassInfo, component: Component
    ) -> None:
        module = info.module

        def emit(kind: UsageKind, types: Sequence[SymbolIdentity], line: int, method: Optional[str]) -> None:
            for target_identity in types:
                target = run.components.get(target_identity)
                if target is None or target_identity == identity:
                    continue
                location = Location(file=str(module.path), declaration=info.qualname, line=line, method=method)
                run.usage.add(UsageEvidence(source=component.name, target=target.name, kind=kind, location=location))

        init = info.methods.get("__init__")
        if init is not None:
            for arg in _parameters(init):
                emit(UsageKind.CONSTRUCTOR, self.program.resolve_annotation(module, arg.annotation), arg.lineno, "__init__")

        for attribute in self._class_fields(info).values():
            emit(UsageKind.FIELD, attribute.types, attribute.line, attribute.method)

        expanded: Set[int] = set()
        for name, function in info.methods.items():
            if name != "__init__" and not _is_property(function):
                for arg in _parameters(function):
                    emit(UsageKind.METHOD_PARAM, self.program.resolve_annotation(module, arg.annotation), arg.lineno, name)
                emit(UsageKind.METHOD_RETURN, self.program.resolve_annotation(module, function.returns), function.lineno, name)
            root = self._node_for(run, identity, name)
            if root is not None:
                self._traverse(run, root, identity, expanded)

    def _traverse(self, run: _Run, root: int, origin: SymbolIdentity, expanded: Set[int]) -> None:
        """Depth-first walk over call sites starting at ``root``.

        ``expanded`` is shared by every root of one originating component, so a
        method reached from several of its methods is walked only once.

        Call evidence is recorded only for the originating component's own
        methods, so its chain never depends on which component was scanned
        first. Hops inside other components are kept as reach entries carrying
        the full chain from the origin.
        """
        origin_name = run.components[origin].name
        stack: List[Tuple[int, Tuple[int, ...]]] = [(root, (root,))]
        while stack:
            node_id, chain = stack.pop()
            if node_id in expanded:
                continue
            expanded.add(node_id)
            node = self._arena[node_id]
            labels = tuple(self._arena[item].label for item in chain)
            children: List[Tuple[int, Tuple[int, ...]]] = []

            for site in self._call_sites(node.owner, node.function):
                if site.target in (node.identity, node.owner.identity):
                    continue
                target = run.components.get(site.target)
                if target is None:
                    continue
                evidence = UsageEvidence(
                    source=node.component.name,
                    target=target.name,
                    kind=UsageKind.METHOD_CALL,
                    location=Location(
                        file=str(node.owner.module.path),
                        declaration=node.owner.qualname,
                        line=site.line,
                        method=node.name,
                    ),
                    call_chain=labels,
                    receiver=site.receiver,
                )
                if node.identity == origin:
                    run.usage.add(evidence)
                else:
                    run.usage.add_reach(origin_name, evidence)

                if site.target == origin:
                    continue
                child = self._node_for(run, site.target, site.method)
                if child is None or child in chain:
                    continue
                if len(chain) >= self.max_depth:
                    logger.debug("Call chain depth cap reached at %s", " -> ".join(labels))
                    continue
                children.append((child, chain + (child,)))

            stack.extend(reversed(children))

    def _node_for(self, run: _Run, identity: SymbolIdentity, method: str) -> Optional[int]:
        key = (identity, method)
        if key in self._node_ids:
            return self._node_ids[key]
        found = self.program.find_method(identity, method)
        component = run.components.get(identity)
        node_id: Optional[int] = None
        if found is not None and component is not None:
            owner, function = found
            node_id = len(self._arena)
            self._arena.append(
                _MethodNode(
                    id=node_id,
                    component=component,
                    identity=identity,
                    owner=owner,
                    name=method,
                    function=function,
                )
            )
        self._node_ids[key] = node_id
        return node_id

    def _class_fields(self, info: ClassInfo) -> Dict[str, _Field]:
        cached = self._fields.get(info.identity)
        if cached is not None:
            return cached

        module = info.module
        fields: Dict[str, _Field] = {}
        for statement in info.node.body:
            if isinstance(statement, ast.AnnAssign) and isinstance(statement.target, ast.Name):
                types = self.program.resolve_annotation(module, statement.annotation)
                if types:
                    fields.setdefault(statement.target.id, _Field(types, statement.lineno))

        for name, function in _init_first(info):
            if _is_property(function):
                types = self.program.resolve_annotation(module, function.returns)
                if types:
                    fields.setdefault(name, _Field(types, function.lineno, name))
                continue
            params = {
                arg.arg: self.program.resolve_annotation(module, arg.annotation) for arg in _parameters(function)
            }
            for statement in _assignments(function):
                value = statement.value
                annotation = statement.annotation if isinstance(statement, ast.AnnAssign) else None
                targets = statement.targets if isinstance(statement, ast.Assign) else [statement.target]
                for target in targets:
                    attribute = _self_attribute(target)
                    if attribute is None or attribute in fields:
                        continue
                    if annotation is not None:
                        types = self.program.resolve_annotation(module, annotation)
                    else:
                        types = self._value_types(module, value, params)
                    if types:
                        fields[attribute] = _Field(types, statement.lineno, name)

        self._fields[info.identity] = fields
        return fields

    def _call_sites(self, owner: ClassInfo, function: FunctionNode) -> List[_CallSite]:
        cached = self._sites.get(id(function))
        if cached is not None:
            return cached

        module = owner.module
        fields = self._class_fields(owner)
        env: Dict[str, Tuple[List[SymbolIdentity], ReceiverKind]] = {}
        for arg in _parameters(function):
            types = self.program.resolve_annotation(module, arg.annotation)
            if types:
                env[arg.arg] = (types, ReceiverKind.PARAMETER)

        # Flow-insensitive: the last typed assignment to a local wins.
        for statement in _assignments(function):
            if isinstance(statement, ast.AnnAssign):
                if isinstance(statement.target, ast.Name):
                    types = self.program.resolve_annotation(module, statement.annotation)
                    if types:
                        env[statement.target.id] = (types, ReceiverKind.LOCAL)
                continue
            local_params = {name: types for name, (types, _) in env.items()}
            types = self._value_types(module, statement.value, local_params, fields)
            if not types:
                continue
            for target in statement.targets:
                if isinstance(target, ast.Name):
                    env[target.id] = (types, ReceiverKind.LOCAL)

        calls = sorted(
            (node for node in _walk_body(function) if isinstance(node, ast.Call)),
            key=lambda node: (node.lineno, node.col_offset),
        )
        receivers = {
            id(call.func.value)
            for call in calls
            if isinstance(call.func, ast.Attribute) and isinstance(call.func.value, ast.Call)
        }

        sites: List[_CallSite] = []
        for call in calls:
            func = call.func
            if isinstance(func, ast.Attribute):
                types, kind = self._receiver_types(module, func.value, env, fields)
                if types:
                    sites.extend(
                        _CallSite(target, func.attr, kind, call.lineno, call.col_offset) for target in types
                    )
                    continue
            if id(call) in receivers:
                continue
            constructed = self.program.resolve_expression(module, func)
            if constructed is not None:
                sites.append(_CallSite(constructed, "__init__", ReceiverKind.INSTANCE, call.lineno, call.col_offset))

        self._sites[id(function)] = sites
        return sites

    def _receiver_types(
        self,
        module: ModuleInfo,
        receiver: ast.expr,
        env: Dict[str, Tuple[List[SymbolIdentity], ReceiverKind]],
        fields: Dict[str, _Field],
    ) -> Tuple[List[SymbolIdentity], ReceiverKind]:
        attribute = _self_attribute(receiver)
        if attribute is not None:
            stored = fields.get(attribute)
            return (list(stored.types) if stored else []), ReceiverKind.FIELD
        if isinstance(receiver, ast.Name):
            if receiver.id in _SELF_NAMES:
                return [], ReceiverKind.FIELD
            if receiver.id in env:
                types, kind = env[receiver.id]
                return list(types), kind
        if isinstance(receiver, ast.Call):
            constructed = self.program.resolve_expression(module, receiver.func)
            return ([constructed] if constructed else []), ReceiverKind.INSTANCE
        referenced = self.program.resolve_expression(module, receiver)
        return ([referenced] if referenced else []), ReceiverKind.CLASS

    def _value_types(
        self,
        module: ModuleInfo,
        value: Optional[ast.expr],
        params: Dict[str, List[SymbolIdentity]],
        fields: Optional[Dict[str, _Field]] = None,
    ) -> List[SymbolIdentity]:
        if value is None:
            return []
        if isinstance(value, ast.Name):
            return list(params.get(value.id, []))
        if isinstance(value, ast.Call):
            constructed = self.program.resolve_expression(module, value.func)
            return [constructed] if constructed else []
        attribute = _self_attribute(value)
        if attribute is not None and fields and attribute in fields:
            return list(fields[attribute].types)
        return []


def _parameters(function: FunctionNode) -> List[ast.arg]:
    positional = [*function.args.posonlyargs, *function.args.args]
    if positional and not _has_decorator(function, {"staticmethod"}):
        positional = positional[1:]
    extra = [arg for arg in (function.args.vararg, function.args.kwarg) if arg is not None]
    return [*positional, *function.args.kwonlyargs, *extra]


def _has_decorator(function: FunctionNode, names: Set[str]) -> bool:
    for decorator in function.decorator_list:
        target = decorator.func if isinstance(decorator, ast.Call) else decorator
        dotted = dotted_name(target)
        if dotted and dotted.rsplit(".", 1)[-1] in names:
            return True
    return False


def _is_property(function: FunctionNode) -> bool:
    return _has_decorator(function, _PROPERTY_DECORATORS)


def _init_first(info: ClassInfo) -> Iterator[Tuple[str, FunctionNode]]:
    init = info.methods.get("__init__")
    if init is not None:
        yield "__init__", init
    for name, function in info.methods.items():
        if name != "__init__":
            yield name, function


def _self_attribute(node: ast.expr) -> Optional[str]:
    if isinstance(node, ast.Attribute) and isinstance(node.value, ast.Name) and node.value.id == "self":
        return node.attr
    return None


def _walk_body(function: FunctionNode) -> Iterator[ast.AST]:
    stack: List[ast.AST] = [node for node in reversed(function.body) if not isinstance(node, ast.ClassDef)]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(
            reversed([child for child in ast.iter_child_nodes(node) if not isinstance(child, ast.ClassDef)])
        )


def _assignments(function: FunctionNode) -> List[ast.stmt]:
    statements = [node for node in _walk_body(function) if isinstance(node, (ast.Assign, ast.AnnAssign))]
    return sorted(statements, key=lambda node: (node.lineno, node.col_offset))


__all__ = ["MAX_CALL_DEPTH", "UsageIndex", "UsageMatcher", "UsageSummary", "summarize_usage"]
