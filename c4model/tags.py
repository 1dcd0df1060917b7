"""Grammar for the structured tags embedded in docstrings.

A tag block has an argument line followed by dash-prefixed parameters::

    @c4Relation PaymentService | Charges the customer | HTTP
    - tags: DirectRelation, critical
    - properties:
      owner: payments-team
      sla: 99.9

A parameter whose value is three double quotes opens a multi-line value that
runs until the closing three double quotes.
"""

from __future__ import annotations

import inspect
import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

_VALUE_TYPES = ("string", "list", "dict")
_MULTILINE = '"""'
_TAG_LINE = re.compile(r"^@(\w+)\b\s*(.*)$")

ParamValue = Union[str, List[str], Dict[str, str]]


class SchemaError(ValueError):
    """Raised when tag content (or a tag schema itself) violates the grammar."""


@dataclass
class TagSchema:
    """Expected shape of a tag: ordered argument types and named parameter types.

    Argument types prefixed with ``?`` are optional. The schema is checked once,
    on construction.
    """

    args: Sequence[str] = ()
    params: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.args = tuple(self.args)
        self.params = dict(self.params)
        found_optional = False
        for position, declared in enumerate(self.args):
            optional = declared.startswith("?")
            base = declared[1:] if optional else declared
            if base not in _VALUE_TYPES:
                raise SchemaError(f"Unknown argument type '{declared}' at position {position}")
            if found_optional and not optional:
                raise SchemaError("Required arguments cannot follow optional arguments")
            found_optional = found_optional or optional
        for name, declared in self.params.items():
            if declared not in _VALUE_TYPES:
                raise SchemaError(f"Unknown type '{declared}' for parameter '{name}'")

    def is_optional(self, position: int) -> bool:
        return self.args[position].startswith("?")


@dataclass
class ParsedTag:
    """Arguments and parameters extracted from one tag block."""

    args: List[str] = field(default_factory=list)
    params: Dict[str, ParamValue] = field(default_factory=dict)

    def arg(self, position: int) -> Optional[str]:
        if position < len(self.args) and self.args[position]:
            return self.args[position]
        return None

    def param_str(self, name: str) -> Optional[str]:
        value = self.params.get(name)
        return value if isinstance(value, str) and value else None

    def param_list(self, name: str) -> List[str]:
        value = self.params.get(name)
        return list(value) if isinstance(value, list) else []

    def param_dict(self, name: str) -> Dict[str, str]:
        value = self.params.get(name)
        return dict(value) if isinstance(value, dict) else {}


@dataclass
class RawTag:
    """Unparsed tag block as found in a docstring."""

    name: str
    lines: List[str]
    offset: int

    @property
    def content(self) -> str:
        return "\n".join(self.lines)


def split_docstring(text: Optional[str]) -> Tuple[str, List[RawTag]]:
    """Split a docstring into its free-text comment and its raw tag blocks."""
    if not text:
        return "", []

    comment_lines: List[str] = []
    tags: List[RawTag] = []
    current: Optional[RawTag] = None
    in_block = False
    for index, line in enumerate(inspect.cleandoc(text).splitlines()):
        stripped = line.strip()
        match = None if in_block else _TAG_LINE.match(stripped)
        if match:
            current = RawTag(name=match.group(1), lines=[match.group(2)], offset=index)
            tags.append(current)
        elif current is None:
            if stripped:
                comment_lines.append(stripped)
            continue
        else:
            current.lines.append(line)
        if stripped.count(_MULTILINE) % 2 == 1:
            in_block = not in_block
    return "\n".join(comment_lines), tags


class TagParser:
    """Parses tag content into arguments and parameters according to a schema."""

    def parse(self, content: str, schema: TagSchema) -> ParsedTag:
        lines = [line.strip() for line in content.splitlines()]
        lines = [line for line in lines if line]
        if not lines:
            self._validate_args([], schema)
            return ParsedTag()

        param_start = next(
            (index for index, line in enumerate(lines) if line.startswith("-")), len(lines)
        )
        args = self._parse_args(" ".join(lines[:param_start]))
        self._validate_args(args, schema)
        params = self._parse_params(lines[param_start:], schema)
        return ParsedTag(args=args, params=params)

    def render(self, parsed: ParsedTag, schema: TagSchema) -> str:
        """Serialise parsed values back into tag content that parses to the same values."""
        lines: List[str] = []
        args = list(parsed.args)
        while args and not args[-1]:
            args.pop()
        if args:
            lines.append(" | ".join(args))

        for name, value in parsed.params.items():
            if isinstance(value, Mapping) or schema.params.get(name) == "dict":
                lines.append(f"- {name}:")
                lines.extend(f"  {key}: {item}" for key, item in dict(value).items())
            elif isinstance(value, list):
                lines.append(f"- {name}: {', '.join(value)}")
            elif "\n" in value:
                lines.append(f"- {name}: {_MULTILINE}")
                lines.extend(f"  {part}" for part in value.splitlines())
                lines.append(f"  {_MULTILINE}")
            else:
                lines.append(f"- {name}: {value}")
        return "\n".join(lines)

    @staticmethod
    def _parse_args(text: str) -> List[str]:
        text = text.strip()
        if not text:
            return []
        if "|" in text:
            return [_unquote(part.strip()) for part in text.split("|")]
        return [_unquote(text)]

    @staticmethod
    def _validate_args(args: Sequence[str], schema: TagSchema) -> None:
        for position in range(len(schema.args)):
            value = args[position] if position < len(args) else ""
            if not value and not schema.is_optional(position):
                raise SchemaError(f"Missing required argument at position {position}")
        if len(args) > len(schema.args):
            raise SchemaError(
                f"Too many arguments. Expected {len(schema.args)}, got {len(args)}"
            )

    def _parse_params(self, lines: Sequence[str], schema: TagSchema) -> Dict[str, ParamValue]:
        params: Dict[str, ParamValue] = {}
        block_name: Optional[str] = None
        block_lines: List[str] = []
        dict_name: Optional[str] = None
        dict_values: Dict[str, str] = {}

        for line in lines:
            if block_name is not None:
                if _MULTILINE in line:
                    head = line.split(_MULTILINE, 1)[0].strip()
                    if head:
                        block_lines.append(head)
                    params[block_name] = self._convert(block_name, "\n".join(block_lines), schema)
                    block_name = None
                    block_lines = []
                else:
                    block_lines.append(line)
                continue

            if dict_name is not None:
                if not line.startswith("-") and ":" in line:
                    key, _, value = line.partition(":")
                    dict_values[key.strip()] = value.strip()
                    continue
                params[dict_name] = dict_values
                dict_name = None
                dict_values = {}

            if not line.startswith("-"):
                continue

            name, _, value = line[1:].partition(":")
            name = name.strip()
            value = value.strip()
            if not name:
                raise SchemaError(f"Malformed parameter line: '{line}'")
            if name not in schema.params:
                raise SchemaError(f"Unknown parameter: {name}")

            if value.startswith(_MULTILINE):
                rest = value[len(_MULTILINE):]
                if _MULTILINE in rest:
                    params[name] = self._convert(name, rest.split(_MULTILINE, 1)[0].strip(), schema)
                else:
                    block_name = name
                    block_lines = [rest.strip()] if rest.strip() else []
            elif not value and schema.params[name] == "dict":
                dict_name = name
                dict_values = {}
            else:
                params[name] = self._convert(name, value, schema)

        if block_name is not None:
            raise SchemaError(f"Unterminated multi-line value for parameter '{block_name}'")
        if dict_name is not None:
            params[dict_name] = dict_values
        return params

    @staticmethod
    def _convert(name: str, value: str, schema: TagSchema) -> ParamValue:
        declared = schema.params[name]
        if declared == "list":
            return [item.strip() for item in value.split(",") if item.strip()]
        if declared == "dict":
            raise SchemaError(f"Parameter '{name}' expects a key/value block")
        return value


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] == '"':
        return value[1:-1]
    return value


__all__ = [
    "ParamValue",
    "ParsedTag",
    "RawTag",
    "SchemaError",
    "TagParser",
    "TagSchema",
    "split_docstring",
]
