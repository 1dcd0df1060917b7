"""Tests for the docstring tag grammar."""

from __future__ import annotations

import pytest

from c4model.tags import ParsedTag, SchemaError, TagParser, TagSchema, split_docstring

SCHEMA = TagSchema(
    args=["string", "string", "?string"],
    params={"tags": "list", "properties": "dict", "notes": "string"},
)


def test_parse_splits_pipe_arguments_and_parameters() -> None:
    content = "\n".join(
        [
            "PaymentService | Charges the customer | HTTP",
            "- tags: DirectRelation, critical",
            "- properties:",
            "  owner: payments-team",
            "  sla: 99.9",
        ]
    )

    parsed = TagParser().parse(content, SCHEMA)

    assert parsed.args == ["PaymentService", "Charges the customer", "HTTP"]
    assert parsed.params["tags"] == ["DirectRelation", "critical"]
    assert parsed.params["properties"] == {"owner": "payments-team", "sla": "99.9"}


def test_parse_reads_multiline_values() -> None:
    content = "\n".join(
        [
            "Target | Description",
            '- notes: """',
            "  first line",
            "  @not-a-tag line",
            '  """',
            "- tags: a,, b ,",
        ]
    )

    parsed = TagParser().parse(content, SCHEMA)

    assert parsed.params["notes"] == "first line\n@not-a-tag line"
    assert parsed.params["tags"] == ["a", "b"]


def test_single_argument_schema_takes_whole_line() -> None:
    parsed = TagParser().parse("Business/Order Processing", TagSchema(args=["string"]))
    assert parsed.args == ["Business/Order Processing"]


@pytest.mark.parametrize(
    "content, message",
    [
        ("OnlyTarget", "Missing required argument at position 1"),
        ("A | B | C | D", "Too many arguments. Expected 3, got 4"),
        ("A | B\n- colour: red", "Unknown parameter: colour"),
        ('A | B\n- notes: """\nnever closed', "Unterminated multi-line value"),
        ("A | B\n- properties: inline", "expects a key/value block"),
    ],
)
def test_parse_rejects_content_outside_schema(content: str, message: str) -> None:
    with pytest.raises(SchemaError) as excinfo:
        TagParser().parse(content, SCHEMA)
    assert message in str(excinfo.value)


def test_schema_rejects_required_after_optional() -> None:
    with pytest.raises(SchemaError):
        TagSchema(args=["?string", "string"])


def test_schema_rejects_unknown_types() -> None:
    with pytest.raises(SchemaError):
        TagSchema(args=["number"])


def test_render_output_parses_to_same_values() -> None:
    parser = TagParser()
    expected = ParsedTag(
        args=["Target", "Description", "gRPC"],
        params={
            "tags": ["DirectRelation", "critical"],
            "properties": {"owner": "team-a"},
            "notes": "line one\nline two",
        },
    )

    rendered = parser.render(expected, SCHEMA)

    assert parser.parse(rendered, SCHEMA) == expected
    assert parser.render(parser.parse(rendered, SCHEMA), SCHEMA) == rendered


def test_split_docstring_separates_comment_from_tags() -> None:
    comment, tags = split_docstring(
        """Service managing orders.

        Second sentence.

        @c4Component
        - technology: Python
        @c4Relation PaymentService | Charges | HTTP
        """
    )

    assert comment == "Service managing orders.\nSecond sentence."
    assert [tag.name for tag in tags] == ["c4Component", "c4Relation"]
    assert tags[0].offset == 4
    assert tags[1].offset == 6
    assert tags[1].content.strip() == "PaymentService | Charges | HTTP"


def test_split_docstring_without_tags() -> None:
    comment, tags = split_docstring("Just prose.")
    assert comment == "Just prose."
    assert tags == []
