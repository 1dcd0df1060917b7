from __future__ import annotations

import pytest

from c4model.config import GroupPolicy
from c4model.extractors import (
    ComponentExtractor,
    InvalidGroupPathError,
    InvalidNameError,
    UndeclaredGroupError,
)
from c4model.models import Perspective
from c4model.program import SymbolIdentity
from tests._fixtures.program_builder import ProgramBuilder

ORDERS_MODULE = """
class OrderService:
    '''Service managing order processing.

    @c4Component
    - technology: Python
    - tags: core, orders, core
    - url: https://example.com/orders
    - properties:
      owner: team-orders
    - perspectives:
      security: Handles card data | high
    @c4Group Business/Order Processing
    '''


class Helper:
    '''Plain helper without annotations.'''


class Renamed:
    '''
    @c4Component Order Gateway
    - description: Explicit description
    '''
"""


def _class(builder: ProgramBuilder, module: str, qualname: str):
    program = builder.load()
    info = program.class_info(SymbolIdentity(module, qualname))
    assert info is not None
    return info


def test_extracts_component_metadata(program_builder: ProgramBuilder) -> None:
    program_builder.write({"shop/__init__.py": "", "shop/orders.py": ORDERS_MODULE})

    component = ComponentExtractor().extract(_class(program_builder, "shop.orders", "OrderService"))

    assert component is not None
    assert component.name == "OrderService"
    assert component.description == "Service managing order processing."
    assert component.technology == "Python"
    assert component.tags == ["core", "orders"]
    assert component.url == "https://example.com/orders"
    assert component.properties == {"owner": "team-orders"}
    assert component.perspectives == {"security": Perspective(description="Handles card data", value="high")}
    assert component.group == "Business/Order Processing"
    assert component.location.declaration == "OrderService"
    assert component.location.line == 1
    assert component.location.file.endswith("orders.py")


def test_explicit_name_and_description_override_defaults(program_builder: ProgramBuilder) -> None:
    program_builder.write({"shop/__init__.py": "", "shop/orders.py": ORDERS_MODULE})

    component = ComponentExtractor().extract(_class(program_builder, "shop.orders", "Renamed"))

    assert component is not None
    assert component.name == "Order Gateway"
    assert component.description == "Explicit description"


def test_classes_without_component_tag_are_ignored(program_builder: ProgramBuilder) -> None:
    program_builder.write({"shop/__init__.py": "", "shop/orders.py": ORDERS_MODULE})
    info = _class(program_builder, "shop.orders", "Helper")

    extractor = ComponentExtractor()

    assert extractor.supports(info) is False
    assert extractor.extract(info) is None


def test_invalid_component_name_is_rejected(program_builder: ProgramBuilder) -> None:
    program_builder.write(
        {
            "bad.py": """
            class Broken:
                '''
                @c4Component Bad.Name
                '''
            """
        }
    )

    with pytest.raises(InvalidNameError):
        ComponentExtractor().extract(_class(program_builder, "bad", "Broken"))


def test_path_policy_rejects_illegal_segment(program_builder: ProgramBuilder) -> None:
    program_builder.write(
        {
            "grouped.py": """
            class Grouped:
                '''
                @c4Component
                @c4Group Business/Order_Processing
                '''
            """
        }
    )

    with pytest.raises(InvalidGroupPathError) as excinfo:
        ComponentExtractor().extract(_class(program_builder, "grouped", "Grouped"))
    assert excinfo.value.location is not None
    assert excinfo.value.location.line == 4


def test_path_policy_requires_configured_path(program_builder: ProgramBuilder) -> None:
    program_builder.write({"shop/__init__.py": "", "shop/orders.py": ORDERS_MODULE})
    info = _class(program_builder, "shop.orders", "OrderService")

    configured = ComponentExtractor(groups={"Business": {"Order Processing": {}}})
    assert configured.extract(info) is not None

    with pytest.raises(UndeclaredGroupError):
        ComponentExtractor(groups={"Business": {"Payments": {}}}).extract(info)


def test_flat_policy_looks_up_names_at_any_level(program_builder: ProgramBuilder) -> None:
    program_builder.write(
        {
            "flat.py": """
            class Nested:
                '''
                @c4Component
                @c4Group Order Processing
                '''


            class Lost:
                '''
                @c4Component
                @c4Group Warehouse
                '''
            """
        }
    )
    extractor = ComponentExtractor(groups={"Business": {"Order Processing": {}}}, policy=GroupPolicy.FLAT)

    nested = extractor.extract(_class(program_builder, "flat", "Nested"))
    assert nested is not None
    assert nested.group == "Order Processing"

    with pytest.raises(UndeclaredGroupError):
        extractor.extract(_class(program_builder, "flat", "Lost"))


def test_scope_extraction_recovers_per_declaration(program_builder: ProgramBuilder) -> None:
    program_builder.write(
        {
            "app/__init__.py": "",
            "app/first.py": """
            class Repo:
                '''
                @c4Component
                '''


            class Broken:
                '''
                @c4Component Not|Valid|Name
                '''
            """,
            "app/second.py": """
            class Repo:
                '''
                @c4Component
                '''


            class Cache:
                '''
                @c4Component
                '''
            """,
            "app/syntax.py": "def broken(:\n",
        }
    )

    extraction = program_builder.extract()

    assert [component.name for component in extraction.components] == ["Repo", "Cache"]
    errors = sorted(diagnostic.error for diagnostic in extraction.diagnostics)
    assert errors == ["DuplicateComponentError", "SchemaError", "SyntaxError"]
