from __future__ import annotations

import ast

from c4model.program import IdentityResolver, NameResolver, ProgramIndex, SymbolIdentity
from c4model.program.index import module_name_for
from tests._fixtures.program_builder import ProgramBuilder


def _annotation(text: str) -> ast.expr:
    return ast.parse(text, mode="eval").body


def _write_package(builder: ProgramBuilder) -> None:
    builder.write(
        {
            "shop/__init__.py": "from .payments import PaymentService\n",
            "shop/payments.py": """
            class PaymentService:
                class Receipt:
                    pass

                def charge(self) -> None:
                    return None
            """,
            "shop/api/__init__.py": "",
            "shop/api/handlers.py": """
            from .. import PaymentService
            from ..payments import PaymentService as Payments
            import shop.payments as payments_module
            from shop.base import *


            class Handler(BaseHandler):
                pass
            """,
            "shop/base.py": """
            class BaseHandler:
                def close(self) -> None:
                    return None
            """,
        }
    )


def test_module_names_follow_package_boundaries(program_builder: ProgramBuilder) -> None:
    _write_package(program_builder)
    root = program_builder.path()

    assert module_name_for(root / "shop" / "api" / "handlers.py") == ("shop.api.handlers", False)
    assert module_name_for(root / "shop" / "__init__.py") == ("shop", True)


def test_relative_and_aliased_imports_resolve_to_declaring_module(program_builder: ProgramBuilder) -> None:
    _write_package(program_builder)
    program = program_builder.load()
    handlers = program.module_at(str(program_builder.path() / "shop" / "api" / "handlers.py"))
    assert handlers is not None
    expected = SymbolIdentity("shop.payments", "PaymentService")

    assert program.resolve_expression(handlers, _annotation("PaymentService")) == expected
    assert program.resolve_expression(handlers, _annotation("Payments")) == expected
    assert program.resolve_expression(handlers, _annotation("payments_module.PaymentService")) == expected
    assert program.resolve_expression(handlers, _annotation("'Payments'")) == expected
    assert program.resolve_expression(handlers, _annotation("Payments.Receipt")) == SymbolIdentity(
        "shop.payments", "PaymentService.Receipt"
    )
    assert program.resolve_expression(handlers, _annotation("BaseHandler")) == SymbolIdentity(
        "shop.base", "BaseHandler"
    )
    assert program.resolve_expression(handlers, _annotation("Unknown")) is None


def test_annotations_flatten_unions_and_unwrap_one_level(program_builder: ProgramBuilder) -> None:
    _write_package(program_builder)
    program = program_builder.load()
    handlers = program.module_at(str(program_builder.path() / "shop" / "api" / "handlers.py"))
    assert handlers is not None
    payment = SymbolIdentity("shop.payments", "PaymentService")
    base = SymbolIdentity("shop.base", "BaseHandler")

    assert program.resolve_annotation(handlers, _annotation("Payments | BaseHandler | None")) == [payment, base]
    assert program.resolve_annotation(handlers, _annotation("Optional[Payments]")) == [payment]
    assert program.resolve_annotation(handlers, _annotation("Annotated[Payments, 'meta']")) == [payment]
    assert program.resolve_annotation(handlers, _annotation("dict[str, Payments]")) == [payment]
    assert program.resolve_annotation(handlers, _annotation("list[list[Payments]]")) == []
    assert program.resolve_annotation(handlers, None) == []


def test_methods_are_found_through_base_classes(program_builder: ProgramBuilder) -> None:
    _write_package(program_builder)
    program = program_builder.load()

    found = program.find_method(SymbolIdentity("shop.api.handlers", "Handler"), "close")

    assert found is not None
    owner, function = found
    assert owner.identity == SymbolIdentity("shop.base", "BaseHandler")
    assert function.name == "close"
    assert program.find_method(SymbolIdentity("shop.api.handlers", "Handler"), "missing") is None


def test_unparseable_file_becomes_diagnostic(program_builder: ProgramBuilder) -> None:
    program_builder.write({"ok.py": "class Fine:\n    pass\n", "broken.py": "class Broken(:\n"})

    program = program_builder.load()

    assert [module.name for module in program.modules] == ["ok"]
    assert len(program.diagnostics) == 1
    diagnostic = program.diagnostics[0]
    assert diagnostic.error == "SyntaxError"
    assert diagnostic.location.declaration == "<module>"
    assert diagnostic.location.file.endswith("broken.py")


def test_identity_resolver_maps_components_by_declaration(program_builder: ProgramBuilder) -> None:
    program_builder.write(
        {
            "app/__init__.py": "",
            "app/cache.py": """
            class Cache:
                '''
                @c4Component Shared Cache
                '''
            """,
        }
    )
    program = program_builder.load()
    extraction = program_builder.extract()

    index = IdentityResolver(program).build_index(extraction.components)

    assert list(index) == [SymbolIdentity("app.cache", "Cache")]
    assert index[SymbolIdentity("app.cache", "Cache")].name == "Shared Cache"
    assert str(SymbolIdentity("app.cache", "Cache")) == "app.cache:Cache"


def test_name_resolver_splits_scoped_references() -> None:
    resolver = NameResolver({"billing": ["Invoices", "Ledger"], "orders": ["Checkout"]})

    assert resolver.split("billing.Invoices") == ("billing", "Invoices")
    assert resolver.split("billing") == ("billing", None)
    assert resolver.resolve("billing.Invoices") == ("billing", "Invoices")
    assert resolver.resolve("billing.Unknown") is None
    assert resolver.resolve("shipping") is None


def _write_namespace_layout(builder: ProgramBuilder) -> None:
    builder.write(
        {
            "payments/service.py": """
            class PaymentService:
                pass
            """,
            "orders/service.py": """
            from payments.service import PaymentService


            class OrderService:
                pass
            """,
            "tool/events.py": """
            class Event:
                pass
            """,
            "tool/usage/__init__.py": "",
            "tool/usage/matcher.py": """
            from ..events import Event
            """,
        }
    )


def test_namespace_packages_are_named_from_scope_root(program_builder: ProgramBuilder) -> None:
    _write_namespace_layout(program_builder)
    root = program_builder.path()

    assert module_name_for(root / "payments" / "service.py", root) == ("payments.service", False)
    assert module_name_for(root / "tool" / "usage" / "matcher.py", root) == ("tool.usage.matcher", False)
    assert module_name_for(root / "tool" / "usage" / "matcher.py") == ("usage.matcher", False)

    program = program_builder.load()
    orders = program.module_at(str(root / "orders" / "service.py"))
    matcher = program.module_at(str(root / "tool" / "usage" / "matcher.py"))
    assert orders is not None and matcher is not None

    assert sorted(module.name for module in program.modules) == [
        "orders.service",
        "payments.service",
        "tool.events",
        "tool.usage",
        "tool.usage.matcher",
    ]
    assert program.resolve_expression(orders, _annotation("PaymentService")) == SymbolIdentity(
        "payments.service", "PaymentService"
    )
    assert program.resolve_expression(matcher, _annotation("Event")) == SymbolIdentity("tool.events", "Event")
    assert program.diagnostics == []


def test_colliding_module_names_become_diagnostic(program_builder: ProgramBuilder) -> None:
    _write_namespace_layout(program_builder)
    root = program_builder.path()

    program = ProgramIndex.load([root / "orders" / "service.py", root / "payments" / "service.py"])

    assert [module.name for module in program.modules] == ["service"]
    assert len(program.diagnostics) == 1
    diagnostic = program.diagnostics[0]
    assert diagnostic.error == "DuplicateModuleError"
    assert diagnostic.location.file.endswith("payments/service.py")
    assert "orders/service.py" in diagnostic.message


def test_src_layout_package_is_importable_by_package_name(program_builder: ProgramBuilder) -> None:
    program_builder.write(
        {
            "src/shop/__init__.py": "",
            "src/shop/payments.py": "class PaymentService:\n    pass\n",
            "src/shop/orders.py": "from shop.payments import PaymentService\n",
        }
    )

    program = program_builder.load()
    orders = program.module_at(str(program_builder.path() / "src" / "shop" / "orders.py"))
    assert orders is not None

    assert orders.name == "src.shop.orders"
    assert program.resolve_expression(orders, _annotation("PaymentService")) == SymbolIdentity(
        "src.shop.payments", "PaymentService"
    )
