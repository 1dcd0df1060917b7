"""Tests for c4model.orchestrator."""

from __future__ import annotations

from pathlib import Path

import pytest

from c4model.config import ConfigError
from c4model.models import DIRECT_TAG
from c4model.orchestrator import AnalysisOptions, Orchestrator, summarize_problems
from c4model.validators import ModelValidationError
from tests._fixtures.program_builder import ProgramBuilder

CONTAINER_CONFIG = """
name: orders
description: Order management
source:
  - "src/**/*.py"
groups:
  Business:
    - Order Processing
    - Payment Processing
external:
  metrics-service:
    description: Collects metrics
"""

SOURCES = {
    "src/shop/__init__.py": "",
    "src/shop/orders.py": """
    from shop.payments import PaymentService


    class OrderService:
        '''Accepts orders.

        @c4Component
        @c4Relation PaymentService | Charges the customer | HTTP
        @c4Relation metrics-service | Publishes metrics
        @c4Relation Inventory | Reserves stock
        '''

        def __init__(self, payments: PaymentService) -> None:
            self.payments = payments
    """,
    "src/shop/payments.py": """
    class PaymentService:
        '''Charges cards.

        @c4Component
        @c4Group Business/Payment Processing
        '''
    """,
    "src/shop/reporter.py": """
    from shop.orders import OrderService


    class Reporter:
        '''
        @c4Component
        '''

        def __init__(self, orders: OrderService) -> None:
            self.total = 0
    """,
}


def _container(builder: ProgramBuilder) -> Path:
    builder.write({"c4container.yml": CONTAINER_CONFIG, **SOURCES})
    return builder.path()


def test_analyze_container_reconciles_declared_and_undeclared(program_builder: ProgramBuilder) -> None:
    analysis = Orchestrator().analyze_container(_container(program_builder))

    assert analysis.name == "orders"
    assert [component.name for component in analysis.components] == ["OrderService", "PaymentService", "Reporter"]

    declared = {result.relation.target: result for result in analysis.declared_results}
    assert declared["PaymentService"].relation.tags == [DIRECT_TAG]
    assert declared["metrics-service"].errors == []
    assert declared["Inventory"].target_exists is False
    assert [result.relation.target for result in analysis.invalid_results] == ["Inventory"]

    undeclared = analysis.undeclared_results
    assert [(item.relation.source, item.relation.target) for item in undeclared] == [("Reporter", "OrderService")]
    assert summarize_problems([analysis]) == 2

    payments_group = analysis.groups[1].child("Payment Processing")
    assert payments_group is not None
    assert payments_group.components == ["PaymentService"]
    assert analysis.groups[0].components == ["OrderService", "Reporter"]


def test_to_dict_respects_report_options(program_builder: ProgramBuilder) -> None:
    root = _container(program_builder)

    default = Orchestrator().analyze_container(root).to_dict()
    assert [result["relation"]["target"] for result in default["relations"]] == ["PaymentService", "metrics-service"]
    assert "invalidRelations" not in default
    assert "undeclaredRelations" not in default
    assert default["description"] == "Order management"

    invalid_only = Orchestrator(AnalysisOptions(invalid_only=True)).analyze_container(root).to_dict()
    assert "components" not in invalid_only
    assert "relations" not in invalid_only
    assert len(invalid_only["invalidRelations"]) == 1
    assert invalid_only["undeclaredSummary"] == [
        {"from": "Reporter", "to": "OrderService", "type": "constructor", "count": 1}
    ]


def test_strict_mode_fails_on_skipped_declarations(program_builder: ProgramBuilder) -> None:
    root = _container(program_builder)
    program_builder.write({"src/shop/broken.py": "class Broken(:\n"})

    lenient = Orchestrator().analyze_container(root)
    assert [item.error for item in lenient.diagnostics] == ["SyntaxError"]

    with pytest.raises(ModelValidationError) as excinfo:
        Orchestrator(AnalysisOptions(strict=True)).analyze_container(root)
    assert len(excinfo.value.diagnostics) == 1


def _write_workspace(builder: ProgramBuilder, billing_name: str = "billing") -> Path:
    builder.write(
        {
            "c4workspace.yml": """
            name: shop
            containers:
              - orders/c4container.yml
              - billing/c4container.yml
            """,
            "orders/c4container.yml": "name: orders\n",
            "orders/checkout.py": """
            class Checkout:
                '''
                @c4Component
                @c4Relation billing.Invoices | Requests invoices | HTTP
                '''
            """,
            "billing/c4container.yml": f"name: {billing_name}\n",
            "billing/invoices.py": """
            class Invoices:
                '''
                @c4Component
                '''
            """,
        }
    )
    return builder.path()


def test_analyze_workspace_derives_container_relations(program_builder: ProgramBuilder) -> None:
    workspace = Orchestrator(max_workers=2).analyze_workspace(_write_workspace(program_builder))

    assert [analysis.name for analysis in workspace.containers] == ["orders", "billing"]
    assert workspace.issues == []
    assert [(link.source, link.target, link.description) for link in workspace.relations] == [
        ("orders", "billing", "makes HTTP calls to")
    ]
    orders = workspace.containers[0]
    assert orders.invalid_results == []
    assert workspace.to_dict()["relations"][0]["technology"] == "HTTP"


def test_workspace_rejects_duplicate_container_names(program_builder: ProgramBuilder) -> None:
    root = _write_workspace(program_builder, billing_name="orders")

    with pytest.raises(ConfigError) as excinfo:
        Orchestrator().analyze_workspace(root)
    assert excinfo.value.errors == ['Container name "orders" is used more than once']
