from __future__ import annotations

import pytest

from c4model.models import DIRECT_TAG, INDIRECT_TAG, Component, DeclaredRelation, Location
from c4model.validators import (
    ModelValidationError,
    check_components,
    check_model,
    check_relations,
    drop_duplicate_relations,
    raise_for_violations,
)


def _location(line: int) -> Location:
    return Location(file="app/orders.py", declaration="Orders", line=line)


def _relation(target: str, line: int, **kwargs) -> DeclaredRelation:
    kwargs.setdefault("description", "Charges the customer")
    return DeclaredRelation(source="Orders", target=target, location=_location(line), **kwargs)


def test_duplicate_relation_with_other_technology_is_dropped() -> None:
    first = _relation("Payments", 4, technology="HTTP")
    second = _relation("Payments", 9, technology="gRPC")
    orders = Component(name="Orders", description="", location=_location(1), relations=[first, second])

    violations = drop_duplicate_relations([orders])

    assert orders.relations == [first]
    assert len(violations) == 1
    assert violations[0].rule == "duplicate-relation"
    assert violations[0].location == _location(9)
    assert "first declared at app/orders.py:4" in violations[0].detail


def test_same_target_with_other_description_is_kept() -> None:
    relations = [_relation("Payments", 4), _relation("Payments", 5, description="Refunds orders")]
    orders = Component(name="Orders", description="", location=_location(1), relations=list(relations))

    assert drop_duplicate_relations([orders]) == []
    assert orders.relations == relations


def test_relation_rules_report_every_violation() -> None:
    orders = Component(
        name="Orders",
        description="",
        location=_location(1),
        relations=[
            _relation("Orders", 3),
            _relation("Payments", 4, tags=[DIRECT_TAG, INDIRECT_TAG]),
            _relation(" ", 5),
        ],
    )

    rules = sorted(violation.rule for violation in check_relations([orders]))

    assert rules == ["cyclic-relation", "missing-field", "tag-conflict"]


def test_duplicate_component_names() -> None:
    components = [
        Component(name="Cache", description="", location=_location(1)),
        Component(name="Cache", description="", location=Location("app/other.py", "Cache", 7)),
    ]

    violations = check_components(components)

    assert [violation.subject for violation in violations] == ["Cache"]
    assert violations[0].location.file == "app/other.py"


def test_raise_for_violations_is_opt_in() -> None:
    clean = [Component(name="Orders", description="", location=_location(1))]
    raise_for_violations(check_model(clean))

    broken = [Component(name="Orders", description="", location=_location(1), relations=[_relation("Orders", 2)])]
    with pytest.raises(ModelValidationError) as excinfo:
        raise_for_violations(check_model(broken))
    assert len(excinfo.value.violations) == 1
    assert "cyclic-relation" in str(excinfo.value)
