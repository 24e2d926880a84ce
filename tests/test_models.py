"""Tests for entity specs and natural keys."""

import pytest
from keyseed.errors import PlanError
from keyseed.models import EntityKind, EntitySpec, Ref, TaskState, relationship_id


def test_natural_key_is_order_independent():
    a = EntitySpec(EntityKind.USER, {"name": "demo", "domain": "default"}, {"email": "a@x"})
    b = EntitySpec(EntityKind.USER, {"domain": "default", "name": "demo"}, {"email": "b@x"})

    assert a.natural_key() == b.natural_key()


def test_invalid_key_fields():
    with pytest.raises(PlanError):
        EntitySpec(EntityKind.PROJECT, {"name": "demo"})


@pytest.mark.parametrize(
    "key",
    [
        {"role": "r", "project": "p"},
        {"role": "r", "user": "u", "group": "g", "project": "p"},
        {"role": "r", "user": "u", "project": "p", "system": "all"},
        {"user": "u", "project": "p"},
    ],
)
def test_invalid_role_assignment_keys(key):
    with pytest.raises(PlanError):
        EntitySpec(EntityKind.ROLE_ASSIGNMENT, key)


def test_bind_substitutes_refs():
    spec = EntitySpec(
        EntityKind.ROLE_ASSIGNMENT,
        {"role": Ref("ks-role-member"), "user": Ref("ks-user-demo"), "system": "all"},
    )
    assert spec.refs() == {"ks-role-member", "ks-user-demo"}
    assert not spec.bound

    bound = spec.bind({"ks-role-member": "r1", "ks-user-demo": "u1", "unrelated": "x"})

    assert bound.bound
    assert bound.key == {"role": "r1", "user": "u1", "system": "all"}


def test_bind_missing_result():
    spec = EntitySpec(EntityKind.PROJECT, {"name": "demo", "domain": Ref("ks-domain")})

    with pytest.raises(PlanError, match="ks-domain"):
        spec.bind({})


def test_unbound_spec_has_no_natural_key():
    spec = EntitySpec(EntityKind.PROJECT, {"name": "demo", "domain": Ref("ks-domain")})

    with pytest.raises(PlanError):
        spec.natural_key()


def test_relationship_ids():
    assert relationship_id(EntityKind.GROUP_MEMBERSHIP, {"group": "g1", "user": "u1"}) == "g1:u1"
    assert (
        relationship_id(EntityKind.ROLE_ASSIGNMENT, {"role": "r", "group": "g", "system": "all"})
        == "r@g:system/all"
    )
    with pytest.raises(ValueError):
        relationship_id(EntityKind.PROJECT, {"name": "demo", "domain": "default"})


def test_terminal_states():
    assert TaskState.SUCCEEDED.terminal
    assert TaskState.FAILED.terminal
    assert not TaskState.RUNNING.terminal
    assert not TaskState.PENDING.terminal
