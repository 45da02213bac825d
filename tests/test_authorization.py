from types import SimpleNamespace

import pytest

from app.core.errors import Forbidden
from app.models import OrderStatus, UserRole
from app.services import authorization as policy
from app.services.auth import Actor

CUSTOMER = Actor("c" * 32, UserRole.CUSTOMER)
OWNER = Actor("o" * 32, UserRole.RESTAURANT_OWNER)
DRIVER = Actor("d" * 32, UserRole.DELIVERY_PERSON)
ADMIN = Actor("a" * 32, UserRole.ADMIN)
STRANGER = Actor("s" * 32, UserRole.CUSTOMER)


def make_order(assigned_to_id=None, owner_id=OWNER.user_id):
    return SimpleNamespace(
        customer_id=CUSTOMER.user_id,
        restaurant=SimpleNamespace(owner_id=owner_id),
        assigned_to_id=assigned_to_id,
    )


def test_relationship_flags():
    order = make_order(assigned_to_id=DRIVER.user_id)

    assert policy.relationship_to(CUSTOMER, order) == policy.Relationship(is_owner=True)
    assert policy.relationship_to(OWNER, order) == policy.Relationship(is_restaurant_owner=True)
    assert policy.relationship_to(DRIVER, order) == policy.Relationship(is_delivery_person=True)
    assert policy.relationship_to(ADMIN, order) == policy.Relationship(is_admin=True)
    assert not policy.relationship_to(STRANGER, order).any


def test_delivery_role_alone_grants_nothing():
    rel = policy.relationship_to(DRIVER, make_order())
    assert not rel.any


def test_unowned_restaurant_has_no_owner_relationship():
    rel = policy.relationship_to(OWNER, make_order(owner_id=None))
    assert not rel.is_restaurant_owner


def test_one_actor_can_hold_several_relationships():
    order = make_order(assigned_to_id=CUSTOMER.user_id, owner_id=CUSTOMER.user_id)
    rel = policy.relationship_to(CUSTOMER, order)
    assert rel.is_owner and rel.is_restaurant_owner and rel.is_delivery_person


@pytest.mark.parametrize("target, writers", [
    (OrderStatus.PLACED, set()),
    (OrderStatus.CONFIRMED, {"restaurant_owner", "admin"}),
    (OrderStatus.PREPARING, {"restaurant_owner", "admin"}),
    (OrderStatus.OUT_FOR_DELIVERY, {"restaurant_owner", "delivery_person", "admin"}),
    (OrderStatus.DELIVERED, {"delivery_person", "admin"}),
    (OrderStatus.CANCELLED, {"owner", "admin"}),
])
def test_status_writer_table(target, writers):
    for name in ("owner", "restaurant_owner", "delivery_person", "admin"):
        rel = policy.Relationship(**{f"is_{name}": True})
        assert policy.can_set_status(rel, target) == (name in writers), name


def test_assign_and_cancel_rules():
    assert policy.can_assign(policy.Relationship(is_restaurant_owner=True))
    assert policy.can_assign(policy.Relationship(is_admin=True))
    assert not policy.can_assign(policy.Relationship(is_owner=True))
    assert not policy.can_assign(policy.Relationship(is_delivery_person=True))

    assert policy.can_cancel(policy.Relationship(is_owner=True))
    assert policy.can_cancel(policy.Relationship(is_admin=True))
    assert not policy.can_cancel(policy.Relationship(is_restaurant_owner=True))


def test_acting_as_delivery_person():
    driver = policy.Relationship(is_delivery_person=True)
    both = policy.Relationship(is_delivery_person=True, is_restaurant_owner=True)

    assert policy.acting_as_delivery_person(driver, OrderStatus.OUT_FOR_DELIVERY)
    assert policy.acting_as_delivery_person(driver, OrderStatus.DELIVERED)
    assert not policy.acting_as_delivery_person(both, OrderStatus.OUT_FOR_DELIVERY)
    assert policy.acting_as_delivery_person(both, OrderStatus.DELIVERED)
    assert not policy.acting_as_delivery_person(policy.Relationship(is_admin=True), OrderStatus.DELIVERED)


def test_restaurant_level_checks():
    owned = SimpleNamespace(owner_id=OWNER.user_id)
    unowned = SimpleNamespace(owner_id=None)

    assert policy.can_view_restaurant_orders(OWNER, owned)
    assert policy.can_view_restaurant_orders(ADMIN, owned)
    assert not policy.can_view_restaurant_orders(STRANGER, owned)
    assert policy.can_view_restaurant_orders(STRANGER, unowned)

    assert policy.can_follow_restaurant(OWNER, owned)
    assert not policy.can_follow_restaurant(STRANGER, unowned)
    assert policy.can_follow_restaurant(ADMIN, unowned)


def test_role_level_checks():
    assert policy.can_view_assignments(DRIVER)
    assert not policy.can_view_assignments(ADMIN)
    assert policy.can_list_all(ADMIN)
    assert not policy.can_list_all(OWNER)


def test_require():
    policy.require(True, "unused")
    with pytest.raises(Forbidden, match="nope"):
        policy.require(False, "nope", CUSTOMER)
