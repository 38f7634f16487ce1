"""Tests for actors and the address book."""

import pytest

from accounts.models import Address, User
from accounts.utils import SYSTEM_ACTOR, Actor, AddressBook
from marketplace.errors import NotFound


class TestActor:

    def test_from_user(self, seller):
        actor = Actor.from_user(seller)

        assert actor == Actor(id=seller.id, role=User.Role.SELLER)
        assert not actor.is_admin

    def test_superuser_acts_as_admin(self, django_user_model):
        root = django_user_model.objects.create_superuser(username="root", password="x", email="root@example.com")

        assert Actor.from_user(root).is_admin

    def test_system_actor_is_admin(self):
        assert SYSTEM_ACTOR.is_admin


class TestAddressBook:

    def test_get_own_address(self, customer, address):
        assert AddressBook().get_address(address.id, customer.id) == address

    def test_other_users_address_is_not_found(self, other_customer, address):
        with pytest.raises(NotFound) as exc_info:
            AddressBook().get_address(address.id, other_customer.id)

        assert exc_info.value.what == "Address"

    def test_as_dict(self, address):
        data = address.as_dict()

        assert data["pin_code"] == "560001"
        assert set(data) == {"id", "full_name", "phone_number", "address", "city", "state", "pin_code"}


def test_new_users_are_customers(db):
    user = User.objects.create_user(username="newbie", password="pass12345")

    assert user.role == User.Role.CUSTOMER
    assert not Address.objects.filter(user=user).exists()
