from dataclasses import dataclass

from marketplace.errors import NotFound

from .models import Address, User


@dataclass(frozen=True)
class Actor:
    """Identity and role of whoever is calling the engine.

    Resolved from the authenticated request; the engine trusts it as-is.
    """

    id: int
    role: str

    @classmethod
    def from_user(cls, user):
        role = user.role
        if user.is_superuser:
            role = User.Role.ADMIN
        return cls(id=user.pk, role=role)

    @property
    def is_admin(self):
        return self.role == User.Role.ADMIN


# Used by maintenance jobs that act on behalf of the platform
SYSTEM_ACTOR = Actor(id=0, role=User.Role.ADMIN)


class AddressBook:
    """Read-only access to saved delivery addresses."""

    def get_address(self, address_id, user_id):
        try:
            return Address.objects.get(id=address_id, user_id=user_id)
        except (Address.DoesNotExist, ValueError, TypeError):
            raise NotFound("Address", address_id)
