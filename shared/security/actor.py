import uuid
from dataclasses import dataclass

ROLES = ("customer", "restaurant", "rider", "admin")

# Clients still send the legacy "delivery" role for riders.
_ROLE_ALIASES = {"delivery": "rider"}


def normalize_role(role: str) -> str:
    return _ROLE_ALIASES.get(role, role)


@dataclass(frozen=True)
class Actor:
    """The authenticated caller, passed explicitly into every service call."""

    id: uuid.UUID
    role: str

    def __post_init__(self):
        object.__setattr__(self, "role", normalize_role(self.role))

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def is_user(self, user_id) -> bool:
        return user_id is not None and self.id == user_id
