"""Authenticated caller identity as seen by the workflow."""
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable

ADMIN_ROLES = frozenset({"admin", "super_admin"})
AGENT_ROLE = "agent"


@dataclass(frozen=True)
class Caller:
    """User acting on a request, with the roles loaded from the users table."""

    user_id: str
    roles: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def from_roles(cls, user_id: str, roles: Iterable[str]) -> "Caller":
        return cls(user_id=user_id, roles=frozenset(roles or ()))

    @property
    def is_admin(self) -> bool:
        return bool(self.roles & ADMIN_ROLES)

    @property
    def is_agent(self) -> bool:
        return AGENT_ROLE in self.roles
