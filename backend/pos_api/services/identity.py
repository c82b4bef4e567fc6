"""
Identity collaborator.

Authorization decisions for sensitive operations (voids) are taken against
the identity of the authenticated caller, never against an id carried in
the request body.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from shared.config.constants import MANAGEMENT_ROLES


@dataclass(frozen=True)
class CurrentUser:
    id: int
    roles: frozenset[str] = field(default_factory=frozenset)
    email: str | None = None

    @property
    def primary_role(self) -> str | None:
        return next(iter(sorted(self.roles)), None)


class IdentityProvider(Protocol):
    def get_current_user(self) -> CurrentUser | None: ...

    def is_manager_or_above(self, user: CurrentUser) -> bool: ...


class _RoleCheckMixin:
    def is_manager_or_above(self, user: CurrentUser) -> bool:
        return bool(user.roles & MANAGEMENT_ROLES)


class RequestIdentity(_RoleCheckMixin):
    """Identity taken from the verified JWT context of the current request."""

    def __init__(self, ctx: dict[str, Any]):
        self._ctx = ctx

    def get_current_user(self) -> CurrentUser | None:
        if not self._ctx or "sub" not in self._ctx:
            return None
        return CurrentUser(
            id=int(self._ctx["sub"]),
            roles=frozenset(self._ctx.get("roles", [])),
            email=self._ctx.get("email"),
        )


class StaticIdentity(_RoleCheckMixin):
    """Fixed identity for scripts and tests."""

    def __init__(self, user: CurrentUser | None):
        self._user = user

    def get_current_user(self) -> CurrentUser | None:
        return self._user
