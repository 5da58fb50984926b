"""Current-user contract consumed by the page and unit permission gates.

Authentication itself (login forms, SSO) lives outside this package. The
router only needs to know who the current user is and which permissions they
hold, which is what :class:`IdentityProvider` describes.
"""

from __future__ import annotations

import dataclasses as dc
import typing as typ


@dc.dataclass(slots=True, frozen=True)
class User:
    """An authenticated user and the permissions granted to them."""

    username: str
    domain: str = "carbon.super"
    tenant_id: str = "-1234"
    permissions: frozenset[str] = frozenset()

    def has_permissions(self, required: typ.Iterable[str]) -> bool:
        """Return whether every name in ``required`` is granted."""
        return all(permission in self.permissions for permission in required)

    def missing_permission(self, required: typ.Iterable[str]) -> str | None:
        """Return the first permission of ``required`` the user lacks, if any."""
        return next(
            (permission for permission in required if permission not in self.permissions),
            None,
        )


@typ.runtime_checkable
class IdentityProvider(typ.Protocol):
    """Resolve and record the user behind a request."""

    def get_current_user(self, request: object | None = None) -> User | None: ...

    def set_current_user(self, request: object | None, user: User | None) -> None: ...


class StaticIdentityProvider:
    """Report the same user for every request.

    Used by the CLI, by tests, and by deployments that authenticate in front
    of the application.
    """

    def __init__(self, user: User | None = None) -> None:
        self._user = user

    def get_current_user(self, request: object | None = None) -> User | None:
        return self._user

    def set_current_user(self, request: object | None, user: User | None) -> None:
        self._user = user


__all__ = ["IdentityProvider", "StaticIdentityProvider", "User"]
