"""Typed dataclasses describing zoned-pages application configuration."""

from __future__ import annotations

import dataclasses as dc
import typing as typ


class AppConfigError(ValueError):
    """Raised when the application configuration is invalid or incomplete."""


@dc.dataclass(slots=True)
class AuthEventConfig:
    """Redirect targets for one auth operation (login or logout)."""

    on_success: str | None = None
    on_fail: str | None = None
    on_success_page: str | None = None
    on_fail_page: str | None = None


@dc.dataclass(slots=True)
class AuthModuleConfig:
    """Authentication module settings consumed by the page gate."""

    enabled: bool = False
    login: AuthEventConfig = dc.field(default_factory=AuthEventConfig)
    logout: AuthEventConfig = dc.field(default_factory=AuthEventConfig)
    sso: dict[str, typ.Any] = dc.field(default_factory=dict)

    @property
    def sso_enabled(self) -> bool:
        """Return whether single sign-on is switched on for the auth module."""
        return bool(self.sso.get("enabled", False))


@dc.dataclass(slots=True)
class AppConfig:
    """A fully resolved application configuration.

    Attributes
    ----------
    display_name : str
        Human readable application name exposed to scripts and templates.
    caching_enabled : bool
        Whether the lookup table is cached between requests.
    debugging_enabled : bool
        Whether verbose render diagnostics are allowed in error responses.
    log_level : str
        Root log level applied by the CLI.
    login_uri : str | None
        Where unauthenticated or unauthorized page requests are redirected.
    permission_root : str
        Root of the permission tree consulted when loading user permissions.
    auth_module : AuthModuleConfig
        Authentication module settings.
    raw : dict[str, Any]
        The parsed document, exposed to scripts as ``app.conf``.
    """

    display_name: str
    caching_enabled: bool = True
    debugging_enabled: bool = False
    log_level: str = "INFO"
    login_uri: str | None = None
    permission_root: str = "/"
    auth_module: AuthModuleConfig = dc.field(default_factory=AuthModuleConfig)
    raw: dict[str, typ.Any] = dc.field(default_factory=dict)


__all__ = [
    "AppConfig",
    "AppConfigError",
    "AuthEventConfig",
    "AuthModuleConfig",
]
