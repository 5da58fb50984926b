"""Utility helpers shared by the zoned-pages configuration loader."""

from __future__ import annotations

import re
import typing as typ

from .models import AppConfigError, AuthEventConfig, AuthModuleConfig

PLACEHOLDER_PATTERN = re.compile(r"\$\{(app\.context|server\.ip|server\.http_port|server\.https_port)\}")
TRUE_STRINGS = frozenset({"true", "yes"})


def parse_bool(value: object, default: bool = False) -> bool:
    """Interpret ``value`` leniently as a boolean.

    Booleans pass through, numbers are true when positive, strings are true
    when they read ``"true"`` or ``"yes"`` (case-insensitive) and ``None``
    yields ``default``. Any other object is truthy.

    Examples
    --------
    >>> parse_bool("Yes")
    True
    >>> parse_bool(None, default=True)
    True
    >>> parse_bool(0)
    False
    """
    match value:
        case bool():
            return value
        case int() | float():
            return value > 0
        case str():
            return value.strip().lower() in TRUE_STRINGS
        case None:
            return default
        case _:
            return True


def _optional_str(value: object | None) -> str | None:
    """Return a stripped string value or None when empty."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _substitute_placeholders(text: str, values: typ.Mapping[str, str]) -> str:
    """Replace ``${...}`` server/app placeholders with the supplied values.

    Unknown placeholders are left untouched so the YAML parser reports them
    verbatim if they end up somewhere meaningful.
    """

    def _repl(match: re.Match[str]) -> str:
        key = match.group(1)
        return values.get(key, match.group(0))

    return PLACEHOLDER_PATTERN.sub(_repl, text)


def _build_auth_event(payload: object) -> AuthEventConfig:
    if not isinstance(payload, dict):
        return AuthEventConfig()
    return AuthEventConfig(
        on_success=_optional_str(payload.get("onSuccess")),
        on_fail=_optional_str(payload.get("onFail")),
        on_success_page=_optional_str(payload.get("onSuccessPage")),
        on_fail_page=_optional_str(payload.get("onFailPage")),
    )


def _build_auth_module(payload: object) -> AuthModuleConfig:
    """Build the auth module config from its raw mapping."""
    if payload is None:
        return AuthModuleConfig()
    if not isinstance(payload, dict):
        msg = "'authModule' must be a mapping."
        raise AppConfigError(msg)
    sso = payload.get("sso") or {}
    if not isinstance(sso, dict):
        msg = "'authModule.sso' must be a mapping."
        raise AppConfigError(msg)
    return AuthModuleConfig(
        enabled=parse_bool(payload.get("enabled"), default=False),
        login=_build_auth_event(payload.get("login")),
        logout=_build_auth_event(payload.get("logout")),
        sso=dict(sso),
    )


__all__ = [
    "PLACEHOLDER_PATTERN",
    "_build_auth_event",
    "_build_auth_module",
    "_optional_str",
    "_substitute_placeholders",
    "parse_bool",
]
