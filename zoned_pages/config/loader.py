"""Load application configuration documents into typed dataclasses."""

from __future__ import annotations

import dataclasses as dc
import io
import threading
import typing as typ
from pathlib import Path

from ruamel.yaml import YAML

from zoned_pages._constants import APP_CONF_CANDIDATES

from .helpers import _build_auth_module, _optional_str, _substitute_placeholders, parse_bool
from .models import AppConfig, AppConfigError


@dc.dataclass(slots=True, frozen=True)
class ServerInfo:
    """Values substituted for the ``${server.*}`` and ``${app.context}`` placeholders."""

    ip: str = "127.0.0.1"
    http_port: str = "8000"
    https_port: str = "8443"
    app_context: str = ""

    def placeholders(self) -> dict[str, str]:
        return {
            "server.ip": self.ip,
            "server.http_port": self.http_port,
            "server.https_port": self.https_port,
            "app.context": self.app_context,
        }


def find_app_config(app_root: Path) -> Path:
    """Return the first ``app-conf.*`` file present under ``app_root``.

    Raises
    ------
    FileNotFoundError
        If none of the supported configuration file names exist.
    """
    for name in APP_CONF_CANDIDATES:
        candidate = app_root / name
        if candidate.is_file():
            return candidate
    names = ", ".join(APP_CONF_CANDIDATES)
    msg = f"No application configuration ({names}) found in '{app_root}'."
    raise FileNotFoundError(msg)


def load_app_config(path: Path, *, server: ServerInfo | None = None) -> AppConfig:
    """Load the application configuration describing caching and auth choices.

    JSON documents are accepted as well, since the loader parses YAML 1.2.

    Parameters
    ----------
    path : Path
        Filesystem path to ``app-conf.yaml`` or ``app-conf.json``.
    server : ServerInfo, optional
        Values used to expand ``${server.ip}``-style placeholders before
        parsing. Defaults to local development values.

    Returns
    -------
    AppConfig
        Parsed configuration with defaults applied.

    Raises
    ------
    FileNotFoundError
        If the configuration file does not exist at ``path``.
    TypeError
        If the top-level document is not a mapping.
    AppConfigError
        If a field has the wrong shape.

    Examples
    --------
    >>> from pathlib import Path
    >>> config = load_app_config(Path("app/app-conf.json"))  # doctest: +SKIP
    >>> config.caching_enabled  # doctest: +SKIP
    True
    """
    if not path.exists():
        msg = f"Configuration file '{path}' not found."
        raise FileNotFoundError(msg)

    text = path.read_text(encoding="utf-8")
    text = _substitute_placeholders(text, (server or ServerInfo()).placeholders())
    loader = YAML(typ="safe")
    loader.version = (1, 2)
    loaded = loader.load(io.StringIO(text)) or {}
    if not isinstance(loaded, dict):
        msg = "Top-level configuration structure must be a mapping."
        raise TypeError(msg)
    raw: dict[str, typ.Any] = dict(loaded)

    display_name = _optional_str(raw.get("displayName")) or path.parent.name
    log_level = (_optional_str(raw.get("logLevel")) or "INFO").upper()
    return AppConfig(
        display_name=display_name,
        caching_enabled=parse_bool(raw.get("cachingEnabled"), default=True),
        debugging_enabled=parse_bool(raw.get("debuggingEnabled"), default=False),
        log_level=log_level,
        login_uri=_optional_str(raw.get("loginUri")),
        permission_root=_optional_str(raw.get("permissionRoot")) or "/",
        auth_module=_build_auth_module(raw.get("authModule")),
        raw=raw,
    )


class AppConfigStore:
    """Serve a cached :class:`AppConfig`, reloading when the file changes.

    The cache key is the file's modification time; a reload builds the new
    config completely before it replaces the cached one.
    """

    def __init__(self, path: Path, *, server: ServerInfo | None = None) -> None:
        self.path = path
        self.server = server
        self._lock = threading.Lock()
        self._config: AppConfig | None = None
        self._mtime_ns: int | None = None

    @property
    def mtime_ns(self) -> int | None:
        """Modification time of the config file when it was last loaded."""
        return self._mtime_ns

    def get(self) -> AppConfig:
        """Return the current configuration, reloading if the file is newer."""
        try:
            mtime_ns = self.path.stat().st_mtime_ns
        except FileNotFoundError as exc:
            msg = f"Configuration file '{self.path}' not found."
            raise FileNotFoundError(msg) from exc
        config = self._config
        if config is not None and self._mtime_ns is not None and mtime_ns <= self._mtime_ns:
            return config
        with self._lock:
            if self._config is None or self._mtime_ns is None or mtime_ns > self._mtime_ns:
                fresh = load_app_config(self.path, server=self.server)
                self._config, self._mtime_ns = fresh, mtime_ns
            return self._config


__all__ = [
    "AppConfigError",
    "AppConfigStore",
    "ServerInfo",
    "find_app_config",
    "load_app_config",
]
