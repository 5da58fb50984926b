"""Load and validate the application configuration for zoned-pages apps.

This subpackage parses an app's ``app-conf.yaml`` (or ``app-conf.json``),
expands server placeholders, applies defaults, and produces typed
dataclasses (:class:`AppConfig`, :class:`AuthModuleConfig`) that the router
and composition engine consume. :class:`AppConfigStore` keeps the parsed
configuration cached until the file's modification time advances.

Examples
--------
>>> from pathlib import Path
>>> from zoned_pages.config import load_app_config
>>> config = load_app_config(Path("app/app-conf.json"))  # doctest: +SKIP
>>> config.display_name  # doctest: +SKIP
'Sample App'
"""

from .helpers import parse_bool
from .loader import AppConfigStore, ServerInfo, find_app_config, load_app_config
from .models import AppConfig, AppConfigError, AuthEventConfig, AuthModuleConfig

__all__ = [
    "AppConfig",
    "AppConfigError",
    "AppConfigStore",
    "AuthEventConfig",
    "AuthModuleConfig",
    "ServerInfo",
    "find_app_config",
    "load_app_config",
    "parse_bool",
]
