"""Cyclopts CLI entrypoint for checking, rendering and serving zoned-pages apps.

The ``zoned-pages`` console script validates an application directory
(``check``), renders a single request path without starting a server
(``render``), and serves the application over HTTP with uvicorn (``serve``).
Every option can also be supplied through a ``ZONED_``-prefixed environment
variable.

Examples
--------
Validate the app in the current directory:

>>> from zoned_pages.cli import main
>>> main()  # doctest: +SKIP

Render the home page of an app to a file:

>>> from zoned_pages.cli import app
>>> app(["render", "/app/", "--app-root", "demo", "--output", "home.html"])  # doctest: +SKIP
"""

from __future__ import annotations

import logging
import typing as typ
from pathlib import Path

import cyclopts
import uvicorn
from cyclopts import App, Parameter

from .components import build_lookup_table
from .config import ServerInfo, find_app_config, load_app_config
from .identity import StaticIdentityProvider, User
from .routing import PageRouter, create_app

DEFAULT_APP_ROOT = Path()

app = App(name="zoned-pages", config=cyclopts.config.Env("ZONED_", command=False))  # type: ignore[unknown-argument]

AppRoot = typ.Annotated[Path, Parameter(help="Application directory", env_var="ZONED_APP_ROOT")]
LogLevel = typ.Annotated[
    str | None,
    Parameter(help="Logging level; defaults to the app's logLevel", env_var="ZONED_LOG_LEVEL"),
]


def _configure_logging(app_root: Path, log_level: str | None) -> None:
    """Configure root logging from ``log_level`` or the app configuration."""
    level = log_level
    if level is None:
        try:
            level = load_app_config(find_app_config(app_root)).log_level
        except (OSError, TypeError, ValueError):
            level = "INFO"
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _format_path(path: Path) -> str:
    """Return a cwd-relative path when possible, otherwise the absolute path."""
    if path.is_absolute():
        try:
            return str(path.relative_to(Path.cwd()))
        except ValueError:  # pragma: no cover - fallback for different roots
            return str(path)
    return str(path)


@app.command(help="Build and validate the lookup table of an application.")
def check(*, app_root: AppRoot = DEFAULT_APP_ROOT, log_level: LogLevel = None) -> None:
    """Validate every layout, page and unit under ``app_root``.

    Parameters
    ----------
    app_root : Path, optional
        Application directory (overridable via ``ZONED_APP_ROOT``).
    log_level : str or None, optional
        Logging level; the app configuration's ``logLevel`` when omitted.

    Raises
    ------
    ComponentLoadError
        If the application's components are misconfigured.
    """
    _configure_logging(app_root, log_level)
    table = build_lookup_table(app_root)
    print(
        f"{len(table.layouts)} layouts, {len(table.pages)} pages, "
        f"{len(table.units)} units in {_format_path(app_root)}"
    )
    for uri, page_name in table.uri_pages.items():
        print(f"page {uri} -> {page_name}")
    for pattern, unit_names in table.pushed_units.items():
        print(f"push {pattern} -> {', '.join(unit_names)}")


@app.command(help="Render one request path and print or write the HTML.")
def render(
    uri: str,
    *,
    app_root: AppRoot = DEFAULT_APP_ROOT,
    output: typ.Annotated[Path | None, Parameter(help="Write the HTML to this file")] = None,
    user: typ.Annotated[str | None, Parameter(help="Render as this user")] = None,
    permission: typ.Annotated[
        list[str] | None, Parameter(help="Permission granted to --user; repeatable")
    ] = None,
    log_level: LogLevel = None,
) -> None:
    """Render the page addressed by ``uri`` (``/{app}/{page path}``).

    Parameters
    ----------
    uri : str
        Request path, including the leading application segment.
    app_root : Path, optional
        Application directory.
    output : Path or None, optional
        Destination file; the HTML is printed to stdout when omitted.
    user : str or None, optional
        Username of the simulated logged-in user.
    permission : list[str] or None, optional
        Permissions held by ``user``.
    log_level : str or None, optional
        Logging level; the app configuration's ``logLevel`` when omitted.

    Raises
    ------
    SystemExit
        With status ``1`` when the request does not produce a page.
    """
    _configure_logging(app_root, log_level)
    current_user = User(username=user, permissions=frozenset(permission or ())) if user else None
    router = PageRouter(app_root, identity=StaticIdentityProvider(current_user))
    result = router.route(uri)
    if result.location is not None:
        print(f"{result.status} redirect to {result.location}")
        raise SystemExit(1)
    if result.status != 200:
        print(f"{result.status} {result.body}")
        raise SystemExit(1)
    if output is None:
        print(result.body)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(result.body if result.body.endswith("\n") else f"{result.body}\n", encoding="utf-8")
    print(f"wrote {_format_path(output)}")


@app.command(help="Serve the application over HTTP.")
def serve(
    *,
    app_root: AppRoot = DEFAULT_APP_ROOT,
    host: typ.Annotated[str, Parameter(help="Interface to bind", env_var="ZONED_HOST")] = "127.0.0.1",
    port: typ.Annotated[int, Parameter(help="Port to bind", env_var="ZONED_PORT")] = 8000,
    log_level: LogLevel = None,
) -> None:
    """Run the Starlette application for ``app_root`` under uvicorn."""
    _configure_logging(app_root, log_level)
    server = ServerInfo(ip=host, http_port=str(port))
    uvicorn.run(create_app(app_root, server=server), host=host, port=port)


def main() -> None:
    """Invoke the Cyclopts application that powers the ``zoned-pages`` console command."""
    app()


if __name__ == "__main__":  # pragma: no cover - manual invocation helper
    main()
