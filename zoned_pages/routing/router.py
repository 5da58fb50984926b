"""Map request paths to pages and drive one composition pass per request.

The router does not depend on any HTTP framework: :meth:`PageRouter.route`
returns a :class:`RouteResult` that :mod:`zoned_pages.routing.web` turns into
a Starlette response (and the CLI prints).
"""

from __future__ import annotations

import dataclasses as dc
import logging
import typing as typ
from pathlib import Path

from zoned_pages import _constants as const
from zoned_pages.components import ComponentLoadError, LookupTableCache
from zoned_pages.composition import AppInfo, CompositionEngine
from zoned_pages.config import AppConfigError, AppConfigStore, find_app_config
from zoned_pages.identity import StaticIdentityProvider

from .uri import compile_pattern, normalize_uri

if typ.TYPE_CHECKING:
    from zoned_pages.components import LookupTable, UIComponent
    from zoned_pages.config import AppConfig, ServerInfo
    from zoned_pages.identity import IdentityProvider, User

logger = logging.getLogger(__name__)

PAGE_SOURCE = (
    "{% page page_name %}"
    '{% zone "' + const.PUSHED_UNITS_ZONE + '" %}'
    "{% for unit_name in pushed_units %}{% unit unit_name %}{% endfor %}"
    "{% endzone %}"
    "{% endpage %}"
)

NO_CACHE_HEADERS: typ.Mapping[str, str] = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


@dc.dataclass(slots=True, frozen=True)
class RouteResult:
    """Outcome of routing one request."""

    status: int
    body: str = ""
    headers: typ.Mapping[str, str] = dc.field(default_factory=dict)
    location: str | None = None

    @property
    def is_redirect(self) -> bool:
        return self.location is not None


def split_request_path(request_path: str) -> tuple[str, str]:
    """Split ``/{app}/{page path}`` into the app name and the page URI.

    >>> split_request_path("/app/users/42")
    ('app', '/users/42')
    >>> split_request_path("/app")
    ('app', '/')
    """
    app_name, _, rest = request_path.lstrip("/").partition("/")
    return app_name, normalize_uri(rest)


def match_page(
    lookup_table: LookupTable, page_uri: str
) -> tuple[UIComponent, dict[str, str]] | None:
    """Return the first registered page whose URI pattern matches ``page_uri``."""
    for pattern, page_name in lookup_table.uri_pages.items():
        params = compile_pattern(pattern).match(page_uri)
        if params is not None:
            return lookup_table.pages[page_name], params
    return None


def match_pushed_units(lookup_table: LookupTable, page_uri: str) -> list[str]:
    """Return the units pushed for ``page_uri`` in registration order, without repeats."""
    names: list[str] = []
    for pattern, unit_names in lookup_table.pushed_units.items():
        if compile_pattern(pattern).match(page_uri) is None:
            continue
        names.extend(name for name in unit_names if name not in names)
    return names


def is_authorized(page: UIComponent, user: User | None, config: AppConfig) -> bool:
    """Return whether ``user`` may view ``page``.

    Pages declaring permissions always require a user holding all of them.
    Other pages require a logged-in user only when the auth module is enabled
    and the page is not marked ``isAnonymous``.
    """
    required = page.permissions
    if not required and (page.is_anonymous or not config.auth_module.enabled):
        return True
    if user is None:
        return False
    return user.has_permissions(required)


class PageRouter:
    """Route requests of one application directory to rendered pages."""

    def __init__(
        self,
        app_root: Path,
        *,
        config_store: AppConfigStore | None = None,
        lookup_cache: LookupTableCache | None = None,
        engine: CompositionEngine | None = None,
        identity: IdentityProvider | None = None,
        server: ServerInfo | None = None,
    ) -> None:
        self.app_root = Path(app_root)
        self.config_store = config_store or AppConfigStore(find_app_config(self.app_root), server=server)
        self.lookup_cache = lookup_cache or LookupTableCache(self.app_root)
        self.engine = engine or CompositionEngine(self.app_root)
        self.identity = identity or StaticIdentityProvider()

    def lookup_table(self) -> LookupTable:
        """Return the lookup table for the current configuration generation."""
        config = self.config_store.get()
        return self.lookup_cache.get(
            key=self.config_store.mtime_ns, caching_enabled=config.caching_enabled
        )

    def route(self, request_path: str, *, request: object | None = None) -> RouteResult:
        """Render the page addressed by ``request_path``.

        Returns
        -------
        RouteResult
            ``200`` with the page HTML, ``404`` when no page matches, a ``302``
            redirect to the login URI when the user may not view the page, or
            ``500`` when loading or rendering failed. A path without an
            application segment is a ``404``. With ``debuggingEnabled`` set, a
            render failure's message is included in the ``500`` body.
        """
        app_name, page_uri = split_request_path(request_path)
        if not app_name:
            return RouteResult(status=404, body="Requested page not found")
        try:
            config = self.config_store.get()
            table = self.lookup_table()
        except (AppConfigError, ComponentLoadError, OSError, TypeError):
            logger.exception("Cannot load application '%s'.", self.app_root)
            return RouteResult(status=500, body="Internal server error")

        matched = match_page(table, page_uri)
        if matched is None:
            return RouteResult(status=404, body="Requested page not found")
        page, uri_params = matched
        if page.disabled:
            return RouteResult(status=404, body="Requested page not found")

        app_context = f"/{app_name}"
        user = self.identity.get_current_user(request)
        if not is_authorized(page, user, config):
            login_uri = config.login_uri or f"{app_context}/login"
            logger.debug("Redirecting '%s' to login URI '%s'.", request_path, login_uri)
            return RouteResult(status=302, location=login_uri)

        context = self.engine.start(
            table,
            app=AppInfo(name=app_name, context=app_context, conf=config),
            user=user,
            uri_params=uri_params,
        )
        try:
            html = self.engine.render_string(
                context,
                PAGE_SOURCE,
                page_name=page.full_name,
                pushed_units=match_pushed_units(table, page_uri),
            )
        except Exception as exc:
            logger.exception("Cannot render page '%s' for '%s'.", page.full_name, request_path)
            body = "Internal server error"
            if config.debugging_enabled:
                body = f"{body}: {exc}"
            return RouteResult(status=500, body=body)
        return RouteResult(status=200, body=html, headers=dict(NO_CACHE_HEADERS))


__all__ = [
    "NO_CACHE_HEADERS",
    "PAGE_SOURCE",
    "PageRouter",
    "RouteResult",
    "is_authorized",
    "match_page",
    "match_pushed_units",
    "split_request_path",
]
