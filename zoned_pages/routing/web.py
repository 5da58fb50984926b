"""Starlette application serving rendered pages and public files."""

from __future__ import annotations

import logging
import typing as typ
from pathlib import Path

from starlette.applications import Starlette
from starlette.responses import FileResponse, HTMLResponse, PlainTextResponse, RedirectResponse, Response
from starlette.routing import Route

from zoned_pages import _constants as const

from .router import PageRouter
from .static import guess_media_type, read_combined, resolve_public_files

if typ.TYPE_CHECKING:
    from starlette.requests import Request

    from zoned_pages.config import ServerInfo
    from zoned_pages.identity import IdentityProvider

logger = logging.getLogger(__name__)


def create_app(
    app_root: Path,
    *,
    identity: IdentityProvider | None = None,
    server: ServerInfo | None = None,
    router: PageRouter | None = None,
    debug: bool = False,
) -> Starlette:
    """Build the ASGI application for the app directory ``app_root``.

    Parameters
    ----------
    app_root : Path
        Directory holding ``app-conf.*``, ``layouts/``, ``pages/`` and
        ``units/``.
    identity : IdentityProvider, optional
        Source of the current user; nobody is logged in when omitted.
    server : ServerInfo, optional
        Values for the configuration placeholders.
    router : PageRouter, optional
        Preconfigured router; ``identity`` and ``server`` are ignored when
        given.
    debug : bool, optional
        Enable Starlette's debug tracebacks.
    """
    page_router = router or PageRouter(Path(app_root), identity=identity, server=server)

    def public_file(request: Request) -> Response:
        public_path = request.path_params["path"]
        files = resolve_public_files(page_router.lookup_table(), public_path)
        if not files:
            return PlainTextResponse("Requested file not found", status_code=404)
        if len(files) == 1:
            return FileResponse(files[0])
        return Response(read_combined(files), media_type=guess_media_type(public_path))

    def page(request: Request) -> Response:
        result = page_router.route(request.url.path, request=request)
        if result.location is not None:
            return RedirectResponse(result.location, status_code=result.status)
        return HTMLResponse(result.body, status_code=result.status, headers=dict(result.headers))

    routes = [
        Route(f"/{{app}}/{const.DIRECTORY_PUBLIC}/{{path:path}}", public_file, methods=["GET"]),
        Route("/{path:path}", page, methods=["GET", "POST"]),
    ]
    logger.debug("Serving application '%s'.", page_router.app_root)
    return Starlette(debug=debug, routes=routes)


__all__ = ["create_app"]
