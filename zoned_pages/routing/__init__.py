"""Request routing: URI templates, page selection and the HTTP application."""

from .router import (
    NO_CACHE_HEADERS,
    PAGE_SOURCE,
    PageRouter,
    RouteResult,
    is_authorized,
    match_page,
    match_pushed_units,
    split_request_path,
)
from .static import resolve_public_files
from .uri import UriPattern, compile_pattern, normalize_uri
from .web import create_app

__all__ = [
    "NO_CACHE_HEADERS",
    "PAGE_SOURCE",
    "PageRouter",
    "RouteResult",
    "UriPattern",
    "compile_pattern",
    "create_app",
    "is_authorized",
    "match_page",
    "match_pushed_units",
    "normalize_uri",
    "resolve_public_files",
    "split_request_path",
]
