"""Resolve ``/{app}/public/...`` paths to files of pages and units.

A URL ``/{app}/public/{component}/{path}`` is served from
``{component directory}/public/{path}``, falling back to the component's
ancestors.
"""

from __future__ import annotations

import logging
import mimetypes
import typing as typ

from zoned_pages import _constants as const
from zoned_pages.composition.resources import split_combined_path

if typ.TYPE_CHECKING:
    from pathlib import Path

    from zoned_pages.components import LookupTable

logger = logging.getLogger(__name__)


def resolve_public_files(lookup_table: LookupTable, public_path: str) -> list[Path] | None:
    """Return the files served for ``public_path``.

    ``public_path`` is ``{component full name}/{relative path}``, or a bundle
    of such paths as emitted for combined resources. ``None`` means at least
    one part could not be found.
    """
    parts = split_combined_path(public_path) or [public_path]
    files: list[Path] = []
    for part in parts:
        component_name, _, relative = part.strip("/").partition("/")
        component = lookup_table.units.get(component_name) or lookup_table.pages.get(component_name)
        if component is None:
            logger.warning("Requested component '%s' does not exist.", component_name)
            return None
        found = lookup_table.find_file(component, f"{const.DIRECTORY_PUBLIC}/{relative}")
        if found is None:
            logger.warning(
                "Requested file '%s' does not exist in '%s' or its parents %s.",
                relative,
                component_name,
                list(component.parents),
            )
            return None
        files.append(found)
    return files


def guess_media_type(public_path: str) -> str:
    """Return the media type for ``public_path``.

    >>> guess_media_type("ns.unit.a/a.css,ns.unit.b/b.css.combined.css")
    'text/css'
    """
    media_type, _ = mimetypes.guess_type(public_path.rpartition("/")[2] or public_path)
    return media_type or "application/octet-stream"


def read_combined(files: typ.Iterable[Path]) -> bytes:
    """Concatenate ``files`` with a newline between each."""
    return b"\n".join(path.read_bytes() for path in files)


__all__ = ["guess_media_type", "read_combined", "resolve_public_files"]
