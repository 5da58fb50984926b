"""Turn the resources registered in a zone into ``<link>``/``<script>`` tags.

Combinable resources of one type are bundled into a single URL whose parts
are joined with :data:`~zoned_pages._constants.COMBINED_RESOURCES_SEPARATOR`
and suffixed with :data:`~zoned_pages._constants.COMBINED_RESOURCES_URL_TAIL`
plus the bundle extension. The static file route reverses this with
:func:`split_combined_path`.
"""

from __future__ import annotations

import typing as typ

from markupsafe import escape

from zoned_pages import _constants as const

if typ.TYPE_CHECKING:
    from .zones import Resource, Zone

_LINK_TAG = '<link href="{url}" rel="stylesheet" type="text/css" />'
_SCRIPT_TAG = '<script src="{url}"></script>'


def bundle_extension(resource_type: str) -> str:
    """Return the file extension a bundle of ``resource_type`` is served with.

    >>> bundle_extension("less")
    'css'
    >>> bundle_extension("js")
    'js'
    """
    return "css" if resource_type == "less" else resource_type


def resource_paths(resources: typ.Iterable[Resource]) -> list[str]:
    """Return the public paths to emit for resources of a single type.

    Resources are stably ordered by their provider's index. Non-combinable
    resources keep individual paths; all combinable ones are appended as one
    bundle path.
    """
    ordered = sorted(resources, key=lambda resource: resource.provider.index)
    if not ordered:
        return []
    paths = [resource.path for resource in ordered if not resource.combine]
    combined = [resource.path for resource in ordered if resource.combine]
    if combined:
        paths.append(
            const.COMBINED_RESOURCES_SEPARATOR.join(combined)
            + const.COMBINED_RESOURCES_URL_TAIL
            + bundle_extension(ordered[0].type)
        )
    return paths


def resource_tags(zone: Zone, app_context: str) -> str:
    """Render every resource of ``zone`` as HTML tags, CSS before JS."""
    public_root = f"{app_context}/{const.DIRECTORY_PUBLIC}/"
    tags: list[str] = []
    for resource_type in const.RESOURCE_TYPES:
        template = _SCRIPT_TAG if resource_type == "js" else _LINK_TAG
        tags.extend(
            template.format(url=escape(public_root + path))
            for path in resource_paths(zone.resources_of(resource_type))
        )
    return "".join(tags)


def split_combined_path(path: str) -> list[str] | None:
    """Return the parts of a bundle path, or ``None`` for an ordinary path.

    >>> split_combined_path("ns.unit.a/a.css,ns.unit.b/b.css.combined.css")
    ['ns.unit.a/a.css', 'ns.unit.b/b.css']
    >>> split_combined_path("ns.unit.a/a.css") is None
    True
    """
    head, tail, _extension = path.rpartition(const.COMBINED_RESOURCES_URL_TAIL)
    if not tail or not head:
        return None
    return [part for part in head.split(const.COMBINED_RESOURCES_SEPARATOR) if part]


__all__ = ["bundle_extension", "resource_paths", "resource_tags", "split_combined_path"]
