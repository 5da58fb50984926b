"""In-memory zone structures filled and read during one render pass."""

from __future__ import annotations

import dataclasses as dc
import typing as typ

if typ.TYPE_CHECKING:
    from zoned_pages.components import UIComponent


@dc.dataclass(slots=True, frozen=True)
class Resource:
    """A CSS/JS asset requested by a fragment.

    Attributes
    ----------
    type : str
        ``"css"``, ``"less"`` or ``"js"``.
    provider : UIComponent
        Fragment that requested the asset; its index orders the output.
    path : str
        Path relative to the public root, prefixed with the provider's name.
    combine : bool
        Whether the asset may be bundled with other combinable assets of the
        same type.
    """

    type: str
    provider: UIComponent
    path: str
    combine: bool = True


@dc.dataclass(slots=True, eq=False)
class ZoneContent:
    """One contribution to a zone (or sub-zone) by one fragment.

    ``depth`` is how far up the provider's inheritance chain the template
    that produced the content sits: ``0`` for the provider's own template,
    ``1`` for its parent's, and so on. ``instance`` numbers the page or unit
    render that produced it within the render pass.
    """

    zone_name: str
    provider: UIComponent
    depth: int = 0
    instance: int = 0
    is_overridden: bool = True
    expired: bool = False
    html: str = ""
    sub_zones: dict[str, list[ZoneContent]] = dc.field(default_factory=dict)

    def set_html(self, html: str) -> None:
        self.html = html.strip()

    def add_sub_zone_content(self, content: ZoneContent) -> None:
        self.sub_zones.setdefault(content.zone_name, []).append(content)

    def sub_zone_contents(self, name: str) -> list[ZoneContent] | None:
        return self.sub_zones.get(name)

    @property
    def has_sub_zones(self) -> bool:
        return bool(self.sub_zones)


@dc.dataclass(slots=True, eq=False)
class Zone:
    """A top-level named slot owned by the page being rendered."""

    name: str
    owner: UIComponent
    contents: dict[str, list[ZoneContent]] = dc.field(default_factory=dict)
    resources: dict[str, list[Resource]] = dc.field(default_factory=dict)

    def add_content(self, content: ZoneContent) -> None:
        self.contents.setdefault(content.provider.full_name, []).append(content)

    def is_overridden_for(self, provider: UIComponent, depth: int, instance: int = 0) -> bool:
        """Return whether a nearer template of ``provider`` already overrode this zone.

        Only contents of the same render ``instance`` count. Within one render,
        contributions are made nearest-first, so anything recorded at a
        smaller depth came from a descendant of the template at ``depth``.
        """
        return any(
            content.is_overridden and content.instance == instance and content.depth < depth
            for content in self.contents.get(provider.full_name, ())
        )

    def providers(self) -> list[UIComponent]:
        """Return the contributing fragments ordered by their index."""
        providers = [contents[0].provider for contents in self.contents.values() if contents]
        return sorted(providers, key=lambda provider: provider.index)

    def contents_of(self, provider_name: str) -> list[ZoneContent]:
        """Return a provider's contents grouped by render, furthest ancestor first.

        Submission order is kept for contents produced at the same depth.
        """
        contents = self.contents.get(provider_name, [])
        return sorted(contents, key=lambda content: (content.instance, -content.depth))

    def add_resource(self, type_: str, provider: UIComponent, path: str, *, combine: bool) -> bool:
        """Register a resource unless the same ``(type, path)`` is already present."""
        registered = self.resources.setdefault(type_, [])
        if any(resource.path == path for resource in registered):
            return False
        registered.append(Resource(type=type_, provider=provider, path=path, combine=combine))
        return True

    def resources_of(self, type_: str) -> list[Resource]:
        return list(self.resources.get(type_, ()))

    @property
    def has_resources(self) -> bool:
        return any(self.resources.values())


@dc.dataclass(slots=True)
class ZoneTree:
    """Every top-level zone opened during one render pass."""

    zones: dict[str, Zone] = dc.field(default_factory=dict)

    def get(self, name: str) -> Zone | None:
        return self.zones.get(name)

    def add(self, zone: Zone) -> Zone:
        self.zones[zone.name] = zone
        return zone


__all__ = ["Resource", "Zone", "ZoneContent", "ZoneTree"]
