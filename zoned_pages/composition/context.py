"""Per-request render state and the immutable context threaded through templates.

A :class:`RenderPass` is created for every request and owns the mutable zone
tree. Everything that changes while descending into pages, units and zones
lives on :class:`CompositionContext`, which is never mutated: each step
derives a new value with :func:`dataclasses.replace` and hands it to the
nested render call.
"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

from .zones import ZoneContent, ZoneTree

if typ.TYPE_CHECKING:
    from zoned_pages.components import LookupTable, UIComponent
    from zoned_pages.config import AppConfig
    from zoned_pages.identity import User


class RenderError(RuntimeError):
    """Raised when a render pass cannot complete; fatal for the current request only."""


@dc.dataclass(slots=True, frozen=True)
class AppInfo:
    """Application data exposed to scripts and templates as ``app``."""

    name: str
    context: str
    conf: AppConfig | None = None


@dc.dataclass(slots=True, eq=False)
class RenderPass:
    """Mutable state shared by every template evaluated for one request."""

    lookup_table: LookupTable
    app: AppInfo
    user: User | None = None
    uri_params: typ.Mapping[str, str] = dc.field(default_factory=dict)
    zone_tree: ZoneTree = dc.field(default_factory=ZoneTree)
    rendered_units: list[str] = dc.field(default_factory=list)
    renders: int = 0

    def next_instance(self) -> int:
        """Number the next page or unit render of this pass."""
        self.renders += 1
        return self.renders


@dc.dataclass(slots=True, frozen=True)
class CompositionContext:
    """Where the renderer currently is within one render pass.

    Attributes
    ----------
    render_pass : RenderPass
        Shared per-request state.
    page : UIComponent | None
        Page being processed; ``None`` outside any page.
    units : tuple[UIComponent, ...]
        Units being processed, innermost last.
    depth : int
        Inheritance distance between the template being evaluated and the
        fragment that is processing it.
    zones : tuple[ZoneContent, ...]
        Zone contents currently open for writing.
    define_zones : tuple[str, ...]
        Names of the ``definezone`` tags enclosing the template code being
        evaluated, outermost first.
    defining : ZoneContent | None
        Content whose sub-zones the enclosing ``definezone`` body reads.
    instance : int
        Number of the page or unit render being evaluated within the pass.
    """

    render_pass: RenderPass
    page: UIComponent | None = None
    units: tuple[UIComponent, ...] = ()
    depth: int = 0
    zones: tuple[ZoneContent, ...] = ()
    define_zones: tuple[str, ...] = ()
    defining: ZoneContent | None = None
    instance: int = 0

    @property
    def provider(self) -> UIComponent | None:
        """Return the fragment whose templates are being evaluated."""
        if self.page is None:
            return None
        if self.units:
            return self.units[-1]
        return self.page

    @property
    def current_unit(self) -> UIComponent | None:
        return self.units[-1] if self.units else None

    def with_page(self, page: UIComponent, instance: int = 0) -> CompositionContext:
        return dc.replace(
            self,
            page=page,
            units=(),
            depth=0,
            zones=(),
            define_zones=(),
            defining=None,
            instance=instance,
        )

    def with_unit(self, unit: UIComponent, instance: int = 0) -> CompositionContext:
        return dc.replace(
            self,
            units=(*self.units, unit),
            depth=0,
            zones=(),
            define_zones=(),
            defining=None,
            instance=instance,
        )

    def at_depth(self, depth: int) -> CompositionContext:
        return dc.replace(self, depth=depth)

    def enter_zone(self, content: ZoneContent) -> CompositionContext:
        return dc.replace(self, zones=(*self.zones, content))

    def enter_define_zone(
        self, name: str, content: ZoneContent | None = None
    ) -> CompositionContext:
        return dc.replace(self, define_zones=(*self.define_zones, name), defining=content)


__all__ = ["AppInfo", "CompositionContext", "RenderError", "RenderPass"]
