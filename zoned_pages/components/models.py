"""Dataclasses describing pages, units and the lookup table built from them."""

from __future__ import annotations

import dataclasses as dc
import logging
import typing as typ

from zoned_pages import _constants as const
from zoned_pages.config import parse_bool

if typ.TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

ComponentKind = typ.Literal["page", "unit"]


class ComponentLoadError(ValueError):
    """Raised when pages, units or layouts cannot be assembled into a lookup table."""


@dc.dataclass(slots=True, frozen=True, eq=False)
class UIComponent:
    """A page or a unit: template, script and definition under one name.

    Attributes
    ----------
    full_name : str
        Namespace-qualified unique name, e.g. ``"acme.unit.banner"``.
    short_name : str
        Trailing segment of ``full_name``; names the component's files.
    kind : {"page", "unit"}
        Which repository the component was discovered in.
    path : Path
        Component directory.
    definition : Mapping[str, Any]
        Definition merged with every ancestor's definition.
    template_file : Path | None
        ``{short_name}.jinja`` when present.
    script_file : Path | None
        ``{short_name}.py`` when present.
    parents : tuple[str, ...]
        Ancestor full names, nearest first.
    children : tuple[str, ...]
        Direct children full names.
    index : int
        Global ordering; units are numbered before pages.
    """

    full_name: str
    short_name: str
    kind: ComponentKind
    path: Path
    definition: typ.Mapping[str, typ.Any]
    template_file: Path | None = None
    script_file: Path | None = None
    parents: tuple[str, ...] = ()
    children: tuple[str, ...] = ()
    index: int = const.DEFAULT_COMPONENT_INDEX

    @property
    def is_leaf(self) -> bool:
        """Return whether no other component extends this one."""
        return not self.children

    @property
    def version(self) -> object | None:
        return self.definition.get(const.DEFINITION_VERSION)

    @property
    def disabled(self) -> bool:
        return parse_bool(self.definition.get(const.DEFINITION_DISABLED), default=False)

    @property
    def permissions(self) -> tuple[str, ...]:
        """Return the declared permission names, or ``()`` when none are declared."""
        declared = self.definition.get(const.DEFINITION_PERMISSIONS)
        if isinstance(declared, list):
            return tuple(str(item) for item in declared)
        return ()

    @property
    def uri(self) -> str | None:
        value = self.definition.get(const.DEFINITION_URI)
        return str(value) if value else None

    @property
    def layout(self) -> str | None:
        value = self.definition.get(const.DEFINITION_LAYOUT)
        return str(value) if value else None

    @property
    def is_anonymous(self) -> bool:
        return parse_bool(self.definition.get(const.DEFINITION_IS_ANONYMOUS), default=False)

    @property
    def pushed_uris(self) -> tuple[str, ...]:
        declared = self.definition.get(const.DEFINITION_PUSHED_URIS)
        if isinstance(declared, list):
            return tuple(str(item) for item in declared)
        return ()

    @property
    def css_class(self) -> str:
        return f"{self.kind}-{self.full_name}"

    def public_uri(self, app_context: str) -> str:
        """Return the URI prefix under which this component's public files are served."""
        return f"{app_context}/{const.DIRECTORY_PUBLIC}/{self.full_name}"


@dc.dataclass(slots=True, frozen=True)
class LookupTable:
    """Immutable index of every layout, page and unit of an application.

    ``uri_pages`` and ``pushed_units`` only list enabled leaf components and
    keep registration order, which is the global component order.
    """

    layouts: typ.Mapping[str, Path]
    pages: typ.Mapping[str, UIComponent]
    uri_pages: typ.Mapping[str, str]
    units: typ.Mapping[str, UIComponent]
    pushed_units: typ.Mapping[str, tuple[str, ...]]

    def repository(self, kind: ComponentKind) -> typ.Mapping[str, UIComponent]:
        """Return the page or unit mapping."""
        return self.pages if kind == "page" else self.units

    def ancestors(self, component: UIComponent) -> list[UIComponent]:
        """Return the component's ancestors, nearest first."""
        repository = self.repository(component.kind)
        return [repository[name] for name in component.parents]

    def descendants(self, component: UIComponent) -> list[UIComponent]:
        """Return every component extending ``component``, in index order."""
        repository = self.repository(component.kind)
        found = [
            candidate
            for candidate in repository.values()
            if component.full_name in candidate.parents
        ]
        return sorted(found, key=lambda candidate: candidate.index)

    def furthest_child(self, component: UIComponent) -> UIComponent:
        """Return the descendant that renders when ``component`` is mentioned.

        The winner is the descendant furthest from ``component`` in its
        inheritance chain. When two descendants share that distance the one
        with the higher index is ignored and a warning is logged.
        """
        if component.is_leaf:
            return component
        furthest = component
        furthest_distance = -1
        for child in self.descendants(component):
            distance = child.parents.index(component.full_name)
            if distance > furthest_distance:
                furthest, furthest_distance = child, distance
            elif distance == furthest_distance:
                logger.warning(
                    "Child %s '%s' and '%s' are at the same distance (%d) from their "
                    "parent %s '%s'; '%s' was ignored when resolving the furthest child.",
                    component.kind,
                    furthest.full_name,
                    child.full_name,
                    distance,
                    component.kind,
                    component.full_name,
                    child.full_name,
                )
        return furthest

    def find_file(self, component: UIComponent, relative_path: str) -> Path | None:
        """Return ``relative_path`` from the component or its nearest ancestor that has it."""
        relative = relative_path.lstrip("/")
        if not relative:
            return None
        for candidate in (component, *self.ancestors(component)):
            root = candidate.path.resolve()
            path = (root / relative).resolve()
            if root in path.parents and path.is_file():
                return path
        return None


__all__ = ["ComponentKind", "ComponentLoadError", "LookupTable", "UIComponent"]
