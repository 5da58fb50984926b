"""Assemble an immutable :class:`LookupTable` from an application directory.

The builder scans ``layouts/``, ``units/`` and ``pages/`` under an app root,
reads each component's mandatory ``{short}.json`` definition, follows the
``extends`` references to build inheritance chains, merges ancestor
definitions into their descendants, orders and indexes every component, and
validates the leaf components that can actually be rendered. Any problem is
raised as :class:`ComponentLoadError`; a table is only returned once it is
complete.

Example
-------
>>> from pathlib import Path
>>> from zoned_pages.components import build_lookup_table
>>> table = build_lookup_table(Path("app"))  # doctest: +SKIP
>>> table.uri_pages["/"]  # doctest: +SKIP
'acme.page.home'
"""

from __future__ import annotations

import copy
import dataclasses as dc
import itertools
import json
import logging
import types
import typing as typ
from pathlib import Path

from zoned_pages import _constants as const

from .models import ComponentKind, ComponentLoadError, LookupTable, UIComponent

logger = logging.getLogger(__name__)


@dc.dataclass(slots=True)
class _RawComponent:
    """Mutable discovery record, turned into a :class:`UIComponent` once indexed."""

    full_name: str
    short_name: str
    kind: ComponentKind
    path: Path
    own_definition: dict[str, typ.Any]
    template_file: Path | None
    script_file: Path | None
    definition: dict[str, typ.Any] = dc.field(default_factory=dict)
    parents: list[str] = dc.field(default_factory=list)
    children: list[str] = dc.field(default_factory=list)

    @property
    def explicit_index(self) -> int:
        value = self.definition.get(const.DEFINITION_INDEX)
        if isinstance(value, bool):
            return const.DEFAULT_COMPONENT_INDEX
        try:
            return int(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return const.DEFAULT_COMPONENT_INDEX


def build_lookup_table(app_root: Path) -> LookupTable:
    """Scan ``app_root`` and return a validated lookup table.

    Parameters
    ----------
    app_root : Path
        Directory containing ``layouts/``, ``pages/`` and ``units/``.

    Returns
    -------
    LookupTable
        Layout paths, every page and unit by full name, and the URI maps of
        the enabled leaf pages and pushed units.

    Raises
    ------
    ComponentLoadError
        If a definition file is missing or malformed, an ``extends`` chain
        names a missing parent or loops, a leaf definition fails validation,
        or two pages claim the same URI.
    """
    layouts = _discover_layouts(app_root / const.DIRECTORY_LAYOUTS)
    units = _order_components(_link(_discover_components("unit", app_root / const.DIRECTORY_UNITS)))
    pages = _order_components(_link(_discover_components("page", app_root / const.DIRECTORY_PAGES)))

    indices = {raw.full_name: position for position, raw in enumerate(units)}
    indices.update({raw.full_name: len(units) + position for position, raw in enumerate(pages)})
    unit_map = {raw.full_name: _freeze(raw, indices) for raw in units}
    page_map = {raw.full_name: _freeze(raw, indices) for raw in pages}

    pushed_units: dict[str, list[str]] = {}
    for unit in unit_map.values():
        if not unit.is_leaf:
            continue
        _validate_unit(unit)
        if unit.disabled:
            continue
        for pattern in unit.pushed_uris:
            pushed_units.setdefault(pattern, []).append(unit.full_name)

    uri_pages: dict[str, str] = {}
    for page in page_map.values():
        if not page.is_leaf:
            continue
        _validate_page(page, layouts)
        if page.disabled:
            continue
        uri = typ.cast("str", page.uri)
        if uri in uri_pages:
            msg = (
                f"Cannot register page '{page.full_name}' for URI '{uri}' since page "
                f"'{uri_pages[uri]}' is already registered."
            )
            raise ComponentLoadError(msg)
        uri_pages[uri] = page.full_name

    logger.debug(
        "Assembled %d layouts, %d pages and %d units from '%s'.",
        len(layouts),
        len(page_map),
        len(unit_map),
        app_root,
    )
    return LookupTable(
        layouts=types.MappingProxyType(layouts),
        pages=types.MappingProxyType(page_map),
        uri_pages=types.MappingProxyType(uri_pages),
        units=types.MappingProxyType(unit_map),
        pushed_units=types.MappingProxyType(
            {pattern: tuple(names) for pattern, names in pushed_units.items()}
        ),
    )


def _discover_layouts(layouts_dir: Path) -> dict[str, Path]:
    """Map layout names to ``layouts/{name}.jinja`` files."""
    if not layouts_dir.is_dir():
        return {}
    return {
        entry.stem: entry
        for entry in sorted(layouts_dir.iterdir())
        if entry.is_file() and entry.suffix == const.TEMPLATE_EXTENSION
    }


def _discover_components(kind: ComponentKind, components_dir: Path) -> dict[str, _RawComponent]:
    """Read every ``{namespace}.{short}`` directory under ``components_dir``."""
    found: dict[str, _RawComponent] = {}
    if not components_dir.is_dir():
        return found
    for entry in sorted(components_dir.iterdir()):
        if not entry.is_dir() or entry.name.startswith((".", "_")):
            continue
        full_name = entry.name
        short_name = full_name.rpartition(".")[2]
        if not short_name:
            msg = (
                f"Name '{full_name}' of {kind} is invalid. Name of a {kind} should be "
                "in {namespace}.{short_name} format."
            )
            raise ComponentLoadError(msg)
        found[full_name] = _RawComponent(
            full_name=full_name,
            short_name=short_name,
            kind=kind,
            path=entry,
            own_definition=_read_definition(kind, entry, full_name, short_name),
            template_file=_optional_file(entry / const.TEMPLATE_FILE_TEMPLATE.format(short_name=short_name)),
            script_file=_optional_file(entry / const.SCRIPT_FILE_TEMPLATE.format(short_name=short_name)),
        )
    return found


def _optional_file(path: Path) -> Path | None:
    return path if path.is_file() else None


def _read_definition(
    kind: ComponentKind, directory: Path, full_name: str, short_name: str
) -> dict[str, typ.Any]:
    definition_file = directory / const.DEFINITION_FILE_TEMPLATE.format(short_name=short_name)
    if not definition_file.is_file():
        msg = f"Definition file of {kind} '{full_name}' does not exist."
        raise ComponentLoadError(msg)
    try:
        payload = json.loads(definition_file.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        msg = f"Cannot read definition file '{definition_file}' of {kind} '{full_name}': {exc}"
        raise ComponentLoadError(msg) from exc
    if not isinstance(payload, dict):
        msg = f"Definition of {kind} '{full_name}' must be a JSON object."
        raise ComponentLoadError(msg)
    return payload


def _link(raws: dict[str, _RawComponent]) -> list[_RawComponent]:
    """Resolve ``extends`` chains, record children and merge definitions."""
    for raw in raws.values():
        chain: list[str] = []
        child_name = raw.full_name
        parent_name = raw.own_definition.get(const.DEFINITION_EXTENDS)
        while parent_name:
            if not isinstance(parent_name, str):
                msg = f"'extends' of {raw.kind} '{child_name}' must be a string."
                raise ComponentLoadError(msg)
            if parent_name == raw.full_name or parent_name in chain:
                cycle = " -> ".join([raw.full_name, *chain, parent_name])
                msg = f"Cyclic inheritance detected for {raw.kind} '{raw.full_name}': {cycle}."
                raise ComponentLoadError(msg)
            parent = raws.get(parent_name)
            if parent is None:
                msg = (
                    f"Parent {raw.kind} '{parent_name}' of {raw.kind} '{child_name}' "
                    "does not exist."
                )
                raise ComponentLoadError(msg)
            chain.append(parent_name)
            child_name = parent_name
            parent_name = parent.own_definition.get(const.DEFINITION_EXTENDS)
        raw.parents = chain

    for raw in raws.values():
        if raw.parents:
            raws[raw.parents[0]].children.append(raw.full_name)
        definition = raw.own_definition
        for parent_name in raw.parents:
            definition = merge_definitions(definition, raws[parent_name].own_definition)
        raw.definition = definition
    return list(raws.values())


def merge_definitions(
    child: typ.Mapping[str, typ.Any], parent: typ.Mapping[str, typ.Any]
) -> dict[str, typ.Any]:
    """Return ``child`` with gaps filled from ``parent``.

    Values present in ``child`` win. Nested mappings merge recursively and
    lists are never merged element-wise: a child's list replaces the parent's.

    Examples
    --------
    >>> merge_definitions({"a": 1, "tags": ["x"]}, {"a": 2, "b": 3, "tags": ["y", "z"]})
    {'a': 1, 'tags': ['x'], 'b': 3}
    >>> merge_definitions({"nested": {"k": 1}}, {"nested": {"k": 0, "j": 2}})
    {'nested': {'k': 1, 'j': 2}}
    """
    merged = dict(child)
    for key, value in parent.items():
        if key not in merged:
            merged[key] = copy.deepcopy(value)
        elif isinstance(value, dict) and isinstance(merged[key], dict):
            merged[key] = merge_definitions(merged[key], value)
    return merged


def _order_components(raws: list[_RawComponent]) -> list[_RawComponent]:
    """Sort by explicit index then name, emitting descendants before ancestors on ties."""
    ordered = sorted(raws, key=lambda raw: (raw.explicit_index, raw.full_name))
    result: list[_RawComponent] = []
    for _, group in itertools.groupby(ordered, key=lambda raw: raw.explicit_index):
        result.extend(_descendants_first(list(group)))
    return result


def _descendants_first(group: list[_RawComponent]) -> list[_RawComponent]:
    pending = list(group)
    emitted: list[_RawComponent] = []
    while pending:
        for position, candidate in enumerate(pending):
            waiting_on_descendant = any(
                candidate.full_name in other.parents for other in pending if other is not candidate
            )
            if not waiting_on_descendant:
                emitted.append(pending.pop(position))
                break
    return emitted


def _freeze(raw: _RawComponent, indices: typ.Mapping[str, int]) -> UIComponent:
    return UIComponent(
        full_name=raw.full_name,
        short_name=raw.short_name,
        kind=raw.kind,
        path=raw.path,
        definition=types.MappingProxyType(raw.definition),
        template_file=raw.template_file,
        script_file=raw.script_file,
        parents=tuple(raw.parents),
        children=tuple(sorted(raw.children, key=indices.__getitem__)),
        index=indices[raw.full_name],
    )


def _format_chain(component: UIComponent) -> str:
    return "[" + ", ".join(f"'{name}'" for name in component.parents) + "]"


def _validate_page(page: UIComponent, layouts: typ.Mapping[str, Path]) -> None:
    """Check that a leaf page carries a version, a URI and an existing layout."""
    if not page.version:
        msg = f"Page '{page.full_name}' or its parents {_format_chain(page)} do not have a version."
        raise ComponentLoadError(msg)
    if not page.uri:
        msg = f"Page '{page.full_name}' or its parents {_format_chain(page)} do not have a URI."
        raise ComponentLoadError(msg)
    layout = page.layout
    if not layout:
        msg = f"Page '{page.full_name}' or its parents {_format_chain(page)} do not have a layout."
        raise ComponentLoadError(msg)
    if layout not in layouts:
        msg = f"Layout '{layout}' of page '{page.full_name}' does not exist."
        raise ComponentLoadError(msg)


def _validate_unit(unit: UIComponent) -> None:
    """Check that a leaf unit carries a version and a well-formed pushed URI list."""
    if not unit.version:
        msg = f"Unit '{unit.full_name}' or its parents {_format_chain(unit)} do not have a version."
        raise ComponentLoadError(msg)
    pushed = unit.definition.get(const.DEFINITION_PUSHED_URIS)
    if pushed is not None and not isinstance(pushed, list):
        msg = (
            f"Pushed URIs of unit '{unit.full_name}' should be a string array. "
            f"Instead found '{type(pushed).__name__}'."
        )
        raise ComponentLoadError(msg)


__all__ = ["build_lookup_table", "merge_definitions"]
