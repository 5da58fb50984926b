"""Load fragment scripts and run their ``on_request`` handlers.

A fragment's ``{short}.py`` module may define ``on_request(context)``. The
handler of the fragment itself runs; when it has none the nearest ancestor's
handler runs instead. The handlers of the remaining ancestors are exposed as
``context.super``, a chain the running handler may call explicitly:

>>> def on_request(context):  # doctest: +SKIP
...     inherited = context.super(context) if context.super else {}
...     return {**inherited, "title": "Child"}
"""

from __future__ import annotations

import dataclasses as dc
import functools
import importlib.util
import logging
import threading
import typing as typ

from zoned_pages import _constants as const

from .context import RenderError

if typ.TYPE_CHECKING:
    from pathlib import Path
    from types import ModuleType

    from zoned_pages.components import LookupTable, UIComponent
    from zoned_pages.identity import User

    from .context import AppInfo

logger = logging.getLogger(__name__)

ScriptHandler = typ.Callable[["ScriptContext"], typ.Mapping[str, typ.Any] | None]

SCRIPT_MODULE_NAMESPACE = "zoned_pages.scripts"


@dc.dataclass(slots=True, frozen=True)
class FragmentInfo:
    """What a page or unit knows about itself while it is being processed."""

    full_name: str
    params: typ.Mapping[str, typ.Any]
    public_uri: str
    css_class: str


class SuperScript:
    """One ancestor's handler plus the chain of the ancestors above it."""

    __slots__ = ("on_request", "super")

    def __init__(self, on_request: ScriptHandler | None = None, parent: SuperScript | None = None) -> None:
        self.on_request = on_request
        self.super = parent

    def __call__(self, context: ScriptContext) -> typ.Mapping[str, typ.Any] | None:
        """Run this ancestor's handler with ``context.super`` moved one level up."""
        if self.on_request is None:
            return self.super(context) if self.super is not None else None
        return self.on_request(dc.replace(context, super=self.super))


def _no_file(relative_path: str) -> Path | None:
    return None


@dc.dataclass(slots=True)
class ScriptContext:
    """Argument passed to ``on_request``.

    Exactly one of ``page`` and ``unit`` is set, depending on which kind of
    fragment is being processed.
    """

    app: AppInfo
    uri_params: typ.Mapping[str, str]
    user: User | None = None
    page: FragmentInfo | None = None
    unit: FragmentInfo | None = None
    super: SuperScript | None = None
    get_file: typ.Callable[[str], Path | None] = _no_file


class ScriptRunner:
    """Import fragment scripts on demand and cache them by modification time."""

    def __init__(self) -> None:
        self._modules: dict[Path, tuple[int, ModuleType]] = {}
        self._lock = threading.Lock()

    def load(self, path: Path) -> ModuleType:
        """Return the module at ``path``, re-importing it when the file changed."""
        try:
            mtime_ns = path.stat().st_mtime_ns
        except OSError as exc:
            msg = f"Cannot read script '{path}': {exc}"
            raise RenderError(msg) from exc
        with self._lock:
            cached = self._modules.get(path)
            if cached is not None and cached[0] == mtime_ns:
                return cached[1]
            module = _import_script(path)
            self._modules[path] = (mtime_ns, module)
            return module

    def handler(self, component: UIComponent) -> ScriptHandler | None:
        """Return the component's own ``on_request`` function, if it defines one."""
        if component.script_file is None:
            return None
        handler = getattr(self.load(component.script_file), const.SCRIPT_ENTRY_POINT, None)
        return handler if callable(handler) else None

    def run(
        self, component: UIComponent, context: ScriptContext, lookup_table: LookupTable
    ) -> dict[str, typ.Any]:
        """Execute the script chain of ``component`` and return its template context.

        Raises
        ------
        RenderError
            If a script cannot be imported, its handler raises, or the handler
            returns something other than a mapping or ``None``.
        """
        chain = (component, *lookup_table.ancestors(component))
        handlers = [self.handler(member) for member in chain]
        position = next((i for i, handler in enumerate(handlers) if handler is not None), None)
        if position is None:
            return {}

        parent: SuperScript | None = None
        for handler in reversed(handlers[position + 1 :]):
            parent = SuperScript(handler, parent)
        context.super = parent
        context.get_file = functools.partial(lookup_table.find_file, component)

        owner = chain[position]
        try:
            result = handlers[position](context)  # type: ignore[misc]
        except RenderError:
            raise
        except Exception as exc:
            msg = (
                f"Script of {owner.kind} '{owner.full_name}' failed while processing "
                f"{component.kind} '{component.full_name}': {exc}"
            )
            raise RenderError(msg) from exc
        if result is None:
            return {}
        if not isinstance(result, typ.Mapping):
            msg = (
                f"Script of {owner.kind} '{owner.full_name}' must return a mapping, "
                f"got '{type(result).__name__}'."
            )
            raise RenderError(msg)
        return dict(result)


def _import_script(path: Path) -> ModuleType:
    module_name = f"{SCRIPT_MODULE_NAMESPACE}.{path.parent.name.replace('.', '_')}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        msg = f"Cannot import script '{path}'."
        raise RenderError(msg)
    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except Exception as exc:
        msg = f"Cannot import script '{path}': {exc}"
        raise RenderError(msg) from exc
    logger.debug("Loaded script '%s'.", path)
    return module


__all__ = ["FragmentInfo", "ScriptContext", "ScriptRunner", "SuperScript"]
