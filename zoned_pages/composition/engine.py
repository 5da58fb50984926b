"""Render pages and units and resolve what ends up in every zone.

The engine evaluates templates depth-first through the inheritance chain of
the fragment being rendered. Zone writes (``{% zone %}``) fill the
per-request :class:`~zoned_pages.composition.zones.ZoneTree`; zone reads
(``{% definezone %}``), which normally sit in layouts, emit the result.

Precedence rules:

* every template of a page or unit writes on behalf of the fragment actually
  being processed (its furthest child), tagged with the template's depth in
  the chain;
* a zone opened with ``override`` (the default) hides what templates further
  up the same chain write into that zone; with ``override=false`` their
  content is kept and rendered before the nearer content;
* contributions of different fragments are emitted in fragment index order,
  resources first.
"""

from __future__ import annotations

import logging
import typing as typ
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, TemplateNotFound
from markupsafe import Markup

from zoned_pages import _constants as const

from .context import AppInfo, CompositionContext, RenderError, RenderPass
from .extension import CompositionExtension
from .resources import resource_tags
from .scripts import FragmentInfo, ScriptContext, ScriptRunner
from .zones import Zone, ZoneContent

if typ.TYPE_CHECKING:
    from jinja2 import Template

    from zoned_pages.components import LookupTable, UIComponent
    from zoned_pages.identity import User

logger = logging.getLogger(__name__)

Caller = typ.Callable[[CompositionContext], str]

MAX_DEFINE_ZONE_DEPTH = 2


class CompositionEngine:
    """Evaluate page, unit and layout templates of one application."""

    def __init__(
        self,
        app_root: Path,
        *,
        scripts: ScriptRunner | None = None,
        auto_reload: bool = True,
    ) -> None:
        """Create the Jinja2 environment rooted at ``app_root``.

        Parameters
        ----------
        app_root : Path
            Application directory; template names are paths relative to it.
        scripts : ScriptRunner, optional
            Script loader shared across engines; a private one is created when
            omitted.
        auto_reload : bool, optional
            Whether Jinja2 re-checks template files for changes. Disable it
            when the application's caching is enabled and files never change.
        """
        self.app_root = Path(app_root)
        self.scripts = scripts or ScriptRunner()
        self.env = Environment(
            loader=FileSystemLoader(self.app_root),
            autoescape=True,
            trim_blocks=True,
            lstrip_blocks=True,
            auto_reload=auto_reload,
            extensions=[CompositionExtension],
        )
        self.env.composition_engine = self  # type: ignore[attr-defined]
        self._compiled: dict[str, Template] = {}

    def start(
        self,
        lookup_table: LookupTable,
        *,
        app: AppInfo,
        user: User | None = None,
        uri_params: typ.Mapping[str, str] | None = None,
    ) -> CompositionContext:
        """Return the root context of a fresh render pass."""
        render_pass = RenderPass(
            lookup_table=lookup_table,
            app=app,
            user=user,
            uri_params=dict(uri_params or {}),
        )
        return CompositionContext(render_pass=render_pass)

    def render_string(
        self, context: CompositionContext, source: str, **variables: typ.Any
    ) -> str:
        """Render a template given as text within ``context``'s render pass.

        Each distinct source is compiled once per engine.
        """
        template = self._compiled.get(source)
        if template is None:
            template = self._compiled[source] = self.env.from_string(source)
        return template.render({**variables, const.COMPOSITION_VARIABLE: context})

    # page / unit

    def render_page(
        self,
        context: CompositionContext,
        name: str,
        *,
        body: Caller | None = None,
        params: typ.Mapping[str, typ.Any] | None = None,
    ) -> Markup:
        """Render page ``name`` and return its layout's HTML.

        The page's furthest child is processed: its script runs, ``body``
        renders inside it, then its own template and every ancestor template
        run for their zone writes, and finally the layout renders.

        Raises
        ------
        RenderError
            If the page does not exist or one of its templates cannot be read.
        """
        table = context.render_pass.lookup_table
        mentioned = table.pages.get(name)
        if mentioned is None:
            msg = f"Page '{name}' does not exist."
            raise RenderError(msg)
        page = table.furthest_child(mentioned)
        if page is not mentioned:
            logger.debug("Page '%s' is processed for page '%s'.", page.full_name, name)

        page_context = context.with_page(page, context.render_pass.next_instance())
        variables = self._variables(page_context, page, params)
        if body is not None:
            body(page_context)

        ancestors = table.ancestors(page)
        for depth, component in enumerate((page, *ancestors)):
            if component.template_file is not None:
                self._render(component.template_file, page_context.at_depth(depth), variables, component)

        layout_path = table.layouts.get(page.layout or "")
        if layout_path is None:
            msg = f"Layout '{page.layout}' of page '{page.full_name}' does not exist."
            raise RenderError(msg)
        html = self._render(layout_path, page_context.at_depth(len(ancestors) + 1), variables, page)
        return Markup(html)

    def render_unit(
        self,
        context: CompositionContext,
        name: str,
        *,
        params: typ.Mapping[str, typ.Any] | None = None,
    ) -> Markup:
        """Render unit ``name`` and return the first non-empty template output.

        The unit's furthest child is processed. It renders as an empty string
        when it is disabled or the current user lacks one of its permissions.
        Every template in the chain runs for its zone writes even after a
        non-empty result has been found.
        """
        table = context.render_pass.lookup_table
        mentioned = table.units.get(name)
        if mentioned is None:
            msg = f"Unit '{name}' does not exist."
            raise RenderError(msg)
        unit = table.furthest_child(mentioned)
        if not self.is_processable(unit, context.render_pass.user):
            return Markup("")
        if unit is not mentioned:
            logger.debug("Unit '%s' is processed for unit '%s'.", unit.full_name, name)

        unit_context = context.with_unit(unit, context.render_pass.next_instance())
        variables = self._variables(unit_context, unit, params)
        result = ""
        for depth, component in enumerate((unit, *table.ancestors(unit))):
            if component.template_file is None:
                continue
            html = self._render(component.template_file, unit_context.at_depth(depth), variables, component)
            html = html.strip()
            if not result and html:
                result = html
        context.render_pass.rendered_units.append(unit.full_name)
        return Markup(result)

    @staticmethod
    def is_processable(unit: UIComponent, user: User | None) -> bool:
        """Return whether ``unit`` may render for ``user``."""
        if unit.disabled:
            logger.debug("Unit '%s' is disabled.", unit.full_name)
            return False
        required = unit.permissions
        if not required:
            return True
        if user is None:
            logger.debug("Unit '%s' requires permissions but no user is logged in.", unit.full_name)
            return False
        missing = user.missing_permission(required)
        if missing is not None:
            logger.debug(
                "User '%s' in domain '%s' does not have permission '%s' to view unit '%s'.",
                user.username,
                user.domain,
                missing,
                unit.full_name,
            )
            return False
        return True

    # zones

    def open_zone(
        self, context: CompositionContext, name: str, caller: Caller, *, override: bool = True
    ) -> Markup:
        """Record the body of a ``zone`` tag; the tag itself renders nothing."""
        provider = context.provider
        if context.page is None or provider is None:
            return Markup("")
        if len(context.zones) > 1:
            msg = f"Too many nested zones in zone '{context.zones[0].zone_name}'."
            raise RenderError(msg)

        content = ZoneContent(
            zone_name=name,
            provider=provider,
            depth=context.depth,
            instance=context.instance,
            is_overridden=override,
        )
        if context.zones:
            context.zones[-1].add_sub_zone_content(content)
        else:
            zone_tree = context.render_pass.zone_tree
            zone = zone_tree.get(name)
            if zone is None:
                zone = zone_tree.add(Zone(name=name, owner=context.page))
            elif zone.owner is not context.page:
                logger.debug(
                    "Zone '%s' is owned by page '%s'; ignoring it in page '%s'.",
                    name,
                    zone.owner.full_name,
                    context.page.full_name,
                )
                return Markup("")
            if zone.is_overridden_for(provider, context.depth, context.instance):
                return Markup("")
            zone.add_content(content)
        content.set_html(str(caller(context.enter_zone(content))))
        return Markup("")

    def register_resource(
        self, context: CompositionContext, resource_type: str, path: str, *, combine: bool = True
    ) -> Markup:
        """Add a resource to the open top-level zone; renders nothing."""
        provider = context.provider
        if context.page is None or provider is None:
            msg = f"'{resource_type}' tag should be used inside a page or a unit."
            raise RenderError(msg)
        if len(context.zones) != 1:
            msg = f"'{resource_type}' tag should be used inside a top-level zone."
            raise RenderError(msg)
        zone = context.render_pass.zone_tree.get(context.zones[0].zone_name)
        if zone is None:
            msg = f"Zone '{context.zones[0].zone_name}' is not registered in this render pass."
            raise RenderError(msg)
        zone.add_resource(
            resource_type, provider, f"{provider.full_name}/{path.lstrip('/')}", combine=combine
        )
        return Markup("")

    def define_zone(
        self,
        context: CompositionContext,
        name: str,
        caller: Caller,
        *,
        scope: str | None = None,
    ) -> Markup:
        """Emit what was written into zone ``name``, or the tag body as a default."""
        if len(context.define_zones) >= MAX_DEFINE_ZONE_DEPTH:
            msg = f"Too many nested zone definitions in zone '{context.define_zones[0]}'."
            raise RenderError(msg)
        if context.define_zones:
            return self._define_sub_zone(context, name, caller)

        zone = context.render_pass.zone_tree.get(name)
        if zone is None:
            return Markup(caller(context.enter_define_zone(name)))

        parts = [resource_tags(zone, context.render_pass.app.context)]
        protected_unit = context.current_unit if scope == const.SCOPE_PROTECTED else None
        for provider in zone.providers():
            if protected_unit is not None and provider.full_name != protected_unit.full_name:
                continue
            for content in zone.contents_of(provider.full_name):
                if protected_unit is not None:
                    if content.expired:
                        continue
                    parts.append(self._emit(context, name, content, caller))
                    content.expired = True
                else:
                    parts.append(self._emit(context, name, content, caller))
        return Markup("".join(parts))

    def _define_sub_zone(self, context: CompositionContext, name: str, caller: Caller) -> Markup:
        contents = None
        if context.defining is not None:
            contents = context.defining.sub_zone_contents(name)
        if not contents:
            return Markup(caller(context.enter_define_zone(name)))
        return Markup("".join(content.html for content in reversed(contents)))

    @staticmethod
    def _emit(
        context: CompositionContext, name: str, content: ZoneContent, caller: Caller
    ) -> str:
        if content.has_sub_zones:
            return str(caller(context.enter_define_zone(name, content))) + content.html
        return content.html

    # templates and scripts

    def _variables(
        self,
        context: CompositionContext,
        component: UIComponent,
        params: typ.Mapping[str, typ.Any] | None,
    ) -> dict[str, typ.Any]:
        """Run the script chain and build the template variables.

        Script results come first so the ``app``, ``page``/``unit``,
        ``uri_params`` and ``user`` variables always describe the render.
        """
        render_pass = context.render_pass
        info = FragmentInfo(
            full_name=component.full_name,
            params=dict(params or {}),
            public_uri=component.public_uri(render_pass.app.context),
            css_class=component.css_class,
        )
        script_context = ScriptContext(
            app=render_pass.app,
            uri_params=render_pass.uri_params,
            user=render_pass.user,
            **{component.kind: info},
        )
        result = self.scripts.run(component, script_context, render_pass.lookup_table)
        return {
            **result,
            "app": render_pass.app,
            component.kind: info,
            "uri_params": render_pass.uri_params,
            "user": render_pass.user,
        }

    def _template(self, path: Path, owner: UIComponent) -> Template:
        try:
            name = path.resolve().relative_to(self.app_root.resolve()).as_posix()
            return self.env.get_template(name)
        except (TemplateNotFound, OSError, ValueError) as exc:
            msg = f"Cannot read template '{path}' of {owner.kind} '{owner.full_name}'."
            raise RenderError(msg) from exc

    def _render(
        self,
        path: Path,
        context: CompositionContext,
        variables: typ.Mapping[str, typ.Any],
        owner: UIComponent,
    ) -> str:
        template = self._template(path, owner)
        return template.render({**variables, const.COMPOSITION_VARIABLE: context})


__all__ = ["CompositionEngine", "MAX_DEFINE_ZONE_DEPTH"]
