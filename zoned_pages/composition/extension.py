"""Jinja2 tags for composing pages out of zones.

The extension adds these tags:

``{% page "ns.page.home" %}...{% endpage %}``
    Render a page (its furthest child), its ancestors' templates and its
    layout. The body is rendered first, inside the page.
``{% unit "ns.unit.banner" title="Hi" %}``
    Render a unit in place. Keyword options become the unit's ``params``
    unless a ``params=`` option is given, which then replaces them.
``{% zone "content" override=false %}...{% endzone %}``
    Write the body into a zone.
``{% definezone "content" scope="protected" %}default{% enddefinezone %}``
    Emit what was written into a zone, or the body when nothing was.
``{% css "css/site.css" combine=false %}``, ``{% js ... %}``, ``{% less ... %}``
    Register a resource with the zone that is currently open.

Every tag reads the composition context from the ``_composition`` template
variable. Block tags hand a derived context to their body through
``caller(context)``, so the body sees the new context as ``_composition``.
"""

from __future__ import annotations

import typing as typ

from jinja2 import nodes
from jinja2.ext import Extension
from markupsafe import Markup

from zoned_pages import _constants as const
from zoned_pages.config import parse_bool

from .context import CompositionContext, RenderError

if typ.TYPE_CHECKING:
    from jinja2 import Environment
    from jinja2.parser import Parser

    from .engine import CompositionEngine

_BLOCK_TAGS = frozenset({"page", "zone", "definezone"})


class CompositionExtension(Extension):
    """Parse the composition tags and dispatch them to a :class:`CompositionEngine`."""

    tags: typ.ClassVar[set[str]] = {"page", "unit", "zone", "definezone", *const.RESOURCE_TYPES}

    def __init__(self, environment: Environment) -> None:
        super().__init__(environment)
        environment.extend(composition_engine=None)

    def parse(self, parser: Parser) -> nodes.Node:
        token = next(parser.stream)
        tag, lineno = token.value, token.lineno
        target = parser.parse_expression()
        options = _parse_options(parser)
        composition = nodes.Name(const.COMPOSITION_VARIABLE, "load", lineno=lineno)

        if tag in _BLOCK_TAGS:
            body = parser.parse_statements((f"name:end{tag}",), drop_needle=True)
            call = self.call_method(f"_{tag}", [composition, target], options, lineno=lineno)
            return nodes.CallBlock(
                call,
                [nodes.Name(const.COMPOSITION_VARIABLE, "param", lineno=lineno)],
                [],
                body,
                lineno=lineno,
            )
        if tag == "unit":
            call = self.call_method("_unit", [composition, target], options, lineno=lineno)
        else:
            call = self.call_method(
                "_resource", [composition, nodes.Const(tag), target], options, lineno=lineno
            )
        return nodes.Output([call], lineno=lineno)

    def _engine(self) -> CompositionEngine:
        engine = getattr(self.environment, "composition_engine", None)
        if engine is None:
            msg = "No composition engine is bound to this Jinja2 environment."
            raise RenderError(msg)
        return engine

    def _page(
        self,
        composition: object,
        name: str,
        /,
        *,
        caller: typ.Callable[[CompositionContext], str],
        **options: typ.Any,
    ) -> Markup:
        return self._engine().render_page(
            _require_context(composition, "page"), name, body=caller, params=_params(options)
        )

    def _unit(self, composition: object, name: str, /, **options: typ.Any) -> Markup:
        return self._engine().render_unit(
            _require_context(composition, "unit"), name, params=_params(options)
        )

    def _zone(
        self,
        composition: object,
        name: str,
        *,
        caller: typ.Callable[[CompositionContext], str],
        override: object = True,
    ) -> Markup:
        return self._engine().open_zone(
            _require_context(composition, "zone"),
            name,
            caller,
            override=parse_bool(override, default=True),
        )

    def _definezone(
        self,
        composition: object,
        name: str,
        *,
        caller: typ.Callable[[CompositionContext], str],
        scope: str | None = None,
    ) -> Markup:
        return self._engine().define_zone(
            _require_context(composition, "definezone"), name, caller, scope=scope
        )

    def _resource(
        self, composition: object, resource_type: str, path: str, *, combine: object = True
    ) -> Markup:
        return self._engine().register_resource(
            _require_context(composition, resource_type),
            resource_type,
            str(path),
            combine=parse_bool(combine, default=True),
        )


def _parse_options(parser: Parser) -> list[nodes.Keyword]:
    """Parse ``key=value`` pairs up to the end of the tag; commas are optional."""
    options: list[nodes.Keyword] = []
    while parser.stream.current.type != "block_end":
        parser.stream.skip_if("comma")
        key = parser.stream.expect("name")
        parser.stream.expect("assign")
        options.append(nodes.Keyword(key.value, parser.parse_expression(), lineno=key.lineno))
    return options


def _params(options: dict[str, typ.Any]) -> dict[str, typ.Any]:
    if const.PARAM_PARAMS in options:
        return dict(options[const.PARAM_PARAMS] or {})
    return options


def _require_context(composition: object, tag: str) -> CompositionContext:
    if not isinstance(composition, CompositionContext):
        msg = f"'{tag}' tag used in a template that is not rendered by the composition engine."
        raise RenderError(msg)
    return composition


__all__ = ["CompositionExtension"]
