"""Shared fixtures for building throwaway zoned-pages applications.

Tests describe an application with :class:`AppBuilder`, which writes layouts,
pages, units and the app configuration under ``tmp_path`` and hands back the
lookup table, a composition engine or a router for it.
"""

from __future__ import annotations

import json
import typing as typ
from pathlib import Path

import pytest

from zoned_pages.components import LookupTable, build_lookup_table
from zoned_pages.composition import AppInfo, CompositionContext, CompositionEngine
from zoned_pages.identity import StaticIdentityProvider, User
from zoned_pages.routing import PageRouter

VERSION = "1.0.0"


class AppBuilder:
    """Write an application directory piece by piece."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.root.mkdir(parents=True, exist_ok=True)
        self.config(displayName="Demo", cachingEnabled=False)

    def config(self, **values: typ.Any) -> Path:
        path = self.root / "app-conf.json"
        path.write_text(json.dumps(values), encoding="utf-8")
        return path

    def layout(self, name: str, source: str) -> Path:
        path = self.root / "layouts" / f"{name}.jinja"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(source, encoding="utf-8")
        return path

    def page(
        self,
        full_name: str,
        definition: dict[str, typ.Any] | None = None,
        *,
        template: str | None = None,
        script: str | None = None,
        public: dict[str, str] | None = None,
    ) -> Path:
        return self._component("pages", full_name, definition, template, script, public)

    def unit(
        self,
        full_name: str,
        definition: dict[str, typ.Any] | None = None,
        *,
        template: str | None = None,
        script: str | None = None,
        public: dict[str, str] | None = None,
    ) -> Path:
        return self._component("units", full_name, definition, template, script, public)

    def _component(
        self,
        directory: str,
        full_name: str,
        definition: dict[str, typ.Any] | None,
        template: str | None,
        script: str | None,
        public: dict[str, str] | None,
    ) -> Path:
        short_name = full_name.rpartition(".")[2]
        path = self.root / directory / full_name
        path.mkdir(parents=True, exist_ok=True)
        (path / f"{short_name}.json").write_text(json.dumps(definition or {}), encoding="utf-8")
        if template is not None:
            (path / f"{short_name}.jinja").write_text(template, encoding="utf-8")
        if script is not None:
            (path / f"{short_name}.py").write_text(script, encoding="utf-8")
        for relative, content in (public or {}).items():
            target = path / "public" / relative
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
        return path

    def table(self) -> LookupTable:
        return build_lookup_table(self.root)

    def engine(self) -> CompositionEngine:
        return CompositionEngine(self.root)

    def start(
        self, engine: CompositionEngine, *, user: User | None = None
    ) -> CompositionContext:
        return engine.start(self.table(), app=AppInfo(name="app", context="/app"), user=user)

    def router(self, *, user: User | None = None) -> PageRouter:
        return PageRouter(self.root, identity=StaticIdentityProvider(user))


@pytest.fixture
def app_builder(tmp_path: Path) -> AppBuilder:
    """Return a builder writing an application under ``tmp_path / "app"``."""
    return AppBuilder(tmp_path / "app")


@pytest.fixture
def banner_app(app_builder: AppBuilder) -> AppBuilder:
    """Home page at ``/`` plus a banner unit pushed for every URI."""
    app_builder.layout(
        "main",
        "<html><body>{% definezone \"content\" %}default{% enddefinezone %}</body></html>",
    )
    app_builder.page(
        "ns.page.home",
        {"version": VERSION, "uri": "/", "layout": "main"},
        template='{% zone "content" %}{% endzone %}',
    )
    app_builder.unit(
        "ns.unit.banner",
        {"version": VERSION, "pushedUris": ["/*"]},
        template='{% zone "content" %}<div>banner</div>{% endzone %}',
    )
    return app_builder
