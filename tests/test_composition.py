"""Tests for rendering pages, units and zones with the composition engine."""

from __future__ import annotations

import typing as typ

import pytest

from zoned_pages.composition import RenderError
from zoned_pages.identity import User
from zoned_pages.routing import PAGE_SOURCE

if typ.TYPE_CHECKING:
    from pytest_mock import MockerFixture

    from conftest import AppBuilder

VERSION = "1.0.0"
MAIN = '<html><body>{% definezone "content" %}{% enddefinezone %}</body></html>'


def _home(
    builder: AppBuilder,
    template: str | None,
    *,
    layout: str = MAIN,
    definition: dict[str, typ.Any] | None = None,
    script: str | None = None,
) -> None:
    builder.layout("main", layout)
    builder.page(
        "ns.page.home",
        {"version": VERSION, "uri": "/", "layout": "main", **(definition or {})},
        template=template,
        script=script,
    )


def _render(
    builder: AppBuilder,
    page_name: str = "ns.page.home",
    *,
    pushed: typ.Sequence[str] = (),
    user: User | None = None,
) -> str:
    engine = builder.engine()
    context = builder.start(engine, user=user)
    return engine.render_string(
        context, PAGE_SOURCE, page_name=page_name, pushed_units=list(pushed)
    )


def test_pushed_unit_fills_the_layout_zone(banner_app: AppBuilder) -> None:
    assert _render(banner_app, pushed=["ns.unit.banner"]) == (
        "<html><body><div>banner</div></body></html>"
    )


def test_layout_default_renders_when_nothing_writes_the_zone(app_builder: AppBuilder) -> None:
    _home(
        app_builder,
        None,
        layout='<html><body>{% definezone "content" %}default{% enddefinezone %}</body></html>',
    )
    assert _render(app_builder) == "<html><body>default</body></html>"


def test_nearer_page_template_overrides_its_ancestors(app_builder: AppBuilder) -> None:
    app_builder.layout("main", MAIN)
    app_builder.page(
        "ns.page.base",
        {"version": VERSION, "uri": "/", "layout": "main"},
        template='{% zone "content" %}<p>base</p>{% endzone %}',
    )
    app_builder.page(
        "ns.page.home",
        {"extends": "ns.page.base"},
        template='{% zone "content" %}<p>home</p>{% endzone %}',
    )
    assert _render(app_builder) == "<html><body><p>home</p></body></html>"


def test_override_false_appends_after_ancestor_content(app_builder: AppBuilder) -> None:
    app_builder.layout("main", MAIN)
    app_builder.page(
        "ns.page.base",
        {"version": VERSION, "uri": "/", "layout": "main"},
        template='{% zone "content" %}<p>base</p>{% endzone %}',
    )
    app_builder.page(
        "ns.page.home",
        {"extends": "ns.page.base"},
        template='{% zone "content" override=false %}<p>home</p>{% endzone %}',
    )
    assert _render(app_builder) == "<html><body><p>base</p><p>home</p></body></html>"


def test_repeated_unit_renders_keep_their_appended_content_together(
    app_builder: AppBuilder,
) -> None:
    _home(
        app_builder,
        '{% unit "ns.unit.card" n=1 %}{% unit "ns.unit.card" n=2 %}',
        layout='{% definezone "cards" %}{% enddefinezone %}',
    )
    app_builder.unit(
        "ns.unit.cardbase",
        {"version": VERSION},
        template='{% zone "cards" override=false %}[base{{ unit.params.n }}]{% endzone %}',
    )
    app_builder.unit(
        "ns.unit.card",
        {"extends": "ns.unit.cardbase"},
        template='{% zone "cards" override=false %}[card{{ unit.params.n }}]{% endzone %}',
    )
    assert _render(app_builder) == "[base1][card1][base2][card2]"


def test_mentioning_a_parent_page_renders_its_furthest_child(app_builder: AppBuilder) -> None:
    app_builder.layout("main", MAIN)
    app_builder.page(
        "ns.page.base",
        {"version": VERSION, "uri": "/", "layout": "main"},
        template='{% zone "content" %}{{ page.full_name }}{% endzone %}',
    )
    app_builder.page("ns.page.home", {"extends": "ns.page.base"})
    assert _render(app_builder, "ns.page.base") == "<html><body>ns.page.home</body></html>"


def test_contributions_are_ordered_by_component_index(app_builder: AppBuilder) -> None:
    _home(app_builder, '{% zone "content" %}<p>page</p>{% endzone %}')
    app_builder.unit(
        "ns.unit.late",
        {"version": VERSION, "index": 5},
        template='{% zone "content" %}<p>late</p>{% endzone %}',
    )
    app_builder.unit(
        "ns.unit.early",
        {"version": VERSION, "index": 1},
        template='{% zone "content" %}<p>early</p>{% endzone %}',
    )
    html = _render(app_builder, pushed=["ns.unit.late", "ns.unit.early"])
    assert html == "<html><body><p>early</p><p>late</p><p>page</p></body></html>"


def test_unit_options_become_params(app_builder: AppBuilder) -> None:
    _home(
        app_builder,
        '{% zone "content" %}{% unit "ns.unit.greeting" name="Ada" %}'
        '{% unit "ns.unit.greeting" name="x", params={"name": "Grace"} %}{% endzone %}',
    )
    app_builder.unit(
        "ns.unit.greeting",
        {"version": VERSION},
        template="<p>Hello {{ unit.params.name }}</p>",
    )
    assert _render(app_builder) == "<html><body><p>Hello Ada</p><p>Hello Grace</p></body></html>"


def test_empty_explicit_params_replace_the_options(app_builder: AppBuilder) -> None:
    _home(
        app_builder,
        '{% zone "content" %}{% unit "ns.unit.greeting" name="x", params={} %}{% endzone %}',
    )
    app_builder.unit(
        "ns.unit.greeting",
        {"version": VERSION},
        template="<p>{{ unit.params | length }} {{ unit.params.name }}</p>",
    )
    assert _render(app_builder) == "<html><body><p>0 </p></body></html>"


def test_unit_output_is_autoescaped(app_builder: AppBuilder) -> None:
    _home(app_builder, '{% zone "content" %}{% unit "ns.unit.greeting" name="<b>" %}{% endzone %}')
    app_builder.unit(
        "ns.unit.greeting",
        {"version": VERSION},
        template="<p>{{ unit.params.name }}</p>",
    )
    assert _render(app_builder) == "<html><body><p>&lt;b&gt;</p></body></html>"


def test_unit_falls_back_to_the_first_non_empty_ancestor_template(
    app_builder: AppBuilder,
) -> None:
    _home(app_builder, '{% zone "content" %}{% unit "ns.unit.base" %}{% endzone %}')
    app_builder.unit("ns.unit.base", {"version": VERSION}, template="<p>parent</p>")
    app_builder.unit("ns.unit.child", {"extends": "ns.unit.base"}, template="  \n")
    assert _render(app_builder) == "<html><body><p>parent</p></body></html>"


def test_child_unit_template_wins_when_not_empty(app_builder: AppBuilder) -> None:
    _home(app_builder, '{% zone "content" %}{% unit "ns.unit.base" %}{% endzone %}')
    app_builder.unit("ns.unit.base", {"version": VERSION}, template="<p>parent</p>")
    app_builder.unit("ns.unit.child", {"extends": "ns.unit.base"}, template="<p>child</p>")
    assert _render(app_builder) == "<html><body><p>child</p></body></html>"


def test_unit_renders_outside_any_page(app_builder: AppBuilder) -> None:
    app_builder.unit(
        "ns.unit.greeting",
        {"version": VERSION},
        template='<p>hi</p>{% zone "content" %}ignored{% endzone %}',
    )
    engine = app_builder.engine()
    context = app_builder.start(engine)
    assert engine.render_string(context, '{% unit "ns.unit.greeting" %}') == "<p>hi</p>"
    assert context.render_pass.zone_tree.get("content") is None


@pytest.mark.parametrize(
    ("definition", "user", "expected"),
    [
        ({"permissions": ["admin"]}, None, ""),
        ({"permissions": ["admin"]}, User("ada"), ""),
        ({"permissions": ["admin"]}, User("ada", permissions=frozenset({"admin"})), "<p>secret</p>"),
        ({"disabled": True}, User("ada", permissions=frozenset({"admin"})), ""),
    ],
)
def test_unit_gates(
    app_builder: AppBuilder,
    definition: dict[str, typ.Any],
    user: User | None,
    expected: str,
) -> None:
    _home(app_builder, '{% zone "content" %}{% unit "ns.unit.secret" %}{% endzone %}')
    app_builder.unit("ns.unit.secret", {"version": VERSION, **definition}, template="<p>secret</p>")
    assert _render(app_builder, user=user) == f"<html><body>{expected}</body></html>"


def test_rendered_units_are_recorded(app_builder: AppBuilder) -> None:
    _home(app_builder, None)
    app_builder.unit("ns.unit.one", {"version": VERSION}, template="one")
    app_builder.unit("ns.unit.off", {"version": VERSION, "disabled": True}, template="off")
    engine = app_builder.engine()
    context = app_builder.start(engine)
    engine.render_string(
        context,
        PAGE_SOURCE,
        page_name="ns.page.home",
        pushed_units=["ns.unit.one", "ns.unit.off"],
    )
    assert context.render_pass.rendered_units == ["ns.unit.one"]


def test_unknown_unit_is_a_render_error(app_builder: AppBuilder) -> None:
    _home(app_builder, '{% zone "content" %}{% unit "ns.unit.missing" %}{% endzone %}')
    with pytest.raises(RenderError, match=r"Unit 'ns\.unit\.missing' does not exist\."):
        _render(app_builder)


def test_unknown_page_is_a_render_error(app_builder: AppBuilder) -> None:
    _home(app_builder, None)
    with pytest.raises(RenderError, match=r"Page 'ns\.page\.missing' does not exist\."):
        _render(app_builder, "ns.page.missing")


def test_resources_are_emitted_before_zone_html(app_builder: AppBuilder) -> None:
    _home(
        app_builder,
        None,
        layout='<head>{% definezone "head" %}{% enddefinezone %}</head>'
        '<body>{% definezone "content" %}{% enddefinezone %}</body>',
    )
    app_builder.unit(
        "ns.unit.assets",
        {"version": VERSION},
        template=(
            '{% zone "head" %}'
            '{% css "css/a.css" %}{% css "css/a.css" %}{% css "css/b.css" combine=false %}'
            '{% js "js/app.js" %}<meta name="x">'
            "{% endzone %}"
        ),
    )
    html = _render(app_builder, pushed=["ns.unit.assets"])
    assert html == (
        "<head>"
        '<link href="/app/public/ns.unit.assets/css/b.css" rel="stylesheet" type="text/css" />'
        '<link href="/app/public/ns.unit.assets/css/a.css.combined.css" rel="stylesheet" '
        'type="text/css" />'
        '<script src="/app/public/ns.unit.assets/js/app.js.combined.js"></script>'
        '<meta name="x">'
        "</head><body></body>"
    )


def test_resource_outside_a_zone_is_a_render_error(app_builder: AppBuilder) -> None:
    _home(app_builder, '{% css "css/a.css" %}')
    with pytest.raises(RenderError, match="inside a top-level zone"):
        _render(app_builder)


def test_resource_inside_a_sub_zone_is_a_render_error(app_builder: AppBuilder) -> None:
    _home(app_builder, '{% zone "content" %}{% zone "title" %}{% js "a.js" %}{% endzone %}{% endzone %}')
    with pytest.raises(RenderError, match="inside a top-level zone"):
        _render(app_builder)


def test_sub_zones_fill_nested_definitions(app_builder: AppBuilder) -> None:
    _home(
        app_builder,
        '{% zone "content" %}{% zone "title" %}Hello{% endzone %}<p>body</p>{% endzone %}',
        layout='{% definezone "content" %}<h1>{% definezone "title" %}Untitled'
        "{% enddefinezone %}</h1>{% enddefinezone %}",
    )
    assert _render(app_builder) == "<h1>Hello</h1><p>body</p>"


def test_repeated_sub_zone_writes_render_latest_first(app_builder: AppBuilder) -> None:
    _home(
        app_builder,
        '{% zone "content" %}{% zone "title" %}first{% endzone %}'
        '{% zone "title" %}second{% endzone %}{% endzone %}',
        layout='{% definezone "content" %}<h1>{% definezone "title" %}{% enddefinezone %}</h1>'
        "{% enddefinezone %}",
    )
    assert _render(app_builder) == "<h1>secondfirst</h1>"


def test_sub_zone_defaults_render_when_the_zone_is_empty(app_builder: AppBuilder) -> None:
    _home(
        app_builder,
        None,
        layout='{% definezone "content" %}<h1>{% definezone "title" %}Untitled'
        "{% enddefinezone %}</h1>{% enddefinezone %}",
    )
    assert _render(app_builder) == "<h1>Untitled</h1>"


def test_zones_nested_three_deep_are_a_render_error(app_builder: AppBuilder) -> None:
    _home(
        app_builder,
        '{% zone "a" %}{% zone "b" %}{% zone "c" %}x{% endzone %}{% endzone %}{% endzone %}',
    )
    with pytest.raises(RenderError, match="Too many nested zones in zone 'a'"):
        _render(app_builder)


def test_zone_definitions_nested_three_deep_are_a_render_error(
    app_builder: AppBuilder,
) -> None:
    _home(
        app_builder,
        None,
        layout='{% definezone "a" %}{% definezone "b" %}{% definezone "c" %}x'
        "{% enddefinezone %}{% enddefinezone %}{% enddefinezone %}",
    )
    with pytest.raises(RenderError, match="Too many nested zone definitions in zone 'a'"):
        _render(app_builder)


def test_protected_scope_emits_the_child_unit_content_once(app_builder: AppBuilder) -> None:
    _home(app_builder, '{% zone "content" %}{% unit "ns.unit.grand" %}{% endzone %}')
    app_builder.unit(
        "ns.unit.grand",
        {"version": VERSION},
        template='<div>{% definezone "slot" scope="protected" %}{% enddefinezone %}</div>',
    )
    app_builder.unit(
        "ns.unit.parent",
        {"extends": "ns.unit.grand"},
        template='<section>{% definezone "slot" scope="protected" %}{% enddefinezone %}</section>',
    )
    app_builder.unit(
        "ns.unit.child",
        {"extends": "ns.unit.parent"},
        template='{% zone "slot" %}<b>child</b>{% endzone %}',
    )
    engine = app_builder.engine()
    context = app_builder.start(engine)
    html = engine.render_string(context, PAGE_SOURCE, page_name="ns.page.home", pushed_units=[])

    assert html == "<html><body><section><b>child</b></section></body></html>"
    zone = context.render_pass.zone_tree.get("slot")
    assert zone is not None
    assert [content.expired for content in zone.contents_of("ns.unit.child")] == [True]


def test_zone_owned_by_another_page_is_not_reopened(app_builder: AppBuilder) -> None:
    app_builder.layout("main", '{% definezone "content" %}{% enddefinezone %}')
    app_builder.page(
        "ns.page.one",
        {"version": VERSION, "uri": "/one", "layout": "main"},
        template='{% zone "content" %}<p>one</p>{% endzone %}',
    )
    app_builder.page(
        "ns.page.two",
        {"version": VERSION, "uri": "/two", "layout": "main"},
        template='{% zone "content" %}<p>two</p>{% endzone %}',
    )
    engine = app_builder.engine()
    context = app_builder.start(engine)
    html = engine.render_string(
        context, '{% page "ns.page.one" %}{% endpage %}{% page "ns.page.two" %}{% endpage %}'
    )
    assert html == "<p>one</p><p>one</p>"


def test_page_script_feeds_the_templates(app_builder: AppBuilder) -> None:
    _home(
        app_builder,
        '{% zone "content" %}<h1>{{ title }}</h1><p>{{ page.css_class }}</p>{% endzone %}',
        script=(
            "def on_request(context):\n"
            '    return {"title": "Home of " + context.app.name, "page": "ignored"}\n'
        ),
    )
    assert _render(app_builder) == (
        "<html><body><h1>Home of app</h1><p>page-ns.page.home</p></body></html>"
    )


def test_child_script_can_call_its_parent(app_builder: AppBuilder) -> None:
    _home(app_builder, '{% zone "content" %}{% unit "ns.unit.base" %}{% endzone %}')
    app_builder.unit(
        "ns.unit.base",
        {"version": VERSION},
        template="<p>{{ greeting }}</p>",
        script='def on_request(context):\n    return {"greeting": "hello"}\n',
    )
    app_builder.unit(
        "ns.unit.child",
        {"extends": "ns.unit.base"},
        script=(
            "def on_request(context):\n"
            "    inherited = context.super(context)\n"
            '    return {"greeting": inherited["greeting"] + " world"}\n'
        ),
    )
    assert _render(app_builder) == "<html><body><p>hello world</p></body></html>"


def test_ancestor_script_runs_for_the_processing_child(app_builder: AppBuilder) -> None:
    _home(app_builder, '{% zone "content" %}{% unit "ns.unit.base" %}{% endzone %}')
    app_builder.unit(
        "ns.unit.base",
        {"version": VERSION},
        template="<p>{{ name }} {{ has_data }}</p>",
        script=(
            "def on_request(context):\n"
            "    return {\n"
            '        "name": context.unit.full_name,\n'
            '        "has_data": context.get_file("public/data.txt") is not None,\n'
            "    }\n"
        ),
        public={"data.txt": "42"},
    )
    app_builder.unit("ns.unit.child", {"extends": "ns.unit.base"})
    assert _render(app_builder) == "<html><body><p>ns.unit.child True</p></body></html>"


def test_failing_script_is_a_render_error(app_builder: AppBuilder) -> None:
    _home(
        app_builder,
        None,
        script='def on_request(context):\n    raise ValueError("boom")\n',
    )
    with pytest.raises(RenderError, match=r"Script of page 'ns\.page\.home' failed.*boom"):
        _render(app_builder)


def test_script_must_return_a_mapping(app_builder: AppBuilder) -> None:
    _home(app_builder, None, script="def on_request(context):\n    return ['x']\n")
    with pytest.raises(RenderError, match="must return a mapping"):
        _render(app_builder)


def test_rendering_is_deterministic(banner_app: AppBuilder) -> None:
    first = _render(banner_app, pushed=["ns.unit.banner"])
    second = _render(banner_app, pushed=["ns.unit.banner"])
    assert first == second


def test_page_source_is_compiled_once_per_engine(
    banner_app: AppBuilder, mocker: MockerFixture
) -> None:
    engine = banner_app.engine()
    compile_source = mocker.spy(engine.env, "from_string")
    for _ in range(2):
        html = engine.render_string(
            banner_app.start(engine),
            PAGE_SOURCE,
            page_name="ns.page.home",
            pushed_units=["ns.unit.banner"],
        )
        assert html == "<html><body><div>banner</div></body></html>"
    compile_source.assert_called_once()
