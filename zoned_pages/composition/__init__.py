"""Zone composition: the render-pass state, Jinja2 tags and rendering engine."""

from .context import AppInfo, CompositionContext, RenderError, RenderPass
from .engine import CompositionEngine
from .extension import CompositionExtension
from .scripts import FragmentInfo, ScriptContext, ScriptRunner, SuperScript
from .zones import Resource, Zone, ZoneContent, ZoneTree

__all__ = [
    "AppInfo",
    "CompositionContext",
    "CompositionEngine",
    "CompositionExtension",
    "FragmentInfo",
    "RenderError",
    "RenderPass",
    "Resource",
    "ScriptContext",
    "ScriptRunner",
    "SuperScript",
    "Zone",
    "ZoneContent",
    "ZoneTree",
]
