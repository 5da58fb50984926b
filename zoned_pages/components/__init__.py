"""Discover pages, units and layouts and index them into a lookup table."""

from .builder import build_lookup_table, merge_definitions
from .cache import LookupTableCache
from .models import ComponentKind, ComponentLoadError, LookupTable, UIComponent

__all__ = [
    "ComponentKind",
    "ComponentLoadError",
    "LookupTable",
    "LookupTableCache",
    "UIComponent",
    "build_lookup_table",
    "merge_definitions",
]
