"""Server-side page composition from inheritable pages, units and zones.

This package exposes the CLI entry points used by the ``zoned-pages``
console script to validate, render and serve an application directory.

Exports
-------
- ``app``: Cyclopts application entry for subcommands.
- ``main``: Convenience function that invokes the Cyclopts app.

Examples
--------
>>> from zoned_pages import main
>>> main()  # doctest: +SKIP
>>> from zoned_pages import app
>>> app(["check", "--app-root", "demo"])  # doctest: +SKIP
"""

from __future__ import annotations

from .cli import app, main

__all__ = ["app", "main"]
