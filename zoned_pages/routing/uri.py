"""URI templates used by page ``uri`` and unit ``pushedUris`` definitions.

Supported syntax:

* ``{name}`` captures one path segment;
* ``{+name}`` captures the rest of the path, slashes included;
* ``*`` matches anything, including nothing;
* a trailing slash on either the pattern or the URI is insignificant.

>>> UriPattern("/users/{id}").match("/users/42/")
{'id': '42'}
>>> UriPattern("/docs/{+path}").match("/docs/a/b")
{'path': 'a/b'}
>>> UriPattern("/*").match("/")
{}
>>> UriPattern("/users/{id}").match("/users") is None
True
"""

from __future__ import annotations

import functools
import re

_TOKEN = re.compile(r"\{(\+?)([^{}/]+)\}|\*")


def normalize_uri(uri: str) -> str:
    """Return ``uri`` with a leading slash and without a trailing one.

    >>> normalize_uri("foo/bar/")
    '/foo/bar'
    >>> normalize_uri("")
    '/'
    """
    stripped = uri.strip("/")
    return f"/{stripped}" if stripped else "/"


class UriPattern:
    """A compiled URI template."""

    __slots__ = ("_names", "_regex", "pattern")

    def __init__(self, pattern: str) -> None:
        self.pattern = pattern
        self._names: list[str] = []
        self._regex = self._compile(normalize_uri(pattern))

    def __repr__(self) -> str:
        return f"UriPattern({self.pattern!r})"

    def _compile(self, pattern: str) -> re.Pattern[str]:
        if pattern.endswith("/*"):
            head, tail = pattern[:-2], "(?:/.*)?"
        else:
            head, tail = pattern, ""
        parts: list[str] = []
        position = 0
        for token in _TOKEN.finditer(head):
            parts.append(re.escape(head[position : token.start()]))
            if token.group(0) == "*":
                parts.append(".*")
            else:
                group = f"g{len(self._names)}"
                self._names.append(token.group(2))
                parts.append(f"(?P<{group}>.+)" if token.group(1) else f"(?P<{group}>[^/]+)")
            position = token.end()
        parts.append(re.escape(head[position:]))
        return re.compile("".join(parts) + tail)

    def match(self, uri: str) -> dict[str, str] | None:
        """Return the captured parameters, or ``None`` when ``uri`` does not match."""
        found = self._regex.fullmatch(normalize_uri(uri))
        if found is None:
            return None
        return {name: found.group(f"g{position}") for position, name in enumerate(self._names)}


@functools.lru_cache(maxsize=1024)
def compile_pattern(pattern: str) -> UriPattern:
    """Return a cached :class:`UriPattern` for ``pattern``."""
    return UriPattern(pattern)


__all__ = ["UriPattern", "compile_pattern", "normalize_uri"]
