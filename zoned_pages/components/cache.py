"""Process-wide cache for the lookup table of one application."""

from __future__ import annotations

import dataclasses as dc
import logging
import threading
import typing as typ

from .builder import build_lookup_table

if typ.TYPE_CHECKING:
    from pathlib import Path

    from .models import LookupTable

logger = logging.getLogger(__name__)


@dc.dataclass(slots=True, frozen=True)
class _Generation:
    key: int | None
    table: LookupTable


class LookupTableCache:
    """Hold the published lookup table and rebuild it when its key changes.

    The key is the modification time of the application configuration file.
    Rebuilds happen under a lock and the new table is only published once it
    is complete, so concurrent readers see either the old or the new table.
    A failed build leaves the previously published table in place.
    """

    def __init__(
        self,
        app_root: Path,
        *,
        builder: typ.Callable[[Path], LookupTable] = build_lookup_table,
    ) -> None:
        self.app_root = app_root
        self._builder = builder
        self._lock = threading.Lock()
        self._generation: _Generation | None = None

    def get(self, *, key: int | None, caching_enabled: bool = True) -> LookupTable:
        """Return a lookup table valid for ``key``.

        Parameters
        ----------
        key : int | None
            Configuration generation, typically the config file's
            ``st_mtime_ns``.
        caching_enabled : bool, optional
            When ``False`` a fresh table is built for every call.
        """
        if not caching_enabled:
            return self._builder(self.app_root)
        generation = self._generation
        if generation is not None and not _is_newer(key, generation.key):
            return generation.table
        with self._lock:
            generation = self._generation
            if generation is None or _is_newer(key, generation.key):
                logger.info("Building lookup table for '%s'.", self.app_root)
                generation = _Generation(key=key, table=self._builder(self.app_root))
                self._generation = generation
            return generation.table

    def invalidate(self) -> None:
        """Drop the published table so the next ``get`` rebuilds it."""
        with self._lock:
            self._generation = None


def _is_newer(key: int | None, cached: int | None) -> bool:
    if key is None or cached is None:
        return key != cached
    return key > cached


__all__ = ["LookupTableCache"]
