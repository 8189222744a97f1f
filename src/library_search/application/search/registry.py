"""
SourceRegistry - The set of catalogs a query is fanned out to.

The registry is copy-on-write: register/unregister build a new tuple
under a lock and swap it in, so a snapshot taken by an in-flight query is
never affected by later changes.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from library_search.domain.entities import RegisteredSource, SourceDescriptor
from library_search.shared.exceptions import DuplicateSourceError, UnknownSourceError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from library_search.domain.ports import SourceAdapter

logger = logging.getLogger(__name__)


class SourceRegistry:
    """Injectable registry of (descriptor, adapter) pairs."""

    def __init__(self, sources: Iterable[RegisteredSource] = ()) -> None:
        self._lock = threading.Lock()
        self._sources: tuple[RegisteredSource, ...] = ()
        for source in sources:
            self.register(source.descriptor, source.adapter)

    def register(
        self,
        descriptor: SourceDescriptor,
        adapter: SourceAdapter,
        *,
        replace: bool = False,
    ) -> RegisteredSource:
        """Add a source; an existing id raises DuplicateSourceError unless ``replace``."""
        entry = RegisteredSource(descriptor=descriptor, adapter=adapter)
        with self._lock:
            current = list(self._sources)
            for i, existing in enumerate(current):
                if existing.id == descriptor.id:
                    if not replace:
                        raise DuplicateSourceError(descriptor.id)
                    current[i] = entry
                    break
            else:
                current.append(entry)
            self._sources = tuple(current)
        logger.debug(f"Registered source {descriptor.id} ({descriptor.family.value})")
        return entry

    def unregister(self, source_id: str) -> RegisteredSource:
        with self._lock:
            current = list(self._sources)
            for i, existing in enumerate(current):
                if existing.id == source_id:
                    removed = current.pop(i)
                    self._sources = tuple(current)
                    break
            else:
                raise UnknownSourceError(source_id)
        logger.debug(f"Unregistered source {source_id}")
        return removed

    def snapshot(self) -> tuple[RegisteredSource, ...]:
        """
        Immutable view in dispatch order.

        Higher ``priority`` first; equal priorities keep registration order.
        """
        sources = self._sources
        return tuple(sorted(sources, key=lambda s: -s.descriptor.priority))

    def select(self, source_ids: Iterable[str]) -> tuple[RegisteredSource, ...]:
        """Snapshot restricted to ``source_ids``; unknown ids raise UnknownSourceError."""
        wanted = list(dict.fromkeys(source_ids))
        snapshot = self.snapshot()
        known = {s.id for s in snapshot}
        for source_id in wanted:
            if source_id not in known:
                raise UnknownSourceError(source_id)
        return tuple(s for s in snapshot if s.id in wanted)

    def get(self, source_id: str) -> RegisteredSource:
        for source in self._sources:
            if source.id == source_id:
                return source
        raise UnknownSourceError(source_id)

    def descriptor(self, source_id: str) -> SourceDescriptor:
        return self.get(source_id).descriptor

    def ids(self) -> list[str]:
        return [s.id for s in self.snapshot()]

    def __contains__(self, source_id: object) -> bool:
        return any(s.id == source_id for s in self._sources)

    def __len__(self) -> int:
        return len(self._sources)
