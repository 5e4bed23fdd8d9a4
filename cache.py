"""
Tag-partitioned response cache.

Catalog reads are cached under a tag (``products``). ``revalidate(tag)`` drops
the whole partition so the next read goes back to the datastore.
"""
import logging
import threading
import time
from typing import Any, Callable, Dict, Hashable, Tuple

logger = logging.getLogger(__name__)


class TagCache:
    def __init__(self, ttl: float = 3600):
        self.ttl = ttl
        self._lock = threading.Lock()
        self._entries: Dict[str, Dict[Hashable, Tuple[float, Any]]] = {}
        self._generations: Dict[str, int] = {}

    def get_or_set(self, tag: str, key: Hashable, factory: Callable[[], Any]) -> Any:
        now = time.monotonic()
        with self._lock:
            entries = self._entries.get(tag, {})
            hit = entries.get(key)
            if hit:
                if hit[0] > now:
                    return hit[1]
                del entries[key]
            generation = self._generations.get(tag, 0)
        value = factory()
        with self._lock:
            # a revalidate that ran while factory() was loading wins
            if self._generations.get(tag, 0) == generation:
                entries = self._entries.setdefault(tag, {})
                self._sweep(entries, now)
                entries[key] = (now + self.ttl, value)
        return value

    @staticmethod
    def _sweep(entries: Dict[Hashable, Tuple[float, Any]], now: float):
        for key in [k for k, (expires, _) in entries.items() if expires <= now]:
            del entries[key]

    def size(self, tag: str) -> int:
        with self._lock:
            return len(self._entries.get(tag, {}))

    def revalidate(self, tag: str) -> int:
        """Drop every entry under ``tag``; returns how many were dropped."""
        with self._lock:
            dropped = len(self._entries.pop(tag, {}))
            self._generations[tag] = self._generations.get(tag, 0) + 1
        logger.info("Revalidated cache tag %r (%d entries)", tag, dropped)
        return dropped

    def clear(self):
        with self._lock:
            self._entries.clear()
