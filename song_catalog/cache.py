"""
Song list response cache.

Entries are keyed by a hash of the result set itself (every song's hash and
last update time), so a changed catalog can never be served a stale body and
equal catalogs share one entry across requests.
"""

import hashlib
from collections import OrderedDict
from typing import Callable, List, Optional

from .models import Song


def result_set_key(songs: List[Song]) -> str:
    digest = hashlib.sha256()
    for s in songs:
        stamp = s.updated_at.isoformat() if s.updated_at else ""
        digest.update(f"{s.song_hash}\x1f{stamp}\x1e".encode())
    return f"songs:{len(songs)}:{digest.hexdigest()}"


class ListCache:
    def __init__(self, max_entries: int = 16) -> None:
        self.max_entries = max_entries
        self._entries: "OrderedDict[str, bytes]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Optional[bytes]:
        body = self._entries.get(key)
        if body is None:
            self.misses += 1
            return None
        self._entries.move_to_end(key)
        self.hits += 1
        return body

    def set(self, key: str, body: bytes) -> None:
        if self.max_entries <= 0:
            return
        self._entries[key] = body
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def fetch(self, songs: List[Song], render: Callable[[List[Song]], bytes]) -> bytes:
        """Cached body for ``songs``, rendering and storing it on a miss."""
        key = result_set_key(songs)
        body = self.get(key)
        if body is None:
            body = render(songs)
            self.set(key, body)
        return body

    def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        return count

    def stats(self) -> dict:
        return {
            "entries": len(self._entries),
            "max_entries": self.max_entries,
            "hits": self.hits,
            "misses": self.misses,
        }
