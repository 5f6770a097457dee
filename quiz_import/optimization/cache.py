"""In-memory cache of parse results for repeated inputs."""

import hashlib
import time
from collections import OrderedDict
from typing import Callable, Optional

from ..models import ParseResult

DEFAULT_MAX_SIZE = 100
DEFAULT_TTL = 24 * 60 * 60  # seconds


def cache_key(parser: str, strategy: str, text: str) -> str:
    digest = hashlib.sha256(text.encode("utf-8")).hexdigest()
    return f"{parser}:{strategy}:{digest}"


class ResultCache:
    """
    Bounded, time-limited cache of ParseResults.

    Insertion-ordered: at capacity the oldest entry is evicted. Entries
    older than `ttl` seconds are dropped when read.
    """

    def __init__(
        self,
        max_size: int = DEFAULT_MAX_SIZE,
        ttl: float = DEFAULT_TTL,
        clock: Callable[[], float] = time.time,
    ):
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self.max_size = max_size
        self.ttl = ttl
        self.clock = clock
        self._entries: OrderedDict[str, tuple[float, ParseResult]] = OrderedDict()
        self.hits = 0
        self.misses = 0

    def get(self, parser: str, strategy: str, text: str) -> Optional[ParseResult]:
        key = cache_key(parser, strategy, text)
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None

        stored_at, result = entry
        if self.clock() - stored_at > self.ttl:
            del self._entries[key]
            self.misses += 1
            return None

        self.hits += 1
        return result

    def set(self, parser: str, strategy: str, text: str, result: ParseResult) -> None:
        key = cache_key(parser, strategy, text)
        self._entries.pop(key, None)
        while len(self._entries) >= self.max_size:
            self._entries.popitem(last=False)
        self._entries[key] = (self.clock(), result)

    def clear(self) -> None:
        self._entries.clear()
        self.hits = 0
        self.misses = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0

    def stats(self) -> dict:
        return {
            "size": len(self._entries),
            "max_size": self.max_size,
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": self.hit_rate,
        }

    def __len__(self) -> int:
        return len(self._entries)
