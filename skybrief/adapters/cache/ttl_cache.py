"""
In-process TTL cache for SkyBrief.

This module provides the domain cache used by the weather fetchers.
Entries expire by age since insertion; an expired key behaves exactly
like an absent one. Instances are created by the caller and injected.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional
from skybrief.observability import metrics
from skybrief.observability.logging_setup import get_logger

log = get_logger("skybrief.cache")

@dataclass
class CacheEntry:
    key: str
    value: Any
    inserted_at: float
    ttl_sec: float

    def expired(self, now: float) -> bool:
        return now - self.inserted_at >= self.ttl_sec

class TTLCache:
    """만료 시간이 있는 키-값 캐시"""

    def __init__(self, default_ttl_sec: float = 480.0, clock: Optional[Callable[[], float]] = None):
        """
        초기화합니다.

        Args:
            default_ttl_sec: 기본 TTL (초)
            clock: 현재 시각 함수 (테스트에서 주입)
        """
        self.default_ttl_sec = default_ttl_sec
        self._clock = clock or time.monotonic
        self._entries: Dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0

    def _live(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expired(self._clock()):
            del self._entries[key]
            metrics.cache_entries.set(len(self._entries))
            return None
        return entry

    def get(self, key: str) -> Optional[Any]:
        entry = self._live(key)
        if entry is None:
            self._misses += 1
            metrics.cache_lookups.labels(result="miss").inc()
            log.debug(f"캐시 미스 key:{key}")
            return None
        self._hits += 1
        metrics.cache_lookups.labels(result="hit").inc()
        log.debug(f"캐시 히트 key:{key}")
        return entry.value

    def set(self, key: str, value: Any, ttl_sec: Optional[float] = None) -> None:
        ttl = self.default_ttl_sec if ttl_sec is None else ttl_sec
        self._entries[key] = CacheEntry(key=key, value=value, inserted_at=self._clock(), ttl_sec=ttl)
        metrics.cache_entries.set(len(self._entries))

    def has(self, key: str) -> bool:
        return self._live(key) is not None

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)
        metrics.cache_entries.set(len(self._entries))

    def flush(self) -> None:
        """모든 항목과 통계를 초기화합니다."""
        self._entries.clear()
        self._hits = 0
        self._misses = 0
        metrics.cache_entries.set(0)

    def keys(self) -> List[str]:
        return [key for key in list(self._entries) if self._live(key) is not None]

    def ttl(self, key: str) -> Optional[float]:
        """남은 TTL (초), 없으면 None"""
        entry = self._live(key)
        if entry is None:
            return None
        return entry.ttl_sec - (self._clock() - entry.inserted_at)

    def stats(self) -> Dict[str, float]:
        lookups = self._hits + self._misses
        return {
            "keys": len(self.keys()),
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": self._hits / lookups if lookups else 0.0,
        }
