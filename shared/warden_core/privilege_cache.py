"""
WARDEN - Privilege Cache
========================

Read-through cache of role-derived privileges, accessible categories and
manageable roles, keyed by principal.

An entry is served only while it is younger than the TTL and its role
snapshot still matches the principal's current role. Role mutations must
call invalidate() synchronously with their commit; other readers may see the
old entry until it expires.

Reads never take a lock. Writes lock a single shard, so a writer never
blocks readers or writers of unrelated principals. Hit and miss counters are
kept per thread and summed by stats(), so no increment is lost.

Author: WARDEN Development Team
Version: 1.0.0
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, List, Optional, Protocol, Tuple

from .categories import ConfigCategory, accessible_categories
from .constants import PRIVILEGE_CACHE_SHARDS, PRIVILEGE_CACHE_TTL_SEC
from .roles import PrivilegeSet, Role, manageable_roles, privileges_of

logger = logging.getLogger(__name__)


class CacheablePrincipal(Protocol):
    id: Hashable
    role: Role


@dataclass(frozen=True)
class CachedPrivileges:
    """Snapshot of everything derived from one role."""

    role: Role
    privileges: PrivilegeSet
    categories: Tuple[ConfigCategory, ...]
    manageable_roles: Tuple[Role, ...]
    stored_at: float

    @classmethod
    def compute(cls, role: Role, now: float) -> "CachedPrivileges":
        return cls(
            role=role,
            privileges=privileges_of(role),
            categories=tuple(accessible_categories(role)),
            manageable_roles=tuple(manageable_roles(role)),
            stored_at=now,
        )


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    stale_role: int = 0
    expired: int = 0
    invalidations: int = 0

    def add(self, other: "CacheStats") -> None:
        for name in self.__dataclass_fields__:
            setattr(self, name, getattr(self, name) + getattr(other, name))


class PrivilegeCache:
    """
    Sharded TTL cache for role-derived privileges.

    Example:
        cache = PrivilegeCache()
        snapshot = cache.get(principal)
        if snapshot.privileges.user_management:
            ...
        cache.invalidate(principal)  # after a role change commits
    """

    def __init__(
        self,
        ttl_seconds: float = PRIVILEGE_CACHE_TTL_SEC,
        shards: int = PRIVILEGE_CACHE_SHARDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        if shards < 1:
            raise ValueError("shards must be >= 1")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._shards: List[Dict[Hashable, CachedPrivileges]] = [{} for _ in range(shards)]
        self._locks: List[threading.Lock] = [threading.Lock() for _ in range(shards)]
        # One CacheStats per thread; only that thread writes to it
        self._local = threading.local()
        self._thread_stats: List[CacheStats] = []
        self._stats_lock = threading.Lock()

    def _shard_index(self, key: Hashable) -> int:
        return hash(key) % len(self._shards)

    @property
    def _stats(self) -> CacheStats:
        stats = getattr(self._local, "stats", None)
        if stats is None:
            stats = CacheStats()
            with self._stats_lock:
                self._thread_stats.append(stats)
            self._local.stats = stats
        return stats

    def totals(self) -> CacheStats:
        """Counters summed across every thread that used the cache."""
        total = CacheStats()
        with self._stats_lock:
            for stats in self._thread_stats:
                total.add(stats)
        return total

    def _is_fresh(self, entry: CachedPrivileges, role: Role, now: float) -> bool:
        if entry.role != role:
            self._stats.stale_role += 1
            return False
        if now - entry.stored_at > self.ttl_seconds:
            self._stats.expired += 1
            return False
        return True

    def peek(self, principal_id: Hashable) -> Optional[CachedPrivileges]:
        """Raw entry for a principal, without freshness checks."""
        return self._shards[self._shard_index(principal_id)].get(principal_id)

    def get(self, principal: CacheablePrincipal) -> CachedPrivileges:
        """Cached snapshot for the principal, recomputed when stale."""
        key = principal.id
        index = self._shard_index(key)
        now = self._clock()

        entry = self._shards[index].get(key)
        if entry is not None and self._is_fresh(entry, principal.role, now):
            self._stats.hits += 1
            return entry

        self._stats.misses += 1
        fresh = CachedPrivileges.compute(principal.role, now)
        with self._locks[index]:
            self._shards[index][key] = fresh
        return fresh

    def privileges(self, principal: CacheablePrincipal) -> PrivilegeSet:
        return self.get(principal).privileges

    def invalidate(self, principal: Any) -> None:
        """Drop the entry for a principal (object or id)."""
        key = getattr(principal, "id", principal)
        index = self._shard_index(key)
        with self._locks[index]:
            removed = self._shards[index].pop(key, None)
        self._stats.invalidations += 1
        if removed is not None:
            logger.debug("Privilege cache invalidated for principal %s", key)

    def clear(self) -> None:
        for index, shard in enumerate(self._shards):
            with self._locks[index]:
                shard.clear()

    def __len__(self) -> int:
        return sum(len(shard) for shard in self._shards)

    def stats(self) -> Dict[str, Any]:
        """Counters plus current size."""
        totals = self.totals()
        return {
            "entries": len(self),
            "ttl_seconds": self.ttl_seconds,
            "shards": len(self._shards),
            "hits": totals.hits,
            "misses": totals.misses,
            "stale_role": totals.stale_role,
            "expired": totals.expired,
            "invalidations": totals.invalidations,
        }


__all__ = [
    "CachedPrivileges",
    "CacheStats",
    "PrivilegeCache",
]
