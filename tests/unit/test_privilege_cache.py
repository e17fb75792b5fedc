"""
Tests for the Privilege Cache
=============================

Tests TTL expiry, role-snapshot freshness and invalidation.
"""

import threading

import pytest

from shared.warden_core.categories import ConfigCategory
from shared.warden_core.privilege_cache import PrivilegeCache
from shared.warden_core.roles import Privilege, Role


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return PrivilegeCache(ttl_seconds=300, shards=4, clock=clock)


class TestPrivilegeCache:
    def test_first_read_is_a_miss(self, cache, make_principal):
        principal = make_principal(Role.ADMIN)
        snapshot = cache.get(principal)
        assert snapshot.role == Role.ADMIN
        assert snapshot.categories == (ConfigCategory.GENERAL, ConfigCategory.NOTIFICATIONS)
        assert cache.stats()["misses"] == 1

    def test_second_read_is_a_hit(self, cache, make_principal):
        principal = make_principal(Role.ADMIN)
        first = cache.get(principal)
        assert cache.get(principal) is first
        assert cache.stats()["hits"] == 1

    def test_entry_expires_after_ttl(self, cache, clock, make_principal):
        principal = make_principal(Role.MANAGER)
        first = cache.get(principal)
        clock.advance(301)
        assert cache.get(principal) is not first
        assert cache.stats()["expired"] == 1

    def test_role_change_is_never_served_stale(self, cache, make_principal):
        principal = make_principal(Role.BASE)
        assert not cache.privileges(principal).has(Privilege.USER_MANAGEMENT)

        principal.role = Role.MANAGER
        assert cache.privileges(principal).has(Privilege.USER_MANAGEMENT)
        assert cache.stats()["stale_role"] == 1

    def test_invalidate_by_object_and_id(self, cache, make_principal):
        a = make_principal(Role.ADMIN)
        b = make_principal(Role.BASE)
        cache.get(a)
        cache.get(b)
        assert len(cache) == 2

        cache.invalidate(a)
        cache.invalidate(b.id)
        assert len(cache) == 0
        assert cache.peek(a.id) is None
        assert cache.stats()["invalidations"] == 2

    def test_invalidate_unknown_is_noop(self, cache):
        cache.invalidate("missing")
        assert len(cache) == 0

    def test_clear(self, cache, make_principal):
        for _ in range(10):
            cache.get(make_principal())
        cache.clear()
        assert len(cache) == 0

    def test_rejects_zero_shards(self):
        with pytest.raises(ValueError):
            PrivilegeCache(shards=0)

    def test_concurrent_readers(self, make_principal):
        cache = PrivilegeCache(shards=8)
        principals = [make_principal(Role.MANAGER) for _ in range(50)]
        errors = []

        def reader():
            try:
                for p in principals:
                    assert cache.privileges(p).has(Privilege.ADVANCED_REPORTS)
            except AssertionError as e:
                errors.append(e)

        threads = [threading.Thread(target=reader) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(cache) == 50

    def test_counters_are_exact_under_threads(self, make_principal):
        cache = PrivilegeCache(shards=4)
        principals = [make_principal(Role.ADMIN) for _ in range(20)]
        rounds = 500

        def reader():
            for _ in range(rounds):
                for p in principals:
                    cache.get(p)
                cache.invalidate(principals[0])

        threads = [threading.Thread(target=reader) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        stats = cache.stats()
        assert stats["hits"] + stats["misses"] == 8 * rounds * len(principals)
        assert stats["invalidations"] == 8 * rounds
