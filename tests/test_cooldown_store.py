"""Tests for CooldownStore."""

import threading
from datetime import timedelta

from decision.cooldown_store import CooldownStore


class TestCooldownStore:
    def test_unknown_resource_has_no_cooldown(self, store, clock):
        assert store.time_since_last_scale_down("projects/p/instances/i", clock()) is None
        assert store.last_scale_down("projects/p/instances/i") is None
        assert len(store) == 0

    def test_record_then_query(self, store, clock):
        store.record_scale_down("projects/p/instances/i", clock())
        clock.advance(minutes=5)

        assert store.time_since_last_scale_down("projects/p/instances/i", clock()) == timedelta(minutes=5)
        assert len(store) == 1

    def test_record_overwrites(self, store, clock):
        first = clock()
        store.record_scale_down("projects/p/instances/i", first)
        clock.advance(minutes=10)
        store.record_scale_down("projects/p/instances/i", clock())

        assert store.last_scale_down("projects/p/instances/i") == clock()
        assert store.time_since_last_scale_down("projects/p/instances/i", clock()) == timedelta(0)

    def test_record_twice_with_same_timestamp_is_idempotent(self, clock):
        once = CooldownStore()
        twice = CooldownStore()
        ts = clock()

        once.record_scale_down("projects/p/instances/i", ts)
        twice.record_scale_down("projects/p/instances/i", ts)
        twice.record_scale_down("projects/p/instances/i", ts)
        clock.advance(minutes=7)

        assert once.time_since_last_scale_down("projects/p/instances/i", clock()) == \
            twice.time_since_last_scale_down("projects/p/instances/i", clock())
        assert len(once) == len(twice) == 1

    def test_resources_are_independent(self, store, clock):
        store.record_scale_down("projects/p/instances/a", clock())

        assert store.time_since_last_scale_down("projects/p/instances/b", clock()) is None

    def test_separate_stores_do_not_share_state(self, clock):
        a = CooldownStore()
        b = CooldownStore()
        a.record_scale_down("projects/p/instances/i", clock())

        assert b.last_scale_down("projects/p/instances/i") is None

    def test_concurrent_writers_lose_no_entries(self, store, clock):
        ts = clock()
        barrier = threading.Barrier(8)

        def worker(n):
            barrier.wait()
            for i in range(200):
                store.record_scale_down(f"projects/p/instances/{n}-{i}", ts)
                store.time_since_last_scale_down(f"projects/p/instances/{n}-{i}", ts)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(store) == 8 * 200
        assert store.time_since_last_scale_down("projects/p/instances/7-199", ts) == timedelta(0)
