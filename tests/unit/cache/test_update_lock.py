# SPDX-License-Identifier: MIT
"""Tests for the atomic, self-expiring update lock."""

import threading

import pytest

from market_sync.cache import UpdateLock


@pytest.fixture
def lock(isolated_test_cache, clock):
    return UpdateLock(isolated_test_cache, clock=clock)


class TestUpdateLock:
    """Test cases for UpdateLock."""

    def test_acquire_free_lock(self, lock):
        """A free lock is acquired and reported as held."""
        owner = lock.acquire("lock:a", ttl_seconds=60)

        assert owner is not None
        assert lock.is_locked("lock:a")

    def test_second_acquire_fails_while_live(self, lock):
        """Only one holder at a time."""
        assert lock.acquire("lock:a", ttl_seconds=60) is not None
        assert lock.acquire("lock:a", ttl_seconds=60) is None

    def test_distinct_keys_are_independent(self, lock):
        """Locks on different keys do not interfere."""
        assert lock.acquire("lock:a", ttl_seconds=60) is not None
        assert lock.acquire("lock:b", ttl_seconds=60) is not None

    def test_expired_lock_can_be_taken_over(self, lock, clock):
        """A lock older than its TTL is acquirable without any release."""
        first = lock.acquire("lock:a", ttl_seconds=60)

        clock.advance(60)
        second = lock.acquire("lock:a", ttl_seconds=60)

        assert second is not None
        assert second != first

    def test_release_by_owner(self, lock):
        """The owner can clear its lock early."""
        owner = lock.acquire("lock:a", ttl_seconds=60)

        assert lock.release("lock:a", owner) is True
        assert not lock.is_locked("lock:a")
        assert lock.acquire("lock:a", ttl_seconds=60) is not None

    def test_stale_owner_cannot_release_new_holder(self, lock, clock):
        """A holder whose lock expired cannot delete its successor's lock."""
        stale = lock.acquire("lock:a", ttl_seconds=60)
        clock.advance(61)
        lock.acquire("lock:a", ttl_seconds=60)

        assert lock.release("lock:a", stale) is False
        assert lock.is_locked("lock:a")

    def test_clear_ignores_owner(self, lock):
        """Administrative clear removes any lock."""
        lock.acquire("lock:a", ttl_seconds=60)

        assert lock.clear("lock:a") is True
        assert lock.clear("lock:a") is False

    def test_non_positive_ttl_rejected(self, lock):
        """TTL must be positive."""
        with pytest.raises(ValueError):
            lock.acquire("lock:a", ttl_seconds=0)

    def test_concurrent_acquire_single_winner(self, isolated_test_cache):
        """Racing threads with separate connections produce exactly one owner."""
        barrier = threading.Barrier(8)
        owners: list[str | None] = []
        owners_lock = threading.Lock()

        contenders = [UpdateLock(isolated_test_cache) for _ in range(8)]

        def contender(contender_lock):
            barrier.wait()
            owner = contender_lock.acquire("lock:race", ttl_seconds=60)
            with owners_lock:
                owners.append(owner)

        threads = [threading.Thread(target=contender, args=(c,)) for c in contenders]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(owners) == 8
        assert sum(owner is not None for owner in owners) == 1
