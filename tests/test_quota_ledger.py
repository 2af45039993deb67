"""Unit tests for the per-user quota ledger."""

import random
import threading

import pytest

from ingest.exceptions import InvalidFileSizeError, InvalidQuotaError, QuotaExceededError
from ingest.quota_ledger import QuotaLedger

MIB = 1024 * 1024


class TestReserve:
    """Test reservation checks and bookkeeping."""

    def test_reserve_within_quota(self, ledger):
        result = ledger.reserve("alice", "f1", 60 * MIB)

        assert result.used_space == 60 * MIB
        assert result.available_space == 40 * MIB
        assert result.percent_used == 60

    def test_reserve_exact_fit_succeeds(self, ledger):
        ledger.reserve("alice", "f1", 100 * MIB)

        assert ledger.status("alice").available == 0

    def test_reserve_over_quota_raises_with_figures(self, ledger):
        ledger.reserve("alice", "f1", 60 * MIB)

        with pytest.raises(QuotaExceededError) as exc_info:
            ledger.reserve("alice", "f2", 50 * MIB)

        assert exc_info.value.used_space == 60 * MIB
        assert exc_info.value.available_space == 40 * MIB
        assert exc_info.value.requested == 50 * MIB

    def test_rejected_reservation_changes_nothing(self, ledger):
        ledger.reserve("alice", "f1", 60 * MIB)

        with pytest.raises(QuotaExceededError):
            ledger.reserve("alice", "f2", 50 * MIB)

        status = ledger.status("alice")
        assert status.used == 60 * MIB
        assert status.file_count == 1

    @pytest.mark.parametrize("size", [0, -1])
    def test_reserve_rejects_non_positive_size(self, ledger, size):
        with pytest.raises(InvalidFileSizeError):
            ledger.reserve("alice", "f1", size)

    def test_users_are_independent(self, ledger):
        ledger.reserve("alice", "f1", 90 * MIB)
        result = ledger.reserve("bob", "f2", 90 * MIB)

        assert result.used_space == 90 * MIB


class TestRelease:
    """Test release semantics."""

    def test_release_frees_space(self, ledger):
        ledger.reserve("alice", "f1", 60 * MIB)
        result = ledger.release("alice", "f1", 60 * MIB)

        assert result.used_space == 0
        assert result.available_space == 100 * MIB

    def test_release_unknown_file_is_noop(self, ledger):
        ledger.reserve("alice", "f1", 10 * MIB)
        result = ledger.release("alice", "missing", 10 * MIB)

        assert result.used_space == 10 * MIB
        assert ledger.status("alice").file_count == 1

    def test_release_twice_is_idempotent(self, ledger):
        ledger.reserve("alice", "f1", 10 * MIB)
        ledger.reserve("alice", "f2", 5 * MIB)

        ledger.release("alice", "f1", 10 * MIB)
        result = ledger.release("alice", "f1", 10 * MIB)

        assert result.used_space == 5 * MIB

    def test_release_uses_tracked_size(self, ledger):
        ledger.reserve("alice", "f1", 10 * MIB)
        ledger.reserve("alice", "f2", 5 * MIB)

        result = ledger.release("alice", "f1", 50 * MIB)

        assert result.used_space == 5 * MIB


class TestStatusAndResize:
    """Test status reporting, resizing and reset."""

    def test_default_quota_for_new_user(self, ledger):
        status = ledger.status("new-user")

        assert status.total == 100 * MIB
        assert status.used == 0
        assert status.percent_used == 0
        assert status.file_count == 0
        assert status.quota_exceeded is False

    def test_resize_keeps_usage_and_reports_exceeded(self, ledger):
        ledger.reserve("alice", "f1", 60 * MIB)

        status = ledger.resize("alice", 50 * MIB)

        assert status.total == 50 * MIB
        assert status.used == 60 * MIB
        assert status.available == -10 * MIB
        assert status.quota_exceeded is True
        assert status.file_count == 1

    def test_resize_blocks_new_reservations_when_exceeded(self, ledger):
        ledger.reserve("alice", "f1", 60 * MIB)
        ledger.resize("alice", 50 * MIB)

        with pytest.raises(QuotaExceededError) as exc_info:
            ledger.reserve("alice", "f2", 1)

        assert exc_info.value.available_space == 0

    def test_resize_rejects_negative_total(self, ledger):
        with pytest.raises(InvalidQuotaError):
            ledger.resize("alice", -1)

    def test_reset_clears_usage(self, ledger):
        ledger.reserve("alice", "f1", 60 * MIB)
        ledger.resize("alice", 500 * MIB)

        status = ledger.reset("alice")

        assert status.used == 0
        assert status.total == 100 * MIB
        assert status.file_count == 0

    def test_entries_preserve_order(self, ledger):
        ledger.reserve("alice", "f1", 1 * MIB)
        ledger.reserve("alice", "f2", 2 * MIB)

        entries = ledger.entries("alice")

        assert [e.file_id for e in entries] == ["f1", "f2"]
        assert [e.size for e in entries] == [1 * MIB, 2 * MIB]

    def test_percent_rounds_half_up(self):
        ledger = QuotaLedger(default_quota_bytes=200)
        ledger.reserve("alice", "f1", 5)

        assert ledger.status("alice").percent_used == 3


class TestTopUsers:
    """Test leaderboard ordering."""

    def test_sorted_by_usage_descending(self, ledger):
        ledger.reserve("alice", "f1", 10 * MIB)
        ledger.reserve("bob", "f2", 30 * MIB)
        ledger.reserve("carol", "f3", 20 * MIB)

        top = ledger.top_users(10)

        assert [u.user_id for u in top] == ["bob", "carol", "alice"]

    def test_ties_broken_by_user_id(self, ledger):
        ledger.reserve("zed", "f1", 10 * MIB)
        ledger.reserve("amy", "f2", 10 * MIB)
        ledger.reserve("kim", "f3", 10 * MIB)

        top = ledger.top_users(10)

        assert [u.user_id for u in top] == ["amy", "kim", "zed"]

    def test_limit_applied(self, ledger):
        for i in range(5):
            ledger.reserve(f"user{i}", f"f{i}", (i + 1) * MIB)

        top = ledger.top_users(2)

        assert [u.user_id for u in top] == ["user4", "user3"]
        assert ledger.top_users(0) == []


class TestInvariants:
    """Test accounting invariants over many operations."""

    def test_used_space_matches_entries(self, ledger):
        rng = random.Random(1234)
        live = {}

        for i in range(500):
            if live and rng.random() < 0.4:
                file_id = rng.choice(sorted(live))
                ledger.release("alice", file_id, live.pop(file_id))
            else:
                file_id = f"f{i}"
                size = rng.randint(1, 5 * MIB)
                try:
                    ledger.reserve("alice", file_id, size)
                    live[file_id] = size
                except QuotaExceededError:
                    pass

            status = ledger.status("alice")
            assert status.used == sum(live.values())
            assert status.used == sum(e.size for e in ledger.entries("alice"))
            assert status.used >= 0

    def test_concurrent_reservations_never_overcommit(self):
        ledger = QuotaLedger(default_quota_bytes=100)
        barrier = threading.Barrier(20)
        succeeded = []
        lock = threading.Lock()

        def worker(index):
            barrier.wait()
            try:
                ledger.reserve("alice", f"f{index}", 15)
            except QuotaExceededError:
                return
            with lock:
                succeeded.append(15)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sum(succeeded) <= 100
        assert len(succeeded) == 6
        assert ledger.status("alice").used == sum(succeeded)


def test_scenario_reserve_release_reserve(ledger):
    assert ledger.reserve("alice", "a", 60 * MIB).used_space == 60 * MIB

    with pytest.raises(QuotaExceededError):
        ledger.reserve("alice", "b", 50 * MIB)

    assert ledger.release("alice", "a", 60 * MIB).used_space == 0
    assert ledger.reserve("alice", "b", 50 * MIB).used_space == 50 * MIB
