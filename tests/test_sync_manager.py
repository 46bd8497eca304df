"""Tests for sync orchestration."""

from unittest.mock import Mock

import pytest

from bucketsync.exceptions import (
    ComparisonError,
    InventoryError,
    PlanningError,
    SyncCancelledError,
    SyncValidationError,
)
from bucketsync.sync.cancel import CancelToken
from bucketsync.sync.comparator import SmartComparator
from bucketsync.sync.executor import Executor
from bucketsync.sync.manager import SyncConfig, SyncManager, SyncState
from bucketsync.sync.planner import OperationType, Planner
from bucketsync.sync.scanner import Scanner


def make_manager(store, comparator=None):
    return SyncManager(
        Scanner(store), Planner(comparator or SmartComparator()), Executor(store)
    )


class TestStateMachine:
    """Test state transitions."""

    def test_live_run_states(self, store, local_tree):
        root = local_tree({"a.txt": b"a"})
        manager = make_manager(store)

        manager.sync(SyncConfig(root, "bucket", "p/"))

        assert manager.state == SyncState.DONE
        assert manager.history == [
            SyncState.IDLE,
            SyncState.SCANNING,
            SyncState.PLANNING,
            SyncState.EXECUTING,
            SyncState.REPORTING,
            SyncState.DONE,
        ]

    def test_dry_run_skips_executing(self, store, local_tree):
        root = local_tree({"a.txt": b"a"})
        manager = make_manager(store)

        manager.sync(SyncConfig(root, "bucket", "p/", dry_run=True))

        assert SyncState.EXECUTING not in manager.history
        assert manager.history[-2:] == [SyncState.REPORTING, SyncState.DONE]

    def test_failed_state(self, store, local_tree):
        root = local_tree({"a.txt": b"a"})
        store.fail_list = True
        manager = make_manager(store)

        with pytest.raises(InventoryError):
            manager.sync(SyncConfig(root, "bucket", "p/"))

        assert manager.state == SyncState.FAILED

    def test_cancelled_state(self, store, local_tree):
        root = local_tree({"a.txt": b"a"})
        token = CancelToken()
        token.cancel()
        manager = make_manager(store)

        with pytest.raises(SyncCancelledError):
            manager.sync(SyncConfig(root, "bucket", "p/"), token)

        assert manager.state == SyncState.CANCELLED

    def test_manager_reusable_after_run(self, store, local_tree):
        root = local_tree({"a.txt": b"a"})
        manager = make_manager(store)

        manager.sync(SyncConfig(root, "bucket", "p/"))
        manager.sync(SyncConfig(root, "bucket", "p/"))

        assert manager.history[0] == SyncState.IDLE
        assert manager.history.count(SyncState.DONE) == 1

    def test_concurrent_run_rejected(self, store):
        manager = make_manager(store)
        manager._state = SyncState.EXECUTING

        with pytest.raises(SyncValidationError, match="already in progress"):
            manager.sync(SyncConfig("/tmp", "bucket"))


class TestSyncRun:
    """Test run outcomes."""

    def test_scan_error_wrapped(self, store, tmp_path):
        manager = make_manager(store)

        with pytest.raises(InventoryError, match="failed to build inventory"):
            manager.sync(SyncConfig(tmp_path / "missing", "bucket", "p/"))

    def test_comparator_error_is_planning_error(self, store, local_tree):
        root = local_tree({"a.txt": b"a"})
        store.add("p/a.txt", b"a")
        comparator = Mock(has_changed=Mock(side_effect=ComparisonError("no")))

        with pytest.raises(PlanningError):
            make_manager(store, comparator).sync(SyncConfig(root, "bucket", "p/"))

    def test_empty_plan_is_empty_success(self, store, local_tree):
        root = local_tree({})

        result = make_manager(store).sync(SyncConfig(root, "bucket", "p/"))

        assert result.operations == ()
        assert result.success

    def test_counts(self, store, local_tree):
        root = local_tree({"a.txt": b"new", "b.txt": b"same"})
        store.add("p/b.txt", b"same")
        store.add("p/c.txt", b"old")

        result = make_manager(store).sync(
            SyncConfig(root, "bucket", "p/", delete_extra=True)
        )

        assert result.files_uploaded == 1
        assert result.files_deleted == 1
        assert result.files_skipped == 1
        assert result.bytes_uploaded == 3
        assert [o.type for o in result.operations] == [
            OperationType.UPLOAD,
            OperationType.DELETE,
            OperationType.SKIP,
        ]
        assert set(store.snapshot()) == {"p/a.txt", "p/b.txt"}

    def test_all_unchanged_does_not_execute(self, store, local_tree):
        root = local_tree({"a.txt": b"a"})
        store.add("p/a.txt", b"a")
        manager = make_manager(store)

        result = manager.sync(SyncConfig(root, "bucket", "p/"))

        assert result.files_skipped == 1
        assert SyncState.EXECUTING not in manager.history
        assert store.put_calls == []

    def test_dry_run_has_no_effects(self, store, local_tree):
        root = local_tree({"a.txt": b"a", "b.txt": b"b"})
        store.add("p/c.txt", b"c")
        before = store.snapshot()

        result = make_manager(store).sync(
            SyncConfig(root, "bucket", "p/", dry_run=True, delete_extra=True)
        )

        assert result.dry_run
        assert store.snapshot() == before
        assert store.put_calls == [] and store.delete_calls == []
        assert result.files_uploaded == result.files_deleted == 0
        assert result.stats.uploads == 2
        assert result.stats.deletes == 1

    def test_execution_errors_are_data(self, store, local_tree):
        root = local_tree({f"f{i}.txt": b"x" for i in range(5)})
        store.fail_put = {"p/f3.txt"}

        result = make_manager(store).sync(SyncConfig(root, "bucket", "p/"))

        assert result.files_uploaded == 4
        assert len(result.errors) == 1
        assert result.errors[0].operation.remote_key == "p/f3.txt"
        assert not result.success

    def test_parallelism_passed_per_run(self, store, local_tree):
        root = local_tree({"a.txt": b"a"})
        manager = make_manager(store)
        real_execute = manager.executor.execute
        manager.executor.execute = Mock(side_effect=real_execute)

        manager.sync(SyncConfig(root, "bucket", "p/", parallelism=7))

        assert manager.executor.execute.call_args.kwargs["max_concurrency"] == 7
        assert manager.executor.max_concurrency == 5

    @pytest.mark.parametrize("dry_run", [False, True])
    def test_invalid_parallelism_rejected_before_scanning(
        self, store, local_tree, dry_run
    ):
        root = local_tree({"a.txt": b"a"})
        manager = make_manager(store)

        with pytest.raises(SyncValidationError, match="at most 100"):
            manager.sync(
                SyncConfig(root, "bucket", "p/", dry_run=dry_run, parallelism=500)
            )

        assert store.list_calls == 0
        assert manager.state == SyncState.FAILED

    def test_outcomes_carry_durations(self, store, local_tree):
        root = local_tree({"a.txt": b"a", "b.txt": b"b"})
        store.fail_put = {"p/b.txt"}

        result = make_manager(store).sync(SyncConfig(root, "bucket", "p/"))

        by_key = {o.operation.remote_key: o for o in result.outcomes}
        assert by_key["p/a.txt"].success
        assert not by_key["p/b.txt"].success
        assert all(o.duration >= 0 for o in result.outcomes)

    def test_interrupt_ends_cancelled(self, store, local_tree):
        root = local_tree({"a.txt": b"a"})
        manager = make_manager(store)
        manager.executor.execute = Mock(side_effect=KeyboardInterrupt)

        with pytest.raises(KeyboardInterrupt):
            manager.sync(SyncConfig(root, "bucket", "p/"))

        assert manager.state == SyncState.CANCELLED

    def test_result_is_frozen(self, store, local_tree):
        root = local_tree({"a.txt": b"a"})
        result = make_manager(store).sync(SyncConfig(root, "bucket", "p/"))

        with pytest.raises(AttributeError):
            result.files_uploaded = 10
