"""Tests for the sync engine against an in-memory tracker.

Covers:
- First sync creates issues, adds them to the project, records mappings
- Second sync is a no-op (idempotence)
- Dry run creates nothing and writes no state
- Per-task failures are isolated
- Project failures after issue creation still record the mapping
- Initial status (fixed and auto-detected), invalid status fails early
- Stale cleanup, save-at-end mode, locking
- verify_idempotency
"""

from __future__ import annotations

import pytest
import requests

from conftest import FakeTrackerClient, make_task
from taskmaster_sync.config_schema import StatusFieldMapping
from taskmaster_sync.errors import (
    LockTimeoutError,
    TaskFileError,
    ValidationError,
)
from taskmaster_sync.sync.engine import SyncEngine
from taskmaster_sync.sync.lock import FileLock, lock_path_for
from taskmaster_sync.sync.models import SyncOptions, TaskMapping
from taskmaster_sync.sync.state import StateStore, add_task_mapping


@pytest.fixture
def options(tmp_path):
    def _make(**overrides) -> SyncOptions:
        data = {
            "owner": "acme",
            "repo": "roadmap",
            "project_id": None,
            "tasks_path": str(tmp_path / "tasks.json"),
            "state_path": str(tmp_path / "sync-state.json"),
        }
        data.update(overrides)
        return SyncOptions(**data)

    return _make


# ---------------------------------------------------------------------------
# Happy path and idempotence
# ---------------------------------------------------------------------------


class TestSyncRun:
    """End-to-end runs of SyncEngine.run()."""

    def test_single_task_then_rerun(self, tasks_file, options, fake_client):
        tasks_file([make_task(1)])
        opts = options()

        first = SyncEngine(fake_client, opts).run()
        assert first.total_tasks == 1
        assert first.newly_synced == 1
        assert first.already_synced == 0
        assert first.failed == 0

        state = StateStore(opts.state_path).load()
        assert state.task_mappings["1"].github_issue_number == 1
        assert state.last_sync_at is not None

        second = SyncEngine(fake_client, opts).run()
        assert second.newly_synced == 0
        assert second.already_synced == 1
        assert second.results == []
        assert len(fake_client.created) == 1

    def test_mappings_never_exceed_task_count(self, tasks_file, options, fake_client):
        tasks_file([make_task(1), make_task(2), make_task(3)])
        opts = options()
        for _ in range(3):
            SyncEngine(fake_client, opts).run()
        state = StateStore(opts.state_path).load()
        assert len(state.task_mappings) == 3
        numbers = [m.github_issue_number for m in state.task_mappings.values()]
        assert len(set(numbers)) == 3

    def test_dependencies_link_to_earlier_issues(self, tasks_file, options, fake_client):
        tasks_file([make_task(1), make_task(2, dependencies=[1])])
        SyncEngine(fake_client, options()).run()
        second_payload = fake_client.calls[-1][1][2]
        assert "- Depends on #1" in second_payload.body

    def test_adds_to_project_with_status(self, tasks_file, options, fake_client):
        tasks_file([make_task(1)])
        opts = options(project_id="PVT_1", initial_status="Todo")
        summary = SyncEngine(fake_client, opts).run()

        result = summary.results[0]
        assert result.project_item_id == "PVTI_I_1"
        assert result.initial_status == "Todo"
        assert fake_client.field_updates == [
            ("PVT_1", "PVTI_I_1", "FIELD_STATUS", "OPT_todo")
        ]
        mapping = StateStore(opts.state_path).load().task_mappings["1"]
        assert mapping.project_item_id == "PVTI_I_1"

    def test_auto_detect_status(self, tasks_file, options):
        client = FakeTrackerClient(statuses=("backlog", "ready", "done"))
        tasks_file([make_task(1), make_task(2, dependencies=[1])])
        opts = options(
            project_id="PVT_1",
            auto_detect_status=True,
            status_mapping=StatusFieldMapping(),
        )
        summary = SyncEngine(client, opts).run()
        assert [r.initial_status for r in summary.results] == ["Ready", "Backlog"]


# ---------------------------------------------------------------------------
# Dry run
# ---------------------------------------------------------------------------


class TestDryRun:
    def test_creates_nothing(self, tasks_file, options, fake_client):
        tasks_file([make_task(1), make_task(2)])
        opts = options(dry_run=True)
        summary = SyncEngine(fake_client, opts).run()

        assert summary.dry_run
        assert summary.newly_synced == 2
        assert fake_client.calls == []
        assert all(r.dry_run and r.mapped_issue for r in summary.results)
        assert not StateStore(opts.state_path).path.exists()
        assert not lock_path_for(opts.state_path).exists()

    def test_works_without_client(self, tasks_file, options):
        tasks_file([make_task(1)])
        summary = SyncEngine(None, options(dry_run=True)).run()
        assert summary.results[0].mapped_issue.issue_input.title == "Task 1"

    def test_missing_client_outside_dry_run(self, tasks_file, options):
        tasks_file([make_task(1)])
        with pytest.raises(RuntimeError):
            SyncEngine(None, options()).run()


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


class TestFailures:
    """Per-task error isolation."""

    def test_failed_create_is_isolated(self, tasks_file, options):
        class FlakyClient(FakeTrackerClient):
            def create_issue(self, owner, repo, payload):
                if payload.title == "Task 2":
                    raise ValidationError("Invalid data: title", 422)
                return super().create_issue(owner, repo, payload)

        client = FlakyClient()
        tasks_file([make_task(1), make_task(2), make_task(3)])
        opts = options()
        summary = SyncEngine(client, opts).run()

        assert summary.newly_synced == 2
        assert summary.failed == 1
        assert summary.failures[0].task_id == "2"
        assert "Invalid data" in summary.failures[0].error
        assert sorted(StateStore(opts.state_path).load().task_mappings) == ["1", "3"]

    def test_unexpected_error_is_isolated(self, tasks_file, options, fake_client):
        fake_client.fail_on["create_issue"] = KeyError("node_id")
        tasks_file([make_task(1), make_task(2)])
        opts = options()

        summary = SyncEngine(fake_client, opts).run()

        assert summary.failed == 2
        assert [r.task_id for r in summary.results] == ["1", "2"]
        assert summary.results[0].error == "KeyError: 'node_id'"
        assert StateStore(opts.state_path).load().task_mappings == {}

    def test_transport_error_on_one_task_does_not_stop_the_next(
        self, tasks_file, options
    ):
        class BrokenStreamClient(FakeTrackerClient):
            def create_issue(self, owner, repo, payload):
                if payload.title == "Task 1":
                    raise requests.exceptions.ChunkedEncodingError("broken stream")
                return super().create_issue(owner, repo, payload)

        tasks_file([make_task(1), make_task(2)])
        opts = options()
        summary = SyncEngine(BrokenStreamClient(), opts).run()

        assert summary.failed == 1
        assert summary.newly_synced == 1
        assert "broken stream" in summary.failures[0].error
        assert list(StateStore(opts.state_path).load().task_mappings) == ["2"]

    def test_invalid_initial_status_fails_before_create(self, tasks_file, options, fake_client):
        tasks_file([make_task(1)])
        opts = options(project_id="PVT_1", initial_status="Shipping")
        summary = SyncEngine(fake_client, opts).run()
        assert summary.failed == 1
        assert "Shipping" in summary.results[0].error
        assert fake_client.created == []

    def test_project_failure_keeps_mapping(self, tasks_file, options, fake_client):
        from taskmaster_sync.errors import PermissionDeniedError

        fake_client.fail_on["add_item_to_project"] = PermissionDeniedError("no project scope")
        tasks_file([make_task(1)])
        opts = options(project_id="PVT_1")
        summary = SyncEngine(fake_client, opts).run()

        result = summary.results[0]
        assert result.success
        assert result.issue_number == 1
        assert result.error.startswith("Issue created but project update failed")
        assert "1" in StateStore(opts.state_path).load().task_mappings

        rerun = SyncEngine(fake_client, opts).run()
        assert rerun.newly_synced == 0
        assert len(fake_client.created) == 1

    def test_missing_tasks_file(self, options, fake_client):
        with pytest.raises(TaskFileError):
            SyncEngine(fake_client, options()).run()

    def test_lock_released_after_error(self, options, fake_client):
        opts = options()
        with pytest.raises(TaskFileError):
            SyncEngine(fake_client, opts).run()
        assert not lock_path_for(opts.state_path).exists()


# ---------------------------------------------------------------------------
# State handling options
# ---------------------------------------------------------------------------


class TestStateOptions:
    def test_cleanup_stale(self, tasks_file, options, fake_client):
        opts = options(cleanup_stale=True)
        store = StateStore(opts.state_path)
        store.save(
            add_task_mapping(
                store.load(),
                TaskMapping(
                    taskmaster_id="99",
                    github_issue_number=99,
                    github_issue_url="https://github.com/acme/roadmap/issues/99",
                    synced_at="2025-01-01T00:00:00+00:00",
                ),
            )
        )
        tasks_file([make_task(1)])
        summary = SyncEngine(fake_client, opts).run()
        assert summary.stale_entries_removed == 1
        assert list(store.load().task_mappings) == ["1"]

    def test_save_at_end(self, tasks_file, options, fake_client, monkeypatch):
        opts = options(save_after_each_task=False)
        tasks_file([make_task(1), make_task(2)])
        saves = []
        original = StateStore.save

        def _counting_save(self, state):
            saves.append(len(state.task_mappings))
            return original(self, state)

        monkeypatch.setattr(StateStore, "save", _counting_save)
        SyncEngine(fake_client, opts).run()
        assert saves == [2]

    def test_save_after_each_task(self, tasks_file, options, fake_client, monkeypatch):
        tasks_file([make_task(1), make_task(2)])
        saves = []
        original = StateStore.save

        def _counting_save(self, state):
            saves.append(len(state.task_mappings))
            return original(self, state)

        monkeypatch.setattr(StateStore, "save", _counting_save)
        SyncEngine(fake_client, options()).run()
        assert saves == [1, 2]

    def test_held_lock_times_out(self, tasks_file, options, fake_client):
        opts = options()
        tasks_file([make_task(1)])
        holder = FileLock(opts.state_path)
        holder.acquire()
        engine = SyncEngine(fake_client, opts)
        engine.store.lock_timeout = 0.2
        try:
            with pytest.raises(LockTimeoutError):
                engine.run()
        finally:
            holder.release()
        assert fake_client.created == []

    def test_locking_disabled(self, tasks_file, options, fake_client):
        opts = options(use_locking=False)
        tasks_file([make_task(1)])
        holder = FileLock(opts.state_path)
        holder.acquire()
        try:
            assert SyncEngine(fake_client, opts).run().newly_synced == 1
        finally:
            holder.release()


class TestVerifyIdempotency:
    def test_reports_unsynced(self, tasks_file, options, fake_client):
        tasks_file([make_task(1), make_task(2)])
        opts = options()
        engine = SyncEngine(fake_client, opts)

        before = engine.verify_idempotency()
        assert not before.is_idempotent
        assert before.unsynced_task_ids == ["1", "2"]

        engine.run()
        after = engine.verify_idempotency()
        assert after.is_idempotent
        assert after.synced_tasks == 2
        assert after.unsynced_tasks == 0
