"""Tests for the operation registry."""

from datetime import timedelta

import pytest

from penumbra.operations.models import (
    LogEntry,
    LogLevel,
    OperationKind,
    ProgressSnapshot,
)
from penumbra.operations.registry import DEFAULT_MAX_LOGS, OperationRegistry


class TestInitialState:
    def test_nothing_running(self, registry):
        assert registry.is_running is False
        assert registry.is_streaming is False
        assert registry.operation.kind is None
        assert registry.logs == []
        assert registry.progress is None
        assert registry.error is None
        assert registry.elapsed_seconds is None

    def test_default_capacity(self, registry):
        assert registry.max_logs == DEFAULT_MAX_LOGS == 10_000

    def test_rejects_zero_capacity(self):
        with pytest.raises(ValueError):
            OperationRegistry(max_logs=0)


class TestStart:
    def test_start_sets_operation_fields(self, registry):
        registry.start(OperationKind.READ, "boot", "32 MB", "op-1")

        operation = registry.operation
        assert operation.kind == OperationKind.READ
        assert operation.subject_name == "boot"
        assert operation.subject_size_hint == "32 MB"
        assert operation.operation_id == "op-1"
        assert operation.is_running is True
        assert operation.is_streaming is True
        assert operation.start_time is not None
        assert operation.error is None

    def test_start_without_id_is_not_streaming(self, registry):
        registry.start("write", "system")

        assert registry.is_running is True
        assert registry.is_streaming is False
        assert registry.operation_id is None

    def test_start_keeps_existing_logs(self, registry, make_entry):
        registry.add_log(make_entry("earlier"))
        registry.start(OperationKind.ERASE, "cache")

        assert [entry.message for entry in registry.logs] == ["earlier"]

    def test_start_then_clear_logs(self, registry, make_entry):
        registry.add_log(make_entry("old line"))
        registry.start(OperationKind.READ, "boot", operation_id="op-1")
        registry.clear_logs()

        assert registry.logs == []
        assert registry.is_running is True
        assert registry.operation_id == "op-1"
        assert registry.operation.subject_name == "boot"
        assert registry.operation.kind == OperationKind.READ

    def test_start_resets_progress(self, registry):
        registry.update_progress(ProgressSnapshot(current=5, total=10, percentage=50))
        registry.start(OperationKind.READ, "boot")

        assert registry.progress is None

    def test_start_while_running_replaces_operation(self, registry):
        registry.start(OperationKind.READ, "boot", operation_id="op-1")
        registry.start(OperationKind.WRITE, "system", operation_id="op-2")

        assert registry.operation_id == "op-2"
        assert registry.operation.subject_name == "system"
        assert registry.is_running is True

    def test_set_operation_id_marks_streaming(self, registry):
        registry.start(OperationKind.READ, "boot")
        registry.set_operation_id("late-id")

        assert registry.operation_id == "late-id"
        assert registry.is_streaming is True


class TestAddLog:
    def test_assigns_id(self, registry, make_entry):
        assert registry.add_log(make_entry("hello")) is True

        assert registry.logs[0].id

    def test_keeps_supplied_id(self, registry):
        registry.add_log(LogEntry(id="fixed", message="hello"))

        assert registry.logs[0].id == "fixed"

    def test_duplicate_within_window_dropped(self, registry, make_entry):
        registry.add_log(make_entry("Reading partition", 0))
        appended = registry.add_log(make_entry("Reading partition", 100))

        assert appended is False
        assert len(registry.logs) == 1

    def test_duplicate_at_window_edge_kept(self, registry, make_entry):
        registry.add_log(make_entry("Reading partition", 0))
        appended = registry.add_log(make_entry("Reading partition", 500))

        assert appended is True
        assert len(registry.logs) == 2

    def test_duplicate_after_window_kept(self, registry, make_entry):
        registry.add_log(make_entry("Reading partition", 0))
        registry.add_log(make_entry("Reading partition", 600))

        assert len(registry.logs) == 2

    def test_only_last_entry_is_compared(self, registry, make_entry):
        registry.add_log(make_entry("a", 0))
        registry.add_log(make_entry("b", 10))
        registry.add_log(make_entry("a", 20))

        assert [entry.message for entry in registry.logs] == ["a", "b", "a"]

    def test_message_whitespace_is_significant(self, registry, make_entry):
        registry.add_log(make_entry("  indented tool line  ", 0))
        registry.add_log(make_entry("indented tool line", 10))

        assert [entry.message for entry in registry.logs] == [
            "  indented tool line  ",
            "indented tool line",
        ]

    def test_different_message_within_window_kept(self, registry, make_entry):
        registry.add_log(make_entry("a", 0))
        registry.add_log(make_entry("b", 1))

        assert len(registry.logs) == 2

    def test_custom_dedup_window(self, make_entry):
        registry = OperationRegistry(dedup_window_ms=0)
        registry.add_log(make_entry("same", 0))
        registry.add_log(make_entry("same", 0))

        assert len(registry.logs) == 2

    def test_oldest_entries_evicted(self, make_entry):
        registry = OperationRegistry(max_logs=3)
        for index in range(5):
            registry.add_log(make_entry(f"line {index}", index * 1000))

        assert [entry.message for entry in registry.logs] == [
            "line 2",
            "line 3",
            "line 4",
        ]

    def test_recent_logs_and_append_counter(self, make_entry):
        registry = OperationRegistry(max_logs=3)
        for index in range(5):
            registry.add_log(make_entry(f"line {index}", index * 1000))
        registry.add_log(make_entry("line 4", 4100))

        assert registry.appended_count == 5
        assert registry.log_count == 3
        assert [entry.message for entry in registry.recent_logs(2)] == [
            "line 3",
            "line 4",
        ]
        assert len(registry.recent_logs(10)) == 3
        assert registry.recent_logs(0) == []

        registry.clear_logs()
        assert registry.appended_count == 5
        assert registry.log_count == 0

    def test_full_capacity_bound(self, make_entry):
        registry = OperationRegistry()
        for index in range(10_001):
            registry.add_log(make_entry(f"line {index}", index))

        logs = registry.logs
        assert len(logs) == 10_000
        assert logs[0].message == "line 1"
        assert logs[-1].message == "line 10000"

    def test_level_is_kept(self, registry, make_entry):
        registry.add_log(make_entry("bad", level=LogLevel.ERROR))

        assert registry.logs[0].level == LogLevel.ERROR


class TestFinish:
    def test_finish_success(self, registry):
        registry.start(OperationKind.READ, "boot", operation_id="op-1")
        registry.finish(True)

        assert registry.is_running is False
        assert registry.is_streaming is False
        assert registry.error is None
        assert registry.operation.end_time is not None

    def test_finish_failure_records_error(self, registry):
        registry.start(OperationKind.READ, "boot", operation_id="op-1")
        registry.finish(False, "Device not found")

        assert registry.is_running is False
        assert registry.error == "Device not found"

    def test_finish_keeps_logs_and_subject(self, registry, make_entry):
        registry.start(OperationKind.READ, "boot")
        registry.add_log(make_entry("line"))
        registry.finish(True)

        assert registry.operation.subject_name == "boot"
        assert len(registry.logs) == 1

    def test_finish_without_start(self, registry):
        registry.finish(False, "nothing ran")

        assert registry.is_running is False
        assert registry.error == "nothing ran"
        assert registry.operation.end_time is None

    def test_elapsed_frozen_after_finish(self, fake_clock):
        clock = fake_clock
        registry = OperationRegistry(clock=clock)
        registry.start(OperationKind.READ, "boot")
        clock.advance(timedelta(seconds=3))
        registry.finish(True)

        assert registry.elapsed_seconds == 3.0


class TestReset:
    def test_reset_clears_everything(self, registry, make_entry):
        registry.start(OperationKind.READ, "boot", operation_id="op-1")
        registry.add_log(make_entry("line"))
        registry.update_progress(ProgressSnapshot(current=1, total=2, percentage=50))
        registry.finish(False, "boom")

        registry.reset()

        assert registry.operation.kind is None
        assert registry.operation_id is None
        assert registry.logs == []
        assert registry.progress is None
        assert registry.error is None


class TestSnapshotsAndSubscribers:
    def test_operation_is_a_copy(self, registry):
        registry.start(OperationKind.READ, "boot")
        snapshot = registry.operation
        snapshot.subject_name = "changed"

        assert registry.operation.subject_name == "boot"

    def test_subscriber_notified_on_mutation(self, registry, make_entry):
        calls = []
        registry.subscribe(lambda reg: calls.append(len(reg.logs)))

        registry.add_log(make_entry("one"))
        registry.clear_logs()

        assert calls == [1, 0]

    def test_unsubscribe_stops_notifications(self, registry, make_entry):
        calls = []
        unsubscribe = registry.subscribe(lambda reg: calls.append(1))
        unsubscribe()
        unsubscribe()

        registry.add_log(make_entry("one"))

        assert calls == []

    def test_failing_subscriber_does_not_break_mutation(self, registry, make_entry):
        def broken(_registry):
            raise RuntimeError("listener bug")

        registry.subscribe(broken)
        registry.add_log(make_entry("still logged"))

        assert len(registry.logs) == 1

    def test_dropped_duplicate_does_not_notify(self, registry, make_entry):
        registry.add_log(make_entry("same", 0))
        calls = []
        registry.subscribe(lambda reg: calls.append(1))

        registry.add_log(make_entry("same", 10))

        assert calls == []
