"""Tests for the operation launcher."""

import asyncio

import pytest

from penumbra.core.errors import ToolError
from penumbra.errors.handler import ErrorOptions
from penumbra.operations.launcher import ExecuteRequest, create_operation_launcher
from penumbra.operations.models import LogLevel, OperationKind


def request(run, **overrides) -> ExecuteRequest:
    fields = {
        "label": "Read partition",
        "kind": OperationKind.READ,
        "subject_name": "boot",
        "run": run,
    }
    fields.update(overrides)
    return ExecuteRequest(**fields)


async def succeed(operation_id: str) -> None:
    return None


class TestSuccess:
    @pytest.mark.asyncio
    async def test_resolved_run_reports_success(self, launcher, registry):
        outcome = await launcher.execute(request(succeed))

        assert outcome.success is True
        assert registry.is_running is False
        assert registry.error is None
        assert registry.logs[-1].level == LogLevel.SUCCESS
        assert registry.logs[-1].message == "Read partition completed successfully"

    @pytest.mark.asyncio
    async def test_custom_success_message(self, launcher, registry, mock_notifier):
        await launcher.execute(
            request(succeed, success_message="Successfully read boot")
        )

        assert registry.logs[-1].message == "Successfully read boot"
        mock_notifier.notify.assert_called_once_with(
            "success", "Successfully read boot", 4000
        )

    @pytest.mark.asyncio
    async def test_success_reporting_suppressed(self, launcher, registry, mock_notifier):
        await launcher.execute(request(succeed, handle_success=False))

        assert registry.logs == []
        mock_notifier.notify.assert_not_called()

    @pytest.mark.asyncio
    async def test_success_without_toast(self, launcher, registry, mock_notifier):
        await launcher.execute(request(succeed, success_toast=False))

        mock_notifier.notify.assert_not_called()
        assert len(registry.logs) == 1

    @pytest.mark.asyncio
    async def test_run_receives_operation_id(self, launcher, registry):
        seen = []

        async def run(operation_id: str) -> None:
            seen.append((operation_id, registry.operation_id, registry.is_running))

        outcome = await launcher.execute(request(run))

        assert seen == [(outcome.operation_id, outcome.operation_id, True)]

    @pytest.mark.asyncio
    async def test_supplied_operation_id_is_used(self, launcher):
        seen = []

        async def run(operation_id: str) -> None:
            seen.append(operation_id)

        outcome = await launcher.execute(request(run, operation_id="op-42"))

        assert outcome.operation_id == "op-42"
        assert seen == ["op-42"]

    @pytest.mark.asyncio
    async def test_generated_ids_are_unique(self, launcher):
        first = await launcher.execute(request(succeed))
        second = await launcher.execute(request(succeed))

        assert first.operation_id != second.operation_id


class TestBookkeeping:
    @pytest.mark.asyncio
    async def test_clears_logs_and_opens_panel(
        self, launcher, registry, mock_log_panel, make_entry
    ):
        registry.add_log(make_entry("stale"))

        await launcher.execute(request(succeed, handle_success=False))

        assert registry.logs == []
        mock_log_panel.open.assert_called_once()

    @pytest.mark.asyncio
    async def test_keeps_logs_when_asked(
        self, launcher, registry, mock_log_panel, make_entry
    ):
        registry.add_log(make_entry("keep me"))

        await launcher.execute(
            request(succeed, clear_logs=False, open_log_panel=False, handle_success=False)
        )

        assert [entry.message for entry in registry.logs] == ["keep me"]
        mock_log_panel.open.assert_not_called()

    @pytest.mark.asyncio
    async def test_on_start_runs_before_registry_start(self, launcher, registry):
        observed = []

        def on_start(operation_id: str) -> None:
            observed.append((operation_id, registry.is_running))

        outcome = await launcher.execute(request(succeed, on_start=on_start))

        assert observed == [(outcome.operation_id, False)]

    @pytest.mark.asyncio
    async def test_operation_started_with_request_fields(self, launcher, registry):
        snapshots = []

        async def run(operation_id: str) -> None:
            snapshots.append(registry.operation)

        await launcher.execute(
            request(
                run,
                kind=OperationKind.WRITE,
                subject_name="system",
                subject_size_hint="2 GB",
            )
        )

        operation = snapshots[0]
        assert operation.kind == OperationKind.WRITE
        assert operation.subject_name == "system"
        assert operation.subject_size_hint == "2 GB"
        assert operation.is_streaming is True

    def test_prepare(self, launcher, registry, mock_log_panel, make_entry):
        registry.add_log(make_entry("stale"))

        launcher.prepare()

        assert registry.logs == []
        mock_log_panel.open.assert_called_once()

    @pytest.mark.asyncio
    async def test_without_log_panel(self, registry, error_handler):
        launcher = create_operation_launcher(registry, error_handler)

        outcome = await launcher.execute(request(succeed))

        assert outcome.success is True


class TestFailure:
    @pytest.mark.asyncio
    async def test_rejected_run_returns_failure(self, launcher, registry):
        async def run(operation_id: str) -> None:
            raise RuntimeError("boom")

        outcome = await launcher.execute(request(run))

        assert outcome.success is False
        assert registry.is_running is False
        assert registry.error == "boom"

    @pytest.mark.asyncio
    async def test_failure_is_logged_with_label(self, launcher, registry):
        async def run(operation_id: str) -> None:
            raise RuntimeError("boom")

        await launcher.execute(request(run))

        entry = registry.logs[0]
        assert entry.level == LogLevel.ERROR
        assert entry.message == "[Read partition] boom"

    @pytest.mark.asyncio
    async def test_failure_notifies(self, launcher, mock_notifier):
        async def run(operation_id: str) -> None:
            raise RuntimeError("boom")

        await launcher.execute(request(run))

        mock_notifier.notify.assert_called_once()
        level, message = mock_notifier.notify.call_args.args[:2]
        assert level == "error"
        assert message == "boom"

    @pytest.mark.asyncio
    async def test_error_message_overrides(self, launcher, registry, mock_notifier):
        async def run(operation_id: str) -> None:
            raise ToolError("Antumbra process failed: usb timeout")

        await launcher.execute(
            request(run, error_message="Failed to unlock bootloader")
        )

        assert registry.error == "Failed to unlock bootloader"
        assert registry.logs[0].message == "[Read partition] Failed to unlock bootloader"

    @pytest.mark.asyncio
    async def test_error_options_respected(self, launcher, registry, mock_notifier):
        async def run(operation_id: str) -> None:
            raise RuntimeError("boom")

        await launcher.execute(
            request(run, error_options=ErrorOptions(show_toast=False))
        )

        mock_notifier.notify.assert_not_called()
        assert registry.error == "boom"

    @pytest.mark.asyncio
    async def test_failure_does_not_report_success(self, launcher, registry):
        async def run(operation_id: str) -> None:
            raise RuntimeError("boom")

        await launcher.execute(request(run))

        assert all(entry.level != LogLevel.SUCCESS for entry in registry.logs)

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, launcher, registry):
        async def run(operation_id: str) -> None:
            raise asyncio.CancelledError()

        with pytest.raises(asyncio.CancelledError):
            await launcher.execute(request(run))

        assert registry.is_running is False
        assert registry.error == "Operation cancelled"
