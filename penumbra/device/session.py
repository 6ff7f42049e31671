"""Device session: connection state plus the batch it may be running."""

import logging
from pathlib import Path

from penumbra.core.errors import DeviceNotConnectedError
from penumbra.core.structlog_logger import StructlogMixin
from penumbra.operations.batch import AbortReason, AbortSignal
from penumbra.protocols import ToolRunnerProtocol
from penumbra.tool.partition_api import PartitionApi, validate_input_file


class DeviceSession(StructlogMixin):
    """Tracks whether a device is attached and owns the active batch signal."""

    def __init__(self, runner: ToolRunnerProtocol) -> None:
        super().__init__()
        self.runner = runner
        self.connected = False
        self.da_path: Path | None = None
        self.preloader_path: Path | None = None
        self._batch: AbortSignal | None = None

    def connect(self, da_path: Path, preloader_path: Path | None = None) -> None:
        """Mark the device attached using the given DA and preloader files.

        Raises:
            ValidationError: If either file is missing or unreadable
        """
        validate_input_file(da_path, "DA file")
        if preloader_path is not None:
            validate_input_file(preloader_path, "Preloader file")
        self.da_path = da_path
        self.preloader_path = preloader_path
        self.connected = True
        self.logger.info("device_connected", da_path=str(da_path))

    def partitions(self) -> PartitionApi:
        """Partition commands bound to this session's device files.

        Raises:
            DeviceNotConnectedError: If no device is connected
        """
        if not self.connected or self.da_path is None:
            raise DeviceNotConnectedError(
                "No device connected",
                suggestion="Connect the device before running partition operations",
            )
        return PartitionApi(self.runner, self.da_path, self.preloader_path)

    @property
    def active_batch(self) -> AbortSignal | None:
        return self._batch

    def begin_batch(self) -> AbortSignal:
        self._batch = AbortSignal()
        return self._batch

    def end_batch(self) -> None:
        self._batch = None

    async def cancel_tool(self) -> None:
        """Kill the running tool process; failures are logged, not raised."""
        try:
            await self.runner.cancel()
        except Exception as e:
            exc_info = logging.getLogger().isEnabledFor(logging.DEBUG)
            self.logger.warning("tool_cancel_failed", error=str(e), exc_info=exc_info)

    async def disconnect(self) -> None:
        """Cancel the tool, mark disconnected and stop the active batch.

        The batch stops before its next unit; the unit in flight finishes
        (or fails) on its own once the tool process has been killed.
        """
        await self.cancel_tool()
        self.connected = False
        if self._batch is not None:
            self._batch.abort(AbortReason.DISCONNECT)
        self.logger.info("device_disconnected")
