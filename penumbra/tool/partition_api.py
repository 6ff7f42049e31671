"""Partition commands built on top of the antumbra tool runner.

Each call validates its input paths, builds the antumbra argument list and
runs it under the caller's operation id. Arguments always end with the
device flags ``-d <da> [-p <preloader>]``; ``read-all`` appends its
``--skip`` flags after those. ``pgpt`` output is parsed into a partition list.
"""

import os
import uuid
from collections.abc import Callable, Iterable
from pathlib import Path

from penumbra.core.errors import InvalidPartitionError, ValidationError
from penumbra.core.structlog_logger import get_struct_logger
from penumbra.protocols import ToolRunnerProtocol
from penumbra.tool.partition_table import PartitionList, parse_pgpt_output


logger = get_struct_logger(__name__)

SECCFG_ACTIONS = ("unlock", "lock")
REBOOT_MODES = ("normal", "fastboot")


def validate_input_file(path: Path, label: str) -> None:
    """Raise ValidationError unless ``path`` is a readable file."""
    if not path.is_file():
        raise ValidationError(f"{label} not found: {path}")
    if not os.access(path, os.R_OK):
        raise ValidationError(f"{label} not readable: {path}")


def validate_output_dir(path: Path, label: str) -> None:
    """Raise ValidationError unless ``path`` is a writable directory."""
    if not path.is_dir():
        raise ValidationError(f"{label} not found: {path}")
    if not os.access(path, os.W_OK):
        raise ValidationError(f"{label} not writable: {path}")


def validate_output_parent(path: Path, label: str) -> None:
    """Raise ValidationError unless the parent of ``path`` is writable."""
    parent = path.parent
    if not parent.is_dir():
        raise ValidationError(f"{label} parent directory not found: {parent}")
    if not os.access(parent, os.W_OK):
        raise ValidationError(f"{label} not writable: {parent}")


def _require_partition(partition: str) -> str:
    name = partition.strip()
    if not name:
        raise InvalidPartitionError("Partition name must not be empty")
    return name


class PartitionApi:
    """Typed front for the antumbra partition commands."""

    def __init__(
        self,
        runner: ToolRunnerProtocol,
        da_path: Path,
        preloader_path: Path | None = None,
    ) -> None:
        self.runner = runner
        self.da_path = da_path
        self.preloader_path = preloader_path

    def device_args(self) -> list[str]:
        args = ["-d", str(self.da_path)]
        if self.preloader_path is not None:
            args.extend(["-p", str(self.preloader_path)])
        return args

    def validate_device_files(self) -> None:
        validate_input_file(self.da_path, "DA file")
        if self.preloader_path is not None:
            validate_input_file(self.preloader_path, "Preloader file")

    async def read(self, operation_id: str, partition: str, output_path: Path) -> str:
        """Dump ``partition`` to ``output_path``."""
        name = _require_partition(partition)
        self.validate_device_files()
        validate_output_parent(output_path, "Output file")
        return await self._run(
            operation_id, ["upload", name, str(output_path), *self.device_args()]
        )

    async def write(self, operation_id: str, partition: str, image_path: Path) -> str:
        """Flash ``image_path`` onto ``partition``."""
        name = _require_partition(partition)
        self.validate_device_files()
        validate_input_file(image_path, "Image file")
        return await self._run(
            operation_id, ["download", name, str(image_path), *self.device_args()]
        )

    async def format(self, operation_id: str, partition: str) -> str:
        name = _require_partition(partition)
        self.validate_device_files()
        return await self._run(operation_id, ["format", name, *self.device_args()])

    async def erase(self, operation_id: str, partition: str) -> str:
        name = _require_partition(partition)
        self.validate_device_files()
        return await self._run(operation_id, ["erase", name, *self.device_args()])

    async def read_all(
        self,
        operation_id: str,
        output_dir: Path,
        skip: Iterable[str] = (),
    ) -> str:
        """Dump every partition into ``output_dir``, except those in ``skip``."""
        self.validate_device_files()
        validate_output_dir(output_dir, "Output directory")
        args = ["read-all", str(output_dir), *self.device_args()]
        for partition in skip:
            args.extend(["--skip", _require_partition(partition)])
        return await self._run(operation_id, args)

    async def seccfg(self, operation_id: str, action: str) -> str:
        """Unlock or lock the bootloader."""
        if action not in SECCFG_ACTIONS:
            raise ValidationError(
                f"Invalid seccfg action: {action}",
                suggestion="Use 'unlock' or 'lock'",
            )
        self.validate_device_files()
        return await self._run(operation_id, ["seccfg", action, *self.device_args()])

    async def reboot(self, operation_id: str, mode: str) -> str:
        if not mode.strip():
            raise ValidationError(
                "Reboot mode must not be empty",
                suggestion=f"Use one of: {', '.join(REBOOT_MODES)}",
            )
        self.validate_device_files()
        return await self._run(
            operation_id, ["reboot", mode.strip(), *self.device_args()]
        )

    async def shutdown(self, operation_id: str) -> str:
        self.validate_device_files()
        return await self._run(operation_id, ["shutdown", *self.device_args()])

    async def list_partitions(
        self, on_operation_id: Callable[[str], None] | None = None
    ) -> PartitionList:
        """Read and parse the device partition table.

        The operation id is generated here, so callers that started tracking
        before the id existed receive it through ``on_operation_id`` before
        any tool output is produced.

        Raises:
            PartitionTableError: If the listing contains no partitions
        """
        self.validate_device_files()
        operation_id = str(uuid.uuid4())
        if on_operation_id is not None:
            on_operation_id(operation_id)
        output = await self._run(operation_id, ["pgpt", *self.device_args()])
        partitions = parse_pgpt_output(output)
        logger.info(
            "partitions_listed", operation_id=operation_id, count=len(partitions)
        )
        return PartitionList(partitions=partitions, operation_id=operation_id)

    async def _run(self, operation_id: str, args: list[str]) -> str:
        logger.debug("partition_command", operation_id=operation_id, command=args[0])
        return await self.runner.execute_streaming(operation_id, args)
