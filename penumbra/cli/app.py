"""Main CLI application for Penumbra."""

import asyncio
import json
import signal
import sys
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from penumbra import __version__
from penumbra.cli.error_handling import handle_errors
from penumbra.cli.log_panel import ConsoleLogPanel
from penumbra.cli.notifier import ConsoleNotifier
from penumbra.cli.theme import create_console
from penumbra.config import PenumbraSettings, load_user_config
from penumbra.core.errors import (
    DeviceNotConnectedError,
    InvalidPartitionError,
    ValidationError,
)
from penumbra.core.logging import setup_logging
from penumbra.core.structlog_logger import get_struct_logger
from penumbra.device import DeviceSession
from penumbra.errors import ErrorHandler
from penumbra.operations.batch import (
    CRITICAL_PARTITIONS,
    AbortReason,
    AbortSignal,
    BatchItem,
    BatchSummary,
    run_batch,
)
from penumbra.operations.events import EventBus, create_event_bus
from penumbra.operations.launcher import (
    ExecuteRequest,
    OperationLauncher,
    RunCallable,
)
from penumbra.operations.listener import EventStreamListener
from penumbra.operations.models import OperationKind, OperationOutcome
from penumbra.operations.registry import OperationRegistry
from penumbra.tool import PartitionApi, PartitionList, create_antumbra_executor
from penumbra.tool.partition_api import REBOOT_MODES, SECCFG_ACTIONS
from penumbra.utils import format_hex_size, timestamped_filename


__all__ = ["app", "main", "Application", "AppContext", "build_application"]

logger = get_struct_logger(__name__)

CONNECTION_LABEL = "Connection"
PARTITION_TABLE_SUBJECT = "partition-table"


@dataclass
class Application:
    """Every long-lived collaborator of one CLI invocation."""

    settings: PenumbraSettings
    registry: OperationRegistry
    events: EventBus
    listener: EventStreamListener
    notifier: ConsoleNotifier
    error_handler: ErrorHandler
    log_panel: ConsoleLogPanel
    launcher: OperationLauncher
    session: DeviceSession

    async def launch(self, request: ExecuteRequest) -> OperationOutcome:
        """Run one operation with the event listener attached."""
        async with self.listener:
            outcome = await self.launcher.execute(request)
            # Let deliveries queued by the last tool events reach the registry
            await asyncio.sleep(0)
        return outcome

    async def list_partitions(self, show_logs: bool = True) -> PartitionList | None:
        """Read the partition table; None if the device could not be read."""
        async with self.listener:
            listing = await self._list_partitions(show_logs)
            await asyncio.sleep(0)
        return listing

    async def _list_partitions(self, show_logs: bool = True) -> PartitionList | None:
        api = self.session.partitions()
        self.registry.clear_logs()
        # The id only exists once the listing call generates it
        self.registry.start(OperationKind.READ, PARTITION_TABLE_SUBJECT)
        if show_logs:
            self.log_panel.open()

        try:
            listing = await api.list_partitions(self.registry.set_operation_id)
        except Exception as e:
            parsed = self.error_handler.handle(e, CONNECTION_LABEL)
            self.registry.finish(False, parsed.message)
            return None

        # Table lines queued by the tool land before the summary line
        await asyncio.sleep(0)
        self.error_handler.success(
            CONNECTION_LABEL,
            f"Connected! Found {len(listing.partitions)} partitions",
            show_toast=show_logs,
        )
        self.registry.finish(True)
        self.registry.set_streaming(False)
        return listing

    async def backup(
        self,
        partitions: list[str],
        output_dir: Path,
        include_all: bool = False,
    ) -> BatchSummary | None:
        """Back up ``partitions`` one by one.

        With no names given the partition table is listed first and either
        every partition (``include_all``) or the critical NVRAM set found on
        the device is backed up. Ctrl+C stops the batch and kills the unit
        in flight. Returns None when the partition table could not be read.
        """
        api = self.session.partitions()
        abort = self.session.begin_batch()

        def make_run(item: BatchItem) -> RunCallable:
            output_path = output_dir / timestamped_filename(item.name, "bin")

            async def run(operation_id: str) -> None:
                await api.read(operation_id, item.name, output_path)

            return run

        try:
            async with self.listener:
                async with self._interrupt_cancels_batch(abort):
                    items = await self._backup_items(partitions, include_all)
                    if items is None:
                        return None
                    summary = await run_batch(
                        self.launcher,
                        self.error_handler,
                        items,
                        make_run,
                        abort=abort,
                        notifier=self.notifier,
                    )
                await asyncio.sleep(0)
        finally:
            self.session.end_batch()
        return summary

    async def _backup_items(
        self, partitions: list[str], include_all: bool
    ) -> list[BatchItem] | None:
        if partitions:
            return [BatchItem(name=name) for name in partitions]

        listing = await self._list_partitions()
        if listing is None:
            return None
        selected = [
            partition
            for partition in listing.partitions
            if include_all or partition.name.lower() in CRITICAL_PARTITIONS
        ]
        if not selected:
            raise InvalidPartitionError(
                "None of the critical partitions found on device",
                suggestion="Name the partitions to back up or pass --all",
            )
        return [
            BatchItem(name=partition.name, size_hint=partition.size_hint)
            for partition in selected
        ]

    @asynccontextmanager
    async def _interrupt_cancels_batch(
        self, abort: AbortSignal
    ) -> AsyncIterator[None]:
        """Route SIGINT to the batch abort signal while the block runs."""
        loop = asyncio.get_running_loop()
        pending: set[asyncio.Task[None]] = set()

        def on_interrupt() -> None:
            logger.info("batch_interrupted")
            abort.abort(AbortReason.USER)
            task = loop.create_task(self.session.cancel_tool())
            pending.add(task)
            task.add_done_callback(pending.discard)

        try:
            loop.add_signal_handler(signal.SIGINT, on_interrupt)
            installed = True
        except (NotImplementedError, RuntimeError):
            # Windows loops and non-main threads have no signal support
            logger.debug("sigint_handler_unavailable")
            installed = False

        try:
            yield
        finally:
            if installed:
                loop.remove_signal_handler(signal.SIGINT)
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

    async def power(
        self, label: str, run: RunCallable, success_message: str
    ) -> bool:
        """Send a reboot or shutdown command, then drop the connection.

        These are not tracked operations: the tool output is not shown and a
        failure is reported through the error handler only.
        """
        operation_id = str(uuid.uuid4())
        try:
            await run(operation_id)
        except Exception as e:
            self.error_handler.handle(e, label)
            return False
        self.error_handler.success(label, success_message)
        await self.session.disconnect()
        return True


def build_application(
    settings: PenumbraSettings,
    console: Console | None = None,
) -> Application:
    """Wire the registry, event bus, listener and launcher together."""
    console = console or create_console()
    registry = OperationRegistry(
        max_logs=settings.max_log_entries,
        dedup_window_ms=settings.dedup_window_ms,
    )
    events = create_event_bus()
    notifier = ConsoleNotifier(
        console=create_console(stderr=True), icon_mode=settings.icon_mode
    )
    error_handler = ErrorHandler(registry, notifier)
    log_panel = ConsoleLogPanel(registry, console)
    executor = create_antumbra_executor(
        events,
        binary_path=settings.antumbra_path,
        working_dir=settings.working_dir,
        inactivity_timeout=settings.inactivity_timeout,
    )
    return Application(
        settings=settings,
        registry=registry,
        events=events,
        listener=EventStreamListener(registry, events),
        notifier=notifier,
        error_handler=error_handler,
        log_panel=log_panel,
        launcher=OperationLauncher(registry, error_handler, log_panel),
        session=DeviceSession(executor),
    )


class AppContext:
    """Application context shared by every command."""

    def __init__(
        self,
        verbose: int = 0,
        log_file: str | None = None,
        config_file: str | None = None,
    ):
        self.verbose = verbose
        self.config_file = config_file
        self.settings, self.config_path = load_user_config(config_file)
        if log_file:
            self.settings.log_file = Path(log_file)
        self._application: Application | None = None

    @property
    def log_level(self) -> str:
        if self.verbose >= 2:
            return "DEBUG"
        if self.verbose == 1:
            return "INFO"
        return self.settings.log_level

    @property
    def application(self) -> Application:
        if self._application is None:
            self._application = build_application(self.settings)
        return self._application

    def connect(
        self, da_path: Path | None, preloader_path: Path | None
    ) -> Application:
        """Build the application and attach the device files."""
        da = da_path or self.settings.da_path
        if da is None:
            raise DeviceNotConnectedError(
                "No DA file selected",
                suggestion="Pass --da or set da_path in the config file",
            )
        application = self.application
        application.session.connect(da, preloader_path or self.settings.preloader_path)
        return application


app = typer.Typer(
    name="penumbra",
    help=f"""Penumbra v{__version__}

Run partition operations on MediaTek devices through the antumbra tool,
with live log streaming and consistent error reporting.""",
    no_args_is_help=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option(
            "-v",
            "--verbose",
            count=True,
            help="Increase verbosity (-v=INFO, -vv=DEBUG)",
        ),
    ] = 0,
    log_file: Annotated[
        str | None, typer.Option("--log-file", help="Log to file")
    ] = None,
    config_file: Annotated[
        str | None,
        typer.Option("-c", "--config", help="Path to configuration file"),
    ] = None,
    version: Annotated[
        bool, typer.Option("--version", help="Show version and exit")
    ] = False,
) -> None:
    """Penumbra partition tool."""
    if version:
        print(f"Penumbra v{__version__}")
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        print(ctx.get_help())
        raise typer.Exit()

    app_context = _create_context(verbose, log_file, config_file)
    ctx.obj = app_context

    setup_logging(
        log_level_name=app_context.log_level,
        log_file=str(app_context.settings.log_file)
        if app_context.settings.log_file
        else None,
    )
    logger.debug(
        "cli_started",
        command=ctx.invoked_subcommand,
        config_path=str(app_context.config_path) if app_context.config_path else None,
    )


@handle_errors
def _create_context(
    verbose: int, log_file: str | None, config_file: str | None
) -> AppContext:
    return AppContext(verbose=verbose, log_file=log_file, config_file=config_file)


DaOption = Annotated[
    Path | None, typer.Option("--da", "-d", help="Download Agent file")
]
PreloaderOption = Annotated[
    Path | None, typer.Option("--preloader", "-p", help="Preloader file")
]
YesOption = Annotated[
    bool, typer.Option("--yes", "-y", help="Skip the confirmation prompt")
]


def _finish(outcome: OperationOutcome | BatchSummary | None) -> None:
    if outcome is None:
        failed = True
    elif isinstance(outcome, BatchSummary):
        failed = outcome.failure_count > 0 or outcome.aborted
    else:
        failed = not outcome.success
    if failed:
        raise typer.Exit(1)


def _run_operation(
    application: Application,
    label: str,
    kind: OperationKind,
    subject_name: str,
    run: RunCallable,
    success_message: str,
    error_message: str | None = None,
) -> None:
    outcome = asyncio.run(
        application.launch(
            ExecuteRequest(
                label=label,
                kind=kind,
                subject_name=subject_name,
                run=run,
                success_message=success_message,
                error_message=error_message,
            )
        )
    )
    _finish(outcome)


def _confirm(message: str, yes: bool) -> None:
    if not yes:
        typer.confirm(message, abort=True)


@app.command(name="list")
@handle_errors
def list_partitions(
    ctx: typer.Context,
    json_output: Annotated[
        bool, typer.Option("--json", help="Print the partition table as JSON")
    ] = False,
    da: DaOption = None,
    preloader: PreloaderOption = None,
) -> None:
    """Read and show the device partition table."""
    application = ctx.obj.connect(da, preloader)
    listing = asyncio.run(application.list_partitions(show_logs=not json_output))
    if listing is None:
        raise typer.Exit(1)

    if json_output:
        print(json.dumps(listing.to_dict(), indent=2, ensure_ascii=False))
        return

    table = Table(show_header=True, header_style="bold green")
    table.add_column("Name", style="cyan")
    table.add_column("Start", style="dim")
    table.add_column("Size", style="dim")
    table.add_column("Bytes", style="white")
    table.add_column("Reported", style="yellow")
    for partition in listing.partitions:
        table.add_row(
            partition.name,
            partition.start,
            partition.size,
            format_hex_size(partition.size),
            partition.display_size or "",
        )
    create_console().print(table)


@app.command()
@handle_errors
def read(
    ctx: typer.Context,
    partition: Annotated[str, typer.Argument(help="Partition to read")],
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Output file (default: timestamped)"),
    ] = None,
    da: DaOption = None,
    preloader: PreloaderOption = None,
) -> None:
    """Read a partition into a file."""
    app_context: AppContext = ctx.obj
    application = app_context.connect(da, preloader)
    api = application.session.partitions()

    if output is None:
        output_dir = app_context.settings.default_output_path
        output_dir.mkdir(parents=True, exist_ok=True)
        output = output_dir / timestamped_filename(partition, "bin")
    target = output

    async def run(operation_id: str) -> None:
        await api.read(operation_id, partition, target)

    _run_operation(
        application,
        "Read partition",
        OperationKind.READ,
        partition,
        run,
        success_message=f"Successfully read {partition}",
    )


@app.command()
@handle_errors
def write(
    ctx: typer.Context,
    partition: Annotated[str, typer.Argument(help="Partition to flash")],
    image: Annotated[Path, typer.Argument(help="Image file to write")],
    da: DaOption = None,
    preloader: PreloaderOption = None,
    yes: YesOption = False,
) -> None:
    """Flash an image file onto a partition."""
    application = ctx.obj.connect(da, preloader)
    api: PartitionApi = application.session.partitions()
    _confirm(f"Overwrite partition '{partition}' with {image}?", yes)

    async def run(operation_id: str) -> None:
        await api.write(operation_id, partition, image)

    _run_operation(
        application,
        "Write partition",
        OperationKind.WRITE,
        partition,
        run,
        success_message=f"Successfully flashed {partition}",
    )


@app.command(name="format")
@handle_errors
def format_partition(
    ctx: typer.Context,
    partition: Annotated[str, typer.Argument(help="Partition to format")],
    da: DaOption = None,
    preloader: PreloaderOption = None,
    yes: YesOption = False,
) -> None:
    """Format a partition."""
    application = ctx.obj.connect(da, preloader)
    api: PartitionApi = application.session.partitions()
    _confirm(f"Format partition '{partition}'? All data on it will be lost.", yes)

    async def run(operation_id: str) -> None:
        await api.format(operation_id, partition)

    _run_operation(
        application,
        "Format partition",
        OperationKind.FORMAT,
        partition,
        run,
        success_message=f"Successfully formatted {partition}",
    )


@app.command()
@handle_errors
def erase(
    ctx: typer.Context,
    partition: Annotated[str, typer.Argument(help="Partition to erase")],
    da: DaOption = None,
    preloader: PreloaderOption = None,
    yes: YesOption = False,
) -> None:
    """Erase a partition."""
    application = ctx.obj.connect(da, preloader)
    api: PartitionApi = application.session.partitions()
    _confirm(f"Erase partition '{partition}'? All data on it will be lost.", yes)

    async def run(operation_id: str) -> None:
        await api.erase(operation_id, partition)

    _run_operation(
        application,
        "Erase partition",
        OperationKind.ERASE,
        partition,
        run,
        success_message=f"Successfully erased {partition}",
    )


@app.command(name="read-all")
@handle_errors
def read_all(
    ctx: typer.Context,
    output_dir: Annotated[Path, typer.Argument(help="Directory for the dumps")],
    skip: Annotated[
        list[str] | None,
        typer.Option("--skip", help="Partition to leave out (repeatable)"),
    ] = None,
    da: DaOption = None,
    preloader: PreloaderOption = None,
) -> None:
    """Dump every partition in a single antumbra run."""
    application = ctx.obj.connect(da, preloader)
    api: PartitionApi = application.session.partitions()
    skipped = skip or []

    async def run(operation_id: str) -> None:
        await api.read_all(operation_id, output_dir, skipped)

    _run_operation(
        application,
        "Read all partitions",
        OperationKind.READ,
        "all-partitions",
        run,
        success_message=f"Read-all complete, saved to {output_dir}",
    )


@app.command()
@handle_errors
def backup(
    ctx: typer.Context,
    partitions: Annotated[
        list[str] | None,
        typer.Argument(help="Partitions to back up (default: critical NVRAM set)"),
    ] = None,
    output_dir: Annotated[
        Path | None,
        typer.Option("--output-dir", "-o", help="Backup directory"),
    ] = None,
    include_all: Annotated[
        bool,
        typer.Option("--all", help="Back up every partition on the device"),
    ] = False,
    da: DaOption = None,
    preloader: PreloaderOption = None,
) -> None:
    """Back up partitions one by one, continuing past failures.

    Without partition names the partition table is read from the device and
    the critical NVRAM partitions it contains are backed up. Ctrl+C cancels the
    partition being read and stops the batch.
    """
    app_context: AppContext = ctx.obj
    application = app_context.connect(da, preloader)
    target_dir = output_dir or app_context.settings.default_output_path
    target_dir.mkdir(parents=True, exist_ok=True)

    summary = asyncio.run(
        application.backup(partitions or [], target_dir, include_all=include_all)
    )
    _finish(summary)


@app.command()
@handle_errors
def seccfg(
    ctx: typer.Context,
    action: Annotated[str, typer.Argument(help="unlock or lock")],
    da: DaOption = None,
    preloader: PreloaderOption = None,
    yes: YesOption = False,
) -> None:
    """Unlock or lock the bootloader."""
    if action not in SECCFG_ACTIONS:
        raise ValidationError(
            f"Invalid seccfg action: {action}", suggestion="Use 'unlock' or 'lock'"
        )
    application = ctx.obj.connect(da, preloader)
    api: PartitionApi = application.session.partitions()
    _confirm(
        f"Really {action} the bootloader? This may wipe all data on the device.",
        yes,
    )

    async def run(operation_id: str) -> None:
        await api.seccfg(operation_id, action)

    _run_operation(
        application,
        f"Seccfg {action}",
        OperationKind.WRITE,
        f"seccfg-{action}",
        run,
        success_message=f"Bootloader {action}ed successfully!",
        error_message=f"Failed to {action} bootloader",
    )


@app.command()
@handle_errors
def reboot(
    ctx: typer.Context,
    mode: Annotated[
        str, typer.Argument(help="Reboot mode: normal or fastboot")
    ] = "normal",
    da: DaOption = None,
    preloader: PreloaderOption = None,
) -> None:
    """Reboot the device, then disconnect."""
    if mode not in REBOOT_MODES:
        raise ValidationError(
            f"Invalid reboot mode: {mode}",
            suggestion=f"Use one of: {', '.join(REBOOT_MODES)}",
        )
    application = ctx.obj.connect(da, preloader)
    api: PartitionApi = application.session.partitions()

    async def run(operation_id: str) -> None:
        await api.reboot(operation_id, mode)

    ok = asyncio.run(
        application.power("Reboot", run, f"Device rebooting to {mode} mode")
    )
    if not ok:
        raise typer.Exit(1)


@app.command()
@handle_errors
def shutdown(
    ctx: typer.Context,
    da: DaOption = None,
    preloader: PreloaderOption = None,
    yes: YesOption = False,
) -> None:
    """Shut the device down, then disconnect."""
    application = ctx.obj.connect(da, preloader)
    api: PartitionApi = application.session.partitions()
    _confirm("Are you sure you want to shut down the device?", yes)

    async def run(operation_id: str) -> None:
        await api.shutdown(operation_id)

    ok = asyncio.run(application.power("Shutdown", run, "Device shutting down"))
    if not ok:
        raise typer.Exit(1)


def main() -> int:
    """Main CLI entry point."""
    try:
        app()
    except SystemExit as e:
        return e.code if isinstance(e.code, int) else 0
    return 0


if __name__ == "__main__":
    sys.exit(main())
