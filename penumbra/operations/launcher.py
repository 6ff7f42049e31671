"""Operation launcher: the one entry point every call site uses to start work.

The launcher performs the registry bookkeeping around a ``run`` coroutine,
reports the result, and never lets a failure of ``run`` escape. A failed
operation comes back as ``OperationOutcome(success=False)`` so batch callers
can carry on with the next item.
"""

import asyncio
import uuid
from collections.abc import Awaitable, Callable

from pydantic import ConfigDict

from penumbra.core.structlog_logger import StructlogMixin
from penumbra.errors.handler import ErrorHandler, ErrorOptions
from penumbra.models.base import PenumbraBaseModel
from penumbra.operations.models import OperationKind, OperationOutcome
from penumbra.operations.registry import OperationRegistry
from penumbra.protocols import LogPanelProtocol


RunCallable = Callable[[str], Awaitable[None]]


class ExecuteRequest(PenumbraBaseModel):
    """Everything the launcher needs to run and report one operation."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    label: str
    kind: OperationKind
    subject_name: str
    run: RunCallable
    subject_size_hint: str | None = None
    operation_id: str | None = None
    clear_logs: bool = True
    open_log_panel: bool = True
    handle_success: bool = True
    success_message: str | None = None
    success_toast: bool = True
    error_message: str | None = None
    error_options: ErrorOptions | None = None
    on_start: Callable[[str], None] | None = None


class OperationLauncher(StructlogMixin):
    """Starts operations with consistent bookkeeping and feedback."""

    def __init__(
        self,
        registry: OperationRegistry,
        error_handler: ErrorHandler,
        log_panel: LogPanelProtocol | None = None,
    ) -> None:
        super().__init__()
        self.registry = registry
        self.error_handler = error_handler
        self.log_panel = log_panel

    def prepare(self, clear_logs: bool = True, open_log_panel: bool = True) -> None:
        """Reset the log view ahead of a multi-operation job."""
        if clear_logs:
            self.registry.clear_logs()
        if open_log_panel and self.log_panel is not None:
            self.log_panel.open()

    async def execute(self, request: ExecuteRequest) -> OperationOutcome:
        """Run ``request.run`` as a tracked operation.

        The returned ``operation_id`` is always the id passed to ``run``.
        """
        operation_id = request.operation_id or str(uuid.uuid4())
        log = self.log_operation(request.label, operation_id=operation_id)

        if request.clear_logs:
            self.registry.clear_logs()

        if request.on_start is not None:
            request.on_start(operation_id)

        self.registry.start(
            request.kind,
            request.subject_name,
            request.subject_size_hint,
            operation_id,
        )

        if request.open_log_panel and self.log_panel is not None:
            self.log_panel.open()

        log.info("operation_launched", subject_name=request.subject_name)

        try:
            await request.run(operation_id)
        except asyncio.CancelledError:
            self.registry.finish(False, "Operation cancelled")
            raise
        except Exception as error:
            options = request.error_options or ErrorOptions()
            if request.error_message:
                options = options.model_copy(
                    update={"custom_message": request.error_message}
                )
            parsed = self.error_handler.handle(error, request.label, options)
            self.registry.finish(False, request.error_message or parsed.message)
            log.info("operation_failed", error=parsed.message)
            return OperationOutcome(operation_id=operation_id, success=False)

        if request.handle_success:
            self.error_handler.success(
                request.label, request.success_message, request.success_toast
            )
        self.registry.finish(True)
        self.registry.set_streaming(False)
        log.info("operation_completed")
        return OperationOutcome(operation_id=operation_id, success=True)


def create_operation_launcher(
    registry: OperationRegistry,
    error_handler: ErrorHandler,
    log_panel: LogPanelProtocol | None = None,
) -> OperationLauncher:
    """Factory function to create an OperationLauncher."""
    return OperationLauncher(registry, error_handler, log_panel)
