"""Protocol for the external flashing tool driver."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class ToolRunnerProtocol(Protocol):
    """Runs tool commands with streamed output tagged by operation id."""

    async def execute_streaming(self, operation_id: str, args: list[str]) -> str:
        """Run the tool and return its collected stdout.

        Raises:
            ToolError: If the tool fails, times out or cannot be started
        """
        ...

    async def cancel(self) -> None:
        """Kill the currently running tool process, if any."""
        ...
