"""Protocol definitions for Penumbra seams.

These protocols use typing.Protocol with @runtime_checkable so collaborators
can be swapped (and mocked in tests) without inheritance.
"""

from .event_source_protocol import EventSourceProtocol, SubscriptionProtocol
from .log_panel_protocol import LogPanelProtocol
from .notifier_protocol import NotifierProtocol
from .tool_protocol import ToolRunnerProtocol


__all__ = [
    "EventSourceProtocol",
    "SubscriptionProtocol",
    "LogPanelProtocol",
    "NotifierProtocol",
    "ToolRunnerProtocol",
]
