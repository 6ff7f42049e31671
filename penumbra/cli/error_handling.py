"""Error handling decorator for CLI commands."""

import logging
import sys
import traceback
from collections.abc import Callable
from functools import wraps
from typing import Any

import typer

from penumbra.core.errors import (
    ConfigError,
    DeviceNotConnectedError,
    PenumbraError,
    ValidationError,
)
from penumbra.core.structlog_logger import get_struct_logger


__all__ = ["handle_errors", "print_stack_trace_if_verbose"]

logger = get_struct_logger(__name__)


def handle_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """Report failures raised outside a tracked operation and exit 1.

    Failures inside an operation are reported by the launcher; this catches
    what happens before launch (bad config, missing files, no device).
    """

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except ConfigError as e:
            logger.error("configuration_error", error=str(e))
            _echo_error(e)
            raise typer.Exit(1) from e
        except ValidationError as e:
            logger.error("validation_error", error=str(e))
            _echo_error(e)
            raise typer.Exit(1) from e
        except DeviceNotConnectedError as e:
            logger.error("device_not_connected", error=str(e))
            _echo_error(e)
            raise typer.Exit(1) from e
        except PenumbraError as e:
            logger.error("penumbra_error", error=str(e), error_type=e.error_type)
            _echo_error(e)
            raise typer.Exit(1) from e
        except (typer.Exit, typer.Abort):
            raise
        except KeyboardInterrupt as e:
            logger.warning("interrupted")
            raise typer.Exit(130) from e
        except Exception as e:
            exc_info = logging.getLogger().isEnabledFor(logging.DEBUG)
            logger.error("unexpected_error", error=str(e), exc_info=exc_info)
            print_stack_trace_if_verbose()
            raise typer.Exit(1) from e

    return wrapper


def _echo_error(error: PenumbraError) -> None:
    typer.echo(f"Error: {error.message}", err=True)
    if error.suggestion:
        typer.echo(f"💡 {error.suggestion}", err=True)
    print_stack_trace_if_verbose()


def print_stack_trace_if_verbose() -> None:
    """Print stack trace if verbose/debug mode is enabled."""
    if any(arg in sys.argv for arg in ["-v", "-vv", "--verbose"]):
        print("\nStack trace:", file=sys.stderr)
        traceback.print_exc(file=sys.stderr)
