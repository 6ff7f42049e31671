"""Ordered troubleshooting steps for the categories users can act on."""

from typing import Any

from penumbra.errors.classifier import ErrorCategory, StructuredError, classify_error


# Rules are applied in order; every rule matching the category contributes
TROUBLESHOOTING_RULES: list[tuple[frozenset[ErrorCategory], tuple[str, ...]]] = [
    (
        frozenset({ErrorCategory.PERMISSION}),
        (
            "Close any running instances of antumbra",
            "Check the task manager for leftover antumbra processes",
            "Try the operation again after closing all instances",
        ),
    ),
    (
        frozenset({ErrorCategory.PERMISSION}),
        (
            "Run Penumbra as Administrator",
            "Check if antivirus software is blocking the application",
            "Add Penumbra to the antivirus exceptions list",
        ),
    ),
    (
        frozenset({ErrorCategory.NETWORK}),
        (
            "Check your internet connection",
            "Try disabling VPN temporarily",
            "Check firewall settings",
            "Try again in a few minutes",
        ),
    ),
    (
        frozenset({ErrorCategory.FILESYSTEM}),
        (
            "Check available disk space",
            "Clean up temporary files",
            "Free up space on your system drive",
        ),
    ),
]


def get_troubleshooting_steps(error: Any) -> list[str]:
    """Return the troubleshooting steps for ``error``'s category, in order."""
    parsed = error if isinstance(error, StructuredError) else classify_error(error)
    steps: list[str] = []
    for categories, rule_steps in TROUBLESHOOTING_RULES:
        if parsed.category in categories:
            steps.extend(rule_steps)
    return steps
