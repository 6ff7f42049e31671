"""Penumbra: operation execution and log streaming for the antumbra tool."""

__version__ = "0.1.0"

__all__ = ["__version__"]
