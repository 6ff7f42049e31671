"""Command-line interface for Penumbra."""
