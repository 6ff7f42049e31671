"""Shared model primitives."""

from penumbra.models.base import PenumbraBaseModel


__all__ = ["PenumbraBaseModel"]
