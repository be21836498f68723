"""Reusable type definitions for the PIDS notification protocol."""

from .base import StrictBaseModel
from .uint import BaseUint, Uint8, Uint16

__all__ = [
    "BaseUint",
    "StrictBaseModel",
    "Uint8",
    "Uint16",
]
