"""Protocol handlers for the supported feed source families."""

from .base import ProtocolHandler
from .registry import ProtocolRegistry, build_registry

__all__ = ["ProtocolHandler", "ProtocolRegistry", "build_registry"]
