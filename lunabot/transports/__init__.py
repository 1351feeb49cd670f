"""Transport adapters."""

from .console import ConsoleTransport

__all__ = ["ConsoleTransport"]
