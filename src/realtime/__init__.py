"""Realtime channel: connection registry, message shapes, and frame handling."""

from src.realtime.connection import Connection
from src.realtime.handler import RealtimeHandler
from src.realtime.registry import ConnectionRegistry

__all__ = [
    "Connection",
    "ConnectionRegistry",
    "RealtimeHandler",
]
