"""Core types and configuration for the agent memory service."""

from .config import Settings, get_settings
from .enums import BuiltinCategory, ConflictStrategy, ConsolidationAction, DispatcherType, Role
from .schemas import (
    ConsolidationDecision,
    MemoryRecord,
    ServiceConfig,
    StructuredContent,
    TextContent,
    TranscriptTurn,
)

__all__ = [
    "get_settings",
    "Settings",
    "BuiltinCategory",
    "ConflictStrategy",
    "ConsolidationAction",
    "DispatcherType",
    "Role",
    "ConsolidationDecision",
    "MemoryRecord",
    "ServiceConfig",
    "StructuredContent",
    "TextContent",
    "TranscriptTurn",
]
