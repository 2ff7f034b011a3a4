"""
Tool catalog exposed to the language model.
"""
from .context import ToolContext
from .registry import (
    DEFAULT_TOOLS,
    ToolKind,
    ToolRegistry,
    ToolResult,
    ToolSpec,
    build_default_registry,
)

__all__ = [
    "DEFAULT_TOOLS",
    "ToolContext",
    "ToolKind",
    "ToolRegistry",
    "ToolResult",
    "ToolSpec",
    "build_default_registry",
]
