"""Tools logic module.

This module contains the tool execution engine and the backend registry it
dispatches through.
"""

from logic.tools.executor import (
    PreparationError,
    PreparedToolCall,
    ToolExecutor,
    build_follow_up_message,
    parse_arguments,
)
from logic.tools.registry import ToolBackendRegistry

__all__ = [
    "PreparationError",
    "PreparedToolCall",
    "ToolBackendRegistry",
    "ToolExecutor",
    "build_follow_up_message",
    "parse_arguments",
]
