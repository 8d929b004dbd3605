"""Chat logic module.

This module contains all business logic and services related to chat functionality,
including turn orchestration, stream aggregation, and message persistence.
"""

from logic.chat.aggregator import ToolCallAccumulator, aggregate_stream
from logic.chat.service import (
    ChatService,
    ConversationManager,
    MessageFormatter,
    TurnContext,
)

__all__ = [
    "ChatService",
    "ConversationManager",
    "MessageFormatter",
    "ToolCallAccumulator",
    "TurnContext",
    "aggregate_stream",
]
