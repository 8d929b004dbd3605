"""Sessions logic module.

This module contains all business logic and services related to session management,
including session CRUD operations, message history and the tool execution log.
"""

from logic.sessions.service import AgentNotFoundError, SessionService

__all__ = ["AgentNotFoundError", "SessionService"]
