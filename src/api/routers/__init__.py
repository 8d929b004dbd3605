"""API routers package."""

from api.routers.chat import router as chat_router
from api.routers.health import router as health_router
from api.routers.sessions import router as sessions_router
from api.routers.tool_executions import router as tool_executions_router

__all__ = ["chat_router", "health_router", "sessions_router", "tool_executions_router"]
