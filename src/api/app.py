"""FastAPI application builder with dependency injection and lifecycle management."""

import contextlib
import logging
import typing

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from api import dependencies
from config import Settings
from infrastructure.database import DatabaseManager
from infrastructure.openai_client import OpenAIClient
from infrastructure.tool_backends import (
    ApiToolBackend,
    McpToolBackend,
    NativeFunctionBackend,
    get_current_time,
)
from logic.tools import ToolBackendRegistry

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

APP_NAME = "Agent Turn Runtime"
APP_VERSION = "0.1.0"


def include_routers(app: FastAPI) -> None:
    """Include all API routers.

    Args:
        app: FastAPI application instance
    """
    from api.routers.chat import router as chat_router
    from api.routers.health import router as health_router
    from api.routers.sessions import router as sessions_router
    from api.routers.tool_executions import router as tool_executions_router

    app.include_router(health_router)
    app.include_router(sessions_router)
    app.include_router(chat_router)
    app.include_router(tool_executions_router)


def build_tool_registry(
    http_client: httpx.AsyncClient, settings: Settings
) -> ToolBackendRegistry:
    """Create the backend registry with every supported tool type.

    Args:
        http_client: Shared HTTP client for API tools
        settings: Application settings

    Returns:
        ToolBackendRegistry: Registry with API, MCP and native backends
    """
    native = NativeFunctionBackend()
    native.register("get_current_time", get_current_time)

    return ToolBackendRegistry(
        [
            ApiToolBackend(http_client),
            McpToolBackend(timeout=settings.tool_http_timeout),
            native,
        ]
    )


class AppBuilder:
    """Application builder with dependency injection and lifecycle management.

    This class follows the builder pattern and manages:
    - Application configuration
    - Database connection lifecycle
    - OpenAI client and tool backend lifecycle
    - Dependency injection setup
    """

    def __init__(self) -> None:
        """Initialize the application builder."""
        from config import get_settings

        self.settings = get_settings()

        # Async resources (initialized in startup)
        self._database: DatabaseManager | None = None
        self._session_maker: async_sessionmaker[AsyncSession] | None = None
        self._openai_client: OpenAIClient | None = None
        self._http_client: httpx.AsyncClient | None = None
        self._tool_registry: ToolBackendRegistry | None = None

        # Create FastAPI application
        self.app: FastAPI = FastAPI(
            title=APP_NAME,
            description="Streaming agent runtime with tool calling over OpenAI-compatible models",
            version=APP_VERSION,
            debug=self.settings.app_log_level == "DEBUG",
            lifespan=self.lifespan_manager,
            docs_url="/docs",
            redoc_url="/redoc",
            openapi_url="/openapi.json",
        )

        # Configure middleware
        self._configure_middleware()

        # Configure exception handlers
        self._configure_exception_handlers()

        # Override dependencies with actual instances
        self._setup_dependency_overrides()

        # Include routers
        include_routers(self.app)

        # Add root endpoint
        self._add_root_endpoint()

    def _configure_middleware(self) -> None:
        """Configure FastAPI middleware."""
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    def _configure_exception_handlers(self) -> None:
        """Configure global exception handlers."""

        @self.app.exception_handler(Exception)
        async def global_exception_handler(request, exc):
            """Global exception handler for unhandled errors."""
            logger.error(f"Unhandled exception: {exc}", exc_info=True)
            return JSONResponse(
                status_code=500,
                content={
                    "error": "Internal server error",
                    "detail": "An unexpected error occurred",
                },
            )

    def _setup_dependency_overrides(self) -> None:
        """Set up dependency injection overrides."""
        self.app.dependency_overrides[dependencies.get_settings] = self._get_settings
        self.app.dependency_overrides[dependencies.get_db] = self._get_db
        self.app.dependency_overrides[dependencies.get_openai_client] = (
            self._get_openai_client
        )
        self.app.dependency_overrides[dependencies.get_tool_registry] = (
            self._get_tool_registry
        )

    def _add_root_endpoint(self) -> None:
        """Add root API endpoint."""

        @self.app.get("/", tags=["root"])
        async def root() -> dict[str, str]:
            """Root endpoint with API information."""
            return {
                "name": APP_NAME,
                "version": APP_VERSION,
                "docs": "/docs",
                "health": "/health",
            }

    def _get_settings(self) -> Settings:
        return self.settings

    def _get_db(self) -> async_sessionmaker[AsyncSession]:
        """Dependency override for database session maker.

        Raises:
            RuntimeError: If session maker not initialized
        """
        if self._session_maker is None:
            raise RuntimeError("Database session maker not initialized")
        return self._session_maker

    def _get_openai_client(self) -> OpenAIClient:
        """Dependency override for OpenAI client.

        Raises:
            RuntimeError: If OpenAI client not initialized
        """
        if self._openai_client is None:
            raise RuntimeError("OpenAI client not initialized")
        return self._openai_client

    def _get_tool_registry(self) -> ToolBackendRegistry:
        """Dependency override for the tool backend registry.

        Raises:
            RuntimeError: If the registry is not initialized
        """
        if self._tool_registry is None:
            raise RuntimeError("Tool backend registry not initialized")
        return self._tool_registry

    async def init_async_resources(self) -> None:
        """Initialize async resources like database, OpenAI client and tool backends."""
        logger.info(f"Starting {APP_NAME} v{APP_VERSION}")
        logger.info(f"Log level: {self.settings.app_log_level}")
        logger.info(f"Default model: {self.settings.openai_model}")

        # Initialize database
        self._database = DatabaseManager(
            self.settings.database_url,
            echo=self.settings.app_log_level == "DEBUG",
        )
        if self.settings.database_create_tables:
            await self._database.create_tables()
        self._session_maker = self._database.async_session_maker

        # Initialize OpenAI client
        self._openai_client = OpenAIClient(
            api_key=self.settings.openai_api_key,
            base_url=self.settings.openai_base_url,
            model=self.settings.openai_model,
            timeout=self.settings.openai_timeout,
            max_retries=self.settings.openai_max_retries,
        )

        # Initialize tool backends
        self._http_client = httpx.AsyncClient(timeout=self.settings.tool_http_timeout)
        self._tool_registry = build_tool_registry(self._http_client, self.settings)
        logger.info(
            f"Tool backends initialized: {', '.join(self._tool_registry.kinds)}"
        )

    async def tear_down(self) -> None:
        """Clean up async resources."""
        logger.info(f"Shutting down {APP_NAME}")

        if self._openai_client is not None:
            await self._openai_client.close()

        if self._http_client is not None:
            await self._http_client.aclose()
            logger.info("HTTP client closed")

        if self._database is not None:
            await self._database.close()

        logger.info("Cleanup completed")

    @contextlib.asynccontextmanager
    async def lifespan_manager(
        self, _: FastAPI
    ) -> typing.AsyncIterator[dict[str, typing.Any]]:
        """Lifespan context manager for FastAPI application.

        Args:
            _: FastAPI application instance (unused)

        Yields:
            dict: Lifespan state (empty dict)
        """
        try:
            await self.init_async_resources()
            yield {}
        finally:
            await self.tear_down()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured FastAPI application instance
    """
    return AppBuilder().app
