"""Registry mapping tool backend kinds to the backends that run them."""

import logging

from domain.entities import ToolBackendKind
from infrastructure.tool_backends import ToolBackend

logger = logging.getLogger(__name__)


class ToolBackendRegistry:
    """Dispatch table of tool backends, built once at startup."""

    def __init__(self, backends: list[ToolBackend] | None = None) -> None:
        self._backends: dict[ToolBackendKind, ToolBackend] = {}
        for backend in backends or []:
            self.register(backend)

    def register(self, backend: ToolBackend) -> None:
        """Register a backend for its kind, replacing any previous one."""
        self._backends[backend.kind] = backend
        logger.info(f"Registered tool backend for type: {backend.kind}")

    def get(self, kind: ToolBackendKind | None) -> ToolBackend | None:
        if kind is None:
            return None
        return self._backends.get(kind)

    @property
    def kinds(self) -> list[ToolBackendKind]:
        return list(self._backends)
