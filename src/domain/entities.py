"""Domain entities representing core business objects."""

import json
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_serializer

if TYPE_CHECKING:
    from infrastructure.models import (
        AgentModel,
        ChatSessionModel,
        LlmConfigModel,
        MessageModel,
        PromptModel,
        ToolExecutionLogModel,
        ToolModel,
    )

MessageRole = Literal["user", "assistant", "system", "tool"]


class ToolBackendKind(StrEnum):
    """Kinds of backends a tool can be bound to."""

    API = "api"
    MCP = "mcp"
    NATIVE = "native"

    @classmethod
    def parse(cls, value: str) -> "ToolBackendKind | None":
        """Resolve a stored tool type, case-insensitively.

        Returns:
            ToolBackendKind | None: Matching kind, or None for unknown types
        """
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class LlmConfig(BaseModel):
    """Model binding of an agent."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str = ""
    provider: str = "openai"
    base_url: str | None = None
    api_key: str | None = None
    model: str
    temperature: float | None = None
    top_p: float | None = None
    max_tokens: int | None = None
    frequency_penalty: float | None = None
    presence_penalty: float | None = None

    @classmethod
    def from_model(cls, model: "LlmConfigModel") -> "LlmConfig":
        """Create entity from database model."""
        return cls.model_validate(model)


class Prompt(BaseModel):
    """System instructions of an agent."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    content: str
    is_active: bool = True

    @classmethod
    def from_model(cls, model: "PromptModel") -> "Prompt":
        """Create entity from database model."""
        return cls.model_validate(model)


class Tool(BaseModel):
    """A callable tool bound to an agent.

    ``parameters``, ``configuration``, ``authentication`` and ``headers`` are
    kept as the raw JSON strings they are stored as; backends decode the parts
    they need.
    """

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    name: str
    description: str = ""
    type: str
    is_active: bool = True
    parameters: str | None = None
    configuration: str | None = None
    authentication: str | None = None
    headers: str | None = None

    @property
    def kind(self) -> ToolBackendKind | None:
        return ToolBackendKind.parse(self.type)

    @classmethod
    def from_model(cls, model: "ToolModel") -> "Tool":
        """Create entity from database model."""
        return cls.model_validate(model)


class Agent(BaseModel):
    """An LLM binding plus a system prompt and a set of callable tools."""

    id: str
    name: str
    description: str = ""
    prompts: list[Prompt] = Field(default_factory=list)
    tools: list[Tool] = Field(default_factory=list)
    llm_config: LlmConfig | None = None

    @property
    def active_prompt(self) -> Prompt | None:
        """First active prompt, if any."""
        return next((prompt for prompt in self.prompts if prompt.is_active), None)

    @property
    def active_tools(self) -> list[Tool]:
        return [tool for tool in self.tools if tool.is_active]

    def find_tool(self, name: str) -> Tool | None:
        """Find a bound tool by name, case-insensitively."""
        wanted = name.casefold()
        return next(
            (tool for tool in self.tools if tool.name.casefold() == wanted), None
        )

    @classmethod
    def from_model(cls, model: "AgentModel") -> "Agent":
        """Create entity from database model (relationships must be loaded)."""
        return cls(
            id=model.id,
            name=model.name,
            description=model.description or "",
            prompts=[Prompt.from_model(prompt) for prompt in model.prompts],
            tools=[Tool.from_model(tool) for tool in model.tools],
            llm_config=(
                LlmConfig.from_model(model.llm_config) if model.llm_config else None
            ),
        )


class ToolCall(BaseModel):
    """A fully aggregated tool call issued by the model."""

    id: str
    name: str
    arguments: str = ""


class ToolCallFragment(BaseModel):
    """Partial tool call emitted by a streaming model response."""

    index: int
    id: str | None = None
    name: str | None = None
    arguments: str | None = None


class StreamDelta(BaseModel):
    """One provider-agnostic increment of a streamed model response."""

    content: str | None = None
    tool_call: ToolCallFragment | None = None


class ToolExecutionRecord(BaseModel):
    """Outcome of one attempted tool call."""

    model_config = ConfigDict(from_attributes=True)

    id: int | None = None
    tool_id: str | None = None
    tool_name: str
    parameters: dict[str, Any] = Field(default_factory=dict)
    result: Any = None
    success: bool = False
    error_message: str | None = None
    execution_time_ms: float = 0.0
    session_id: str | None = None
    agent_id: str | None = None
    executed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_serializer("result", when_used="json")
    def _serialize_result(self, value: Any) -> Any:
        try:
            json.dumps(value)
        except (TypeError, ValueError):
            return str(value)
        return value

    def describe(self) -> str:
        """One-line summary used in the follow-up message to the model."""
        if self.success:
            return f"Tool {self.tool_name}: {format_tool_result(self.result)}"
        return f"Tool {self.tool_name}: Error - {self.error_message}"

    @classmethod
    def from_model(cls, model: "ToolExecutionLogModel") -> "ToolExecutionRecord":
        """Create entity from database model."""
        return cls(
            id=model.id,
            tool_id=model.tool_id,
            tool_name=model.tool_name,
            parameters=model.parameters or {},
            result=model.result,
            success=model.success,
            error_message=model.error_message,
            execution_time_ms=model.execution_time_ms,
            session_id=model.session_id,
            agent_id=model.agent_id,
            executed_at=model.executed_at,
        )


def format_tool_result(result: Any) -> str:
    """Render an opaque tool result as text."""
    if result is None:
        return ""
    if isinstance(result, str):
        return result
    try:
        return json.dumps(result, ensure_ascii=False)
    except (TypeError, ValueError):
        return str(result)


class Message(BaseModel):
    """Represents a chat message in the system."""

    model_config = ConfigDict(from_attributes=True)

    id: int | None = None
    session_id: str
    role: MessageRole
    content: str
    token_count: int | None = None
    tool_results: list[ToolExecutionRecord] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_model(cls, model: "MessageModel") -> "Message":
        """Create entity from database model."""
        return cls(
            id=model.id,
            session_id=model.session_id,
            role=model.role,  # type: ignore[arg-type]
            content=model.content,
            token_count=model.token_count,
            tool_results=[
                ToolExecutionRecord.model_validate(item)
                for item in model.tool_results or []
            ],
            created_at=model.created_at,
        )


class ChatSession(BaseModel):
    """Represents a chat session bound to one agent."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    agent_id: str
    user_id: str | None = None
    title: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    closed_at: datetime | None = None

    @property
    def is_closed(self) -> bool:
        return self.closed_at is not None

    @classmethod
    def from_model(cls, model: "ChatSessionModel") -> "ChatSession":
        """Create entity from database model."""
        return cls(
            id=model.id,
            agent_id=model.agent_id,
            user_id=model.user_id,
            title=model.title,
            created_at=model.created_at,
            updated_at=model.updated_at,
            closed_at=model.closed_at,
        )


class ChatSummary(BaseModel):
    """Message statistics across every session of one agent."""

    agent_id: str
    total_sessions: int = 0
    total_messages: int = 0
    total_tokens: int = 0
    oldest_message: datetime | None = None
    newest_message: datetime | None = None
    messages_by_role: dict[str, int] = Field(default_factory=dict)
