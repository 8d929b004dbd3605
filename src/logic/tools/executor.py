"""Tool execution engine.

Turns the tool calls aggregated from a model response into execution records:
- resolves each call against the agent's bound tools
- parses arguments leniently
- dispatches to the backend registered for the tool type
- writes every outcome to the execution log on a best-effort basis
"""

import json
import logging
import time
from dataclasses import dataclass
from typing import Any

from openai.types.chat import ChatCompletionToolParam
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from domain.entities import Agent, Tool, ToolCall, ToolExecutionRecord
from logic.tools.registry import ToolBackendRegistry
from repositories.tool_execution_repository import ToolExecutionRepository

logger = logging.getLogger(__name__)

JSON_SCHEMA_TYPES = {"string", "number", "integer", "boolean", "array", "object"}


@dataclass(frozen=True)
class PreparedToolCall:
    """A tool call resolved to a bound tool, ready to run."""

    call: ToolCall
    tool: Tool
    parameters: dict[str, Any]


@dataclass(frozen=True)
class PreparationError:
    """A tool call that could not be resolved."""

    call: ToolCall
    message: str


def parse_arguments(raw: str | None) -> dict[str, Any]:
    """Parse a tool-call argument string.

    Malformed, empty or non-object JSON yields an empty dict so the tool is
    still invoked.
    """
    if not raw or not raw.strip():
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning(f"Malformed tool arguments, using empty parameters: {raw!r}")
        return {}
    if not isinstance(parsed, dict):
        logger.warning(f"Tool arguments are not a JSON object: {raw!r}")
        return {}
    return parsed


def build_tool_schema(tool: Tool) -> ChatCompletionToolParam:
    """Convert a tool's stored parameter list into an OpenAI function schema.

    The stored format is ``[{"name", "type", "description", "required"}]``.
    Unknown types are mapped to ``string``.

    Args:
        tool: Tool to describe

    Returns:
        ChatCompletionToolParam: Function tool definition
    """
    properties: dict[str, Any] = {}
    required: list[str] = []

    try:
        declared = json.loads(tool.parameters) if tool.parameters else []
    except json.JSONDecodeError:
        logger.warning(f"Ignoring invalid parameter list of tool {tool.name}")
        declared = []
    if not isinstance(declared, list):
        declared = []

    for param in declared:
        if not isinstance(param, dict) or not param.get("name"):
            continue
        name = str(param["name"])
        param_type = str(param.get("type", "string")).lower()
        properties[name] = {
            "type": param_type if param_type in JSON_SCHEMA_TYPES else "string",
            "description": str(param.get("description", "")),
        }
        if param.get("required"):
            required.append(name)

    return {
        "type": "function",
        "function": {
            "name": tool.name,
            "description": tool.description,
            "parameters": {
                "type": "object",
                "properties": properties,
                "required": required,
            },
        },
    }


def build_follow_up_message(records: list[ToolExecutionRecord]) -> str:
    """Summarize a batch of tool outcomes for the next model invocation.

    Example:
        ``Tool get_weather: 18C, sunny.``
    """
    return "\n".join(record.describe() for record in records) + "."


class ToolExecutor:
    """Executes batches of tool calls for an agent.

    Batches never raise: every attempted call produces exactly one record, in
    the order the calls were given.
    """

    def __init__(
        self,
        registry: ToolBackendRegistry,
        session_maker: async_sessionmaker[AsyncSession],
        execution_repo: ToolExecutionRepository,
    ) -> None:
        """Initialize tool executor.

        Args:
            registry: Backends by tool type
            session_maker: Async session maker for execution log writes
            execution_repo: Tool execution log repository
        """
        self.registry = registry
        self.session_maker = session_maker
        self.execution_repo = execution_repo

    @staticmethod
    def get_tool_definitions(agent: Agent) -> list[ChatCompletionToolParam]:
        """Get the tool definitions offered to the model for an agent.

        Only active tools are included.
        """
        return [build_tool_schema(tool) for tool in agent.active_tools]

    @staticmethod
    def prepare(call: ToolCall, agent: Agent) -> PreparedToolCall | PreparationError:
        tool = agent.find_tool(call.name)
        if tool is None:
            return PreparationError(
                call=call,
                message=f"Tool '{call.name}' not found or not assigned to this agent",
            )
        return PreparedToolCall(
            call=call, tool=tool, parameters=parse_arguments(call.arguments)
        )

    async def execute_batch(
        self,
        tool_calls: list[ToolCall],
        agent: Agent,
        session_id: str,
        user_id: str | None = None,
    ) -> list[ToolExecutionRecord]:
        """Execute tool calls one after another.

        Args:
            tool_calls: Aggregated tool calls in index order
            agent: Agent the calls were issued for
            session_id: Chat session identifier
            user_id: Optional user the calls are made for

        Returns:
            list[ToolExecutionRecord]: One record per call, same order
        """
        logger.info(f"Executing {len(tool_calls)} tool calls for agent {agent.id}")

        records: list[ToolExecutionRecord] = []
        for call in tool_calls:
            prepared = self.prepare(call, agent)
            if isinstance(prepared, PreparationError):
                logger.warning(prepared.message)
                records.append(
                    ToolExecutionRecord(
                        tool_name=call.name,
                        success=False,
                        error_message=prepared.message,
                        session_id=session_id,
                        agent_id=agent.id,
                    )
                )
                continue

            record = await self._execute_prepared(prepared, agent, session_id)
            await self._log_execution(record, user_id)
            records.append(record)

        return records

    async def _execute_prepared(
        self, prepared: PreparedToolCall, agent: Agent, session_id: str
    ) -> ToolExecutionRecord:
        tool = prepared.tool
        record = ToolExecutionRecord(
            tool_id=tool.id,
            tool_name=tool.name,
            parameters=prepared.parameters,
            session_id=session_id,
            agent_id=agent.id,
        )

        backend = self.registry.get(tool.kind)
        if backend is None:
            record.error_message = f"No provider found for tool type: {tool.type}"
            logger.warning(record.error_message)
            return record

        logger.info(f"Executing tool: {tool.name} with args: {prepared.parameters}")
        started = time.perf_counter()
        try:
            record.result = await backend.execute(tool, prepared.parameters)
            record.success = True
        except Exception as e:
            record.error_message = str(e) or e.__class__.__name__
            logger.error(f"Tool {tool.name} failed: {record.error_message}", exc_info=True)
        finally:
            record.execution_time_ms = (time.perf_counter() - started) * 1000

        return record

    async def _log_execution(
        self, record: ToolExecutionRecord, user_id: str | None
    ) -> None:
        try:
            async with self.session_maker() as db_session:
                await self.execution_repo.log(db_session, record, user_id)
                await db_session.commit()
        except Exception as e:
            logger.warning(f"Failed to write execution log for {record.tool_name}: {e}")
