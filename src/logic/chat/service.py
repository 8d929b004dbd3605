"""Turn orchestration for streamed, tool-calling conversations.

Components:
- MessageFormatter: Builds the model input from prompt, history and new content
- ConversationManager: Resolves sessions and persists messages
- ChatService: Runs a turn, recursing through tool-calling rounds
"""

import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import aclosing
from dataclasses import dataclass, field
from datetime import UTC, datetime

from openai.types.chat import (
    ChatCompletionMessageParam,
    ChatCompletionSystemMessageParam,
    ChatCompletionUserMessageParam,
)
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from domain.entities import Agent, ChatSession, Message, Prompt, ToolExecutionRecord
from domain.schemas import SendMessageRequest
from infrastructure.openai_client import OpenAIClient
from logic.chat.aggregator import ToolCallAccumulator, aggregate_stream
from logic.tools import ToolExecutor, build_follow_up_message
from repositories.agent_repository import AgentRepository
from repositories.message_repository import MessageRepository
from repositories.session_repository import SessionRepository

logger = logging.getLogger(__name__)

ERROR_AGENT_ID_REQUIRED = "Error: Agent ID is required"
ERROR_CONTENT_REQUIRED = "Error: Message content is required"
ERROR_AGENT_NOT_FOUND = "Error: Agent not found"
ERROR_NO_ACTIVE_PROMPT = "Error: Agent has no active prompt"
ERROR_SESSION_WRONG_AGENT = "Error: Session belongs to another agent"
ERROR_SESSION_CLOSED = "Error: Session is closed"
ERROR_MAX_DEPTH = "Error: Maximum tool call depth exceeded"

HISTORY_HEADER = "Recent conversation history:"


@dataclass
class TurnContext:
    """Outcome of a turn, filled in while its stream is consumed."""

    session_id: str | None = None
    tool_results: list[ToolExecutionRecord] = field(default_factory=list)
    assistant_message_id: int | None = None


@dataclass
class _Turn:
    agent: Agent
    prompt: Prompt
    session_id: str
    user_id: str | None
    chunks: list[str] = field(default_factory=list)
    records: list[ToolExecutionRecord] = field(default_factory=list)


class MessageFormatter:
    """Formats the model input for one recursion level."""

    def __init__(self, preview_length: int = 200) -> None:
        self.preview_length = preview_length

    def _preview(self, text: str) -> str:
        if len(text) <= self.preview_length:
            return text
        return text[: self.preview_length] + "..."

    def _history_line(self, message: Message) -> str:
        line = f"{message.role}: {self._preview(message.content)}"
        used = [record.tool_name for record in message.tool_results if record.success]
        if used:
            line += f" [tools used: {', '.join(used)}]"
        return line

    def compose(
        self,
        prompt: str,
        history: list[Message],
        content: str,
    ) -> list[ChatCompletionMessageParam]:
        """Build the messages sent to the model.

        The system message carries the prompt followed by a role-tagged,
        truncated rendering of the history. The new content is sent as the
        user message. A trailing history entry identical to the new user
        content is skipped, since it is the message just persisted.

        Args:
            prompt: Active prompt of the agent
            history: Recent messages, oldest first
            content: User content or tool follow-up for this level

        Returns:
            list[ChatCompletionMessageParam]: Messages for the model
        """
        if history and history[-1].role == "user" and history[-1].content == content:
            history = history[:-1]

        system = prompt
        if history:
            lines = "\n".join(self._history_line(message) for message in history)
            system = f"{prompt}\n\n{HISTORY_HEADER}\n{lines}"

        return [
            ChatCompletionSystemMessageParam(role="system", content=system),
            ChatCompletionUserMessageParam(role="user", content=content),
        ]


class ConversationManager:
    """Manages sessions and message persistence.

    Every call uses its own database session and commits immediately.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        session_repo: SessionRepository,
        message_repo: MessageRepository,
    ) -> None:
        """Initialize conversation manager.

        Args:
            session_maker: Async session maker for database connections
            session_repo: Session repository instance
            message_repo: Message repository instance
        """
        self.session_maker = session_maker
        self.session_repo = session_repo
        self.message_repo = message_repo

    async def ensure_session(
        self,
        agent_id: str,
        session_id: str | None = None,
        title: str | None = None,
        user_id: str | None = None,
    ) -> ChatSession:
        """Return the given session, creating it when it does not exist yet.

        Args:
            agent_id: Agent the session belongs to
            session_id: Requested session id, generated when omitted
            title: Title for a newly created session
            user_id: Optional owner of a newly created session

        Returns:
            ChatSession: Existing or newly created session
        """
        async with self.session_maker() as db_session:
            if session_id:
                existing = await self.session_repo.get_by_id(db_session, session_id)
                if existing is not None:
                    return existing

            chat_session = await self.session_repo.create(
                db_session,
                session_id=session_id or str(uuid.uuid4()),
                agent_id=agent_id,
                title=title or f"Chat {datetime.now(UTC).strftime('%Y-%m-%d %H:%M')}",
                user_id=user_id,
            )
            await db_session.commit()

        logger.info(f"Created session {chat_session.id} for agent {agent_id}")
        return chat_session

    async def save_user_message(self, session_id: str, content: str) -> Message:
        """Save a user message to the database.

        Args:
            session_id: Chat session identifier
            content: Message content

        Returns:
            Message: Saved message entity
        """
        async with self.session_maker() as db_session:
            message = await self.message_repo.create(
                db_session,
                session_id=session_id,
                role="user",
                content=content,
                token_count=len(content),
            )
            await self.session_repo.update_timestamp(db_session, session_id)
            await db_session.commit()
        return message

    async def save_assistant_message(
        self,
        session_id: str,
        content: str,
        tool_results: list[ToolExecutionRecord],
    ) -> Message:
        """Save an assistant message together with its tool outcomes.

        Args:
            session_id: Chat session identifier
            content: Message content
            tool_results: Tool executions to attach to the message

        Returns:
            Message: Saved message entity
        """
        async with self.session_maker() as db_session:
            message = await self.message_repo.create(
                db_session,
                session_id=session_id,
                role="assistant",
                content=content,
                token_count=len(content),
                tool_results=tool_results,
            )
            await self.session_repo.update_timestamp(db_session, session_id)
            await db_session.commit()
        return message

    async def get_recent_history(self, session_id: str, limit: int) -> list[Message]:
        """Get the latest messages of a session, oldest first."""
        async with self.session_maker() as db_session:
            return await self.message_repo.get_recent_by_session(
                db_session, session_id, limit
            )


class ChatService:
    """Runs conversation turns for agents.

    A turn streams the model output to the caller, executes the tool calls
    the model asks for, and re-invokes the model with their outcome until it
    answers without tool calls.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        openai_client: OpenAIClient,
        tool_executor: ToolExecutor,
        agent_repo: AgentRepository,
        conversation_manager: ConversationManager,
        history_limit: int = 50,
        max_tool_rounds: int = 10,
        preview_length: int = 200,
    ) -> None:
        """Initialize chat service with its dependencies.

        Args:
            session_maker: Async session maker for database connections
            openai_client: Model gateway
            tool_executor: Tool execution engine
            agent_repo: Agent repository instance
            conversation_manager: Session and message persistence
            history_limit: Number of recent messages given to the model
            max_tool_rounds: Tool-calling rounds allowed in one turn
            preview_length: Characters kept per history entry
        """
        self.session_maker = session_maker
        self.openai_client = openai_client
        self.tool_executor = tool_executor
        self.agent_repo = agent_repo
        self.conversation_manager = conversation_manager
        self.message_formatter = MessageFormatter(preview_length)
        self.history_limit = history_limit
        self.max_tool_rounds = max_tool_rounds

    async def send_message_stream(
        self,
        request: SendMessageRequest,
        context: TurnContext | None = None,
    ) -> AsyncIterator[str]:
        """Run one turn and stream its output.

        Validation and resolution failures are yielded as a single error chunk
        and end the turn without persisting anything. Model and persistence
        errors propagate.

        Args:
            request: Turn input
            context: Optional holder for the session id, tool records and
                assistant message id of the turn

        Yields:
            str: Content chunks in the order the model emitted them
        """
        if not request.agent_id:
            yield ERROR_AGENT_ID_REQUIRED
            return
        if not request.content or not request.content.strip():
            yield ERROR_CONTENT_REQUIRED
            return

        async with self.session_maker() as db_session:
            agent = await self.agent_repo.get_by_id(db_session, request.agent_id)
        if agent is None:
            yield ERROR_AGENT_NOT_FOUND
            return

        prompt = agent.active_prompt
        if prompt is None:
            logger.warning(f"Agent {agent.id} has no active prompt")
            yield ERROR_NO_ACTIVE_PROMPT
            return

        chat_session = await self.conversation_manager.ensure_session(
            agent.id,
            session_id=request.session_id,
            title=request.content.strip()[:50],
            user_id=request.user_id,
        )
        if chat_session.agent_id != agent.id:
            logger.warning(
                f"Session {chat_session.id} belongs to agent {chat_session.agent_id}, "
                f"not {agent.id}"
            )
            yield ERROR_SESSION_WRONG_AGENT
            return
        if chat_session.is_closed:
            yield ERROR_SESSION_CLOSED
            return

        if context is not None:
            context.session_id = chat_session.id

        logger.info(f"Processing message in session {chat_session.id} for agent {agent.id}")
        await self.conversation_manager.save_user_message(
            chat_session.id, request.content
        )

        turn = _Turn(
            agent=agent,
            prompt=prompt,
            session_id=chat_session.id,
            user_id=request.user_id,
        )
        async with aclosing(self._run_level(turn, request.content, 0)) as chunks:
            async for chunk in chunks:
                yield chunk

        message = await self._finalize(turn)
        if context is not None:
            context.tool_results = turn.records
            context.assistant_message_id = message.id if message else None

    async def _run_level(
        self, turn: _Turn, content: str, depth: int
    ) -> AsyncIterator[str]:
        """Run one model invocation and recurse while tools are requested.

        Args:
            turn: State shared by every level of the turn
            content: User content, or the tool follow-up for deeper levels
            depth: Number of tool rounds already executed
        """
        history = await self.conversation_manager.get_recent_history(
            turn.session_id, self.history_limit
        )
        messages = self.message_formatter.compose(turn.prompt.content, history, content)
        tools = self.tool_executor.get_tool_definitions(turn.agent)

        accumulator = ToolCallAccumulator()
        deltas = self.openai_client.stream_chat_completion(
            messages, tools or None, turn.agent.llm_config
        )
        async with aclosing(deltas), aclosing(
            aggregate_stream(deltas, accumulator)
        ) as chunks:
            async for chunk in chunks:
                turn.chunks.append(chunk)
                yield chunk

        tool_calls = accumulator.finalize()
        if not tool_calls:
            return

        if depth >= self.max_tool_rounds:
            logger.warning(
                f"Maximum tool call depth {self.max_tool_rounds} reached "
                f"in session {turn.session_id}"
            )
            yield ERROR_MAX_DEPTH
            return

        records = await self.tool_executor.execute_batch(
            tool_calls, turn.agent, turn.session_id, turn.user_id
        )
        turn.records.extend(records)

        follow_up = build_follow_up_message(records)
        async with aclosing(self._run_level(turn, follow_up, depth + 1)) as chunks:
            async for chunk in chunks:
                yield chunk

    async def _finalize(self, turn: _Turn) -> Message | None:
        content = "".join(turn.chunks)
        if not content and not turn.records:
            logger.info(f"Turn in session {turn.session_id} produced no output")
            return None

        successful = [record for record in turn.records if record.success]
        message = await self.conversation_manager.save_assistant_message(
            turn.session_id, content, successful
        )
        logger.info(
            f"Saved assistant message {message.id} in session {turn.session_id} "
            f"with {len(successful)} tool results"
        )
        return message
