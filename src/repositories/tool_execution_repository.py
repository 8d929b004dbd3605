"""Tool execution repository for the tool-call audit log."""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from domain.entities import ToolExecutionRecord
from infrastructure.models import ToolExecutionLogModel

logger = logging.getLogger(__name__)


class ToolExecutionRepository:
    """Repository for tool execution log entries.

    All methods accept an AsyncSession to support transactions.
    """

    async def log(
        self,
        session: AsyncSession,
        record: ToolExecutionRecord,
        user_id: str | None = None,
    ) -> None:
        """Append one execution record to the audit log.

        Args:
            session: SQLAlchemy async session
            record: Outcome of the tool call
            user_id: Optional user the call was made for
        """
        data = record.model_dump(mode="json")
        session.add(
            ToolExecutionLogModel(
                tool_id=record.tool_id,
                tool_name=record.tool_name,
                agent_id=record.agent_id,
                session_id=record.session_id,
                user_id=user_id,
                parameters=data["parameters"],
                result=data["result"],
                success=record.success,
                error_message=record.error_message,
                execution_time_ms=record.execution_time_ms,
                executed_at=record.executed_at,
            )
        )
        await session.flush()
        logger.debug(f"Logged execution of tool {record.tool_name}")

    async def list_recent(
        self,
        session: AsyncSession,
        agent_id: str | None = None,
        session_id: str | None = None,
        limit: int = 100,
    ) -> list[ToolExecutionRecord]:
        """List the most recent executions, newest first.

        Args:
            session: SQLAlchemy async session
            agent_id: Only include executions of this agent when given
            session_id: Only include executions of this session when given
            limit: Maximum number of entries to return

        Returns:
            list[ToolExecutionRecord]: Logged executions
        """
        stmt = select(ToolExecutionLogModel)
        if agent_id is not None:
            stmt = stmt.where(ToolExecutionLogModel.agent_id == agent_id)
        if session_id is not None:
            stmt = stmt.where(ToolExecutionLogModel.session_id == session_id)
        stmt = stmt.order_by(
            ToolExecutionLogModel.executed_at.desc(), ToolExecutionLogModel.id.desc()
        ).limit(limit)

        result = await session.execute(stmt)
        return [ToolExecutionRecord.from_model(row) for row in result.scalars()]

    async def get_by_id(
        self, session: AsyncSession, execution_id: int
    ) -> ToolExecutionRecord | None:
        """Get one logged execution.

        Args:
            session: SQLAlchemy async session
            execution_id: Log entry identifier

        Returns:
            ToolExecutionRecord | None: Entry if found, None otherwise
        """
        row = await session.get(ToolExecutionLogModel, execution_id)
        if row is None:
            logger.debug(f"Tool execution not found: {execution_id}")
            return None
        return ToolExecutionRecord.from_model(row)
