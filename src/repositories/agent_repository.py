"""Agent repository for loading agents with their prompts, tools and LLM binding."""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from domain.entities import Agent, LlmConfig, Prompt, Tool
from infrastructure.models import AgentModel, LlmConfigModel, PromptModel, ToolModel

logger = logging.getLogger(__name__)


class AgentRepository:
    """Repository for agent operations using SQLAlchemy ORM.

    All methods accept an AsyncSession to support transactions.
    """

    async def get_by_id(self, session: AsyncSession, agent_id: str) -> Agent | None:
        """Get an agent with prompts, tools and LLM config eagerly loaded.

        Args:
            session: SQLAlchemy async session
            agent_id: Agent identifier

        Returns:
            Agent | None: Agent if found, None otherwise
        """
        stmt = (
            select(AgentModel)
            .where(AgentModel.id == agent_id)
            .options(
                selectinload(AgentModel.prompts),
                selectinload(AgentModel.tools),
                selectinload(AgentModel.llm_config),
            )
        )
        result = await session.execute(stmt)
        db_agent = result.scalar_one_or_none()

        if db_agent is None:
            logger.warning(f"Agent not found: {agent_id}")
            return None

        return Agent.from_model(db_agent)

    async def create(
        self,
        session: AsyncSession,
        name: str,
        prompts: list[Prompt] | None = None,
        tools: list[Tool] | None = None,
        llm_config: LlmConfig | None = None,
        description: str = "",
        agent_id: str | None = None,
    ) -> Agent:
        """Create an agent together with its prompts, tools and LLM config.

        Tools whose id already exists are linked instead of inserted again,
        so several agents can share one tool definition.

        Args:
            session: SQLAlchemy async session (can be part of a transaction)
            name: Agent name
            prompts: Prompts of the agent
            tools: Tools bound to the agent
            llm_config: Model binding of the agent
            description: Agent description
            agent_id: Explicit identifier, generated when omitted

        Returns:
            Agent: Created agent
        """
        db_agent = AgentModel(
            id=agent_id or str(uuid.uuid4()),
            name=name,
            description=description,
        )

        if llm_config is not None:
            db_config = await session.get(LlmConfigModel, llm_config.id)
            if db_config is None:
                db_config = LlmConfigModel(**llm_config.model_dump())
                session.add(db_config)
            db_agent.llm_config = db_config
        else:
            db_agent.llm_config = None

        db_agent.prompts = [
            PromptModel(id=prompt.id, content=prompt.content, is_active=prompt.is_active)
            for prompt in prompts or []
        ]

        db_tools = []
        for tool in tools or []:
            db_tool = await session.get(ToolModel, tool.id)
            if db_tool is None:
                db_tool = ToolModel(**tool.model_dump())
                session.add(db_tool)
            db_tools.append(db_tool)
        db_agent.tools = db_tools

        session.add(db_agent)
        await session.flush()

        logger.info(f"Created agent {db_agent.id} ({name}) with {len(db_tools)} tools")
        return await self.get_by_id(session, db_agent.id)  # type: ignore[return-value]
