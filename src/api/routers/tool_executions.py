"""Tool execution log endpoints."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from api.dependencies import get_session_service
from api.routers.utils import convert_record_to_response, handle_router_error
from domain.schemas import ToolExecutionListResponse, ToolExecutionResponse
from logic.sessions import SessionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tool-executions", tags=["tools"])


@router.get(
    "",
    response_model=ToolExecutionListResponse,
    summary="List tool executions",
    description="Retrieve the most recent tool executions, newest first",
)
async def list_tool_executions(
    session_service: Annotated[SessionService, Depends(get_session_service)],
    agent_id: str | None = None,
    session_id: str | None = None,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
) -> ToolExecutionListResponse:
    """List logged tool executions."""
    try:
        records = await session_service.list_tool_executions(
            agent_id=agent_id, session_id=session_id, limit=limit
        )
        return ToolExecutionListResponse(
            executions=[convert_record_to_response(record) for record in records],
            total=len(records),
        )
    except Exception as e:
        raise handle_router_error("listing tool executions", agent_id or "all", e)


@router.get(
    "/{execution_id}",
    response_model=ToolExecutionResponse,
    summary="Get a tool execution",
    description="Retrieve one logged tool execution by ID",
)
async def get_tool_execution(
    execution_id: int,
    session_service: Annotated[SessionService, Depends(get_session_service)],
) -> ToolExecutionResponse:
    """Get a logged tool execution."""
    try:
        record = await session_service.get_tool_execution(execution_id)
    except Exception as e:
        raise handle_router_error("getting tool execution", str(execution_id), e)

    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Tool execution not found: {execution_id}",
        )
    return convert_record_to_response(record)
