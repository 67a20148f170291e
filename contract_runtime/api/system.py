# contract_runtime/api/system.py
"""
System endpoints: health, manifest of loaded APIs, and the event log written
by `event` effects.
"""

import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from ..core.query import SearchCondition, SearchOperator
from ..core.runtime import ContractRuntime
from ..core.statemachine.effects import EVENTS_RESOURCE
from ..models import HealthResponse, ListResponse, ManifestResponse

router = APIRouter()


def get_runtime(request: Request) -> ContractRuntime:
    return request.app.state.runtime


@router.get("/health", response_model=HealthResponse, tags=["System"])
async def health(runtime: ContractRuntime = Depends(get_runtime)) -> HealthResponse:
    """Liveness plus the list of served APIs."""
    check = await asyncio.to_thread(runtime.registry.health_check)
    return HealthResponse(
        status="ok" if check["status"] == "healthy" else "degraded",
        apis=sorted(runtime.specifications),
        stores=check["stores"],
    )


@router.get("/_manifest", response_model=ManifestResponse, tags=["System"])
async def manifest(runtime: ContractRuntime = Depends(get_runtime)) -> ManifestResponse:
    """Every loaded specification with its endpoints and state machine."""
    return ManifestResponse(**runtime.manifest())


@router.get("/_events", response_model=ListResponse, tags=["System"])
async def list_events(
    name: Optional[str] = Query(default=None, description="Only events with this name"),
    limit: int = Query(default=25, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    runtime: ContractRuntime = Depends(get_runtime),
) -> ListResponse:
    """Events emitted by contract effects, newest first."""
    conditions = [SearchCondition("name", SearchOperator.EQ, name, False, name)] if name else None
    events = runtime.registry.open(EVENTS_RESOURCE)
    result = await asyncio.to_thread(events.find_all, conditions, limit=limit, offset=offset)
    return ListResponse.page(result.items, result.total, limit, offset)
