# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Flow API Routes

Handles flow management and execution:
- CRUD for flow definitions (graph form)
- Import/export in the step-list form
- Flow execution and run history
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from flowbridge.core.dependencies import get_flow_service
from flowbridge.core.errors import DisabledError, NotFoundError
from flowbridge.models.flow import FlowDefinition, FlowRun, FlowRunRequest
from flowbridge.services.flow_service import FlowService

router = APIRouter(prefix="/flows", tags=["flows"])


# Request Models
class FlowImportRequest(BaseModel):
    """Step-list document to compile into a flow"""
    content: str
    format: str = "yaml"


# Flow CRUD Routes
@router.get("")
async def list_flows(
    service: FlowService = Depends(get_flow_service)
) -> List[Dict[str, Any]]:
    """List registered flows"""
    flows = await service.list_flows()
    return [
        {
            "id": flow.id,
            "name": flow.name,
            "version": flow.version,
            "enabled": flow.enabled,
            "description": flow.description or "",
            "nodes": len(flow.nodes),
        }
        for flow in flows
    ]


@router.post("", response_model=FlowDefinition)
async def register_flow(
    flow: FlowDefinition,
    service: FlowService = Depends(get_flow_service)
):
    """Register (or replace) a flow in graph form"""
    return await service.register_flow(flow)


@router.post("/import", response_model=FlowDefinition)
async def import_flow(
    request: FlowImportRequest,
    service: FlowService = Depends(get_flow_service)
):
    """Compile a step-list document and register the flow"""
    return await service.import_flow(request.content, request.format)


@router.get("/{flow_id}", response_model=FlowDefinition)
async def get_flow(
    flow_id: str,
    service: FlowService = Depends(get_flow_service)
):
    """Get a flow definition"""
    try:
        return await service.get_flow(flow_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/{flow_id}/export")
async def export_flow(
    flow_id: str,
    format: str = "yaml",
    service: FlowService = Depends(get_flow_service)
) -> Dict[str, str]:
    """Export a flow as a step-list document"""
    try:
        content = await service.export_flow(flow_id, format)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"flow_id": flow_id, "format": format, "content": content}


# Flow Execution Routes

@router.post("/{flow_id}/execute", response_model=FlowRun)
async def execute_flow(
    flow_id: str,
    request: Optional[FlowRunRequest] = None,
    service: FlowService = Depends(get_flow_service)
):
    """
    Execute a flow and return the finished run.

    Failures inside the run are reported on the run itself (status
    "failed"); only a missing or disabled flow is an HTTP error.
    """
    request = request or FlowRunRequest()
    try:
        return await service.run_flow(flow_id, request.input, request.triggered_by)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except DisabledError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.get("/{flow_id}/runs", response_model=List[FlowRun])
async def list_flow_runs(
    flow_id: str,
    status: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
    service: FlowService = Depends(get_flow_service)
):
    """List runs of one flow, newest first"""
    try:
        await service.get_flow(flow_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return await service.list_runs(flow_id=flow_id, status=status, limit=limit, offset=offset)
