# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Run API Routes

Read access to flow runs and their node-level traces.
"""

from fastapi import APIRouter, Depends, HTTPException

from flowbridge.core.dependencies import get_flow_service
from flowbridge.core.errors import NotFoundError
from flowbridge.models.flow import FlowRun
from flowbridge.services.flow_service import FlowService

router = APIRouter(prefix="/runs", tags=["runs"])


@router.get("/{run_id}", response_model=FlowRun)
async def get_run(
    run_id: str,
    service: FlowService = Depends(get_flow_service)
):
    """Get a run with its trace"""
    try:
        return await service.get_run(run_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
