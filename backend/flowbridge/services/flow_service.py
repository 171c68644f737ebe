# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Flow Service - Manages flow definitions, runs and their traces.

Single responsibility: the API-facing facade over the flow repository,
the step-list compiler, the orchestrator and the run store.
"""

from typing import Any, List, Optional

from flowbridge.core.errors import ValidationError
from flowbridge.core.logging import get_service_logger
from flowbridge.engine.orchestrator import FlowOrchestrator
from flowbridge.execution_store import RunStore
from flowbridge.flow_dsl import compile_flow, export_flow_text
from flowbridge.flow_store import FlowRepository
from flowbridge.models.flow import FlowDefinition, FlowRun, TriggerSource

logger = get_service_logger("flow-service")

SUPPORTED_FORMATS = ("yaml", "json")
MAX_IMPORT_SIZE = 1_000_000


class FlowService:
    """
    Responsibilities:
    - List, read and register flow definitions
    - Import/export flows in the step-list form
    - Execute flows via FlowOrchestrator
    - Read run records
    """

    def __init__(self, flows: FlowRepository, orchestrator: FlowOrchestrator, runs: RunStore):
        self.flows = flows
        self.orchestrator = orchestrator
        self.runs = runs

    async def list_flows(self) -> List[FlowDefinition]:
        flows = self.flows.list_flows()
        logger.info(f"Listed {len(flows)} flows")
        return flows

    async def get_flow(self, flow_id: str) -> FlowDefinition:
        return self.flows.get_flow(flow_id)

    async def register_flow(self, flow: FlowDefinition) -> FlowDefinition:
        """Store a graph-form flow definition, replacing any with the same id."""
        return self.flows.save_flow(flow)

    async def import_flow(self, text: str, format: str = "yaml") -> FlowDefinition:
        """
        Compile a step-list document and store the resulting flow.

        Raises:
            ValidationError: Unsupported format or document too large
            ConfigurationError: Unparseable document
            GraphError: Invalid step list
        """
        self._validate_format(format)
        if len(text) > MAX_IMPORT_SIZE:
            raise ValidationError(
                "Flow document too large (max 1MB)",
                field="content",
                details={"size": len(text)}
            )
        flow = compile_flow(text, format)
        logger.info(f"Imported flow: {flow.id} ({len(flow.nodes)} nodes, {len(flow.edges)} edges)")
        return self.flows.save_flow(flow)

    async def export_flow(self, flow_id: str, format: str = "yaml") -> str:
        self._validate_format(format)
        return export_flow_text(self.flows.get_flow(flow_id), format)

    async def run_flow(
        self,
        flow_id: str,
        input_data: Any = None,
        triggered_by: TriggerSource = TriggerSource.MANUAL
    ) -> FlowRun:
        logger.info(f"Executing flow: {flow_id} (trigger: {triggered_by.value})")
        run = await self.orchestrator.execute_flow(flow_id, input_data, triggered_by)
        logger.info(f"Flow run {run.status.value}: {run.id} (error_node: {run.error_node})")
        return run

    async def get_run(self, run_id: str) -> FlowRun:
        return await self.runs.get(run_id)

    async def list_runs(
        self,
        flow_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 100,
        offset: int = 0
    ) -> List[FlowRun]:
        return await self.runs.list(flow_id=flow_id, status=status, limit=limit, offset=offset)

    def _validate_format(self, format: str) -> None:
        if format not in SUPPORTED_FORMATS:
            raise ValidationError(
                f"Unsupported format '{format}'. Use one of: {', '.join(SUPPORTED_FORMATS)}",
                field="format"
            )
