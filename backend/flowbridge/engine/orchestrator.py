# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Flow Orchestrator

Walks a flow graph one node at a time along a single path, passing each
node's output to the next node and recording a trace entry for every
attempted node.

Routing after a node:
    - no outgoing edge: the run ends with the node's output
    - one edge: follow it
    - several edges: follow the edge whose label matches
      metadata["condition_met"] (true/yes/success vs false/no/error);
      otherwise the first edge in declaration order, with a warning in
      the log and in the node's trace record

A node reached a second time in the same run is not executed again; the
run ends with its cached output.
"""

import asyncio
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from flowbridge.core.errors import DisabledError, FlowBridgeError, NodeExecutionError
from flowbridge.core.logging import get_service_logger, log_event
from flowbridge.engine.validation import ExecutionPlan, validate_flow
from flowbridge.execution_store import RunStore
from flowbridge.executors.base import ExecutorRegistry
from flowbridge.flow_store import FlowRepository
from flowbridge.models.flow import (
    ExecutionContext,
    FlowEdge,
    FlowNode,
    FlowRun,
    NodeExecutionRecord,
    NodeExecutionResult,
    RunStatus,
    TriggerSource,
)

logger = get_service_logger("orchestrator")

TRUE_LABELS = frozenset(["true", "yes", "success"])
FALSE_LABELS = frozenset(["false", "no", "error"])


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_run_id() -> str:
    return f"run_{datetime.now(timezone.utc).strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:8]}"


def select_next_edge(
    edges: List[FlowEdge],
    condition_met: Optional[bool]
) -> Tuple[Optional[FlowEdge], Optional[str]]:
    """
    Pick the edge to follow after a node.

    Returns (edge, warning). The warning is set when several edges exist
    and none matches the node's condition result.
    """
    if not edges:
        return None, None
    if len(edges) == 1:
        return edges[0], None

    if condition_met is not None:
        wanted = TRUE_LABELS if condition_met else FALSE_LABELS
        for edge in edges:
            if (edge.label or "").lower() in wanted:
                return edge, None

    fallback = edges[0]
    labels = ", ".join(f"{e.target}({e.label or '-'})" for e in edges)
    warning = (
        f"Ambiguous routing: {len(edges)} outgoing edges [{labels}] and none matches "
        f"condition_met={condition_met}; following first edge to '{fallback.target}'"
    )
    return fallback, warning


class FlowOrchestrator:
    """
    Executes flows and owns their run records while they run.

    Each execute_flow call keeps its own map of computed node outputs, so
    runs of the same flow can proceed concurrently.
    """

    def __init__(
        self,
        flows: FlowRepository,
        runs: RunStore,
        registry: ExecutorRegistry,
        emulation_mode: bool = False
    ):
        self.flows = flows
        self.runs = runs
        self.registry = registry
        self.emulation_mode = emulation_mode

        # Execution tracking
        self.active_runs: Dict[str, FlowRun] = {}  # run_id → FlowRun

    async def execute_flow(
        self,
        flow_id: str,
        input_data: Any = None,
        triggered_by: TriggerSource = TriggerSource.MANUAL
    ) -> FlowRun:
        """
        Execute a flow and return its finished run.

        Raises:
            NotFoundError: Flow does not exist
            DisabledError: Flow is disabled

        Any later failure is reported on the returned run (status failed,
        error, error_type, error_node).
        """
        flow = self.flows.get_flow(flow_id)
        if not flow.enabled:
            raise DisabledError("Flow", flow_id)

        run = FlowRun(
            id=new_run_id(),
            flow_id=flow.id,
            flow_name=flow.name,
            flow_version=flow.version,
            trace_id=uuid.uuid4().hex,
            triggered_by=triggered_by,
            started_at=_now(),
            input_data=input_data,
        )
        await self.runs.create(run)
        self.active_runs[run.id] = run

        context = ExecutionContext(
            flow_id=flow.id,
            flow_name=flow.name,
            flow_version=flow.version,
            run_id=run.id,
            trace_id=run.trace_id,
            emulation_mode=self.emulation_mode,
        )

        log_event(
            logger, "run_started",
            run_id=run.id, flow_id=flow.id, trace_id=run.trace_id,
            triggered_by=triggered_by.value
        )
        start = time.monotonic()

        try:
            plan = validate_flow(flow, self.registry)
            run.output_data = await self._walk(plan, run, context, input_data)
            run.status = RunStatus.COMPLETED
        except NodeExecutionError as e:
            run.status = RunStatus.FAILED
            run.error = str(e.cause)
            run.error_type = type(e.cause).__name__
            run.error_node = e.node_id
        except FlowBridgeError as e:
            # Planning failures: no node has run
            run.status = RunStatus.FAILED
            run.error = e.message
            run.error_type = type(e).__name__
        except asyncio.CancelledError:
            run.status = RunStatus.FAILED
            run.error = "Run cancelled"
            run.error_type = "CancelledError"
            raise
        finally:
            run.completed_at = _now()
            run.duration_ms = int((time.monotonic() - start) * 1000)
            self.active_runs.pop(run.id, None)
            await self.runs.update(run)

            log_event(
                logger, f"run_{run.status.value}",
                level="INFO" if run.status == RunStatus.COMPLETED else "ERROR",
                run_id=run.id, flow_id=flow.id, trace_id=run.trace_id,
                duration_ms=run.duration_ms, executed_nodes=len(run.executed_nodes),
                error=run.error, error_node=run.error_node
            )

        return run

    async def _walk(
        self,
        plan: ExecutionPlan,
        run: FlowRun,
        context: ExecutionContext,
        input_data: Any
    ) -> Any:
        """Follow one path from the entry node; returns the last output."""
        outputs: Dict[str, Any] = {}  # node_id → output, this run only
        node_id: Optional[str] = plan.entry_node_id
        current = input_data

        while node_id is not None:
            if node_id in outputs:
                log_event(logger, "node_cache_hit", run_id=run.id, node_id=node_id)
                return outputs[node_id]

            node = plan.nodes[node_id]
            result, record = await self._execute_node(plan, node, current, run, context)
            outputs[node_id] = result.output
            run.executed_nodes.append(node_id)

            edge, warning = select_next_edge(
                plan.outgoing[node_id],
                result.metadata.get("condition_met")
            )
            if warning:
                record.warnings.append(warning)
                log_event(logger, "ambiguous_branch", level="WARNING", run_id=run.id, node_id=node_id, warning=warning)

            await self._append(run, record)

            current = result.output
            node_id = edge.target if edge is not None else None

        return current

    async def _execute_node(
        self,
        plan: ExecutionPlan,
        node: FlowNode,
        input_data: Any,
        run: FlowRun,
        context: ExecutionContext
    ) -> Tuple[NodeExecutionResult, NodeExecutionRecord]:
        """
        Run one node. On success the record is returned unsaved so routing
        warnings can be added; on failure it is saved here and the error
        is raised as NodeExecutionError.
        """
        executor = plan.executors[node.id]
        started_at = _now()
        start = time.monotonic()
        log_event(logger, "node_started", run_id=run.id, node_id=node.id, kind=node.kind)

        try:
            result = await executor.execute(node, input_data, context)
        except Exception as e:
            record = NodeExecutionRecord(
                node_id=node.id,
                node_name=node.name,
                kind=node.kind,
                status=RunStatus.FAILED,
                started_at=started_at,
                completed_at=_now(),
                duration_ms=int((time.monotonic() - start) * 1000),
                input=input_data,
                error=str(e),
                error_type=type(e).__name__,
                metadata=dict(getattr(e, "details", None) or {}),
            )
            await self._append(run, record)
            log_event(
                logger, "node_failed", level="ERROR",
                run_id=run.id, node_id=node.id, kind=node.kind,
                error=str(e), error_type=type(e).__name__
            )
            raise NodeExecutionError(node.id, e) from e

        record = NodeExecutionRecord(
            node_id=node.id,
            node_name=node.name,
            kind=node.kind,
            status=RunStatus.COMPLETED,
            started_at=started_at,
            completed_at=_now(),
            duration_ms=int((time.monotonic() - start) * 1000),
            input=input_data,
            output=result.output,
            metadata=dict(result.metadata),
        )
        if result.outputs is not None:
            record.metadata["outputs"] = result.outputs
        log_event(
            logger, "node_completed",
            run_id=run.id, node_id=node.id, kind=node.kind, duration_ms=record.duration_ms
        )
        return result, record

    async def _append(self, run: FlowRun, record: NodeExecutionRecord) -> None:
        run.node_executions.append(record)
        await self.runs.append_node_execution(run.id, record)
