# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Flow Models

Pydantic models for flow definitions, executor results and run traces.
"""

from enum import Enum
from typing import List, Dict, Any, Optional
from pydantic import BaseModel, Field, ConfigDict


class NodeKind(str, Enum):
    """Node kinds with a registered executor"""
    MANUAL_TRIGGER = "manual_trigger"
    WEBHOOK_TRIGGER = "webhook_trigger"
    XML_PARSER = "xml_parser"
    CSV_PARSER = "csv_parser"
    OBJECT_MAPPER = "object_mapper"
    JSON_BUILDER = "json_builder"
    VALIDATION = "validation"
    CONDITIONAL = "conditional"
    INTERFACE_SOURCE = "interface_source"
    INTERFACE_DESTINATION = "interface_destination"
    EMAIL_NOTIFICATION = "email_notification"
    CUSTOM_CODE = "custom_code"


class FlowNode(BaseModel):
    """A single step in a flow"""
    id: str
    kind: str  # Kept as str so unknown kinds are rejected by the registry, not the loader
    label: Optional[str] = None
    config: Dict[str, Any] = Field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.label or self.id


class FlowEdge(BaseModel):
    """Directed link between two nodes"""
    id: Optional[str] = None
    source: str
    target: str
    label: Optional[str] = None


class FlowDefinition(BaseModel):
    """Stored flow graph"""
    id: str
    name: str
    version: str = "1.0"
    description: Optional[str] = None
    enabled: bool = True
    tags: List[str] = Field(default_factory=list)
    nodes: List[FlowNode] = Field(default_factory=list)
    edges: List[FlowEdge] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def get_node(self, node_id: str) -> Optional[FlowNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def outgoing_edges(self, node_id: str) -> List[FlowEdge]:
        """Outgoing edges in declaration order"""
        return [edge for edge in self.edges if edge.source == node_id]


class ExecutionContext(BaseModel):
    """Immutable per-run context handed to every executor"""
    model_config = ConfigDict(frozen=True)

    flow_id: str
    flow_name: str
    flow_version: str
    run_id: str
    trace_id: str
    emulation_mode: bool = False


class NodeExecutionResult(BaseModel):
    """What every executor returns"""
    output: Any = None
    outputs: Optional[List[Any]] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class RunStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class TriggerSource(str, Enum):
    WEBHOOK = "webhook"
    INTERFACE = "interface"
    TIMER = "timer"
    MANUAL = "manual"
    QUEUE = "queue"


class NodeExecutionRecord(BaseModel):
    """Trace entry for one attempted node"""
    node_id: str
    node_name: str
    kind: str
    status: RunStatus
    started_at: str
    completed_at: Optional[str] = None
    duration_ms: Optional[int] = None
    input: Any = None
    output: Any = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    warnings: List[str] = Field(default_factory=list)


class FlowRun(BaseModel):
    """One execution of a flow and its append-only trace"""
    id: str
    flow_id: str
    flow_name: str
    flow_version: str
    trace_id: str
    status: RunStatus = RunStatus.RUNNING
    triggered_by: TriggerSource = TriggerSource.MANUAL
    started_at: str
    completed_at: Optional[str] = None
    duration_ms: Optional[int] = None
    input_data: Any = None
    output_data: Any = None
    executed_nodes: List[str] = Field(default_factory=list)
    node_executions: List[NodeExecutionRecord] = Field(default_factory=list)
    error: Optional[str] = None
    error_type: Optional[str] = None
    error_node: Optional[str] = None


class FlowRunRequest(BaseModel):
    """Request body for POST /flows/{id}/execute"""
    input: Any = None
    triggered_by: TriggerSource = TriggerSource.MANUAL
