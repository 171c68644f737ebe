# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Flow graph validation.

Turns a FlowDefinition into an ExecutionPlan once per run, before any
node executes: structural checks, the unique entry node, and executor
resolution for every node kind.
"""

from dataclasses import dataclass
from typing import Dict, List

from flowbridge.core.errors import GraphError
from flowbridge.executors.base import BaseExecutor, ExecutorRegistry
from flowbridge.models.flow import FlowDefinition, FlowEdge, FlowNode


@dataclass
class ExecutionPlan:
    flow: FlowDefinition
    entry_node_id: str
    nodes: Dict[str, FlowNode]
    executors: Dict[str, BaseExecutor]
    outgoing: Dict[str, List[FlowEdge]]


def find_entry_nodes(flow: FlowDefinition) -> List[str]:
    """Node ids with no incoming edges, in declaration order."""
    targets = {edge.target for edge in flow.edges}
    return [node.id for node in flow.nodes if node.id not in targets]


def validate_flow(flow: FlowDefinition, registry: ExecutorRegistry) -> ExecutionPlan:
    """
    Validate flow structure and resolve executors.

    Raises:
        GraphError: Empty flow, duplicate ids, dangling edges, or not
            exactly one entry node
        UnknownNodeKindError: A node kind has no registered executor
    """
    # 1. Empty flow check
    if not flow.nodes:
        raise GraphError("Flow must have at least one node", field="nodes")

    # 2. Duplicate node IDs
    node_ids = [node.id for node in flow.nodes]
    if len(node_ids) != len(set(node_ids)):
        duplicates = sorted({nid for nid in node_ids if node_ids.count(nid) > 1})
        raise GraphError(f"Duplicate node IDs found: {', '.join(duplicates)}", field="nodes")

    # 3. Invalid edge references
    node_id_set = set(node_ids)
    for edge in flow.edges:
        for endpoint in (edge.source, edge.target):
            if endpoint not in node_id_set:
                raise GraphError(f"Edge references non-existent node: {endpoint}", field="edges")

    # 4. Unique entry node
    entries = find_entry_nodes(flow)
    if not entries:
        raise GraphError("Flow has no entry node: every node has an incoming edge", field="edges")
    if len(entries) > 1:
        raise GraphError(
            f"Flow has multiple entry nodes: {', '.join(entries)}. Exactly one node may have no incoming edges",
            field="edges"
        )

    # 5. Executor resolution (before anything runs)
    executors = {node.id: registry.resolve(node.kind, node.id) for node in flow.nodes}

    outgoing: Dict[str, List[FlowEdge]] = {node_id: [] for node_id in node_ids}
    for edge in flow.edges:
        outgoing[edge.source].append(edge)

    return ExecutionPlan(
        flow=flow,
        entry_node_id=entries[0],
        nodes={node.id: node for node in flow.nodes},
        executors=executors,
        outgoing=outgoing,
    )
