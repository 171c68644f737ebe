# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Flow DSL - flows as YAML/JSON step lists.

    name: Orders to ERP
    version: "1.0"
    triggers:
      - id: start
        kind: manual_trigger
    steps:
      - id: parse
        kind: csv_parser
      - id: check
        kind: validation
        config: {rules: {qty: {type: number, min: 0}}}
        on_error: notify
      - id: send
        kind: interface_destination
        config: {interface_id: erp}
      - id: notify
        kind: email_notification
        config: {to: ops@example.com, subject: Invalid order}

compile_flow turns this into nodes and edges: the first trigger links to
the first step and each step links to the next with a `success` edge.
`on_success` pointing anywhere other than the next step adds a `true`
edge; `on_error` adds an `error` edge. Label routing needs a `condition_met`
output, so `on_error` only routes as intended after a conditional step;
after any other step the orchestrator follows the first declared edge,
which is the `error` edge, and records an ambiguous-routing warning.

export_flow is the inverse.
"""

import json
import uuid
from typing import Any, Dict, List, Optional, Union

import yaml

from flowbridge.core.errors import ConfigurationError, GraphError
from flowbridge.models.flow import FlowDefinition, FlowEdge, FlowNode

SUCCESS_LABEL = "success"
JUMP_LABEL = "true"
ERROR_LABEL = "error"


def parse_document(text: str, format: str = "yaml") -> Dict[str, Any]:
    """Parse DSL text (YAML or JSON) into a dict."""
    try:
        if format == "json":
            document = json.loads(text)
        else:
            document = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Invalid flow {format.upper()}: {e}")
    if not isinstance(document, dict):
        raise ConfigurationError("Flow document must be a mapping")
    return document


def is_step_document(document: Dict[str, Any]) -> bool:
    return "triggers" in document or "steps" in document


def _step_node(entry: Dict[str, Any], fallback_id: str) -> FlowNode:
    kind = entry.get("kind") or entry.get("type")
    if not kind:
        raise GraphError(f"Step '{entry.get('id', fallback_id)}' has no kind", field="kind")
    return FlowNode(
        id=str(entry.get("id") or fallback_id),
        kind=str(kind),
        label=entry.get("label"),
        config=dict(entry.get("config") or {}),
    )


def compile_flow(source: Union[str, Dict[str, Any]], format: str = "yaml") -> FlowDefinition:
    """
    Compile a step-list document into a FlowDefinition.

    Raises:
        ConfigurationError: Unparseable text
        GraphError: Missing name/trigger, duplicate ids or unknown jump targets
    """
    document = parse_document(source, format) if isinstance(source, str) else source

    if not document.get("name"):
        raise GraphError("Flow document must include 'name'", field="name")
    triggers: List[Dict[str, Any]] = document.get("triggers") or []
    steps: List[Dict[str, Any]] = document.get("steps") or []
    if not triggers:
        raise GraphError("Flow document must include at least one trigger", field="triggers")

    trigger_nodes = [_step_node(t, f"trigger_{i}") for i, t in enumerate(triggers)]
    step_nodes = [_step_node(s, f"step_{i}") for i, s in enumerate(steps)]
    nodes = trigger_nodes + step_nodes

    node_ids = [n.id for n in nodes]
    if len(node_ids) != len(set(node_ids)):
        raise GraphError("Flow document has duplicate step ids", field="steps")
    known = set(node_ids)

    edges: List[FlowEdge] = []

    def add_edge(source_id: str, target_id: str, label: str) -> None:
        if target_id not in known:
            raise GraphError(f"Step '{source_id}' jumps to unknown step '{target_id}'", field="steps")
        edges.append(FlowEdge(
            id=f"edge_{source_id}_{target_id}_{label}",
            source=source_id,
            target=target_id,
            label=label,
        ))

    for index, (entry, node) in enumerate(zip(steps, step_nodes)):
        previous = trigger_nodes[0] if index == 0 else step_nodes[index - 1]
        add_edge(previous.id, node.id, SUCCESS_LABEL)

        next_id = step_nodes[index + 1].id if index + 1 < len(step_nodes) else None
        on_success = entry.get("on_success")
        if on_success and on_success != next_id:
            add_edge(node.id, str(on_success), JUMP_LABEL)
        on_error = entry.get("on_error")
        if on_error:
            add_edge(node.id, str(on_error), ERROR_LABEL)

    return FlowDefinition(
        id=str(document.get("id") or uuid.uuid4()),
        name=document["name"],
        version=str(document.get("version") or "1.0"),
        description=document.get("description"),
        enabled=document.get("enabled", True) is not False,
        tags=list(document.get("tags") or []),
        nodes=nodes,
        edges=edges,
        metadata=dict(document.get("metadata") or {}),
    )


def _find_edge(edges: List[FlowEdge], *fragments: str) -> Optional[FlowEdge]:
    for edge in edges:
        label = (edge.label or "").lower()
        if any(fragment in label for fragment in fragments):
            return edge
    return None


def export_flow(flow: FlowDefinition) -> Dict[str, Any]:
    """
    Convert a FlowDefinition back into a step-list document.

    Nodes without incoming edges become triggers, the rest become steps in
    declaration order. A success edge to the following step is implicit
    and not written out.
    """
    targets = {edge.target for edge in flow.edges}
    trigger_nodes = [n for n in flow.nodes if n.id not in targets]
    step_nodes = [n for n in flow.nodes if n.id in targets]

    def describe(node: FlowNode, next_id: Optional[str]) -> Dict[str, Any]:
        entry: Dict[str, Any] = {"id": node.id, "kind": node.kind}
        if node.label:
            entry["label"] = node.label
        entry["config"] = dict(node.config)

        outgoing = flow.outgoing_edges(node.id)
        jump = _find_edge(outgoing, JUMP_LABEL)
        if jump is None:
            success = _find_edge(outgoing, SUCCESS_LABEL)
            if success is not None and success.target != next_id:
                jump = success
        if jump is not None:
            entry["on_success"] = jump.target

        error = _find_edge(outgoing, ERROR_LABEL, "false")
        if error is not None:
            entry["on_error"] = error.target
        return entry

    steps = []
    for index, node in enumerate(step_nodes):
        next_id = step_nodes[index + 1].id if index + 1 < len(step_nodes) else None
        steps.append(describe(node, next_id))

    first_step = step_nodes[0].id if step_nodes else None
    document: Dict[str, Any] = {
        "id": flow.id,
        "name": flow.name,
        "version": flow.version,
    }
    if flow.description:
        document["description"] = flow.description
    document["enabled"] = flow.enabled
    if flow.tags:
        document["tags"] = list(flow.tags)
    document["triggers"] = [describe(node, first_step) for node in trigger_nodes]
    document["steps"] = steps
    if flow.metadata:
        document["metadata"] = dict(flow.metadata)
    return document


def dump_document(document: Dict[str, Any], format: str = "yaml") -> str:
    if format == "json":
        return json.dumps(document, indent=2, default=str)
    return yaml.safe_dump(document, sort_keys=False, default_flow_style=False)


def export_flow_text(flow: FlowDefinition, format: str = "yaml") -> str:
    return dump_document(export_flow(flow), format)
