# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Engine tests for FlowOrchestrator: routing, tracing, failure and isolation
"""

import asyncio
import re
from typing import Any, List, Tuple
from unittest.mock import AsyncMock

import httpx
import pytest

from flowbridge.core.errors import DisabledError, NotFoundError
from flowbridge.engine.orchestrator import FlowOrchestrator, new_run_id, select_next_edge
from flowbridge.execution_store import FileRunStore, InMemoryRunStore
from flowbridge.executors.base import BaseExecutor, ExecutorRegistry
from flowbridge.executors.conditional import ConditionalExecutor
from flowbridge.executors.interface import InterfaceDestinationExecutor
from flowbridge.executors.triggers import ManualTriggerExecutor
from flowbridge.executors.validation import ValidationExecutor
from flowbridge.flow_dsl import compile_flow
from flowbridge.flow_store import FlowRepository
from flowbridge.interfaces.dispatcher import InterfaceDispatcher
from flowbridge.interfaces.repository import InterfaceRepository
from flowbridge.models.flow import (
    FlowDefinition,
    FlowEdge,
    FlowNode,
    NodeExecutionResult,
    RunStatus,
    TriggerSource,
)
from flowbridge.models.interface import HttpConfig, InterfaceConfig


class StepExecutor(BaseExecutor):
    """Appends the node id to a list input; records every call"""

    kind = "step"

    def __init__(self):
        self.calls: List[str] = []

    async def execute(self, node, input_data, context):
        self.calls.append(node.id)
        if node.config.get("delay"):
            await asyncio.sleep(node.config["delay"])
        metadata = {}
        if "condition_met" in node.config:
            metadata["condition_met"] = node.config["condition_met"]
        return NodeExecutionResult(output=list(input_data or []) + [node.id], metadata=metadata)


class BoomExecutor(BaseExecutor):
    kind = "boom"

    async def execute(self, node, input_data, context):
        raise ValueError("kaboom")


def build_flow(
    flow_id: str,
    nodes: List[Tuple[str, str]],
    edges: List[Tuple[str, str, Any]],
    **kwargs
) -> FlowDefinition:
    """nodes: (id, kind) or (id, kind, config); edges: (source, target, label)"""
    return FlowDefinition(
        id=flow_id,
        name=flow_id.title(),
        nodes=[
            FlowNode(id=n[0], kind=n[1], config=n[2] if len(n) > 2 else {})
            for n in nodes
        ],
        edges=[FlowEdge(source=s, target=t, label=label) for s, t, label in edges],
        **kwargs
    )


@pytest.fixture
def step():
    return StepExecutor()


@pytest.fixture
def flows():
    return FlowRepository()


@pytest.fixture
def runs():
    return InMemoryRunStore()


@pytest.fixture
def orchestrator(flows, runs, step):
    registry = ExecutorRegistry([
        ManualTriggerExecutor(),
        step,
        BoomExecutor(),
        ValidationExecutor(),
        ConditionalExecutor(),
    ])
    return FlowOrchestrator(flows, runs, registry)


# ============================================================================
# Edge selection
# ============================================================================

class TestSelectNextEdge:
    def test_no_edges(self):
        assert select_next_edge([], True) == (None, None)

    def test_single_edge_ignores_condition(self):
        edge = FlowEdge(source="a", target="b", label="false")
        assert select_next_edge([edge], True) == (edge, None)

    @pytest.mark.parametrize("condition_met,expected", [(True, "yes-node"), (False, "no-node")])
    def test_label_match(self, condition_met, expected):
        edges = [
            FlowEdge(source="a", target="no-node", label="No"),
            FlowEdge(source="a", target="yes-node", label="YES"),
        ]
        edge, warning = select_next_edge(edges, condition_met)
        assert edge.target == expected
        assert warning is None

    def test_fallback_warns(self):
        edges = [
            FlowEdge(source="a", target="left", label="left"),
            FlowEdge(source="a", target="right", label="right"),
        ]
        edge, warning = select_next_edge(edges, None)
        assert edge.target == "left"
        assert warning.startswith("Ambiguous routing")

    def test_partial_label_does_not_match(self):
        edges = [
            FlowEdge(source="a", target="x", label="first"),
            FlowEdge(source="a", target="y", label="is true"),
        ]
        edge, warning = select_next_edge(edges, True)
        assert edge.target == "x"
        assert warning is not None


def test_run_id_format():
    assert re.match(r"^run_\d{8}_\d{6}_[0-9a-f]{8}$", new_run_id())


# ============================================================================
# Walking the graph
# ============================================================================

class TestExecution:
    """Happy-path walks"""

    @pytest.mark.asyncio
    async def test_linear_chain(self, orchestrator, flows, runs, step):
        flows.save_flow(build_flow(
            "chain",
            [("start", "manual_trigger"), ("a", "step"), ("b", "step"), ("c", "step")],
            [("start", "a", None), ("a", "b", None), ("b", "c", None)],
        ))

        run = await orchestrator.execute_flow("chain", ["in"], TriggerSource.WEBHOOK)

        assert run.status == RunStatus.COMPLETED
        assert run.output_data == ["in", "a", "b", "c"]
        assert run.executed_nodes == ["start", "a", "b", "c"]
        assert [r.node_id for r in run.node_executions] == ["start", "a", "b", "c"]
        assert all(r.status == RunStatus.COMPLETED for r in run.node_executions)
        assert run.node_executions[1].input == ["in"]
        assert run.triggered_by == TriggerSource.WEBHOOK
        assert run.completed_at is not None
        assert run.duration_ms >= 0
        assert orchestrator.active_runs == {}

        stored = await runs.get(run.id)
        assert stored.status == RunStatus.COMPLETED
        assert [r.node_id for r in stored.node_executions] == ["start", "a", "b", "c"]

    @pytest.mark.asyncio
    async def test_diamond_runs_join_node_once(self, orchestrator, flows, step):
        flows.save_flow(build_flow(
            "diamond",
            [
                ("start", "manual_trigger"),
                ("a", "step", {"condition_met": True}),
                ("b", "step"),
                ("c", "step"),
                ("d", "step"),
            ],
            [
                ("start", "a", None),
                ("a", "b", "true"),
                ("a", "c", "false"),
                ("b", "d", None),
                ("c", "d", None),
            ],
        ))

        run = await orchestrator.execute_flow("diamond", [])

        assert step.calls == ["a", "b", "d"]
        assert run.output_data == ["a", "b", "d"]

    @pytest.mark.asyncio
    async def test_back_edge_ends_with_cached_output(self, orchestrator, flows, step):
        flows.save_flow(build_flow(
            "loop",
            [("start", "manual_trigger"), ("a", "step"), ("b", "step")],
            [("start", "a", None), ("a", "b", None), ("b", "a", None)],
        ))

        run = await orchestrator.execute_flow("loop", [])

        assert step.calls == ["a", "b"]
        assert run.status == RunStatus.COMPLETED
        assert run.output_data == ["a"]
        assert run.executed_nodes == ["start", "a", "b"]

    @pytest.mark.asyncio
    async def test_conditional_false_branch(self, orchestrator, flows, step):
        flows.save_flow(build_flow(
            "branch",
            [
                ("start", "manual_trigger"),
                ("check", "conditional", {"field": "qty", "operator": "greater_than", "value": 10}),
                ("big", "step"),
                ("small", "step"),
            ],
            [("start", "check", None), ("check", "big", "true"), ("check", "small", "false")],
        ))

        run = await orchestrator.execute_flow("branch", {"qty": 3})

        assert step.calls == ["small"]
        check = run.node_executions[1]
        assert check.metadata["condition_met"] is False
        assert check.warnings == []

    @pytest.mark.asyncio
    async def test_ambiguous_branch_recorded(self, orchestrator, flows, step):
        flows.save_flow(build_flow(
            "fanout",
            [("start", "manual_trigger"), ("a", "step"), ("left", "step"), ("right", "step")],
            [("start", "a", None), ("a", "left", "left"), ("a", "right", "right")],
        ))

        run = await orchestrator.execute_flow("fanout", [])

        assert step.calls == ["a", "left"]
        record = run.node_executions[1]
        assert record.node_id == "a"
        assert len(record.warnings) == 1
        assert "Ambiguous routing" in record.warnings[0]

    @pytest.mark.parametrize("check_config, expected_calls, warned", [
        ({}, ["check", "alert"], True),
        ({"condition_met": False}, ["check", "alert"], False),
        ({"condition_met": True}, ["check", "send", "alert"], False),
    ])
    @pytest.mark.asyncio
    async def test_step_list_on_error_routing(
        self, orchestrator, flows, step, check_config, expected_calls, warned
    ):
        """on_error routes by condition_met; without it the first declared edge wins"""
        flows.save_flow(compile_flow({
            "id": "steps",
            "name": "Steps",
            "triggers": [{"id": "start", "kind": "manual_trigger"}],
            "steps": [
                {"id": "check", "kind": "step", "config": check_config, "on_error": "alert"},
                {"id": "send", "kind": "step"},
                {"id": "alert", "kind": "step"},
            ],
        }))

        run = await orchestrator.execute_flow("steps", [])

        assert step.calls == expected_calls
        check_record = run.node_executions[1]
        assert check_record.node_id == "check"
        assert bool(check_record.warnings) is warned

    @pytest.mark.asyncio
    async def test_validation_continue_on_error(self, orchestrator, flows, step):
        flows.save_flow(build_flow(
            "validate",
            [
                ("start", "manual_trigger"),
                ("check", "validation", {
                    "rules": {"qty": {"type": "number", "min": 0}},
                    "continue_on_error": True,
                }),
                ("after", "step"),
            ],
            [("start", "check", None), ("check", "after", None)],
        ))

        run = await orchestrator.execute_flow("validate", [{"qty": 1}, {"qty": -1}])

        assert run.status == RunStatus.COMPLETED
        record = run.node_executions[1]
        assert record.output == [{"qty": 1}]
        assert record.metadata["invalid_count"] == 1
        assert record.metadata["outputs"][1][0]["data"] == {"qty": -1}
        assert run.output_data == [{"qty": 1}, "after"]


# ============================================================================
# Failures
# ============================================================================

class TestFailures:
    """Failures end the run with a trace up to the failing node"""

    @pytest.mark.asyncio
    async def test_failing_node(self, orchestrator, flows, runs, step):
        flows.save_flow(build_flow(
            "fails",
            [("start", "manual_trigger"), ("a", "step"), ("explode", "boom"), ("c", "step")],
            [("start", "a", None), ("a", "explode", None), ("explode", "c", None)],
        ))

        run = await orchestrator.execute_flow("fails", [])

        assert run.status == RunStatus.FAILED
        assert run.error == "kaboom"
        assert run.error_type == "ValueError"
        assert run.error_node == "explode"
        assert run.executed_nodes == ["start", "a"]
        assert step.calls == ["a"]

        failed = run.node_executions[-1]
        assert failed.node_id == "explode"
        assert failed.status == RunStatus.FAILED
        assert failed.error_type == "ValueError"
        assert failed.input == ["a"]

        stored = await runs.get(run.id)
        assert stored.status == RunStatus.FAILED
        assert len(stored.node_executions) == 3

    @pytest.mark.asyncio
    async def test_validation_failure_details_in_trace(self, orchestrator, flows):
        flows.save_flow(build_flow(
            "strict",
            [("start", "manual_trigger"), ("check", "validation", {"rules": {"qty": {"required": True}}})],
            [("start", "check", None)],
        ))

        run = await orchestrator.execute_flow("strict", {"sku": "A"})

        assert run.status == RunStatus.FAILED
        assert run.error_type == "ValidationError"
        assert run.error_node == "check"
        assert run.node_executions[-1].metadata["invalid_count"] == 1

    @pytest.mark.asyncio
    async def test_unknown_kind_fails_before_any_node(self, orchestrator, flows, runs, step):
        flows.save_flow(build_flow(
            "unknown",
            [("start", "manual_trigger"), ("a", "step"), ("x", "teleport")],
            [("start", "a", None), ("a", "x", None)],
        ))

        run = await orchestrator.execute_flow("unknown", [])

        assert run.status == RunStatus.FAILED
        assert run.error_type == "UnknownNodeKindError"
        assert "teleport" in run.error
        assert run.error_node is None
        assert run.node_executions == []
        assert step.calls == []
        assert (await runs.get(run.id)).status == RunStatus.FAILED

    @pytest.mark.asyncio
    async def test_multiple_entry_nodes(self, orchestrator, flows, step):
        flows.save_flow(build_flow(
            "two-entries",
            [("a", "step"), ("b", "step")],
            [],
        ))

        run = await orchestrator.execute_flow("two-entries", [])

        assert run.status == RunStatus.FAILED
        assert run.error_type == "GraphError"
        assert step.calls == []

    @pytest.mark.asyncio
    async def test_missing_flow(self, orchestrator, runs):
        with pytest.raises(NotFoundError):
            await orchestrator.execute_flow("ghost")
        assert await runs.list() == []

    @pytest.mark.asyncio
    async def test_disabled_flow(self, orchestrator, flows, runs):
        flows.save_flow(build_flow("off", [("start", "manual_trigger")], [], enabled=False))
        with pytest.raises(DisabledError):
            await orchestrator.execute_flow("off")
        assert await runs.list() == []

    @pytest.mark.asyncio
    async def test_connectivity_failure_trace(self, flows, runs):
        interfaces = InterfaceRepository()
        interfaces.save_interface(InterfaceConfig(
            id="erp", name="ERP", endpoint="https://erp.example.com/orders",
            http_config=HttpConfig(retry_attempts=3, retry_delay=0),
        ))
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(503)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        dispatcher = InterfaceDispatcher(interfaces, http_client=client, sleep=AsyncMock())
        registry = ExecutorRegistry([ManualTriggerExecutor(), InterfaceDestinationExecutor(dispatcher)])
        orchestrator = FlowOrchestrator(flows, runs, registry)
        flows.save_flow(build_flow(
            "push",
            [("start", "manual_trigger"), ("send", "interface_destination", {"interface_id": "erp"})],
            [("start", "send", None)],
        ))

        run = await orchestrator.execute_flow("push", {"sku": "A"})

        assert len(calls) == 3
        assert run.status == RunStatus.FAILED
        assert run.error_type == "ConnectivityError"
        assert run.error_node == "send"
        assert run.error.startswith("Failed after 3 attempts")
        attempts = run.node_executions[-1].metadata["attempts"]
        assert [a["status_code"] for a in attempts] == [503, 503, 503]


# ============================================================================
# Isolation, emulation and persistence
# ============================================================================

class TestRuns:
    @pytest.mark.asyncio
    async def test_concurrent_runs_are_isolated(self, orchestrator, flows):
        flows.save_flow(build_flow(
            "slow",
            [("start", "manual_trigger"), ("a", "step", {"delay": 0.02}), ("b", "step", {"delay": 0.01})],
            [("start", "a", None), ("a", "b", None)],
        ))

        first, second = await asyncio.gather(
            orchestrator.execute_flow("slow", ["x"]),
            orchestrator.execute_flow("slow", ["y"]),
        )

        assert first.id != second.id
        assert first.output_data == ["x", "a", "b"]
        assert second.output_data == ["y", "a", "b"]
        assert [r.node_id for r in first.node_executions] == ["start", "a", "b"]
        assert [r.node_id for r in second.node_executions] == ["start", "a", "b"]

    @pytest.mark.asyncio
    async def test_emulation_flags_outbound_calls(self, flows, runs):
        interfaces = InterfaceRepository()
        interfaces.save_interface(InterfaceConfig(id="erp", name="ERP", endpoint="https://erp.example.com"))
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.headers.get("x-flowbridge-test-call"))
            return httpx.Response(200, json={"ok": True})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        dispatcher = InterfaceDispatcher(interfaces, http_client=client, sleep=AsyncMock())
        registry = ExecutorRegistry([ManualTriggerExecutor(), InterfaceDestinationExecutor(dispatcher)])
        orchestrator = FlowOrchestrator(flows, runs, registry, emulation_mode=True)
        flows.save_flow(build_flow(
            "emulated",
            [("start", "manual_trigger"), ("send", "interface_destination", {"interface_id": "erp"})],
            [("start", "send", None)],
        ))

        run = await orchestrator.execute_flow("emulated", {"sku": "A"})

        assert run.status == RunStatus.COMPLETED
        assert seen == ["true"]
        assert run.node_executions[-1].metadata["test_call"] is True

    @pytest.mark.asyncio
    async def test_file_store_persists_trace(self, flows, step, tmp_path):
        runs = FileRunStore(tmp_path)
        orchestrator = FlowOrchestrator(flows, runs, ExecutorRegistry([ManualTriggerExecutor(), step]))
        flows.save_flow(build_flow(
            "persisted",
            [("start", "manual_trigger"), ("a", "step")],
            [("start", "a", None)],
        ))

        run = await orchestrator.execute_flow("persisted", [])

        stored = await runs.get(run.id)
        assert stored.status == RunStatus.COMPLETED
        assert stored.output_data == ["a"]
        assert [r.node_id for r in stored.node_executions] == ["start", "a"]
        assert [r.id for r in await runs.list(flow_id="persisted")] == [run.id]
