# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
API tests for the FlowBridge application

Runs the real app factory against a temporary flows directory and an
empty interface registry.
"""

import json

import pytest
from fastapi.testclient import TestClient

from flowbridge.core.config import Config
from flowbridge.main import create_app


ORDERS_FLOW = """
id: orders
name: Orders cleanup
triggers:
  - id: start
    kind: manual_trigger
steps:
  - id: build
    kind: json_builder
    config:
      remove_null: true
"""


@pytest.fixture
def flows_dir(tmp_path):
    return tmp_path / "flows"


@pytest.fixture
def client(tmp_path, flows_dir):
    """Test client with lifespan events"""
    config = Config(
        flows_path=str(flows_dir),
        interfaces_config_path=str(tmp_path / "interfaces.yaml"),
        runs_path=str(tmp_path / "runs"),
    )
    with TestClient(create_app(config)) as test_client:
        yield test_client


@pytest.fixture
def imported(client):
    response = client.post("/flows/import", json={"content": ORDERS_FLOW})
    assert response.status_code == 200
    return response.json()


def test_health(client):
    """GET /health reports the service"""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["service"] == "flowbridge"
    assert data["active_runs"] == 0


def test_import_and_list(client, imported, flows_dir):
    """Imported flows are listed and written to the flows directory"""
    assert imported["id"] == "orders"
    assert [n["id"] for n in imported["nodes"]] == ["start", "build"]

    response = client.get("/flows")
    assert response.status_code == 200
    assert response.json() == [{
        "id": "orders",
        "name": "Orders cleanup",
        "version": "1.0",
        "enabled": True,
        "description": "",
        "nodes": 2,
    }]
    assert (flows_dir / "orders.json").exists()


def test_get_flow(client, imported):
    response = client.get("/flows/orders")
    assert response.status_code == 200
    assert response.json()["edges"][0]["source"] == "start"


def test_get_missing_flow(client):
    response = client.get("/flows/ghost")
    assert response.status_code == 404


def test_import_rejects_unknown_format(client):
    response = client.post("/flows/import", json={"content": ORDERS_FLOW, "format": "toml"})
    assert response.status_code == 400
    assert response.json()["error"] == "ValidationError"


def test_import_rejects_flow_without_trigger(client):
    response = client.post("/flows/import", json={"content": "name: Empty\nsteps: []\n"})
    assert response.status_code == 400
    assert response.json()["error"] == "GraphError"


def test_export(client, imported):
    response = client.get("/flows/orders/export", params={"format": "json"})
    assert response.status_code == 200
    data = response.json()
    assert data["format"] == "json"
    document = json.loads(data["content"])
    assert [s["id"] for s in document["steps"]] == ["build"]
    assert document["triggers"][0]["kind"] == "manual_trigger"


def test_export_missing_flow(client):
    assert client.get("/flows/ghost/export").status_code == 404


def test_execute_and_read_run(client, imported):
    """Execute returns the finished run; the run is readable afterwards"""
    response = client.post("/flows/orders/execute", json={"input": {"sku": "A", "note": None}})
    assert response.status_code == 200
    run = response.json()
    assert run["status"] == "completed"
    assert run["output_data"] == {"sku": "A"}
    assert run["executed_nodes"] == ["start", "build"]

    response = client.get(f"/runs/{run['id']}")
    assert response.status_code == 200
    assert len(response.json()["node_executions"]) == 2

    response = client.get("/flows/orders/runs")
    assert response.status_code == 200
    assert [r["id"] for r in response.json()] == [run["id"]]


def test_execute_without_body(client, imported):
    response = client.post("/flows/orders/execute")
    assert response.status_code == 200
    assert response.json()["status"] == "completed"


def test_failed_run_is_not_an_http_error(client):
    """Node failures are reported on the run, not as HTTP errors"""
    flow = {
        "id": "broken",
        "name": "Broken",
        "nodes": [
            {"id": "start", "kind": "manual_trigger"},
            {"id": "build", "kind": "json_builder", "config": {"output_format": "yaml"}},
        ],
        "edges": [{"source": "start", "target": "build"}],
    }
    assert client.post("/flows", json=flow).status_code == 200

    response = client.post("/flows/broken/execute", json={"input": {}})
    assert response.status_code == 200
    run = response.json()
    assert run["status"] == "failed"
    assert run["error_node"] == "build"
    assert run["error_type"] == "ConfigurationError"


def test_execute_missing_flow(client):
    assert client.post("/flows/ghost/execute").status_code == 404


def test_rejected_flow_id_is_not_registered(client):
    flow = {"id": "../evil", "name": "Evil", "nodes": [{"id": "start", "kind": "manual_trigger"}]}
    response = client.post("/flows", json=flow)
    assert response.status_code == 400
    assert client.get("/flows").json() == []


def test_execute_disabled_flow(client):
    flow = {"id": "off", "name": "Off", "enabled": False, "nodes": [{"id": "start", "kind": "manual_trigger"}]}
    client.post("/flows", json=flow)
    assert client.post("/flows/off/execute").status_code == 409


def test_runs_for_missing_flow(client):
    assert client.get("/flows/ghost/runs").status_code == 404


def test_missing_run(client):
    assert client.get("/runs/run_missing").status_code == 404
