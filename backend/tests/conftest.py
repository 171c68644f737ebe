# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Shared fixtures for FlowBridge unit and engine tests.
"""

import os
import sys

import pytest

# Add backend to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from flowbridge.models.flow import ExecutionContext, FlowNode


# ============================================================================
# Execution Context Fixtures
# ============================================================================

@pytest.fixture
def context():
    """Execution context for a live (non-emulated) run"""
    return ExecutionContext(
        flow_id="flow-1",
        flow_name="Test Flow",
        flow_version="1.0",
        run_id="run_20250101_120000_abcdef12",
        trace_id="trace-1",
    )


@pytest.fixture
def emulated_context():
    """Execution context for an emulated run"""
    return ExecutionContext(
        flow_id="flow-1",
        flow_name="Test Flow",
        flow_version="1.0",
        run_id="run_20250101_120000_abcdef12",
        trace_id="trace-1",
        emulation_mode=True,
    )


@pytest.fixture
def make_node():
    """Factory for FlowNode instances"""
    def _make(kind: str, node_id: str = "node-1", **config):
        return FlowNode(id=node_id, kind=kind, config=config)
    return _make
