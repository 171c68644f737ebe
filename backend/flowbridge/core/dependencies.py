# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Dependency injection for the FlowBridge API.

Services are built once by create_app and stored in app.state; these
dependencies hand them to route handlers.
"""

from fastapi import Request

from flowbridge.services.flow_service import FlowService


def get_flow_service(request: Request) -> FlowService:
    """FlowService instance created at app start-up."""
    return request.app.state.flow_service
