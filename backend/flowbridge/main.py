# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
FlowBridge API - application factory and entry point.

create_app wires the engine (interface registry, token cache, dispatcher,
executor registry, orchestrator, stores) and stores the FlowService in
app.state for dependency injection.
"""
# Load environment variables from .env file (local development)
from dotenv import load_dotenv
from pathlib import Path
_env_path = Path(__file__).parent.parent.parent / ".env"
if _env_path.exists():
    load_dotenv(_env_path)

from contextlib import asynccontextmanager
from typing import Optional

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from flowbridge import __version__
from flowbridge.api import flows, runs as runs_api
from flowbridge.auth.provider import OutboundTokenProvider
from flowbridge.auth.token_cache import TokenCache
from flowbridge.core.config import Config, get_config
from flowbridge.core.errors import FlowBridgeError, sanitize_error_for_user
from flowbridge.core.logging import get_service_logger
from flowbridge.engine.orchestrator import FlowOrchestrator
from flowbridge.execution_store import FileRunStore, InMemoryRunStore, RunStore
from flowbridge.executors import build_default_registry
from flowbridge.executors.notification import SmtpTransport
from flowbridge.flow_store import FlowRepository
from flowbridge.interfaces.dispatcher import InterfaceDispatcher
from flowbridge.interfaces.repository import InterfaceRepository
from flowbridge.services.flow_service import FlowService

logger = get_service_logger("api")


def build_run_store(config: Config) -> RunStore:
    if config.run_store == "file":
        return FileRunStore(Path(config.runs_path))
    return InMemoryRunStore()


def create_app(
    config: Optional[Config] = None,
    interfaces: Optional[InterfaceRepository] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    mail_transport: Optional[SmtpTransport] = None,
    run_store: Optional[RunStore] = None
) -> FastAPI:
    """
    Build the FastAPI application.

    Every collaborator can be injected; anything not given is built from
    the configuration. Start-up loads the flow directory and the interface
    registry file when they exist.
    """
    config = config or get_config()
    interfaces = interfaces if interfaces is not None else InterfaceRepository()
    client = http_client or httpx.AsyncClient(timeout=config.http_timeout)

    token_cache = TokenCache(
        stale_after=config.token_refresh_stale_after,
        expiry_skew=config.token_expiry_skew
    )
    token_provider = OutboundTokenProvider(interfaces, token_cache, client)
    dispatcher = InterfaceDispatcher(
        interfaces,
        token_provider=token_provider,
        http_client=client,
        timeout=config.http_timeout,
        retry_attempts=config.http_retry_attempts,
        retry_delay=config.http_retry_delay
    )
    if mail_transport is None:
        mail_transport = SmtpTransport(
            host=config.smtp_host,
            port=config.smtp_port,
            username=config.smtp_username,
            password=config.get_smtp_password(),
            use_tls=config.smtp_use_tls,
            timeout=config.http_timeout
        )
    registry = build_default_registry(interfaces, dispatcher, mail_transport, email_from=config.email_from)

    flow_repository = FlowRepository(Path(config.flows_path))
    runs = run_store or build_run_store(config)
    orchestrator = FlowOrchestrator(flow_repository, runs, registry, emulation_mode=config.emulation_mode)
    flow_service = FlowService(flow_repository, orchestrator, runs)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Startup:
        1. Load flow definitions from the flows directory
        2. Load the interface registry file

        Shutdown: close the shared HTTP client if we created it.
        """
        flow_repository.load_directory()
        interfaces_file = Path(config.interfaces_config_path)
        if interfaces_file.exists():
            interfaces.load_file(interfaces_file)
        else:
            logger.info(f"Interface registry file not found, starting empty: {interfaces_file}")
        logger.info(f"FlowBridge started (emulation_mode={config.emulation_mode}, run_store={config.run_store})")
        yield
        if http_client is None:
            await client.aclose()
        logger.info("FlowBridge stopped")

    app = FastAPI(
        title="FlowBridge",
        description="Integration flow execution engine",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # In production, specify exact origins
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Store runtime objects in app.state for dependency injection
    app.state.config = config
    app.state.interfaces = interfaces
    app.state.orchestrator = orchestrator
    app.state.flow_service = flow_service

    @app.exception_handler(FlowBridgeError)
    async def flowbridge_error_handler(request: Request, exc: FlowBridgeError):
        body = exc.to_dict()
        body["message"] = sanitize_error_for_user(exc, include_type=False)
        return JSONResponse(status_code=exc.status_code, content=body)

    app.include_router(flows.router)
    app.include_router(runs_api.router)

    @app.get("/health")
    async def health():
        """Health check"""
        return {
            "status": "healthy",
            "service": "flowbridge",
            "version": __version__,
            "active_runs": len(orchestrator.active_runs),
        }

    return app


def main() -> None:
    config = get_config()
    uvicorn.run(
        "flowbridge.main:create_app",
        factory=True,
        host=config.service_host,
        port=config.service_port,
    )


if __name__ == "__main__":
    main()
