#!/usr/bin/env python3
"""
MPC Dev Environment daemon - Main Entry Point

This is the thin orchestration layer that:
1. Loads configuration
2. Initializes modules
3. Serves the HTTP API used by IDE plugins and scripts

All business logic is in the modules, following black box principles.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from mpcdev.errors import (
    AlreadyRunningError,
    ClusterLifecycleError,
    DevEnvError,
    OperationInProgressError,
    OperationUnavailableError,
    UnsupportedFeatureError,
)
from mpcdev.logging_config import configure_logging
from mpcdev.modules.api import (
    ClusterStatusResponse,
    DevEnvironment,
    EnableFeatureRequest,
    ErrorResponse,
    ObservedClusterStatus,
    Operation,
    OperationStartedResponse,
    PrerequisiteCheckResult,
    RepositoryState,
)
from mpcdev.modules.config import get_config
from mpcdev.modules.environment import EnvironmentOrchestrator
from mpcdev.modules.operations import FEATURE_OPERATIONS

logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = {
    AlreadyRunningError: 409,
    OperationInProgressError: 409,
    OperationUnavailableError: 501,
    UnsupportedFeatureError: 400,
    ClusterLifecycleError: 500,
}


def _status_code(exc: DevEnvError) -> int:
    for exc_type, code in ERROR_STATUS_CODES.items():
        if isinstance(exc, exc_type):
            return code
    return 500


def create_app(orchestrator: Optional[EnvironmentOrchestrator] = None) -> FastAPI:
    """
    Create the API application.

    Args:
        orchestrator: Pre-built orchestrator (built from configuration at startup if None)
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting MPC Dev Environment daemon...")
        if app.state.orchestrator is None:
            app.state.orchestrator = EnvironmentOrchestrator.from_config(get_config())
        logger.info(f"Environment session {app.state.orchestrator.session_id} ready")

        yield

        logger.info("Shutting down MPC Dev Environment daemon...")
        await app.state.orchestrator.shutdown()
        logger.info("Shutdown complete")

    app = FastAPI(
        title="MPC Dev Environment API",
        description="Local development environment daemon for the Multi-Platform Controller",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.orchestrator = orchestrator

    def get_orchestrator(request: Request) -> EnvironmentOrchestrator:
        orch = request.app.state.orchestrator
        if orch is None:
            raise HTTPException(503, "Service not initialized")
        return orch

    @app.exception_handler(DevEnvError)
    async def dev_env_error_handler(request: Request, exc: DevEnvError):
        code = _status_code(exc)
        if code >= 500 and code != 501:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        output = exc.output if isinstance(exc, ClusterLifecycleError) and exc.output else None
        body = ErrorResponse(status=exc.kind, error=exc.message, output=output)
        return JSONResponse(status_code=code, content=body.model_dump(exclude_none=True))

    async def started(task_coro, operation: str, message: Optional[str] = None):
        await task_coro
        return JSONResponse(
            status_code=202,
            content=OperationStartedResponse(operation=operation, message=message).model_dump(),
        )

    # Health

    @app.get("/healthz")
    async def healthz():
        return {"status": "ok"}

    # Status

    @app.get("/api/status", response_model=DevEnvironment)
    async def get_status(request: Request):
        """Current environment snapshot; always answers, even when tooling is broken."""
        return await get_orchestrator(request).get_status()

    @app.get("/api/cluster/status", response_model=ClusterStatusResponse, response_model_exclude_none=True)
    async def cluster_status(request: Request):
        status = await get_orchestrator(request).cluster_status()
        error = "cluster status could not be determined" if status == ObservedClusterStatus.ERROR else None
        return ClusterStatusResponse(status=status, error=error)

    @app.get("/api/prerequisites", response_model=PrerequisiteCheckResult)
    async def prerequisites(request: Request):
        """Installed versions of the required tools; a failed check is reported, not raised."""
        return await get_orchestrator(request).check_prerequisites()

    # Cluster lifecycle

    @app.post("/api/cluster/start", status_code=202)
    async def cluster_start(request: Request):
        return await started(
            get_orchestrator(request).create_cluster(),
            Operation.CREATING_CLUSTER.value,
            "Cluster creation initiated. Use GET /api/cluster/status to check progress.",
        )

    @app.post("/api/cluster/stop")
    async def cluster_stop(request: Request):
        await get_orchestrator(request).destroy_environment()
        return {"status": "destroyed"}

    # Operations

    @app.post("/api/rebuild", status_code=202)
    async def rebuild(request: Request):
        return await started(get_orchestrator(request).rebuild(), Operation.REBUILDING.value)

    @app.post("/api/smoke-test", status_code=202)
    async def smoke_test(request: Request):
        return await started(get_orchestrator(request).smoke_test(), Operation.SMOKE_TESTING.value)

    @app.post("/api/metrics/deploy", status_code=202)
    async def deploy_metrics(request: Request):
        return await started(
            get_orchestrator(request).deploy_metrics(), Operation.DEPLOYING_METRICS.value
        )

    @app.post("/api/features/enable", status_code=202)
    async def enable_feature(payload: EnableFeatureRequest, request: Request):
        await get_orchestrator(request).enable_feature(payload.feature_name, payload.credentials)
        operation = FEATURE_OPERATIONS[payload.feature_name].value
        return JSONResponse(
            status_code=202,
            content=OperationStartedResponse(operation=operation).model_dump(),
        )

    # Repositories

    @app.put("/api/repositories/{name}", response_model=RepositoryState)
    async def put_repository(name: str, state: RepositoryState, request: Request):
        if state.name != name:
            raise HTTPException(400, "Repository name mismatch")
        await get_orchestrator(request).set_repository_state(state)
        return state

    return app


app = create_app()


def run() -> None:
    """Run the daemon with uvicorn."""
    config = get_config()
    configure_logging(config.get("log_level"))
    uvicorn.run(
        app,
        host=config.get("host"),
        port=config.get("port"),
        log_config=None,
    )


if __name__ == "__main__":
    run()
