"""API router for the GitHub settings worker host.

Carries the host's Configure and Eval calls over HTTP. Routes are thin;
all behaviour lives in ComplianceWorker.

Endpoints:
- POST /configure — validate plugin configuration and build the pipeline
- POST /eval      — evaluate policy bundles and transmit the records
- GET  /health    — liveness and configuration state
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse

from github_settings_worker.api.schemas import (
    ConfigureRequest,
    ConfigureResponse,
    EvalRequest,
    EvalResponse,
    HealthResponse,
)
from github_settings_worker.core.models import ExecutionStatus
from github_settings_worker.core.worker import ComplianceWorker
from github_settings_worker.errors import ConfigurationError, FetchError, TransmissionError

router = APIRouter(tags=["worker"])


def get_worker(request: Request) -> ComplianceWorker:
    """Return the process-wide worker stored on app state."""
    return request.app.state.worker


@router.post("/configure", response_model=ConfigureResponse)
async def configure(
    body: ConfigureRequest,
    worker: Annotated[ComplianceWorker, Depends(get_worker)],
) -> ConfigureResponse:
    """Validate and apply plugin configuration."""
    try:
        worker.configure(body.config)
    except ConfigurationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"error_kind": "configuration", "problems": exc.problems},
        ) from exc
    return ConfigureResponse()


@router.post("/eval", response_model=EvalResponse)
async def evaluate(
    body: EvalRequest,
    worker: Annotated[ComplianceWorker, Depends(get_worker)],
) -> EvalResponse | JSONResponse:
    """Evaluate every policy bundle for the configured organization."""
    if not worker.is_configured:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Worker has not been configured",
        )

    try:
        outcome = await worker.eval(body.policy_paths)
    except FetchError as exc:
        failure = EvalResponse(status=ExecutionStatus.FAILURE, error=str(exc), error_kind="fetch")
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content=failure.model_dump(mode="json"),
        )
    except TransmissionError as exc:
        failure = (
            EvalResponse.from_outcome(exc.outcome)
            if exc.outcome is not None
            else EvalResponse(status=ExecutionStatus.FAILURE)
        )
        failure = failure.model_copy(
            update={
                "status": ExecutionStatus.FAILURE,
                "error": str(exc),
                "error_kind": "transmission",
            }
        )
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content=failure.model_dump(mode="json"),
        )

    return EvalResponse.from_outcome(outcome)


@router.get("/health", response_model=HealthResponse)
async def health(worker: Annotated[ComplianceWorker, Depends(get_worker)]) -> HealthResponse:
    """Report liveness and whether Configure has succeeded."""
    return HealthResponse(configured=worker.is_configured)
