"""Pydantic request and response schemas for the worker host API.

All API inputs and outputs use Pydantic models, never raw dicts.
"""

from typing import Any

from pydantic import BaseModel, Field

from github_settings_worker.core.evaluator import EvaluationOutcome
from github_settings_worker.core.models import ExecutionStatus


class ConfigureRequest(BaseModel):
    """Request body for configuring the worker."""

    config: dict[str, Any] = Field(
        description="Plugin configuration: token (or api_key), organization, optional api_url",
    )


class ConfigureResponse(BaseModel):
    """Response schema for a successful configuration."""

    configured: bool = Field(default=True, description="Whether the worker is configured")


class EvalRequest(BaseModel):
    """Request body for one evaluation."""

    policy_paths: list[str] = Field(
        default_factory=list,
        description="Policy bundle paths, evaluated in the given order",
    )


class EvalResponse(BaseModel):
    """Response schema for one evaluation.

    status and error must both be inspected: status stays SUCCESS when only
    some bundles failed, and the failures are listed in error/failed_bundles.
    """

    status: ExecutionStatus = Field(description="Execution status: SUCCESS | FAILURE")
    error: str | None = Field(default=None, description="Combined error message, if any")
    error_kind: str | None = Field(
        default=None,
        description="Failure category: bundle | fetch | transmission",
    )
    failed_bundles: list[str] = Field(default_factory=list, description="Bundles that failed")
    evidence_count: int = Field(default=0, description="Evidence records produced")
    observation_count: int = Field(default=0, description="Observations produced")
    finding_count: int = Field(default=0, description="Findings produced")

    @classmethod
    def from_outcome(cls, outcome: EvaluationOutcome) -> "EvalResponse":
        """Build a response from a completed evaluation outcome."""
        return cls(
            status=outcome.status,
            error=str(outcome.error) if outcome.error else None,
            error_kind="bundle" if outcome.error else None,
            failed_bundles=outcome.error.failed_bundles if outcome.error else [],
            evidence_count=len(outcome.results.evidences),
            observation_count=len(outcome.results.observations),
            finding_count=len(outcome.results.findings),
        )


class HealthResponse(BaseModel):
    """Response schema for the health endpoint."""

    status: str = Field(default="ok")
    configured: bool = Field(description="Whether Configure has succeeded")
