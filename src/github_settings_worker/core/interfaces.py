"""Abstract interfaces (Protocol classes) for the worker.

The evaluation pipeline depends on these protocols, never on concrete
adapters, so tests can substitute simulated collaborators.

Protocols defined:
- IGitHubClient
- IPolicyEngine
- IEvidenceEmitter
- IEvidenceSink
"""

from datetime import datetime
from typing import Any, Protocol

from github_settings_worker.core.models import (
    Activity,
    EvaluationResults,
    PolicyVerdict,
    ProvenanceScaffolding,
)


class IGitHubClient(Protocol):
    """Read-only access to the GitHub organization API."""

    async def get_organization(self, login: str) -> dict[str, Any]:
        """Fetch the organization settings resource.

        Args:
            login: Organization login.

        Returns:
            The decoded JSON body.
        """
        ...

    async def list_teams(self, login: str) -> list[dict[str, Any]]:
        """Fetch every team of the organization, following pagination.

        Args:
            login: Organization login.

        Returns:
            All teams across all pages, in page order.
        """
        ...


class IPolicyEngine(Protocol):
    """Compiles and executes one policy bundle against a document."""

    async def generate_results(
        self,
        bundle_path: str,
        document: dict[str, Any],
    ) -> list[PolicyVerdict]:
        """Evaluate every policy in a bundle.

        Args:
            bundle_path: Location of the bundle the engine can resolve.
            document: JSON document under test, passed as policy input.

        Returns:
            One verdict per executed policy; possibly empty.

        Raises:
            BundleEvaluationError: If the bundle cannot be resolved, compiled
                or executed.
        """
        ...


class IEvidenceEmitter(Protocol):
    """Maps one verdict onto the record shape the collector expects."""

    def emit(
        self,
        verdict: PolicyVerdict,
        scaffolding: ProvenanceScaffolding,
        activities: list[Activity],
        labels: dict[str, str],
        collected_at: datetime,
    ) -> EvaluationResults:
        """Build the records for a verdict.

        Args:
            verdict: The policy verdict.
            scaffolding: Run-wide provenance entities.
            activities: Activities that produced the verdict.
            labels: Per-bundle context map.
            collected_at: Evaluation timestamp.

        Returns:
            A collection holding the new records only.
        """
        ...


class IEvidenceSink(Protocol):
    """Downstream receiver of finished evidence."""

    async def send(self, results: EvaluationResults) -> None:
        """Hand finished records to the collector.

        Raises:
            TransmissionError: If the collector does not accept the records.
        """
        ...
