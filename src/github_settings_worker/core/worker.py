"""Compliance worker: the Configure/Eval lifecycle around the pipeline.

Configure decodes and validates the plugin configuration, then builds an
immutable EvaluationPipeline holding the authenticated GitHub client. Eval
runs the pipeline for the configured organization:

1. Fetch the organization snapshot and the steps narrating the fetch.
2. Build the provenance scaffolding once for the run.
3. Evaluate every policy bundle, isolating per-bundle failures.
4. Hand the finished records to the evidence sink.

Configuration and fetch failures abort before any evidence exists.
Transmission failures are raised after evaluation with the outcome attached.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import httpx

from github_settings_worker.adapters.evidence_sink import HttpEvidenceSink, NullEvidenceSink
from github_settings_worker.adapters.github_client import GitHubClient
from github_settings_worker.adapters.opa_client import OPAClient
from github_settings_worker.adapters.policy_engine import OPAPolicyEngine
from github_settings_worker.core.config import PluginConfig
from github_settings_worker.core.emitters import get_emitter
from github_settings_worker.core.evaluator import (
    EvaluationOutcome,
    PolicyEvaluator,
    collect_data_activity,
)
from github_settings_worker.core.fetcher import OrganizationSnapshotFetcher
from github_settings_worker.core.interfaces import IEvidenceSink, IPolicyEngine
from github_settings_worker.core.scaffolding import build_scaffolding
from github_settings_worker.errors import ConfigurationError, FetchError, TransmissionError
from github_settings_worker.observability import get_logger
from github_settings_worker.settings import Settings

logger = get_logger(__name__)


@dataclass(frozen=True)
class EvaluationPipeline:
    """Fetch, scaffold and evaluate for one configured organization.

    Attributes:
        organization: Organization login being assessed.
        fetcher: Snapshot fetcher bound to an authenticated client.
        evaluator: Bundle evaluation loop.
    """

    organization: str
    fetcher: OrganizationSnapshotFetcher
    evaluator: PolicyEvaluator

    async def run(self, bundle_paths: list[str]) -> EvaluationOutcome:
        """Run one evaluation.

        Args:
            bundle_paths: Policy bundle paths, in evaluation order.

        Returns:
            The evaluation outcome.

        Raises:
            FetchError: If the organization snapshot cannot be retrieved.
        """
        snapshot, steps = await self.fetcher.fetch(self.organization)
        scaffolding = build_scaffolding(snapshot)
        return await self.evaluator.evaluate(
            snapshot=snapshot,
            scaffolding=scaffolding,
            bundle_paths=bundle_paths,
            step_activities=[collect_data_activity(steps)],
        )


class ComplianceWorker:
    """Long-lived worker driven by the host's Configure and Eval calls.

    Args:
        settings: Process-wide settings.
        policy_engine: Engine executing policy bundles.
        evidence_sink: Receiver of finished records.
        github_transport: Optional httpx transport for the GitHub client
            (used by tests to simulate GitHub).
    """

    def __init__(
        self,
        settings: Settings,
        policy_engine: IPolicyEngine,
        evidence_sink: IEvidenceSink,
        github_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._policy_engine = policy_engine
        self._evidence_sink = evidence_sink
        self._github_transport = github_transport
        self._emitter = get_emitter(settings.evidence_shape)
        self._pipeline: EvaluationPipeline | None = None

    @property
    def is_configured(self) -> bool:
        return self._pipeline is not None

    def configure(self, raw_config: Mapping[str, Any]) -> None:
        """Validate plugin configuration and build the evaluation pipeline.

        Args:
            raw_config: Configuration mapping from the host.

        Raises:
            ConfigurationError: If the configuration is invalid. The previous
                pipeline, if any, is left in place.
        """
        config = PluginConfig.from_mapping(raw_config)
        try:
            config.validate()
        except ConfigurationError as exc:
            logger.error(
                "Configuration validation failed. Ensure the correct data has been passed.",
                problems=exc.problems,
            )
            raise

        client = GitHubClient(
            token=config.token,
            api_url=config.api_url or self._settings.api_url,
            timeout_s=self._settings.github_timeout_s,
            transport=self._github_transport,
        )
        self._pipeline = EvaluationPipeline(
            organization=config.organization,
            fetcher=OrganizationSnapshotFetcher(client, include_teams=self._settings.include_teams),
            evaluator=PolicyEvaluator(engine=self._policy_engine, emitter=self._emitter),
        )
        logger.info(
            "Worker configured",
            org=config.organization,
            evidence_shape=self._settings.evidence_shape.value,
            include_teams=self._settings.include_teams,
        )

    async def eval(self, bundle_paths: list[str]) -> EvaluationOutcome:
        """Evaluate the configured organization and transmit the records.

        Args:
            bundle_paths: Policy bundle paths, in evaluation order.

        Returns:
            The evaluation outcome. Its status and error must both be checked:
            bundle failures are reported through error alone.

        Raises:
            ConfigurationError: If configure() has not succeeded yet.
            FetchError: If the organization snapshot cannot be retrieved.
            TransmissionError: If the sink rejects the records; the outcome is
                attached as ``exc.outcome``.
        """
        if self._pipeline is None:
            raise ConfigurationError(["worker has not been configured"])

        try:
            outcome = await self._pipeline.run(bundle_paths)
        except FetchError as exc:
            logger.error("Failed to fetch data", org=exc.organization, error=str(exc))
            raise

        try:
            await self._evidence_sink.send(outcome.results)
        except TransmissionError as exc:
            exc.outcome = outcome
            raise

        return outcome


def create_default_worker(settings: Settings) -> ComplianceWorker:
    """Create a ComplianceWorker wired to OPA and the configured collector.

    Args:
        settings: Process-wide settings.

    Returns:
        An unconfigured ComplianceWorker.
    """
    engine = OPAPolicyEngine(
        OPAClient(opa_url=settings.opa_url, eval_timeout_ms=settings.policy_eval_timeout_ms),
        policy_prefix=settings.opa_policy_prefix,
    )
    sink: IEvidenceSink
    if settings.collector_url:
        sink = HttpEvidenceSink(settings.collector_url, timeout_s=settings.collector_timeout_s)
    else:
        sink = NullEvidenceSink()
    return ComplianceWorker(settings=settings, policy_engine=engine, evidence_sink=sink)
