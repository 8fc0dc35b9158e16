"""Bundle evaluation loop and run status aggregation.

PolicyEvaluator runs every caller-supplied policy bundle, in order, against
one organization snapshot. For each bundle a PolicyProcessor is bound to the
run's shared scaffolding and the bundle's context labels; it calls the policy
engine and maps each verdict to records through the configured emitter.

A failing bundle never stops the loop: its BundleEvaluationError (or any other
exception, wrapped as one; cancellation still propagates) is collected and the
remaining bundles still run. aggregate_run_status() then reduces the
collected failures to one ExecutionStatus and at most one CombinedBundleError.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime

from github_settings_worker.core.interfaces import IEvidenceEmitter, IPolicyEngine
from github_settings_worker.core.models import (
    Activity,
    EvaluationResults,
    ExecutionStatus,
    OrganizationSnapshot,
    ProvenanceScaffolding,
    Step,
)
from github_settings_worker.errors import BundleEvaluationError, CombinedBundleError
from github_settings_worker.observability import get_logger

logger = get_logger(__name__)

COMPILE_RESULTS_ACTIVITY = Activity(
    title="Compile Results",
    description=(
        "Using the output from policy execution, compile the resulting output to Observations "
        "and Findings, marking any violations, risks, and other OSCAL-familiar data"
    ),
    steps=(
        Step(
            title="Compile policy bundle",
            description=(
                "Using a locally addressable policy path, compile the policy files to an "
                "in memory executable."
            ),
        ),
        Step(
            title="Execute policy bundle",
            description=(
                "Using previously collected JSON-formatted organization settings data, "
                "execute the compiled policies"
            ),
        ),
    ),
)


def collect_data_activity(steps: list[Step]) -> Activity:
    """Wrap the fetcher's steps in the "Collect data" activity."""
    return Activity(
        title="Collect data",
        description="Collect data, and prepare collected data for validation in policy engine",
        steps=tuple(steps),
    )


def bundle_labels(snapshot: OrganizationSnapshot, bundle_path: str) -> dict[str, str]:
    """Per-bundle context map attached to every record from that bundle."""
    return {
        "provider": "github",
        "type": "organization",
        "organization": snapshot.login,
        "policy_path": bundle_path,
    }


@dataclass
class EvaluationOutcome:
    """Everything a single evaluation run hands back to its caller.

    Attributes:
        results: Records from every bundle that succeeded, in bundle order.
        status: Aggregated execution status.
        error: Combined bundle failures, or None if every bundle succeeded.
    """

    results: EvaluationResults = field(default_factory=EvaluationResults)
    status: ExecutionStatus = ExecutionStatus.SUCCESS
    error: CombinedBundleError | None = None


def aggregate_run_status(
    errors: list[BundleEvaluationError],
) -> tuple[ExecutionStatus, CombinedBundleError | None]:
    """Reduce per-bundle failures to one status and at most one error.

    The status reports whether the run produced usable output and stays
    SUCCESS even when some bundles failed; callers must also inspect the
    returned error.

    Args:
        errors: Per-bundle failures, in evaluation order.

    Returns:
        Tuple of (status, combined error or None).
    """
    if not errors:
        return ExecutionStatus.SUCCESS, None
    return ExecutionStatus.SUCCESS, CombinedBundleError(errors)


class PolicyProcessor:
    """Runs one bundle with provenance pre-bound.

    Args:
        engine: The policy engine.
        emitter: The emitter for the configured evidence shape.
        labels: Per-bundle context map.
        scaffolding: Run-wide provenance entities (shared, never copied).
        activities: Activities attached to every record.
    """

    def __init__(
        self,
        engine: IPolicyEngine,
        emitter: IEvidenceEmitter,
        labels: dict[str, str],
        scaffolding: ProvenanceScaffolding,
        activities: list[Activity],
    ) -> None:
        self._engine = engine
        self._emitter = emitter
        self._labels = labels
        self._scaffolding = scaffolding
        self._activities = activities

    async def generate_results(
        self,
        bundle_path: str,
        snapshot: OrganizationSnapshot,
    ) -> EvaluationResults:
        """Execute the bundle and map every verdict to records.

        Args:
            bundle_path: Policy bundle path.
            snapshot: The organization snapshot under test.

        Returns:
            Records produced by this bundle.

        Raises:
            BundleEvaluationError: If the engine fails for this bundle.
        """
        verdicts = await self._engine.generate_results(bundle_path, snapshot.document())
        collected_at = datetime.now(UTC)

        results = EvaluationResults()
        for verdict in verdicts:
            results.extend(
                self._emitter.emit(
                    verdict=verdict,
                    scaffolding=self._scaffolding,
                    activities=self._activities,
                    labels=self._labels,
                    collected_at=collected_at,
                )
            )
        return results


class PolicyEvaluator:
    """Evaluates an ordered sequence of policy bundles against a snapshot.

    Args:
        engine: The policy engine shared by every bundle.
        emitter: The emitter for the configured evidence shape.
    """

    def __init__(self, engine: IPolicyEngine, emitter: IEvidenceEmitter) -> None:
        self._engine = engine
        self._emitter = emitter

    async def evaluate(
        self,
        snapshot: OrganizationSnapshot,
        scaffolding: ProvenanceScaffolding,
        bundle_paths: list[str],
        step_activities: list[Activity] | None = None,
    ) -> EvaluationOutcome:
        """Run every bundle and aggregate the outcome.

        Bundles run one at a time in the order given. A bundle failure is
        recorded and the loop continues with the next bundle.

        Args:
            snapshot: The organization snapshot under test.
            scaffolding: Provenance entities built once for this run.
            bundle_paths: Policy bundle paths, in evaluation order.
            step_activities: Data collection activities to attach to records.

        Returns:
            EvaluationOutcome with all produced records, status and error.
        """
        activities = [*(step_activities or []), COMPILE_RESULTS_ACTIVITY]
        results = EvaluationResults()
        errors: list[BundleEvaluationError] = []

        logger.info(
            "Starting policy evaluation",
            org=snapshot.login,
            bundle_count=len(bundle_paths),
        )

        for bundle_path in bundle_paths:
            processor = PolicyProcessor(
                engine=self._engine,
                emitter=self._emitter,
                labels=bundle_labels(snapshot, bundle_path),
                scaffolding=scaffolding,
                activities=activities,
            )
            try:
                bundle_results = await processor.generate_results(bundle_path, snapshot)
            except BundleEvaluationError as exc:
                logger.warning(
                    "Policy bundle evaluation failed",
                    org=snapshot.login,
                    policy_path=bundle_path,
                    error=str(exc),
                )
                errors.append(exc)
                continue
            except Exception as exc:
                logger.exception(
                    "Policy bundle evaluation raised an unexpected error",
                    org=snapshot.login,
                    policy_path=bundle_path,
                )
                wrapped = BundleEvaluationError(bundle_path, f"{type(exc).__name__}: {exc}")
                wrapped.__cause__ = exc
                errors.append(wrapped)
                continue

            results.extend(bundle_results)
            logger.debug(
                "Policy bundle evaluated",
                org=snapshot.login,
                policy_path=bundle_path,
                **bundle_results.counts(),
            )

        status, error = aggregate_run_status(errors)

        logger.info(
            "Policy evaluation complete",
            org=snapshot.login,
            status=status.value,
            failed_bundles=len(errors),
            **results.counts(),
        )
        return EvaluationOutcome(results=results, status=status, error=error)
