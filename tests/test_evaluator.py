"""Tests for the bundle evaluation loop, emitters and run status aggregation."""

import asyncio
from datetime import UTC, datetime
from typing import Any

import pytest

from github_settings_worker.core.emitters import (
    EvidenceRecordEmitter,
    ObservationFindingEmitter,
    describe_violations,
    get_emitter,
)
from github_settings_worker.core.evaluator import (
    COMPILE_RESULTS_ACTIVITY,
    PolicyEvaluator,
    aggregate_run_status,
    collect_data_activity,
)
from github_settings_worker.core.models import (
    Activity,
    EvaluationResults,
    EvidenceShape,
    ExecutionStatus,
    OrganizationSnapshot,
    PolicyVerdict,
    ProvenanceScaffolding,
    Step,
    VerdictResult,
)
from github_settings_worker.core.scaffolding import build_scaffolding
from github_settings_worker.errors import BundleEvaluationError, CombinedBundleError
from tests.conftest import FakePolicyEngine, TwoFactorPolicyEngine, make_verdict


class SpyEmitter(EvidenceRecordEmitter):
    """Records the scaffolding object passed for every verdict."""

    def __init__(self) -> None:
        self.scaffoldings: list[ProvenanceScaffolding] = []

    def emit(self, verdict, scaffolding, activities, labels, collected_at) -> EvaluationResults:
        self.scaffoldings.append(scaffolding)
        return super().emit(verdict, scaffolding, activities, labels, collected_at)


# ---------------------------------------------------------------------------
# Run status aggregation
# ---------------------------------------------------------------------------


def test_aggregate_without_errors_is_success_and_no_error() -> None:
    assert aggregate_run_status([]) == (ExecutionStatus.SUCCESS, None)


def test_aggregate_with_errors_stays_success_but_returns_combined_error() -> None:
    errors = [
        BundleEvaluationError("bundles/a", "path does not exist"),
        BundleEvaluationError("bundles/b", "compile failed"),
    ]
    status, error = aggregate_run_status(errors)
    assert status is ExecutionStatus.SUCCESS
    assert isinstance(error, CombinedBundleError)
    assert error.failed_bundles == ["bundles/a", "bundles/b"]
    assert "bundles/a" in str(error)
    assert "compile failed" in str(error)


# ---------------------------------------------------------------------------
# Bundle evaluation loop
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_no_bundles_yields_empty_results_and_no_error(
    snapshot: OrganizationSnapshot,
    scaffolding: ProvenanceScaffolding,
) -> None:
    evaluator = PolicyEvaluator(FakePolicyEngine({}), EvidenceRecordEmitter())

    outcome = await evaluator.evaluate(snapshot, scaffolding, [])

    assert outcome.results.is_empty
    assert outcome.status is ExecutionStatus.SUCCESS
    assert outcome.error is None


@pytest.mark.asyncio
async def test_unresolvable_bundle_does_not_suppress_other_bundles(
    snapshot: OrganizationSnapshot,
    scaffolding: ProvenanceScaffolding,
) -> None:
    engine = FakePolicyEngine(
        {
            "bundles/first": [make_verdict("compliance_framework.first")],
            "bundles/last": [make_verdict("compliance_framework.last")],
        }
    )
    evaluator = PolicyEvaluator(engine, EvidenceRecordEmitter())

    outcome = await evaluator.evaluate(
        snapshot, scaffolding, ["bundles/first", "bundles/missing", "bundles/last"]
    )

    assert [e.labels["policy_id"] for e in outcome.results.evidences] == [
        "compliance_framework.first",
        "compliance_framework.last",
    ]
    assert outcome.status is ExecutionStatus.SUCCESS
    assert outcome.error is not None
    assert outcome.error.failed_bundles == ["bundles/missing"]
    assert [call[0] for call in engine.calls] == [
        "bundles/first",
        "bundles/missing",
        "bundles/last",
    ]


@pytest.mark.asyncio
async def test_every_failing_bundle_is_enumerated(
    snapshot: OrganizationSnapshot,
    scaffolding: ProvenanceScaffolding,
) -> None:
    engine = FakePolicyEngine({"bundles/broken": BundleEvaluationError("bundles/broken", "rego parse error")})
    evaluator = PolicyEvaluator(engine, EvidenceRecordEmitter())

    outcome = await evaluator.evaluate(snapshot, scaffolding, ["bundles/missing", "bundles/broken"])

    assert outcome.results.is_empty
    assert outcome.error is not None
    assert outcome.error.failed_bundles == ["bundles/missing", "bundles/broken"]
    assert "rego parse error" in str(outcome.error)


@pytest.mark.asyncio
async def test_unexpected_engine_exception_is_isolated_to_its_bundle(
    snapshot: OrganizationSnapshot,
    scaffolding: ProvenanceScaffolding,
) -> None:
    engine = FakePolicyEngine(
        {
            "bundles/crashing": RuntimeError("engine crashed"),
            "bundles/ok": [make_verdict("compliance_framework.ok")],
        }
    )
    evaluator = PolicyEvaluator(engine, EvidenceRecordEmitter())

    outcome = await evaluator.evaluate(snapshot, scaffolding, ["bundles/crashing", "bundles/ok"])

    assert len(outcome.results.evidences) == 1
    assert outcome.status is ExecutionStatus.SUCCESS
    assert outcome.error is not None
    (wrapped,) = outcome.error.errors
    assert wrapped.bundle_path == "bundles/crashing"
    assert isinstance(wrapped.__cause__, RuntimeError)
    assert "RuntimeError: engine crashed" in str(outcome.error)


class CancellingPolicyEngine:
    async def generate_results(self, bundle_path: str, document: dict[str, Any]) -> list:
        raise asyncio.CancelledError()


@pytest.mark.asyncio
async def test_cancellation_is_not_treated_as_a_bundle_failure(
    snapshot: OrganizationSnapshot,
    scaffolding: ProvenanceScaffolding,
) -> None:
    evaluator = PolicyEvaluator(CancellingPolicyEngine(), EvidenceRecordEmitter())

    with pytest.raises(asyncio.CancelledError):
        await evaluator.evaluate(snapshot, scaffolding, ["bundles/a"])


@pytest.mark.asyncio
async def test_scaffolding_is_shared_by_reference_across_bundles(
    snapshot: OrganizationSnapshot,
    scaffolding: ProvenanceScaffolding,
) -> None:
    engine = FakePolicyEngine(
        {
            "bundles/a": [make_verdict("p.a1"), make_verdict("p.a2")],
            "bundles/b": [make_verdict("p.b1")],
        }
    )
    emitter = SpyEmitter()

    await PolicyEvaluator(engine, emitter).evaluate(snapshot, scaffolding, ["bundles/a", "bundles/b"])

    assert len(emitter.scaffoldings) == 3
    assert all(s is scaffolding for s in emitter.scaffoldings)


@pytest.mark.asyncio
async def test_duplicates_across_bundles_are_preserved(
    snapshot: OrganizationSnapshot,
    scaffolding: ProvenanceScaffolding,
) -> None:
    verdict = make_verdict("p.same")
    engine = FakePolicyEngine({"bundles/a": [verdict], "bundles/b": [verdict]})

    outcome = await PolicyEvaluator(engine, EvidenceRecordEmitter()).evaluate(
        snapshot, scaffolding, ["bundles/a", "bundles/b"]
    )

    assert len(outcome.results.evidences) == 2
    assert [e.labels["policy_path"] for e in outcome.results.evidences] == ["bundles/a", "bundles/b"]


@pytest.mark.asyncio
async def test_engine_receives_snapshot_document(
    snapshot: OrganizationSnapshot,
    scaffolding: ProvenanceScaffolding,
) -> None:
    engine = FakePolicyEngine({"bundles/a": []})

    await PolicyEvaluator(engine, EvidenceRecordEmitter()).evaluate(snapshot, scaffolding, ["bundles/a"])

    (_, document) = engine.calls[0]
    assert document["login"] == "test-org"
    assert document["two_factor_requirement_enabled"] is False


@pytest.mark.asyncio
async def test_records_carry_labels_activities_and_provenance(
    snapshot: OrganizationSnapshot,
    scaffolding: ProvenanceScaffolding,
) -> None:
    engine = FakePolicyEngine({"bundles/a": [make_verdict("p.a")]})
    collect = collect_data_activity([Step(title="Query the organization endpoint", description="d")])

    outcome = await PolicyEvaluator(engine, EvidenceRecordEmitter()).evaluate(
        snapshot, scaffolding, ["bundles/a"], step_activities=[collect]
    )

    (evidence,) = outcome.results.evidences
    assert evidence.labels == {
        "provider": "github",
        "type": "organization",
        "organization": "test-org",
        "policy_path": "bundles/a",
        "policy_id": "p.a",
    }
    assert [a.title for a in evidence.activities] == ["Collect data", "Compile Results"]
    assert evidence.activities[1] == COMPILE_RESULTS_ACTIVITY
    assert evidence.subjects == list(scaffolding.subjects)
    assert evidence.inventory_items == list(scaffolding.inventory_items)
    assert evidence.origins == list(scaffolding.actors)
    assert evidence.controls == ["AC-1"]


@pytest.mark.asyncio
async def test_evaluation_is_idempotent_up_to_ordering(
    snapshot: OrganizationSnapshot,
    scaffolding: ProvenanceScaffolding,
) -> None:
    engine = FakePolicyEngine(
        {
            "bundles/a": [make_verdict("p.a", violations=[{"title": "bad"}])],
            "bundles/b": [make_verdict("p.b")],
        }
    )
    evaluator = PolicyEvaluator(engine, EvidenceRecordEmitter())

    def key(outcome) -> list[tuple[Any, ...]]:
        return sorted(
            (e.labels["policy_id"], e.result.value, e.reason) for e in outcome.results.evidences
        )

    first = await evaluator.evaluate(snapshot, scaffolding, ["bundles/a", "bundles/b"])
    second = await evaluator.evaluate(snapshot, scaffolding, ["bundles/b", "bundles/a"])

    assert key(first) == key(second)


@pytest.mark.asyncio
async def test_acme_without_two_factor_yields_one_failing_finding() -> None:
    snapshot = OrganizationSnapshot(login="acme", two_factor_requirement_enabled=False)
    scaffolding = build_scaffolding(snapshot)
    evaluator = PolicyEvaluator(TwoFactorPolicyEngine(), ObservationFindingEmitter())

    outcome = await evaluator.evaluate(snapshot, scaffolding, ["bundles/two-factor"])

    assert outcome.error is None
    (finding,) = outcome.results.findings
    assert finding.result is VerdictResult.FAIL
    assert "github-organization/acme" in [s.identifier for s in finding.subjects]
    (observation,) = outcome.results.observations
    assert finding.related_observations == [observation.uuid]


@pytest.mark.asyncio
async def test_acme_with_two_factor_passes() -> None:
    snapshot = OrganizationSnapshot(login="acme", two_factor_requirement_enabled=True)
    evaluator = PolicyEvaluator(TwoFactorPolicyEngine(), EvidenceRecordEmitter())

    outcome = await evaluator.evaluate(snapshot, build_scaffolding(snapshot), ["bundles/two-factor"])

    (evidence,) = outcome.results.evidences
    assert evidence.result is VerdictResult.PASS
    assert evidence.reason is None


# ---------------------------------------------------------------------------
# Emitters
# ---------------------------------------------------------------------------


def test_get_emitter_selects_shape() -> None:
    assert isinstance(get_emitter(EvidenceShape.EVIDENCE), EvidenceRecordEmitter)
    assert isinstance(get_emitter(EvidenceShape.OBSERVATION_FINDING), ObservationFindingEmitter)


def test_observation_finding_shape_emits_no_evidence_records(
    scaffolding: ProvenanceScaffolding,
) -> None:
    results = ObservationFindingEmitter().emit(
        verdict=make_verdict(violations=[{"title": "bad"}]),
        scaffolding=scaffolding,
        activities=[COMPILE_RESULTS_ACTIVITY],
        labels={"provider": "github"},
        collected_at=datetime.now(UTC),
    )
    assert results.evidences == []
    assert len(results.observations) == 1
    assert len(results.findings) == 1
    assert results.observations[0].methods == ["TEST-AUTOMATED"]
    assert results.observations[0].remarks == "bad"


def test_describe_violations_uses_title_and_description() -> None:
    verdict = PolicyVerdict(
        policy_id="p",
        title="Policy",
        violations=(
            {"title": "Two-factor disabled", "description": "enable it"},
            {"message": "second"},
            {},
        ),
    )
    assert describe_violations(verdict) == "Two-factor disabled: enable it\nsecond\nPolicy"


def test_describe_violations_for_passing_verdict_is_none() -> None:
    assert describe_violations(make_verdict()) is None


def test_collect_data_activity_wraps_steps() -> None:
    steps = [Step(title="a", description="b")]
    activity = collect_data_activity(steps)
    assert isinstance(activity, Activity)
    assert activity.steps == tuple(steps)
