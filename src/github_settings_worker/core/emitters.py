"""Evidence emitters: map policy verdicts to compliance records.

Two emission shapes are supported behind the IEvidenceEmitter protocol:
- EvidenceRecordEmitter     — one Evidence per verdict
- ObservationFindingEmitter — one Observation per verdict plus one Finding
  that references it

The shape is chosen once at startup via get_emitter(). Every record carries
the run's scaffolding, the producing activities and the per-bundle labels.
"""

from datetime import datetime

from github_settings_worker.core.interfaces import IEvidenceEmitter
from github_settings_worker.core.models import (
    Activity,
    EvaluationResults,
    Evidence,
    EvidenceShape,
    Finding,
    Observation,
    PolicyVerdict,
    ProvenanceScaffolding,
    VerdictResult,
)


def describe_violations(verdict: PolicyVerdict) -> str | None:
    """Summarize a verdict's violations as one line per violation.

    Args:
        verdict: The policy verdict.

    Returns:
        Newline-joined violation titles/descriptions, or None if it passed.
    """
    if not verdict.violations:
        return None
    lines: list[str] = []
    for violation in verdict.violations:
        title = violation.get("title") or violation.get("message") or verdict.title
        description = violation.get("description")
        lines.append(f"{title}: {description}" if description else str(title))
    return "\n".join(lines)


class EvidenceRecordEmitter:
    """Emits one Evidence record per verdict."""

    def emit(
        self,
        verdict: PolicyVerdict,
        scaffolding: ProvenanceScaffolding,
        activities: list[Activity],
        labels: dict[str, str],
        collected_at: datetime,
    ) -> EvaluationResults:
        evidence = Evidence(
            title=verdict.title,
            description=verdict.description,
            remarks=verdict.remarks,
            labels={**labels, "policy_id": verdict.policy_id},
            result=verdict.result,
            reason=describe_violations(verdict),
            start=collected_at,
            end=collected_at,
            origins=list(scaffolding.actors),
            activities=list(activities),
            subjects=list(scaffolding.subjects),
            components=list(scaffolding.components),
            inventory_items=list(scaffolding.inventory_items),
            controls=list(verdict.controls),
        )
        return EvaluationResults(evidences=[evidence])


class ObservationFindingEmitter:
    """Emits an Observation and a Finding justified by it for each verdict."""

    def emit(
        self,
        verdict: PolicyVerdict,
        scaffolding: ProvenanceScaffolding,
        activities: list[Activity],
        labels: dict[str, str],
        collected_at: datetime,
    ) -> EvaluationResults:
        record_labels = {**labels, "policy_id": verdict.policy_id}
        outcome = "passed" if verdict.result is VerdictResult.PASS else "failed"

        observation = Observation(
            title=f"Evaluation of {verdict.title}",
            description=f"Policy {verdict.policy_id} {outcome} against the organization.",
            remarks=describe_violations(verdict),
            labels=record_labels,
            result=verdict.result,
            collected=collected_at,
            origins=list(scaffolding.actors),
            activities=list(activities),
            subjects=list(scaffolding.subjects),
            components=list(scaffolding.components),
            inventory_items=list(scaffolding.inventory_items),
        )
        finding = Finding(
            title=verdict.title,
            description=verdict.description,
            remarks=verdict.remarks,
            labels=record_labels,
            result=verdict.result,
            related_observations=[observation.uuid],
            collected=collected_at,
            origins=list(scaffolding.actors),
            subjects=list(scaffolding.subjects),
            controls=list(verdict.controls),
        )
        return EvaluationResults(observations=[observation], findings=[finding])


def get_emitter(shape: EvidenceShape) -> IEvidenceEmitter:
    """Return the emitter for a configured evidence shape.

    Args:
        shape: The emission shape selected in settings.

    Returns:
        The matching IEvidenceEmitter.

    Raises:
        ValueError: If the shape is not supported.
    """
    if shape is EvidenceShape.EVIDENCE:
        return EvidenceRecordEmitter()
    if shape is EvidenceShape.OBSERVATION_FINDING:
        return ObservationFindingEmitter()
    raise ValueError(f"Unsupported evidence shape '{shape}'")
