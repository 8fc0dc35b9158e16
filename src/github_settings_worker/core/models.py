"""Domain models for the GitHub settings worker.

Wire-facing records (snapshot, provenance entities, evidence) are Pydantic
models so they serialize straight into policy input documents and collector
payloads. Run-scoped containers (scaffolding, result collections) are
dataclasses.

Models:
- OrganizationSnapshot — immutable organization state (+ teams) for one run
- Step / Activity      — audit narration of the work performed
- Subject / Component / InventoryItem / OriginActor — provenance entities
- PolicyVerdict        — one pass/fail result returned by the policy engine
- Evidence             — single-record emission shape
- Observation / Finding — split emission shape; a Finding references Observations
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


class EvidenceShape(str, enum.Enum):
    """Which record shape the active collector contract expects."""

    EVIDENCE = "evidence"
    OBSERVATION_FINDING = "observation_finding"


class ExecutionStatus(str, enum.Enum):
    """Overall status of one Eval invocation."""

    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"


class VerdictResult(str, enum.Enum):
    """Pass/fail outcome of a single policy."""

    PASS = "pass"
    FAIL = "fail"


class SubjectType(str, enum.Enum):
    """What kind of entity a Subject points at."""

    INVENTORY_ITEM = "inventory-item"
    COMPONENT = "component"


# ---------------------------------------------------------------------------
# Organization snapshot
# ---------------------------------------------------------------------------


class TeamRef(BaseModel):
    """Reference to a parent team."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: int | None = None
    name: str = ""
    slug: str = ""


class Team(BaseModel):
    """A team within the organization."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: int | None = None
    name: str
    slug: str = ""
    description: str | None = None
    privacy: str | None = None
    permission: str | None = None
    parent: TeamRef | None = None


class OrganizationSnapshot(BaseModel):
    """Point-in-time organization settings, optionally with all teams.

    Unknown settings fields returned by the platform are retained (extra="allow")
    so policies can assert on any of them. The model is frozen: a snapshot is
    never mutated after the fetcher builds it.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    login: str
    id: int | None = None
    name: str | None = None
    url: str | None = None
    html_url: str | None = None
    billing_email: str | None = None
    description: str | None = None
    two_factor_requirement_enabled: bool | None = None
    default_repository_permission: str | None = None
    members_can_create_repositories: bool | None = None
    members_can_create_public_repositories: bool | None = None
    members_can_create_private_repositories: bool | None = None
    members_can_create_internal_repositories: bool | None = None
    members_can_create_pages: bool | None = None
    members_can_fork_private_repositories: bool | None = None
    web_commit_signoff_required: bool | None = None
    teams: tuple[Team, ...] | None = None

    @property
    def display_name(self) -> str:
        """Organization name, falling back to the login."""
        return self.name or self.login

    def document(self) -> dict[str, Any]:
        """Return the JSON document evaluated by policies.

        The teams key is present only when teams were fetched.
        """
        exclude = {"teams"} if self.teams is None else None
        return self.model_dump(mode="json", exclude=exclude)


# ---------------------------------------------------------------------------
# Provenance entities
# ---------------------------------------------------------------------------


class Link(BaseModel):
    model_config = ConfigDict(frozen=True)

    href: str
    rel: str | None = None
    text: str | None = None


class Property(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    value: str


class Step(BaseModel):
    """One unit of work performed while producing evidence."""

    model_config = ConfigDict(frozen=True)

    title: str
    description: str
    remarks: str | None = None


class Activity(BaseModel):
    """A titled group of steps attached to every emitted record."""

    model_config = ConfigDict(frozen=True)

    title: str
    description: str
    steps: tuple[Step, ...] = ()


class Subject(BaseModel):
    """What is being assessed, keyed by identifier."""

    model_config = ConfigDict(frozen=True)

    type: SubjectType
    identifier: str
    props: tuple[Property, ...] = ()


class Component(BaseModel):
    """Abstract capability being asserted about."""

    model_config = ConfigDict(frozen=True)

    identifier: str
    type: str
    title: str
    description: str
    purpose: str


class ImplementedComponent(BaseModel):
    """Reference from an inventory item to a Component by identifier."""

    model_config = ConfigDict(frozen=True)

    identifier: str


class InventoryItem(BaseModel):
    """Concrete instance of one or more Components."""

    model_config = ConfigDict(frozen=True)

    identifier: str
    type: str
    title: str
    props: tuple[Property, ...] = ()
    links: tuple[Link, ...] = ()
    implemented_components: tuple[ImplementedComponent, ...] = ()


class OriginActor(BaseModel):
    """Who performed the assessment."""

    model_config = ConfigDict(frozen=True)

    title: str
    type: str
    links: tuple[Link, ...] = ()


@dataclass(frozen=True)
class ProvenanceScaffolding:
    """Provenance entities shared by every record emitted in one run.

    Attributes:
        subjects: Assessed subjects.
        components: Components being asserted about.
        inventory_items: Concrete instances, linked to components by identifier.
        actors: The assessment platform and this tool.
    """

    subjects: tuple[Subject, ...]
    components: tuple[Component, ...]
    inventory_items: tuple[InventoryItem, ...]
    actors: tuple[OriginActor, ...]


# ---------------------------------------------------------------------------
# Policy verdicts and evidence records
# ---------------------------------------------------------------------------


class PolicyVerdict(BaseModel):
    """Result of one policy package executed by the policy engine.

    Attributes:
        policy_id: Fully qualified policy package name.
        title: Human-readable policy title.
        description: What the policy checks.
        remarks: Optional remediation or context text.
        violations: Raw violation entries; empty means the policy passed.
        controls: Control identifiers the policy evidences.
    """

    model_config = ConfigDict(frozen=True)

    policy_id: str
    title: str
    description: str = ""
    remarks: str | None = None
    violations: tuple[dict[str, Any], ...] = ()
    controls: tuple[str, ...] = ()

    @property
    def result(self) -> VerdictResult:
        return VerdictResult.FAIL if self.violations else VerdictResult.PASS


class Evidence(BaseModel):
    """A single evidence record for one policy verdict."""

    uuid: UUID = Field(default_factory=uuid4)
    title: str
    description: str
    remarks: str | None = None
    labels: dict[str, str] = Field(default_factory=dict)
    result: VerdictResult
    reason: str | None = None
    start: datetime
    end: datetime
    origins: list[OriginActor] = Field(default_factory=list)
    activities: list[Activity] = Field(default_factory=list)
    subjects: list[Subject] = Field(default_factory=list)
    components: list[Component] = Field(default_factory=list)
    inventory_items: list[InventoryItem] = Field(default_factory=list)
    controls: list[str] = Field(default_factory=list)


class Observation(BaseModel):
    """What was observed when a policy ran."""

    uuid: UUID = Field(default_factory=uuid4)
    title: str
    description: str
    remarks: str | None = None
    labels: dict[str, str] = Field(default_factory=dict)
    methods: list[str] = Field(default_factory=lambda: ["TEST-AUTOMATED"])
    result: VerdictResult
    collected: datetime
    origins: list[OriginActor] = Field(default_factory=list)
    activities: list[Activity] = Field(default_factory=list)
    subjects: list[Subject] = Field(default_factory=list)
    components: list[Component] = Field(default_factory=list)
    inventory_items: list[InventoryItem] = Field(default_factory=list)


class Finding(BaseModel):
    """Compliance determination, justified by one or more Observations."""

    uuid: UUID = Field(default_factory=uuid4)
    title: str
    description: str
    remarks: str | None = None
    labels: dict[str, str] = Field(default_factory=dict)
    result: VerdictResult
    related_observations: list[UUID]
    collected: datetime
    origins: list[OriginActor] = Field(default_factory=list)
    subjects: list[Subject] = Field(default_factory=list)
    controls: list[str] = Field(default_factory=list)


@dataclass
class EvaluationResults:
    """Append-only record collections produced during one run."""

    evidences: list[Evidence] = field(default_factory=list)
    observations: list[Observation] = field(default_factory=list)
    findings: list[Finding] = field(default_factory=list)

    def extend(self, other: "EvaluationResults") -> None:
        """Append every record of another collection, preserving duplicates."""
        self.evidences.extend(other.evidences)
        self.observations.extend(other.observations)
        self.findings.extend(other.findings)

    @property
    def is_empty(self) -> bool:
        return not (self.evidences or self.observations or self.findings)

    def counts(self) -> dict[str, int]:
        return {
            "evidences": len(self.evidences),
            "observations": len(self.observations),
            "findings": len(self.findings),
        }
