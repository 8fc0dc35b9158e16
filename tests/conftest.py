"""Test fixtures for the GitHub settings worker.

Provides:
- org_payload: A GitHub organization payload (two-factor disabled)
- snapshot / scaffolding: Built from org_payload
- make_github_transport: Simulated GitHub API with paginated teams
- FakePolicyEngine: Deterministic policy engine keyed by bundle path
- two_factor_engine: Engine asserting two-factor enforcement on any bundle
- settings: Settings with transmission disabled
"""

import copy
from typing import Any

import httpx
import pytest

from github_settings_worker.core.models import OrganizationSnapshot, PolicyVerdict
from github_settings_worker.core.scaffolding import build_scaffolding
from github_settings_worker.errors import BundleEvaluationError
from github_settings_worker.settings import Settings

ORG_PAYLOAD: dict[str, Any] = {
    "login": "test-org",
    "id": 1234567,
    "node_id": "O_abcdefg",
    "url": "https://api.github.com/orgs/test-org",
    "html_url": "https://github.com/test-org",
    "name": "Test Org",
    "description": None,
    "is_verified": False,
    "type": "Organization",
    "billing_email": "test@example.com",
    "default_repository_permission": "read",
    "members_can_create_repositories": True,
    "two_factor_requirement_enabled": False,
    "members_allowed_repository_creation_type": "all",
    "members_can_create_public_repositories": True,
    "members_can_create_private_repositories": True,
    "members_can_create_internal_repositories": False,
    "members_can_create_pages": True,
    "members_can_fork_private_repositories": False,
    "web_commit_signoff_required": False,
    "plan": {"name": "free", "space": 976562499, "private_repos": 10000, "filled_seats": 2, "seats": 1},
    "secret_scanning_enabled_for_new_repositories": False,
}


def make_teams(count: int) -> list[dict[str, Any]]:
    """Build `count` distinct team payloads; every tenth team has a parent."""
    teams = []
    for index in range(count):
        team: dict[str, Any] = {
            "id": index + 1,
            "name": f"Team {index + 1}",
            "slug": f"team-{index + 1}",
            "privacy": "closed" if index % 2 else "secret",
            "permission": "pull",
            "parent": None,
        }
        if index and index % 10 == 0:
            team["parent"] = {"id": 1, "name": "Team 1", "slug": "team-1"}
        teams.append(team)
    return teams


def make_github_transport(
    org_payload: dict[str, Any] | None = None,
    teams: list[dict[str, Any]] | None = None,
    org_status: int = 200,
    teams_status: int = 200,
    requests: list[httpx.Request] | None = None,
) -> httpx.MockTransport:
    """Simulate the GitHub organization and teams endpoints.

    Teams are paginated by the per_page/page query parameters and a
    ``Link: rel="next"`` header is returned while further pages exist.
    """
    payload = copy.deepcopy(org_payload or ORG_PAYLOAD)
    login = payload["login"]
    all_teams = teams or []

    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        path = request.url.path
        if path == f"/orgs/{login}":
            if org_status != 200:
                return httpx.Response(org_status, json={"message": "Not Found"})
            return httpx.Response(200, json=payload)
        if path == f"/orgs/{login}/teams":
            if teams_status != 200:
                return httpx.Response(teams_status, json={"message": "Server Error"})
            per_page = int(request.url.params["per_page"])
            page = int(request.url.params.get("page", "1"))
            start = (page - 1) * per_page
            headers = {}
            if start + per_page < len(all_teams):
                headers["Link"] = (
                    f'<https://api.github.com/orgs/{login}/teams?per_page={per_page}&page={page + 1}>; '
                    'rel="next"'
                )
            return httpx.Response(200, json=all_teams[start : start + per_page], headers=headers)
        return httpx.Response(404, json={"message": "Not Found"})

    return httpx.MockTransport(handler)


def make_verdict(
    policy_id: str = "compliance_framework.test",
    violations: list[dict[str, Any]] | None = None,
    title: str = "Test policy",
) -> PolicyVerdict:
    return PolicyVerdict(
        policy_id=policy_id,
        title=title,
        description="A test policy",
        violations=tuple(violations or []),
        controls=("AC-1",),
    )


class FakePolicyEngine:
    """Policy engine returning canned verdicts per bundle path.

    Unknown bundle paths raise BundleEvaluationError, like an unresolvable path.
    """

    def __init__(self, outcomes: dict[str, list[PolicyVerdict] | Exception]) -> None:
        self.outcomes = outcomes
        self.calls: list[tuple[str, dict[str, Any]]] = []

    async def generate_results(
        self,
        bundle_path: str,
        document: dict[str, Any],
    ) -> list[PolicyVerdict]:
        self.calls.append((bundle_path, document))
        outcome = self.outcomes.get(bundle_path)
        if outcome is None:
            raise BundleEvaluationError(bundle_path, "path does not exist")
        if isinstance(outcome, Exception):
            raise outcome
        return list(outcome)


class TwoFactorPolicyEngine:
    """Engine whose every bundle asserts two-factor enforcement."""

    async def generate_results(
        self,
        bundle_path: str,
        document: dict[str, Any],
    ) -> list[PolicyVerdict]:
        violations = []
        if document.get("two_factor_requirement_enabled") is not True:
            violations.append({"title": "Two-factor authentication is not required"})
        return [
            make_verdict(
                policy_id="compliance_framework.two_factor",
                title="Two-factor must be enabled",
                violations=violations,
            )
        ]


@pytest.fixture()
def org_payload() -> dict[str, Any]:
    return copy.deepcopy(ORG_PAYLOAD)


@pytest.fixture()
def snapshot(org_payload: dict[str, Any]) -> OrganizationSnapshot:
    return OrganizationSnapshot.model_validate(org_payload)


@pytest.fixture()
def scaffolding(snapshot: OrganizationSnapshot):
    return build_scaffolding(snapshot)


@pytest.fixture()
def two_factor_engine() -> TwoFactorPolicyEngine:
    return TwoFactorPolicyEngine()


@pytest.fixture()
def settings() -> Settings:
    """Settings with transmission disabled and teams in scope."""
    return Settings(collector_url="", include_teams=True)
