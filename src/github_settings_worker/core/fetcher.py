"""Organization snapshot fetcher.

Retrieves the organization settings resource and, when teams are in scope,
every team page, and narrates the work as Steps for the audit trail. Steps
describe what is attempted and are built before the calls are made.

Any retrieval failure aborts the fetch (no partial snapshot) and is raised as
FetchError carrying the attempted steps.
"""

import httpx
from pydantic import ValidationError

from github_settings_worker.core.interfaces import IGitHubClient
from github_settings_worker.core.models import OrganizationSnapshot, Step, Team
from github_settings_worker.errors import FetchError
from github_settings_worker.observability import get_logger

logger = get_logger(__name__)

_ORG_DOCS = (
    "More information about data being sent back can be found here: "
    "https://docs.github.com/en/rest/orgs/orgs?apiVersion=2022-11-28#get-an-organization"
)
_TEAMS_DOCS = (
    "Teams are requested 100 per page, following the next-page link until exhausted. "
    "See https://docs.github.com/en/rest/teams/teams?apiVersion=2022-11-28#list-teams"
)


class OrganizationSnapshotFetcher:
    """Builds an OrganizationSnapshot from the GitHub API.

    Args:
        client: An already-authenticated GitHub client.
        include_teams: Whether to fetch all teams into the snapshot.
    """

    def __init__(self, client: IGitHubClient, include_teams: bool = True) -> None:
        self._client = client
        self._include_teams = include_teams

    def _planned_steps(self) -> list[Step]:
        steps = [
            Step(
                title="Configure the Github Client with the Personal Access Token",
                description=(
                    "Using the helper functions within the client, creates a Github API "
                    "client that can query the API"
                ),
            ),
            Step(
                title="Query the organization endpoint",
                description=(
                    "Using the client's native APIs, Get all the information from the "
                    "organization endpoint"
                ),
                remarks=_ORG_DOCS,
            ),
        ]
        if self._include_teams:
            steps.append(
                Step(
                    title="Query the organization teams endpoint",
                    description=(
                        "Using the client's native APIs, list every team in the organization "
                        "including privacy level and parent team"
                    ),
                    remarks=_TEAMS_DOCS,
                )
            )
        return steps

    async def fetch(self, organization: str) -> tuple[OrganizationSnapshot, list[Step]]:
        """Fetch the organization snapshot.

        Args:
            organization: Organization login.

        Returns:
            Tuple of (snapshot, steps).

        Raises:
            FetchError: If the organization or any team page cannot be retrieved.
        """
        steps = self._planned_steps()

        try:
            org_data = await self._client.get_organization(organization)
            teams: tuple[Team, ...] | None = None
            if self._include_teams:
                team_data = await self._client.list_teams(organization)
                teams = tuple(Team.model_validate(team) for team in team_data)
            snapshot = OrganizationSnapshot.model_validate({**org_data, "teams": teams})
        except httpx.HTTPStatusError as exc:
            logger.error(
                "Error getting organization information",
                org=organization,
                status_code=exc.response.status_code,
                error=str(exc),
            )
            raise FetchError(
                organization,
                f"GitHub returned status {exc.response.status_code}",
                status_code=exc.response.status_code,
                steps=steps,
            ) from exc
        except httpx.RequestError as exc:
            logger.error("Error getting organization information", org=organization, error=str(exc))
            raise FetchError(organization, f"request error: {exc}", steps=steps) from exc
        except ValidationError as exc:
            logger.error("Unexpected organization payload", org=organization, error=str(exc))
            raise FetchError(organization, "unexpected response payload", steps=steps) from exc
        except (ValueError, TypeError) as exc:
            # Non-JSON bodies, wrongly shaped JSON and untrusted pagination links.
            logger.error("Unexpected organization payload", org=organization, error=str(exc))
            raise FetchError(
                organization, f"unexpected response payload: {exc}", steps=steps
            ) from exc

        logger.info(
            "Fetched organization snapshot",
            org=organization,
            teams=None if teams is None else len(teams),
        )
        return snapshot, steps
