"""GitHub REST API client.

Provides the two read-only calls the worker needs:
- Get an organization by login
- List every team of an organization, 100 per page, following the
  ``Link: <...>; rel="next"`` header until no further page is advertised

HTTP failures surface as httpx.HTTPStatusError or httpx.RequestError; the
snapshot fetcher translates them into FetchError. No retry or backoff is
performed here.

GitHub REST API reference: https://docs.github.com/en/rest/orgs/orgs
"""

from typing import Any

import httpx

from github_settings_worker.observability import get_logger

logger = get_logger(__name__)

_DEFAULT_API_URL = "https://api.github.com"

_API_VERSION = "2022-11-28"

TEAMS_PAGE_SIZE = 100


class GitHubClient:
    """Async client for the GitHub organization endpoints.

    Args:
        token: Personal access token sent as a bearer credential.
        api_url: REST API base URL.
        timeout_s: Per-request timeout in seconds.
        transport: Optional httpx transport (used by tests to simulate GitHub).
    """

    def __init__(
        self,
        token: str,
        api_url: str = _DEFAULT_API_URL,
        timeout_s: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_url = api_url.rstrip("/")
        self._timeout_s = timeout_s
        self._transport = transport
        self._headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": _API_VERSION,
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._api_url,
            headers=self._headers,
            timeout=self._timeout_s,
            transport=self._transport,
        )

    @staticmethod
    def _check_same_origin(client: httpx.AsyncClient, url: str) -> None:
        """Refuse pagination links that would send the token to another host.

        Raises:
            ValueError: If the link points outside the configured API origin.
        """
        target = client.base_url.join(url)
        base = client.base_url
        if (target.scheme, target.host, target.port) != (base.scheme, base.host, base.port):
            logger.error("Refusing next page link to a foreign host", link=url)
            raise ValueError(f"next page link points to foreign host {target.host!r}")

    async def get_organization(self, login: str) -> dict[str, Any]:
        """Fetch the organization settings resource.

        Args:
            login: Organization login.

        Returns:
            The decoded organization JSON object.

        Raises:
            httpx.HTTPStatusError: On a non-2xx response.
            httpx.RequestError: On a transport failure.
        """
        logger.debug("Querying organization endpoint", org=login)
        async with self._client() as client:
            response = await client.get(f"/orgs/{login}")
            response.raise_for_status()
            return response.json()

    async def list_teams(self, login: str) -> list[dict[str, Any]]:
        """Fetch all teams of an organization across every page.

        Pages are requested one at a time and concatenated in page order.

        Args:
            login: Organization login.

        Returns:
            Every team JSON object.

        Raises:
            httpx.HTTPStatusError: On a non-2xx response for any page.
            httpx.RequestError: On a transport failure for any page.
            ValueError: If a next page link points outside the API origin.
        """
        teams: list[dict[str, Any]] = []
        url: str | None = f"/orgs/{login}/teams"
        params: dict[str, Any] | None = {"per_page": TEAMS_PAGE_SIZE, "page": 1}
        page = 0

        async with self._client() as client:
            while url is not None:
                page += 1
                logger.debug("Querying organization teams page", org=login, page=page)
                response = await client.get(url, params=params)
                response.raise_for_status()
                teams.extend(response.json())

                # The next link already carries per_page and page.
                url = response.links.get("next", {}).get("url")
                params = None
                if url is not None:
                    self._check_same_origin(client, url)

        logger.debug("Fetched organization teams", org=login, pages=page, teams=len(teams))
        return teams
