"""OPA (Open Policy Agent) REST API client.

Provides async HTTP communication with the OPA sidecar for:
- Uploading Rego modules of a policy bundle before it is executed
- Querying a policy package with the organization document as input
- Removing uploaded modules once the bundle has been evaluated
- Health-checking OPA connectivity

OPA REST API reference: https://www.openpolicyagent.org/docs/latest/rest-api/
"""

from typing import Any

import httpx

from github_settings_worker.observability import get_logger

logger = get_logger(__name__)

# Default OPA base URL, overridden by GITHUB_SETTINGS_OPA_URL
_DEFAULT_OPA_URL = "http://localhost:8181"

# Default query timeout in milliseconds
_DEFAULT_EVAL_TIMEOUT_MS = 5000


class OPAClientError(Exception):
    """Base error for OPA client failures.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status code from OPA (if available).
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PolicyEvaluationError(OPAClientError):
    """Raised when OPA returns an error while querying a package."""


class PolicyUploadError(OPAClientError):
    """Raised when OPA rejects a Rego module (compile error, etc.)."""


class OPAClient:
    """Async client for the OPA REST API.

    Args:
        opa_url: OPA REST API base URL.
        eval_timeout_ms: Timeout for a single query in milliseconds.
        transport: Optional httpx transport (used by tests to simulate OPA).
    """

    def __init__(
        self,
        opa_url: str = _DEFAULT_OPA_URL,
        eval_timeout_ms: int = _DEFAULT_EVAL_TIMEOUT_MS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._opa_url = opa_url.rstrip("/")
        self._eval_timeout_ms = eval_timeout_ms
        self._eval_timeout_s = eval_timeout_ms / 1000.0
        self._transport = transport

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self._transport)

    async def query(self, package: str, input_data: dict[str, Any]) -> dict[str, Any] | None:
        """Query a policy package with structured input.

        Sends a POST request to /v1/data/{package path}. Dots in the package
        name become path separators.

        Args:
            package: Rego package name, e.g. compliance_framework.two_factor.
            input_data: Structured JSON input for the package.

        Returns:
            The package's result document, or None when OPA reports the
            package as undefined.

        Raises:
            PolicyEvaluationError: If OPA returns an error or the request fails.
        """
        url = f"{self._opa_url}/v1/data/{package.replace('.', '/')}"

        logger.debug(
            "Querying policy package via OPA",
            package=package,
            opa_url=url,
            timeout_ms=self._eval_timeout_ms,
        )

        try:
            async with self._client(self._eval_timeout_s) as client:
                response = await client.post(url, json={"input": input_data})
        except httpx.TimeoutException as exc:
            logger.warning(
                "OPA query timed out",
                package=package,
                timeout_ms=self._eval_timeout_ms,
            )
            raise PolicyEvaluationError(
                f"OPA query timed out after {self._eval_timeout_ms}ms"
            ) from exc
        except httpx.RequestError as exc:
            logger.error("OPA request failed", package=package, error=str(exc))
            raise PolicyEvaluationError(f"OPA request error: {exc}") from exc

        if response.status_code != 200:
            logger.error(
                "OPA returned unexpected status",
                package=package,
                status_code=response.status_code,
                body=response.text[:500],
            )
            raise PolicyEvaluationError(
                f"OPA query failed with status {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as exc:
            logger.error(
                "OPA returned a non-JSON body",
                package=package,
                body=response.text[:500],
            )
            raise PolicyEvaluationError(
                f"OPA returned a non-JSON body: {response.text[:200]}",
                status_code=response.status_code,
            ) from exc

        if not isinstance(body, dict) or "result" not in body:
            return None
        result = body["result"]
        return result if isinstance(result, dict) else {"value": result}

    async def upload_policy(self, policy_id: str, rego_content: str) -> None:
        """Upload a Rego module to OPA.

        Sends a PUT request to /v1/policies/{policy_id} with the Rego source as
        the request body. OPA compiles and stores the module.

        Args:
            policy_id: Module identifier under which OPA stores the source.
            rego_content: Full Rego source code.

        Raises:
            PolicyUploadError: If OPA rejects the module or the request fails.
        """
        url = f"{self._opa_url}/v1/policies/{policy_id}"

        logger.debug(
            "Uploading policy module to OPA",
            policy_id=policy_id,
            opa_url=url,
            rego_content_length=len(rego_content),
        )

        try:
            async with self._client(10.0) as client:
                response = await client.put(
                    url,
                    content=rego_content.encode("utf-8"),
                    headers={"Content-Type": "text/plain"},
                )
        except httpx.RequestError as exc:
            raise PolicyUploadError(f"OPA upload request error: {exc}") from exc

        if response.status_code not in (200, 201):
            logger.error(
                "OPA rejected policy module",
                policy_id=policy_id,
                status_code=response.status_code,
                body=response.text[:500],
            )
            raise PolicyUploadError(
                f"OPA rejected policy module with status {response.status_code}: "
                f"{response.text[:300]}",
                status_code=response.status_code,
            )

    async def delete_policy(self, policy_id: str) -> None:
        """Remove a Rego module from OPA.

        A 404 (module not found) is treated as success. Other failures are
        logged and not raised: a leftover module never invalidates results.

        Args:
            policy_id: Module identifier to remove.
        """
        url = f"{self._opa_url}/v1/policies/{policy_id}"

        try:
            async with self._client(5.0) as client:
                response = await client.delete(url)
        except httpx.RequestError as exc:
            logger.error("OPA delete request failed", policy_id=policy_id, error=str(exc))
            return

        if response.status_code not in (200, 204, 404):
            logger.warning(
                "Unexpected status deleting policy module from OPA",
                policy_id=policy_id,
                status_code=response.status_code,
            )

    async def health_check(self) -> bool:
        """Check if OPA is reachable and healthy.

        Returns:
            True if OPA answers /health with 200, False otherwise.
        """
        url = f"{self._opa_url}/health"
        try:
            async with self._client(3.0) as client:
                response = await client.get(url)
        except httpx.RequestError:
            logger.warning("OPA health check failed, OPA not reachable", opa_url=url)
            return False
        healthy = response.status_code == 200
        logger.debug("OPA health check", opa_url=url, healthy=healthy)
        return healthy
