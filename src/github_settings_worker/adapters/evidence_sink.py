"""Evidence sinks: hand finished records to the compliance collector.

- HttpEvidenceSink — POSTs each non-empty collection to the collector API
- NullEvidenceSink — used when no collector is configured; logs and drops

Transmission is attempted once. Any failure raises TransmissionError, which
the worker reports as a failure distinct from evaluation failures.
"""

from typing import Any

import httpx

from github_settings_worker.core.models import EvaluationResults
from github_settings_worker.errors import TransmissionError
from github_settings_worker.observability import get_logger

logger = get_logger(__name__)

ENDPOINT_EVIDENCE = "/api/evidence"
ENDPOINT_OBSERVATIONS = "/api/observations"
ENDPOINT_FINDINGS = "/api/findings"


class HttpEvidenceSink:
    """Sends records to the collector's REST API.

    Args:
        collector_url: Collector base URL.
        timeout_s: Per-request timeout in seconds.
        transport: Optional httpx transport (used by tests to simulate the collector).
    """

    def __init__(
        self,
        collector_url: str,
        timeout_s: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._collector_url = collector_url.rstrip("/")
        self._timeout_s = timeout_s
        self._transport = transport

    async def send(self, results: EvaluationResults) -> None:
        """Transmit every non-empty collection.

        Args:
            results: Finished records of one run.

        Raises:
            TransmissionError: If the collector is unreachable or rejects a batch.
        """
        batches: list[tuple[str, list[Any]]] = [
            (ENDPOINT_EVIDENCE, results.evidences),
            (ENDPOINT_OBSERVATIONS, results.observations),
            (ENDPOINT_FINDINGS, results.findings),
        ]

        async with httpx.AsyncClient(
            base_url=self._collector_url,
            timeout=self._timeout_s,
            transport=self._transport,
        ) as client:
            for endpoint, records in batches:
                if not records:
                    continue
                payload = [record.model_dump(mode="json") for record in records]
                try:
                    response = await client.post(endpoint, json=payload)
                except httpx.RequestError as exc:
                    logger.error("Failed to send evidences", endpoint=endpoint, error=str(exc))
                    raise TransmissionError(f"collector request error: {exc}") from exc

                if response.status_code >= 300:
                    logger.error(
                        "Collector rejected records",
                        endpoint=endpoint,
                        status_code=response.status_code,
                        body=response.text[:500],
                    )
                    raise TransmissionError(
                        f"collector rejected {endpoint} with status {response.status_code}",
                        status_code=response.status_code,
                    )

                logger.info("Records sent to collector", endpoint=endpoint, count=len(records))


class NullEvidenceSink:
    """Sink used when no collector is configured."""

    async def send(self, results: EvaluationResults) -> None:
        logger.info("No collector configured, records not transmitted", **results.counts())
