"""Error taxonomy for the GitHub settings worker.

- ConfigurationError    — invalid plugin configuration, raised before any network call
- FetchError            — organization or team retrieval failed, fatal to the run
- BundleEvaluationError — a single policy bundle failed, isolated to that bundle
- CombinedBundleError   — every bundle failure of one run, joined
- TransmissionError     — the evidence sink rejected finished evidence
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from github_settings_worker.core.models import Step


class WorkerError(Exception):
    """Base class for all worker errors."""


class ConfigurationError(WorkerError):
    """Raised when plugin configuration is missing or malformed.

    Attributes:
        problems: Every validation problem found, in field order.
    """

    def __init__(self, problems: list[str]) -> None:
        self.problems = list(problems)
        super().__init__("invalid configuration: " + "; ".join(self.problems))


class FetchError(WorkerError):
    """Raised when organization state cannot be retrieved.

    Attributes:
        organization: The organization identifier being fetched.
        status_code: HTTP status code returned by the platform, if any.
        steps: Steps that were attempted before the failure.
    """

    def __init__(
        self,
        organization: str,
        message: str,
        status_code: int | None = None,
        steps: list[Step] | None = None,
    ) -> None:
        super().__init__(f"failed to fetch organization {organization!r}: {message}")
        self.organization = organization
        self.status_code = status_code
        self.steps = list(steps or [])


class BundleEvaluationError(WorkerError):
    """Raised when one policy bundle cannot be resolved, compiled or executed.

    Attributes:
        bundle_path: The policy bundle path that failed.
    """

    def __init__(self, bundle_path: str, message: str) -> None:
        super().__init__(f"policy bundle {bundle_path!r}: {message}")
        self.bundle_path = bundle_path


class CombinedBundleError(WorkerError):
    """All bundle failures of a single evaluation run.

    The message enumerates each contributing failure so a caller reading only
    str(error) still sees every failed bundle.

    Attributes:
        errors: Individual bundle failures, in evaluation order.
    """

    def __init__(self, errors: list[BundleEvaluationError]) -> None:
        self.errors = list(errors)
        super().__init__(
            f"{len(self.errors)} policy bundle(s) failed: "
            + "; ".join(str(err) for err in self.errors)
        )

    @property
    def failed_bundles(self) -> list[str]:
        """Bundle paths that failed, in evaluation order."""
        return [err.bundle_path for err in self.errors]


class TransmissionError(WorkerError):
    """Raised when finished evidence cannot be handed to the evidence sink.

    Attributes:
        status_code: HTTP status code from the collector, if any.
        outcome: The evaluation outcome whose evidence failed to transmit.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.outcome: Any = None
