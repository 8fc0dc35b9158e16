"""Plugin configuration delivered by the host's Configure call.

Every configuration type implements the Validator protocol and callers invoke
validate() unconditionally before the configuration is used.
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol

from pydantic import AnyHttpUrl, TypeAdapter, ValidationError

from github_settings_worker.errors import ConfigurationError

_ORGANIZATION_PATTERN = re.compile(r"^[A-Za-z0-9._-]+$")

_HTTP_URL = TypeAdapter(AnyHttpUrl)


class Validator(Protocol):
    """Contract shared by all configuration types."""

    def validate(self) -> None:
        """Raise ConfigurationError describing every problem found."""
        ...


@dataclass(frozen=True)
class PluginConfig:
    """Credentials and target organization for one worker.

    Attributes:
        token: GitHub personal access token.
        organization: Organization login to assess.
        api_url: Optional GitHub API base URL (GitHub Enterprise Server).
    """

    token: str
    organization: str
    api_url: str | None = None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "PluginConfig":
        """Decode the host's string map into a PluginConfig.

        Accepts either ``token`` or ``api_key`` for the credential. Unknown
        keys are ignored. Nothing is validated here; call validate().

        Args:
            raw: Configuration mapping as received from the host.

        Returns:
            The decoded PluginConfig.
        """
        token = raw.get("token") or raw.get("api_key") or ""
        api_url = raw.get("api_url") or None
        return cls(
            token=str(token).strip(),
            organization=str(raw.get("organization") or "").strip(),
            api_url=str(api_url).strip() if api_url is not None else None,
        )

    def validate(self) -> None:
        """Check every field and report all problems at once.

        Raises:
            ConfigurationError: If any field is missing or malformed.
        """
        problems: list[str] = []
        if not self.token:
            problems.append("token is required")
        if not self.organization:
            problems.append("organization is required")
        elif not _ORGANIZATION_PATTERN.match(self.organization):
            problems.append(
                f"organization {self.organization!r} must match [A-Za-z0-9._-]+"
            )
        if self.api_url is not None:
            try:
                _HTTP_URL.validate_python(self.api_url)
            except ValidationError:
                problems.append(f"api_url {self.api_url!r} is not a valid http(s) URL")
        if problems:
            raise ConfigurationError(problems)

    def __repr__(self) -> str:
        return (
            f"PluginConfig(token='***', organization={self.organization!r}, "
            f"api_url={self.api_url!r})"
        )
