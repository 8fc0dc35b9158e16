"""Process-wide settings for the GitHub settings worker.

Settings are read once at startup and stay read-only for the lifetime of the
process. Per-organization credentials are NOT settings: they arrive through
the host's Configure call and are validated by PluginConfig.

Environment variable prefix: GITHUB_SETTINGS_
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from github_settings_worker.core.models import EvidenceShape


class Settings(BaseSettings):
    """Settings for the GitHub settings worker.

    Covers the GitHub API endpoint, the OPA sidecar, the evidence emission
    shape, the evidence collector and logging.
    """

    service_name: str = "ccf-github-settings-worker"

    # -------------------------------------------------------------------------
    # GitHub API
    # -------------------------------------------------------------------------

    api_url: str = Field(
        default="https://api.github.com",
        description="GitHub REST API base URL. Overridden per plugin by the api_url config key.",
    )
    include_teams: bool = Field(
        default=True,
        description="Fetch every team of the organization (paginated) into the snapshot.",
    )
    github_timeout_s: float = Field(
        default=30.0,
        description="Timeout in seconds for each GitHub API request.",
    )

    # -------------------------------------------------------------------------
    # OPA (Open Policy Agent) policy engine
    # -------------------------------------------------------------------------

    opa_url: str = Field(
        default="http://localhost:8181",
        description="OPA REST API endpoint used to compile and execute policy bundles.",
    )
    policy_eval_timeout_ms: int = Field(
        default=5000,
        description="Timeout for a single OPA policy query in milliseconds.",
    )
    opa_policy_prefix: str = Field(
        default="ccf/github-settings",
        description="Prefix under which bundle modules are uploaded to OPA.",
    )

    # -------------------------------------------------------------------------
    # Evidence emission and transmission
    # -------------------------------------------------------------------------

    evidence_shape: EvidenceShape = Field(
        default=EvidenceShape.EVIDENCE,
        description="Emission shape: evidence | observation_finding.",
    )
    collector_url: str = Field(
        default="",
        description="Evidence collector base URL. Leave empty to skip transmission.",
    )
    collector_timeout_s: float = Field(
        default=10.0,
        description="Timeout in seconds for each collector request.",
    )

    # -------------------------------------------------------------------------
    # Logging and HTTP host
    # -------------------------------------------------------------------------

    log_level: str = Field(default="DEBUG", description="Minimum log level.")
    log_json: bool = Field(default=True, description="Emit JSON log lines.")
    host: str = Field(default="127.0.0.1", description="Bind address for the worker host.")
    port: int = Field(default=8080, description="Bind port for the worker host.")

    model_config = SettingsConfigDict(env_prefix="GITHUB_SETTINGS_")
