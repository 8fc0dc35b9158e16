"""Continuous Compliance Framework worker for GitHub organization settings.

Fetches the configuration state of a GitHub organization, evaluates it against
caller-supplied OPA policy bundles and emits provenance-annotated compliance
evidence for a downstream collector.
"""

__version__ = "0.1.0"
