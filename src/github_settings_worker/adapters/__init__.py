"""Adapters: external integrations for the worker.

Contains:
- github_client.py  — GitHub REST API client (organization + paginated teams)
- opa_client.py     — OPA REST API client
- policy_engine.py  — OPA-backed policy bundle executor
- evidence_sink.py  — Collector transmission of finished records
"""

__all__: list[str] = []
