"""OPA-backed policy engine.

Executes a local policy bundle (a directory of Rego modules, or a single
.rego file) against a JSON document:

1. Resolve the bundle path and read every non-test module.
2. Upload each module to OPA under a bundle-scoped identifier.
3. Query every declared package with the document as input.
4. Map each package result to a PolicyVerdict.
5. Remove the uploaded modules.

Package result convention:
- violation    — set of objects (or strings); empty means the policy passed
- title        — human-readable policy title (defaults to the package name)
- description  — what the policy checks
- remarks      — optional remediation text
- controls     — control identifiers the policy evidences
- skip         — when true the package produces no verdict
- skip_reason  — logged when skip is true

Any failure is raised as BundleEvaluationError for the bundle.
"""

import asyncio
import hashlib
import re
from pathlib import Path
from typing import Any
from uuid import uuid4

from pydantic import ValidationError

from github_settings_worker.adapters.opa_client import OPAClient, OPAClientError
from github_settings_worker.core.models import PolicyVerdict
from github_settings_worker.errors import BundleEvaluationError
from github_settings_worker.observability import get_logger

logger = get_logger(__name__)

_PACKAGE_PATTERN = re.compile(r"^\s*package\s+([A-Za-z_][\w.]*)", re.MULTILINE)

_DEFAULT_POLICY_PREFIX = "ccf/github-settings"


def discover_modules(bundle_path: str) -> dict[str, str]:
    """Read the Rego modules of a bundle.

    Test modules (``*_test.rego``) are excluded.

    Args:
        bundle_path: A directory containing .rego files, or a single .rego file.

    Returns:
        Mapping of bundle-relative module path to Rego source, sorted by path.

    Raises:
        BundleEvaluationError: If the path does not exist or holds no modules.
    """
    root = Path(bundle_path)
    if root.is_file():
        files = [root] if root.suffix == ".rego" else []
        base = root.parent
    elif root.is_dir():
        files = sorted(p for p in root.rglob("*.rego") if p.is_file())
        base = root
    else:
        raise BundleEvaluationError(bundle_path, "path does not exist")

    try:
        modules = {
            path.relative_to(base).as_posix(): path.read_text(encoding="utf-8")
            for path in files
            if not path.name.endswith("_test.rego")
        }
    except (OSError, UnicodeDecodeError) as exc:
        raise BundleEvaluationError(bundle_path, f"cannot read policy: {exc}") from exc
    if not modules:
        raise BundleEvaluationError(bundle_path, "no Rego policies found")
    return modules


def declared_packages(modules: dict[str, str]) -> list[str]:
    """Return the distinct package names declared by the modules, in order."""
    packages: list[str] = []
    for source in modules.values():
        match = _PACKAGE_PATTERN.search(source)
        if match and match.group(1) not in packages:
            packages.append(match.group(1))
    return packages


def verdict_from_result(package: str, result: dict[str, Any]) -> PolicyVerdict | None:
    """Map one package result document to a verdict.

    Args:
        package: The queried package name.
        result: The package result returned by OPA.

    Returns:
        The verdict, or None if the package asked to be skipped.
    """
    if result.get("skip") is True:
        logger.info(
            "Policy skipped",
            package=package,
            skip_reason=result.get("skip_reason", ""),
        )
        return None

    violations = tuple(
        item if isinstance(item, dict) else {"title": str(item)}
        for item in result.get("violation", []) or []
    )
    return PolicyVerdict(
        policy_id=package,
        title=str(result.get("title") or package),
        description=str(result.get("description") or ""),
        remarks=result.get("remarks"),
        violations=violations,
        controls=tuple(str(control) for control in result.get("controls", []) or []),
    )


class OPAPolicyEngine:
    """Policy engine that compiles and executes bundles through OPA.

    OPA resolves queries by package across every loaded module, so bundles
    are executed one at a time per engine. Module ids carry a per-invocation
    nonce so one invocation never removes modules uploaded by another.

    Args:
        client: The OPA REST client.
        policy_prefix: Prefix under which bundle modules are uploaded.
    """

    def __init__(self, client: OPAClient, policy_prefix: str = _DEFAULT_POLICY_PREFIX) -> None:
        self._client = client
        self._policy_prefix = policy_prefix.strip("/")
        self._lock = asyncio.Lock()

    def _module_id(self, bundle_path: str, nonce: str, module_path: str) -> str:
        digest = hashlib.sha256(bundle_path.encode("utf-8")).hexdigest()[:12]
        return f"{self._policy_prefix}/{digest}/{nonce}/{module_path}"

    async def generate_results(
        self,
        bundle_path: str,
        document: dict[str, Any],
    ) -> list[PolicyVerdict]:
        """Evaluate every policy package in a bundle.

        Args:
            bundle_path: Local bundle directory or .rego file.
            document: The JSON document passed to OPA as input.

        Returns:
            One verdict per non-skipped package, in declaration order.

        Raises:
            BundleEvaluationError: If the bundle cannot be resolved, compiled
                or executed, or a package result does not follow the result
                convention.
        """
        modules = discover_modules(bundle_path)
        packages = declared_packages(modules)
        if not packages:
            raise BundleEvaluationError(bundle_path, "no package declarations found")

        async with self._lock:
            verdicts = await self._execute(bundle_path, modules, packages, document)

        logger.debug(
            "Policy bundle executed",
            policy_path=bundle_path,
            packages=len(packages),
            verdicts=len(verdicts),
        )
        return verdicts

    async def _execute(
        self,
        bundle_path: str,
        modules: dict[str, str],
        packages: list[str],
        document: dict[str, Any],
    ) -> list[PolicyVerdict]:
        nonce = uuid4().hex
        uploaded: list[str] = []
        verdicts: list[PolicyVerdict] = []
        try:
            for module_path, source in modules.items():
                module_id = self._module_id(bundle_path, nonce, module_path)
                await self._client.upload_policy(module_id, source)
                uploaded.append(module_id)

            for package in packages:
                result = await self._client.query(package, document)
                if result is None:
                    logger.warning(
                        "Policy package undefined in OPA",
                        package=package,
                        policy_path=bundle_path,
                    )
                    continue
                try:
                    verdict = verdict_from_result(package, result)
                except (ValidationError, TypeError, ValueError) as exc:
                    raise BundleEvaluationError(
                        bundle_path, f"malformed result for package {package}: {exc}"
                    ) from exc
                if verdict is not None:
                    verdicts.append(verdict)
        except OPAClientError as exc:
            raise BundleEvaluationError(bundle_path, str(exc)) from exc
        finally:
            for module_id in uploaded:
                await self._client.delete_policy(module_id)
        return verdicts
