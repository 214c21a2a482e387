"""Assemble the installation health report.

This module glues the matrix builder and the warning aggregator together so
the CLI (or any other presentation layer) can render one structured result
without knowing about the individual collaborators.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Final
from urllib.parse import urlsplit

from samldiag.application.capabilities import CapabilityProbe, PythonCapabilityProbe
from samldiag.application.deployment_warnings import DeploymentWarningAggregator
from samldiag.application.keypair import KeyPairValidator
from samldiag.application.prerequisites import PrerequisiteMatrixBuilder
from samldiag.config.settings import BASE_DIR_KEY, SAML20_IDP_ENABLED_KEY, DeploymentConfig
from samldiag.domain.models import CheckResult, TransportInfo, TranslatableText
from samldiag.domain.ports import (
    HttpFetcher,
    KeyMaterialProvider,
    MetadataProvider,
    SessionScopedCache,
)
from samldiag.infrastructure.errors import DiagnosticsError
from samldiag.infrastructure.logging import BoundLogger, attach_request_context, get_logger

_DEFAULT_PORTS: Final[dict[str, int]] = {"http": 80, "https": 443}
UNKNOWN_VERSION: Final = "unknown"


@dataclass
class HealthReport:
    """Result of one diagnostics run."""

    version: str
    base_dir: str | None
    saml20_idp_enabled: bool
    checks: list[CheckResult] = field(default_factory=list)
    warnings: list[TranslatableText] = field(default_factory=list)

    @property
    def unsatisfied_required(self) -> list[CheckResult]:
        return [check for check in self.checks if check.required and not check.satisfied]

    @property
    def healthy(self) -> bool:
        return not self.unsatisfied_required

    def exit_code(self) -> int:
        return 0 if self.healthy else 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "directory": self.base_dir,
            "enablematrix": {"saml20idp": self.saml20_idp_enabled},
            "funcmatrix": [check.to_dict() for check in self.checks],
            "warnings": [warning.to_dict() for warning in self.warnings],
            "healthy": self.healthy,
        }


def build_health_report(
    config: DeploymentConfig,
    *,
    metadata: MetadataProvider,
    keys: KeyMaterialProvider,
    transport: TransportInfo,
    cache: SessionScopedCache,
    fetcher: HttpFetcher,
    probe: CapabilityProbe | None = None,
    validator: KeyPairValidator | None = None,
    platform_version: str | None = None,
    logger: BoundLogger | None = None,
) -> HealthReport:
    """Run the warning aggregator and the prerequisite matrix for ``config``."""

    run_logger = attach_request_context(logger or get_logger("samldiag.diagnostics"))
    probe = probe or PythonCapabilityProbe()

    warnings = DeploymentWarningAggregator(probe=probe, logger=run_logger).collect(
        config, transport, cache, fetcher
    )
    checks = PrerequisiteMatrixBuilder(
        probe=probe,
        validator=validator,
        logger=run_logger,
        platform_version=platform_version,
    ).build(config, metadata, keys)

    try:
        saml20_idp_enabled = config.get_boolean(SAML20_IDP_ENABLED_KEY, False)
    except DiagnosticsError:
        saml20_idp_enabled = False
    try:
        version = config.get_version()
    except DiagnosticsError as exc:
        run_logger.warning("diagnostics.invalid_option", **exc.log_fields())
        version = UNKNOWN_VERSION
    try:
        base_dir = config.get_string(BASE_DIR_KEY)
    except DiagnosticsError as exc:
        run_logger.warning("diagnostics.invalid_option", **exc.log_fields())
        base_dir = None

    report = HealthReport(
        version=version,
        base_dir=base_dir,
        saml20_idp_enabled=saml20_idp_enabled,
        checks=checks,
        warnings=warnings,
    )
    run_logger.info(
        "diagnostics.completed",
        healthy=report.healthy,
        checks=len(checks),
        warnings=len(warnings),
    )
    return report


def _host_with_port(scheme: str, hostname: str, port: int | None) -> str:
    if port is None or _DEFAULT_PORTS.get(scheme) == port:
        return hostname
    return f"{hostname}:{port}"


def describe_base_url(url: str) -> dict[str, list[str]]:
    """Break a deployment base URL into host, port and protocol details.

    Values are lists so that empty entries (e.g. HTTPS off) render as blanks.
    """

    parts = urlsplit(url)
    if not parts.scheme or not parts.hostname:
        raise ValueError(f"Not an absolute URL: {url!r}")

    scheme = parts.scheme.lower()
    hostname = parts.hostname
    host = _host_with_port(scheme, hostname, parts.port)
    path = parts.path or "/"
    url_host = f"{scheme}://{host}"
    no_query = f"{url_host}{path}"
    base_url = no_query if no_query.endswith("/") else f"{no_query}/"
    first_segment = next((segment for segment in path.split("/") if segment), "")

    return {
        "HTTP_HOST": [host],
        "HTTPS": ["on"] if scheme == "https" else [],
        "getBaseURL()": [base_url],
        "getSelfHost()": [hostname],
        "getSelfHostWithNonStandardPort()": [host],
        "getSelfURLHost()": [url_host],
        "getSelfURLNoQuery()": [no_query],
        "getSelfHostWithPath()": [f"{host}{path}"],
        "getFirstPathElement()": [f"/{first_segment}" if first_segment else "/"],
        "getSelfURL()": [f"{no_query}?{parts.query}" if parts.query else no_query],
    }


def summarize_checks(checks: Sequence[CheckResult]) -> dict[str, int]:
    summary = {"required": 0, "optional": 0, "failed_required": 0, "failed_optional": 0}
    for check in checks:
        bucket = "required" if check.required else "optional"
        summary[bucket] += 1
        if not check.satisfied:
            summary[f"failed_{bucket}"] += 1
    return summary


__all__ = [
    "HealthReport",
    "build_health_report",
    "describe_base_url",
    "summarize_checks",
]
