"""Top-level SAMLDiag package API."""

from samldiag.application.capabilities import FeatureId, PythonCapabilityProbe
from samldiag.application.deployment_warnings import collect_warnings
from samldiag.application.diagnostics import HealthReport, build_health_report
from samldiag.application.keypair import KeyPairValidator, matching_key_pair
from samldiag.application.prerequisites import build_prerequisite_matrix
from samldiag.config.settings import DeploymentConfig

__all__ = [
    "DeploymentConfig",
    "FeatureId",
    "HealthReport",
    "KeyPairValidator",
    "PythonCapabilityProbe",
    "build_health_report",
    "build_prerequisite_matrix",
    "collect_warnings",
    "matching_key_pair",
]
