"""Build the prerequisite matrix for the installation health page.

The matrix is an ordered list of :class:`CheckResult` entries:

1. interpreter version
2. always-required runtime capabilities
3. capabilities required only by some configurations
4. optional third-party library groups
5. configuration sanity checks
6. key-pair sanity checks for the hosted IdP and for metadata signing

It is rebuilt on every call and never cached. A failure in any single check
turns into an unsatisfied entry; building the matrix never raises.
"""

from __future__ import annotations

import platform
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Final

from packaging.version import InvalidVersion, Version

from samldiag.application.capabilities import CapabilityProbe, FeatureId, PythonCapabilityProbe
from samldiag.application.keypair import KeyPairValidator
from samldiag.config.constants import DEFAULT_ADMIN_PASSWORD, DEFAULT_TECHNICAL_CONTACT_EMAIL
from samldiag.config.settings import (
    ADMIN_PASSWORD_KEY,
    CHECK_FOR_UPDATES_KEY,
    METADATA_SIGN_ENABLED_KEY,
    METADATA_SIGN_PREFIX,
    SAML20_IDP_ENABLED_KEY,
    STORE_TYPE_KEY,
    TECHNICAL_CONTACT_EMAIL_KEY,
    DeploymentConfig,
)
from samldiag.domain.models import CheckResult, RequirementLevel, TranslatableText
from samldiag.domain.ports import KeyMaterialProvider, MetadataProvider
from samldiag.infrastructure.errors import DiagnosticsError, KeyLoadError
from samldiag.infrastructure.logging import BoundLogger, get_logger

MINIMUM_PLATFORM_VERSION: Final = "3.11"
HOSTED_IDP_METADATA_SET: Final = "saml20-idp-hosted"
ROLLOVER_KEY_PREFIX: Final = "new_"

MSG_PLATFORM_VERSION: Final = "Python %minimum% or newer is needed. You are running: %current%"
MSG_HOSTED_METADATA_PRESENT: Final = "Hosted IdP metadata present"
MSG_KEYPAIR_ASSERTIONS: Final = "Matching key-pair for signing assertions"
MSG_KEYPAIR_ASSERTIONS_ROLLOVER: Final = "Matching key-pair for signing assertions (rollover key)"
MSG_KEYPAIR_METADATA: Final = "Matching key-pair for signing metadata"
MSG_TECHNICAL_CONTACT: Final = (
    "The <code>technicalcontact_email</code> configuration option should be set"
)
MSG_ADMIN_PASSWORD: Final = "The auth.adminpassword configuration option must be set"

Condition = Callable[[DeploymentConfig], bool]


@dataclass(frozen=True)
class CapabilityRequirement:
    """A probed capability group whose requirement level may depend on config.

    ``condition`` returns ``True`` when the active configuration needs the
    capability. The same boolean selects both the requirement level and the
    description phrasing.
    """

    features: tuple[FeatureId, ...]
    required_text: str
    optional_text: str | None = None
    condition: Condition | None = None

    def level(self, config: DeploymentConfig) -> RequirementLevel:
        if self.condition is None:
            return RequirementLevel.REQUIRED
        return RequirementLevel.when(self.condition(config))

    def description(self, level: RequirementLevel) -> TranslatableText:
        if level is RequirementLevel.OPTIONAL and self.optional_text:
            return TranslatableText(self.optional_text)
        return TranslatableText(self.required_text)


def _store_is(store: str) -> Condition:
    return lambda config: config.get_string(STORE_TYPE_KEY, "") == store


def _module_enabled(module: str) -> Condition:
    return lambda config: config.is_module_enabled(module)


def _checks_for_updates(config: DeploymentConfig) -> bool:
    return config.get_boolean(CHECK_FOR_UPDATES_KEY, True)


REQUIRED_CAPABILITIES: Final[tuple[CapabilityRequirement, ...]] = (
    CapabilityRequirement((FeatureId.DATETIME,), "Date/Time Extension"),
    CapabilityRequirement((FeatureId.HASHING,), "Hashing function"),
    CapabilityRequirement((FeatureId.ZLIB,), "ZLib"),
    CapabilityRequirement((FeatureId.ASYMMETRIC_SIGNING,), "OpenSSL"),
    CapabilityRequirement((FeatureId.XML_DOM,), "XML DOM"),
    CapabilityRequirement((FeatureId.REGEX,), "Regular expression support"),
    CapabilityRequirement((FeatureId.JSON,), "JSON support"),
    CapabilityRequirement((FeatureId.REFLECTION,), "Standard library introspection (inspect)"),
    CapabilityRequirement((FeatureId.MULTIBYTE_STRINGS,), "Multibyte String extension"),
)

CONDITIONAL_CAPABILITIES: Final[tuple[CapabilityRequirement, ...]] = (
    CapabilityRequirement(
        (FeatureId.HTTP_CLIENT,),
        required_text="httpx (required if automatic version checks are used, also by some modules)",
        optional_text="httpx (might be required by some modules)",
        condition=_checks_for_updates,
    ),
    CapabilityRequirement(
        (FeatureId.SESSION,),
        required_text="Session extension",
        optional_text="Session extension (required if PHP sessions are used)",
        condition=_store_is("phpsession"),
    ),
    CapabilityRequirement(
        (FeatureId.DATABASE_DRIVER,),
        required_text="Database driver extension",
        optional_text="Database driver extension (required if a database backend is used)",
        condition=_store_is("sql"),
    ),
    CapabilityRequirement(
        (FeatureId.LDAP,),
        required_text="LDAP extension",
        optional_text="LDAP extension (required if an LDAP backend is used)",
        condition=_module_enabled("ldap"),
    ),
    CapabilityRequirement(
        (FeatureId.RADIUS,),
        required_text="Radius extension",
        optional_text="Radius extension (required if a radius backend is used)",
        condition=_module_enabled("radius"),
    ),
)

LIBRARY_GROUPS: Final[tuple[CapabilityRequirement, ...]] = (
    CapabilityRequirement(
        (FeatureId.REDIS_CLIENT,),
        required_text="redis library",
        optional_text="redis library (required if the redis data store is used)",
        condition=_store_is("redis"),
    ),
    CapabilityRequirement(
        (FeatureId.PYMEMCACHE_CLIENT, FeatureId.PYLIBMC_CLIENT),
        required_text="Memcache or Memcached extension",
        optional_text="Memcache or Memcached extension (required if the memcache backend is used)",
        condition=_store_is("memcache"),
    ),
)


def compare_versions(current: str, minimum: str) -> bool:
    """Return ``True`` when ``current`` is at least ``minimum``.

    Versions compare numerically (``3.10`` is newer than ``3.9``). An
    unparsable version never satisfies the check.
    """

    try:
        return Version(current) >= Version(minimum)
    except InvalidVersion:
        return False


def _release_part(version: str) -> str:
    return version.split("-", 1)[0]


class PrerequisiteMatrixBuilder:
    def __init__(
        self,
        *,
        probe: CapabilityProbe | None = None,
        validator: KeyPairValidator | None = None,
        logger: BoundLogger | None = None,
        platform_version: str | None = None,
        minimum_platform_version: str = MINIMUM_PLATFORM_VERSION,
    ) -> None:
        self._probe = probe or PythonCapabilityProbe()
        self._logger = logger or get_logger("samldiag.prerequisites")
        self._validator = validator or KeyPairValidator(self._logger)
        self._platform_version = platform_version or platform.python_version()
        self._minimum_platform_version = minimum_platform_version

    def build(
        self,
        config: DeploymentConfig,
        metadata: MetadataProvider,
        keys: KeyMaterialProvider,
    ) -> list[CheckResult]:
        matrix: list[CheckResult] = [self._platform_version_check()]
        matrix.extend(self._capability_checks(config, REQUIRED_CAPABILITIES))
        matrix.extend(self._capability_checks(config, CONDITIONAL_CAPABILITIES))
        matrix.extend(self._capability_checks(config, LIBRARY_GROUPS))
        matrix.extend(self._configuration_checks(config))

        if self._flag(config, SAML20_IDP_ENABLED_KEY):
            matrix.extend(self._hosted_idp_checks(metadata, keys))

        if self._flag(config, METADATA_SIGN_ENABLED_KEY):
            matrix.append(
                self._key_pair_check(
                    config,
                    keys,
                    prefix=METADATA_SIGN_PREFIX,
                    description=MSG_KEYPAIR_METADATA,
                )
            )

        self._logger.debug(
            "prerequisites.built",
            checks=len(matrix),
            unsatisfied=sum(1 for check in matrix if not check.satisfied),
        )
        return matrix

    def _flag(self, config: DeploymentConfig, key: str) -> bool:
        try:
            return config.get_boolean(key, False)
        except DiagnosticsError as exc:
            self._logger.warning("prerequisites.invalid_flag", key=key, **exc.log_fields())
            return False

    def _platform_version_check(self) -> CheckResult:
        current = self._platform_version
        minimum = self._minimum_platform_version
        satisfied = compare_versions(current, minimum)
        self._logger.debug(
            "prerequisites.version", current=current, minimum=minimum, satisfied=satisfied
        )
        return CheckResult(
            level=RequirementLevel.REQUIRED,
            description=TranslatableText(
                MSG_PLATFORM_VERSION,
                {"%minimum%": minimum, "%current%": _release_part(current)},
            ),
            satisfied=satisfied,
        )

    def _capability_checks(
        self,
        config: DeploymentConfig,
        requirements: Sequence[CapabilityRequirement],
    ) -> list[CheckResult]:
        results: list[CheckResult] = []
        for requirement in requirements:
            try:
                level = requirement.level(config)
            except DiagnosticsError as exc:
                self._logger.warning("prerequisites.invalid_condition", **exc.log_fields())
                level = RequirementLevel.OPTIONAL
            satisfied = any(self._probe.available(feature) for feature in requirement.features)
            results.append(
                CheckResult(
                    level=level,
                    description=requirement.description(level),
                    satisfied=satisfied,
                )
            )
        return results

    def _configuration_checks(self, config: DeploymentConfig) -> list[CheckResult]:
        return [
            CheckResult(
                level=RequirementLevel.OPTIONAL,
                description=TranslatableText(MSG_TECHNICAL_CONTACT),
                satisfied=self._differs_from(
                    config, TECHNICAL_CONTACT_EMAIL_KEY, DEFAULT_TECHNICAL_CONTACT_EMAIL
                ),
            ),
            CheckResult(
                level=RequirementLevel.REQUIRED,
                description=TranslatableText(MSG_ADMIN_PASSWORD),
                satisfied=self._differs_from(config, ADMIN_PASSWORD_KEY, DEFAULT_ADMIN_PASSWORD),
            ),
        ]

    def _differs_from(self, config: DeploymentConfig, key: str, placeholder: str) -> bool:
        try:
            return config.get_string(key, placeholder) != placeholder
        except DiagnosticsError as exc:
            self._logger.warning("prerequisites.invalid_option", key=key, **exc.log_fields())
            return False

    def _hosted_idp_checks(
        self,
        metadata: MetadataProvider,
        keys: KeyMaterialProvider,
    ) -> list[CheckResult]:
        try:
            hosted = metadata.get_hosted_metadata(HOSTED_IDP_METADATA_SET)
        except DiagnosticsError as exc:
            self._logger.warning("prerequisites.metadata_missing", **exc.log_fields())
            return [
                CheckResult(
                    level=RequirementLevel.REQUIRED,
                    description=TranslatableText(MSG_HOSTED_METADATA_PRESENT),
                    satisfied=False,
                )
            ]

        hosted_config = DeploymentConfig.from_mapping(hosted, name=HOSTED_IDP_METADATA_SET)
        results = [
            self._key_pair_check(
                hosted_config, keys, prefix="", description=MSG_KEYPAIR_ASSERTIONS
            )
        ]
        if self._rollover_configured(hosted_config, keys):
            results.append(
                self._key_pair_check(
                    hosted_config,
                    keys,
                    prefix=ROLLOVER_KEY_PREFIX,
                    description=MSG_KEYPAIR_ASSERTIONS_ROLLOVER,
                )
            )
        return results

    def _rollover_configured(self, config: DeploymentConfig, keys: KeyMaterialProvider) -> bool:
        try:
            return keys.load_private_key(config, False, ROLLOVER_KEY_PREFIX) is not None
        except DiagnosticsError as exc:
            # Configured but unreadable still counts as configured.
            self._logger.warning("prerequisites.key_load_failed", **exc.log_fields())
            return True

    def _key_pair_check(
        self,
        config: DeploymentConfig,
        keys: KeyMaterialProvider,
        *,
        prefix: str,
        description: str,
    ) -> CheckResult:
        return CheckResult(
            level=RequirementLevel.REQUIRED,
            description=TranslatableText(description),
            satisfied=self._key_pair_matches(config, keys, prefix),
        )

    def _key_pair_matches(
        self, config: DeploymentConfig, keys: KeyMaterialProvider, prefix: str
    ) -> bool:
        try:
            private = keys.load_private_key(config, True, prefix)
            public = keys.load_public_key(config, True, prefix)
            if private is None or public is None:
                raise KeyLoadError(f"Key material missing in '{config.name}'")
        except DiagnosticsError as exc:
            self._logger.warning(
                "prerequisites.key_load_failed", prefix=prefix or None, **exc.log_fields()
            )
            return False
        return self._validator.matches(public.pem, private.pem, private.passphrase)


def build_prerequisite_matrix(
    config: DeploymentConfig,
    metadata: MetadataProvider,
    keys: KeyMaterialProvider,
    *,
    probe: CapabilityProbe | None = None,
    validator: KeyPairValidator | None = None,
    platform_version: str | None = None,
    minimum_platform_version: str = MINIMUM_PLATFORM_VERSION,
    logger: BoundLogger | None = None,
) -> list[CheckResult]:
    """Build the prerequisite matrix for ``config``."""

    builder = PrerequisiteMatrixBuilder(
        probe=probe,
        validator=validator,
        logger=logger,
        platform_version=platform_version,
        minimum_platform_version=minimum_platform_version,
    )
    return builder.build(config, metadata, keys)


__all__ = [
    "MINIMUM_PLATFORM_VERSION",
    "HOSTED_IDP_METADATA_SET",
    "REQUIRED_CAPABILITIES",
    "CONDITIONAL_CAPABILITIES",
    "LIBRARY_GROUPS",
    "CapabilityRequirement",
    "PrerequisiteMatrixBuilder",
    "build_prerequisite_matrix",
    "compare_versions",
]
