from __future__ import annotations

from typing import Any

import pytest

from samldiag.application.capabilities import FeatureId, StaticCapabilityProbe
from samldiag.application.prerequisites import (
    CONDITIONAL_CAPABILITIES,
    LIBRARY_GROUPS,
    MSG_HOSTED_METADATA_PRESENT,
    MSG_KEYPAIR_ASSERTIONS,
    MSG_KEYPAIR_ASSERTIONS_ROLLOVER,
    MSG_KEYPAIR_METADATA,
    MSG_PLATFORM_VERSION,
    REQUIRED_CAPABILITIES,
    PrerequisiteMatrixBuilder,
    build_prerequisite_matrix,
    compare_versions,
)
from samldiag.config.settings import DeploymentConfig
from samldiag.domain.models import CheckResult, PrivateKeyMaterial, PublicKeyMaterial, RequirementLevel
from samldiag.infrastructure.errors import KeyLoadError
from samldiag.integrations.keys import FileKeyMaterialProvider
from samldiag.integrations.metadata import StaticMetadataProvider

BASE_CHECK_COUNT = 1 + len(REQUIRED_CAPABILITIES) + len(CONDITIONAL_CAPABILITIES) + len(
    LIBRARY_GROUPS
) + 2

ALL_FEATURES = StaticCapabilityProbe(set(FeatureId))
NO_FEATURES = StaticCapabilityProbe()


class StubKeys:
    """Key provider driven by a mapping of prefix to (public, private) material."""

    def __init__(self, pairs: dict[str, tuple[str, str, str | None]] | None = None) -> None:
        self._pairs = pairs or {}
        self.private_calls: list[tuple[str, bool]] = []

    def load_private_key(self, config, required=False, prefix=""):  # type: ignore[no-untyped-def]
        self.private_calls.append((prefix, required))
        pair = self._pairs.get(prefix)
        if pair is None:
            if required:
                raise KeyLoadError(f"missing {prefix}")
            return None
        return PrivateKeyMaterial(pem=pair[1], passphrase=pair[2])

    def load_public_key(self, config, required=False, prefix=""):  # type: ignore[no-untyped-def]
        pair = self._pairs.get(prefix)
        if pair is None:
            if required:
                raise KeyLoadError(f"missing {prefix}")
            return None
        return PublicKeyMaterial(pem=pair[0])


def _config(**values: Any) -> DeploymentConfig:
    return DeploymentConfig.from_mapping(values)


def _build(config: DeploymentConfig, *, metadata=None, keys=None, probe=ALL_FEATURES, **kwargs):  # type: ignore[no-untyped-def]
    return build_prerequisite_matrix(
        config,
        metadata or StaticMetadataProvider(),
        keys or StubKeys(),
        probe=probe,
        platform_version=kwargs.pop("platform_version", "3.12.1"),
        **kwargs,
    )


def _find(matrix: list[CheckResult], key: str) -> list[CheckResult]:
    return [check for check in matrix if check.description.key == key]


def test_matrix_order_and_size_without_saml() -> None:
    matrix = _build(_config())
    assert len(matrix) == BASE_CHECK_COUNT
    assert matrix[0].description.key == MSG_PLATFORM_VERSION
    assert matrix[1].description.key == "Date/Time Extension"
    assert matrix[-2].level is RequirementLevel.OPTIONAL
    assert matrix[-1].level is RequirementLevel.REQUIRED
    assert matrix[-1].description.key == "The auth.adminpassword configuration option must be set"


@pytest.mark.parametrize(
    ("current", "minimum", "expected"),
    [
        ("7.4.0", "7.4", True),
        ("7.3.9", "7.4", False),
        ("3.10.0", "3.9", True),
        ("3.9.18", "3.10", False),
        ("8.0.0-dev", "7.4", True),
        ("garbage", "3.10", False),
    ],
)
def test_platform_version_check(current: str, minimum: str, expected: bool) -> None:
    matrix = _build(_config(), platform_version=current, minimum_platform_version=minimum)
    check = matrix[0]
    assert check.level is RequirementLevel.REQUIRED
    assert check.satisfied is expected
    assert check.description.params["%minimum%"] == minimum
    assert check.description.params["%current%"] == current.split("-")[0]


def test_compare_versions_is_numeric_not_lexical() -> None:
    assert compare_versions("3.10", "3.9") is True


def test_required_capabilities_follow_probe() -> None:
    probe = StaticCapabilityProbe({FeatureId.JSON, FeatureId.REGEX})
    matrix = _build(_config(), probe=probe)
    required_block = matrix[1 : 1 + len(REQUIRED_CAPABILITIES)]
    assert all(check.level is RequirementLevel.REQUIRED for check in required_block)
    satisfied = {check.description.key for check in required_block if check.satisfied}
    assert satisfied == {"JSON support", "Regular expression support"}


@pytest.mark.parametrize(
    ("values", "description"),
    [
        ({"store": {"type": "phpsession"}}, "Session extension"),
        ({"store": {"type": "sql"}}, "Database driver extension"),
        ({"module": {"enable": {"ldap": True}}}, "LDAP extension"),
        ({"module": {"enable": {"radius": True}}}, "Radius extension"),
        ({"store": {"type": "redis"}}, "redis library"),
        ({"store": {"type": "memcache"}}, "Memcache or Memcached extension"),
    ],
)
def test_conditional_checks_become_required(values: dict[str, Any], description: str) -> None:
    matrix = _build(_config(**values))
    checks = _find(matrix, description)
    assert len(checks) == 1
    assert checks[0].level is RequirementLevel.REQUIRED


def test_conditional_checks_are_optional_by_default() -> None:
    matrix = _build(_config(admin={"checkforupdates": False}))
    conditional = matrix[1 + len(REQUIRED_CAPABILITIES) : BASE_CHECK_COUNT - 2]
    assert len(conditional) == len(CONDITIONAL_CAPABILITIES) + len(LIBRARY_GROUPS)
    assert all(check.level is RequirementLevel.OPTIONAL for check in conditional)
    assert all("(" in check.description.key for check in conditional)


def test_http_client_required_when_update_checks_enabled() -> None:
    enabled = _build(_config())
    disabled = _build(_config(admin={"checkforupdates": False}))
    index = 1 + len(REQUIRED_CAPABILITIES)
    assert enabled[index].level is RequirementLevel.REQUIRED
    assert enabled[index].description.key.startswith("httpx (required")
    assert disabled[index].level is RequirementLevel.OPTIONAL
    assert disabled[index].description.key == "httpx (might be required by some modules)"


def test_library_group_satisfied_by_any_member() -> None:
    probe = StaticCapabilityProbe({FeatureId.PYLIBMC_CLIENT})
    matrix = _build(_config(store={"type": "memcache"}), probe=probe)
    (memcache,) = _find(matrix, "Memcache or Memcached extension")
    assert memcache.satisfied is True
    (redis,) = _find(matrix, "redis library (required if the redis data store is used)")
    assert redis.satisfied is False


def test_configuration_sanity_checks() -> None:
    defaults = _build(_config(technicalcontact_email="na@example.org", auth={"adminpassword": "123"}))
    assert defaults[-2].satisfied is False
    assert defaults[-1].satisfied is False

    missing = _build(_config())
    assert missing[-2].satisfied is False
    assert missing[-1].satisfied is False

    configured = _build(
        _config(technicalcontact_email="ops@example.org", auth={"adminpassword": "s3cure"})
    )
    assert configured[-2].satisfied is True
    assert configured[-1].satisfied is True


def test_invalid_option_type_degrades_to_unsatisfied() -> None:
    matrix = _build(_config(auth={"adminpassword": 12345}))
    assert matrix[-1].satisfied is False


def test_hosted_metadata_missing_yields_single_failed_check() -> None:
    keys = StubKeys()
    matrix = _build(_config(enable={"saml20-idp": True}), keys=keys)
    assert len(matrix) == BASE_CHECK_COUNT + 1
    last = matrix[-1]
    assert last.description.key == MSG_HOSTED_METADATA_PRESENT
    assert last.level is RequirementLevel.REQUIRED
    assert last.satisfied is False
    assert not _find(matrix, MSG_KEYPAIR_ASSERTIONS)
    assert keys.private_calls == []


def test_primary_pair_without_rollover(ec_key_pair) -> None:  # noqa: ANN001
    metadata = StaticMetadataProvider({"saml20-idp-hosted": {"entityid": "idp"}})
    keys = StubKeys({"": (ec_key_pair.certificate_pem, ec_key_pair.private_key_pem, None)})
    matrix = _build(_config(enable={"saml20-idp": True}), metadata=metadata, keys=keys)

    assert len(matrix) == BASE_CHECK_COUNT + 1
    (primary,) = _find(matrix, MSG_KEYPAIR_ASSERTIONS)
    assert primary.level is RequirementLevel.REQUIRED
    assert primary.satisfied is True
    assert not _find(matrix, MSG_KEYPAIR_ASSERTIONS_ROLLOVER)


def test_rollover_pair_is_checked_when_configured(ec_key_pair, key_pair_factory) -> None:  # noqa: ANN001
    rollover = key_pair_factory("ec")
    metadata = StaticMetadataProvider({"saml20-idp-hosted": {"entityid": "idp"}})
    keys = StubKeys(
        {
            "": (ec_key_pair.certificate_pem, ec_key_pair.private_key_pem, None),
            "new_": (ec_key_pair.certificate_pem, rollover.private_key_pem, None),
        }
    )
    matrix = _build(_config(enable={"saml20-idp": True}), metadata=metadata, keys=keys)

    assert matrix[-2].description.key == MSG_KEYPAIR_ASSERTIONS
    assert matrix[-2].satisfied is True
    assert matrix[-1].description.key == MSG_KEYPAIR_ASSERTIONS_ROLLOVER
    assert matrix[-1].satisfied is False


def test_missing_primary_key_is_unsatisfied_not_an_error() -> None:
    metadata = StaticMetadataProvider({"saml20-idp-hosted": {"entityid": "idp"}})
    matrix = _build(_config(enable={"saml20-idp": True}), metadata=metadata, keys=StubKeys())
    (primary,) = _find(matrix, MSG_KEYPAIR_ASSERTIONS)
    assert primary.satisfied is False


def test_metadata_signing_pair_is_independent_of_idp(tmp_path, rsa_key_pair) -> None:  # noqa: ANN001
    (tmp_path / "sign.pem").write_text(rsa_key_pair.private_key_pem, encoding="utf-8")
    (tmp_path / "sign.crt").write_text(rsa_key_pair.certificate_pem, encoding="utf-8")
    config = _config(
        metadata={"sign": {"enable": True, "privatekey": "sign.pem", "certificate": "sign.crt"}}
    )
    matrix = _build(config, keys=FileKeyMaterialProvider(tmp_path))

    assert len(matrix) == BASE_CHECK_COUNT + 1
    assert matrix[-1].description.key == MSG_KEYPAIR_METADATA
    assert matrix[-1].satisfied is True


def test_metadata_signing_missing_files_is_unsatisfied(tmp_path) -> None:  # noqa: ANN001
    config = _config(
        metadata={"sign": {"enable": True, "privatekey": "absent.pem", "certificate": "absent.crt"}}
    )
    matrix = _build(config, keys=FileKeyMaterialProvider(tmp_path))
    assert matrix[-1].description.key == MSG_KEYPAIR_METADATA
    assert matrix[-1].satisfied is False


def test_hosted_metadata_with_real_key_files(tmp_path, key_pair_factory) -> None:  # noqa: ANN001
    pair = key_pair_factory("ec", passphrase="pw")
    (tmp_path / "idp.pem").write_text(pair.private_key_pem, encoding="utf-8")
    (tmp_path / "idp.crt").write_text(pair.certificate_pem, encoding="utf-8")
    metadata = StaticMetadataProvider(
        {
            "saml20-idp-hosted": {
                "privatekey": "idp.pem",
                "privatekey_pass": "pw",
                "certificate": "idp.crt",
            }
        }
    )
    matrix = _build(
        _config(enable={"saml20-idp": True}),
        metadata=metadata,
        keys=FileKeyMaterialProvider(tmp_path),
    )
    (primary,) = _find(matrix, MSG_KEYPAIR_ASSERTIONS)
    assert primary.satisfied is True
    assert not _find(matrix, MSG_KEYPAIR_ASSERTIONS_ROLLOVER)


def test_matrix_is_rebuilt_on_every_call() -> None:
    builder = PrerequisiteMatrixBuilder(probe=ALL_FEATURES, platform_version="3.12.0")
    config = _config()
    first = builder.build(config, StaticMetadataProvider(), StubKeys())
    second = builder.build(config, StaticMetadataProvider(), StubKeys())
    assert first == second
    assert first is not second


def test_no_capabilities_still_renders_full_matrix() -> None:
    matrix = _build(_config(), probe=NO_FEATURES)
    assert len(matrix) == BASE_CHECK_COUNT
    capability_checks = matrix[1 : BASE_CHECK_COUNT - 2]
    assert not any(check.satisfied for check in capability_checks)
