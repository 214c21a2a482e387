from __future__ import annotations

import datetime
import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass

import pytest
import structlog
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.x509.oid import NameOID


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("samldiag")
    group.addoption(
        "--offline",
        action="store_true",
        dest="samldiag_offline",
        help="Run offline tests only (deselect tests marked 'online').",
    )
    group.addoption(
        "--online-only",
        action="store_true",
        dest="samldiag_online_only",
        help="Run only tests marked 'online' (deselect offline).",
    )


def _is_integration_path(s: str) -> bool:
    s = s.replace("\\", "/")
    return s.startswith("tests/integration/") or "/tests/integration/" in s


def _mark_by_path(items: list[pytest.Item]) -> None:
    for item in items:
        node_str = str(getattr(item, "fspath", item.nodeid))
        marker = (
            pytest.mark.online
            if _is_integration_path(node_str)
            else pytest.mark.offline
        )
        item.add_marker(marker)


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    _mark_by_path(items)

    offline_only = bool(config.getoption("samldiag_offline"))
    online_only = bool(config.getoption("samldiag_online_only"))

    if offline_only and online_only:
        raise pytest.UsageError("--offline and --online-only are mutually exclusive")

    deselect: list[pytest.Item] = []
    if online_only:
        deselect = [i for i in items if "online" not in i.keywords]
    elif offline_only:
        deselect = [i for i in items if "online" in i.keywords]

    if not deselect:
        return

    config.hook.pytest_deselected(items=deselect)
    items[:] = [i for i in items if i not in deselect]


@dataclass(frozen=True)
class KeyPair:
    certificate_pem: str
    private_key_pem: str
    passphrase: str | None = None


def _self_signed_certificate(private_key) -> str:  # type: ignore[no-untyped-def]
    subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "idp.example.org")])
    now = datetime.datetime.now(datetime.timezone.utc)
    certificate = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(subject)
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=30))
        .sign(private_key, hashes.SHA256())
    )
    return certificate.public_bytes(serialization.Encoding.PEM).decode("ascii")


def _make_key_pair(algorithm: str = "ec", passphrase: str | None = None) -> KeyPair:
    if algorithm == "rsa":
        private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    else:
        private_key = ec.generate_private_key(ec.SECP256R1())

    encryption: serialization.KeySerializationEncryption
    if passphrase:
        encryption = serialization.BestAvailableEncryption(passphrase.encode("utf-8"))
    else:
        encryption = serialization.NoEncryption()

    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=encryption,
    ).decode("ascii")
    return KeyPair(
        certificate_pem=_self_signed_certificate(private_key),
        private_key_pem=private_pem,
        passphrase=passphrase,
    )


@pytest.fixture
def key_pair_factory() -> Callable[..., KeyPair]:
    return _make_key_pair


@pytest.fixture(scope="session")
def rsa_key_pair() -> KeyPair:
    return _make_key_pair("rsa")


@pytest.fixture(scope="session")
def ec_key_pair() -> KeyPair:
    return _make_key_pair("ec")


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    yield
    logging.getLogger().handlers.clear()
    structlog.reset_defaults()
