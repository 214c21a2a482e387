"""Load signing key material referenced by configuration or hosted metadata.

Option names follow the SimpleSAMLphp conventions, each looked up under a
prefix (``""`` for the primary key, ``"new_"`` for the rollover key,
``"metadata.sign."`` for the metadata-signing key):

* ``privatekey`` - file name of the PEM private key
* ``privatekey_pass`` - optional passphrase
* ``keys`` - list of key descriptors with ``X509Certificate`` (base64 DER)
* ``certData`` - inline base64 DER certificate
* ``certificate`` - file name of the PEM certificate

Relative file names resolve against the certificate directory.
"""

from __future__ import annotations

import base64
import binascii
import textwrap
from collections.abc import Mapping
from pathlib import Path

from samldiag.config.settings import DeploymentConfig
from samldiag.domain.models import PrivateKeyMaterial, PublicKeyMaterial
from samldiag.infrastructure.errors import ErrorCode, ErrorContext, KeyLoadError

PEM_CERTIFICATE_HEADER = "-----BEGIN CERTIFICATE-----"
PEM_CERTIFICATE_FOOTER = "-----END CERTIFICATE-----"


def _key_error(message: str, *, prefix: str, operation: str, detail: str | None = None) -> KeyLoadError:
    return KeyLoadError(
        message,
        context=ErrorContext(
            component="keys",
            operation=f"{operation} {prefix or '<primary>'}",
            code=ErrorCode.KEY_LOAD_FAILED.value,
            detail=detail,
        ),
    )


def der_base64_to_pem(cert_data: str) -> str:
    """Wrap base64 DER certificate data in PEM armour."""

    compact = "".join(cert_data.split())
    try:
        base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError("certificate data is not valid base64") from exc
    body = "\n".join(textwrap.wrap(compact, 64))
    return f"{PEM_CERTIFICATE_HEADER}\n{body}\n{PEM_CERTIFICATE_FOOTER}\n"


class FileKeyMaterialProvider:
    def __init__(self, cert_dir: str | Path | None = None) -> None:
        self._cert_dir = Path(cert_dir) if cert_dir else Path.cwd()

    @property
    def cert_dir(self) -> Path:
        return self._cert_dir

    def _resolve(self, filename: str) -> Path:
        candidate = Path(filename)
        if candidate.is_absolute():
            return candidate
        return self._cert_dir / candidate

    def _read(self, filename: str, *, prefix: str, operation: str) -> str:
        path = self._resolve(filename)
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise _key_error(
                f"Unable to read key material from {path.name}",
                prefix=prefix,
                operation=operation,
                detail=exc.__class__.__name__,
            ) from exc

    def load_private_key(
        self, config: DeploymentConfig, required: bool = False, prefix: str = ""
    ) -> PrivateKeyMaterial | None:
        filename = config.get_string(f"{prefix}privatekey")
        if not filename:
            if required:
                raise _key_error(
                    f"No private key configured in '{config.name}'",
                    prefix=prefix,
                    operation="load_private_key",
                )
            return None

        pem = self._read(filename, prefix=prefix, operation="load_private_key")
        passphrase = config.get_string(f"{prefix}privatekey_pass")
        return PrivateKeyMaterial(pem=pem, passphrase=passphrase)

    def _certificate_from_keys(self, config: DeploymentConfig, prefix: str) -> str | None:
        keys = config.get_value(f"{prefix}keys")
        if not isinstance(keys, list):
            return None
        for entry in keys:
            if not isinstance(entry, Mapping):
                continue
            if entry.get("type", "X509Certificate") != "X509Certificate":
                continue
            if entry.get("signing", True) is False:
                continue
            cert_data = entry.get("X509Certificate")
            if isinstance(cert_data, str) and cert_data.strip():
                return cert_data
        return None

    def load_public_key(
        self, config: DeploymentConfig, required: bool = False, prefix: str = ""
    ) -> PublicKeyMaterial | None:
        cert_data = self._certificate_from_keys(config, prefix) or config.get_string(
            f"{prefix}certData"
        )
        if cert_data:
            try:
                return PublicKeyMaterial(pem=der_base64_to_pem(cert_data))
            except ValueError as exc:
                raise _key_error(
                    f"Inline certificate data in '{config.name}' is malformed",
                    prefix=prefix,
                    operation="load_public_key",
                ) from exc

        filename = config.get_string(f"{prefix}certificate")
        if filename:
            return PublicKeyMaterial(
                pem=self._read(filename, prefix=prefix, operation="load_public_key")
            )

        if required:
            raise _key_error(
                f"No public key or certificate configured in '{config.name}'",
                prefix=prefix,
                operation="load_public_key",
            )
        return None


__all__ = ["FileKeyMaterialProvider", "der_base64_to_pem"]
