"""Prove that a private key belongs to a public certificate.

The check derives the public half of the private key and compares its
SubjectPublicKeyInfo encoding with the one embedded in the certificate.
:meth:`KeyPairValidator.matches` treats malformed PEM, a wrong passphrase or
an unsupported algorithm as "not matching" and never raises;
:meth:`KeyPairValidator.check` raises instead. Key material is never logged.
"""

from __future__ import annotations

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization

from samldiag.infrastructure.errors import ErrorCode, ErrorContext, MalformedKeyMaterialError
from samldiag.infrastructure.logging import BoundLogger, get_logger

_SPKI_ENCODING = serialization.Encoding.DER
_SPKI_FORMAT = serialization.PublicFormat.SubjectPublicKeyInfo


def _malformed(operation: str, reason: str) -> MalformedKeyMaterialError:
    return MalformedKeyMaterialError(
        f"Key material could not be used: {reason}",
        context=ErrorContext(
            component="keypair",
            operation=operation,
            code=ErrorCode.MALFORMED_INPUT.value,
            detail=reason,
        ),
    )


def _public_key_from_pem(public_pem: str):
    data = public_pem.encode("utf-8")
    try:
        return x509.load_pem_x509_certificate(data).public_key()
    except ValueError:
        pass
    try:
        return serialization.load_pem_public_key(data)
    except (ValueError, UnsupportedAlgorithm) as exc:
        raise _malformed("load_certificate", "certificate is not valid PEM") from exc


def _private_key_from_pem(private_pem: str, passphrase: str | None):
    data = private_pem.encode("utf-8")
    password = passphrase.encode("utf-8") if passphrase else None
    try:
        return serialization.load_pem_private_key(data, password=password)
    except TypeError as exc:
        if password is None:
            raise _malformed("load_private_key", "private key is encrypted") from exc
        # A passphrase configured for an unencrypted key is ignored.
        try:
            return serialization.load_pem_private_key(data, password=None)
        except (TypeError, ValueError, UnsupportedAlgorithm) as retry_exc:
            raise _malformed("load_private_key", "private key is not valid PEM") from retry_exc
    except ValueError as exc:
        raise _malformed(
            "load_private_key", "private key is malformed or the passphrase is wrong"
        ) from exc
    except UnsupportedAlgorithm as exc:
        raise _malformed("load_private_key", "unsupported key algorithm") from exc


class KeyPairValidator:
    def __init__(self, logger: BoundLogger | None = None) -> None:
        self._logger = logger or get_logger("samldiag.keypair")

    def check(
        self,
        public_certificate_pem: str,
        private_key_pem: str,
        passphrase: str | None = None,
    ) -> bool:
        """Return whether the pair matches, raising on unusable input.

        Raises :class:`MalformedKeyMaterialError` when either side cannot be
        loaded; a loadable but unrelated pair simply returns ``False``.
        """

        public_key = _public_key_from_pem(public_certificate_pem)
        private_key = _private_key_from_pem(private_key_pem, passphrase)
        try:
            derived = private_key.public_key().public_bytes(_SPKI_ENCODING, _SPKI_FORMAT)
            expected = public_key.public_bytes(_SPKI_ENCODING, _SPKI_FORMAT)
        except (ValueError, UnsupportedAlgorithm) as exc:
            raise _malformed("compare", "public key cannot be encoded") from exc
        return derived == expected

    def matches(
        self,
        public_certificate_pem: str,
        private_key_pem: str,
        passphrase: str | None = None,
    ) -> bool:
        try:
            matched = self.check(public_certificate_pem, private_key_pem, passphrase)
        except MalformedKeyMaterialError as exc:
            self._logger.warning("keypair.malformed", **exc.log_fields())
            return False
        if not matched:
            self._logger.warning("keypair.mismatch", code=ErrorCode.KEY_MISMATCH.value)
        return matched


def matching_key_pair(
    public_certificate_pem: str,
    private_key_pem: str,
    passphrase: str | None = None,
) -> bool:
    """Test whether a public certificate and a private key are a matching pair."""

    return KeyPairValidator().matches(public_certificate_pem, private_key_pem, passphrase)


__all__ = ["KeyPairValidator", "matching_key_pair"]
