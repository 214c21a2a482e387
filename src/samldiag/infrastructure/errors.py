"""Domain error types raised and recovered by the diagnostics engine.

Every failure inside the engine maps onto an :class:`ErrorCode`. The matrix
builder and the warning aggregator recover all of them locally, so none of
these exceptions is expected to reach the presentation layer except
:class:`ConfigurationError`, which signals an unusable configuration file.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Sequence


class ErrorCode(str, Enum):
    CAPABILITY_ABSENT = "CAPABILITY_ABSENT"
    METADATA_LOOKUP_FAILED = "METADATA_LOOKUP_FAILED"
    KEY_LOAD_FAILED = "KEY_LOAD_FAILED"
    KEY_MISMATCH = "KEY_MISMATCH"
    MALFORMED_INPUT = "MALFORMED_INPUT"
    NETWORK_UNAVAILABLE = "NETWORK_UNAVAILABLE"
    NETWORK_TIMEOUT = "NETWORK_TIMEOUT"
    NON_SUCCESS_STATUS = "NON_SUCCESS_STATUS"
    MALFORMED_REMOTE_PAYLOAD = "MALFORMED_REMOTE_PAYLOAD"
    CONFIGURATION_INVALID = "CONFIGURATION_INVALID"


@dataclass(frozen=True)
class ErrorContext:
    component: str
    operation: str
    code: str
    detail: str | None = None


class DiagnosticsError(Exception):
    """Base class for recoverable diagnostics failures."""

    default_code: ErrorCode = ErrorCode.MALFORMED_INPUT

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
        hints: Sequence[str] = (),
    ) -> None:
        super().__init__(message)
        self.user_message = message
        self.context = context or ErrorContext(
            component="samldiag",
            operation="unknown",
            code=self.default_code.value,
        )
        self._hints = tuple(hints)

    @property
    def code(self) -> str:
        return self.context.code

    @property
    def hints(self) -> tuple[str, ...]:
        return self._hints

    def log_fields(self) -> dict[str, str]:
        fields = {
            "component": self.context.component,
            "op": self.context.operation,
            "code": self.context.code,
        }
        if self.context.detail:
            fields["detail"] = self.context.detail
        return fields


class MetadataNotFoundError(DiagnosticsError):
    default_code = ErrorCode.METADATA_LOOKUP_FAILED


class KeyLoadError(DiagnosticsError):
    default_code = ErrorCode.KEY_LOAD_FAILED


class MalformedKeyMaterialError(DiagnosticsError):
    default_code = ErrorCode.MALFORMED_INPUT


class NetworkError(DiagnosticsError):
    default_code = ErrorCode.NETWORK_UNAVAILABLE


class NetworkTimeoutError(NetworkError):
    default_code = ErrorCode.NETWORK_TIMEOUT


class RemotePayloadError(DiagnosticsError):
    default_code = ErrorCode.MALFORMED_REMOTE_PAYLOAD


class ConfigurationError(DiagnosticsError):
    default_code = ErrorCode.CONFIGURATION_INVALID


__all__ = [
    "ErrorCode",
    "ErrorContext",
    "DiagnosticsError",
    "MetadataNotFoundError",
    "KeyLoadError",
    "MalformedKeyMaterialError",
    "NetworkError",
    "NetworkTimeoutError",
    "RemotePayloadError",
    "ConfigurationError",
]
