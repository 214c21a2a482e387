"""Collaborator interfaces consumed by the diagnostics engine."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from samldiag.config.settings import DeploymentConfig
from samldiag.domain.models import HttpResponse, PrivateKeyMaterial, PublicKeyMaterial


@runtime_checkable
class MetadataProvider(Protocol):
    def get_hosted_metadata(self, kind: str) -> Mapping[str, Any]:
        """Return the hosted entity metadata or raise ``MetadataNotFoundError``."""


@runtime_checkable
class KeyMaterialProvider(Protocol):
    def load_private_key(
        self, config: DeploymentConfig, required: bool = False, prefix: str = ""
    ) -> PrivateKeyMaterial | None: ...

    def load_public_key(
        self, config: DeploymentConfig, required: bool = False, prefix: str = ""
    ) -> PublicKeyMaterial | None: ...


@runtime_checkable
class HttpFetcher(Protocol):
    def get(
        self,
        url: str,
        *,
        timeout: float,
        user_agent: str,
        proxy: str | None = None,
        proxy_auth: str | None = None,
    ) -> HttpResponse:
        """Perform one GET; raise ``NetworkError`` on transport failure."""


@runtime_checkable
class SessionScopedCache(Protocol):
    def get(self, namespace: str, field: str) -> Any: ...

    def set(self, namespace: str, field: str, value: Any) -> None: ...


__all__ = [
    "MetadataProvider",
    "KeyMaterialProvider",
    "HttpFetcher",
    "SessionScopedCache",
]
