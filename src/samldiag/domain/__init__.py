"""Domain value types for SAMLDiag."""

from samldiag.domain.models import (
    CachedVersionInfo,
    CheckResult,
    HttpResponse,
    PrivateKeyMaterial,
    PublicKeyMaterial,
    RequirementLevel,
    TransportInfo,
    TranslatableText,
)

__all__ = [
    "CachedVersionInfo",
    "CheckResult",
    "HttpResponse",
    "PrivateKeyMaterial",
    "PublicKeyMaterial",
    "RequirementLevel",
    "TransportInfo",
    "TranslatableText",
]
