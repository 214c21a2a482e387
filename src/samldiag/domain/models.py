"""Value types shared by the matrix builder, the warning aggregator and the CLI."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, field_validator


class RequirementLevel(str, Enum):
    REQUIRED = "required"
    OPTIONAL = "optional"

    @classmethod
    def when(cls, condition: bool) -> "RequirementLevel":
        return cls.REQUIRED if condition else cls.OPTIONAL


@dataclass(frozen=True)
class TranslatableText:
    """A translatable message key with optional ``%placeholder%`` parameters.

    Used both for check descriptions and for deployment warnings. Rendering
    only substitutes the parameters; translation belongs to the presentation
    layer.
    """

    key: str
    params: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))

    def render(self) -> str:
        text = self.key
        for placeholder, value in self.params.items():
            text = text.replace(placeholder, str(value))
        return text

    def to_dict(self) -> dict[str, Any]:
        if not self.params:
            return {"key": self.key}
        return {"key": self.key, "params": dict(self.params)}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TranslatableText):
            return NotImplemented
        return self.key == other.key and dict(self.params) == dict(other.params)

    def __hash__(self) -> int:
        return hash((self.key, frozenset(self.params.items())))


@dataclass(frozen=True)
class CheckResult:
    level: RequirementLevel
    description: TranslatableText
    satisfied: bool

    @property
    def required(self) -> bool:
        return self.level is RequirementLevel.REQUIRED

    def to_dict(self) -> dict[str, Any]:
        return {
            "required": self.level.value,
            "descr": self.description.to_dict(),
            "enabled": self.satisfied,
        }


class CachedVersionInfo(BaseModel):
    """Latest upstream release as remembered in the session cache."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    tag_name: str
    html_url: str

    @field_validator("tag_name", mode="before")
    @classmethod
    def _strip_version_prefix(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lstrip("v")
        return value


@dataclass(frozen=True)
class PrivateKeyMaterial:
    pem: str = field(repr=False)
    passphrase: str | None = field(default=None, repr=False)


@dataclass(frozen=True)
class PublicKeyMaterial:
    pem: str = field(repr=False)


@dataclass(frozen=True)
class HttpResponse:
    status_code: int
    body: str


@dataclass(frozen=True)
class TransportInfo:
    secure: bool
    hardening_enabled: bool = False
    max_query_value_length: int | None = None

    @classmethod
    def from_url(
        cls,
        url: str | None,
        *,
        hardening_enabled: bool = False,
        max_query_value_length: int | None = None,
    ) -> "TransportInfo":
        scheme = urlsplit(url).scheme.lower() if url else ""
        return cls(
            secure=scheme == "https",
            hardening_enabled=hardening_enabled,
            max_query_value_length=max_query_value_length,
        )


__all__ = [
    "RequirementLevel",
    "TranslatableText",
    "CheckResult",
    "CachedVersionInfo",
    "PrivateKeyMaterial",
    "PublicKeyMaterial",
    "HttpResponse",
    "TransportInfo",
]
