"""Runtime capability probing.

Each :class:`FeatureId` names a ``module`` or ``module:attribute`` symbol.
A missing module, a missing attribute, or a module that fails to import all
count as "not available"; probing never raises.
"""

from __future__ import annotations

import importlib
import importlib.util
from enum import Enum
from typing import Protocol, runtime_checkable


class FeatureId(str, Enum):
    # Always required
    DATETIME = "datetime:datetime"
    HASHING = "hashlib:new"
    ZLIB = "zlib:decompress"
    ASYMMETRIC_SIGNING = "cryptography.hazmat.primitives.asymmetric.padding:PKCS1v15"
    XML_DOM = "xml.dom.minidom:parseString"
    REGEX = "re:match"
    JSON = "json:loads"
    REFLECTION = "inspect:getmembers"
    MULTIBYTE_STRINGS = "unicodedata:normalize"

    # Required depending on configuration
    HTTP_CLIENT = "httpx:Client"
    SESSION = "http.cookies:SimpleCookie"
    DATABASE_DRIVER = "sqlalchemy:create_engine"
    LDAP = "ldap3:Connection"
    RADIUS = "pyrad.client:Client"

    # Optional libraries, probed in groups
    REDIS_CLIENT = "redis:Redis"
    PYMEMCACHE_CLIENT = "pymemcache.client.base:Client"
    PYLIBMC_CLIENT = "pylibmc:Client"

    @property
    def module_name(self) -> str:
        return self.value.partition(":")[0]

    @property
    def symbol(self) -> str | None:
        return self.value.partition(":")[2] or None


@runtime_checkable
class CapabilityProbe(Protocol):
    def available(self, feature: FeatureId) -> bool: ...


def _module_spec_exists(module_name: str) -> bool:
    try:
        return importlib.util.find_spec(module_name) is not None
    except Exception:
        # find_spec imports parent packages, whose own import may fail
        return False


class PythonCapabilityProbe:
    """Probe capabilities of the running CPython interpreter."""

    def available(self, feature: FeatureId) -> bool:
        if not _module_spec_exists(feature.module_name):
            return False
        if feature.symbol is None:
            return True
        try:
            module = importlib.import_module(feature.module_name)
        except Exception:
            return False
        return hasattr(module, feature.symbol)


class StaticCapabilityProbe:
    """Probe backed by a fixed truth table; unknown features are absent."""

    def __init__(self, available: dict[FeatureId, bool] | set[FeatureId] | None = None) -> None:
        if isinstance(available, dict):
            self._table = {feature for feature, present in available.items() if present}
        else:
            self._table = set(available or ())

    def available(self, feature: FeatureId) -> bool:
        return feature in self._table


__all__ = [
    "FeatureId",
    "CapabilityProbe",
    "PythonCapabilityProbe",
    "StaticCapabilityProbe",
]
