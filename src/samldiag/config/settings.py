"""Dynaconf-backed configuration helpers for SAMLDiag.

Settings resolve according to the following precedence:

1. Command line inputs
2. Environment variables
3. Local configuration overlays (``config.local.toml``)
4. Primary configuration file (``config.toml``)

The deployment configuration uses the familiar dotted SimpleSAMLphp option
names (``store.type``, ``enable.saml20-idp``, ``metadata.sign.enable``); in
TOML they are written as nested tables and looked up with dotted keys.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from importlib import metadata
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple

from dynaconf import Dynaconf

from samldiag.config.constants import (
    DEFAULT_CONFIG_FILENAME,
    LOCAL_CONFIG_FILENAME,
    coerce_bool,
    is_bool_marker,
)
from samldiag.infrastructure.errors import ConfigurationError, ErrorCode, ErrorContext

LOG_FORMAT_TEXT = "text"
LOG_FORMAT_JSON = "json"
DEFAULT_LOG_FORMAT = LOG_FORMAT_TEXT
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_MAX_BYTES = 10_000_000
DEFAULT_BACKUP_COUNT = 5

# Dynaconf keys used throughout the package. Using constants keeps environment
# and configuration lookups consistent.
STORE_TYPE_KEY = "store.type"
CHECK_FOR_UPDATES_KEY = "admin.checkforupdates"
TECHNICAL_CONTACT_EMAIL_KEY = "technicalcontact_email"
ADMIN_PASSWORD_KEY = "auth.adminpassword"
SECRET_SALT_KEY = "secretsalt"
SAML20_IDP_ENABLED_KEY = "enable.saml20-idp"
METADATA_SIGN_ENABLED_KEY = "metadata.sign.enable"
METADATA_SIGN_PREFIX = "metadata.sign."
PROXY_KEY = "proxy"
# Spelled with an underscore: a dotted "proxy.auth" would turn the scalar
# "proxy" option into a table.
PROXY_AUTH_KEY = "proxy_auth"
VERSION_KEY = "version"
MODULE_ENABLE_KEY = "module.enable"
BASE_URL_KEY = "baseurlpath"
BASE_DIR_KEY = "basedir"
METADATA_DIR_KEY = "metadatadir"
CERT_DIR_KEY = "certdir"
HARDENING_ENABLED_KEY = "hardening.enabled"
HARDENING_MAX_VALUE_LENGTH_KEY = "hardening.get_max_value_length"

LOGGING_LEVEL_KEY = "logging.level"
LOGGING_FORMAT_KEY = "logging.format"
LOGGING_FILE_KEY = "logging.file"
LOGGING_MAX_BYTES_KEY = "logging.max_bytes"
LOGGING_BACKUP_COUNT_KEY = "logging.backup_count"

_ENVIRONMENT_MAP = {
    "SAMLDIAG_STORE_TYPE": STORE_TYPE_KEY,
    "SAMLDIAG_CHECK_FOR_UPDATES": CHECK_FOR_UPDATES_KEY,
    "SAMLDIAG_BASE_URL": BASE_URL_KEY,
    "SAMLDIAG_METADATA_DIR": METADATA_DIR_KEY,
    "SAMLDIAG_CERT_DIR": CERT_DIR_KEY,
    "SAMLDIAG_PROXY": PROXY_KEY,
    "SAMLDIAG_PROXY_AUTH": PROXY_AUTH_KEY,
    "SAMLDIAG_LOG_LEVEL": LOGGING_LEVEL_KEY,
    "SAMLDIAG_LOG_FORMAT": LOGGING_FORMAT_KEY,
    "SAMLDIAG_LOG_FILE": LOGGING_FILE_KEY,
    "SAMLDIAG_LOG_MAX_BYTES": LOGGING_MAX_BYTES_KEY,
    "SAMLDIAG_LOG_BACKUP_COUNT": LOGGING_BACKUP_COUNT_KEY,
}

_MISSING = object()


@dataclass(frozen=True)
class DeploymentInputs:
    base_url: Optional[str] = None
    metadata_dir: Optional[str] = None
    cert_dir: Optional[str] = None
    check_for_updates: Optional[bool] = None


@dataclass(frozen=True)
class LoggingInputs:
    level: Optional[str] = None
    format: Optional[str] = None
    file_path: Optional[str] = None
    max_bytes: Optional[int] = None
    backup_count: Optional[int] = None


@dataclass(frozen=True)
class LoggingSettings:
    level: int
    format: str
    file_path: Optional[str]
    max_bytes: int
    backup_count: int

    @property
    def level_name(self) -> str:
        return logging.getLevelName(self.level)


def _package_version() -> str:
    try:
        return metadata.version("samldiag")
    except metadata.PackageNotFoundError:
        return "0.0.0"


class DeploymentConfig:
    """Read-only accessor over the deployment configuration.

    ``source`` is either a Dynaconf instance or a plain mapping (hosted
    metadata entries are wrapped the same way). For mappings an exact key
    match wins over dotted traversal, so flat metadata keys such as
    ``new_privatekey`` and nested tables such as ``[store] type = ...`` both
    resolve.
    """

    def __init__(self, source: Any, *, name: str = "config") -> None:
        self._source = source
        self._name = name

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any], *, name: str = "config") -> "DeploymentConfig":
        return cls(dict(values), name=name)

    @property
    def name(self) -> str:
        return self._name

    def _lookup(self, key: str) -> Any:
        source = self._source
        if isinstance(source, Mapping):
            if key in source:
                return source[key]
            current: Any = source
            for part in key.split("."):
                if not isinstance(current, Mapping) or part not in current:
                    return _MISSING
                current = current[part]
            return current
        return source.get(key, _MISSING)

    def _invalid(self, key: str, expected: str, value: Any) -> ConfigurationError:
        return ConfigurationError(
            f"{self._name}: option '{key}' must be {expected}, got {type(value).__name__}",
            context=ErrorContext(
                component="config",
                operation=f"get {key}",
                code=ErrorCode.CONFIGURATION_INVALID.value,
            ),
        )

    def has_value(self, key: str) -> bool:
        value = self._lookup(key)
        return value is not _MISSING and value is not None

    def get_value(self, key: str, default: Any = None) -> Any:
        value = self._lookup(key)
        if value is _MISSING:
            return default
        return value

    def get_string(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = self._lookup(key)
        if value is _MISSING or value is None:
            return default
        if not isinstance(value, str):
            raise self._invalid(key, "a string", value)
        return value

    def get_boolean(self, key: str, default: bool = False) -> bool:
        value = self._lookup(key)
        if value is _MISSING or value is None:
            return default
        # Environment variables and .env files only ever produce strings.
        if not is_bool_marker(value):
            raise self._invalid(key, "a boolean", value)
        return coerce_bool(value, default=default)

    def get_integer(self, key: str, default: Optional[int] = None) -> Optional[int]:
        value = self._lookup(key)
        if value is _MISSING or value is None:
            return default
        if isinstance(value, bool):
            raise self._invalid(key, "an integer", value)
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise self._invalid(key, "an integer", value) from exc

    def get_version(self) -> str:
        value = self.get_string(VERSION_KEY)
        return value.strip() if value and value.strip() else _package_version()

    def is_module_enabled(self, module: str) -> bool:
        modules = self.get_value(MODULE_ENABLE_KEY, {})
        if not isinstance(modules, Mapping):
            raise self._invalid(MODULE_ENABLE_KEY, "a table", modules)
        return coerce_bool(modules.get(module), default=False)

    def __repr__(self) -> str:
        return f"DeploymentConfig(name={self._name!r})"


def _default_settings_files(config_path: Optional[str]) -> Tuple[Sequence[str], Optional[str]]:
    if config_path:
        config_file = Path(config_path)
        local_file = config_file.with_name(f"{config_file.stem}.local{config_file.suffix}")
        files: list[str] = []
        if config_file.exists():
            files.append(str(config_file))
        if local_file.exists():
            files.append(str(local_file))
        return files or [str(config_file)], None
    return [DEFAULT_CONFIG_FILENAME, LOCAL_CONFIG_FILENAME], None


def _coerce_str(value: Optional[Any]) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        candidate = value.strip()
        return candidate or None
    return str(value)


def _coerce_int(value: Optional[Any]) -> Optional[int]:
    if value is None:
        return None
    try:
        coerced = int(value)
    except (TypeError, ValueError):
        return None
    return coerced


def _apply_environment_overrides(settings: Dynaconf) -> None:
    for env_var, key in _ENVIRONMENT_MAP.items():
        raw = os.getenv(env_var)
        if raw is None:
            continue
        if isinstance(raw, str) and not raw.strip():
            continue
        settings.set(key, raw.strip())


def _apply_deployment_inputs(
    settings: Dynaconf, deployment_inputs: Optional[DeploymentInputs]
) -> None:
    if deployment_inputs is None:
        return

    if deployment_inputs.base_url is not None:
        settings.set(BASE_URL_KEY, deployment_inputs.base_url.strip())
    if deployment_inputs.metadata_dir is not None:
        settings.set(METADATA_DIR_KEY, deployment_inputs.metadata_dir.strip())
    if deployment_inputs.cert_dir is not None:
        settings.set(CERT_DIR_KEY, deployment_inputs.cert_dir.strip())
    if deployment_inputs.check_for_updates is not None:
        settings.set(CHECK_FOR_UPDATES_KEY, deployment_inputs.check_for_updates)


def _apply_logging_inputs(
    settings: Dynaconf, logging_inputs: Optional[LoggingInputs]
) -> None:
    if logging_inputs is None:
        return

    if logging_inputs.level is not None:
        settings.set(LOGGING_LEVEL_KEY, logging_inputs.level.strip())
    if logging_inputs.format is not None:
        settings.set(LOGGING_FORMAT_KEY, logging_inputs.format.strip())
    if logging_inputs.file_path is not None:
        settings.set(LOGGING_FILE_KEY, logging_inputs.file_path.strip())
    if logging_inputs.max_bytes is not None:
        settings.set(LOGGING_MAX_BYTES_KEY, logging_inputs.max_bytes)
    if logging_inputs.backup_count is not None:
        settings.set(LOGGING_BACKUP_COUNT_KEY, logging_inputs.backup_count)


def load_settings(config_path: Optional[str] = None) -> Dynaconf:
    """Create a Dynaconf instance configured for the supplied path."""

    files, root_path = _default_settings_files(config_path)
    settings = Dynaconf(
        settings_files=list(files),
        envvar_prefix="SAMLDIAG",
        environments=False,
        load_dotenv=True,
        merge_enabled=True,
        root_path=root_path,
    )
    _apply_environment_overrides(settings)
    return settings


def apply_cli_overrides(
    settings: Dynaconf,
    *,
    deployment_inputs: Optional[DeploymentInputs] = None,
    logging_inputs: Optional[LoggingInputs] = None,
) -> None:
    """Apply CLI overrides to the provided settings instance."""

    _apply_deployment_inputs(settings, deployment_inputs)
    _apply_logging_inputs(settings, logging_inputs)


def deployment_from_settings(settings: Dynaconf) -> DeploymentConfig:
    """Wrap a Dynaconf instance in the read-only deployment accessor."""

    return DeploymentConfig(settings, name="config")


def logging_from_settings(settings: Dynaconf) -> LoggingSettings:
    """Extract logging configuration from Dynaconf."""

    level_value = _coerce_str(settings.get(LOGGING_LEVEL_KEY)) or DEFAULT_LOG_LEVEL
    format_value = (
        _coerce_str(settings.get(LOGGING_FORMAT_KEY)) or DEFAULT_LOG_FORMAT
    ).lower()
    if format_value not in {LOG_FORMAT_TEXT, LOG_FORMAT_JSON}:
        raise ConfigurationError(
            f"Unsupported log format: {format_value}",
            context=ErrorContext(
                component="config",
                operation=f"get {LOGGING_FORMAT_KEY}",
                code=ErrorCode.CONFIGURATION_INVALID.value,
            ),
        )

    file_path = _coerce_str(settings.get(LOGGING_FILE_KEY))

    max_bytes_value = _coerce_int(settings.get(LOGGING_MAX_BYTES_KEY))
    if max_bytes_value is None or max_bytes_value <= 0:
        max_bytes_value = DEFAULT_MAX_BYTES

    backup_count_value = _coerce_int(settings.get(LOGGING_BACKUP_COUNT_KEY))
    if backup_count_value is None or backup_count_value <= 0:
        backup_count_value = DEFAULT_BACKUP_COUNT

    mapping = logging.getLevelNamesMapping()
    level_upper = level_value.upper()
    if level_upper.isdigit():
        resolved_level = int(level_upper)
    else:
        resolved_level = mapping.get(level_upper, logging.INFO)

    return LoggingSettings(
        level=resolved_level,
        format=format_value,
        file_path=file_path,
        max_bytes=max_bytes_value,
        backup_count=backup_count_value,
    )


def resolve_application_settings(
    *,
    config_path: Optional[str] = None,
    deployment_inputs: Optional[DeploymentInputs] = None,
    logging_inputs: Optional[LoggingInputs] = None,
) -> Tuple[Dynaconf, DeploymentConfig, LoggingSettings]:
    settings = load_settings(config_path)
    apply_cli_overrides(
        settings,
        deployment_inputs=deployment_inputs,
        logging_inputs=logging_inputs,
    )
    return settings, deployment_from_settings(settings), logging_from_settings(settings)


__all__ = [
    "DEFAULT_LOG_FORMAT",
    "DEFAULT_LOG_LEVEL",
    "DEFAULT_MAX_BYTES",
    "DEFAULT_BACKUP_COUNT",
    "LOG_FORMAT_TEXT",
    "LOG_FORMAT_JSON",
    "DeploymentConfig",
    "DeploymentInputs",
    "LoggingInputs",
    "LoggingSettings",
    "load_settings",
    "apply_cli_overrides",
    "deployment_from_settings",
    "logging_from_settings",
    "resolve_application_settings",
]
