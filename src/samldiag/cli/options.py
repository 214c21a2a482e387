"""Typer option declarations and normalization helpers."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated, Final

import typer

LOG_FORMAT_CHOICES: Final[set[str]] = {"text", "json"}
LOG_LEVEL_SET: Final[set[str]] = {
    name.upper()
    for name in logging.getLevelNamesMapping()
    if isinstance(name, str) and not name.isdigit()
}

ConfigPathOption = Annotated[
    Path,
    typer.Option(
        "--config",
        help="Path to the deployment configuration TOML file to load",
        envvar="SAMLDIAG_CONFIG",
        show_envvar=True,
        rich_help_panel="Configuration",
    ),
]

BaseUrlOption = Annotated[
    str | None,
    typer.Option(
        "--base-url",
        help="Public base URL of the deployment (decides the HTTPS warning)",
        envvar="SAMLDIAG_BASE_URL",
        show_envvar=True,
        rich_help_panel="Deployment",
    ),
]

MetadataDirOption = Annotated[
    str | None,
    typer.Option(
        "--metadata-dir",
        help="Directory holding hosted metadata files such as saml20-idp-hosted.toml",
        envvar="SAMLDIAG_METADATA_DIR",
        show_envvar=True,
        rich_help_panel="Deployment",
    ),
]

CertDirOption = Annotated[
    str | None,
    typer.Option(
        "--cert-dir",
        help="Directory that relative key and certificate file names resolve against",
        envvar="SAMLDIAG_CERT_DIR",
        show_envvar=True,
        rich_help_panel="Deployment",
    ),
]

CheckForUpdatesOption = Annotated[
    bool | None,
    typer.Option(
        "--check-for-updates/--no-check-for-updates",
        help="Query the releases API for a newer version",
        envvar="SAMLDIAG_CHECK_FOR_UPDATES",
        show_envvar=True,
        rich_help_panel="Deployment",
    ),
]

JsonOutputOption = Annotated[
    bool,
    typer.Option(
        "--json",
        help="Emit the report as JSON instead of tables",
        rich_help_panel="Output",
    ),
]

LogLevelOption = Annotated[
    str | None,
    typer.Option(
        "--log-level",
        help="Logging level (e.g. INFO, DEBUG)",
        envvar="SAMLDIAG_LOG_LEVEL",
        show_envvar=True,
        rich_help_panel="Logging",
    ),
]

LogFormatOption = Annotated[
    str | None,
    typer.Option(
        "--log-format",
        help="Logging format (text or json)",
        envvar="SAMLDIAG_LOG_FORMAT",
        show_envvar=True,
        rich_help_panel="Logging",
    ),
]


def clean_string(value: str | None) -> str | None:
    if value is None:
        return None
    candidate = value.strip()
    return candidate or None


def normalize_log_level(value: str | None) -> str | None:
    cleaned = clean_string(value)
    if cleaned is None:
        return None
    upper = cleaned.upper()
    if upper not in LOG_LEVEL_SET and not upper.isdigit():
        raise typer.BadParameter(
            f"Unknown log level '{cleaned}'", param_hint="--log-level"
        )
    return upper


def normalize_log_format(value: str | None) -> str | None:
    cleaned = clean_string(value)
    if cleaned is None:
        return None
    lowered = cleaned.lower()
    if lowered not in LOG_FORMAT_CHOICES:
        raise typer.BadParameter(
            "Log format must be 'text' or 'json'", param_hint="--log-format"
        )
    return lowered


__all__ = [
    "ConfigPathOption",
    "BaseUrlOption",
    "MetadataDirOption",
    "CertDirOption",
    "CheckForUpdatesOption",
    "JsonOutputOption",
    "LogLevelOption",
    "LogFormatOption",
    "clean_string",
    "normalize_log_level",
    "normalize_log_format",
]
