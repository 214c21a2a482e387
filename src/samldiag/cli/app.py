"""SAMLDiag Typer CLI entrypoint."""

from __future__ import annotations

import json
import re
from pathlib import Path

import typer
from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from samldiag.application.diagnostics import (
    HealthReport,
    build_health_report,
    describe_base_url,
    summarize_checks,
)
from samldiag.cli import options as cli_options
from samldiag.config.constants import DEFAULT_CONFIG_FILENAME
from samldiag.config.settings import (
    BASE_URL_KEY,
    CERT_DIR_KEY,
    HARDENING_ENABLED_KEY,
    HARDENING_MAX_VALUE_LENGTH_KEY,
    METADATA_DIR_KEY,
    DeploymentConfig,
    DeploymentInputs,
    LoggingInputs,
    resolve_application_settings,
)
from samldiag.domain.models import TransportInfo
from samldiag.infrastructure.errors import ConfigurationError
from samldiag.infrastructure.logging import configure_logging, get_logger
from samldiag.integrations.http import HttpxFetcher
from samldiag.integrations.keys import FileKeyMaterialProvider
from samldiag.integrations.metadata import FileMetadataProvider
from samldiag.integrations.session import InMemorySessionCache

PROJECT_ROOT = Path(__file__).resolve().parents[3]

DEFAULT_METADATA_DIR = "metadata"
DEFAULT_CERT_DIR = "cert"

_TAG_PATTERN = re.compile(r"<[^>]+>")

stderr_console = Console(stderr=True)
stdout_console = Console(stderr=False)

app = typer.Typer(
    help="Installation health and key-pair diagnostics for SAML identity providers",
    rich_markup_mode="rich",
)

# One cache per process; the CLI process is the session.
_session_cache = InMemorySessionCache()


def _plain(text: str) -> str:
    return _TAG_PATTERN.sub("", text)


def _resolve_dir(value: str | None, default: str, config_path: Path) -> Path:
    candidate = Path(value or default)
    if candidate.is_absolute():
        return candidate
    return config_path.resolve().parent / candidate


def _load(
    config_path: Path,
    *,
    deployment_inputs: DeploymentInputs,
    log_level: str | None,
    log_format: str | None,
) -> DeploymentConfig:
    _, deployment, logging_settings = resolve_application_settings(
        config_path=str(config_path),
        deployment_inputs=deployment_inputs,
        logging_inputs=LoggingInputs(
            level=cli_options.normalize_log_level(log_level),
            format=cli_options.normalize_log_format(log_format),
        ),
    )
    configure_logging(logging_settings)
    return deployment


def _transport_for(config: DeploymentConfig) -> TransportInfo:
    return TransportInfo.from_url(
        config.get_string(BASE_URL_KEY),
        hardening_enabled=config.get_boolean(HARDENING_ENABLED_KEY, False),
        max_query_value_length=config.get_integer(HARDENING_MAX_VALUE_LENGTH_KEY),
    )


def _checks_table(report: HealthReport) -> Table:
    table = Table(title="Prerequisites", box=box.SIMPLE_HEAVY, show_lines=False)
    table.add_column("Status", no_wrap=True)
    table.add_column("Level", no_wrap=True)
    table.add_column("Check")
    for check in report.checks:
        if check.satisfied:
            status = Text("ok", style="green")
        elif check.required:
            status = Text("FAIL", style="bold red")
        else:
            status = Text("missing", style="yellow")
        table.add_row(status, check.level.value, Text(_plain(check.description.render())))
    return table


def _render_report(report: HealthReport) -> None:
    stdout_console.print(
        Text.assemble(
            ("Version: ", "bold"),
            report.version,
            "   ",
            ("Directory: ", "bold"),
            report.base_dir or "-",
        )
    )
    if report.warnings:
        stdout_console.print(Text("Warnings", style="bold yellow"))
        for warning in report.warnings:
            stdout_console.print(Text(f"  - {_plain(warning.render())}", style="yellow"))
    stdout_console.print(_checks_table(report))

    summary = summarize_checks(report.checks)
    if report.healthy:
        verdict = Text("healthy", style="bold green")
    else:
        verdict = Text("unhealthy", style="bold red")
    stdout_console.print(
        Text.assemble(
            "Result: ",
            verdict,
            f" ({summary['failed_required']} of {summary['required']} required checks failed, "
            f"{summary['failed_optional']} of {summary['optional']} optional checks missing)",
        )
    )


@app.command(help="Check prerequisites, configuration and key material of a deployment.")
def check(
    config: cli_options.ConfigPathOption = Path(DEFAULT_CONFIG_FILENAME),
    base_url: cli_options.BaseUrlOption = None,
    metadata_dir: cli_options.MetadataDirOption = None,
    cert_dir: cli_options.CertDirOption = None,
    check_for_updates: cli_options.CheckForUpdatesOption = None,
    json_output: cli_options.JsonOutputOption = False,
    log_level: cli_options.LogLevelOption = None,
    log_format: cli_options.LogFormatOption = None,
) -> None:
    """Run the installation health check and exit non-zero when unhealthy."""

    try:
        deployment = _load(
            config,
            deployment_inputs=DeploymentInputs(
                base_url=base_url,
                metadata_dir=metadata_dir,
                cert_dir=cert_dir,
                check_for_updates=check_for_updates,
            ),
            log_level=log_level,
            log_format=log_format,
        )
        report = build_health_report(
            deployment,
            metadata=FileMetadataProvider(
                _resolve_dir(deployment.get_string(METADATA_DIR_KEY), DEFAULT_METADATA_DIR, config)
            ),
            keys=FileKeyMaterialProvider(
                _resolve_dir(deployment.get_string(CERT_DIR_KEY), DEFAULT_CERT_DIR, config)
            ),
            transport=_transport_for(deployment),
            cache=_session_cache,
            fetcher=HttpxFetcher(),
            logger=get_logger("samldiag.cli"),
        )
    except ConfigurationError as exc:
        raise typer.BadParameter(exc.user_message, param_hint="--config") from exc

    if json_output:
        stdout_console.print_json(json.dumps(report.to_dict()))
    else:
        _render_report(report)
    raise typer.Exit(code=report.exit_code())


@app.command(help="Show host, port and protocol details derived from the base URL.")
def diagnostics(
    config: cli_options.ConfigPathOption = Path(DEFAULT_CONFIG_FILENAME),
    base_url: cli_options.BaseUrlOption = None,
) -> None:
    """Print how the deployment's base URL decomposes."""

    try:
        deployment = _load(
            config,
            deployment_inputs=DeploymentInputs(base_url=base_url),
            log_level=None,
            log_format=None,
        )
        resolved_url = deployment.get_string(BASE_URL_KEY)
    except ConfigurationError as exc:
        raise typer.BadParameter(exc.user_message, param_hint="--config") from exc
    if not resolved_url:
        raise typer.BadParameter("No base URL configured", param_hint="--base-url")

    try:
        items = describe_base_url(resolved_url)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--base-url") from exc

    table = Table(title="Base URL diagnostics", box=box.SIMPLE_HEAVY)
    table.add_column("Item", style="bold")
    table.add_column("Value")
    for name, values in items.items():
        table.add_row(name, ", ".join(values))
    stdout_console.print(table)


@app.command(help="Show the installed SAMLDiag package version.")
def version() -> None:
    """Print the SAMLDiag version discovered from the package metadata."""
    from importlib import metadata

    try:
        resolved_version = metadata.version("samldiag")
    except metadata.PackageNotFoundError:
        pyproject = PROJECT_ROOT / "pyproject.toml"
        if not pyproject.exists():
            stdout_console.print("Version information unavailable")
            return
        import tomllib

        data = tomllib.loads(pyproject.read_text(encoding="utf-8"))
        resolved_version = data.get("project", {}).get("version", "unknown")
    stdout_console.print(resolved_version)


def main(argv: list[str] | None = None) -> None:
    app(args=argv, prog_name="samldiag")


__all__ = ["app", "main"]
