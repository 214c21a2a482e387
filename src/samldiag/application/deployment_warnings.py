"""Compile the list of warnings about the current deployment.

Warnings are returned in a fixed order:

1. plain HTTP transport
2. default secret salt
3. query-parameter length limited by a hardening layer
4. update availability (or the inability to check for updates)

The latest upstream release is remembered in the session cache so the
releases API is queried at most once per session. The cached entry has no
expiry of its own; it lives as long as the session does.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Final

from packaging.version import InvalidVersion, Version
from pydantic import ValidationError

from samldiag.application.capabilities import CapabilityProbe, FeatureId, PythonCapabilityProbe
from samldiag.config.constants import DEFAULT_SECRET_SALT, DEVELOPMENT_VERSION
from samldiag.config.settings import (
    CHECK_FOR_UPDATES_KEY,
    PROXY_AUTH_KEY,
    PROXY_KEY,
    SECRET_SALT_KEY,
    DeploymentConfig,
)
from samldiag.domain.models import CachedVersionInfo, TransportInfo, TranslatableText
from samldiag.domain.ports import HttpFetcher, SessionScopedCache
from samldiag.infrastructure.errors import (
    DiagnosticsError,
    ErrorCode,
    ErrorContext,
    NetworkError,
    RemotePayloadError,
)
from samldiag.infrastructure.logging import BoundLogger, get_logger, log_event

LATEST_VERSION_STATE_KEY: Final = "core:latest_simplesamlphp_version"
LATEST_VERSION_FIELD: Final = "version"
RELEASES_API: Final = "https://api.github.com/repos/simplesamlphp/simplesamlphp/releases/latest"
RELEASES_USER_AGENT: Final = "SimpleSAMLphp"
RELEASES_TIMEOUT_SECONDS: Final = 2.0
MIN_QUERY_VALUE_LENGTH: Final = 2048

MSG_NOT_HTTPS: Final = (
    "<strong>You are not using HTTPS</strong> to protect communications with your users. "
    "HTTP works fine for testing purposes, but in a production environment you should use "
    'HTTPS. <a href="https://simplesamlphp.org/docs/stable/simplesamlphp-maintenance">Read '
    "more about the maintenance of SimpleSAMLphp</a>."
)
MSG_DEFAULT_SECRET_SALT: Final = (
    "<strong>The configuration uses the default secret salt</strong>. Make sure to modify "
    "the <code>secretsalt</code> option in the SimpleSAMLphp configuration in production "
    'environments. <a href="https://simplesamlphp.org/docs/stable/simplesamlphp-install">Read '
    "more about the maintenance of SimpleSAMLphp</a>."
)
MSG_QUERY_LENGTH_LIMITED: Final = (
    "The length of query parameters is limited by the request hardening layer. Please "
    "increase the <code>get.max_value_length</code> option to at least 2048 bytes."
)
MSG_CANNOT_CHECK_UPDATES: Final = (
    "The httpx library is missing. Cannot check for SimpleSAMLphp updates."
)
MSG_OUTDATED_VERSION: Final = (
    'You are running an outdated version of SimpleSAMLphp. Please update to <a href="'
    '%latest%">the latest version</a> as soon as possible.'
)


def is_newer_release(latest: str, current: str) -> bool:
    """Return ``True`` when ``latest`` is strictly newer than ``current``."""

    try:
        return Version(current) < Version(latest)
    except InvalidVersion:
        return False


def parse_release_payload(body: str) -> CachedVersionInfo:
    """Extract ``tag_name``/``html_url`` from a releases API response."""

    try:
        payload = json.loads(body)
        return CachedVersionInfo.model_validate(payload)
    except (ValueError, ValidationError) as exc:
        raise RemotePayloadError(
            "Releases API returned an unexpected payload",
            context=ErrorContext(
                component="version_check",
                operation="parse release",
                code=ErrorCode.MALFORMED_REMOTE_PAYLOAD.value,
                detail=exc.__class__.__name__,
            ),
        ) from exc


class DeploymentWarningAggregator:
    def __init__(
        self,
        *,
        probe: CapabilityProbe | None = None,
        logger: BoundLogger | None = None,
        releases_url: str = RELEASES_API,
    ) -> None:
        self._probe = probe or PythonCapabilityProbe()
        self._logger = logger or get_logger("samldiag.warnings")
        self._releases_url = releases_url

    def collect(
        self,
        config: DeploymentConfig,
        transport: TransportInfo,
        cache: SessionScopedCache,
        fetcher: HttpFetcher,
    ) -> list[TranslatableText]:
        warnings: list[TranslatableText] = []

        if not transport.secure:
            warnings.append(TranslatableText(MSG_NOT_HTTPS))

        if config.get_value(SECRET_SALT_KEY) == DEFAULT_SECRET_SALT:
            warnings.append(TranslatableText(MSG_DEFAULT_SECRET_SALT))

        if transport.hardening_enabled:
            limit = transport.max_query_value_length
            if not limit or limit < MIN_QUERY_VALUE_LENGTH:
                warnings.append(TranslatableText(MSG_QUERY_LENGTH_LIMITED))

        try:
            warnings.extend(self._update_warnings(config, cache, fetcher))
        except DiagnosticsError as exc:
            self._report_failure(**exc.log_fields())
        return warnings

    def _report_failure(self, **fields: Any) -> None:
        log_event(self._logger, "version_check.failed", level=logging.WARNING, **fields)

    def _update_warnings(
        self,
        config: DeploymentConfig,
        cache: SessionScopedCache,
        fetcher: HttpFetcher,
    ) -> list[TranslatableText]:
        current = config.get_version()
        if not config.get_boolean(CHECK_FOR_UPDATES_KEY, True) or current == DEVELOPMENT_VERSION:
            return []

        if not self._probe.available(FeatureId.HTTP_CLIENT):
            return [TranslatableText(MSG_CANNOT_CHECK_UPDATES)]

        latest = self._cached_release(cache)
        if latest is None:
            latest = self._fetch_latest_release(config, fetcher)
            if latest is not None:
                cache.set(LATEST_VERSION_STATE_KEY, LATEST_VERSION_FIELD, latest.model_dump())

        if latest is not None and is_newer_release(latest.tag_name, current):
            return [TranslatableText(MSG_OUTDATED_VERSION, {"%latest%": latest.html_url})]
        return []

    def _cached_release(self, cache: SessionScopedCache) -> CachedVersionInfo | None:
        cached: Any = cache.get(LATEST_VERSION_STATE_KEY, LATEST_VERSION_FIELD)
        if not cached:
            return None
        try:
            latest = CachedVersionInfo.model_validate(cached)
        except ValidationError:
            self._logger.warning("version_check.cache_invalid")
            return None
        self._logger.debug("version_check.cached", latest=latest.tag_name)
        return latest

    def _fetch_latest_release(
        self, config: DeploymentConfig, fetcher: HttpFetcher
    ) -> CachedVersionInfo | None:
        proxy = config.get_string(PROXY_KEY)
        proxy_auth = config.get_value(PROXY_AUTH_KEY)
        self._logger.debug("version_check.fetch", url=self._releases_url, proxied=bool(proxy))
        try:
            response = fetcher.get(
                self._releases_url,
                timeout=RELEASES_TIMEOUT_SECONDS,
                user_agent=RELEASES_USER_AGENT,
                proxy=proxy,
                proxy_auth=proxy_auth if isinstance(proxy_auth, str) else None,
            )
        except NetworkError as exc:
            self._report_failure(**exc.log_fields())
            return None

        if response.status_code != 200:
            self._report_failure(
                code=ErrorCode.NON_SUCCESS_STATUS.value,
                status_code=response.status_code,
            )
            return None

        try:
            return parse_release_payload(response.body)
        except RemotePayloadError as exc:
            self._report_failure(**exc.log_fields())
            return None


def collect_warnings(
    config: DeploymentConfig,
    transport: TransportInfo,
    cache: SessionScopedCache,
    fetcher: HttpFetcher,
    *,
    probe: CapabilityProbe | None = None,
    logger: BoundLogger | None = None,
) -> list[TranslatableText]:
    """Return the ordered deployment warnings for ``config``."""

    aggregator = DeploymentWarningAggregator(probe=probe, logger=logger)
    return aggregator.collect(config, transport, cache, fetcher)


__all__ = [
    "LATEST_VERSION_STATE_KEY",
    "LATEST_VERSION_FIELD",
    "RELEASES_API",
    "DeploymentWarningAggregator",
    "collect_warnings",
    "is_newer_release",
    "parse_release_payload",
]
