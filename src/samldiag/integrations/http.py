"""Minimal synchronous HTTP fetcher used by the update check."""

from __future__ import annotations

from typing import Any

import httpx

from samldiag.domain.models import HttpResponse
from samldiag.infrastructure.errors import (
    ErrorCode,
    ErrorContext,
    NetworkError,
    NetworkTimeoutError,
)


_PROXY_SCHEME_ALIASES = {"tcp": "http"}


def _normalize_proxy_url(proxy: str) -> str:
    # Bare "host:port" and "tcp://" are the curl spellings of an HTTP proxy.
    scheme, separator, rest = proxy.strip().partition("://")
    if not separator:
        return f"http://{proxy.strip()}"
    return f"{_PROXY_SCHEME_ALIASES.get(scheme.lower(), scheme)}://{rest}"


def _build_proxy(proxy: str | None, proxy_auth: str | None) -> httpx.Proxy | None:
    if not proxy:
        return None
    url = _normalize_proxy_url(proxy)
    if proxy_auth:
        username, _, password = proxy_auth.partition(":")
        return httpx.Proxy(url, auth=(username, password))
    return httpx.Proxy(url)


class HttpxFetcher:
    """Perform single bounded GET requests with ``httpx``.

    ``transport`` is forwarded to :class:`httpx.Client`; tests pass an
    :class:`httpx.MockTransport` to avoid touching the network.
    """

    def __init__(
        self,
        *,
        transport: httpx.BaseTransport | None = None,
        verify: bool | str = True,
    ) -> None:
        self._transport = transport
        self._verify = verify

    def _client_kwargs(
        self,
        *,
        timeout: float,
        user_agent: str,
        proxy: str | None,
        proxy_auth: str | None,
    ) -> dict[str, Any]:
        client_kwargs: dict[str, Any] = {
            "headers": {"User-Agent": user_agent, "Accept": "application/json"},
            "timeout": timeout,
            "verify": self._verify,
            "follow_redirects": True,
        }
        if self._transport is not None:
            client_kwargs["transport"] = self._transport
        else:
            proxy_option = _build_proxy(proxy, proxy_auth)
            if proxy_option is not None:
                client_kwargs["proxy"] = proxy_option
        return client_kwargs

    def get(
        self,
        url: str,
        *,
        timeout: float,
        user_agent: str,
        proxy: str | None = None,
        proxy_auth: str | None = None,
    ) -> HttpResponse:
        host = httpx.URL(url).host
        try:
            kwargs = self._client_kwargs(
                timeout=timeout,
                user_agent=user_agent,
                proxy=proxy,
                proxy_auth=proxy_auth,
            )
        except (ValueError, httpx.InvalidURL) as exc:
            raise NetworkError(
                f"Proxy for {host} is not usable",
                context=ErrorContext(
                    component="http",
                    operation="build_proxy",
                    code=ErrorCode.CONFIGURATION_INVALID.value,
                    detail=exc.__class__.__name__,
                ),
            ) from exc
        try:
            with httpx.Client(**kwargs) as client:
                response = client.get(url)
        except httpx.TimeoutException as exc:
            raise NetworkTimeoutError(
                f"Request to {host} timed out after {timeout}s",
                context=ErrorContext(
                    component="http",
                    operation=f"GET {host}",
                    code=ErrorCode.NETWORK_TIMEOUT.value,
                ),
            ) from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise NetworkError(
                f"Request to {host} failed: {exc.__class__.__name__}",
                context=ErrorContext(
                    component="http",
                    operation=f"GET {host}",
                    code=ErrorCode.NETWORK_UNAVAILABLE.value,
                    detail=str(exc) or None,
                ),
            ) from exc
        return HttpResponse(status_code=response.status_code, body=response.text)


__all__ = ["HttpxFetcher"]
