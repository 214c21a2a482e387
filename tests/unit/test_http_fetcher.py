from __future__ import annotations

import httpx
import pytest

from samldiag.domain.ports import HttpFetcher
from samldiag.infrastructure.errors import ErrorCode, NetworkError, NetworkTimeoutError
from samldiag.integrations import http as http_module
from samldiag.integrations.http import HttpxFetcher

URL = "https://api.example.org/releases/latest"


def test_get_returns_status_and_body() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"tag_name": "v1.0.0"})

    fetcher = HttpxFetcher(transport=httpx.MockTransport(handler))
    response = fetcher.get(URL, timeout=2.0, user_agent="SimpleSAMLphp")

    assert response.status_code == 200
    assert '"tag_name"' in response.body
    assert seen[0].headers["User-Agent"] == "SimpleSAMLphp"
    assert seen[0].url == httpx.URL(URL)


def test_non_success_status_is_returned_not_raised() -> None:
    fetcher = HttpxFetcher(transport=httpx.MockTransport(lambda request: httpx.Response(503)))
    response = fetcher.get(URL, timeout=2.0, user_agent="agent")
    assert response.status_code == 503
    assert response.body == ""


def test_timeout_maps_to_network_timeout() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    fetcher = HttpxFetcher(transport=httpx.MockTransport(handler))
    with pytest.raises(NetworkTimeoutError) as exc_info:
        fetcher.get(URL, timeout=2.0, user_agent="agent")

    assert exc_info.value.code == ErrorCode.NETWORK_TIMEOUT.value
    assert "api.example.org" in exc_info.value.user_message


def test_connection_error_maps_to_network_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    fetcher = HttpxFetcher(transport=httpx.MockTransport(handler))
    with pytest.raises(NetworkError) as exc_info:
        fetcher.get(URL, timeout=2.0, user_agent="agent")

    assert not isinstance(exc_info.value, NetworkTimeoutError)
    assert exc_info.value.code == ErrorCode.NETWORK_UNAVAILABLE.value
    assert exc_info.value.log_fields()["component"] == "http"


def test_proxy_is_configured_without_transport(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, object] = {}

    class _FakeClient:
        def __init__(self, **kwargs: object) -> None:
            captured.update(kwargs)

        def __enter__(self) -> "_FakeClient":
            return self

        def __exit__(self, *exc_info: object) -> None:
            return None

        def get(self, url: str) -> httpx.Response:
            return httpx.Response(204)

    monkeypatch.setattr(http_module.httpx, "Client", _FakeClient)
    response = HttpxFetcher().get(
        URL,
        timeout=2.0,
        user_agent="agent",
        proxy="http://proxy.example.org:3128",
        proxy_auth="user:secret",
    )

    assert response.status_code == 204
    proxy = captured["proxy"]
    assert isinstance(proxy, httpx.Proxy)
    assert proxy.url == httpx.URL("http://proxy.example.org:3128")
    assert proxy.auth == ("user", "secret")
    assert captured["timeout"] == 2.0
    assert "transport" not in captured


def test_build_proxy_without_proxy_is_none() -> None:
    assert http_module._build_proxy(None, "user:secret") is None  # type: ignore[attr-defined]
    plain = http_module._build_proxy("http://proxy:8080", None)  # type: ignore[attr-defined]
    assert plain is not None and plain.auth is None


@pytest.mark.parametrize(
    "proxy",
    ["tcp://proxy.example.org:3128", "proxy.example.org:3128", "TCP://proxy.example.org:3128"],
)
def test_curl_style_proxy_is_used_as_http_proxy(
    proxy: str, monkeypatch: pytest.MonkeyPatch
) -> None:
    captured: dict[str, object] = {}

    class _FakeClient:
        def __init__(self, **kwargs: object) -> None:
            captured.update(kwargs)

        def __enter__(self) -> "_FakeClient":
            return self

        def __exit__(self, *exc_info: object) -> None:
            return None

        def get(self, url: str) -> httpx.Response:
            return httpx.Response(200, text="{}")

    monkeypatch.setattr(http_module.httpx, "Client", _FakeClient)
    response = HttpxFetcher().get(URL, timeout=2.0, user_agent="agent", proxy=proxy)

    assert response.status_code == 200
    assert captured["proxy"].url == httpx.URL("http://proxy.example.org:3128")  # type: ignore[attr-defined]


def test_unsupported_proxy_scheme_maps_to_network_error() -> None:
    with pytest.raises(NetworkError) as exc_info:
        HttpxFetcher().get(
            URL, timeout=2.0, user_agent="agent", proxy="ftp://proxy.example.org:21"
        )

    assert exc_info.value.code == ErrorCode.CONFIGURATION_INVALID.value
    assert exc_info.value.log_fields()["op"] == "build_proxy"


def test_fetcher_satisfies_port() -> None:
    assert isinstance(HttpxFetcher(), HttpFetcher)
