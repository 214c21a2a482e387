import os

import pytest

from samldiag.application.capabilities import FeatureId, StaticCapabilityProbe
from samldiag.application.deployment_warnings import (
    LATEST_VERSION_FIELD,
    LATEST_VERSION_STATE_KEY,
    RELEASES_API,
    RELEASES_TIMEOUT_SECONDS,
    RELEASES_USER_AGENT,
    collect_warnings,
    parse_release_payload,
)
from samldiag.config.settings import DeploymentConfig
from samldiag.domain.models import TransportInfo
from samldiag.infrastructure.errors import NetworkError
from samldiag.integrations.http import HttpxFetcher
from samldiag.integrations.session import InMemorySessionCache

pytestmark = [pytest.mark.integration, pytest.mark.online]


@pytest.fixture(scope="module")
def fetcher() -> HttpxFetcher:
    if not os.getenv("SAMLDIAG_ONLINE_TESTS"):
        pytest.skip("SAMLDIAG_ONLINE_TESTS not set; skipping online tests")
    return HttpxFetcher()


def test_releases_api_returns_parsable_payload(fetcher: HttpxFetcher) -> None:
    try:
        response = fetcher.get(
            RELEASES_API,
            timeout=RELEASES_TIMEOUT_SECONDS * 5,
            user_agent=RELEASES_USER_AGENT,
        )
    except NetworkError as exc:
        pytest.skip(f"releases API unreachable: {exc.user_message}")
    if response.status_code == 403:
        pytest.skip("releases API rate limit reached")

    assert response.status_code == 200
    info = parse_release_payload(response.body)
    assert info.tag_name[0].isdigit()
    assert info.html_url.startswith("https://github.com/")


def test_ancient_version_is_reported_outdated(fetcher: HttpxFetcher) -> None:
    cache = InMemorySessionCache()
    warnings = collect_warnings(
        DeploymentConfig.from_mapping({"version": "1.0.0", "secretsalt": "x"}),
        TransportInfo(secure=True),
        cache,
        fetcher,
        probe=StaticCapabilityProbe({FeatureId.HTTP_CLIENT}),
    )

    if cache.get(LATEST_VERSION_STATE_KEY, LATEST_VERSION_FIELD) is None:
        pytest.skip("releases API did not answer with a release")
    assert len(warnings) == 1
    assert warnings[0].params["%latest%"].startswith("https://github.com/")
