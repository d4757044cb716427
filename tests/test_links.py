import pytest

from pact_verifier.core.errors import LinkExtractionError, VerifierErrorCode
from pact_verifier.core.links import parse_consumer_version, parse_pact_href, publish_results_url
from pact_verifier.core.schemas import PactSummary


def test_parse_version_from_absolute_href():
    href = "https://broker.example/pacts/provider/user-service/consumer/web-app/version/1.4.2"
    assert parse_consumer_version(href) == "1.4.2"


def test_parse_pact_href_decodes_segments():
    parts = parse_pact_href("/pacts/provider/user%20service/consumer/web%2Fapp/version/1.0.0%2Bbuild.7/")
    assert parts == {"provider": "user service", "consumer": "web/app", "version": "1.0.0+build.7"}


def test_version_segment_is_not_taken_from_query_string():
    with pytest.raises(LinkExtractionError):
        parse_pact_href("http://broker/pacts/provider/p/consumer/c/latest?version=1.0.0")


def test_missing_version_segment_raises():
    with pytest.raises(LinkExtractionError) as exc:
        parse_consumer_version("http://broker/pacts/provider/p/consumer/c/latest")
    assert exc.value.code == VerifierErrorCode.LINK_VERSION_MISSING
    assert exc.value.error_detail.url.endswith("/latest")


def test_pact_summary_exposes_consumer_version():
    summary = PactSummary.model_validate(
        {"name": "web-app", "href": "http://broker/pacts/provider/p/consumer/web-app/version/2.0.0"}
    )
    assert summary.consumer_version == "2.0.0"


def test_publish_url_uses_configured_broker():
    href = "http://internal-broker:9292/pacts/provider/p/consumer/c/pact-version/abc/verification-results"
    url = publish_results_url("https://broker.example/base", href)
    assert url == "https://broker.example/base/pacts/provider/p/consumer/c/pact-version/abc/verification-results"


def test_publish_url_falls_back_to_link_origin():
    href = "http://broker:9292/pacts/provider/p/consumer/c/pact-version/abc/verification-results"
    assert publish_results_url(None, href) == href


def test_publish_url_without_pacts_path_is_rejected():
    with pytest.raises(LinkExtractionError) as exc:
        publish_results_url("http://broker", "http://broker/verification-results")
    assert exc.value.code == VerifierErrorCode.LINK_PUBLISH_MALFORMED


def test_relative_publish_link_needs_a_broker_url():
    with pytest.raises(LinkExtractionError):
        publish_results_url(None, "/pacts/provider/p/consumer/c/pact-version/abc/verification-results")
