"""
Strict parsing of Pact broker hypermedia links.

The broker does not list consumer versions separately: the version is a
segment of the pact document URL. Links are parsed against the broker's
URI templates with named captures instead of ad hoc substring matching, so
a change in the broker's link shape fails loudly.
"""

import re
from typing import Dict, Optional
from urllib.parse import unquote, urlsplit

from .errors import VerifierErrorCode, create_link_error

PACTS_REL = "pb:pacts"
PUBLISH_RESULTS_REL = "pb:publish-verification-results"

_PACT_VERSION_TEMPLATE = re.compile(
    r"/pacts/provider/(?P<provider>[^/]+)"
    r"/consumer/(?P<consumer>[^/]+)"
    r"/version/(?P<version>[^/]+)/?$"
)
_PUBLISH_PATH_TEMPLATE = re.compile(r"(?P<path>/pacts/provider/[^?#]+)")


def parse_pact_href(href: str) -> Dict[str, str]:
    """
    Parse a consumer pact document link.

    Args:
        href: Absolute or relative link to a consumer version pact

    Returns:
        Dict with percent-decoded ``provider``, ``consumer`` and ``version``

    Raises:
        LinkExtractionError: If the link does not follow the broker template
    """
    path = urlsplit(href or "").path
    match = _PACT_VERSION_TEMPLATE.search(path)
    if not match:
        raise create_link_error(
            VerifierErrorCode.LINK_VERSION_MISSING,
            f"Pact link has no consumer version segment: {href}",
            href=href,
        )
    return {key: unquote(value) for key, value in match.groupdict().items()}


def parse_consumer_version(href: str) -> str:
    return parse_pact_href(href)["version"]


def publish_results_url(broker_url: Optional[str], href: str) -> str:
    """
    Resolve the publish-verification-results link against the broker URL.

    Only the ``/pacts/provider/...`` path of the link is kept, so results are
    posted to the configured broker even when it advertises another host.
    Without a configured broker the link's own origin is used.
    """
    parts = urlsplit(href or "")
    match = _PUBLISH_PATH_TEMPLATE.search(parts.path)
    if not match or not (broker_url or parts.netloc):
        raise create_link_error(
            VerifierErrorCode.LINK_PUBLISH_MALFORMED,
            f"Publish verification results link has no /pacts/provider segment: {href}",
            href=href,
        )
    base = broker_url or f"{parts.scheme}://{parts.netloc}"
    return f"{base.rstrip('/')}{match.group('path')}"
