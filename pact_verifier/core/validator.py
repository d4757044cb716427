"""
Response comparison cascade.

Status, then headers, then body. Each stage is skipped when the pact does
not record an expectation for it, and the cascade stops at the first stage
that reports a mismatch.
"""

import json
import re
from typing import Any, Dict, Mapping, Optional

from .matching import JsonMatcher, Matcher
from .schemas import MatchResult, ProviderResponse, ResponseSpec

HEADERS_ROOT = "$.headers"
BODY_ROOT = "$.body"

_COMMA_SPACING = re.compile(r"\s*,\s*")


def parse_body(text: str) -> Any:
    """Decode a response body as JSON, falling back to the raw text."""
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return text


def _normalize_header_value(value: Any) -> Any:
    if isinstance(value, str):
        return _COMMA_SPACING.sub(",", value.strip())
    return value


def align_headers(actual: Mapping[str, str], expected: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Key the actual headers by the names used in the pact.

    Header names compare case-insensitively; actual headers the pact does
    not mention are dropped.
    """
    by_lower_name = {name.lower(): value for name, value in actual.items()}
    return {
        name: _normalize_header_value(by_lower_name[name.lower()])
        for name in expected
        if name.lower() in by_lower_name
    }


class ResponseValidator:
    """Runs the status, headers and body comparison stages."""

    def __init__(self, matcher: Optional[Matcher] = None):
        self.matcher = matcher or JsonMatcher()

    def validate(self, actual: ProviderResponse, expected: ResponseSpec) -> MatchResult:
        """Return the first non-equal stage result, or an equal result."""
        result = self.validate_status(actual.status, expected.status)
        if not result.equal:
            return result
        result = self.validate_headers(actual.headers, expected)
        if not result.equal:
            return result
        return self.validate_body(actual.text, expected)

    def validate_status(self, actual_status: int, expected_status: Optional[int]) -> MatchResult:
        if expected_status is not None and actual_status != expected_status:
            return MatchResult.mismatch(f"HTTP status {actual_status} !== {expected_status}", "$.status")
        return MatchResult.ok()

    def validate_headers(self, actual_headers: Mapping[str, str], expected: ResponseSpec) -> MatchResult:
        if expected.headers is None:
            return MatchResult.ok()
        expected_headers = {
            name: _normalize_header_value(value) for name, value in expected.headers.items()
        }
        return self.matcher(
            align_headers(actual_headers, expected_headers),
            expected_headers,
            expected.matching_rules or {},
            HEADERS_ROOT,
        )

    def validate_body(self, actual_text: str, expected: ResponseSpec) -> MatchResult:
        # an empty recorded body (e.g. a 204 reply) carries no expectation
        if expected.body is None or expected.body == "":
            return MatchResult.ok()
        return self.matcher(
            parse_body(actual_text),
            expected.body,
            expected.matching_rules or {},
            BODY_ROOT,
        )
