"""
Structural comparison of actual and expected JSON values.

Without matching rules, values must be equal, except that objects may carry
keys the consumer did not ask for. Matching rules relax that comparison for
the JSON paths they are registered on. Both the v2 rule layout
(``{"$.body.id": {"match": "type"}}``) and the v3 layout
(``{"body": {"$.id": {"matchers": [...]}}}``) are accepted.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Optional, Protocol, Tuple

from .schemas import MatchResult


Token = Tuple[str, Any]  # ("key", name) | ("index", n) | ("key", "*") | ("index", "*")
CompiledRule = Tuple[Tuple[Token, ...], List[Dict[str, Any]]]

WILDCARD = "*"

_PATH_TOKEN = re.compile(
    r"\.(?P<key>\*|[^.\[\]]+)"
    r"|\[(?P<index>\*|\d+)\]"
    r"|\[(?P<quote>['\"])(?P<quoted>.*?)(?P=quote)\]"
)
_PLAIN_KEY = re.compile(r"^[^.\[\]'\"\s]+$")

# v3 rule categories and the root they map onto
_V3_CATEGORIES = {"body": "$.body", "header": "$.headers", "headers": "$.headers"}


class Matcher(Protocol):
    def __call__(
        self,
        actual: Any,
        expected: Any,
        matching_rules: Dict[str, Any],
        root: str
    ) -> MatchResult: ...


def parse_path(path: str) -> Tuple[Token, ...]:
    """Split a ``$.a.b[0]['c d']`` path into tokens, ``$`` excluded."""
    if not path.startswith("$"):
        raise ValueError(f"JSON path must start with '$': {path}")
    tokens: List[Token] = []
    position = 1
    while position < len(path):
        match = _PATH_TOKEN.match(path, position)
        if not match:
            raise ValueError(f"Invalid JSON path: {path}")
        if match.group("key") is not None:
            tokens.append(("key", match.group("key")))
        elif match.group("index") is not None:
            index = match.group("index")
            tokens.append(("index", index if index == WILDCARD else int(index)))
        else:
            tokens.append(("key", match.group("quoted")))
        position = match.end()

    # header names are case-insensitive
    if tokens and tokens[0] == ("key", "headers"):
        tokens = [tokens[0]] + [
            (kind, value.lower() if kind == "key" and value != WILDCARD else value)
            for kind, value in tokens[1:]
        ]
    return tuple(tokens)


def child_path(path: str, key: Any) -> str:
    """Path label of a child node, as shown in mismatch messages."""
    if isinstance(key, int):
        return f"{path}[{key}]"
    if _PLAIN_KEY.match(key):
        return f"{path}.{key}"
    return f"{path}['{key}']"


def child_tokens(tokens: Tuple[Token, ...], key: Any) -> Tuple[Token, ...]:
    if isinstance(key, int):
        return tokens + (("index", key),)
    # header names are case-insensitive
    if tokens and tokens[0] == ("key", "headers"):
        key = key.lower()
    return tokens + (("key", key),)


def normalize_matching_rules(rules: Optional[Dict[str, Any]]) -> Dict[str, List[Dict[str, Any]]]:
    """
    Flatten v2 and v3 matching rules to ``{json_path: [matcher, ...]}``.

    Rules for parts of the response other than headers and body (e.g. the
    status) are ignored.
    """
    normalized: Dict[str, List[Dict[str, Any]]] = {}
    for key, value in (rules or {}).items():
        if key.startswith("$"):
            normalized[key] = _matchers_of(value)
        elif key in _V3_CATEGORIES and isinstance(value, dict):
            root = _V3_CATEGORIES[key]
            for sub_path, sub_rule in value.items():
                if sub_path.startswith("$"):
                    path = root + sub_path[1:]
                else:
                    path = child_path(root, sub_path)
                normalized[path] = _matchers_of(sub_rule)
    return normalized


def _matchers_of(rule: Any) -> List[Dict[str, Any]]:
    if isinstance(rule, dict) and isinstance(rule.get("matchers"), list):
        return [matcher for matcher in rule["matchers"] if isinstance(matcher, dict)]
    if isinstance(rule, dict):
        return [rule]
    return []


def json_type(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def _render(value: Any) -> str:
    return json.dumps(value, default=str, ensure_ascii=False)


class _Comparison:
    """Compares one actual/expected pair under one set of compiled rules."""

    def __init__(self, rules: Dict[str, List[Dict[str, Any]]]):
        self.rules: List[CompiledRule] = []
        for path, matchers in rules.items():
            try:
                self.rules.append((parse_path(path), matchers))
            except ValueError:
                # unparseable paths can never apply
                continue

    def compare(
        self,
        actual: Any,
        expected: Any,
        path: str,
        tokens: Tuple[Token, ...],
        cascade: bool = False
    ) -> MatchResult:
        matchers = self._rule_for(tokens)
        if matchers is not None:
            return self._apply(matchers, actual, expected, path, tokens)
        if cascade or self._inherits_type(tokens):
            return self._compare_type(actual, expected, path, tokens)
        return self._compare_equal(actual, expected, path, tokens)

    def _rule_for(self, tokens: Tuple[Token, ...]) -> Optional[List[Dict[str, Any]]]:
        best: Optional[List[Dict[str, Any]]] = None
        best_weight = -1
        for rule_tokens, matchers in self.rules:
            weight = self._weight(rule_tokens, tokens)
            if weight > best_weight:
                best, best_weight = matchers, weight
        return best

    def _inherits_type(self, tokens: Tuple[Token, ...]) -> bool:
        for length in range(len(tokens) - 1, -1, -1):
            matchers = self._rule_for(tokens[:length])
            if matchers is not None:
                return any(self._kind(matcher) == "type" for matcher in matchers)
        return False

    @staticmethod
    def _weight(rule_tokens: Tuple[Token, ...], tokens: Tuple[Token, ...]) -> int:
        if len(rule_tokens) != len(tokens):
            return -1
        weight = 0
        for (rule_kind, rule_value), (kind, value) in zip(rule_tokens, tokens):
            if rule_kind != kind:
                return -1
            if rule_value == WILDCARD:
                weight += 1
            elif rule_value == value:
                weight += 2
            else:
                return -1
        return weight

    @staticmethod
    def _kind(matcher: Dict[str, Any]) -> str:
        kind = matcher.get("match")
        if kind:
            return kind
        if "regex" in matcher:
            return "regex"
        if "min" in matcher or "max" in matcher:
            return "type"
        return "equality"

    def _apply(
        self,
        matchers: List[Dict[str, Any]],
        actual: Any,
        expected: Any,
        path: str,
        tokens: Tuple[Token, ...]
    ) -> MatchResult:
        for matcher in matchers:
            result = self._apply_one(matcher, actual, expected, path, tokens)
            if not result.equal:
                return result
        return MatchResult.ok()

    def _apply_one(
        self,
        matcher: Dict[str, Any],
        actual: Any,
        expected: Any,
        path: str,
        tokens: Tuple[Token, ...]
    ) -> MatchResult:
        kind = self._kind(matcher)

        if kind == "type":
            result = self._check_bounds(matcher, actual, path)
            if not result.equal:
                return result
            return self._compare_type(actual, expected, path, tokens)

        if kind == "regex":
            pattern = matcher.get("regex", "")
            try:
                compiled = re.compile(pattern)
            except (re.error, TypeError):
                return MatchResult.mismatch(f"Invalid regex /{pattern}/ at {path}", path)
            if isinstance(actual, (dict, list)) or actual is None:
                return MatchResult.mismatch(
                    f"Expected a value matching /{pattern}/ at {path} but got {_render(actual)}", path
                )
            text = actual if isinstance(actual, str) else _render(actual)
            if compiled.fullmatch(text) is None:
                return MatchResult.mismatch(
                    f"Expected {_render(actual)} at {path} to match /{pattern}/", path
                )
            return MatchResult.ok()

        if kind == "equality":
            return self._compare_equal(actual, expected, path, tokens)

        if kind == "include":
            value = str(matcher.get("value", expected))
            if not isinstance(actual, str) or value not in actual:
                return MatchResult.mismatch(
                    f"Expected {_render(actual)} at {path} to include {_render(value)}", path
                )
            return MatchResult.ok()

        if kind in ("integer", "decimal", "number", "null", "boolean"):
            if not self._is_kind(kind, actual):
                return MatchResult.mismatch(
                    f"Expected {kind} at {path} but got {_render(actual)}", path
                )
            return MatchResult.ok()

        return MatchResult.mismatch(f"Unsupported matcher '{kind}' at {path}", path)

    @staticmethod
    def _is_kind(kind: str, actual: Any) -> bool:
        if kind == "null":
            return actual is None
        if kind == "boolean":
            return isinstance(actual, bool)
        if isinstance(actual, bool):
            return False
        if kind == "integer":
            return isinstance(actual, int)
        if kind == "decimal":
            return isinstance(actual, float)
        return isinstance(actual, (int, float))

    @staticmethod
    def _check_bounds(matcher: Dict[str, Any], actual: Any, path: str) -> MatchResult:
        if "min" not in matcher and "max" not in matcher:
            return MatchResult.ok()
        if not isinstance(actual, list):
            return MatchResult.mismatch(f"Expected array at {path} but got {json_type(actual)}", path)
        minimum = matcher.get("min")
        maximum = matcher.get("max")
        if minimum is not None and len(actual) < minimum:
            return MatchResult.mismatch(
                f"Expected at least {minimum} items at {path} but got {len(actual)}", path
            )
        if maximum is not None and len(actual) > maximum:
            return MatchResult.mismatch(
                f"Expected at most {maximum} items at {path} but got {len(actual)}", path
            )
        return MatchResult.ok()

    def _compare_type(self, actual: Any, expected: Any, path: str, tokens: Tuple[Token, ...]) -> MatchResult:
        expected_type, actual_type = json_type(expected), json_type(actual)
        if expected_type != actual_type:
            return MatchResult.mismatch(
                f"Expected {expected_type} at {path} but got {actual_type} ({_render(actual)})", path
            )
        if isinstance(expected, dict):
            return self._compare_keys(actual, expected, path, tokens, cascade=True)
        if isinstance(expected, list) and expected:
            template = expected[0]
            for index, item in enumerate(actual):
                result = self.compare(
                    item, template, child_path(path, index), child_tokens(tokens, index), cascade=True
                )
                if not result.equal:
                    return result
        return MatchResult.ok()

    def _compare_equal(self, actual: Any, expected: Any, path: str, tokens: Tuple[Token, ...]) -> MatchResult:
        if isinstance(expected, dict):
            if not isinstance(actual, dict):
                return MatchResult.mismatch(
                    f"Expected object at {path} but got {json_type(actual)} ({_render(actual)})", path
                )
            return self._compare_keys(actual, expected, path, tokens, cascade=False)

        if isinstance(expected, list):
            if not isinstance(actual, list):
                return MatchResult.mismatch(
                    f"Expected array at {path} but got {json_type(actual)} ({_render(actual)})", path
                )
            if len(actual) != len(expected):
                return MatchResult.mismatch(
                    f"Expected {len(expected)} items at {path} but got {len(actual)}", path
                )
            for index, (item, expected_item) in enumerate(zip(actual, expected)):
                result = self.compare(item, expected_item, child_path(path, index), child_tokens(tokens, index))
                if not result.equal:
                    return result
            return MatchResult.ok()

        if json_type(actual) != json_type(expected) or actual != expected:
            return MatchResult.mismatch(
                f"Expected {_render(expected)} at {path} but got {_render(actual)}", path
            )
        return MatchResult.ok()

    def _compare_keys(
        self,
        actual: Dict[str, Any],
        expected: Dict[str, Any],
        path: str,
        tokens: Tuple[Token, ...],
        cascade: bool
    ) -> MatchResult:
        for key, expected_value in expected.items():
            key_path = child_path(path, key)
            if key not in actual:
                return MatchResult.mismatch(f"Expected key {key_path} but it is missing", key_path)
            result = self.compare(actual[key], expected_value, key_path, child_tokens(tokens, key), cascade=cascade)
            if not result.equal:
                return result
        return MatchResult.ok()


class JsonMatcher:
    """Default structural matcher used by the response validator."""

    def __call__(
        self,
        actual: Any,
        expected: Any,
        matching_rules: Dict[str, Any],
        root: str
    ) -> MatchResult:
        return self.match(actual, expected, matching_rules, root)

    def match(
        self,
        actual: Any,
        expected: Any,
        matching_rules: Optional[Dict[str, Any]],
        root: str = "$"
    ) -> MatchResult:
        """
        Compare actual against expected under the given matching rules.

        Args:
            actual: Value received from the provider
            expected: Value recorded in the pact
            matching_rules: v2 or v3 matching rules, may be empty
            root: Path label of the compared values, e.g. ``$.body``

        Returns:
            MatchResult: First mismatch found, or an equal result
        """
        comparison = _Comparison(normalize_matching_rules(matching_rules))
        return comparison.compare(actual, expected, root, parse_path(root))
