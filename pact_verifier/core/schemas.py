from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field

from .errors import VerifierErrorCode, create_broker_error
from .links import parse_consumer_version, PUBLISH_RESULTS_REL


T = TypeVar("T")


class _PactModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class PactSummary(_PactModel):
    """
    Entry of the broker's latest pacts listing.

    The consumer version is not listed separately by the broker; it is
    parsed out of the document hyperlink.
    """
    name: str
    href: str
    title: Optional[str] = None

    @property
    def consumer_version(self) -> str:
        return parse_consumer_version(self.href)


class ProviderStateRef(_PactModel):
    """Pact specification v3 provider state entry."""
    name: str
    params: Dict[str, Any] = Field(default_factory=dict)


class RequestSpec(_PactModel):
    """HTTP request recorded by the consumer."""
    method: str = "GET"
    path: str = "/"
    query: Optional[Union[str, Dict[str, Any]]] = None
    headers: Optional[Dict[str, Any]] = None
    body: Any = None


class ResponseSpec(_PactModel):
    """Expected provider response. Every part of it is optional."""
    status: Optional[int] = None
    headers: Optional[Dict[str, Any]] = None
    body: Any = None
    matching_rules: Optional[Dict[str, Any]] = Field(default=None, alias="matchingRules")


class Interaction(_PactModel):
    description: str
    provider_state: Optional[str] = Field(default=None, alias="providerState")
    provider_states_v3: List[ProviderStateRef] = Field(default_factory=list, alias="providerStates")
    request: RequestSpec
    response: ResponseSpec = Field(default_factory=ResponseSpec)

    @property
    def provider_states(self) -> List[str]:
        """State labels to set up before replaying, in document order."""
        if self.provider_states_v3:
            return [state.name for state in self.provider_states_v3]
        return [self.provider_state] if self.provider_state else []


class Pacticipant(_PactModel):
    name: str


class ConsumerPactDocument(_PactModel):
    consumer: Optional[Pacticipant] = None
    provider: Optional[Pacticipant] = None
    interactions: List[Interaction] = Field(default_factory=list)
    links: Dict[str, Any] = Field(default_factory=dict, alias="_links")
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def publish_href(self) -> Optional[str]:
        link = self.links.get(PUBLISH_RESULTS_REL)
        if isinstance(link, dict):
            return link.get("href")
        return None


class MatchResult(BaseModel):
    """Outcome of one comparison stage."""
    equal: bool
    message: Optional[str] = None
    path: Optional[str] = None

    @classmethod
    def ok(cls) -> "MatchResult":
        return cls(equal=True)

    @classmethod
    def mismatch(cls, message: str, path: Optional[str] = None) -> "MatchResult":
        return cls(equal=False, message=message, path=path)


class FetchStatus(str, Enum):
    OK = "ok"
    EMPTY = "empty"
    ERROR = "error"


@dataclass
class FetchResult(Generic[T]):
    """
    Result of a broker fetch.

    Distinguishes "nothing registered" from "the broker call failed" so that
    an outage is never mistaken for an empty, passing run.
    """

    status: FetchStatus
    value: Optional[T] = None
    url: Optional[str] = None
    status_code: Optional[int] = None
    error: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.status == FetchStatus.ERROR

    def unwrap(self) -> Optional[T]:
        """Return the fetched value, raising BrokerFetchError on failure."""
        if self.is_error:
            if self.status_code == 404:
                code = VerifierErrorCode.BROKER_PACT_NOT_FOUND
            elif self.status_code is not None and 200 <= self.status_code < 300:
                code = VerifierErrorCode.BROKER_INVALID_BODY
            else:
                code = VerifierErrorCode.BROKER_HTTP_ERROR
            raise create_broker_error(
                code,
                self.error or "Pact broker request failed",
                url=self.url,
                status_code=self.status_code,
            )
        return self.value


@dataclass
class ProviderResponse:
    """Response actually returned by the provider under test."""

    status: int
    headers: Dict[str, str]
    text: str = ""


@dataclass
class InteractionResult:
    description: str
    equal: bool
    provider_states: List[str] = field(default_factory=list)
    message: Optional[str] = None
    path: Optional[str] = None


@dataclass
class ConsumerOutcome:
    consumer: str
    version: str
    success: bool = True
    results: List[InteractionResult] = field(default_factory=list)
    publish_status: Optional[int] = None


@dataclass
class RunOutcome:
    """Counters and per-consumer success flags accumulated over a run."""

    provider: str
    total: int = 0
    passed: int = 0
    failed: int = 0
    skipped: int = 0
    consumers: List[ConsumerOutcome] = field(default_factory=list)
    started_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    finished_at: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.failed == 0

    @property
    def exit_code(self) -> int:
        return 1 if self.failed > 0 else 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


@dataclass
class PublishResult:
    url: str
    status_code: int

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300
