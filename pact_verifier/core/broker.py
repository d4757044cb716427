"""
Retrieval of consumer contracts for the provider under test.

Pacts come either from the Pact broker (latest pact per consumer, optionally
filtered by tags) or from an explicit list of pact files and URLs.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, AsyncIterator, List, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from ..config import ProviderConfig
from .errors import (
    LinkExtractionError,
    VerifierErrorCode,
    create_broker_error,
    create_transport_error,
)
from .links import PACTS_REL, parse_pact_href
from .schemas import ConsumerPactDocument, FetchResult, FetchStatus, PactSummary

logger = logging.getLogger(__name__)

UNKNOWN = "unknown"


@dataclass
class PactTarget:
    """One consumer pact to verify."""

    consumer: str
    version: str
    document: ConsumerPactDocument


def create_broker_client(
    config: ProviderConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> httpx.AsyncClient:
    """
    Create the HTTP client used for every broker call.

    Bearer token authentication is preferred over basic authentication.
    Connection failures are retried by the transport.
    """
    headers = {"Accept": "application/hal+json, application/json"}
    auth = None
    if config.uses_token_auth:
        headers["Authorization"] = f"Bearer {config.broker_token}"
    elif config.uses_basic_auth:
        auth = httpx.BasicAuth(config.broker_username, config.broker_password or "")

    return httpx.AsyncClient(
        headers=headers,
        auth=auth,
        timeout=config.timeout,
        transport=transport or httpx.AsyncHTTPTransport(retries=config.broker_retries),
    )


def _segment(value: str) -> str:
    return quote(value, safe="")


class PactSource:
    """Fetches latest pacts and full consumer pact documents."""

    def __init__(self, config: ProviderConfig, client: httpx.AsyncClient):
        self.config = config
        self.client = client

    def latest_pacts_url(self, tag: Optional[str] = None) -> str:
        url = f"{self.config.broker_url}/pacts/provider/{_segment(self.config.provider)}/latest"
        if tag:
            url = f"{url}/{_segment(tag)}"
        return url

    def consumer_document_url(self, consumer: str, consumer_version: str) -> str:
        return (
            f"{self.config.broker_url}/pacts/provider/{_segment(self.config.provider)}"
            f"/consumer/{_segment(consumer)}/version/{_segment(consumer_version)}"
        )

    async def fetch_latest_pacts(self) -> FetchResult[List[PactSummary]]:
        """
        Fetch the latest pact of every consumer of the provider.

        With tags configured, the latest pact for each tag is fetched in tag
        order and duplicates are dropped, first occurrence winning.

        Returns:
            FetchResult: ``OK`` with summaries, ``EMPTY`` when the broker has
            no pacts for the provider, ``ERROR`` when a call failed. The
            url and status code are those of the last listing call made.
        """
        urls = [self.latest_pacts_url(tag) for tag in self.config.tags] or [self.latest_pacts_url()]
        summaries: List[PactSummary] = []
        seen = set()

        for url in urls:
            result = await self._get_json(url)
            if result.is_error:
                return FetchResult(
                    FetchStatus.ERROR, url=url, status_code=result.status_code, error=result.error
                )

            try:
                entries = (result.value or {}).get("_links", {}).get(PACTS_REL) or []
                listed = [PactSummary.model_validate(entry) for entry in entries]
            except (AttributeError, ValidationError) as e:
                logger.error(f"Unexpected latest pacts listing from {url}: {e}")
                return FetchResult(
                    FetchStatus.ERROR,
                    url=url,
                    status_code=result.status_code,
                    error=f"Unexpected latest pacts listing from {url}",
                )

            for summary in listed:
                if summary.href not in seen:
                    seen.add(summary.href)
                    summaries.append(summary)

        status = FetchStatus.OK if summaries else FetchStatus.EMPTY
        return FetchResult(status, value=summaries, url=result.url, status_code=result.status_code)

    async def fetch_consumer_document(
        self,
        consumer: str,
        consumer_version: str
    ) -> FetchResult[ConsumerPactDocument]:
        """Fetch the full pact between the provider and one consumer version."""
        url = self.consumer_document_url(consumer, consumer_version)
        result = await self._get_json(url)
        if result.is_error:
            return FetchResult(FetchStatus.ERROR, url=url, status_code=result.status_code, error=result.error)
        return self._to_document(result.value, url, result.status_code)

    async def load_pact_url(self, url: str) -> PactTarget:
        """
        Load a pact from a local file path or an http(s) URL.

        Raises:
            BrokerFetchError: If the pact cannot be read or parsed
        """
        if url.startswith(("http://", "https://")):
            body = (await self._get_json(url)).unwrap()
            document = self._to_document(body, url, 200).unwrap()
        else:
            try:
                body = json.loads(Path(url).read_text(encoding="utf-8"))
            except OSError as e:
                raise create_broker_error(
                    VerifierErrorCode.BROKER_PACT_NOT_FOUND, f"Cannot read pact file {url}: {e}", url=url
                ) from e
            except ValueError as e:
                raise create_broker_error(
                    VerifierErrorCode.BROKER_INVALID_BODY, f"Pact file {url} is not valid JSON", url=url
                ) from e
            document = self._to_document(body, url, None).unwrap()

        consumer = document.consumer.name if document.consumer else UNKNOWN
        try:
            version = parse_pact_href(url)["version"]
        except LinkExtractionError:
            version = UNKNOWN
        return PactTarget(consumer=consumer, version=version, document=document)

    async def iter_targets(self) -> AsyncIterator[PactTarget]:
        """
        Yield consumer pacts in broker order.

        Each consumer document is fetched only when the previous consumer
        has been handled by the caller.

        Raises:
            BrokerFetchError: If the broker listing or a document fetch failed
            LinkExtractionError: If a listed link has no version segment
        """
        if self.config.pact_urls:
            for url in self.config.pact_urls:
                yield await self.load_pact_url(url)
            return

        listing = await self.fetch_latest_pacts()
        summaries = listing.unwrap() or []
        if listing.status == FetchStatus.EMPTY:
            logger.warning(f"No pacts found for provider {self.config.provider}")

        for summary in summaries:
            version = summary.consumer_version
            document = (await self.fetch_consumer_document(summary.name, version)).unwrap()
            yield PactTarget(consumer=summary.name, version=version, document=document)

    async def _get_json(self, url: str) -> FetchResult[Any]:
        try:
            response = await self.client.get(url)
        except httpx.TransportError as e:
            raise create_transport_error(
                VerifierErrorCode.TRANSPORT_BROKER_UNREACHABLE,
                f"Pact broker request failed: {url}",
                url=url,
                cause=e,
            ) from e

        if not response.is_success:
            logger.warning(f"Pact broker returned HTTP {response.status_code} for {url}")
            return FetchResult(
                FetchStatus.ERROR,
                url=url,
                status_code=response.status_code,
                error=f"Pact broker returned HTTP {response.status_code} for {url}",
            )

        try:
            body = response.json()
        except ValueError:
            return FetchResult(
                FetchStatus.ERROR,
                url=url,
                status_code=response.status_code,
                error=f"Pact broker response from {url} is not valid JSON",
            )
        return FetchResult(FetchStatus.OK, value=body, url=url, status_code=response.status_code)

    @staticmethod
    def _to_document(
        body: Any,
        url: str,
        status_code: Optional[int]
    ) -> FetchResult[ConsumerPactDocument]:
        try:
            document = ConsumerPactDocument.model_validate(body)
        except ValidationError as e:
            return FetchResult(
                FetchStatus.ERROR,
                url=url,
                status_code=status_code if status_code is not None else 200,
                error=f"Invalid pact document from {url}: {e.error_count()} validation errors",
            )
        return FetchResult(FetchStatus.OK, value=document, url=url, status_code=status_code)
