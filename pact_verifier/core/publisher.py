import logging
from typing import Any, Dict, Optional

import httpx

from .errors import VerifierErrorCode, create_transport_error
from .links import publish_results_url
from .schemas import ConsumerPactDocument, PublishResult

logger = logging.getLogger(__name__)


class ResultPublisher:
    """Posts per-consumer verification results back to the Pact broker."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        broker_url: Optional[str],
        provider_version: str,
        build_url: Optional[str] = None
    ):
        self.client = client
        self.broker_url = broker_url
        self.provider_version = provider_version
        self.build_url = build_url

    def payload(self, success: bool) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "success": success,
            "providerApplicationVersion": self.provider_version,
        }
        if self.build_url:
            payload["buildUrl"] = self.build_url
        return payload

    async def publish(self, document: ConsumerPactDocument, success: bool) -> Optional[PublishResult]:
        """
        Publish the verification result of one consumer pact.

        Args:
            document: Consumer pact document carrying the publish link
            success: False if any interaction of the consumer failed

        Returns:
            PublishResult, or None when the document has no publish link

        Raises:
            LinkExtractionError: If the publish link is malformed
            TransportFailureError: If the broker cannot be reached
        """
        href = document.publish_href
        if not href:
            logger.warning("Pact document has no publish verification results link, skipping publish")
            return None

        url = publish_results_url(self.broker_url, href)
        try:
            response = await self.client.post(url, json=self.payload(success))
        except httpx.TransportError as e:
            raise create_transport_error(
                VerifierErrorCode.PUBLISH_REQUEST_FAILED,
                f"Publishing verification results failed: {url}",
                url=url,
                cause=e,
            ) from e

        result = PublishResult(url=url, status_code=response.status_code)
        if result.ok:
            logger.info(f"Published verification results: HTTP {response.status_code}")
        else:
            logger.warning(f"Publishing verification results to {url} returned HTTP {response.status_code}")
        return result
