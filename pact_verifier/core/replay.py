import json
import logging
from typing import Dict, Mapping, Optional
from urllib.parse import urlencode

import httpx

from .errors import VerifierErrorCode, create_transport_error
from .schemas import ProviderResponse, RequestSpec

logger = logging.getLogger(__name__)


def build_url(request: RequestSpec, provider_base_url: str) -> str:
    url = f"{provider_base_url}{request.path}"
    if isinstance(request.query, dict):
        query = urlencode(request.query, doseq=True)
    else:
        query = request.query
    if query:
        url = f"{url}?{query}"
    return url


def _merge_headers(recorded: Optional[Mapping[str, str]], custom: Mapping[str, str]) -> Dict[str, str]:
    """Custom provider headers replace recorded headers with the same name."""
    custom_names = {name.lower() for name in custom}
    headers = {
        name: str(value)
        for name, value in (recorded or {}).items()
        if name.lower() not in custom_names
    }
    headers.update(custom)
    return headers


class RequestReplayer:
    """Replays recorded consumer requests against the provider under test."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        provider_base_url: str,
        custom_headers: Optional[Mapping[str, str]] = None
    ):
        self.client = client
        self.provider_base_url = provider_base_url
        self.custom_headers = dict(custom_headers or {})

    def build_request(self, request: RequestSpec) -> httpx.Request:
        """
        Build the concrete HTTP request described by an interaction.

        Method, headers and body are forwarded as recorded. Structured bodies
        are sent as JSON, string bodies as-is.
        """
        headers = _merge_headers(request.headers, self.custom_headers)
        content = None
        if request.body is not None:
            if isinstance(request.body, (bytes, str)):
                content = request.body
            else:
                content = json.dumps(request.body)
                if not any(name.lower() == "content-type" for name in headers):
                    headers["Content-Type"] = "application/json"

        return self.client.build_request(
            request.method.upper(),
            build_url(request, self.provider_base_url),
            headers=headers,
            content=content,
        )

    async def replay(self, request: httpx.Request) -> ProviderResponse:
        """
        Issue a request to the provider.

        Raises:
            TransportFailureError: If the request cannot complete
        """
        try:
            response = await self.client.send(request)
        except httpx.TransportError as e:
            raise create_transport_error(
                VerifierErrorCode.TRANSPORT_PROVIDER_UNREACHABLE,
                f"Request to provider failed: {request.method} {request.url}",
                url=str(request.url),
                cause=e,
            ) from e

        logger.debug(f"{request.method} {request.url} -> {response.status_code}")
        return ProviderResponse(
            status=response.status_code,
            headers=dict(response.headers),
            text=response.text,
        )
