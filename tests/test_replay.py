import json

import httpx
import pytest

from pact_verifier.core.errors import TransportFailureError, VerifierErrorCode
from pact_verifier.core.replay import RequestReplayer, build_url
from pact_verifier.core.schemas import RequestSpec

from .fakes import PROVIDER_URL, FakeProvider


def test_build_url_concatenates_base_and_path():
    assert build_url(RequestSpec(path="/users/1"), PROVIDER_URL) == "http://provider.test/users/1"


def test_build_url_keeps_recorded_query_string():
    request = RequestSpec(path="/users", query="page=2&size=10")
    assert build_url(request, PROVIDER_URL) == "http://provider.test/users?page=2&size=10"


def test_build_url_encodes_v3_query_mapping():
    request = RequestSpec(path="/users", query={"role": ["admin", "owner"], "active": "true"})
    assert build_url(request, PROVIDER_URL) == "http://provider.test/users?role=admin&role=owner&active=true"


@pytest.mark.asyncio
async def test_request_is_forwarded_as_recorded():
    provider = FakeProvider()
    provider.respond("POST", "/users", status=201, json_body={"id": 3})
    async with httpx.AsyncClient(transport=provider.transport) as client:
        replayer = RequestReplayer(client, PROVIDER_URL)
        recorded = RequestSpec(
            method="post",
            path="/users",
            headers={"X-Consumer": "web-app"},
            body={"name": "Ada"},
        )
        actual = await replayer.replay(replayer.build_request(recorded))

    sent = provider.requests[0]
    assert sent.method == "POST"
    assert sent.headers["x-consumer"] == "web-app"
    assert sent.headers["content-type"] == "application/json"
    assert json.loads(sent.content) == {"name": "Ada"}
    assert actual.status == 201
    assert json.loads(actual.text) == {"id": 3}
    assert actual.headers["content-type"] == "application/json"


@pytest.mark.asyncio
async def test_string_body_is_sent_verbatim():
    provider = FakeProvider()
    async with httpx.AsyncClient(transport=provider.transport) as client:
        replayer = RequestReplayer(client, PROVIDER_URL)
        recorded = RequestSpec(method="PUT", path="/notes/1", headers={"Content-Type": "text/plain"}, body="hello")
        await replayer.replay(replayer.build_request(recorded))

    assert provider.requests[0].content == b"hello"
    assert provider.requests[0].headers["content-type"] == "text/plain"


@pytest.mark.asyncio
async def test_custom_headers_replace_recorded_headers():
    provider = FakeProvider()
    async with httpx.AsyncClient(transport=provider.transport) as client:
        replayer = RequestReplayer(client, PROVIDER_URL, {"Authorization": "Bearer provider-token"})
        recorded = RequestSpec(path="/users/1", headers={"authorization": "Bearer consumer-token"})
        await replayer.replay(replayer.build_request(recorded))

    assert provider.requests[0].headers.get_list("authorization") == ["Bearer provider-token"]


@pytest.mark.asyncio
async def test_unreachable_provider_raises_transport_failure():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(refuse)) as client:
        replayer = RequestReplayer(client, PROVIDER_URL)
        with pytest.raises(TransportFailureError) as exc:
            await replayer.replay(replayer.build_request(RequestSpec(path="/health")))

    assert exc.value.code == VerifierErrorCode.TRANSPORT_PROVIDER_UNREACHABLE
    assert exc.value.error_detail.url == "http://provider.test/health"
