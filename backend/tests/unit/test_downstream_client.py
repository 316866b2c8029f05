"""
Unit tests for DownstreamClient.

Covers:
- Endpoint selection per event variant
- x-api-key header and JSON body
- Non-2xx and transport failures raise DownstreamError
"""

import json

import httpx
import pytest

from adapters.downstream import DownstreamClient, DownstreamError
from core.domain.events import CommentEvent, ComplianceEvent, MessageEvent, ReadEvent

BASE_URL = "http://downstream.test/api/webhooks/instagram/"


class Recorder:
    def __init__(self, status_code: int = 200):
        self.status_code = status_code
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json={"ok": True})


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
async def downstream(recorder):
    async with httpx.AsyncClient(transport=httpx.MockTransport(recorder)) as client:
        yield DownstreamClient(client, BASE_URL, api_key="internal-key")


@pytest.mark.parametrize(
    "event,path",
    [
        (MessageEvent(account_id="a", text="hi"), "/messages"),
        (CommentEvent(account_id="a", comment_id="c1"), "/comments"),
        (ReadEvent(account_id="a"), "/events"),
        (ComplianceEvent(action="deauthorize", user_id="u1"), "/events"),
    ],
)
async def test_endpoint_per_event(downstream, recorder, event, path):
    await downstream.deliver(event)

    (request,) = recorder.requests
    assert str(request.url) == f"http://downstream.test/api/webhooks/instagram{path}"
    assert request.method == "POST"


async def test_api_key_and_body(downstream, recorder):
    event = MessageEvent(account_id="acct", sender_id="user-1", text="hello")

    await downstream.deliver(event)

    request = recorder.requests[0]
    assert request.headers["x-api-key"] == "internal-key"
    body = json.loads(request.content)
    assert body["instagram_account_id"] == "acct"
    assert body["sender_id"] == "user-1"
    assert body["message"]["text"] == "hello"


async def test_compliance_payload_tag(downstream, recorder):
    await downstream.deliver(ComplianceEvent(action="data_deletion", user_id="u1", confirmation_code="abc"))

    body = json.loads(recorder.requests[0].content)
    assert body["event_type"] == "data_deletion"
    assert body["data"] == {"user_id": "u1", "confirmation_code": "abc"}


async def test_no_api_key_header_when_unset(recorder):
    async with httpx.AsyncClient(transport=httpx.MockTransport(recorder)) as client:
        downstream = DownstreamClient(client, BASE_URL)
        await downstream.deliver(ReadEvent(account_id="a"))

    assert "x-api-key" not in recorder.requests[0].headers


async def test_non_2xx_raises(recorder, downstream):
    recorder.status_code = 503

    with pytest.raises(DownstreamError) as exc_info:
        await downstream.deliver(ReadEvent(account_id="a"))

    assert exc_info.value.status_code == 503


async def test_transport_error_raises():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        downstream = DownstreamClient(client, BASE_URL, api_key="k")
        with pytest.raises(DownstreamError, match="ReadTimeout"):
            await downstream.deliver(ReadEvent(account_id="a"))
