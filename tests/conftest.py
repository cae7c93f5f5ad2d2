"""Shared pytest fixtures and test helpers for webhook-dns tests."""

from typing import List, Optional

import httpx
import pytest

from webhook_dns.client.client import WebhookClient
from webhook_dns.models.models import Changes, Endpoint
from webhook_dns.protocol.errors import ProviderError
from webhook_dns.provider.memory import InMemoryProvider
from webhook_dns.server.dispatcher import WebhookDispatcher, WebhookRequest

BASE_URL = "http://webhook.test"


class RecordingProvider:
    """Provider stub that records every call it receives."""

    def __init__(self, records: Optional[List[Endpoint]] = None):
        self.records = list(records or [])
        self.calls = []

    async def list_records(self):
        self.calls.append("list_records")
        return list(self.records)

    async def adjust_endpoints(self, endpoints):
        self.calls.append("adjust_endpoints")
        return list(endpoints)

    async def apply_changes(self, changes: Changes):
        self.calls.append("apply_changes")


class FailingProvider(RecordingProvider):
    """Provider stub whose every operation fails with the same reason."""

    def __init__(self, reason: str = "upstream API quota exceeded"):
        super().__init__()
        self.reason = reason

    async def list_records(self):
        self.calls.append("list_records")
        raise ProviderError(self.reason)

    async def adjust_endpoints(self, endpoints):
        self.calls.append("adjust_endpoints")
        raise ProviderError(self.reason)

    async def apply_changes(self, changes: Changes):
        self.calls.append("apply_changes")
        raise ProviderError(self.reason)


def dispatcher_transport(dispatcher: WebhookDispatcher) -> httpx.MockTransport:
    """Route httpx requests straight into a dispatcher, without sockets."""

    async def handler(request: httpx.Request) -> httpx.Response:
        response = await dispatcher.dispatch(
            WebhookRequest(
                method=request.method,
                path=request.url.path,
                headers=dict(request.headers),
                body=request.content,
            )
        )
        return httpx.Response(
            response.status, headers=response.headers, content=response.body
        )

    return httpx.MockTransport(handler)


def make_endpoint(dns_name: str = "a.example.com", record_type: str = "A", **kwargs):
    kwargs.setdefault("targets", ("1.2.3.4",))
    return Endpoint(dns_name=dns_name, record_type=record_type, **kwargs)


@pytest.fixture
def recording_provider() -> RecordingProvider:
    return RecordingProvider()


@pytest.fixture
def memory_provider() -> InMemoryProvider:
    return InMemoryProvider()


@pytest.fixture
def client_for():
    """Build a WebhookClient wired to a dispatcher in-process."""

    def build(dispatcher: WebhookDispatcher, **kwargs) -> WebhookClient:
        return WebhookClient(
            BASE_URL, transport=dispatcher_transport(dispatcher), **kwargs
        )

    return build
