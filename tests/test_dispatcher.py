"""Tests for the server dispatcher."""

import asyncio
import json

import pytest

from conftest import FailingProvider, RecordingProvider, make_endpoint
from webhook_dns.models.codec import dumps, encode_changes, encode_endpoint
from webhook_dns.models.models import Changes, DomainFilter
from webhook_dns.protocol.negotiation import CONTENT_TYPE, media_type
from webhook_dns.server.dispatcher import (
    UNEXPECTED_PROVIDER_ERROR,
    WebhookDispatcher,
    WebhookRequest,
)

MARKED = {"Content-Type": CONTENT_TYPE}


def dispatch(dispatcher, method, path, headers=None, body=b""):
    return asyncio.run(
        dispatcher.dispatch(WebhookRequest(method, path, headers or {}, body))
    )


def error_body(response):
    assert response.headers["Content-Type"] == CONTENT_TYPE
    return json.loads(response.body)


class TestProbe:
    def test_returns_domain_filter_and_version(self, recording_provider) -> None:
        dispatcher = WebhookDispatcher(
            recording_provider, DomainFilter(include=["example.com"])
        )

        response = dispatch(dispatcher, "GET", "/")

        assert response.status == 200
        assert response.headers["Content-Type"] == CONTENT_TYPE
        assert json.loads(response.body) == {"include": ["example.com"], "exclude": []}
        assert recording_provider.calls == []

    def test_mismatched_marker_rejected(self, recording_provider) -> None:
        dispatcher = WebhookDispatcher(recording_provider)

        response = dispatch(dispatcher, "GET", "/", {"Accept": media_type(2)})

        assert response.status == 406
        assert error_body(response)["error"] == "negotiation_failure"

    def test_mismatched_accept_behind_generic_content_type(
        self, recording_provider
    ) -> None:
        dispatcher = WebhookDispatcher(recording_provider)
        headers = {"Content-Type": "application/json", "Accept": media_type(2)}

        response = dispatch(dispatcher, "GET", "/", headers)

        assert response.status == 406


class TestNegotiation:
    @pytest.mark.parametrize(
        "method, path, headers, body",
        [
            ("GET", "/records", {}, b""),
            ("GET", "/records", {"Accept": media_type(2)}, b""),
            ("POST", "/records", {"Content-Type": "application/json"}, b"{}"),
            ("POST", "/records", {"Accept": CONTENT_TYPE}, b"{}"),
            (
                "POST",
                "/records",
                {"Content-Type": "application/json", "Accept": CONTENT_TYPE},
                b"{}",
            ),
            ("POST", "/adjustendpoints", {"Content-Type": media_type(2)}, b"[]"),
            ("POST", "/adjustendpoints", {}, b"not json"),
        ],
    )
    def test_provider_never_reached(self, method, path, headers, body) -> None:
        provider = RecordingProvider()
        dispatcher = WebhookDispatcher(provider)

        response = dispatch(dispatcher, method, path, headers, body)

        assert response.status == 406
        assert error_body(response)["error"] == "negotiation_failure"
        assert provider.calls == []

    def test_accept_marker_is_enough_without_body(self, recording_provider) -> None:
        dispatcher = WebhookDispatcher(recording_provider)

        response = dispatch(dispatcher, "GET", "/records", {"Accept": CONTENT_TYPE})

        assert response.status == 200
        assert json.loads(response.body) == []

    def test_generic_content_type_does_not_hide_accept_marker(
        self, recording_provider
    ) -> None:
        dispatcher = WebhookDispatcher(recording_provider)
        headers = {"Content-Type": "application/json", "Accept": CONTENT_TYPE}

        response = dispatch(dispatcher, "GET", "/records", headers)

        assert response.status == 200


class TestRecords:
    def test_list_records(self) -> None:
        provider = RecordingProvider([make_endpoint(record_ttl=60)])
        dispatcher = WebhookDispatcher(provider)

        response = dispatch(dispatcher, "GET", "/records", MARKED)

        assert response.status == 200
        assert json.loads(response.body) == [encode_endpoint(make_endpoint(record_ttl=60))]

    def test_trailing_slash_and_query_are_ignored(self, recording_provider) -> None:
        dispatcher = WebhookDispatcher(recording_provider)

        assert dispatch(dispatcher, "GET", "/records/", MARKED).status == 200
        assert dispatch(dispatcher, "GET", "/records?zone=example.com", MARKED).status == 200

    def test_apply_changes(self, recording_provider) -> None:
        dispatcher = WebhookDispatcher(recording_provider)
        body = dumps(encode_changes(Changes(create=[make_endpoint()])))

        response = dispatch(dispatcher, "POST", "/records", MARKED, body)

        assert response.status == 204
        assert response.body == b""
        assert response.headers["Content-Type"] == CONTENT_TYPE
        assert recording_provider.calls == ["apply_changes"]

    @pytest.mark.parametrize(
        "body, field",
        [
            (b"", None),
            (b"{not json", None),
            (b"[]", "changes"),
            (
                json.dumps(
                    {"updateOld": [encode_endpoint(make_endpoint())], "updateNew": []}
                ).encode(),
                "updateNew",
            ),
            (
                json.dumps({"create": [{"dnsName": "a.example.com"}]}).encode(),
                "create[0].recordType",
            ),
        ],
    )
    def test_malformed_changes_rejected(self, recording_provider, body, field) -> None:
        dispatcher = WebhookDispatcher(recording_provider)

        response = dispatch(dispatcher, "POST", "/records", MARKED, body)

        assert response.status == 400
        data = error_body(response)
        assert data["error"] == "decode_failure"
        assert data.get("field") == field
        assert recording_provider.calls == []

    def test_duplicate_identity_rejected(self, recording_provider) -> None:
        dispatcher = WebhookDispatcher(recording_provider)
        endpoint = encode_endpoint(make_endpoint())
        body = json.dumps({"create": [endpoint], "delete": [endpoint]}).encode()

        response = dispatch(dispatcher, "POST", "/records", MARKED, body)

        assert response.status == 400
        assert recording_provider.calls == []


class TestProviderFailures:
    def test_reason_preserved_verbatim(self) -> None:
        dispatcher = WebhookDispatcher(FailingProvider("zone example.com: rate limited"))

        response = dispatch(
            dispatcher, "POST", "/records", MARKED, dumps(encode_changes(Changes()))
        )

        assert response.status == 500
        assert error_body(response) == {
            "error": "provider_failure",
            "reason": "zone example.com: rate limited",
        }

    def test_unexpected_exception_hides_details(self) -> None:
        class BrokenProvider(RecordingProvider):
            async def list_records(self):
                raise RuntimeError("token=secret")

        dispatcher = WebhookDispatcher(BrokenProvider())

        response = dispatch(dispatcher, "GET", "/records", MARKED)

        assert response.status == 500
        assert error_body(response)["reason"] == UNEXPECTED_PROVIDER_ERROR

    def test_duplicate_adjusted_endpoints_rejected(self) -> None:
        class DuplicatingProvider(RecordingProvider):
            async def adjust_endpoints(self, endpoints):
                return list(endpoints) * 2

        dispatcher = WebhookDispatcher(DuplicatingProvider())
        body = dumps([encode_endpoint(make_endpoint())])

        response = dispatch(dispatcher, "POST", "/adjustendpoints", MARKED, body)

        assert response.status == 500
        assert "more than once" in error_body(response)["reason"]


class TestAdjustEndpoints:
    def test_adjusted_endpoints_returned(self) -> None:
        class TtlProvider(RecordingProvider):
            async def adjust_endpoints(self, endpoints):
                return [ep.with_changes(record_ttl=300) for ep in endpoints]

        dispatcher = WebhookDispatcher(TtlProvider())
        body = dumps([encode_endpoint(make_endpoint())])

        response = dispatch(dispatcher, "POST", "/adjustendpoints", MARKED, body)

        assert response.status == 200
        assert json.loads(response.body)[0]["recordTTL"] == 300

    def test_body_must_be_a_list(self, recording_provider) -> None:
        dispatcher = WebhookDispatcher(recording_provider)

        response = dispatch(dispatcher, "POST", "/adjustendpoints", MARKED, b"{}")

        assert response.status == 400
        assert recording_provider.calls == []

    def test_deeply_nested_body_is_decode_failure(self, recording_provider) -> None:
        dispatcher = WebhookDispatcher(recording_provider)
        body = b"[" * 200000 + b"]" * 200000

        response = dispatch(dispatcher, "POST", "/adjustendpoints", MARKED, body)

        assert response.status == 400
        assert error_body(response)["error"] == "decode_failure"
        assert recording_provider.calls == []


class TestRouting:
    def test_unknown_path(self, recording_provider) -> None:
        response = dispatch(WebhookDispatcher(recording_provider), "GET", "/zones", MARKED)
        assert response.status == 404

    def test_wrong_method(self, recording_provider) -> None:
        response = dispatch(
            WebhookDispatcher(recording_provider), "DELETE", "/records", MARKED
        )
        assert response.status == 405


class TestHealthz:
    def test_provider_without_healthz_is_healthy(self, recording_provider) -> None:
        response = dispatch(WebhookDispatcher(recording_provider), "GET", "/healthz")
        assert response.status == 200
        assert response.body == b"ok"

    def test_failing_healthz(self) -> None:
        class UnhealthyProvider(RecordingProvider):
            async def healthz(self):
                raise ConnectionError("backend unreachable")

        response = dispatch(WebhookDispatcher(UnhealthyProvider()), "GET", "/healthz")

        assert response.status == 500
        assert response.body == b"backend unreachable"


def test_requests_are_handled_concurrently() -> None:
    """A slow list_records must not block adjust_endpoints."""

    class SlowProvider(RecordingProvider):
        def __init__(self):
            super().__init__()
            self.adjusted = asyncio.Event()

        async def list_records(self):
            await self.adjusted.wait()
            return []

        async def adjust_endpoints(self, endpoints):
            self.adjusted.set()
            return list(endpoints)

    async def scenario():
        dispatcher = WebhookDispatcher(SlowProvider())
        listing = dispatcher.dispatch(WebhookRequest("GET", "/records", MARKED))
        adjusting = dispatcher.dispatch(
            WebhookRequest("POST", "/adjustendpoints", MARKED, b"[]")
        )
        return await asyncio.wait_for(asyncio.gather(listing, adjusting), timeout=5)

    listed, adjusted = asyncio.run(scenario())

    assert listed.status == 200
    assert adjusted.status == 200
