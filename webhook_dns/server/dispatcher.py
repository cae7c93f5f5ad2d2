"""
Server dispatcher module.

This module binds webhook requests to a Provider. Each request runs through
negotiation, dispatch to the provider and serialization of the response. No state
survives between requests.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from webhook_dns.models.codec import (
    decode_changes,
    decode_endpoints,
    dumps,
    encode_domain_filter,
    encode_endpoints,
)
from webhook_dns.models.models import DomainFilter
from webhook_dns.protocol.errors import DecodeFailure, NegotiationFailure, ProviderError
from webhook_dns.protocol.negotiation import (
    CONTENT_TYPE,
    PROTOCOL_VERSION,
    check_version,
    find_version,
    media_type,
    negotiate,
    parse_version,
)
from webhook_dns.provider.provider import Provider

UNEXPECTED_PROVIDER_ERROR = "unexpected provider error"


@dataclass(frozen=True)
class WebhookRequest:
    """
    A request as delivered by the transport: method, path, headers and raw body.
    """

    method: str
    path: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""

    def __post_init__(self):
        object.__setattr__(self, "method", self.method.upper())
        object.__setattr__(
            self,
            "headers",
            {name.lower(): value for name, value in dict(self.headers).items()},
        )


@dataclass(frozen=True)
class WebhookResponse:
    """
    A response handed back to the transport.
    """

    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @classmethod
    def json(
        cls, status: int, value: Any, content_type: str = CONTENT_TYPE
    ) -> "WebhookResponse":
        return cls(status, {"Content-Type": content_type}, dumps(value))

    @classmethod
    def error(
        cls,
        status: int,
        kind: str,
        reason: str,
        field_name: Optional[str] = None,
        content_type: str = CONTENT_TYPE,
    ) -> "WebhookResponse":
        body = {"error": kind, "reason": reason}
        if field_name:
            body["field"] = field_name
        return cls.json(status, body, content_type)


class WebhookDispatcher:
    """
    Routes webhook requests to a provider.
    """

    def __init__(
        self,
        provider: Provider,
        domain_filter: Optional[DomainFilter] = None,
        version: int = PROTOCOL_VERSION,
    ):
        """
        Initialize a WebhookDispatcher.

        Args:
            provider: Provider serving the records
            domain_filter: Domains announced in the capability probe
            version: Protocol version this server speaks
        """
        self.provider = provider
        self.domain_filter = domain_filter or DomainFilter()
        self.version = version
        self.content_type = media_type(version)
        self.logger = logging.getLogger("webhook-dns.dispatcher")
        self._routes = {
            "/": {"GET": self._probe},
            "/records": {"GET": self._list_records, "POST": self._apply_changes},
            "/adjustendpoints": {"POST": self._adjust_endpoints},
            "/healthz": {"GET": self._healthz},
        }

    async def dispatch(self, request: WebhookRequest) -> WebhookResponse:
        """
        Handle one request.

        Never raises: every failure is turned into an error response.

        Args:
            request: Incoming request

        Returns:
            WebhookResponse: Response to send back
        """
        path = request.path.split("?", 1)[0]
        if len(path) > 1:
            path = path.rstrip("/")

        methods = self._routes.get(path)
        if methods is None:
            self.logger.debug(f"No route for {request.method} {request.path}")
            return self._error(404, "not_found", f"no route for {path}")
        handler = methods.get(request.method)
        if handler is None:
            return self._error(
                405,
                "method_not_allowed",
                f"{request.method} not allowed on {path}",
            )

        self.logger.debug(f"Dispatching {request.method} {path}")
        try:
            return await handler(request)
        except NegotiationFailure as e:
            self.logger.warning(
                f"Rejected {request.method} {path}: negotiation failed: {e}"
            )
            return self._error(406, "negotiation_failure", str(e))
        except DecodeFailure as e:
            self.logger.warning(f"Rejected {request.method} {path}: {e}")
            return self._error(
                400, "decode_failure", e.args[0], field_name=e.field
            )
        except ProviderError as e:
            self.logger.error(f"Provider failed on {request.method} {path}: {e.reason}")
            return self._error(500, "provider_failure", e.reason)
        except Exception:
            self.logger.exception(
                f"Unexpected error from provider on {request.method} {path}"
            )
            return self._error(
                500, "provider_failure", UNEXPECTED_PROVIDER_ERROR
            )

    async def _probe(self, request: WebhookRequest) -> WebhookResponse:
        # Marker is optional on the probe
        version = find_version(request.headers)
        if version is not None:
            check_version(version, self.version)
        return self._json(200, encode_domain_filter(self.domain_filter))

    async def _list_records(self, request: WebhookRequest) -> WebhookResponse:
        negotiate(request.headers, self.version)
        records = await self.provider.list_records()
        self.logger.debug(f"Listing {len(records)} records")
        return self._json(200, encode_endpoints(records))

    async def _adjust_endpoints(self, request: WebhookRequest) -> WebhookResponse:
        self._negotiate_body(request)
        candidates = decode_endpoints(request.body)
        adjusted = await self.provider.adjust_endpoints(candidates)

        seen = set()
        for endpoint in adjusted:
            if endpoint.key in seen:
                raise ProviderError(
                    f"adjusted endpoints contain {endpoint.id} more than once"
                )
            seen.add(endpoint.key)

        declined = len({ep.key for ep in candidates} - seen)
        if declined:
            self.logger.debug(f"Provider declined {declined} of {len(candidates)} endpoints")
        return self._json(200, encode_endpoints(adjusted))

    async def _apply_changes(self, request: WebhookRequest) -> WebhookResponse:
        self._negotiate_body(request)
        changes = decode_changes(request.body)
        await self.provider.apply_changes(changes)
        return WebhookResponse(204, {"Content-Type": self.content_type})

    async def _healthz(self, request: WebhookRequest) -> WebhookResponse:
        healthz = getattr(self.provider, "healthz", None)
        status = "ok"
        if healthz is not None:
            try:
                status = await healthz()
            except Exception as e:
                self.logger.error(f"Health check failed: {e}")
                return WebhookResponse(
                    500, {"Content-Type": "text/plain"}, str(e).encode("utf-8")
                )
        return WebhookResponse(
            200, {"Content-Type": "text/plain"}, str(status).encode("utf-8")
        )

    def _negotiate_body(self, request: WebhookRequest) -> None:
        # Requests with a body must mark the version on Content-Type itself
        version = parse_version(request.headers.get("content-type"))
        if version is None:
            raise NegotiationFailure(
                f"requests with a body must set Content-Type: {self.content_type}"
            )
        check_version(version, self.version)

    def _json(self, status: int, value: Any) -> WebhookResponse:
        return WebhookResponse.json(status, value, self.content_type)

    def _error(
        self, status: int, kind: str, reason: str, field_name: Optional[str] = None
    ) -> WebhookResponse:
        return WebhookResponse.error(
            status, kind, reason, field_name=field_name, content_type=self.content_type
        )
