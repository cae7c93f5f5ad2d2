"""
Webhook client module.

This module is used by the orchestrator side to talk to a webhook provider. Every
call is a single attempt: failures are raised as typed errors and retry policy is
left to the caller.
"""

import logging
import time
from typing import Any, Callable, List, Optional, Sequence, Tuple, TypeVar

import httpx

from webhook_dns.models.codec import (
    decode_domain_filter,
    decode_endpoints,
    decode_error,
    dumps,
    encode_changes,
    encode_endpoints,
)
from webhook_dns.models.models import Changes, DomainFilter, Endpoint
from webhook_dns.protocol.errors import (
    DecodeFailure,
    NegotiationFailure,
    ProtocolFailure,
    ProviderFailure,
    TransportFailure,
)
from webhook_dns.protocol.negotiation import (
    PROTOCOL_VERSION,
    check_version,
    media_type,
    parse_version,
)

T = TypeVar("T")


class WebhookClient:
    """
    Client for HTTP services implementing the webhook protocol.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        refresh_interval: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        version: int = PROTOCOL_VERSION,
    ):
        """
        Initialize a WebhookClient.

        Args:
            base_url: Prefix of the API endpoints. If records live at
                http://localhost:8888/external-dns/records, this is
                http://localhost:8888/external-dns
            timeout: Per-request timeout in seconds
            refresh_interval: Seconds after which domain_filter() probes again;
                the cached filter is kept until invalidate() when None
            transport: Custom httpx transport, e.g. httpx.MockTransport in tests
            version: Protocol version this client speaks
        """
        self.base_url = base_url
        self.refresh_interval = refresh_interval
        self.version = version
        self.content_type = media_type(version)
        self.negotiated_version: Optional[int] = None
        self.logger = logging.getLogger("webhook-dns.client")
        self._http = httpx.AsyncClient(
            base_url=base_url, timeout=timeout, transport=transport
        )
        self._domain_filter: Optional[DomainFilter] = None
        self._probed_at: Optional[float] = None

    @classmethod
    def from_config(cls, config, **kwargs) -> "WebhookClient":
        """
        Build a client from the client section of a Config.

        Args:
            config: Loaded Config
            **kwargs: Extra arguments, e.g. transport

        Returns:
            WebhookClient: Configured client
        """
        refresh_interval = None
        if config.client_refresh_interval:
            refresh_interval = config.parse_duration(config.client_refresh_interval)
        return cls(
            config.client_url,
            timeout=config.parse_duration(config.client_timeout),
            refresh_interval=refresh_interval,
            **kwargs,
        )

    async def negotiate(self) -> DomainFilter:
        """
        Run the capability probe and cache the announced domain filter.

        Returns:
            DomainFilter: Domains managed by the provider

        Raises:
            NegotiationFailure: If the server speaks another protocol version
        """
        response = await self._request("GET", "/")
        self.negotiated_version = self._check_marker(response)
        domain_filter = self._decode(response, decode_domain_filter)

        self._domain_filter = domain_filter
        self._probed_at = time.monotonic()
        self.logger.debug(
            f"Negotiated protocol version {self.negotiated_version} with {self.base_url}"
        )
        return domain_filter

    async def domain_filter(self) -> DomainFilter:
        """
        Return the cached domain filter, probing only when it is missing or stale.

        Returns:
            DomainFilter: Domains managed by the provider
        """
        if self._domain_filter is None or self._is_stale():
            return await self.negotiate()
        return self._domain_filter

    def invalidate(self) -> None:
        """
        Drop the cached domain filter so the next domain_filter() call probes again.
        """
        self._domain_filter = None
        self._probed_at = None

    async def records(self) -> List[Endpoint]:
        """
        Get all records.

        Returns:
            List[Endpoint]: Records reported by the provider
        """
        response = await self._request("GET", "/records")
        self._check_marker(response)
        return self._decode(response, decode_endpoints)

    async def adjust_endpoints(self, endpoints: Sequence[Endpoint]) -> List[Endpoint]:
        """
        Let the provider adjust endpoints before they are created or updated.

        Endpoints missing from the result are records the provider declines to
        manage; see declined_keys() and Changes.without().

        Args:
            endpoints: Candidate endpoints

        Returns:
            List[Endpoint]: Adjusted endpoints
        """
        response = await self._request(
            "POST", "/adjustendpoints", encode_endpoints(endpoints)
        )
        self._check_marker(response)
        return self._decode(response, decode_endpoints)

    async def apply_changes(self, changes: Changes) -> None:
        """
        Apply the given changes.

        Args:
            changes: Changes to apply

        Raises:
            ProviderFailure: If the provider could not apply the batch
        """
        response = await self._request("POST", "/records", encode_changes(changes))
        if response.status_code != 204:
            self._check_marker(response)

    async def healthz(self) -> str:
        """
        Check health of the webhook service.

        Returns:
            str: Status text, "ok" when healthy
        """
        response = await self._request("GET", "/healthz", negotiated=False)
        return response.text

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    def _is_stale(self) -> bool:
        if self.refresh_interval is None or self._probed_at is None:
            return False
        return time.monotonic() - self._probed_at >= self.refresh_interval

    async def _request(
        self, method: str, path: str, body: Any = None, negotiated: bool = True
    ) -> httpx.Response:
        headers = {}
        if negotiated:
            headers["Accept"] = self.content_type
        content = None
        if body is not None:
            content = dumps(body)
            headers["Content-Type"] = self.content_type

        self.logger.debug(f"{method} {path}")
        try:
            response = await self._http.request(
                method, path, content=content, headers=headers
            )
        except httpx.RequestError as e:
            self.logger.debug(f"{method} {path} failed in transport: {e!r}")
            raise TransportFailure(f"{method} {path}: {e}") from e

        if not response.is_success:
            raise self._failure_for(response)
        return response

    def _failure_for(self, response: httpx.Response) -> ProtocolFailure:
        status = response.status_code
        reason, field_name = _error_details(response)

        if status == 406:
            return NegotiationFailure(reason, status=status)
        if status == 400:
            return DecodeFailure(reason, field=field_name, status=status)
        if status == 500:
            return ProviderFailure(reason, status=status)
        return ProtocolFailure(f"unexpected status {status}: {reason}", status=status)

    def _check_marker(self, response: httpx.Response) -> int:
        try:
            version = parse_version(response.headers.get("content-type"))
            return check_version(version, self.version)
        except NegotiationFailure as e:
            raise NegotiationFailure(
                f"server response: {e}", status=response.status_code
            ) from e

    def _decode(self, response: httpx.Response, decoder: Callable[[bytes], T]) -> T:
        try:
            return decoder(response.content)
        except DecodeFailure as e:
            self.logger.error(
                f"Failed to decode response from {response.request.url}: {e}"
            )
            raise DecodeFailure(
                f"invalid response body: {e.args[0]}",
                field=e.field,
                status=response.status_code,
            ) from e


def _error_details(response: httpx.Response) -> Tuple[str, Optional[str]]:
    """
    Extract the reason and offending field from an error response.

    Bodies that are not the JSON error object are returned verbatim as the reason.
    """
    try:
        error = decode_error(response.content)
    except DecodeFailure:
        return response.text or response.reason_phrase, None
    return error.reason, error.field
