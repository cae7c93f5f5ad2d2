"""
webhook-dns: client and server sides of the external DNS webhook protocol.
"""

from webhook_dns.client.client import WebhookClient
from webhook_dns.models.models import (
    Changes,
    DomainFilter,
    Endpoint,
    EndpointKey,
    InvalidModel,
    ProviderSpecificProperty,
    declined_keys,
)
from webhook_dns.protocol.errors import (
    DecodeFailure,
    NegotiationFailure,
    ProtocolFailure,
    ProviderError,
    ProviderFailure,
    TransportFailure,
    WebhookError,
)
from webhook_dns.protocol.negotiation import CONTENT_TYPE, MEDIA_TYPE, PROTOCOL_VERSION
from webhook_dns.provider.memory import InMemoryProvider
from webhook_dns.provider.provider import Provider
from webhook_dns.server.dispatcher import (
    WebhookDispatcher,
    WebhookRequest,
    WebhookResponse,
)
from webhook_dns.server.server import WebhookServer

__version__ = "0.1.0"

__all__ = [
    "CONTENT_TYPE",
    "MEDIA_TYPE",
    "PROTOCOL_VERSION",
    "Changes",
    "DecodeFailure",
    "DomainFilter",
    "Endpoint",
    "EndpointKey",
    "InMemoryProvider",
    "InvalidModel",
    "NegotiationFailure",
    "ProtocolFailure",
    "Provider",
    "ProviderError",
    "ProviderFailure",
    "ProviderSpecificProperty",
    "TransportFailure",
    "WebhookClient",
    "WebhookDispatcher",
    "WebhookError",
    "WebhookRequest",
    "WebhookResponse",
    "WebhookServer",
    "declined_keys",
]
