"""
Error taxonomy for the webhook protocol.

Callers apply different retry policies to each category: a TransportFailure never
reached the server, a ProtocolFailure was rejected by it.
"""

from typing import Optional


class WebhookError(Exception):
    """Base class for every failure surfaced by the protocol layer."""


class TransportFailure(WebhookError):
    """
    Connection-level failure: refused connections, timeouts, truncated bodies.
    """


class ProtocolFailure(WebhookError):
    """
    The server was reached but the exchange did not succeed.

    Raised as-is for responses the protocol does not define (unknown path,
    unexpected status).
    """

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class NegotiationFailure(ProtocolFailure):
    """Missing or incompatible version marker. Not retriable without a code change."""

    def __init__(self, message: str, status: Optional[int] = 406):
        super().__init__(message, status)


class DecodeFailure(ProtocolFailure):
    """
    Malformed or schema-violating body.

    Attributes:
        field: Location of the offending value, e.g. "create[0].dnsName"
    """

    def __init__(
        self, message: str, field: Optional[str] = None, status: Optional[int] = 400
    ):
        super().__init__(message, status)
        self.field = field

    def __str__(self):
        message = super().__str__()
        if self.field:
            return f"{message} (field: {self.field})"
        return message


class ProviderFailure(ProtocolFailure):
    """The provider backend failed; reason is the provider's message, verbatim."""

    def __init__(self, reason: str, status: Optional[int] = 500):
        super().__init__(reason, status)
        self.reason = reason


class ProviderError(Exception):
    """
    Raised by provider implementations when the backing store operation fails.

    The reason is sent to the client unchanged, so it must not carry secrets.
    """

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason
