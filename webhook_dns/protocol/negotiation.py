"""
Version negotiation for the webhook protocol.

The version marker travels as the `version` parameter of the protocol media type,
for example `application/external.dns.webhook+json;version=1`. There is a single
integer version and no minor-version negotiation.
"""

from typing import Mapping, Optional

from webhook_dns.protocol.errors import NegotiationFailure

MEDIA_TYPE = "application/external.dns.webhook+json"
PROTOCOL_VERSION = 1


def media_type(version: int = PROTOCOL_VERSION) -> str:
    return f"{MEDIA_TYPE};version={version}"


CONTENT_TYPE = media_type()


def parse_version(header_value: Optional[str]) -> Optional[int]:
    """
    Extract the protocol version from a single media type value.

    Args:
        header_value: Value such as "application/external.dns.webhook+json;version=1"

    Returns:
        Optional[int]: The version, or None if the value is not the protocol media
        type or carries no version parameter

    Raises:
        NegotiationFailure: If the media type matches but the version is not an integer
    """
    if not header_value:
        return None

    parts = [part.strip() for part in header_value.split(";")]
    if parts[0].lower() != MEDIA_TYPE:
        return None

    for param in parts[1:]:
        name, _, value = param.partition("=")
        if name.strip().lower() != "version":
            continue
        value = value.strip().strip('"')
        try:
            return int(value, 10)
        except ValueError:
            raise NegotiationFailure(f"invalid protocol version {value!r}")
    return None


def find_version(headers: Mapping[str, str]) -> Optional[int]:
    """
    Locate the version marker on a request.

    A Content-Type carrying the protocol media type wins. Otherwise any Accept entry
    carrying it is used.

    Args:
        headers: Request headers with lower-case names

    Returns:
        Optional[int]: The marked version, or None if no marker is present
    """
    version = parse_version(headers.get("content-type"))
    if version is not None:
        return version

    accept = headers.get("accept")
    if not accept:
        return None
    for entry in accept.split(","):
        version = parse_version(entry)
        if version is not None:
            return version
    return None


def check_version(version: Optional[int], supported: int = PROTOCOL_VERSION) -> int:
    """
    Validate a version marker against the supported version.

    Args:
        version: Version taken from a header, or None when absent
        supported: Version this side speaks

    Returns:
        int: The accepted version

    Raises:
        NegotiationFailure: If the marker is absent or names another version
    """
    if version is None:
        raise NegotiationFailure(
            f"missing protocol version marker, expected {media_type(supported)}"
        )
    if version != supported:
        raise NegotiationFailure(
            f"unsupported protocol version {version}, this side supports {supported}"
        )
    return version


def negotiate(headers: Mapping[str, str], supported: int = PROTOCOL_VERSION) -> int:
    """
    Check the version marker on a request.

    Args:
        headers: Request headers with lower-case names
        supported: Version this side speaks

    Returns:
        int: The negotiated version

    Raises:
        NegotiationFailure: If the marker is missing, malformed or mismatched
    """
    return check_version(find_version(headers), supported)
