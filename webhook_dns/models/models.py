"""
Data models for the webhook protocol.

All types here are immutable value objects: they are built per request, validated
on construction and never mutated afterwards.
"""

import re
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Iterable, List, Mapping, Optional, Set, Tuple

# (dnsName, recordType, setIdentifier)
EndpointKey = Tuple[str, str, Optional[str]]


class InvalidModel(ValueError):
    """
    Raised when a model is constructed with values that break its invariants.
    """

    def __init__(self, message: str, field_name: Optional[str] = None):
        super().__init__(message)
        self.field = field_name


@dataclass(frozen=True)
class ProviderSpecificProperty:
    """
    A provider-private name/value pair attached to an endpoint.
    """

    name: str
    value: str

    def __post_init__(self):
        if not isinstance(self.name, str) or not isinstance(self.value, str):
            raise InvalidModel(
                "provider specific name and value must be strings", "providerSpecific"
            )


@dataclass(frozen=True)
class Endpoint:
    """
    Represents one DNS record managed through the webhook protocol.
    """

    dns_name: str
    record_type: str
    targets: Tuple[str, ...] = ()
    set_identifier: Optional[str] = None
    record_ttl: Optional[int] = None
    labels: Mapping[str, str] = field(default_factory=dict)
    provider_specific: Tuple[ProviderSpecificProperty, ...] = ()

    def __post_init__(self):
        if not isinstance(self.dns_name, str) or not self.dns_name:
            raise InvalidModel("dnsName must be a non-empty string", "dnsName")
        if any(ch.isspace() for ch in self.dns_name):
            raise InvalidModel(
                f"dnsName {self.dns_name!r} must not contain whitespace", "dnsName"
            )
        if not isinstance(self.record_type, str) or not self.record_type:
            raise InvalidModel("recordType must be a non-empty string", "recordType")

        if isinstance(self.targets, str):
            raise InvalidModel("targets must be a sequence of strings", "targets")
        targets = tuple(self.targets)
        if not all(isinstance(target, str) for target in targets):
            raise InvalidModel("targets must be a sequence of strings", "targets")
        object.__setattr__(self, "targets", targets)

        # Empty set identifiers are the same as no set identifier
        if self.set_identifier == "":
            object.__setattr__(self, "set_identifier", None)
        if self.set_identifier is not None and not isinstance(self.set_identifier, str):
            raise InvalidModel("setIdentifier must be a string", "setIdentifier")

        if self.record_ttl is not None:
            if (
                isinstance(self.record_ttl, bool)
                or not isinstance(self.record_ttl, int)
                or self.record_ttl < 0
            ):
                raise InvalidModel(
                    f"recordTTL must be a non-negative integer, got {self.record_ttl!r}",
                    "recordTTL",
                )

        labels = dict(self.labels)
        for key, value in labels.items():
            if not isinstance(key, str) or not isinstance(value, str):
                raise InvalidModel("labels must map strings to strings", "labels")
        object.__setattr__(self, "labels", MappingProxyType(labels))

        provider_specific = tuple(self.provider_specific)
        if not all(
            isinstance(prop, ProviderSpecificProperty) for prop in provider_specific
        ):
            raise InvalidModel(
                "providerSpecific must contain ProviderSpecificProperty entries",
                "providerSpecific",
            )
        object.__setattr__(self, "provider_specific", provider_specific)

    def __hash__(self):
        return hash(self.key)

    @property
    def key(self) -> EndpointKey:
        """
        Identity key of this endpoint.

        Two endpoints describe the same record iff their keys are equal.

        Returns:
            EndpointKey: (dns_name, record_type, set_identifier)
        """
        return (self.dns_name, self.record_type, self.set_identifier)

    @property
    def id(self) -> str:
        """
        Human readable form of the identity key, used in log messages.

        Returns:
            str: Identifier such as "a.example.com:A" or "a.example.com:A:weighted-1"
        """
        if self.set_identifier is None:
            return f"{self.dns_name}:{self.record_type}"
        return f"{self.dns_name}:{self.record_type}:{self.set_identifier}"

    def with_changes(self, **changes) -> "Endpoint":
        """
        Return a copy of this endpoint with the given fields replaced.
        """
        return replace(self, **changes)


@dataclass(frozen=True)
class Changes:
    """
    Represents one batch of changes to be applied to DNS records.
    """

    create: Tuple[Endpoint, ...] = ()
    update_old: Tuple[Endpoint, ...] = ()
    update_new: Tuple[Endpoint, ...] = ()
    delete: Tuple[Endpoint, ...] = ()

    def __post_init__(self):
        for name in ("create", "update_old", "update_new", "delete"):
            value = tuple(getattr(self, name))
            if not all(isinstance(endpoint, Endpoint) for endpoint in value):
                raise InvalidModel(
                    f"{name} must contain Endpoint entries", _WIRE_NAMES[name]
                )
            object.__setattr__(self, name, value)

        if len(self.update_old) != len(self.update_new):
            raise InvalidModel(
                f"updateOld and updateNew must have the same length "
                f"({len(self.update_old)} != {len(self.update_new)})",
                "updateNew",
            )

        for index, (old, new) in enumerate(zip(self.update_old, self.update_new)):
            if old.key != new.key:
                raise InvalidModel(
                    f"updateOld[{index}] ({old.id}) and updateNew[{index}] ({new.id}) "
                    f"do not describe the same record",
                    f"updateNew[{index}]",
                )

        seen: Set[EndpointKey] = set()
        for name in ("create", "update_new", "delete"):
            for index, endpoint in enumerate(getattr(self, name)):
                if endpoint.key in seen:
                    raise InvalidModel(
                        f"record {endpoint.id} appears more than once in the change set",
                        f"{_WIRE_NAMES[name]}[{index}]",
                    )
                seen.add(endpoint.key)

    def has_changes(self) -> bool:
        """
        Check if there are any changes to be applied.

        Returns:
            bool: True if there are changes, False otherwise
        """
        return bool(self.create or self.update_old or self.delete)

    def is_empty(self) -> bool:
        return not self.has_changes()

    def without(self, keys: Iterable[EndpointKey]) -> "Changes":
        """
        Return a change set with every endpoint matching one of the keys removed.

        Update pairs are dropped together.

        Args:
            keys: Identity keys to remove

        Returns:
            Changes: Filtered change set
        """
        excluded = set(keys)
        pairs = [
            (old, new)
            for old, new in zip(self.update_old, self.update_new)
            if new.key not in excluded
        ]
        return Changes(
            create=tuple(ep for ep in self.create if ep.key not in excluded),
            update_old=tuple(old for old, _ in pairs),
            update_new=tuple(new for _, new in pairs),
            delete=tuple(ep for ep in self.delete if ep.key not in excluded),
        )


_WIRE_NAMES = {
    "create": "create",
    "update_old": "updateOld",
    "update_new": "updateNew",
    "delete": "delete",
}


def declined_keys(
    candidates: Iterable[Endpoint], adjusted: Iterable[Endpoint]
) -> Set[EndpointKey]:
    """
    Identity keys the provider dropped while adjusting endpoints.

    A provider that leaves a candidate out of its adjusted result declines to
    manage that record; callers exclude those keys from the change set they submit.

    Args:
        candidates: Endpoints sent to adjust_endpoints
        adjusted: Endpoints returned by adjust_endpoints

    Returns:
        Set[EndpointKey]: Keys present in candidates but missing from adjusted
    """
    kept = {endpoint.key for endpoint in adjusted}
    return {endpoint.key for endpoint in candidates if endpoint.key not in kept}


def _normalize_domain(domain: str) -> str:
    return domain.strip().lower().rstrip(".")


@dataclass(frozen=True)
class DomainFilter:
    """
    Declares which domains a provider manages.

    Suffix entries match at label boundaries, so "example.com" matches
    "example.com" and "foo.example.com" but not "notexample.com". An entry with a
    leading dot only matches strict subdomains.
    """

    include: Tuple[str, ...] = ()
    exclude: Tuple[str, ...] = ()
    regex_include: Optional[str] = None
    regex_exclude: Optional[str] = None

    def __post_init__(self):
        for name in ("include", "exclude"):
            value = getattr(self, name)
            if isinstance(value, str):
                raise InvalidModel(f"{name} must be a sequence of strings", name)
            value = tuple(value)
            if not all(isinstance(entry, str) for entry in value):
                raise InvalidModel(f"{name} must be a sequence of strings", name)
            object.__setattr__(self, name, value)

        for name, wire_name in (
            ("regex_include", "regexInclude"),
            ("regex_exclude", "regexExclude"),
        ):
            pattern = getattr(self, name)
            if pattern == "":
                object.__setattr__(self, name, None)
                continue
            if pattern is None:
                continue
            if not isinstance(pattern, str):
                raise InvalidModel(f"{wire_name} must be a string", wire_name)
            try:
                re.compile(pattern)
            except re.error as e:
                raise InvalidModel(
                    f"{wire_name} is not a valid regular expression: {e}", wire_name
                ) from e

    def is_configured(self) -> bool:
        """
        Check if the filter restricts anything at all.

        Returns:
            bool: True if any include, exclude or regex rule is set
        """
        return bool(
            _suffixes(self.include)
            or _suffixes(self.exclude)
            or self.regex_include
            or self.regex_exclude
        )

    def matches(self, domain: str) -> bool:
        """
        Check if a domain is in scope for this filter.

        Args:
            domain: Candidate domain name

        Returns:
            bool: True if the domain is included and not excluded
        """
        name = _normalize_domain(domain)

        include = _suffixes(self.include)
        if include or self.regex_include:
            included = _matches_any_suffix(name, include) or (
                self.regex_include is not None
                and re.search(self.regex_include, name) is not None
            )
            if not included:
                return False

        if _matches_any_suffix(name, _suffixes(self.exclude)):
            return False
        if self.regex_exclude is not None and re.search(self.regex_exclude, name):
            return False

        return True

    def match_endpoints(self, endpoints: Iterable[Endpoint]) -> List[Endpoint]:
        """
        Keep only the endpoints whose DNS name is in scope.

        Args:
            endpoints: Endpoints to filter

        Returns:
            List[Endpoint]: In-scope endpoints, in their original order
        """
        return [endpoint for endpoint in endpoints if self.matches(endpoint.dns_name)]


def _suffixes(entries: Iterable[str]) -> List[str]:
    result = []
    for entry in entries:
        subdomains_only = entry.strip().startswith(".")
        normalized = _normalize_domain(entry).lstrip(".")
        if normalized:
            result.append("." + normalized if subdomains_only else normalized)
    return result


def _matches_any_suffix(name: str, suffixes: List[str]) -> bool:
    for suffix in suffixes:
        if suffix.startswith("."):
            if name.endswith(suffix):
                return True
        elif name == suffix or name.endswith("." + suffix):
            return True
    return False
