"""
Wire encoding for the webhook protocol models.

Field names on the wire are camelCase and case sensitive. Unknown fields are
ignored on decode so that newer peers can add fields without breaking older ones.
The wire schema is described by pydantic models; decoded values are converted to
the immutable domain types in webhook_dns.models.models.
"""

import json
from typing import Any, Dict, List, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from webhook_dns.models.models import (
    Changes,
    DomainFilter,
    Endpoint,
    InvalidModel,
    ProviderSpecificProperty,
)
from webhook_dns.protocol.errors import DecodeFailure

Body = Union[str, bytes]


class WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
        strict=True,
    )


class ProviderSpecificModel(WireModel):
    name: str
    value: Optional[str] = None


class EndpointModel(WireModel):
    """Wire form of an Endpoint."""

    dns_name: str
    targets: Optional[List[str]] = None
    record_type: str
    set_identifier: Optional[str] = None
    record_ttl: Optional[int] = Field(default=None, alias="recordTTL")
    labels: Optional[Dict[str, str]] = None
    provider_specific: Optional[List[ProviderSpecificModel]] = None

    @classmethod
    def from_endpoint(cls, endpoint: Endpoint) -> "EndpointModel":
        return cls(
            dns_name=endpoint.dns_name,
            targets=list(endpoint.targets),
            record_type=endpoint.record_type,
            set_identifier=endpoint.set_identifier,
            record_ttl=endpoint.record_ttl,
            labels=dict(endpoint.labels),
            provider_specific=[
                ProviderSpecificModel(name=prop.name, value=prop.value)
                for prop in endpoint.provider_specific
            ],
        )

    def to_endpoint(self) -> Endpoint:
        """
        Convert to the domain type.

        Raises:
            InvalidModel: If the values break an Endpoint invariant
        """
        return Endpoint(
            dns_name=self.dns_name,
            record_type=self.record_type,
            targets=tuple(self.targets or ()),
            set_identifier=self.set_identifier,
            record_ttl=self.record_ttl,
            labels=self.labels or {},
            provider_specific=tuple(
                ProviderSpecificProperty(prop.name, prop.value or "")
                for prop in self.provider_specific or ()
            ),
        )


class ChangesModel(WireModel):
    """Wire form of a change set. Missing or null sections are empty."""

    create: Optional[List[EndpointModel]] = None
    update_old: Optional[List[EndpointModel]] = None
    update_new: Optional[List[EndpointModel]] = None
    delete: Optional[List[EndpointModel]] = None


class DomainFilterModel(WireModel):
    include: Optional[List[str]] = None
    exclude: Optional[List[str]] = None
    regex_include: Optional[str] = None
    regex_exclude: Optional[str] = None


class ErrorModel(WireModel):
    """Body of every non-2xx response with a JSON error."""

    error: str = ""
    reason: str
    field: Optional[str] = None


_ENDPOINT = TypeAdapter(EndpointModel)
_ENDPOINTS = TypeAdapter(List[EndpointModel])
_CHANGES = TypeAdapter(ChangesModel)
_DOMAIN_FILTER = TypeAdapter(DomainFilterModel)
_ERROR = TypeAdapter(ErrorModel)


def encode_endpoint(endpoint: Endpoint) -> Dict[str, Any]:
    return EndpointModel.from_endpoint(endpoint).model_dump(
        by_alias=True, exclude_none=True
    )


def encode_endpoints(endpoints) -> List[Dict[str, Any]]:
    return [encode_endpoint(endpoint) for endpoint in endpoints]


def encode_changes(changes: Changes) -> Dict[str, Any]:
    return {
        "create": encode_endpoints(changes.create),
        "updateOld": encode_endpoints(changes.update_old),
        "updateNew": encode_endpoints(changes.update_new),
        "delete": encode_endpoints(changes.delete),
    }


def encode_domain_filter(domain_filter: DomainFilter) -> Dict[str, Any]:
    model = DomainFilterModel(
        include=list(domain_filter.include),
        exclude=list(domain_filter.exclude),
        regex_include=domain_filter.regex_include,
        regex_exclude=domain_filter.regex_exclude,
    )
    return model.model_dump(by_alias=True, exclude_none=True)


def decode_endpoint(body: Body) -> Endpoint:
    """
    Build an Endpoint from a JSON document.

    Args:
        body: Raw JSON

    Returns:
        Endpoint: Decoded endpoint

    Raises:
        DecodeFailure: If the document does not describe a valid endpoint
    """
    return _to_endpoint(_validate(_ENDPOINT, body, "endpoint"), "")


def decode_endpoints(body: Body) -> List[Endpoint]:
    models = _validate(_ENDPOINTS, body, "endpoints")
    return _to_endpoints(models, "")


def decode_changes(body: Body) -> Changes:
    """
    Build a Changes value from a JSON document.

    Args:
        body: Raw JSON

    Returns:
        Changes: Decoded change set

    Raises:
        DecodeFailure: If any section is malformed or the change set is inconsistent
    """
    model = _validate(_CHANGES, body, "changes")
    try:
        return Changes(
            create=_to_endpoints(model.create, "create"),
            update_old=_to_endpoints(model.update_old, "updateOld"),
            update_new=_to_endpoints(model.update_new, "updateNew"),
            delete=_to_endpoints(model.delete, "delete"),
        )
    except InvalidModel as e:
        raise DecodeFailure(str(e), field=e.field) from e


def decode_domain_filter(body: Body) -> DomainFilter:
    model = _validate(_DOMAIN_FILTER, body, "domainFilter")
    try:
        return DomainFilter(
            include=tuple(model.include or ()),
            exclude=tuple(model.exclude or ()),
            regex_include=model.regex_include,
            regex_exclude=model.regex_exclude,
        )
    except InvalidModel as e:
        raise DecodeFailure(str(e), field=e.field) from e


def decode_error(body: Body) -> ErrorModel:
    return _validate(_ERROR, body, "error")


def dumps(value: Any) -> bytes:
    return json.dumps(value, separators=(",", ":")).encode("utf-8")


def _validate(adapter: TypeAdapter, body: Body, root: str) -> Any:
    """
    Parse and validate a JSON body against a wire model.

    Args:
        adapter: Adapter of the expected wire type
        body: Raw JSON
        root: Name reported as the field when the document itself has the wrong shape

    Returns:
        Any: Validated wire model

    Raises:
        DecodeFailure: If the body is empty, not JSON or does not fit the model
    """
    if not body:
        raise DecodeFailure("body is empty")
    try:
        return adapter.validate_json(body)
    except ValidationError as e:
        error = e.errors(include_url=False)[0]
        if error["type"] == "json_invalid":
            raise DecodeFailure(error["msg"]) from e
        field_name = _field_path(error["loc"]) or root
        raise DecodeFailure(error["msg"], field=field_name) from e
    except RecursionError as e:
        raise DecodeFailure("body is nested too deeply") from e


def _field_path(loc: Sequence[Union[int, str]]) -> Optional[str]:
    path = ""
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        elif path:
            path += f".{part}"
        else:
            path = part
    return path or None


def _to_endpoints(models: Optional[List[EndpointModel]], path: str) -> List[Endpoint]:
    return [
        _to_endpoint(model, f"{path}[{index}]")
        for index, model in enumerate(models or ())
    ]


def _to_endpoint(model: EndpointModel, path: str) -> Endpoint:
    try:
        return model.to_endpoint()
    except InvalidModel as e:
        if not path:
            field_name = e.field
        elif e.field:
            field_name = f"{path}.{e.field}"
        else:
            field_name = path
        raise DecodeFailure(str(e), field=field_name) from e
