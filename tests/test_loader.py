"""Tests for provider loading."""

import pytest

from webhook_dns.models.models import DomainFilter
from webhook_dns.provider.loader import load_provider
from webhook_dns.provider.memory import InMemoryProvider


def test_loads_factory_with_options() -> None:
    domain_filter = DomainFilter(include=["example.com"])

    provider = load_provider(
        "webhook_dns.provider.memory:InMemoryProvider",
        {"default_ttl": 300},
        domain_filter=domain_filter,
    )

    assert isinstance(provider, InMemoryProvider)
    assert provider.default_ttl == 300
    assert provider.domain_filter == domain_filter


def test_explicit_domain_filter_option_wins() -> None:
    own_filter = DomainFilter(include=["example.org"])

    provider = load_provider(
        "webhook_dns.provider.memory:InMemoryProvider",
        {"domain_filter": own_filter},
        domain_filter=DomainFilter(include=["example.com"]),
    )

    assert provider.domain_filter == own_filter


@pytest.mark.parametrize(
    "factory_path, message",
    [
        ("webhook_dns.provider.memory", "Expected 'module:attribute'"),
        ("no_such_module_xyz:Provider", "Could not import"),
        ("webhook_dns.provider.memory:Missing", "not found"),
        ("builtins:object", "did not produce a provider"),
    ],
)
def test_bad_factories_raise_value_error(factory_path, message) -> None:
    with pytest.raises(ValueError) as exc_info:
        load_provider(factory_path)
    assert message in str(exc_info.value)
