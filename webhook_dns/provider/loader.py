"""
Loading of out-of-tree providers.

Providers are referenced as "package.module:factory", where the factory is a class
or callable returning an object implementing the Provider interface.
"""

import importlib
import inspect
import logging
from typing import Any, Dict, Optional

from webhook_dns.models.models import DomainFilter
from webhook_dns.provider.provider import Provider

logger = logging.getLogger("webhook-dns.loader")


def load_provider(
    factory_path: str,
    options: Optional[Dict[str, Any]] = None,
    domain_filter: Optional[DomainFilter] = None,
) -> Provider:
    """
    Import a provider factory and build the provider.

    Args:
        factory_path: Reference such as "my_provider.provider:MyProvider"
        options: Keyword arguments for the factory
        domain_filter: Passed as `domain_filter` when the factory accepts it

    Returns:
        Provider: The constructed provider

    Raises:
        ValueError: If the reference is malformed, cannot be imported or does not
            produce a provider
    """
    module_name, sep, attr_name = factory_path.partition(":")
    if not sep or not module_name or not attr_name:
        raise ValueError(
            f"Invalid provider factory '{factory_path}'. Expected 'module:attribute'"
        )

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ValueError(f"Could not import provider module '{module_name}': {e}") from e

    factory = module
    for part in attr_name.split("."):
        try:
            factory = getattr(factory, part)
        except AttributeError as e:
            raise ValueError(
                f"Provider factory '{attr_name}' not found in module '{module_name}'"
            ) from e

    kwargs = dict(options or {})
    if domain_filter is not None and "domain_filter" not in kwargs:
        if _accepts_keyword(factory, "domain_filter"):
            kwargs["domain_filter"] = domain_filter

    logger.debug(f"Building provider {factory_path} with options {sorted(kwargs)}")
    provider = factory(**kwargs)

    if not isinstance(provider, Provider):
        raise ValueError(
            f"'{factory_path}' did not produce a provider: "
            f"{type(provider).__name__} lacks list_records, adjust_endpoints or apply_changes"
        )
    return provider


def _accepts_keyword(factory, name: str) -> bool:
    try:
        parameters = inspect.signature(factory).parameters
    except (TypeError, ValueError):
        return False
    return name in parameters or any(
        param.kind is inspect.Parameter.VAR_KEYWORD for param in parameters.values()
    )
